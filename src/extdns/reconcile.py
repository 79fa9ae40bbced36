"""Reconciliation engine and ownership-marker protocol.

Brief:
  - observe(): one provider listing, partitioned into the ownership marker,
    every A/CNAME RRset, and the subset owned by this agent.
  - plan(): Add = desired - all, Remove = owned - desired - {marker},
    Update = desired & all whose value sets differ (TTL/type ignored).
  - execute(): remove, then add, then update; each call attempted once and
    failures logged per record.
  - refresh_ownership(): rewrite the marker TXT when ownership changed.
  - notify(): one orchestrator event per added or updated name.
  - adopt_legacy_records(): upgrade path run once before the first cycle.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Dict, List, Optional, Protocol, Set, Tuple

from .errors import ExtDnsError, ProviderError
from .records import (
    EMPTY_STATE_VALUE,
    DesiredMap,
    DnsRecord,
    MetadataRecord,
    fqdn,
    state_fqdn,
    state_record,
    unfqdn,
)

logger = logging.getLogger(__name__)

OWNED_TYPES = ("A", "CNAME")


class Notifier(Protocol):
    def notify(self, fqdn: str, service_name: str, stack_name: str) -> None: ...


class ZoneProvider(Protocol):
    name: str

    def list_records(self) -> List[DnsRecord]: ...

    def add_record(self, record: DnsRecord) -> None: ...

    def update_record(self, record: DnsRecord) -> None: ...

    def remove_record(self, record: DnsRecord) -> None: ...


def _key(name: str) -> str:
    return fqdn(name.strip().lower())


@dataclasses.dataclass
class ObservedState:
    """One provider snapshot, partitioned by ownership."""

    state_name: str
    marker: Optional[DnsRecord] = None
    owned_fqdns: Set[str] = dataclasses.field(default_factory=set)
    all_by_fqdn: Dict[str, DnsRecord] = dataclasses.field(default_factory=dict)
    owned_by_fqdn: Dict[str, DnsRecord] = dataclasses.field(default_factory=dict)


@dataclasses.dataclass
class ChangePlan:
    add: List[DnsRecord] = dataclasses.field(default_factory=list)
    remove: List[DnsRecord] = dataclasses.field(default_factory=list)
    update: List[DnsRecord] = dataclasses.field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.add or self.remove or self.update)


@dataclasses.dataclass
class ExecutionResult:
    added: List[DnsRecord] = dataclasses.field(default_factory=list)
    removed: List[DnsRecord] = dataclasses.field(default_factory=list)
    updated: List[DnsRecord] = dataclasses.field(default_factory=list)
    failed: List[Tuple[str, DnsRecord, str]] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class ReconcileReport:
    plan: ChangePlan
    result: ExecutionResult
    owned: Set[str]
    marker_written: bool = False
    marker_error: Optional[str] = None
    notified: int = 0

    @property
    def ok(self) -> bool:
        return not self.result.failed and self.marker_error is None


def partition(records: List[DnsRecord], state_name: str) -> ObservedState:
    """Brief: Split a provider listing into marker, all and owned maps.

    Inputs:
      - records: Output of provider.list_records().
      - state_name: Absolute lowercase marker name.

    Outputs:
      - ObservedState. Names are compared case-insensitively; when a name
        carries both A and CNAME sets the A set wins.
    """
    observed = ObservedState(state_name=_key(state_name))
    for record in records:
        name = _key(record.fqdn)
        if record.type == "TXT" and name == observed.state_name:
            observed.marker = record
            observed.owned_fqdns = {
                _key(v)
                for v in record.values
                if v.strip() and v.strip() != EMPTY_STATE_VALUE
            }
            continue
        if record.type not in OWNED_TYPES:
            continue
        current = observed.all_by_fqdn.get(name)
        if current is not None and current.type == "A":
            continue
        observed.all_by_fqdn[name] = record

    for name, record in observed.all_by_fqdn.items():
        if name in observed.owned_fqdns:
            observed.owned_by_fqdn[name] = record
    if observed.marker is not None:
        observed.owned_by_fqdn[observed.state_name] = observed.marker
    return observed


def compute_plan(desired: DesiredMap, observed: ObservedState) -> ChangePlan:
    """Brief: Diff desired vs. observed into add/remove/update lists.

    Inputs:
      - desired: DesiredMap keyed by lowercase absolute fqdn.
      - observed: ObservedState from partition().

    Outputs:
      - ChangePlan with disjoint, name-sorted lists. Updates carry the desired
        record; removals carry the observed record.
    """
    wanted = {_key(k): v for k, v in desired.items()}
    plan = ChangePlan()
    for name in sorted(wanted):
        record = wanted[name]
        current = observed.all_by_fqdn.get(name)
        if current is None:
            plan.add.append(record)
        elif record.value_set() != current.value_set():
            plan.update.append(record)
    for name in sorted(observed.owned_by_fqdn):
        if name == observed.state_name or name in wanted:
            continue
        plan.remove.append(observed.owned_by_fqdn[name])
    return plan


class Reconciler:
    """Brief: Drive one zone towards the desired RRset map.

    Inputs (constructor):
      - provider: Initialised provider adapter.
      - root_domain: Managed zone (trailing dot optional).
      - ttl: Configured TTL used for the marker and legacy adoption.
      - environment_uuid/environment_name: Orchestrator environment identity.
      - notifier: Optional object with notify(fqdn, service_name, stack_name).
      - guard_empty_inventory: When True, an empty desired set does not
        remove anything until this process has seen a non-empty one.

    Outputs:
      - Reconciler with reconcile(desired) and adopt_legacy_records().

    Example:
      >>> from extdns.providers.memory import MemoryProvider
      >>> p = MemoryProvider(); p.init("r")
      >>> rec = Reconciler(p, "r", 300, "uuid", "e")
      >>> report = rec.reconcile({})
      >>> report.plan.is_empty()
      True
    """

    def __init__(
        self,
        provider: ZoneProvider,
        root_domain: str,
        ttl: int,
        environment_uuid: str,
        environment_name: str,
        notifier: Optional[Notifier] = None,
        guard_empty_inventory: bool = True,
    ) -> None:
        self.provider = provider
        self.root_domain = unfqdn(root_domain).lower()
        self.ttl = int(ttl)
        self.environment_uuid = environment_uuid
        self.environment_name = environment_name
        self.notifier = notifier
        self.guard_empty_inventory = guard_empty_inventory
        self.state_name = state_fqdn(environment_uuid, self.root_domain)
        self._seen_non_empty = False

    # --- observe / plan ----------------------------------------------------

    def observe(self) -> ObservedState:
        records = self.provider.list_records()
        logger.debug("DNS records from provider: %s", [str(r) for r in records])
        return partition(records, self.state_name)

    def plan(self, desired: DesiredMap, observed: ObservedState) -> ChangePlan:
        plan = compute_plan(desired, observed)
        if desired:
            self._seen_non_empty = True
        elif plan.remove and self.guard_empty_inventory and not self._seen_non_empty:
            logger.warning(
                "Desired set is empty and no workloads have been observed yet; "
                "not removing %d owned record(s)",
                len(plan.remove),
            )
            plan.remove = []
        for label, items in (
            ("remove", plan.remove),
            ("add", plan.add),
            ("update", plan.update),
        ):
            if items:
                logger.info("DNS records to %s: %s", label, [str(r) for r in items])
            else:
                logger.debug("No DNS records to %s", label)
        return plan

    # --- execute -----------------------------------------------------------

    def _apply(self, op: str, record: DnsRecord, result: ExecutionResult) -> bool:
        method = getattr(self.provider, f"{op}_record")
        logger.info("%s dns record: %s", op.capitalize(), record)
        try:
            method(_as_dns_record(record))
        except ProviderError as exc:
            logger.error("Failed to %s DNS record %s: %s", op, record, exc)
            result.failed.append((op, record, str(exc)))
            return False
        except Exception as exc:
            logger.exception("Unexpected error trying to %s DNS record %s", op, record)
            result.failed.append((op, record, f"{type(exc).__name__}: {exc}"))
            return False
        return True

    def execute(self, plan: ChangePlan) -> ExecutionResult:
        """Apply plan: remove, then add, then update; never aborts midway."""
        result = ExecutionResult()
        for record in plan.remove:
            if self._apply("remove", record, result):
                result.removed.append(record)
        for record in plan.add:
            if self._apply("add", record, result):
                result.added.append(record)
        for record in plan.update:
            if self._apply("update", record, result):
                result.updated.append(record)
        return result

    # --- ownership ---------------------------------------------------------

    def new_ownership(
        self, observed: ObservedState, desired: DesiredMap, result: ExecutionResult
    ) -> Set[str]:
        """Brief: Compute the owned set after execution.

        Outputs:
          - (owned | added | (desired & owned)) - removed, minus owned names
            that neither exist at the provider nor are desired (nothing is
            left to own for those).
        """
        owned = set(observed.owned_fqdns)
        wanted = {_key(k) for k in desired}
        added = {_key(r.fqdn) for r in result.added}
        removed = {_key(r.fqdn) for r in result.removed}
        ghosts = owned - set(observed.all_by_fqdn) - wanted
        return ((owned | added | (wanted & owned)) - removed) - ghosts

    def refresh_ownership(
        self, observed: ObservedState, desired: DesiredMap, result: ExecutionResult
    ) -> Tuple[Set[str], bool]:
        """Brief: Rewrite the marker when the owned set changed.

        Outputs:
          - (owned, written). written is False when nothing changed.

        Raises:
          - ProviderError from the marker write.
        """
        owned = self.new_ownership(observed, desired, result)
        if owned == observed.owned_fqdns:
            return owned, False
        self.write_marker(owned, exists=observed.marker is not None)
        return owned, True

    def write_marker(self, owned: Set[str], exists: bool) -> None:
        marker = state_record(self.state_name, self.ttl, owned)
        if exists:
            logger.info("Updating state record %s: %s", self.state_name, list(marker.values))
            self.provider.update_record(marker)
        else:
            logger.info("Creating state record %s: %s", self.state_name, list(marker.values))
            self.provider.add_record(marker)

    # --- notify ------------------------------------------------------------

    def notify(self, result: ExecutionResult, desired: DesiredMap) -> int:
        if self.notifier is None:
            return 0
        wanted = {_key(k): v for k, v in desired.items()}
        sent = 0
        seen: Set[str] = set()
        for record in list(result.added) + list(result.updated):
            name = _key(record.fqdn)
            if name in seen:
                continue
            seen.add(name)
            source = wanted.get(name)
            service = getattr(source, "service_name", "")
            stack = getattr(source, "stack_name", "")
            try:
                self.notifier.notify(record.fqdn, service, stack)
                sent += 1
            except ExtDnsError as exc:
                logger.error("Failed to notify orchestrator about %s: %s", record.fqdn, exc)
        return sent

    # --- entry points ------------------------------------------------------

    def reconcile(self, desired: DesiredMap) -> ReconcileReport:
        """Brief: Run one full cycle against the provider.

        Inputs:
          - desired: DesiredMap for this cycle.

        Outputs:
          - ReconcileReport; report.ok is False when any record call or the
            marker write failed.

        Raises:
          - ProviderError when the provider listing itself fails (cycle-level
            failure; nothing is mutated).
        """
        observed = self.observe()
        plan = self.plan(desired, observed)
        result = self.execute(plan)

        report = ReconcileReport(
            plan=plan,
            result=result,
            owned=self.new_ownership(observed, desired, result),
        )
        try:
            report.owned, report.marker_written = self.refresh_ownership(
                observed, desired, result
            )
        except ProviderError as exc:
            logger.error("Failed to update state record %s: %s", self.state_name, exc)
            report.marker_error = str(exc)
        except Exception as exc:
            logger.exception("Unexpected error updating state record %s", self.state_name)
            report.marker_error = f"{type(exc).__name__}: {exc}"

        report.notified = self.notify(result, desired)
        return report

    def adopt_legacy_records(self) -> Optional[Set[str]]:
        """Brief: Adopt records created by the pre-marker naming scheme.

        Inputs:
          - None (uses the provider listing).

        Outputs:
          - Set of adopted fqdns when a marker was written, or None when a
            marker already exists.

        Behavior:
          - Without a marker, every A RRset whose name ends with
            ".<environment>.<root>." and whose TTL equals the configured TTL is
            treated as owned and recorded in a new marker.
        """
        observed = self.observe()
        if observed.marker is not None:
            logger.debug("Found state record %s", self.state_name)
            return None

        suffix = _key(f"{self.environment_name}.{self.root_domain}")
        adopted = {
            name
            for name, record in observed.all_by_fqdn.items()
            if record.type == "A"
            and name.endswith("." + suffix)
            and int(record.ttl) == self.ttl
        }
        logger.info(
            "State record %s not found; adopting %d legacy record(s)",
            self.state_name,
            len(adopted),
        )
        self.write_marker(adopted, exists=False)
        return adopted


def _as_dns_record(record: DnsRecord) -> DnsRecord:
    if isinstance(record, MetadataRecord):
        return record.to_dns_record()
    return record
