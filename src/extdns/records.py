"""Record types and name helpers used by every extdns component.

Brief:
  - DnsRecord models one RRset (name + type + ttl + value list), not a single RR.
  - MetadataRecord adds the workload identity used for orchestrator events.
  - fqdn()/unfqdn() convert between absolute and relative names.
  - state_fqdn()/state_record() build the in-zone ownership marker.
"""

from __future__ import annotations

import dataclasses
import re
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

SUPPORTED_TYPES = ("A", "AAAA", "CNAME", "TXT")
STATE_RECORD_TEMPLATE = "external-dns-{uuid}.{root}"
# Value written when nothing is owned; providers reject TXT sets without values.
EMPTY_STATE_VALUE = "none"

_INVALID_LABEL_CHARS = re.compile(r"[^a-zA-Z0-9-]")
_DASH_RUNS = re.compile(r"-+")


def fqdn(name: str) -> str:
    """Return name with exactly one trailing dot ("" stays "")."""
    if not name or name.endswith("."):
        return name
    return name + "."


def unfqdn(name: str) -> str:
    """Return name without its trailing dot ("" stays "")."""
    if name.endswith("."):
        return name[:-1]
    return name


def sanitize_label(label: str) -> str:
    """Brief: Make an arbitrary string usable as a DNS label.

    Inputs:
      - label: Raw text (service, stack or environment name).

    Outputs:
      - str where characters outside [a-zA-Z0-9-] became '-', dash runs are
        collapsed and leading/trailing dashes removed (RFC 1123 labels).

    Example:
      >>> sanitize_label("example.com.!!")
      'example-com'
    """
    label = _INVALID_LABEL_CHARS.sub("-", label)
    label = _DASH_RUNS.sub("-", label)
    return label.strip("-")


def state_fqdn(environment_uuid: str, root_domain: str) -> str:
    """Brief: Name of the ownership marker TXT RRset for one environment.

    Inputs:
      - environment_uuid: Orchestrator environment UUID.
      - root_domain: Managed zone, with or without trailing dot.

    Outputs:
      - Lowercase absolute name "external-dns-<uuid>.<root>.".
    """
    name = STATE_RECORD_TEMPLATE.format(
        uuid=environment_uuid, root=unfqdn(root_domain)
    )
    return fqdn(name.lower())


@dataclasses.dataclass(frozen=True)
class DnsRecord:
    """One resource-record set.

    TXT values are stored without surrounding quotes; adapters re-quote on
    the wire where their API expects it.
    """

    fqdn: str
    type: str
    ttl: int
    values: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        # Accept any iterable for values and normalise to a tuple.
        object.__setattr__(self, "values", tuple(self.values))

    def value_set(self) -> FrozenSet[str]:
        return frozenset(self.values)

    def with_values(self, values: Iterable[str]) -> "DnsRecord":
        return dataclasses.replace(self, values=tuple(values))

    def key(self) -> Tuple[str, str]:
        return (self.fqdn.lower(), self.type)

    def __str__(self) -> str:
        return f"{self.fqdn} {self.ttl} {self.type} {list(self.values)}"


@dataclasses.dataclass(frozen=True)
class MetadataRecord(DnsRecord):
    """DnsRecord annotated with the workload that produced it."""

    service_name: str = ""
    stack_name: str = ""

    def to_dns_record(self) -> DnsRecord:
        return DnsRecord(
            fqdn=self.fqdn, type=self.type, ttl=self.ttl, values=self.values
        )


DesiredMap = Dict[str, MetadataRecord]


def state_record(name: str, ttl: int, entries: Iterable[str]) -> DnsRecord:
    """Brief: Build the ownership marker record.

    Inputs:
      - name: Absolute marker name from state_fqdn().
      - ttl: Configured TTL.
      - entries: Owned fqdns (any iterable; duplicates are dropped).

    Outputs:
      - TXT DnsRecord whose values are the sorted unique entries, or the
        single EMPTY_STATE_VALUE placeholder when there are none.
    """
    values = tuple(sorted(set(entries) - {EMPTY_STATE_VALUE})) or (EMPTY_STATE_VALUE,)
    return DnsRecord(fqdn=name, type="TXT", ttl=ttl, values=values)


def quote_txt(value: str) -> str:
    return '"' + value.replace('"', '\\"') + '"'


def unquote_txt(value: str) -> str:
    """Strip wire quoting from a TXT value, joining multi-string values."""
    value = value.strip()
    if '"' not in value:
        return value
    parts = re.findall(r'"((?:[^"\\]|\\.)*)"', value)
    if not parts:
        return value.replace('"', "")
    return "".join(p.replace('\\"', '"') for p in parts)


def group_records(
    rows: Iterable[Tuple[str, str, int, str]],
    types: Optional[Iterable[str]] = SUPPORTED_TYPES,
) -> List[DnsRecord]:
    """Brief: Fold flat (name, type, ttl, value) rows into RRsets.

    Inputs:
      - rows: Iterable of tuples as returned by per-record provider APIs.
      - types: Record types to keep (None keeps everything).

    Outputs:
      - List[DnsRecord], one per (absolute lowercase name, type), preserving
        first-seen order. The TTL of the last row of each set wins, matching
        providers that report a TTL per RR.
    """
    keep = set(types) if types is not None else None
    grouped: Dict[Tuple[str, str], List[str]] = {}
    ttls: Dict[Tuple[str, str], int] = {}
    for name, rtype, ttl, value in rows:
        rtype = rtype.upper()
        if keep is not None and rtype not in keep:
            continue
        key = (fqdn(name.lower()), rtype)
        values = grouped.setdefault(key, [])
        if value not in values:
            values.append(value)
        ttls[key] = int(ttl)
    return [
        DnsRecord(fqdn=name, type=rtype, ttl=ttls[(name, rtype)], values=tuple(vals))
        for (name, rtype), vals in grouped.items()
    ]


def clamp_ttl(ttl: int, low: int, high: int) -> int:
    return max(low, min(high, int(ttl)))
