"""In-memory provider used for tests and dry runs."""

from __future__ import annotations

import threading
from typing import Dict, Iterable, List, Optional, Set, Tuple

from pydantic import Field

from ..records import DnsRecord, fqdn
from .base import Provider, ProviderConfig, provider_aliases


class MemoryConfig(ProviderConfig):
    records: List[dict] = Field(default_factory=list)


@provider_aliases("memory", "mock", "inmemory")
class MemoryProvider(Provider):
    """Brief: Dictionary-backed provider recording every mutating call.

    Inputs (constructor):
      - records: Optional list of {fqdn, type, ttl, values} mappings used to
        seed the zone.

    Outputs:
      - Provider whose ``calls`` attribute lists (operation, record) tuples for
        add/update/remove, in call order.

    Example:
      >>> p = MemoryProvider()
      >>> p.init("example.com")
      >>> p.add_record(DnsRecord("a.example.com.", "A", 300, ("10.0.0.1",)))
      >>> p.calls[0][0]
      'add'
    """

    name = "Memory"

    @classmethod
    def get_config_model(cls):
        return MemoryConfig

    def init(self, root_domain: str) -> None:
        self.root = root_domain.rstrip(".")
        self._lock = threading.Lock()
        self.zone: Dict[Tuple[str, str], DnsRecord] = {}
        self.calls: List[Tuple[str, DnsRecord]] = []
        self.fail_on: Set[Tuple[str, str]] = set()
        self.healthy = True
        self.seed(DnsRecord(**item) for item in self.config.records)

    def seed(self, records: Iterable[DnsRecord]) -> None:
        for record in records:
            self.zone[self._key(record)] = record

    @staticmethod
    def _key(record: DnsRecord) -> Tuple[str, str]:
        return (fqdn(record.fqdn.lower()), record.type)

    def _check(self, op: str, record: DnsRecord) -> None:
        if (op, record.fqdn) in self.fail_on:
            raise self.fail(f"injected {op} failure for {record.fqdn}")

    def health_check(self) -> None:
        if not self.healthy:
            raise self.fail("memory provider marked unhealthy")

    def list_records(self) -> List[DnsRecord]:
        with self._lock:
            return list(self.zone.values())

    def add_record(self, record: DnsRecord) -> None:
        self._check("add", record)
        with self._lock:
            self.calls.append(("add", record))
            self.zone[self._key(record)] = record

    def update_record(self, record: DnsRecord) -> None:
        self._check("update", record)
        with self._lock:
            self.calls.append(("update", record))
            self.zone[self._key(record)] = record

    def remove_record(self, record: DnsRecord) -> None:
        self._check("remove", record)
        with self._lock:
            self.calls.append(("remove", record))
            self.zone.pop(self._key(record), None)

    def get(self, name: str, rtype: str = "A") -> Optional[DnsRecord]:
        return self.zone.get((fqdn(name.lower()), rtype))
