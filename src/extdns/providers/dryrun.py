from __future__ import annotations

import logging
from typing import List

from ..records import DnsRecord

logger = logging.getLogger(__name__)


class DryRunProvider:
    """Brief: Read-through wrapper that logs mutations instead of applying them.

    Inputs (constructor):
      - inner: Initialised provider; listing and health checks are delegated.

    Outputs:
      - Object satisfying the provider contract; ``skipped`` collects the
        (operation, record) pairs that would have been sent.
    """

    def __init__(self, inner) -> None:
        self.inner = inner
        self.name = f"{inner.name} (dry-run)"
        self.root = getattr(inner, "root", "")
        self.skipped: List[tuple] = []

    def health_check(self) -> None:
        self.inner.health_check()

    def probe(self) -> None:
        self.inner.health_check()

    def list_records(self) -> List[DnsRecord]:
        return self.inner.list_records()

    def _skip(self, op: str, record: DnsRecord) -> None:
        logger.info("[dry-run] would %s %s", op, record)
        self.skipped.append((op, record))

    def add_record(self, record: DnsRecord) -> None:
        self._skip("add", record)

    def update_record(self, record: DnsRecord) -> None:
        self._skip("update", record)

    def remove_record(self, record: DnsRecord) -> None:
        self._skip("remove", record)
