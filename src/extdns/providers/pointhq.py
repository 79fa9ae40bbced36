from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..errors import ConfigurationError
from ..records import DnsRecord, group_records, unfqdn
from .base import HttpProvider, ProviderConfig, provider_aliases


class PointHQConfig(ProviderConfig):
    email: Optional[str] = None
    token: Optional[str] = None


def _unwrap(item: Dict[str, Any], key: str) -> Dict[str, Any]:
    return item.get(key, item) if isinstance(item, dict) else {}


@provider_aliases("pointhq", "pointdns")
class PointHQProvider(HttpProvider):
    """Brief: PointHQ (PointDNS) adapter.

    Inputs (config / environment):
      - email / POINTHQ_EMAIL and token / POINTHQ_TOKEN for basic auth.
    """

    name = "PointHQ"
    base_url = "https://pointhq.com"

    @classmethod
    def get_config_model(cls):
        return PointHQConfig

    def init(self, root_domain: str) -> None:
        self.root = unfqdn(root_domain).lower()
        email = self.credential("email", "POINTHQ_EMAIL")
        token = self.credential("token", "POINTHQ_TOKEN")
        session = self.open_session({"Content-Type": "application/json"})
        session.auth = (email, token)
        self.zone_id = self._find_zone()
        self.logger.info("Configured %s with zone '%s'", self.name, self.root)

    def _zones(self) -> List[Dict[str, Any]]:
        return [_unwrap(z, "zone") for z in (self.request("GET", "zones") or [])]

    def _find_zone(self) -> Any:
        for zone in self._zones():
            if str(zone.get("name", "")).lower() == self.root:
                return zone["id"]
        raise ConfigurationError(f"Zone for '{self.root}' not found")

    def _records(self) -> List[Dict[str, Any]]:
        rows = self.request("GET", f"zones/{self.zone_id}/records") or []
        return [_unwrap(r, "zone_record") for r in rows]

    def health_check(self) -> None:
        self._zones()

    def list_records(self) -> List[DnsRecord]:
        rows = (
            (self.absolute_name(r.get("name", "")), r["record_type"], int(r.get("ttl") or 0), r.get("data", ""))
            for r in self._records()
        )
        return group_records(rows)

    def add_record(self, record: DnsRecord) -> None:
        name = self.relative_name(record.fqdn)
        for value in record.values:
            self.request(
                "POST",
                f"zones/{self.zone_id}/records",
                json={
                    "zone_record": {
                        "name": name,
                        "record_type": record.type,
                        "data": value,
                        "ttl": int(record.ttl),
                    }
                },
            )

    def remove_record(self, record: DnsRecord) -> None:
        target = self.absolute_name(self.relative_name(record.fqdn)).lower()
        for row in self._records():
            name = self.absolute_name(row.get("name", "")).lower()
            if name == target and row.get("record_type") == record.type:
                self.request("DELETE", f"zones/{self.zone_id}/records/{row['id']}")
