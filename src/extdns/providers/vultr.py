from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..records import DnsRecord, group_records, unfqdn
from .base import HttpProvider, ProviderConfig, provider_aliases


class VultrConfig(ProviderConfig):
    api_key: Optional[str] = None
    url: Optional[str] = None


@provider_aliases("vultr")
class VultrProvider(HttpProvider):
    """Brief: Vultr DNS adapter (v2 API).

    Inputs (config / environment):
      - api_key / VULTR_API_KEY: Bearer token.
      - url / VULTR_URL: Optional endpoint override.
    """

    name = "Vultr"
    base_url = "https://api.vultr.com/v2"
    rate = 2.0
    burst = 2.0

    @classmethod
    def get_config_model(cls):
        return VultrConfig

    def init(self, root_domain: str) -> None:
        self.root = unfqdn(root_domain).lower()
        key = self.credential("api_key", "VULTR_API_KEY")
        url = self.credential("url", "VULTR_URL", required=False)
        if url:
            self.base_url = url.rstrip("/")
        self.open_session({"Authorization": f"Bearer {key}"})
        self.health_check()
        self.logger.info("Configured %s with zone '%s'", self.name, self.root)

    def _records(self) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        cursor = ""
        while True:
            params: Dict[str, Any] = {"per_page": 500}
            if cursor:
                params["cursor"] = cursor
            body = self.request("GET", f"domains/{self.root}/records", params=params) or {}
            rows.extend(body.get("records") or [])
            cursor = ((body.get("meta") or {}).get("links") or {}).get("next") or ""
            if not cursor:
                return rows

    def health_check(self) -> None:
        self.request("GET", f"domains/{self.root}/records", params={"per_page": 1})

    def list_records(self) -> List[DnsRecord]:
        rows = (
            (self.absolute_name(r.get("name", "")), r["type"], int(r.get("ttl") or 0), r.get("data", ""))
            for r in self._records()
        )
        return group_records(rows)

    def add_record(self, record: DnsRecord) -> None:
        name = self.relative_name(record.fqdn)
        for value in record.values:
            self.request(
                "POST",
                f"domains/{self.root}/records",
                json={"name": name, "type": record.type, "data": value, "ttl": record.ttl},
            )

    def remove_record(self, record: DnsRecord) -> None:
        name = self.relative_name(record.fqdn)
        for row in self._records():
            if str(row.get("name", "")).lower() == name and row.get("type") == record.type:
                self.request("DELETE", f"domains/{self.root}/records/{row['id']}")
