from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..records import DnsRecord, clamp_ttl, fqdn, group_records, unfqdn
from .base import HttpProvider, ProviderConfig, provider_aliases

MIN_TTL = 120
MAX_TTL = 86400
PAGE_SIZE = 100


class CloudflareConfig(ProviderConfig):
    email: Optional[str] = None
    api_key: Optional[str] = None
    api_token: Optional[str] = None


@provider_aliases("cloudflare", "cf")
class CloudflareProvider(HttpProvider):
    """Brief: Cloudflare v4 REST adapter.

    Inputs (config / environment):
      - email / CLOUDFLARE_EMAIL and api_key / CLOUDFLARE_KEY, or
        api_token / CLOUDFLARE_API_TOKEN for bearer-token auth.

    Outputs:
      - Provider where each RR value is one API record; updates are
        remove-then-add and TTLs are clamped to [120, 86400].
    """

    name = "CloudFlare"
    base_url = "https://api.cloudflare.com/client/v4"
    rate = 4.0
    burst = 4.0

    @classmethod
    def get_config_model(cls):
        return CloudflareConfig

    def init(self, root_domain: str) -> None:
        self.root = unfqdn(root_domain).lower()
        token = self.credential("api_token", "CLOUDFLARE_API_TOKEN", required=False)
        if token:
            self.open_session({"Authorization": f"Bearer {token}"})
        else:
            email = self.credential("email", "CLOUDFLARE_EMAIL")
            key = self.credential("api_key", "CLOUDFLARE_KEY")
            self.open_session({"X-Auth-Email": email, "X-Auth-Key": key})
        self.zone_id = self._find_zone()
        self.logger.info("Configured %s with zone '%s'", self.name, self.root)

    def _find_zone(self) -> str:
        body = self.request("GET", "zones", params={"name": self.root})
        for zone in (body or {}).get("result") or []:
            if str(zone.get("name", "")).lower() == self.root:
                return str(zone["id"])
        raise self.fail(f"Zone {self.root} does not exist")

    def _iter_records(self) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        page = 1
        while True:
            body = self.request(
                "GET",
                f"zones/{self.zone_id}/dns_records",
                params={"page": page, "per_page": PAGE_SIZE},
            ) or {}
            rows.extend(body.get("result") or [])
            info = body.get("result_info") or {}
            if page >= int(info.get("total_pages") or 1):
                return rows
            page += 1

    def health_check(self) -> None:
        self.request("GET", f"zones/{self.zone_id}")

    def list_records(self) -> List[DnsRecord]:
        rows = (
            (fqdn(r["name"]), r["type"], int(r.get("ttl") or 1), r["content"])
            for r in self._iter_records()
        )
        return group_records(rows)

    def add_record(self, record: DnsRecord) -> None:
        for value in record.values:
            self.request(
                "POST",
                f"zones/{self.zone_id}/dns_records",
                json={
                    "type": record.type,
                    "name": unfqdn(record.fqdn),
                    "content": value,
                    "ttl": clamp_ttl(record.ttl, MIN_TTL, MAX_TTL),
                },
            )

    def remove_record(self, record: DnsRecord) -> None:
        name = unfqdn(record.fqdn).lower()
        for row in self._iter_records():
            if str(row.get("name", "")).lower() == name and row.get("type") == record.type:
                self.request("DELETE", f"zones/{self.zone_id}/dns_records/{row['id']}")
