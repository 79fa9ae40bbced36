from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..records import DnsRecord, group_records, unfqdn
from .base import HttpProvider, ProviderConfig, provider_aliases

PAGE_SIZE = 200


class DigitalOceanConfig(ProviderConfig):
    token: Optional[str] = None


@provider_aliases("digitalocean", "do")
class DigitalOceanProvider(HttpProvider):
    """Brief: DigitalOcean v2 domains API adapter.

    Inputs (config / environment):
      - token / DO_PAT: Personal access token.

    Outputs:
      - Provider limited to 5000 requests per hour; "@" names map to the apex
        and relative names are qualified with the root domain.
    """

    name = "Digital Ocean"
    base_url = "https://api.digitalocean.com/v2"
    rate = 5000.0 / 3600.0
    burst = 1.0

    @classmethod
    def get_config_model(cls):
        return DigitalOceanConfig

    def init(self, root_domain: str) -> None:
        self.root = unfqdn(root_domain).lower()
        token = self.credential("token", "DO_PAT")
        self.open_session({"Authorization": f"Bearer {token}"})
        account = (self.request("GET", "account") or {}).get("account") or {}
        domain = (self.request("GET", f"domains/{self.root}") or {}).get("domain") or {}
        self.default_ttl = int(domain.get("ttl") or 1800)
        self.logger.info(
            "Configured %s for email %s and domain %s",
            self.name,
            account.get("email", "?"),
            domain.get("name", self.root),
        )

    def _all_records(self) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        url: Optional[str] = f"domains/{self.root}/records?per_page={PAGE_SIZE}"
        while url:
            body = self.request("GET", url) or {}
            rows.extend(body.get("domain_records") or [])
            pages = (body.get("links") or {}).get("pages") or {}
            url = pages.get("next")
        return rows

    def health_check(self) -> None:
        self.request("GET", f"domains/{self.root}")

    def list_records(self) -> List[DnsRecord]:
        rows = (
            (
                self.absolute_name(r.get("name", "")),
                r["type"],
                int(r.get("ttl") or self.default_ttl),
                r.get("data", ""),
            )
            for r in self._all_records()
        )
        return group_records(rows)

    def add_record(self, record: DnsRecord) -> None:
        name = self.relative_name(record.fqdn) or "@"
        for value in record.values:
            self.request(
                "POST",
                f"domains/{self.root}/records",
                json={"type": record.type, "name": name, "data": value, "ttl": record.ttl},
            )

    def remove_record(self, record: DnsRecord) -> None:
        target = self.absolute_name(self.relative_name(record.fqdn))
        matches = [
            r
            for r in self._all_records()
            if r.get("type") == record.type
            and self.absolute_name(r.get("name", "")).lower() == target.lower()
        ]
        if not matches:
            raise self.fail(f"No such record exists: {record.fqdn} {record.type}")
        for row in matches:
            self.request("DELETE", f"domains/{self.root}/records/{row['id']}")
