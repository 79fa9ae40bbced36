from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..errors import ConfigurationError
from ..records import DnsRecord, group_records, unfqdn
from .base import HttpProvider, ProviderConfig, provider_aliases


class DNSimpleConfig(ProviderConfig):
    token: Optional[str] = None
    account_id: Optional[str] = None
    base_url: Optional[str] = None


@provider_aliases("dnsimple")
class DNSimpleProvider(HttpProvider):
    """Brief: DNSimple v2 adapter.

    Inputs (config / environment):
      - token / DNSIMPLE_TOKEN: Account access token (user tokens are
        rejected when the account id has to be taken from whoami).
      - account_id / DNSIMPLE_ACCOUNT_ID: Optional; skips the whoami lookup.

    Outputs:
      - Provider with names relative to the root; 1.5 req/s with bursts of 5.
    """

    name = "DNSimple"
    base_url = "https://api.dnsimple.com/v2"
    rate = 1.5
    burst = 5.0

    @classmethod
    def get_config_model(cls):
        return DNSimpleConfig

    def init(self, root_domain: str) -> None:
        self.root = unfqdn(root_domain).lower()
        if self.config.base_url:
            self.base_url = self.config.base_url
        token = self.credential("token", "DNSIMPLE_TOKEN")
        self.open_session({"Authorization": f"Bearer {token}"})

        self.account_id = self.credential("account_id", "DNSIMPLE_ACCOUNT_ID", required=False)
        if not self.account_id:
            data = (self._whoami() or {}).get("data") or {}
            account = data.get("account")
            if not account:
                raise ConfigurationError(
                    "DNSimple User tokens are not supported, use an Account token"
                )
            self.account_id = str(account["id"])
        self.request("GET", f"{self.account_id}/zones/{self.root}")
        self.logger.info("Configured %s with zone '%s'", self.name, self.root)

    def _whoami(self) -> Optional[Dict[str, Any]]:
        return self.request("GET", "whoami")

    def _zone_records(self) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        page = 1
        while True:
            body = self.request(
                "GET",
                f"{self.account_id}/zones/{self.root}/records",
                params={"page": page, "per_page": 100},
            ) or {}
            rows.extend(body.get("data") or [])
            pagination = body.get("pagination") or {}
            if page >= int(pagination.get("total_pages") or 1):
                return rows
            page += 1

    def health_check(self) -> None:
        self._whoami()

    def list_records(self) -> List[DnsRecord]:
        rows = (
            (self.absolute_name(r.get("name", "")), r["type"], int(r.get("ttl") or 0), r.get("content", ""))
            for r in self._zone_records()
        )
        return group_records(rows)

    def add_record(self, record: DnsRecord) -> None:
        name = self.relative_name(record.fqdn)
        for value in record.values:
            self.request(
                "POST",
                f"{self.account_id}/zones/{self.root}/records",
                json={"name": name, "type": record.type, "content": value, "ttl": record.ttl},
            )

    def remove_record(self, record: DnsRecord) -> None:
        name = self.relative_name(record.fqdn)
        for row in self._zone_records():
            if str(row.get("name", "")).lower() == name and row.get("type") == record.type:
                self.request(
                    "DELETE", f"{self.account_id}/zones/{self.root}/records/{row['id']}"
                )
