"""PowerDNS Authoritative 4.x HTTP API adapter."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..records import DnsRecord, fqdn, quote_txt, unfqdn
from .base import HttpProvider, ProviderConfig, provider_aliases


class PowerDNSConfig(ProviderConfig):
    url: Optional[str] = None
    api_key: Optional[str] = None
    server_id: str = "localhost"


@provider_aliases("powerdns4", "pdns")
class PowerDNS4Provider(HttpProvider):
    """Brief: PowerDNS 4 adapter using RRset PATCH with changetype REPLACE.

    Inputs (config / environment):
      - url / POWERDNS_URL: API base, e.g. http://pdns:8081.
      - api_key / POWERDNS_API_KEY: X-API-Key header value.

    Outputs:
      - Provider where add and update both REPLACE the whole RRset, TXT values
        are quoted on the wire and every quote is stripped on listing.
    """

    name = "powerdns4"
    api_prefix = "api/v1"

    @classmethod
    def get_config_model(cls):
        return PowerDNSConfig

    def init(self, root_domain: str) -> None:
        self.root = unfqdn(root_domain).lower()
        url = self.credential("url", "POWERDNS_URL").rstrip("/")
        key = self.credential("api_key", "POWERDNS_API_KEY")
        self.base_url = f"{url}/{self.api_prefix}/servers/{self.config.server_id}"
        self.open_session({"X-API-Key": key})
        self.logger.info("Configured %s with zone '%s'", self.name, self.root)

    @property
    def zone_path(self) -> str:
        return f"zones/{fqdn(self.root)}"

    def health_check(self) -> None:
        self.request("GET", "zones")

    def _rrsets(self) -> List[Dict[str, Any]]:
        body = self.request("GET", self.zone_path) or {}
        return list(body.get("rrsets") or [])

    def list_records(self) -> List[DnsRecord]:
        records: List[DnsRecord] = []
        for rrset in self._rrsets():
            rtype = rrset.get("type", "")
            values = []
            for rr in rrset.get("records") or []:
                content = str(rr.get("content", ""))
                if rtype == "TXT":
                    content = content.replace('"', "")
                values.append(content)
            records.append(
                DnsRecord(
                    fqdn=fqdn(str(rrset.get("name", "")).lower()),
                    type=rtype,
                    ttl=int(rrset.get("ttl") or 0),
                    values=tuple(values),
                )
            )
        return records

    def _patch(self, rrset: Dict[str, Any]) -> None:
        self.request("PATCH", self.zone_path, json={"rrsets": [rrset]})

    def update_record(self, record: DnsRecord) -> None:
        records = [
            {"content": quote_txt(v) if record.type == "TXT" else v, "disabled": False}
            for v in record.values
        ]
        self._patch(
            {
                "name": fqdn(record.fqdn),
                "type": record.type,
                "ttl": int(record.ttl),
                "changetype": "REPLACE",
                "records": records,
            }
        )
        self.logger.debug("Replaced '%s' record on '%s'", record.fqdn, self.root)

    def add_record(self, record: DnsRecord) -> None:
        self.update_record(record)

    def remove_record(self, record: DnsRecord) -> None:
        name = fqdn(record.fqdn).lower()
        exists = any(
            str(r.get("name", "")).lower() == name and r.get("type") == record.type
            for r in self._rrsets()
        )
        if not exists:
            return
        self._patch({"name": fqdn(record.fqdn), "type": record.type, "changetype": "DELETE"})
