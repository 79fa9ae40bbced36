from __future__ import annotations

from typing import Any, Dict, List

from ..records import DnsRecord, fqdn, group_records, quote_txt, unfqdn
from .base import provider_aliases
from .powerdns4 import PowerDNS4Provider


@provider_aliases("powerdns", "powerdns3")
class PowerDNSProvider(PowerDNS4Provider):
    """Brief: PowerDNS 3.x adapter.

    Inputs (config / environment):
      - url / POWERDNS_URL and api_key / POWERDNS_API_KEY, as for powerdns4.

    Outputs:
      - Provider speaking the unversioned 3.x API, where names are relative
        (no trailing dot) and each record carries its own name/type/ttl.
        Disabled records are ignored on listing.
    """

    name = "PowerDNS"
    api_prefix = ""

    def init(self, root_domain: str) -> None:
        self.root = unfqdn(root_domain).lower()
        url = self.credential("url", "POWERDNS_URL").rstrip("/")
        key = self.credential("api_key", "POWERDNS_API_KEY")
        self.base_url = f"{url}/servers/{self.config.server_id}"
        self.open_session({"X-API-Key": key})
        self._rrsets()
        self.logger.info("Configured %s with zone '%s'", self.name, self.root)

    @property
    def zone_path(self) -> str:
        return f"zones/{self.root}"

    def health_check(self) -> None:
        self._rrsets()

    def _rrsets(self) -> List[Dict[str, Any]]:
        body = self.request("GET", self.zone_path) or {}
        return list(body.get("records") or [])

    def list_records(self) -> List[DnsRecord]:
        rows = []
        for rec in self._rrsets():
            if rec.get("disabled"):
                continue
            content = str(rec.get("content", ""))
            if rec.get("type") == "TXT":
                content = content.replace('"', "")
            rows.append((fqdn(str(rec.get("name", ""))), rec.get("type", ""), int(rec.get("ttl") or 0), content))
        return group_records(rows)

    def update_record(self, record: DnsRecord) -> None:
        name = unfqdn(record.fqdn)
        records = [
            {
                "name": name,
                "type": record.type,
                "ttl": int(record.ttl),
                "content": quote_txt(v) if record.type == "TXT" else v,
                "disabled": False,
            }
            for v in record.values
        ]
        self._patch({"name": name, "type": record.type, "changetype": "REPLACE", "records": records})

    def remove_record(self, record: DnsRecord) -> None:
        name = unfqdn(record.fqdn).lower()
        exists = any(
            str(r.get("name", "")).lower() == name and r.get("type") == record.type
            for r in self._rrsets()
        )
        if not exists:
            return
        self._patch({"name": unfqdn(record.fqdn), "type": record.type, "changetype": "DELETE", "records": []})
