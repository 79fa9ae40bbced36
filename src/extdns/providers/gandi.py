from __future__ import annotations

from typing import Any, Dict, List, Optional

from ..records import DnsRecord, clamp_ttl, quote_txt, unfqdn, unquote_txt
from .base import HttpProvider, ProviderConfig, provider_aliases

MIN_TTL = 300
MAX_TTL = 2592000


class GandiConfig(ProviderConfig):
    api_key: Optional[str] = None
    url: Optional[str] = None


@provider_aliases("gandi", "livedns")
class GandiProvider(HttpProvider):
    """Brief: Gandi LiveDNS adapter.

    Inputs (config / environment):
      - api_key / GANDI_APIKEY: LiveDNS API key.
      - url / GANDI_URL: Optional endpoint override (e.g. the sandbox).

    Outputs:
      - Provider that PUTs and DELETEs whole RRsets by relative name and type.
    """

    name = "Gandi"
    base_url = "https://api.gandi.net/v5/livedns"

    @classmethod
    def get_config_model(cls):
        return GandiConfig

    def init(self, root_domain: str) -> None:
        self.root = unfqdn(root_domain).lower()
        key = self.credential("api_key", "GANDI_APIKEY")
        url = self.credential("url", "GANDI_URL", required=False)
        if url:
            self.base_url = url.rstrip("/")
        self.open_session({"Authorization": f"Apikey {key}"})
        self.health_check()
        self.logger.info("Configured %s with zone '%s'", self.name, self.root)

    def _rrset_path(self, record: DnsRecord) -> str:
        return f"domains/{self.root}/records/{self.relative_name(record.fqdn) or '@'}/{record.type}"

    def health_check(self) -> None:
        self.request("GET", f"domains/{self.root}")

    def list_records(self) -> List[DnsRecord]:
        rows: List[Dict[str, Any]] = self.request("GET", f"domains/{self.root}/records") or []
        records: List[DnsRecord] = []
        for rs in rows:
            rtype = rs.get("rrset_type", "")
            values = list(rs.get("rrset_values") or [])
            if rtype == "TXT":
                values = [unquote_txt(v) for v in values]
            records.append(
                DnsRecord(
                    fqdn=self.absolute_name(rs.get("rrset_name", "")).lower(),
                    type=rtype,
                    ttl=int(rs.get("rrset_ttl") or 0),
                    values=tuple(values),
                )
            )
        return records

    def add_record(self, record: DnsRecord) -> None:
        values = [quote_txt(v) if record.type == "TXT" else v for v in record.values]
        self.request(
            "PUT",
            self._rrset_path(record),
            json={"rrset_ttl": clamp_ttl(record.ttl, MIN_TTL, MAX_TTL), "rrset_values": values},
        )

    def update_record(self, record: DnsRecord) -> None:
        self.add_record(record)

    def remove_record(self, record: DnsRecord) -> None:
        self.request("DELETE", self._rrset_path(record), ok=(404,))
