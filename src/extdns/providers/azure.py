from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

import requests

from ..errors import ConfigurationError, ProviderError
from ..records import SUPPORTED_TYPES, DnsRecord, fqdn, unfqdn
from .base import HttpProvider, ProviderConfig, provider_aliases

API_VERSION = "2018-05-01"
LOGIN_URL = "https://login.microsoftonline.com/{tenant}/oauth2/v2.0/token"
MANAGEMENT_URL = "https://management.azure.com"
TYPE_PREFIX = "Microsoft.Network/dnszones/"


class AzureConfig(ProviderConfig):
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    subscription_id: Optional[str] = None
    tenant_id: Optional[str] = None
    resource_group: Optional[str] = None


def record_set_values(rtype: str, properties: Dict[str, Any]) -> Optional[List[str]]:
    """Brief: Extract the value list from an Azure record-set properties body.

    Outputs:
      - List of values, or None when the body carries no data for rtype.
    """
    if rtype == "A":
        rows = properties.get("ARecords")
        return None if rows is None else [r["ipv4Address"] for r in rows if r.get("ipv4Address")]
    if rtype == "AAAA":
        rows = properties.get("AAAARecords")
        return None if rows is None else [r["ipv6Address"] for r in rows if r.get("ipv6Address")]
    if rtype == "CNAME":
        row = properties.get("CNAMERecord")
        return None if not row else [fqdn(row.get("cname", ""))]
    if rtype == "TXT":
        rows = properties.get("TXTRecords")
        return None if rows is None else ["".join(r.get("value") or []) for r in rows]
    return None


def record_set_body(record: DnsRecord) -> Dict[str, Any]:
    props: Dict[str, Any] = {"TTL": int(record.ttl)}
    if record.type == "A":
        props["ARecords"] = [{"ipv4Address": v} for v in record.values]
    elif record.type == "AAAA":
        props["AAAARecords"] = [{"ipv6Address": v} for v in record.values]
    elif record.type == "CNAME":
        props["CNAMERecord"] = {"cname": record.values[0] if record.values else ""}
    elif record.type == "TXT":
        props["TXTRecords"] = [{"value": [v]} for v in record.values]
    else:
        raise ValueError(f"record type {record.type} did not match any known record type")
    return {"properties": props}


@provider_aliases("azure", "azuredns")
class AzureProvider(HttpProvider):
    """Brief: Azure DNS adapter over the ARM REST API.

    Inputs (config / environment):
      - AZURE_CLIENT_ID, AZURE_CLIENT_SECRET, AZURE_TENANT_ID: Service principal
        used for the client-credentials token.
      - AZURE_SUBSCRIPTION_ID, AZURE_RESOURCE_GROUP: Location of the zone.

    Outputs:
      - Provider that PUTs and DELETEs whole record sets by relative name.
    """

    name = "Azure Zone DNS"

    @classmethod
    def get_config_model(cls):
        return AzureConfig

    def init(self, root_domain: str) -> None:
        self.root = unfqdn(root_domain).lower()
        self.client_id = self.credential("client_id", "AZURE_CLIENT_ID")
        self.client_secret = self.credential("client_secret", "AZURE_CLIENT_SECRET")
        self.tenant_id = self.credential("tenant_id", "AZURE_TENANT_ID")
        subscription = self.credential("subscription_id", "AZURE_SUBSCRIPTION_ID")
        group = self.credential("resource_group", "AZURE_RESOURCE_GROUP")
        self.base_url = (
            f"{MANAGEMENT_URL}/subscriptions/{subscription}/resourceGroups/{group}"
            f"/providers/Microsoft.Network/dnsZones/{self.root}"
        )
        self._token_expires = 0.0
        self.open_session({"Content-Type": "application/json"})
        try:
            self._authenticate()
        except ProviderError as exc:
            raise ConfigurationError(str(exc)) from exc
        self.logger.info("Configured %s with zone '%s'", self.name, self.root)

    def _authenticate(self) -> None:
        """Fetch a client-credentials token; raises ProviderError on failure."""
        url = LOGIN_URL.format(tenant=self.tenant_id)
        data = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "scope": f"{MANAGEMENT_URL}/.default",
        }
        try:
            resp = requests.post(url, data=data, timeout=self.config.timeout)
            resp.raise_for_status()
            body = resp.json()
            token = body["access_token"]
            lifetime = float(body.get("expires_in", 3600))
        except (requests.RequestException, ValueError, KeyError, TypeError, AttributeError) as exc:
            raise self.fail("Azure authentication failed", exc) from exc
        self.session.headers["Authorization"] = f"Bearer {token}"
        self._token_expires = time.time() + lifetime - 60

    def request(self, method: str, url: str, **kwargs: Any) -> Any:
        if time.time() >= self._token_expires:
            self._authenticate()
        params = dict(kwargs.pop("params", None) or {})
        if "api-version" not in url:
            params["api-version"] = API_VERSION
        return super().request(method, url, params=params, **kwargs)

    def _record_url(self, record: DnsRecord) -> str:
        return f"{record.type}/{self.relative_name(record.fqdn) or '@'}"

    def health_check(self) -> None:
        self.request("GET", "")

    def list_records(self) -> List[DnsRecord]:
        records: List[DnsRecord] = []
        url: Optional[str] = "recordsets"
        while url:
            body = self.request("GET", url) or {}
            for rs in body.get("value") or []:
                rtype = str(rs.get("type", ""))
                if rtype.startswith(TYPE_PREFIX):
                    rtype = rtype[len(TYPE_PREFIX):]
                if rtype not in SUPPORTED_TYPES:
                    continue
                props = rs.get("properties") or {}
                values = record_set_values(rtype, props)
                if values is None:
                    self.logger.error("Failed to extract target for '%s' with type '%s'", rs.get("name"), rtype)
                    continue
                records.append(
                    DnsRecord(
                        fqdn=self.absolute_name(rs.get("name", "")).lower(),
                        type=rtype,
                        ttl=int(props.get("TTL") or 0),
                        values=tuple(values),
                    )
                )
            url = body.get("nextLink")
        return records

    def add_record(self, record: DnsRecord) -> None:
        self.request("PUT", self._record_url(record), json=record_set_body(record))

    def update_record(self, record: DnsRecord) -> None:
        self.add_record(record)

    def remove_record(self, record: DnsRecord) -> None:
        self.request("DELETE", self._record_url(record), ok=(404,))
