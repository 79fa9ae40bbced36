from __future__ import annotations

import hashlib
import json
import time
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

from ..records import DnsRecord, group_records, unfqdn
from .base import HttpProvider, ProviderConfig, provider_aliases

ENDPOINTS = {
    "ovh-eu": "https://eu.api.ovh.com/1.0",
    "ovh-ca": "https://ca.api.ovh.com/1.0",
    "ovh-us": "https://api.us.ovhcloud.com/1.0",
    "kimsufi-eu": "https://eu.api.kimsufi.com/1.0",
    "kimsufi-ca": "https://ca.api.kimsufi.com/1.0",
    "soyoustart-eu": "https://eu.api.soyoustart.com/1.0",
    "soyoustart-ca": "https://ca.api.soyoustart.com/1.0",
}


class OVHConfig(ProviderConfig):
    endpoint: Optional[str] = None
    application_key: Optional[str] = None
    application_secret: Optional[str] = None
    consumer_key: Optional[str] = None


def ovh_signature(secret: str, consumer: str, method: str, url: str, body: str, timestamp: int) -> str:
    raw = "+".join([secret, consumer, method.upper(), url, body, str(timestamp)])
    return "$1$" + hashlib.sha1(raw.encode("utf-8")).hexdigest()


@provider_aliases("ovh")
class OVHProvider(HttpProvider):
    """Brief: OVH adapter using signed /domain/zone requests.

    Inputs (config / environment):
      - endpoint / OVH_ENDPOINT: Endpoint alias (ovh-eu, ovh-ca, ...) or URL.
      - OVH_APPLICATION_KEY, OVH_APPLICATION_SECRET, OVH_CONSUMER_KEY.

    Outputs:
      - Provider that refreshes the zone after each mutation.
    """

    name = "OVH"

    @classmethod
    def get_config_model(cls):
        return OVHConfig

    def init(self, root_domain: str) -> None:
        self.root = unfqdn(root_domain).lower()
        endpoint = self.credential("endpoint", "OVH_ENDPOINT")
        self.base_url = ENDPOINTS.get(endpoint, endpoint).rstrip("/")
        self.app_key = self.credential("application_key", "OVH_APPLICATION_KEY")
        self.app_secret = self.credential("application_secret", "OVH_APPLICATION_SECRET")
        self.consumer_key = self.credential("consumer_key", "OVH_CONSUMER_KEY")
        self.open_session({"X-Ovh-Application": self.app_key, "Content-Type": "application/json"})
        self._time_delta: Optional[int] = None

        zones = self.call("GET", "/domain/zone") or []
        if self.root not in [str(z).lower() for z in zones]:
            raise self.fail(f"Zone for '{self.root}' not found")
        self.logger.info("Configured %s with zone '%s'", self.name, self.root)

    def _server_time_delta(self) -> int:
        if self._time_delta is None:
            server = self.request("GET", "/auth/time")
            self._time_delta = int(server) - int(time.time())
        return self._time_delta

    def call(self, method: str, path: str, body: Any = None, params: Optional[Dict[str, Any]] = None) -> Any:
        url = self.base_url + path
        if params:
            url = f"{url}?{urlencode(params)}"
        payload = "" if body is None else json.dumps(body)
        timestamp = int(time.time()) + self._server_time_delta()
        headers = {
            "X-Ovh-Consumer": self.consumer_key,
            "X-Ovh-Timestamp": str(timestamp),
            "X-Ovh-Signature": ovh_signature(
                self.app_secret, self.consumer_key, method, url, payload, timestamp
            ),
        }
        kwargs: Dict[str, Any] = {"headers": headers}
        if payload:
            kwargs["data"] = payload
        return self.request(method, url, **kwargs)

    @property
    def zone_path(self) -> str:
        return f"/domain/zone/{self.root}"

    def refresh_zone(self) -> None:
        self.call("POST", f"{self.zone_path}/refresh")

    def _records(self, **filters: str) -> List[Dict[str, Any]]:
        ids = self.call("GET", f"{self.zone_path}/record", params=filters or None) or []
        return [self.call("GET", f"{self.zone_path}/record/{rid}") for rid in ids]

    def health_check(self) -> None:
        self.call("GET", "/me")

    def list_records(self) -> List[DnsRecord]:
        rows = (
            (self.absolute_name(r.get("subDomain", "")), r["fieldType"], int(r.get("ttl") or 0), r.get("target", ""))
            for r in self._records()
        )
        return group_records(rows)

    def add_record(self, record: DnsRecord) -> None:
        sub = self.relative_name(record.fqdn)
        for value in record.values:
            self.call(
                "POST",
                f"{self.zone_path}/record",
                body={"fieldType": record.type, "subDomain": sub, "ttl": int(record.ttl), "target": value},
            )
        self.refresh_zone()

    def remove_record(self, record: DnsRecord) -> None:
        sub = self.relative_name(record.fqdn)
        for row in self._records(fieldType=record.type, subDomain=sub):
            self.call("DELETE", f"{self.zone_path}/record/{row['id']}")
        self.refresh_zone()
