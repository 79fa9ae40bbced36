from __future__ import annotations

import os
from typing import Any, Dict, List, Optional

from ..errors import ConfigurationError, ProviderError
from ..records import DnsRecord, fqdn, group_records, unfqdn
from .base import HttpProvider, ProviderConfig, provider_aliases

WAPI_PATH = "/wapi/v1.5/"
MAX_RESULTS = 1000

# record type -> (WAPI object, value field)
OBJECTS = {
    "A": ("record:a", "ipv4addr"),
    "CNAME": ("record:cname", "canonical"),
    "TXT": ("record:txt", "text"),
}

_TRUE = {"1", "t", "true", "yes", "on"}
_FALSE = {"", "0", "f", "false", "no", "off"}


class InfobloxConfig(ProviderConfig):
    url: Optional[str] = None
    user_name: Optional[str] = None
    password: Optional[str] = None
    secret_file: Optional[str] = None
    ssl_verify: Optional[bool] = None


@provider_aliases("infoblox")
class InfobloxProvider(HttpProvider):
    """Brief: Infoblox NIOS adapter over WAPI v1.5.

    Inputs (config / environment):
      - url / INFOBLOX_URL, user_name / INFOBLOX_USER_NAME.
      - password / INFOBLOX_PASSWORD, or secret_file / INFOBLOX_SECRET naming a
        file holding the password.
      - ssl_verify / SSL_VERIFY: Verify the appliance certificate (off by
        default).

    Outputs:
      - Provider where each value is one WAPI object, deleted by _ref; adding
        an object that already exists counts as success.
    """

    name = "Infoblox"

    @classmethod
    def get_config_model(cls):
        return InfobloxConfig

    def init(self, root_domain: str) -> None:
        self.root = unfqdn(root_domain).lower()
        url = self.credential("url", "INFOBLOX_URL").rstrip("/")
        user = self.credential("user_name", "INFOBLOX_USER_NAME")
        password = self._password()
        self.base_url = url + WAPI_PATH
        session = self.open_session({"Content-Type": "application/json"})
        session.auth = (user, password)
        session.verify = self._ssl_verify()
        self._validate_zone()
        self.logger.info("Configured %s with zone '%s'", self.name, self.root)

    def _password(self) -> str:
        password = self.credential("password", "INFOBLOX_PASSWORD", required=False)
        if password:
            return password
        path = self.credential("secret_file", "INFOBLOX_SECRET", required=False)
        if not path:
            raise ConfigurationError("INFOBLOX_PASSWORD nor INFOBLOX_SECRET are not set")
        try:
            with open(os.path.expanduser(path), "r", encoding="utf-8") as fh:
                password = fh.read().strip()
        except OSError as exc:
            raise ConfigurationError(f"Error reading INFOBLOX_SECRET {path}: {exc}") from exc
        if not password:
            raise ConfigurationError("Got empty password from INFOBLOX_SECRET")
        self.logger.debug("Infoblox using INFOBLOX_SECRET %s", path)
        return password

    def _ssl_verify(self) -> bool:
        if self.config.ssl_verify is not None:
            return bool(self.config.ssl_verify)
        raw = os.environ.get("SSL_VERIFY", "").strip().lower()
        if raw in _TRUE:
            return True
        if raw in _FALSE:
            return False
        raise ConfigurationError("SSL_VERIFY must be a boolean value")

    def _get_all(self, obj: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        query = dict(params)
        query.update({"_return_as_object": 1, "_max_results": MAX_RESULTS, "_paging": 1})
        while True:
            body = self.request("GET", obj, params=query) or {}
            rows.extend(body.get("result") or [])
            page_id = body.get("next_page_id")
            if not page_id:
                return rows
            query = {"_page_id": page_id}

    def _validate_zone(self) -> None:
        zones = self._get_all("zone_auth", {"_return_fields": "fqdn"})
        if not any(str(z.get("fqdn", "")).lower() == self.root for z in zones):
            raise ConfigurationError(f"Could not find ZoneName {self.root} in infoblox")

    def health_check(self) -> None:
        self.request("GET", "zone_auth", params={"fqdn": self.root, "_max_results": 1})

    def list_records(self) -> List[DnsRecord]:
        rows = []
        for rtype, (obj, field) in OBJECTS.items():
            for rec in self._get_all(obj, {"zone": self.root, "_return_fields": f"ttl,name,zone,disable,{field}"}):
                if rec.get("disable"):
                    continue
                value = str(rec.get(field, ""))
                if rtype == "CNAME":
                    value = fqdn(value)
                name = rec.get("name") or self.root
                rows.append((fqdn(name), rtype, int(rec.get("ttl") or 0), value))
        return group_records(rows)

    def add_record(self, record: DnsRecord) -> None:
        spec = OBJECTS.get(record.type)
        if spec is None:
            self.logger.warning("Unsupported record type: %s", record.type)
            return
        obj, field = spec
        for value in record.values:
            if record.type == "CNAME":
                value = unfqdn(value)
            body = {
                "name": unfqdn(record.fqdn),
                field: value,
                "ttl": int(record.ttl),
                "use_ttl": True,
                "comment": record.type,
            }
            try:
                self.request("POST", obj, json=body)
            except ProviderError as exc:
                if "already exists" in str(exc):
                    continue
                raise

    def remove_record(self, record: DnsRecord) -> None:
        spec = OBJECTS.get(record.type)
        if spec is None:
            return
        obj, _ = spec
        found = self.request(
            "GET", obj, params={"name": unfqdn(record.fqdn), "zone": self.root}
        ) or []
        for rec in found:
            self.request("DELETE", rec["_ref"])
