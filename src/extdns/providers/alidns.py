from __future__ import annotations

import base64
import datetime
import hashlib
import hmac
import uuid
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from ..records import DnsRecord, group_records, unfqdn
from .base import HttpProvider, ProviderConfig, provider_aliases

API_VERSION = "2015-01-09"
PAGE_SIZE = 500


class AliDNSConfig(ProviderConfig):
    access_key_id: Optional[str] = None
    access_key_secret: Optional[str] = None


def _percent(value: str) -> str:
    return quote(str(value), safe="~")


def sign_params(params: Dict[str, str], secret: str, method: str = "GET") -> str:
    """Brief: Compute the Alibaba Cloud RPC (signature v1.0) HMAC-SHA1 signature.

    Inputs:
      - params: All request parameters except Signature.
      - secret: Access key secret.

    Outputs:
      - Base64 signature string.
    """
    canonical = "&".join(f"{_percent(k)}={_percent(params[k])}" for k in sorted(params))
    to_sign = f"{method}&{_percent('/')}&{_percent(canonical)}"
    digest = hmac.new((secret + "&").encode("utf-8"), to_sign.encode("utf-8"), hashlib.sha1).digest()
    return base64.b64encode(digest).decode("ascii")


@provider_aliases("alidns", "alicloud")
class AliDNSProvider(HttpProvider):
    """Brief: Alibaba Cloud DNS adapter using signed RPC calls.

    Inputs (config / environment):
      - access_key_id / ALICLOUD_ACCESS_KEY_ID
      - access_key_secret / ALICLOUD_ACCESS_KEY_SECRET
    """

    name = "AliDNS"
    base_url = "https://alidns.aliyuncs.com/"

    @classmethod
    def get_config_model(cls):
        return AliDNSConfig

    def init(self, root_domain: str) -> None:
        self.root = unfqdn(root_domain).lower()
        self.key_id = self.credential("access_key_id", "ALICLOUD_ACCESS_KEY_ID")
        self.key_secret = self.credential("access_key_secret", "ALICLOUD_ACCESS_KEY_SECRET")
        self.open_session()
        self.health_check()
        self.logger.info("Configured %s with zone '%s'", self.name, self.root)

    def call(self, action: str, **args: Any) -> Dict[str, Any]:
        params = {
            "Format": "JSON",
            "Version": API_VERSION,
            "AccessKeyId": self.key_id,
            "SignatureMethod": "HMAC-SHA1",
            "SignatureVersion": "1.0",
            "SignatureNonce": uuid.uuid4().hex,
            "Timestamp": datetime.datetime.now(datetime.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "Action": action,
        }
        params.update({k: str(v) for k, v in args.items()})
        params["Signature"] = sign_params(params, self.key_secret)
        return self.request("GET", self.base_url, params=params) or {}

    def health_check(self) -> None:
        self.call("DescribeDomainInfo", DomainName=self.root)

    def _records(self) -> List[Dict[str, Any]]:
        rows: List[Dict[str, Any]] = []
        page = 1
        while True:
            body = self.call(
                "DescribeDomainRecords", DomainName=self.root, PageNumber=page, PageSize=PAGE_SIZE
            )
            rows.extend(((body.get("DomainRecords") or {}).get("Record")) or [])
            if len(rows) >= int(body.get("TotalCount") or 0) or page * PAGE_SIZE >= int(body.get("TotalCount") or 0):
                return rows
            page += 1

    def list_records(self) -> List[DnsRecord]:
        rows = (
            (self.absolute_name(r.get("RR", "")), r["Type"], int(r.get("TTL") or 0), r.get("Value", ""))
            for r in self._records()
        )
        return group_records(rows)

    def add_record(self, record: DnsRecord) -> None:
        rr = self.relative_name(record.fqdn) or "@"
        for value in record.values:
            self.call(
                "AddDomainRecord",
                DomainName=self.root,
                RR=rr,
                Type=record.type,
                Value=value,
                TTL=int(record.ttl),
            )

    def remove_record(self, record: DnsRecord) -> None:
        rr = self.relative_name(record.fqdn) or "@"
        for row in self._records():
            if str(row.get("RR", "")).lower() == rr and row.get("Type") == record.type:
                self.call("DeleteDomainRecord", RecordId=row["RecordId"])
