from __future__ import annotations

import os
from typing import Any, Dict, List, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from ..errors import ConfigurationError
from ..records import DnsRecord, fqdn, quote_txt, unfqdn, unquote_txt
from .base import Provider, ProviderConfig, provider_aliases

HOSTED_ZONE_PREFIX = "/hostedzone/"
CHANGE_COMMENT = "Managed by Rancher"


class Route53Config(ProviderConfig):
    zone_id: Optional[str] = None
    max_retries: Optional[int] = None
    region: Optional[str] = None


def is_proprietary(rrset: Dict[str, Any]) -> bool:
    """Alias and traffic-policy RRsets have no plain value list."""
    return "AliasTarget" in rrset or "TrafficPolicyInstanceId" in rrset


@provider_aliases("route53", "aws")
class Route53Provider(Provider):
    """Brief: AWS Route 53 adapter built on boto3.

    Inputs (config / environment):
      - zone_id / ROUTE53_ZONE_ID: Optional hosted zone id; looked up by name
        when unset.
      - max_retries / ROUTE53_MAX_RETRIES: botocore retry budget (default 3).
      - Credentials come from the standard boto3 chain (env, profile, IAM role).

    Outputs:
      - Provider using UPSERT for add/update and DELETE for remove, limited
        to 5 requests per second.
    """

    name = "Route 53"
    rate = 5.0
    burst = 1.0

    @classmethod
    def get_config_model(cls):
        return Route53Config

    def init(self, root_domain: str) -> None:
        self.root = unfqdn(root_domain).lower()
        retries = self._max_retries()
        self.client = boto3.client(
            "route53",
            region_name=self.config.region,
            config=BotoConfig(
                retries={"max_attempts": retries},
                connect_timeout=self.config.timeout,
                read_timeout=self.config.timeout,
            ),
        )
        self.zone_id = self._resolve_zone()
        self.logger.info("Configured %s with hosted zone %s", self.name, fqdn(self.root))

    def _max_retries(self) -> int:
        if self.config.max_retries is not None:
            return int(self.config.max_retries)
        raw = os.environ.get("ROUTE53_MAX_RETRIES", "").strip()
        if not raw:
            return 3
        try:
            return int(raw)
        except ValueError:
            self.logger.warning("Invalid value for ROUTE53_MAX_RETRIES. Using default.")
            return 3

    def _call(self, method: str, **kwargs: Any) -> Dict[str, Any]:
        self.limiter.wait()
        try:
            return getattr(self.client, method)(**kwargs)
        except (BotoCoreError, ClientError) as exc:
            raise self.fail(f"Route 53 API call {method} has failed", exc) from exc

    def _resolve_zone(self) -> str:
        zone_id = self.credential("zone_id", "ROUTE53_ZONE_ID", required=False)
        wanted = fqdn(self.root)
        if zone_id:
            resp = self._call("get_hosted_zone", Id=zone_id)
            name = str(resp["HostedZone"]["Name"]).lower()
            if name != wanted:
                raise ConfigurationError(
                    f"Hosted zone ID '{zone_id}' does not match name '{wanted}'"
                )
            return zone_id

        resp = self._call("list_hosted_zones_by_name", DNSName=self.root, MaxItems="1")
        zones = resp.get("HostedZones") or []
        if not zones or str(zones[0]["Name"]).lower() != wanted:
            raise ConfigurationError(f"Hosted zone for '{wanted}' not found")
        zone_id = str(zones[0]["Id"])
        if zone_id.startswith(HOSTED_ZONE_PREFIX):
            zone_id = zone_id[len(HOSTED_ZONE_PREFIX):]
        return zone_id

    def health_check(self) -> None:
        self._call("get_hosted_zone_count")

    def list_records(self) -> List[DnsRecord]:
        records: List[DnsRecord] = []
        paginator = self.client.get_paginator("list_resource_record_sets")
        pages = paginator.paginate(
            HostedZoneId=self.zone_id, PaginationConfig={"PageSize": 100}
        )
        try:
            for page in pages:
                self.limiter.wait()
                for rrset in page.get("ResourceRecordSets", []):
                    if is_proprietary(rrset):
                        self.logger.debug("skipped proprietary rrset: %s", rrset.get("Name"))
                        continue
                    rtype = rrset["Type"]
                    values = [rr["Value"] for rr in rrset.get("ResourceRecords", [])]
                    if rtype == "TXT":
                        values = [unquote_txt(v) for v in values]
                    records.append(
                        DnsRecord(
                            fqdn=str(rrset["Name"]).lower(),
                            type=rtype,
                            ttl=int(rrset.get("TTL", 0)),
                            values=tuple(values),
                        )
                    )
        except (BotoCoreError, ClientError) as exc:
            raise self.fail("Route 53 API call has failed", exc) from exc
        return records

    def _change(self, record: DnsRecord, action: str) -> None:
        values = [quote_txt(v) if record.type == "TXT" else v for v in record.values]
        self._call(
            "change_resource_record_sets",
            HostedZoneId=self.zone_id,
            ChangeBatch={
                "Comment": CHANGE_COMMENT,
                "Changes": [
                    {
                        "Action": action,
                        "ResourceRecordSet": {
                            "Name": fqdn(record.fqdn),
                            "Type": record.type,
                            "TTL": int(record.ttl),
                            "ResourceRecords": [{"Value": v} for v in values],
                        },
                    }
                ],
            },
        )

    def add_record(self, record: DnsRecord) -> None:
        self._change(record, "UPSERT")

    def update_record(self, record: DnsRecord) -> None:
        self._change(record, "UPSERT")

    def remove_record(self, record: DnsRecord) -> None:
        self._change(record, "DELETE")
