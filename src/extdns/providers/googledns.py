from __future__ import annotations

from typing import Any, List, Optional

from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud import dns as gcdns

from ..errors import ConfigurationError
from ..records import DnsRecord, fqdn, quote_txt, unfqdn, unquote_txt
from .base import Provider, ProviderConfig, provider_aliases

GOOGLE_ERRORS = (GoogleAPIError, GoogleAuthError)


class GoogleDNSConfig(ProviderConfig):
    project_id: Optional[str] = None
    credentials_file: Optional[str] = None
    zone_name: Optional[str] = None


@provider_aliases("googledns", "google", "gcp")
class GoogleDNSProvider(Provider):
    """Brief: Google Cloud DNS adapter built on google-cloud-dns.

    Inputs (config / environment):
      - project_id / GOOGLEDNS_PROJECT_ID: GCP project owning the zone.
      - credentials_file: Optional service-account JSON; application default
        credentials are used otherwise.
      - zone_name: Optional managed-zone name; looked up by dns_name when unset.

    Outputs:
      - Provider whose mutations are single Changes batches (deletions of the
        current RRset plus additions of the new one).
    """

    name = "Google Cloud DNS"
    rate = 5.0
    burst = 1.0

    @classmethod
    def get_config_model(cls):
        return GoogleDNSConfig

    def init(self, root_domain: str) -> None:
        self.root = unfqdn(root_domain).lower()
        project = self.credential("project_id", "GOOGLEDNS_PROJECT_ID")
        try:
            if self.config.credentials_file:
                self.client = gcdns.Client.from_service_account_json(
                    self.config.credentials_file, project=project
                )
            else:
                self.client = gcdns.Client(project=project)
        except GOOGLE_ERRORS as exc:
            raise ConfigurationError(f"Failed to create Google Cloud DNS client: {exc}") from exc
        self.zone = self._find_zone()
        self.logger.info("Configured %s with hosted zone %s", self.name, fqdn(self.root))

    def _call(self, what: str, fn, *args: Any) -> Any:
        self.limiter.wait()
        try:
            return fn(*args)
        except GOOGLE_ERRORS as exc:
            raise self.fail(f"Google Cloud DNS API call {what} has failed", exc) from exc

    def _find_zone(self):
        wanted = fqdn(self.root)
        if self.config.zone_name:
            return self.client.zone(self.config.zone_name, wanted)
        zones = self._call("list_zones", lambda: list(self.client.list_zones()))
        if not zones:
            raise ConfigurationError(f"Hosted zone for '{wanted}' not found, got empty list")
        for zone in zones:
            self.logger.debug("Found zone: %s (%s)", zone.name, zone.dns_name)
            if str(zone.dns_name).lower() == wanted:
                return zone
        raise ConfigurationError(f"Hosted zone for '{wanted}' not found")

    def _rrsets(self) -> List[Any]:
        return self._call("list_resource_record_sets", lambda: list(self.zone.list_resource_record_sets()))

    def health_check(self) -> None:
        if not self._call("zone.exists", self.zone.exists):
            raise self.fail(f"Managed zone {self.zone.name} no longer exists")

    def list_records(self) -> List[DnsRecord]:
        records: List[DnsRecord] = []
        for rrset in self._rrsets():
            values = list(rrset.rrdatas or [])
            if rrset.record_type == "TXT":
                values = [unquote_txt(v) for v in values]
            records.append(
                DnsRecord(
                    fqdn=str(rrset.name).lower(),
                    type=rrset.record_type,
                    ttl=int(rrset.ttl or 0),
                    values=tuple(values),
                )
            )
        return records

    def _to_rrset(self, record: DnsRecord):
        values = [quote_txt(v) if record.type == "TXT" else v for v in record.values]
        return self.zone.resource_record_set(fqdn(record.fqdn), record.type, int(record.ttl), values)

    def _existing(self, record: DnsRecord) -> List[Any]:
        name = fqdn(record.fqdn).lower()
        return [
            r
            for r in self._rrsets()
            if str(r.name).lower() == name and r.record_type == record.type
        ]

    def _apply(self, additions: List[Any], deletions: List[Any]) -> None:
        if not additions and not deletions:
            return
        changes = self.zone.changes()
        for rrset in deletions:
            changes.delete_record_set(rrset)
        for rrset in additions:
            changes.add_record_set(rrset)
        self._call("changes.create", changes.create)

    def add_record(self, record: DnsRecord) -> None:
        self._apply([self._to_rrset(record)], [])

    def update_record(self, record: DnsRecord) -> None:
        self._apply([self._to_rrset(record)], self._existing(record))

    def remove_record(self, record: DnsRecord) -> None:
        self._apply([], self._existing(record))
