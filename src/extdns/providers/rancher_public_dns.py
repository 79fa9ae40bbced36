"""Rancher public DNS service adapter.

Brief:
  - The service assigns the root domain; on first start the agent trades the
    orchestrator service token for an auth token + root domain and caches both
    in a YAML credentials file.
  - Records are stored service-side as whole RRsets with id "id-<fqdn>".
"""

from __future__ import annotations

import os
from typing import Any, Dict, List, Optional, Tuple

import yaml

from ..errors import ConfigurationError, MetadataError, ProviderError
from ..metadata import DEFAULT_METADATA_URL, MetadataClient
from ..records import DnsRecord, fqdn, unfqdn
from .base import HttpProvider, ProviderConfig, provider_aliases

CREDENTIALS_FILE = "/opt/rancher/public_dns_creds.yml"
DNS_RECORD_TYPE = "dnsRecord"


class PublicDNSConfig(ProviderConfig):
    url: Optional[str] = None
    credentials_file: str = CREDENTIALS_FILE
    metadata_url: Optional[str] = None


def load_credentials(path: str) -> Tuple[str, str]:
    """Return (auth_token, root_domain) from the credentials file, or blanks."""
    if not os.path.exists(path):
        return "", ""
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Could not read credentials from disk: {exc}") from exc
    if not isinstance(data, dict):
        return "", ""
    return str(data.get("AUTH_TOKEN") or ""), str(data.get("ROOT_DOMAIN") or "")


def save_credentials(path: str, auth_token: str, root_domain: str) -> None:
    try:
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(path, "w", encoding="utf-8") as fh:
            yaml.safe_dump({"AUTH_TOKEN": auth_token, "ROOT_DOMAIN": root_domain}, fh)
    except OSError as exc:
        raise ConfigurationError(f"Could not save credentials to disk: {exc}") from exc


@provider_aliases("rancher-public-dns", "public-dns")
class RancherPublicDNSProvider(HttpProvider):
    """Brief: Adapter for the Rancher-hosted public DNS service.

    Inputs (config / environment):
      - url / RANCHER_PUBLIC_DNS_URL: Service API base URL.
      - credentials_file: Cached AUTH_TOKEN/ROOT_DOMAIN YAML file.
      - metadata_url / METADATA_URL: Metadata service used to bootstrap.

    Outputs:
      - Provider whose ``root`` is the service-assigned root domain, which
        overrides the configured one.
    """

    name = "Rancher Public DNS"

    @classmethod
    def get_config_model(cls):
        return PublicDNSConfig

    def init(self, root_domain: str) -> None:
        self.base_url = self.credential("url", "RANCHER_PUBLIC_DNS_URL").rstrip("/")
        metadata = getattr(self, "metadata", None)
        if metadata is None:
            url = self.credential("metadata_url", "METADATA_URL", required=False)
            metadata = MetadataClient(url=url or DEFAULT_METADATA_URL)
            self.metadata = metadata
        try:
            install_uuid = metadata.get_install_uuid()
        except MetadataError as exc:
            raise ConfigurationError(f"Failed to get installUUID from metadata: {exc}") from exc
        self.open_session({"X-Install-UUID": install_uuid})

        path = self.config.credentials_file
        token, domain = load_credentials(path)
        if token and domain:
            self.logger.info("Initializing provider with credentials from disk")
            self._use_token(token)
            self._fetch_root_domain(token)
        else:
            self.logger.info("Initializing provider with service token")
            try:
                service_token = metadata.get_service_token()
            except MetadataError as exc:
                raise ConfigurationError(f"Failed to get service token from metadata: {exc}") from exc
            self._use_token(service_token)
            self._fetch_root_domain("")
            save_credentials(path, self.auth_token, self.root)
            self._use_token(self.auth_token)

        if root_domain and unfqdn(root_domain).lower() != self.root:
            self.logger.info("Using service-assigned root domain %s instead of %s", self.root, root_domain)
        self.logger.info(
            "Configured %s with root domain '%s' and server '%s'", self.name, self.root, self.base_url
        )

    def _use_token(self, token: str) -> None:
        self.session.headers["Authorization"] = f"Bearer {token}"

    def _fetch_root_domain(self, token: str) -> None:
        try:
            info = self.request("POST", "rootdomaininfos", json={"type": "rootDomainInfo", "token": token}) or {}
        except ProviderError as exc:
            raise ConfigurationError(f"Failed to query auth token and root domain: {exc}") from exc
        self.root = unfqdn(str(info.get("rootDomain", ""))).lower()
        self.auth_token = str(info.get("token") or token)
        if not self.root:
            raise ConfigurationError("Public DNS service returned no root domain")

    @staticmethod
    def record_id(record: DnsRecord) -> str:
        return "id-" + fqdn(record.fqdn)

    def _body(self, record: DnsRecord) -> Dict[str, Any]:
        return {
            "id": self.record_id(record),
            "type": DNS_RECORD_TYPE,
            "fqdn": fqdn(record.fqdn),
            "records": list(record.values),
            "recordtype": record.type,
            "ttl": int(record.ttl),
        }

    def health_check(self) -> None:
        self.request("GET", "")

    def list_records(self) -> List[DnsRecord]:
        body = self.request("GET", "dnsrecords") or {}
        return [
            DnsRecord(
                fqdn=fqdn(str(rec.get("fqdn", "")).lower()),
                type=rec.get("recordtype", ""),
                ttl=int(rec.get("ttl") or 0),
                values=tuple(rec.get("records") or ()),
            )
            for rec in body.get("data") or []
        ]

    def add_record(self, record: DnsRecord) -> None:
        self.request("POST", "dnsrecords", json=self._body(record))

    def update_record(self, record: DnsRecord) -> None:
        rid = self.record_id(record)
        self.request("GET", f"dnsrecords/{rid}")
        self.request("PUT", f"dnsrecords/{rid}", json=self._body(record))

    def remove_record(self, record: DnsRecord) -> None:
        rid = self.record_id(record)
        self.request("GET", f"dnsrecords/{rid}")
        self.request("DELETE", f"dnsrecords/{rid}")
