"""Rancher metadata reader.

Brief:
  - Reads the workload inventory and the agent's environment identity from the
    orchestrator metadata HTTP service ("<url>/latest/<path>", JSON).
  - Host listings are cached for the current metadata version so a single
    reconciliation cycle scans /hosts once instead of once per container.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests
from cachetools import TTLCache
from pydantic import BaseModel, Field

from .errors import MetadataError

logger = logging.getLogger(__name__)

DEFAULT_METADATA_URL = "http://rancher-metadata/2015-07-25"
EXTERNAL_DNS_IP_LABEL = "io.rancher.host.external_dns_ip"


class Stack(BaseModel):
    name: str = ""
    uuid: str = ""
    environment_name: str = ""
    environment_uuid: str = ""

    class Config:
        extra = "ignore"


class Container(BaseModel):
    """Brief: One running workload as reported by /containers.

    Inputs:
      - Fields use the metadata service's snake_case JSON names.

    Outputs:
      - Model consumed by the desired-set builder and fqdn generators.
    """

    name: str = ""
    uuid: str = ""
    service_name: str = ""
    stack_name: str = ""
    stack_uuid: str = ""
    host_uuid: str = ""
    state: str = ""
    ports: List[str] = Field(default_factory=list)
    labels: Dict[str, str] = Field(default_factory=dict)

    class Config:
        extra = "ignore"


class Host(BaseModel):
    name: str = ""
    uuid: str = ""
    agent_ip: str = ""
    labels: Dict[str, str] = Field(default_factory=dict)

    class Config:
        extra = "ignore"

    def external_ip(self) -> str:
        """Return the label-provided public address, else the agent IP."""
        ip = (self.labels or {}).get(EXTERNAL_DNS_IP_LABEL) or ""
        return ip.strip() or self.agent_ip


class MetadataClient:
    """Brief: Thin requests-based client for the Rancher metadata API.

    Inputs (constructor):
      - url: Versioned base URL (default http://rancher-metadata/2015-07-25).
      - timeout: Per-request timeout in seconds.
      - session: Optional requests.Session (tests inject a fake).
      - hosts_cache_ttl: Seconds a /hosts listing may be reused for a single
        metadata version.

    Outputs:
      - MetadataClient exposing get_version(), get_self_stack(),
        get_environment_identity(), list_containers(), get_host(),
        get_install_uuid() and get_service_token().

    Example:
      >>> client = MetadataClient("http://rancher-metadata/2015-07-25")
      >>> client.get_version()  # doctest: +SKIP
      '42'
    """

    def __init__(
        self,
        url: str = DEFAULT_METADATA_URL,
        timeout: float = 5.0,
        session: Optional[requests.Session] = None,
        hosts_cache_ttl: float = 30.0,
    ) -> None:
        self.url = url.rstrip("/")
        self.timeout = float(timeout)
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        self._hosts_cache: TTLCache = TTLCache(maxsize=4, ttl=hosts_cache_ttl)
        self._version: Optional[str] = None

    def _get(self, path: str) -> requests.Response:
        endpoint = f"{self.url}/latest{path}"
        try:
            resp = self.session.get(endpoint, timeout=self.timeout)
        except requests.RequestException as exc:
            raise MetadataError(f"GET {endpoint} failed: {exc}") from exc
        if resp.status_code >= 400:
            raise MetadataError(
                f"GET {endpoint} returned HTTP {resp.status_code}: {resp.text[:200]}"
            )
        return resp

    def _get_json(self, path: str) -> Any:
        resp = self._get(path)
        try:
            return resp.json()
        except ValueError as exc:
            raise MetadataError(f"Invalid JSON from metadata {path}: {exc}") from exc

    def _get_text(self, path: str) -> str:
        text = self._get(path).text.strip()
        # Scalar endpoints answer with a JSON string under Accept: application/json.
        if len(text) >= 2 and text[0] == '"' and text[-1] == '"':
            text = text[1:-1]
        return text

    def get_version(self) -> str:
        version = self._get_text("/version")
        self._version = version
        return version

    def get_self_stack(self) -> Stack:
        return Stack(**(self._get_json("/self/stack") or {}))

    def get_environment_identity(self) -> Tuple[str, str]:
        stack = self.get_self_stack()
        return stack.environment_name, stack.environment_uuid

    def list_containers(self) -> List[Container]:
        data = self._get_json("/containers") or []
        return [Container(**item) for item in data if isinstance(item, dict)]

    def list_hosts(self) -> List[Host]:
        key = self._version or ""
        cached = self._hosts_cache.get(key)
        if cached is not None:
            return cached
        data = self._get_json("/hosts") or []
        hosts = [Host(**item) for item in data if isinstance(item, dict)]
        self._hosts_cache[key] = hosts
        return hosts

    def get_host(self, uuid: str) -> Host:
        for host in self.list_hosts():
            if host.uuid == uuid:
                return host
        raise MetadataError(f"Could not find host by UUID {uuid}")

    def get_install_uuid(self) -> str:
        return self._get_text("/install_uuid")

    def get_service_token(self) -> str:
        return self._get_text("/self/service/token")

    def wait_for_environment(
        self,
        max_backoff: float = 30.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> Stack:
        """Brief: Read /self/stack, retrying with exponential backoff.

        Inputs:
          - max_backoff: Upper bound for the doubling retry delay (seconds).
          - sleep: Injectable sleep function (tests pass a no-op).

        Outputs:
          - Stack for the agent's own stack.

        Raises:
          - MetadataError once the delay would reach max_backoff.
        """
        delay = 1.0
        last_exc: Optional[Exception] = None
        while delay < max_backoff:
            try:
                return self.get_self_stack()
            except MetadataError as exc:
                last_exc = exc
                logger.error("Error reading stack info: %s...will retry", exc)
                sleep(delay)
                delay *= 2
        raise MetadataError(f"Error reading stack info: {last_exc}")

    def probe(self) -> None:
        """Health probe: raise MetadataError when /self/stack is unreachable."""
        self.get_self_stack()
