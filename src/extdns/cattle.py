"""Orchestrator (Cattle) notifier.

Brief:
  - CattleNotifier posts one externalDnsEvent per added or updated name so the
    orchestrator can surface the public fqdn on the service.
  - NullNotifier is the no-op used when no Cattle URL is configured.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from .errors import NotifyError

logger = logging.getLogger(__name__)

EVENT_TYPE = "dns.update"
EVENTS_PATH = "externaldnsevents"


class NullNotifier:
    def notify(self, fqdn: str, service_name: str, stack_name: str) -> None:
        logger.debug("No orchestrator configured; not notifying about %s", fqdn)

    def test_connect(self) -> None:
        return None


class CattleNotifier:
    """Brief: POST externalDnsEvent resources to the Cattle API.

    Inputs (constructor):
      - url: Cattle API base (e.g. http://rancher:8080/v1).
      - access_key/secret_key: API key pair used for basic auth.
      - timeout: Per-request timeout in seconds.
      - session: Optional requests.Session (tests inject fakes).

    Outputs:
      - Notifier with notify() and test_connect(); failures raise NotifyError.
    """

    def __init__(
        self,
        url: str,
        access_key: str = "",
        secret_key: str = "",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.url = url.rstrip("/")
        self.timeout = float(timeout)
        self.session = session or requests.Session()
        if access_key or secret_key:
            self.session.auth = (access_key, secret_key)
        self.session.headers.update({"Accept": "application/json"})

    @staticmethod
    def event(fqdn: str, service_name: str, stack_name: str) -> Dict[str, Any]:
        return {
            "type": "externalDnsEvent",
            "eventType": EVENT_TYPE,
            "fqdn": fqdn,
            "serviceName": service_name,
            "stackName": stack_name,
        }

    def notify(self, fqdn: str, service_name: str, stack_name: str) -> None:
        body = self.event(fqdn, service_name, stack_name)
        logger.debug("Sending externalDnsEvent %s", body)
        try:
            resp = self.session.post(
                f"{self.url}/{EVENTS_PATH}", json=body, timeout=self.timeout
            )
        except requests.RequestException as exc:
            raise NotifyError(f"Failed to post externalDnsEvent for {fqdn}: {exc}") from exc
        if resp.status_code >= 400:
            raise NotifyError(
                f"Cattle rejected externalDnsEvent for {fqdn}: HTTP {resp.status_code}"
            )

    def test_connect(self) -> None:
        try:
            resp = self.session.get(self.url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise NotifyError(f"Failed to connect to Cattle: {exc}") from exc
        if resp.status_code >= 400:
            raise NotifyError(f"Failed to connect to Cattle: HTTP {resp.status_code}")
