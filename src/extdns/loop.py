"""Polling loop: reconcile whenever the metadata version token changes."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from .errors import ExtDnsError, MetadataError, ProviderError
from .health import HealthState
from .metadata import MetadataClient
from .records import DesiredMap
from .reconcile import Reconciler, ReconcileReport

logger = logging.getLogger(__name__)


class PollingLoop:
    """Brief: Version-token driven reconciliation loop.

    Inputs (constructor):
      - metadata: MetadataClient (only get_version() is used here).
      - build_desired: Zero-arg callable returning this cycle's DesiredMap.
      - reconciler: Reconciler bound to the provider.
      - poll_interval_ms: Delay between version checks.
      - health: Optional HealthState receiving metadata/provider outcomes.
      - force_resync_seconds: When > 0, forget the token this often so an
        unchanged version still reconciles (drift repair). 0 disables.
      - clock: Monotonic clock (tests inject a fake).

    Outputs:
      - Loop with run_once() and run(stop_event). last_token only advances
        after a cycle in which every provider call succeeded.
    """

    def __init__(
        self,
        metadata: MetadataClient,
        build_desired: Callable[[], DesiredMap],
        reconciler: Reconciler,
        poll_interval_ms: int = 1000,
        health: Optional[HealthState] = None,
        force_resync_seconds: float = 0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.metadata = metadata
        self.build_desired = build_desired
        self.reconciler = reconciler
        self.poll_interval = max(0, int(poll_interval_ms)) / 1000.0
        self.health = health
        self.force_resync_seconds = float(force_resync_seconds or 0)
        self.clock = clock
        self.last_token: Optional[str] = None
        self.last_report: Optional[ReconcileReport] = None
        self._last_sync: Optional[float] = None

    def _resync_due(self) -> bool:
        if self.force_resync_seconds <= 0 or self._last_sync is None:
            return False
        return self.clock() - self._last_sync >= self.force_resync_seconds

    def run_once(self) -> bool:
        """Brief: One tick of the loop.

        Outputs:
          - True when a reconciliation ran and succeeded (token advanced);
            False when the version was unchanged or the cycle failed.
        """
        if self._resync_due():
            logger.info("Forcing resync after %.0fs", self.force_resync_seconds)
            self.last_token = None

        try:
            version = self.metadata.get_version()
        except MetadataError as exc:
            logger.error("Error reading metadata version: %s", exc)
            self._record_metadata(exc)
            return False
        self._record_metadata(None)

        if version == self.last_token:
            return False

        logger.debug("Metadata version has changed, old: %s, new: %s", self.last_token, version)
        try:
            desired = self.build_desired()
        except MetadataError as exc:
            logger.error("Failed to build desired state: %s", exc)
            self._record_metadata(exc)
            return False
        except Exception:
            logger.exception("Unexpected error building desired state")
            return False

        try:
            report = self.reconciler.reconcile(desired)
        except ProviderError as exc:
            logger.error("Failed to reconcile DNS records: %s", exc)
            self._record_provider(exc)
            return False
        except ExtDnsError as exc:
            logger.error("Reconciliation cycle failed: %s", exc)
            return False
        except Exception as exc:
            logger.exception("Unexpected error during reconciliation")
            self._record_provider(f"{type(exc).__name__}: {exc}")
            return False

        self.last_report = report
        if not report.ok:
            failure = report.marker_error
            if report.result.failed:
                op, record, message = report.result.failed[0]
                failure = f"{op} {record}: {message}"
            logger.warning(
                "Reconciliation of version %s was incomplete, will retry", version
            )
            self._record_provider(failure)
            return False

        self._record_provider(None)
        if self.health is not None:
            self.health.record_reconcile()
        self.last_token = version
        self._last_sync = self.clock()
        return True

    def run(self, stop_event: threading.Event) -> None:
        logger.info("Polling metadata every %.3fs", self.poll_interval)
        while not stop_event.is_set():
            self.run_once()
            stop_event.wait(self.poll_interval)
        logger.info("Polling loop stopped")

    def _record_metadata(self, error) -> None:
        if self.health is not None:
            self.health.record_metadata(error)

    def _record_provider(self, error) -> None:
        if self.health is not None:
            self.health.record_provider(error)
