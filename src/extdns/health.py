"""Liveness endpoint served by FastAPI/uvicorn in a background thread.

Brief:
  - HealthState is the thread-safe record of the last metadata/provider
    outcome written by the polling loop.
  - create_app() exposes "/" and "/health" (live probes + last provider
    outcome) and "/ready" (cached state only).
  - start_health_server() runs uvicorn in a daemon thread and returns a
    HealthServerHandle.
"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, Mapping, Optional

import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from .errors import ExtDnsError

logger = logging.getLogger(__name__)

DEFAULT_HEALTH_HOST = "0.0.0.0"
DEFAULT_HEALTH_PORT = 1000

Probe = Callable[[], Any]


class _Suppress2xxAccessFilter(logging.Filter):
    """Drop uvicorn access records for 2xx responses (probes hit us constantly)."""

    def filter(self, record: logging.LogRecord) -> bool:
        status = getattr(record, "status_code", None)
        if status is None:
            args = getattr(record, "args", None)
            if isinstance(args, dict):
                status = args.get("status_code") or args.get("status")
            elif isinstance(args, (tuple, list)) and args:
                status = args[-1]
        try:
            code = int(status)
        except (TypeError, ValueError):
            return True
        return not (200 <= code <= 299)


def install_uvicorn_2xx_suppression() -> None:
    access_logger = logging.getLogger("uvicorn.access")
    for f in getattr(access_logger, "filters", []):
        if isinstance(f, _Suppress2xxAccessFilter):
            return
    access_logger.addFilter(_Suppress2xxAccessFilter())


class HealthState:
    """Brief: Thread-safe health flags shared by the loop and the HTTP app.

    Outputs:
      - Object with record_metadata(), record_provider(), record_reconcile()
        and snapshot().
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.metadata_ok = True
        self.provider_ok = True
        self.metadata_error: Optional[str] = None
        self.provider_error: Optional[str] = None
        self.last_reconcile: Optional[float] = None

    def record_metadata(self, error: Optional[BaseException | str] = None) -> None:
        with self._lock:
            self.metadata_ok = error is None
            self.metadata_error = None if error is None else str(error)

    def record_provider(self, error: Optional[BaseException | str] = None) -> None:
        with self._lock:
            self.provider_ok = error is None
            self.provider_error = None if error is None else str(error)

    def record_reconcile(self, when: Optional[float] = None) -> None:
        with self._lock:
            self.last_reconcile = time.time() if when is None else when

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "metadata_ok": self.metadata_ok,
                "provider_ok": self.provider_ok,
                "metadata_error": self.metadata_error,
                "provider_error": self.provider_error,
                "last_reconcile": self.last_reconcile,
            }


def _run_probe(name: str, probe: Probe) -> Optional[str]:
    try:
        probe()
    except ExtDnsError as exc:
        logger.error("Healthcheck failed: %s probe: %s", name, exc)
        return str(exc)
    return None


def create_app(state: HealthState, probes: Optional[Mapping[str, Probe]] = None) -> FastAPI:
    """Brief: Build the liveness FastAPI application.

    Inputs:
      - state: HealthState updated by the polling loop.
      - probes: Ordered mapping component name -> zero-arg callable raising an
        ExtDnsError on failure (typically "metadata", "provider", "cattle").

    Outputs:
      - FastAPI app. "/" and "/health" answer 200 {"status": "ok"} when every
        probe passes and the last provider call succeeded, else 500 naming the
        failing component. "/ready" returns the cached state without probing.

    Example:
      >>> from fastapi.testclient import TestClient
      >>> client = TestClient(create_app(HealthState(), {}))
      >>> client.get("/health").status_code
      200
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        install_uvicorn_2xx_suppression()
        yield

    app = FastAPI(title="extdns health", lifespan=lifespan)
    app.state.health = state
    app.state.probes = dict(probes or {})

    def _check() -> JSONResponse:
        for name, probe in app.state.probes.items():
            error = _run_probe(name, probe)
            if error is not None:
                if name == "metadata":
                    state.record_metadata(error)
                return JSONResponse(
                    status_code=500,
                    content={"status": "error", "component": name, "detail": error},
                )
            if name == "provider":
                snap = state.snapshot()
                if not snap["provider_ok"]:
                    logger.error("Healthcheck failed: last call to provider failed")
                    return JSONResponse(
                        status_code=500,
                        content={
                            "status": "error",
                            "component": "provider",
                            "detail": snap["provider_error"] or "last call to provider failed",
                        },
                    )
        return JSONResponse(status_code=200, content={"status": "ok", **state.snapshot()})

    @app.api_route("/", methods=["GET", "HEAD"])
    def root() -> JSONResponse:
        return _check()

    @app.api_route("/health", methods=["GET", "HEAD"])
    def health() -> JSONResponse:
        return _check()

    @app.get("/ready")
    def ready() -> Dict[str, Any]:
        snap = state.snapshot()
        snap["ready"] = bool(snap["metadata_ok"] and snap["provider_ok"])
        return snap

    return app


class HealthServerHandle:
    """Brief: Handle for the background uvicorn thread.

    Inputs (constructor):
      - thread: Thread running server.run().
      - server: Optional uvicorn.Server; stop() sets should_exit on it.
    """

    def __init__(self, thread: threading.Thread, server: Any | None = None) -> None:
        self._thread = thread
        self._server = server

    def is_running(self) -> bool:
        return self._thread.is_alive()

    def stop(self, timeout: float = 5.0) -> None:
        if self._server is not None:
            self._server.should_exit = True
        self._thread.join(timeout=timeout)


def start_health_server(
    state: HealthState,
    probes: Optional[Mapping[str, Probe]] = None,
    host: str = DEFAULT_HEALTH_HOST,
    port: int = DEFAULT_HEALTH_PORT,
) -> HealthServerHandle:
    """Brief: Serve create_app() with uvicorn on a daemon thread.

    Inputs:
      - state/probes: Passed to create_app().
      - host/port: Listen address (defaults 0.0.0.0:1000).

    Outputs:
      - HealthServerHandle.
    """
    app = create_app(state, probes)
    config_uvicorn = uvicorn.Config(app, host=host, port=int(port), log_level="info")
    server = uvicorn.Server(config_uvicorn)

    def _runner() -> None:
        try:
            server.run()
        except PermissionError as exc:  # pragma: no cover - environment-specific
            logger.error("Health server disabled: %s", exc)
        except Exception:  # pragma: no cover - environment-specific
            logger.exception("Unhandled exception in health server thread")

    thread = threading.Thread(target=_runner, name="extdns-health", daemon=True)
    thread.start()
    logger.info("Healthcheck handler is listening on %s:%d", host, int(port))
    return HealthServerHandle(thread, server=server)
