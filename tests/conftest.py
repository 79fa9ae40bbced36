"""
Brief: Global pytest configuration: src/ import path, per-test 10s timeout and
shared fakes for HTTP-backed components.

Inputs:
  - None

Outputs:
  - None
"""

import json as _json
import os
import signal
import sys
from typing import Any, Dict, List, Optional, Tuple

import pytest

# Ensure 'src' is on sys.path so the 'extdns' package is importable in tests
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
SRC_DIR = os.path.join(ROOT, "src")
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)


def _alarm_handler(signum, frame):
    """
    Brief: Signal handler that raises TimeoutError when alarm triggers.

    Inputs:
      - signum: signal number (int)
      - frame: current frame (ignored)

    Outputs:
      - None: Raises TimeoutError to fail the test
    """
    raise TimeoutError("Test exceeded 10 seconds")


if hasattr(signal, "SIGALRM"):
    signal.signal(signal.SIGALRM, _alarm_handler)


@pytest.fixture(autouse=True)
def enforce_test_timeout():
    """
    Brief: Enforce a hard 10-second timeout for each test.

    Inputs:
      - None

    Outputs:
      - None: Cancels alarm after test
    """
    if hasattr(signal, "SIGALRM"):
        signal.alarm(10)
        try:
            yield
        finally:
            signal.alarm(0)
    else:
        yield


class FakeResponse:
    """Brief: Minimal stand-in for requests.Response.

    Inputs:
      - status_code: HTTP status.
      - payload: JSON-serialisable body, raw str, or None for an empty body.
    """

    def __init__(self, status_code: int = 200, payload: Any = None) -> None:
        self.status_code = status_code
        if payload is None:
            self.text = ""
        elif isinstance(payload, str):
            self.text = payload
        else:
            self.text = _json.dumps(payload)
        self.content = self.text.encode("utf-8")

    def json(self) -> Any:
        return _json.loads(self.text)


class FakeSession:
    """Brief: Scripted requests.Session replacement.

    Inputs:
      - routes: Mapping (METHOD, url-substring) -> FakeResponse or a list of
        FakeResponses consumed in order. The longest matching substring wins.

    Outputs:
      - Object recording every call in ``calls`` as (method, url, kwargs).
    """

    def __init__(self, routes: Optional[Dict[Tuple[str, str], Any]] = None) -> None:
        self.routes: Dict[Tuple[str, str], Any] = dict(routes or {})
        self.calls: List[Tuple[str, str, Dict[str, Any]]] = []
        self.headers: Dict[str, str] = {}
        self.auth = None
        self.verify = True

    def _match(self, method: str, url: str) -> FakeResponse:
        candidates = [
            (needle, resp)
            for (m, needle), resp in self.routes.items()
            if m == method and needle in url
        ]
        if not candidates:
            return FakeResponse(404, {"error": f"no route for {method} {url}"})
        needle, resp = max(candidates, key=lambda item: len(item[0]))
        if isinstance(resp, list):
            return resp.pop(0) if len(resp) > 1 else resp[0]
        return resp

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append((method, url, kwargs))
        return self._match(method, url)

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self.request("POST", url, **kwargs)

    def calls_for(self, method: str) -> List[Tuple[str, str, Dict[str, Any]]]:
        return [c for c in self.calls if c[0] == method]


@pytest.fixture
def fake_session():
    """Brief: Factory fixture building FakeSession instances from route maps."""

    def _make(routes: Optional[Dict[Tuple[str, str], Any]] = None) -> FakeSession:
        return FakeSession(routes)

    return _make


@pytest.fixture
def fake_response():
    """Brief: Expose the FakeResponse class to tests building route maps."""

    return FakeResponse
