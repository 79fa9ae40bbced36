"""
Brief: Tests for extdns.metadata.MetadataClient against a fake HTTP session.

Inputs:
  - None

Outputs:
  - None
"""

import pytest

from extdns.errors import MetadataError
from extdns.metadata import EXTERNAL_DNS_IP_LABEL, Host, MetadataClient

URL = "http://rancher-metadata/2015-07-25"

STACK = {
    "name": "external-dns",
    "uuid": "s-1",
    "environment_name": "Default",
    "environment_uuid": "env-uuid",
    "services": [],
}

HOSTS = [
    {"uuid": "h1", "name": "host1", "agent_ip": "10.0.0.1", "labels": {}},
    {
        "uuid": "h2",
        "name": "host2",
        "agent_ip": "10.0.0.2",
        "labels": {EXTERNAL_DNS_IP_LABEL: "203.0.113.9"},
    },
]


def _client(fake_session, fake_response, routes):
    session = fake_session({("GET", k): fake_response(*v) for k, v in routes.items()})
    return MetadataClient(URL, timeout=1, session=session), session


def test_version_and_identity(fake_session, fake_response):
    """
    Brief: Scalar endpoints are unquoted; identity comes from /self/stack.

    Inputs:
      - None

    Outputs:
      - None
    """
    client, session = _client(
        fake_session,
        fake_response,
        {"/latest/version": (200, '"42"'), "/latest/self/stack": (200, STACK)},
    )
    assert client.get_version() == "42"
    assert client.get_environment_identity() == ("Default", "env-uuid")
    assert session.headers["Accept"] == "application/json"
    assert session.calls[0][1] == URL + "/latest/version"


def test_list_containers_ignores_unknown_fields(fake_session, fake_response):
    """
    Brief: Containers parse snake_case fields and ignore extras.

    Inputs:
      - None

    Outputs:
      - None
    """
    data = [
        {
            "name": "web-1",
            "service_name": "web",
            "stack_name": "app",
            "stack_uuid": "abc",
            "host_uuid": "h1",
            "ports": ["0.0.0.0:80:80/tcp"],
            "health_state": "healthy",
        },
        "garbage",
    ]
    client, _ = _client(fake_session, fake_response, {"/latest/containers": (200, data)})
    containers = client.list_containers()
    assert len(containers) == 1
    assert containers[0].service_name == "web"
    assert containers[0].ports == ["0.0.0.0:80:80/tcp"]


def test_get_host_caches_per_version(fake_session, fake_response):
    """
    Brief: /hosts is fetched once per metadata version.

    Inputs:
      - None

    Outputs:
      - None
    """
    client, session = _client(
        fake_session,
        fake_response,
        {"/latest/hosts": (200, HOSTS), "/latest/version": (200, "7")},
    )
    client.get_version()
    assert client.get_host("h1").agent_ip == "10.0.0.1"
    assert client.get_host("h2").external_ip() == "203.0.113.9"
    assert len([c for c in session.calls if c[1].endswith("/hosts")]) == 1
    with pytest.raises(MetadataError, match="h9"):
        client.get_host("h9")


def test_host_external_ip_fallback():
    """
    Brief: Host.external_ip prefers the label and falls back to agent_ip.

    Inputs:
      - None

    Outputs:
      - None
    """
    assert Host(uuid="x", agent_ip="1.1.1.1").external_ip() == "1.1.1.1"
    assert Host(uuid="x", agent_ip="1.1.1.1", labels={EXTERNAL_DNS_IP_LABEL: " 2.2.2.2 "}).external_ip() == "2.2.2.2"
    assert Host(uuid="x").external_ip() == ""


def test_http_errors_raise_metadata_error(fake_session, fake_response):
    """
    Brief: Non-2xx and invalid JSON responses become MetadataError.

    Inputs:
      - None

    Outputs:
      - None
    """
    client, _ = _client(
        fake_session,
        fake_response,
        {"/latest/self/stack": (500, "boom"), "/latest/containers": (200, "not json")},
    )
    with pytest.raises(MetadataError, match="HTTP 500"):
        client.get_self_stack()
    with pytest.raises(MetadataError, match="Invalid JSON"):
        client.list_containers()


def test_transport_errors_raise_metadata_error():
    """
    Brief: requests exceptions are wrapped in MetadataError.

    Inputs:
      - None

    Outputs:
      - None
    """
    import requests

    class _Broken:
        headers = {}

        def get(self, url, **kw):
            raise requests.ConnectionError("refused")

    client = MetadataClient(URL, session=_Broken())
    with pytest.raises(MetadataError, match="refused"):
        client.get_version()


def test_wait_for_environment_backs_off_then_succeeds(fake_session, fake_response, caplog):
    """
    Brief: wait_for_environment retries with doubling delays.

    Inputs:
      - None

    Outputs:
      - None
    """
    session = fake_session(
        {("GET", "/latest/self/stack"): [fake_response(503, "x"), fake_response(503, "x"), fake_response(200, STACK)]}
    )
    client = MetadataClient(URL, session=session)
    sleeps = []
    stack = client.wait_for_environment(max_backoff=30, sleep=sleeps.append)
    assert stack.environment_uuid == "env-uuid"
    assert sleeps == [1.0, 2.0]
    assert "will retry" in caplog.text


def test_wait_for_environment_gives_up(fake_session, fake_response):
    """
    Brief: wait_for_environment raises once the delay reaches max_backoff.

    Inputs:
      - None

    Outputs:
      - None
    """
    session = fake_session({("GET", "/latest/self/stack"): fake_response(503, "down")})
    client = MetadataClient(URL, session=session)
    sleeps = []
    with pytest.raises(MetadataError):
        client.wait_for_environment(max_backoff=8, sleep=sleeps.append)
    assert sleeps == [1.0, 2.0, 4.0]
