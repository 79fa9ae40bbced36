"""
Brief: Tests for extdns.desired.build_desired_set.

Inputs:
  - None

Outputs:
  - None
"""

import logging

from extdns.desired import build_desired_set
from extdns.errors import MetadataError
from extdns.generators import DEFAULT
from extdns.metadata import EXTERNAL_DNS_IP_LABEL, Container, Host

HOSTS = {
    "h1": Host(uuid="h1", agent_ip="10.0.0.1"),
    "h2": Host(uuid="h2", agent_ip="10.0.0.2", labels={EXTERNAL_DNS_IP_LABEL: "198.51.100.2"}),
    "h3": Host(uuid="h3"),
}


def _lookup(uuid):
    try:
        return HOSTS[uuid]
    except KeyError:
        raise MetadataError(f"Could not find host by UUID {uuid}") from None


def _c(name, service, host, stack="app", ports=("80:80/tcp",)):
    return Container(name=name, service_name=service, stack_name=stack, host_uuid=host, ports=list(ports))


def _build(containers, **kw):
    return build_desired_set(containers, _lookup, "prod", "example.com", 300, DEFAULT, **kw)


def test_builds_one_rrset_per_name_with_merged_addresses():
    """
    Brief: Containers of one service on several hosts fold into one A RRset.

    Inputs:
      - None

    Outputs:
      - None
    """
    desired = _build([_c("web-2", "web", "h2"), _c("web-1", "web", "h1"), _c("web-3", "web", "h1")])
    assert list(desired) == ["web.app.prod.example.com."]
    rec = desired["web.app.prod.example.com."]
    assert rec.type == "A"
    assert rec.ttl == 300
    assert rec.values == ("10.0.0.1", "198.51.100.2")
    assert (rec.service_name, rec.stack_name) == ("web", "app")


def test_skips_unusable_containers(caplog):
    """
    Brief: Missing service, missing/unknown host and address-less hosts are skipped.

    Inputs:
      - None

    Outputs:
      - None
    """
    caplog.set_level(logging.DEBUG)
    desired = _build(
        [
            _c("lone", "", "h1", stack=""),
            _c("nohost", "api", ""),
            _c("ghost", "db", "h9"),
            _c("noip", "cache", "h3"),
            _c("ok", "api", "h1"),
        ]
    )
    assert list(desired) == ["api.app.prod.example.com."]
    assert "Skipping container ghost" in caplog.text


def test_require_ports_filters_unpublished_containers():
    """
    Brief: With require_ports=True containers without ports are skipped.

    Inputs:
      - None

    Outputs:
      - None
    """
    containers = [_c("a", "a", "h1", ports=()), _c("b", "b", "h1")]
    assert set(_build(containers)) == {"a.app.prod.example.com.", "b.app.prod.example.com."}
    assert set(_build(containers, require_ports=True)) == {"b.app.prod.example.com."}


def test_empty_inventory_gives_empty_map():
    """
    Brief: No containers yields an empty DesiredMap.

    Inputs:
      - None

    Outputs:
      - None
    """
    assert _build([]) == {}
