"""
Brief: Tests for extdns.providers.route53 using a stub boto3 client.

Inputs:
  - None

Outputs:
  - None
"""

import pytest
from botocore.exceptions import ClientError

from extdns.errors import ConfigurationError, ProviderError
from extdns.providers import route53 as route53_mod
from extdns.providers.route53 import Route53Provider, is_proprietary
from extdns.reconcile import Reconciler
from extdns.records import DnsRecord


class StubPaginator:
    def __init__(self, pages):
        self.pages = pages
        self.kwargs = None

    def paginate(self, **kwargs):
        self.kwargs = kwargs
        return iter(self.pages)


class StubRoute53:
    def __init__(self, zones=None, pages=None):
        self.zones = zones if zones is not None else [{"Id": "/hostedzone/Z123", "Name": "example.com."}]
        self.paginator = StubPaginator(pages or [])
        self.changes = []
        self.fail_changes = False

    def list_hosted_zones_by_name(self, DNSName, MaxItems):
        return {"HostedZones": self.zones}

    def get_hosted_zone(self, Id):
        return {"HostedZone": {"Id": Id, "Name": "example.com."}}

    def get_hosted_zone_count(self):
        return {"HostedZoneCount": 1}

    def get_paginator(self, name):
        assert name == "list_resource_record_sets"
        return self.paginator

    def change_resource_record_sets(self, HostedZoneId, ChangeBatch):
        if self.fail_changes:
            raise ClientError(
                {"Error": {"Code": "InvalidChangeBatch", "Message": "nope"}},
                "ChangeResourceRecordSets",
            )
        self.changes.append((HostedZoneId, ChangeBatch))
        return {"ChangeInfo": {"Status": "PENDING"}}


@pytest.fixture
def stub_client(monkeypatch):
    """
    Brief: Patch boto3.client so Route53Provider talks to a StubRoute53.

    Inputs:
      - monkeypatch: pytest fixture

    Outputs:
      - Callable(client) installing the given stub and returning it.
    """
    monkeypatch.delenv("ROUTE53_ZONE_ID", raising=False)
    monkeypatch.delenv("ROUTE53_MAX_RETRIES", raising=False)

    def _install(client):
        monkeypatch.setattr(route53_mod.boto3, "client", lambda *a, **kw: client)
        return client

    return _install


def test_init_resolves_zone_by_name(stub_client):
    stub_client(StubRoute53())
    provider = Route53Provider(rate=0)
    provider.init("Example.com.")
    assert provider.zone_id == "Z123"


def test_init_rejects_mismatched_zone(stub_client):
    stub_client(StubRoute53(zones=[{"Id": "/hostedzone/Z9", "Name": "other.com."}]))
    with pytest.raises(ConfigurationError):
        Route53Provider(rate=0).init("example.com")


def test_init_checks_explicit_zone_id(stub_client):
    stub_client(StubRoute53())
    provider = Route53Provider(rate=0, zone_id="ZEXPLICIT")
    provider.init("example.com")
    assert provider.zone_id == "ZEXPLICIT"
    with pytest.raises(ConfigurationError):
        Route53Provider(rate=0, zone_id="ZEXPLICIT").init("other.com")


def test_list_records_skips_alias_and_unquotes_txt(stub_client):
    """
    Brief: Alias RRsets are skipped and TXT values lose their wire quotes.

    Inputs:
      - stub_client fixture

    Outputs:
      - None
    """
    pages = [
        {
            "ResourceRecordSets": [
                {
                    "Name": "Web.example.com.",
                    "Type": "A",
                    "TTL": 60,
                    "ResourceRecords": [{"Value": "1.1.1.1"}, {"Value": "2.2.2.2"}],
                },
                {"Name": "alias.example.com.", "Type": "A", "AliasTarget": {"DNSName": "x"}},
            ]
        },
        {
            "ResourceRecordSets": [
                {
                    "Name": "m.example.com.",
                    "Type": "TXT",
                    "TTL": 300,
                    "ResourceRecords": [{"Value": '"web.example.com."'}],
                }
            ]
        },
    ]
    client = stub_client(StubRoute53(pages=pages))
    provider = Route53Provider(rate=0)
    provider.init("example.com")
    records = provider.list_records()
    assert [r.fqdn for r in records] == ["web.example.com.", "m.example.com."]
    assert records[0].values == ("1.1.1.1", "2.2.2.2")
    assert records[1].values == ("web.example.com.",)
    assert client.paginator.kwargs["HostedZoneId"] == "Z123"


def test_changes_use_upsert_and_delete(stub_client):
    client = stub_client(StubRoute53())
    provider = Route53Provider(rate=0)
    provider.init("example.com")
    rec = DnsRecord("m.example.com", "TXT", 300, ("a.example.com.",))
    provider.add_record(rec)
    provider.update_record(rec)
    provider.remove_record(rec)

    actions = [batch["Changes"][0]["Action"] for _, batch in client.changes]
    assert actions == ["UPSERT", "UPSERT", "DELETE"]
    rrset = client.changes[0][1]["Changes"][0]["ResourceRecordSet"]
    assert rrset["Name"] == "m.example.com."
    assert rrset["ResourceRecords"] == [{"Value": '"a.example.com."'}]
    assert client.changes[0][1]["Comment"] == "Managed by Rancher"


def test_client_error_is_provider_error(stub_client):
    client = stub_client(StubRoute53())
    provider = Route53Provider(rate=0)
    provider.init("example.com")
    client.fail_changes = True
    with pytest.raises(ProviderError):
        provider.add_record(DnsRecord("a.example.com.", "A", 60, ("1.1.1.1",)))


def test_max_retries_from_environment(monkeypatch):
    monkeypatch.setenv("ROUTE53_MAX_RETRIES", "7")
    assert Route53Provider()._max_retries() == 7
    monkeypatch.setenv("ROUTE53_MAX_RETRIES", "many")
    assert Route53Provider()._max_retries() == 3


def test_is_proprietary():
    assert is_proprietary({"AliasTarget": {}})
    assert is_proprietary({"TrafficPolicyInstanceId": "x"})
    assert not is_proprietary({"ResourceRecords": []})


def test_adoption_on_empty_zone_writes_placeholder_marker(stub_client):
    """
    Brief: A fresh zone gets a marker with one quoted placeholder value,
    since Route 53 rejects RRsets without ResourceRecords.

    Inputs:
      - stub_client fixture

    Outputs:
      - None
    """
    client = stub_client(StubRoute53())
    provider = Route53Provider(rate=0)
    provider.init("example.com")
    rec = Reconciler(provider, "example.com", 300, "uuid", "env")

    assert rec.adopt_legacy_records() == set()
    (zone_id, batch), = client.changes
    change = batch["Changes"][0]
    assert change["Action"] == "UPSERT"
    assert change["ResourceRecordSet"]["Name"] == "external-dns-uuid.example.com."
    assert change["ResourceRecordSet"]["ResourceRecords"] == [{"Value": '"none"'}]


def test_releasing_last_owned_record_keeps_marker(stub_client):
    """
    Brief: Removing the only owned record rewrites the marker with the
    placeholder instead of an empty value list.

    Inputs:
      - stub_client fixture

    Outputs:
      - None
    """
    pages = [
        {
            "ResourceRecordSets": [
                {
                    "Name": "web.s.env.example.com.",
                    "Type": "A",
                    "TTL": 300,
                    "ResourceRecords": [{"Value": "10.0.0.1"}],
                },
                {
                    "Name": "external-dns-uuid.example.com.",
                    "Type": "TXT",
                    "TTL": 300,
                    "ResourceRecords": [{"Value": '"web.s.env.example.com."'}],
                },
            ]
        }
    ]
    client = stub_client(StubRoute53(pages=pages))
    provider = Route53Provider(rate=0)
    provider.init("example.com")
    rec = Reconciler(provider, "example.com", 300, "uuid", "env", guard_empty_inventory=False)

    report = rec.reconcile({})
    assert report.ok
    actions = [
        (batch["Changes"][0]["Action"], batch["Changes"][0]["ResourceRecordSet"]["Name"])
        for _, batch in client.changes
    ]
    assert actions == [
        ("DELETE", "web.s.env.example.com."),
        ("UPSERT", "external-dns-uuid.example.com."),
    ]
    marker = client.changes[1][1]["Changes"][0]["ResourceRecordSet"]
    assert marker["ResourceRecords"] == [{"Value": '"none"'}]
