"""
Brief: Tests for extdns.providers.rfc2136 configuration and rdata rendering.

Inputs:
  - None

Outputs:
  - None
"""

import dns.rdata
import dns.rdataclass
import dns.rdatatype
import dns.rcode
import pytest

from extdns.errors import ConfigurationError, ProviderError
from extdns.providers import rfc2136 as rfc2136_mod
from extdns.providers.rfc2136 import RFC2136Provider, rdata_values
from extdns.records import DnsRecord

SECRET = "c2VjcmV0c2VjcmV0c2VjcmV0"


def _rdata(rtype, text):
    return dns.rdata.from_text(dns.rdataclass.IN, dns.rdatatype.from_text(rtype), text)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in (
        "RFC2136_HOST",
        "RFC2136_PORT",
        "RFC2136_INSECURE",
        "RFC2136_TSIG_KEYNAME",
        "RFC2136_TSIG_SECRET",
    ):
        monkeypatch.delenv(var, raising=False)


def test_rdata_values_render_supported_types():
    """
    Brief: A/AAAA addresses, absolute CNAME targets and joined TXT strings.

    Inputs:
      - None

    Outputs:
      - None
    """
    assert rdata_values("A", [_rdata("A", "10.0.0.1"), _rdata("A", "10.0.0.2")]) == [
        "10.0.0.1",
        "10.0.0.2",
    ]
    assert rdata_values("AAAA", [_rdata("AAAA", "2001:db8::1")]) == ["2001:db8::1"]
    assert rdata_values("CNAME", [_rdata("CNAME", "web.example.com.")]) == ["web.example.com."]
    assert rdata_values("TXT", [_rdata("TXT", '"a.example.com," "b.example.com."')]) == [
        "a.example.com,b.example.com."
    ]


def test_init_requires_tsig_unless_insecure():
    with pytest.raises(ConfigurationError) as excinfo:
        RFC2136Provider(host="ns1", port=53).init("example.com")
    assert "RFC2136_TSIG_KEYNAME" in str(excinfo.value)

    provider = RFC2136Provider(host="ns1", port=53, insecure=True)
    provider.init("Example.com.")
    assert provider.zone == "example.com."
    assert provider.keyring is None


def test_init_reads_environment(monkeypatch):
    monkeypatch.setenv("RFC2136_HOST", "10.0.0.53")
    monkeypatch.setenv("RFC2136_PORT", "5353")
    monkeypatch.setenv("RFC2136_TSIG_KEYNAME", "extdns")
    monkeypatch.setenv("RFC2136_TSIG_SECRET", SECRET)
    provider = RFC2136Provider()
    provider.init("example.com")
    assert (provider.host, provider.port) == ("10.0.0.53", 5353)
    assert provider.keyname == "extdns."
    assert provider.keyring is not None


def test_invalid_insecure_and_port_values(monkeypatch):
    monkeypatch.setenv("RFC2136_INSECURE", "maybe")
    with pytest.raises(ConfigurationError):
        RFC2136Provider(host="ns1", port=53).init("example.com")
    with pytest.raises(ConfigurationError):
        RFC2136Provider(host="ns1", port="dns", insecure=True).init("example.com")


class _Resp:
    def __init__(self, rcode):
        self._rcode = rcode

    def rcode(self):
        return self._rcode


def test_update_sends_delete_and_add_in_one_message(monkeypatch):
    """
    Brief: update_record() replaces the RRset in a single UPDATE message.

    Inputs:
      - monkeypatch: pytest fixture

    Outputs:
      - None
    """
    sent = []

    def fake_tcp(message, host, port=53, timeout=None):
        sent.append((message, host, port))
        return _Resp(dns.rcode.NOERROR)

    monkeypatch.setattr(rfc2136_mod.dns.query, "tcp", fake_tcp)
    provider = RFC2136Provider(host="ns1", port=53, insecure=True, rate=0)
    provider.init("example.com")
    provider.update_record(DnsRecord("web.example.com.", "A", 60, ("1.1.1.1", "2.2.2.2")))

    assert len(sent) == 1
    text = sent[0][0].to_text()
    assert "web.example.com. ANY A" in text
    assert "web.example.com. 60 IN A 1.1.1.1" in text
    assert "web.example.com. 60 IN A 2.2.2.2" in text


def test_bad_rcode_is_provider_error(monkeypatch):
    monkeypatch.setattr(
        rfc2136_mod.dns.query, "tcp", lambda *a, **kw: _Resp(dns.rcode.REFUSED)
    )
    provider = RFC2136Provider(host="ns1", port=53, insecure=True, rate=0)
    provider.init("example.com")
    with pytest.raises(ProviderError) as excinfo:
        provider.remove_record(DnsRecord("web.example.com.", "A", 60, ("1.1.1.1",)))
    assert "REFUSED" in str(excinfo.value)
