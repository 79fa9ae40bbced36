"""
Brief: Tests for extdns.records name helpers, RRset values and TXT quoting.

Inputs:
  - None

Outputs:
  - None
"""

import pytest

from extdns.records import (
    EMPTY_STATE_VALUE,
    DnsRecord,
    MetadataRecord,
    clamp_ttl,
    fqdn,
    group_records,
    quote_txt,
    sanitize_label,
    state_fqdn,
    state_record,
    unfqdn,
    unquote_txt,
)


@pytest.mark.parametrize(
    "name,absolute",
    [("example.com", "example.com."), ("example.com.", "example.com."), ("", "")],
)
def test_fqdn_and_unfqdn_round_trip(name, absolute):
    """
    Brief: fqdn() adds exactly one trailing dot and unfqdn() removes it.

    Inputs:
      - name: relative or absolute name

    Outputs:
      - None: Asserts both directions and the empty-string case
    """
    assert fqdn(name) == absolute
    assert fqdn(unfqdn(absolute)) == absolute
    assert unfqdn(fqdn(unfqdn(name))) == unfqdn(name)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("my_service", "my-service"),
        ("--a..b--", "a-b"),
        ("Stack Name!", "Stack-Name"),
        ("ok-label", "ok-label"),
        ("__", ""),
    ],
)
def test_sanitize_label(raw, expected):
    """
    Brief: sanitize_label replaces invalid chars, collapses and trims dashes.

    Inputs:
      - raw: arbitrary label text

    Outputs:
      - None: Asserts RFC 1123 friendly output
    """
    assert sanitize_label(raw) == expected


def test_state_fqdn_is_lowercase_absolute():
    """
    Brief: The ownership marker name is external-dns-<uuid>.<root>. lowercased.

    Inputs:
      - None

    Outputs:
      - None
    """
    assert state_fqdn("ABC-123", "Example.COM.") == "external-dns-abc-123.example.com."


def test_state_record_sorts_and_dedupes():
    """
    Brief: state_record builds a TXT RRset with sorted unique values.

    Inputs:
      - None

    Outputs:
      - None
    """
    rec = state_record("external-dns-x.example.com.", 300, ["b.example.com.", "a.example.com.", "b.example.com."])
    assert rec.type == "TXT"
    assert rec.ttl == 300
    assert rec.values == ("a.example.com.", "b.example.com.")


def test_empty_state_record_carries_placeholder():
    """
    Brief: An empty owned set still yields one TXT value, never an empty RRset.

    Inputs:
      - None

    Outputs:
      - None
    """
    rec = state_record("external-dns-x.example.com.", 300, [])
    assert rec.values == (EMPTY_STATE_VALUE,)
    mixed = state_record("external-dns-x.example.com.", 300, [EMPTY_STATE_VALUE, "a.example.com."])
    assert mixed.values == ("a.example.com.",)


def test_dns_record_value_set_and_with_values():
    """
    Brief: value_set ignores order; with_values returns a new immutable copy.

    Inputs:
      - None

    Outputs:
      - None
    """
    rec = DnsRecord("a.example.com.", "A", 60, ["10.0.0.2", "10.0.0.1"])
    assert isinstance(rec.values, tuple)
    assert rec.value_set() == frozenset({"10.0.0.1", "10.0.0.2"})
    other = rec.with_values(["10.0.0.3"])
    assert other.values == ("10.0.0.3",)
    assert rec.values == ("10.0.0.2", "10.0.0.1")
    with pytest.raises(Exception):
        rec.ttl = 5  # frozen


def test_metadata_record_to_dns_record_drops_identity():
    """
    Brief: MetadataRecord.to_dns_record keeps RRset fields only.

    Inputs:
      - None

    Outputs:
      - None
    """
    meta = MetadataRecord("a.example.com.", "A", 300, ("1.2.3.4",), service_name="web", stack_name="app")
    plain = meta.to_dns_record()
    assert type(plain) is DnsRecord
    assert plain == DnsRecord("a.example.com.", "A", 300, ("1.2.3.4",))
    assert meta.with_values(["5.6.7.8"]).service_name == "web"


def test_txt_quoting():
    """
    Brief: quote_txt/unquote_txt handle plain, quoted and multi-string values.

    Inputs:
      - None

    Outputs:
      - None
    """
    assert quote_txt("a.example.com.") == '"a.example.com."'
    assert unquote_txt('"a.example.com."') == "a.example.com."
    assert unquote_txt("plain") == "plain"
    assert unquote_txt('"part1" "part2"') == "part1part2"
    assert unquote_txt(quote_txt('say "hi"')) == 'say "hi"'


def test_group_records_folds_rows_into_rrsets():
    """
    Brief: group_records merges rows per (name, type), filters types, dedupes.

    Inputs:
      - None

    Outputs:
      - None
    """
    rows = [
        ("A.example.com", "a", 60, "10.0.0.1"),
        ("a.example.com.", "A", 120, "10.0.0.2"),
        ("a.example.com.", "A", 120, "10.0.0.2"),
        ("example.com.", "MX", 300, "10 mail.example.com."),
        ("t.example.com.", "TXT", 300, "hello"),
    ]
    records = group_records(rows)
    assert [r.key() for r in records] == [("a.example.com.", "A"), ("t.example.com.", "TXT")]
    assert records[0].values == ("10.0.0.1", "10.0.0.2")
    assert records[0].ttl == 120


def test_clamp_ttl():
    """
    Brief: clamp_ttl bounds TTLs to a provider's accepted range.

    Inputs:
      - None

    Outputs:
      - None
    """
    assert clamp_ttl(60, 120, 86400) == 120
    assert clamp_ttl(300, 120, 86400) == 300
    assert clamp_ttl(10**6, 120, 86400) == 86400
