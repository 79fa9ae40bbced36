"""RFC 2136 dynamic update adapter built on dnspython.

Brief:
  - Listing is a full AXFR of the zone; updates are signed DNS UPDATE
    messages sent over TCP.
  - TSIG uses hmac-md5 unless ``tsig_algorithm`` says otherwise.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Optional

import dns.exception
import dns.message
import dns.name
import dns.query
import dns.rcode
import dns.rdataclass
import dns.rdatatype
import dns.tsig
import dns.tsigkeyring
import dns.update
import dns.zone

from ..errors import ConfigurationError
from ..records import SUPPORTED_TYPES, DnsRecord, fqdn, quote_txt
from .base import Provider, ProviderConfig, provider_aliases

_TRUE = {"1", "t", "true", "yes", "on"}
_FALSE = {"", "0", "f", "false", "no", "off"}


class RFC2136Config(ProviderConfig):
    host: Optional[str] = None
    port: Optional[int] = None
    insecure: Optional[bool] = None
    tsig_keyname: Optional[str] = None
    tsig_secret: Optional[str] = None
    tsig_algorithm: str = "hmac-md5"


def rdata_values(rdtype: str, rdataset: Iterable[Any]) -> List[str]:
    """Brief: Render rdata objects of one supported type as plain strings.

    Inputs:
      - rdtype: "A", "AAAA", "CNAME" or "TXT".
      - rdataset: Iterable of dnspython rdata objects.

    Outputs:
      - List of values; TXT character-strings are concatenated and CNAME
        targets are absolute.
    """
    values: List[str] = []
    for rdata in rdataset:
        if rdtype in ("A", "AAAA"):
            values.append(str(rdata.address))
        elif rdtype == "CNAME":
            values.append(fqdn(rdata.target.to_text()))
        elif rdtype == "TXT":
            values.append(
                "".join(
                    s.decode("utf-8", "replace") if isinstance(s, bytes) else str(s)
                    for s in rdata.strings
                )
            )
    return values


@provider_aliases("rfc2136", "nsupdate")
class RFC2136Provider(Provider):
    """Brief: Authoritative server adapter via AXFR + DNS UPDATE.

    Inputs (config / environment):
      - host / RFC2136_HOST, port / RFC2136_PORT (both required).
      - insecure / RFC2136_INSECURE: Skip TSIG when true.
      - tsig_keyname / RFC2136_TSIG_KEYNAME and tsig_secret /
        RFC2136_TSIG_SECRET: Required unless insecure.

    Outputs:
      - Provider whose update replaces the RRset in a single UPDATE message.
    """

    name = "RFC2136"

    @classmethod
    def get_config_model(cls):
        return RFC2136Config

    def init(self, root_domain: str) -> None:
        self.root = root_domain.rstrip(".").lower()
        self.zone = fqdn(self.root)
        self.host = self.credential("host", "RFC2136_HOST")
        port = self.credential("port", "RFC2136_PORT")
        try:
            self.port = int(port)
        except ValueError as exc:
            raise ConfigurationError("RFC2136_PORT must be an integer") from exc

        self.insecure = self._insecure()
        self.keyring = None
        self.keyname: Optional[str] = None
        self.algorithm = dns.name.from_text(self.config.tsig_algorithm)
        if not self.insecure:
            self.keyname = fqdn(self.credential("tsig_keyname", "RFC2136_TSIG_KEYNAME"))
            secret = self.credential("tsig_secret", "RFC2136_TSIG_SECRET")
            self.keyring = dns.tsigkeyring.from_text({self.keyname: secret})
        self.logger.info(
            "Configured %s with zone '%s' and nameserver '%s:%d'",
            self.name,
            self.zone,
            self.host,
            self.port,
        )

    def _insecure(self) -> bool:
        if self.config.insecure is not None:
            return bool(self.config.insecure)
        raw = self.credential("insecure", "RFC2136_INSECURE", required=False).lower()
        if raw in _TRUE:
            return True
        if raw in _FALSE:
            return False
        raise ConfigurationError("RFC2136_INSECURE must be a boolean value")

    # --- transport ---------------------------------------------------------

    def _send(self, message: dns.message.Message, what: str) -> dns.message.Message:
        self.limiter.wait()
        try:
            resp = dns.query.tcp(message, self.host, port=self.port, timeout=self.config.timeout)
        except (dns.exception.DNSException, OSError) as exc:
            raise self.fail(f"RFC2136 {what} failed", exc) from exc
        if resp.rcode() != dns.rcode.NOERROR:
            raise self.fail(f"RFC2136 {what}: bad return code {dns.rcode.to_text(resp.rcode())}")
        return resp

    def _update(self) -> dns.update.UpdateMessage:
        return dns.update.UpdateMessage(
            self.zone,
            keyring=self.keyring,
            keyname=self.keyname,
            keyalgorithm=self.algorithm,
        )

    # --- contract ----------------------------------------------------------

    def health_check(self) -> None:
        query = dns.message.make_query(self.zone, dns.rdatatype.SOA)
        if self.keyring is not None:
            query.use_tsig(self.keyring, keyname=self.keyname, algorithm=self.algorithm)
        self._send(query, "SOA query")

    def list_records(self) -> List[DnsRecord]:
        self.logger.debug("Fetching records for '%s'", self.zone)
        try:
            xfr = dns.query.xfr(
                self.host,
                self.zone,
                port=self.port,
                keyring=self.keyring,
                keyname=self.keyname,
                keyalgorithm=self.algorithm,
                relativize=False,
                lifetime=self.config.timeout,
            )
            zone = dns.zone.from_xfr(xfr, relativize=False)
        except (dns.exception.DNSException, OSError) as exc:
            raise self.fail("Failed to fetch records via AXFR", exc) from exc

        records: List[DnsRecord] = []
        for name, rdataset in zone.iterate_rdatasets():
            if rdataset.rdclass != dns.rdataclass.IN:
                continue
            rtype = dns.rdatatype.to_text(rdataset.rdtype)
            if rtype not in SUPPORTED_TYPES:
                continue
            records.append(
                DnsRecord(
                    fqdn=fqdn(name.to_text().lower()),
                    type=rtype,
                    ttl=int(rdataset.ttl),
                    values=tuple(rdata_values(rtype, rdataset)),
                )
            )
        return records

    def _add_to(self, update: dns.update.UpdateMessage, record: DnsRecord) -> None:
        name = dns.name.from_text(fqdn(record.fqdn))
        for value in record.values:
            text = quote_txt(value) if record.type == "TXT" else value
            update.add(name, int(record.ttl), record.type, text)

    def add_record(self, record: DnsRecord) -> None:
        self.logger.debug("Adding RRset '%s %s'", record.fqdn, record.type)
        update = self._update()
        self._add_to(update, record)
        self._send(update, "update")

    def remove_record(self, record: DnsRecord) -> None:
        self.logger.debug("Removing RRset '%s %s'", record.fqdn, record.type)
        update = self._update()
        update.delete(dns.name.from_text(fqdn(record.fqdn)), record.type)
        self._send(update, "update")

    def update_record(self, record: DnsRecord) -> None:
        update = self._update()
        update.delete(dns.name.from_text(fqdn(record.fqdn)), record.type)
        self._add_to(update, record)
        self._send(update, "update")
