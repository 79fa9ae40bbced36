"""Provider adapter contract.

Brief:
  - Provider is the base class every DNS back-end implements: init(),
    health_check(), list_records(), add_record(), update_record() and
    remove_record().
  - HttpProvider adds a rate-limited requests.Session with uniform error
    translation for REST back-ends.
  - All API failures surface as extdns.errors.ProviderError; missing
    credentials surface as ConfigurationError from init().
"""

from __future__ import annotations

import logging
import os
from typing import Any, ClassVar, Dict, List, Optional, Sequence, Tuple, final

import requests
from pydantic import BaseModel, Field

from ..errors import ConfigurationError, ProviderError
from ..records import DnsRecord, unfqdn
from .ratelimit import TokenBucket

logger = logging.getLogger(__name__)


class ProviderConfig(BaseModel):
    """Brief: Common provider settings shared by every adapter.

    Inputs:
      - timeout: Per-call deadline in seconds applied to API requests.
      - rate/burst: Optional overrides for the adapter's token bucket.

    Outputs:
      - Validated model; adapter-specific keys are kept via extra="allow".
    """

    timeout: float = Field(default=10.0, gt=0)
    rate: Optional[float] = None
    burst: Optional[float] = None

    class Config:
        extra = "allow"


def provider_aliases(*aliases: str):
    """Brief: Decorator setting registry aliases on a Provider subclass.

    Example:
        >>> @provider_aliases("cf")
        ... class Cloudflare(Provider):
        ...     pass
        >>> Cloudflare.aliases
        ('cf',)
    """

    def _wrap(cls: type) -> type:
        cls.aliases = tuple(aliases)
        return cls

    return _wrap


class Provider:
    """Brief: Base class for DNS provider adapters.

    Inputs (constructor):
      - **config: Provider configuration mapping, validated against
        get_config_model().

    Outputs:
      - Adapter instance; call init(root_domain) before any other method.

    Class attributes:
      - name: Human-readable provider name used in logs and errors.
      - aliases: Registry names accepted for this adapter.
      - rate/burst: Token bucket parameters (requests per second, burst size).
        A rate of 0 disables limiting.
    """

    name: ClassVar[str] = "provider"
    aliases: ClassVar[Sequence[str]] = ()
    rate: ClassVar[float] = 0.0
    burst: ClassVar[float] = 1.0

    @classmethod
    def get_config_model(cls) -> type[ProviderConfig]:
        return ProviderConfig

    @classmethod
    def get_aliases(cls) -> Sequence[str]:
        return tuple(getattr(cls, "aliases", ()))

    @final
    def __init__(self, **config: Any) -> None:
        model_cls = self.get_config_model()
        try:
            self.config = model_cls(**config)
        except Exception as exc:
            raise ConfigurationError(
                f"Invalid configuration for provider {self.name}: {exc}"
            ) from exc
        rate = self.config.rate if self.config.rate is not None else self.rate
        burst = self.config.burst if self.config.burst is not None else self.burst
        self.limiter = TokenBucket(rate=rate, capacity=burst)
        self.root = ""
        self.logger = logging.getLogger(self.__class__.__module__)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} root={self.root!r}>"

    # --- helpers -----------------------------------------------------------

    def credential(self, key: str, env: str, required: bool = True) -> str:
        """Brief: Resolve a credential from config, falling back to the environment.

        Inputs:
          - key: Attribute name on the validated config model.
          - env: Environment variable consulted when the config value is empty.
          - required: Raise ConfigurationError when neither source is set.

        Outputs:
          - str value ("" when optional and unset).
        """
        value = getattr(self.config, key, None)
        if value is None or value == "":
            value = os.environ.get(env, "")
        value = str(value).strip()
        if required and not value:
            raise ConfigurationError(f"{env} is not set")
        return value

    def relative_name(self, record_fqdn: str) -> str:
        """Return the record name relative to the zone ("" for the apex)."""
        name = unfqdn(record_fqdn).lower()
        root = self.root.lower()
        if name == root:
            return ""
        suffix = "." + root
        if name.endswith(suffix):
            return name[: -len(suffix)]
        return name

    def absolute_name(self, relative: str) -> str:
        """Inverse of relative_name(); "@" and "" map to the apex."""
        relative = (relative or "").rstrip(".")
        if relative in ("", "@"):
            return self.root + "."
        if relative.lower().endswith(self.root.lower()):
            return relative + "."
        return f"{relative}.{self.root}."

    def fail(self, message: str, exc: Optional[BaseException] = None) -> ProviderError:
        text = f"{message}: {exc}" if exc is not None else message
        return ProviderError(self.name, text)

    # --- contract ----------------------------------------------------------

    def init(self, root_domain: str) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    def health_check(self) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    def list_records(self) -> List[DnsRecord]:  # pragma: no cover - interface only
        raise NotImplementedError

    def add_record(self, record: DnsRecord) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    def remove_record(self, record: DnsRecord) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    def update_record(self, record: DnsRecord) -> None:
        """Replace the value set and TTL of (fqdn, type).

        Adapters without an atomic replace inherit remove-then-add.
        """
        self.remove_record(record)
        self.add_record(record)

    def probe(self) -> None:
        self.health_check()


class HttpProvider(Provider):
    """Provider with a rate-limited requests.Session and JSON helpers."""

    base_url: ClassVar[str] = ""

    def open_session(self, headers: Optional[Dict[str, str]] = None) -> requests.Session:
        session = getattr(self, "session", None)
        if session is None:
            session = requests.Session()
            self.session = session
        session.headers.update({"Accept": "application/json"})
        if headers:
            session.headers.update(headers)
        return session

    def request(
        self,
        method: str,
        url: str,
        *,
        ok: Tuple[int, ...] = (),
        **kwargs: Any,
    ) -> Any:
        """Brief: Perform one rate-limited API call.

        Inputs:
          - method/url: HTTP verb and absolute or base-relative URL.
          - ok: Extra non-2xx status codes treated as success.
          - **kwargs: Passed to requests.Session.request (json, params, ...).

        Outputs:
          - Decoded JSON body, or None for empty responses.

        Raises:
          - ProviderError on transport errors, non-success status codes and
            bodies that are not JSON.
        """
        if not url.startswith("http"):
            url = self.base_url.rstrip("/") + "/" + url.lstrip("/")
        kwargs.setdefault("timeout", self.config.timeout)
        session = getattr(self, "session", None) or self.open_session()
        self.limiter.wait()
        try:
            resp = session.request(method, url, **kwargs)
        except requests.RequestException as exc:
            raise self.fail(f"{method} {url} failed", exc) from exc
        if resp.status_code >= 400 and resp.status_code not in ok:
            raise self.fail(
                f"{method} {url} returned HTTP {resp.status_code}: {resp.text[:300]}"
            )
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise self.fail(
                f"{method} {url} returned a non-JSON body: {resp.text[:300]}"
            ) from exc
