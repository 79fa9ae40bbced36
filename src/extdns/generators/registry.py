from __future__ import annotations

import difflib
import logging
import re
from typing import Dict, List

from ..errors import ConfigurationError
from .base import FqdnGenerator, default_variables

logger = logging.getLogger(__name__)

_CAMEL_1 = re.compile(r"(.)([A-Z][a-z]+)")
_CAMEL_2 = re.compile(r"([a-z0-9])([A-Z])")
_SUFFIXES = ("_fqdn_generator", "_generator")


def _camel_to_snake(name: str) -> str:
    s1 = _CAMEL_1.sub(r"\1_\2", name)
    s2 = _CAMEL_2.sub(r"\1_\2", s1)
    return s2.lower()


def _normalize(alias: str) -> str:
    """Normalise "PublicDNSFQDNGenerator", "public-dns" and "public_dns" alike."""
    key = alias.strip().replace("FQDN", "Fqdn").replace("DNS", "Dns")
    key = _camel_to_snake(key).replace("-", "_")
    for suffix in _SUFFIXES:
        if key.endswith(suffix) and key != suffix:
            key = key[: -len(suffix)]
            break
    return key


class GeneratorRegistry:
    """Brief: Explicit name -> FqdnGenerator table.

    Inputs:
      - None (populate with register()).

    Outputs:
      - Registry used by the composition root to select a naming strategy.

    Example:
      >>> reg = default_generators()
      >>> reg.get("DefaultFQDNGenerator").name
      'Default'
    """

    def __init__(self) -> None:
        self._by_alias: Dict[str, FqdnGenerator] = {}

    def register(self, generator: FqdnGenerator) -> None:
        claimed = {_normalize(generator.name)}
        claimed.update(_normalize(a) for a in generator.aliases)
        for alias in claimed:
            other = self._by_alias.get(alias)
            if other is not None and other is not generator:
                raise ValueError(
                    f"Duplicate fqdn generator alias '{alias}' claimed by "
                    f"{generator.name} and {other.name}"
                )
        for alias in claimed:
            self._by_alias[alias] = generator

    def get(self, name: str) -> FqdnGenerator:
        key = _normalize(name)
        try:
            return self._by_alias[key]
        except KeyError:
            suggestions = difflib.get_close_matches(key, list(self._by_alias), n=3)
            raise ConfigurationError(
                f"Unknown fqdn generator '{name}'. "
                f"Known generators: {', '.join(self.names())}. "
                f"Suggestions: {suggestions}"
            ) from None

    def names(self) -> List[str]:
        return sorted({g.name for g in self._by_alias.values()})

    def __contains__(self, name: str) -> bool:
        return _normalize(name) in self._by_alias


DEFAULT = FqdnGenerator(
    name="Default",
    default_template="%{{service_name}}.%{{stack_name}}.%{{environment_name}}",
    variables=default_variables,
)

PUBLIC_DNS = FqdnGenerator(
    name="PublicDNS",
    default_template="%{{service_name}}-%{{stack_uuid}}",
    variables=default_variables,
    aliases=("public",),
)

SKIP_ENV = FqdnGenerator(
    name="SkipEnv",
    default_template="%{{service_name}}.%{{stack_name}}",
    variables=default_variables,
)


def default_generators() -> GeneratorRegistry:
    """Return a registry holding the built-in Default, PublicDNS and SkipEnv."""
    registry = GeneratorRegistry()
    for generator in (DEFAULT, PUBLIC_DNS, SKIP_ENV):
        registry.register(generator)
    return registry
