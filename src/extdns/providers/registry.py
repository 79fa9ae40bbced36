from __future__ import annotations

import difflib
import importlib
import logging
import re
from typing import Any, Dict, Iterable, List, Type

from ..errors import ConfigurationError
from .base import Provider

logger = logging.getLogger(__name__)

_CAMEL_1 = re.compile(r"(.)([A-Z][a-z]+)")
_CAMEL_2 = re.compile(r"([a-z0-9])([A-Z])")


def _camel_to_snake(name: str) -> str:
    s1 = _CAMEL_1.sub(r"\1_\2", name)
    s2 = _CAMEL_2.sub(r"\1_\2", s1)
    return s2.lower()


def _default_alias_for(cls: Type[Provider]) -> str:
    name = cls.__name__
    if name.endswith("Provider"):
        name = name[:-8]
    return _camel_to_snake(name)


def _normalize(alias: str) -> str:
    return alias.strip().lower().replace("-", "_")


class ProviderRegistry:
    """Brief: Explicit alias -> Provider class table.

    Inputs:
      - None; the composition root calls register() for each adapter.

    Outputs:
      - Registry resolving configured provider names (or dotted import paths
        "pkg.module.Class") to Provider subclasses.

    Example:
      >>> from extdns.providers.memory import MemoryProvider
      >>> reg = ProviderRegistry()
      >>> reg.register(MemoryProvider)
      >>> reg.get("memory") is MemoryProvider
      True
    """

    def __init__(self) -> None:
        self._by_alias: Dict[str, Type[Provider]] = {}

    def register(self, cls: Type[Provider]) -> None:
        if not isinstance(cls, type) or not issubclass(cls, Provider):
            raise TypeError(f"{cls!r} is not a Provider subclass")
        claimed = set(_normalize(a) for a in cls.get_aliases())
        claimed.add(_normalize(_default_alias_for(cls)))
        for alias in claimed:
            other = self._by_alias.get(alias)
            if other is not None and other is not cls:
                raise ValueError(
                    f"Duplicate provider alias '{alias}' claimed by "
                    f"{cls.__module__}.{cls.__name__} and "
                    f"{other.__module__}.{other.__name__}"
                )
        for alias in claimed:
            self._by_alias[alias] = cls

    def register_all(self, classes: Iterable[Type[Provider]]) -> None:
        for cls in classes:
            self.register(cls)

    def aliases(self) -> List[str]:
        return sorted(self._by_alias)

    def get(self, identifier: str) -> Type[Provider]:
        """Brief: Resolve a provider alias or dotted class path.

        Raises:
          - ConfigurationError for unknown aliases (with close-match
            suggestions) and for dotted paths that do not name a Provider.
        """
        ident = identifier.strip()
        if "." in ident:
            modname, _, classname = ident.rpartition(".")
            try:
                module = importlib.import_module(modname)
                cls = getattr(module, classname)
            except (ImportError, AttributeError) as exc:
                raise ConfigurationError(
                    f"Cannot import provider '{identifier}': {exc}"
                ) from exc
            if not isinstance(cls, type) or not issubclass(cls, Provider):
                raise ConfigurationError(f"{identifier} is not a Provider subclass")
            return cls

        key = _normalize(ident)
        try:
            return self._by_alias[key]
        except KeyError:
            suggestions = difflib.get_close_matches(key, self.aliases(), n=3)
            raise ConfigurationError(
                f"No such provider '{identifier}'. "
                f"Known providers: {', '.join(self.aliases())}. "
                f"Suggestions: {suggestions}"
            ) from None

    def create(self, identifier: str, root_domain: str, **config: Any) -> Provider:
        """Instantiate the named provider and run its init(root_domain)."""
        cls = self.get(identifier)
        provider = cls(**config)
        provider.init(root_domain)
        logger.info("Powered by %s", provider.name)
        return provider
