"""
DNS provider adapters.

Brief: default_registry() builds the explicit alias table used by the
composition root. Submodules are also reachable as attributes
(extdns.providers.route53 imports on first access).
"""

from __future__ import annotations

import importlib
from types import ModuleType
from typing import List

from .base import HttpProvider, Provider, ProviderConfig, provider_aliases
from .registry import ProviderRegistry

BUILTIN_PROVIDERS: List[str] = [
    "alidns:AliDNSProvider",
    "azure:AzureProvider",
    "cloudflare:CloudflareProvider",
    "digitalocean:DigitalOceanProvider",
    "dnsimple:DNSimpleProvider",
    "gandi:GandiProvider",
    "googledns:GoogleDNSProvider",
    "infoblox:InfobloxProvider",
    "memory:MemoryProvider",
    "ovh:OVHProvider",
    "pointhq:PointHQProvider",
    "powerdns:PowerDNSProvider",
    "powerdns4:PowerDNS4Provider",
    "rancher_public_dns:RancherPublicDNSProvider",
    "rfc2136:RFC2136Provider",
    "route53:Route53Provider",
    "vultr:VultrProvider",
]


def default_registry() -> ProviderRegistry:
    """Brief: Registry holding every built-in adapter.

    Outputs:
      - ProviderRegistry; duplicate aliases raise ValueError here rather than
        at lookup time.
    """
    registry = ProviderRegistry()
    for entry in BUILTIN_PROVIDERS:
        modname, _, classname = entry.partition(":")
        module = importlib.import_module(f"{__name__}.{modname}")
        registry.register(getattr(module, classname))
    return registry


def __getattr__(name: str) -> ModuleType:
    fullname = f"{__name__}.{name}"
    try:
        return importlib.import_module(fullname)
    except ModuleNotFoundError as e:
        if e.name == fullname:
            raise AttributeError(
                f"module '{__name__}' has no attribute '{name}'"
            ) from e
        raise


__all__ = [
    "BUILTIN_PROVIDERS",
    "HttpProvider",
    "Provider",
    "ProviderConfig",
    "ProviderRegistry",
    "default_registry",
    "provider_aliases",
]
