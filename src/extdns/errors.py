"""Error hierarchy shared by the reconciliation agent.

Brief:
  - ConfigurationError is raised during start-up only (missing credentials,
    unknown provider/generator, bad templates) and is turned into a non-zero
    exit code by extdns.main.
  - ProviderError, MetadataError and NotifyError are data-plane errors. They
    are logged by the reconciler/loop and never terminate the process.
"""

from __future__ import annotations


class ExtDnsError(Exception):
    """Base class for all extdns errors."""


class ConfigurationError(ExtDnsError):
    """Invalid or incomplete configuration detected during initialisation."""


class TemplateError(ConfigurationError):
    """FQDN name template could not be parsed or uses an unknown placeholder."""


class ProviderError(ExtDnsError):
    """Brief: A DNS provider API call failed.

    Inputs:
      - provider: Display name of the provider that failed.
      - message: Provider-supplied error text.

    Outputs:
      - Exception whose str() reads "<provider>: <message>".
    """

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.message = message


class MetadataError(ExtDnsError):
    """The orchestrator metadata service could not be read."""


class NotifyError(ExtDnsError):
    """An orchestrator notification could not be delivered."""
