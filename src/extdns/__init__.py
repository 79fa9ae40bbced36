"""extdns package: keep a public DNS zone in sync with orchestrator workloads."""

__version__ = "0.1.0"
