"""Configuration loading for the extdns agent.

Brief:
  This module turns the optional YAML file, the process environment and CLI
  `--var` assignments into a validated AgentConfig. It centralizes:
    - reading YAML config files
    - merging variables from config/env/CLI for `${VAR}` expansion
    - filling well-known keys (ROOT_DOMAIN, TTL, ...) from the environment
    - JSON Schema validation (config_schema.validate_config)
    - the typed AgentConfig model consumed by extdns.main

Inputs:
  - YAML config paths, environment mappings, CLI variable assignments

Outputs:
  - AgentConfig instances
"""

from __future__ import annotations

import os
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml
from pydantic import BaseModel, Field, validator

from ..errors import ConfigurationError
from ..metadata import DEFAULT_METADATA_URL
from ..records import unfqdn
from .config_schema import VAR_NAME, validate_config

PUBLIC_DNS_PROVIDERS = {"rancher-public-dns", "rancher_public_dns", "public-dns"}

# Environment variable -> (config path, parse value as YAML).
ENV_KEYS: Dict[str, Tuple[Tuple[str, ...], bool]] = {
    "ROOT_DOMAIN": (("root_domain",), False),
    "TTL": (("ttl",), True),
    "NAME_TEMPLATE": (("name_template",), False),
    "PROVIDER": (("provider", "type"), False),
    "FQDN_GENERATOR": (("fqdn_generator",), False),
    "POLL_INTERVAL_MS": (("poll_interval_ms",), True),
    "FORCE_RESYNC_SECONDS": (("force_resync_seconds",), True),
    "GUARD_EMPTY_INVENTORY": (("guard_empty_inventory",), True),
    "REQUIRE_PORTS": (("require_ports",), True),
    "CATTLE_URL": (("cattle", "url"), False),
    "CATTLE_ACCESS_KEY": (("cattle", "access_key"), False),
    "CATTLE_SECRET_KEY": (("cattle", "secret_key"), False),
    "METADATA_URL": (("metadata", "url"), False),
    "HEALTH_PORT": (("health", "port"), True),
    "LOG_FILE": (("logging", "file"), False),
}


class MetadataSettings(BaseModel):
    url: str = DEFAULT_METADATA_URL
    timeout: float = Field(default=5.0, gt=0)
    max_backoff: float = Field(default=30.0, gt=0)


class ProviderSettings(BaseModel):
    type: str = ""
    config: Dict[str, Any] = Field(default_factory=dict)


class CattleSettings(BaseModel):
    url: Optional[str] = None
    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    timeout: float = Field(default=10.0, gt=0)


class HealthSettings(BaseModel):
    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = Field(default=1000, ge=0, le=65535)


class AgentConfig(BaseModel):
    """Brief: Typed agent configuration.

    Inputs:
      - Mapping produced by load_config() (already schema-validated).

    Outputs:
      - AgentConfig with normalized root_domain (lowercase, no trailing dot).

    Example:
      >>> AgentConfig(root_domain="Example.COM.", provider={"type": "route53"}).root_domain
      'example.com'
    """

    root_domain: str = ""
    ttl: int = Field(default=300, gt=0)
    name_template: Optional[str] = None
    fqdn_generator: str = "Default"
    poll_interval_ms: int = Field(default=1000, ge=0)
    force_resync_seconds: float = Field(default=0, ge=0)
    guard_empty_inventory: bool = True
    require_ports: bool = False
    dry_run: bool = False
    metadata: MetadataSettings = Field(default_factory=MetadataSettings)
    provider: ProviderSettings = Field(default_factory=ProviderSettings)
    cattle: CattleSettings = Field(default_factory=CattleSettings)
    health: HealthSettings = Field(default_factory=HealthSettings)
    logging: Dict[str, Any] = Field(default_factory=dict)

    @validator("root_domain", pre=True)
    def _normalize_root_domain(cls, v):  # type: ignore[no-untyped-def]
        return unfqdn(str(v or "").strip()).lower()

    @validator("name_template", pre=True)
    def _blank_template_is_default(cls, v):  # type: ignore[no-untyped-def]
        if v is None or not str(v).strip():
            return None
        return str(v).strip()

    def uses_public_dns(self) -> bool:
        return self.provider.type.strip().lower() in PUBLIC_DNS_PROVIDERS


def _parse_yaml_value(text: str) -> Any:
    """Brief: Parse a CLI/environment value as YAML (original string on errors)."""

    try:
        return yaml.safe_load(text)
    except yaml.YAMLError:
        return text


def _truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def parse_config_variables(
    cfg: Dict[str, Any],
    *,
    cli_vars: Optional[List[str]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    """Brief: Merge config/environment/CLI variables into cfg['vars'].

    Inputs:
      - cfg: Parsed YAML configuration mapping (mutated in-place).
      - cli_vars: Optional list of CLI `KEY=YAML` assignments.
      - environ: Optional environment mapping (defaults to os.environ).

    Outputs:
      - dict: The merged variables mapping stored back onto cfg['vars'].

    Precedence:
      - CLI (--var) overrides environment overrides config-file variables.

    Example:
      >>> cfg = {'vars': {'TTL': 100}}
      >>> parse_config_variables(cfg, cli_vars=['TTL=300'], environ={})['TTL']
      300
    """

    base = cfg.get("vars")
    if base is None:
        merged: Dict[str, Any] = {}
    elif isinstance(base, dict):
        merged = dict(base)
    else:
        raise ValueError("config.vars must be a mapping when present")

    env = os.environ if environ is None else environ
    for k, v in env.items():
        if isinstance(k, str) and VAR_NAME.fullmatch(k):
            merged[k] = _parse_yaml_value(str(v))

    for assignment in cli_vars or []:
        if "=" not in assignment:
            raise ValueError(
                "Invalid --var value (expected KEY=YAML), got: %r" % assignment
            )
        k, raw = assignment.split("=", 1)
        k = k.strip()
        if not VAR_NAME.fullmatch(k):
            raise ValueError(
                "Invalid variable name %r (must be ALL_UPPERCASE and match [A-Z_][A-Z0-9_]*)"
                % k
            )
        merged[k] = _parse_yaml_value(raw)

    cfg["vars"] = merged
    return merged


def apply_environment(
    cfg: Dict[str, Any], environ: Optional[Mapping[str, str]] = None
) -> Dict[str, Any]:
    """Brief: Fill well-known keys from the environment where YAML left them unset.

    Inputs:
      - cfg: Configuration mapping (mutated in-place).
      - environ: Optional environment mapping (defaults to os.environ).

    Outputs:
      - The same mapping. Keys present in YAML always win; DEBUG forces
        logging.level to debug unless the file sets a level.

    Example:
      >>> apply_environment({"ttl": 60}, {"TTL": "300", "ROOT_DOMAIN": "a.b"})
      {'ttl': 60, 'root_domain': 'a.b'}
    """

    env = os.environ if environ is None else environ
    for name, (path, typed) in ENV_KEYS.items():
        raw = env.get(name)
        if raw is None or raw == "":
            continue
        value = _parse_yaml_value(raw) if typed else raw
        node = cfg
        for part in path[:-1]:
            child = node.get(part)
            if isinstance(child, str) and part == "provider":
                child = {"type": child}
                node[part] = child
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node.setdefault(path[-1], value)

    if _truthy(env.get("DEBUG", "")):
        logging_cfg = cfg.get("logging")
        if not isinstance(logging_cfg, dict):
            logging_cfg = {}
            cfg["logging"] = logging_cfg
        logging_cfg.setdefault("level", "debug")
    return cfg


def read_config_file(config_path: Optional[str]) -> Dict[str, Any]:
    """Brief: Read the optional YAML file into a mapping ({} when no path)."""

    if not config_path:
        return {}
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Failed to read config {config_path}: {exc}") from exc
    if not isinstance(cfg, dict):
        raise ConfigurationError("Configuration root must be a mapping")
    return cfg


def load_config(
    config_path: Optional[str] = None,
    *,
    cli_vars: Optional[List[str]] = None,
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> AgentConfig:
    """Brief: Build the AgentConfig from YAML, environment and CLI input.

    Inputs:
      - config_path: Optional YAML file path.
      - cli_vars: `KEY=YAML` assignments from --var.
      - environ: Optional environment mapping (defaults to os.environ).
      - overrides: Top-level keys set by CLI flags (win over everything).

    Outputs:
      - AgentConfig.

    Raises:
      - ConfigurationError: unreadable YAML, schema violations, invalid
        variables, or a missing root_domain for providers that need one.
    """

    cfg = read_config_file(config_path)
    try:
        parse_config_variables(cfg, cli_vars=cli_vars, environ=environ)
        apply_environment(cfg, environ)
        for key, value in (overrides or {}).items():
            if isinstance(value, dict) and isinstance(cfg.get(key), dict):
                cfg[key].update(value)
            else:
                cfg[key] = value
        validate_config(cfg, config_path=config_path)
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc

    try:
        agent = AgentConfig(**cfg)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc

    if not agent.provider.type.strip():
        raise ConfigurationError("PROVIDER is not set")
    if not agent.root_domain and not agent.uses_public_dns():
        raise ConfigurationError("ROOT_DOMAIN is not set")
    return agent
