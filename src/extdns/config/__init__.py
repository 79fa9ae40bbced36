"""Configuration loading, schema validation and logging setup."""

from .config_parser import AgentConfig, load_config
from .config_schema import validate_config
from .logging_config import init_logging

__all__ = ["AgentConfig", "init_logging", "load_config", "validate_config"]
