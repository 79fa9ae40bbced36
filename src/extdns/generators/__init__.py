"""FQDN generators: naming strategies that turn workloads into DNS names."""

from .base import (
    PLACEHOLDERS,
    FqdnGenerator,
    custom,
    parse_template,
    render_template,
)
from .registry import (
    DEFAULT,
    PUBLIC_DNS,
    SKIP_ENV,
    GeneratorRegistry,
    default_generators,
)

__all__ = [
    "PLACEHOLDERS",
    "FqdnGenerator",
    "custom",
    "parse_template",
    "render_template",
    "DEFAULT",
    "PUBLIC_DNS",
    "SKIP_ENV",
    "GeneratorRegistry",
    "default_generators",
]
