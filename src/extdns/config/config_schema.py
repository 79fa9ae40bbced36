"""JSON Schema-based validation for the extdns YAML configuration.

This module validates the merged configuration mapping (YAML file, environment
and CLI variables) against ``assets/config-schema.json`` before it is parsed
into the typed AgentConfig model.
"""

from __future__ import annotations

import copy
import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from jsonschema import Draft202012Validator, ValidationError
from jsonschema.exceptions import SchemaError

logger = logging.getLogger(__name__)

_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)\}")
VAR_NAME = re.compile(r"[A-Z_][A-Z0-9_]*")


def expand_variables(cfg: Dict[str, Any]) -> None:
    """Brief: Expand the top-level `vars` mapping into the config and drop it.

    Inputs:
      - cfg: Parsed YAML configuration mapping (mutated in-place).

    Outputs:
      - None.

    Behavior:
      - Replaces `${KEY}` occurrences inside strings; unknown keys are left
        untouched.
      - A string value that is exactly `$KEY` or `${KEY}` is replaced with the
        variable's YAML value (int/bool/list/dict keep their type).
      - Variables may reference each other; cycles raise ValueError.

    Example:
      >>> cfg = {"vars": {"ZONE": "example.com"}, "root_domain": "${ZONE}"}
      >>> expand_variables(cfg)
      >>> cfg
      {'root_domain': 'example.com'}
    """

    variables = cfg.get("vars")
    if variables is None:
        cfg.pop("vars", None)
        return
    if not isinstance(variables, dict):
        raise ValueError("config.vars must be a mapping when present")

    for k in variables.keys():
        if not isinstance(k, str) or not VAR_NAME.fullmatch(k):
            raise ValueError(f"config.vars key {k!r} must match [A-Z_][A-Z0-9_]*")

    resolved: Dict[str, Any] = {}

    def _resolve_var(key: str, stack: List[str]) -> Any:
        if key in resolved:
            return resolved[key]
        if key in stack:
            cycle = " -> ".join(stack + [key])
            raise ValueError(f"config.vars contains a cycle: {cycle}")
        if key not in variables:
            raise KeyError(key)
        value = _expand_obj(variables[key], stack + [key])
        resolved[key] = value
        return value

    def _whole_node(text: str) -> Optional[str]:
        if text.startswith("${") and text.endswith("}") and text[2:-1] in variables:
            return text[2:-1]
        if text.startswith("$") and text[1:] in variables:
            return text[1:]
        return None

    def _expand_string(text: str, stack: List[str]) -> Any:
        name = _whole_node(text)
        if name is not None:
            return copy.deepcopy(_resolve_var(name, stack))

        def _repl(match: re.Match[str]) -> str:
            try:
                v = _resolve_var(match.group(1), stack)
            except KeyError:
                return match.group(0)
            if isinstance(v, bool):
                return "true" if v else "false"
            if v is None:
                return "null"
            if isinstance(v, (int, float, str)):
                return str(v)
            return json.dumps(v)

        return _VAR_PATTERN.sub(_repl, text)

    def _expand_obj(obj: Any, stack: List[str]) -> Any:
        if isinstance(obj, str):
            return _expand_string(obj, stack)
        if isinstance(obj, list):
            return [_expand_obj(item, stack) for item in obj]
        if isinstance(obj, dict):
            return {k: _expand_obj(v, stack) for k, v in obj.items()}
        return obj

    for k in list(variables.keys()):
        _resolve_var(k, [])

    for top_key in list(cfg.keys()):
        if top_key == "vars":
            continue
        cfg[top_key] = _expand_obj(cfg[top_key], [])
    cfg.pop("vars", None)


def _normalize_provider_for_validation(cfg: Dict[str, Any]) -> None:
    """Brief: Accept `provider: <name>` as shorthand for `provider: {type: <name>}`."""

    provider = cfg.get("provider")
    if isinstance(provider, str):
        cfg["provider"] = {"type": provider}
    elif isinstance(provider, dict) and provider.get("config") is None:
        provider.pop("config", None)


def get_default_schema_path() -> Path:
    """Brief: Resolve the default JSON Schema path for configuration.

    Outputs:
      - Path to ``assets/config-schema.json`` in the nearest ancestor that has
        one (source checkout), else the path next to the installed package.
    """

    here = Path(__file__).resolve()
    for ancestor in here.parents:
        candidate = ancestor / "assets" / "config-schema.json"
        if candidate.is_file():
            return candidate
    return here.parents[3] / "assets" / "config-schema.json"


def _load_schema(schema_path: Optional[Path] = None) -> Dict[str, Any]:
    path = schema_path or get_default_schema_path()
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def _format_errors(errors: List[ValidationError], *, config_path: Optional[str]) -> str:
    """Brief: Format jsonschema validation errors into a human-readable string."""

    lines: List[str] = [f"Invalid configuration in {config_path or '<config dict>'}:"]
    for err in errors:
        instance_path = "/".join(str(p) for p in err.path) or "<root>"
        schema_path = "/".join(str(p) for p in err.schema_path)
        lines.append(f"- {instance_path}: {err.message} (schema: {schema_path})")
    return "\n".join(lines)


def _split_extra_property_errors(
    errors: List[ValidationError],
) -> tuple[List[ValidationError], List[ValidationError]]:
    """Partition errors into (unexpected-property errors, everything else)."""

    extra: List[ValidationError] = []
    other: List[ValidationError] = []
    for err in errors:
        if getattr(err, "validator", None) in {
            "additionalProperties",
            "unevaluatedProperties",
        }:
            extra.append(err)
        else:
            other.append(err)
    return extra, other


def validate_config(
    cfg: Dict[str, Any],
    *,
    schema_path: Optional[Path] = None,
    config_path: Optional[str] = None,
    unknown_keys: str = "warn",
) -> None:
    """Brief: Validate a merged configuration mapping against JSON Schema.

    Inputs:
      - cfg: Configuration mapping (mutated in-place by variable expansion and
        provider shorthand normalization).
      - schema_path: Optional explicit path to the JSON Schema file.
      - config_path: Optional YAML path, used only for error messages.
      - unknown_keys: "ignore", "warn" (default) or "error" for keys the
        schema does not describe.

    Outputs:
      - None on success.

    Raises:
      - ValueError: on any non-extra validation failure, or on extra keys when
        unknown_keys is "error".

    Example:
      >>> validate_config({"root_domain": "example.com", "provider": "route53"})
    """
    if unknown_keys not in {"ignore", "warn", "error"}:
        raise ValueError(
            f"unknown_keys policy must be 'ignore', 'warn', or 'error', got {unknown_keys!r}"
        )

    expand_variables(cfg)
    _normalize_provider_for_validation(cfg)

    effective_schema_path = schema_path or get_default_schema_path()
    if not effective_schema_path.is_file():
        logger.warning(
            "Configuration schema file %s not found; skipping JSON Schema validation",
            effective_schema_path,
        )
        return None

    try:
        schema = _load_schema(effective_schema_path)
        validator = Draft202012Validator(schema)
    except (OSError, json.JSONDecodeError, SchemaError) as exc:
        logger.warning(
            "Failed to load configuration schema at %s: %s; skipping JSON Schema validation",
            effective_schema_path,
            exc,
        )
        return None

    all_errors = sorted(validator.iter_errors(cfg), key=lambda e: list(e.path))
    if not all_errors:
        return None

    extra_errors, other_errors = _split_extra_property_errors(all_errors)
    if other_errors:
        raise ValueError(
            _format_errors(other_errors + extra_errors, config_path=config_path)
        )

    message = _format_errors(extra_errors, config_path=config_path)
    if unknown_keys == "warn":
        logger.warning(message)
    elif unknown_keys == "error":
        raise ValueError(message)
    return None
