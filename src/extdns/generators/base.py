"""FQDN generator value type and the name-template engine.

Brief:
  - Templates use "%{{name}}" placeholders, e.g.
    "%{{service_name}}.%{{stack_name}}.%{{environment_name}}".
  - Every substituted value is passed through sanitize_label(); the result is
    joined with the root domain and lowercased.
  - A generator is a plain value (name, default template, variable builder),
    so strategies are added by constructing values rather than subclassing.
"""

from __future__ import annotations

import dataclasses
import re
from typing import Callable, Dict, List, Optional, Protocol, Tuple, Union

from ..errors import TemplateError
from ..records import fqdn, sanitize_label

START_TAG = "%{{"
END_TAG = "}}"

PLACEHOLDERS = frozenset(
    {"service_name", "stack_name", "stack_uuid", "environment_name"}
)

# Literal template text must already be valid hostname material.
_LITERAL_RE = re.compile(r"^[A-Za-z0-9.-]*\Z")


class WorkloadLike(Protocol):
    name: str
    service_name: str
    stack_name: str
    stack_uuid: str


# A parsed template is a list of literal strings and placeholder markers.
_Token = Union[str, Tuple[str]]


def _literal(text: str, template: str) -> str:
    if not _LITERAL_RE.match(text):
        bad = sorted({ch for ch in text if not _LITERAL_RE.match(ch)})
        raise TemplateError(
            f"invalid character(s) {''.join(bad)!r} in literal text of fqdn template {template!r}"
        )
    return text


def parse_template(template: str) -> List[_Token]:
    """Brief: Split a template into literal text and placeholder tokens.

    Inputs:
      - template: Template string using %{{name}} placeholders.

    Outputs:
      - List where str items are literal text and 1-tuples hold placeholder
        names.

    Raises:
      - TemplateError on an unterminated tag, an unknown placeholder or
        literal text containing anything but letters, digits, "-" and ".".
    """
    tokens: List[_Token] = []
    pos = 0
    while True:
        start = template.find(START_TAG, pos)
        if start < 0:
            if pos < len(template):
                tokens.append(_literal(template[pos:], template))
            return tokens
        if start > pos:
            tokens.append(_literal(template[pos:start], template))
        end = template.find(END_TAG, start + len(START_TAG))
        if end < 0:
            raise TemplateError(
                f"unterminated placeholder at offset {start} in fqdn template {template!r}"
            )
        tag = template[start + len(START_TAG) : end].strip()
        if tag not in PLACEHOLDERS:
            raise TemplateError(f"invalid placeholder {tag!r} in fqdn template")
        tokens.append((tag,))
        pos = end + len(END_TAG)


def render_template(
    template: str, variables: Dict[str, str], root_domain: str
) -> str:
    """Brief: Expand a template and append the root domain.

    Inputs:
      - template: Template string.
      - variables: Mapping of placeholder name -> raw (unsanitised) value.
      - root_domain: Zone name, with or without trailing dot.

    Outputs:
      - Lowercase absolute fqdn.

    Example:
      >>> render_template("%{{stack_name}}.%{{service_name}}",
      ...                 {"service_name": "service1", "stack_name": "mystack"},
      ...                 "example.com")
      'mystack.service1.example.com.'
    """
    parts: List[str] = []
    for token in parse_template(template):
        if isinstance(token, tuple):
            parts.append(sanitize_label(variables.get(token[0], "")))
        else:
            parts.append(token)
    name = "".join(parts) + "." + root_domain.rstrip(".")
    return fqdn(name.lower())


def effective_service_name(container: WorkloadLike) -> str:
    # Standalone containers inside a stack have no service; use their name.
    if not container.service_name and container.stack_name:
        return container.name
    return container.service_name


def stack_prefix(stack_uuid: str) -> str:
    if not stack_uuid:
        return "nSUUID"
    return stack_uuid[:6]


VariableBuilder = Callable[[WorkloadLike, str], Dict[str, str]]
CustomFn = Callable[[WorkloadLike, str, str], str]


@dataclasses.dataclass(frozen=True)
class FqdnGenerator:
    """Brief: One fqdn naming strategy.

    Inputs (constructor):
      - name: Canonical registry name (e.g. "Default").
      - default_template: Template used when no name_template is configured.
      - variables: Callable(container, environment_name) -> placeholder map.
      - aliases: Extra names accepted by the registry.
      - custom: Optional callable(container, environment_name, root_domain)
        returning an fqdn directly; templates are ignored when set.

    Outputs:
      - Immutable generator value; see generate().
    """

    name: str
    default_template: str = ""
    variables: Optional[VariableBuilder] = None
    aliases: Tuple[str, ...] = ()
    custom: Optional[CustomFn] = None

    def template_for(self, template: Optional[str]) -> str:
        return template or self.default_template

    def validate(self, template: Optional[str]) -> None:
        if self.custom is None:
            parse_template(self.template_for(template))

    def generate(
        self,
        template: Optional[str],
        container: WorkloadLike,
        environment_name: str,
        root_domain: str,
    ) -> str:
        """Return the absolute lowercase fqdn for container."""
        if self.custom is not None:
            return fqdn(self.custom(container, environment_name, root_domain).lower())
        builder = self.variables or default_variables
        return render_template(
            self.template_for(template),
            builder(container, environment_name),
            root_domain,
        )


def default_variables(container: WorkloadLike, environment_name: str) -> Dict[str, str]:
    return {
        "service_name": effective_service_name(container),
        "stack_name": container.stack_name,
        "stack_uuid": stack_prefix(container.stack_uuid),
        "environment_name": environment_name,
    }


def custom(name: str, fn: CustomFn, *aliases: str) -> FqdnGenerator:
    """Build a generator whose fqdn comes straight from fn."""
    return FqdnGenerator(name=name, custom=fn, aliases=tuple(aliases))
