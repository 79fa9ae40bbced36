"""
Brief: Tests for extdns.generators templates, built-in strategies and registry.

Inputs:
  - None

Outputs:
  - None
"""

import pytest

from extdns.errors import ConfigurationError, TemplateError
from extdns.generators import (
    DEFAULT,
    PUBLIC_DNS,
    SKIP_ENV,
    FqdnGenerator,
    GeneratorRegistry,
    custom,
    default_generators,
    parse_template,
    render_template,
)
from extdns.metadata import Container


def _container(**kw):
    base = {
        "name": "mystack-service1-1",
        "service_name": "service1",
        "stack_name": "mystack",
        "stack_uuid": "1a2b3c4d5e6f",
    }
    base.update(kw)
    return Container(**base)


def test_default_generator_uses_service_stack_environment():
    """
    Brief: Default renders <service>.<stack>.<environment>.<root>.

    Inputs:
      - None

    Outputs:
      - None
    """
    name = DEFAULT.generate(None, _container(), "Default", "example.com")
    assert name == "service1.mystack.default.example.com."


def test_skip_env_generator_omits_environment():
    """
    Brief: SkipEnv renders <service>.<stack>.<root>.

    Inputs:
      - None

    Outputs:
      - None
    """
    assert SKIP_ENV.generate(None, _container(), "prod", "example.com.") == "service1.mystack.example.com."


def test_public_dns_generator_uses_stack_uuid_prefix():
    """
    Brief: PublicDNS uses the first six stack UUID chars, or nSUUID when empty.

    Inputs:
      - None

    Outputs:
      - None
    """
    assert PUBLIC_DNS.generate(None, _container(), "e", "r.io") == "service1-1a2b3c.r.io."
    assert PUBLIC_DNS.generate(None, _container(stack_uuid=""), "e", "r.io") == "service1-nsuuid.r.io."


def test_custom_template_sanitizes_and_lowercases():
    """
    Brief: Placeholder values are sanitized; output is lowercase.

    Inputs:
      - None

    Outputs:
      - None
    """
    c = _container(service_name="My_Service", stack_name="Stack.One")
    name = DEFAULT.generate("%{{stack_name}}-%{{service_name}}", c, "env", "Example.com")
    assert name == "stack-one-my-service.example.com."


def test_standalone_container_falls_back_to_container_name():
    """
    Brief: A container in a stack without a service uses its own name.

    Inputs:
      - None

    Outputs:
      - None
    """
    c = _container(service_name="", name="worker")
    assert SKIP_ENV.generate(None, c, "e", "example.com") == "worker.mystack.example.com."


@pytest.mark.parametrize(
    "template",
    ["%{{service_name}.x", "%{{unknown}}", "%{{stack_name}}.%{{hostname}}"],
)
def test_invalid_templates_raise_template_error(template):
    """
    Brief: Unterminated tags and unknown placeholders raise TemplateError.

    Inputs:
      - template: invalid template

    Outputs:
      - None
    """
    with pytest.raises(TemplateError):
        parse_template(template)
    with pytest.raises(ConfigurationError):
        DEFAULT.validate(template)


@pytest.mark.parametrize(
    "template",
    ["%{{service_name}}_x", "%{{service_name}}.my zone", "web/%{{stack_name}}", "%{{service_name}}.ünï"],
)
def test_literal_text_outside_hostname_charset_is_rejected(template):
    """
    Brief: Literal template text is not sanitised, so characters that cannot
    appear in a hostname are rejected up front.

    Inputs:
      - template: template whose literal part holds an invalid character

    Outputs:
      - None
    """
    with pytest.raises(TemplateError) as excinfo:
        parse_template(template)
    assert "literal text" in str(excinfo.value)
    with pytest.raises(ConfigurationError):
        DEFAULT.validate(template)


def test_parse_template_tokens():
    """
    Brief: parse_template returns literal strings and placeholder tuples.

    Inputs:
      - None

    Outputs:
      - None
    """
    tokens = parse_template("svc-%{{ service_name }}.x")
    assert tokens == ["svc-", ("service_name",), ".x"]
    assert render_template("static", {}, "example.com") == "static.example.com."


def test_registry_normalizes_names_and_suggests():
    """
    Brief: Registry accepts class-style, dashed and underscored names.

    Inputs:
      - None

    Outputs:
      - None
    """
    reg = default_generators()
    assert reg.get("DefaultFQDNGenerator") is DEFAULT
    assert reg.get("public-dns") is PUBLIC_DNS
    assert reg.get("PublicDNSGenerator") is PUBLIC_DNS
    assert reg.get("skip_env") is SKIP_ENV
    assert "SkipEnv" in reg
    assert reg.names() == ["Default", "PublicDNS", "SkipEnv"]
    with pytest.raises(ConfigurationError, match="Suggestions"):
        reg.get("defualt")


def test_registry_rejects_duplicate_alias():
    """
    Brief: Registering two generators claiming one alias raises ValueError.

    Inputs:
      - None

    Outputs:
      - None
    """
    reg = GeneratorRegistry()
    reg.register(DEFAULT)
    with pytest.raises(ValueError, match="Duplicate"):
        reg.register(FqdnGenerator(name="Other", aliases=("default",)))


def test_custom_generator_bypasses_templates():
    """
    Brief: custom() generators compute the fqdn from a callable.

    Inputs:
      - None

    Outputs:
      - None
    """
    gen = custom("ByName", lambda c, env, root: f"{c.name}.{root}", "by-name")
    reg = GeneratorRegistry()
    reg.register(gen)
    assert reg.get("by-name") is gen
    gen.validate("%{{bogus}}")
    assert gen.generate(None, _container(name="Box"), "e", "example.com") == "box.example.com."
