"""Tests for ai_consensus/routing.py."""

import pytest

from ai_consensus.errors import ConfigurationError
from ai_consensus.models import KeySet
from ai_consensus.routing import (
    can_access_model,
    extract_direct_model_id,
    get_route_for_model,
    is_direct_provider,
    require_route,
    resolve_provider,
)


def test_extract_direct_model_id_strips_first_segment():
    assert extract_direct_model_id("openai/gpt-4o") == "gpt-4o"
    assert extract_direct_model_id("gpt-4o") == "gpt-4o"
    assert extract_direct_model_id("a/b/c") == "b/c"


def test_is_direct_provider():
    assert is_direct_provider("anthropic")
    assert is_direct_provider("google")
    assert not is_direct_provider("meta-llama")


@pytest.mark.parametrize(
    "model_id,expected",
    [
        ("anthropic/claude-sonnet-4.5", "anthropic"),
        ("meta-llama/llama-3.1-70b", "meta-llama"),
        ("claude-opus-4", "anthropic"),
        ("gpt-5", "openai"),
        ("chatgpt-4o-latest", "openai"),
        ("o3-mini", "openai"),
        ("Gemini-2.5-pro", "google"),
        ("mistral-large", None),
    ],
)
def test_resolve_provider(model_id, expected):
    assert resolve_provider(model_id) == expected


def test_resolve_provider_uses_configured_families():
    assert resolve_provider("grok-4", {"grok": "x-ai"}) == "x-ai"
    assert resolve_provider("grok-4") is None


def test_gateway_only_routes_everything_prefixed():
    keys = KeySet(gateway="or-key")

    route = get_route_for_model("anthropic/claude-sonnet-4.5", keys)
    assert route.source == "gateway"
    assert route.model_id == "anthropic/claude-sonnet-4.5"

    route = get_route_for_model("gpt-5", keys)
    assert route.source == "gateway"
    assert route.model_id == "openai/gpt-5"

    route = get_route_for_model("meta-llama/llama-3.1-70b", keys)
    assert route.source == "gateway"
    assert route.provider == "meta-llama"


def test_direct_key_only():
    keys = KeySet(anthropic="sk-ant")

    route = get_route_for_model("anthropic/claude-sonnet-4.5", keys)
    assert route.source == "direct"
    assert route.provider == "anthropic"
    assert route.model_id == "claude-sonnet-4.5"

    assert get_route_for_model("openai/gpt-5", keys) is None


def test_direct_key_wins_over_gateway():
    keys = KeySet(openai="sk-openai", gateway="or-key")
    route = get_route_for_model("openai/gpt-5", keys)
    assert route.source == "direct"
    assert route.model_id == "gpt-5"


def test_unknown_bare_model_uses_fallback_provider():
    keys = KeySet(gateway="or-key")
    assert get_route_for_model("mystery-model", keys) is None
    route = get_route_for_model("mystery-model", keys, fallback_provider="mistralai")
    assert route.model_id == "mistralai/mystery-model"


def test_require_route_raises_configuration_error():
    with pytest.raises(ConfigurationError, match="openai"):
        require_route("openai/gpt-5", KeySet(anthropic="sk-ant"))


def test_can_access_model():
    keys = KeySet(google="g-key")
    assert can_access_model("gemini-2.5-pro", keys)
    assert not can_access_model("claude-opus-4", keys)


def test_can_access_model_uses_configured_routing_tables():
    keys = KeySet(gateway="or-key")
    prefixes = {"grok": "x-ai"}
    # unknown family without the configured table
    assert not can_access_model("grok-4", keys)
    assert can_access_model("grok-4", keys, family_prefixes=prefixes)
    assert can_access_model("grok-4", keys, family_prefixes=prefixes) == (
        get_route_for_model("grok-4", keys, family_prefixes=prefixes) is not None
    )
    # google not direct-capable here, and no gateway key
    assert not can_access_model("gemini-2.5-pro", KeySet(google="g-key"), direct_providers=("anthropic",))
