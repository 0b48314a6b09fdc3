"""Provider routing: decide which transport reaches a model with the keys at hand.

Pure functions. Direct provider keys take priority over the gateway; a model
with neither key has no route.
"""

import logging
from collections.abc import Iterable, Mapping

from ai_consensus.errors import ConfigurationError
from ai_consensus.models import KeySet, RouteInfo

logger = logging.getLogger(__name__)

DIRECT_PROVIDERS: tuple[str, ...] = ("anthropic", "openai", "google")

# Bare-id name prefix -> provider. Extended through settings.yaml (routing.family_prefixes).
DEFAULT_FAMILY_PREFIXES: dict[str, str] = {
    "claude": "anthropic",
    "gpt": "openai",
    "chatgpt": "openai",
    "o1": "openai",
    "o3": "openai",
    "o4": "openai",
    "gemini": "google",
}


def is_direct_provider(provider: str, direct_providers: Iterable[str] = DIRECT_PROVIDERS) -> bool:
    return provider in tuple(direct_providers)


def extract_direct_model_id(model_id: str) -> str:
    """Strip the provider prefix from a compound id.

    "openai/gpt-4o" -> "gpt-4o"; "gpt-4o" -> "gpt-4o".
    Only the first segment is removed, so nested ids keep their tail.
    """
    if "/" in model_id:
        return model_id.split("/", 1)[1]
    return model_id


def resolve_provider(
    model_id: str,
    family_prefixes: Mapping[str, str] = DEFAULT_FAMILY_PREFIXES,
) -> str | None:
    """Resolve the provider from a compound id prefix or a known bare-id family.

    Returns None when the id is bare and matches no known family.
    """
    if "/" in model_id:
        return model_id.split("/", 1)[0] or None

    lowered = model_id.lower()
    # Longest prefix first so "chatgpt" is not shadowed by a shorter entry.
    for prefix in sorted(family_prefixes, key=len, reverse=True):
        if lowered.startswith(prefix):
            return family_prefixes[prefix]
    return None


def get_route_for_model(
    model_id: str,
    keys: KeySet,
    fallback_provider: str | None = None,
    *,
    family_prefixes: Mapping[str, str] = DEFAULT_FAMILY_PREFIXES,
    direct_providers: Iterable[str] = DIRECT_PROVIDERS,
) -> RouteInfo | None:
    """Pick a transport for ``model_id``.

    Priority:
        1. direct, when the provider is direct-capable and its key exists
        2. gateway, when the gateway key exists (id re-prefixed if bare)
        3. None (no route)
    """
    provider = resolve_provider(model_id, family_prefixes) or fallback_provider
    if not provider:
        return None

    if is_direct_provider(provider, direct_providers) and keys.direct_key(provider):
        return RouteInfo(source="direct", provider=provider, model_id=extract_direct_model_id(model_id))

    if keys.gateway:
        gateway_id = model_id if "/" in model_id else f"{provider}/{model_id}"
        return RouteInfo(source="gateway", provider=provider, model_id=gateway_id)

    return None


def require_route(
    model_id: str,
    keys: KeySet,
    fallback_provider: str | None = None,
    *,
    family_prefixes: Mapping[str, str] = DEFAULT_FAMILY_PREFIXES,
    direct_providers: Iterable[str] = DIRECT_PROVIDERS,
) -> RouteInfo:
    """Like get_route_for_model, but a missing route raises ConfigurationError."""
    route = get_route_for_model(
        model_id,
        keys,
        fallback_provider,
        family_prefixes=family_prefixes,
        direct_providers=direct_providers,
    )
    if route is None:
        provider = resolve_provider(model_id, family_prefixes) or fallback_provider or "unknown"
        raise ConfigurationError(
            f"No route for model '{model_id}' (provider: {provider}). "
            f"Add a {provider} key or a gateway key."
        )
    logger.debug("Route for %s: %s via %s", model_id, route.model_id, route.source)
    return route


def can_access_model(
    model_id: str,
    keys: KeySet,
    fallback_provider: str | None = None,
    *,
    family_prefixes: Mapping[str, str] = DEFAULT_FAMILY_PREFIXES,
    direct_providers: Iterable[str] = DIRECT_PROVIDERS,
) -> bool:
    route = get_route_for_model(
        model_id,
        keys,
        fallback_provider,
        family_prefixes=family_prefixes,
        direct_providers=direct_providers,
    )
    return route is not None
