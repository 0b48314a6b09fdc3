"""Build a provider client for a resolved route."""

import logging

from ai_consensus.errors import ConfigurationError
from ai_consensus.models import KeySet, RouteInfo
from ai_consensus.providers.anthropic import AnthropicProvider
from ai_consensus.providers.base import AIProvider
from ai_consensus.providers.gateway import GatewayProvider
from ai_consensus.providers.gemini import GeminiProvider
from ai_consensus.providers.openai_provider import OpenAIProvider
from config.config_loader import AppConfig

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: dict[str, type[AIProvider]] = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
    "google": GeminiProvider,
}


def create_provider(route: RouteInfo, keys: KeySet, config: AppConfig) -> AIProvider:
    """Return a client for ``route``. The route's model id is used verbatim.

    Raises:
        ConfigurationError: If the route needs a key or settings that are absent.
    """
    if route.source == "gateway":
        if not keys.gateway:
            raise ConfigurationError("Gateway route selected but no gateway key is configured")
        return GatewayProvider(config.gateway, keys.gateway, route.model_id)

    provider_cls = PROVIDER_CLASSES.get(route.provider)
    provider_cfg = config.providers.get(route.provider)
    api_key = keys.direct_key(route.provider)
    if provider_cls is None or provider_cfg is None:
        raise ConfigurationError(f"Provider '{route.provider}' has no direct client")
    if not api_key:
        raise ConfigurationError(f"Direct route selected but no {route.provider} key is configured")

    logger.debug("Creating %s client for %s", provider_cls.__name__, route.model_id)
    return provider_cls(provider_cfg, api_key, route.model_id)
