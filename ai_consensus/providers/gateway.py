"""Multi-provider gateway (OpenRouter) via the OpenAI-compatible API."""

from openai import AsyncOpenAI

from ai_consensus.providers.base import ProviderError
from ai_consensus.providers.openai_provider import OpenAIProvider
from config.config_loader import ProviderConfig


class GatewayProvider(OpenAIProvider):
    """Any ``provider/model`` id through one gateway key."""

    json_mode = False

    def __init__(self, config: ProviderConfig, api_key: str, model: str) -> None:
        if not config.base_url:
            raise ProviderError(config.name, "base_url is required for the gateway provider")
        super().__init__(config, api_key, model)

    def _make_client(self, api_key: str) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=api_key, base_url=self._config.base_url)
