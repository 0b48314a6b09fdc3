"""Anthropic Claude provider using anthropic SDK with native async streaming."""

import logging
import time
from collections.abc import AsyncIterator

import anthropic as anthropic_sdk

from ai_consensus.providers.base import AIProvider, ProviderError, stream_with_timeout
from config.config_loader import ProviderConfig

logger = logging.getLogger(__name__)


class AnthropicProvider(AIProvider):
    """Anthropic Claude provider via anthropic SDK."""

    def __init__(self, config: ProviderConfig, api_key: str, model: str) -> None:
        self._config = config
        self._model = model
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = anthropic_sdk.AsyncAnthropic(api_key=api_key)

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._model

    async def stream_text(self, prompt: str, system: str | None = None) -> AsyncIterator[str]:
        kwargs = {
            "model": self._model,
            "max_tokens": self._config.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system

        start = time.monotonic()
        received = 0
        try:
            async with self._client.messages.stream(**kwargs) as stream:
                async for text in stream_with_timeout(stream.text_stream, self._config.timeout_sec):
                    if text:
                        received += len(text)
                        yield text
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except anthropic_sdk.APIError as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"Unexpected error: {exc}") from exc

        if not received:
            raise ProviderError(self._config.name, "Empty response content")

        logger.info("Anthropic %s: %.2fs, %d chars", self._model, time.monotonic() - start, received)
