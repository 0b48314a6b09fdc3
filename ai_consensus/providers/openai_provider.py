"""OpenAI provider using openai SDK with native async streaming."""

import logging
import time
from collections.abc import AsyncIterator

import openai
from openai import AsyncOpenAI

from ai_consensus.providers.base import AIProvider, ProviderError, stream_with_timeout
from config.config_loader import ProviderConfig

logger = logging.getLogger(__name__)


class OpenAIProvider(AIProvider):
    """OpenAI provider via openai SDK."""

    # Chat Completions JSON mode; OpenAI-compatible gateways may not support it.
    json_mode = True

    def __init__(self, config: ProviderConfig, api_key: str, model: str) -> None:
        self._config = config
        self._model = model
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = self._make_client(api_key)

    def _make_client(self, api_key: str) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=api_key)

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._model

    def _messages(self, prompt: str, system: str | None) -> list[dict[str, str]]:
        messages = [{"role": "user", "content": prompt}]
        if system:
            messages.insert(0, {"role": "system", "content": system})
        return messages

    async def _stream(self, prompt: str, system: str | None, **extra) -> AsyncIterator[str]:
        start = time.monotonic()
        received = 0
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=self._messages(prompt, system),
                max_tokens=self._config.max_tokens,
                stream=True,
                **extra,
            )
            async for chunk in stream_with_timeout(_deltas(response), self._config.timeout_sec):
                received += len(chunk)
                yield chunk
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except openai.OpenAIError as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"Unexpected error: {exc}") from exc

        if not received:
            raise ProviderError(self._config.name, "Empty response content")

        logger.info("%s %s: %.2fs, %d chars", self._config.name, self._model, time.monotonic() - start, received)

    def stream_text(self, prompt: str, system: str | None = None) -> AsyncIterator[str]:
        return self._stream(prompt, system)

    def _stream_json(self, prompt: str, system: str | None) -> AsyncIterator[str]:
        if self.json_mode:
            return self._stream(prompt, system, response_format={"type": "json_object"})
        return self._stream(prompt, system)


async def _deltas(response) -> AsyncIterator[str]:
    async for chunk in response:
        choice = chunk.choices[0] if chunk.choices else None
        if choice and choice.delta and choice.delta.content:
            yield choice.delta.content
