"""Gemini provider using google-genai SDK with native async streaming."""

import logging
import time
from collections.abc import AsyncIterator

from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from ai_consensus.providers.base import AIProvider, ProviderError, stream_with_timeout
from config.config_loader import ProviderConfig

logger = logging.getLogger(__name__)


class GeminiProvider(AIProvider):
    """Google Gemini provider via google-genai SDK."""

    def __init__(self, config: ProviderConfig, api_key: str, model: str) -> None:
        self._config = config
        self._model = model
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = genai.Client(api_key=api_key)

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._model

    async def _stream(self, prompt: str, system: str | None, mime_type: str | None) -> AsyncIterator[str]:
        start = time.monotonic()
        received = 0
        try:
            response = await self._client.aio.models.generate_content_stream(
                model=self._model,
                contents=prompt,
                config=genai_types.GenerateContentConfig(
                    max_output_tokens=self._config.max_tokens,
                    system_instruction=system,
                    response_mime_type=mime_type,
                ),
            )
            async for chunk in stream_with_timeout(_texts(response), self._config.timeout_sec):
                received += len(chunk)
                yield chunk
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except genai_errors.APIError as exc:
            raise ProviderError(self._config.name, f"API call failed: {exc}") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"Unexpected error: {exc}") from exc

        if not received:
            raise ProviderError(self._config.name, "Empty response text")

        logger.info("Gemini %s: %.2fs, %d chars", self._model, time.monotonic() - start, received)

    def stream_text(self, prompt: str, system: str | None = None) -> AsyncIterator[str]:
        return self._stream(prompt, system, None)

    def _stream_json(self, prompt: str, system: str | None) -> AsyncIterator[str]:
        return self._stream(prompt, system, "application/json")


async def _texts(response) -> AsyncIterator[str]:
    async for chunk in response:
        if chunk.text:
            yield chunk.text
