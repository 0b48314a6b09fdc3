"""Abstract base for all AI model providers.

Every provider streams text. Structured output is layered on top: the JSON
text stream is re-parsed as it grows and each new partial object is yielded,
while the raw text is kept for final recovery and validation.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterable, AsyncIterator
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic_core import from_json

from ai_consensus.errors import ConsensusError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_JSON_INSTRUCTION = (
    "You must respond with a single valid JSON object only. "
    "No markdown, no explanations outside the JSON."
)


class ProviderError(ConsensusError):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


async def stream_with_timeout(chunks: AsyncIterable[T], timeout_sec: float) -> AsyncIterator[T]:
    """Re-yield ``chunks``, raising TimeoutError once ``timeout_sec`` has elapsed overall.

    The deadline is checked around each chunk so the timeout never spans a yield.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_sec
    iterator = aiter(chunks)
    while True:
        remaining = deadline - loop.time()
        if remaining <= 0:
            raise TimeoutError(f"stream exceeded {timeout_sec}s")
        try:
            chunk = await asyncio.wait_for(anext(iterator), timeout=remaining)
        except StopAsyncIteration:
            return
        yield chunk


def parse_partial_json(text: str) -> dict[str, Any] | None:
    """Best-effort parse of an incomplete JSON object. None until an object is visible."""
    start = text.find("{")
    if start == -1:
        return None
    try:
        value = from_json(text[start:], allow_partial=True)
    except ValueError:
        return None
    return value if isinstance(value, dict) else None


class ObjectStream:
    """Async iterator of partial objects from a JSON text stream.

    ``text`` holds everything received so far; it is complete once iteration ends.
    """

    def __init__(self, chunks: AsyncIterable[str]) -> None:
        self._chunks = chunks
        self.text = ""

    def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[dict[str, Any]]:
        last: dict[str, Any] | None = None
        async for chunk in self._chunks:
            self.text += chunk
            partial = parse_partial_json(self.text)
            if partial is not None and partial != last:
                last = partial
                yield partial


class AIProvider(ABC):
    """Abstract base for all AI model providers."""

    @abstractmethod
    def name(self) -> str:
        """Return the short provider name (e.g. 'anthropic', 'gateway')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the model identifier exactly as sent to the API."""
        ...

    @abstractmethod
    def stream_text(self, prompt: str, system: str | None = None) -> AsyncIterator[str]:
        """Stream the response text for ``prompt`` as it is generated.

        Raises:
            ProviderError: On API failure, timeout, or empty response.
        """
        ...

    def _stream_json(self, prompt: str, system: str | None) -> AsyncIterator[str]:
        """Text stream used for structured output. Providers with a native JSON mode override this."""
        return self.stream_text(prompt, system)

    async def generate(self, prompt: str, system: str | None = None) -> str:
        """Collect the full streamed response."""
        parts = [chunk async for chunk in self.stream_text(prompt, system)]
        content = "".join(parts)
        if not content.strip():
            raise ProviderError(self.name(), "Empty response content")
        return content

    def stream_object(
        self,
        prompt: str,
        schema: type[BaseModel],
        system: str | None = None,
    ) -> ObjectStream:
        """Stream partial objects for ``schema``. Validation is left to the caller."""
        json_schema = json.dumps(schema.model_json_schema(by_alias=True), indent=2)
        structured_system = "\n\n".join(
            part for part in (system, f"JSON schema:\n{json_schema}", _JSON_INSTRUCTION) if part
        )
        return ObjectStream(self._stream_json(prompt, structured_system))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name()}, model={self.model_string()})"
