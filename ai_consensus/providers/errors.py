"""Classify provider failures into user-facing error types."""

from typing import Literal

from ai_consensus.errors import ConfigurationError

ErrorType = Literal["rate-limit", "gateway-privacy", "provider-not-found", "generic"]

_MAX_DEPTH = 5


def _error_chain(exc: BaseException) -> list[BaseException]:
    chain: list[BaseException] = []
    current: BaseException | None = exc
    while current is not None and len(chain) <= _MAX_DEPTH:
        chain.append(current)
        current = current.__cause__ or current.__context__
    return chain


def classify_provider_error(exc: BaseException) -> tuple[ErrorType, str]:
    """Return (error_type, message) for a failed model call.

    SDK errors arrive wrapped in ProviderError, so status codes and response
    bodies are looked up along the cause chain.
    """
    if isinstance(exc, ConfigurationError):
        return "provider-not-found", str(exc)

    chain = _error_chain(exc)
    status_codes = {getattr(e, "status_code", None) for e in chain}
    text = " ".join(str(e) for e in chain).lower()

    if 429 in status_codes or "rate-limited" in text or "rate limit" in text:
        return (
            "rate-limit",
            "This model is temporarily rate-limited. Wait a moment and try again, "
            "or add a direct API key for higher limits.",
        )
    if "data policy" in text or "no endpoints found matching" in text:
        return (
            "gateway-privacy",
            "The gateway's privacy settings block this model. Update the data policy "
            "settings of the gateway account.",
        )
    return "generic", str(exc)
