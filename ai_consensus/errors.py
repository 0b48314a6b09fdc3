"""Error taxonomy for a consensus run.

ProviderError (a single model call failing) lives in providers/base.py,
next to the provider interface that raises it.
"""


class ConsensusError(Exception):
    """Base class for consensus errors."""


class ConfigurationError(ConsensusError):
    """Invalid request or environment: no route, too few models, bad bounds.

    Never retried.
    """


class JudgeParsingError(ConsensusError):
    """The judge's output could not be turned into a valid evaluation."""

    def __init__(self, message: str, raw_text: str = "") -> None:
        self.raw_text = raw_text
        super().__init__(message)


class ConversationFailure(ConsensusError):
    """Terminal failure of a conversation. Carries the round it happened in."""

    def __init__(self, message: str, round_number: int | None = None) -> None:
        self.round_number = round_number
        super().__init__(message)
