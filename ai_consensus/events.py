"""Lifecycle events emitted by a consensus run, serializable as NDJSON lines."""

import json
from dataclasses import dataclass, field
from typing import Any, Literal

EventType = Literal[
    "start",
    "round-start",
    "search-start",
    "search-complete",
    "search-error",
    "participant-chunk",
    "participant-complete",
    "participant-error",
    "evaluation-start",
    "evaluation-partial",
    "evaluation-complete",
    "refinement-prompts",
    "synthesis-start",
    "synthesis-chunk",
    "progression-summary-start",
    "progression-summary-chunk",
    "final",
    "error",
]

# Event types after which nothing else is emitted.
TERMINAL_EVENTS = frozenset({"final", "error"})


@dataclass(frozen=True)
class ConsensusEvent:
    type: EventType
    round: int | None = None
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_EVENTS

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": self.type}
        if self.round is not None:
            payload["round"] = self.round
        if self.data:
            payload["data"] = self.data
        return payload

    def to_json(self) -> str:
        """One NDJSON line (no trailing newline)."""
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)
