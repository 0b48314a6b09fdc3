"""Judge evaluation: schema, recovery of structured output from free text, judge call.

Judges do not always return clean JSON. Extraction tries an ordered chain of
parsers and stops at the first success:

1. the raw text as JSON
2. the text with markdown code fences removed
3. the span from the first "{" to the last "}" (skipping a duplicated
   opening brace if the judge echoed one)

Every candidate is then validated against ``Evaluation``. If the structured
call yields nothing valid (or times out), the same prompt is re-issued once as
plain text and extracted again. After that the judge has failed; no score is
ever invented.
"""

import json
import logging
import re
from collections.abc import AsyncIterator, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from ai_consensus.errors import JudgeParsingError
from ai_consensus.models import ParticipantRef
from ai_consensus.prompts import band_for_score, build_evaluation_prompt, build_evaluation_system_prompt
from ai_consensus.providers.base import AIProvider, ProviderError, stream_with_timeout

logger = logging.getLogger(__name__)

Vibe = Literal["celebration", "agreement", "mixed", "disagreement", "clash"]


class Evaluation(BaseModel):
    """Validated judge verdict for one round."""

    model_config = ConfigDict(populate_by_name=True)

    score: int = Field(ge=0, le=100, description="Consensus score from 0-100, where 100 is perfect alignment")
    summary: str = Field("", description="1-2 sentence plain summary")
    emoji: str = Field("", description="Single emoji for the score band")
    vibe: Vibe | None = Field(None, description="Overall feeling for the score band")
    areas_of_agreement: list[str] = Field(default_factory=list, alias="areasOfAgreement")
    key_differences: list[str] = Field(alias="keyDifferences")
    reasoning: str
    is_good_enough: bool = Field(alias="isGoodEnough")
    needs_more_info: bool = Field(False, alias="needsMoreInfo")
    suggested_search_query: str = Field("", alias="suggestedSearchQuery")

    @field_validator("score", mode="before")
    @classmethod
    def _round_numeric_score(cls, value: Any) -> Any:
        if isinstance(value, float):
            return round(value)
        return value

    @field_validator("vibe", mode="before")
    @classmethod
    def _normalize_vibe(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    @model_validator(mode="after")
    def _fill_band(self) -> "Evaluation":
        emoji, vibe = band_for_score(self.score)
        if self.vibe is None:
            self.vibe = vibe
        if not self.emoji:
            self.emoji = emoji
        return self

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


@dataclass
class PartialEvaluation:
    """Evaluation in progress. Every field has a zero value until the judge streams it."""

    score: int = 0
    summary: str = ""
    emoji: str = ""
    vibe: str = "mixed"
    areas_of_agreement: list[str] = field(default_factory=list)
    key_differences: list[str] = field(default_factory=list)
    reasoning: str = ""
    is_good_enough: bool = False
    needs_more_info: bool = False
    suggested_search_query: str = ""

    @classmethod
    def from_partial(cls, raw: Mapping[str, Any]) -> "PartialEvaluation":
        score = raw.get("score")
        if isinstance(score, (int, float)) and not isinstance(score, bool):
            score = max(0, min(100, round(score)))
        else:
            score = 0
        return cls(
            score=score,
            summary=_str(raw.get("summary")),
            emoji=_str(raw.get("emoji")),
            vibe=_str(raw.get("vibe")) or "mixed",
            areas_of_agreement=_str_list(raw.get("areasOfAgreement")),
            key_differences=_str_list(raw.get("keyDifferences")),
            reasoning=_str(raw.get("reasoning")),
            is_good_enough=raw.get("isGoodEnough") is True,
            needs_more_info=raw.get("needsMoreInfo") is True,
            suggested_search_query=_str(raw.get("suggestedSearchQuery")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "summary": self.summary,
            "emoji": self.emoji,
            "vibe": self.vibe,
            "areasOfAgreement": list(self.areas_of_agreement),
            "keyDifferences": list(self.key_differences),
            "reasoning": self.reasoning,
            "isGoodEnough": self.is_good_enough,
            "needsMoreInfo": self.needs_more_info,
            "suggestedSearchQuery": self.suggested_search_query,
        }


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


# --- extraction -------------------------------------------------------------

_FENCED_BLOCK = re.compile(r"```[\w-]*[ \t]*\n?(.*?)```", re.DOTALL)
_DOUBLE_OPEN_BRACE = re.compile(r"^\{\s*\{")


def _loads_object(text: str) -> dict[str, Any] | None:
    try:
        value = json.loads(text)
    except json.JSONDecodeError:
        return None
    return value if isinstance(value, dict) else None


def strip_code_fences(text: str) -> str:
    """Return the content of the first fenced block, or ``text`` with stray fences trimmed."""
    stripped = text.strip()
    match = _FENCED_BLOCK.search(stripped)
    if match:
        return match.group(1).strip()
    if stripped.startswith("```"):
        stripped = stripped[3:]
        first_newline = stripped.find("\n")
        if first_newline != -1 and stripped[:first_newline].strip().isalnum():
            stripped = stripped[first_newline + 1:]
    if stripped.endswith("```"):
        stripped = stripped[:-3]
    return stripped.strip()


def _parse_direct(text: str) -> dict[str, Any] | None:
    return _loads_object(text.strip())


def _parse_fenced(text: str) -> dict[str, Any] | None:
    return _loads_object(strip_code_fences(text))


def _parse_brace_span(text: str) -> dict[str, Any] | None:
    cleaned = strip_code_fences(text)
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end <= start:
        return None
    candidate = cleaned[start:end + 1]
    parsed = _loads_object(candidate)
    if parsed is None and _DOUBLE_OPEN_BRACE.match(candidate):
        parsed = _loads_object(candidate[candidate.index("{", 1):])
    return parsed


PARSERS: tuple[Callable[[str], dict[str, Any] | None], ...] = (
    _parse_direct,
    _parse_fenced,
    _parse_brace_span,
)


def extract_json_from_text(text: str) -> dict[str, Any] | None:
    """Extract a JSON object from judge output. None when no parser succeeds."""
    for parser in PARSERS:
        parsed = parser(text)
        if parsed is not None:
            logger.debug("Judge output parsed by %s", parser.__name__)
            return parsed
    return None


def parse_evaluation(text: str) -> Evaluation | None:
    """Extract and validate an Evaluation. None on extraction or schema failure."""
    raw = extract_json_from_text(text)
    if raw is None:
        logger.warning("No JSON object found in judge output (%d chars)", len(text))
        return None
    try:
        return Evaluation.model_validate(raw)
    except ValidationError as exc:
        logger.warning("Judge output failed validation: %s", exc.errors(include_url=False))
        return None


def reconcile_with_threshold(evaluation: Evaluation, consensus_threshold: int) -> Evaluation:
    """Recompute ``is_good_enough`` from the score.

    A judge whose own boolean disagrees keeps that claim only as a note in the reasoning.
    """
    good_enough = evaluation.score >= consensus_threshold
    if evaluation.is_good_enough == good_enough:
        return evaluation
    logger.warning(
        "Judge declared isGoodEnough=%s but score %d vs threshold %d says %s",
        evaluation.is_good_enough, evaluation.score, consensus_threshold, good_enough,
    )
    note = (
        f"[Judge declared isGoodEnough={str(evaluation.is_good_enough).lower()}; "
        f"recomputed from score {evaluation.score} against threshold {consensus_threshold}.]"
    )
    reasoning = f"{evaluation.reasoning}\n\n{note}" if evaluation.reasoning else note
    return evaluation.model_copy(update={"is_good_enough": good_enough, "reasoning": reasoning})


# --- judge call -------------------------------------------------------------

async def stream_evaluation(
    judge: AIProvider,
    responses: Mapping[str, str],
    participants: Sequence[ParticipantRef],
    consensus_threshold: int,
    round_number: int,
    *,
    search_enabled: bool = False,
    timeout_sec: float = 180.0,
) -> AsyncIterator[PartialEvaluation | Evaluation]:
    """Ask the judge to score ``responses``.

    Yields PartialEvaluation values while the structured stream is running and
    finally exactly one validated Evaluation (threshold-reconciled).

    Raises:
        JudgeParsingError: If neither the structured call nor the text fallback
            produced a valid evaluation.
    """
    system = build_evaluation_system_prompt(consensus_threshold, search_enabled)
    prompt = build_evaluation_prompt(responses, participants, round_number)

    evaluation: Evaluation | None = None
    try:
        stream = judge.stream_object(prompt, Evaluation, system)
        async for partial in stream_with_timeout(stream, timeout_sec):
            yield PartialEvaluation.from_partial(partial)
        evaluation = parse_evaluation(stream.text)
    except TimeoutError:
        logger.warning("Round %d: judge %s timed out after %ss", round_number, judge.model_string(), timeout_sec)
    except ProviderError as exc:
        logger.warning("Round %d: judge structured call failed: %s", round_number, exc)
    except Exception as exc:
        logger.warning("Round %d: judge structured call failed unexpectedly: %r", round_number, exc)

    if evaluation is None:
        logger.warning("Round %d: falling back to plain text evaluation", round_number)
        try:
            chunks = [c async for c in stream_with_timeout(judge.stream_text(prompt, system), timeout_sec)]
        except TimeoutError as exc:
            raise JudgeParsingError(f"Judge timed out after {timeout_sec}s on text fallback") from exc
        except ProviderError as exc:
            raise JudgeParsingError(f"Judge call failed on text fallback: {exc}") from exc
        except Exception as exc:
            raise JudgeParsingError(f"Judge call failed on text fallback: {exc!r}") from exc
        text = "".join(chunks)
        evaluation = parse_evaluation(text)
        if evaluation is None:
            raise JudgeParsingError("Judge output could not be parsed as an evaluation", raw_text=text)

    yield reconcile_with_threshold(evaluation, consensus_threshold)
