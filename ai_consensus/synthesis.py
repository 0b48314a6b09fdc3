"""Final synthesis and progression summary, both streamed from the judge model."""

import logging
from collections.abc import AsyncIterator, Mapping, Sequence

from ai_consensus.models import ParticipantRef, RoundRecord
from ai_consensus.prompts import build_progression_summary_prompt, build_synthesis_prompt
from ai_consensus.providers.base import AIProvider

logger = logging.getLogger(__name__)

_NO_EMOJI = "Do not use emojis or decorative unicode symbols."


async def stream_synthesis(
    synthesizer: AIProvider,
    original_prompt: str,
    responses: Mapping[str, str],
    participants: Sequence[ParticipantRef],
    rounds: Sequence[RoundRecord],
) -> AsyncIterator[str]:
    """Stream the unified answer over the final responses and the score history.

    Raises:
        ProviderError: If the synthesizer call fails.
    """
    prompt = build_synthesis_prompt(original_prompt, responses, participants, rounds)
    logger.info("Running synthesis via %s", synthesizer.model_string())
    async for chunk in synthesizer.stream_text(prompt, _NO_EMOJI):
        yield chunk


async def stream_progression_summary(
    provider: AIProvider,
    original_prompt: str,
    rounds: Sequence[RoundRecord],
    participants: Sequence[ParticipantRef],
) -> AsyncIterator[str]:
    """Stream a short narrative of how answers moved across rounds."""
    prompt = build_progression_summary_prompt(original_prompt, rounds, participants)
    logger.info("Generating progression summary over %d rounds", len(rounds))
    async for chunk in provider.stream_text(prompt):
        yield chunk
