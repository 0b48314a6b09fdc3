"""Tests for ai_consensus/synthesis.py."""

import pytest

from ai_consensus.evaluation import parse_evaluation
from ai_consensus.models import RoundRecord
from ai_consensus.providers.base import ProviderError
from ai_consensus.synthesis import stream_progression_summary, stream_synthesis
from tests.conftest import MockProvider, evaluation_json


@pytest.fixture
def rounds() -> list[RoundRecord]:
    return [
        RoundRecord(1, {"model-1": "Use YAML.", "model-2": "Use JSON."}, parse_evaluation(evaluation_json(55))),
        RoundRecord(2, {"model-1": "YAML for humans.", "model-2": "YAML for humans too."},
                    parse_evaluation(evaluation_json(88))),
    ]


async def test_stream_synthesis_streams_chunks(participants, rounds):
    synthesizer = MockProvider("judge", ["## Consensus\nUse YAML for human-edited config."], chunk_size=8)

    chunks = [c async for c in stream_synthesis(synthesizer, "YAML or JSON?", rounds[-1].responses, participants, rounds)]

    assert len(chunks) > 1
    assert "".join(chunks) == "## Consensus\nUse YAML for human-edited config."
    prompt, system = synthesizer.calls[0]
    assert "Original Question: YAML or JSON?" in prompt
    assert "GPT:\nYAML for humans too." in prompt
    assert "Round 1: Score 55/100" in prompt
    assert "emojis" in system


async def test_stream_synthesis_propagates_provider_error(participants, rounds):
    synthesizer = MockProvider("judge", [ProviderError("judge", "overloaded")])
    with pytest.raises(ProviderError):
        async for _ in stream_synthesis(synthesizer, "Q?", rounds[-1].responses, participants, rounds):
            pass


async def test_stream_progression_summary(participants, rounds):
    provider = MockProvider("judge", ["The models moved from a split to YAML."])

    text = "".join([c async for c in stream_progression_summary(provider, "Q?", rounds, participants)])

    assert text == "The models moved from a split to YAML."
    assert "across 2 rounds" in provider.prompts[0]
    assert "- Score: 88%" in provider.prompts[0]
