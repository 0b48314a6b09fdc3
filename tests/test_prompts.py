"""Tests for ai_consensus/prompts.py."""

import pytest

from ai_consensus.evaluation import parse_evaluation
from ai_consensus.models import RoundRecord, SearchResult
from ai_consensus.prompts import (
    NO_RESPONSE,
    band_for_score,
    build_evaluation_prompt,
    build_evaluation_system_prompt,
    build_progression_summary_prompt,
    build_prompt_with_search_context,
    build_refinement_prompt,
    build_refinement_prompts_for_all,
    build_synthesis_prompt,
)
from tests.conftest import evaluation_json


@pytest.mark.parametrize("score,vibe", [
    (100, "celebration"),
    (90, "celebration"),
    (89, "agreement"),
    (75, "agreement"),
    (74, "mixed"),
    (50, "mixed"),
    (49, "disagreement"),
    (30, "disagreement"),
    (29, "clash"),
    (0, "clash"),
])
def test_band_for_score(score, vibe):
    assert band_for_score(score)[1] == vibe


def test_refinement_prompt_without_evaluation(participants):
    responses = {"model-1": "Use YAML.", "model-2": "Use JSON."}
    prompt = build_refinement_prompt("YAML or JSON?", participants[0], responses, participants, 2)

    assert "Original Question: YAML or JSON?" in prompt
    assert "Round 2" in prompt
    assert "Your previous response (Claude):\nUse YAML." in prompt
    assert "GPT:\nUse JSON." in prompt
    assert "CLAUDE:" not in prompt
    assert prompt.endswith("Provide your complete refined response.")


def test_refinement_prompt_marks_missing_response(participants):
    responses = {"model-1": "Use YAML."}
    prompt = build_refinement_prompt("Q?", participants[0], responses, participants, 2)
    assert f"GPT:\n{NO_RESPONSE}" in prompt


def test_refinement_prompt_with_evaluation_targets_participant(participants):
    evaluation = parse_evaluation(evaluation_json(
        55,
        keyDifferences=["GPT recommends JSON for everything", "Tone differs"],
        areasOfAgreement=["Both avoid XML"],
    ))
    responses = {"model-1": "Use YAML.", "model-2": "Use JSON."}

    gpt_prompt = build_refinement_prompt("Q?", participants[1], responses, participants, 2, evaluation)
    claude_prompt = build_refinement_prompt("Q?", participants[0], responses, participants, 2, evaluation)

    assert "consensus score 55/100" in gpt_prompt
    assert "- Both avoid XML" in gpt_prompt
    assert "   - GPT recommends JSON for everything" in gpt_prompt
    assert "need a clear response" not in claude_prompt


def test_refinement_prompts_for_all_keyed_by_participant(participants):
    prompts = build_refinement_prompts_for_all("Q?", {"model-1": "a", "model-2": "b"}, participants, 2)
    assert set(prompts) == {"model-1", "model-2"}


def test_prompt_with_search_context():
    results = [SearchResult(title="Spec", url="https://yaml.org", content="YAML 1.2 is a superset of JSON.")]
    prompt = build_prompt_with_search_context("YAML or JSON?", results)
    assert "[1] Spec" in prompt
    assert "URL: https://yaml.org" in prompt
    assert prompt.endswith("YAML or JSON?")


def test_prompt_with_empty_search_context_unchanged():
    assert build_prompt_with_search_context("Q?", []) == "Q?"


def test_evaluation_system_prompt_threshold_and_search():
    plain = build_evaluation_system_prompt(85)
    assert "Consensus threshold: 85" in plain
    assert "needsMoreInfo = true" not in plain
    assert "needsMoreInfo = true" in build_evaluation_system_prompt(85, search_enabled=True)


def test_evaluation_prompt_lists_only_answered(participants):
    prompt = build_evaluation_prompt({"model-1": "Use YAML.", "model-2": "  "}, participants, 3)
    assert "--- CLAUDE ---\nUse YAML." in prompt
    assert "GPT" not in prompt
    assert "(1 models)" in prompt
    assert prompt.startswith("Round 3")


def test_synthesis_prompt_includes_score_history(participants):
    rounds = [
        RoundRecord(1, {"model-1": "a", "model-2": "b"}, parse_evaluation(evaluation_json(60))),
        RoundRecord(2, {"model-1": "a2", "model-2": "b2"}, parse_evaluation(evaluation_json(85))),
    ]
    prompt = build_synthesis_prompt("Q?", rounds[-1].responses, participants, rounds)
    assert "Consensus Evolution:" in prompt
    assert "Round 1: Score 60/100" in prompt
    assert "Round 2: Score 85/100" in prompt
    assert "Claude:\na2" in prompt
    assert prompt.endswith("Write the consensus response now.")


def test_progression_summary_prompt_truncates_excerpts(participants):
    rounds = [RoundRecord(1, {"model-1": "x" * 500}, parse_evaluation(evaluation_json(40)))]
    prompt = build_progression_summary_prompt("Q?", rounds, participants)
    assert "x" * 300 + "..." in prompt
    assert "x" * 301 not in prompt
    assert f"**GPT**: {NO_RESPONSE}" in prompt
    assert "across 1 rounds" in prompt
