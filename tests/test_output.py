"""Tests for ai_consensus/output.py."""

from pathlib import Path

import pytest

from ai_consensus.evaluation import parse_evaluation
from ai_consensus.models import ConsensusResult, ConversationStatus, RoundRecord, SearchData, SearchResult
from ai_consensus.output import _slug, print_round_summary, print_synthesis, render_markdown, save_to_file
from ai_consensus.prompts import NO_RESPONSE
from tests.conftest import evaluation_json


def test_slug_basic():
    assert _slug("Should we use YAML or JSON?") == "should-we-use-yaml-or-json"


def test_slug_max_len():
    assert len(_slug("a" * 100)) <= 40


def test_slug_special_chars():
    result = _slug("API vs. SDK (2024)")
    assert "." not in result
    assert "(" not in result
    assert ")" not in result


@pytest.fixture
def sample_result(participants, judge_ref) -> ConsensusResult:
    search = SearchData(
        query="yaml 1.2",
        results=(SearchResult(title="YAML spec", url="https://yaml.org", content="..."),),
        round_number=2,
    )
    rounds = [
        RoundRecord(1, {"model-1": "Use YAML.", "model-2": "Use JSON."}, parse_evaluation(evaluation_json(55))),
        RoundRecord(2, {"model-1": "YAML for config."}, parse_evaluation(evaluation_json(86)), search_data=search),
    ]
    return ConsensusResult(
        prompt="Should we use YAML or JSON for config?",
        synthesis="## Consensus\nUse YAML.",
        rounds=rounds,
        final_responses=rounds[-1].responses,
        final_score=86,
        status=ConversationStatus.CONVERGED,
        participants=participants,
        judge=judge_ref,
        progression_summary="They converged on YAML.",
        total_duration_sec=12.3,
    )


def test_render_markdown_sections(sample_result):
    text = render_markdown(sample_result)
    assert text.startswith("# AI Consensus: Should we use YAML or JSON for config?")
    assert "**Judge:** Gemini (google/gemini-2.5-pro)" in text
    assert "**Final score:** 86/100 (consensus reached)" in text
    assert "## Round 1: Initial Responses" in text
    assert "## Round 2: Refinement" in text
    assert "- [YAML spec](https://yaml.org)" in text
    assert "### Evaluation: 👍 86/100" in text
    assert "## Consensus" in text
    assert "## Progression" in text


def test_render_markdown_marks_missing_response(sample_result):
    round_two = render_markdown(sample_result).split("## Round 2")[1]
    assert NO_RESPONSE in round_two


def test_save_to_file_creates_file(tmp_path: Path, sample_result):
    saved = save_to_file(sample_result, tmp_path / "output")
    assert saved.exists()
    assert saved.suffix == ".md"
    assert "should-we-use-yaml-or-json" in saved.name
    assert "Use YAML." in saved.read_text(encoding="utf-8")


def test_save_to_file_creates_output_dir(tmp_path: Path, sample_result):
    output_dir = tmp_path / "nested" / "output"
    assert not output_dir.exists()
    save_to_file(sample_result, output_dir)
    assert output_dir.exists()


def test_save_to_file_slug_override(tmp_path: Path, sample_result):
    saved = save_to_file(sample_result, tmp_path, slug_override="custom")
    assert saved.name.endswith("_custom.md")


def test_console_rendering_does_not_crash(sample_result, participants):
    for record in sample_result.rounds:
        print_round_summary(record, participants, 80)
    print_synthesis(sample_result)
