"""Tests for ai_consensus/events.py."""

import json

from ai_consensus.events import ConsensusEvent


def test_to_dict_omits_empty_fields():
    assert ConsensusEvent("synthesis-start").to_dict() == {"type": "synthesis-start"}


def test_to_json_is_single_line():
    event = ConsensusEvent("participant-chunk", 2, {"participantId": "model-1", "chunk": "line one\nline two 🎉"})
    line = event.to_json()
    assert "\n" not in line
    assert "🎉" in line
    assert json.loads(line) == {
        "type": "participant-chunk",
        "round": 2,
        "data": {"participantId": "model-1", "chunk": "line one\nline two 🎉"},
    }


def test_terminal_events():
    assert ConsensusEvent("final").is_terminal
    assert ConsensusEvent("error").is_terminal
    assert not ConsensusEvent("round-start", 1).is_terminal
