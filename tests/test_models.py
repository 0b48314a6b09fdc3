"""Tests for ai_consensus/models.py dataclasses."""

import dataclasses

import pytest

from ai_consensus.evaluation import parse_evaluation
from ai_consensus.models import (
    CatalogModel,
    ConversationState,
    ConversationStatus,
    KeySet,
    RoundRecord,
)
from tests.conftest import evaluation_json


def test_keyset_direct_key():
    keys = KeySet(anthropic="sk-ant", gateway="or-key")
    assert keys.direct_key("anthropic") == "sk-ant"
    assert keys.direct_key("openai") is None
    # the gateway key is never a direct key
    assert keys.direct_key("gateway") is None


def test_keyset_is_read_only():
    keys = KeySet(openai="sk")
    with pytest.raises(dataclasses.FrozenInstanceError):
        keys.openai = "other"  # type: ignore[misc]


def test_conversation_state_defaults(sample_request):
    state = ConversationState(request=sample_request)
    assert state.status is ConversationStatus.RUNNING
    assert state.current_round == 0
    assert state.last_round is None


def test_conversation_state_is_good_enough(sample_request):
    state = ConversationState(request=sample_request)
    assert state.is_good_enough(80)
    assert not state.is_good_enough(79)


def test_last_round(sample_request):
    state = ConversationState(request=sample_request)
    record = RoundRecord(1, {"model-1": "a"}, parse_evaluation(evaluation_json(50)))
    state.rounds.append(record)
    assert state.last_round is record


def test_status_values_serialize_as_strings():
    assert ConversationStatus.CONVERGED.value == "converged"
    assert ConversationStatus("rounds_exhausted") is ConversationStatus.ROUNDS_EXHAUSTED


def test_catalog_model_is_free():
    assert CatalogModel("a/b", "B", "a", "B").is_free
    assert not CatalogModel("a/b", "B", "a", "B", cost_per_million_output=0.5).is_free
