"""Shared pytest fixtures."""

import json
from pathlib import Path

import pytest

from ai_consensus.models import ConversationRequest, ParticipantRef
from ai_consensus.providers.base import AIProvider
from ai_consensus.routing import DEFAULT_FAMILY_PREFIXES
from config.config_loader import (
    AppConfig,
    CatalogConfig,
    DefaultsConfig,
    ProviderConfig,
    RoutingConfig,
    SearchConfig,
)


def evaluation_json(score: int, **overrides) -> str:
    """A judge reply as the judge model would stream it."""
    payload = {
        "score": score,
        "summary": f"Summary at {score}",
        "emoji": "",
        "vibe": None,
        "areasOfAgreement": ["Both recommend YAML for humans"],
        "keyDifferences": ["Model A prefers TOML for tooling"],
        "reasoning": "Compared the recommendations point by point.",
        "isGoodEnough": False,
        "needsMoreInfo": False,
        "suggestedSearchQuery": "",
    }
    payload.update(overrides)
    if payload["vibe"] is None:
        del payload["vibe"]
    return json.dumps(payload)


class MockProvider(AIProvider):
    """Test double AIProvider.

    ``responses`` are consumed one per stream_text call; the last one repeats.
    An exception instance in ``responses`` is raised by that call instead.
    """

    def __init__(
        self,
        provider_name: str = "mock",
        responses: list[str | BaseException] | None = None,
        model: str = "mock-model",
        chunk_size: int = 16,
    ) -> None:
        self._name = provider_name
        self._model = model
        self._responses = list(responses) if responses else ["Mock response"]
        self._chunk_size = chunk_size
        self.calls: list[tuple[str, str | None]] = []

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return self._model

    def stream_text(self, prompt: str, system: str | None = None):
        self.calls.append((prompt, system))
        response = self._responses[min(len(self.calls), len(self._responses)) - 1]
        return self._stream(response)

    async def _stream(self, response: str | BaseException):
        if isinstance(response, BaseException):
            raise response
        for i in range(0, len(response), self._chunk_size):
            yield response[i:i + self._chunk_size]

    @property
    def prompts(self) -> list[str]:
        return [prompt for prompt, _ in self.calls]


@pytest.fixture
def mock_provider() -> MockProvider:
    return MockProvider()


@pytest.fixture
def participants() -> list[ParticipantRef]:
    return [
        ParticipantRef(id="model-1", provider="anthropic", model_id="anthropic/claude-sonnet-4.5", label="Claude"),
        ParticipantRef(id="model-2", provider="openai", model_id="openai/gpt-5", label="GPT"),
    ]


@pytest.fixture
def judge_ref() -> ParticipantRef:
    return ParticipantRef(id="judge", provider="google", model_id="google/gemini-2.5-pro", label="Gemini")


@pytest.fixture
def sample_request(participants, judge_ref) -> ConversationRequest:
    return ConversationRequest(
        prompt="Should we use YAML or JSON for config?",
        participants=participants,
        judge=judge_ref,
        max_rounds=3,
        consensus_threshold=80,
    )


@pytest.fixture
def sample_defaults_config(tmp_path: Path) -> DefaultsConfig:
    return DefaultsConfig(
        max_rounds=3,
        consensus_threshold=80,
        output_dir=tmp_path / "output",
        judge="google/gemini-2.5-pro",
        participants=["anthropic/claude-sonnet-4.5", "openai/gpt-5"],
    )


@pytest.fixture
def sample_app_config(sample_defaults_config: DefaultsConfig) -> AppConfig:
    providers = {
        name: ProviderConfig(name=name, api_key_env=env, timeout_sec=60, max_tokens=4096)
        for name, env in (
            ("anthropic", "ANTHROPIC_API_KEY"),
            ("openai", "OPENAI_API_KEY"),
            ("google", "GEMINI_API_KEY"),
        )
    }
    return AppConfig(
        defaults=sample_defaults_config,
        routing=RoutingConfig(family_prefixes=dict(DEFAULT_FAMILY_PREFIXES)),
        providers=providers,
        gateway=ProviderConfig(
            name="gateway",
            api_key_env="OPENROUTER_API_KEY",
            timeout_sec=60,
            max_tokens=4096,
            base_url="https://openrouter.ai/api/v1",
        ),
        catalog=CatalogConfig(url="https://openrouter.ai/api/v1/models"),
        search=SearchConfig(api_key_env="TAVILY_API_KEY", base_url="https://api.tavily.com"),
    )
