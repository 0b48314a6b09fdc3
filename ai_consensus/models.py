"""Pure dataclasses for the consensus pipeline. No logic beyond trivial helpers, no deps."""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from ai_consensus.evaluation import Evaluation


@dataclass(frozen=True)
class ParticipantRef:
    id: str                # slot id ("model-1"), stable across rounds
    provider: str          # provider hint ("anthropic", "openai", "meta-llama", ...)
    model_id: str          # bare ("gpt-5") or compound ("openai/gpt-5")
    label: str             # display name


@dataclass(frozen=True)
class KeySet:
    anthropic: str | None = None
    openai: str | None = None
    google: str | None = None
    gateway: str | None = None

    def direct_key(self, provider: str) -> str | None:
        return getattr(self, provider, None) if provider in ("anthropic", "openai", "google") else None


@dataclass(frozen=True)
class RouteInfo:
    source: Literal["direct", "gateway"]
    provider: str
    model_id: str


@dataclass(frozen=True)
class SearchResult:
    title: str
    url: str
    content: str
    score: float = 0.0


@dataclass(frozen=True)
class SearchData:
    query: str
    results: tuple[SearchResult, ...]
    round_number: int


@dataclass(frozen=True)
class RoundRecord:
    round_number: int
    responses: dict[str, str]
    evaluation: "Evaluation"
    refinement_prompts: dict[str, str] | None = None
    search_data: SearchData | None = None


class ConversationStatus(str, Enum):
    RUNNING = "running"
    CONVERGED = "converged"
    ROUNDS_EXHAUSTED = "rounds_exhausted"
    FAILED = "failed"


@dataclass
class ConversationRequest:
    prompt: str
    participants: list[ParticipantRef]
    judge: ParticipantRef | None
    max_rounds: int = 3
    consensus_threshold: int = 80
    search_enabled: bool = False


@dataclass
class ConversationState:
    request: ConversationRequest
    rounds: list[RoundRecord] = field(default_factory=list)
    current_round: int = 0
    status: ConversationStatus = ConversationStatus.RUNNING

    def is_good_enough(self, score: int) -> bool:
        return score >= self.request.consensus_threshold

    @property
    def last_round(self) -> RoundRecord | None:
        return self.rounds[-1] if self.rounds else None


@dataclass
class ConsensusResult:
    prompt: str
    synthesis: str
    rounds: list[RoundRecord]
    final_responses: dict[str, str]
    final_score: int
    status: ConversationStatus
    participants: list[ParticipantRef] = field(default_factory=list)
    judge: ParticipantRef | None = None
    progression_summary: str | None = None
    total_duration_sec: float = 0.0


@dataclass(frozen=True)
class CatalogModel:
    id: str                      # "meta-llama/llama-3.1-70b-instruct"
    name: str                    # "Meta: Llama 3.1 70B Instruct"
    provider: str                # "meta-llama"
    short_name: str              # "Llama 3.1 70B Instruct"
    context_length: int = 0
    cost_per_million_input: float = 0.0
    cost_per_million_output: float = 0.0
    supports_tools: bool = False
    output_modalities: tuple[str, ...] = ("text",)

    @property
    def is_free(self) -> bool:
        return self.cost_per_million_input == 0 and self.cost_per_million_output == 0
