"""Presets and catalog-driven model selection.

A preset fixes the purpose, model count, rounds and threshold; the concrete
models are picked from whatever the catalog currently offers. Scores combine a
purpose score from the model's tier with the model version as a tiebreaker.
"""

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from ai_consensus.errors import ConfigurationError
from ai_consensus.models import CatalogModel, ParticipantRef

logger = logging.getLogger(__name__)

Purpose = Literal["casual", "balanced", "research", "coding", "creative"]
Tier = Literal["flagship", "standard", "efficient"]


@dataclass(frozen=True)
class PresetDefinition:
    id: str
    name: str
    description: str
    purpose: Purpose
    model_count: int
    max_rounds: int
    consensus_threshold: int
    search_enabled: bool = False


PRESETS: dict[str, PresetDefinition] = {
    "casual": PresetDefinition(
        "casual", "Casual", "Fast answers from efficient models", "casual", 2, 2, 80
    ),
    "balanced": PresetDefinition(
        "balanced", "Balanced", "Thoughtful analysis with diverse perspectives", "balanced", 3, 3, 85
    ),
    "research": PresetDefinition(
        "research", "Research", "Maximum depth with flagship models", "research", 3, 5, 95, search_enabled=True
    ),
    "coding": PresetDefinition(
        "coding", "Coding", "Technical analysis for code and architecture", "coding", 2, 3, 90
    ),
    "creative": PresetDefinition(
        "creative", "Creative", "Imaginative collaboration with creative models", "creative", 2, 3, 75
    ),
}

EXCLUDED_OUTPUT_MODALITIES = frozenset({"image", "audio", "video"})

# Semantic versions only: "5.2", "3.7" but not sizes ("3.1b") or "8x22b".
_DOT_VERSION = re.compile(r"(?<![x\d])(\d+)\.(\d+)(?!b)(?!x)")
_HYPHEN_VERSION = re.compile(r"-([1-9])(?![0-9.bx])")
_O_SERIES = re.compile(r"\bo([1-9])(?:-|$)")


@dataclass(frozen=True)
class ResolvedPreset:
    preset: PresetDefinition
    models: list[CatalogModel]
    evaluator: CatalogModel

    @property
    def participants(self) -> list[ParticipantRef]:
        return [
            ParticipantRef(id=f"model-{i}", provider=m.provider, model_id=m.id, label=m.short_name)
            for i, m in enumerate(self.models, start=1)
        ]

    @property
    def judge(self) -> ParticipantRef:
        m = self.evaluator
        return ParticipantRef(id="judge", provider=m.provider, model_id=m.id, label=m.short_name)


def is_text_focused(model: CatalogModel) -> bool:
    outputs = set(model.output_modalities)
    return "text" in outputs and not outputs & EXCLUDED_OUTPUT_MODALITIES


def extract_version(model_id: str) -> int:
    """Normalized version: "gpt-5.2" -> 520, "claude-4" -> 400, "o3-mini" -> 300, none -> 0."""
    lower = model_id.lower()

    match = _DOT_VERSION.search(lower)
    if match:
        major, minor = int(match.group(1)), int(match.group(2))
        if 1 <= major <= 9:
            return major * 100 + minor * 10

    match = _HYPHEN_VERSION.search(lower)
    if match:
        return int(match.group(1)) * 100

    match = _O_SERIES.search(lower)
    if match:
        return int(match.group(1)) * 100

    return 0


def get_model_tier(model: CatalogModel) -> Tier:
    model_id = model.id.lower()
    name = model.short_name.lower()

    # "-mini" / " mini" so that "gemini" does not match
    efficient_id = ("-mini", "-nano", "-lite", "-flash", "haiku")
    efficient_name = (" mini", " nano", " lite", " flash", "haiku")
    if any(p in model_id for p in efficient_id) or any(p in name for p in efficient_name):
        return "efficient"

    flagship_by_name = any(p in model_id or p in name for p in ("opus", "ultra"))
    is_pro = "-pro" in model_id or " pro" in name
    if flagship_by_name or is_pro or model.cost_per_million_input >= 10:
        return "flagship"
    return "standard"


def score_model_for_purpose(model: CatalogModel, purpose: Purpose) -> float:
    tier = get_model_tier(model)

    if purpose == "casual":
        purpose_score = {"efficient": 100, "standard": 50, "flagship": 10}[tier]
    elif purpose == "balanced":
        purpose_score = {"standard": 100, "flagship": 50, "efficient": 10}[tier]
    elif purpose == "research":
        purpose_score = {"flagship": 100, "standard": 50, "efficient": 10}[tier]
    elif purpose == "coding":
        if tier == "standard":
            purpose_score = 100 if model.supports_tools else 80
        elif tier == "flagship":
            purpose_score = 60 if model.supports_tools else 50
        else:
            purpose_score = 10
    elif purpose == "creative":
        if tier == "flagship":
            purpose_score = 120 if model.provider.lower() == "anthropic" else 100
        else:
            purpose_score = 50 if tier == "standard" else 10
    else:
        raise ValueError(f"Unknown purpose: {purpose}")

    return purpose_score + extract_version(model.id) * 0.1


def _ranked(models: Sequence[CatalogModel], purpose: Purpose) -> list[CatalogModel]:
    # sorted() is stable, so equal scores keep catalog order
    return sorted(models, key=lambda m: score_model_for_purpose(m, purpose), reverse=True)


def select_models_for_preset(
    purpose: Purpose,
    models: Sequence[CatalogModel],
    count: int = 3,
) -> list[CatalogModel]:
    """Pick the top ``count`` models, one per provider first, then filling from the rest.

    Raises:
        ConfigurationError: If fewer than 2 text-focused models are available.
    """
    candidates = [m for m in models if is_text_focused(m)]
    if len(candidates) < 2:
        raise ConfigurationError(
            f"Not enough models available for preset. Need at least 2, got {len(candidates)}"
        )

    ranked = _ranked(candidates, purpose)
    selected: list[CatalogModel] = []
    used_providers: set[str] = set()

    for model in ranked:
        if len(selected) >= count:
            break
        if model.provider not in used_providers:
            selected.append(model)
            used_providers.add(model.provider)

    for model in ranked:
        if len(selected) >= count:
            break
        if model not in selected:
            selected.append(model)

    logger.debug("Selected for %s: %s", purpose, [m.id for m in selected])
    return selected


def is_evaluation_suitable(model: CatalogModel) -> bool:
    """Exclude models that tend to be poor judges: lightweight, code, vision, base, small context."""
    name = model.short_name.lower()
    model_id = model.id.lower()

    lightweight = any(p in name for p in ("haiku", "nano", " mini", "-mini", "lite", "flash", "tiny", "small"))
    code_specialized = any(p in name for p in ("code", "coder", "codex"))
    vision = any(p in name for p in ("vision", "-vl", "omni")) or "-vl" in model_id
    base_model = "base" in name
    small_context = model.context_length < 8000

    return not (lightweight or code_specialized or vision or base_model or small_context)


def select_evaluator_for_preset(purpose: Purpose, models: Sequence[CatalogModel]) -> CatalogModel | None:
    suitable = [m for m in models if is_evaluation_suitable(m)]
    if not suitable:
        return None
    return _ranked(suitable, purpose)[0]


def resolve_preset(preset_id: str, models: Sequence[CatalogModel]) -> ResolvedPreset:
    """Resolve ``preset_id`` against the available catalog.

    Raises:
        ConfigurationError: Unknown preset, too few models, or no suitable evaluator.
    """
    preset = PRESETS.get(preset_id)
    if preset is None:
        raise ConfigurationError(f"Unknown preset '{preset_id}'. Choose from: {', '.join(PRESETS)}")

    selected = select_models_for_preset(preset.purpose, models, preset.model_count)
    evaluator = select_evaluator_for_preset(preset.purpose, models)
    if evaluator is None:
        raise ConfigurationError(f"No model in the catalog is suitable as evaluator for preset '{preset_id}'")

    logger.info(
        "Preset %s: models=%s evaluator=%s",
        preset_id, ", ".join(m.id for m in selected), evaluator.id,
    )
    return ResolvedPreset(preset=preset, models=selected, evaluator=evaluator)
