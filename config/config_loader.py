"""Load settings.yaml into typed dataclasses. Reads credentials from the environment."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from ai_consensus.models import KeySet

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class ProviderConfig:
    name: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    base_url: str | None = None


@dataclass
class DefaultsConfig:
    max_rounds: int
    consensus_threshold: int
    output_dir: Path
    judge: str
    participants: list[str] = field(default_factory=list)
    search_enabled: bool = False
    judge_timeout_sec: float = 180.0
    progression_summary: bool = True


@dataclass
class RoutingConfig:
    direct_providers: tuple[str, ...] = ("anthropic", "openai", "google")
    family_prefixes: dict[str, str] = field(default_factory=dict)


@dataclass
class CatalogConfig:
    url: str
    ttl_sec: float = 300.0
    max_entries: int = 8


@dataclass
class SearchConfig:
    api_key_env: str
    base_url: str
    max_results: int = 5


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    routing: RoutingConfig
    providers: dict[str, ProviderConfig]
    gateway: ProviderConfig
    catalog: CatalogConfig
    search: SearchConfig | None = None


def _provider_config(name: str, raw: dict) -> ProviderConfig:
    return ProviderConfig(
        name=name,
        api_key_env=raw["api_key_env"],
        timeout_sec=int(raw["timeout_sec"]),
        max_tokens=int(raw["max_tokens"]),
        base_url=raw.get("base_url"),
    )


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    defaults = DefaultsConfig(
        max_rounds=int(defaults_raw["max_rounds"]),
        consensus_threshold=int(defaults_raw["consensus_threshold"]),
        output_dir=Path(defaults_raw["output_dir"]),
        judge=str(defaults_raw["judge"]),
        participants=list(defaults_raw.get("participants", [])),
        search_enabled=bool(defaults_raw.get("search_enabled", False)),
        judge_timeout_sec=float(defaults_raw.get("judge_timeout_sec", 180)),
        progression_summary=bool(defaults_raw.get("progression_summary", True)),
    )

    routing_raw = raw.get("routing", {})
    routing = RoutingConfig(
        direct_providers=tuple(routing_raw.get("direct_providers", RoutingConfig.direct_providers)),
        family_prefixes={str(k): str(v) for k, v in routing_raw.get("family_prefixes", {}).items()},
    )

    providers = {
        name: _provider_config(name, provider_raw)
        for name, provider_raw in raw["providers"].items()
    }
    gateway = _provider_config("gateway", raw["gateway"])

    catalog_raw = raw["catalog"]
    catalog = CatalogConfig(
        url=catalog_raw["url"],
        ttl_sec=float(catalog_raw.get("ttl_sec", 300)),
        max_entries=int(catalog_raw.get("max_entries", 8)),
    )

    search: SearchConfig | None = None
    if "search" in raw:
        search_raw = raw["search"]
        search = SearchConfig(
            api_key_env=search_raw["api_key_env"],
            base_url=search_raw["base_url"],
            max_results=int(search_raw.get("max_results", 5)),
        )

    return AppConfig(
        defaults=defaults,
        routing=routing,
        providers=providers,
        gateway=gateway,
        catalog=catalog,
        search=search,
    )


def _read_key(env_name: str) -> str | None:
    value = os.environ.get(env_name, "").strip()
    return value or None


def load_keyset(config: AppConfig) -> KeySet:
    """Build the conversation KeySet from the environment variables named in config.

    Missing keys are logged, not raised; routing decides whether a model is
    reachable with what is present.
    """
    keys: dict[str, str | None] = {}
    for name in ("anthropic", "openai", "google"):
        provider_cfg = config.providers.get(name)
        keys[name] = _read_key(provider_cfg.api_key_env) if provider_cfg else None
    keys["gateway"] = _read_key(config.gateway.api_key_env)

    for name, value in keys.items():
        if value:
            logger.info("Credential available: %s", name)
        else:
            logger.info("Credential missing: %s", name)

    return KeySet(**keys)


def load_search_key(config: AppConfig) -> str | None:
    if config.search is None:
        return None
    return _read_key(config.search.api_key_env)
