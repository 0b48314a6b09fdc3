"""Model catalog from the gateway's /models endpoint, with an explicit TTL cache."""

import logging
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import httpx

from ai_consensus.models import CatalogModel

logger = logging.getLogger(__name__)

_TIMEOUT_SEC = 30.0


def _extract_provider(model_id: str) -> str:
    """"meta-llama/llama-3.1-70b-instruct" -> "meta-llama"."""
    return model_id.split("/", 1)[0] or "unknown"


def _extract_short_name(name: str) -> str:
    """"Meta: Llama 3.1 70B Instruct" -> "Llama 3.1 70B Instruct"."""
    colon = name.find(": ")
    if 0 < colon < 30:
        return name[colon + 2:]
    return name


def _per_million(price: Any) -> float:
    """Gateway prices are per token (as strings); convert to per million tokens."""
    try:
        return float(price) * 1_000_000
    except (TypeError, ValueError):
        return 0.0


def parse_model(raw: dict[str, Any]) -> CatalogModel:
    model_id = str(raw["id"])
    name = str(raw.get("name") or model_id)
    pricing = raw.get("pricing") or {}
    architecture = raw.get("architecture") or {}
    return CatalogModel(
        id=model_id,
        name=name,
        provider=_extract_provider(model_id),
        short_name=_extract_short_name(name),
        context_length=int(raw.get("context_length") or 0),
        cost_per_million_input=_per_million(pricing.get("prompt")),
        cost_per_million_output=_per_million(pricing.get("completion")),
        supports_tools="tools" in (raw.get("supported_parameters") or []),
        output_modalities=tuple(architecture.get("output_modalities") or ()),
    )


def parse_catalog(payload: dict[str, Any]) -> list[CatalogModel]:
    """Parse a /models response. Models that cannot output text are dropped."""
    models = []
    for raw in payload.get("data", []):
        try:
            model = parse_model(raw)
        except (KeyError, TypeError, ValueError) as exc:
            logger.debug("Skipping malformed catalog entry %r: %s", raw.get("id"), exc)
            continue
        if "text" in model.output_modalities:
            models.append(model)
    return sorted(models, key=lambda m: m.name)


async def fetch_catalog(url: str, client: httpx.AsyncClient | None = None) -> list[CatalogModel]:
    """GET the catalog. Raises httpx.HTTPError on failure."""
    if client is not None:
        resp = await client.get(url)
    else:
        async with httpx.AsyncClient(timeout=_TIMEOUT_SEC) as owned:
            resp = await owned.get(url)
    resp.raise_for_status()
    models = parse_catalog(resp.json())
    logger.info("Fetched %d catalog models from %s", len(models), url)
    return models


@dataclass
class _Entry:
    models: list[CatalogModel]
    fetched_at: float


class CatalogCache:
    """Size-bounded TTL cache of catalogs keyed by URL.

    Owned by whoever selects models; ``clock`` is injectable for tests.
    A stale entry is returned only when refreshing it fails.
    """

    def __init__(
        self,
        ttl_sec: float = 300.0,
        max_entries: int = 8,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self._ttl_sec = ttl_sec
        self._max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, _Entry] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> list[CatalogModel] | None:
        """Fresh entry for ``key`` or None."""
        entry = self._entries.get(key)
        if entry is None or self._clock() - entry.fetched_at >= self._ttl_sec:
            return None
        self._entries.move_to_end(key)
        return entry.models

    def put(self, key: str, models: list[CatalogModel]) -> None:
        self._entries[key] = _Entry(models=list(models), fetched_at=self._clock())
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Catalog cache evicted %s", evicted)

    async def get_or_fetch(
        self,
        key: str,
        fetch: Callable[[], Awaitable[list[CatalogModel]]],
    ) -> list[CatalogModel]:
        cached = self.get(key)
        if cached is not None:
            return cached
        try:
            models = await fetch()
        except httpx.HTTPError as exc:
            stale = self._entries.get(key)
            if stale is None:
                raise
            logger.warning("Catalog refresh failed (%s); serving stale entry", exc)
            return stale.models
        self.put(key, models)
        return models

    def clear(self) -> None:
        self._entries.clear()
