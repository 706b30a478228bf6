"""OpenRouter model catalog records and the single-snapshot catalog cache.

The catalog changes slowly compared to how often it is consulted, and the
listing endpoint is comparatively expensive, so one snapshot is shared by
every caller holding the cache and expires after an hour. There is no
per-model invalidation: callers needing fresher data call ``invalidate()``
or wait for the next miss to trigger a re-fetch.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from openrouter_constants import CATALOG_TTL_SECONDS

logger = logging.getLogger(__name__)


class CatalogFetchError(RuntimeError):
    """Raised when the catalog could not be fetched after all retries."""


class ModelPricing(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", coerce_numbers_to_str=True)

    prompt: str = "0"
    completion: str = "0"


class ModelCapabilities(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    functions: bool = False
    tools: bool = False
    vision: bool = False
    json_mode: bool = False


class TopProvider(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    max_completion_tokens: Optional[int] = None
    context_length: Optional[int] = None


class ModelRecord(BaseModel):
    """One catalog entry as returned by ``GET /models``."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(min_length=1)
    name: str = ""
    description: Optional[str] = None
    context_length: int = Field(gt=0)
    pricing: ModelPricing = Field(default_factory=ModelPricing)
    capabilities: Optional[ModelCapabilities] = None
    top_provider: Optional[TopProvider] = None

    @model_validator(mode="before")
    @classmethod
    def _derive_capabilities(cls, data: Any) -> Any:
        # The live API advertises features through supported_parameters and
        # architecture.input_modalities rather than a capabilities object.
        if not isinstance(data, dict) or data.get("capabilities") is not None:
            return data
        params = data.get("supported_parameters")
        modalities = (data.get("architecture") or {}).get("input_modalities")
        if params is None and modalities is None:
            return data
        params = set(params or [])
        derived = {
            "functions": "tools" in params,
            "tools": "tools" in params,
            "vision": "image" in (modalities or []),
            "json_mode": "response_format" in params,
        }
        return {**data, "capabilities": derived}

    @property
    def provider(self) -> str:
        return self.id.split("/", 1)[0]

    @property
    def max_completion_tokens(self) -> Optional[int]:
        return self.top_provider.max_completion_tokens if self.top_provider else None


def parse_model_records(raw_entries: Iterable[Dict[str, Any]]) -> Tuple[ModelRecord, ...]:
    """Validate raw catalog dicts, skipping (and logging) malformed entries."""
    records = []
    for raw in raw_entries:
        try:
            records.append(ModelRecord.model_validate(raw))
        except ValidationError as e:
            model_id = raw.get("id", "?") if isinstance(raw, dict) else "?"
            logger.warning("Skipping malformed catalog entry %s: %s", model_id, e.errors()[0].get("msg"))
    return tuple(records)


@dataclass(frozen=True)
class CatalogSnapshot:
    entries: Tuple[ModelRecord, ...]
    fetched_at: float  # epoch seconds

    def age(self, now: float) -> float:
        return now - self.fetched_at

    def is_valid(self, now: float, ttl: float = CATALOG_TTL_SECONDS) -> bool:
        return self.age(now) <= ttl


class ModelCatalogCache:
    """Holds at most one catalog snapshot; expired snapshots read as absent.

    Args:
        ttl: Seconds a snapshot stays valid (default 3600).
        clock: Returns the current time in epoch seconds.
    """

    def __init__(self, ttl: float = CATALOG_TTL_SECONDS, clock: Optional[Callable[[], float]] = None):
        self._ttl = ttl
        self._clock = clock or time.time
        self._snapshot: Optional[CatalogSnapshot] = None

    @property
    def ttl(self) -> float:
        return self._ttl

    def get_snapshot(self) -> Optional[CatalogSnapshot]:
        snapshot = self._snapshot
        if snapshot is None or not snapshot.is_valid(self._clock(), self._ttl):
            return None
        return snapshot

    def set_snapshot(
        self,
        entries: Iterable[ModelRecord],
        fetched_at: Optional[float] = None,
    ) -> CatalogSnapshot:
        """Replace the whole snapshot; nothing from the previous one survives."""
        snapshot = CatalogSnapshot(
            entries=tuple(entries),
            fetched_at=self._clock() if fetched_at is None else fetched_at,
        )
        self._snapshot = snapshot
        logger.debug("Catalog snapshot replaced with %d models", len(snapshot.entries))
        return snapshot

    def lookup(self, model_id: str) -> Optional[ModelRecord]:
        snapshot = self.get_snapshot()
        if snapshot is None:
            return None
        for record in snapshot.entries:
            if record.id == model_id:
                return record
        return None

    def validate(self, model_id: str) -> bool:
        return self.lookup(model_id) is not None

    def invalidate(self) -> None:
        self._snapshot = None

    async def refresh(self, client) -> CatalogSnapshot:
        """Fetch a fresh catalog through ``client`` and store it.

        On failure the previous snapshot is left as it was and the error is
        raised as CatalogFetchError.
        """
        try:
            fetched = await client.fetch_catalog()
        except Exception as e:
            raise CatalogFetchError(f"Failed to fetch model catalog: {e}") from e
        snapshot = self.set_snapshot(fetched.entries)
        logger.info("Fetched catalog of %d models from OpenRouter", len(snapshot.entries))
        return snapshot
