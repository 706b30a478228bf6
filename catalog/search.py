"""Filtering and summarizing catalog entries for model search."""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from catalog.model_cache import ModelCapabilities, ModelRecord

DEFAULT_SEARCH_LIMIT = 10
MAX_SEARCH_LIMIT = 50

CAPABILITY_NAMES = ("functions", "tools", "vision", "json_mode")


@dataclass
class ModelSearchFilters:
    """Criteria for ``search_models``. Unset fields do not filter."""

    query: Optional[str] = None
    provider: Optional[str] = None
    min_context_length: Optional[int] = None
    max_context_length: Optional[int] = None
    max_prompt_price: Optional[float] = None
    max_completion_price: Optional[float] = None
    capabilities: Dict[str, bool] = field(default_factory=dict)
    limit: int = DEFAULT_SEARCH_LIMIT

    def __post_init__(self):
        unknown = set(self.capabilities) - set(CAPABILITY_NAMES)
        if unknown:
            raise ValueError(f"Unknown capabilities: {', '.join(sorted(unknown))}")
        if not 1 <= self.limit <= MAX_SEARCH_LIMIT:
            raise ValueError(f"limit must be between 1 and {MAX_SEARCH_LIMIT}")

    def as_dict(self) -> Dict[str, Any]:
        return {
            "query": self.query,
            "provider": self.provider,
            "min_context_length": self.min_context_length,
            "max_context_length": self.max_context_length,
            "max_prompt_price": self.max_prompt_price,
            "max_completion_price": self.max_completion_price,
            "capabilities": dict(self.capabilities) or None,
            "limit": self.limit,
        }


def _price(value: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _matches(record: ModelRecord, filters: ModelSearchFilters) -> bool:
    if filters.query:
        term = filters.query.lower()
        haystacks = (record.id, record.name or "", record.description or "")
        if not any(term in h.lower() for h in haystacks):
            return False

    if filters.provider and record.provider != filters.provider.lower():
        return False

    if filters.min_context_length and record.context_length < filters.min_context_length:
        return False
    if filters.max_context_length and record.context_length > filters.max_context_length:
        return False

    if filters.max_prompt_price is not None and _price(record.pricing.prompt) > filters.max_prompt_price:
        return False
    if filters.max_completion_price is not None and _price(record.pricing.completion) > filters.max_completion_price:
        return False

    caps = record.capabilities or ModelCapabilities()
    for name, required in filters.capabilities.items():
        if required and not getattr(caps, name):
            return False

    return True


def search_models(entries: Iterable[ModelRecord], filters: ModelSearchFilters) -> List[ModelRecord]:
    """Return matching records in catalog order, truncated to ``filters.limit``."""
    matched = []
    for record in entries:
        if _matches(record, filters):
            matched.append(record)
            if len(matched) >= filters.limit:
                break
    return matched


def summarize_model(record: ModelRecord) -> Dict[str, Any]:
    """Flatten a record into the summary shape shown to tool callers."""
    caps = record.capabilities or ModelCapabilities()
    return {
        "id": record.id,
        "name": record.name,
        "description": record.description or "No description available",
        "context_length": record.context_length,
        "max_completion_tokens": record.max_completion_tokens,
        "pricing": {
            "prompt": record.pricing.prompt,
            "completion": record.pricing.completion,
        },
        "capabilities": {name: getattr(caps, name) for name in CAPABILITY_NAMES},
    }
