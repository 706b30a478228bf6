"""Model catalog -- records, the TTL snapshot cache, id parsing and search."""

from catalog.model_cache import (
    CatalogFetchError,
    CatalogSnapshot,
    ModelCatalogCache,
    ModelRecord,
)
from catalog.model_ref import InvalidModelFormatError, ParsedModelRef, parse_model_ref, split_model_id
from catalog.search import ModelSearchFilters, search_models, summarize_model

__all__ = [
    "CatalogFetchError",
    "CatalogSnapshot",
    "InvalidModelFormatError",
    "ModelCatalogCache",
    "ModelRecord",
    "ModelSearchFilters",
    "ParsedModelRef",
    "parse_model_ref",
    "search_models",
    "split_model_id",
    "summarize_model",
]
