"""Model identifier parsing.

OpenRouter accepts routing suffixes on model ids: ``:floor`` picks the
cheapest provider, ``:nitro`` the fastest. Catalog entries are keyed without
them, so lookups use ``base_model`` while outbound requests send
``full_model``.
"""

from typing import NamedTuple, Optional, Tuple

MODEL_SUFFIXES = ("floor", "nitro")


class InvalidModelFormatError(ValueError):
    """Raised when a model id is not in ``author/slug`` form."""


class ParsedModelRef(NamedTuple):
    base_model: str
    suffix: Optional[str]
    full_model: str


def parse_model_ref(model: str) -> ParsedModelRef:
    for suffix in MODEL_SUFFIXES:
        marker = f":{suffix}"
        if model.endswith(marker):
            return ParsedModelRef(model[: -len(marker)], suffix, model)
    return ParsedModelRef(model, None, model)


def split_model_id(model_id: str) -> Tuple[str, str]:
    """Split ``author/slug`` into its parts, rejecting anything else."""
    parts = model_id.split("/") if model_id else []
    if len(parts) != 2 or not all(p.strip() for p in parts):
        raise InvalidModelFormatError(
            f"Invalid model format. Expected 'author/slug', got '{model_id}'"
        )
    return parts[0], parts[1]
