"""
OpenRouter tool operations -- the in-process surface a tool-dispatch layer calls.

Ties the three stateful pieces together:

- ``ConversationStore`` supplies and records multi-turn history,
- ``fit_messages`` trims that history to the model's context budget,
- ``OpenRouterClient`` talks to the API, while ``ModelCatalogCache`` answers
  model lookups and is refilled from the client when its snapshot is absent.

Model ids pass through ``parse_model_ref`` first: the bare base model is used
for catalog lookups, the full id (with any ``:floor``/``:nitro`` suffix) is
sent upstream.

Results are plain dicts; failures are raised as typed exceptions and left to
the caller to render.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional, Sequence

from bridge_config import BridgeConfig
from catalog.model_cache import CatalogSnapshot, ModelCatalogCache, ModelRecord
from catalog.model_ref import ParsedModelRef, parse_model_ref
from catalog.search import ModelSearchFilters, search_models, summarize_model
from conversation.store import (
    ConversationMessage,
    ConversationNotFoundError,
    ConversationStore,
)
from conversation.windowing import fit_messages
from upstream.client import OpenRouterClient, describe_upstream_error

logger = logging.getLogger(__name__)

# Roles a caller may send in a chat request; "tool" results come only from
# persisted history.
REQUEST_ROLES = ("system", "user", "assistant")


class ModelNotFoundError(LookupError):
    """Raised when a model id is absent from a freshly validated catalog."""

    def __init__(self, model: str):
        self.model = model
        super().__init__(
            f"Model '{model}' not found in available models list. "
            "Use model search to find available models."
        )


def _coerce_messages(messages: Iterable[Any]) -> list[ConversationMessage]:
    coerced = []
    for message in messages:
        if isinstance(message, ConversationMessage):
            coerced.append(message)
            continue
        if not isinstance(message, Mapping):
            raise ValueError("Each message must be a mapping with 'role' and 'content'")
        role = message.get("role")
        if role not in REQUEST_ROLES:
            raise ValueError(f"Invalid message role '{role}'; expected one of {', '.join(REQUEST_ROLES)}")
        if not isinstance(message.get("content"), str):
            raise ValueError("Message content must be a string")
        coerced.append(ConversationMessage.from_dict(message))
    return coerced


class OpenRouterToolset:
    """Tool operations over an injected client, catalog cache and conversation store.

    Args:
        client: API client (owns the rate-limit state).
        cache: Model catalog cache shared by all catalog operations.
        store: Conversation store shared by the completion and history tools.
        default_model: Used by chat completion when no model is given.
        max_context_tokens: Upper bound on the history sent upstream.
    """

    def __init__(
        self,
        client: OpenRouterClient,
        cache: ModelCatalogCache,
        store: ConversationStore,
        *,
        default_model: Optional[str] = None,
        max_context_tokens: int = 200000,
    ) -> None:
        self.client = client
        self.cache = cache
        self.store = store
        self.default_model = default_model
        self.max_context_tokens = max_context_tokens

    async def aclose(self) -> None:
        await self.client.aclose()

    # ------------------------------------------------------------------
    # Catalog helpers
    # ------------------------------------------------------------------

    async def _snapshot(self) -> CatalogSnapshot:
        snapshot = self.cache.get_snapshot()
        if snapshot is None:
            snapshot = await self.cache.refresh(self.client)
        else:
            logger.debug("Catalog cache hit (%d models)", len(snapshot.entries))
        return snapshot

    async def _lookup(self, ref: ParsedModelRef) -> Optional[ModelRecord]:
        record = self.cache.lookup(ref.base_model)
        if record is None and self.cache.get_snapshot() is None:
            await self.cache.refresh(self.client)
            record = self.cache.lookup(ref.base_model)
        return record

    def _context_budget(self, ref: ParsedModelRef) -> int:
        # Only a snapshot already in hand is consulted; no fetch just for this.
        record = self.cache.lookup(ref.base_model)
        if record is None:
            return self.max_context_tokens
        return min(self.max_context_tokens, record.context_length)

    def _require_conversation(self, conversation_id: str):
        conversation = self.store.get(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    def _persist(self, conversation_id: Optional[str], messages: Sequence[ConversationMessage]) -> str:
        if conversation_id is None:
            conversation_id = self.store.create().id
        for message in messages:
            if self.store.append(conversation_id, message) is None:
                # Deleted between request and reply.
                raise ConversationNotFoundError(conversation_id)
        return conversation_id

    # ------------------------------------------------------------------
    # Completions
    # ------------------------------------------------------------------

    async def chat_completion(
        self,
        messages: Sequence[Any],
        *,
        model: Optional[str] = None,
        conversation_id: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        seed: Optional[int] = None,
        reasoning: Optional[str] = None,
        providers: Optional[Sequence[str]] = None,
        provider: Optional[Mapping[str, Any]] = None,
        extra_params: Optional[Mapping[str, Any]] = None,
    ) -> dict[str, Any]:
        model = model or self.default_model
        if not model:
            raise ValueError(
                "No model specified and no default model configured. "
                "Specify a model or set OPENROUTER_DEFAULT_MODEL."
            )
        if not messages:
            raise ValueError("Messages array cannot be empty. At least one message is required.")
        new_messages = _coerce_messages(messages)
        ref = parse_model_ref(model)

        history: list[ConversationMessage] = []
        if conversation_id is not None:
            history = list(self._require_conversation(conversation_id).history)

        combined = history + new_messages
        windowed = fit_messages(combined, self._context_budget(ref))
        truncated = len(combined) - len(windowed)
        if truncated:
            logger.info("Dropped %d oldest messages to fit the context window of %s", truncated, ref.base_model)
        if not any(m.role != "system" for m in windowed):
            raise ValueError(
                f"The newest message exceeds the context budget of {ref.base_model}; "
                "shorten it or choose a model with a larger context window."
            )

        try:
            response = await self.client.chat_completion(
                model=ref.full_model,
                messages=[m.to_api_message() for m in windowed],
                temperature=temperature,
                max_tokens=max_tokens,
                seed=seed,
                reasoning=reasoning,
                providers=providers,
                provider=provider,
                extra_params=extra_params,
            )
        except Exception as e:
            logger.warning("Chat completion with %s failed: %s", ref.full_model, describe_upstream_error(e))
            raise

        choice = (response.get("choices") or [{}])[0]
        reply = choice.get("message") or {}
        content = reply.get("content") or ""

        conversation_id = self._persist(
            conversation_id,
            new_messages + [ConversationMessage(role="assistant", content=content)],
        )
        return {
            "conversation_id": conversation_id,
            "model": response.get("model", ref.full_model),
            "content": content,
            "finish_reason": choice.get("finish_reason"),
            "usage": response.get("usage") or {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0},
            "truncated": truncated,
            "response": response,
        }

    async def text_completion(
        self,
        prompt: str,
        *,
        model: str,
        conversation_id: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        seed: Optional[int] = None,
        providers: Optional[Sequence[str]] = None,
        provider: Optional[Mapping[str, Any]] = None,
        extra_params: Optional[Mapping[str, Any]] = None,
    ) -> dict[str, Any]:
        if not model:
            raise ValueError("Model parameter is required for text completion.")
        if not prompt:
            raise ValueError("Prompt parameter is required for text completion.")
        ref = parse_model_ref(model)

        final_prompt = prompt
        if conversation_id is not None:
            history = self._require_conversation(conversation_id).history
            # Continue from the last completion rather than starting afresh.
            if history and history[-1].role == "assistant":
                final_prompt = history[-1].content + prompt

        try:
            response = await self.client.text_completion(
                model=ref.full_model,
                prompt=final_prompt,
                temperature=temperature,
                max_tokens=max_tokens,
                seed=seed,
                providers=providers,
                provider=provider,
                extra_params=extra_params,
            )
        except Exception as e:
            logger.warning("Text completion with %s failed: %s", ref.full_model, describe_upstream_error(e))
            raise

        choice = (response.get("choices") or [{}])[0]
        text = choice.get("text") or ""

        conversation_id = self._persist(
            conversation_id,
            [
                ConversationMessage(role="user", content=prompt),
                ConversationMessage(role="assistant", content=text),
            ],
        )
        return {
            "conversation_id": conversation_id,
            "model": response.get("model", ref.full_model),
            "text": text,
            "finish_reason": choice.get("finish_reason"),
            "usage": response.get("usage") or {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0},
            "response": response,
        }

    # ------------------------------------------------------------------
    # Catalog tools
    # ------------------------------------------------------------------

    async def search_models(self, filters: Optional[ModelSearchFilters] = None) -> dict[str, Any]:
        filters = filters or ModelSearchFilters()
        snapshot = await self._snapshot()
        results = search_models(snapshot.entries, filters)
        return {
            "data": [summarize_model(r) for r in results],
            "total_models": len(snapshot.entries),
            "filtered_count": len(results),
            "applied_filters": filters.as_dict(),
        }

    async def get_model_info(self, model: str) -> dict[str, Any]:
        record = await self._lookup(parse_model_ref(model))
        if record is None:
            raise ModelNotFoundError(model)
        return summarize_model(record)

    async def validate_model(self, model: str) -> bool:
        return await self._lookup(parse_model_ref(model)) is not None

    async def get_model_providers(self, model: str) -> dict[str, Any]:
        ref = parse_model_ref(model)
        if await self._lookup(ref) is None:
            raise ModelNotFoundError(model)
        endpoints = await self.client.fetch_model_endpoints(ref.base_model)
        data = endpoints.get("data") or {}
        return {
            "model": ref.base_model,
            "providers": data.get("endpoints") or [],
        }

    # ------------------------------------------------------------------
    # Conversation tools
    # ------------------------------------------------------------------

    def list_conversations(self) -> list[dict[str, Any]]:
        return [summary.to_dict() for summary in self.store.list()]

    def get_conversation_history(self, conversation_id: str) -> list[dict[str, Any]]:
        conversation = self._require_conversation(conversation_id)
        return [m.to_dict() for m in conversation.history]

    def delete_conversation(self, conversation_id: str) -> None:
        if not self.store.delete(conversation_id):
            raise ConversationNotFoundError(conversation_id)


def create_toolset(config: BridgeConfig, **client_kwargs: Any) -> OpenRouterToolset:
    """Wire a fresh client, catalog cache and conversation store from config."""
    config.validate()
    client = OpenRouterClient(
        config.api_key,
        base_url=config.base_url,
        timeout=config.request_timeout,
        http_referer=config.http_referer,
        app_title=config.app_title,
        **client_kwargs,
    )
    return OpenRouterToolset(
        client,
        ModelCatalogCache(ttl=config.catalog_ttl),
        ConversationStore(),
        default_model=config.default_model,
        max_context_tokens=config.max_context_tokens,
    )
