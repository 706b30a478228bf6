"""
Async OpenRouter API client with rate-limit tracking and bounded retries.

Every request goes through ``_request``, which:

1. Waits out an exhausted quota window before sending (cooperative
   throttling, the caller simply blocks for the wait).
2. Records the rate-limit headers of each successful response.
3. On HTTP 429, sleeps for the provider's ``retry-after`` (default 60s) and
   re-issues the same request exactly once. A second failure propagates.

Catalog and endpoint listings are idempotent and additionally retry any
failure on the fixed ``[1s, 2s, 4s]`` schedule. Completions are sent once.

Usage:
    async with OpenRouterClient(api_key) as client:
        snapshot = await client.fetch_catalog()
        reply = await client.chat_completion(
            model="openai/gpt-4o",
            messages=[{"role": "user", "content": "Hello"}],
        )
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence

import httpx

from catalog.model_cache import CatalogSnapshot, parse_model_records
from catalog.model_ref import split_model_id
from openrouter_constants import (
    DEFAULT_APP_TITLE,
    DEFAULT_HTTP_REFERER,
    DEFAULT_REQUEST_TIMEOUT,
    OPENROUTER_BASE_URL,
    OPENROUTER_CHAT_PATH,
    OPENROUTER_COMPLETIONS_PATH,
    OPENROUTER_MODELS_PATH,
)
from upstream.rate_limit import RateLimitState, RateLimitTracker, parse_retry_after
from upstream.retry import RETRY_DELAYS, with_retry

logger = logging.getLogger(__name__)

REASONING_LEVELS = ("none", "low", "medium", "high")


def redact_secrets(msg: str) -> str:
    """Remove bearer tokens and key-like values from text before logging it."""
    msg = re.sub(r"Bearer\s+[A-Za-z0-9_\-\.]{8,}", "Bearer [redacted]", msg, flags=re.IGNORECASE)
    msg = re.sub(r"sk-or-[A-Za-z0-9_\-]{8,}", "sk-or-[redacted]", msg)
    return msg


def describe_upstream_error(exc: BaseException) -> str:
    """Best human-readable message for a failed upstream call.

    Prefers the ``error.message`` field of an OpenRouter JSON error body,
    falling back to the exception text.
    """
    if isinstance(exc, httpx.HTTPStatusError):
        try:
            detail = exc.response.json().get("error", {}).get("message")
        except (ValueError, AttributeError):
            detail = None
        if detail:
            return redact_secrets(f"{detail} (HTTP {exc.response.status_code})")
    return redact_secrets(str(exc) or exc.__class__.__name__)


def _reasoning_payload(level: str) -> dict[str, Any]:
    if level not in REASONING_LEVELS:
        raise ValueError(f"reasoning must be one of {', '.join(REASONING_LEVELS)}, got '{level}'")
    if level == "none":
        return {"enabled": False}
    return {"effort": level}


def _provider_payload(
    providers: Optional[Sequence[str]],
    provider: Optional[Mapping[str, Any]],
) -> Optional[dict[str, Any]]:
    payload: dict[str, Any] = {}
    if providers:
        # An explicit provider list pins routing to exactly those providers.
        payload["order"] = list(providers)
        payload["allow_fallbacks"] = False
    if provider:
        payload.update({k: v for k, v in provider.items() if v is not None})
    return payload or None


class OpenRouterClient:
    """Thin async wrapper around the OpenRouter REST API.

    Args:
        api_key: OpenRouter API key, sent as a bearer token.
        base_url: API root (default https://openrouter.ai/api/v1).
        timeout: Per-request timeout in seconds.
        http_referer / app_title: OpenRouter attribution headers.
        retry_delays: Backoff schedule for idempotent listing calls.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
        clock: Returns epoch seconds; shared with the rate-limit tracker.
        sleep: Awaitable sleep used for throttling and backoff.
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = OPENROUTER_BASE_URL,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        http_referer: str = DEFAULT_HTTP_REFERER,
        app_title: str = DEFAULT_APP_TITLE,
        retry_delays: Sequence[float] = RETRY_DELAYS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Optional[Callable[[], float]] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        if not api_key:
            raise ValueError("An OpenRouter API key is required")
        self._clock = clock or time.time
        self._sleep = sleep or asyncio.sleep
        self._retry_delays = tuple(retry_delays)
        self._rate_limit = RateLimitTracker(clock=self._clock)
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {api_key}",
                "HTTP-Referer": http_referer,
                "X-Title": app_title,
            },
        )

    async def __aenter__(self) -> "OpenRouterClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    @property
    def rate_limit(self) -> RateLimitState:
        return self._rate_limit.state

    @property
    def rate_limit_tracker(self) -> RateLimitTracker:
        return self._rate_limit

    # ------------------------------------------------------------------
    # Transport with rate-limit handling
    # ------------------------------------------------------------------

    async def _throttle(self) -> None:
        wait = self._rate_limit.wait_time()
        if wait > 0:
            logger.warning("Rate limit exhausted; waiting %.2fs for the window to reset", wait)
            await self._sleep(wait)

    async def _request(self, method: str, path: str, payload: Optional[dict] = None) -> httpx.Response:
        await self._throttle()
        response = await self._http.request(method, path, json=payload)

        if response.status_code == 429:
            retry_after = parse_retry_after(response.headers)
            self._rate_limit.mark_exhausted(retry_after)
            logger.warning("Rate limit exceeded on %s %s; retrying once in %.0fs", method, path, retry_after)
            await self._sleep(retry_after)
            response = await self._http.request(method, path, json=payload)
            if response.status_code == 429:
                self._rate_limit.mark_exhausted(parse_retry_after(response.headers))

        response.raise_for_status()
        self._rate_limit.observe(response.headers)
        return response

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    async def fetch_catalog(self) -> CatalogSnapshot:
        """Fetch the full model list, retrying failures on the backoff schedule."""

        async def _fetch() -> CatalogSnapshot:
            response = await self._request("GET", OPENROUTER_MODELS_PATH)
            entries = parse_model_records(response.json().get("data", []))
            return CatalogSnapshot(entries=entries, fetched_at=self._clock())

        return await with_retry(
            _fetch, self._retry_delays, sleep=self._sleep, description="Model catalog fetch"
        )

    async def fetch_model_endpoints(self, model_id: str) -> dict[str, Any]:
        """Fetch live provider endpoints for an ``author/slug`` model id."""
        author, slug = split_model_id(model_id)

        async def _fetch() -> dict[str, Any]:
            response = await self._request("GET", f"{OPENROUTER_MODELS_PATH}/{author}/{slug}/endpoints")
            return response.json()

        return await with_retry(
            _fetch, self._retry_delays, sleep=self._sleep, description=f"Endpoint fetch for {model_id}"
        )

    # ------------------------------------------------------------------
    # Completions
    # ------------------------------------------------------------------

    async def chat_completion(
        self,
        *,
        model: str,
        messages: Sequence[Mapping[str, Any]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        seed: Optional[int] = None,
        reasoning: Optional[str] = None,
        providers: Optional[Sequence[str]] = None,
        provider: Optional[Mapping[str, Any]] = None,
        extra_params: Optional[Mapping[str, Any]] = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"model": model, "messages": [dict(m) for m in messages]}
        if temperature is not None:
            body["temperature"] = temperature
        if max_tokens is not None:
            body["max_tokens"] = max_tokens
        if seed is not None:
            body["seed"] = seed
        if reasoning is not None:
            body["reasoning"] = _reasoning_payload(reasoning)
        routing = _provider_payload(providers, provider)
        if routing:
            body["provider"] = routing
        if extra_params:
            body.update(extra_params)

        logger.debug("Chat completion request body: %s", json.dumps(body, default=str))
        response = await self._request("POST", OPENROUTER_CHAT_PATH, body)
        return response.json()

    async def text_completion(
        self,
        *,
        model: str,
        prompt: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        seed: Optional[int] = None,
        providers: Optional[Sequence[str]] = None,
        provider: Optional[Mapping[str, Any]] = None,
        extra_params: Optional[Mapping[str, Any]] = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"model": model, "prompt": prompt}
        if max_tokens is not None:
            body["max_tokens"] = max_tokens
        if temperature is not None:
            body["temperature"] = temperature
        if seed is not None:
            body["seed"] = seed
        routing = _provider_payload(providers, provider)
        if routing:
            body["provider"] = routing
        if extra_params:
            body.update(extra_params)

        logger.debug("Text completion request body: %s", json.dumps(body, default=str))
        response = await self._request("POST", OPENROUTER_COMPLETIONS_PATH, body)
        return response.json()
