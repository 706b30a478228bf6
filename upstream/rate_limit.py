"""Rate-limit bookkeeping for the OpenRouter API.

The upstream response headers are the only authority on quota: the tracker
never decrements ``remaining`` on its own, it just records what the last
successful response said (or what a 429 implied).

Headers read:
    x-ratelimit-remaining  requests left in the current window
    x-ratelimit-reset      seconds until the window resets
    x-ratelimit-limit      window size (total requests)
"""

import logging
import time
from dataclasses import dataclass, replace
from typing import Callable, Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_REMAINING = 50
DEFAULT_RESET_SECONDS = 60
DEFAULT_TOTAL = 50
DEFAULT_RETRY_AFTER_SECONDS = 60

REMAINING_HEADER = "x-ratelimit-remaining"
RESET_HEADER = "x-ratelimit-reset"
LIMIT_HEADER = "x-ratelimit-limit"
RETRY_AFTER_HEADER = "retry-after"


@dataclass(frozen=True)
class RateLimitState:
    remaining: int
    reset_at: float  # epoch seconds
    total: int


def _header_int(headers: Mapping[str, str], name: str, default: int) -> int:
    raw = headers.get(name)
    if raw is None or str(raw).strip() == "":
        return default
    try:
        return int(float(raw))
    except (TypeError, ValueError):
        logger.warning("Ignoring unparseable %s header: %r", name, raw)
        return default


def parse_retry_after(headers: Mapping[str, str]) -> float:
    """Seconds to wait after a 429, defaulting to 60 when the header is absent."""
    seconds = _header_int(headers, RETRY_AFTER_HEADER, DEFAULT_RETRY_AFTER_SECONDS)
    return float(max(seconds, 0))


class RateLimitTracker:
    """Holds the single RateLimitState for one API client.

    Args:
        clock: Returns the current time in epoch seconds (``time.time``).
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.time
        self._state = RateLimitState(
            remaining=DEFAULT_REMAINING,
            reset_at=self._clock() + DEFAULT_RESET_SECONDS,
            total=DEFAULT_TOTAL,
        )

    @property
    def state(self) -> RateLimitState:
        return self._state

    def set_state(self, state: RateLimitState) -> None:
        if state.total <= 0:
            raise ValueError("total must be positive")
        remaining = min(max(state.remaining, 0), state.total)
        self._state = replace(state, remaining=remaining)

    def observe(self, headers: Mapping[str, str]) -> RateLimitState:
        """Replace the state from a successful response's headers."""
        total = _header_int(headers, LIMIT_HEADER, DEFAULT_TOTAL)
        if total <= 0:
            logger.warning("Ignoring non-positive %s header: %s", LIMIT_HEADER, total)
            total = DEFAULT_TOTAL
        remaining = _header_int(headers, REMAINING_HEADER, DEFAULT_REMAINING)
        reset_seconds = _header_int(headers, RESET_HEADER, DEFAULT_RESET_SECONDS)

        self._state = RateLimitState(
            remaining=min(max(remaining, 0), total),
            reset_at=self._clock() + max(reset_seconds, 0),
            total=total,
        )
        return self._state

    def mark_exhausted(self, retry_after: float) -> RateLimitState:
        """Record a 429: no quota left until ``retry_after`` seconds from now."""
        self._state = replace(
            self._state,
            remaining=0,
            reset_at=self._clock() + max(retry_after, 0),
        )
        return self._state

    def wait_time(self) -> float:
        """Seconds a caller must wait before the next request (0 when clear)."""
        state = self._state
        if state.remaining > 0:
            return 0.0
        return max(state.reset_at - self._clock(), 0.0)
