"""Upstream OpenRouter access -- HTTP client, rate-limit tracking, retries.

**client.py**
    ``OpenRouterClient``: async httpx client. Checks the rate-limit tracker
    before each request, recovers once from HTTP 429, and retries catalog and
    endpoint listings on a fixed backoff schedule.

**rate_limit.py**
    ``RateLimitTracker``: quota state read from response headers.

**retry.py**
    ``with_retry``: fixed-schedule retry helper shared by the listing calls.
"""

from upstream.client import OpenRouterClient, describe_upstream_error, redact_secrets
from upstream.rate_limit import RateLimitState, RateLimitTracker
from upstream.retry import RETRY_DELAYS, with_retry

__all__ = [
    "OpenRouterClient",
    "RateLimitState",
    "RateLimitTracker",
    "RETRY_DELAYS",
    "describe_upstream_error",
    "redact_secrets",
    "with_retry",
]
