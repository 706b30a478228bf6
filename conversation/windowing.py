"""Context-window truncation and rough token estimation.

Estimates are ~4 UTF-8 bytes per token: good enough for pre-flight budget
checks, not for billing.

Truncation drops the oldest non-system messages without leaving a marker,
and does not keep tool calls paired with their results.
"""

import json
import math
from typing import Any, List, Sequence, Tuple, TypeVar

M = TypeVar("M")


def estimate_tokens(text: Any) -> int:
    """Rough token estimate: ``ceil(utf8_bytes / 4)``."""
    if not text:
        return 0
    if not isinstance(text, str):
        text = json.dumps(text, ensure_ascii=False)
    return math.ceil(len(text.encode("utf-8")) / 4)


def _role_and_content(message: Any) -> Tuple[str, Any]:
    if isinstance(message, dict):
        return message.get("role", ""), message.get("content")
    return getattr(message, "role", ""), getattr(message, "content", None)


def estimate_message_tokens(message: Any) -> int:
    return estimate_tokens(_role_and_content(message)[1])


def fit_messages(messages: Sequence[M], max_tokens: int) -> List[M]:
    """Select the suffix of ``messages`` that fits in ``max_tokens``.

    A leading system message is always kept and its cost reserved first.
    The rest are taken newest-first until the next one would exceed the
    budget; the walk stops there even if an older, shorter message would fit.
    """
    if not messages:
        return []

    head: List[M] = []
    rest = list(messages)
    used = 0
    if _role_and_content(rest[0])[0] == "system":
        head.append(rest.pop(0))
        used = estimate_message_tokens(head[0])

    tail: List[M] = []
    for message in reversed(rest):
        cost = estimate_message_tokens(message)
        if used + cost > max_tokens:
            break
        tail.append(message)
        used += cost
    tail.reverse()
    return head + tail
