"""Tests for conversation/windowing.py -- token estimates and truncation."""

import pytest

from conversation.store import ConversationMessage
from conversation.windowing import estimate_tokens, fit_messages


@pytest.mark.parametrize("text, expected", [
    ("", 0),
    (None, 0),
    ("abcd", 1),
    ("abcde", 2),
    ("x" * 400, 100),
    ("é", 1),          # 2 UTF-8 bytes
    ("日本語です", 4),  # 15 UTF-8 bytes
])
def test_estimate_tokens(text, expected):
    assert estimate_tokens(text) == expected


def test_estimate_tokens_for_content_parts():
    parts = [{"type": "text", "text": "hello"}]
    assert estimate_tokens(parts) > 0


def _conversation(n, content="x" * 8):
    return [{"role": "system", "content": "s" * 8}] + [
        {"role": "user" if i % 2 else "assistant", "content": content, "n": i} for i in range(1, n + 1)
    ]


def test_keeps_system_plus_last_two_messages():
    messages = _conversation(100)  # every message costs 2 tokens
    fitted = fit_messages(messages, 6)
    assert fitted == [messages[0], messages[99], messages[100]]


def test_everything_fits():
    messages = _conversation(5)
    assert fit_messages(messages, 1000) == messages


def test_system_message_kept_even_when_over_budget():
    messages = [{"role": "system", "content": "s" * 400}, {"role": "user", "content": "hi"}]
    assert fit_messages(messages, 10) == [messages[0]]


def test_system_message_is_not_duplicated():
    messages = _conversation(2)
    fitted = fit_messages(messages, 1000)
    assert sum(1 for m in fitted if m["role"] == "system") == 1


def test_walk_stops_at_first_message_that_does_not_fit():
    messages = [
        {"role": "user", "content": "a" * 4},      # 1 token, would fit but is older
        {"role": "assistant", "content": "b" * 40},  # 10 tokens, breaks the walk
        {"role": "user", "content": "c" * 8},      # 2 tokens
    ]
    assert fit_messages(messages, 5) == [messages[2]]


def test_no_system_message_only_takes_recent_suffix():
    messages = [{"role": "user", "content": "x" * 8} for _ in range(10)]
    assert fit_messages(messages, 4) == messages[-2:]


def test_empty_input():
    assert fit_messages([], 100) == []


def test_accepts_conversation_messages():
    messages = [
        ConversationMessage(role="system", content="be brief"),
        ConversationMessage(role="user", content="x" * 400),
        ConversationMessage(role="user", content="hello"),
    ]
    assert fit_messages(messages, 10) == [messages[0], messages[2]]
