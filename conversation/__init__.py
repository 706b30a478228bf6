"""Conversation persistence and context windowing."""

from conversation.store import (
    Conversation,
    ConversationMessage,
    ConversationNotFoundError,
    ConversationStore,
    ConversationSummary,
)
from conversation.windowing import estimate_tokens, fit_messages

__all__ = [
    "Conversation",
    "ConversationMessage",
    "ConversationNotFoundError",
    "ConversationStore",
    "ConversationSummary",
    "estimate_tokens",
    "fit_messages",
]
