"""In-memory multi-turn conversation store.

Each conversation is an append-only message log owned by the store. Callers
hold only the opaque id; ``get()`` hands out immutable snapshots, never the
store's own lists.

No method awaits, so under asyncio every call runs to completion before any
other task touches the store -- appends to one conversation are serialized
without a lock.
"""

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

VALID_ROLES = ("system", "user", "assistant", "tool")

_TICK = timedelta(microseconds=1)


class ConversationNotFoundError(LookupError):
    """Raised by callers that require an existing conversation id."""

    def __init__(self, conversation_id: str):
        self.conversation_id = conversation_id
        super().__init__(f"Conversation with ID '{conversation_id}' not found.")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ConversationMessage:
    role: str
    content: str
    timestamp: Optional[datetime] = None
    tool_call_id: Optional[str] = None
    tool_name: Optional[str] = None

    def __post_init__(self):
        if self.role not in VALID_ROLES:
            raise ValueError(f"Invalid message role '{self.role}'; expected one of {', '.join(VALID_ROLES)}")
        if not isinstance(self.content, str):
            raise ValueError("Message content must be a string")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ConversationMessage":
        timestamp = data.get("timestamp")
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)
        return cls(
            role=data.get("role", ""),
            content=data.get("content") or "",
            timestamp=timestamp,
            tool_call_id=data.get("tool_call_id"),
            tool_name=data.get("tool_name") or data.get("name"),
        )

    def to_api_message(self) -> Dict[str, Any]:
        """Chat-completions shaped dict (no bookkeeping fields)."""
        msg: Dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_call_id:
            msg["tool_call_id"] = self.tool_call_id
        if self.tool_name and self.role == "tool":
            msg["name"] = self.tool_name
        return msg

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }
        if self.tool_call_id:
            data["tool_call_id"] = self.tool_call_id
        if self.tool_name:
            data["tool_name"] = self.tool_name
        return data


@dataclass(frozen=True)
class Conversation:
    """Read-only snapshot of one conversation."""

    id: str
    history: Tuple[ConversationMessage, ...]
    created_at: datetime
    last_updated_at: datetime
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "history": [m.to_dict() for m in self.history],
            "created_at": self.created_at.isoformat(),
            "last_updated_at": self.last_updated_at.isoformat(),
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class ConversationSummary:
    id: str
    created_at: datetime
    last_updated_at: datetime
    message_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "last_updated_at": self.last_updated_at.isoformat(),
            "message_count": self.message_count,
        }


@dataclass
class _ConversationRecord:
    id: str
    history: List[ConversationMessage]
    created_at: datetime
    last_updated_at: datetime
    metadata: Dict[str, Any]

    def snapshot(self) -> Conversation:
        return Conversation(
            id=self.id,
            history=tuple(self.history),
            created_at=self.created_at,
            last_updated_at=self.last_updated_at,
            metadata=dict(self.metadata),
        )


class ConversationStore:
    """Keyed collection of append-only conversation logs.

    Args:
        clock: Returns the current aware datetime (UTC by default).
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or _utcnow
        self._conversations: Dict[str, _ConversationRecord] = {}
        self._last_stamp: Optional[datetime] = None

    def _next_timestamp(self) -> datetime:
        # Strictly increasing even when the wall clock ties or steps back.
        now = self._clock()
        if self._last_stamp is not None and now <= self._last_stamp:
            now = self._last_stamp + _TICK
        self._last_stamp = now
        return now

    def __len__(self) -> int:
        return len(self._conversations)

    def __contains__(self, conversation_id: object) -> bool:
        return conversation_id in self._conversations

    def create(
        self,
        initial_messages: Optional[Iterable[ConversationMessage]] = None,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> Conversation:
        now = self._next_timestamp()
        history = [m if m.timestamp else replace(m, timestamp=now) for m in (initial_messages or [])]
        conversation_id = str(uuid.uuid4())
        record = _ConversationRecord(
            id=conversation_id,
            history=history,
            created_at=now,
            last_updated_at=now,
            metadata=dict(metadata or {}),
        )
        self._conversations[conversation_id] = record
        logger.debug("Created conversation %s with %d messages", conversation_id, len(history))
        return record.snapshot()

    def get(self, conversation_id: str) -> Optional[Conversation]:
        record = self._conversations.get(conversation_id)
        return record.snapshot() if record else None

    def append(self, conversation_id: str, message: ConversationMessage) -> Optional[Conversation]:
        record = self._conversations.get(conversation_id)
        if record is None:
            return None
        now = self._next_timestamp()
        if message.timestamp is None:
            message = replace(message, timestamp=now)
        record.history.append(message)
        record.last_updated_at = now
        return record.snapshot()

    def list(self) -> List[ConversationSummary]:
        """Summaries in the order conversations were created."""
        return [
            ConversationSummary(
                id=r.id,
                created_at=r.created_at,
                last_updated_at=r.last_updated_at,
                message_count=len(r.history),
            )
            for r in self._conversations.values()
        ]

    def delete(self, conversation_id: str) -> bool:
        if self._conversations.pop(conversation_id, None) is None:
            return False
        logger.debug("Deleted conversation %s", conversation_id)
        return True
