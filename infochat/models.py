"""Data shapes shared by the chat session components."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Sender(str, Enum):
    USER = "user"
    BOT = "bot"


class MessageKind(str, Enum):
    USER = "user"
    REPLY = "reply"
    FALLBACK = "fallback"
    NOTICE = "notice"
    ERROR = "error"


class SessionPhase(str, Enum):
    IDLE = "idle"
    AWAITING_REPLY = "awaiting_reply"


@dataclass(frozen=True)
class Message:
    id: int
    sender: Sender
    content: str
    timestamp: datetime = field(default_factory=_now)
    kind: MessageKind = MessageKind.REPLY

    def to_chat_message(self) -> Dict[str, str]:
        role = "user" if self.sender is Sender.USER else "assistant"
        return {"role": role, "content": self.content}


@dataclass(frozen=True)
class HistoryEntry:
    """One past user submission as shown in the history panel."""

    id: int
    message: str
    preview: str
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "message": self.message,
            "preview": self.preview,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HistoryEntry":
        if not isinstance(data, dict):
            raise ValueError(f"History record must be an object, got {type(data).__name__}")
        message = data.get("message")
        if not isinstance(message, str):
            raise ValueError("History record is missing its message text")
        try:
            entry_id = int(data.get("id"))
        except (TypeError, ValueError, OverflowError) as exc:
            raise ValueError(f"History record has an invalid id: {data.get('id')!r}") from exc
        preview = data.get("preview")
        timestamp = data.get("timestamp")
        return cls(
            id=entry_id,
            message=message,
            preview=preview if isinstance(preview, str) else message,
            timestamp=timestamp if isinstance(timestamp, str) else "",
        )


@dataclass(frozen=True)
class SessionState:
    """Immutable snapshot of what a renderer needs to draw the session."""

    transcript: Tuple[Message, ...]
    online: bool
    busy: bool
    typing: bool
    placeholder: str

    @property
    def input_enabled(self) -> bool:
        return self.online and not self.busy


@dataclass(frozen=True)
class SessionEvent:
    """A visible transition emitted while a submission is processed."""

    event: str
    message: Optional[Message] = None
    entry: Optional[HistoryEntry] = None


__all__ = [
    "HistoryEntry",
    "Message",
    "MessageKind",
    "Sender",
    "SessionEvent",
    "SessionPhase",
    "SessionState",
]
