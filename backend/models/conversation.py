"""Conversation data models."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Union


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ChatMessage:
    """Represents a single turn: one user message and the AI response to it."""
    user_message: str
    ai_response: str
    session_id: str
    timestamp: datetime = field(default_factory=_utc_now)
    user_ip: Optional[str] = None
    response_time_ms: Optional[int] = None
    id: Optional[int] = None  # Assigned by the store on append


@dataclass
class SessionStats:
    """Aggregate statistics for all turns sharing a session id."""
    session_id: str
    message_count: int
    first_message: Optional[datetime]
    last_message: Optional[datetime]
    total_response_time: int

    @property
    def average_response_time(self) -> float:
        if self.message_count > 0:
            return self.total_response_time / self.message_count
        return 0.0


@dataclass
class ChatSuccess:
    """Outcome of a chat turn that was answered and persisted."""
    ai_response: str
    session_id: str
    response_time_ms: int
    timestamp: datetime = field(default_factory=_utc_now)
    status: str = "SUCCESS"


@dataclass
class ChatError:
    """Outcome of a chat turn that failed; carried as a value, never raised."""
    message: str
    timestamp: datetime = field(default_factory=_utc_now)
    status: str = "ERROR"


ChatOutcome = Union[ChatSuccess, ChatError]
