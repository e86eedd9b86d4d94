"""Request and response schemas for the chat HTTP API."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from config import MAX_MESSAGE_LENGTH, MAX_SESSION_ID_LENGTH


class CamelModel(BaseModel):
    """Base schema serialized with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatRequest(CamelModel):
    """Incoming chat message."""
    user_message: str = Field(..., max_length=MAX_MESSAGE_LENGTH)
    session_id: Optional[str] = Field(None, max_length=MAX_SESSION_ID_LENGTH)

    @field_validator("user_message")
    @classmethod
    def user_message_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("User message cannot be empty")
        return value


class ChatResponse(CamelModel):
    """Successful reply to a chat message."""
    ai_response: str
    session_id: str
    timestamp: datetime
    response_time_ms: int
    status: str = "SUCCESS"


class ErrorResponse(CamelModel):
    """Error body returned by /chat/send."""
    status: str = "ERROR"
    message: str
    timestamp: datetime


class ChatMessageOut(CamelModel):
    """A persisted turn as returned by the history endpoints."""
    id: Optional[int] = None
    user_message: str
    ai_response: str
    timestamp: datetime
    session_id: str
    user_ip: Optional[str] = None
    response_time_ms: Optional[int] = None


class SessionStatsOut(CamelModel):
    """Per-session aggregate statistics."""
    session_id: str
    message_count: int
    first_message: Optional[datetime] = None
    last_message: Optional[datetime] = None
    total_response_time: int
    average_response_time: float
