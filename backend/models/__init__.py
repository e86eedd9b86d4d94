"""Data models for the Gemini chat backend."""
from .conversation import ChatMessage, SessionStats, ChatSuccess, ChatError, ChatOutcome
from .api import ChatRequest, ChatResponse, ErrorResponse, ChatMessageOut, SessionStatsOut

__all__ = [
    "ChatMessage",
    "SessionStats",
    "ChatSuccess",
    "ChatError",
    "ChatOutcome",
    "ChatRequest",
    "ChatResponse",
    "ErrorResponse",
    "ChatMessageOut",
    "SessionStatsOut",
]
