"""Main entry point for the Gemini chat backend API."""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from config import PORT, LOG_LEVEL, LOG_FORMAT, CORS_ORIGINS, DEFAULT_RECENT_LIMIT, MAX_USER_IP_LENGTH
from logger import setup_logging
from models.api import ChatRequest, ChatResponse, ErrorResponse, ChatMessageOut, SessionStatsOut
from models.conversation import ChatError, ChatMessage
from services.gemini_client import GeminiClient
from services.conversation_store import ConversationStore
from services.chat_service import ChatService

# Initialize logging
logger = logging.getLogger(__name__)

# Initialize services (will be done on startup)
gemini_client: GeminiClient = None
chat_service: ChatService = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize services on startup."""
    global gemini_client, chat_service

    if LOG_FORMAT == "json":
        setup_logging(LOG_LEVEL)

    logger.info("Initializing chat backend services...")

    try:
        gemini_client = GeminiClient()
        logger.info("Initialized GeminiClient")

        store = ConversationStore()
        logger.info("Initialized ConversationStore")

        chat_service = ChatService(gemini_client, store)
        logger.info("All services initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize services: {e}", exc_info=True)
        raise

    yield


# Initialize FastAPI app
app = FastAPI(
    title="Gemini Chat Backend",
    description="Chat API that answers with Google Gemini and keeps per-session history",
    version="1.0.0",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    max_age=3600,
)


def _error_body(message: str) -> dict:
    return ErrorResponse(message=message, timestamp=datetime.now(timezone.utc)).model_dump(
        mode="json", by_alias=True
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report invalid input as a 400 error body."""
    reasons = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'][1:])}: {error['msg']}"
        for error in exc.errors()
    )
    logger.warning(f"Rejected invalid request to {request.url.path}: {reasons}")
    return JSONResponse(status_code=400, content=_error_body(f"Validation failed: {reasons}"))


def get_client_ip(request: Request) -> Optional[str]:
    """
    Resolve the caller's address, preferring proxy headers.

    Uses the first X-Forwarded-For entry, then X-Real-IP, then the socket
    peer. Empty and "unknown" header values are skipped; header values
    are cut to the width of the stored column.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        candidate = forwarded_for.split(",")[0].strip()
        if candidate and candidate.lower() != "unknown":
            return candidate[:MAX_USER_IP_LENGTH]

    real_ip = (request.headers.get("X-Real-IP") or "").strip()
    if real_ip and real_ip.lower() != "unknown":
        return real_ip[:MAX_USER_IP_LENGTH]

    return request.client.host if request.client else None


def _to_out(message: ChatMessage) -> ChatMessageOut:
    return ChatMessageOut(
        id=message.id,
        user_message=message.user_message,
        ai_response=message.ai_response,
        timestamp=message.timestamp,
        session_id=message.session_id,
        user_ip=message.user_ip,
        response_time_ms=message.response_time_ms
    )


@app.get("/")
def root():
    """Service info endpoint."""
    return {"status": "ok", "message": "Gemini Chat Backend API", "docs": "/docs"}


@app.get("/health")
def health():
    """Detailed health check."""
    return {
        "status": "healthy",
        "service": "gemini-chat-backend",
        "version": "1.0.0",
        "services_initialized": chat_service is not None
    }


@app.post("/chat/send", response_model=ChatResponse)
def send_message(chat_request: ChatRequest, request: Request):
    """
    Send a chat message and receive the AI response.

    Returns 400 with an error body when the turn could not be completed.
    """
    try:
        client_ip = get_client_ip(request)
        logger.info(f"Processing chat message: {chat_request.user_message[:100]}...")

        outcome = chat_service.process_chat_request(
            chat_request.user_message,
            chat_request.session_id,
            client_ip
        )

        if isinstance(outcome, ChatError):
            return JSONResponse(status_code=400, content=_error_body(outcome.message))

        return ChatResponse(
            ai_response=outcome.ai_response,
            session_id=outcome.session_id,
            timestamp=outcome.timestamp,
            response_time_ms=outcome.response_time_ms,
            status=outcome.status
        )
    except Exception as e:
        logger.error(f"Unexpected error processing chat message: {e}", exc_info=True)
        return JSONResponse(status_code=500, content=_error_body(f"Internal server error: {str(e)}"))


@app.get("/chat/history/{session_id}", response_model=List[ChatMessageOut])
def get_chat_history(session_id: str):
    """Return all turns of a session, oldest first."""
    try:
        return [_to_out(m) for m in chat_service.get_chat_history(session_id)]
    except Exception as e:
        logger.error(f"Failed to load history for session {session_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to load chat history: {str(e)}")


@app.get("/chat/history/{session_id}/range", response_model=List[ChatMessageOut])
def get_chat_history_by_time_range(
    session_id: str,
    start: datetime = Query(...),
    end: datetime = Query(...)
):
    """Return turns of a session whose timestamp lies in [start, end]."""
    try:
        messages = chat_service.get_chat_history_by_time_range(session_id, start, end)
        return [_to_out(m) for m in messages]
    except Exception as e:
        logger.error(f"Failed to load ranged history for session {session_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to load chat history: {str(e)}")


@app.get("/chat/recent", response_model=List[ChatMessageOut])
def get_recent_messages(limit: int = Query(DEFAULT_RECENT_LIMIT, ge=1)):
    """Return the most recent turns across all sessions, newest first."""
    try:
        return [_to_out(m) for m in chat_service.get_recent_messages(limit)]
    except Exception as e:
        logger.error(f"Failed to load recent messages: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to load recent messages: {str(e)}")


@app.get("/chat/stats/{session_id}", response_model=SessionStatsOut)
def get_session_stats(session_id: str):
    """Return aggregate statistics for a session."""
    try:
        stats = chat_service.get_session_stats(session_id)
    except Exception as e:
        logger.error(f"Failed to compute stats for session {session_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to compute session stats: {str(e)}")

    return SessionStatsOut(
        session_id=stats.session_id,
        message_count=stats.message_count,
        first_message=stats.first_message,
        last_message=stats.last_message,
        total_response_time=stats.total_response_time,
        average_response_time=stats.average_response_time
    )


@app.delete("/chat/history/{session_id}", response_class=PlainTextResponse)
def delete_session_history(session_id: str):
    """Delete all turns of a session."""
    try:
        chat_service.delete_session_history(session_id)
        return PlainTextResponse("Session history deleted successfully")
    except Exception as e:
        logger.error(f"Failed to delete session {session_id}: {e}", exc_info=True)
        return PlainTextResponse(f"Failed to delete session history: {str(e)}", status_code=500)


@app.get("/chat/health", response_class=PlainTextResponse)
def chat_health():
    """Liveness check for the chat endpoints."""
    return PlainTextResponse("Chatbot service is running!")


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting Gemini Chat Backend API on port {PORT}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)
