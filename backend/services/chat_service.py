"""Chat orchestration: one user message in, one persisted turn and reply out."""
import logging
import time
import uuid
from datetime import datetime
from typing import List, Optional

from models.conversation import ChatMessage, SessionStats, ChatSuccess, ChatError, ChatOutcome
from services.gemini_client import GeminiClient
from services.conversation_store import ConversationStore
from config import SESSION_ID_PREFIX

logger = logging.getLogger(__name__)


class ChatService:
    """
    Coordinates the Gemini client and the conversation store.

    A request moves through RECEIVED -> SESSION_RESOLVED -> AI_INVOKED ->
    PERSISTED -> RESPONDED, or ends in FAILED. Failures come back as a
    ChatError value so callers branch on ``status`` instead of catching.
    """

    def __init__(self, gemini_client: GeminiClient, store: ConversationStore):
        self.gemini_client = gemini_client
        self.store = store

    def process_chat_request(
        self,
        user_message: str,
        session_id: Optional[str] = None,
        client_ip: Optional[str] = None
    ) -> ChatOutcome:
        """
        Answer a user message and persist the exchange.

        Args:
            user_message: Validated user text
            session_id: Caller-supplied session id; blank or None starts a new session
            client_ip: Address the request came from, stored for provenance

        Returns:
            ChatSuccess with the reply, or ChatError describing the failure
        """
        if session_id is None or not session_id.strip():
            session_id = self.generate_session_id()
            logger.info(f"Started new session {session_id}")
        self._transition("SESSION_RESOLVED", session_id)

        start_time = time.time()

        try:
            ai_response = self.gemini_client.complete(user_message)
            self._transition("AI_INVOKED", session_id)

            message = ChatMessage(
                user_message=user_message,
                ai_response=ai_response,
                session_id=session_id,
                user_ip=client_ip,
                response_time_ms=self._elapsed_ms(start_time)
            )
            self.store.append(message)
            self._transition("PERSISTED", session_id)

        except Exception as e:
            self._transition("FAILED", session_id)
            logger.error(
                f"Failed to process chat request for session {session_id}: {e}",
                exc_info=True,
                extra={"session_id": session_id, "client_ip": client_ip}
            )
            return ChatError(message=f"Failed to process chat request: {str(e)}")

        response_time_ms = self._elapsed_ms(start_time)
        self._transition("RESPONDED", session_id)
        logger.info(
            f"Chat request for session {session_id} served in {response_time_ms}ms",
            extra={
                "session_id": session_id,
                "client_ip": client_ip,
                "response_time_ms": response_time_ms
            }
        )
        return ChatSuccess(
            ai_response=ai_response,
            session_id=session_id,
            response_time_ms=response_time_ms
        )

    def get_chat_history(self, session_id: str) -> List[ChatMessage]:
        return self.store.list_by_session(session_id)

    def get_recent_messages(self, limit: int) -> List[ChatMessage]:
        return self.store.list_recent(limit)

    def get_chat_history_by_time_range(
        self,
        session_id: str,
        start_time: datetime,
        end_time: datetime
    ) -> List[ChatMessage]:
        return self.store.list_by_session_in_range(session_id, start_time, end_time)

    def get_messages_by_user_ip(self, user_ip: str) -> List[ChatMessage]:
        return self.store.list_by_user_ip(user_ip)

    def delete_session_history(self, session_id: str) -> None:
        self.store.delete_by_session(session_id)

    def get_session_stats(self, session_id: str) -> SessionStats:
        """
        Compute statistics for a session from a single read of its turns.

        Turns without a recorded latency count as 0ms.
        """
        messages = self.store.list_by_session(session_id)

        if not messages:
            return SessionStats(
                session_id=session_id,
                message_count=0,
                first_message=None,
                last_message=None,
                total_response_time=0
            )

        total_response_time = sum(m.response_time_ms or 0 for m in messages)
        return SessionStats(
            session_id=session_id,
            message_count=len(messages),
            first_message=messages[0].timestamp,
            last_message=messages[-1].timestamp,
            total_response_time=total_response_time
        )

    @staticmethod
    def generate_session_id() -> str:
        return f"{SESSION_ID_PREFIX}{uuid.uuid4().hex[:8]}"

    @staticmethod
    def _elapsed_ms(start_time: float) -> int:
        return max(0, int((time.time() - start_time) * 1000))

    @staticmethod
    def _transition(state: str, session_id: str) -> None:
        logger.debug(f"Chat request {state}: session={session_id}")
