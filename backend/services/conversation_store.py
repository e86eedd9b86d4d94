"""Conversation store for chat turns using Supabase PostgreSQL."""
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from supabase import create_client, Client

from models.conversation import ChatMessage
from config import SUPABASE_URL, SUPABASE_KEY, CHAT_TABLE_NAME

logger = logging.getLogger(__name__)


class ConversationStore:
    """Append-only persistence of chat turns, queried by session and recency."""

    def __init__(
        self,
        supabase_url: Optional[str] = SUPABASE_URL,
        supabase_key: Optional[str] = SUPABASE_KEY,
        table_name: str = CHAT_TABLE_NAME
    ):
        """
        Initialize the store with a Supabase client.

        Args:
            supabase_url: Supabase project URL
            supabase_key: Supabase API key
            table_name: Name of the table holding chat turns

        Raises:
            ValueError: If Supabase credentials are missing
        """
        if not supabase_url or not supabase_key:
            raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set in environment variables")

        self.table_name = table_name
        self.client: Client = create_client(supabase_url, supabase_key)
        logger.info(f"ConversationStore initialized with table: {table_name}")

    def append(self, message: ChatMessage) -> ChatMessage:
        """
        Persist a turn.

        Args:
            message: Turn to store; its id is ignored

        Returns:
            Copy of the turn carrying the store-assigned id

        Raises:
            RuntimeError: If the insert fails
        """
        record = {
            "user_message": message.user_message,
            "ai_response": message.ai_response,
            "session_id": message.session_id,
            "user_ip": message.user_ip,
            "response_time_ms": message.response_time_ms,
            "timestamp": self._to_utc(message.timestamp).isoformat()
        }

        try:
            result = self.client.table(self.table_name).insert(record).execute()
        except Exception as e:
            error_msg = f"Failed to store turn for session {message.session_id}: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg) from e

        stored_id = result.data[0].get("id") if result.data else None
        logger.info(f"Stored turn {stored_id} for session {message.session_id}")
        return replace(message, id=stored_id)

    def list_by_session(self, session_id: str) -> List[ChatMessage]:
        """Return every turn of a session, oldest first."""
        return self._select(
            lambda query: query.eq("session_id", session_id).order("timestamp", desc=False),
            f"session {session_id}"
        )

    def list_by_session_in_range(
        self,
        session_id: str,
        start: datetime,
        end: datetime
    ) -> List[ChatMessage]:
        """
        Return turns of a session with start <= timestamp <= end, oldest first.

        Naive datetimes are interpreted as UTC.
        """
        start_iso = self._to_utc(start).isoformat()
        end_iso = self._to_utc(end).isoformat()
        return self._select(
            lambda query: (
                query.eq("session_id", session_id)
                .gte("timestamp", start_iso)
                .lte("timestamp", end_iso)
                .order("timestamp", desc=False)
            ),
            f"session {session_id} between {start_iso} and {end_iso}"
        )

    def count_by_session(self, session_id: str) -> int:
        try:
            result = (
                self.client.table(self.table_name)
                .select("id", count="exact")
                .eq("session_id", session_id)
                .execute()
            )
            return result.count if result.count is not None else 0
        except Exception as e:
            error_msg = f"Failed to count turns for session {session_id}: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg) from e

    def list_recent(self, limit: int) -> List[ChatMessage]:
        """
        Return the most recent turns across all sessions, newest first.

        The result never holds more than ``limit`` turns, whether or not the
        query layer honours the limit it is given.

        Raises:
            ValueError: If limit is not positive
        """
        if limit <= 0:
            raise ValueError("limit must be positive")

        messages = self._select(
            lambda query: query.order("timestamp", desc=True).limit(limit),
            f"recent (limit {limit})"
        )
        return messages[:limit]

    def list_by_user_ip(self, user_ip: str) -> List[ChatMessage]:
        """Return every turn sent from an IP address, newest first."""
        return self._select(
            lambda query: query.eq("user_ip", user_ip).order("timestamp", desc=True),
            f"user ip {user_ip}"
        )

    def delete_by_session(self, session_id: str) -> None:
        """Delete all turns of a session. Deleting an empty session is a no-op."""
        try:
            self.client.table(self.table_name).delete().eq("session_id", session_id).execute()
            logger.info(f"Deleted turns for session {session_id}")
        except Exception as e:
            error_msg = f"Failed to delete turns for session {session_id}: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg) from e

    def _select(self, build_query, description: str) -> List[ChatMessage]:
        try:
            query = self.client.table(self.table_name).select("*")
            result = build_query(query).execute()
        except Exception as e:
            error_msg = f"Failed to retrieve turns for {description}: {str(e)}"
            logger.error(error_msg)
            raise RuntimeError(error_msg) from e

        rows = result.data if result.data else []
        logger.debug(f"Retrieved {len(rows)} turns for {description}")
        return [self._row_to_message(row) for row in rows]

    def _row_to_message(self, row: Dict[str, Any]) -> ChatMessage:
        return ChatMessage(
            id=row.get("id"),
            user_message=row["user_message"],
            ai_response=row["ai_response"],
            session_id=row["session_id"],
            timestamp=self._parse_timestamp(row["timestamp"]),
            user_ip=row.get("user_ip"),
            response_time_ms=row.get("response_time_ms")
        )

    @staticmethod
    def _to_utc(value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @staticmethod
    def _parse_timestamp(timestamp_str: str) -> datetime:
        """
        Parse a timestamp string returned by Supabase.

        PostgREST may return 'Z' suffixes and fractional seconds with fewer
        or more than six digits, which datetime.fromisoformat() rejects on
        older interpreters. The fraction is normalized to six digits.
        """
        timestamp_str = timestamp_str.replace("Z", "+00:00")

        if "." in timestamp_str:
            head, tail = timestamp_str.split(".", 1)
            sign_index = max(tail.find("+"), tail.find("-"))
            if sign_index == -1:
                fraction, tz = tail, ""
            else:
                fraction, tz = tail[:sign_index], tail[sign_index:]
            timestamp_str = f"{head}.{fraction[:6].ljust(6, '0')}{tz}"

        parsed = datetime.fromisoformat(timestamp_str)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
