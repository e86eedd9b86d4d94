"""Unit tests for ChatService."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import re
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock
from models.conversation import ChatMessage, ChatSuccess, ChatError
from services.chat_service import ChatService
from services.gemini_client import GeminiClient, GeminiClientError, GeminiError

SESSION_ID_PATTERN = re.compile(r"^session_[0-9a-f]{8}$")


@pytest.fixture
def gemini():
    """Create a GeminiClient mock that answers every prompt."""
    client = Mock(spec=GeminiClient)
    client.complete.return_value = "Hello there"
    return client


@pytest.fixture
def service(gemini, store):
    """Create a ChatService over the mock client and in-memory store."""
    return ChatService(gemini, store)


class TestProcessChatRequest:
    """Session resolution, persistence and failure handling."""

    @pytest.mark.parametrize("session_id", ["session_abc12345", "my-own-id", "  padded  "])
    def test_supplied_session_id_is_returned_unchanged(self, service, session_id):
        outcome = service.process_chat_request("Hi", session_id, "127.0.0.1")

        assert isinstance(outcome, ChatSuccess)
        assert outcome.session_id == session_id

    @pytest.mark.parametrize("session_id", [None, "", "   ", "\t\n"])
    def test_blank_session_id_generates_new_one(self, service, session_id):
        outcome = service.process_chat_request("Hi", session_id, "127.0.0.1")

        assert isinstance(outcome, ChatSuccess)
        assert SESSION_ID_PATTERN.match(outcome.session_id)

    def test_generated_session_ids_differ(self, service):
        first = service.process_chat_request("Hi", None, None)
        second = service.process_chat_request("Hi", None, None)

        assert first.session_id != second.session_id

    def test_success_outcome_and_persisted_turn(self, service, gemini, store):
        outcome = service.process_chat_request("Hi", "session_abc12345", "10.0.0.5")

        gemini.complete.assert_called_once_with("Hi")
        assert outcome.status == "SUCCESS"
        assert outcome.ai_response == "Hello there"
        assert outcome.response_time_ms >= 0

        history = store.list_by_session("session_abc12345")
        assert len(history) == 1
        turn = history[0]
        assert turn.id is not None
        assert turn.user_message == "Hi"
        assert turn.ai_response == "Hello there"
        assert turn.user_ip == "10.0.0.5"
        assert 0 <= turn.response_time_ms <= outcome.response_time_ms

    def test_fallback_text_is_persisted_like_any_reply(self, service, gemini, store):
        gemini.complete.return_value = "Sorry, I couldn't generate a response at this time."

        outcome = service.process_chat_request("Hi", "session_abc12345", None)

        assert isinstance(outcome, ChatSuccess)
        assert store.count_by_session("session_abc12345") == 1

    def test_ai_failure_returns_error_outcome(self, service, gemini, store):
        gemini.complete.side_effect = GeminiClientError(
            GeminiError(code="NETWORK_ERROR", message="Network error calling Gemini API: refused", details={})
        )

        outcome = service.process_chat_request("Hi", "session_abc12345", None)

        assert isinstance(outcome, ChatError)
        assert outcome.status == "ERROR"
        assert outcome.message == "Failed to process chat request: Network error calling Gemini API: refused"
        assert store.count_by_session("session_abc12345") == 0

    def test_store_failure_returns_error_outcome(self, service, chat_table):
        chat_table.fail_with = ConnectionError("database unreachable")

        outcome = service.process_chat_request("Hi", "session_abc12345", None)

        assert isinstance(outcome, ChatError)
        assert "database unreachable" in outcome.message

    def test_unexpected_failure_is_not_raised(self, gemini):
        broken_store = Mock()
        broken_store.append.side_effect = KeyError("id")

        outcome = ChatService(gemini, broken_store).process_chat_request("Hi", None, None)

        assert isinstance(outcome, ChatError)


class TestSessionStats:
    """Aggregate statistics over a session's turns."""

    def test_stats_for_empty_session(self, service):
        stats = service.get_session_stats("session_missing0")

        assert stats.session_id == "session_missing0"
        assert stats.message_count == 0
        assert stats.first_message is None
        assert stats.last_message is None
        assert stats.total_response_time == 0
        assert stats.average_response_time == 0.0

    def test_stats_average_latency(self, service, store):
        base = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
        for i, latency in enumerate([100, 200, 300]):
            store.append(ChatMessage(
                user_message=f"q{i}",
                ai_response=f"a{i}",
                session_id="session_abc12345",
                timestamp=base + timedelta(minutes=i),
                response_time_ms=latency
            ))

        stats = service.get_session_stats("session_abc12345")

        assert stats.message_count == 3
        assert stats.total_response_time == 600
        assert stats.average_response_time == 200.0
        assert stats.first_message == base
        assert stats.last_message == base + timedelta(minutes=2)

    def test_stats_treat_missing_latency_as_zero(self, service, store):
        store.append(ChatMessage(user_message="q", ai_response="a", session_id="s1", response_time_ms=None))
        store.append(ChatMessage(user_message="q", ai_response="a", session_id="s1", response_time_ms=80))

        stats = service.get_session_stats("s1")

        assert stats.total_response_time == 80
        assert stats.average_response_time == 40.0


class TestPassThroughs:
    """Read and delete operations delegate straight to the store."""

    def test_history_recent_and_delete(self, service):
        service.process_chat_request("one", "session_aaaaaaaa", "192.0.2.1")
        service.process_chat_request("two", "session_aaaaaaaa", "192.0.2.1")
        service.process_chat_request("three", "session_bbbbbbbb", "192.0.2.2")

        assert [m.user_message for m in service.get_chat_history("session_aaaaaaaa")] == ["one", "two"]
        assert len(service.get_recent_messages(2)) == 2
        assert len(service.get_messages_by_user_ip("192.0.2.1")) == 2

        service.delete_session_history("session_aaaaaaaa")
        assert service.get_chat_history("session_aaaaaaaa") == []
        assert len(service.get_chat_history("session_bbbbbbbb")) == 1

    def test_history_by_time_range_delegates(self, gemini):
        store = Mock()
        store.list_by_session_in_range.return_value = []
        start = datetime(2026, 1, 1, tzinfo=timezone.utc)
        end = datetime(2026, 1, 2, tzinfo=timezone.utc)

        result = ChatService(gemini, store).get_chat_history_by_time_range("s1", start, end)

        assert result == []
        store.list_by_session_in_range.assert_called_once_with("s1", start, end)

    def test_generate_session_id_format(self):
        assert SESSION_ID_PATTERN.match(ChatService.generate_session_id())
