"""Unit tests for ChatRepository."""

from datetime import timedelta

import pytest

from agentchat.models.chat_message import ChatMessage
from agentchat.models.chat_session import ChatSession, utcnow
from agentchat.models.enums import MessageRole, SessionStatus
from agentchat.repositories.chat_repo import ChatRepository


async def _create_session_with_ts(
    chat_repo: ChatRepository,
    user_id: str | None,
    minutes_ago: int,
    title: str | None = None,
) -> ChatSession:
    """Helper: insert a session with an explicit updated_at."""
    session = ChatSession.new(title=title, user_id=user_id)
    session.updated_at = utcnow() - timedelta(minutes=minutes_ago)
    return await chat_repo.create_session(session)


class TestSessions:
    """Tests for session persistence."""

    @pytest.mark.asyncio
    async def test_create_and_find_session(self, chat_repo: ChatRepository) -> None:
        session = await chat_repo.create_session(ChatSession.new(user_id="alice"))

        found = await chat_repo.find_session_by_id(session.id)

        assert found is not None
        assert found.user_id == "alice"
        assert found.status is SessionStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_find_missing_session(self, chat_repo: ChatRepository) -> None:
        assert await chat_repo.find_session_by_id("missing") is None

    @pytest.mark.asyncio
    async def test_save_session_persists_status(self, chat_repo: ChatRepository) -> None:
        session = await chat_repo.create_session(ChatSession.new())
        session.status = SessionStatus.PAUSED

        await chat_repo.save_session(session)

        found = await chat_repo.find_session_by_id(session.id)
        assert found is not None
        assert found.status is SessionStatus.PAUSED

    @pytest.mark.asyncio
    async def test_sessions_by_user_newest_first(
        self, chat_repo: ChatRepository
    ) -> None:
        old = await _create_session_with_ts(chat_repo, "alice", 30, "old")
        new = await _create_session_with_ts(chat_repo, "alice", 1, "new")
        await _create_session_with_ts(chat_repo, "bob", 0, "other")

        sessions = await chat_repo.find_sessions_by_user("alice")

        assert [s.id for s in sessions] == [new.id, old.id]

    @pytest.mark.asyncio
    async def test_sessions_without_user(self, chat_repo: ChatRepository) -> None:
        anonymous = await _create_session_with_ts(chat_repo, None, 0)
        await _create_session_with_ts(chat_repo, "alice", 0)

        sessions = await chat_repo.find_sessions_by_user(None)

        assert [s.id for s in sessions] == [anonymous.id]

    @pytest.mark.asyncio
    async def test_sessions_limit(self, chat_repo: ChatRepository) -> None:
        for minutes in range(3):
            await _create_session_with_ts(chat_repo, "alice", minutes)

        assert len(await chat_repo.find_sessions_by_user("alice", limit=2)) == 2

    @pytest.mark.asyncio
    async def test_update_session_title(self, chat_repo: ChatRepository) -> None:
        session = await chat_repo.create_session(ChatSession.new())

        await chat_repo.update_session_title(session.id, "  Trip planning ")

        found = await chat_repo.find_session_by_id(session.id)
        assert found is not None
        assert found.title == "Trip planning"


class TestMessages:
    """Tests for message persistence."""

    @pytest.mark.asyncio
    async def test_messages_in_creation_order(self, chat_repo: ChatRepository) -> None:
        session = await chat_repo.create_session(ChatSession.new())
        first = ChatMessage.user(session.id, "hello")
        call = ChatMessage.function(
            session.id,
            function_call={"id": "c1", "name": "echo", "arguments": {"text": "x"}},
            result_json='{"success": true}',
        )
        reply = ChatMessage.assistant(session.id, "hi", parent_message_id=first.id)
        for message in (first, call, reply):
            await chat_repo.save_message(message)

        messages = await chat_repo.find_messages_by_session_id(session.id)

        assert [m.id for m in messages] == [first.id, call.id, reply.id]
        assert messages[1].role is MessageRole.FUNCTION
        assert messages[1].function_call["arguments"] == {"text": "x"}
        assert messages[2].parent_message_id == first.id

    @pytest.mark.asyncio
    async def test_save_message_touches_session(self, chat_repo: ChatRepository) -> None:
        session = await _create_session_with_ts(chat_repo, "alice", 60)
        other = await _create_session_with_ts(chat_repo, "alice", 10)

        await chat_repo.save_message(ChatMessage.user(session.id, "bump"))

        sessions = await chat_repo.find_sessions_by_user("alice")
        assert [s.id for s in sessions] == [session.id, other.id]

    @pytest.mark.asyncio
    async def test_find_message_by_id(self, chat_repo: ChatRepository) -> None:
        session = await chat_repo.create_session(ChatSession.new())
        message = await chat_repo.save_message(ChatMessage.user(session.id, "hello"))

        found = await chat_repo.find_message_by_id(message.id)

        assert found is not None
        assert found.content == "hello"
        assert await chat_repo.find_message_by_id("missing") is None

    @pytest.mark.asyncio
    async def test_ui_components_round_trip(self, chat_repo: ChatRepository) -> None:
        session = await chat_repo.create_session(ChatSession.new())
        components = [{"component_type": "clock", "component_data": {"tz": "UTC"}}]
        await chat_repo.save_message(
            ChatMessage.assistant(session.id, "It is noon", ui_components=components)
        )

        (message,) = await chat_repo.find_messages_by_session_id(session.id)

        assert message.ui_components == components
