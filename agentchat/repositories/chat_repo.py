"""Chat repository for session and message database operations."""

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from agentchat.models.chat_message import ChatMessage
from agentchat.models.chat_session import ChatSession, normalize_title, utcnow


class ChatRepository:
    """Encapsulates chat session and message database queries.

    Each operation runs in its own database session and commits before
    returning, so the repository is safe to use from streaming tasks that
    outlive the request scope.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create_session(self, session: ChatSession) -> ChatSession:
        """Insert a new chat session."""
        async with self._session_factory() as db:
            db.add(session)
            await db.commit()
        return session

    async def save_session(self, session: ChatSession) -> ChatSession:
        """Persist changes to an existing session (status, title, timestamps)."""
        async with self._session_factory() as db:
            merged = await db.merge(session)
            await db.commit()
            return merged

    async def find_session_by_id(self, session_id: str) -> ChatSession | None:
        """Find a chat session by its id."""
        async with self._session_factory() as db:
            result = await db.execute(
                select(ChatSession).where(ChatSession.id == session_id)
            )
            return result.scalar_one_or_none()

    async def find_sessions_by_user(
        self, user_id: str | None, limit: int = 50
    ) -> list[ChatSession]:
        """List sessions for a user, most recently updated first."""
        stmt = select(ChatSession)
        if user_id is None:
            stmt = stmt.where(ChatSession.user_id.is_(None))
        else:
            stmt = stmt.where(ChatSession.user_id == user_id)
        stmt = stmt.order_by(ChatSession.updated_at.desc(), ChatSession.id.desc())
        async with self._session_factory() as db:
            result = await db.execute(stmt.limit(limit))
            return list(result.scalars().all())

    async def save_message(self, message: ChatMessage) -> ChatMessage:
        """Insert a message and refresh its session's ``updated_at``."""
        async with self._session_factory() as db:
            db.add(message)
            await db.execute(
                update(ChatSession)
                .where(ChatSession.id == message.session_id)
                .values(updated_at=utcnow())
            )
            await db.commit()
        return message

    async def find_message_by_id(self, message_id: str) -> ChatMessage | None:
        """Find a chat message by its id."""
        async with self._session_factory() as db:
            result = await db.execute(
                select(ChatMessage).where(ChatMessage.id == message_id)
            )
            return result.scalar_one_or_none()

    async def find_messages_by_session_id(self, session_id: str) -> list[ChatMessage]:
        """Retrieve all messages for a session in chronological order."""
        async with self._session_factory() as db:
            result = await db.execute(
                select(ChatMessage)
                .where(ChatMessage.session_id == session_id)
                .order_by(ChatMessage.timestamp.asc())
            )
            return list(result.scalars().all())

    async def update_session_title(self, session_id: str, title: str) -> None:
        """Update the title of an existing session."""
        async with self._session_factory() as db:
            await db.execute(
                update(ChatSession)
                .where(ChatSession.id == session_id)
                .values(title=normalize_title(title), updated_at=utcnow())
            )
            await db.commit()

