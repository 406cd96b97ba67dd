"""Chat session database model."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, Enum, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from agentchat.core.database import Base
from agentchat.core.exceptions import InvalidSessionError
from agentchat.models.enums import SessionStatus

MAX_TITLE_LENGTH = 100
DEFAULT_TITLE = "New chat"


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(tz=UTC)


def normalize_title(title: str | None) -> str:
    """Trim and validate a session title."""
    if title is None or not title.strip():
        raise InvalidSessionError("Session title must not be blank")
    title = title.strip()
    if len(title) > MAX_TITLE_LENGTH:
        raise InvalidSessionError(
            f"Session title must be at most {MAX_TITLE_LENGTH} characters"
        )
    return title


class ChatSession(Base):
    """Persistent chat session, optionally tied to a user."""

    __tablename__ = "chat_sessions"
    __table_args__ = (
        Index("ix_chat_sessions_user_id_updated_at", "user_id", "updated_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    title: Mapped[str] = mapped_column(String(MAX_TITLE_LENGTH), nullable=False)
    status: Mapped[SessionStatus] = mapped_column(
        Enum(SessionStatus, native_enum=False, length=20),
        nullable=False,
        default=SessionStatus.ACTIVE,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    @classmethod
    def new(cls, title: str | None = None, user_id: str | None = None) -> "ChatSession":
        """Create an ACTIVE session; a missing title gets the placeholder."""
        now = utcnow()
        return cls(
            id=str(uuid.uuid4()),
            title=normalize_title(title) if title is not None else DEFAULT_TITLE,
            user_id=user_id,
            status=SessionStatus.ACTIVE,
            created_at=now,
            updated_at=now,
        )

    @property
    def has_placeholder_title(self) -> bool:
        """True until a real title has been set."""
        return self.title == DEFAULT_TITLE

    def rename(self, title: str) -> None:
        """Set a new title."""
        self.title = normalize_title(title)
        self.touch()

    def touch(self) -> None:
        """Refresh the modification timestamp."""
        self.updated_at = utcnow()
