"""Chat message database model."""

import uuid
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import JSON, DateTime, Enum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from agentchat.core.database import Base
from agentchat.core.exceptions import InvalidMessageError
from agentchat.models.chat_session import utcnow
from agentchat.models.enums import MessageRole

MAX_CONTENT_LENGTH = 10000

_last_timestamp: datetime | None = None


def _next_timestamp() -> datetime:
    """Strictly increasing UTC timestamp so history order follows creation order."""
    global _last_timestamp  # noqa: PLW0603
    now = utcnow()
    if _last_timestamp is not None and now <= _last_timestamp:
        now = _last_timestamp + timedelta(microseconds=1)
    _last_timestamp = now
    return now


def normalize_content(
    content: str | None, max_length: int | None = MAX_CONTENT_LENGTH
) -> str:
    """Trim content, rejecting blank text and text over ``max_length``."""
    if content is None or not content.strip():
        raise InvalidMessageError("Message content must not be blank")
    content = content.strip()
    if max_length is not None and len(content) > max_length:
        raise InvalidMessageError(
            f"Message content must be at most {max_length} characters"
        )
    return content


class ChatMessage(Base):
    """Individual message within a chat session.

    ``function_call`` holds ``{"id", "name", "arguments", "description"}`` and
    is present exactly when the role is FUNCTION; the function result is
    stored as JSON text in ``content``. ``ui_components`` is opaque to the
    core and is replayed to clients with the history.
    """

    __tablename__ = "chat_messages"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    session_id: Mapped[str] = mapped_column(
        ForeignKey("chat_sessions.id"), nullable=False, index=True
    )
    role: Mapped[MessageRole] = mapped_column(
        Enum(MessageRole, native_enum=False, length=20), nullable=False
    )
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    function_call: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    ui_components: Mapped[list[dict[str, Any]] | None] = mapped_column(
        JSON, nullable=True
    )
    parent_message_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, index=True
    )

    @classmethod
    def create(
        cls,
        session_id: str,
        role: MessageRole,
        content: str | None = None,
        function_call: dict[str, Any] | None = None,
        ui_components: list[dict[str, Any]] | None = None,
        parent_message_id: str | None = None,
    ) -> "ChatMessage":
        """Build a new message, enforcing the role/content rules."""
        if not session_id:
            raise InvalidMessageError("Message must belong to a session")
        role = MessageRole(role)
        if role is MessageRole.FUNCTION:
            if not function_call or not function_call.get("name"):
                raise InvalidMessageError("Function message requires a function call")
        else:
            if function_call is not None:
                raise InvalidMessageError(
                    f"{role.value} message must not carry a function call"
                )
            # Only user input is length-limited; provider replies may run longer.
            limit = MAX_CONTENT_LENGTH if role is MessageRole.USER else None
            content = normalize_content(content, max_length=limit)
        return cls(
            id=str(uuid.uuid4()),
            session_id=session_id,
            role=role,
            content=content,
            function_call=function_call,
            ui_components=list(ui_components) if ui_components else None,
            parent_message_id=parent_message_id,
            timestamp=_next_timestamp(),
        )

    @classmethod
    def user(cls, session_id: str, content: str) -> "ChatMessage":
        return cls.create(session_id, MessageRole.USER, content)

    @classmethod
    def assistant(
        cls,
        session_id: str,
        content: str,
        parent_message_id: str | None = None,
        ui_components: list[dict[str, Any]] | None = None,
    ) -> "ChatMessage":
        return cls.create(
            session_id,
            MessageRole.ASSISTANT,
            content,
            ui_components=ui_components,
            parent_message_id=parent_message_id,
        )

    @classmethod
    def function(
        cls,
        session_id: str,
        function_call: dict[str, Any],
        result_json: str | None = None,
        parent_message_id: str | None = None,
    ) -> "ChatMessage":
        return cls.create(
            session_id,
            MessageRole.FUNCTION,
            result_json,
            function_call=function_call,
            parent_message_id=parent_message_id,
        )

    @property
    def function_name(self) -> str | None:
        """Name of the called function, for FUNCTION messages."""
        if self.function_call is None:
            return None
        return self.function_call.get("name")
