"""Chat request and response schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field

from agentchat.models.chat_message import MAX_CONTENT_LENGTH
from agentchat.models.chat_session import MAX_TITLE_LENGTH
from agentchat.models.enums import MessageRole, SessionStatus
from agentchat.services.session_state import SessionStateMachine


class DeliveryOverrides(BaseModel):
    """Client-selected delivery toggles; unset fields use server defaults."""

    show_thinking: bool | None = None
    typing_speed_ms: int | None = Field(default=None, ge=0)
    show_completed: bool | None = None
    show_function_calls: bool | None = None


class StreamChatRequest(DeliveryOverrides):
    """Streaming chat request; omit ``session_id`` to start a new session."""

    message: str = Field(..., min_length=1, max_length=MAX_CONTENT_LENGTH)
    session_id: str | None = None
    user_id: str | None = Field(default=None, max_length=64)


class SendMessageRequest(DeliveryOverrides):
    """Non-streaming chat request for an existing session."""

    message: str = Field(..., min_length=1, max_length=MAX_CONTENT_LENGTH)


class CreateSessionRequest(BaseModel):
    title: str | None = Field(default=None, max_length=MAX_TITLE_LENGTH)
    user_id: str | None = Field(default=None, max_length=64)


class ChangeStatusRequest(BaseModel):
    status: SessionStatus


class SessionResponse(BaseModel):
    """Chat session as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    status: SessionStatus
    user_id: str | None = None
    created_at: datetime
    updated_at: datetime

    @computed_field  # type: ignore[prop-decorator]
    @property
    def accepts_messages(self) -> bool:
        return SessionStateMachine.is_interactive(self.status)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def finished(self) -> bool:
        """COMPLETED or CLOSED; no further turns will run."""
        return SessionStateMachine.is_terminal(self.status)


class MessageResponse(BaseModel):
    """Chat message as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    session_id: str
    role: MessageRole
    content: str | None = None
    function_call: dict[str, Any] | None = None
    ui_components: list[dict[str, Any]] | None = None
    parent_message_id: str | None = None
    timestamp: datetime


class TurnResponse(BaseModel):
    """Result of a non-streaming turn."""

    session_id: str
    user_message: MessageResponse
    assistant_message: MessageResponse | None = None
    events: list[dict[str, Any]] = Field(default_factory=list)
