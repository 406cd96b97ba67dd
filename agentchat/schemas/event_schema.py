"""Delivery events streamed to chat clients."""

from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from agentchat.models.chat_session import utcnow
from agentchat.schemas.function_schema import FunctionCallResult


class UIComponentReference(BaseModel):
    """Opaque UI component attached to an assistant reply."""

    model_config = ConfigDict(frozen=True)

    component_type: str
    component_data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)


class FunctionCallData(BaseModel):
    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class FunctionResultData(BaseModel):
    id: str
    name: str
    result: FunctionCallResult


class CompletedData(BaseModel):
    session_id: str
    message_id: str
    final_text: str
    rounds: int = 0
    degraded: bool = False
    ui_components: list[UIComponentReference] = Field(default_factory=list)


class ErrorData(BaseModel):
    code: str
    message: str


class ThinkingEvent(BaseModel):
    """The assistant started working on the reply."""

    model_config = ConfigDict(frozen=True)

    type: Literal["thinking"] = "thinking"
    data: str | None = None


class TokenEvent(BaseModel):
    """One chunk of the assistant reply text."""

    model_config = ConfigDict(frozen=True)

    type: Literal["token"] = "token"
    data: str


class FunctionCallEvent(BaseModel):
    """The AI provider requested a business function."""

    model_config = ConfigDict(frozen=True)

    type: Literal["function_call"] = "function_call"
    data: FunctionCallData


class FunctionResultEvent(BaseModel):
    """A requested business function finished."""

    model_config = ConfigDict(frozen=True)

    type: Literal["function_result"] = "function_result"
    data: FunctionResultData


class CompletedEvent(BaseModel):
    """The reply is complete; nothing follows."""

    model_config = ConfigDict(frozen=True)

    type: Literal["completed"] = "completed"
    data: CompletedData


class ErrorEvent(BaseModel):
    """The turn failed; nothing follows."""

    model_config = ConfigDict(frozen=True)

    type: Literal["error"] = "error"
    data: ErrorData

    @classmethod
    def of(cls, code: str, message: str) -> "ErrorEvent":
        return cls(data=ErrorData(code=code, message=message))


DeliveryEvent = Annotated[
    ThinkingEvent
    | TokenEvent
    | FunctionCallEvent
    | FunctionResultEvent
    | CompletedEvent
    | ErrorEvent,
    Field(discriminator="type"),
]

delivery_event_adapter: TypeAdapter[DeliveryEvent] = TypeAdapter(DeliveryEvent)
