"""Closed enumerations shared by the chat models."""

from enum import StrEnum


class SessionStatus(StrEnum):
    """Lifecycle status of a chat session."""

    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    CLOSED = "CLOSED"


class MessageRole(StrEnum):
    """Author role of a chat message."""

    USER = "USER"
    ASSISTANT = "ASSISTANT"
    SYSTEM = "SYSTEM"
    FUNCTION = "FUNCTION"
