"""Streaming delivery configuration."""

from pydantic import BaseModel


class StreamingConfig(BaseModel, frozen=True):
    """Default delivery toggles and pacing bounds."""

    show_thinking: bool
    typing_speed_ms: int
    max_typing_speed_ms: int
    show_completed: bool
    show_function_calls: bool
