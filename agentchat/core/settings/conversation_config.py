"""Conversation turn configuration."""

from pydantic import BaseModel


class ConversationConfig(BaseModel, frozen=True):
    """Function-call loop and provider retry settings."""

    max_function_rounds: int
    provider_timeout_seconds: float
    provider_max_retries: int
    retry_backoff_base_seconds: float
    retry_backoff_max_seconds: float
    system_timezone: str
    enable_web_search: bool
    enable_mcp: bool

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based), capped."""
        delay = self.retry_backoff_base_seconds * (2 ** (attempt - 1))
        return min(delay, self.retry_backoff_max_seconds)
