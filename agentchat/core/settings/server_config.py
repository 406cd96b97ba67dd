"""Server configuration."""

from pydantic import BaseModel


class ServerConfig(BaseModel, frozen=True):
    """Server and HTTP surface settings."""

    host: str
    port: int
    chat_rate_limit: str
