"""Domain-specific configuration models."""

from agentchat.core.settings.app_config import AppConfig
from agentchat.core.settings.conversation_config import ConversationConfig
from agentchat.core.settings.database_config import DatabaseConfig
from agentchat.core.settings.llm_config import LLMConfig
from agentchat.core.settings.redis_config import RedisConfig
from agentchat.core.settings.server_config import ServerConfig
from agentchat.core.settings.streaming_config import StreamingConfig

__all__ = [
    "AppConfig",
    "ConversationConfig",
    "DatabaseConfig",
    "LLMConfig",
    "RedisConfig",
    "ServerConfig",
    "StreamingConfig",
]
