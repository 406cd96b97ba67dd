"""Application configuration using Pydantic Settings V2."""

from functools import cached_property
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from agentchat.core.settings import (
    AppConfig,
    ConversationConfig,
    DatabaseConfig,
    LLMConfig,
    RedisConfig,
    ServerConfig,
    StreamingConfig,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Flat fields are loaded directly from environment variables.
    Domain properties provide grouped access (e.g. settings.conversation.max_function_rounds).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # LLM Provider
    llm_provider: Literal["openai", "anthropic"] = Field(
        default="openai",
        description="LLM provider to use",
    )

    # OpenAI
    openai_api_key: SecretStr = Field(
        default=SecretStr(""),
        description="OpenAI API key",
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI model name",
    )

    # Anthropic
    anthropic_api_key: SecretStr = Field(
        default=SecretStr(""),
        description="Anthropic API key",
    )
    anthropic_model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Anthropic model name",
    )
    llm_temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for chat turns",
    )

    # App
    app_name: str = Field(
        default="agent-chat",
        description="Application name",
    )
    app_env: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment",
    )
    debug: bool = Field(
        default=True,
        description="Debug mode",
    )

    # Conversation
    max_function_rounds: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Maximum function-call rounds per turn",
    )
    provider_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout for a single provider dispatch",
    )
    provider_max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Retries after a failed provider dispatch",
    )
    retry_backoff_base_seconds: float = Field(
        default=0.5,
        ge=0,
        description="Initial retry backoff, doubled per attempt",
    )
    retry_backoff_max_seconds: float = Field(
        default=8.0,
        ge=0,
        description="Upper bound for a single retry backoff",
    )
    system_timezone: str = Field(
        default="UTC",
        description="Timezone used for the date in the system prompt",
    )
    enable_web_search: bool = Field(
        default=True,
        description="Register the DuckDuckGo web search function",
    )
    enable_mcp: bool = Field(
        default=False,
        description="Route function calls through the MCP tool-server manager",
    )

    # Streaming
    show_thinking: bool = Field(
        default=True,
        description="Emit a thinking indicator before the first token",
    )
    typing_speed_ms: int = Field(
        default=100,
        ge=0,
        description="Default delay after each streamed token",
    )
    max_typing_speed_ms: int = Field(
        default=2000,
        ge=0,
        description="Upper bound for client-requested typing delay",
    )
    show_completed: bool = Field(
        default=True,
        description="Emit an explicit completed marker event",
    )
    show_function_calls: bool = Field(
        default=True,
        description="Forward function call and result events to the client",
    )

    # Server
    host: str = Field(
        default="0.0.0.0",
        description="Server host",
    )
    port: int = Field(
        default=8004,
        ge=1,
        le=65535,
        description="Server port",
    )
    chat_rate_limit: str = Field(
        default="30/minute",
        description="Rate limit for turn endpoints",
    )

    # Database
    database_url: SecretStr = Field(
        default=SecretStr("sqlite+aiosqlite:///./agentchat.db"),
        description="Async database URL (mysql+aiomysql://... or sqlite+aiosqlite://...)",
    )

    # Redis
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
    )
    turn_lock_ttl_seconds: int = Field(
        default=120,
        ge=1,
        description="Expiry of a session turn lock",
    )

    # --- Domain properties ---

    @cached_property
    def llm(self) -> LLMConfig:
        """LLM provider configuration."""
        return LLMConfig(
            provider=self.llm_provider,
            openai_api_key=self.openai_api_key,
            openai_model=self.openai_model,
            anthropic_api_key=self.anthropic_api_key,
            anthropic_model=self.anthropic_model,
            temperature=self.llm_temperature,
        )

    @cached_property
    def app(self) -> AppConfig:
        """Application environment configuration."""
        return AppConfig(
            name=self.app_name,
            env=self.app_env,
            debug=self.debug,
        )

    @cached_property
    def conversation(self) -> ConversationConfig:
        """Function-call loop and provider retry configuration."""
        return ConversationConfig(
            max_function_rounds=self.max_function_rounds,
            provider_timeout_seconds=self.provider_timeout_seconds,
            provider_max_retries=self.provider_max_retries,
            retry_backoff_base_seconds=self.retry_backoff_base_seconds,
            retry_backoff_max_seconds=self.retry_backoff_max_seconds,
            system_timezone=self.system_timezone,
            enable_web_search=self.enable_web_search,
            enable_mcp=self.enable_mcp,
        )

    @cached_property
    def streaming(self) -> StreamingConfig:
        """Streaming delivery configuration."""
        return StreamingConfig(
            show_thinking=self.show_thinking,
            typing_speed_ms=self.typing_speed_ms,
            max_typing_speed_ms=self.max_typing_speed_ms,
            show_completed=self.show_completed,
            show_function_calls=self.show_function_calls,
        )

    @cached_property
    def server(self) -> ServerConfig:
        """Server configuration."""
        return ServerConfig(
            host=self.host,
            port=self.port,
            chat_rate_limit=self.chat_rate_limit,
        )

    @cached_property
    def database(self) -> DatabaseConfig:
        """Database connection configuration."""
        return DatabaseConfig(url=self.database_url)

    @cached_property
    def redis(self) -> RedisConfig:
        """Redis connection configuration."""
        return RedisConfig(
            url=self.redis_url,
            turn_lock_ttl_seconds=self.turn_lock_ttl_seconds,
        )

    # --- Convenience properties (delegate to domain configs) ---

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app.is_development


# Global settings instance
settings = Settings()
