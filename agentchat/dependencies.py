"""Global dependencies for the application."""

from functools import lru_cache

from fastapi import Depends
from langchain_anthropic import ChatAnthropic
from langchain_core.language_models import BaseChatModel
from langchain_openai import ChatOpenAI

from agentchat.core.config import settings
from agentchat.core.database import async_session_factory
from agentchat.core.redis import get_redis
from agentchat.functions.builtin import register_builtin_functions
from agentchat.repositories.chat_repo import ChatRepository
from agentchat.services.ai_provider import AIProvider, LangChainProvider
from agentchat.services.chat_orchestrator import ChatOrchestrator
from agentchat.services.conversation_coordinator import ConversationCoordinator
from agentchat.services.function_registry import FunctionRegistry, FunctionSource
from agentchat.services.quick_prompt_service import QuickPromptService
from agentchat.services.tool_servers import ToolServerManager, initialize_tool_servers
from agentchat.services.turn_lock import InMemoryTurnLock, RedisTurnLock, TurnLock


@lru_cache
def get_llm() -> BaseChatModel:
    """Get the LLM instance based on the configured provider."""
    llm_config = settings.llm
    match llm_config.provider:
        case "openai":
            return ChatOpenAI(
                model=llm_config.openai_model,
                api_key=llm_config.openai_api_key,
                temperature=llm_config.temperature,
            )
        case "anthropic":
            return ChatAnthropic(  # type: ignore[call-arg]
                model_name=llm_config.anthropic_model,
                api_key=llm_config.anthropic_api_key,
                temperature=llm_config.temperature,
            )
        case _:
            raise ValueError(f"Unsupported LLM provider: {llm_config.provider}")


@lru_cache
def get_function_registry() -> FunctionRegistry:
    """Process-wide registry preloaded with the built-in functions."""
    return register_builtin_functions(
        FunctionRegistry(),
        default_timezone=settings.conversation.system_timezone,
        enable_web_search=settings.conversation.enable_web_search,
    )


@lru_cache
def get_tool_server_manager() -> ToolServerManager:
    """Tool servers fronting the business functions."""
    return initialize_tool_servers(ToolServerManager(), get_function_registry())


def get_function_source() -> FunctionSource:
    """Where turns find their functions: the tool servers or the plain registry."""
    if settings.conversation.enable_mcp:
        return get_tool_server_manager()
    return get_function_registry()


def get_ai_provider() -> AIProvider:
    """Get the AI provider backed by the configured LLM."""
    return LangChainProvider(
        get_llm(), system_timezone=settings.conversation.system_timezone
    )


@lru_cache
def get_chat_repository() -> ChatRepository:
    """Get ChatRepository bound to the application session factory."""
    return ChatRepository(async_session_factory)


@lru_cache
def _in_memory_turn_lock() -> InMemoryTurnLock:
    return InMemoryTurnLock()


def get_turn_lock() -> TurnLock:
    """Redis-backed lock when Redis is up, else a process-local one."""
    client = get_redis()
    if client is None:
        return _in_memory_turn_lock()
    return RedisTurnLock(client, ttl_seconds=settings.redis.turn_lock_ttl_seconds)


def get_quick_prompt_service(
    registry: FunctionRegistry = Depends(get_function_registry),
) -> QuickPromptService:
    return QuickPromptService(registry)


def get_chat_orchestrator() -> ChatOrchestrator:
    """Get ChatOrchestrator wired to the configured collaborators."""
    coordinator = ConversationCoordinator(
        provider=get_ai_provider(),
        registry=get_function_source(),
        config=settings.conversation,
    )
    return ChatOrchestrator(
        repository=get_chat_repository(),
        coordinator=coordinator,
        turn_lock=get_turn_lock(),
    )
