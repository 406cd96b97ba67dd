"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator, Sequence
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import fakeredis.aioredis
import pytest
from httpx import ASGITransport, AsyncClient
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from agentchat.core.database import Base
from agentchat.core.rate_limit import limiter
from agentchat.core.settings import ConversationConfig, StreamingConfig
from agentchat.models.chat_message import ChatMessage
from agentchat.models.chat_session import ChatSession  # noqa: F401
from agentchat.repositories.chat_repo import ChatRepository
from agentchat.services.ai_provider import FunctionCallRequest, ProviderReply
from agentchat.services.chat_orchestrator import ChatOrchestrator
from agentchat.services.conversation_coordinator import ConversationCoordinator
from agentchat.services.function_registry import (
    BusinessFunction,
    FunctionRegistry,
    ParameterSpec,
)
from agentchat.services.streaming_delivery import CollectingSink
from agentchat.services.turn_lock import InMemoryTurnLock

# --- Test DB (SQLite in-memory) ---

test_engine = create_async_engine(
    "sqlite+aiosqlite:///:memory:",
    echo=False,
    poolclass=StaticPool,
    connect_args={"check_same_thread": False},
)
test_session_factory = async_sessionmaker(
    test_engine, class_=AsyncSession, expire_on_commit=False
)


@pytest.fixture(autouse=True)
async def setup_db() -> AsyncGenerator[None, None]:
    """Create all tables before each test, drop after."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def chat_repo() -> ChatRepository:
    """ChatRepository backed by the test database."""
    return ChatRepository(test_session_factory)


# --- Test Redis (fakeredis) ---


@pytest.fixture
def fake_redis() -> fakeredis.aioredis.FakeRedis:
    """Create a fresh fake Redis client."""
    return fakeredis.aioredis.FakeRedis(decode_responses=True)


@pytest.fixture(autouse=True)
def patch_redis(
    fake_redis: fakeredis.aioredis.FakeRedis, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Patch the global redis_client used by get_redis()."""
    monkeypatch.setattr("agentchat.core.redis.redis_client", fake_redis)


@pytest.fixture(autouse=True)
def reset_rate_limits() -> None:
    """Start every test with empty rate-limit counters."""
    limiter.reset()


# --- Configuration ---


@pytest.fixture
def conversation_config() -> ConversationConfig:
    """Fast conversation settings: short timeout, no backoff."""
    return ConversationConfig(
        max_function_rounds=5,
        provider_timeout_seconds=1.0,
        provider_max_retries=2,
        retry_backoff_base_seconds=0.0,
        retry_backoff_max_seconds=0.0,
        system_timezone="UTC",
        enable_web_search=False,
        enable_mcp=False,
    )


@pytest.fixture
def streaming_config() -> StreamingConfig:
    return StreamingConfig(
        show_thinking=True,
        typing_speed_ms=0,
        max_typing_speed_ms=2000,
        show_completed=True,
        show_function_calls=True,
    )


# --- Business functions ---


def make_echo_function() -> BusinessFunction:
    """A function that returns its arguments."""
    return BusinessFunction(
        name="echo",
        description="Repeat the given text back",
        handler=lambda arguments: dict(arguments),
        parameters={"text": ParameterSpec(type="string", description="Text")},
        required=("text",),
    )


@pytest.fixture
def registry() -> FunctionRegistry:
    """Registry holding only the echo function."""
    return FunctionRegistry([make_echo_function()])


# --- Scripted AI provider ---


def function_call(name: str, /, call_id: str = "call_1", **arguments: Any) -> ProviderReply:
    """Provider reply requesting a single function call."""
    return ProviderReply(
        function_calls=(FunctionCallRequest(id=call_id, name=name, arguments=arguments),)
    )


def text_reply(content: str) -> ProviderReply:
    return ProviderReply(content=content)


class ScriptedProvider:
    """AIProvider fake that plays back a list of replies or exceptions.

    Once the script is exhausted the last entry repeats. Every dispatch's
    message list is recorded in ``calls``.
    """

    def __init__(self, *script: ProviderReply | Exception) -> None:
        self._script = list(script)
        self.calls: list[list[ChatMessage]] = []
        self.functions: list[list[dict[str, Any]]] = []

    def play(self, *script: ProviderReply | Exception) -> None:
        """Replace the script and forget recorded calls."""
        self._script = list(script)
        self.calls.clear()
        self.functions.clear()

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        functions: Sequence[dict[str, Any]],
    ) -> ProviderReply:
        self.calls.append(list(messages))
        self.functions.append(list(functions))
        index = min(len(self.calls), len(self._script)) - 1
        step = self._script[index]
        if isinstance(step, Exception):
            raise step
        return step


class DroppingSink(CollectingSink):
    """Collecting sink whose client can be made to go away."""

    def __init__(self) -> None:
        super().__init__()
        self.dropped = False

    @property
    def disconnected(self) -> bool:
        return self.dropped


@pytest.fixture
def make_orchestrator(
    chat_repo: ChatRepository,
    registry: FunctionRegistry,
    conversation_config: ConversationConfig,
):  # type: ignore[no-untyped-def]
    """Factory for an orchestrator driven by a scripted provider."""

    def _make(
        provider: ScriptedProvider,
        turn_lock: InMemoryTurnLock | None = None,
    ) -> ChatOrchestrator:
        coordinator = ConversationCoordinator(
            provider=provider, registry=registry, config=conversation_config
        )
        return ChatOrchestrator(
            repository=chat_repo,
            coordinator=coordinator,
            turn_lock=turn_lock or InMemoryTurnLock(),
        )

    return _make


# --- Mock LLM ---


@pytest.fixture
def mock_llm() -> MagicMock:
    """Create a mock LLM for testing."""
    mock = MagicMock(spec=BaseChatModel)
    mock.ainvoke = AsyncMock(return_value=AIMessage(content="Test response"))
    mock.bind_tools = MagicMock(return_value=mock)
    return mock


@pytest.fixture
def mock_web_search_result() -> str:
    """Mock web search result for testing."""
    return (
        "[snippet: Sunny in Berlin today, 15 degrees., "
        "title: Berlin weather, link: https://weather.example.com/berlin]"
    )


# --- App override & client fixtures ---


@pytest.fixture
async def app_client(
    make_orchestrator,  # type: ignore[no-untyped-def]
    chat_repo: ChatRepository,
    registry: FunctionRegistry,
    mock_llm: MagicMock,
) -> AsyncGenerator[tuple[AsyncClient, ScriptedProvider], None]:
    """Client for the app wired to the test DB and a scripted provider.

    Tests set the provider's script through the yielded provider.
    """
    from agentchat.dependencies import (
        get_chat_orchestrator,
        get_chat_repository,
        get_function_registry,
        get_llm,
        get_tool_server_manager,
    )
    from agentchat.main import app
    from agentchat.services.tool_servers import (
        ToolServerManager,
        initialize_tool_servers,
    )

    provider = ScriptedProvider(text_reply("Hello there"))
    orchestrator = make_orchestrator(provider)
    app.dependency_overrides[get_chat_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_chat_repository] = lambda: chat_repo
    app.dependency_overrides[get_function_registry] = lambda: registry
    app.dependency_overrides[get_llm] = lambda: mock_llm
    tool_servers = initialize_tool_servers(ToolServerManager(), registry)
    app.dependency_overrides[get_tool_server_manager] = lambda: tool_servers
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac, provider
    app.dependency_overrides.clear()
