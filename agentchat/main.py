"""FastAPI application entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Annotated

import structlog
from fastapi import Depends, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from agentchat.api.v1.chat_router import router as chat_router
from agentchat.api.v1.session_router import router as session_router
from agentchat.core.config import settings
from agentchat.core.database import Base, engine
from agentchat.core.exceptions import (
    AppException,
    app_exception_handler,
    validation_exception_handler,
)
from agentchat.core.rate_limit import limiter, rate_limit_exceeded_handler
from agentchat.core.redis import close_redis, get_redis, init_redis
from agentchat.dependencies import get_function_registry, get_tool_server_manager
from agentchat.schemas.response_schema import ApiResponse, success_response
from agentchat.services.function_registry import FunctionRegistry

logger = structlog.get_logger()

APP_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Connect Redis, prepare tables and warm the function registry."""
    logger.info(
        "Starting agent chat",
        environment=settings.app.env,
        llm_provider=settings.llm.provider,
        model=settings.llm.model_name,
    )
    if await init_redis() is None:
        logger.info("Turn locks are process-local")
    # No migrations ship with the service; SQLite and dev databases are created here.
    if settings.app.is_development or settings.database.is_sqlite:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    logger.info("Business functions ready", count=len(get_function_registry()))
    if settings.conversation.enable_mcp:
        logger.info("Turns use tool servers", tools=len(get_tool_server_manager().list_tools()))
    yield
    await close_redis()
    await engine.dispose()
    logger.info("Agent chat stopped")


def create_app() -> FastAPI:
    """Build the application with handlers, middleware and routers attached."""
    application = FastAPI(
        title=settings.app.name,
        description="Conversational agent with streamed replies and business function calls",
        version=APP_VERSION,
        lifespan=lifespan,
        debug=settings.app.debug,
    )
    application.state.limiter = limiter

    application.add_exception_handler(AppException, app_exception_handler)  # type: ignore[arg-type]
    application.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)  # type: ignore[arg-type]
    application.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]

    # Added last runs first: CORS wraps the limiter.
    application.add_middleware(SlowAPIMiddleware)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.app.is_development else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Session-Id"],
    )

    application.include_router(session_router)
    application.include_router(chat_router)
    return application


app = create_app()


@app.get("/health", response_model=ApiResponse[dict])
async def health_check(
    registry: Annotated[FunctionRegistry, Depends(get_function_registry)],
) -> dict:
    """Liveness plus the turn-lock backend and registered function count."""
    return success_response(
        {
            "status": "healthy",
            "turn_lock": "redis" if get_redis() is not None else "in-memory",
            "functions": len(registry),
        }
    )


@app.get("/", response_model=ApiResponse[dict])
async def root() -> dict:
    return success_response(
        {"app": settings.app.name, "version": APP_VERSION, "docs": "/docs"}
    )
