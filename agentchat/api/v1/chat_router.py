"""Chat API router: streamed turns, functions and quick prompts."""

import asyncio
import json
from collections.abc import AsyncGenerator
from typing import Annotated

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import StreamingResponse
from langchain_core.language_models import BaseChatModel

from agentchat.core.config import settings
from agentchat.core.rate_limit import limiter
from agentchat.dependencies import (
    get_chat_orchestrator,
    get_chat_repository,
    get_function_registry,
    get_llm,
    get_quick_prompt_service,
    get_tool_server_manager,
)
from agentchat.repositories.chat_repo import ChatRepository
from agentchat.schemas.chat_schema import StreamChatRequest
from agentchat.schemas.function_schema import FunctionDefinition, QuickPrompt, ToolInfo
from agentchat.schemas.response_schema import (
    ApiResponse,
    ErrorResponse,
    success_response,
)
from agentchat.services.chat_orchestrator import ChatOrchestrator
from agentchat.services.chat_title_task import generate_session_title
from agentchat.services.function_registry import FunctionRegistry
from agentchat.services.quick_prompt_service import QuickPromptService
from agentchat.services.streaming_delivery import DeliveryOptions, QueueSink
from agentchat.services.tool_servers import ToolServerManager

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/chat", tags=["chat"])

OrchestratorDep = Annotated[ChatOrchestrator, Depends(get_chat_orchestrator)]
RegistryDep = Annotated[FunctionRegistry, Depends(get_function_registry)]
QuickPromptServiceDep = Annotated[
    QuickPromptService, Depends(get_quick_prompt_service)
]
ToolServersDep = Annotated[ToolServerManager, Depends(get_tool_server_manager)]
LLMDep = Annotated[BaseChatModel, Depends(get_llm)]
ChatRepoDep = Annotated[ChatRepository, Depends(get_chat_repository)]

# Turns keep running after a client disconnects; hold references until done.
_running_turns: set[asyncio.Task] = set()


def _forget_turn(task: asyncio.Task) -> None:
    _running_turns.discard(task)
    if not task.cancelled() and task.exception() is not None:
        logger.error("Streamed turn failed", error=str(task.exception()))


async def event_generator(sink: QueueSink) -> AsyncGenerator[str, None]:
    """Generate Server-Sent Events from a turn's delivery sink."""
    finished = False
    try:
        async for event in sink:
            yield f"data: {json.dumps(event.model_dump(mode='json'))}\n\n"
        finished = True
    finally:
        if not finished:
            logger.info("Client disconnected during stream")
            sink.disconnect()


@router.post(
    "/stream",
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
    },
)
@limiter.limit(settings.server.chat_rate_limit)
async def stream_chat(
    request: Request,
    body: StreamChatRequest,
    orchestrator: OrchestratorDep,
    llm: LLMDep,
    chat_repo: ChatRepoDep,
    background_tasks: BackgroundTasks,
) -> StreamingResponse:
    """Stream a turn as Server-Sent Events.

    Session and state errors are raised before the stream starts, so they
    reach the client as regular HTTP errors.
    """
    turn = await orchestrator.prepare_turn(
        body.session_id, body.message, user_id=body.user_id
    )
    options = DeliveryOptions.resolve(
        settings.streaming,
        show_thinking=body.show_thinking,
        typing_speed_ms=body.typing_speed_ms,
        show_completed=body.show_completed,
        show_function_calls=body.show_function_calls,
    )
    sink = QueueSink()
    turn_task = asyncio.create_task(orchestrator.run_turn(turn, sink, options))
    _running_turns.add(turn_task)
    turn_task.add_done_callback(_forget_turn)

    if turn.session.has_placeholder_title:
        background_tasks.add_task(
            generate_session_title,
            session_id=turn.session_id,
            message=body.message,
            llm=llm,
            chat_repo=chat_repo,
        )

    return StreamingResponse(
        event_generator(sink),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
            "X-Session-Id": turn.session_id,
        },
        background=background_tasks,
    )


@router.get("/functions", response_model=ApiResponse[list[FunctionDefinition]])
async def list_functions(registry: RegistryDep) -> dict:
    """Definitions of all registered business functions."""
    return success_response(registry.all_definitions())


@router.get("/quick-prompts", response_model=ApiResponse[list[QuickPrompt]])
async def list_quick_prompts(service: QuickPromptServiceDep) -> dict:
    """Prompt suggestions derived from the registered functions."""
    return success_response(service.list_prompts())


@router.get("/tools", response_model=ApiResponse[list[ToolInfo]])
async def list_tools(manager: ToolServersDep) -> dict:
    """Tools offered by the registered tool servers, with their server names."""
    return success_response(manager.list_tools())
