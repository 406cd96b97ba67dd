"""Chat session API router."""

from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from langchain_core.language_models import BaseChatModel
from pydantic import BaseModel, Field

from agentchat.core.config import settings
from agentchat.core.rate_limit import limiter
from agentchat.dependencies import (
    get_chat_orchestrator,
    get_chat_repository,
    get_llm,
)
from agentchat.models.chat_session import MAX_TITLE_LENGTH
from agentchat.repositories.chat_repo import ChatRepository
from agentchat.schemas.chat_schema import (
    ChangeStatusRequest,
    CreateSessionRequest,
    MessageResponse,
    SendMessageRequest,
    SessionResponse,
    TurnResponse,
)
from agentchat.schemas.response_schema import ApiResponse, success_response
from agentchat.services.chat_orchestrator import ChatOrchestrator
from agentchat.services.chat_title_task import generate_session_title
from agentchat.services.streaming_delivery import DeliveryOptions

router = APIRouter(prefix="/api/v1/chat/sessions", tags=["sessions"])

OrchestratorDep = Annotated[ChatOrchestrator, Depends(get_chat_orchestrator)]
LLMDep = Annotated[BaseChatModel, Depends(get_llm)]
ChatRepoDep = Annotated[ChatRepository, Depends(get_chat_repository)]


class UpdateTitleRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=MAX_TITLE_LENGTH)


@router.post("", response_model=ApiResponse[SessionResponse], status_code=201)
async def create_session(
    request: CreateSessionRequest,
    orchestrator: OrchestratorDep,
) -> dict:
    """Create a new ACTIVE session."""
    session = await orchestrator.create_session(
        title=request.title, user_id=request.user_id
    )
    return success_response(
        SessionResponse.model_validate(session), status=201, message="Session created"
    )


@router.get("", response_model=ApiResponse[list[SessionResponse]])
async def list_sessions(
    orchestrator: OrchestratorDep,
    user_id: str | None = Query(default=None, max_length=64),
    limit: int = Query(default=50, ge=1, le=100),
) -> dict:
    """List sessions for a user, most recently updated first."""
    sessions = await orchestrator.list_sessions(user_id=user_id, limit=limit)
    return success_response([SessionResponse.model_validate(s) for s in sessions])


@router.get("/{session_id}", response_model=ApiResponse[SessionResponse])
async def get_session(session_id: str, orchestrator: OrchestratorDep) -> dict:
    """Get a single session."""
    session = await orchestrator.get_session(session_id)
    return success_response(SessionResponse.model_validate(session))


@router.get("/{session_id}/messages", response_model=ApiResponse[list[MessageResponse]])
async def get_messages(session_id: str, orchestrator: OrchestratorDep) -> dict:
    """Get a session's message history in chronological order."""
    messages = await orchestrator.get_messages(session_id)
    return success_response([MessageResponse.model_validate(m) for m in messages])


@router.get(
    "/{session_id}/messages/{message_id}", response_model=ApiResponse[MessageResponse]
)
async def get_message(
    session_id: str, message_id: str, orchestrator: OrchestratorDep
) -> dict:
    """Get a single message of a session."""
    message = await orchestrator.get_message(session_id, message_id)
    return success_response(MessageResponse.model_validate(message))


@router.post("/{session_id}/status", response_model=ApiResponse[SessionResponse])
async def change_status(
    session_id: str,
    request: ChangeStatusRequest,
    orchestrator: OrchestratorDep,
) -> dict:
    """Move a session to another status."""
    session = await orchestrator.change_status(session_id, request.status)
    return success_response(
        SessionResponse.model_validate(session), message="Status updated"
    )


@router.patch("/{session_id}/title", response_model=ApiResponse[SessionResponse])
async def update_title(
    session_id: str,
    request: UpdateTitleRequest,
    orchestrator: OrchestratorDep,
) -> dict:
    """Rename a session."""
    session = await orchestrator.rename(session_id, request.title)
    return success_response(
        SessionResponse.model_validate(session), message="Title updated"
    )


@router.post("/{session_id}/messages", response_model=ApiResponse[TurnResponse])
@limiter.limit(settings.server.chat_rate_limit)
async def send_message(
    request: Request,
    session_id: str,
    body: SendMessageRequest,
    orchestrator: OrchestratorDep,
    llm: LLMDep,
    chat_repo: ChatRepoDep,
    background_tasks: BackgroundTasks,
) -> dict:
    """Run a complete turn and return the reply without streaming."""
    options = DeliveryOptions.resolve(
        settings.streaming,
        show_thinking=body.show_thinking,
        show_completed=body.show_completed,
        show_function_calls=body.show_function_calls,
    )
    result = await orchestrator.send_message(session_id, body.message, options)
    if result.session.has_placeholder_title:
        background_tasks.add_task(
            generate_session_title,
            session_id=session_id,
            message=body.message,
            llm=llm,
            chat_repo=chat_repo,
        )
    assistant = result.assistant_message
    return success_response(
        TurnResponse(
            session_id=result.session.id,
            user_message=MessageResponse.model_validate(result.user_message),
            assistant_message=(
                MessageResponse.model_validate(assistant) if assistant else None
            ),
            events=[event.model_dump(mode="json") for event in result.events],
        )
    )
