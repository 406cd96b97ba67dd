"""Chat orchestrator: session lifecycle plus end-to-end turns."""

from dataclasses import dataclass, replace

import structlog

from agentchat.core.exceptions import MessageNotFoundError, SessionNotFoundError
from agentchat.models.chat_message import ChatMessage, normalize_content
from agentchat.models.chat_session import ChatSession
from agentchat.models.enums import MessageRole, SessionStatus
from agentchat.repositories.chat_repo import ChatRepository
from agentchat.schemas.event_schema import DeliveryEvent, ErrorEvent
from agentchat.services.conversation_coordinator import (
    INTERNAL_ERROR,
    ConversationCoordinator,
    TurnOutcome,
)
from agentchat.services.session_state import SessionStateMachine
from agentchat.services.streaming_delivery import (
    CollectingSink,
    DeliveryOptions,
    DeliverySink,
    StreamingDelivery,
)
from agentchat.services.turn_lock import TurnLock

logger = structlog.get_logger()


@dataclass(frozen=True)
class PreparedTurn:
    """A validated turn holding its session's lock, ready to run."""

    session: ChatSession
    user_message: ChatMessage
    lock_token: str
    is_new_session: bool = False

    @property
    def session_id(self) -> str:
        return self.session.id


@dataclass(frozen=True)
class TurnResult:
    """Result of a non-streaming turn."""

    session: ChatSession
    user_message: ChatMessage
    outcome: TurnOutcome
    events: list[DeliveryEvent]

    @property
    def assistant_message(self) -> ChatMessage | None:
        return self.outcome.assistant_message


class ChatOrchestrator:
    """Entry point for chat sessions and turns.

    A turn is validated and locked by ``prepare_turn`` before anything is
    streamed, so session and state errors surface to the caller instead of
    inside the event stream. ``run_turn`` always releases the lock.
    """

    def __init__(
        self,
        repository: ChatRepository,
        coordinator: ConversationCoordinator,
        turn_lock: TurnLock,
    ) -> None:
        self._repo = repository
        self._coordinator = coordinator
        self._turn_lock = turn_lock

    # --- Sessions ---

    async def create_session(
        self, title: str | None = None, user_id: str | None = None
    ) -> ChatSession:
        session = await self._repo.create_session(
            ChatSession.new(title=title, user_id=user_id)
        )
        logger.info("Session created", session_id=session.id, user_id=user_id)
        return session

    async def get_session(self, session_id: str) -> ChatSession:
        session = await self._repo.find_session_by_id(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def list_sessions(
        self, user_id: str | None = None, limit: int = 50
    ) -> list[ChatSession]:
        return await self._repo.find_sessions_by_user(user_id, limit=limit)

    async def get_messages(self, session_id: str) -> list[ChatMessage]:
        await self.get_session(session_id)
        return await self._repo.find_messages_by_session_id(session_id)

    async def get_message(self, session_id: str, message_id: str) -> ChatMessage:
        """One message of a session; messages of other sessions are not found."""
        await self.get_session(session_id)
        message = await self._repo.find_message_by_id(message_id)
        if message is None or message.session_id != session_id:
            raise MessageNotFoundError(message_id)
        return message

    async def change_status(
        self, session_id: str, status: SessionStatus
    ) -> ChatSession:
        """Apply a state-machine transition and persist it."""
        session = await self.get_session(session_id)
        SessionStateMachine.apply(session, status)
        return await self._repo.save_session(session)

    async def pause(self, session_id: str) -> ChatSession:
        return await self.change_status(session_id, SessionStatus.PAUSED)

    async def activate(self, session_id: str) -> ChatSession:
        return await self.change_status(session_id, SessionStatus.ACTIVE)

    async def complete(self, session_id: str) -> ChatSession:
        return await self.change_status(session_id, SessionStatus.COMPLETED)

    async def close(self, session_id: str) -> ChatSession:
        return await self.change_status(session_id, SessionStatus.CLOSED)

    async def rename(self, session_id: str, title: str) -> ChatSession:
        session = await self.get_session(session_id)
        session.rename(title)
        return await self._repo.save_session(session)

    async def append_message(
        self,
        session_id: str,
        content: str,
        role: MessageRole = MessageRole.USER,
    ) -> ChatMessage:
        """Record a message without running an AI turn."""
        session = await self.get_session(session_id)
        SessionStateMachine.ensure_interactive(session)
        message = ChatMessage.create(session.id, role, content)
        return await self._repo.save_message(message)

    # --- Turns ---

    async def prepare_turn(
        self,
        session_id: str | None,
        content: str,
        user_id: str | None = None,
    ) -> PreparedTurn:
        """Validate, lock and record the user message for a new turn.

        Without ``session_id`` a new session is created first.
        """
        content = normalize_content(content)
        is_new = session_id is None
        if session_id is None:
            session = await self.create_session(user_id=user_id)
        else:
            session = await self.get_session(session_id)

        SessionStateMachine.ensure_can_start_turn(session)

        token = await self._turn_lock.acquire(session.id)
        try:
            # Status changes do not take the turn lock; re-check under it.
            session = await self.get_session(session.id)
            SessionStateMachine.ensure_can_start_turn(session)
            user_message = ChatMessage.user(session.id, content)
            await self._repo.save_message(user_message)
        except Exception:
            await self._turn_lock.release(session.id, token)
            raise
        return PreparedTurn(
            session=session,
            user_message=user_message,
            lock_token=token,
            is_new_session=is_new,
        )

    async def run_turn(
        self,
        turn: PreparedTurn,
        sink: DeliverySink,
        options: DeliveryOptions,
    ) -> TurnOutcome:
        """Run a prepared turn, streaming to ``sink``, and persist its result."""
        handle = StreamingDelivery(options).open(sink)
        try:
            history = await self._repo.find_messages_by_session_id(turn.session_id)
            outcome = await self._coordinator.run_turn(
                turn.session_id,
                history,
                handle,
                parent_message_id=turn.user_message.id,
            )
            for message in outcome.function_messages:
                await self._repo.save_message(message)
            if outcome.assistant_message is not None and not outcome.cancelled:
                await self._repo.save_message(outcome.assistant_message)
            logger.info(
                "Turn finished",
                session_id=turn.session_id,
                succeeded=outcome.succeeded,
                cancelled=outcome.cancelled,
                functions=len(outcome.function_messages),
            )
            return outcome
        except Exception:
            logger.exception("Turn persistence failed", session_id=turn.session_id)
            await handle.push(ErrorEvent.of(INTERNAL_ERROR, "Failed to save the reply"))
            raise
        finally:
            await handle.close()
            await self._turn_lock.release(turn.session_id, turn.lock_token)

    async def stream_turn(
        self,
        session_id: str | None,
        content: str,
        sink: DeliverySink,
        options: DeliveryOptions,
        user_id: str | None = None,
    ) -> TurnOutcome:
        turn = await self.prepare_turn(session_id, content, user_id=user_id)
        return await self.run_turn(turn, sink, options)

    async def send_message(
        self,
        session_id: str | None,
        content: str,
        options: DeliveryOptions | None = None,
        user_id: str | None = None,
    ) -> TurnResult:
        """Run a turn without pacing and return the collected events."""
        sink = CollectingSink()
        turn = await self.prepare_turn(session_id, content, user_id=user_id)
        outcome = await self.run_turn(
            turn, sink, replace(options or DeliveryOptions(), typing_speed_ms=0)
        )
        return TurnResult(
            session=turn.session,
            user_message=turn.user_message,
            outcome=outcome,
            events=sink.events,
        )
