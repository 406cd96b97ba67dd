"""Runs one AI turn: dispatch, function-call rounds, finalization."""

import asyncio
import re
from collections.abc import Sequence
from dataclasses import dataclass, field

import structlog

from agentchat.core.exceptions import ProviderError, ProviderTimeoutError
from agentchat.core.settings import ConversationConfig
from agentchat.models.chat_message import ChatMessage
from agentchat.schemas.event_schema import (
    CompletedData,
    CompletedEvent,
    ErrorData,
    ErrorEvent,
    FunctionCallData,
    FunctionCallEvent,
    FunctionResultData,
    FunctionResultEvent,
    ThinkingEvent,
    TokenEvent,
    UIComponentReference,
)
from agentchat.services.ai_provider import AIProvider, FunctionCallRequest, ProviderReply
from agentchat.services.function_registry import FunctionSource
from agentchat.services.streaming_delivery import DeliveryHandle

logger = structlog.get_logger()

FALLBACK_REPLY = "Sorry, I could not come up with a response. Please try again."
DEGRADED_REPLY = (
    "I could not finish this request within the allowed number of function "
    "calls. Please try breaking it into smaller steps."
)
INTERNAL_ERROR = "INTERNAL_ERROR"

_TOKEN_PATTERN = re.compile(r"\S+\s*|\s+")


def split_into_tokens(text: str) -> list[str]:
    """Split text into word tokens, each keeping its trailing whitespace."""
    return _TOKEN_PATTERN.findall(text)


@dataclass
class TurnOutcome:
    """What a turn produced, for the caller to persist."""

    session_id: str
    rounds: int = 0
    assistant_message: ChatMessage | None = None
    function_messages: list[ChatMessage] = field(default_factory=list)
    ui_components: list[UIComponentReference] = field(default_factory=list)
    degraded: bool = False
    cancelled: bool = False
    error: ErrorData | None = None

    @property
    def final_text(self) -> str | None:
        if self.assistant_message is None:
            return None
        return self.assistant_message.content

    @property
    def succeeded(self) -> bool:
        return self.assistant_message is not None and self.error is None


class ConversationCoordinator:
    """Drives the provider/function-call loop for a single user turn.

    Never raises for provider or function failures; those surface as an
    ``error`` event and an outcome without an assistant message.
    """

    def __init__(
        self,
        provider: AIProvider,
        registry: FunctionSource,
        config: ConversationConfig,
    ) -> None:
        self._provider = provider
        self._functions = registry
        self._config = config

    async def run_turn(
        self,
        session_id: str,
        history: Sequence[ChatMessage],
        handle: DeliveryHandle,
        parent_message_id: str | None = None,
    ) -> TurnOutcome:
        outcome = TurnOutcome(session_id=session_id)
        try:
            await self._run(outcome, list(history), handle, parent_message_id)
        except ProviderError as exc:
            if handle.cancelled:
                outcome.cancelled = True
                return outcome
            logger.error(
                "AI provider failed",
                session_id=session_id,
                code=exc.code,
                error=exc.message,
            )
            await self._fail(outcome, handle, exc.code, exc.message)
        except Exception as exc:
            logger.exception("Turn failed", session_id=session_id)
            await self._fail(outcome, handle, INTERNAL_ERROR, str(exc) or "Internal error")
        return outcome

    async def _run(
        self,
        outcome: TurnOutcome,
        conversation: list[ChatMessage],
        handle: DeliveryHandle,
        parent_message_id: str | None,
    ) -> None:
        await handle.push(ThinkingEvent())
        functions = self._functions.all_definitions()
        descriptions = {d["name"]: d.get("description") for d in functions}

        for _ in range(self._config.max_function_rounds):
            if handle.cancelled:
                outcome.cancelled = True
                return
            reply = await self._dispatch(conversation, functions, handle)
            if reply is None or handle.cancelled:
                outcome.cancelled = True
                return
            if not reply.wants_functions:
                text = reply.content.strip() or FALLBACK_REPLY
                await self._finalize(outcome, handle, text, parent_message_id)
                return

            outcome.rounds += 1
            for call in reply.function_calls:
                if handle.cancelled:
                    outcome.cancelled = True
                    return
                message = await self._execute(
                    outcome,
                    call,
                    descriptions.get(call.name),
                    handle,
                    parent_message_id,
                )
                if message is None:
                    outcome.cancelled = True
                    return
                conversation.append(message)

        logger.warning(
            "Function round limit reached",
            session_id=outcome.session_id,
            max_function_rounds=self._config.max_function_rounds,
        )
        outcome.degraded = True
        await self._finalize(outcome, handle, DEGRADED_REPLY, parent_message_id)

    async def _dispatch(
        self,
        conversation: list[ChatMessage],
        functions: list[dict],
        handle: DeliveryHandle,
    ) -> ProviderReply | None:
        """Call the provider with a per-attempt timeout and bounded retries.

        Returns None once the client is gone; no retry starts after that.
        """
        timeout = self._config.provider_timeout_seconds
        attempt = 0
        while True:
            attempt += 1
            try:
                return await asyncio.wait_for(
                    self._provider.complete(conversation, functions), timeout=timeout
                )
            except TimeoutError:
                error: ProviderError = ProviderTimeoutError(timeout)
            except ProviderError as exc:
                if not exc.retryable:
                    raise
                error = exc

            if handle.cancelled:
                logger.info("Client gone, not retrying", attempt=attempt, code=error.code)
                return None
            if attempt > self._config.provider_max_retries:
                raise error
            delay = self._config.backoff_delay(attempt)
            logger.warning(
                "AI provider call failed, retrying",
                attempt=attempt,
                delay=delay,
                code=error.code,
            )
            if await handle.wait_cancelled(delay):
                return None

    async def _execute(
        self,
        outcome: TurnOutcome,
        call: FunctionCallRequest,
        description: str | None,
        handle: DeliveryHandle,
        parent_message_id: str | None,
    ) -> ChatMessage | None:
        """Run one requested function; returns None if the client left meanwhile."""
        await handle.push(
            FunctionCallEvent(
                data=FunctionCallData(id=call.id, name=call.name, arguments=call.arguments)
            )
        )
        result = await self._functions.execute(call.name, call.arguments)
        if handle.cancelled:
            logger.info(
                "Discarding function result after cancellation",
                session_id=outcome.session_id,
                function=call.name,
            )
            return None

        await handle.push(
            FunctionResultEvent(
                data=FunctionResultData(id=call.id, name=call.name, result=result)
            )
        )
        message = ChatMessage.function(
            outcome.session_id,
            function_call={
                "id": call.id,
                "name": call.name,
                "arguments": call.arguments,
                "description": description,
            },
            result_json=result.to_content(),
            parent_message_id=parent_message_id,
        )
        outcome.function_messages.append(message)
        if result.success and result.ui_component:
            outcome.ui_components.append(
                UIComponentReference(
                    component_type=result.ui_component,
                    component_data=result.data or {},
                )
            )
        return message

    async def _finalize(
        self,
        outcome: TurnOutcome,
        handle: DeliveryHandle,
        text: str,
        parent_message_id: str | None,
    ) -> None:
        message = ChatMessage.assistant(
            outcome.session_id,
            text,
            parent_message_id=parent_message_id,
            ui_components=[
                c.model_dump(mode="json") for c in outcome.ui_components
            ],
        )
        for token in split_into_tokens(message.content or ""):
            await handle.push(TokenEvent(data=token))
        await handle.push(
            CompletedEvent(
                data=CompletedData(
                    session_id=outcome.session_id,
                    message_id=message.id,
                    final_text=message.content or "",
                    rounds=outcome.rounds,
                    degraded=outcome.degraded,
                    ui_components=outcome.ui_components,
                )
            )
        )
        outcome.assistant_message = message
        logger.info(
            "Turn completed",
            session_id=outcome.session_id,
            rounds=outcome.rounds,
            degraded=outcome.degraded,
        )

    async def _fail(
        self, outcome: TurnOutcome, handle: DeliveryHandle, code: str, message: str
    ) -> None:
        outcome.error = ErrorData(code=code, message=message)
        outcome.assistant_message = None
        await handle.push(ErrorEvent.of(code, message))
