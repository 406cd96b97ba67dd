"""AI provider boundary: chat history and function definitions in, reply out."""

import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol
from zoneinfo import ZoneInfo

import structlog
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)

from agentchat.core.exceptions import ProviderError, ProviderUnavailableError
from agentchat.models.chat_message import ChatMessage
from agentchat.models.enums import MessageRole

logger = structlog.get_logger()

SYSTEM_PROMPT_TEMPLATE = (
    "You are a helpful AI assistant.\n\n"
    "Current date and time: {system_time}\n"
    "When the user asks about 'today', 'now', 'yesterday', 'tomorrow', "
    "or any time-relative query, use this date to provide accurate information.\n"
    "Call the available functions when the user asks you to perform an action "
    "they cover, and answer from their results."
)


@dataclass(frozen=True)
class FunctionCallRequest:
    """One function invocation requested by the provider."""

    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ProviderReply:
    """Either plain content or a batch of function-call requests."""

    content: str = ""
    function_calls: tuple[FunctionCallRequest, ...] = ()

    @property
    def wants_functions(self) -> bool:
        return bool(self.function_calls)


class AIProvider(Protocol):
    """Anything that can complete a conversation with function calling."""

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        functions: Sequence[dict[str, Any]],
    ) -> ProviderReply: ...


def _content_text(content: Any) -> str:
    """Flatten LangChain message content (string or content blocks) to text."""
    if isinstance(content, str):
        return content
    parts: list[str] = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(str(block.get("text", "")))
    return "".join(parts)


class LangChainProvider:
    """AIProvider backed by a LangChain chat model with tool binding."""

    def __init__(self, llm: BaseChatModel, system_timezone: str = "UTC") -> None:
        self._llm = llm
        self._timezone = ZoneInfo(system_timezone)

    async def complete(
        self,
        messages: Sequence[ChatMessage],
        functions: Sequence[dict[str, Any]],
    ) -> ProviderReply:
        model = self._llm.bind_tools(list(functions)) if functions else self._llm
        prompt = [self._build_system_prompt(), *self.build_messages(messages)]
        try:
            response = await model.ainvoke(prompt)
        except ProviderError:
            raise
        except Exception as exc:
            logger.warning("AI provider call failed", error=str(exc))
            raise ProviderUnavailableError(f"AI provider call failed: {exc}") from exc
        return self._to_reply(response)

    def _build_system_prompt(self) -> SystemMessage:
        """System prompt with the current date/time."""
        system_time = datetime.now(tz=self._timezone).strftime("%Y-%m-%d %H:%M:%S %Z")
        return SystemMessage(
            content=SYSTEM_PROMPT_TEMPLATE.format(system_time=system_time)
        )

    @staticmethod
    def build_messages(messages: Sequence[ChatMessage]) -> list[BaseMessage]:
        """Convert stored ChatMessages to LangChain messages.

        Consecutive FUNCTION messages collapse into one AIMessage carrying
        their tool calls, followed by one ToolMessage per result.
        """
        result: list[BaseMessage] = []
        pending_calls: list[dict[str, Any]] = []
        pending_results: list[ToolMessage] = []

        def flush() -> None:
            if pending_calls:
                result.append(AIMessage(content="", tool_calls=list(pending_calls)))
                result.extend(pending_results)
                pending_calls.clear()
                pending_results.clear()

        for msg in messages:
            if msg.role is MessageRole.FUNCTION:
                call = msg.function_call or {}
                call_id = call.get("id") or f"call_{msg.id}"
                pending_calls.append(
                    {
                        "id": call_id,
                        "name": call.get("name", ""),
                        "args": call.get("arguments") or {},
                    }
                )
                pending_results.append(
                    ToolMessage(
                        content=msg.content or "",
                        tool_call_id=call_id,
                        name=call.get("name", ""),
                    )
                )
                continue

            flush()
            if msg.role is MessageRole.USER:
                result.append(HumanMessage(content=msg.content or ""))
            elif msg.role is MessageRole.ASSISTANT:
                result.append(AIMessage(content=msg.content or ""))
            elif msg.role is MessageRole.SYSTEM:
                result.append(SystemMessage(content=msg.content or ""))
        flush()
        return result

    @staticmethod
    def _to_reply(response: BaseMessage) -> ProviderReply:
        tool_calls = getattr(response, "tool_calls", None) or []
        calls = tuple(
            FunctionCallRequest(
                id=call.get("id") or f"call_{uuid.uuid4().hex[:12]}",
                name=call["name"],
                arguments=dict(call.get("args") or {}),
            )
            for call in tool_calls
        )
        return ProviderReply(content=_content_text(response.content), function_calls=calls)
