"""Registry of host business functions callable by the AI provider."""

import asyncio
import inspect
import json
import threading
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Protocol

import structlog
from langchain_core.tools import BaseTool
from langchain_core.utils.function_calling import convert_to_openai_function

from agentchat.core.exceptions import InvalidFunctionError
from agentchat.schemas.function_schema import (
    FUNCTION_EXECUTION_FAILED,
    FunctionCallResult,
    FunctionDefinition,
)

logger = structlog.get_logger()

FunctionHandler = Callable[[dict[str, Any]], Any | Awaitable[Any]]


class FunctionSource(Protocol):
    """What a turn needs from wherever its callable functions live."""

    def all_definitions(self) -> list[dict[str, Any]]: ...

    async def execute(
        self, name: str, arguments: Mapping[str, Any] | None
    ) -> FunctionCallResult: ...


@dataclass(frozen=True)
class ParameterSpec:
    """JSON-schema description of one function parameter."""

    type: str
    description: str = ""
    enum: tuple[str, ...] | None = None
    default: Any = None

    def to_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"type": self.type, "description": self.description}
        if self.enum:
            schema["enum"] = list(self.enum)
        if self.default is not None:
            schema["default"] = self.default
        return schema


@dataclass(frozen=True)
class BusinessFunction:
    """A named host operation exposed to the AI provider.

    ``handler`` receives the argument map and returns a FunctionCallResult or
    any plain value, which the registry wraps as a successful result. It may
    be a regular function or a coroutine function.
    """

    name: str
    description: str
    handler: FunctionHandler
    parameters: Mapping[str, ParameterSpec] = field(default_factory=dict)
    required: tuple[str, ...] = ()
    parameters_schema: Mapping[str, Any] | None = None

    def definition(self) -> FunctionDefinition:
        """Provider-facing schema for this function."""
        if self.parameters_schema is not None:
            parameters = dict(self.parameters_schema)
        else:
            parameters = {
                "type": "object",
                "properties": {
                    name: spec.to_schema() for name, spec in self.parameters.items()
                },
                "required": list(self.required),
            }
        return FunctionDefinition(
            name=self.name,
            description=self.description,
            parameters=parameters,
        )

    @classmethod
    def from_tool(cls, tool: BaseTool) -> "BusinessFunction":
        """Expose a LangChain tool as a business function."""
        schema = convert_to_openai_function(tool)

        async def _run(arguments: dict[str, Any]) -> Any:
            return await tool.ainvoke(arguments)

        return cls(
            name=schema["name"],
            description=schema.get("description", "") or tool.description,
            handler=_run,
            parameters_schema=schema.get(
                "parameters", {"type": "object", "properties": {}}
            ),
        )


def _normalize(outcome: Any) -> FunctionCallResult:
    """Wrap a handler's plain return value as a result."""
    if isinstance(outcome, FunctionCallResult):
        return outcome
    if outcome is None:
        return FunctionCallResult.ok("")
    if isinstance(outcome, Mapping):
        data = dict(outcome)
        return FunctionCallResult.ok(
            json.dumps(data, ensure_ascii=False, default=str), data=data
        )
    if isinstance(outcome, str):
        return FunctionCallResult.ok(outcome)
    return FunctionCallResult.ok(json.dumps(outcome, ensure_ascii=False, default=str))


class FunctionRegistry:
    """Thread-safe directory of business functions keyed by name.

    Writers are serialized and publish a fresh read-only mapping, so readers
    never take a lock and always observe fully registered functions.
    """

    def __init__(self, functions: Iterable[BusinessFunction] | None = None) -> None:
        self._write_lock = threading.Lock()
        self._functions: Mapping[str, BusinessFunction] = MappingProxyType({})
        if functions is not None:
            self.register_all(functions)

    def register(self, function: BusinessFunction | None) -> None:
        """Add or replace a function by name."""
        if function is None:
            raise InvalidFunctionError("Function must not be None")
        name = (function.name or "").strip()
        if not name:
            raise InvalidFunctionError("Function name must not be empty")
        if not callable(function.handler):
            raise InvalidFunctionError(f"Function {name} has no callable handler")

        with self._write_lock:
            if name in self._functions:
                # TODO: decide whether duplicate names should be rejected instead
                logger.warning("Business function overwritten", function=name)
            updated = dict(self._functions)
            updated[name] = function
            self._functions = MappingProxyType(updated)
        logger.info("Business function registered", function=name)

    def register_all(self, functions: Iterable[BusinessFunction]) -> None:
        for function in functions:
            self.register(function)

    def unregister(self, name: str) -> bool:
        """Remove a function; returns False when it was not registered."""
        with self._write_lock:
            if name not in self._functions:
                return False
            updated = dict(self._functions)
            del updated[name]
            self._functions = MappingProxyType(updated)
        logger.info("Business function unregistered", function=name)
        return True

    def clear(self) -> None:
        with self._write_lock:
            count = len(self._functions)
            self._functions = MappingProxyType({})
        logger.info("Business functions cleared", count=count)

    def get(self, name: str) -> BusinessFunction | None:
        return self._functions.get(name)

    def is_registered(self, name: str) -> bool:
        return name in self._functions

    def names(self) -> list[str]:
        return sorted(self._functions)

    def all_functions(self) -> list[BusinessFunction]:
        return list(self._functions.values())

    def __len__(self) -> int:
        return len(self._functions)

    def all_definitions(self) -> list[dict[str, Any]]:
        """Provider-facing schema of every registered function."""
        return [fn.definition().model_dump() for fn in self._functions.values()]

    async def execute(
        self, name: str, arguments: Mapping[str, Any] | None
    ) -> FunctionCallResult:
        """Run a function by name; failures are returned, never raised."""
        function = self._functions.get(name)
        if function is None:
            logger.warning("Business function not found", function=name)
            return FunctionCallResult.not_found(name)

        args = dict(arguments or {})
        logger.debug("Executing business function", function=name, arguments=args)
        try:
            if inspect.iscoroutinefunction(function.handler):
                outcome = await function.handler(args)
            else:
                outcome = await asyncio.to_thread(function.handler, args)
                if inspect.isawaitable(outcome):
                    outcome = await outcome
            result = _normalize(outcome)
        except Exception as exc:
            logger.exception("Business function failed", function=name)
            return FunctionCallResult.fail(
                f"function execution failed: {name} - {exc}",
                code=FUNCTION_EXECUTION_FAILED,
            )

        logger.debug(
            "Business function executed",
            function=name,
            success=result.success,
        )
        return result
