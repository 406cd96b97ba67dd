"""Built-in business functions available in every deployment."""

from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

from agentchat.functions.web_search import web_search_function
from agentchat.schemas.function_schema import FunctionCallResult
from agentchat.services.function_registry import (
    BusinessFunction,
    FunctionRegistry,
    ParameterSpec,
)

logger = structlog.get_logger()


def echo(arguments: dict[str, Any]) -> dict[str, Any]:
    """Return the arguments unchanged."""
    return dict(arguments)


def make_current_time(default_timezone: str) -> BusinessFunction:
    def current_time(arguments: dict[str, Any]) -> FunctionCallResult:
        name = arguments.get("timezone") or default_timezone
        try:
            tz = ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            return FunctionCallResult.fail(
                f"unknown timezone: {name}", code="INVALID_TIMEZONE"
            )
        now = datetime.now(tz=tz)
        data = {
            "timezone": name,
            "iso": now.isoformat(timespec="seconds"),
            "weekday": now.strftime("%A"),
        }
        return FunctionCallResult.ok(
            f"{now:%Y-%m-%d %H:%M:%S} ({name}, {data['weekday']})",
            data=data,
            ui_component="clock",
        )

    return BusinessFunction(
        name="get_current_time",
        description="Get the current date and time in a timezone.",
        handler=current_time,
        parameters={
            "timezone": ParameterSpec(
                type="string",
                description="IANA timezone name, e.g. Europe/Berlin",
                default=default_timezone,
            ),
        },
    )


ECHO_FUNCTION = BusinessFunction(
    name="echo",
    description="Repeat the given text back, for testing function calls.",
    handler=echo,
    parameters={"text": ParameterSpec(type="string", description="Text to repeat")},
    required=("text",),
)


def builtin_functions(
    default_timezone: str = "UTC", enable_web_search: bool = True
) -> list[BusinessFunction]:
    functions = [ECHO_FUNCTION, make_current_time(default_timezone)]
    if enable_web_search:
        functions.append(web_search_function())
    return functions


def register_builtin_functions(
    registry: FunctionRegistry,
    default_timezone: str = "UTC",
    enable_web_search: bool = True,
) -> FunctionRegistry:
    """Register the built-in functions on ``registry`` and return it."""
    registry.register_all(builtin_functions(default_timezone, enable_web_search))
    logger.info("Built-in functions registered", functions=registry.names())
    return registry
