"""Unit tests for FunctionRegistry and BusinessFunction."""

import asyncio
import threading

import pytest
from langchain_core.tools import tool

from agentchat.core.exceptions import InvalidFunctionError
from agentchat.schemas.function_schema import (
    FUNCTION_EXECUTION_FAILED,
    FUNCTION_NOT_FOUND,
    FunctionCallResult,
)
from agentchat.services.function_registry import (
    BusinessFunction,
    FunctionRegistry,
    ParameterSpec,
)
from tests.conftest import make_echo_function


def _constant(name: str, value: str) -> BusinessFunction:
    return BusinessFunction(
        name=name, description=f"Returns {value}", handler=lambda _: value
    )


class TestRegister:
    """Tests for registration and lookup."""

    def test_register_and_get(self) -> None:
        registry = FunctionRegistry()
        echo = make_echo_function()

        registry.register(echo)

        assert registry.get("echo") is echo
        assert registry.is_registered("echo")
        assert len(registry) == 1
        assert registry.names() == ["echo"]

    def test_register_none_raises(self) -> None:
        with pytest.raises(InvalidFunctionError):
            FunctionRegistry().register(None)

    @pytest.mark.parametrize("name", ["", "   "])
    def test_register_blank_name_raises(self, name: str) -> None:
        with pytest.raises(InvalidFunctionError):
            FunctionRegistry().register(_constant(name, "x"))

    def test_register_non_callable_handler_raises(self) -> None:
        function = BusinessFunction(name="broken", description="", handler="nope")  # type: ignore[arg-type]
        with pytest.raises(InvalidFunctionError):
            FunctionRegistry().register(function)

    def test_register_all(self) -> None:
        registry = FunctionRegistry()
        registry.register_all([_constant("a", "1"), _constant("b", "2")])
        assert registry.names() == ["a", "b"]

    def test_unregister(self) -> None:
        registry = FunctionRegistry([make_echo_function()])

        assert registry.unregister("echo") is True
        assert registry.unregister("echo") is False
        assert registry.get("echo") is None

    def test_clear(self) -> None:
        registry = FunctionRegistry([_constant("a", "1"), _constant("b", "2")])
        registry.clear()
        assert len(registry) == 0
        assert registry.all_functions() == []

    @pytest.mark.asyncio
    async def test_reregister_uses_newest_handler(self) -> None:
        registry = FunctionRegistry()
        registry.register(_constant("greet", "first"))
        registry.register(_constant("greet", "second"))

        result = await registry.execute("greet", {})

        assert len(registry) == 1
        assert result.result == "second"

    def test_concurrent_registration_keeps_all_functions(self) -> None:
        registry = FunctionRegistry()

        def register_range(start: int) -> None:
            for i in range(start, start + 50):
                registry.register(_constant(f"fn_{i}", str(i)))

        threads = [threading.Thread(target=register_range, args=(n * 50,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(registry) == 200


class TestExecute:
    """Tests for FunctionRegistry.execute."""

    @pytest.mark.asyncio
    async def test_unknown_function_returns_failure(self) -> None:
        result = await FunctionRegistry().execute("create_entity", {"name": "Acme"})

        assert result.success is False
        assert result.error == "function not found: create_entity"
        assert result.error_code == FUNCTION_NOT_FOUND

    @pytest.mark.asyncio
    async def test_dict_return_is_wrapped(self) -> None:
        registry = FunctionRegistry([make_echo_function()])

        result = await registry.execute("echo", {"text": "hi"})

        assert result.success is True
        assert result.data == {"text": "hi"}
        assert '"text": "hi"' in result.result

    @pytest.mark.asyncio
    async def test_result_object_passes_through(self) -> None:
        expected = FunctionCallResult.ok("done", ui_component="card")
        registry = FunctionRegistry(
            [BusinessFunction(name="f", description="", handler=lambda _: expected)]
        )
        assert await registry.execute("f", None) == expected

    @pytest.mark.asyncio
    async def test_async_handler_is_awaited(self) -> None:
        async def handler(arguments: dict) -> str:
            await asyncio.sleep(0)
            return f"hello {arguments['name']}"

        registry = FunctionRegistry(
            [BusinessFunction(name="hello", description="", handler=handler)]
        )
        result = await registry.execute("hello", {"name": "Ada"})
        assert result.result == "hello Ada"

    @pytest.mark.asyncio
    async def test_sync_handler_runs_off_the_event_loop(self) -> None:
        loop_thread = threading.get_ident()
        seen: list[int] = []

        def handler(arguments: dict) -> None:
            seen.append(threading.get_ident())

        registry = FunctionRegistry(
            [BusinessFunction(name="where", description="", handler=handler)]
        )
        result = await registry.execute("where", {})

        assert result.success is True
        assert result.result == ""
        assert seen and seen[0] != loop_thread

    @pytest.mark.asyncio
    async def test_handler_exception_becomes_failure(self) -> None:
        def handler(arguments: dict) -> str:
            raise ValueError("boom")

        registry = FunctionRegistry(
            [BusinessFunction(name="explode", description="", handler=handler)]
        )
        result = await registry.execute("explode", {})

        assert result.success is False
        assert result.error == "function execution failed: explode - boom"
        assert result.error_code == FUNCTION_EXECUTION_FAILED

    @pytest.mark.asyncio
    async def test_arguments_are_copied(self) -> None:
        def handler(arguments: dict) -> str:
            arguments["mutated"] = True
            return "ok"

        original = {"a": 1}
        registry = FunctionRegistry(
            [BusinessFunction(name="mutate", description="", handler=handler)]
        )
        await registry.execute("mutate", original)
        assert original == {"a": 1}


class TestDefinitions:
    """Tests for provider-facing function definitions."""

    def test_definition_shape(self) -> None:
        function = BusinessFunction(
            name="create_entity",
            description="Create a business entity",
            handler=lambda _: "ok",
            parameters={
                "name": ParameterSpec(type="string", description="Entity name"),
                "kind": ParameterSpec(
                    type="string",
                    description="Entity kind",
                    enum=("internal", "customer"),
                    default="internal",
                ),
            },
            required=("name",),
        )

        assert function.definition().model_dump() == {
            "name": "create_entity",
            "description": "Create a business entity",
            "parameters": {
                "type": "object",
                "properties": {
                    "name": {"type": "string", "description": "Entity name"},
                    "kind": {
                        "type": "string",
                        "description": "Entity kind",
                        "enum": ["internal", "customer"],
                        "default": "internal",
                    },
                },
                "required": ["name"],
            },
        }

    def test_all_definitions(self) -> None:
        registry = FunctionRegistry([make_echo_function(), _constant("b", "2")])
        names = [d["name"] for d in registry.all_definitions()]
        assert sorted(names) == ["b", "echo"]

    @pytest.mark.asyncio
    async def test_from_tool(self) -> None:
        @tool
        def shout(text: str) -> str:
            """Upper-case the text."""
            return text.upper()

        function = BusinessFunction.from_tool(shout)
        definition = function.definition()
        result = await FunctionRegistry([function]).execute("shout", {"text": "hey"})

        assert definition.name == "shout"
        assert "Upper-case" in definition.description
        assert "text" in definition.parameters["properties"]
        assert result.result == "HEY"
