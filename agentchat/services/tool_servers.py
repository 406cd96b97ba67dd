"""MCP tool servers: the business registry and remote MCP servers behind one manager.

``ToolServerManager`` implements the same ``all_definitions`` / ``execute``
surface as ``FunctionRegistry``, so a turn can run against either.
"""

from collections.abc import Mapping
from typing import Any, Literal, Protocol

import structlog
from mcp import ClientSession, types
from mcp.server import Server

from agentchat.core.exceptions import InvalidFunctionError
from agentchat.schemas.function_schema import (
    FUNCTION_EXECUTION_FAILED,
    FunctionCallResult,
    ToolInfo,
)
from agentchat.services.function_registry import FunctionRegistry

logger = structlog.get_logger()

ToolServerKind = Literal["business-functions", "external-mcp", "custom"]

BUSINESS_SERVER_NAME = "business-functions"
EXPORTED_SERVER_NAME = "agentchat-tools"


class ToolServer(Protocol):
    @property
    def name(self) -> str: ...

    @property
    def kind(self) -> ToolServerKind: ...

    @property
    def available(self) -> bool: ...

    def list_tools(self) -> list[types.Tool]: ...

    async def call_tool(
        self, name: str, arguments: Mapping[str, Any]
    ) -> FunctionCallResult: ...


class BusinessFunctionToolServer:
    """Serves the business function registry as MCP tools."""

    kind: ToolServerKind = "business-functions"

    def __init__(self, registry: FunctionRegistry, name: str = BUSINESS_SERVER_NAME) -> None:
        self._registry = registry
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @property
    def available(self) -> bool:
        return len(self._registry) > 0

    def list_tools(self) -> list[types.Tool]:
        tools = []
        for function in self._registry.all_functions():
            definition = function.definition()
            tools.append(
                types.Tool(
                    name=definition.name,
                    description=definition.description,
                    inputSchema=definition.parameters,
                )
            )
        return tools

    async def call_tool(
        self, name: str, arguments: Mapping[str, Any]
    ) -> FunctionCallResult:
        return await self._registry.execute(name, arguments)


class RemoteToolServer:
    """Tools of another MCP server, reached through an initialized client session.

    The tool list is fetched by ``connect`` and cached; call ``refresh`` to
    pick up changes on the remote side.
    """

    kind: ToolServerKind = "external-mcp"

    def __init__(self, name: str, session: ClientSession) -> None:
        self._name = name
        self._session = session
        self._tools: list[types.Tool] = []

    @classmethod
    async def connect(cls, name: str, session: ClientSession) -> "RemoteToolServer":
        server = cls(name, session)
        await server.refresh()
        return server

    @property
    def name(self) -> str:
        return self._name

    @property
    def available(self) -> bool:
        return bool(self._tools)

    async def refresh(self) -> None:
        result = await self._session.list_tools()
        self._tools = list(result.tools)
        logger.info("Remote tools listed", server=self._name, count=len(self._tools))

    def list_tools(self) -> list[types.Tool]:
        return list(self._tools)

    async def call_tool(
        self, name: str, arguments: Mapping[str, Any]
    ) -> FunctionCallResult:
        result = await self._session.call_tool(name, dict(arguments))
        text = "".join(
            block.text for block in result.content if isinstance(block, types.TextContent)
        )
        if result.isError:
            return FunctionCallResult.fail(
                text or f"tool failed: {name}", code=FUNCTION_EXECUTION_FAILED
            )
        return FunctionCallResult.ok(text)


class ToolServerManager:
    """Combines the tools of every registered server.

    When two available servers offer the same tool name, the server
    registered first serves it.
    """

    def __init__(self) -> None:
        self._servers: dict[str, ToolServer] = {}

    def register_server(self, server: ToolServer) -> None:
        name = (server.name or "").strip()
        if not name:
            raise InvalidFunctionError("Tool server name must not be empty")
        if name in self._servers:
            logger.warning("Tool server overwritten", server=name)
        self._servers[name] = server
        logger.info("Tool server registered", server=name, kind=server.kind)

    def unregister_server(self, name: str) -> bool:
        if self._servers.pop(name, None) is None:
            return False
        logger.info("Tool server unregistered", server=name)
        return True

    def get_server(self, name: str) -> ToolServer | None:
        return self._servers.get(name)

    def servers(self) -> list[ToolServer]:
        return list(self._servers.values())

    def available_servers(self) -> list[ToolServer]:
        return [s for s in self._servers.values() if s.available]

    def clear(self) -> None:
        count = len(self._servers)
        self._servers = {}
        logger.info("Tool servers cleared", count=count)

    def list_tools(self) -> list[ToolInfo]:
        """Every reachable tool, one entry per name."""
        tools: dict[str, ToolInfo] = {}
        for server in self.available_servers():
            for tool in server.list_tools():
                if tool.name in tools:
                    continue
                tools[tool.name] = ToolInfo(
                    name=tool.name,
                    description=tool.description or "",
                    input_schema=dict(tool.inputSchema),
                    server=server.name,
                )
        return list(tools.values())

    def find_server_for_tool(self, name: str) -> ToolServer | None:
        for server in self.available_servers():
            if any(tool.name == name for tool in server.list_tools()):
                return server
        return None

    def all_definitions(self) -> list[dict[str, Any]]:
        return [tool.definition().model_dump() for tool in self.list_tools()]

    async def execute(
        self, name: str, arguments: Mapping[str, Any] | None
    ) -> FunctionCallResult:
        """Run a tool on the server that offers it; failures are returned."""
        server = self.find_server_for_tool(name)
        if server is None:
            logger.warning("Tool not found on any server", tool=name)
            return FunctionCallResult.not_found(name)
        try:
            return await server.call_tool(name, dict(arguments or {}))
        except Exception as exc:
            logger.exception("Tool server call failed", tool=name, server=server.name)
            return FunctionCallResult.fail(
                f"tool execution failed: {name} - {exc}",
                code=FUNCTION_EXECUTION_FAILED,
            )


def initialize_tool_servers(
    manager: ToolServerManager, registry: FunctionRegistry
) -> ToolServerManager:
    """Register the business functions with ``manager``."""
    adapter = BusinessFunctionToolServer(registry)
    if adapter.available:
        manager.register_server(adapter)
    else:
        logger.warning("No business functions registered, skipping tool server")
    logger.info(
        "Tool servers ready",
        servers=len(manager.available_servers()),
        tools=len(manager.list_tools()),
    )
    return manager


class ToolCallFailedError(Exception):
    """Raised inside the exported MCP server so the client gets an error result."""


def create_mcp_server(manager: ToolServerManager) -> Server:
    """Expose every managed tool through an MCP server."""
    server: Server = Server(EXPORTED_SERVER_NAME)

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return [
            types.Tool(
                name=tool.name,
                description=tool.description,
                inputSchema=tool.input_schema,
            )
            for tool in manager.list_tools()
        ]

    @server.call_tool()
    async def call_tool(
        name: str, arguments: dict[str, Any] | None
    ) -> list[types.TextContent]:
        result = await manager.execute(name, arguments)
        if not result.success:
            raise ToolCallFailedError(result.error or f"tool failed: {name}")
        return [types.TextContent(type="text", text=result.result or "")]

    return server
