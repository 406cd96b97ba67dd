"""Serve the business functions to MCP clients over stdio."""

import asyncio
import sys

import structlog
from mcp.server.stdio import stdio_server

from agentchat.dependencies import get_tool_server_manager
from agentchat.services.tool_servers import create_mcp_server

logger = structlog.get_logger()


async def serve() -> None:
    server = create_mcp_server(get_tool_server_manager())
    async with stdio_server() as (read_stream, write_stream):
        logger.info("MCP server listening on stdio")
        await server.run(read_stream, write_stream, server.create_initialization_options())


def main() -> None:
    # stdout carries the protocol; logs go to stderr.
    structlog.configure(logger_factory=structlog.PrintLoggerFactory(sys.stderr))
    asyncio.run(serve())


if __name__ == "__main__":
    main()
