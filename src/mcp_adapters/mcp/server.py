"""MCP stdio transport for a tool registry."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from typing import TYPE_CHECKING, Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from mcp_adapters import __version__

if TYPE_CHECKING:
    from mcp_adapters.tools.base import ToolResult
    from mcp_adapters.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


class ToolCallError(Exception):
    """A failed tool result, raised so the SDK answers with ``isError: true``.

    The message is the structured error JSON.
    """

    def __init__(self, result: ToolResult) -> None:
        self.result = result
        super().__init__(result.to_text())


def to_mcp_tools(registry: ToolRegistry) -> list[Tool]:
    """Convert registry descriptors into MCP tool definitions."""
    return [
        Tool(name=d.name, description=d.description, inputSchema=d.input_schema)
        for d in registry.list_descriptors()
    ]


async def handle_call(
    registry: ToolRegistry, name: str, arguments: dict[str, Any] | None
) -> list[TextContent]:
    """Dispatch one ``tools/call`` request.

    Raises:
        ToolCallError: When the tool result is a failure.
    """
    result = await registry.dispatch(name, arguments or {})
    if not result.success:
        raise ToolCallError(result)
    return [TextContent(type="text", text=result.to_text())]


def create_server(name: str, registry: ToolRegistry) -> Server:
    """Build an MCP server exposing every tool in ``registry``."""
    server: Server = Server(name, version=__version__)

    @server.list_tools()  # type: ignore[no-untyped-call, untyped-decorator]
    async def list_tools() -> list[Tool]:
        return to_mcp_tools(registry)

    @server.call_tool()  # type: ignore[untyped-decorator]
    async def call_tool(tool_name: str, arguments: dict) -> list[TextContent]:  # type: ignore[type-arg]
        return await handle_call(registry, tool_name, arguments)

    return server


async def serve_stdio(server: Server) -> int:
    """Serve ``server`` on stdin/stdout until EOF or a shutdown signal.

    Returns:
        Process exit code: 0 for EOF or SIGINT/SIGTERM, 1 when an
        exception escaped a background task.
    """
    loop = asyncio.get_running_loop()
    main_task = asyncio.current_task()
    exit_code = 0

    def _on_signal(sig: signal.Signals) -> None:
        logger.info("Received %s, shutting down", sig.name)
        if main_task is not None:
            main_task.cancel()

    def _on_loop_error(_loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        nonlocal exit_code
        logger.error(
            "Unhandled error outside a tool call: %s",
            context.get("message"),
            exc_info=context.get("exception"),
        )
        exit_code = 1
        if main_task is not None:
            main_task.cancel()

    for sig in (signal.SIGINT, signal.SIGTERM):
        # not available on Windows event loops
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, _on_signal, sig)
    loop.set_exception_handler(_on_loop_error)

    try:
        async with stdio_server() as (read_stream, write_stream):
            logger.info("%s server ready, waiting for requests", server.name)
            await server.run(
                read_stream,
                write_stream,
                server.create_initialization_options(),
            )
    except asyncio.CancelledError:
        logger.info("%s server stopped", server.name)
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.remove_signal_handler(sig)
        loop.set_exception_handler(None)
    return exit_code
