"""Tool registry and dispatcher.

Holds the static list of tools a server exposes and routes a named
invocation to the matching tool. Dispatch always returns a
:class:`ToolResult`; it never raises.
"""

from __future__ import annotations

import logging
import traceback
from typing import TYPE_CHECKING, Any

from mcp_adapters.core.errors import RemoteError, UnknownToolError
from mcp_adapters.core.secrets import redact
from mcp_adapters.tools.base import FunctionTool, ParameterSpec, ToolDescriptor, ToolResult

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Registry for the tools of one server.

    Supports registration, exact-name lookup, listing descriptors (for
    ``tools/list``) and dispatching invocations.
    """

    def __init__(self, *, debug: bool = False, secrets: Iterable[str | None] = ()) -> None:
        self._tools: dict[str, FunctionTool] = {}
        self.debug = debug
        self._secrets = [s for s in secrets if s]
        self._cleanups: list[Callable[[], Awaitable[None]]] = []

    def register(self, tool: FunctionTool) -> None:
        """Register a tool.

        Raises:
            ValueError: If a tool with the same name is already registered.
        """
        if tool.name in self._tools:
            msg = f"Tool already registered: {tool.name}"
            raise ValueError(msg)
        self._tools[tool.name] = tool

    def add(
        self,
        name: str,
        description: str,
        func: Callable[..., Awaitable[Any]],
        parameters: dict[str, ParameterSpec] | None = None,
        *,
        arg_names: dict[str, str] | None = None,
    ) -> FunctionTool:
        """Build a :class:`FunctionTool` from parts and register it."""
        descriptor = ToolDescriptor(name=name, description=description, parameters=parameters or {})
        tool = FunctionTool(descriptor, func, arg_names=arg_names)
        self.register(tool)
        return tool

    def get(self, name: str) -> FunctionTool:
        """Get a tool by exact, case-sensitive name.

        Raises:
            UnknownToolError: If the tool is not found.
        """
        try:
            return self._tools[name]
        except KeyError:
            raise UnknownToolError(name, self.list_names()) from None

    def list_descriptors(self) -> list[ToolDescriptor]:
        """Return descriptors for all registered tools, in registration order."""
        return [t.descriptor for t in self._tools.values()]

    def list_names(self) -> list[str]:
        """Return names of all registered tools."""
        return list(self._tools.keys())

    async def dispatch(self, name: str, arguments: dict[str, Any] | None = None) -> ToolResult:
        """Route an invocation to its tool and return the result.

        Unknown names produce an ``unknown_tool`` failure. Unexpected
        exceptions are logged and returned as ``remote_error`` failures;
        the traceback is attached only in debug mode.
        """
        try:
            tool = self.get(name)
        except UnknownToolError as exc:
            logger.warning("Rejected call to unknown tool %r", name)
            return ToolResult.from_error(exc)

        logger.debug("Dispatching %s", name)
        try:
            result = await tool.invoke(arguments if arguments is not None else {})
        except Exception as exc:
            message = redact(f"Tool execution error: {exc}", self._secrets)
            logger.exception("Unexpected error in tool %s", name)
            details = None
            if self.debug:
                details = {
                    "type": type(exc).__name__,
                    "traceback": redact(traceback.format_exc(), self._secrets),
                }
            return ToolResult.failure(message, code=RemoteError.code, details=details)

        if not result.success:
            logger.info("Tool %s failed (%s): %s", name, result.code, result.error)
        return result

    def on_close(self, callback: Callable[[], Awaitable[None]]) -> None:
        """Register a coroutine function to run on :meth:`aclose`."""
        self._cleanups.append(callback)

    async def aclose(self) -> None:
        """Release adapter resources (HTTP clients, database pools)."""
        for callback in reversed(self._cleanups):
            try:
                await callback()
            except Exception:
                logger.exception("Error during shutdown")
        self._cleanups.clear()

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools
