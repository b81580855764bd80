"""Tests for tool registry."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

import pytest

from mcp_adapters.core.errors import UnknownToolError
from mcp_adapters.tools.base import FunctionTool, ParameterSpec, ToolDescriptor
from mcp_adapters.tools.registry import ToolRegistry

# ── Mock tools ──────────────────────────────────────────────────────


async def _search(query: str) -> str:
    return f"Results for: {query}"


async def _fail(**kwargs: Any) -> str:
    msg = "Intentional failure with key sk-secret-123"
    raise RuntimeError(msg)


def _search_tool() -> FunctionTool:
    descriptor = ToolDescriptor(
        name="web_search",
        description="Search the web",
        parameters={"query": ParameterSpec("string", required=True)},
    )
    return FunctionTool(descriptor, _search)


# ── Registration ────────────────────────────────────────────────────


class TestRegistration:
    def test_register_and_get(self) -> None:
        reg = ToolRegistry()
        tool = _search_tool()
        reg.register(tool)
        assert reg.get("web_search") is tool

    def test_duplicate_registration_raises(self) -> None:
        reg = ToolRegistry()
        reg.register(_search_tool())
        with pytest.raises(ValueError, match=r"already registered"):
            reg.register(_search_tool())

    def test_get_missing_raises(self) -> None:
        reg = ToolRegistry()
        with pytest.raises(UnknownToolError, match=r"nonexistent"):
            reg.get("nonexistent")

    def test_lookup_is_case_sensitive(self) -> None:
        reg = ToolRegistry()
        reg.register(_search_tool())
        with pytest.raises(UnknownToolError):
            reg.get("Web_Search")

    def test_contains(self) -> None:
        reg = ToolRegistry()
        reg.register(_search_tool())
        assert "web_search" in reg
        assert "nonexistent" not in reg

    def test_len(self) -> None:
        reg = ToolRegistry()
        assert len(reg) == 0
        reg.register(_search_tool())
        assert len(reg) == 1

    def test_add_builds_tool(self) -> None:
        reg = ToolRegistry()
        reg.add("fail_tool", "Always fails", _fail)
        assert reg.list_names() == ["fail_tool"]


# ── Descriptors ─────────────────────────────────────────────────────


class TestListDescriptors:
    def test_empty_registry(self) -> None:
        assert ToolRegistry().list_descriptors() == []

    def test_registration_order(self) -> None:
        reg = ToolRegistry()
        reg.register(_search_tool())
        reg.add("fail_tool", "Always fails", _fail)
        assert [d.name for d in reg.list_descriptors()] == ["web_search", "fail_tool"]


# ── Dispatch ────────────────────────────────────────────────────────


class TestDispatch:
    async def test_dispatch_success(self) -> None:
        reg = ToolRegistry()
        reg.register(_search_tool())
        result = await reg.dispatch("web_search", {"query": "test"})
        assert result.success
        assert result.payload == "Results for: test"

    async def test_unknown_tool_never_reaches_function(self) -> None:
        func = AsyncMock()
        reg = ToolRegistry()
        reg.add("known", "", func)
        result = await reg.dispatch("unknown", {})
        assert not result.success
        assert result.code == "unknown_tool"
        assert "known" in (result.error or "")
        func.assert_not_awaited()

    async def test_missing_argument(self) -> None:
        reg = ToolRegistry()
        reg.register(_search_tool())
        result = await reg.dispatch("web_search", {})
        assert result.code == "validation_error"

    async def test_none_arguments(self) -> None:
        reg = ToolRegistry()
        reg.add("noop", "", AsyncMock(return_value="done"))
        result = await reg.dispatch("noop", None)
        assert result.success

    async def test_unexpected_error_is_caught_and_redacted(self) -> None:
        reg = ToolRegistry(secrets=["sk-secret-123"])
        reg.add("fail_tool", "Always fails", _fail)
        result = await reg.dispatch("fail_tool", {})
        assert not result.success
        assert result.code == "remote_error"
        assert "Intentional failure" in (result.error or "")
        assert "sk-secret-123" not in (result.error or "")
        assert result.details is None

    async def test_debug_attaches_traceback(self) -> None:
        reg = ToolRegistry(debug=True)
        reg.add("fail_tool", "Always fails", _fail)
        result = await reg.dispatch("fail_tool", {})
        assert result.details is not None
        assert result.details["type"] == "RuntimeError"
        assert "Traceback" in result.details["traceback"]


# ── Shutdown ────────────────────────────────────────────────────────


class TestClose:
    async def test_callbacks_run_in_reverse(self) -> None:
        order: list[str] = []

        async def first() -> None:
            order.append("first")

        async def second() -> None:
            order.append("second")

        reg = ToolRegistry()
        reg.on_close(first)
        reg.on_close(second)
        await reg.aclose()
        assert order == ["second", "first"]

    async def test_failing_callback_does_not_stop_others(self) -> None:
        ran = AsyncMock()

        async def broken() -> None:
            msg = "close failed"
            raise OSError(msg)

        reg = ToolRegistry()
        reg.on_close(ran)
        reg.on_close(broken)
        await reg.aclose()
        ran.assert_awaited_once()
