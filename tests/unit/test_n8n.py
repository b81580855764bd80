"""Tests for the n8n adapter and its tools."""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import AsyncMock

import pytest

from mcp_adapters.adapters.n8n import N8nClient
from mcp_adapters.config.schema import N8nConfig
from mcp_adapters.core.errors import ConfigurationError
from mcp_adapters.servers.n8n import build_registry

_WORKFLOW = {
    "id": "wf1",
    "name": "Sync",
    "active": False,
    "createdAt": "2024-01-01T00:00:00Z",
    "updatedAt": "2024-01-02T00:00:00Z",
    "tags": [{"id": "t1", "name": "prod"}],
    "nodes": [],
}

_ROUTES: dict[tuple[str, str], tuple[int, Any]] = {
    ("GET", "/api/v1/workflows"): (200, {"data": [_WORKFLOW], "nextCursor": None}),
    ("GET", "/api/v1/workflows/wf1"): (200, _WORKFLOW),
    ("POST", "/api/v1/workflows/wf1/activate"): (200, {**_WORKFLOW, "active": True}),
    ("POST", "/api/v1/workflows/wf1/deactivate"): (200, _WORKFLOW),
    ("POST", "/api/v1/workflows/wf1/execute"): (200, {"executionId": "ex9"}),
    ("GET", "/api/v1/executions"): (
        200,
        {"data": [{"id": "ex9", "workflowId": "wf1", "status": "success", "finished": True}]},
    ),
    ("GET", "/api/v1/executions/ex9"): (200, {"id": "ex9", "status": "success"}),
    ("GET", "/api/v1/workflows/locked"): (401, {"message": "unauthorized"}),
}


@pytest.fixture
def client(json_transport) -> tuple[N8nClient, list]:  # type: ignore[no-untyped-def]
    transport, seen = json_transport(_ROUTES)
    config = N8nConfig(base_url="https://n8n.test/", api_key="n8n-secret-key")
    return N8nClient(config, transport=transport), seen


# ── Adapter ─────────────────────────────────────────────────────────


class TestN8nClient:
    def test_requires_configuration(self) -> None:
        with pytest.raises(ConfigurationError, match="N8N_BASE_URL and N8N_API_KEY"):
            N8nClient(N8nConfig(base_url="https://n8n.test"))

    async def test_list_workflows_reshapes(self, client) -> None:  # type: ignore[no-untyped-def]
        n8n, seen = client
        workflows = await n8n.list_workflows()
        assert workflows == [
            {
                "id": "wf1",
                "name": "Sync",
                "active": False,
                "created_at": "2024-01-01T00:00:00Z",
                "updated_at": "2024-01-02T00:00:00Z",
                "tags": ["prod"],
            }
        ]
        assert seen[0].headers["X-N8N-API-KEY"] == "n8n-secret-key"

    async def test_get_workflow_returns_full_body(self, client) -> None:  # type: ignore[no-untyped-def]
        n8n, _ = client
        assert (await n8n.get_workflow("wf1"))["nodes"] == []

    async def test_activate_returns_summary(self, client) -> None:  # type: ignore[no-untyped-def]
        n8n, _ = client
        assert (await n8n.activate_workflow("wf1"))["active"] is True

    async def test_execute_posts_data(self, client) -> None:  # type: ignore[no-untyped-def]
        n8n, seen = client
        result = await n8n.execute_workflow("wf1", {"x": 1})
        assert result == {"executionId": "ex9"}
        assert json.loads(seen[-1].content) == {"x": 1}

    async def test_list_executions_filters_by_workflow(self, client) -> None:  # type: ignore[no-untyped-def]
        n8n, seen = client
        executions = await n8n.list_workflow_executions("wf1")
        assert executions[0]["workflow_id"] == "wf1"
        assert executions[0]["status"] == "success"
        assert seen[-1].url.params["workflowId"] == "wf1"


# ── Tools ───────────────────────────────────────────────────────────


class TestN8nTools:
    def test_catalogue(self, make_config, client) -> None:  # type: ignore[no-untyped-def]
        registry = build_registry(make_config(), client=client[0])
        assert registry.list_names() == [
            "mcp_list_workflows",
            "mcp_get_workflow",
            "mcp_activate_workflow",
            "mcp_deactivate_workflow",
            "mcp_execute_workflow",
            "mcp_list_workflow_executions",
            "mcp_get_execution",
        ]

    async def test_every_tool_returns_a_result(self, make_config, client) -> None:  # type: ignore[no-untyped-def]
        registry = build_registry(make_config(), client=client[0])
        for name in registry.list_names():
            result = await registry.dispatch(name, {"id": "wf1"})
            assert result.success is not None

    async def test_auth_failure_is_structured(self, make_config, client) -> None:  # type: ignore[no-untyped-def]
        registry = build_registry(make_config(), client=client[0])
        result = await registry.dispatch("mcp_get_workflow", {"id": "locked"})
        assert not result.success
        assert result.code == "authentication_error"
        assert "n8n-secret-key" not in (result.error or "")

    async def test_missing_id_never_calls_adapter(self, make_config) -> None:  # type: ignore[no-untyped-def]
        fake = AsyncMock(spec=N8nClient)
        registry = build_registry(make_config(), client=fake)
        result = await registry.dispatch("mcp_get_workflow", {})
        assert result.code == "validation_error"
        assert fake.get_workflow.await_count == 0

    async def test_read_only_tool_is_stable(self, make_config, client) -> None:  # type: ignore[no-untyped-def]
        registry = build_registry(make_config(), client=client[0])
        first = await registry.dispatch("mcp_get_workflow", {"id": "wf1"})
        second = await registry.dispatch("mcp_get_workflow", {"id": "wf1"})
        assert first.to_text() == second.to_text()

    async def test_aclose_closes_client(self, make_config) -> None:  # type: ignore[no-untyped-def]
        fake = AsyncMock(spec=N8nClient)
        registry = build_registry(make_config(), client=fake)
        await registry.aclose()
        fake.aclose.assert_awaited_once()
