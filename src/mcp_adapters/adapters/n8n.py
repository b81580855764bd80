"""n8n REST API adapter."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

from mcp_adapters.adapters.http import HttpAdapter
from mcp_adapters.core.errors import ConfigurationError

if TYPE_CHECKING:
    import httpx

    from mcp_adapters.config.schema import N8nConfig

API_PREFIX = "/api/v1"


def _workflow_summary(wf: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": wf.get("id"),
        "name": wf.get("name"),
        "active": wf.get("active", False),
        "created_at": wf.get("createdAt"),
        "updated_at": wf.get("updatedAt"),
        "tags": [t.get("name") for t in wf.get("tags") or [] if isinstance(t, dict)],
    }


def _execution_summary(ex: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": ex.get("id"),
        "workflow_id": ex.get("workflowId"),
        "status": ex.get("status"),
        "mode": ex.get("mode"),
        "finished": ex.get("finished"),
        "started_at": ex.get("startedAt"),
        "stopped_at": ex.get("stoppedAt"),
    }


def _items(body: Any) -> list[dict[str, Any]]:
    """List payloads come wrapped as ``{"data": [...], "nextCursor": ...}``."""
    if isinstance(body, dict):
        body = body.get("data", [])
    return [item for item in body or [] if isinstance(item, dict)]


class N8nClient(HttpAdapter):
    """Client for the n8n public REST API.

    Usage::

        async with N8nClient(config.n8n) as client:
            workflows = await client.list_workflows()
    """

    service = "n8n"

    def __init__(
        self,
        config: N8nConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not config.base_url or not config.api_key:
            msg = (
                "Missing n8n configuration. "
                "Please set N8N_BASE_URL and N8N_API_KEY environment variables."
            )
            raise ConfigurationError(msg)
        super().__init__(
            config.base_url,
            headers={
                "Content-Type": "application/json",
                "X-N8N-API-KEY": config.api_key,
            },
            timeout=config.timeout,
            secrets=[config.api_key],
            transport=transport,
        )

    async def list_workflows(self) -> list[dict[str, Any]]:
        resp = await self._request("GET", f"{API_PREFIX}/workflows", "Failed to list workflows")
        return [_workflow_summary(wf) for wf in _items(resp.json())]

    async def get_workflow(self, workflow_id: str) -> dict[str, Any]:
        resp = await self._request(
            "GET",
            f"{API_PREFIX}/workflows/{workflow_id}",
            f"Failed to get workflow with ID: {workflow_id}",
        )
        return cast("dict[str, Any]", resp.json())

    async def activate_workflow(self, workflow_id: str) -> dict[str, Any]:
        resp = await self._request(
            "POST",
            f"{API_PREFIX}/workflows/{workflow_id}/activate",
            f"Failed to activate workflow with ID: {workflow_id}",
        )
        return _workflow_summary(resp.json())

    async def deactivate_workflow(self, workflow_id: str) -> dict[str, Any]:
        resp = await self._request(
            "POST",
            f"{API_PREFIX}/workflows/{workflow_id}/deactivate",
            f"Failed to deactivate workflow with ID: {workflow_id}",
        )
        return _workflow_summary(resp.json())

    async def execute_workflow(
        self, workflow_id: str, data: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        resp = await self._request(
            "POST",
            f"{API_PREFIX}/workflows/{workflow_id}/execute",
            f"Failed to execute workflow with ID: {workflow_id}",
            json=data or {},
        )
        return cast("dict[str, Any]", resp.json())

    async def list_workflow_executions(self, workflow_id: str) -> list[dict[str, Any]]:
        resp = await self._request(
            "GET",
            f"{API_PREFIX}/executions",
            f"Failed to list executions for workflow with ID: {workflow_id}",
            params={"workflowId": workflow_id},
        )
        return [_execution_summary(ex) for ex in _items(resp.json())]

    async def get_execution(self, execution_id: str) -> dict[str, Any]:
        resp = await self._request(
            "GET",
            f"{API_PREFIX}/executions/{execution_id}",
            f"Failed to get execution with ID: {execution_id}",
        )
        return cast("dict[str, Any]", resp.json())
