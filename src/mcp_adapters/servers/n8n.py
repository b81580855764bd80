"""n8n workflow tools."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from mcp_adapters.adapters.n8n import N8nClient
from mcp_adapters.tools.base import ParameterSpec
from mcp_adapters.tools.registry import ToolRegistry

if TYPE_CHECKING:
    from mcp_adapters.config.schema import AdapterConfig


def _id_param(what: str) -> dict[str, ParameterSpec]:
    return {"id": ParameterSpec("string", f"The ID of the {what}", required=True)}


def build_registry(config: AdapterConfig, *, client: N8nClient | None = None) -> ToolRegistry:
    """Register the seven n8n tools around one shared client."""
    n8n = client or N8nClient(config.n8n)
    registry = ToolRegistry(debug=config.logging.debug, secrets=[config.n8n.api_key])
    registry.on_close(n8n.aclose)

    async def list_workflows(random_string: str | None = None) -> list[dict[str, Any]]:
        return await n8n.list_workflows()

    async def get_workflow(id: str) -> dict[str, Any]:  # noqa: A002
        return await n8n.get_workflow(id)

    async def activate_workflow(id: str) -> dict[str, Any]:  # noqa: A002
        return await n8n.activate_workflow(id)

    async def deactivate_workflow(id: str) -> dict[str, Any]:  # noqa: A002
        return await n8n.deactivate_workflow(id)

    async def execute_workflow(id: str, data: dict[str, Any] | None = None) -> dict[str, Any]:  # noqa: A002
        return await n8n.execute_workflow(id, data)

    async def list_workflow_executions(id: str) -> list[dict[str, Any]]:  # noqa: A002
        return await n8n.list_workflow_executions(id)

    async def get_execution(id: str) -> dict[str, Any]:  # noqa: A002
        return await n8n.get_execution(id)

    registry.add(
        "mcp_list_workflows",
        "List all workflows in the n8n instance",
        list_workflows,
        {"random_string": ParameterSpec("string", "Dummy parameter for no-parameter tools")},
    )
    registry.add(
        "mcp_get_workflow",
        "Get details of a specific workflow by ID",
        get_workflow,
        _id_param("workflow to retrieve"),
    )
    registry.add(
        "mcp_activate_workflow",
        "Activate a specific workflow by ID",
        activate_workflow,
        _id_param("workflow to activate"),
    )
    registry.add(
        "mcp_deactivate_workflow",
        "Deactivate a specific workflow by ID",
        deactivate_workflow,
        _id_param("workflow to deactivate"),
    )
    registry.add(
        "mcp_execute_workflow",
        "Execute a specific workflow with optional input data",
        execute_workflow,
        {
            **_id_param("workflow to execute"),
            "data": ParameterSpec("object", "Optional input data for the workflow execution"),
        },
    )
    registry.add(
        "mcp_list_workflow_executions",
        "List all executions for a specific workflow",
        list_workflow_executions,
        _id_param("workflow to list executions for"),
    )
    registry.add(
        "mcp_get_execution",
        "Get details of a specific execution by ID",
        get_execution,
        _id_param("execution to retrieve"),
    )
    return registry
