"""Named connection management tools.

Changes live in the process only; every response says so.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from mcp_adapters.core.secrets import mask_url_password

if TYPE_CHECKING:
    from mcp_adapters.adapters.connections import ConnectionStore

NOT_PERSISTED = (
    "Change applies to this server process only. "
    "To make it permanent, update PG_DB_MAP in your MCP client configuration."
)


async def list_connections(store: ConnectionStore) -> dict[str, Any]:
    return {"message": "Database connections", **store.describe()}


async def add_connection(store: ConnectionStore, name: str, connection_string: str) -> dict[str, Any]:
    store.add(name, connection_string)
    return {
        "message": f'Added database connection "{name.strip().lower()}"',
        "name": name.strip().lower(),
        "connectionString": mask_url_password(connection_string.strip()),
        "default": store.default,
        "durable": store.durable,
        "note": NOT_PERSISTED,
    }


async def remove_connection(store: ConnectionStore, name: str) -> dict[str, Any]:
    store.remove(name)
    return {
        "message": f'Removed database connection "{name.strip().lower()}"',
        "name": name.strip().lower(),
        "default": store.default,
        "durable": store.durable,
        "note": NOT_PERSISTED,
    }


async def set_default_connection(store: ConnectionStore, name: str) -> dict[str, Any]:
    store.set_default(name)
    return {
        "message": f'Set "{store.default}" as the default database connection',
        "name": store.default,
        "durable": store.durable,
        "note": NOT_PERSISTED,
    }
