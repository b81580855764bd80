"""Read-only query tool."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from mcp_adapters.core.errors import ValidationError

if TYPE_CHECKING:
    from mcp_adapters.adapters.postgres import DatabaseConnection


def ensure_select(query: str) -> None:
    """Allow only statements that start with ``select``.

    This is a prefix check, not a parser: a leading comment or a second
    statement after a semicolon is not detected.
    """
    if not query.strip().lower().startswith("select"):
        msg = "Only SELECT queries are allowed for security reasons"
        raise ValidationError(msg)


async def execute_query(
    db: DatabaseConnection,
    query: str,
    connection_string: str | None = None,
    params: list[Any] | None = None,
) -> dict[str, Any]:
    ensure_select(query)
    async with db.session(connection_string):
        rows = await db.query(query, params or None)
    return {
        "message": f"Query executed successfully. Returned {len(rows)} rows.",
        "rows": rows,
    }
