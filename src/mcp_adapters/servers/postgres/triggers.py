"""Trigger tools. PostgreSQL-only."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from mcp_adapters.core.errors import ValidationError
from mcp_adapters.servers.postgres.functions import verbatim
from mcp_adapters.servers.postgres.schema import qualify, quote_ident, quote_name

if TYPE_CHECKING:
    from mcp_adapters.adapters.postgres import DatabaseConnection

logger = logging.getLogger(__name__)

TIMINGS = ("BEFORE", "AFTER", "INSTEAD OF")
EVENTS = ("INSERT", "UPDATE", "DELETE", "TRUNCATE")
FOR_EACH = ("ROW", "STATEMENT")


async def get_triggers(
    db: DatabaseConnection,
    connection_string: str | None = None,
    table_name: str | None = None,
    schema: str = "public",
) -> dict[str, Any]:
    sql = (
        "SELECT t.tgname AS name, c.relname AS table, "
        "fn.nspname || '.' || p.proname AS function, "
        "t.tgenabled <> 'D' AS enabled, "
        "pg_get_triggerdef(t.oid) AS definition "
        "FROM pg_trigger t "
        "JOIN pg_class c ON t.tgrelid = c.oid "
        "JOIN pg_namespace n ON c.relnamespace = n.oid "
        "JOIN pg_proc p ON t.tgfoid = p.oid "
        "JOIN pg_namespace fn ON p.pronamespace = fn.oid "
        "WHERE NOT t.tgisinternal AND n.nspname = $1"
    )
    params = [schema]
    if table_name:
        sql += " AND c.relname = $2"
        params.append(table_name)
    sql += " ORDER BY c.relname, t.tgname"

    async with db.session(connection_string):
        triggers = await db.query(sql, params)
    message = (
        f"Triggers on table {schema}.{table_name}"
        if table_name
        else f"Found {len(triggers)} triggers in schema {schema}"
    )
    return {"message": message, "triggers": triggers}


async def create_trigger(
    db: DatabaseConnection,
    trigger_name: str,
    table_name: str,
    function_name: str,
    events: list[Any],
    connection_string: str | None = None,
    schema: str = "public",
    timing: str = "AFTER",
    when: str | None = None,
    for_each: str = "ROW",
    replace: bool = False,
) -> dict[str, Any]:
    """Create a trigger that runs ``function_name()``.

    ``function_name`` may be schema-qualified; ``when`` is a SQL condition
    passed through as written.
    """
    if timing not in TIMINGS:
        msg = f"Timing must be one of: {', '.join(TIMINGS)}"
        raise ValidationError(msg)
    if for_each not in FOR_EACH:
        msg = f"forEach must be one of: {', '.join(FOR_EACH)}"
        raise ValidationError(msg)
    if not events or not all(e in EVENTS for e in events):
        msg = f"Events must be a non-empty list of: {', '.join(EVENTS)}"
        raise ValidationError(msg)

    verb = "CREATE OR REPLACE" if replace else "CREATE"
    sql = (
        f"{verb} TRIGGER {quote_name(trigger_name)} {timing} "
        f"{' OR '.join(dict.fromkeys(events))} ON {qualify(schema, table_name)} "
        f"FOR EACH {for_each}"
    )
    if when:
        sql += f" WHEN ({when})"
    sql += f" EXECUTE FUNCTION {quote_ident(function_name)}()"

    async with db.session(connection_string):
        await db.execute(verbatim(sql))
    logger.info("Created trigger %s on %s.%s", trigger_name, schema, table_name)
    return {
        "message": f"Trigger {trigger_name} created successfully on {schema}.{table_name}",
        "trigger": trigger_name,
        "table": table_name,
        "schema": schema,
        "sql": sql,
    }


async def drop_trigger(
    db: DatabaseConnection,
    trigger_name: str,
    table_name: str,
    connection_string: str | None = None,
    schema: str = "public",
    if_exists: bool = False,
    cascade: bool = False,
) -> dict[str, Any]:
    exists = "IF EXISTS " if if_exists else ""
    sql = f"DROP TRIGGER {exists}{quote_name(trigger_name)} ON {qualify(schema, table_name)}"
    if cascade:
        sql += " CASCADE"
    async with db.session(connection_string):
        await db.execute(sql)
    return {
        "message": f"Trigger {trigger_name} dropped successfully from {schema}.{table_name}",
        "trigger": trigger_name,
        "table": table_name,
        "schema": schema,
    }


async def set_trigger_state(
    db: DatabaseConnection,
    trigger_name: str,
    table_name: str,
    enable: bool,
    connection_string: str | None = None,
    schema: str = "public",
) -> dict[str, Any]:
    action = "ENABLE" if enable else "DISABLE"
    sql = f"ALTER TABLE {qualify(schema, table_name)} {action} TRIGGER {quote_name(trigger_name)}"
    async with db.session(connection_string):
        await db.execute(sql)
    state = "enabled" if enable else "disabled"
    return {
        "message": f"Trigger {trigger_name} {state} on {schema}.{table_name}",
        "trigger": trigger_name,
        "table": table_name,
        "enabled": enable,
    }
