"""Schema inspection and DDL tools.

Identifiers and type names cannot be bound as parameters, so they are
validated against a strict pattern and double-quoted before being
interpolated. Column defaults are SQL expressions and are passed through
as written.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

from mcp_adapters.core.errors import ValidationError

if TYPE_CHECKING:
    from mcp_adapters.adapters.postgres import DatabaseConnection

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*$")
_TYPE_NAME = re.compile(r"^[A-Za-z][A-Za-z0-9_ ]*(\(\s*\d+\s*(,\s*\d+\s*)?\))?(\[\])*$")

ALTER_OPERATIONS = ("add", "alter", "drop")


def quote_ident(name: str) -> str:
    """Validate and double-quote an identifier; ``schema.table`` is allowed."""
    parts = name.strip().split(".")
    if len(parts) > 2 or not all(_IDENTIFIER.match(p) for p in parts):
        msg = f"Invalid identifier: {name!r}"
        raise ValidationError(msg)
    return ".".join(f'"{p}"' for p in parts)


def quote_name(name: str) -> str:
    """Like :func:`quote_ident` but for a single, unqualified name."""
    if "." in name:
        msg = f"Invalid identifier: {name!r}"
        raise ValidationError(msg)
    return quote_ident(name)


def qualify(schema: str, name: str) -> str:
    """Quote ``schema.name``; each part must be a single identifier."""
    return f"{quote_name(schema)}.{quote_name(name)}"


def check_type(data_type: str) -> str:
    data_type = data_type.strip()
    if not _TYPE_NAME.match(data_type):
        msg = f"Invalid data type: {data_type!r}"
        raise ValidationError(msg)
    return data_type


def _split_table(table_name: str) -> tuple[str, str]:
    if "." in table_name:
        schema, table = table_name.split(".", 1)
        return schema, table
    return "public", table_name


def _column_sql(column: dict[str, Any]) -> str:
    name = column.get("name")
    data_type = column.get("type")
    if not isinstance(name, str) or not isinstance(data_type, str):
        msg = "Each column needs a string 'name' and 'type'"
        raise ValidationError(msg)
    sql = f"{quote_ident(name)} {check_type(data_type)}"
    if column.get("nullable") is False:
        sql += " NOT NULL"
    if column.get("default") is not None:
        sql += f" DEFAULT {column['default']}"
    return sql


async def get_schema_info(
    db: DatabaseConnection,
    connection_string: str | None = None,
    table_name: str | None = None,
) -> dict[str, Any]:
    """List public tables, or describe one table's columns, constraints and indexes."""
    async with db.session(connection_string):
        if not table_name:
            tables = await db.query(
                "SELECT table_name, table_type FROM information_schema.tables "
                "WHERE table_schema = 'public' ORDER BY table_name"
            )
            return {
                "message": f"Found {len(tables)} tables",
                "tables": [t["table_name"] for t in tables],
            }

        quote_ident(table_name)
        schema, table = _split_table(table_name)
        columns = await db.query(
            "SELECT column_name, data_type, is_nullable, column_default, "
            "character_maximum_length "
            "FROM information_schema.columns "
            "WHERE table_schema = $1 AND table_name = $2 "
            "ORDER BY ordinal_position",
            [schema, table],
        )
        if not columns:
            msg = f"Table {table_name!r} does not exist"
            raise ValidationError(msg)
        constraints = await db.query(
            "SELECT tc.constraint_name, tc.constraint_type, kcu.column_name "
            "FROM information_schema.table_constraints tc "
            "JOIN information_schema.key_column_usage kcu "
            "ON tc.constraint_name = kcu.constraint_name "
            "AND tc.table_schema = kcu.table_schema "
            "WHERE tc.table_schema = $1 AND tc.table_name = $2",
            [schema, table],
        )
        indexes = await db.query(
            "SELECT indexname, indexdef FROM pg_indexes "
            "WHERE schemaname = $1 AND tablename = $2",
            [schema, table],
        )
    return {
        "message": f"Schema information for table {table_name}",
        "table": table_name,
        "columns": [
            {
                "name": c["column_name"],
                "type": c["data_type"],
                "nullable": c["is_nullable"] == "YES",
                "default": c["column_default"],
                "maxLength": c["character_maximum_length"],
            }
            for c in columns
        ],
        "constraints": constraints,
        "indexes": indexes,
    }


async def create_table(
    db: DatabaseConnection,
    table_name: str,
    columns: list[Any],
    connection_string: str | None = None,
) -> dict[str, Any]:
    if not columns:
        msg = "At least one column is required"
        raise ValidationError(msg)
    if not all(isinstance(c, dict) for c in columns):
        msg = "Each column must be an object"
        raise ValidationError(msg)
    sql = f"CREATE TABLE {quote_ident(table_name)} ({', '.join(_column_sql(c) for c in columns)})"

    async with db.session(connection_string):
        await db.execute(sql)
    logger.info("Created table %s", table_name)
    return {"message": f"Table {table_name} created successfully", "sql": sql}


def _alter_statements(table: str, operation: dict[str, Any]) -> list[str]:
    kind = operation.get("type")
    if kind not in ALTER_OPERATIONS:
        msg = f"Operation type must be one of: {', '.join(ALTER_OPERATIONS)}"
        raise ValidationError(msg)
    column_name = operation.get("columnName")
    if not isinstance(column_name, str):
        msg = "Each operation needs a string 'columnName'"
        raise ValidationError(msg)
    column = quote_ident(column_name)

    if kind == "drop":
        return [f"ALTER TABLE {table} DROP COLUMN {column}"]

    if kind == "add":
        data_type = operation.get("dataType")
        if not isinstance(data_type, str):
            msg = "'dataType' is required when adding a column"
            raise ValidationError(msg)
        return [
            f"ALTER TABLE {table} ADD COLUMN "
            + _column_sql(
                {
                    "name": column_name,
                    "type": data_type,
                    "nullable": operation.get("nullable"),
                    "default": operation.get("default"),
                }
            )
        ]

    statements = []
    if isinstance(operation.get("dataType"), str):
        statements.append(
            f"ALTER TABLE {table} ALTER COLUMN {column} TYPE {check_type(operation['dataType'])}"
        )
    if operation.get("nullable") is True:
        statements.append(f"ALTER TABLE {table} ALTER COLUMN {column} DROP NOT NULL")
    elif operation.get("nullable") is False:
        statements.append(f"ALTER TABLE {table} ALTER COLUMN {column} SET NOT NULL")
    if operation.get("default") is not None:
        statements.append(
            f"ALTER TABLE {table} ALTER COLUMN {column} SET DEFAULT {operation['default']}"
        )
    if not statements:
        msg = f"Nothing to alter for column {column_name!r}"
        raise ValidationError(msg)
    return statements


async def alter_table(
    db: DatabaseConnection,
    table_name: str,
    operations: list[Any],
    connection_string: str | None = None,
) -> dict[str, Any]:
    """Apply add/alter/drop column operations in one transaction."""
    if not operations:
        msg = "At least one operation is required"
        raise ValidationError(msg)
    if not all(isinstance(op, dict) for op in operations):
        msg = "Each operation must be an object"
        raise ValidationError(msg)
    table = quote_ident(table_name)
    statements = [sql for op in operations for sql in _alter_statements(table, op)]

    async with db.session(connection_string):
        async with db.transaction():
            for sql in statements:
                await db.execute(sql)
    logger.info("Altered table %s (%d statements)", table_name, len(statements))
    return {"message": f"Table {table_name} altered successfully", "statements": statements}
