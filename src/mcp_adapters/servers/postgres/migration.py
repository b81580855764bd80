"""Table export, import and cross-database copy.

Inserts on PostgreSQL bind every value as text and cast it to the
column's declared type, so CSV input and rows read from another
database land without client-side type mapping.
"""

from __future__ import annotations

import asyncio
import csv
import io
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from mcp_adapters.adapters.postgres import DatabaseConnection
from mcp_adapters.core.errors import RemoteError, ValidationError
from mcp_adapters.servers.postgres.schema import quote_ident

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

FORMATS = ("json", "csv")


def _select_sql(table_name: str, where: str | None) -> str:
    sql = f"SELECT * FROM {quote_ident(table_name)}"
    if where:
        sql += f" WHERE {where}"
    return sql


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "\\x" + bytes(value).hex()
    return str(value)


async def _column_types(db: DatabaseConnection, table_name: str) -> dict[str, str]:
    rows = await db.query(
        "SELECT a.attname AS name, format_type(a.atttypid, a.atttypmod) AS type "
        "FROM pg_attribute a WHERE a.attrelid = to_regclass($1) "
        "AND a.attnum > 0 AND NOT a.attisdropped",
        [quote_ident(table_name)],
    )
    if not rows:
        msg = f"Table {table_name!r} does not exist"
        raise ValidationError(msg)
    return {r["name"]: r["type"] for r in rows}


async def insert_rows(db: DatabaseConnection, table_name: str, rows: Sequence[dict[str, Any]]) -> int:
    """Insert ``rows`` one statement per row; caller owns the transaction."""
    table = quote_ident(table_name)
    types = await _column_types(db, table_name) if db.dialect == "postgresql" else None

    for row in rows:
        columns = list(row)
        placeholders = []
        params: dict[str, Any] = {}
        for i, column in enumerate(columns):
            quote_ident(column)
            key = f"c{i}"
            if types is not None:
                if column not in types:
                    msg = f"Column {column!r} does not exist in {table_name}"
                    raise ValidationError(msg)
                placeholders.append(f"CAST(CAST(:{key} AS text) AS {types[column]})")
                params[key] = _as_text(row[column])
            else:
                placeholders.append(f":{key}")
                params[key] = row[column]
        names = ", ".join(quote_ident(c) for c in columns)
        await db.execute(f"INSERT INTO {table} ({names}) VALUES ({', '.join(placeholders)})", params)
    return len(rows)


async def _truncate(db: DatabaseConnection, table_name: str) -> None:
    table = quote_ident(table_name)
    if db.dialect == "postgresql":
        await db.execute(f"TRUNCATE TABLE {table}")
    else:
        await db.execute(f"DELETE FROM {table}")


def _render(rows: list[dict[str, Any]], fmt: str) -> str:
    if fmt == "json":
        return json.dumps(rows, indent=2, default=str)
    buffer = io.StringIO()
    if rows:
        writer = csv.DictWriter(buffer, fieldnames=list(rows[0]))
        writer.writeheader()
        for row in rows:
            writer.writerow({k: _as_text(v) if isinstance(v, (dict, list, bool)) else v for k, v in row.items()})
    return buffer.getvalue()


def _parse(raw: str, fmt: str, delimiter: str) -> list[dict[str, Any]]:
    if fmt == "json":
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            msg = f"Input file is not valid JSON: {e}"
            raise ValidationError(msg) from e
        if not isinstance(data, list) or not all(isinstance(r, dict) for r in data):
            msg = "JSON input must be an array of objects"
            raise ValidationError(msg)
        return data
    reader = csv.DictReader(io.StringIO(raw), delimiter=delimiter)
    return [dict(row) for row in reader]


async def export_table_data(
    db: DatabaseConnection,
    table_name: str,
    output_path: str,
    connection_string: str | None = None,
    where: str | None = None,
    limit: int | None = None,
    format: str = "json",  # noqa: A002
) -> dict[str, Any]:
    sql = _select_sql(table_name, where)
    params: dict[str, Any] = {}
    if limit is not None:
        sql += " LIMIT :limit"
        params["limit"] = limit

    async with db.session(connection_string):
        rows = await db.query(sql, params)

    target = Path(output_path)
    try:
        await asyncio.to_thread(target.parent.mkdir, parents=True, exist_ok=True)
        await asyncio.to_thread(target.write_text, _render(rows, format), encoding="utf-8")
    except OSError as e:
        msg = f"Failed to write {output_path}: {e}"
        raise RemoteError(msg) from e

    logger.info("Exported %d rows from %s to %s", len(rows), table_name, output_path)
    return {
        "message": f"Exported {len(rows)} rows from {table_name} to {output_path}",
        "rowCount": len(rows),
        "outputPath": str(target),
        "format": format,
    }


async def import_table_data(
    db: DatabaseConnection,
    table_name: str,
    input_path: str,
    connection_string: str | None = None,
    truncate_first: bool = False,
    format: str = "json",  # noqa: A002
    delimiter: str = ",",
) -> dict[str, Any]:
    if len(delimiter) != 1:
        msg = "Delimiter must be a single character"
        raise ValidationError(msg)
    quote_ident(table_name)
    try:
        raw = await asyncio.to_thread(Path(input_path).read_text, encoding="utf-8")
    except OSError as e:
        msg = f"Failed to read {input_path}: {e}"
        raise ValidationError(msg) from e
    rows = _parse(raw, format, delimiter)

    async with db.session(connection_string):
        async with db.transaction():
            if truncate_first:
                await _truncate(db, table_name)
            count = await insert_rows(db, table_name, rows) if rows else 0

    logger.info("Imported %d rows into %s from %s", count, table_name, input_path)
    return {
        "message": f"Imported {count} rows into {table_name}",
        "rowCount": count,
        "truncated": truncate_first,
    }


async def copy_between_databases(
    db: DatabaseConnection,
    source_connection_string: str,
    target_connection_string: str,
    table_name: str,
    where: str | None = None,
    truncate_target: bool = False,
) -> dict[str, Any]:
    """Copy rows of one table from the source to the target database.

    The target side runs on its own connection drawn from the same pool
    registry, inside a single transaction.
    """
    async with db.session(source_connection_string):
        rows = await db.query(_select_sql(table_name, where))

    target = DatabaseConnection(db.store, db.pools, statement_timeout_ms=db.statement_timeout_ms)
    async with target.session(target_connection_string):
        async with target.transaction():
            if truncate_target:
                await _truncate(target, table_name)
            count = await insert_rows(target, table_name, rows) if rows else 0

    logger.info("Copied %d rows of %s between databases", count, table_name)
    return {
        "message": f"Copied {count} rows of {table_name}",
        "rowCount": count,
        "truncatedTarget": truncate_target,
    }
