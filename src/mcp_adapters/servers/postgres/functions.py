"""Function and row-level security tools.

Parameter lists, return types, function bodies and policy expressions
are SQL and pass through as written; names are validated and quoted.
These statements are PostgreSQL-only.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from mcp_adapters.core.errors import ValidationError
from mcp_adapters.servers.postgres.schema import qualify, quote_name

if TYPE_CHECKING:
    from mcp_adapters.adapters.postgres import DatabaseConnection

logger = logging.getLogger(__name__)

LANGUAGES = ("sql", "plpgsql", "plpython3u")
VOLATILITIES = ("VOLATILE", "STABLE", "IMMUTABLE")
SECURITIES = ("INVOKER", "DEFINER")
POLICY_COMMANDS = ("ALL", "SELECT", "INSERT", "UPDATE", "DELETE")

_BODY_QUOTE = "$function$"
_ROLE_KEYWORDS = ("public", "current_role", "current_user", "session_user")


def verbatim(sql: str) -> str:
    """Escape colons so SQLAlchemy does not read ``:name`` as a bind parameter."""
    return sql.replace(":", "\\:")


def _choice(value: str, allowed: tuple[str, ...], what: str) -> str:
    if value not in allowed:
        msg = f"{what} must be one of: {', '.join(allowed)}"
        raise ValidationError(msg)
    return value


def _role(role: str) -> str:
    if role.lower() in _ROLE_KEYWORDS:
        return role.upper()
    return quote_name(role)


# ── Functions ──


async def get_functions(
    db: DatabaseConnection,
    connection_string: str | None = None,
    function_name: str | None = None,
    schema: str = "public",
) -> dict[str, Any]:
    sql = (
        "SELECT p.proname AS name, l.lanname AS language, "
        'pg_get_function_result(p.oid) AS "returnType", '
        "pg_get_function_arguments(p.oid) AS arguments, "
        "CASE p.provolatile WHEN 'i' THEN 'IMMUTABLE' WHEN 's' THEN 'STABLE' "
        "ELSE 'VOLATILE' END AS volatility, "
        "pg_get_functiondef(p.oid) AS definition, r.rolname AS owner "
        "FROM pg_proc p "
        "JOIN pg_namespace n ON p.pronamespace = n.oid "
        "JOIN pg_language l ON p.prolang = l.oid "
        "JOIN pg_roles r ON p.proowner = r.oid "
        "WHERE n.nspname = $1 AND p.prokind = 'f'"
    )
    params = [schema]
    if function_name:
        sql += " AND p.proname = $2"
        params.append(function_name)
    sql += " ORDER BY p.proname"

    async with db.session(connection_string):
        functions = await db.query(sql, params)
    message = (
        f"Function information for {function_name}"
        if function_name
        else f"Found {len(functions)} functions in schema {schema}"
    )
    return {"message": message, "functions": functions}


async def create_function(
    db: DatabaseConnection,
    function_name: str,
    return_type: str,
    function_body: str,
    connection_string: str | None = None,
    parameters: str = "",
    language: str = "plpgsql",
    volatility: str = "VOLATILE",
    schema: str = "public",
    security: str = "INVOKER",
    replace: bool = False,
) -> dict[str, Any]:
    """Create (or replace) a function; the body is dollar-quoted as ``$function$``."""
    name = qualify(schema, function_name)
    _choice(language, LANGUAGES, "Language")
    _choice(volatility, VOLATILITIES, "Volatility")
    _choice(security, SECURITIES, "Security")
    if _BODY_QUOTE in function_body:
        msg = f"Function body must not contain {_BODY_QUOTE}"
        raise ValidationError(msg)

    verb = "CREATE OR REPLACE" if replace else "CREATE"
    sql = (
        f"{verb} FUNCTION {name}({parameters}) RETURNS {return_type} "
        f"LANGUAGE {language} {volatility} SECURITY {security} "
        f"AS {_BODY_QUOTE}\n{function_body}\n{_BODY_QUOTE}"
    )
    async with db.session(connection_string):
        await db.execute(verbatim(sql))
    logger.info("Created function %s", name)
    return {
        "message": f"Function {function_name} created successfully",
        "name": function_name,
        "schema": schema,
        "returnType": return_type,
        "language": language,
        "volatility": volatility,
        "security": security,
    }


async def drop_function(
    db: DatabaseConnection,
    function_name: str,
    connection_string: str | None = None,
    parameters: str | None = None,
    schema: str = "public",
    if_exists: bool = False,
    cascade: bool = False,
) -> dict[str, Any]:
    """Drop a function; ``parameters`` selects one overload."""
    sql = "DROP FUNCTION "
    if if_exists:
        sql += "IF EXISTS "
    sql += qualify(schema, function_name)
    if parameters is not None:
        sql += f"({parameters})"
    if cascade:
        sql += " CASCADE"

    async with db.session(connection_string):
        await db.execute(verbatim(sql))
    logger.info("Dropped function %s.%s", schema, function_name)
    return {
        "message": f"Function {function_name} dropped successfully",
        "name": function_name,
        "schema": schema,
        "sql": sql,
    }


# ── Row-level security ──


async def _set_rls(
    db: DatabaseConnection, table_name: str, connection_string: str | None, schema: str, enable: bool
) -> dict[str, Any]:
    action = "ENABLE" if enable else "DISABLE"
    async with db.session(connection_string):
        await db.execute(f"ALTER TABLE {qualify(schema, table_name)} {action} ROW LEVEL SECURITY")
    state = "enabled" if enable else "disabled"
    return {
        "message": f"Row-Level Security {state} on {schema}.{table_name}",
        "table": table_name,
        "schema": schema,
    }


async def enable_rls(
    db: DatabaseConnection,
    table_name: str,
    connection_string: str | None = None,
    schema: str = "public",
) -> dict[str, Any]:
    return await _set_rls(db, table_name, connection_string, schema, enable=True)


async def disable_rls(
    db: DatabaseConnection,
    table_name: str,
    connection_string: str | None = None,
    schema: str = "public",
) -> dict[str, Any]:
    return await _set_rls(db, table_name, connection_string, schema, enable=False)


async def create_rls_policy(
    db: DatabaseConnection,
    table_name: str,
    policy_name: str,
    using: str,
    connection_string: str | None = None,
    check: str | None = None,
    schema: str = "public",
    command: str = "ALL",
    role: str | None = None,
    replace: bool = False,
) -> dict[str, Any]:
    """Create a policy. ``replace`` drops an existing policy of the same name first.

    PostgreSQL has no ``CREATE OR REPLACE POLICY``, so the drop and the
    create share one transaction.
    """
    table = qualify(schema, table_name)
    policy = quote_name(policy_name)
    _choice(command, POLICY_COMMANDS, "Command")

    sql = f"CREATE POLICY {policy} ON {table} FOR {command}"
    if role:
        sql += f" TO {_role(role)}"
    sql += f" USING ({using})"
    if check:
        sql += f" WITH CHECK ({check})"

    async with db.session(connection_string):
        async with db.transaction():
            if replace:
                await db.execute(f"DROP POLICY IF EXISTS {policy} ON {table}")
            await db.execute(verbatim(sql))
    logger.info("Created policy %s on %s", policy_name, table)
    return {
        "message": f"Policy {policy_name} created successfully on {schema}.{table_name}",
        "table": table_name,
        "schema": schema,
        "policy": policy_name,
        "command": command,
    }


async def drop_rls_policy(
    db: DatabaseConnection,
    table_name: str,
    policy_name: str,
    connection_string: str | None = None,
    schema: str = "public",
    if_exists: bool = False,
) -> dict[str, Any]:
    exists = "IF EXISTS " if if_exists else ""
    sql = f"DROP POLICY {exists}{quote_name(policy_name)} ON {qualify(schema, table_name)}"
    async with db.session(connection_string):
        await db.execute(sql)
    return {
        "message": f"Policy {policy_name} dropped successfully from {schema}.{table_name}",
        "table": table_name,
        "schema": schema,
        "policy": policy_name,
    }


async def get_rls_policies(
    db: DatabaseConnection,
    connection_string: str | None = None,
    table_name: str | None = None,
    schema: str = "public",
) -> dict[str, Any]:
    sql = (
        "SELECT schemaname, tablename, policyname, roles, cmd, "
        'qual AS "using", with_check AS "check" '
        "FROM pg_policies WHERE schemaname = $1"
    )
    params = [schema]
    if table_name:
        sql += " AND tablename = $2"
        params.append(table_name)
    sql += " ORDER BY tablename, policyname"

    async with db.session(connection_string):
        policies = await db.query(sql, params)
    message = (
        f"Policies for table {schema}.{table_name}"
        if table_name
        else f"All policies in schema {schema}"
    )
    return {"message": message, "policies": policies}
