"""PostgreSQL tools.

Every database tool takes ``connectionString``: a URL, the name of a
configured connection, or empty for the default connection.
"""

from __future__ import annotations

import functools
import re
from typing import TYPE_CHECKING, Any

from mcp_adapters.adapters.connections import ConnectionStore
from mcp_adapters.adapters.postgres import DatabaseConnection, PoolRegistry
from mcp_adapters.servers.postgres import (
    analyze,
    connections,
    debug,
    functions,
    migration,
    monitor,
    query,
    schema,
    triggers,
)
from mcp_adapters.tools.base import ParameterSpec
from mcp_adapters.tools.registry import ToolRegistry

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from mcp_adapters.config.schema import AdapterConfig

_CAMEL = re.compile(r"(?<!^)(?=[A-Z])")

CONNECTION = ParameterSpec(
    "string",
    "PostgreSQL connection string or connection name (empty for the default connection)",
)


def _snake(name: str) -> str:
    return _CAMEL.sub("_", name).lower()


def build_registry(
    config: AdapterConfig,
    *,
    store: ConnectionStore | None = None,
    pools: PoolRegistry | None = None,
) -> ToolRegistry:
    """Register the database tools over one store and pool registry.

    Tool calls may run concurrently, so every call leases its own
    :class:`DatabaseConnection` from the shared pools.
    """
    pg = config.postgres
    store = store or ConnectionStore.from_config(pg)
    pools = pools or PoolRegistry(pg)
    registry = ToolRegistry(debug=config.logging.debug, secrets=list(pg.connections.values()))
    registry.on_close(pools.dispose_all)

    def leased(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        @functools.wraps(func)
        async def call(**kwargs: Any) -> Any:
            db = DatabaseConnection(store, pools, statement_timeout_ms=pg.statement_timeout_ms)
            try:
                return await func(db, **kwargs)
            finally:
                await db.disconnect()

        return call

    def add(
        name: str,
        description: str,
        func: Callable[..., Awaitable[Any]],
        parameters: dict[str, ParameterSpec],
    ) -> None:
        registry.add(
            name,
            description,
            func,
            parameters,
            arg_names={p: _snake(p) for p in parameters},
        )

    # ── Query & schema ──

    add(
        "execute_query",
        "Execute a read-only SELECT query against the database",
        leased(query.execute_query),
        {
            "connectionString": CONNECTION,
            "query": ParameterSpec("string", "SELECT statement to run", required=True),
            "params": ParameterSpec(
                "array", "Positional parameters for $1, $2, ... placeholders", items={}
            ),
        },
    )
    add(
        "get_schema_info",
        "Get schema information for the database or a specific table",
        leased(schema.get_schema_info),
        {
            "connectionString": CONNECTION,
            "tableName": ParameterSpec("string", "Table to describe (optional)"),
        },
    )
    add(
        "create_table",
        "Create a new table in the database",
        leased(schema.create_table),
        {
            "connectionString": CONNECTION,
            "tableName": ParameterSpec("string", "Name of the table to create", required=True),
            "columns": ParameterSpec(
                "array",
                "Column definitions",
                required=True,
                items={
                    "type": "object",
                    "properties": {
                        "name": {"type": "string"},
                        "type": {"type": "string", "description": "PostgreSQL data type"},
                        "nullable": {"type": "boolean"},
                        "default": {"type": "string", "description": "Default value expression"},
                    },
                    "required": ["name", "type"],
                },
            ),
        },
    )
    add(
        "alter_table",
        "Alter an existing table (add, alter or drop columns)",
        leased(schema.alter_table),
        {
            "connectionString": CONNECTION,
            "tableName": ParameterSpec("string", "Name of the table to alter", required=True),
            "operations": ParameterSpec(
                "array",
                "Column operations, applied in one transaction",
                required=True,
                items={
                    "type": "object",
                    "properties": {
                        "type": {"type": "string", "enum": list(schema.ALTER_OPERATIONS)},
                        "columnName": {"type": "string"},
                        "dataType": {"type": "string"},
                        "nullable": {"type": "boolean"},
                        "default": {"type": "string"},
                    },
                    "required": ["type", "columnName"],
                },
            ),
        },
    )

    # ── Analysis & monitoring ──

    add(
        "analyze_database",
        "Analyze PostgreSQL database configuration and performance",
        leased(analyze.analyze_database),
        {
            "connectionString": CONNECTION,
            "analysisType": ParameterSpec(
                "string",
                "Type of analysis to perform",
                enum=analyze.ANALYSIS_TYPES,
                default="configuration",
            ),
        },
    )
    add(
        "debug_database",
        "Debug common PostgreSQL issues",
        leased(debug.debug_database),
        {
            "connectionString": CONNECTION,
            "issue": ParameterSpec(
                "string", "Type of issue to debug", required=True, enum=debug.ISSUE_TYPES
            ),
            "logLevel": ParameterSpec(
                "string", "Logging detail level", enum=debug.LOG_LEVELS, default="info"
            ),
        },
    )
    add(
        "monitor_database",
        "Get real-time monitoring information for a PostgreSQL database",
        leased(monitor.monitor_database),
        {
            "connectionString": CONNECTION,
            "includeTables": ParameterSpec("boolean", "Include table metrics", default=False),
            "includeQueries": ParameterSpec("boolean", "Include active queries", default=False),
            "includeLocks": ParameterSpec("boolean", "Include lock information", default=False),
            "includeReplication": ParameterSpec(
                "boolean", "Include replication information", default=False
            ),
            "alertThresholds": ParameterSpec(
                "object",
                "Alert thresholds: connectionPercentage, longRunningQuerySeconds, "
                "cacheHitRatio, deadTuplesPercentage, vacuumAge (days)",
            ),
        },
    )

    # ── Migration ──

    add(
        "export_table_data",
        "Export table data to a JSON or CSV file",
        leased(migration.export_table_data),
        {
            "connectionString": CONNECTION,
            "tableName": ParameterSpec("string", "Table to export", required=True),
            "outputPath": ParameterSpec("string", "File to write", required=True),
            "where": ParameterSpec("string", "Optional WHERE clause (without the keyword)"),
            "limit": ParameterSpec("integer", "Maximum number of rows"),
            "format": ParameterSpec("string", "Output format", enum=migration.FORMATS, default="json"),
        },
    )
    add(
        "import_table_data",
        "Import data from a JSON or CSV file into a table",
        leased(migration.import_table_data),
        {
            "connectionString": CONNECTION,
            "tableName": ParameterSpec("string", "Table to import into", required=True),
            "inputPath": ParameterSpec("string", "File to read", required=True),
            "truncateFirst": ParameterSpec(
                "boolean", "Empty the table before importing", default=False
            ),
            "format": ParameterSpec("string", "Input format", enum=migration.FORMATS, default="json"),
            "delimiter": ParameterSpec("string", "CSV delimiter", default=","),
        },
    )
    add(
        "copy_between_databases",
        "Copy table data between two databases",
        leased(migration.copy_between_databases),
        {
            "sourceConnectionString": ParameterSpec(
                "string", "Source connection string or name", required=True
            ),
            "targetConnectionString": ParameterSpec(
                "string", "Target connection string or name", required=True
            ),
            "tableName": ParameterSpec("string", "Table to copy", required=True),
            "where": ParameterSpec("string", "Optional WHERE clause for the source rows"),
            "truncateTarget": ParameterSpec(
                "boolean", "Empty the target table first", default=False
            ),
        },
    )

    # ── Functions & row-level security ──

    schema_param = ParameterSpec("string", "Schema name", default="public")

    add(
        "get_functions",
        "Get information about functions in a schema",
        leased(functions.get_functions),
        {
            "connectionString": CONNECTION,
            "functionName": ParameterSpec("string", "Only this function (optional)"),
            "schema": schema_param,
        },
    )
    add(
        "create_function",
        "Create or replace a database function",
        leased(functions.create_function),
        {
            "connectionString": CONNECTION,
            "functionName": ParameterSpec("string", "Name of the function", required=True),
            "parameters": ParameterSpec(
                "string", "Parameter list, e.g. 'a integer, b text'", default=""
            ),
            "returnType": ParameterSpec("string", "Return type", required=True),
            "functionBody": ParameterSpec("string", "Function body", required=True),
            "language": ParameterSpec(
                "string", "Function language", enum=functions.LANGUAGES, default="plpgsql"
            ),
            "volatility": ParameterSpec(
                "string", "Volatility category", enum=functions.VOLATILITIES, default="VOLATILE"
            ),
            "schema": schema_param,
            "security": ParameterSpec(
                "string", "Security context", enum=functions.SECURITIES, default="INVOKER"
            ),
            "replace": ParameterSpec("boolean", "Replace an existing function", default=False),
        },
    )
    add(
        "drop_function",
        "Drop a database function",
        leased(functions.drop_function),
        {
            "connectionString": CONNECTION,
            "functionName": ParameterSpec("string", "Name of the function", required=True),
            "parameters": ParameterSpec(
                "string", "Parameter types, to pick one overload (optional)"
            ),
            "schema": schema_param,
            "ifExists": ParameterSpec("boolean", "Do not fail if missing", default=False),
            "cascade": ParameterSpec("boolean", "Drop dependent objects", default=False),
        },
    )
    table_in_schema = {
        "connectionString": CONNECTION,
        "tableName": ParameterSpec("string", "Table name", required=True),
        "schema": schema_param,
    }
    add(
        "enable_rls",
        "Enable Row-Level Security on a table",
        leased(functions.enable_rls),
        table_in_schema,
    )
    add(
        "disable_rls",
        "Disable Row-Level Security on a table",
        leased(functions.disable_rls),
        table_in_schema,
    )
    add(
        "create_rls_policy",
        "Create a Row-Level Security policy",
        leased(functions.create_rls_policy),
        {
            "connectionString": CONNECTION,
            "tableName": ParameterSpec("string", "Table name", required=True),
            "policyName": ParameterSpec("string", "Policy name", required=True),
            "using": ParameterSpec("string", "USING expression", required=True),
            "check": ParameterSpec("string", "WITH CHECK expression (optional)"),
            "schema": schema_param,
            "command": ParameterSpec(
                "string", "Command the policy applies to", enum=functions.POLICY_COMMANDS, default="ALL"
            ),
            "role": ParameterSpec("string", "Role the policy applies to (optional)"),
            "replace": ParameterSpec("boolean", "Replace an existing policy", default=False),
        },
    )
    add(
        "drop_rls_policy",
        "Drop a Row-Level Security policy",
        leased(functions.drop_rls_policy),
        {
            "connectionString": CONNECTION,
            "tableName": ParameterSpec("string", "Table name", required=True),
            "policyName": ParameterSpec("string", "Policy name", required=True),
            "schema": schema_param,
            "ifExists": ParameterSpec("boolean", "Do not fail if missing", default=False),
        },
    )
    add(
        "get_rls_policies",
        "Get Row-Level Security policies for a schema or table",
        leased(functions.get_rls_policies),
        {
            "connectionString": CONNECTION,
            "tableName": ParameterSpec("string", "Only this table (optional)"),
            "schema": schema_param,
        },
    )

    # ── Triggers ──

    add(
        "get_triggers",
        "Get information about triggers in a schema or on a table",
        leased(triggers.get_triggers),
        {
            "connectionString": CONNECTION,
            "tableName": ParameterSpec("string", "Only this table (optional)"),
            "schema": schema_param,
        },
    )
    add(
        "create_trigger",
        "Create a trigger that runs a function",
        leased(triggers.create_trigger),
        {
            "connectionString": CONNECTION,
            "triggerName": ParameterSpec("string", "Trigger name", required=True),
            "tableName": ParameterSpec("string", "Table name", required=True),
            "functionName": ParameterSpec("string", "Trigger function to execute", required=True),
            "events": ParameterSpec(
                "array",
                "Events that fire the trigger",
                required=True,
                items={"type": "string", "enum": list(triggers.EVENTS)},
            ),
            "schema": schema_param,
            "timing": ParameterSpec("string", "When the trigger fires", enum=triggers.TIMINGS, default="AFTER"),
            "when": ParameterSpec("string", "WHEN condition (optional)"),
            "forEach": ParameterSpec("string", "Row or statement level", enum=triggers.FOR_EACH, default="ROW"),
            "replace": ParameterSpec("boolean", "Replace an existing trigger", default=False),
        },
    )
    add(
        "drop_trigger",
        "Drop a trigger",
        leased(triggers.drop_trigger),
        {
            "connectionString": CONNECTION,
            "triggerName": ParameterSpec("string", "Trigger name", required=True),
            "tableName": ParameterSpec("string", "Table name", required=True),
            "schema": schema_param,
            "ifExists": ParameterSpec("boolean", "Do not fail if missing", default=False),
            "cascade": ParameterSpec("boolean", "Drop dependent objects", default=False),
        },
    )
    add(
        "set_trigger_state",
        "Enable or disable a trigger",
        leased(triggers.set_trigger_state),
        {
            "connectionString": CONNECTION,
            "triggerName": ParameterSpec("string", "Trigger name", required=True),
            "tableName": ParameterSpec("string", "Table name", required=True),
            "enable": ParameterSpec("boolean", "True to enable, false to disable", required=True),
            "schema": schema_param,
        },
    )

    # ── Named connections ──

    add(
        "list_connections",
        "List configured database connections (passwords masked)",
        functools.partial(connections.list_connections, store),
        {},
    )
    add(
        "add_connection",
        "Add a named database connection for this server process",
        functools.partial(connections.add_connection, store),
        {
            "name": ParameterSpec("string", "Connection name", required=True),
            "connectionString": ParameterSpec(
                "string", "PostgreSQL connection URL", required=True
            ),
        },
    )
    add(
        "remove_connection",
        "Remove a named database connection from this server process",
        functools.partial(connections.remove_connection, store),
        {"name": ParameterSpec("string", "Connection name", required=True)},
    )
    add(
        "set_default_connection",
        "Set the default database connection for this server process",
        functools.partial(connections.set_default_connection, store),
        {"name": ParameterSpec("string", "Connection name", required=True)},
    )
    return registry
