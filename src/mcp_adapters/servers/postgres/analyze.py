"""Configuration, performance and security analysis."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from mcp_adapters.adapters.postgres import DatabaseConnection

ANALYSIS_TYPES = ("configuration", "performance", "security")

_SETTINGS = (
    "max_connections",
    "shared_buffers",
    "work_mem",
    "maintenance_work_mem",
    "effective_cache_size",
)


async def _settings(db: DatabaseConnection) -> dict[str, str]:
    rows = await db.query(
        "SELECT name, setting, unit FROM pg_settings WHERE name IN ($1, $2, $3, $4, $5)",
        list(_SETTINGS),
    )
    return {r["name"]: f"{r['setting']}{r['unit'] or ''}" for r in rows}


async def _metrics(db: DatabaseConnection) -> dict[str, Any]:
    connections = await db.query_value("SELECT count(*) FROM pg_stat_activity")
    active = await db.query_value("SELECT count(*) FROM pg_stat_activity WHERE state = 'active'")
    ratio = await db.query_value(
        "SELECT CASE WHEN COALESCE(blks_hit, 0) + COALESCE(blks_read, 0) = 0 THEN 0 "
        "ELSE COALESCE(blks_hit, 0)::float / (COALESCE(blks_hit, 0) + COALESCE(blks_read, 0)) "
        "END AS ratio FROM pg_stat_database WHERE datname = current_database()"
    )
    sizes = await db.query(
        "SELECT tablename, pg_size_pretty(pg_table_size(quote_ident(schemaname) || '.' "
        "|| quote_ident(tablename))) AS size FROM pg_tables WHERE schemaname = 'public'"
    )
    return {
        "connections": int(connections or 0),
        "activeQueries": int(active or 0),
        "cacheHitRatio": round(float(ratio or 0), 2),
        "tableSizes": {r["tablename"]: r["size"] for r in sizes},
    }


async def _recommendations(
    db: DatabaseConnection,
    analysis_type: str,
    settings: dict[str, str],
    metrics: dict[str, Any],
) -> list[str]:
    recommendations = []
    if analysis_type in ("configuration", "performance"):
        if metrics["cacheHitRatio"] < 0.99:
            recommendations.append("Consider increasing shared_buffers to improve cache hit ratio")
        max_connections = int(settings.get("max_connections", "0") or 0)
        if max_connections and metrics["connections"] > max_connections * 0.8:
            recommendations.append(
                "High connection usage detected. Consider increasing max_connections "
                "or implementing connection pooling"
            )

    if analysis_type == "security":
        superusers = await db.query_value("SELECT count(*) FROM pg_user WHERE usesuper = true")
        if int(superusers or 0) > 1:
            recommendations.append(
                "Multiple superuser accounts detected. Review and reduce if possible"
            )
        ssl = await db.query_value("SHOW ssl")
        if ssl != "on":
            recommendations.append(
                "SSL is not enabled. Consider enabling SSL for secure connections"
            )
    return recommendations


async def analyze_database(
    db: DatabaseConnection,
    connection_string: str | None = None,
    analysis_type: str = "configuration",
) -> dict[str, Any]:
    async with db.session(connection_string):
        version = await db.query_value("SELECT version()")
        settings = await _settings(db)
        metrics = await _metrics(db)
        recommendations = await _recommendations(db, analysis_type, settings, metrics)
    return {
        "analysisType": analysis_type,
        "version": version,
        "settings": settings,
        "metrics": metrics,
        "recommendations": recommendations,
    }
