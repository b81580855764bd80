"""Point-in-time monitoring snapshot with threshold alerts."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from mcp_adapters.adapters.postgres import DatabaseConnection

_LAG = re.compile(r"(\d+):(\d+):(\d+)")


def _alert(level: str, message: str, **context: Any) -> dict[str, Any]:
    alert: dict[str, Any] = {"level": level, "message": message}
    if context:
        alert["context"] = context
    return alert


async def _database_metrics(db: DatabaseConnection) -> dict[str, Any]:
    info = await db.query_one(
        "SELECT current_database() AS name, "
        "pg_size_pretty(pg_database_size(current_database())) AS size, "
        "pg_postmaster_start_time()::text AS uptime"
    ) or {}
    conns = await db.query_one(
        "SELECT count(*) FILTER (WHERE state = 'active' AND pid <> pg_backend_pid()) AS active, "
        "count(*) FILTER (WHERE state = 'idle') AS idle, count(*) AS total "
        "FROM pg_stat_activity"
    ) or {}
    max_conn = await db.query_value("SELECT setting FROM pg_settings WHERE name = 'max_connections'")
    stats = await db.query_one(
        "SELECT xact_commit, xact_rollback, "
        "CASE WHEN blks_hit + blks_read = 0 THEN 0 "
        "ELSE blks_hit::float / (blks_hit + blks_read) END AS ratio "
        "FROM pg_stat_database WHERE datname = current_database()"
    ) or {}
    return {
        "name": info.get("name", ""),
        "size": info.get("size", ""),
        "connections": {
            "active": int(conns.get("active") or 0),
            "idle": int(conns.get("idle") or 0),
            "total": int(conns.get("total") or 0),
            "max": int(max_conn or 0),
        },
        "uptime": info.get("uptime", ""),
        "transactions": {
            "committed": int(stats.get("xact_commit") or 0),
            "rolledBack": int(stats.get("xact_rollback") or 0),
        },
        "cacheHitRatio": float(stats.get("ratio") or 0),
    }


async def _table_metrics(db: DatabaseConnection) -> list[dict[str, Any]]:
    rows = await db.query(
        "SELECT c.relname, pg_size_pretty(pg_total_relation_size(c.oid)) AS size, "
        "s.n_live_tup, s.n_dead_tup, s.last_vacuum, s.last_analyze, s.seq_scan, "
        "COALESCE(s.idx_scan, 0) AS idx_scan "
        "FROM pg_class c JOIN pg_stat_user_tables s ON s.relid = c.oid "
        "WHERE c.relkind = 'r' ORDER BY c.relname"
    )
    tables = []
    for t in rows:
        scans = int(t["seq_scan"] or 0) + int(t["idx_scan"] or 0)
        tables.append(
            {
                "name": t["relname"],
                "size": t["size"],
                "rowCount": int(t["n_live_tup"] or 0),
                "deadTuples": int(t["n_dead_tup"] or 0),
                "lastVacuum": t["last_vacuum"],
                "lastAnalyze": t["last_analyze"],
                "scanCount": int(t["seq_scan"] or 0),
                "indexUseRatio": int(t["idx_scan"] or 0) / scans if scans else 0,
            }
        )
    return tables


async def _active_queries(db: DatabaseConnection) -> list[dict[str, Any]]:
    rows = await db.query(
        "SELECT pid, usename, datname, query_start::text AS query_start, state, wait_event, query, "
        "EXTRACT(EPOCH FROM (now() - query_start))::float AS duration "
        "FROM pg_stat_activity WHERE state != 'idle' AND pid <> pg_backend_pid() "
        "ORDER BY query_start"
    )
    return [
        {
            "pid": q["pid"],
            "username": q["usename"],
            "database": q["datname"],
            "startTime": q["query_start"],
            "duration": float(q["duration"] or 0),
            "state": q["state"],
            "waitEvent": q["wait_event"],
            "query": q["query"],
        }
        for q in rows
    ]


async def _locks(db: DatabaseConnection) -> list[dict[str, Any]]:
    rows = await db.query(
        "SELECT COALESCE(c.relname, l.locktype) AS relation, l.mode, l.granted, l.pid, "
        "a.usename, a.query FROM pg_locks l "
        "JOIN pg_stat_activity a ON l.pid = a.pid "
        "LEFT JOIN pg_class c ON c.oid = l.relation "
        "WHERE l.pid <> pg_backend_pid() ORDER BY relation, l.mode"
    )
    return [
        {
            "relation": lock["relation"],
            "mode": lock["mode"],
            "granted": bool(lock["granted"]),
            "pid": lock["pid"],
            "username": lock["usename"],
            "query": lock["query"],
        }
        for lock in rows
    ]


async def _replication(db: DatabaseConnection) -> list[dict[str, Any]]:
    rows = await db.query(
        "SELECT client_addr::text AS client_addr, state, sent_lsn::text AS sent_lsn, "
        "write_lsn::text AS write_lsn, flush_lsn::text AS flush_lsn, "
        "replay_lsn::text AS replay_lsn, write_lag::text AS write_lag, "
        "flush_lag::text AS flush_lag, replay_lag::text AS replay_lag "
        "FROM pg_stat_replication"
    )
    return [
        {
            "clientAddr": r["client_addr"] or "local",
            "state": r["state"],
            "sentLsn": r["sent_lsn"],
            "writeLsn": r["write_lsn"],
            "flushLsn": r["flush_lsn"],
            "replayLsn": r["replay_lsn"],
            "writeLag": r["write_lag"],
            "flushLag": r["flush_lag"],
            "replayLag": r["replay_lag"],
        }
        for r in rows
    ]


def _table_alerts(table: dict[str, Any], thresholds: dict[str, Any], now: datetime) -> list[dict[str, Any]]:
    alerts = []
    dead_limit = thresholds.get("deadTuplesPercentage")
    if dead_limit:
        pct = table["deadTuples"] / table["rowCount"] * 100 if table["rowCount"] else 0
        if pct > dead_limit:
            alerts.append(
                _alert(
                    "critical" if pct > 30 else "warning",
                    f"High dead tuple percentage in table {table['name']}: {pct:.1f}%",
                    table=table["name"],
                    deadTuples=table["deadTuples"],
                    totalRows=table["rowCount"],
                )
            )

    vacuum_age = thresholds.get("vacuumAge")
    last_vacuum = table["lastVacuum"]
    if vacuum_age and isinstance(last_vacuum, datetime):
        if last_vacuum.tzinfo is None:
            last_vacuum = last_vacuum.replace(tzinfo=timezone.utc)
        days = (now - last_vacuum).days
        if days > vacuum_age:
            alerts.append(
                _alert(
                    "warning",
                    f"Table {table['name']} hasn't been vacuumed in {days} days",
                    table=table["name"],
                    lastVacuum=last_vacuum.isoformat(),
                )
            )
    return alerts


async def monitor_database(
    db: DatabaseConnection,
    connection_string: str | None = None,
    include_tables: bool = False,
    include_queries: bool = False,
    include_locks: bool = False,
    include_replication: bool = False,
    alert_thresholds: dict[str, Any] | None = None,
) -> dict[str, Any]:
    thresholds = alert_thresholds or {}
    now = datetime.now(timezone.utc)
    alerts: list[dict[str, Any]] = []
    tables: dict[str, Any] = {}
    queries: list[dict[str, Any]] = []
    locks: list[dict[str, Any]] = []
    replication: list[dict[str, Any]] | None = None

    async with db.session(connection_string):
        database = await _database_metrics(db)

        conns = database["connections"]
        pct = conns["total"] / conns["max"] * 100 if conns["max"] else 0
        if thresholds.get("connectionPercentage") and pct > thresholds["connectionPercentage"]:
            alerts.append(
                _alert(
                    "critical" if pct > 90 else "warning",
                    f"High connection usage: {pct:.1f}%",
                    current=conns["total"],
                    max=conns["max"],
                )
            )

        ratio = database["cacheHitRatio"]
        if thresholds.get("cacheHitRatio") and ratio < thresholds["cacheHitRatio"]:
            alerts.append(
                _alert(
                    "critical" if ratio < 0.8 else "warning",
                    f"Low cache hit ratio: {ratio * 100:.1f}%",
                    current=ratio,
                )
            )

        if include_tables:
            for table in await _table_metrics(db):
                tables[table["name"]] = table
                alerts.extend(_table_alerts(table, thresholds, now))

        if include_queries:
            queries = await _active_queries(db)
            limit = thresholds.get("longRunningQuerySeconds")
            if limit:
                for q in queries:
                    if q["duration"] <= limit:
                        continue
                    text = q["query"] or ""
                    alerts.append(
                        _alert(
                            "critical" if q["duration"] > limit * 2 else "warning",
                            f"Long-running query ({q['duration']:.1f}s) by {q['username']}",
                            pid=q["pid"],
                            duration=q["duration"],
                            query=text[:100] + ("..." if len(text) > 100 else ""),
                        )
                    )

        if include_locks:
            locks = await _locks(db)
            waiting = [lock for lock in locks if not lock["granted"]]
            if waiting:
                alerts.append(
                    _alert("warning", f"{len(waiting)} blocking locks detected", count=len(waiting))
                )

        if include_replication:
            replication = await _replication(db)
            for replica in replication:
                match = _LAG.search(replica["replayLag"] or "")
                if not match:
                    continue
                hours, minutes = int(match[1]), int(match[2])
                if hours > 0 or minutes > 5:
                    alerts.append(
                        _alert(
                            "critical" if hours > 0 else "warning",
                            f"High replication lag for {replica['clientAddr']}: {replica['replayLag']}",
                            clientAddr=replica["clientAddr"],
                            lag=replica["replayLag"],
                        )
                    )

    metrics: dict[str, Any] = {
        "database": database,
        "tables": tables,
        "queries": queries,
        "locks": locks,
    }
    if replication is not None:
        metrics["replication"] = replication
    return {"timestamp": now.isoformat(), "metrics": metrics, "alerts": alerts}
