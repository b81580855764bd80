"""Targeted diagnostics for common database problems.

Each check returns ``{issue, status, details, recommendations}`` where
``status`` is ``ok``, ``warning`` or ``error``. Higher log levels add
more detail lines; they do not change the verdict.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from mcp_adapters.adapters.postgres import DatabaseConnection

ISSUE_TYPES = ("connection", "performance", "locks", "replication")
LOG_LEVELS = ("info", "debug", "trace")

_SEVERITY = {"ok": 0, "warning": 1, "error": 2}


class _Report:
    def __init__(self, issue: str, log_level: str) -> None:
        self.issue = issue
        self.verbose = LOG_LEVELS.index(log_level)
        self.status = "ok"
        self.details: list[str] = []
        self.recommendations: list[str] = []

    def flag(self, status: str, recommendation: str) -> None:
        if _SEVERITY[status] > _SEVERITY[self.status]:
            self.status = status
        self.recommendations.append(recommendation)

    def detail(self, line: str, level: int = 0) -> None:
        if self.verbose >= level:
            self.details.append(line)

    def to_dict(self) -> dict[str, Any]:
        return {
            "issue": self.issue,
            "status": self.status,
            "details": self.details,
            "recommendations": self.recommendations,
        }


async def _connection(db: DatabaseConnection, report: _Report) -> None:
    max_conn = int(await db.query_value("SELECT setting FROM pg_settings WHERE name = 'max_connections'") or 0)
    states = await db.query(
        "SELECT COALESCE(state, 'unknown') AS state, count(*) AS count "
        "FROM pg_stat_activity GROUP BY state"
    )
    total = sum(int(r["count"]) for r in states)
    usage = total / max_conn * 100 if max_conn else 0.0
    report.detail(f"Connections: {total} of {max_conn} ({usage:.1f}%)")
    for row in states:
        report.detail(f"  {row['state']}: {row['count']}", level=1)

    if usage > 90:
        report.flag("error", "Connection limit nearly reached. Add a connection pooler or raise max_connections")
    elif usage > 75:
        report.flag("warning", "Connection usage is high. Consider connection pooling")

    idle_in_tx = sum(int(r["count"]) for r in states if r["state"].startswith("idle in transaction"))
    if idle_in_tx:
        report.detail(f"Idle in transaction: {idle_in_tx}")
        report.flag(
            "warning",
            "Sessions are idle inside open transactions. "
            "Set idle_in_transaction_session_timeout or fix the client",
        )

    if report.verbose >= 2:
        clients = await db.query(
            "SELECT usename, client_addr::text AS client_addr, count(*) AS count "
            "FROM pg_stat_activity GROUP BY usename, client_addr ORDER BY count DESC"
        )
        for c in clients:
            report.detail(f"  {c['usename']}@{c['client_addr'] or 'local'}: {c['count']}", level=2)


async def _performance(db: DatabaseConnection, report: _Report) -> None:
    ratio = float(
        await db.query_value(
            "SELECT CASE WHEN blks_hit + blks_read = 0 THEN 1 "
            "ELSE blks_hit::float / (blks_hit + blks_read) END "
            "FROM pg_stat_database WHERE datname = current_database()"
        )
        or 0
    )
    report.detail(f"Cache hit ratio: {ratio:.2%}")
    if ratio < 0.9:
        report.flag("warning", "Low cache hit ratio. Consider increasing shared_buffers")

    slow = await db.query(
        "SELECT pid, EXTRACT(EPOCH FROM (now() - query_start))::float AS seconds, query "
        "FROM pg_stat_activity WHERE state = 'active' AND pid <> pg_backend_pid() "
        "AND now() - query_start > interval '30 seconds' ORDER BY query_start"
    )
    report.detail(f"Queries running longer than 30s: {len(slow)}")
    for q in slow:
        report.detail(f"  pid {q['pid']} ({q['seconds']:.0f}s): {q['query'][:100]}", level=1)
    if slow:
        report.flag("warning", "Long-running queries found. Review them with EXPLAIN ANALYZE")

    seq_heavy = await db.query(
        "SELECT relname, seq_scan, COALESCE(idx_scan, 0) AS idx_scan, n_live_tup "
        "FROM pg_stat_user_tables WHERE seq_scan > COALESCE(idx_scan, 0) "
        "AND n_live_tup > 10000 ORDER BY seq_scan DESC LIMIT 10"
    )
    for t in seq_heavy:
        report.detail(f"  {t['relname']}: {t['seq_scan']} seq scans vs {t['idx_scan']} index scans", level=1)
    if seq_heavy:
        report.flag("warning", "Large tables are mostly read by sequential scans. Consider adding indexes")

    dead = await db.query(
        "SELECT relname, n_dead_tup, n_live_tup FROM pg_stat_user_tables "
        "WHERE n_dead_tup > 1000 AND n_dead_tup > n_live_tup * 0.2 ORDER BY n_dead_tup DESC"
    )
    for t in dead:
        report.detail(f"  {t['relname']}: {t['n_dead_tup']} dead tuples", level=2)
    if dead:
        report.flag("warning", "Tables with many dead tuples. Run VACUUM or tune autovacuum")


async def _locks(db: DatabaseConnection, report: _Report) -> None:
    blocked = await db.query(
        "SELECT a.pid, a.usename, pg_blocking_pids(a.pid) AS blocked_by, a.query, "
        "EXTRACT(EPOCH FROM (now() - a.query_start))::float AS seconds "
        "FROM pg_stat_activity a WHERE cardinality(pg_blocking_pids(a.pid)) > 0"
    )
    report.detail(f"Blocked sessions: {len(blocked)}")
    for b in blocked:
        report.detail(f"  pid {b['pid']} blocked by {b['blocked_by']} for {b['seconds']:.0f}s", level=1)
        report.detail(f"    {b['query'][:200]}", level=2)
    if blocked:
        report.flag("error", "Sessions are blocked by locks. Inspect or terminate the blocking backends")

    if report.verbose >= 1:
        modes = await db.query(
            "SELECT mode, count(*) AS count FROM pg_locks WHERE pid <> pg_backend_pid() "
            "GROUP BY mode ORDER BY count DESC"
        )
        for m in modes:
            report.detail(f"  {m['mode']}: {m['count']}", level=1)


async def _replication(db: DatabaseConnection, report: _Report) -> None:
    in_recovery = bool(await db.query_value("SELECT pg_is_in_recovery()"))
    report.detail(f"Role: {'replica' if in_recovery else 'primary'}")

    if in_recovery:
        lag = await db.query_value(
            "SELECT EXTRACT(EPOCH FROM (now() - pg_last_xact_replay_timestamp()))::float"
        )
        if lag is not None:
            report.detail(f"Replay lag: {lag:.1f}s")
            if lag > 300:
                report.flag("error", "Replica is more than 5 minutes behind the primary")
            elif lag > 60:
                report.flag("warning", "Replica is more than a minute behind the primary")
        return

    replicas = await db.query(
        "SELECT COALESCE(client_addr::text, 'local') AS client_addr, state, "
        "EXTRACT(EPOCH FROM replay_lag)::float AS replay_lag FROM pg_stat_replication"
    )
    report.detail(f"Connected replicas: {len(replicas)}")
    for r in replicas:
        report.detail(f"  {r['client_addr']}: {r['state']}, replay lag {r['replay_lag']}", level=1)
        if r["state"] != "streaming":
            report.flag("warning", f"Replica {r['client_addr']} is not streaming ({r['state']})")
        if r["replay_lag"] and r["replay_lag"] > 300:
            report.flag("error", f"Replica {r['client_addr']} is more than 5 minutes behind")


_CHECKS: dict[str, Callable[[DatabaseConnection, _Report], Awaitable[None]]] = {
    "connection": _connection,
    "performance": _performance,
    "locks": _locks,
    "replication": _replication,
}


async def debug_database(
    db: DatabaseConnection,
    issue: str,
    connection_string: str | None = None,
    log_level: str = "info",
) -> dict[str, Any]:
    report = _Report(issue, log_level)
    async with db.session(connection_string):
        await _CHECKS[issue](db, report)
    if not report.recommendations:
        report.detail(f"No {issue} problems detected")
    return report.to_dict()
