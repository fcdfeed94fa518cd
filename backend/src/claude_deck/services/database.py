"""DuckDB-backed store for parsed sessions."""

import threading
from collections.abc import Generator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import duckdb
from loguru import logger

from ..models.responses import (
    GroupStats,
    ParsedCompaction,
    SessionAggregate,
    SessionInsights,
    SessionListResponse,
    SessionSummary,
    StatsResponse,
    SubagentAggregate,
    SyncStatus,
    TimelineEntry,
    ToolCount,
)
from ..utils.datetime import now_utc
from . import queries
from .insights import build_insights


def _rows_as_dicts(cursor: duckdb.DuckDBPyConnection) -> list[dict[str, Any]]:
    """Fetch all rows of the last query as column-name keyed dicts."""
    columns = [col[0] for col in cursor.description or []]
    return [dict(zip(columns, row, strict=True)) for row in cursor.fetchall()]


def _build_filters(
    *,
    project: str | None = None,
    model: str | None = None,
    after: str | None = None,
    before: str | None = None,
) -> tuple[str, list[Any]]:
    """Build a WHERE clause over the ``sessions s`` alias."""
    conditions: list[str] = []
    params: list[Any] = []

    if project:
        conditions.append("s.project ILIKE ?")
        params.append(f"%{project}%")
    if model:
        conditions.append("s.model ILIKE ?")
        params.append(f"%{model}%")
    if after:
        conditions.append("s.started_at >= ?")
        params.append(after)
    if before:
        conditions.append("s.started_at <= ?")
        params.append(before)

    where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
    return where, params


def merge_timeline(
    tool_calls: Sequence[TimelineEntry], messages: Sequence[TimelineEntry]
) -> list[TimelineEntry]:
    """Merge tool calls and messages into one list ordered by timestamp.

    Timestamps are ISO-8601 strings and compare lexicographically. On equal
    timestamps a message sorts before tool calls, so an assistant turn
    precedes the tool calls it issued.
    """
    merged = [*messages, *tool_calls]
    return sorted(merged, key=lambda entry: entry.timestamp)


class SessionStore:
    """Explicitly constructed handle to the session database.

    Open it once at start-up and ``close()`` it at shutdown (or use it as a
    context manager). Writes are serialized by a lock, and each session
    replacement runs in a single transaction so readers never observe a
    half-replaced session.
    """

    def __init__(self, db_path: str | Path = ":memory:") -> None:
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn: duckdb.DuckDBPyConnection | None = duckdb.connect(self.db_path)
        self._write_lock = threading.RLock()
        # Held for a whole sync sweep so two sweeps never parse the same session
        self.sync_lock = threading.Lock()
        self._init_schema()
        logger.debug("Session store opened at {}", self.db_path)

    def __enter__(self) -> "SessionStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _init_schema(self) -> None:
        with self.cursor() as cur:
            for statement in queries.SCHEMA.split(";"):
                if statement.strip():
                    cur.execute(statement)

    def close(self) -> None:
        """Close the connection if it is open."""
        with self._write_lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.debug("Session store closed")

    @contextmanager
    def cursor(self) -> Generator[duckdb.DuckDBPyConnection, None, None]:
        """Get a cursor on the shared connection.

        Each caller gets its own cursor so queries can run from several
        threads (e.g. FastAPI's worker threads).
        """
        if self._conn is None:
            raise RuntimeError("Session store is closed")
        cur = self._conn.cursor()
        try:
            yield cur
        finally:
            cur.close()

    # ========================================================================
    # Writes
    # ========================================================================

    def replace_session(self, session: SessionAggregate) -> None:
        """Replace every stored row of a session with the given aggregate.

        Deletes and inserts run in one transaction; on failure nothing
        changes.
        """
        with self._write_lock, self.cursor() as cur:
            cur.begin()
            try:
                for statement in queries.DELETE_SESSION_ROWS:
                    cur.execute(statement, [session.id])
                self._insert_session(cur, session)
                cur.commit()
            except Exception:
                cur.rollback()
                raise

    def _insert_session(self, cur: duckdb.DuckDBPyConnection, session: SessionAggregate) -> None:
        cur.execute(
            queries.INSERT_SESSION,
            [
                session.id,
                session.project,
                session.project_hash,
                session.first_prompt,
                session.model,
                session.input_tokens,
                session.output_tokens,
                session.cache_read_tokens,
                session.cache_create_tokens,
                session.estimated_cost_usd,
                session.message_count,
                session.tool_call_count,
                session.subagent_count,
                session.turn_count,
                session.peak_context_tokens,
                session.started_at,
                session.ended_at,
                session.duration_ms,
                now_utc().isoformat(),
                session.jsonl_path,
                session.jsonl_mtime,
            ],
        )

        if session.tool_calls:
            cur.executemany(
                queries.INSERT_TOOL_CALL,
                [
                    [
                        session.id,
                        seq,
                        tc.subagent_id,
                        tc.tool_use_id,
                        tc.tool_name,
                        tc.tool_input,
                        tc.tool_response,
                        tc.status,
                        tc.timestamp,
                    ]
                    for seq, tc in enumerate(session.tool_calls)
                ],
            )

        if session.messages:
            cur.executemany(
                queries.INSERT_MESSAGE,
                [
                    [session.id, seq, m.role, m.content, m.timestamp, m.model, m.cost_usd]
                    for seq, m in enumerate(session.messages)
                ],
            )

        if session.subagents:
            cur.executemany(
                queries.INSERT_SUBAGENT,
                [
                    [
                        sub.id,
                        session.id,
                        sub.agent_type,
                        sub.model,
                        sub.prompt,
                        sub.input_tokens,
                        sub.output_tokens,
                        sub.cache_read_tokens,
                        sub.cache_create_tokens,
                        sub.estimated_cost_usd,
                        sub.tool_call_count,
                        sub.duration_ms,
                        sub.result_summary,
                    ]
                    for sub in session.subagents
                ],
            )

        if session.compactions:
            cur.executemany(
                queries.INSERT_COMPACTION,
                [
                    [session.id, seq, c.trigger, c.pre_tokens, c.timestamp]
                    for seq, c in enumerate(session.compactions)
                ],
            )

    # ========================================================================
    # Reads
    # ========================================================================

    def get_session_mtime(self, session_id: str) -> str | None:
        """Recorded modification time of the session's log file, if stored."""
        with self.cursor() as cur:
            row = cur.execute(queries.SESSION_MTIME, [session_id]).fetchone()
        return row[0] if row else None

    def count_sessions(self) -> int:
        with self.cursor() as cur:
            row = cur.execute(queries.SESSION_COUNT).fetchone()
        return row[0] if row else 0

    def sync_status(self) -> SyncStatus:
        with self.cursor() as cur:
            cur.execute(queries.SYNC_STATUS)
            rows = _rows_as_dicts(cur)
        return SyncStatus.model_validate(rows[0]) if rows else SyncStatus()

    def list_sessions(
        self,
        *,
        project: str | None = None,
        model: str | None = None,
        after: str | None = None,
        before: str | None = None,
        sort: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> SessionListResponse:
        """List sessions matching the filters; unknown sort keys sort by date."""
        where, params = _build_filters(project=project, model=model, after=after, before=before)
        order_by = queries.SESSION_SORT_COLUMNS.get(sort or "date", queries.SESSION_SORT_COLUMNS["date"])

        with self.cursor() as cur:
            total_row = cur.execute(queries.SESSION_LIST_COUNT.format(where=where), params).fetchone()
            cur.execute(
                queries.SESSION_LIST.format(where=where, order_by=order_by),
                [*params, limit, offset],
            )
            rows = _rows_as_dicts(cur)

        return SessionListResponse(
            sessions=[SessionSummary.model_validate(row) for row in rows],
            total=total_row[0] if total_row else 0,
        )

    def get_session(self, session_id: str) -> SessionSummary | None:
        with self.cursor() as cur:
            cur.execute(queries.SESSION_BY_ID, [session_id])
            rows = _rows_as_dicts(cur)
        return SessionSummary.model_validate(rows[0]) if rows else None

    def get_timeline(self, session_id: str) -> list[TimelineEntry]:
        """Tool calls and messages of a session merged in time order."""
        with self.cursor() as cur:
            cur.execute(queries.TIMELINE_TOOL_CALLS, [session_id])
            tool_calls = [TimelineEntry.model_validate(row) for row in _rows_as_dicts(cur)]
            cur.execute(queries.TIMELINE_MESSAGES, [session_id])
            messages = [TimelineEntry.model_validate(row) for row in _rows_as_dicts(cur)]
        return merge_timeline(tool_calls, messages)

    def get_subagents(self, session_id: str) -> list[SubagentAggregate]:
        with self.cursor() as cur:
            cur.execute(queries.SUBAGENTS_FOR_SESSION, [session_id])
            rows = _rows_as_dicts(cur)
        return [SubagentAggregate.model_validate(row) for row in rows]

    def get_compactions(self, session_id: str) -> list[ParsedCompaction]:
        with self.cursor() as cur:
            cur.execute(queries.COMPACTIONS_FOR_SESSION, [session_id])
            rows = _rows_as_dicts(cur)
        return [ParsedCompaction.model_validate(row) for row in rows]

    def get_insights(self, session_id: str) -> SessionInsights | None:
        """Derive insights from the stored timeline; None if the session is unknown."""
        with self.cursor() as cur:
            row = cur.execute(queries.SESSION_DURATION, [session_id]).fetchone()
        if row is None:
            return None
        return build_insights(
            self.get_timeline(session_id),
            compactions=self.get_compactions(session_id),
            session_duration_ms=row[0] or 0,
        )

    def get_stats(
        self,
        *,
        project: str | None = None,
        after: str | None = None,
        before: str | None = None,
        model: str | None = None,
    ) -> StatsResponse:
        """Totals and groupings over the sessions matching the filters."""
        where, params = _build_filters(
            project=project, model=model, after=after, before=before
        )

        with self.cursor() as cur:
            cur.execute(queries.STATS_TOTALS.format(where=where), params)
            totals = _rows_as_dicts(cur)[0]
            groups: dict[str, list[GroupStats]] = {}
            for name, sql in (
                ("by_model", queries.STATS_BY_MODEL),
                ("by_project", queries.STATS_BY_PROJECT),
                ("by_day", queries.STATS_BY_DAY),
            ):
                cur.execute(sql.format(where=where), params)
                groups[name] = [GroupStats.model_validate(row) for row in _rows_as_dicts(cur)]
            cur.execute(queries.STATS_TOP_TOOLS.format(where=where), params)
            top_tools = [ToolCount.model_validate(row) for row in _rows_as_dicts(cur)]

        total_sessions = totals["total_sessions"]
        return StatsResponse(
            **totals,
            avg_cost_per_session=totals["total_cost"] / total_sessions if total_sessions else 0.0,
            top_tools=top_tools,
            **groups,
        )
