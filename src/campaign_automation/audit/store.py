"""SQLite-backed automation log store with WAL mode and append-only history.

Sessions live in ``automation_sessions``; step and error records live in
their own append-only tables, one row per record, so appending never
rewrites earlier entries.  Each session row carries a ``version`` used for
optimistic-concurrency checks on updates, and a partial unique index
guarantees at most one RUNNING session per campaign.

Uses parameterized queries exclusively (never string concatenation).
"""

from __future__ import annotations

import json
import sqlite3
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from campaign_automation.audit.models import (
    DEFAULT_TOTAL_STEPS,
    AutomationSession,
    ErrorRecord,
    SessionUpdate,
    StepRecord,
)
from campaign_automation.domain.errors import (
    AlreadyRunningError,
    SessionNotFoundError,
    StaleSessionError,
)
from campaign_automation.domain.types import AutomationMode, SessionStatus


def utc_now() -> str:
    """Return the current UTC time as an ISO 8601 string with microseconds."""
    return datetime.now(tz=UTC).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def init_automation_db(db_path: Path | str) -> sqlite3.Connection:
    """Create and initialize the automation log tables with WAL mode and indexes.

    Args:
        db_path: Path to the SQLite database file, or ``":memory:"``.

    Returns:
        An open sqlite3.Connection with WAL mode and foreign keys enabled.
    """
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")

    conn.execute("""
        CREATE TABLE IF NOT EXISTS automation_sessions (
            session_id TEXT PRIMARY KEY,
            campaign_id TEXT NOT NULL,
            user_id TEXT NOT NULL,
            mode TEXT NOT NULL,
            status TEXT NOT NULL,
            total_steps INTEGER NOT NULL,
            completed_steps INTEGER NOT NULL DEFAULT 0,
            current_step TEXT,
            creators_found INTEGER NOT NULL DEFAULT 0,
            creators_contacted INTEGER NOT NULL DEFAULT 0,
            contracts_generated INTEGER NOT NULL DEFAULT 0,
            contracts_sent INTEGER NOT NULL DEFAULT 0,
            emails_sent INTEGER NOT NULL DEFAULT 0,
            calls_made INTEGER NOT NULL DEFAULT 0,
            successful_communications INTEGER NOT NULL DEFAULT 0,
            failed_communications INTEGER NOT NULL DEFAULT 0,
            performance_metrics TEXT NOT NULL DEFAULT '{}',
            summary_report TEXT NOT NULL DEFAULT '{}',
            started_at TEXT NOT NULL,
            completed_at TEXT,
            updated_at TEXT,
            version INTEGER NOT NULL DEFAULT 1
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS automation_steps (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            session_id TEXT NOT NULL REFERENCES automation_sessions (session_id),
            seq INTEGER NOT NULL,
            step_id TEXT NOT NULL,
            step_name TEXT NOT NULL,
            step_type TEXT NOT NULL,
            status TEXT NOT NULL,
            started_at TEXT NOT NULL,
            completed_at TEXT,
            duration_ms INTEGER,
            details TEXT,
            error_message TEXT,
            UNIQUE (session_id, seq)
        )
    """)

    conn.execute("""
        CREATE TABLE IF NOT EXISTS automation_errors (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            session_id TEXT NOT NULL REFERENCES automation_sessions (session_id),
            seq INTEGER NOT NULL,
            error_type TEXT NOT NULL,
            error_message TEXT NOT NULL,
            step_name TEXT,
            timestamp TEXT NOT NULL,
            stack_trace TEXT,
            context TEXT,
            UNIQUE (session_id, seq)
        )
    """)

    # At most one RUNNING session per campaign
    conn.execute(
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_sessions_one_running "
        "ON automation_sessions (campaign_id) WHERE status = 'RUNNING'"
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_sessions_campaign "
        "ON automation_sessions (campaign_id, started_at)"
    )

    conn.commit()
    return conn


def close_automation_db(conn: sqlite3.Connection) -> None:
    """Close the automation database connection.

    Args:
        conn: The database connection to close.
    """
    conn.close()


_COUNTER_COLUMNS = (
    "completed_steps",
    "creators_found",
    "creators_contacted",
    "contracts_generated",
    "contracts_sent",
    "emails_sent",
    "calls_made",
    "successful_communications",
    "failed_communications",
)

_TERMINAL_STATUSES = frozenset(
    {SessionStatus.COMPLETED, SessionStatus.FAILED, SessionStatus.CANCELLED}
)


class AutomationLogStore:
    """Persist and retrieve automation sessions and their append-only logs."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        """Initialize with an open database connection.

        Args:
            conn: An open sqlite3.Connection whose database already has the
                  automation tables (see ``init_automation_db``).
        """
        self._conn = conn

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    def create_session(
        self,
        campaign_id: str,
        user_id: str,
        mode: AutomationMode,
        session_id: str | None = None,
        total_steps: int = DEFAULT_TOTAL_STEPS,
    ) -> AutomationSession:
        """Create a RUNNING session, or reject if the campaign already has one.

        The partial unique index on ``(campaign_id) WHERE status = 'RUNNING'``
        makes the check and the insert a single atomic statement.

        Args:
            campaign_id: Campaign the run belongs to.
            user_id: Operator who started the run.
            mode: AUTOMATIC or MANUAL.
            session_id: Caller-supplied id; a UUID4 is generated when omitted.
            total_steps: Number of stages the run is expected to close.

        Returns:
            The freshly created session with empty logs.

        Raises:
            AlreadyRunningError: If a RUNNING session exists for *campaign_id*.
        """
        session_id = session_id or str(uuid.uuid4())
        now = utc_now()
        try:
            self._conn.execute(
                """
                INSERT INTO automation_sessions (
                    session_id, campaign_id, user_id, mode, status,
                    total_steps, started_at, updated_at, version
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, 1)
                """,
                (
                    session_id,
                    campaign_id,
                    user_id,
                    mode.value,
                    SessionStatus.RUNNING.value,
                    total_steps,
                    now,
                    now,
                ),
            )
            self._conn.commit()
        except sqlite3.IntegrityError:
            self._conn.rollback()
            running = self.running_session_id(campaign_id)
            if running is None:
                # Primary key clash on a caller-supplied id
                raise
            raise AlreadyRunningError(campaign_id, running) from None

        return AutomationSession(
            session_id=session_id,
            campaign_id=campaign_id,
            user_id=user_id,
            mode=mode,
            total_steps=total_steps,
            started_at=now,
            updated_at=now,
        )

    def append_step(self, session_id: str, step: StepRecord) -> int:
        """Append a step record to a session's step log.

        Args:
            session_id: The owning session.
            step: The record to append.

        Returns:
            The 1-based position of the record in the step log.

        Raises:
            SessionNotFoundError: If *session_id* does not exist.
        """
        details_json = json.dumps(step.details, default=str) if step.details is not None else None
        try:
            self._conn.execute(
                """
                INSERT INTO automation_steps (
                    session_id, seq, step_id, step_name, step_type, status,
                    started_at, completed_at, duration_ms, details, error_message
                ) VALUES (
                    ?,
                    (SELECT COALESCE(MAX(seq), 0) + 1 FROM automation_steps WHERE session_id = ?),
                    ?, ?, ?, ?, ?, ?, ?, ?, ?
                )
                """,
                (
                    session_id,
                    session_id,
                    step.step_id,
                    step.step_name,
                    step.step_type.value,
                    step.status.value,
                    step.started_at,
                    step.completed_at,
                    step.duration_ms,
                    details_json,
                    step.error_message,
                ),
            )
            self._conn.commit()
        except sqlite3.IntegrityError:
            self._conn.rollback()
            raise SessionNotFoundError(session_id) from None
        return self._count("automation_steps", session_id)

    def append_error(self, session_id: str, error: ErrorRecord) -> int:
        """Append an error record to a session's error log.

        Args:
            session_id: The owning session.
            error: The record to append.

        Returns:
            The 1-based position of the record in the error log.

        Raises:
            SessionNotFoundError: If *session_id* does not exist.
        """
        context_json = json.dumps(error.context, default=str) if error.context is not None else None
        try:
            self._conn.execute(
                """
                INSERT INTO automation_errors (
                    session_id, seq, error_type, error_message, step_name,
                    timestamp, stack_trace, context
                ) VALUES (
                    ?,
                    (SELECT COALESCE(MAX(seq), 0) + 1 FROM automation_errors WHERE session_id = ?),
                    ?, ?, ?, ?, ?, ?
                )
                """,
                (
                    session_id,
                    session_id,
                    error.error_type,
                    error.error_message,
                    error.step_name,
                    error.timestamp,
                    error.stack_trace,
                    context_json,
                ),
            )
            self._conn.commit()
        except sqlite3.IntegrityError:
            self._conn.rollback()
            raise SessionNotFoundError(session_id) from None
        return self._count("automation_errors", session_id)

    def update_session(
        self,
        session_id: str,
        update: SessionUpdate,
        expected_version: int | None = None,
    ) -> int:
        """Merge *update* into the session row and bump its version.

        Sets ``completed_at`` when the status becomes terminal.

        Args:
            session_id: The session to update.
            update: Fields to merge; ``None`` fields are left untouched.
            expected_version: When given, the update only applies if the
                stored version still matches.

        Returns:
            The new version number.

        Raises:
            SessionNotFoundError: If *session_id* does not exist.
            StaleSessionError: If *expected_version* no longer matches.
        """
        fields = update.model_dump(exclude_none=True)
        assignments: list[str] = []
        params: list[Any] = []

        for name, value in fields.items():
            if name in ("performance_metrics", "summary_report"):
                value = json.dumps(value, default=str)
            elif name == "status":
                value = SessionStatus(value).value
            assignments.append(f"{name} = ?")
            params.append(value)

        now = utc_now()
        if update.status is not None and update.status in _TERMINAL_STATUSES:
            assignments.append("completed_at = ?")
            params.append(now)
        assignments.append("updated_at = ?")
        params.append(now)
        assignments.append("version = version + 1")

        query = f"UPDATE automation_sessions SET {', '.join(assignments)} WHERE session_id = ?"
        params.append(session_id)
        if expected_version is not None:
            query += " AND version = ?"
            params.append(expected_version)

        try:
            cursor = self._conn.execute(query, params)
        except sqlite3.IntegrityError:
            # A status change back to RUNNING collided with another run
            self._conn.rollback()
            raise
        self._conn.commit()

        if cursor.rowcount == 0:
            current = self._version(session_id)
            if current is None:
                raise SessionNotFoundError(session_id)
            raise StaleSessionError(session_id, expected_version or 0)

        version = self._version(session_id)
        return version or 0

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def get_session(self, session_id: str) -> AutomationSession:
        """Load a session with its full step and error logs.

        Raises:
            SessionNotFoundError: If *session_id* does not exist.
        """
        rows = self._select_sessions("WHERE session_id = ?", [session_id], limit=1)
        if not rows:
            raise SessionNotFoundError(session_id)
        return self._hydrate(rows[0])

    def latest_session(self, campaign_id: str) -> AutomationSession | None:
        """Return the most recently started session for a campaign, or ``None``."""
        rows = self._select_sessions("WHERE campaign_id = ?", [campaign_id], limit=1)
        return self._hydrate(rows[0]) if rows else None

    def list_sessions(self, campaign_id: str, limit: int = 50) -> list[AutomationSession]:
        """Return a campaign's sessions, newest first, with their logs."""
        rows = self._select_sessions("WHERE campaign_id = ?", [campaign_id], limit=limit)
        return [self._hydrate(row) for row in rows]

    def running_sessions(self) -> list[AutomationSession]:
        """Return every session currently marked RUNNING."""
        rows = self._select_sessions(
            "WHERE status = ?", [SessionStatus.RUNNING.value], limit=-1
        )
        return [self._hydrate(row) for row in rows]

    def running_session_id(self, campaign_id: str) -> str | None:
        """Return the id of the campaign's RUNNING session, if any."""
        cursor = self._conn.execute(
            "SELECT session_id FROM automation_sessions WHERE campaign_id = ? AND status = ?",
            (campaign_id, SessionStatus.RUNNING.value),
        )
        row = cursor.fetchone()
        return row[0] if row else None

    def load_steps(self, session_id: str) -> list[StepRecord]:
        """Return a session's step log in append order."""
        rows = self._fetch_dicts(
            "SELECT * FROM automation_steps WHERE session_id = ? ORDER BY seq",
            [session_id],
        )
        steps: list[StepRecord] = []
        for row in rows:
            if row.get("details") is not None:
                row["details"] = json.loads(row["details"])
            steps.append(StepRecord.model_validate(row))
        return steps

    def load_errors(self, session_id: str) -> list[ErrorRecord]:
        """Return a session's error log in append order."""
        rows = self._fetch_dicts(
            "SELECT * FROM automation_errors WHERE session_id = ? ORDER BY seq",
            [session_id],
        )
        errors: list[ErrorRecord] = []
        for row in rows:
            if row.get("context") is not None:
                row["context"] = json.loads(row["context"])
            errors.append(ErrorRecord.model_validate(row))
        return errors

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _select_sessions(
        self, where_clause: str, params: list[Any], limit: int
    ) -> list[dict[str, Any]]:
        query = (
            f"SELECT * FROM automation_sessions {where_clause} "
            "ORDER BY started_at DESC, rowid DESC LIMIT ?"
        )
        return self._fetch_dicts(query, [*params, limit])

    def _fetch_dicts(self, query: str, params: list[Any]) -> list[dict[str, Any]]:
        # Temporarily set row_factory for dict-style access
        prev_factory = self._conn.row_factory
        self._conn.row_factory = sqlite3.Row
        try:
            rows = self._conn.execute(query, params).fetchall()
        finally:
            self._conn.row_factory = prev_factory
        return [dict(row) for row in rows]

    def _hydrate(self, row: dict[str, Any]) -> AutomationSession:
        row["performance_metrics"] = json.loads(row.get("performance_metrics") or "{}")
        row["summary_report"] = json.loads(row.get("summary_report") or "{}")
        row["step_log"] = self.load_steps(row["session_id"])
        row["error_log"] = self.load_errors(row["session_id"])
        return AutomationSession.model_validate(row)

    def _count(self, table: str, session_id: str) -> int:
        cursor = self._conn.execute(
            f"SELECT COUNT(*) FROM {table} WHERE session_id = ?",  # noqa: S608
            (session_id,),
        )
        return int(cursor.fetchone()[0])

    def _version(self, session_id: str) -> int | None:
        cursor = self._conn.execute(
            "SELECT version FROM automation_sessions WHERE session_id = ?",
            (session_id,),
        )
        row = cursor.fetchone()
        return int(row[0]) if row else None
