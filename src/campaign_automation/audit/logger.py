"""Convenience class for recording automation sessions, steps, and errors.

Every write goes to the durable store first and is then mirrored to
structlog, so the persisted history is always at least as complete as the
console output.  Session updates are compare-and-set on the session
``version``; the logger remembers the last version it wrote per session.
"""

from __future__ import annotations

import traceback
import uuid
from typing import Any

import structlog

from campaign_automation.audit.models import (
    AutomationReport,
    AutomationSession,
    ErrorRecord,
    SessionUpdate,
    StepRecord,
)
from campaign_automation.audit.report import build_summary, compute_performance_metrics, compute_report
from campaign_automation.audit.store import AutomationLogStore, utc_now
from campaign_automation.domain.types import AutomationMode, SessionStatus, StepStatus, StepType

logger = structlog.get_logger()


class AutomationLogger:
    """Typed API over :class:`AutomationLogStore` used by the pipeline controller.

    Args:
        store: The persisted log store.
    """

    def __init__(self, store: AutomationLogStore) -> None:
        self._store = store
        self._versions: dict[str, int] = {}

    @property
    def store(self) -> AutomationLogStore:
        """Return the underlying store."""
        return self._store

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def start_session(
        self,
        campaign_id: str,
        user_id: str,
        mode: AutomationMode,
        session_id: str | None = None,
    ) -> AutomationSession:
        """Create a RUNNING session with empty logs.

        Raises:
            AlreadyRunningError: If the campaign already has a RUNNING session.
        """
        session = self._store.create_session(campaign_id, user_id, mode, session_id=session_id)
        self._versions[session.session_id] = session.version
        logger.info(
            "automation_session_started",
            session_id=session.session_id,
            campaign_id=campaign_id,
            user_id=user_id,
            mode=mode.value,
        )
        return session

    def update_session(self, session_id: str, update: SessionUpdate) -> int:
        """Merge counters, status or current step into the session record.

        Args:
            session_id: The session to update.
            update: Fields to merge.

        Returns:
            The session's new version.

        Raises:
            StaleSessionError: If another writer changed the record since
                this logger last wrote it.
        """
        version = self._store.update_session(
            session_id, update, expected_version=self._versions.get(session_id)
        )
        self._versions[session_id] = version
        logger.debug(
            "automation_session_updated",
            session_id=session_id,
            fields=sorted(update.model_dump(exclude_none=True)),
            version=version,
        )
        return version

    def complete_session(self, session_id: str, status: SessionStatus) -> AutomationReport:
        """Close a session with a terminal status and persist its derived metrics.

        Args:
            session_id: The session to close.
            status: COMPLETED, FAILED or CANCELLED.

        Returns:
            The report computed from the closed session.
        """
        session = self._store.get_session(session_id)
        closing = session.model_copy(update={"status": status})
        metrics = compute_performance_metrics(closing)
        summary = build_summary(closing, metrics)

        self.update_session(
            session_id,
            SessionUpdate(
                status=status,
                current_step=f"Automation {status.value.lower()}",
                performance_metrics=metrics.model_dump(),
                summary_report=summary,
            ),
        )
        self._versions.pop(session_id, None)
        logger.info(
            "automation_session_closed",
            session_id=session_id,
            campaign_id=session.campaign_id,
            status=status.value,
            success_rate=metrics.success_rate,
            total_errors=metrics.total_errors,
        )
        return self.compute_report(session_id)

    # ------------------------------------------------------------------
    # Steps and errors
    # ------------------------------------------------------------------

    def append_step(self, session_id: str, step: StepRecord) -> int:
        """Append a step record and return the step log's new length."""
        length = self._store.append_step(session_id, step)
        logger.info(
            "automation_step",
            session_id=session_id,
            step_id=step.step_id,
            step_name=step.step_name,
            step_type=step.step_type.value,
            status=step.status.value,
            duration_ms=step.duration_ms,
        )
        return length

    def append_error(self, session_id: str, error: ErrorRecord) -> int:
        """Append an error record and return the error log's new length."""
        length = self._store.append_error(session_id, error)
        logger.error(
            "automation_error",
            session_id=session_id,
            error_type=error.error_type,
            error_message=error.error_message,
            step_name=error.step_name,
        )
        return length

    def log_step_started(
        self,
        session_id: str,
        step_type: StepType,
        step_name: str,
        details: dict[str, Any] | None = None,
    ) -> StepRecord:
        """Open a step: append a STARTED record and return it.

        The returned record's ``step_id`` is reused by :meth:`log_step_closed`.
        """
        record = StepRecord(
            step_id=str(uuid.uuid4()),
            step_name=step_name,
            step_type=step_type,
            status=StepStatus.STARTED,
            started_at=utc_now(),
            details=details,
        )
        self.append_step(session_id, record)
        return record

    def log_step_closed(
        self,
        session_id: str,
        opened: StepRecord,
        status: StepStatus,
        duration_ms: int,
        details: dict[str, Any] | None = None,
        error_message: str | None = None,
    ) -> StepRecord:
        """Close a step opened by :meth:`log_step_started`.

        Appends a new record with the same ``step_id``; the STARTED record is
        left untouched.
        """
        record = StepRecord(
            step_id=opened.step_id,
            step_name=opened.step_name,
            step_type=opened.step_type,
            status=status,
            started_at=opened.started_at,
            completed_at=utc_now(),
            duration_ms=duration_ms,
            details=details,
            error_message=error_message,
        )
        self.append_step(session_id, record)
        return record

    def log_error(
        self,
        session_id: str,
        error_type: str,
        error_message: str,
        step_name: str | None = None,
        context: dict[str, Any] | None = None,
        exc: BaseException | None = None,
    ) -> ErrorRecord:
        """Append an error record, capturing the stack trace of *exc* if given.

        Args:
            session_id: The session the failure belongs to.
            error_type: Short classification, e.g. a failure kind or exception name.
            error_message: Human-readable description.
            step_name: Step during which the failure happened, if any.
            context: Ids and payload fingerprints involved.
            exc: The exception that caused the failure, if any.

        Returns:
            The appended record.
        """
        stack_trace = None
        if exc is not None:
            stack_trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        record = ErrorRecord(
            error_type=error_type,
            error_message=error_message,
            step_name=step_name,
            timestamp=utc_now(),
            stack_trace=stack_trace,
            context=context,
        )
        self.append_error(session_id, record)
        return record

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_session(self, session_id: str) -> AutomationSession:
        """Load a session with its logs."""
        return self._store.get_session(session_id)

    def compute_report(self, session_id: str) -> AutomationReport:
        """Derive the report for a session from its persisted record."""
        return compute_report(self._store.get_session(session_id))

    def get_report(self, campaign_id: str) -> AutomationReport | None:
        """Return the report for the campaign's latest session, or ``None``."""
        session = self._store.latest_session(campaign_id)
        return compute_report(session) if session is not None else None

    def get_history(self, campaign_id: str, limit: int = 50) -> list[AutomationSession]:
        """Return a campaign's sessions, newest first."""
        return self._store.list_sessions(campaign_id, limit=limit)

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------

    def recover_abandoned_sessions(self) -> list[str]:
        """Mark sessions left RUNNING by a previous process as FAILED.

        Each recovered session gets a ``SessionAbandoned`` error record whose
        context names the last closed step, so an operator can decide where
        to restart.

        Returns:
            Ids of the sessions that were recovered.
        """
        recovered: list[str] = []
        for session in self._store.running_sessions():
            last = next((s for s in reversed(session.step_log) if s.is_closed), None)
            self.log_error(
                session.session_id,
                error_type="SessionAbandoned",
                error_message="Session was still RUNNING when the service restarted",
                step_name=session.current_step,
                context={
                    "campaign_id": session.campaign_id,
                    "last_closed_step": last.step_name if last else None,
                },
            )
            self._versions[session.session_id] = session.version
            self.complete_session(session.session_id, SessionStatus.FAILED)
            recovered.append(session.session_id)

        if recovered:
            logger.warning("abandoned_sessions_recovered", session_ids=recovered)
        return recovered
