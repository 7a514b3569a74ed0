"""Derive run-level metrics and reports from a persisted automation session."""

from __future__ import annotations

from campaign_automation.audit.models import (
    AutomationReport,
    AutomationSession,
    PerformanceMetrics,
    StepRecord,
)
from campaign_automation.domain.types import StepStatus


def closed_steps(steps: list[StepRecord]) -> list[StepRecord]:
    """Return the closing record of each step, in the order steps closed.

    A step that was started but never closed contributes nothing.
    """
    return [step for step in steps if step.is_closed]


def last_closed_step(steps: list[StepRecord]) -> StepRecord | None:
    """Return the most recently closed step record, the resume point after a crash."""
    closed = closed_steps(steps)
    return closed[-1] if closed else None


def compute_performance_metrics(session: AutomationSession) -> PerformanceMetrics:
    """Compute derived metrics for a session.

    Step counts come from the step log: each distinct ``step_id`` is one
    step, classified by its closing record.  Success rate is computed from
    the session's ``completed_steps`` and ``total_steps`` counters.

    Args:
        session: The session to analyse, with its step and error logs loaded.

    Returns:
        The derived :class:`PerformanceMetrics`.
    """
    step_ids: list[str] = []
    final_status: dict[str, StepStatus] = {}
    for step in session.step_log:
        if step.step_id not in final_status:
            step_ids.append(step.step_id)
        final_status[step.step_id] = step.status

    statuses = [final_status[step_id] for step_id in step_ids]
    completed = sum(1 for s in statuses if s == StepStatus.COMPLETED)
    failed = sum(1 for s in statuses if s == StepStatus.FAILED)
    skipped = sum(1 for s in statuses if s == StepStatus.SKIPPED)

    durations = [step.duration_ms for step in closed_steps(session.step_log) if step.duration_ms]
    total_duration = sum(durations)
    average_duration = round(total_duration / len(durations), 2) if durations else 0.0

    if session.total_steps > 0:
        success_rate = round(session.completed_steps / session.total_steps * 100, 2)
    else:
        success_rate = 0.0

    attempts = session.successful_communications + session.failed_communications
    efficiency = round(session.successful_communications / attempts, 4) if attempts else 0.0

    return PerformanceMetrics(
        total_step_count=len(step_ids),
        completed_step_count=completed,
        failed_step_count=failed,
        skipped_step_count=skipped,
        success_rate=success_rate,
        total_duration_ms=total_duration,
        average_step_duration_ms=average_duration,
        total_errors=len(session.error_log),
        communication_efficiency=efficiency,
    )


def build_summary(session: AutomationSession, metrics: PerformanceMetrics) -> dict[str, object]:
    """Build the human-oriented summary block shown at the top of a report."""
    return {
        "status": session.status.value,
        "progress": f"{session.completed_steps}/{session.total_steps}",
        "creators": {
            "found": session.creators_found,
            "contacted": session.creators_contacted,
        },
        "contracts": {
            "generated": session.contracts_generated,
            "sent": session.contracts_sent,
        },
        "communications": {
            "emails": session.emails_sent,
            "calls": session.calls_made,
            "successful": session.successful_communications,
            "failed": session.failed_communications,
        },
        "errors": metrics.total_errors,
    }


def compute_report(session: AutomationSession) -> AutomationReport:
    """Assemble the full report for one session."""
    metrics = compute_performance_metrics(session)
    return AutomationReport(
        session_id=session.session_id,
        campaign_id=session.campaign_id,
        mode=session.mode,
        status=session.status,
        total_steps=session.total_steps,
        completed_steps=session.completed_steps,
        current_step=session.current_step,
        creators_found=session.creators_found,
        creators_contacted=session.creators_contacted,
        contracts_generated=session.contracts_generated,
        contracts_sent=session.contracts_sent,
        emails_sent=session.emails_sent,
        calls_made=session.calls_made,
        successful_communications=session.successful_communications,
        failed_communications=session.failed_communications,
        started_at=session.started_at,
        completed_at=session.completed_at,
        metrics=metrics,
        last_closed_step=last_closed_step(session.step_log),
        step_log=list(session.step_log),
        error_log=list(session.error_log),
        summary=session.summary_report or build_summary(session, metrics),
    )
