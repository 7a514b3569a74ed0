"""Audit log models for automation sessions, step records, and error records.

A session is the identity and control record for one run. Step and error
records are appended to it and never rewritten once written; metrics are
derived from them when a report is computed.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from campaign_automation.domain.types import (
    AutomationMode,
    SessionStatus,
    StepStatus,
    StepType,
)

# INITIALIZATION, CREATOR_SEARCH, CONTRACT_GENERATION, OUTREACH, COMPLETION
DEFAULT_TOTAL_STEPS = 5


class StepRecord(BaseModel):
    """One pipeline action.

    A stage appends a STARTED record when it begins and a closing record
    (COMPLETED, FAILED or SKIPPED) with the same ``step_id`` when it ends.
    """

    model_config = ConfigDict(frozen=True)

    step_id: str
    step_name: str
    step_type: StepType
    status: StepStatus
    started_at: str = Field(description="ISO 8601 timestamp")
    completed_at: str | None = None
    duration_ms: int | None = None
    details: dict[str, Any] | None = None
    error_message: str | None = None

    @property
    def is_closed(self) -> bool:
        """Return True if this record ends its step."""
        return self.status in (StepStatus.COMPLETED, StepStatus.FAILED, StepStatus.SKIPPED)


class ErrorRecord(BaseModel):
    """One captured failure, independent of any step record."""

    model_config = ConfigDict(frozen=True)

    error_type: str
    error_message: str
    step_name: str | None = None
    timestamp: str = Field(description="ISO 8601 timestamp")
    stack_trace: str | None = None
    context: dict[str, Any] | None = None


class SessionUpdate(BaseModel):
    """Partial update merged into a persisted session.

    Fields left as ``None`` are not touched.
    """

    status: SessionStatus | None = None
    current_step: str | None = None
    completed_steps: int | None = None
    creators_found: int | None = None
    creators_contacted: int | None = None
    contracts_generated: int | None = None
    contracts_sent: int | None = None
    emails_sent: int | None = None
    calls_made: int | None = None
    successful_communications: int | None = None
    failed_communications: int | None = None
    performance_metrics: dict[str, Any] | None = None
    summary_report: dict[str, Any] | None = None


class AutomationSession(BaseModel):
    """Identity, counters and history of one automation run."""

    session_id: str
    campaign_id: str
    user_id: str
    mode: AutomationMode
    status: SessionStatus = SessionStatus.RUNNING
    total_steps: int = DEFAULT_TOTAL_STEPS
    completed_steps: int = 0
    current_step: str | None = None
    creators_found: int = 0
    creators_contacted: int = 0
    contracts_generated: int = 0
    contracts_sent: int = 0
    emails_sent: int = 0
    calls_made: int = 0
    successful_communications: int = 0
    failed_communications: int = 0
    step_log: list[StepRecord] = Field(default_factory=list)
    error_log: list[ErrorRecord] = Field(default_factory=list)
    performance_metrics: dict[str, Any] = Field(default_factory=dict)
    summary_report: dict[str, Any] = Field(default_factory=dict)
    started_at: str
    completed_at: str | None = None
    updated_at: str | None = None
    version: int = 1


class PerformanceMetrics(BaseModel):
    """Run-level metrics derived from a session's counters and logs."""

    model_config = ConfigDict(frozen=True)

    total_step_count: int
    completed_step_count: int
    failed_step_count: int
    skipped_step_count: int
    success_rate: float = Field(description="completed_steps / total_steps, as a percentage")
    total_duration_ms: int
    average_step_duration_ms: float
    total_errors: int
    communication_efficiency: float = Field(
        description="successful / (successful + failed) communications; 0 with none",
    )


class AutomationReport(BaseModel):
    """Report for one session: identity, counters, derived metrics and full logs."""

    session_id: str
    campaign_id: str
    mode: AutomationMode
    status: SessionStatus
    total_steps: int
    completed_steps: int
    current_step: str | None
    creators_found: int
    creators_contacted: int
    contracts_generated: int
    contracts_sent: int
    emails_sent: int
    calls_made: int
    successful_communications: int
    failed_communications: int
    started_at: str
    completed_at: str | None
    metrics: PerformanceMetrics
    last_closed_step: StepRecord | None
    step_log: list[StepRecord]
    error_log: list[ErrorRecord]
    summary: dict[str, Any] = Field(default_factory=dict)
