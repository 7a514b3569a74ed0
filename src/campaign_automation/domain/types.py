"""Domain enumerations for the campaign automation orchestrator."""

from enum import StrEnum


class AutomationMode(StrEnum):
    """How a run advances past creator review."""

    AUTOMATIC = "AUTOMATIC"
    MANUAL = "MANUAL"


class PipelineState(StrEnum):
    """States of the campaign automation pipeline."""

    INITIATED = "INITIATED"
    CREATORS_LOADED = "CREATORS_LOADED"
    CONTRACTS_DRAFTED = "CONTRACTS_DRAFTED"
    OUTREACH_DISPATCHED = "OUTREACH_DISPATCHED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class SessionStatus(StrEnum):
    """Persisted status of an automation session."""

    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class StepType(StrEnum):
    """Kinds of pipeline steps recorded in the step log."""

    INITIALIZATION = "INITIALIZATION"
    CREATOR_SEARCH = "CREATOR_SEARCH"
    CONTRACT_GENERATION = "CONTRACT_GENERATION"
    OUTREACH = "OUTREACH"
    COMMUNICATION = "COMMUNICATION"
    COMPLETION = "COMPLETION"


class StepStatus(StrEnum):
    """Lifecycle status of a single step record."""

    STARTED = "STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class ContactMethod(StrEnum):
    """Channel used to reach a creator."""

    EMAIL = "EMAIL"
    PHONE = "PHONE"
    NONE = "NONE"


class CommunicationType(StrEnum):
    """Type of a communication entry in the live campaign state."""

    EMAIL = "EMAIL"
    PHONE = "PHONE"
    SYSTEM = "SYSTEM"


class CommunicationStatus(StrEnum):
    """Outcome of a communication attempt."""

    SENT = "SENT"
    FAILED = "FAILED"


# Session status that corresponds to each terminal pipeline state
TERMINAL_SESSION_STATUS: dict[PipelineState, SessionStatus] = {
    PipelineState.COMPLETED: SessionStatus.COMPLETED,
    PipelineState.FAILED: SessionStatus.FAILED,
    PipelineState.CANCELLED: SessionStatus.CANCELLED,
}
