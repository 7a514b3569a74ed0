"""Domain-specific exception classes for the campaign automation orchestrator."""

from campaign_automation.domain.types import PipelineState


class AutomationError(Exception):
    """Base class for all domain errors in the automation orchestrator."""


class InvalidTransitionError(AutomationError):
    """Raised when an invalid pipeline state transition is attempted.

    Attributes:
        current_state: The state the machine was in when the transition was attempted.
        event: The event that was rejected.
    """

    def __init__(self, current_state: PipelineState, event: str) -> None:
        self.current_state = current_state
        self.event = event
        super().__init__(
            f"Cannot apply event '{event}' in state '{current_state}'"
        )


class AlreadyRunningError(AutomationError):
    """Raised when a campaign already has a RUNNING automation session.

    Attributes:
        campaign_id: The campaign that was asked to start again.
        running_session_id: The session currently holding the campaign, if known.
    """

    def __init__(self, campaign_id: str, running_session_id: str | None = None) -> None:
        self.campaign_id = campaign_id
        self.running_session_id = running_session_id
        super().__init__(
            f"Campaign '{campaign_id}' already has a running automation session"
        )


class ConfigurationError(AutomationError):
    """Raised when a run cannot start because required configuration is missing.

    Attributes:
        problems: Human-readable description of each missing item.
    """

    def __init__(self, problems: list[str]) -> None:
        self.problems = list(problems)
        super().__init__("Automation configuration incomplete: " + "; ".join(self.problems))


class SessionNotFoundError(AutomationError):
    """Raised when a session id does not match any known session."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Automation session '{session_id}' not found")


class ManualModeRequiredError(AutomationError):
    """Raised when a manual-only operation is requested on an automatic session."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session '{session_id}' is not running in MANUAL mode")


class StaleSessionError(AutomationError):
    """Raised when a session update loses an optimistic-concurrency race.

    Attributes:
        session_id: The session whose record changed underneath the writer.
        expected_version: The version the writer based its update on.
    """

    def __init__(self, session_id: str, expected_version: int) -> None:
        self.session_id = session_id
        self.expected_version = expected_version
        super().__init__(
            f"Session '{session_id}' was modified concurrently (expected version {expected_version})"
        )
