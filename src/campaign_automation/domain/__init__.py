"""Domain types, models, and errors for the campaign automation orchestrator."""

from campaign_automation.domain.errors import (
    AlreadyRunningError,
    AutomationError,
    ConfigurationError,
    InvalidTransitionError,
    ManualModeRequiredError,
    SessionNotFoundError,
    StaleSessionError,
)
from campaign_automation.domain.models import (
    AnalyticsSnapshot,
    CampaignDetail,
    CampaignState,
    CommunicationRef,
    ContractRef,
    ContractTerms,
    Creator,
    CreatorContactPreference,
    CreatorMetrics,
    CreatorSearchCriteria,
)
from campaign_automation.domain.types import (
    TERMINAL_SESSION_STATUS,
    AutomationMode,
    CommunicationStatus,
    CommunicationType,
    ContactMethod,
    PipelineState,
    SessionStatus,
    StepStatus,
    StepType,
)

__all__ = [
    "TERMINAL_SESSION_STATUS",
    "AlreadyRunningError",
    "AnalyticsSnapshot",
    "AutomationError",
    "AutomationMode",
    "CampaignDetail",
    "CampaignState",
    "CommunicationRef",
    "CommunicationStatus",
    "CommunicationType",
    "ConfigurationError",
    "ContactMethod",
    "ContractRef",
    "ContractTerms",
    "Creator",
    "CreatorContactPreference",
    "CreatorMetrics",
    "CreatorSearchCriteria",
    "InvalidTransitionError",
    "ManualModeRequiredError",
    "PipelineState",
    "SessionNotFoundError",
    "SessionStatus",
    "StaleSessionError",
    "StepStatus",
    "StepType",
]
