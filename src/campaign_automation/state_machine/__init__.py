"""Pipeline state machine with transition validation."""

from campaign_automation.state_machine.machine import PipelineStateMachine
from campaign_automation.state_machine.transitions import (
    TERMINAL_STATES,
    TRANSITIONS,
    PipelineEvent,
)

__all__ = [
    "TERMINAL_STATES",
    "TRANSITIONS",
    "PipelineEvent",
    "PipelineStateMachine",
]
