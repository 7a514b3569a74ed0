"""Transition map defining all valid (state, event) -> state mappings."""

from enum import StrEnum

from campaign_automation.domain.types import PipelineState


class PipelineEvent(StrEnum):
    """Events that can trigger state transitions in an automation run."""

    LOAD_CREATORS = "load_creators"
    DRAFT_CONTRACTS = "draft_contracts"
    DISPATCH_OUTREACH = "dispatch_outreach"
    COMPLETE = "complete"
    FAIL = "fail"
    CANCEL = "cancel"


# States that reject all events -- no outgoing transitions allowed.
TERMINAL_STATES: frozenset[PipelineState] = frozenset(
    {PipelineState.COMPLETED, PipelineState.FAILED, PipelineState.CANCELLED}
)

# The forward path, one stage per event.
# Any pair not in TRANSITIONS is an invalid transition.
TRANSITIONS: dict[tuple[PipelineState, str], PipelineState] = {
    (PipelineState.INITIATED, PipelineEvent.LOAD_CREATORS): PipelineState.CREATORS_LOADED,
    (PipelineState.CREATORS_LOADED, PipelineEvent.DRAFT_CONTRACTS): (
        PipelineState.CONTRACTS_DRAFTED
    ),
    (PipelineState.CONTRACTS_DRAFTED, PipelineEvent.DISPATCH_OUTREACH): (
        PipelineState.OUTREACH_DISPATCHED
    ),
    (PipelineState.OUTREACH_DISPATCHED, PipelineEvent.COMPLETE): PipelineState.COMPLETED,
}

# FAILED and CANCELLED are reachable from every non-terminal state.
for _state in PipelineState:
    if _state not in TERMINAL_STATES:
        TRANSITIONS[(_state, PipelineEvent.FAIL)] = PipelineState.FAILED
        TRANSITIONS[(_state, PipelineEvent.CANCEL)] = PipelineState.CANCELLED
del _state
