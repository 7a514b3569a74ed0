"""Tests for the PipelineStateMachine class."""

import pytest

from campaign_automation.domain.errors import InvalidTransitionError
from campaign_automation.domain.types import PipelineState
from campaign_automation.state_machine.machine import PipelineStateMachine
from campaign_automation.state_machine.transitions import PipelineEvent

FORWARD_PATH: list[tuple[PipelineState, str, PipelineState]] = [
    (PipelineState.INITIATED, "load_creators", PipelineState.CREATORS_LOADED),
    (PipelineState.CREATORS_LOADED, "draft_contracts", PipelineState.CONTRACTS_DRAFTED),
    (PipelineState.CONTRACTS_DRAFTED, "dispatch_outreach", PipelineState.OUTREACH_DISPATCHED),
    (PipelineState.OUTREACH_DISPATCHED, "complete", PipelineState.COMPLETED),
]

NON_TERMINAL = [
    PipelineState.INITIATED,
    PipelineState.CREATORS_LOADED,
    PipelineState.CONTRACTS_DRAFTED,
    PipelineState.OUTREACH_DISPATCHED,
]

TERMINAL = [PipelineState.COMPLETED, PipelineState.FAILED, PipelineState.CANCELLED]

_FORWARD_PAIRS = {(s, e) for s, e, _ in FORWARD_PATH}

# Forward events that skip or repeat a stage
OUT_OF_ORDER: list[tuple[PipelineState, str]] = [
    (state, event.value)
    for state in NON_TERMINAL
    for event in (
        PipelineEvent.LOAD_CREATORS,
        PipelineEvent.DRAFT_CONTRACTS,
        PipelineEvent.DISPATCH_OUTREACH,
        PipelineEvent.COMPLETE,
    )
    if (state, event) not in _FORWARD_PAIRS
]


class TestForwardPath:
    """The forward path visits each stage exactly once, in order."""

    @pytest.mark.parametrize(("from_state", "event", "to_state"), FORWARD_PATH)
    def test_valid_transition(
        self, from_state: PipelineState, event: str, to_state: PipelineState
    ) -> None:
        sm = PipelineStateMachine(initial_state=from_state)
        assert sm.trigger(event) == to_state
        assert sm.state == to_state

    def test_full_run_history(self) -> None:
        sm = PipelineStateMachine()
        for _, event, _ in FORWARD_PATH:
            sm.trigger(event)
        assert sm.state == PipelineState.COMPLETED
        assert sm.history == FORWARD_PATH

    @pytest.mark.parametrize(("state", "event"), OUT_OF_ORDER)
    def test_skipping_or_repeating_a_stage_raises(self, state: PipelineState, event: str) -> None:
        sm = PipelineStateMachine(initial_state=state)
        with pytest.raises(InvalidTransitionError) as exc_info:
            sm.trigger(event)
        assert exc_info.value.current_state == state
        assert exc_info.value.event == event
        assert sm.state == state


class TestFailAndCancel:
    """FAILED and CANCELLED are reachable from every non-terminal state."""

    @pytest.mark.parametrize("state", NON_TERMINAL)
    def test_fail(self, state: PipelineState) -> None:
        sm = PipelineStateMachine(initial_state=state)
        assert sm.trigger(PipelineEvent.FAIL) == PipelineState.FAILED
        assert sm.is_terminal

    @pytest.mark.parametrize("state", NON_TERMINAL)
    def test_cancel(self, state: PipelineState) -> None:
        sm = PipelineStateMachine(initial_state=state)
        assert sm.trigger(PipelineEvent.CANCEL) == PipelineState.CANCELLED
        assert sm.is_terminal


class TestTerminalStates:
    """Terminal states reject every event."""

    @pytest.mark.parametrize("state", TERMINAL)
    @pytest.mark.parametrize("event", [e.value for e in PipelineEvent])
    def test_terminal_rejects_all_events(self, state: PipelineState, event: str) -> None:
        sm = PipelineStateMachine(initial_state=state)
        with pytest.raises(InvalidTransitionError):
            sm.trigger(event)
        assert sm.history == []

    @pytest.mark.parametrize("state", TERMINAL)
    def test_no_valid_events(self, state: PipelineState) -> None:
        sm = PipelineStateMachine(initial_state=state)
        assert sm.get_valid_events() == []
        assert not sm.can_trigger(PipelineEvent.FAIL)


class TestIntrospection:
    """Tests for can_trigger, get_valid_events and history."""

    def test_initial_state(self) -> None:
        sm = PipelineStateMachine()
        assert sm.state == PipelineState.INITIATED
        assert not sm.is_terminal
        assert sm.history == []

    def test_valid_events_from_initiated(self) -> None:
        sm = PipelineStateMachine()
        assert sm.get_valid_events() == ["cancel", "fail", "load_creators"]

    def test_can_trigger(self) -> None:
        sm = PipelineStateMachine()
        assert sm.can_trigger("load_creators")
        assert not sm.can_trigger("complete")

    def test_history_is_a_copy(self) -> None:
        sm = PipelineStateMachine()
        sm.trigger("load_creators")
        sm.history.clear()
        assert len(sm.history) == 1

    def test_unknown_event_raises(self) -> None:
        sm = PipelineStateMachine()
        with pytest.raises(InvalidTransitionError):
            sm.trigger("teleport")
