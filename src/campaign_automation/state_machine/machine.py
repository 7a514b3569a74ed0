"""PipelineStateMachine class with trigger, history, and valid_events."""

from __future__ import annotations

from campaign_automation.domain.errors import InvalidTransitionError
from campaign_automation.domain.types import PipelineState
from campaign_automation.state_machine.transitions import TERMINAL_STATES, TRANSITIONS


class PipelineStateMachine:
    """Finite state machine governing one automation run.

    Tracks the current pipeline state, validates transitions against the
    transition map, and records the history of all state changes.

    Usage::

        sm = PipelineStateMachine()
        sm.trigger("load_creators")      # -> CREATORS_LOADED
        sm.trigger("draft_contracts")    # -> CONTRACTS_DRAFTED
        sm.trigger("dispatch_outreach")  # -> OUTREACH_DISPATCHED
        sm.trigger("complete")           # -> COMPLETED (terminal)
    """

    def __init__(
        self,
        initial_state: PipelineState = PipelineState.INITIATED,
    ) -> None:
        self._state: PipelineState = initial_state
        self._history: list[tuple[PipelineState, str, PipelineState]] = []

    @property
    def state(self) -> PipelineState:
        """Return the current pipeline state."""
        return self._state

    @property
    def is_terminal(self) -> bool:
        """Return True if the machine is in COMPLETED, FAILED or CANCELLED."""
        return self._state in TERMINAL_STATES

    @property
    def history(self) -> list[tuple[PipelineState, str, PipelineState]]:
        """Return a copy of the transition history.

        Each entry is a ``(from_state, event, to_state)`` tuple recorded in
        chronological order.
        """
        return list(self._history)

    def can_trigger(self, event: str) -> bool:
        """Return True if *event* is valid from the current state."""
        return not self.is_terminal and (self._state, event) in TRANSITIONS

    def trigger(self, event: str) -> PipelineState:
        """Apply an event to the current state and transition.

        Args:
            event: The event string (e.g. ``"load_creators"``).

        Returns:
            The new state after the transition.

        Raises:
            InvalidTransitionError: If the transition is not allowed from
                the current state, or if the machine is in a terminal state.
        """
        if self.is_terminal:
            raise InvalidTransitionError(self._state, event)

        key = (self._state, event)
        if key not in TRANSITIONS:
            raise InvalidTransitionError(self._state, event)

        old_state = self._state
        new_state = TRANSITIONS[key]
        self._history.append((old_state, event, new_state))
        self._state = new_state
        return new_state

    def get_valid_events(self) -> list[str]:
        """Return a sorted list of events valid from the current state.

        Returns an empty list if the machine is in a terminal state.
        """
        if self.is_terminal:
            return []
        return sorted(event for state, event in TRANSITIONS if state == self._state)
