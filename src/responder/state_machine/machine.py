"""RequestStateMachine class with trigger, fail, and history."""

from __future__ import annotations

from responder.domain.errors import InvalidTransitionError
from responder.domain.types import FailureKind, PipelineState
from responder.state_machine.transitions import TERMINAL_STATES, TRANSITIONS, PipelineEvent


class RequestStateMachine:
    """Finite state machine tracking one webhook request through the pipeline.

    Validates transitions against the transition map and records the full
    history, which the handler logs when the request ends.

    Usage::

        sm = RequestStateMachine()
        sm.trigger("authenticate")   # -> AUTHENTICATED
        sm.trigger("parse")          # -> PARSED
        sm.fail(FailureKind.VALIDATION)  # -> FAILED (terminal)
    """

    def __init__(self, initial_state: PipelineState = PipelineState.RECEIVED) -> None:
        self._state: PipelineState = initial_state
        self._history: list[tuple[PipelineState, str, PipelineState]] = []
        self._failure_kind: FailureKind | None = None

    @property
    def state(self) -> PipelineState:
        """Return the current pipeline state."""
        return self._state

    @property
    def is_terminal(self) -> bool:
        """Return True if the machine is in a terminal state (ACKNOWLEDGED or FAILED)."""
        return self._state in TERMINAL_STATES

    @property
    def failure_kind(self) -> FailureKind | None:
        """Why the request failed, once it has."""
        return self._failure_kind

    @property
    def history(self) -> list[tuple[PipelineState, str, PipelineState]]:
        """Return a copy of the transition history.

        Each entry is a ``(from_state, event, to_state)`` tuple recorded in
        chronological order.
        """
        return list(self._history)

    def trigger(self, event: str) -> PipelineState:
        """Apply an event to the current state and transition.

        Args:
            event: The event string (e.g. ``"parse"``).

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

    def fail(self, kind: FailureKind) -> PipelineState:
        """Move to FAILED, recording *kind*."""
        new_state = self.trigger(PipelineEvent.FAIL)
        self._failure_kind = kind
        return new_state

    def get_valid_events(self) -> list[str]:
        """Return a sorted list of events valid from the current state.

        Returns an empty list if the machine is in a terminal state.
        """
        if self.is_terminal:
            return []
        return sorted(event for state, event in TRANSITIONS if state == self._state)
