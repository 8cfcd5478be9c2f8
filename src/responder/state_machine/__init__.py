"""Per-request pipeline state machine with transition validation."""

from responder.state_machine.machine import RequestStateMachine
from responder.state_machine.transitions import (
    TERMINAL_STATES,
    TRANSITIONS,
    PipelineEvent,
)

__all__ = [
    "PipelineEvent",
    "RequestStateMachine",
    "TERMINAL_STATES",
    "TRANSITIONS",
]
