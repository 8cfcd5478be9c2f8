"""Transition map defining all valid (state, event) -> state mappings."""

from enum import StrEnum

from responder.domain.types import PipelineState


class PipelineEvent(StrEnum):
    """Events that move a webhook request through the pipeline."""

    AUTHENTICATE = "authenticate"
    PARSE = "parse"
    CHECK_DEDUPE = "check_dedupe"
    SKIP_DUPLICATE = "skip_duplicate"
    RESOLVE_IDENTITY = "resolve_identity"
    COMPLETE_GENERATION = "complete_generation"
    SEND_REPLY = "send_reply"
    ACKNOWLEDGE = "acknowledge"
    FAIL = "fail"


# All valid (current_state, event_string) -> next_state mappings.
# Any pair not in this dict is an invalid transition.
TRANSITIONS: dict[tuple[PipelineState, str], PipelineState] = {
    (PipelineState.RECEIVED, PipelineEvent.AUTHENTICATE): PipelineState.AUTHENTICATED,
    (PipelineState.AUTHENTICATED, PipelineEvent.PARSE): PipelineState.PARSED,
    (PipelineState.PARSED, PipelineEvent.CHECK_DEDUPE): PipelineState.DEDUPE_CHECKED,
    # Redeliveries end here without side effects
    (PipelineState.DEDUPE_CHECKED, PipelineEvent.SKIP_DUPLICATE): PipelineState.ACKNOWLEDGED,
    (PipelineState.DEDUPE_CHECKED, PipelineEvent.RESOLVE_IDENTITY): (
        PipelineState.IDENTITY_RESOLVED
    ),
    (PipelineState.IDENTITY_RESOLVED, PipelineEvent.COMPLETE_GENERATION): (
        PipelineState.GENERATION_COMPLETE
    ),
    (PipelineState.GENERATION_COMPLETE, PipelineEvent.SEND_REPLY): PipelineState.REPLY_SENT,
    (PipelineState.REPLY_SENT, PipelineEvent.ACKNOWLEDGE): PipelineState.ACKNOWLEDGED,
}

# States that reject all events -- no outgoing transitions allowed.
TERMINAL_STATES: frozenset[PipelineState] = frozenset(
    {PipelineState.ACKNOWLEDGED, PipelineState.FAILED}
)

# FAIL is valid from every non-terminal state.
TRANSITIONS.update(
    {
        (state, PipelineEvent.FAIL): PipelineState.FAILED
        for state in PipelineState
        if state not in TERMINAL_STATES
    }
)
