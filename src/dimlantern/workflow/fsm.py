"""Phase lifecycle finite state machine for processing sessions.

Each advancement gets its own FSM instance, initialized at the session's
current lifecycle state. Used to validate that an advancement is legal
before PhaseStateMachine mutates the session.

The FSM is purely a validation tool -- it does NOT touch the session or
have on_enter_state callbacks.
"""

from __future__ import annotations

from statemachine import State, StateMachine

from dimlantern.exceptions import PhaseTransitionError

# Lifecycle state for each 1-based phase index while that phase is open
PHASE_STATES = ("extract", "summarize", "refine")
DONE = "done"


class PhaseLifecycleSM(StateMachine):
    """Four-state lifecycle for a session's journey through the phases.

    States:
        extract   -- Phase 1 open.
        summarize -- Phase 2 open.
        refine    -- Phase 3 open.
        done      -- Every phase completed; advancing again is a self-loop.

    No state has ``final=True`` so ``done`` can accept repeat advances.
    """

    extract = State("extract", initial=True, value="extract")
    summarize = State("summarize", value="summarize")
    refine = State("refine", value="refine")
    done = State("done", value="done")

    advance = (
        extract.to(summarize)
        | summarize.to(refine)
        | refine.to(done)
        | done.to.itself()
    )


def lifecycle_state(phase_index: int, complete: bool) -> str:
    """Map a session's phase index and completion to an FSM state value.

    Raises:
        PhaseTransitionError: If *phase_index* is outside 1..len(PHASE_STATES).
    """
    if not 1 <= phase_index <= len(PHASE_STATES):
        raise PhaseTransitionError(
            f"Phase index {phase_index} is outside 1..{len(PHASE_STATES)}"
        )
    if complete:
        return DONE
    return PHASE_STATES[phase_index - 1]


def create_fsm(current_state: str) -> PhaseLifecycleSM:
    """Create an FSM instance at the given state.

    Args:
        current_state: One of 'extract', 'summarize', 'refine', 'done'.

    Returns:
        A PhaseLifecycleSM positioned at *current_state*.
    """
    return PhaseLifecycleSM(start_value=current_state)
