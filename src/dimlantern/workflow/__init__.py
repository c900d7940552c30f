"""Three-phase documentation workflow: phase table, lifecycle FSM, prompts."""

from dimlantern.workflow.machine import PhaseStateMachine
from dimlantern.workflow.phases import DEFAULT_PHASES, PhaseDefinition, PhaseDefinitions
from dimlantern.workflow.prompts import VALIDATED_MARKER

__all__ = [
    "DEFAULT_PHASES",
    "PhaseDefinition",
    "PhaseDefinitions",
    "PhaseStateMachine",
    "VALIDATED_MARKER",
]
