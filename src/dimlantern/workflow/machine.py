"""PhaseStateMachine: a session's progression through Extract, Summarize, Refine.

The machine owns session creation, prompt generation, response validation
and phase advancement. It is synchronous and side-effect free apart from
mutating the session passed in; persistence is the caller's job.

Validation is a deliberately coarse accept/reject heuristic on response
length. It never parses the response.
"""

from __future__ import annotations

import logging

from dimlantern.constants import MIN_RESPONSE_LENGTH
from dimlantern.models import PhaseRecord, ProcessingSession, ValidationResult, generate_id
from dimlantern.workflow.fsm import DONE, PHASE_STATES, create_fsm, lifecycle_state
from dimlantern.workflow.phases import DEFAULT_PHASES, PhaseDefinitions
from dimlantern.workflow.prompts import PROMPT_BUILDERS

logger = logging.getLogger(__name__)

EMPTY_RESPONSE_ERROR = "Please paste the AI response - the response is empty"


class PhaseStateMachine:
    """Drives processing sessions through the phase table.

    Usage:
        machine = PhaseStateMachine()
        session = machine.create_session("Session 47", "2024-12-15", transcript)
        prompt = machine.generate_prompt(session)
        machine.update_response(session, pasted)
        if machine.validate_phase(session).valid:
            machine.advance_phase(session)
    """

    def __init__(
        self,
        definitions: PhaseDefinitions = DEFAULT_PHASES,
        min_response_length: int = MIN_RESPONSE_LENGTH,
    ) -> None:
        self.definitions = definitions
        self.min_response_length = min_response_length

    @property
    def phase_count(self) -> int:
        return len(self.definitions)

    def create_session(
        self,
        title: str,
        date: str,
        transcript: str,
        tags: list[str] | None = None,
    ) -> ProcessingSession:
        """Create a new session positioned at phase 1.

        Non-empty title and transcript are a precondition enforced by the
        caller (see WorkflowService.create_session).
        """
        session = ProcessingSession(
            id=generate_id(),
            title=title,
            date=date,
            transcript=transcript,
            tags=list(tags or []),
            current_phase_index=1,
            phases=self.definitions.new_records(),
        )
        logger.debug("Created processing session %s: %s", session.id, title)
        return session

    def current_phase(self, session: ProcessingSession) -> PhaseRecord:
        return session.phase(session.current_phase_index)

    def generate_prompt(self, session: ProcessingSession) -> str:
        """Build the prompt for the session's current phase.

        Pure function of session state; returns "" for an unknown phase.
        """
        builder = PROMPT_BUILDERS.get(self.current_phase(session).number)
        if builder is None:
            return ""
        return builder(session)

    def validate_phase(self, session: ProcessingSession) -> ValidationResult:
        """Check that the current phase has a plausible response."""
        response = (self.current_phase(session).response or "").strip()
        if not response:
            return ValidationResult(valid=False, error=EMPTY_RESPONSE_ERROR)
        if len(response) < self.min_response_length:
            return ValidationResult(
                valid=False,
                error=(
                    f"Response seems too short ({len(response)} characters, "
                    f"minimum {self.min_response_length}). Please check the AI output."
                ),
            )
        return ValidationResult(valid=True)

    def advance_phase(self, session: ProcessingSession) -> ProcessingSession:
        """Mark the current phase completed and move to the next one.

        Does not re-validate: callers check validate_phase() first. Once on
        the last phase the index stays put; repeat calls are no-ops.

        Raises:
            PhaseTransitionError: If the session's phase index is out of range.
        """
        fsm = create_fsm(
            lifecycle_state(session.current_phase_index, self.is_complete(session))
        )
        fsm.advance()

        self.current_phase(session).completed = True
        target = fsm.current_state.value
        if target != DONE:
            session.current_phase_index = PHASE_STATES.index(target) + 1

        logger.debug(
            "Session %s advanced to %s (phase %d/%d)",
            session.id,
            target,
            session.current_phase_index,
            self.phase_count,
        )
        return session

    def complete_phase(
        self, session: ProcessingSession, response: str | None = None
    ) -> ValidationResult:
        """Store *response* (if given), validate, and advance only when valid."""
        if response is not None:
            self.update_response(session, response)
        result = self.validate_phase(session)
        if result.valid:
            self.advance_phase(session)
        return result

    def is_complete(self, session: ProcessingSession) -> bool:
        return all(phase.completed for phase in session.phases)

    def progress_percent(self, session: ProcessingSession) -> int:
        """Whole-number percentage of completed phases, rounded half up."""
        completed = sum(1 for phase in session.phases if phase.completed)
        return int(100 * completed / self.phase_count + 0.5)

    def update_response(self, session: ProcessingSession, response: str) -> ProcessingSession:
        """Overwrite the current phase's response."""
        self.current_phase(session).response = response
        return session
