"""Tests for the phase workflow: phase table, lifecycle FSM, prompts, and PhaseStateMachine.

Covers:
  - Session creation at phase 1 with three incomplete phases
  - Validation messages for empty and short responses
  - Advancement, capping at the last phase, and progress percentages
  - Lifecycle FSM transitions including the done self-loop
  - Prompt generation for each phase
"""

from __future__ import annotations

import re

import pytest

from dimlantern.exceptions import PhaseTransitionError
from dimlantern.workflow.fsm import DONE, PhaseLifecycleSM, create_fsm, lifecycle_state
from dimlantern.workflow.machine import EMPTY_RESPONSE_ERROR, PhaseStateMachine
from dimlantern.workflow.phases import DEFAULT_PHASES, PhaseDefinition, PhaseDefinitions
from dimlantern.workflow.prompts import VALIDATED_MARKER


# ======================================================================
# Phase table
# ======================================================================


class TestPhaseDefinitions:
    """Static phase table."""

    def test_default_table(self):
        names = [p.name for p in DEFAULT_PHASES]
        assert names == ["Extract", "Summarize", "Refine"]
        assert [p.responsible_agent for p in DEFAULT_PHASES] == [
            "Claude Sonnet 4",
            "Claude Sonnet 4",
            "Gemini 2.5 Pro",
        ]

    def test_misnumbered_table_rejected(self):
        """Phases must be numbered 1..3 in order."""
        with pytest.raises(ValueError):
            PhaseDefinitions(
                (
                    PhaseDefinition(2, "Summarize", "a", "b"),
                    PhaseDefinition(1, "Extract", "a", "b"),
                    PhaseDefinition(3, "Refine", "a", "b"),
                )
            )


# ======================================================================
# Lifecycle FSM
# ======================================================================


class TestLifecycleFSM:
    """python-statemachine lifecycle used to check advancement."""

    @pytest.mark.parametrize(
        "start,expected",
        [
            ("extract", "summarize"),
            ("summarize", "refine"),
            ("refine", "done"),
            ("done", "done"),
        ],
    )
    def test_advance(self, start, expected):
        fsm = create_fsm(start)
        fsm.advance()
        assert fsm.current_state.value == expected

    def test_default_start_is_extract(self):
        assert PhaseLifecycleSM().current_state.value == "extract"

    def test_lifecycle_state_mapping(self):
        assert lifecycle_state(1, False) == "extract"
        assert lifecycle_state(3, False) == "refine"
        assert lifecycle_state(3, True) == DONE

    @pytest.mark.parametrize("index", [0, 4, -1])
    def test_out_of_range_index(self, index):
        with pytest.raises(PhaseTransitionError):
            lifecycle_state(index, False)


# ======================================================================
# PhaseStateMachine
# ======================================================================


class TestCreateSession:
    def test_new_session_state(self, session):
        """New sessions start at phase 1 with three incomplete phases."""
        assert session.current_phase_index == 1
        assert len(session.phases) == 3
        assert all(not p.completed for p in session.phases)
        assert all(p.response == "" for p in session.phases)
        assert session.tags == ["combat"]

    def test_id_format(self, session):
        assert re.fullmatch(r"\d+-[a-z0-9]{9}", session.id)

    def test_ids_differ(self, machine):
        a = machine.create_session("A", "2024-01-01", "t")
        b = machine.create_session("B", "2024-01-01", "t")
        assert a.id != b.id

    def test_timestamps_set(self, session):
        assert session.created > 0
        assert session.modified >= session.created


class TestValidation:
    """Response-length heuristic."""

    def test_empty_response(self, machine, session):
        result = machine.validate_phase(session)
        assert not result.valid
        assert result.error == EMPTY_RESPONSE_ERROR
        assert "Please paste the AI response" in result.error

    def test_whitespace_only_counts_as_empty(self, machine, session):
        machine.update_response(session, "   \n\t ")
        assert machine.validate_phase(session).error == EMPTY_RESPONSE_ERROR

    def test_short_response(self, machine, session):
        machine.update_response(session, "x" * 50)
        result = machine.validate_phase(session)
        assert not result.valid
        assert "too short" in result.error
        assert "50 characters" in result.error

    def test_length_measured_after_trim(self, machine, session):
        """99 characters padded with whitespace is still too short."""
        machine.update_response(session, "   " + "x" * 99 + "   ")
        assert not machine.validate_phase(session).valid

    def test_minimum_length_accepted(self, machine, session):
        machine.update_response(session, "x" * 100)
        assert machine.validate_phase(session).valid

    def test_long_response_accepted(self, machine, session):
        machine.update_response(session, "y" * 150)
        result = machine.validate_phase(session)
        assert result.valid
        assert result.error is None

    def test_custom_minimum(self, session):
        machine = PhaseStateMachine(min_response_length=10)
        machine.update_response(session, "twelve chars")
        assert machine.validate_phase(session).valid


class TestAdvance:
    """Phase advancement and progress."""

    def test_advance_marks_completed(self, machine, session):
        machine.advance_phase(session)
        assert session.phases[0].completed
        assert session.current_phase_index == 2

    def test_progress_percentages(self, machine, session):
        """0 -> 33 -> 67 -> 100 as phases complete."""
        seen = [machine.progress_percent(session)]
        for _ in range(3):
            machine.advance_phase(session)
            seen.append(machine.progress_percent(session))
        assert seen == [0, 33, 67, 100]

    def test_index_caps_at_last_phase(self, machine, session):
        for _ in range(5):
            machine.advance_phase(session)
        assert session.current_phase_index == 3
        assert machine.is_complete(session)
        assert machine.progress_percent(session) == 100

    def test_complete_phase_rejects_without_advancing(self, machine, session):
        result = machine.complete_phase(session, "too short")
        assert not result.valid
        assert session.current_phase_index == 1
        assert not session.phases[0].completed
        # The response is still recorded as a draft
        assert session.phases[0].response == "too short"

    def test_complete_phase_advances(self, machine, session, long_response):
        result = machine.complete_phase(session, long_response)
        assert result.valid
        assert session.current_phase_index == 2

    def test_complete_phase_uses_saved_draft(self, machine, session, long_response):
        machine.update_response(session, long_response)
        assert machine.complete_phase(session).valid

    def test_full_run(self, machine, session, complete_all):
        complete_all(machine, session)
        assert machine.is_complete(session)
        assert session.current_phase_index == 3

    def test_corrupt_index_raises(self, machine, session):
        session.current_phase_index = 7
        with pytest.raises((PhaseTransitionError, IndexError)):
            machine.advance_phase(session)


class TestPrompts:
    """Prompt text for each phase."""

    def test_extract_prompt(self, machine, session):
        prompt = machine.generate_prompt(session)
        assert "Session 47" in prompt
        assert "2024-12-15" in prompt
        assert "The party entered the tavern..." in prompt
        assert "### LOCATIONS" in prompt
        assert "### PLOT THREADS" in prompt

    def test_summarize_prompt_embeds_extraction(self, machine, session, long_response):
        machine.complete_phase(session, long_response)
        prompt = machine.generate_prompt(session)
        assert long_response in prompt
        assert "**Type**" in prompt
        assert "**Status**" in prompt

    def test_refine_prompt_embeds_summaries(self, machine, session, long_response):
        summaries = "# The Rusty Dragon\n\n" + "Summary text. " * 10
        machine.complete_phase(session, long_response)
        machine.complete_phase(session, summaries)
        prompt = machine.generate_prompt(session)
        assert summaries in prompt
        assert VALIDATED_MARKER in prompt

    def test_prompt_is_pure(self, machine, session):
        assert machine.generate_prompt(session) == machine.generate_prompt(session)
