"""Shared pytest fixtures for Dim Lantern tests.

Provides a phase machine, a temporary knowledge store, sample Refine-phase
wiki Markdown and a helper that drives a session through every phase.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from dimlantern.entities.models import SessionRef
from dimlantern.models import ProcessingSession
from dimlantern.storage import KnowledgeStore
from dimlantern.workflow.machine import PhaseStateMachine

# Comfortably above the 100-character minimum
LONG_RESPONSE = "Locations: the tavern, the old mill. Plot threads: the missing caravan. " * 3

REFINED_WIKI = """# The Rusty Dragon

**Type**: Building | **Region**: Northern Marches

## Overview
A weathered tavern at the edge of town where the party first met.

## Notable NPCs
- Ameiko Kaijitsu, the owner

## Connections
- [[Northern Marches]]
- [[Blood Moon Cult]]

---

# Blood Moon Cult

**Status**: Active | **Priority**: High

## Summary
A secretive cult performing rituals beneath the red moon.

## Unresolved Hooks
- Who leads the cult?

## Related Locations
- [[The Rusty Dragon]]
"""

FOLLOWUP_WIKI = """# the rusty dragon

**Type**: Inn | **Region**: Sandpoint

## Overview
Rebuilt after the fire, the tavern reopens with a new sign.

---

# Blood Moon Cult

**Status**: Resolved | **Priority**: High

## Summary
The cult was broken at the ritual site in the hills.
"""


@pytest.fixture
def machine() -> PhaseStateMachine:
    """Phase machine with the default phase table."""
    return PhaseStateMachine()


@pytest.fixture
def session(machine: PhaseStateMachine) -> ProcessingSession:
    """A fresh session positioned at phase 1."""
    return machine.create_session(
        "Session 47", "2024-12-15", "The party entered the tavern...", ["combat"]
    )


@pytest.fixture
def session_ref() -> SessionRef:
    return SessionRef(id="1734220800000-abc123def", title="Session 47", date="2024-12-15")


@pytest.fixture
async def store(tmp_path: Path):
    """Open a knowledge store on a temporary file database."""
    async with KnowledgeStore(tmp_path / "test.db") as knowledge_store:
        yield knowledge_store


def run_all_phases(
    machine: PhaseStateMachine, session: ProcessingSession, final: str = REFINED_WIKI
) -> ProcessingSession:
    """Complete every phase, using *final* as the Refine response."""
    for number in range(1, machine.phase_count + 1):
        response = final if number == machine.phase_count else LONG_RESPONSE
        result = machine.complete_phase(session, response)
        assert result.valid, result.error
    return session


@pytest.fixture
def long_response() -> str:
    return LONG_RESPONSE


@pytest.fixture
def refined_wiki() -> str:
    return REFINED_WIKI


@pytest.fixture
def followup_wiki() -> str:
    """Second session's Refine output revisiting both entities."""
    return FOLLOWUP_WIKI


@pytest.fixture
def complete_all():
    """Return the helper that drives a session through every phase."""
    return run_all_phases
