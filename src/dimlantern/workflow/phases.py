"""Phase definition table for the three-phase documentation workflow."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from dimlantern.constants import PHASE_COUNT
from dimlantern.models import PhaseRecord


@dataclass(frozen=True)
class PhaseDefinition:
    """Static description of one workflow phase."""

    number: int
    name: str
    responsible_agent: str
    description: str

    def new_record(self) -> PhaseRecord:
        """Fresh, incomplete record for a new session."""
        return PhaseRecord(
            number=self.number,
            name=self.name,
            responsible_agent=self.responsible_agent,
            description=self.description,
        )


@dataclass(frozen=True)
class PhaseDefinitions:
    """Ordered, immutable phase table.

    Phases must be numbered 1..PHASE_COUNT in order.
    """

    phases: tuple[PhaseDefinition, ...]

    def __post_init__(self) -> None:
        numbers = [phase.number for phase in self.phases]
        if numbers != list(range(1, PHASE_COUNT + 1)):
            raise ValueError(
                f"Phase table must number phases 1..{PHASE_COUNT} in order, got {numbers}"
            )

    def __len__(self) -> int:
        return len(self.phases)

    def __iter__(self) -> Iterator[PhaseDefinition]:
        return iter(self.phases)

    def get(self, number: int) -> PhaseDefinition:
        return self.phases[number - 1]

    def new_records(self) -> list[PhaseRecord]:
        return [phase.new_record() for phase in self.phases]


DEFAULT_PHASES = PhaseDefinitions(
    (
        PhaseDefinition(
            number=1,
            name="Extract",
            responsible_agent="Claude Sonnet 4",
            description="Extract locations and plot threads from transcript",
        ),
        PhaseDefinition(
            number=2,
            name="Summarize",
            responsible_agent="Claude Sonnet 4",
            description="Generate wiki-style summaries for locations",
        ),
        PhaseDefinition(
            number=3,
            name="Refine",
            responsible_agent="Gemini 2.5 Pro",
            description="Validate and refine summaries for accuracy",
        ),
    )
)
