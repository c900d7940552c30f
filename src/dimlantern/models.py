"""Data models for processing sessions and the phase workflow."""

from __future__ import annotations

import random
import string
import time
from dataclasses import asdict, dataclass, field
from typing import Any

from dimlantern.entities.models import SessionRef

_ID_ALPHABET = string.ascii_lowercase + string.digits
_ID_SUFFIX_LENGTH = 9


def now_ms() -> int:
    """Current wall-clock time as integer epoch milliseconds."""
    return int(time.time() * 1000)


def generate_id() -> str:
    """Return a practically unique id of the form ``<epoch-ms>-<suffix>``.

    The suffix is nine lowercase base-36 characters. Uniqueness comes from
    the timestamp plus randomness and is not cryptographic.
    """
    suffix = "".join(random.choices(_ID_ALPHABET, k=_ID_SUFFIX_LENGTH))
    return f"{now_ms()}-{suffix}"


@dataclass
class PhaseRecord:
    """One phase of a processing session.

    ``number``, ``name``, ``responsible_agent`` and ``description`` are
    copied from the phase table at session creation. ``prompt`` is a cache
    only; the authoritative prompt is always rebuilt from session state.
    """

    number: int
    name: str
    responsible_agent: str
    description: str
    prompt: str = ""
    response: str = ""
    completed: bool = False


@dataclass
class ProcessingSession:
    """A transcript's unit of work through the Extract/Summarize/Refine pipeline."""

    id: str
    title: str
    date: str
    transcript: str
    tags: list[str] = field(default_factory=list)
    current_phase_index: int = 1
    phases: list[PhaseRecord] = field(default_factory=list)
    created: int = field(default_factory=now_ms)
    modified: int = field(default_factory=now_ms)

    @property
    def ref(self) -> SessionRef:
        """Provenance reference stored on entities this session contributes to."""
        return SessionRef(id=self.id, title=self.title, date=self.date)

    def phase(self, number: int) -> PhaseRecord:
        """Return the phase record with the given 1-based number."""
        return self.phases[number - 1]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProcessingSession:
        """Rebuild a session from its stored dictionary form.

        Records written without ``tags`` or timestamps load with defaults.
        """
        phases = [PhaseRecord(**p) for p in data.get("phases", [])]
        return cls(
            id=data["id"],
            title=data["title"],
            date=data.get("date", ""),
            transcript=data.get("transcript", ""),
            tags=list(data.get("tags") or []),
            current_phase_index=data.get("current_phase_index", 1),
            phases=phases,
            created=data.get("created") or now_ms(),
            modified=data.get("modified") or now_ms(),
        )


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating the current phase response."""

    valid: bool
    error: str | None = None


@dataclass
class MergeResult:
    """Counts reported to the operator after entities are merged."""

    locations_created: int = 0
    locations_updated: int = 0
    plot_threads_created: int = 0
    plot_threads_updated: int = 0

    @property
    def total_created(self) -> int:
        return self.locations_created + self.plot_threads_created
