"""Dim Lantern - turn session transcripts into a cross-referenced campaign wiki."""

__version__ = "0.1.0"

from dimlantern.entities.models import Location, PlotThread, SessionRef
from dimlantern.models import MergeResult, PhaseRecord, ProcessingSession, ValidationResult

__all__ = [
    "Location",
    "MergeResult",
    "PhaseRecord",
    "PlotThread",
    "ProcessingSession",
    "SessionRef",
    "ValidationResult",
    "__version__",
]
