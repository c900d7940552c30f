"""Exception types for the Dim Lantern workflow and knowledge base."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dimlantern.models import ValidationResult


class DimLanternError(Exception):
    """Base class for all errors raised by dimlantern."""


class InvalidInputError(DimLanternError):
    """Required session input (title or transcript) is missing."""


class PhaseValidationError(DimLanternError):
    """The current phase response was rejected -- session state is unchanged."""

    def __init__(self, result: ValidationResult) -> None:
        super().__init__(result.error or "Phase response rejected")
        self.result = result


class PhaseTransitionError(DimLanternError):
    """The session's phase index is outside the phase table."""


class StorageError(DimLanternError):
    """A persistence call failed; the triggering operation is aborted."""


class SessionNotFoundError(DimLanternError):
    """No processing session exists for the requested id."""


class NothingToExportError(DimLanternError):
    """An export was requested but there is no completed content."""
