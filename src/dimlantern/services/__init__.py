"""Services facade for Dim Lantern.

Public API boundary for the CLI and future clients. Each service takes an
open KnowledgeStore and returns plain results or raises dimlantern
exceptions.
"""

from dimlantern.services.compendium import CompendiumService, CompendiumStats
from dimlantern.services.workflow import PhaseOutcome, WorkflowService

__all__ = ["CompendiumService", "CompendiumStats", "PhaseOutcome", "WorkflowService"]
