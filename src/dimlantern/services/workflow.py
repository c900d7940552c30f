"""Workflow service facade: processing sessions end to end.

Provides async request/response calls for creating sessions, fetching
prompts, recording responses and completing phases. When a session's last
phase completes, its Refine output is parsed and merged into the
knowledge base.

Each call loads the session from the store, applies the PhaseStateMachine
and writes the session back. Nothing is cached between calls.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date as date_cls
from pathlib import Path

from dimlantern.entities.merger import merge_session
from dimlantern.exceptions import (
    InvalidInputError,
    PhaseValidationError,
    SessionNotFoundError,
)
from dimlantern.export import export_session_json, export_wiki
from dimlantern.models import MergeResult, ProcessingSession, ValidationResult
from dimlantern.storage import KnowledgeStore
from dimlantern.tags import all_tags, filter_sessions, normalize_tags
from dimlantern.workflow.machine import PhaseStateMachine

logger = logging.getLogger(__name__)


@dataclass
class PhaseOutcome:
    """Result of completing a phase."""

    session: ProcessingSession
    validation: ValidationResult
    merge: MergeResult | None = None

    @property
    def session_complete(self) -> bool:
        return self.merge is not None


class WorkflowService:
    """Async facade for processing-session management.

    Usage::

        async with KnowledgeStore(db_path) as store:
            svc = WorkflowService(store)
            session = await svc.create_session("Session 47", "2024-12-15", text)
            prompt = await svc.prompt(session.id)
            outcome = await svc.complete_phase(session.id, pasted_response)
    """

    def __init__(
        self, store: KnowledgeStore, machine: PhaseStateMachine | None = None
    ) -> None:
        self._store = store
        self.machine = machine or PhaseStateMachine()

    async def _require(self, session_id: str) -> ProcessingSession:
        session = await self._store.sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session not found: {session_id}")
        return session

    async def create_session(
        self,
        title: str,
        date: str | None,
        transcript: str,
        tags: Sequence[str] | None = None,
    ) -> ProcessingSession:
        """Create and persist a new session.

        Args:
            title: Session title (required, trimmed).
            date: Calendar date string; defaults to today (ISO format).
            transcript: Raw transcript text (required, trimmed).
            tags: Tag strings; normalised to lowercase without repeats.

        Raises:
            InvalidInputError: If title or transcript is blank.
        """
        title = (title or "").strip()
        transcript = (transcript or "").strip()
        if not title or not transcript:
            raise InvalidInputError("A session needs both a title and a transcript")

        session = self.machine.create_session(
            title,
            date or date_cls.today().isoformat(),
            transcript,
            normalize_tags(tags),
        )
        await self._store.sessions.put(session)
        logger.info("Created session %s: %s", session.id, title)
        return session

    async def get_session(self, session_id: str) -> ProcessingSession:
        return await self._require(session_id)

    async def list_sessions(
        self, query: str = "", tags: Sequence[str] = ()
    ) -> list[ProcessingSession]:
        """List sessions (newest first) matching *query* and every tag in *tags*."""
        sessions = await self._store.sessions.get_all()
        return filter_sessions(sessions, query, normalize_tags(tags))

    async def list_tags(self) -> list[str]:
        return all_tags(await self._store.sessions.get_all())

    async def prompt(self, session_id: str) -> str:
        """Return the prompt for the session's current phase."""
        session = await self._require(session_id)
        return self.machine.generate_prompt(session)

    async def save_response(self, session_id: str, response: str) -> ProcessingSession:
        """Store a draft response for the current phase without validating."""
        session = await self._require(session_id)
        self.machine.update_response(session, response)
        await self._store.sessions.put(session)
        return session

    async def complete_phase(
        self, session_id: str, response: str | None = None
    ) -> PhaseOutcome:
        """Validate the current phase response and advance.

        When the session becomes (or already is) complete the Refine output
        is merged into the knowledge base; re-merging is idempotent.

        Raises:
            PhaseValidationError: If the response is empty or too short.
                Nothing is persisted in that case.
            SessionNotFoundError: If *session_id* does not exist.
        """
        session = await self._require(session_id)
        result = self.machine.complete_phase(session, response)
        if not result.valid:
            logger.info("Phase %d of session %s rejected: %s",
                        session.current_phase_index, session_id, result.error)
            raise PhaseValidationError(result)

        await self._store.sessions.put(session)

        merge = None
        if self.machine.is_complete(session):
            merge = await merge_session(session, self._store)
        return PhaseOutcome(session=session, validation=result, merge=merge)

    async def delete_session(self, session_id: str) -> None:
        """Delete a session permanently. Entities it contributed to are kept."""
        await self._require(session_id)
        await self._store.sessions.delete(session_id)
        logger.info("Deleted session %s", session_id)

    async def export_session(self, session_id: str, directory: Path | str) -> Path:
        return export_session_json(await self._require(session_id), directory)

    async def export_wiki(self, output_path: Path | str) -> Path:
        """Export the Refine output of every completed session as Markdown.

        Raises:
            NothingToExportError: If no session is complete.
        """
        sessions = await self._store.sessions.get_all()
        completed = [s for s in sessions if self.machine.is_complete(s)]
        return export_wiki(completed, output_path)
