"""Compendium service facade: browsing the location and plot-thread wiki."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from dimlantern.entities.models import Location, PlotThread, WikiEntity
from dimlantern.entities.registry import CrossReferenceIndex
from dimlantern.storage import KnowledgeStore
from dimlantern.workflow.machine import PhaseStateMachine

logger = logging.getLogger(__name__)


@dataclass
class CompendiumStats:
    """Dashboard counts."""

    sessions: int
    completed_sessions: int
    locations: int
    plot_threads: int

    @property
    def completion_percent(self) -> int:
        if self.sessions == 0:
            return 0
        return int(100 * self.completed_sessions / self.sessions + 0.5)


class CompendiumService:
    """Async facade for reading and curating knowledge-base entities.

    Usage::

        svc = CompendiumService(store)
        taverns = await svc.list_locations(type_filter="Building")
        entity = await svc.lookup("Blood Moon Cult")
    """

    def __init__(
        self, store: KnowledgeStore, machine: PhaseStateMachine | None = None
    ) -> None:
        self._store = store
        self._machine = machine or PhaseStateMachine()

    async def list_locations(
        self, type_filter: str | None = None, search: str | None = None
    ) -> list[Location]:
        """List locations by name, optionally filtered.

        Args:
            type_filter: Exact location type (e.g. "Building").
            search: Case-insensitive substring of name or overview.
        """
        needle = (search or "").lower()
        locations = [
            loc
            for loc in await self._store.locations.get_all()
            if (not type_filter or loc.type == type_filter)
            and (not needle or needle in loc.name.lower() or needle in loc.overview.lower())
        ]
        return sorted(locations, key=lambda loc: loc.name_key)

    async def list_plot_threads(
        self, status: str | None = None, priority: str | None = None
    ) -> list[PlotThread]:
        """List plot threads by name, optionally filtered by exact status/priority."""
        threads = [
            t
            for t in await self._store.plot_threads.get_all()
            if (not status or t.status == status)
            and (not priority or t.priority == priority)
        ]
        return sorted(threads, key=lambda t: t.name_key)

    async def find_location(self, name_or_id: str) -> Location | None:
        """Find a location by case-insensitive name, falling back to id."""
        location = await self._store.locations.find_by_name(name_or_id)
        return location or await self._store.locations.get(name_or_id)

    async def find_plot_thread(self, name_or_id: str) -> PlotThread | None:
        """Find a plot thread by case-insensitive name, falling back to id."""
        thread = await self._store.plot_threads.find_by_name(name_or_id)
        return thread or await self._store.plot_threads.get(name_or_id)

    async def lookup(self, name: str) -> WikiEntity | None:
        """Resolve a wiki link by name: locations first, then plot threads."""
        location = await self._store.locations.find_by_name(name)
        if location is not None:
            return location
        return await self._store.plot_threads.find_by_name(name)

    async def cross_references(self) -> CrossReferenceIndex:
        return await CrossReferenceIndex.load(self._store)

    async def delete_location(self, location_id: str) -> None:
        await self._store.locations.delete(location_id)
        logger.info("Deleted location %s", location_id)

    async def delete_plot_thread(self, thread_id: str) -> None:
        await self._store.plot_threads.delete(thread_id)
        logger.info("Deleted plot thread %s", thread_id)

    async def stats(self) -> CompendiumStats:
        sessions = await self._store.sessions.get_all()
        return CompendiumStats(
            sessions=len(sessions),
            completed_sessions=sum(1 for s in sessions if self._machine.is_complete(s)),
            locations=await self._store.locations.count(),
            plot_threads=await self._store.plot_threads.count(),
        )
