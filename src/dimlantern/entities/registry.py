"""CrossReferenceIndex: in-memory name lookup for wiki-link resolution.

Links between entities are stored as names, not ids. The index is built
once from the current collections and answers case-insensitive lookups.
A link whose target is missing is a normal state and resolves to None.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

from dimlantern.entities.models import Location, PlotThread, WikiEntity

if TYPE_CHECKING:
    from dimlantern.storage import KnowledgeStore

logger = logging.getLogger(__name__)


class CrossReferenceIndex:
    """Case-insensitive index over locations and plot threads.

    Usage:
        index = await CrossReferenceIndex.load(store)
        target = index.resolve("Northern Marches")
        missing = index.dangling(location)
    """

    def __init__(
        self,
        locations: Iterable[Location] = (),
        plot_threads: Iterable[PlotThread] = (),
    ) -> None:
        self._locations: dict[str, Location] = {}
        self._plot_threads: dict[str, PlotThread] = {}
        for location in locations:
            self._locations.setdefault(location.name_key, location)
        for thread in plot_threads:
            self._plot_threads.setdefault(thread.name_key, thread)

        logger.debug(
            "CrossReferenceIndex loaded: %d locations, %d plot threads",
            len(self._locations),
            len(self._plot_threads),
        )

    @classmethod
    async def load(cls, store: KnowledgeStore) -> CrossReferenceIndex:
        """Build an index from every stored location and plot thread."""
        return cls(await store.locations.get_all(), await store.plot_threads.get_all())

    def location(self, name: str) -> Location | None:
        return self._locations.get(name.casefold())

    def plot_thread(self, name: str) -> PlotThread | None:
        return self._plot_threads.get(name.casefold())

    def resolve(self, name: str) -> WikiEntity | None:
        """Resolve a link target, trying locations before plot threads."""
        return self.location(name) or self.plot_thread(name)

    def dangling(self, entity: WikiEntity) -> list[str]:
        """Return the entity's link targets that do not resolve."""
        return [name for name in entity.references() if self.resolve(name) is None]

    def backlinks(self, name: str) -> list[WikiEntity]:
        """Return entities whose links point at *name*."""
        key = name.casefold()
        sources: list[WikiEntity] = []
        for entity in [*self._locations.values(), *self._plot_threads.values()]:
            if any(ref.casefold() == key for ref in entity.references()):
                sources.append(entity)
        return sources
