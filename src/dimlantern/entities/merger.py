"""Entity merge engine: reconcile parsed entities with the knowledge base.

Entities are keyed by case-insensitive name. The first encounter of a name
creates a record; later encounters from other sessions append provenance
and raw Markdown. Plot thread ``status`` is overwritten with the latest
value seen; every other descriptive field keeps its first-seen value.

Re-merging a session that is already listed on an entity is a no-op, so
processing the same session twice never duplicates provenance.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from dimlantern.constants import BLOCK_DELIMITER
from dimlantern.entities.models import PlotThread, WikiEntityBase
from dimlantern.entities.parser import parse_locations, parse_plot_threads
from dimlantern.models import MergeResult, generate_id, now_ms

if TYPE_CHECKING:
    from dimlantern.models import ProcessingSession
    from dimlantern.storage import KnowledgeStore

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=WikiEntityBase)


@dataclass
class MergeCounts:
    """Per-kind tally from one merge pass."""

    created: int = 0
    updated: int = 0


def _absorb(existing: E, incoming: E) -> bool:
    """Fold *incoming* into *existing*. Returns False when nothing changed."""
    new_refs = [ref for ref in incoming.sessions if not existing.has_session(ref.id)]
    if not new_refs:
        return False

    existing.sessions.extend(new_refs)
    if incoming.raw_content:
        if existing.raw_content:
            existing.raw_content += BLOCK_DELIMITER + incoming.raw_content
        else:
            existing.raw_content = incoming.raw_content

    if isinstance(existing, PlotThread) and isinstance(incoming, PlotThread):
        existing.status = incoming.status
    return True


async def merge_entities(
    parsed: Iterable[E],
    find_by_name: Callable[[str], Awaitable[E | None]],
    save: Callable[[E], Awaitable[object]],
) -> MergeCounts:
    """Merge parsed entities of one kind, in order, into a collection.

    Args:
        parsed: Entities from one session, in document order.
        find_by_name: Async case-insensitive lookup returning the stored
            entity or None.
        save: Async insert-or-replace persisting an entity.

    Returns:
        MergeCounts with the number of entities created and updated.
        A storage failure propagates and aborts the remaining merges.
    """
    counts = MergeCounts()
    for entity in parsed:
        existing = await find_by_name(entity.name)
        if existing is None:
            if entity.id is None:
                entity.id = generate_id()
            if entity.created is None:
                entity.created = now_ms()
            await save(entity)
            counts.created += 1
            logger.debug("Created %s %r", type(entity).__name__, entity.name)
            continue

        if _absorb(existing, entity):
            await save(existing)
            counts.updated += 1
            logger.debug("Merged %s %r (%d sessions)", type(existing).__name__,
                         existing.name, len(existing.sessions))
    return counts


async def merge_session(session: ProcessingSession, store: KnowledgeStore) -> MergeResult:
    """Parse the session's final-phase response and merge it into *store*.

    Locations and plot threads are merged independently. A session without
    a final response yields an empty result.
    """
    final = session.phases[-1].response if session.phases else ""
    if not final or not final.strip():
        return MergeResult()

    ref = session.ref
    locations = await merge_entities(
        parse_locations(final, ref),
        store.locations.find_by_name,
        store.locations.put,
    )
    threads = await merge_entities(
        parse_plot_threads(final, ref),
        store.plot_threads.find_by_name,
        store.plot_threads.put,
    )

    result = MergeResult(
        locations_created=locations.created,
        locations_updated=locations.updated,
        plot_threads_created=threads.created,
        plot_threads_updated=threads.updated,
    )
    logger.info(
        "Merged session %s: %d new location(s), %d new plot thread(s)",
        session.id,
        result.locations_created,
        result.plot_threads_created,
    )
    return result
