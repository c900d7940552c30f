"""Tag parsing and session filtering."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dimlantern.models import ProcessingSession


def normalize_tags(tags: Iterable[str] | None) -> list[str]:
    """Trim and lowercase tags, dropping empties and repeats (first wins)."""
    seen: set[str] = set()
    output: list[str] = []
    for tag in tags or ():
        clean = tag.strip().lower()
        if not clean or clean in seen:
            continue
        seen.add(clean)
        output.append(clean)
    return output


def parse_tags(tag_string: str | None) -> list[str]:
    """Parse a comma-separated tag string such as ``"Combat, roleplay"``."""
    if not tag_string:
        return []
    return normalize_tags(tag_string.split(","))


def filter_sessions(
    sessions: Iterable[ProcessingSession],
    query: str = "",
    tags: Sequence[str] = (),
) -> list[ProcessingSession]:
    """Filter sessions by free-text query and required tags.

    The query matches the title case-insensitively or the date as a
    substring. Every tag in *tags* must be present (AND logic).
    """
    needle = query.lower()
    matches: list[ProcessingSession] = []
    for session in sessions:
        matches_query = (
            not query
            or needle in session.title.lower()
            or query in session.date
        )
        session_tags = session.tags or []
        matches_tags = all(tag in session_tags for tag in tags)
        if matches_query and matches_tags:
            matches.append(session)
    return matches


def all_tags(sessions: Iterable[ProcessingSession]) -> list[str]:
    """Return the sorted set of tags used across *sessions*."""
    tag_set: set[str] = set()
    for session in sessions:
        tag_set.update(session.tags or ())
    return sorted(tag_set)
