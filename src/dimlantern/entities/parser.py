"""Markdown entity parser for Refine-phase wiki output.

The Refine response is a sequence of wiki pages separated by horizontal
rules. Each page starts with a top-level heading naming the entity and
carries a bold metadata line before its first section:

    # The Rusty Dragon

    **Type**: Building | **Region**: Northern Marches

    ## Overview
    ...

A ``**Type**`` line marks a location; a ``**Status**`` line marks a plot
thread. Blocks with neither are not entities and are skipped.

The input comes from a non-deterministic model response, so nothing here
raises: missing sections become empty fields and unrecognisable blocks
are dropped.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from dimlantern.entities.models import Location, PlotThread, SessionRef

logger = logging.getLogger(__name__)

# Horizontal rule on its own line: ---, ***, ___ (three or more)
BLOCK_DELIMITER_PATTERN = re.compile(r"^[ \t]*(?:-{3,}|\*{3,}|_{3,})[ \t]*$", re.MULTILINE)

# Top-level heading: "# Name"; a closing "#" run is stripped only after whitespace
TITLE_PATTERN = re.compile(r"^#[ \t]+(.+?)(?:[ \t]+#+)?[ \t]*$", re.MULTILINE)

# Section boundaries are level 1 or 2 headings; ### and deeper stay in the body
SECTION_PATTERN = re.compile(r"^(#{1,2})[ \t]+(.+?)(?:[ \t]+#+)?[ \t]*$", re.MULTILINE)

# Accepts both **Type**: value and **Type:** value. Values stop at "|" or end of
# line; any "| **Label**: value" pairs after the second one are ignored.
_LABEL = r"\*\*{label}(?:\*\*[ \t]*:|:\*\*)[ \t]*"
_VALUE = r"(?P<{group}>[^|\n]*)"

LOCATION_META_PATTERN = re.compile(
    _LABEL.format(label="Type") + _VALUE.format(group="type")
    + r"(?:\|[ \t]*" + _LABEL.format(label="Region") + _VALUE.format(group="region")
    + r")?",
    re.MULTILINE | re.IGNORECASE,
)

THREAD_META_PATTERN = re.compile(
    _LABEL.format(label="Status") + _VALUE.format(group="status")
    + r"(?:\|[ \t]*" + _LABEL.format(label="Priority") + _VALUE.format(group="priority")
    + r")?",
    re.MULTILINE | re.IGNORECASE,
)

# [[ Entity Name ]]
WIKI_LINK_PATTERN = re.compile(r"\[\[\s*([^\[\]\n]+?)\s*\]\]")

LOCATION = "location"
PLOT_THREAD = "plot_thread"


@dataclass
class EntityBlock:
    """One delimiter-separated block that has a top-level heading."""

    name: str
    text: str
    head: str  # text before the first section heading, where metadata lives
    sections: list[tuple[str, str]]  # (section title, body) in document order

    def section(self, *titles: str) -> str:
        """Return the body of the first section whose title starts with any of *titles*.

        Matching is case-insensitive. Returns "" when no section matches.
        """
        wanted = tuple(t.casefold() for t in titles)
        for title, body in self.sections:
            if title.casefold().startswith(wanted):
                return body
        return ""


def split_blocks(markdown: str | None) -> list[str]:
    """Split a document on horizontal-rule lines, dropping empty pieces."""
    if not markdown or not markdown.strip():
        return []
    markdown = markdown.replace("\r\n", "\n").replace("\r", "\n")
    pieces = BLOCK_DELIMITER_PATTERN.split(markdown)
    return [piece.strip() for piece in pieces if piece.strip()]


def extract_links(text: str) -> list[str]:
    """Return every ``[[name]]`` target in order of appearance, trimmed."""
    return [match.group(1).strip() for match in WIKI_LINK_PATTERN.finditer(text or "")]


def _clean_name(raw: str) -> str:
    name = raw.strip()
    # Headings are sometimes emitted as links: "# [[The Rusty Dragon]]"
    links = extract_links(name)
    if len(links) == 1 and WIKI_LINK_PATTERN.fullmatch(name):
        name = links[0]
    return name.strip("* ").strip()


def read_block(text: str) -> EntityBlock | None:
    """Segment a block into heading name, head text and sections.

    Returns None when the block has no usable top-level heading.
    """
    title_match = TITLE_PATTERN.search(text)
    if title_match is None:
        return None
    name = _clean_name(title_match.group(1))
    if not name:
        return None

    after_title = title_match.end()
    headings = [m for m in SECTION_PATTERN.finditer(text, after_title)]

    first_section = headings[0].start() if headings else len(text)
    head = text[after_title:first_section]

    sections: list[tuple[str, str]] = []
    for index, heading in enumerate(headings):
        end = headings[index + 1].start() if index + 1 < len(headings) else len(text)
        sections.append((heading.group(2).strip(), text[heading.end():end].strip()))

    return EntityBlock(name=name, text=text, head=head, sections=sections)


def classify_block(block: EntityBlock) -> str | None:
    """Return LOCATION, PLOT_THREAD or None.

    A location metadata line takes precedence, so a block is never both.
    """
    if LOCATION_META_PATTERN.search(block.head):
        return LOCATION
    if THREAD_META_PATTERN.search(block.head):
        return PLOT_THREAD
    return None


def _group(match: re.Match[str], name: str) -> str:
    value = match.group(name)
    return value.strip() if value else ""


def _location_from_block(block: EntityBlock, session: SessionRef) -> Location:
    meta = LOCATION_META_PATTERN.search(block.head)
    return Location(
        name=block.name,
        type=_group(meta, "type") if meta else "",
        region=_group(meta, "region") if meta else "",
        overview=block.section("Overview"),
        npcs=block.section("Notable NPCs", "NPCs"),
        connections=extract_links(block.section("Connections")),
        sessions=[session],
        raw_content=block.text,
    )


def _plot_thread_from_block(block: EntityBlock, session: SessionRef) -> PlotThread:
    meta = THREAD_META_PATTERN.search(block.head)
    return PlotThread(
        name=block.name,
        status=_group(meta, "status") if meta else "",
        priority=_group(meta, "priority") if meta else "",
        summary=block.section("Summary"),
        hooks=block.section("Unresolved Hooks", "Hooks"),
        related_locations=extract_links(block.section("Related Locations")),
        sessions=[session],
        raw_content=block.text,
    )


def _blocks_of_kind(markdown: str | None, kind: str) -> list[EntityBlock]:
    blocks: list[EntityBlock] = []
    for text in split_blocks(markdown):
        block = read_block(text)
        if block is None:
            continue
        if classify_block(block) == kind:
            blocks.append(block)
    return blocks


def parse_locations(markdown: str | None, session: SessionRef) -> list[Location]:
    """Parse every location block in *markdown*, in document order."""
    locations = [
        _location_from_block(block, session)
        for block in _blocks_of_kind(markdown, LOCATION)
    ]
    logger.debug("Parsed %d location(s) for session %s", len(locations), session.id)
    return locations


def parse_plot_threads(markdown: str | None, session: SessionRef) -> list[PlotThread]:
    """Parse every plot-thread block in *markdown*, in document order."""
    threads = [
        _plot_thread_from_block(block, session)
        for block in _blocks_of_kind(markdown, PLOT_THREAD)
    ]
    logger.debug("Parsed %d plot thread(s) for session %s", len(threads), session.id)
    return threads
