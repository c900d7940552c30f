"""Tests for the Refine-output Markdown entity parser.

Covers:
  - Block splitting on horizontal rules, including CRLF documents
  - Heading, metadata line and section extraction for locations
  - Metadata lines carrying extra "| **Label**: value" pairs
  - Plot-thread parsing and location-first classification
  - Tolerance: empty input, missing sections, unclassifiable blocks

Pure-function tests -- no database or filesystem.
"""

from __future__ import annotations

from dimlantern.entities.parser import (
    classify_block,
    extract_links,
    parse_locations,
    parse_plot_threads,
    read_block,
    split_blocks,
)


# ======================================================================
# Block splitting and links
# ======================================================================


class TestSplitBlocks:
    def test_splits_on_rules(self):
        doc = "# A\ntext\n---\n# B\ntext\n***\n# C\n___\n"
        assert [b.splitlines()[0] for b in split_blocks(doc)] == ["# A", "# B", "# C"]

    def test_empty_input(self):
        assert split_blocks(None) == []
        assert split_blocks("") == []
        assert split_blocks("  \n\n ") == []

    def test_inline_dashes_do_not_split(self):
        """Only a rule on its own line is a delimiter."""
        assert len(split_blocks("# A\nwell---known fact\n")) == 1

    def test_crlf_document_splits(self, session_ref):
        """Windows line endings still separate entity pages."""
        doc = "# A\n\n**Type**: Town\n\n---\n\n# B\n\n**Type**: Town\n".replace("\n", "\r\n")
        assert len(split_blocks(doc)) == 2
        locations = parse_locations(doc, session_ref)
        assert [loc.name for loc in locations] == ["A", "B"]
        assert locations[0].type == "Town"
        assert "\r" not in locations[1].raw_content


class TestExtractLinks:
    def test_order_and_trim(self):
        text = "See [[ Northern Marches ]] and [[Blood Moon Cult]]."
        assert extract_links(text) == ["Northern Marches", "Blood Moon Cult"]

    def test_no_links(self):
        assert extract_links("plain text") == []


# ======================================================================
# Entity parsing
# ======================================================================


class TestParseLocations:
    """Location blocks from Refine output."""

    def test_parses_fields(self, refined_wiki, session_ref):
        locations = parse_locations(refined_wiki, session_ref)
        assert len(locations) == 1
        loc = locations[0]
        assert loc.name == "The Rusty Dragon"
        assert loc.type == "Building"
        assert loc.region == "Northern Marches"
        assert loc.overview.startswith("A weathered tavern")
        assert "Ameiko Kaijitsu" in loc.npcs
        assert loc.sessions == [session_ref]
        assert loc.id is None

    def test_connections_in_order(self, refined_wiki, session_ref):
        loc = parse_locations(refined_wiki, session_ref)[0]
        assert loc.connections == ["Northern Marches", "Blood Moon Cult"]

    def test_raw_content_is_block(self, refined_wiki, session_ref):
        loc = parse_locations(refined_wiki, session_ref)[0]
        assert loc.raw_content.startswith("# The Rusty Dragon")
        assert "Blood Moon Cult\n\n**Status**" not in loc.raw_content

    def test_links_outside_connections_ignored(self, session_ref):
        doc = (
            "# Sandpoint\n\n**Type**: Town\n\n"
            "## Overview\nNear [[Magnimar]].\n\n"
            "## Connections\n- [[The Rusty Dragon]]\n"
        )
        loc = parse_locations(doc, session_ref)[0]
        assert loc.connections == ["The Rusty Dragon"]
        assert loc.region == ""

    def test_alternate_bold_style(self, session_ref):
        """'**Type:** value' is accepted as well as '**Type**: value'."""
        doc = "# Old Mill\n\n**Type:** Building | **Region:** Sandpoint\n\n## Overview\nDusty.\n"
        loc = parse_locations(doc, session_ref)[0]
        assert loc.type == "Building"
        assert loc.region == "Sandpoint"

    def test_extra_metadata_pairs_ignored(self, session_ref):
        """A third '| **Label**: value' pair does not drop the location."""
        doc = (
            "# The Rusty Dragon\n\n"
            "**Type**: Building | **Region**: Northern Marches | **Owner**: Ameiko\n\n"
            "## Overview\nA tavern.\n"
        )
        locations = parse_locations(doc, session_ref)
        assert len(locations) == 1
        assert locations[0].type == "Building"
        assert locations[0].region == "Northern Marches"
        assert locations[0].overview == "A tavern."

    def test_unknown_second_pair(self, session_ref):
        doc = "# Old Mill\n\n**Type**: Building | **Owner**: Ameiko\n"
        loc = parse_locations(doc, session_ref)[0]
        assert loc.type == "Building"
        assert loc.region == ""

    def test_missing_sections_become_empty(self, session_ref):
        loc = parse_locations("# Ruins\n**Type**: Dungeon\n", session_ref)[0]
        assert loc.overview == ""
        assert loc.npcs == ""
        assert loc.connections == []

    def test_none_and_empty(self, session_ref):
        assert parse_locations(None, session_ref) == []
        assert parse_locations("", session_ref) == []

    def test_blocks_without_metadata_skipped(self, session_ref):
        doc = "# Notes\n\nJust commentary.\n\n---\n\nNo heading here\n"
        assert parse_locations(doc, session_ref) == []
        assert parse_plot_threads(doc, session_ref) == []

    def test_metadata_after_first_section_ignored(self, session_ref):
        doc = "# Ruins\n\n## Overview\n**Type**: Dungeon\n"
        assert parse_locations(doc, session_ref) == []


class TestParsePlotThreads:
    """Plot-thread blocks from Refine output."""

    def test_parses_fields(self, refined_wiki, session_ref):
        threads = parse_plot_threads(refined_wiki, session_ref)
        assert len(threads) == 1
        thread = threads[0]
        assert thread.name == "Blood Moon Cult"
        assert thread.status == "Active"
        assert thread.priority == "High"
        assert thread.summary.startswith("A secretive cult")
        assert "Who leads the cult?" in thread.hooks
        assert thread.related_locations == ["The Rusty Dragon"]

    def test_priority_optional(self, session_ref):
        doc = "# Missing Caravan\n\n**Status**: Dormant\n\n## Summary\nGone.\n"
        thread = parse_plot_threads(doc, session_ref)[0]
        assert thread.status == "Dormant"
        assert thread.priority == ""

    def test_extra_metadata_pairs_ignored(self, session_ref):
        """A third '| **Label**: value' pair does not drop the plot thread."""
        doc = "# Blood Moon Cult\n\n**Status**: Active | **Priority**: High | **Arc**: 2\n"
        threads = parse_plot_threads(doc, session_ref)
        assert len(threads) == 1
        assert threads[0].status == "Active"
        assert threads[0].priority == "High"

    def test_location_metadata_wins(self, session_ref):
        """A block with both metadata lines is a location only."""
        doc = "# Twin\n\n**Type**: Town\n**Status**: Active\n"
        block = read_block(doc)
        assert classify_block(block) == "location"
        assert len(parse_locations(doc, session_ref)) == 1
        assert parse_plot_threads(doc, session_ref) == []


# ======================================================================
# Block segmentation
# ======================================================================


class TestReadBlock:
    def test_heading_link_unwrapped(self):
        block = read_block("# [[The Rusty Dragon]]\n**Type**: Building\n")
        assert block.name == "The Rusty Dragon"

    def test_section_lookup_case_insensitive(self):
        block = read_block("# X\n\n## OVERVIEW\nBody\n\n## Notable NPCs\n- Bob\n")
        assert block.section("overview") == "Body"
        assert block.section("NPCs", "Notable NPCs") == "- Bob"
        assert block.section("Connections") == ""

    def test_hash_in_name_kept(self):
        """'# C#' names C#; only a whitespace-separated closing run is stripped."""
        assert read_block("# C#\n**Type**: Tower\n").name == "C#"
        assert read_block("# Sandpoint ##\n**Type**: Town\n").name == "Sandpoint"

    def test_section_closing_hashes(self):
        block = read_block("# X\n\n## Overview ##\nBody\n")
        assert block.section("Overview") == "Body"

    def test_no_heading(self):
        assert read_block("just text\n**Type**: Town") is None
