"""Tests for JSON session export and Markdown wiki export.

Covers:
  - Session JSON file naming and payload
  - Campaign wiki layout with locations before plot threads
  - NothingToExportError on an empty compendium
"""

from __future__ import annotations

import json
from datetime import date

import pytest

from dimlantern.exceptions import NothingToExportError
from dimlantern.export import (
    WIKI_TITLE,
    export_session_json,
    export_wiki,
    render_wiki,
    session_filename,
)


# ======================================================================
# Session export
# ======================================================================


class TestSessionExport:
    def test_filename_replaces_whitespace(self, machine):
        session = machine.create_session("Session  47\tFinale", "2024-12-15", "t")
        assert session_filename(session) == "Session-47-Finale.json"

    def test_writes_full_record(self, tmp_path, session):
        path = export_session_json(session, tmp_path / "out")
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["id"] == session.id
        assert data["title"] == "Session 47"
        assert len(data["phases"]) == 3
        assert data["phases"][0]["name"] == "Extract"
        assert data["tags"] == ["combat"]


# ======================================================================
# Wiki export
# ======================================================================


class TestWikiExport:
    def test_render_layout(self, machine, session, complete_all, refined_wiki):
        complete_all(machine, session)
        text = render_wiki([session], generated=date(2025, 1, 2))
        lines = text.splitlines()
        assert lines[0] == f"# {WIKI_TITLE}"
        assert "Generated: 2025-01-02" in lines
        assert "## Session 47 (2024-12-15)" in text
        assert refined_wiki in text

    def test_sessions_in_given_order(self, machine, complete_all):
        a = complete_all(machine, machine.create_session("Alpha", "2024-01-01", "t"))
        b = complete_all(machine, machine.create_session("Beta", "2024-02-01", "t"))
        text = render_wiki([b, a])
        assert text.index("## Beta") < text.index("## Alpha")

    def test_nothing_to_export(self, tmp_path):
        with pytest.raises(NothingToExportError):
            export_wiki([], tmp_path / "wiki.md")
        assert not (tmp_path / "wiki.md").exists()

    def test_writes_file(self, tmp_path, machine, session, complete_all):
        complete_all(machine, session)
        path = export_wiki([session], tmp_path / "nested" / "wiki.md")
        assert path.read_text(encoding="utf-8").startswith("# Dim Lantern Campaign Wiki")
