"""Session and wiki export to JSON and Markdown files."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable
from datetime import date
from pathlib import Path

from dimlantern.exceptions import NothingToExportError
from dimlantern.models import ProcessingSession

logger = logging.getLogger(__name__)

WIKI_TITLE = "Dim Lantern Campaign Wiki"


def session_filename(session: ProcessingSession) -> str:
    """``Session 47`` -> ``Session-47.json``."""
    return re.sub(r"\s+", "-", session.title) + ".json"


def export_session_json(session: ProcessingSession, directory: Path | str = ".") -> Path:
    """Write the full session record as indented JSON.

    Returns:
        Path to the written file.
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    output_path = directory / session_filename(session)
    output_path.write_text(json.dumps(session.to_dict(), indent=2), encoding="utf-8")
    logger.info("Exported session %s to %s", session.id, output_path)
    return output_path


def render_wiki(
    sessions: Iterable[ProcessingSession], generated: date | None = None
) -> str:
    """Render the final Refine output of every completed session as one document.

    Sessions are expected to be complete already; the caller filters.
    """
    generated = generated or date.today()
    lines = [f"# {WIKI_TITLE}", "", f"Generated: {generated.isoformat()}", "", "---", ""]
    for session in sessions:
        lines.append(f"## {session.title} ({session.date})")
        lines.append("")
        lines.append(session.phases[-1].response)
        lines.append("")
        lines.append("---")
        lines.append("")
    return "\n".join(lines)


def export_wiki(
    completed: list[ProcessingSession],
    output_path: Path | str,
    generated: date | None = None,
) -> Path:
    """Write the campaign wiki Markdown file.

    Raises:
        NothingToExportError: If *completed* is empty.
    """
    if not completed:
        raise NothingToExportError("No completed sessions to export")

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(render_wiki(completed, generated), encoding="utf-8")
    logger.info("Exported %d session(s) to %s", len(completed), output_path)
    return output_path
