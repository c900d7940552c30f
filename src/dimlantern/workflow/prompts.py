"""Prompt templates for the three workflow phases.

Prompts are pure functions of session state: the operator copies them
into an external model and pastes the response back. Each phase embeds the
previous phase's response verbatim. The Summarize template fixes the wiki
page layout that ``dimlantern.entities.parser`` reads back after Refine.
"""

from __future__ import annotations

from collections.abc import Callable

from dimlantern.models import ProcessingSession

# Phase 3 instructs the model to emit this when nothing needs changing
VALIDATED_MARKER = "✓ Validated - No changes needed"


def build_extract_prompt(session: ProcessingSession) -> str:
    """Phase 1: pull locations and plot threads out of the raw transcript."""
    return f"""# Phase 1: Extract Locations and Plot Threads

You are a D&D 5E campaign analyst. Extract all significant LOCATIONS and PLOT THREADS from this session transcript.

## Session: {session.title}
## Date: {session.date}

## TRANSCRIPT:
{session.transcript}

---

## OUTPUT FORMAT (use exactly this structure):

### LOCATIONS
For each location, provide:
- **Name**: [Location name]
- **Type**: [City/Town/Dungeon/Wilderness/Building/Region]
- **Events**: [Bullet list of what happened here this session]
- **NPCs Encountered**: [List of NPCs at this location]
- **Connections**: [Other locations mentioned in relation to this one]

### PLOT THREADS
For each plot thread, provide:
- **Thread**: [Name of plot thread]
- **Status**: [Active/Resolved/Dormant]
- **Description**: [Brief description]
- **Hooks**: [Unresolved hooks or questions]
- **Related Locations**: [Locations tied to this thread]

Be thorough. Include ALL locations mentioned, even briefly. Capture ALL unresolved plot elements."""


def build_summarize_prompt(session: ProcessingSession) -> str:
    """Phase 2: turn the extraction into wiki pages, one per entity."""
    extraction = session.phase(1).response
    return f"""# Phase 2: Generate Wiki Summaries

Based on the extracted locations and plot threads, create wiki-style documentation.

## Session: {session.title}
## Date: {session.date}

## PHASE 1 EXTRACTION:
{extraction}

---

## OUTPUT FORMAT:

Separate every page from the next with a line containing only ---

For each LOCATION, create a wiki page in this format:

# [Location Name]

**Type**: [Type] | **Region**: [Parent region if known]

## Overview
[2-3 sentence description of this location]

## Session {session.title} Events
- [Chronological bullet points of what happened here]

## Notable NPCs
- **[NPC Name]**: [Brief description and role]

## Connections
- [[Link to related location]]

## Plot Threads
- [[Link to related plot thread]]

---

For each PLOT THREAD, create an entry:

# [Plot Thread Name]

**Status**: [Active/Resolved/Dormant] | **Priority**: [High/Medium/Low]

## Summary
[Description of this plot thread]

## Unresolved Hooks
- [List of open questions or hooks]

## Related Locations
- [[Location links]]

## Session History
- **{session.date}**: [What happened with this thread]"""


def build_refine_prompt(session: ProcessingSession) -> str:
    """Phase 3: validate links and emit the final wiki content."""
    wiki = session.phase(2).response
    return f"""# Phase 3: Validate and Refine Wiki Entries

Review the generated wiki entries for accuracy, completeness, and Obsidian compatibility.

## Session: {session.title}

## GENERATED WIKI CONTENT:
{wiki}

---

## YOUR TASK:

1. **Accuracy Check**: Verify all facts match the original transcript
2. **Completeness**: Ensure no locations or plot threads were missed
3. **Obsidian Formatting**: Verify [[wiki links]] are consistent
4. **Clarity**: Improve any unclear descriptions
5. **Cross-References**: Ensure all connections are bidirectional

## OUTPUT:
Provide the FINAL, corrected wiki content ready for copy-paste into Obsidian.
Keep every page's heading, metadata line and section layout, and keep the --- lines between pages.
Include any corrections or additions you made.

If everything looks good, output the content unchanged with a note: "{VALIDATED_MARKER}\""""


PROMPT_BUILDERS: dict[int, Callable[[ProcessingSession], str]] = {
    1: build_extract_prompt,
    2: build_summarize_prompt,
    3: build_refine_prompt,
}
