"""Pydantic models for knowledge-base entities.

Locations and plot threads are a tagged variant over ``kind``. Both carry
append-only provenance (``sessions``) and the raw Markdown blocks that
produced them (``raw_content``). Cross-references are soft: they hold
entity names, resolved by case-insensitive lookup when read.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


class SessionRef(BaseModel):
    """Reference to the processing session that contributed content."""

    id: str
    title: str
    date: str


class WikiEntityBase(BaseModel):
    """Fields shared by every knowledge-base entity."""

    id: str | None = None
    name: str
    sessions: list[SessionRef] = Field(default_factory=list)
    raw_content: str = ""
    created: int | None = None
    modified: int | None = None

    @property
    def name_key(self) -> str:
        """Case-insensitive merge key."""
        return self.name.casefold()

    def has_session(self, session_id: str) -> bool:
        return any(ref.id == session_id for ref in self.sessions)

    def references(self) -> list[str]:
        """Names of other entities this one links to, in document order."""
        return []


class Location(WikiEntityBase):
    """A place in the campaign world."""

    kind: Literal["location"] = "location"
    type: str = ""
    region: str = ""
    overview: str = ""
    npcs: str = ""
    connections: list[str] = Field(default_factory=list)

    def references(self) -> list[str]:
        return list(self.connections)


class PlotThread(WikiEntityBase):
    """An ongoing storyline.

    ``status`` (Active/Resolved/Dormant) and ``priority`` (High/Medium/Low)
    are free text; the vocabulary is a convention of the prompts, not
    enforced here.
    """

    kind: Literal["plot_thread"] = "plot_thread"
    status: str = ""
    priority: str = ""
    summary: str = ""
    hooks: str = ""
    related_locations: list[str] = Field(default_factory=list)

    def references(self) -> list[str]:
        return list(self.related_locations)


WikiEntity = Annotated[Union[Location, PlotThread], Field(discriminator="kind")]
