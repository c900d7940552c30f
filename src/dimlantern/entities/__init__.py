"""Knowledge-base entities: models, Markdown parsing, merging and lookup."""

from dimlantern.entities.models import Location, PlotThread, SessionRef, WikiEntity
from dimlantern.entities.parser import extract_links, parse_locations, parse_plot_threads

__all__ = [
    "Location",
    "PlotThread",
    "SessionRef",
    "WikiEntity",
    "extract_links",
    "parse_locations",
    "parse_plot_threads",
]
