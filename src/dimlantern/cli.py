"""CLI entry point for Dim Lantern.

Provides commands:
  - session: Create sessions, print phase prompts, record responses, complete phases
  - locations: Browse and curate location wiki pages
  - threads: Browse and curate plot threads
  - lookup: Resolve a [[wiki link]] name to a location or plot thread
  - status: Display knowledge-base statistics
  - export-wiki: Export every completed session's final wiki content
"""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated, TypeVar

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from dimlantern.config import WikiConfig, load_config
from dimlantern.entities.models import Location, PlotThread
from dimlantern.exceptions import (
    InvalidInputError,
    NothingToExportError,
    PhaseValidationError,
    SessionNotFoundError,
    StorageError,
)
from dimlantern.models import ProcessingSession
from dimlantern.services import CompendiumService, WorkflowService
from dimlantern.storage import KnowledgeStore
from dimlantern.tags import parse_tags
from dimlantern.workflow.machine import PhaseStateMachine

logger = logging.getLogger(__name__)

T = TypeVar("T")

app = typer.Typer(
    help="Dim Lantern - turn session transcripts into a cross-referenced campaign wiki",
    rich_markup_mode="rich",
)
console = Console()

# Session workflow command group
session_app = typer.Typer(help="Process transcripts through the Extract, Summarize and Refine phases")
app.add_typer(session_app, name="session")

# Location compendium command group
locations_app = typer.Typer(help="Browse and curate location wiki pages")
app.add_typer(locations_app, name="locations")

# Plot thread command group
threads_app = typer.Typer(help="Browse and curate plot threads")
app.add_typer(threads_app, name="threads")

STATUS_STYLES = {
    "active": "green",
    "resolved": "blue",
    "dormant": "dim",
}


@app.callback()
def app_callback(
    ctx: typer.Context,
    db_path: Annotated[
        Path | None,
        typer.Option("--db", "-d", help="Path to SQLite database"),
    ] = None,
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to JSON configuration file"),
    ] = None,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Write debug logs to ~/.dimlantern/debug.log"),
    ] = False,
) -> None:
    """Load configuration shared by all commands."""
    config = load_config(config_path)
    if db_path is not None:
        config.db_path = db_path

    if debug:
        debug_dir = Path.home() / ".dimlantern"
        debug_dir.mkdir(exist_ok=True)
        fh = logging.FileHandler(debug_dir / "debug.log")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        root = logging.getLogger("dimlantern")
        root.setLevel(logging.DEBUG)
        root.addHandler(fh)

    ctx.obj = config


def get_config(ctx: typer.Context) -> WikiConfig:
    """Type-safe accessor for WikiConfig from Typer context."""
    if ctx.obj is None:
        ctx.obj = load_config()
    return ctx.obj


def _run(ctx: typer.Context, action: Callable[[KnowledgeStore], Awaitable[T]]) -> T:
    """Open the knowledge store, run *action*, and report storage failures."""
    config = get_config(ctx)

    async def _main() -> T:
        async with KnowledgeStore(config.db_path) as store:
            return await action(store)

    try:
        return asyncio.run(_main())
    except StorageError as e:
        console.print(f"[bold red]Storage error:[/bold red] {escape(str(e))}")
        raise typer.Exit(code=1)
    except SessionNotFoundError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1)


def _machine(ctx: typer.Context) -> PhaseStateMachine:
    return PhaseStateMachine(min_response_length=get_config(ctx).min_response_length)


def _read_text(path: Path) -> str:
    """Read a file, or stdin when *path* is '-'."""
    if str(path) == "-":
        return sys.stdin.read()
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        console.print(f"[red]Cannot read {path}:[/red] {e}")
        raise typer.Exit(code=1)


def _phase_strip(session: ProcessingSession) -> Text:
    text = Text()
    for phase in session.phases:
        if phase.completed:
            text.append(f"✓ {phase.name}  ", style="green")
        elif phase.number == session.current_phase_index:
            text.append(f"→ {phase.name}  ", style="bold yellow")
        else:
            text.append(f"○ {phase.name}  ", style="dim")
    return text


# ---- Session Commands ----


@session_app.command("new")
def session_new(
    ctx: typer.Context,
    title: Annotated[str, typer.Argument(help="Session title, e.g. 'Session 47'")],
    transcript: Annotated[
        Path,
        typer.Option("--transcript", "-t", help="Transcript file ('-' for stdin)"),
    ],
    date: Annotated[
        str | None,
        typer.Option("--date", help="Session date (YYYY-MM-DD, defaults to today)"),
    ] = None,
    tags: Annotated[
        str | None,
        typer.Option("--tags", help="Comma-separated tags, e.g. 'combat, dungeon'"),
    ] = None,
) -> None:
    """Create a processing session from a transcript."""
    text = _read_text(transcript)
    machine = _machine(ctx)

    async def _create(store: KnowledgeStore) -> ProcessingSession:
        return await WorkflowService(store, machine).create_session(
            title, date, text, parse_tags(tags)
        )

    try:
        session = _run(ctx, _create)
    except InvalidInputError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1)

    console.print(Panel(
        f"[bold]Session ID:[/bold] {session.id}\n"
        f"[bold]Title:[/bold] {escape(session.title)}\n"
        f"[bold]Date:[/bold] {session.date}\n\n"
        f"[dim]Next:[/dim] [bold cyan]dimlantern session prompt {session.id}[/bold cyan]",
        title="Session Created",
        border_style="cyan",
    ))


@session_app.command("list")
def session_list(
    ctx: typer.Context,
    search: Annotated[
        str,
        typer.Option("--search", "-q", help="Match title (case-insensitive) or date"),
    ] = "",
    tag: Annotated[
        list[str] | None,
        typer.Option("--tag", help="Require tag (repeatable, AND logic)"),
    ] = None,
) -> None:
    """List processing sessions, newest first."""
    machine = _machine(ctx)
    sessions = _run(ctx, lambda store: WorkflowService(store, machine).list_sessions(search, tag or []))

    if not sessions:
        console.print("[dim]No matching sessions. Run 'dimlantern session new' to create one.[/dim]")
        return

    table = Table(title="Processing Sessions", border_style="cyan")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="bold")
    table.add_column("Date")
    table.add_column("Tags")
    table.add_column("Phase", justify="center")
    table.add_column("Progress", justify="right")
    for s in sessions:
        done = machine.is_complete(s)
        table.add_row(
            s.id,
            escape(s.title),
            s.date,
            " ".join(f"#{t}" for t in s.tags),
            f"{s.current_phase_index}/{machine.phase_count}",
            f"[{'green' if done else 'blue'}]{machine.progress_percent(s)}%[/]",
        )
    console.print(table)


@session_app.command("tags")
def session_tags(ctx: typer.Context) -> None:
    """List every tag used across sessions."""
    tags = _run(ctx, lambda store: WorkflowService(store).list_tags())
    if not tags:
        console.print("[dim]No tags yet.[/dim]")
        return
    console.print(" ".join(f"[cyan]#{escape(t)}[/cyan]" for t in tags))


@session_app.command("show")
def session_show(
    ctx: typer.Context,
    session_id: Annotated[str, typer.Argument(help="Session ID")],
) -> None:
    """Show a session's phase progress and current phase."""
    machine = _machine(ctx)
    session = _run(ctx, lambda store: WorkflowService(store, machine).get_session(session_id))
    phase = machine.current_phase(session)

    header = Text()
    header.append(session.title, style="bold")
    header.append(f"\nDate: {session.date}")
    if session.tags:
        header.append("\nTags: " + " ".join(f"#{t}" for t in session.tags))
    header.append(f"\nProgress: {machine.progress_percent(session)}%\n\n")
    header.append_text(_phase_strip(session))
    console.print(Panel(header, title="Processing Session", border_style="blue"))

    if machine.is_complete(session):
        console.print("[green]All phases complete.[/green]")
        return
    console.print(
        f"[bold]Phase {phase.number}: {phase.name}[/bold] -- {phase.description}\n"
        f"[yellow]AI model:[/yellow] {phase.responsible_agent}\n"
        f"[dim]Response saved:[/dim] {len(phase.response.strip())} characters"
    )


@session_app.command("prompt")
def session_prompt(
    ctx: typer.Context,
    session_id: Annotated[str, typer.Argument(help="Session ID")],
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write the prompt to a file instead of stdout"),
    ] = None,
) -> None:
    """Print the prompt for the session's current phase."""
    machine = _machine(ctx)
    prompt = _run(ctx, lambda store: WorkflowService(store, machine).prompt(session_id))
    if output is None:
        typer.echo(prompt)
        return
    output.write_text(prompt, encoding="utf-8")
    console.print(f"[green]Prompt written to:[/green] [bold]{output}[/bold]")


@session_app.command("respond")
def session_respond(
    ctx: typer.Context,
    session_id: Annotated[str, typer.Argument(help="Session ID")],
    response_file: Annotated[Path, typer.Argument(help="File holding the AI response ('-' for stdin)")],
) -> None:
    """Save a draft response for the current phase without completing it."""
    text = _read_text(response_file)
    machine = _machine(ctx)
    _run(ctx, lambda store: WorkflowService(store, machine).save_response(session_id, text))
    console.print("[green]Response saved.[/green]")


@session_app.command("complete")
def session_complete(
    ctx: typer.Context,
    session_id: Annotated[str, typer.Argument(help="Session ID")],
    response_file: Annotated[
        Path | None,
        typer.Argument(help="File holding the AI response ('-' for stdin); omit to use the saved draft"),
    ] = None,
) -> None:
    """Validate the current phase response and advance to the next phase."""
    text = _read_text(response_file) if response_file is not None else None
    machine = _machine(ctx)

    try:
        outcome = _run(ctx, lambda store: WorkflowService(store, machine).complete_phase(session_id, text))
    except PhaseValidationError as e:
        console.print(f"[yellow]Validation failed:[/yellow] {escape(str(e))}")
        raise typer.Exit(code=1)

    if outcome.merge is None:
        phase = machine.current_phase(outcome.session)
        console.print(
            f"[green]Phase completed.[/green] Next: Phase {phase.number} ({phase.name})"
        )
        return

    merge = outcome.merge
    message = "[bold green]Session processing complete![/bold green]"
    if merge.total_created > 0:
        message += (
            f" Extracted {merge.locations_created} locations, "
            f"{merge.plot_threads_created} plot threads."
        )
    console.print(message)
    if merge.locations_updated or merge.plot_threads_updated:
        console.print(
            f"[dim]Updated {merge.locations_updated} existing location(s), "
            f"{merge.plot_threads_updated} existing plot thread(s).[/dim]"
        )


@session_app.command("delete")
def session_delete(
    ctx: typer.Context,
    session_id: Annotated[str, typer.Argument(help="Session ID")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
) -> None:
    """Delete a session permanently."""
    if not yes and not typer.confirm(f"Delete session {session_id}?"):
        raise typer.Abort()
    _run(ctx, lambda store: WorkflowService(store).delete_session(session_id))
    console.print("[green]Session deleted.[/green]")


@session_app.command("export")
def session_export(
    ctx: typer.Context,
    session_id: Annotated[str, typer.Argument(help="Session ID")],
    output_dir: Annotated[
        Path | None,
        typer.Option("--output-dir", "-o", help="Directory for the JSON file"),
    ] = None,
) -> None:
    """Export a session as a JSON file."""
    directory = output_dir or get_config(ctx).export_dir
    out_path = _run(ctx, lambda store: WorkflowService(store).export_session(session_id, directory))
    console.print(f"[green]Exported to:[/green] [bold]{out_path}[/bold]")


# ---- Location Commands ----


@locations_app.command("list")
def locations_list(
    ctx: typer.Context,
    type_filter: Annotated[str | None, typer.Option("--type", help="Exact location type")] = None,
    search: Annotated[str | None, typer.Option("--search", "-q", help="Match name or overview")] = None,
) -> None:
    """List locations in the compendium."""
    locations = _run(ctx, lambda store: CompendiumService(store).list_locations(type_filter, search))
    if not locations:
        console.print("[dim]No locations found. Complete session workflows to populate the compendium.[/dim]")
        return

    table = Table(title="Locations", border_style="green")
    table.add_column("Name", style="bold")
    table.add_column("Type")
    table.add_column("Region")
    table.add_column("Sessions", justify="right")
    table.add_column("Connections")
    for loc in locations:
        table.add_row(
            escape(loc.name),
            escape(loc.type),
            escape(loc.region),
            str(len(loc.sessions)),
            escape(", ".join(loc.connections)),
        )
    console.print(table)


def _links_text(names: list[str], dangling: list[str]) -> str:
    missing = {n.casefold() for n in dangling}
    parts = []
    for name in names:
        style = "red" if name.casefold() in missing else "green"
        parts.append(f"[{style}]\\[\\[ {escape(name)} ]][/{style}]")
    return "  ".join(parts) or "[dim]none[/dim]"


def _print_location(location: Location, dangling: list[str], raw: bool) -> None:
    body = Text()
    body.append(f"Type: {location.type or '-'}    Region: {location.region or '-'}\n\n")
    body.append(location.overview or "(no overview)")
    console.print(Panel(body, title=location.name, border_style="green"))
    if location.npcs:
        console.print(Panel(location.npcs, title="Notable NPCs", border_style="dim"))
    console.print(f"[bold]Connections:[/bold] {_links_text(location.connections, dangling)}")
    console.print(
        "[bold]Sessions:[/bold] "
        + ", ".join(f"{escape(ref.title)} ({ref.date})" for ref in location.sessions)
    )
    if raw:
        console.print(Panel(location.raw_content, title="Raw content", border_style="dim"))


@locations_app.command("show")
def locations_show(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Location name (case-insensitive) or ID")],
    raw: Annotated[bool, typer.Option("--raw", help="Also print the raw Markdown blocks")] = False,
) -> None:
    """Show a location page with resolved connections."""

    async def _show(store: KnowledgeStore) -> tuple[Location | None, list[str]]:
        svc = CompendiumService(store)
        location = await svc.find_location(name)
        if location is None:
            return None, []
        index = await svc.cross_references()
        return location, index.dangling(location)

    location, dangling = _run(ctx, _show)
    if location is None:
        console.print(f"[blue]\"{escape(name)}\" not found in compendium[/blue]")
        raise typer.Exit(code=1)
    _print_location(location, dangling, raw)


@locations_app.command("delete")
def locations_delete(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Location name or ID")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
) -> None:
    """Delete a location from the compendium."""
    location = _run(ctx, lambda store: CompendiumService(store).find_location(name))
    if location is None or location.id is None:
        console.print(f"[blue]\"{escape(name)}\" not found in compendium[/blue]")
        raise typer.Exit(code=1)
    if not yes and not typer.confirm(f"Delete location {location.name}?"):
        raise typer.Abort()

    location_id = location.id
    _run(ctx, lambda store: CompendiumService(store).delete_location(location_id))
    console.print("[green]Location deleted.[/green]")


# ---- Plot Thread Commands ----


@threads_app.command("list")
def threads_list(
    ctx: typer.Context,
    status: Annotated[str | None, typer.Option("--status", help="Active, Resolved or Dormant")] = None,
    priority: Annotated[str | None, typer.Option("--priority", help="High, Medium or Low")] = None,
) -> None:
    """List plot threads."""
    threads = _run(ctx, lambda store: CompendiumService(store).list_plot_threads(status, priority))
    if not threads:
        console.print("[dim]No plot threads found. Complete session workflows to track plot threads.[/dim]")
        return

    table = Table(title="Plot Threads", border_style="magenta")
    table.add_column("Name", style="bold")
    table.add_column("Status")
    table.add_column("Priority")
    table.add_column("Sessions", justify="right")
    table.add_column("Related Locations")
    for t in threads:
        style = STATUS_STYLES.get(t.status.lower(), "")
        table.add_row(
            escape(t.name),
            f"[{style}]{escape(t.status)}[/]" if style else escape(t.status),
            escape(t.priority),
            str(len(t.sessions)),
            escape(", ".join(t.related_locations)),
        )
    console.print(table)


def _print_thread(thread: PlotThread, dangling: list[str], raw: bool) -> None:
    body = Text()
    body.append(f"Status: {thread.status or '-'}    Priority: {thread.priority or '-'}\n\n")
    body.append(thread.summary or "(no summary)")
    console.print(Panel(body, title=thread.name, border_style="magenta"))
    if thread.hooks:
        console.print(Panel(thread.hooks, title="Unresolved Hooks", border_style="yellow"))
    console.print(f"[bold]Related:[/bold] {_links_text(thread.related_locations, dangling)}")
    console.print(
        "[bold]Sessions:[/bold] "
        + ", ".join(f"{escape(ref.title)} ({ref.date})" for ref in thread.sessions)
    )
    if raw:
        console.print(Panel(thread.raw_content, title="Raw content", border_style="dim"))


@threads_app.command("show")
def threads_show(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Plot thread name (case-insensitive) or ID")],
    raw: Annotated[bool, typer.Option("--raw", help="Also print the raw Markdown blocks")] = False,
) -> None:
    """Show a plot thread with resolved location links."""

    async def _show(store: KnowledgeStore) -> tuple[PlotThread | None, list[str]]:
        svc = CompendiumService(store)
        thread = await svc.find_plot_thread(name)
        if thread is None:
            return None, []
        index = await svc.cross_references()
        return thread, index.dangling(thread)

    thread, dangling = _run(ctx, _show)
    if thread is None:
        console.print(f"[blue]\"{escape(name)}\" not found in compendium[/blue]")
        raise typer.Exit(code=1)
    _print_thread(thread, dangling, raw)


@threads_app.command("delete")
def threads_delete(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Plot thread name or ID")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
) -> None:
    """Delete a plot thread from the compendium."""
    thread = _run(ctx, lambda store: CompendiumService(store).find_plot_thread(name))
    if thread is None or thread.id is None:
        console.print(f"[blue]\"{escape(name)}\" not found in compendium[/blue]")
        raise typer.Exit(code=1)
    if not yes and not typer.confirm(f"Delete plot thread {thread.name}?"):
        raise typer.Abort()

    thread_id = thread.id
    _run(ctx, lambda store: CompendiumService(store).delete_plot_thread(thread_id))
    console.print("[green]Plot thread deleted.[/green]")


# ---- Knowledge Base Commands ----


@app.command()
def lookup(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Name inside a [[wiki link]]")],
) -> None:
    """Resolve a wiki link to a location or plot thread."""

    async def _lookup(store: KnowledgeStore):
        svc = CompendiumService(store)
        entity = await svc.lookup(name)
        if entity is None:
            return None, []
        index = await svc.cross_references()
        return entity, index.dangling(entity)

    entity, dangling = _run(ctx, _lookup)
    if entity is None:
        console.print(f"[blue]\"{escape(name)}\" not found in compendium[/blue]")
        raise typer.Exit(code=1)
    if isinstance(entity, Location):
        _print_location(entity, dangling, raw=False)
    else:
        _print_thread(entity, dangling, raw=False)


@app.command()
def status(ctx: typer.Context) -> None:
    """Display knowledge-base statistics."""
    machine = _machine(ctx)
    stats = _run(ctx, lambda store: CompendiumService(store, machine).stats())

    table = Table(title="Dim Lantern", border_style="blue", show_header=False)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Sessions", str(stats.sessions))
    table.add_row("Completed sessions", f"{stats.completed_sessions} ({stats.completion_percent}%)")
    table.add_row("Locations", str(stats.locations))
    table.add_row("Plot threads", str(stats.plot_threads))
    console.print(table)
    console.print(f"[dim]Database: {get_config(ctx).db_path}[/dim]")


@app.command("export-wiki")
def export_wiki_cmd(
    ctx: typer.Context,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Markdown output path"),
    ] = None,
) -> None:
    """Export every completed session's final wiki content as Markdown."""
    out = output or get_config(ctx).export_dir / "dim-lantern-wiki.md"
    machine = _machine(ctx)
    try:
        out_path = _run(ctx, lambda store: WorkflowService(store, machine).export_wiki(out))
    except NothingToExportError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1)
    console.print(f"[green]Wiki exported to:[/green] [bold]{out_path}[/bold]")
