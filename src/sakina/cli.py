"""CLI interface for sakina."""

import asyncio
import base64
import logging
from datetime import datetime
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from sakina.config import SakinaConfig, load_config, merge_cli_overrides
from sakina.dare import DareFlow
from sakina.errors import InvalidEntry, PremiumRequired, StorageFullError
from sakina.images import (
    EnvKeyProvider,
    ImageCache,
    ImageGenerator,
    ImageRequest,
    ImageService,
    ImageState,
)
from sakina.journal import (
    JournalStore,
    MoodEntry,
    MoodFilter,
    QuerySpec,
    SortKey,
    ThinkingTrap,
    suggest_reframe,
)
from sakina.library import (
    AUDIO_LIBRARY,
    CHALLENGE_CONTENT,
    RELAX_CONTENT,
    PlaybackClock,
    TrackCategory,
    ensure_playable,
    filter_tracks,
    get_track,
)
from sakina.preferences import Preferences, ThemeMode
from sakina.storage import JsonFileStore

app = typer.Typer(
    name="sakina",
    help="Face your anxiety: mood journal, reframes, relaxation library, and DARE flow.",
)
journal_app = typer.Typer(help="Write and browse thought records.")
image_app = typer.Typer(help="Generated illustration cache.")
library_app = typer.Typer(help="Relaxation and challenge audio library.")
app.add_typer(journal_app, name="journal")
app.add_typer(image_app, name="image")
app.add_typer(library_app, name="library")

console = Console()


class _State:
    """Lazily-opened resources shared by every command in one invocation."""

    def __init__(self, config: SakinaConfig) -> None:
        self.config = config
        self._kv: JsonFileStore | None = None

    @property
    def kv(self) -> JsonFileStore:
        if self._kv is None:
            storage = self.config.storage
            self._kv = JsonFileStore(storage.path, capacity=storage.capacity)
        return self._kv

    def journal(self) -> JournalStore:
        return JournalStore(self.kv)

    def preferences(self) -> Preferences:
        return Preferences(self.kv)


def _state(ctx: typer.Context) -> _State:
    if ctx.obj is None:
        ctx.obj = _State(load_config())
    return ctx.obj


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from sakina import __version__

        console.print(f"sakina {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to a .sakina.toml file."),
    ] = None,
    data_dir: Annotated[
        Optional[Path],
        typer.Option("--data-dir", help="Directory holding the local store."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Enable debug logging."),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """Sakina - an anxiety companion."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    config = merge_cli_overrides(load_config(config_path), data_dir=data_dir)
    ctx.obj = _State(config)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _parse_trap(raw: str) -> ThinkingTrap:
    """Accept a trap by enum name (any case, dashes allowed) or Arabic label."""
    name = raw.strip().upper().replace("-", "_").replace(" ", "_")
    if name in ThinkingTrap.__members__:
        return ThinkingTrap[name]
    try:
        return ThinkingTrap(raw.strip())
    except ValueError:
        choices = ", ".join(t.name.lower() for t in ThinkingTrap)
        raise typer.BadParameter(f"Unknown trap {raw!r}. Choose from: {choices}") from None


def _render_entries(entries: list[MoodEntry]) -> Table:
    table = Table(show_lines=True)
    table.add_column("When", style="dim", no_wrap=True)
    table.add_column("Mood", justify="right")
    table.add_column("Traps")
    table.add_column("Thought")
    table.add_column("Reframe", style="green")
    for entry in entries:
        when = datetime.fromtimestamp(entry.timestamp / 1000).strftime("%Y-%m-%d %H:%M")
        table.add_row(
            when,
            str(entry.mood_level),
            ", ".join(t.value for t in entry.traps),
            entry.original_thought,
            entry.reframe,
        )
    return table


def _write_data_uri(payload: str, output: Path) -> None:
    _header, _, data = payload.partition(",")
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(base64.b64decode(data))


# ---------------------------------------------------------------------------
# Journal
# ---------------------------------------------------------------------------


@journal_app.command("add")
def journal_add(
    ctx: typer.Context,
    mood: Annotated[int, typer.Option("--mood", "-m", min=1, max=10, help="1 = calm, 10 = acute anxiety.")],
    thought: Annotated[str, typer.Option("--thought", "-t", help="The anxious thought.")],
    reframe: Annotated[
        Optional[str],
        typer.Option("--reframe", "-r", help="Your reframe. Omit with --suggest to use AI."),
    ] = None,
    trap: Annotated[
        Optional[list[str]],
        typer.Option("--trap", help="Thinking trap (repeatable), e.g. catastrophizing."),
    ] = None,
    suggest: Annotated[
        bool,
        typer.Option("--suggest/--no-suggest", help="Draft the reframe with AI."),
    ] = False,
) -> None:
    """Save a new thought record."""
    state = _state(ctx)
    traps = [_parse_trap(t) for t in trap or []]

    if reframe is None and suggest:
        if not traps:
            console.print("[red]Error:[/red] --suggest needs at least one --trap.")
            raise typer.Exit(1)
        with console.status("Drafting a reframe..."):
            draft = suggest_reframe(
                thought,
                traps,
                model=state.config.reframe.model,
                timeout=state.config.reframe.timeout,
            )
        reframe = typer.prompt("Reframe", default=draft)

    if not reframe:
        console.print("[red]Error:[/red] A reframe is required (use --reframe or --suggest).")
        raise typer.Exit(1)

    try:
        entry = MoodEntry.create(mood, thought, reframe, traps)
        state.journal().append(entry)
    except (InvalidEntry, StorageFullError, ValueError) as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(1) from exc
    console.print(f"[green]Saved[/green] entry {entry.id}")


@journal_app.command("list")
def journal_list(
    ctx: typer.Context,
    search: Annotated[str, typer.Option("--search", "-s", help="Text to find in thought or reframe.")] = "",
    trap: Annotated[
        Optional[list[str]],
        typer.Option("--trap", help="Show entries with any of these traps (repeatable)."),
    ] = None,
    mood: Annotated[MoodFilter, typer.Option("--mood", case_sensitive=False)] = MoodFilter.ALL,
    sort: Annotated[SortKey, typer.Option("--sort", case_sensitive=False)] = SortKey.LATEST,
) -> None:
    """Browse saved entries."""
    spec = QuerySpec(
        search_text=search,
        trap_filter=frozenset(_parse_trap(t) for t in trap or []),
        mood_filter=mood,
        sort_key=sort,
    )
    entries = _state(ctx).journal().query(spec)
    if not entries:
        console.print("[yellow]No matching entries.[/yellow]")
        raise typer.Exit(0)
    console.print(_render_entries(entries))
    console.print(f"{len(entries)} entr{'y' if len(entries) == 1 else 'ies'}")


@journal_app.command("stats")
def journal_stats(ctx: typer.Context) -> None:
    """Summarize the journal."""
    stats = _state(ctx).journal().stats()
    console.print(f"Entries: [bold]{stats.total}[/bold]")
    if stats.average_mood is not None:
        console.print(f"Average mood: {stats.average_mood}")
    console.print(f"High (7+): {stats.high_count}  Mid: {stats.mid_count}  Low (4-): {stats.low_count}")
    for trap_name, count in sorted(stats.trap_counts.items(), key=lambda kv: -kv[1]):
        console.print(f"  {trap_name.value}: {count}")


@journal_app.command("clear")
def journal_clear(
    ctx: typer.Context,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation.")] = False,
) -> None:
    """Delete every journal entry."""
    if not yes:
        typer.confirm("Delete all journal entries?", abort=True)
    _state(ctx).journal().clear()
    console.print("[green]Journal cleared.[/green]")


@app.command("reframe")
def reframe_cmd(
    ctx: typer.Context,
    thought: Annotated[str, typer.Argument(help="The anxious thought.")],
    trap: Annotated[list[str], typer.Option("--trap", help="Thinking trap (repeatable).")],
) -> None:
    """Suggest a compassionate reframe without saving anything."""
    state = _state(ctx)
    traps = [_parse_trap(t) for t in trap]
    with console.status("Drafting a reframe..."):
        text = suggest_reframe(
            thought,
            traps,
            model=state.config.reframe.model,
            timeout=state.config.reframe.timeout,
        )
    console.print(text)


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------


async def _drive_image_request(request: ImageRequest) -> ImageState:
    result = await request.load()
    while result.state in (ImageState.NEEDS_KEY, ImageState.ERROR):
        if result.state is ImageState.NEEDS_KEY:
            console.print(f"[yellow]Image service refused the request:[/yellow] {result.error}")
            if not typer.confirm("Provide a different API key?", default=True):
                break
            result = await request.provide_key()
        else:
            console.print(f"[red]Image generation failed:[/red] {result.error}")
            if not typer.confirm("Retry?", default=False):
                break
            result = await request.retry()
    return result.state


@image_app.command("fetch")
def image_fetch(
    ctx: typer.Context,
    cache_key: Annotated[str, typer.Argument(help="Stable key for this image.")],
    prompt: Annotated[str, typer.Argument(help="What the image should show.")],
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Write the decoded image here."),
    ] = None,
) -> None:
    """Return a cached illustration or generate it."""
    state = _state(ctx)
    provider = EnvKeyProvider(prompt=lambda: typer.prompt("API key", hide_input=True))
    generator = ImageGenerator(
        state.config.images.model,
        aspect_ratio=state.config.images.aspect_ratio,
        key_provider=provider,
    )
    service = ImageService(generator, ImageCache(state.kv))
    request = ImageRequest(cache_key, prompt, service)

    final = asyncio.run(_drive_image_request(request))
    if final is not ImageState.RESOLVED or request.payload is None:
        raise typer.Exit(1)

    if output is not None:
        _write_data_uri(request.payload, output)
        console.print(f"[green]Saved[/green] {output}")
    else:
        console.print(f"[green]Ready[/green] {cache_key} ({len(request.payload)} bytes cached)")


@image_app.command("clear")
def image_clear(ctx: typer.Context) -> None:
    """Evict every cached illustration."""
    cache = ImageCache(_state(ctx).kv)
    count = len(cache.keys())
    cache.clear()
    console.print(f"Evicted {count} cached image(s).")


# ---------------------------------------------------------------------------
# Library
# ---------------------------------------------------------------------------


@library_app.command("list")
def library_list(
    ctx: typer.Context,
    search: Annotated[str, typer.Option("--search", "-s")] = "",
    section: Annotated[
        str,
        typer.Option("--section", help="relax, challenge, or all."),
    ] = "all",
    category: Annotated[
        Optional[TrackCategory],
        typer.Option("--category", case_sensitive=False),
    ] = None,
) -> None:
    """List tracks, marking the ones locked behind premium."""
    sections = {"relax": RELAX_CONTENT, "challenge": CHALLENGE_CONTENT, "all": AUDIO_LIBRARY}
    if section not in sections:
        console.print(f"[red]Error:[/red] Unknown section: {section}")
        raise typer.Exit(1)
    premium = _state(ctx).preferences().is_premium

    table = Table()
    table.add_column("ID", style="dim")
    table.add_column("Title")
    table.add_column("Label")
    table.add_column("Length", justify="right")
    table.add_column("")
    for track in filter_tracks(sections[section], search=search, category=category):
        locked = track.is_premium and not premium
        table.add_row(track.id, track.title, track.arabic_label, track.duration, "🔒" if locked else "")
    console.print(table)


@library_app.command("play")
def library_play(
    ctx: typer.Context,
    track_id: Annotated[str, typer.Argument(help="Track id, e.g. r1.")],
    seconds: Annotated[int, typer.Option("--seconds", help="Simulated seconds to advance.")] = 0,
) -> None:
    """Start the (simulated) player for a track."""
    try:
        track = ensure_playable(get_track(track_id), _state(ctx).preferences().is_premium)
    except KeyError:
        console.print(f"[red]Error:[/red] Unknown track: {track_id}")
        raise typer.Exit(1) from None
    except PremiumRequired as exc:
        console.print(f"[yellow]{exc}.[/yellow] Run 'sakina premium --purchase' to unlock.")
        raise typer.Exit(1) from exc

    clock = PlaybackClock.for_track(track)
    clock.toggle()
    clock.tick(seconds)
    console.print(f"▶ {track.title} ({track.arabic_label})  {clock}")


# ---------------------------------------------------------------------------
# DARE flow and preferences
# ---------------------------------------------------------------------------


@app.command("dare")
def dare_cmd(
    wait: Annotated[
        bool,
        typer.Option("--wait/--no-wait", help="Pause for Enter between steps."),
    ] = True,
) -> None:
    """Walk through the four DARE steps."""
    flow = DareFlow()
    while True:
        position, total = flow.progress
        step = flow.current
        console.rule(f"{position}/{total}  {step.title}")
        console.print(step.instruction)
        console.print(f"[dim]{step.audio_text}[/dim]")
        if flow.is_last:
            break
        if wait:
            typer.prompt("", default="", show_default=False, prompt_suffix="")
        flow.next()
    console.print("[green]Well done.[/green]")


@app.command("theme")
def theme_cmd(
    ctx: typer.Context,
    mode: Annotated[
        Optional[str],
        typer.Argument(help="light, dark, system, or toggle. Omit to show."),
    ] = None,
) -> None:
    """Show or change the theme."""
    prefs = _state(ctx).preferences()
    if mode == "toggle":
        prefs.toggle_theme()
    elif mode is not None:
        try:
            prefs.theme_mode = ThemeMode(mode)
        except ValueError:
            console.print(f"[red]Error:[/red] Unknown theme: {mode}")
            raise typer.Exit(1) from None
    console.print(f"Theme: {prefs.theme_mode.value}")


@app.command("premium")
def premium_cmd(
    ctx: typer.Context,
    purchase: Annotated[bool, typer.Option("--purchase", help="Activate premium.")] = False,
) -> None:
    """Show or activate the premium subscription."""
    prefs = _state(ctx).preferences()
    if purchase:
        prefs.purchase_premium()
    console.print("Premium: [green]active[/green]" if prefs.is_premium else "Premium: inactive")
