"""CLI entry point for musicfox.

A headless player plus small subcommands for inspecting lyrics files and the
saved session.
"""

from __future__ import annotations

import os

# mpv segfaults if LC_NUMERIC is not C. The actual locale is set via
# ctypes in player.py; this env var provides a hint for subprocesses.
os.environ["LC_NUMERIC"] = "C"

import asyncio
import json
import logging
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Any, NoReturn

import click
from rich.console import Console
from rich.text import Text

from musicfox import __version__
from musicfox.config.paths import CONFIG_DIR, CONFIG_FILE, ensure_dirs
from musicfox.core.lyrics import LyricTimer, LyricTrack, LyricWindow
from musicfox.core.models import MODE_NAMES, PlayMode
from musicfox.utils.formatting import truncate

console = Console()

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _json_output(data: Any, *, compact: bool = False) -> None:
    """Print *data* as JSON to stdout."""
    indent = None if compact else 2
    click.echo(json.dumps(data, indent=indent, default=str))


def _error(msg: str) -> NoReturn:
    """Print an error message to stderr and exit with code 1."""
    click.echo(f"Error: {msg}", err=True)
    sys.exit(1)


def _lyric_text(window: LyricWindow) -> Text:
    text = Text(justify="center")
    middle = len(window.lines) // 2
    for i, line in enumerate(window.lines):
        style = "bold cyan" if i == middle else "dim"
        text.append(truncate(line, console.width) + "\n", style=style)
    return text


# ---------------------------------------------------------------------------
# Main group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="musicfox")
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr.")
@click.option(
    "--json",
    "compact_json",
    is_flag=True,
    hidden=True,
    help="Compact JSON output (no indentation).",
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, compact_json: bool) -> None:
    """musicfox -- session core of a terminal music client."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["compact"] = compact_json


# ---------------------------------------------------------------------------
# Headless playback
# ---------------------------------------------------------------------------


@main.command()
@click.argument("playlist_id")
@click.option(
    "--mode",
    "-m",
    type=click.Choice([m.value for m in PlayMode if m is not PlayMode.INTELLIGENT]),
    default=None,
    help="Play mode for this session (saved for next time).",
)
def play(playlist_id: str, mode: str | None) -> None:
    """Play PLAYLIST_ID without a UI, printing lyrics as they change."""
    from musicfox.config.keymap import Action, get_keymap
    from musicfox.config.settings import get_settings
    from musicfox.core.catalog_menus import playlist_menu, root_menu
    from musicfox.core.controller import ActionRequested, SessionController
    from musicfox.core.navigator import MenuNavigator
    from musicfox.core.session import PlaybackSession
    from musicfox.services.lrclib import LrclibLyrics
    from musicfox.services.persistence import SessionStore
    from musicfox.services.player import MpvEngine
    from musicfox.services.stream import StreamResolver
    from musicfox.services.ytmusic import YTMusicCatalog

    ensure_dirs()
    settings = get_settings()
    store = SessionStore()
    catalog = YTMusicCatalog(timeout=settings.playback.api_timeout)
    engine = MpvEngine(volume=settings.playback.default_volume)
    session = PlaybackSession(
        engine,
        StreamResolver(settings.playback.audio_quality),
        catalog=catalog,
        persistence=store,
        failure_threshold=settings.playback.failure_threshold,
        stuck_tolerance=settings.playback.stuck_tolerance,
        lyric_lines=settings.lyrics.max_lines,
        lyric_offset=settings.lyrics.offset_ms / 1000,
    )
    session.restore()
    if mode:
        session.set_mode(mode)
    elif store.load_play_mode() is None:
        session.set_mode(settings.playback.default_mode)

    navigator = MenuNavigator(
        root_menu(catalog, session, settings.catalog.page_size),
        page_size=settings.menu.page_size,
        dual_column=settings.menu.dual_column,
        dynamic_row_count=settings.menu.dynamic_row_count,
    )
    last_shown: list[Any] = [None, None]

    def render() -> None:
        track = session.current_track
        if track is not None and track.id != last_shown[0]:
            last_shown[0] = track.id
            console.print(f"[bold]♪ {track.title}[/bold] [dim]{track.artist_name}[/dim]")
        window = session.lyric_window
        if settings.lyrics.enabled and window is not None and window != last_shown[1]:
            last_shown[1] = window
            console.print(_lyric_text(window))

    controller = SessionController(
        navigator,
        session,
        keymap=get_keymap(),
        request_rerender=render,
        lyric_fetch=LrclibLyrics() if settings.lyrics.enabled else None,
        seek_step=settings.playback.seek_step,
    )
    controller.attach_engine(engine)

    width, height = shutil.get_terminal_size()
    navigator.resize(width, height)
    result = navigator.enter(
        child=playlist_menu(catalog, playlist_id, limit=settings.catalog.page_size)
    )
    if result.error is not None:
        engine.shutdown()
        _error(f"Could not open playlist {playlist_id}: {result.message or result.error}")

    controller.post(ActionRequested(Action.SELECT))
    try:
        asyncio.run(controller.run())
    except KeyboardInterrupt:
        click.echo()
    finally:
        engine.shutdown()


# ---------------------------------------------------------------------------
# Lyrics
# ---------------------------------------------------------------------------


@main.command()
@click.argument("lrc_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--at", "at_seconds", type=float, default=0.0, show_default=True, help="Elapsed seconds.")
@click.option("--lines", type=click.Choice(["3", "5"]), default="5", show_default=True)
def lyrics(lrc_file: Path, at_seconds: float, lines: str) -> None:
    """Show the lyric window of LRC_FILE at a point in time."""
    try:
        raw = lrc_file.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        _error(f"Cannot read {lrc_file}: {exc}")

    timer = LyricTimer(LyricTrack.from_payload(raw), window=int(lines))
    timer.start()
    window = timer.on_tick(at_seconds)
    if window is not None:
        console.print(_lyric_text(window))


# ---------------------------------------------------------------------------
# Saved session
# ---------------------------------------------------------------------------


@main.command()
@click.argument("new_mode", required=False, type=click.Choice([m.value for m in PlayMode]))
def mode(new_mode: str | None) -> None:
    """Show or set the saved play mode."""
    from musicfox.services.persistence import SessionStore

    store = SessionStore()
    if new_mode is not None:
        store.save_play_mode(PlayMode(new_mode))
    current = store.load_play_mode() or PlayMode.LIST_LOOP
    click.echo(MODE_NAMES[current])


@main.command()
@click.pass_context
def queue(ctx: click.Context) -> None:
    """Print the saved play queue as JSON."""
    from musicfox.services.persistence import SessionStore

    snapshot = SessionStore().load_queue_snapshot()
    if snapshot is None:
        _error("No saved queue.")
    _json_output(snapshot.to_dict(), compact=ctx.obj.get("compact", False))


@main.command()
@click.option("--path", "print_path", is_flag=True, help="Only print the config file path.")
def config(print_path: bool) -> None:
    """Open the config file in your editor.

    Uses $EDITOR if set, otherwise falls back to xdg-open.
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    # Ensure a default config exists.
    if not CONFIG_FILE.exists():
        from musicfox.config.settings import Settings

        Settings().save(CONFIG_FILE)

    if print_path:
        click.echo(str(CONFIG_FILE))
        return

    editor = os.environ.get("EDITOR") or shutil.which("xdg-open")
    if editor is None:
        _error(f"No $EDITOR set and xdg-open not found. Open manually: {CONFIG_FILE}")

    try:
        subprocess.run([editor, str(CONFIG_FILE)], check=True)
    except (subprocess.CalledProcessError, FileNotFoundError) as exc:
        _error(f"Failed to open editor: {exc}")
