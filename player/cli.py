import logging
import queue
import sys
import threading
from typing import Dict, List, Optional

import click
from rich.console import Console
from rich.live import Live
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from shared.config import load_client_config
from shared.constants import RESERVED_PLAYLIST, TIME_UPDATE_INTERVAL
from shared.models import DeleteOutcome, Song
from .client import CatalogClient, CatalogClientError
from .controller import Notice, PlaybackState, PlayerController, format_time
from .sequencer import RepeatMode

console = Console()

NOTICE_STYLES = {"info": "cyan", "success": "green", "error": "red"}


def _client(ctx: click.Context) -> CatalogClient:
    return ctx.obj["client"]


def _fail(error: CatalogClientError):
    console.print(f"[red]{error.message}[/red]")
    sys.exit(1)


def _snapshot(ctx: click.Context) -> Dict[str, List[Song]]:
    try:
        return _client(ctx).get_snapshot()
    except CatalogClientError as e:
        _fail(e)


def _resolve_song(snapshot: Dict[str, List[Song]], ref: str) -> Song:
    """Find a song by full ID, ID prefix or exact name."""
    songs = snapshot.get(RESERVED_PLAYLIST, [])
    matches = [s for s in songs if s.id == ref]
    if not matches:
        matches = [s for s in songs if s.id.startswith(ref)] or [s for s in songs if s.name == ref]
    if len(matches) != 1:
        what = "No song" if not matches else f"{len(matches)} songs"
        console.print(f"[red]{what} matching '{ref}'[/red]")
        sys.exit(1)
    return matches[0]


@click.group()
@click.option('--server', envvar='TUNECLOUD_SERVER_URL', default=None, help='Catalog server URL.')
@click.option('-v', '--verbose', is_flag=True, help='Show debug logging.')
@click.pass_context
def cli(ctx, server, verbose):
    """🎵 Tunecloud player"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    config = load_client_config()
    if server:
        config.server_url = server
    ctx.ensure_object(dict)
    ctx.obj["client"] = CatalogClient.from_config(config)


@cli.command()
@click.pass_context
def playlists(ctx):
    """List playlists."""
    snapshot = _snapshot(ctx)
    table = Table(title=f"Playlists ({len(snapshot)})")
    table.add_column("Name", style="bold white")
    table.add_column("Songs", style="magenta", justify="right")
    for name, songs in snapshot.items():
        label = f"{name} [dim](library)[/dim]" if name == RESERVED_PLAYLIST else name
        table.add_row(label, str(len(songs)))
    console.print(table)


@cli.command(name='list')
@click.argument('playlist', default=RESERVED_PLAYLIST)
@click.pass_context
def list_songs(ctx, playlist):
    """List songs in a playlist."""
    snapshot = _snapshot(ctx)
    if playlist not in snapshot:
        console.print(f"[red]Playlist '{playlist}' not found.[/red]")
        sys.exit(1)

    songs = snapshot[playlist]
    if not songs:
        console.print("[yellow]Playlist is empty.[/yellow]")
        return

    table = Table(title=f"{playlist} ({len(songs)} songs)")
    table.add_column("#", style="dim", justify="right")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="bold white")
    table.add_column("Uploaded", style="yellow")
    table.add_column("Cover", style="green")
    for i, s in enumerate(songs, 1):
        table.add_row(str(i), s.id[:8], s.name, s.uploaded_at[:10], "✓" if s.cover_url else "")
    console.print(table)


@cli.command()
@click.argument('files', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option('--name', default=None, help='Display name (single file only).')
@click.pass_context
def upload(ctx, files, name):
    """Upload audio files into the library."""
    if name and len(files) > 1:
        raise click.UsageError("--name can only be used with a single file")

    client = _client(ctx)
    uploaded = 0
    with console.status("Uploading...") as status:
        for i, path in enumerate(files, 1):
            status.update(f"Uploading {i}/{len(files)}: {click.format_filename(path)}")
            try:
                song = client.upload(path, name=name)
            except CatalogClientError as e:
                console.print(f"[red]✗ {click.format_filename(path)}: {e.message}[/red]")
                continue
            uploaded += 1
            console.print(f"[green]✓ {song.name}[/green] [dim]{song.id[:8]}[/dim]")

    console.print(f"[bold]Uploaded {uploaded}/{len(files)} files.[/bold]")
    if uploaded < len(files):
        sys.exit(1)


@cli.command(name='rename-song')
@click.argument('song')
@click.argument('new_name')
@click.pass_context
def rename_song(ctx, song, new_name):
    """Rename a song (by ID prefix or name)."""
    target = _resolve_song(_snapshot(ctx), song)
    try:
        _client(ctx).rename_song(target.id, new_name)
    except CatalogClientError as e:
        _fail(e)
    console.print(f"[green]Renamed to '{new_name.strip()}'[/green]")


@cli.command(name='delete-song')
@click.argument('song')
@click.option('--playlist', default=RESERVED_PLAYLIST,
              help='Remove from this playlist only. Deleting from the library purges the song.')
@click.option('--yes', is_flag=True, help='Do not ask for confirmation.')
@click.pass_context
def delete_song(ctx, song, playlist, yes):
    """Delete a song from the library or remove it from a playlist."""
    target = _resolve_song(_snapshot(ctx), song)
    if playlist == RESERVED_PLAYLIST and not yes:
        click.confirm(f"Delete '{target.name}' from the library and every playlist?", abort=True)
    try:
        outcome = _client(ctx).delete_song(target.id, playlist)
    except CatalogClientError as e:
        _fail(e)
    if outcome == DeleteOutcome.PURGED:
        console.print(f"[green]Deleted '{target.name}'[/green]")
    else:
        console.print(f"[green]Removed '{target.name}' from '{playlist}'[/green]")


@cli.command(name='move-song')
@click.argument('song')
@click.argument('from_playlist')
@click.argument('to_playlist')
@click.pass_context
def move_song(ctx, song, from_playlist, to_playlist):
    """Move a song from one playlist to another."""
    target = _resolve_song(_snapshot(ctx), song)
    try:
        _client(ctx).move_song(target.id, from_playlist, to_playlist)
    except CatalogClientError as e:
        _fail(e)
    console.print(f"[green]Moved '{target.name}' to '{to_playlist}'[/green]")


@cli.command(name='add-songs')
@click.argument('playlist')
@click.argument('songs', nargs=-1, required=True)
@click.pass_context
def add_songs(ctx, playlist, songs):
    """Add songs to a playlist (created if missing)."""
    snapshot = _snapshot(ctx)
    ids = [_resolve_song(snapshot, ref).id for ref in songs]
    try:
        added = _client(ctx).add_songs_to_playlist(playlist, ids)
    except CatalogClientError as e:
        _fail(e)
    console.print(f"[green]Added {added} songs to '{playlist}'[/green]")


@cli.command(name='create-playlist')
@click.argument('name')
@click.pass_context
def create_playlist(ctx, name):
    """Create an empty playlist."""
    try:
        _client(ctx).create_playlist(name)
    except CatalogClientError as e:
        _fail(e)
    console.print(f"[green]Created '{name.strip()}'[/green]")


@cli.command(name='rename-playlist')
@click.argument('old_name')
@click.argument('new_name')
@click.pass_context
def rename_playlist(ctx, old_name, new_name):
    """Rename a playlist."""
    try:
        _client(ctx).rename_playlist(old_name, new_name)
    except CatalogClientError as e:
        _fail(e)
    console.print(f"[green]Renamed '{old_name}' to '{new_name.strip()}'[/green]")


@cli.command(name='delete-playlist')
@click.argument('name')
@click.pass_context
def delete_playlist(ctx, name):
    """Delete a playlist. Its songs stay in the library."""
    try:
        _client(ctx).delete_playlist(name)
    except CatalogClientError as e:
        _fail(e)
    console.print(f"[green]Deleted '{name}'[/green]")


# --- Interactive player ---

def _render(controller: PlayerController, notice: Optional[Notice]) -> Panel:
    song = controller.current_song
    position = controller.media.position if song else 0
    total = controller.media.duration if song else 0
    percent = min(100, (position / total) * 100) if total else 0

    status = Text()
    icon = {PlaybackState.PLAYING: "▶", PlaybackState.PAUSED: "⏸", PlaybackState.STOPPED: "■"}[controller.state]
    status.append(f"{icon} {song.name if song else 'Nothing loaded'}\n", style="bold green")
    status.append(f"{format_time(position)} ", style="cyan")
    status.append("━" * int(percent / 2), style="blue")
    status.append(" " * (50 - int(percent / 2)), style="gray")
    status.append(f" {format_time(total)}\n", style="cyan")

    seq = controller.sequencer
    status.append(f"shuffle {'on' if seq.shuffle_enabled else 'off'}  repeat {seq.repeat_mode.value}", style="magenta")
    if controller.current_index is not None:
        status.append(f"  track {controller.current_index + 1}/{len(controller.songs)}", style="dim")
    if notice:
        status.append(f"\n{notice.message}", style=NOTICE_STYLES.get(notice.level, "white"))
    status.append("\n[space] play/pause  [n]ext  [p]rev  [s]huffle  [r]epeat  [q]uit", style="dim")
    return Panel(status, title=f"Now Playing · {controller.current_playlist}")


def _read_keys(keys: "queue.Queue[str]", stop: threading.Event) -> None:
    while not stop.is_set():
        try:
            keys.put(click.getchar())
        except (EOFError, KeyboardInterrupt):
            keys.put('q')
            return


@cli.command()
@click.argument('playlist', default=RESERVED_PLAYLIST)
@click.option('--shuffle', is_flag=True, help='Start in shuffle mode.')
@click.option('--repeat', type=click.Choice([m.value for m in RepeatMode]), default=RepeatMode.OFF.value)
@click.pass_context
def play(ctx, playlist, shuffle, repeat):
    """Play a playlist interactively."""
    # libmpv is only needed for playback
    try:
        from .engine import MpvMediaElement
    except OSError:
        console.print(Panel.fit(
            "[red bold]Missing System Dependency: libmpv[/red bold]\n\n"
            "The music player requires the [cyan]libmpv[/cyan] library to work.\n\n"
            "Please install it:\n"
            "• Ubuntu/Debian: [green]sudo apt install libmpv1[/green]\n"
            "• Fedora: [green]sudo dnf install mpv-libs[/green]\n"
            "• Arch: [green]sudo pacman -S mpv[/green]",
            border_style="red"
        ))
        sys.exit(1)

    try:
        media = MpvMediaElement()
    except Exception as e:
        console.print(f"[red]Error initializing player: {e}[/red]")
        sys.exit(1)

    controller = PlayerController(media, client=_client(ctx))
    latest: List[Optional[Notice]] = [None]
    controller.add_notice_callback(lambda n: latest.__setitem__(0, n))

    if not controller.switch_playlist(playlist):
        console.print(f"[red]{latest[0].message if latest[0] else 'Could not load playlist'}[/red]")
        media.close()
        sys.exit(1)

    while controller.sequencer.repeat_mode.value != repeat:
        controller.toggle_repeat()
    if shuffle:
        controller.toggle_shuffle()
    controller.toggle()

    keys: "queue.Queue[str]" = queue.Queue()
    stop = threading.Event()
    threading.Thread(target=_read_keys, args=(keys, stop), daemon=True).start()

    actions = {
        ' ': controller.toggle,
        'n': controller.next,
        'p': controller.previous,
        's': controller.toggle_shuffle,
        'r': controller.toggle_repeat,
    }
    try:
        with Live(_render(controller, latest[0]), console=console, refresh_per_second=4) as live:
            while True:
                try:
                    key = keys.get(timeout=TIME_UPDATE_INTERVAL)
                except queue.Empty:
                    key = None
                if key == 'q':
                    break
                if key in actions:
                    actions[key]()
                live.update(_render(controller, latest[0]))
    except KeyboardInterrupt:
        pass
    finally:
        stop.set()
        controller.stop()
        media.close()
    console.print("\n[yellow]Stopped.[/yellow]")


if __name__ == '__main__':
    cli()
