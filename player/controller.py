"""
Player controller.

Single owner of the playback state: the loaded catalog snapshot, the active
playlist, the sequencer and the media element. Every user action (play,
pause, next, previous, seek, playlist switch, catalog mutations) goes
through one instance of this class.
"""

import logging
import math
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from shared.constants import NOTICE_NOTHING_TO_PLAY, RESERVED_PLAYLIST
from shared.models import DeleteOutcome, Song
from .client import CatalogClient, CatalogClientError
from .media import MediaElement, MediaPlaybackError
from .sequencer import PlaybackSequencer, RepeatMode

logger = logging.getLogger(__name__)


class PlaybackState(Enum):
    STOPPED = "stopped"
    PLAYING = "playing"
    PAUSED = "paused"


@dataclass
class Notice:
    """A user-visible message. level is info, success or error."""
    message: str
    level: str = "info"


def format_time(seconds: Optional[float]) -> str:
    """Format seconds as m:ss ('0:00' when unknown)."""
    if not seconds or math.isnan(seconds) or seconds < 0:
        return "0:00"
    total = int(seconds)
    return f"{total // 60}:{total % 60:02d}"


class PlayerController:
    """Drives a MediaElement from a catalog snapshot."""

    def __init__(self, media: MediaElement, client: Optional[CatalogClient] = None,
                 sequencer: Optional[PlaybackSequencer] = None,
                 reserved_playlist: str = RESERVED_PLAYLIST):
        self.media = media
        self.client = client
        self.sequencer = sequencer or PlaybackSequencer()
        self.reserved_playlist = reserved_playlist
        self.current_playlist = reserved_playlist
        self.playlists: Dict[str, List[Song]] = {}
        self.state = PlaybackState.STOPPED
        self.last_notice: Optional[Notice] = None

        self._lock = threading.RLock()
        self._auto_resumed = False
        # The element dropped its source after an error
        self._source_failed = False
        self._notice_callbacks: List[Callable[[Notice], None]] = []
        self._change_callbacks: List[Callable[[], None]] = []

        self.sequencer.add_notice_callback(self._notify)
        self.media.on_ended = self.on_track_ended
        self.media.on_error = self.on_media_error
        self.media.on_paused = self.on_unexpected_pause

    # --- Callbacks ---

    def add_notice_callback(self, callback: Callable[[Notice], None]) -> None:
        if callback not in self._notice_callbacks:
            self._notice_callbacks.append(callback)

    def add_change_callback(self, callback: Callable[[], None]) -> None:
        """Register a callback to be called when playback state changes."""
        if callback not in self._change_callbacks:
            self._change_callbacks.append(callback)

    def _notify(self, message: str, level: str = "info") -> None:
        notice = Notice(message, level)
        self.last_notice = notice
        log = logger.warning if level == "error" else logger.info
        log("Notice: %s", message)
        for callback in self._notice_callbacks:
            try:
                callback(notice)
            except Exception as e:
                logger.error("Error in notice callback: %s", e)

    def _notify_change(self) -> None:
        for callback in self._change_callbacks:
            try:
                callback()
            except Exception as e:
                logger.error("Error in change callback: %s", e)

    # --- State ---

    @property
    def songs(self) -> List[Song]:
        return self.sequencer.songs

    @property
    def current_index(self) -> Optional[int]:
        return self.sequencer.current_index

    @property
    def current_song(self) -> Optional[Song]:
        return self.sequencer.current_song

    @property
    def is_playing(self) -> bool:
        return self.state == PlaybackState.PLAYING

    def _guard_empty(self) -> bool:
        if self.sequencer.is_empty:
            self._notify(NOTICE_NOTHING_TO_PLAY)
            return True
        return False

    # --- Playback ---

    def play(self, index: int) -> bool:
        """
        Load and start the song at index.

        Returns:
            True if the media element started playing. A rejection leaves
            the track loaded and paused so the user can retry.
        """
        with self._lock:
            if self._guard_empty():
                return False
            if not 0 <= index < len(self.songs):
                self._notify(f"No song at position {index + 1}", "error")
                return False

            song = self.songs[index]
            # Never let two sources overlap
            self.media.stop()
            self.sequencer.set_current(index)
            self.media.load(song.playback_url)
            self._auto_resumed = False
            self._source_failed = False
            return self._start_media()

    def _start_media(self) -> bool:
        song = self.current_song
        try:
            self.media.play()
        except MediaPlaybackError as e:
            self.state = PlaybackState.PAUSED
            self._notify(f"Could not play '{song.name if song else ''}': {e}. Press play to retry.", "error")
            self._notify_change()
            return False
        self.state = PlaybackState.PLAYING
        self._notify_change()
        return True

    def select(self, index: int) -> bool:
        """Direct pick from the song list."""
        with self._lock:
            if self._guard_empty():
                return False
            if 0 <= index < len(self.songs):
                self.sequencer.record_manual_pick(index)
            return self.play(index)

    def toggle(self) -> bool:
        """Play/pause. Starts the first (or a shuffled) track if none is loaded."""
        with self._lock:
            if self._guard_empty():
                return False
            if self.current_index is None:
                return self.play(self.sequencer.start_index())
            if self.state == PlaybackState.PLAYING:
                self.media.pause()
                self.state = PlaybackState.PAUSED
                self._notify_change()
                return True
            if self.state == PlaybackState.STOPPED or self._source_failed:
                return self.play(self.current_index)
            return self._start_media()

    def next(self) -> bool:
        with self._lock:
            if self._guard_empty():
                return False
            return self.play(self.sequencer.next_index())

    def previous(self) -> bool:
        with self._lock:
            if self._guard_empty():
                return False
            return self.play(self.sequencer.previous_index())

    def stop(self) -> None:
        with self._lock:
            self.media.stop()
            self.state = PlaybackState.STOPPED
            self._notify_change()

    def seek(self, fraction: float) -> bool:
        """Seek to a fraction (0..1) of the current track."""
        with self._lock:
            if self.current_index is None:
                return False
            duration = self.media.duration
            if not duration:
                return False
            self.media.seek(max(0.0, min(1.0, fraction)) * duration)
            return True

    def toggle_shuffle(self) -> bool:
        with self._lock:
            enabled = self.sequencer.toggle_shuffle()
            self._notify(f"Shuffle {'on' if enabled else 'off'}")
            self._notify_change()
            return enabled

    def toggle_repeat(self) -> RepeatMode:
        with self._lock:
            mode = self.sequencer.toggle_repeat()
            self._notify(f"Repeat {mode.value}")
            self._notify_change()
            return mode

    # --- Media events ---

    def on_track_ended(self) -> None:
        with self._lock:
            if self.sequencer.is_empty or self.current_index is None:
                return
            if self.sequencer.repeat_mode == RepeatMode.ONE:
                # The element has unloaded the track, so start it over
                self.play(self.current_index)
            elif self.sequencer.repeat_mode == RepeatMode.ALL:
                self.next()
            elif self.sequencer.has_natural_next():
                self.next()
            else:
                self.state = PlaybackState.STOPPED
                self._notify_change()

    def on_media_error(self, message: str) -> None:
        """Decode or network failure while playing. Position bookkeeping is kept."""
        with self._lock:
            self.state = PlaybackState.PAUSED
            self._source_failed = True
            song = self.current_song
            self._notify(f"Playback error{f' on {song.name!r}' if song else ''}: {message}", "error")
            self._notify_change()

    def on_unexpected_pause(self) -> None:
        """The element paused on its own; resume once per track, then give up."""
        with self._lock:
            if self.state != PlaybackState.PLAYING:
                return
            if self._auto_resumed:
                self.state = PlaybackState.PAUSED
                self._notify("Playback paused")
                self._notify_change()
                return
            self._auto_resumed = True
            logger.info("Unexpected pause, resuming once")
            try:
                self.media.play()
            except MediaPlaybackError as e:
                self.state = PlaybackState.PAUSED
                self._notify(f"Playback paused: {e}", "error")
                self._notify_change()

    # --- Catalog snapshot ---

    def _fetch_snapshot(self) -> Optional[Dict[str, List[Song]]]:
        if self.client is None:
            return None
        try:
            return self.client.get_snapshot()
        except CatalogClientError as e:
            self._notify(f"Could not load playlists: {e.message}", "error")
            return None

    def load_snapshot(self) -> bool:
        """Re-fetch the full catalog and rebuild the sequencer for the active playlist."""
        snapshot = self._fetch_snapshot()
        if snapshot is None:
            return False
        self.apply_snapshot(snapshot)
        return True

    def apply_snapshot(self, snapshot: Dict[str, List[Song]]) -> None:
        """
        Install a snapshot. The current song keeps playing if it is still in
        the active playlist; otherwise playback stops.
        """
        with self._lock:
            self.playlists = dict(snapshot)
            current = self.current_song
            if self.current_playlist not in self.playlists:
                self.current_playlist = self.reserved_playlist
                current = None
                self._stop_media()

            songs = self.playlists.get(self.current_playlist, [])
            new_index = None
            if current is not None:
                new_index = next((i for i, s in enumerate(songs) if s.id == current.id), None)
                if new_index is None:
                    self._stop_media()
            self.sequencer.reset(songs, new_index)
            self._notify_change()

    def _stop_media(self) -> None:
        self.media.stop()
        self.state = PlaybackState.STOPPED

    def switch_playlist(self, name: str) -> bool:
        snapshot = self._fetch_snapshot()
        with self._lock:
            if snapshot is not None:
                self.playlists = dict(snapshot)
            if name not in self.playlists:
                self._notify(f"Playlist '{name}' not found", "error")
                return False
            self._stop_media()
            self.current_playlist = name
            self.sequencer.reset(self.playlists[name])
            self._notify_change()
            return True

    # --- Catalog mutations ---

    def _mutate(self, action: Callable[[], object], success: str, failure: str) -> bool:
        if self.client is None:
            self._notify(f"{failure}: not connected", "error")
            return False
        try:
            action()
        except CatalogClientError as e:
            self._notify(f"{failure}: {e.message}", "error")
            return False
        self._notify(success, "success")
        self.load_snapshot()
        return True

    def upload_files(self, paths: Sequence[str]) -> int:
        """Upload files one by one. Returns the number that succeeded."""
        if not paths:
            return 0
        if self.client is None:
            self._notify("Upload failed: not connected", "error")
            return 0

        total = len(paths)
        self._notify(f"Uploading {total} files...")
        uploaded = 0
        for path in paths:
            try:
                self.client.upload(path)
                uploaded += 1
            except CatalogClientError as e:
                self._notify(f"Upload of {Path(path).name} failed: {e.message}", "error")

        self._notify(f"Uploaded {uploaded}/{total} files", "success" if uploaded == total else "error")
        if uploaded:
            self.load_snapshot()
        return uploaded

    def rename_song(self, song_id: str, new_name: str) -> bool:
        return self._mutate(
            lambda: self.client.rename_song(song_id, new_name),
            f"Renamed to '{new_name}'", "Rename failed",
        )

    def delete_song(self, song_id: str, playlist_name: Optional[str] = None) -> Optional[DeleteOutcome]:
        playlist = playlist_name or self.current_playlist
        if self.client is None:
            self._notify("Delete failed: not connected", "error")
            return None
        try:
            outcome = self.client.delete_song(song_id, playlist)
        except CatalogClientError as e:
            self._notify(f"Delete failed: {e.message}", "error")
            return None
        if outcome == DeleteOutcome.PURGED:
            self._notify("Song deleted from the library", "success")
        else:
            self._notify(f"Song removed from '{playlist}'", "success")
        self.load_snapshot()
        return outcome

    def move_song(self, song_id: str, to_playlist: str, from_playlist: Optional[str] = None) -> bool:
        source = from_playlist or self.current_playlist
        return self._mutate(
            lambda: self.client.move_song(song_id, source, to_playlist),
            f"Moved to '{to_playlist}'", "Move failed",
        )

    def add_songs_to_playlist(self, playlist_name: str, song_ids: Sequence[str]) -> bool:
        return self._mutate(
            lambda: self.client.add_songs_to_playlist(playlist_name, song_ids),
            f"Added {len(song_ids)} songs to '{playlist_name}'", "Add to playlist failed",
        )

    def create_playlist(self, name: str) -> bool:
        if not self._mutate(
            lambda: self.client.create_playlist(name),
            f"Playlist '{name.strip()}' created", "Create playlist failed",
        ):
            return False
        return self.switch_playlist(name.strip())

    def rename_playlist(self, old_name: str, new_name: str) -> bool:
        def action():
            self.client.rename_playlist(old_name, new_name)
            if self.current_playlist == old_name:
                self.current_playlist = new_name.strip()

        return self._mutate(action, f"Playlist renamed to '{new_name.strip()}'", "Rename playlist failed")

    def delete_playlist(self, name: str) -> bool:
        return self._mutate(
            lambda: self.client.delete_playlist(name),
            f"Playlist '{name}' deleted", "Delete playlist failed",
        )
