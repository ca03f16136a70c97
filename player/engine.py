"""
Media element backed by python-mpv.
Handles the low-level details of audio playback and translates mpv property
changes into MediaElement events.
"""

import logging
import threading
from typing import Optional

import mpv

from .media import MediaElement, MediaPlaybackError

logger = logging.getLogger(__name__)


class MpvMediaElement(MediaElement):
    """Wrapper around MPV for streaming playback."""

    def __init__(self, player: Optional["mpv.MPV"] = None):
        super().__init__()
        # vo='null' because we are audio-only
        self.player = player or mpv.MPV(vo='null', ytdl=False)

        self._playing = False
        self._pause_requested = False
        self._finished = False
        # Set once mpv has picked up the current load
        self._active = False
        # mpv unloads the file at its end, so keep the last known values
        self._last_duration = 0.0
        self._last_position = 0.0

        self.player.observe_property('time-pos', self._handle_time_update)
        self.player.observe_property('duration', self._handle_duration)
        self.player.observe_property('eof-reached', self._handle_eof)
        self.player.observe_property('idle-active', self._handle_idle)
        self.player.observe_property('pause', self._handle_pause_change)

        self.player.volume = 100

    def load(self, url: str) -> None:
        self.source = url
        self._playing = False
        self.player.pause = True
        self._loadfile()

    def _loadfile(self) -> None:
        self._finished = False
        self._active = False
        self._last_duration = 0.0
        self._last_position = 0.0
        self.player.play(self.source)

    def play(self) -> None:
        if not self.source:
            raise MediaPlaybackError("No source loaded")
        try:
            if self._finished:
                # The file was unloaded when it ended or failed
                logger.info("Reloading %s", self.source)
                self._loadfile()
            self.player.pause = False
        except (mpv.ShutdownError, SystemError) as e:
            raise MediaPlaybackError(str(e)) from e
        self._pause_requested = False
        self._playing = True

    def pause(self) -> None:
        self._pause_requested = True
        self._playing = False
        self.player.pause = True

    def stop(self) -> None:
        self._playing = False
        self._finished = True
        self.source = None
        self.player.stop()

    def seek(self, position: float) -> None:
        if not self.source:
            return
        try:
            self.player.seek(position, reference='absolute')
        except SystemError as e:
            logger.warning("Error seeking: %s", e)

    @property
    def position(self) -> float:
        return self.player.time_pos or 0

    @property
    def duration(self) -> float:
        return self.player.duration or 0

    def close(self) -> None:
        self.player.terminate()

    # Event handlers run on mpv's event thread; hand them off so the
    # controller can issue new mpv commands.
    def _dispatch(self, handler, *args) -> None:
        threading.Thread(target=handler, args=args, daemon=True).start()

    def _handle_time_update(self, name, value):
        if value is not None:
            self._last_position = value

    def _handle_duration(self, name, value):
        if value:
            self._last_duration = value
            self._active = True

    def _handle_eof(self, name, value):
        if value and self._active:
            self._finish(error=None)

    def _handle_idle(self, name, value):
        """mpv went idle while we think a source is playing."""
        if not value:
            if self.source and not self._finished:
                self._active = True
            return
        # An idle left over from stopping the previous source
        if not self._playing or not self._active:
            return
        duration = self._last_duration
        if not duration:
            self._finish(error="Source could not be played")
        elif self._last_position < duration - 1:
            self._finish(error="Playback stopped unexpectedly")
        else:
            self._finish(error=None)

    def _finish(self, error: Optional[str]) -> None:
        if self._finished:
            return
        self._finished = True
        self._playing = False
        if error:
            logger.warning("mpv error on %s: %s", self.source, error)
            self._dispatch(self._emit_error, error)
        else:
            self._dispatch(self._emit_ended)

    def _handle_pause_change(self, name, value):
        # Ignore None values (MPV initialization)
        if value is None or not value:
            return
        if self._pause_requested or not self._playing:
            return
        logger.info("mpv paused without a request")
        self._dispatch(self._emit_paused)
