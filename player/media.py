"""
Media element interface.

The controller only talks to this surface, so the terminal player (mpv) and
tests (a fake element) are interchangeable.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional


class MediaPlaybackError(Exception):
    """The media element refused or failed to play (decode, network, device)."""


class MediaElement(ABC):
    """
    A single audio output, playing one source at a time.

    Event callbacks are assigned by the owner and may be invoked from another
    thread:
        on_ended()          the source played to its end
        on_error(message)   decode or network failure during playback
        on_paused()         playback paused without a pause() call
    """

    def __init__(self):
        self.on_ended: Optional[Callable[[], None]] = None
        self.on_error: Optional[Callable[[str], None]] = None
        self.on_paused: Optional[Callable[[], None]] = None
        self.source: Optional[str] = None

    @abstractmethod
    def load(self, url: str) -> None:
        """Replace the current source; does not start playback."""
        pass

    @abstractmethod
    def play(self) -> None:
        """
        Start or resume playback of the loaded source.

        Raises:
            MediaPlaybackError: If the element rejects playback
        """
        pass

    @abstractmethod
    def pause(self) -> None:
        pass

    @abstractmethod
    def stop(self) -> None:
        """Stop playback and unload the source."""
        pass

    @abstractmethod
    def seek(self, position: float) -> None:
        """Seek to absolute position in seconds."""
        pass

    @property
    @abstractmethod
    def position(self) -> float:
        """Current playback time in seconds."""
        pass

    @property
    @abstractmethod
    def duration(self) -> float:
        """Duration of the loaded source in seconds (0 if unknown)."""
        pass

    def _emit_ended(self) -> None:
        if self.on_ended:
            self.on_ended()

    def _emit_error(self, message: str) -> None:
        if self.on_error:
            self.on_error(message)

    def _emit_paused(self) -> None:
        if self.on_paused:
            self.on_paused()
