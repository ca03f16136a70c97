"""
Playback sequencing for the player.

Pure index bookkeeping: which song is current, what plays next or previous,
and the shuffle cycle (pool of unplayed indices plus play history). It never
touches the media element; the PlayerController does that.
"""

import logging
import random
from enum import Enum
from typing import Callable, List, Optional, Sequence, Set

from shared.constants import NOTICE_RESHUFFLE
from shared.models import Song

logger = logging.getLogger(__name__)


class RepeatMode(Enum):
    OFF = "off"
    ONE = "one"
    ALL = "all"


_REPEAT_CYCLE = {
    RepeatMode.OFF: RepeatMode.ONE,
    RepeatMode.ONE: RepeatMode.ALL,
    RepeatMode.ALL: RepeatMode.OFF,
}


class PlaybackSequencer:
    """
    Shuffle/repeat state for one loaded playlist.

    Invariant while shuffling: available_pool and the indices in
    shuffle_history are disjoint and together cover every index of the
    current cycle.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.songs: List[Song] = []
        self.current_index: Optional[int] = None
        self.shuffle_enabled = False
        self.repeat_mode = RepeatMode.OFF
        self.shuffle_history: List[int] = []
        self.available_pool: Set[int] = set()
        self._rng = rng or random.Random()
        self._notice_callbacks: List[Callable[[str], None]] = []

    # --- Notices ---

    def add_notice_callback(self, callback: Callable[[str], None]) -> None:
        """Register a callback for user-visible notices."""
        if callback not in self._notice_callbacks:
            self._notice_callbacks.append(callback)

    def _notify(self, message: str) -> None:
        for callback in self._notice_callbacks:
            try:
                callback(message)
            except Exception as e:
                logger.error("Error in notice callback: %s", e)

    # --- Lifecycle ---

    def reset(self, songs: Sequence[Song], current_index: Optional[int] = None) -> None:
        """Load a new song list and start a fresh shuffle cycle."""
        self.songs = list(songs)
        if current_index is not None and not 0 <= current_index < len(self.songs):
            current_index = None
        self.current_index = current_index
        self._new_cycle()

    def _new_cycle(self) -> None:
        self.shuffle_history = []
        self.available_pool = set(range(len(self.songs)))
        if self.shuffle_enabled and self.current_index is not None:
            self.shuffle_history.append(self.current_index)
            self.available_pool.discard(self.current_index)

    def set_current(self, index: int) -> None:
        if not 0 <= index < len(self.songs):
            raise IndexError(f"Song index {index} out of range")
        self.current_index = index

    @property
    def is_empty(self) -> bool:
        return not self.songs

    @property
    def current_song(self) -> Optional[Song]:
        if self.current_index is None:
            return None
        return self.songs[self.current_index]

    # --- Modes ---

    def toggle_shuffle(self) -> bool:
        """
        Flip shuffle. Turning it on starts a fresh cycle seeded with the
        current track and clears repeat-one.
        """
        self.shuffle_enabled = not self.shuffle_enabled
        if self.shuffle_enabled:
            if self.repeat_mode == RepeatMode.ONE:
                self.repeat_mode = RepeatMode.OFF
            self._new_cycle()
        return self.shuffle_enabled

    def toggle_repeat(self) -> RepeatMode:
        """Cycle off -> one -> all -> off. Entering 'one' turns shuffle off."""
        self.repeat_mode = _REPEAT_CYCLE[self.repeat_mode]
        if self.repeat_mode == RepeatMode.ONE:
            self.shuffle_enabled = False
        return self.repeat_mode

    # --- Index selection ---

    def draw_shuffle_index(self) -> int:
        """
        Take a random unplayed index for this cycle.

        An empty pool starts a new cycle, leaving out the current index when
        there is more than one song so it does not repeat immediately.
        """
        if not self.songs:
            raise IndexError("No songs loaded")

        if not self.available_pool:
            self.available_pool = set(range(len(self.songs)))
            self.shuffle_history = []
            if len(self.songs) > 1 and self.current_index is not None:
                self.available_pool.discard(self.current_index)
            logger.debug("Shuffle pool refilled with %d indices", len(self.available_pool))
            self._notify(NOTICE_RESHUFFLE)

        index = self._rng.choice(sorted(self.available_pool))
        self.available_pool.discard(index)
        self.shuffle_history.append(index)
        return index

    def start_index(self) -> int:
        """Index to start from when nothing is loaded yet."""
        if self.shuffle_enabled:
            return self.draw_shuffle_index()
        return 0

    def next_index(self) -> int:
        if self.shuffle_enabled:
            return self.draw_shuffle_index()
        if self.current_index is None:
            return 0
        return (self.current_index + 1) % len(self.songs)

    def previous_index(self) -> int:
        if self.shuffle_enabled:
            if len(self.shuffle_history) > 1:
                left = self.shuffle_history.pop()
                self.available_pool.add(left)
                return self.shuffle_history[-1]
            return self.draw_shuffle_index()
        if self.current_index is None:
            return len(self.songs) - 1
        return (self.current_index - 1 + len(self.songs)) % len(self.songs)

    def has_natural_next(self) -> bool:
        """Whether repeat-off playback should advance after a track ends."""
        if not self.songs:
            return False
        if self.shuffle_enabled:
            return bool(self.available_pool) or len(self.songs) > 1
        if self.current_index is None:
            return True
        return self.current_index < len(self.songs) - 1

    def record_manual_pick(self, index: int) -> None:
        """A direct pick while shuffling counts as a draw for this cycle."""
        if not self.shuffle_enabled:
            return
        self.available_pool.discard(index)
        self.shuffle_history.append(index)
