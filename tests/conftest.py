import random

import pytest

from catalog.store import CatalogStore
from player.media import MediaElement, MediaPlaybackError
from player.sequencer import PlaybackSequencer
from shared.database import DatabaseManager
from shared.errors import StorageError
from shared.models import Song
from storage.local_provider import LocalStorageProvider

PUBLIC_URL = "http://media.test"


class FakeMediaElement(MediaElement):
    """In-memory media element that records calls and can be told to fail."""

    def __init__(self):
        super().__init__()
        self.calls = []
        self.playing = False
        self.fail_next_play = False
        self._position = 0.0
        self._duration = 200.0

    def load(self, url):
        self.calls.append(("load", url))
        self.source = url
        self._position = 0.0

    def play(self):
        self.calls.append(("play",))
        if self.fail_next_play:
            self.fail_next_play = False
            raise MediaPlaybackError("autoplay blocked")
        self.playing = True

    def pause(self):
        self.calls.append(("pause",))
        self.playing = False

    def stop(self):
        self.calls.append(("stop",))
        self.playing = False
        self.source = None

    def seek(self, position):
        self.calls.append(("seek", position))
        self._position = position

    @property
    def position(self):
        return self._position

    @property
    def duration(self):
        return self._duration

    # Test helpers
    def finish(self):
        self.playing = False
        self._emit_ended()

    def fail(self, message="decode error"):
        self.playing = False
        self._emit_error(message)

    def pause_by_itself(self):
        self.playing = False
        self._emit_paused()


class StubBlobStore(LocalStorageProvider):
    """Local provider whose writes can be made to fail."""

    def __init__(self, base_path):
        super().__init__()
        self.authenticate({'base_path': str(base_path), 'public_url': PUBLIC_URL})
        self.fail_uploads_for = set()
        self.fail_deletes = False
        self.deleted = []

    def upload_bytes(self, data, remote_key, content_type=None):
        if any(remote_key.startswith(prefix) for prefix in self.fail_uploads_for):
            raise StorageError("bucket unavailable")
        return super().upload_bytes(data, remote_key, content_type)

    def delete_file(self, remote_key):
        self.deleted.append(remote_key)
        if self.fail_deletes:
            raise StorageError("delete refused")
        super().delete_file(remote_key)


def make_song(song_id, name=None):
    return Song(
        id=song_id,
        name=name or f"Song {song_id}",
        blob_key=f"key-{song_id}",
        playback_url=f"{PUBLIC_URL}/key-{song_id}",
    )


@pytest.fixture
def db(tmp_path):
    return DatabaseManager(str(tmp_path / "catalog.db"))


@pytest.fixture
def blob_store(tmp_path):
    return StubBlobStore(tmp_path / "media")


@pytest.fixture
def store(db, blob_store):
    return CatalogStore(db, blob_store, max_upload_bytes=1024, cover_extractor=lambda data: None)


@pytest.fixture
def media():
    return FakeMediaElement()


@pytest.fixture
def sequencer():
    return PlaybackSequencer(rng=random.Random(1234))


@pytest.fixture
def api_client(store):
    from shared import api
    api.set_catalog(store)
    api.app.config['TESTING'] = True
    with api.app.test_client() as client:
        yield client
    api.catalog_store = None
