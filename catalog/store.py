"""
Catalog/Playlist store.

Owns the consistency rules between canonical song records and the playlists
that reference them:

- the reserved playlist always exists, cannot be renamed or deleted, and
  every upload lands in it;
- deleting from the reserved playlist purges the song everywhere, deleting
  from any other playlist only unlinks it there;
- blob writes precede record creation, record removal precedes blob removal.
"""

import logging
from typing import Callable, Dict, List, Optional, Sequence

from shared.constants import DEFAULT_MAX_UPLOAD_MB, BYTES_PER_MB, RESERVED_PLAYLIST
from shared.database import DatabaseManager
from shared.errors import (
    InvalidNameError,
    NotFoundError,
    ReservedNameError,
    StorageError,
    UploadStorageError,
    UploadTooLargeError,
    ValidationError,
)
from shared.models import DeleteOutcome, Song
from storage.storage_provider import BlobStore
from .cover_art import CoverImage, extract_cover_image
from .naming import cover_key_for, generate_blob_key

logger = logging.getLogger(__name__)

CoverExtractor = Callable[[bytes], Optional[CoverImage]]


def _clean_name(name: Optional[str], what: str = "Name") -> str:
    cleaned = (name or '').strip()
    if not cleaned:
        raise InvalidNameError(f"{what} cannot be empty")
    return cleaned


class CatalogStore:
    """Song catalog and playlists over a record store and a blob store."""

    def __init__(self, db: DatabaseManager, storage: BlobStore,
                 max_upload_bytes: int = DEFAULT_MAX_UPLOAD_MB * BYTES_PER_MB,
                 cover_extractor: CoverExtractor = extract_cover_image,
                 reserved_playlist: str = RESERVED_PLAYLIST):
        self.db = db
        self.storage = storage
        self.max_upload_bytes = max_upload_bytes
        self.cover_extractor = cover_extractor
        self.reserved_playlist = reserved_playlist

    def is_reserved(self, name: Optional[str]) -> bool:
        return name == self.reserved_playlist

    def ensure_reserved_playlist(self) -> None:
        if self.db.ensure_playlist(self.reserved_playlist):
            logger.info("Created reserved playlist '%s'", self.reserved_playlist)

    # --- Reads ---

    def get_snapshot(self) -> Dict[str, List[Song]]:
        """
        Materialize every playlist with its songs resolved, in list order.

        The reserved playlist always comes first. References that do not
        resolve to a song are dropped.
        """
        self.ensure_reserved_playlist()

        snapshot: Dict[str, List[Song]] = {self.reserved_playlist: []}
        dropped = 0
        for playlist_name, ref_id, song in self.db.get_playlist_rows():
            songs = snapshot.setdefault(playlist_name, [])
            if ref_id is None:
                continue
            if song is None:
                dropped += 1
                continue
            songs.append(song)

        if dropped:
            logger.warning("Snapshot dropped %d unresolved song references", dropped)
        return snapshot

    def get_song(self, song_id: str) -> Song:
        song = self.db.get_song(song_id)
        if song is None:
            raise NotFoundError(f"Song '{song_id}' not found")
        return song

    # --- Songs ---

    def add_song(self, raw_bytes: bytes, display_name: str,
                 content_type: Optional[str] = None) -> Song:
        """
        Store an uploaded audio file and register it in the reserved playlist.

        Raises:
            UploadTooLargeError: Payload above the configured ceiling
            ValidationError: Empty payload or name
            UploadStorageError: Blob write failed (no record is created)
            StorageError: Record creation failed (written blobs are removed)
        """
        size = len(raw_bytes or b'')
        if size > self.max_upload_bytes:
            raise UploadTooLargeError(
                f"File is {size} bytes, the limit is {self.max_upload_bytes} bytes"
            )
        if size == 0:
            raise ValidationError("Uploaded file is empty")
        name = _clean_name(display_name, "Song name")

        blob_key = generate_blob_key(name)
        logger.info("Uploading '%s' as %s (%d bytes)", name, blob_key, size)
        try:
            playback_url = self.storage.upload_bytes(raw_bytes, blob_key, content_type)
        except StorageError as e:
            raise UploadStorageError(f"Could not store '{name}': {e.message}")

        cover_key, cover_url = self._store_cover(raw_bytes, blob_key)

        song = Song(
            id=Song.generate_id(),
            name=name,
            blob_key=blob_key,
            playback_url=playback_url,
            cover_key=cover_key,
            cover_url=cover_url,
            content_type=content_type,
            file_size=size,
        )
        try:
            self.db.insert_song(song, self.reserved_playlist)
        except StorageError:
            logger.error("Record creation failed for %s, removing stored blobs", blob_key)
            self._delete_blobs(song)
            raise

        logger.info("Added song %s (%s)", song.id, song.name)
        return song

    def _store_cover(self, raw_bytes: bytes, blob_key: str):
        try:
            cover = self.cover_extractor(raw_bytes)
        except Exception as e:
            logger.warning("Cover extraction failed for %s: %s", blob_key, e)
            return None, None
        if cover is None:
            return None, None

        cover_key = cover_key_for(blob_key, cover.mime_type)
        try:
            cover_url = self.storage.upload_bytes(cover.data, cover_key, cover.mime_type)
        except StorageError as e:
            logger.warning("Cover upload failed for %s: %s", blob_key, e.message)
            return None, None
        return cover_key, cover_url

    def _delete_blobs(self, song: Song) -> None:
        """Best-effort blob removal; failures are logged, never raised."""
        keys = [song.blob_key] + ([song.cover_key] if song.cover_key else [])
        for key in keys:
            try:
                self.storage.delete_file(key)
            except StorageError as e:
                logger.error("Could not delete blob %s: %s", key, e.message)

    def rename_song(self, song_id: str, new_name: str) -> None:
        name = _clean_name(new_name, "Song name")
        if not self.db.update_song_name(song_id, name):
            raise NotFoundError(f"Song '{song_id}' not found")
        logger.info("Renamed song %s to '%s'", song_id, name)

    def delete_song(self, song_id: str, source_playlist: str) -> DeleteOutcome:
        """
        Delete a song as seen from source_playlist.

        From the reserved playlist this purges the song (record, every
        playlist reference, blobs). From any other playlist it only unlinks
        the reference in that playlist.
        """
        if self.is_reserved(source_playlist):
            song = self.db.purge_song(song_id)
            if song is None:
                raise NotFoundError(f"Song '{song_id}' not found")
            self._delete_blobs(song)
            logger.info("Purged song %s (%s)", song.id, song.name)
            return DeleteOutcome.PURGED

        if not self.db.pull_song(source_playlist, song_id):
            raise NotFoundError(f"Playlist '{source_playlist}' not found")
        logger.info("Unlinked song %s from '%s'", song_id, source_playlist)
        return DeleteOutcome.UNLINKED

    def move_song(self, song_id: str, from_playlist: str, to_playlist: str) -> None:
        """
        Add the song to to_playlist and drop it from from_playlist.

        The reserved playlist keeps its reference when it is the source.
        """
        target = _clean_name(to_playlist, "Playlist name")
        if target == from_playlist:
            raise ValidationError("Source and target playlist are the same")
        self.get_song(song_id)
        if not self.db.move_song(song_id, from_playlist, target,
                                 unlink_source=not self.is_reserved(from_playlist)):
            raise NotFoundError(f"Playlist '{from_playlist}' not found")
        logger.info("Moved song %s from '%s' to '%s'", song_id, from_playlist, target)

    # --- Playlists ---

    def add_songs_to_playlist(self, playlist_name: str, song_ids: Sequence[str]) -> int:
        """
        Union song_ids into the playlist, creating it if needed.

        Returns:
            Number of references actually added
        """
        name = _clean_name(playlist_name, "Playlist name")
        ids = list(dict.fromkeys(song_ids))
        known = self.db.get_songs(ids)
        missing = [song_id for song_id in ids if song_id not in known]
        if missing:
            raise NotFoundError(f"Unknown song id(s): {', '.join(missing)}")
        added = self.db.add_to_set(name, ids)
        logger.info("Added %d/%d songs to '%s'", added, len(ids), name)
        return added

    def create_playlist(self, name: str) -> None:
        cleaned = _clean_name(name, "Playlist name")
        if self.is_reserved(cleaned):
            raise ReservedNameError(f"'{cleaned}' is reserved")
        self.db.create_playlist(cleaned)
        logger.info("Created playlist '%s'", cleaned)

    def rename_playlist(self, old_name: str, new_name: str) -> None:
        if self.is_reserved(old_name):
            raise ReservedNameError(f"'{old_name}' cannot be renamed")
        cleaned = _clean_name(new_name, "Playlist name")
        if self.is_reserved(cleaned):
            raise ReservedNameError(f"'{cleaned}' is reserved")
        if cleaned == old_name:
            raise ValidationError(f"Playlist is already named '{cleaned}'")
        if not self.db.rename_playlist(old_name, cleaned):
            raise NotFoundError(f"Playlist '{old_name}' not found")
        logger.info("Renamed playlist '%s' to '%s'", old_name, cleaned)

    def delete_playlist(self, name: str) -> None:
        if self.is_reserved(name):
            raise ReservedNameError(f"'{name}' cannot be deleted")
        if not self.db.delete_playlist(name):
            raise NotFoundError(f"Playlist '{name}' not found")
        logger.info("Deleted playlist '%s'", name)
