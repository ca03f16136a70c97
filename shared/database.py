"""
SQLite record store for Tunecloud.
Holds the song table and the playlists that reference it by ID.

Every public method is one transaction. Membership changes are element-level
statements so concurrent edits of the same playlist never lose updates.
"""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from shared.constants import DEFAULT_DATABASE_PATH
from shared.errors import DuplicateNameError, StorageError
from shared.models import Playlist, Song, utc_now

logger = logging.getLogger(__name__)

_APPEND_SQL = """
    INSERT OR IGNORE INTO playlist_songs (playlist_id, song_id, position)
    SELECT ?, ?, COALESCE(MAX(position), -1) + 1
    FROM playlist_songs WHERE playlist_id = ?
"""


class DatabaseManager:
    def __init__(self, db_path: Optional[str] = None):
        if db_path is None:
            self.db_path = Path(DEFAULT_DATABASE_PATH).expanduser()
        else:
            self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        # Autocommit mode: transactions are opened explicitly
        conn = sqlite3.connect(self.db_path, isolation_level=None, timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block inside one write transaction (BEGIN IMMEDIATE)."""
        try:
            conn = self._get_connection()
        except sqlite3.Error as e:
            raise StorageError(f"Record store unavailable: {e}")
        try:
            conn.execute("BEGIN IMMEDIATE")
            yield conn
            conn.execute("COMMIT")
        except sqlite3.IntegrityError:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        except sqlite3.Error as e:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise StorageError(f"Record store operation failed: {e}")
        except Exception:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        finally:
            conn.close()

    @contextmanager
    def _reader(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._get_connection()
        except sqlite3.Error as e:
            raise StorageError(f"Record store unavailable: {e}")
        try:
            yield conn
        except sqlite3.IntegrityError:
            raise
        except sqlite3.Error as e:
            raise StorageError(f"Record store read failed: {e}")
        finally:
            conn.close()

    def _init_db(self):
        """Initialize the database schema."""
        with self._transaction() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS songs (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    blob_key TEXT NOT NULL UNIQUE,
                    playback_url TEXT NOT NULL,
                    uploaded_at TEXT NOT NULL,
                    cover_key TEXT,
                    cover_url TEXT,
                    content_type TEXT,
                    file_size INTEGER DEFAULT 0
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS playlists (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    created_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS playlist_songs (
                    playlist_id INTEGER NOT NULL REFERENCES playlists(id) ON DELETE CASCADE,
                    song_id TEXT NOT NULL,
                    position INTEGER NOT NULL,
                    UNIQUE (playlist_id, song_id)
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_playlist_songs_song ON playlist_songs(song_id)")

    # --- Playlists ---

    @staticmethod
    def _playlist_id(conn: sqlite3.Connection, name: str) -> Optional[int]:
        row = conn.execute("SELECT id FROM playlists WHERE name = ?", (name,)).fetchone()
        return row["id"] if row else None

    @staticmethod
    def _ensure_playlist_id(conn: sqlite3.Connection, name: str) -> int:
        conn.execute(
            "INSERT OR IGNORE INTO playlists (name, created_at) VALUES (?, ?)",
            (name, utc_now()),
        )
        return DatabaseManager._playlist_id(conn, name)

    def ensure_playlist(self, name: str) -> bool:
        """Create the playlist if it is missing. Returns True if it was created."""
        with self._transaction() as conn:
            cursor = conn.execute(
                "INSERT OR IGNORE INTO playlists (name, created_at) VALUES (?, ?)",
                (name, utc_now()),
            )
            return cursor.rowcount == 1

    def create_playlist(self, name: str) -> None:
        try:
            with self._transaction() as conn:
                conn.execute(
                    "INSERT INTO playlists (name, created_at) VALUES (?, ?)",
                    (name, utc_now()),
                )
        except sqlite3.IntegrityError:
            raise DuplicateNameError(f"Playlist '{name}' already exists")

    def rename_playlist(self, old_name: str, new_name: str) -> bool:
        """Rename a playlist. Returns False if old_name does not exist."""
        try:
            with self._transaction() as conn:
                cursor = conn.execute(
                    "UPDATE playlists SET name = ? WHERE name = ?", (new_name, old_name)
                )
                return cursor.rowcount == 1
        except sqlite3.IntegrityError:
            raise DuplicateNameError(f"Playlist '{new_name}' already exists")

    def delete_playlist(self, name: str) -> bool:
        """Delete a playlist record and its membership rows (songs untouched)."""
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM playlists WHERE name = ?", (name,))
            return cursor.rowcount == 1

    def get_playlist(self, name: str) -> Optional[Playlist]:
        with self._reader() as conn:
            row = conn.execute(
                "SELECT id, name, created_at FROM playlists WHERE name = ?", (name,)
            ).fetchone()
            if not row:
                return None
            ids = [
                r["song_id"] for r in conn.execute(
                    "SELECT song_id FROM playlist_songs WHERE playlist_id = ? ORDER BY position",
                    (row["id"],),
                )
            ]
            return Playlist(name=row["name"], song_ids=ids, created_at=row["created_at"])

    def list_playlists(self) -> List[Playlist]:
        """All playlists in creation order, with their ordered song IDs."""
        with self._reader() as conn:
            playlists: Dict[int, Playlist] = {}
            for row in conn.execute("SELECT id, name, created_at FROM playlists ORDER BY id"):
                playlists[row["id"]] = Playlist(name=row["name"], created_at=row["created_at"])
            for row in conn.execute(
                "SELECT playlist_id, song_id FROM playlist_songs ORDER BY playlist_id, position"
            ):
                playlists[row["playlist_id"]].song_ids.append(row["song_id"])
            return list(playlists.values())

    def get_playlist_rows(self) -> List[Tuple[str, Optional[str], Optional[Song]]]:
        """
        Resolve every playlist against the song table in one read.

        Returns:
            (playlist_name, referenced_id, song) tuples in playlist creation
            order then list order. referenced_id is None for an empty
            playlist; song is None when the reference does not resolve.
        """
        with self._reader() as conn:
            cursor = conn.execute("""
                SELECT p.name AS playlist_name, ps.song_id AS ref_id, s.*
                FROM playlists p
                LEFT JOIN playlist_songs ps ON ps.playlist_id = p.id
                LEFT JOIN songs s ON s.id = ps.song_id
                ORDER BY p.id, ps.position
            """)
            rows = []
            for row in cursor.fetchall():
                song = self._row_to_song(row) if row["id"] is not None else None
                rows.append((row["playlist_name"], row["ref_id"], song))
            return rows

    # --- Membership (element-level operations) ---

    def push_song(self, playlist_name: str, song_id: str) -> None:
        """Append a song reference to a playlist, creating the playlist if needed."""
        self.add_to_set(playlist_name, [song_id])

    def add_to_set(self, playlist_name: str, song_ids: Iterable[str]) -> int:
        """
        Append each ID not already present, creating the playlist if needed.

        Returns:
            Number of references actually added
        """
        added = 0
        with self._transaction() as conn:
            playlist_id = self._ensure_playlist_id(conn, playlist_name)
            for song_id in song_ids:
                cursor = conn.execute(_APPEND_SQL, (playlist_id, song_id, playlist_id))
                added += cursor.rowcount
        return added

    def pull_song(self, playlist_name: str, song_id: str) -> bool:
        """
        Remove a song reference from one playlist.

        Returns:
            False if the playlist does not exist. An absent reference is
            not an error.
        """
        with self._transaction() as conn:
            playlist_id = self._playlist_id(conn, playlist_name)
            if playlist_id is None:
                return False
            conn.execute(
                "DELETE FROM playlist_songs WHERE playlist_id = ? AND song_id = ?",
                (playlist_id, song_id),
            )
            return True

    def pull_song_everywhere(self, song_id: str) -> int:
        """Remove a song reference from every playlist."""
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM playlist_songs WHERE song_id = ?", (song_id,))
            return cursor.rowcount

    def move_song(self, song_id: str, from_playlist: str, to_playlist: str,
                  unlink_source: bool = True) -> bool:
        """
        Add a reference to to_playlist and drop it from from_playlist.

        Returns:
            False if from_playlist does not exist (nothing is written).
        """
        with self._transaction() as conn:
            source_id = self._playlist_id(conn, from_playlist)
            if source_id is None:
                return False
            target_id = self._ensure_playlist_id(conn, to_playlist)
            conn.execute(_APPEND_SQL, (target_id, song_id, target_id))
            if unlink_source:
                conn.execute(
                    "DELETE FROM playlist_songs WHERE playlist_id = ? AND song_id = ?",
                    (source_id, song_id),
                )
            return True

    # --- Songs ---

    def insert_song(self, song: Song, playlist_name: str) -> None:
        """Create the song record and append it to playlist_name atomically."""
        try:
            with self._transaction() as conn:
                conn.execute("""
                    INSERT INTO songs (
                        id, name, blob_key, playback_url, uploaded_at,
                        cover_key, cover_url, content_type, file_size
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    song.id, song.name, song.blob_key, song.playback_url, song.uploaded_at,
                    song.cover_key, song.cover_url, song.content_type, song.file_size,
                ))
                playlist_id = self._ensure_playlist_id(conn, playlist_name)
                conn.execute(_APPEND_SQL, (playlist_id, song.id, playlist_id))
        except sqlite3.IntegrityError as e:
            raise StorageError(f"Could not create song record: {e}")

    def get_song(self, song_id: str) -> Optional[Song]:
        with self._reader() as conn:
            row = conn.execute("SELECT * FROM songs WHERE id = ?", (song_id,)).fetchone()
            return self._row_to_song(row) if row else None

    def get_songs(self, song_ids: Iterable[str]) -> Dict[str, Song]:
        ids = list(dict.fromkeys(song_ids))
        if not ids:
            return {}
        with self._reader() as conn:
            placeholders = ','.join(['?'] * len(ids))
            cursor = conn.execute(f"SELECT * FROM songs WHERE id IN ({placeholders})", ids)
            return {row["id"]: self._row_to_song(row) for row in cursor.fetchall()}

    def update_song_name(self, song_id: str, name: str) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute("UPDATE songs SET name = ? WHERE id = ?", (name, song_id))
            return cursor.rowcount == 1

    def purge_song(self, song_id: str) -> Optional[Song]:
        """
        Delete the song record together with every reference to it.

        Returns:
            The deleted song, or None if it did not exist
        """
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM songs WHERE id = ?", (song_id,)).fetchone()
            if not row:
                return None
            conn.execute("DELETE FROM songs WHERE id = ?", (song_id,))
            removed = conn.execute("DELETE FROM playlist_songs WHERE song_id = ?", (song_id,)).rowcount
            logger.debug("Purged song %s and %d playlist references", song_id, removed)
            return self._row_to_song(row)

    def _row_to_song(self, row: sqlite3.Row) -> Song:
        data = dict(row)
        data.pop('playlist_name', None)
        data.pop('ref_id', None)
        return Song.from_dict(data)

    def clear_all(self):
        """Wipe all data from the database."""
        with self._transaction() as conn:
            conn.execute("DELETE FROM playlist_songs")
            conn.execute("DELETE FROM playlists")
            conn.execute("DELETE FROM songs")
