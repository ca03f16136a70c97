"""
HTTP client for the catalog API.
"""

import logging
import mimetypes
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import requests

from shared.constants import DEFAULT_NETWORK_TIMEOUT, DEFAULT_UPLOAD_FIELD, UPLOAD_NETWORK_TIMEOUT
from shared.models import ClientConfig, DeleteOutcome, Song

logger = logging.getLogger(__name__)


class CatalogClientError(Exception):
    """A catalog request failed; category is validation, not_found, storage or network."""

    def __init__(self, message: str, category: str = "network", status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.category = category
        self.status_code = status_code


class CatalogClient:
    """Thin wrapper around the catalog endpoints. Failures are raised, never retried."""

    def __init__(self, base_url: str, timeout: int = DEFAULT_NETWORK_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self._session = session or requests.Session()

    @classmethod
    def from_config(cls, config: ClientConfig) -> 'CatalogClient':
        return cls(config.server_url, timeout=config.timeout)

    def _request(self, method: str, path: str, timeout: Optional[int] = None, **kwargs) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self._session.request(method, url, timeout=timeout or self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error("%s %s failed: %s", method, path, e)
            raise CatalogClientError(f"Server unreachable: {e}")

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if not isinstance(payload, dict):
            if response.status_code == 413:
                raise CatalogClientError("Upload exceeds the size limit", "validation", 413)
            raise CatalogClientError(
                f"Unexpected response ({response.status_code}) from {path}",
                "storage" if response.status_code >= 500 else "network",
                response.status_code,
            )

        if not response.ok or payload.get("success") is False:
            raise CatalogClientError(
                payload.get("error") or f"Request failed ({response.status_code})",
                payload.get("category") or "storage",
                response.status_code,
            )
        return payload

    # --- Reads ---

    def get_snapshot(self) -> Dict[str, List[Song]]:
        payload = self._request("GET", "/api/playlists")
        playlists = payload.get("playlists")
        if not isinstance(playlists, dict):
            raise CatalogClientError("Malformed snapshot", "storage")
        snapshot: Dict[str, List[Song]] = {}
        for name, songs in playlists.items():
            try:
                snapshot[name] = [Song.from_api_dict(s) for s in songs]
            except (KeyError, TypeError) as e:
                raise CatalogClientError(f"Malformed song in '{name}': {e}", "storage")
        return snapshot

    # --- Mutations ---

    def upload(self, path: str, name: Optional[str] = None) -> Song:
        file_path = Path(path).expanduser()
        content_type = mimetypes.guess_type(file_path.name)[0] or "application/octet-stream"
        data = {"name": name} if name else {}
        try:
            with open(file_path, 'rb') as f:
                payload = self._request(
                    "POST", "/api/upload",
                    timeout=UPLOAD_NETWORK_TIMEOUT,
                    files={DEFAULT_UPLOAD_FIELD: (file_path.name, f, content_type)},
                    data=data,
                )
        except OSError as e:
            raise CatalogClientError(f"Cannot read {file_path}: {e}", "validation")
        return Song.from_api_dict(payload["song"])

    def rename_song(self, song_id: str, new_name: str) -> None:
        self._request("PUT", "/api/song/rename", json={"songId": song_id, "newName": new_name})

    def move_song(self, song_id: str, from_playlist: str, to_playlist: str) -> None:
        self._request("PUT", "/api/song/move", json={
            "songId": song_id, "fromPlaylist": from_playlist, "toPlaylist": to_playlist,
        })

    def delete_song(self, song_id: str, playlist_name: str) -> DeleteOutcome:
        payload = self._request("DELETE", "/api/song", json={"songId": song_id, "playlistName": playlist_name})
        return DeleteOutcome(payload["outcome"])

    def create_playlist(self, name: str) -> None:
        self._request("POST", "/api/playlist", json={"name": name})

    def rename_playlist(self, old_name: str, new_name: str) -> None:
        self._request("PUT", "/api/playlist/rename", json={"oldName": old_name, "newName": new_name})

    def delete_playlist(self, name: str) -> None:
        self._request("DELETE", "/api/playlist", json={"name": name})

    def add_songs_to_playlist(self, playlist_name: str, song_ids: Sequence[str]) -> int:
        payload = self._request("POST", "/api/playlist/add-songs", json={
            "playlistName": playlist_name, "songIds": list(song_ids),
        })
        return int(payload.get("added", 0))
