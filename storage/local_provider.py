"""
Local filesystem storage provider.
Implements the BlobStore interface for local storage.
"""

import logging
import os
from pathlib import Path
from typing import Dict, Optional

from shared.errors import StorageError
from .storage_provider import BlobStore

logger = logging.getLogger(__name__)


class LocalStorageProvider(BlobStore):
    """
    Storage provider that uses the local filesystem.
    Useful for self-hosting on a NAS or local drive; the API serves the
    files under /media.
    """

    def __init__(self):
        self.base_path: Optional[Path] = None
        self.public_url: Optional[str] = None

    def authenticate(self, credentials: Dict[str, Optional[str]]) -> bool:
        """
        'Authenticate' by setting the base path.
        """
        path = credentials.get('base_path') or credentials.get('endpoint')
        if not path:
            return False

        self.base_path = Path(path).expanduser().absolute()
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.public_url = (credentials.get('public_url') or '').rstrip('/') or None
        return True

    def get_path(self, remote_key: str) -> Path:
        """Get absolute local path for a remote key."""
        if self.base_path is None:
            raise StorageError("Local storage is not configured")

        path = (self.base_path / remote_key).resolve()
        if self.base_path.resolve() not in path.parents:
            raise StorageError(f"Key escapes storage root: {remote_key}")
        return path

    def upload_bytes(self, data: bytes, remote_key: str,
                     content_type: Optional[str] = None) -> str:
        dest_path = self.get_path(remote_key)
        try:
            dest_path.parent.mkdir(parents=True, exist_ok=True)
            dest_path.write_bytes(data)
        except OSError as e:
            logger.error("Local upload error for %s: %s", remote_key, e)
            raise StorageError(f"Upload failed: {e}")
        return self.get_public_url(remote_key)

    def delete_file(self, remote_key: str) -> None:
        path = self.get_path(remote_key)
        try:
            if path.exists():
                os.remove(path)
        except OSError as e:
            logger.error("Local delete error for %s: %s", remote_key, e)
            raise StorageError(f"Delete failed: {e}")

    def file_exists(self, remote_key: str) -> bool:
        return self.get_path(remote_key).exists()
