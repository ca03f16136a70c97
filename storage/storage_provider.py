"""
Abstract base class for blob storage providers.

This module defines the interface that all storage providers must implement,
allowing the catalog to store audio and cover images on Cloudflare R2 or on
the local filesystem.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional
from urllib.parse import quote


class BlobStore(ABC):
    """
    Abstract base class for blob storage providers.

    Implementations raise ``shared.errors.StorageError`` when the backing
    service fails, so callers can keep their ordering guarantees.
    """

    public_url: Optional[str] = None

    @abstractmethod
    def authenticate(self, credentials: Dict[str, Optional[str]]) -> bool:
        """
        Connect to the storage provider.

        Args:
            credentials: Provider specific settings (keys, endpoint, bucket,
                         base path, public URL)

        Returns:
            True if the provider is ready, False otherwise
        """
        pass

    @abstractmethod
    def upload_bytes(self, data: bytes, remote_key: str,
                     content_type: Optional[str] = None) -> str:
        """
        Store a blob.

        Args:
            data: Raw bytes to store
            remote_key: Key (path) for the blob
            content_type: MIME type to record with the blob

        Returns:
            Public URL of the stored blob

        Raises:
            StorageError: If the write failed
        """
        pass

    @abstractmethod
    def delete_file(self, remote_key: str) -> None:
        """
        Delete a blob. Deleting a missing key is not an error.

        Raises:
            StorageError: If the provider rejected the delete
        """
        pass

    @abstractmethod
    def file_exists(self, remote_key: str) -> bool:
        """Check if a blob exists in storage."""
        pass

    def get_public_url(self, remote_key: str) -> str:
        """Public URL for a key, under the configured public base URL."""
        base = (self.public_url or "").rstrip("/")
        return f"{base}/{quote(remote_key)}"
