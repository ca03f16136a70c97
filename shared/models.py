"""
Data models for songs, playlists and server configuration.

Songs are canonical records with a stable identity. Playlists only hold
ordered references (song IDs) into the song table.
"""

from dataclasses import dataclass, asdict, field
from typing import List, Dict, Optional, Any
from enum import Enum
from datetime import datetime, timezone
import uuid


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class StorageProvider(Enum):
    """Supported blob storage providers."""
    CLOUDFLARE_R2 = "r2"
    LOCAL = "local"


class DeleteOutcome(Enum):
    """Result of a song delete request."""
    PURGED = "purged"
    UNLINKED = "unlinked"


@dataclass
class Song:
    """
    Represents a single uploaded song.

    Attributes:
        id: Unique identifier (UUID), issued by the server
        name: Display title, the only mutable field
        blob_key: Object store key of the audio file
        playback_url: Public URL over blob_key
        uploaded_at: UTC ISO-8601 timestamp
        cover_key: Object store key of the extracted cover image (optional)
        cover_url: Public URL over cover_key (optional)
        content_type: MIME type reported at upload
        file_size: Size in bytes
    """
    id: str
    name: str
    blob_key: str
    playback_url: str
    uploaded_at: str = field(default_factory=utc_now)
    cover_key: Optional[str] = None
    cover_url: Optional[str] = None
    content_type: Optional[str] = None
    file_size: int = 0

    @staticmethod
    def generate_id() -> str:
        """Generate a unique song ID."""
        return str(uuid.uuid4())

    def to_dict(self) -> Dict[str, Any]:
        """Convert song to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Song':
        """Create Song from dictionary, filtering unknown keys."""
        import dataclasses
        field_names = {f.name for f in dataclasses.fields(cls)}
        filtered_data = {k: v for k, v in data.items() if k in field_names}
        return cls(**filtered_data)

    def to_api_dict(self) -> Dict[str, Any]:
        """Wire representation used by the HTTP API."""
        data = {
            "id": self.id,
            "name": self.name,
            "url": self.playback_url,
            "uploadedAt": self.uploaded_at,
        }
        if self.cover_url:
            data["coverUrl"] = self.cover_url
        return data

    @classmethod
    def from_api_dict(cls, data: Dict[str, Any]) -> 'Song':
        """Rebuild a Song from its wire representation (client side)."""
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            blob_key="",
            playback_url=str(data["url"]),
            uploaded_at=data.get("uploadedAt") or "",
            cover_url=data.get("coverUrl"),
        )


@dataclass
class Playlist:
    """A named, ordered list of song references."""
    name: str
    song_ids: List[str] = field(default_factory=list)
    created_at: str = field(default_factory=utc_now)


@dataclass
class ServerConfig:
    """
    Server configuration, read from the environment.

    Contains blob storage credentials, the record store location and
    upload policy.
    """
    provider: StorageProvider
    bucket: Optional[str] = None
    endpoint: Optional[str] = None
    account_id: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    public_url: Optional[str] = None
    local_storage_path: Optional[str] = None
    database_path: Optional[str] = None
    max_upload_bytes: int = 50 * 1024 * 1024
    port: int = 8080
    log_level: str = "INFO"

    def storage_credentials(self) -> Dict[str, Optional[str]]:
        """Credentials dictionary handed to the storage provider."""
        if self.provider == StorageProvider.LOCAL:
            return {
                'base_path': self.local_storage_path,
                'public_url': self.public_url,
            }
        return {
            'access_key_id': self.access_key_id,
            'secret_access_key': self.secret_access_key,
            'account_id': self.account_id,
            'endpoint': self.endpoint,
            'bucket': self.bucket,
            'public_url': self.public_url,
        }


@dataclass
class ClientConfig:
    """Client configuration: where the catalog API lives."""
    server_url: str
    timeout: int = 30
