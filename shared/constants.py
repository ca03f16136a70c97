"""
Shared constants used across the platform.
"""

# Playlists
RESERVED_PLAYLIST = "default"

# Upload settings
DEFAULT_MAX_UPLOAD_MB = 50
BYTES_PER_MB = 1024 * 1024
DEFAULT_UPLOAD_FIELD = "audio"
FALLBACK_UPLOAD_FIELD = "file"
DEFAULT_AUDIO_CONTENT_TYPE = "application/octet-stream"

# Characters that are not allowed in object keys derived from display names
FILENAME_HOSTILE_CHARS = r'[\\/:*?"<>|]'

# Cover art
COVER_KEY_PREFIX = "covers/"
COVER_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}

# S3 Provider endpoints
CLOUDFLARE_R2_ENDPOINT_TEMPLATE = "https://{account_id}.r2.cloudflarestorage.com"

# Server defaults
DEFAULT_PORT = 8080
DEFAULT_DATABASE_PATH = "~/.local/share/tunecloud/catalog.db"
DEFAULT_LOCAL_STORAGE_PATH = "~/.local/share/tunecloud/blobs"
DEFAULT_SERVER_URL = "http://localhost:8080"

# Network Settings
DEFAULT_NETWORK_TIMEOUT = 30  # seconds
UPLOAD_NETWORK_TIMEOUT = 300  # seconds

# Player
TIME_UPDATE_INTERVAL = 0.25  # seconds between progress redraws
NOTICE_NOTHING_TO_PLAY = "Nothing to play"
NOTICE_RESHUFFLE = "Cycle complete, reshuffling"
