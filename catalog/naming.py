"""
Name and object-key helpers for uploads.
"""

import re
import time
import uuid
from pathlib import PurePosixPath
from typing import Optional

from shared.constants import COVER_EXTENSIONS, COVER_KEY_PREFIX, FILENAME_HOSTILE_CHARS


def sanitize_name(name: str) -> str:
    """
    Make a display name safe for use inside an object key.

    Strips filesystem-hostile characters and collapses whitespace runs
    into single underscores.
    """
    cleaned = re.sub(FILENAME_HOSTILE_CHARS, '', name or '')
    # Control characters other than whitespace, which is collapsed below
    cleaned = re.sub(r'(?!\s)[\x00-\x1f]', '', cleaned)
    cleaned = re.sub(r'\s+', '_', cleaned.strip())
    return cleaned or "untitled"


def display_name_from_filename(filename: str) -> str:
    """'Artist - Song.mp3' -> 'Artist - Song'."""
    base = PurePosixPath((filename or '').replace('\\', '/')).name
    stem = base.rsplit('.', 1)[0] if '.' in base.strip('.') else base
    return stem.strip()


def generate_blob_key(display_name: str, now: Optional[float] = None) -> str:
    """
    Collision-resistant key: upload time in ms, a random suffix and the
    sanitized display name.
    """
    millis = int((now if now is not None else time.time()) * 1000)
    return f"{millis}-{uuid.uuid4().hex[:8]}-{sanitize_name(display_name)}"


def cover_key_for(blob_key: str, mime_type: str) -> str:
    """Key of the cover image that belongs to blob_key."""
    extension = COVER_EXTENSIONS.get((mime_type or '').lower(), "img")
    return f"{COVER_KEY_PREFIX}{blob_key}.{extension}"
