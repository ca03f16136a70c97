"""
Embedded cover art extraction using mutagen.
"""

import base64
import io
import logging
from dataclasses import dataclass
from typing import Optional

import mutagen
from mutagen.flac import Picture
from mutagen.mp4 import MP4Cover

logger = logging.getLogger(__name__)


@dataclass
class CoverImage:
    """Image bytes pulled out of an audio file's tags."""
    data: bytes
    mime_type: str


def _sniff_mime(data: bytes) -> str:
    if data.startswith(b'\x89PNG'):
        return "image/png"
    if data.startswith(b'GIF8'):
        return "image/gif"
    if data[:4] == b'RIFF' and data[8:12] == b'WEBP':
        return "image/webp"
    return "image/jpeg"


def extract_cover_image(data: bytes) -> Optional[CoverImage]:
    """
    Extract embedded album art from raw audio bytes.

    Supports ID3 (APIC frames), FLAC pictures, Ogg METADATA_BLOCK_PICTURE
    and MP4 'covr' atoms.

    Returns:
        CoverImage, or None if there is no cover or the file cannot be parsed
    """
    try:
        audio = mutagen.File(io.BytesIO(data))
    except Exception as e:
        logger.debug("Cover extraction could not parse audio: %s", e)
        return None

    if audio is None:
        return None

    try:
        # FLAC keeps pictures outside the tag block
        pictures = getattr(audio, 'pictures', None)
        if pictures:
            picture = pictures[0]
            return CoverImage(picture.data, picture.mime or _sniff_mime(picture.data))

        tags = audio.tags
        if tags is None:
            return None

        if hasattr(tags, 'getall'):
            frames = tags.getall('APIC')
            if frames:
                frame = frames[0]
                return CoverImage(frame.data, frame.mime or _sniff_mime(frame.data))

        if 'covr' in tags:
            cover = tags['covr'][0]
            mime = "image/png" if getattr(cover, 'imageformat', None) == MP4Cover.FORMAT_PNG else "image/jpeg"
            return CoverImage(bytes(cover), mime)

        if 'metadata_block_picture' in tags:
            picture = Picture(base64.b64decode(tags['metadata_block_picture'][0]))
            return CoverImage(picture.data, picture.mime or _sniff_mime(picture.data))
    except Exception as e:
        logger.debug("Cover extraction failed: %s", e)

    return None
