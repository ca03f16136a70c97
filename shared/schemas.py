"""
Request body validation for the catalog API.

Each parser takes the decoded JSON body and returns a typed request, or
raises ValidationError. Unknown fields are ignored.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from shared.errors import ValidationError


def _require_str(data: Dict[str, Any], key: str, allow_blank: bool = False) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise ValidationError(f"'{key}' must be a string")
    if not allow_blank and not value.strip():
        raise ValidationError(f"'{key}' cannot be empty")
    return value


def _body(data: Optional[Any]) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


@dataclass
class RenameSongRequest:
    song_id: str
    new_name: str

    @classmethod
    def parse(cls, data: Optional[Any]) -> 'RenameSongRequest':
        body = _body(data)
        return cls(song_id=_require_str(body, 'songId'), new_name=_require_str(body, 'newName'))


@dataclass
class DeleteSongRequest:
    song_id: str
    playlist_name: str

    @classmethod
    def parse(cls, data: Optional[Any]) -> 'DeleteSongRequest':
        body = _body(data)
        return cls(song_id=_require_str(body, 'songId'), playlist_name=_require_str(body, 'playlistName'))


@dataclass
class MoveSongRequest:
    song_id: str
    from_playlist: str
    to_playlist: str

    @classmethod
    def parse(cls, data: Optional[Any]) -> 'MoveSongRequest':
        body = _body(data)
        return cls(
            song_id=_require_str(body, 'songId'),
            from_playlist=_require_str(body, 'fromPlaylist'),
            to_playlist=_require_str(body, 'toPlaylist'),
        )


@dataclass
class PlaylistNameRequest:
    name: str

    @classmethod
    def parse(cls, data: Optional[Any]) -> 'PlaylistNameRequest':
        # Blank names are rejected by the store as InvalidNameError
        return cls(name=_require_str(_body(data), 'name', allow_blank=True))


@dataclass
class RenamePlaylistRequest:
    old_name: str
    new_name: str

    @classmethod
    def parse(cls, data: Optional[Any]) -> 'RenamePlaylistRequest':
        body = _body(data)
        return cls(
            old_name=_require_str(body, 'oldName'),
            new_name=_require_str(body, 'newName', allow_blank=True),
        )


@dataclass
class AddSongsRequest:
    playlist_name: str
    song_ids: List[str]

    @classmethod
    def parse(cls, data: Optional[Any]) -> 'AddSongsRequest':
        body = _body(data)
        song_ids = body.get('songIds')
        if not isinstance(song_ids, list) or not all(isinstance(i, str) and i for i in song_ids):
            raise ValidationError("'songIds' must be a list of song ids")
        return cls(playlist_name=_require_str(body, 'playlistName', allow_blank=True), song_ids=song_ids)
