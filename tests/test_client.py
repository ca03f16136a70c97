from unittest.mock import MagicMock

import pytest
import requests

from player.client import CatalogClient, CatalogClientError
from shared.constants import UPLOAD_NETWORK_TIMEOUT
from shared.models import ClientConfig, DeleteOutcome


def _response(status=200, payload=None, json_error=False):
    response = MagicMock()
    response.status_code = status
    response.ok = status < 400
    if json_error:
        response.json.side_effect = ValueError("not json")
    else:
        response.json.return_value = payload
    return response


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def client(session):
    return CatalogClient("http://music.local:8080/", timeout=5, session=session)


def test_from_config():
    client = CatalogClient.from_config(ClientConfig("http://x:1", timeout=9))
    assert client.base_url == "http://x:1"
    assert client.timeout == 9


def test_get_snapshot(client, session):
    session.request.return_value = _response(payload={"success": True, "playlists": {
        "default": [{"id": "1", "name": "A", "url": "http://m/1", "uploadedAt": "2024-01-01", "coverUrl": "http://m/c"}],
        "Gym": [],
    }})

    snapshot = client.get_snapshot()

    session.request.assert_called_once_with("GET", "http://music.local:8080/api/playlists", timeout=5)
    assert list(snapshot) == ["default", "Gym"]
    song = snapshot["default"][0]
    assert (song.id, song.name, song.playback_url, song.cover_url) == ("1", "A", "http://m/1", "http://m/c")


def test_malformed_snapshot(client, session):
    session.request.return_value = _response(payload={"success": True, "playlists": {"default": [{"id": "1"}]}})
    with pytest.raises(CatalogClientError):
        client.get_snapshot()


def test_error_payload_is_raised_with_category(client, session):
    session.request.return_value = _response(404, {"success": False, "error": "Song 'x' not found", "category": "not_found"})
    with pytest.raises(CatalogClientError) as excinfo:
        client.rename_song("x", "New")
    assert excinfo.value.message == "Song 'x' not found"
    assert excinfo.value.category == "not_found"
    assert excinfo.value.status_code == 404


def test_transport_error_is_network_category(client, session):
    session.request.side_effect = requests.ConnectionError("refused")
    with pytest.raises(CatalogClientError) as excinfo:
        client.get_snapshot()
    assert excinfo.value.category == "network"


def test_non_json_413(client, session):
    session.request.return_value = _response(413, json_error=True)
    with pytest.raises(CatalogClientError) as excinfo:
        client.create_playlist("Gym")
    assert excinfo.value.category == "validation"


def test_non_json_server_error(client, session):
    session.request.return_value = _response(502, json_error=True)
    with pytest.raises(CatalogClientError) as excinfo:
        client.delete_playlist("Gym")
    assert excinfo.value.category == "storage"


def test_upload_sends_multipart(client, session, tmp_path):
    path = tmp_path / "Artist - Song.mp3"
    path.write_bytes(b"ID3")
    session.request.return_value = _response(payload={"success": True, "song": {
        "id": "1", "name": "Artist - Song", "url": "http://m/1", "uploadedAt": "2024-01-01",
    }})

    song = client.upload(str(path))

    args, kwargs = session.request.call_args
    assert args == ("POST", "http://music.local:8080/api/upload")
    assert kwargs["timeout"] == UPLOAD_NETWORK_TIMEOUT
    filename, _, content_type = kwargs["files"]["audio"]
    assert filename == "Artist - Song.mp3"
    assert content_type == "audio/mpeg"
    assert kwargs["data"] == {}
    assert song.name == "Artist - Song"


def test_upload_missing_file(client, tmp_path):
    with pytest.raises(CatalogClientError) as excinfo:
        client.upload(str(tmp_path / "missing.mp3"))
    assert excinfo.value.category == "validation"


def test_mutation_bodies(client, session):
    session.request.return_value = _response(payload={"success": True, "outcome": "unlinked", "added": 2})

    assert client.delete_song("1", "Gym") == DeleteOutcome.UNLINKED
    session.request.assert_called_with(
        "DELETE", "http://music.local:8080/api/song", timeout=5, json={"songId": "1", "playlistName": "Gym"}
    )

    client.move_song("1", "Gym", "Run")
    session.request.assert_called_with(
        "PUT", "http://music.local:8080/api/song/move", timeout=5,
        json={"songId": "1", "fromPlaylist": "Gym", "toPlaylist": "Run"},
    )

    client.rename_playlist("Gym", "Run")
    session.request.assert_called_with(
        "PUT", "http://music.local:8080/api/playlist/rename", timeout=5, json={"oldName": "Gym", "newName": "Run"}
    )

    assert client.add_songs_to_playlist("Gym", ("1", "2")) == 2
    session.request.assert_called_with(
        "POST", "http://music.local:8080/api/playlist/add-songs", timeout=5,
        json={"playlistName": "Gym", "songIds": ["1", "2"]},
    )
