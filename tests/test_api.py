import io
from unittest.mock import patch

import pytest

from shared import api


def _upload(api_client, data=b"ID3audio", filename="Artist - Song.mp3", field="audio", **form):
    payload = {field: (io.BytesIO(data), filename, "audio/mpeg")}
    payload.update(form)
    return api_client.post("/api/upload", data=payload, content_type="multipart/form-data")


@pytest.fixture(autouse=True)
def no_socket_broadcast():
    with patch.object(api.socketio, "emit") as emit:
        yield emit


def test_health(api_client):
    assert api_client.get("/api/health").get_json() == {"status": "healthy"}


def test_snapshot_starts_with_reserved_playlist(api_client):
    body = api_client.get("/api/playlists").get_json()
    assert body == {"success": True, "playlists": {"default": []}}


def test_upload_then_snapshot(api_client, no_socket_broadcast):
    response = _upload(api_client)
    assert response.status_code == 200
    song = response.get_json()["song"]
    assert song["name"] == "Artist - Song"
    assert song["url"].startswith("http://media.test/")
    assert "coverUrl" not in song
    no_socket_broadcast.assert_called_with("library_updated")

    playlists = api_client.get("/api/playlists").get_json()["playlists"]
    assert playlists["default"] == [song]


def test_upload_accepts_fallback_field_and_explicit_name(api_client):
    response = _upload(api_client, field="file", name="  Custom  ")
    assert response.get_json()["song"]["name"] == "Custom"


def test_upload_missing_file(api_client):
    response = api_client.post("/api/upload", data={}, content_type="multipart/form-data")
    assert response.status_code == 400
    assert response.get_json()["category"] == "validation"


def test_upload_too_large(api_client):
    response = _upload(api_client, data=b"x" * 2048)
    assert response.status_code == 413
    body = response.get_json()
    assert body["success"] is False
    assert body["category"] == "validation"
    assert api_client.get("/api/playlists").get_json()["playlists"]["default"] == []


def test_upload_storage_failure(api_client, blob_store):
    blob_store.fail_uploads_for.add("")
    response = _upload(api_client)
    assert response.status_code == 502
    assert response.get_json()["category"] == "storage"


def test_rename_song(api_client):
    song_id = _upload(api_client).get_json()["song"]["id"]
    response = api_client.put("/api/song/rename", json={"songId": song_id, "newName": "Renamed"})
    assert response.get_json() == {"success": True}
    assert api_client.get("/api/playlists").get_json()["playlists"]["default"][0]["name"] == "Renamed"


def test_rename_unknown_song(api_client):
    response = api_client.put("/api/song/rename", json={"songId": "nope", "newName": "x"})
    assert response.status_code == 404
    assert response.get_json()["category"] == "not_found"


@pytest.mark.parametrize("body", [None, [], {"songId": 1, "newName": "x"}, {"songId": "a", "newName": " "}])
def test_rename_song_validation(api_client, body):
    response = api_client.put("/api/song/rename", json=body)
    assert response.status_code == 400
    assert response.get_json()["success"] is False


def test_delete_song_outcomes(api_client):
    song_id = _upload(api_client).get_json()["song"]["id"]
    api_client.post("/api/playlist/add-songs", json={"playlistName": "Gym", "songIds": [song_id]})

    response = api_client.delete("/api/song", json={"songId": song_id, "playlistName": "Gym"})
    assert response.get_json() == {"success": True, "outcome": "unlinked"}

    response = api_client.delete("/api/song", json={"songId": song_id, "playlistName": "default"})
    assert response.get_json() == {"success": True, "outcome": "purged"}
    playlists = api_client.get("/api/playlists").get_json()["playlists"]
    assert playlists == {"default": [], "Gym": []}


def test_playlist_lifecycle(api_client):
    assert api_client.post("/api/playlist", json={"name": "Gym"}).status_code == 200
    assert api_client.post("/api/playlist", json={"name": "Gym"}).status_code == 409
    assert api_client.put("/api/playlist/rename", json={"oldName": "Gym", "newName": "Run"}).status_code == 200
    assert list(api_client.get("/api/playlists").get_json()["playlists"]) == ["default", "Run"]
    assert api_client.delete("/api/playlist", json={"name": "Run"}).status_code == 200
    assert api_client.delete("/api/playlist", json={"name": "Run"}).status_code == 404


def test_snapshot_keeps_creation_order(api_client):
    for name in ("Zeta", "Alpha", "Mid"):
        api_client.post("/api/playlist", json={"name": name})
    body = api_client.get("/api/playlists").get_json()
    assert list(body["playlists"]) == ["default", "Zeta", "Alpha", "Mid"]


@pytest.mark.parametrize("method, path, body", [
    ("post", "/api/playlist", {"name": "default"}),
    ("delete", "/api/playlist", {"name": "default"}),
    ("put", "/api/playlist/rename", {"oldName": "default", "newName": "All"}),
])
def test_reserved_playlist_rejected(api_client, method, path, body):
    response = getattr(api_client, method)(path, json=body)
    assert response.status_code == 400
    assert response.get_json()["category"] == "validation"


def test_blank_playlist_name(api_client):
    response = api_client.post("/api/playlist", json={"name": "   "})
    assert response.status_code == 400


def test_add_songs(api_client):
    song_id = _upload(api_client).get_json()["song"]["id"]
    body = {"playlistName": "Gym", "songIds": [song_id]}
    assert api_client.post("/api/playlist/add-songs", json=body).get_json()["added"] == 1
    assert api_client.post("/api/playlist/add-songs", json=body).get_json()["added"] == 0

    response = api_client.post("/api/playlist/add-songs", json={"playlistName": "Gym", "songIds": ["ghost"]})
    assert response.status_code == 404

    response = api_client.post("/api/playlist/add-songs", json={"playlistName": "Gym", "songIds": "oops"})
    assert response.status_code == 400


def test_move_song(api_client):
    song_id = _upload(api_client).get_json()["song"]["id"]
    api_client.post("/api/playlist/add-songs", json={"playlistName": "Gym", "songIds": [song_id]})
    response = api_client.put("/api/song/move", json={"songId": song_id, "fromPlaylist": "Gym", "toPlaylist": "Run"})
    assert response.get_json() == {"success": True}
    playlists = api_client.get("/api/playlists").get_json()["playlists"]
    assert [s["id"] for s in playlists["Run"]] == [song_id]
    assert playlists["Gym"] == []


def test_serves_local_media(api_client):
    song = _upload(api_client, data=b"ID3payload").get_json()["song"]
    key = song["url"].rsplit("/", 1)[1]
    response = api_client.get(f"/media/{key}")
    assert response.status_code == 200
    assert response.data == b"ID3payload"
    response.close()


def test_failed_mutation_does_not_broadcast(api_client, no_socket_broadcast):
    api_client.delete("/api/playlist", json={"name": "missing"})
    no_socket_broadcast.assert_not_called()
