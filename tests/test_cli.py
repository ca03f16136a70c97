from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from conftest import make_song
from player.cli import cli
from player.client import CatalogClient, CatalogClientError
from shared.models import DeleteOutcome


@pytest.fixture
def client():
    mock = MagicMock(spec=CatalogClient)
    mock.get_snapshot.return_value = {
        "default": [make_song("aaaa1111", "First"), make_song("bbbb2222", "Second")],
        "Gym": [make_song("bbbb2222", "Second")],
    }
    with patch("player.cli.CatalogClient.from_config", return_value=mock):
        yield mock


def _run(*args, input=None):
    return CliRunner().invoke(cli, list(args), input=input)


def test_playlists(client):
    result = _run("playlists")
    assert result.exit_code == 0
    assert "Gym" in result.output
    assert "library" in result.output


def test_list_playlist(client):
    result = _run("list", "Gym")
    assert result.exit_code == 0
    assert "Second" in result.output
    assert "First" not in result.output


def test_list_unknown_playlist(client):
    result = _run("list", "Nope")
    assert result.exit_code == 1


def test_rename_song_by_prefix(client):
    result = _run("rename-song", "aaaa", "Renamed")
    assert result.exit_code == 0
    client.rename_song.assert_called_once_with("aaaa1111", "Renamed")


def test_ambiguous_song_reference(client):
    client.get_snapshot.return_value["default"].append(make_song("aaaa9999", "Third"))
    result = _run("rename-song", "aaaa", "Renamed")
    assert result.exit_code == 1
    client.rename_song.assert_not_called()


def test_delete_song_from_library_asks_first(client):
    client.delete_song.return_value = DeleteOutcome.PURGED
    result = _run("delete-song", "First", input="n\n")
    assert result.exit_code != 0
    client.delete_song.assert_not_called()

    result = _run("delete-song", "First", "--yes")
    assert result.exit_code == 0
    client.delete_song.assert_called_once_with("aaaa1111", "default")


def test_remove_song_from_playlist(client):
    client.delete_song.return_value = DeleteOutcome.UNLINKED
    result = _run("delete-song", "bbbb", "--playlist", "Gym")
    assert result.exit_code == 0
    assert "Removed" in result.output


def test_server_error_exits_non_zero(client):
    client.create_playlist.side_effect = CatalogClientError("'default' is reserved", "validation", 400)
    result = _run("create-playlist", "default")
    assert result.exit_code == 1
    assert "reserved" in result.output


def test_add_songs(client):
    client.add_songs_to_playlist.return_value = 2
    result = _run("add-songs", "Chill", "aaaa", "bbbb")
    assert result.exit_code == 0
    client.add_songs_to_playlist.assert_called_once_with("Chill", ["aaaa1111", "bbbb2222"])
