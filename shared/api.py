"""
Catalog API server for Tunecloud.
Exposes the song catalog and playlists over JSON to the web and terminal players.
"""

import logging
from typing import Optional

from flask import Flask, jsonify, request, send_from_directory
from flask_cors import CORS
from flask_socketio import SocketIO
from werkzeug.exceptions import RequestEntityTooLarge

from catalog.naming import display_name_from_filename
from catalog.store import CatalogStore
from shared.config import load_server_config
from shared.constants import BYTES_PER_MB, DEFAULT_UPLOAD_FIELD, FALLBACK_UPLOAD_FIELD
from shared.database import DatabaseManager
from shared.errors import CatalogError, ValidationError
from shared.schemas import (
    AddSongsRequest,
    DeleteSongRequest,
    MoveSongRequest,
    PlaylistNameRequest,
    RenamePlaylistRequest,
    RenameSongRequest,
)
from storage.local_provider import LocalStorageProvider
from storage.provider_factory import StorageProviderFactory

logger = logging.getLogger(__name__)

app = Flask(__name__)
# Snapshot order (reserved playlist first) is part of the wire format
app.json.sort_keys = False
CORS(app)
socketio = SocketIO(app, cors_allowed_origins="*")

# Global instance
catalog_store: Optional[CatalogStore] = None


def set_catalog(store: CatalogStore) -> None:
    """Install the catalog the routes operate on."""
    global catalog_store
    catalog_store = store
    # Multipart framing adds a little on top of the file itself
    app.config['MAX_CONTENT_LENGTH'] = store.max_upload_bytes + BYTES_PER_MB


def get_catalog() -> CatalogStore:
    if catalog_store is None:
        logger.info("API: Initializing catalog from environment...")
        config = load_server_config()
        storage = StorageProviderFactory.from_config(config)
        set_catalog(CatalogStore(
            DatabaseManager(config.database_path),
            storage,
            max_upload_bytes=config.max_upload_bytes,
        ))
    return catalog_store


def _notify_library_updated() -> None:
    socketio.emit('library_updated')


def _json_body():
    return request.get_json(silent=True)


# --- Error handling ---

@app.errorhandler(CatalogError)
def handle_catalog_error(error: CatalogError):
    logger.warning("API: %s %s failed (%s): %s", request.method, request.path, error.category, error.message)
    return jsonify(error.to_dict()), error.status_code


@app.errorhandler(RequestEntityTooLarge)
def handle_too_large(error):
    limit = app.config.get('MAX_CONTENT_LENGTH')
    logger.warning("API: upload rejected, request above %s bytes", limit)
    return jsonify({
        "success": False,
        "error": "Upload exceeds the size limit",
        "category": "validation",
    }), 413


# --- Health ---

@app.route('/api/health')
def health_check():
    return jsonify({"status": "healthy"})


# --- Catalog Endpoints ---

@app.route('/api/playlists', methods=['GET'])
def get_playlists():
    snapshot = get_catalog().get_snapshot()
    return jsonify({
        "success": True,
        "playlists": {
            name: [song.to_api_dict() for song in songs]
            for name, songs in snapshot.items()
        },
    })


@app.route('/api/upload', methods=['POST'])
def upload_song():
    catalog = get_catalog()
    upload = request.files.get(DEFAULT_UPLOAD_FIELD) or request.files.get(FALLBACK_UPLOAD_FIELD)
    if upload is None:
        raise ValidationError(f"Missing '{DEFAULT_UPLOAD_FIELD}' file field")

    display_name = (request.form.get('name') or '').strip() or display_name_from_filename(upload.filename)
    # One extra byte is enough to detect an oversized payload
    data = upload.read(catalog.max_upload_bytes + 1)
    song = catalog.add_song(data, display_name, upload.mimetype or None)

    _notify_library_updated()
    return jsonify({"success": True, "song": song.to_api_dict()})


@app.route('/api/song/rename', methods=['PUT'])
def rename_song():
    req = RenameSongRequest.parse(_json_body())
    get_catalog().rename_song(req.song_id, req.new_name)
    _notify_library_updated()
    return jsonify({"success": True})


@app.route('/api/song/move', methods=['PUT'])
def move_song():
    req = MoveSongRequest.parse(_json_body())
    get_catalog().move_song(req.song_id, req.from_playlist, req.to_playlist)
    _notify_library_updated()
    return jsonify({"success": True})


@app.route('/api/song', methods=['DELETE'])
def delete_song():
    req = DeleteSongRequest.parse(_json_body())
    outcome = get_catalog().delete_song(req.song_id, req.playlist_name)
    _notify_library_updated()
    return jsonify({"success": True, "outcome": outcome.value})


# --- Playlist Endpoints ---

@app.route('/api/playlist', methods=['POST'])
def create_playlist():
    req = PlaylistNameRequest.parse(_json_body())
    get_catalog().create_playlist(req.name)
    _notify_library_updated()
    return jsonify({"success": True})


@app.route('/api/playlist/rename', methods=['PUT'])
def rename_playlist():
    req = RenamePlaylistRequest.parse(_json_body())
    get_catalog().rename_playlist(req.old_name, req.new_name)
    _notify_library_updated()
    return jsonify({"success": True})


@app.route('/api/playlist', methods=['DELETE'])
def delete_playlist():
    req = PlaylistNameRequest.parse(_json_body())
    get_catalog().delete_playlist(req.name)
    _notify_library_updated()
    return jsonify({"success": True})


@app.route('/api/playlist/add-songs', methods=['POST'])
def add_songs_to_playlist():
    req = AddSongsRequest.parse(_json_body())
    added = get_catalog().add_songs_to_playlist(req.playlist_name, req.song_ids)
    _notify_library_updated()
    return jsonify({"success": True, "added": added})


# --- Media (local storage only) ---

@app.route('/media/<path:key>', methods=['GET'])
def serve_media(key):
    storage = get_catalog().storage
    if not isinstance(storage, LocalStorageProvider):
        return jsonify({"success": False, "error": "Media is served by the object store", "category": "not_found"}), 404
    return send_from_directory(storage.base_path, key)


def main():
    config = load_server_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    storage = StorageProviderFactory.from_config(config)
    set_catalog(CatalogStore(
        DatabaseManager(config.database_path),
        storage,
        max_upload_bytes=config.max_upload_bytes,
    ))
    get_catalog().ensure_reserved_playlist()
    logger.info("Serving catalog on port %d (%s storage)",
                config.port, StorageProviderFactory.get_provider_name(config.provider))
    socketio.run(app, host="0.0.0.0", port=config.port, allow_unsafe_werkzeug=True)


if __name__ == "__main__":
    main()
