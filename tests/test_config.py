import pytest

from shared.config import load_client_config, load_server_config
from shared.constants import BYTES_PER_MB
from shared.errors import ConfigError
from shared.models import StorageProvider

R2_ENV = {
    "STORAGE_PROVIDER": "r2",
    "R2_ACCOUNT_ID": "acct",
    "R2_ACCESS_KEY_ID": "key",
    "R2_SECRET_ACCESS_KEY": "secret",
    "R2_BUCKET_NAME": "music",
    "R2_PUBLIC_URL": "https://cdn.example.com/",
}


def test_local_defaults():
    config = load_server_config({})
    assert config.provider == StorageProvider.LOCAL
    assert config.max_upload_bytes == 50 * BYTES_PER_MB
    assert config.port == 8080
    assert config.public_url == "http://localhost:8080/media"
    assert config.storage_credentials()["base_path"].endswith("blobs")


def test_local_overrides(tmp_path):
    config = load_server_config({
        "LOCAL_STORAGE_PATH": str(tmp_path),
        "LOCAL_PUBLIC_URL": "http://nas:9000/media/",
        "MAX_UPLOAD_MB": "5",
        "PORT": "9000",
        "DATABASE_PATH": str(tmp_path / "db.sqlite"),
        "LOG_LEVEL": "DEBUG",
    })
    assert config.local_storage_path == str(tmp_path)
    assert config.public_url == "http://nas:9000/media"
    assert config.max_upload_bytes == 5 * BYTES_PER_MB
    assert config.port == 9000
    assert config.log_level == "DEBUG"


def test_r2_config():
    config = load_server_config(R2_ENV)
    assert config.provider == StorageProvider.CLOUDFLARE_R2
    assert config.public_url == "https://cdn.example.com"
    credentials = config.storage_credentials()
    assert credentials["bucket"] == "music"
    assert credentials["account_id"] == "acct"


def test_r2_missing_credentials():
    env = dict(R2_ENV)
    del env["R2_SECRET_ACCESS_KEY"]
    del env["R2_ACCOUNT_ID"]
    with pytest.raises(ConfigError) as excinfo:
        load_server_config(env)
    assert "R2_SECRET_ACCESS_KEY" in str(excinfo.value)
    assert "R2_ACCOUNT_ID or R2_ENDPOINT" in str(excinfo.value)


def test_unknown_provider():
    with pytest.raises(ConfigError):
        load_server_config({"STORAGE_PROVIDER": "ftp"})


def test_non_integer_setting():
    with pytest.raises(ConfigError):
        load_server_config({"MAX_UPLOAD_MB": "lots"})


def test_client_config():
    config = load_client_config({"TUNECLOUD_SERVER_URL": "http://music:8080/", "TUNECLOUD_TIMEOUT": "10"})
    assert config.server_url == "http://music:8080"
    assert config.timeout == 10
    assert load_client_config({}).server_url == "http://localhost:8080"
