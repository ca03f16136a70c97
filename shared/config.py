"""
Configuration loading from the environment (and an optional .env file).
"""

import os
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from shared.constants import (
    BYTES_PER_MB,
    DEFAULT_DATABASE_PATH,
    DEFAULT_LOCAL_STORAGE_PATH,
    DEFAULT_MAX_UPLOAD_MB,
    DEFAULT_NETWORK_TIMEOUT,
    DEFAULT_PORT,
    DEFAULT_SERVER_URL,
)
from shared.errors import ConfigError
from shared.models import ClientConfig, ServerConfig, StorageProvider


def _int_setting(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}")


def load_server_config(env: Optional[Mapping[str, str]] = None) -> ServerConfig:
    """
    Build the server configuration.

    Args:
        env: Mapping to read from. Defaults to ``os.environ`` after loading
             a ``.env`` file from the working directory.

    Raises:
        ConfigError: If the selected provider is missing required settings
    """
    if env is None:
        load_dotenv()
        env = os.environ

    provider_name = (env.get("STORAGE_PROVIDER") or "local").strip().lower()
    try:
        provider = StorageProvider(provider_name)
    except ValueError:
        raise ConfigError(f"Unknown STORAGE_PROVIDER: {provider_name}")

    max_upload_mb = _int_setting(env, "MAX_UPLOAD_MB", DEFAULT_MAX_UPLOAD_MB)
    port = _int_setting(env, "PORT", DEFAULT_PORT)
    database_path = str(Path(env.get("DATABASE_PATH") or DEFAULT_DATABASE_PATH).expanduser())

    if provider == StorageProvider.LOCAL:
        return ServerConfig(
            provider=provider,
            local_storage_path=str(Path(env.get("LOCAL_STORAGE_PATH") or DEFAULT_LOCAL_STORAGE_PATH).expanduser()),
            public_url=(env.get("LOCAL_PUBLIC_URL") or f"http://localhost:{port}/media").rstrip("/"),
            database_path=database_path,
            max_upload_bytes=max_upload_mb * BYTES_PER_MB,
            port=port,
            log_level=env.get("LOG_LEVEL") or "INFO",
        )

    missing = [
        key for key in ("R2_ACCESS_KEY_ID", "R2_SECRET_ACCESS_KEY", "R2_BUCKET_NAME", "R2_PUBLIC_URL")
        if not env.get(key)
    ]
    if not env.get("R2_ACCOUNT_ID") and not env.get("R2_ENDPOINT"):
        missing.append("R2_ACCOUNT_ID or R2_ENDPOINT")
    if missing:
        raise ConfigError(f"Missing R2 settings: {', '.join(missing)}")

    return ServerConfig(
        provider=provider,
        bucket=env["R2_BUCKET_NAME"],
        endpoint=env.get("R2_ENDPOINT") or None,
        account_id=env.get("R2_ACCOUNT_ID") or None,
        access_key_id=env["R2_ACCESS_KEY_ID"],
        secret_access_key=env["R2_SECRET_ACCESS_KEY"],
        public_url=env["R2_PUBLIC_URL"].rstrip("/"),
        database_path=database_path,
        max_upload_bytes=max_upload_mb * BYTES_PER_MB,
        port=port,
        log_level=env.get("LOG_LEVEL") or "INFO",
    )


def load_client_config(env: Optional[Mapping[str, str]] = None) -> ClientConfig:
    """Build the client configuration (catalog API location)."""
    if env is None:
        load_dotenv()
        env = os.environ
    return ClientConfig(
        server_url=(env.get("TUNECLOUD_SERVER_URL") or DEFAULT_SERVER_URL).rstrip("/"),
        timeout=_int_setting(env, "TUNECLOUD_TIMEOUT", DEFAULT_NETWORK_TIMEOUT),
    )
