"""
Blob store selection.

Maps the configured StorageProvider to its implementation and hands it the
credentials from ServerConfig.
"""

from typing import Dict, Type

from shared.errors import ConfigError
from shared.models import ServerConfig, StorageProvider
from .storage_provider import BlobStore
from .cloudflare_r2 import CloudflareR2Provider
from .local_provider import LocalStorageProvider

_PROVIDERS: Dict[StorageProvider, Type[BlobStore]] = {
    StorageProvider.CLOUDFLARE_R2: CloudflareR2Provider,
    StorageProvider.LOCAL: LocalStorageProvider,
}

_DISPLAY_NAMES = {
    StorageProvider.CLOUDFLARE_R2: "Cloudflare R2",
    StorageProvider.LOCAL: "Local filesystem",
}


class StorageProviderFactory:
    """Builds blob stores from configuration."""

    @staticmethod
    def create(provider_type: StorageProvider) -> BlobStore:
        """
        Instantiate an unauthenticated blob store.

        Raises:
            ValueError: If provider_type has no implementation
        """
        provider_cls = _PROVIDERS.get(provider_type)
        if provider_cls is None:
            raise ValueError(f"Unknown provider type: {provider_type}")
        return provider_cls()

    @staticmethod
    def from_config(config: ServerConfig) -> BlobStore:
        """Create the configured blob store and authenticate it."""
        provider = StorageProviderFactory.create(config.provider)
        if not provider.authenticate(config.storage_credentials()):
            raise ConfigError(
                f"Failed to authenticate {StorageProviderFactory.get_provider_name(config.provider)} storage"
            )
        return provider

    @staticmethod
    def get_provider_name(provider_type: StorageProvider) -> str:
        return _DISPLAY_NAMES.get(provider_type, "Unknown")
