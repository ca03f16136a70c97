"""
Blob storage providers (Cloudflare R2, local filesystem).
"""

from .storage_provider import BlobStore
from .provider_factory import StorageProviderFactory

__all__ = ["BlobStore", "StorageProviderFactory"]
