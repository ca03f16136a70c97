"""
Song catalog and playlist store.
"""

from .store import CatalogStore

__all__ = ["CatalogStore"]
