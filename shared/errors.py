"""
Error vocabulary shared by the catalog store, the API and the client.

Every error carries a ``category`` (validation, not_found, storage) and the
HTTP status the API answers with.
"""


class CatalogError(Exception):
    """Base class for all catalog failures."""

    category = "storage"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {"success": False, "error": self.message, "category": self.category}


class ValidationError(CatalogError):
    """Request rejected before any side effect."""

    category = "validation"
    status_code = 400


class InvalidNameError(ValidationError):
    pass


class ReservedNameError(ValidationError):
    pass


class DuplicateNameError(ValidationError):
    status_code = 409


class NotFoundError(CatalogError):
    """Unknown song or playlist in a mutating call."""

    category = "not_found"
    status_code = 404


class StorageError(CatalogError):
    """Blob or record store operation failed."""

    category = "storage"
    status_code = 502


class UploadError(CatalogError):
    """Upload could not be completed."""


class UploadTooLargeError(UploadError, ValidationError):
    category = "validation"
    status_code = 413


class UploadStorageError(UploadError, StorageError):
    category = "storage"
    status_code = 502


class ConfigError(Exception):
    """Missing or inconsistent configuration."""
