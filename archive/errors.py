"""
Exception hierarchy shared by the archive, document and auth layers.

Services raise these; the API layer maps them to HTTP status codes.
"""

from typing import Optional


class ArchiveError(Exception):
    """Base class for every expected failure of an archive operation."""

    status_code = 500

    def __init__(self, message: str, *, detail: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}


class PermissionDeniedError(ArchiveError):
    """The current role is not allowed to perform the action."""

    status_code = 403


class NotFoundError(ArchiveError):
    """A referenced fund, inventory, case, document or user does not exist."""

    status_code = 404

    def __init__(self, entity: str, entity_id: str):
        super().__init__(
            f"{entity} '{entity_id}' not found",
            detail={"entity": entity, "id": entity_id},
        )
        self.entity = entity
        self.entity_id = entity_id


class ValidationFailedError(ArchiveError):
    """A required field is empty or a payload carries unknown fields."""

    status_code = 400


class ConflictError(ArchiveError):
    status_code = 409


class AuthenticationError(ArchiveError):
    status_code = 401


class StorageWriteError(ArchiveError):
    """Persisting a collection to the key-value store failed."""

    status_code = 500
