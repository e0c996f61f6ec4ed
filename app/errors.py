"""
Domain error taxonomy for the restaurant tabs backend.

Services and storage raise these; app.main translates them into
JSON responses with the matching HTTP status.
"""

from typing import Optional


class AppError(Exception):
    """Base class for all expected failures surfaced to API clients."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    """Empty or malformed input."""

    status_code = 400


class InvalidReference(ValidationError):
    """A reference points at an entity of another restaurant."""


class NotFound(AppError):
    """Dangling reference to a user, restaurant, table or dish."""

    status_code = 404

    def __init__(self, entity: str, entity_id: Optional[str] = None):
        if entity_id is not None:
            message = f"{entity} {entity_id} not found."
        else:
            message = f"{entity} not found."
        super().__init__(message)
        self.entity = entity
        self.entity_id = entity_id


class Conflict(AppError):
    """Duplicate open table, restaurant-code mismatch, closed-table mutation."""

    status_code = 409


class DuplicateKeyError(Conflict):
    """A unique key of the store was violated."""


class StaleWriteError(Conflict):
    """The stored document changed since it was read."""


class Unauthorized(AppError):
    """Login failure or invalid bearer token."""

    status_code = 401


class StoreError(AppError):
    """Unclassified failure of the underlying persistence layer."""

    status_code = 500
