"""
Domain exceptions shared by the service layer.

Routes map these to HTTP status codes; services never raise HTTPException.
"""

from typing import Iterable, Optional


class ValidationError(ValueError):
    """Raised when required input is missing or invalid."""

    def __init__(self, message: str, fields: Optional[Iterable[str]] = None):
        super().__init__(message)
        self.fields = list(fields or [])


class NotFoundError(ValueError):
    """Raised when a match does not exist, is not owned by the caller, or has no rows."""


class InvalidArgumentError(ValueError):
    """Raised when a caller passes an unknown logical table name."""


class DataIntegrityError(ValueError):
    """Raised when stored rows fail structural invariants."""

    def __init__(self, message: str, match_id: Optional[int] = None):
        super().__init__(message)
        self.match_id = match_id


class MalformedRowError(DataIntegrityError):
    """Raised when a stored cell row cannot be decoded."""


class InvalidShipLayoutError(DataIntegrityError):
    """Raised when a ship's cells are not a straight, contiguous line."""

    def __init__(self, message: str, ship_id, match_id: Optional[int] = None):
        super().__init__(message, match_id=match_id)
        self.ship_id = ship_id


class StorageUnavailableError(RuntimeError):
    """Raised when the database cannot be reached. Callers own retry policy."""


class AuthError(ValueError):
    """Raised when a request cannot be authenticated."""
