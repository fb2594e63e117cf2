"""Error taxonomy shared by the record store, report builders and the HTTP layer."""
from __future__ import annotations


class ValidationError(ValueError):
    """Raised when input is malformed or outside its domain.

    ``errors`` holds one ``{"field": ..., "message": ...}`` entry per offending field.
    """

    def __init__(self, message: str, field: str | None = None, errors: list[dict] | None = None) -> None:
        super().__init__(message)
        self.message = message
        if errors is not None:
            self.errors = errors
        elif field is not None:
            self.errors = [{"field": field, "message": message}]
        else:
            self.errors = []


class NotFoundError(LookupError):
    """Raised when a record is absent or owned by someone else."""

    def __init__(self, message: str = "Record not found.") -> None:
        super().__init__(message)
        self.message = message


class StoreError(RuntimeError):
    """Raised when the persistence layer fails."""
