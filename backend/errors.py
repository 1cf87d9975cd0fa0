"""
Error taxonomy shared by repositories and the API layer.
"""
from __future__ import annotations


class RosterError(Exception):
    """Base for all roster errors."""


class ValidationError(RosterError, ValueError):
    """Missing or malformed input. Raised before any row is written."""


class NotFoundError(RosterError, LookupError):
    """No row matches id + owner. Same error for foreign and missing rows."""


class InfrastructureError(RosterError):
    """Storage failure not anticipated by validation (connection, lock, constraint)."""

    def __init__(self, message: str, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable
