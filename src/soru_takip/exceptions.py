"""Exception classes for progress tracking."""
from typing import Any, Dict, Optional


class ProgressError(Exception):
    """Base exception for the progress engine."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class StoreError(ProgressError):
    """Store unavailable or a read/write failed. Safe to retry."""
    pass


class IdentityRequiredError(ProgressError):
    """No authenticated user; nothing may be read or written."""
    pass


class NotReadyError(ProgressError):
    """Mutation attempted while the selected date is still loading."""
    pass


class UnknownSubjectError(ProgressError):
    """Subject name is not part of the user's catalog."""
    pass
