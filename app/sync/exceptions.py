"""
Engine-level exceptions.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base exception for synchronization failures."""


class NormalizationError(SyncError):
    """Raised when an external payload cannot be turned into a canonical record."""


class FirstPageFetchError(SyncError):
    """
    Raised when the first page of a paginated fetch fails.

    Nothing could be characterized, so the whole run is failed.
    """

    def __init__(self, source: str, cause: BaseException) -> None:
        self.source = source
        self.cause = cause
        super().__init__(f"{source}: failed to fetch first page: {cause}")


class RecordNotFoundError(SyncError):
    """Raised when a single-record action targets a missing local row."""


class ActionNotAllowedError(SyncError):
    """Raised when a single-record action is requested for an ineligible record."""
