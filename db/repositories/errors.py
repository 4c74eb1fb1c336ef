"""
Repository-layer exceptions for mapping and record lookups.
"""

from __future__ import annotations


class RepositoryError(Exception):
    """Base exception for repository failures."""


class RecordNotFoundError(RepositoryError):
    """Raised when a referenced local record does not exist."""


class MappingNotFoundError(RepositoryError):
    """Raised when a mapping id does not exist."""


class DuplicateMappingError(RepositoryError):
    """Raised when a mapping pair already exists."""
