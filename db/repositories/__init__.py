"""
Repository layer exports.
"""

from db.repositories.errors import (
    DuplicateMappingError,
    MappingNotFoundError,
    RecordNotFoundError,
    RepositoryError,
)
from db.repositories.mapping_repository import MappingRepository
from db.repositories.sync_run_repository import SyncRunRepository

__all__ = [
    "DuplicateMappingError",
    "MappingNotFoundError",
    "MappingRepository",
    "RecordNotFoundError",
    "RepositoryError",
    "SyncRunRepository",
]
