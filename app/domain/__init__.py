"""
app/domain package marker.
"""

from app.domain.sync import (
    MappingOutcome,
    MappingSyncResult,
    SyncKind,
    SyncResult,
    SyncResultStatus,
)

__all__ = [
    "MappingOutcome",
    "MappingSyncResult",
    "SyncKind",
    "SyncResult",
    "SyncResultStatus",
]
