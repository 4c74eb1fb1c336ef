"""
app/schemas package marker.
"""

from app.schemas.records import (
    AbbreviationClearResponse,
    AbbreviationResultResponse,
    CompanyMappingCreateRequest,
    CompanyMappingResponse,
    CrmCompanySuggestionResponse,
    MeetingNoteLinkRequest,
    MeetingNoteResponse,
    RepositoryMappingBulkResponse,
    RepositoryMappingCreateRequest,
    RepositoryMappingResponse,
)
from app.schemas.sync import (
    ActionOutcomeResponse,
    MappingSyncResultResponse,
    SyncAllResponse,
    SyncResultResponse,
    SyncRunResponse,
    SyncRunWithDetailsResponse,
)

__all__ = [
    "AbbreviationClearResponse",
    "AbbreviationResultResponse",
    "ActionOutcomeResponse",
    "CompanyMappingCreateRequest",
    "CompanyMappingResponse",
    "CrmCompanySuggestionResponse",
    "MappingSyncResultResponse",
    "MeetingNoteLinkRequest",
    "MeetingNoteResponse",
    "RepositoryMappingBulkResponse",
    "RepositoryMappingCreateRequest",
    "RepositoryMappingResponse",
    "SyncAllResponse",
    "SyncResultResponse",
    "SyncRunResponse",
    "SyncRunWithDetailsResponse",
]
