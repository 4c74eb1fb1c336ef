"""
app/schemas/records.py

Request/response schemas for mappings and single-record operations.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class CompanyMappingCreateRequest(BaseModel):
    crm_company_id: int = Field(..., ge=1)
    harvest_company_id: int = Field(..., ge=1)


class CompanyMappingResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    crm_company_id: int
    harvest_company_id: int
    created_at: datetime | None = None


class RepositoryMappingCreateRequest(BaseModel):
    crm_company_id: int = Field(..., ge=1)
    github_repository_ids: list[int] = Field(..., min_length=1)


class RepositoryMappingResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    crm_company_id: int
    github_repository_id: int
    last_release_id: str | None = None
    last_release_tag_name: str | None = None
    last_release_published_at: datetime | None = None
    last_posted_at: datetime | None = None


class RepositoryMappingBulkResponse(BaseModel):
    created: list[RepositoryMappingResponse]
    skipped_repository_ids: list[int]


class MeetingNoteLinkRequest(BaseModel):
    crm_company_id: int | None = None


class MeetingNoteResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    meeting_id: str
    title: str | None = None
    meeting_date: datetime | None = None
    crm_company_id: int | None = None
    crm_note_id: str | None = None
    synced_to_crm_at: datetime | None = None


class CrmCompanySuggestionResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    company_id: str
    name: str | None = None
    abbreviation: str | None = None


class AbbreviationResultResponse(BaseModel):
    updated: int = Field(..., ge=0)
    skipped: int = Field(..., ge=0)
    errors: list[str]


class AbbreviationClearResponse(BaseModel):
    cleared: int = Field(..., ge=0)
