"""
app/schemas/sync.py

Response schemas for sync runs and run logs.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from app.domain.sync import MappingSyncResult, SyncResult
from app.sync.actions import ActionOutcome
from app.sync.errors import summarize_errors


class ActionOutcomeResponse(BaseModel):
    status: str
    record_id: int
    reference: str | None = None
    reason: str | None = None
    error_category: str | None = None
    message: str | None = None

    @classmethod
    def from_outcome(cls, outcome: ActionOutcome) -> ActionOutcomeResponse:
        return cls(
            status=outcome.status.value,
            record_id=outcome.record_id,
            reference=outcome.reference,
            reason=outcome.reason,
            error_category=outcome.error.category.value if outcome.error is not None else None,
            message=outcome.message,
        )


class SyncResultResponse(BaseModel):
    """
    API response model for one record sync run.

    `errors` is truncated for display; `error_count` is the full count.
    """

    kind: str
    status: str
    run_log_id: int | None = None
    found: int = Field(..., ge=0)
    created: int = Field(..., ge=0)
    updated: int = Field(..., ge=0)
    skipped: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    actions_performed: int = Field(..., ge=0)
    error_count: int = Field(..., ge=0)
    errors: list[str]
    fatal_error: str | None = None

    @classmethod
    def from_result(cls, result: SyncResult, *, error_limit: int = 10) -> SyncResultResponse:
        return cls(
            kind=result.kind,
            status=result.status,
            run_log_id=result.run_log_id,
            found=result.found,
            created=result.created,
            updated=result.updated,
            skipped=result.skipped,
            failed=result.failed,
            actions_performed=result.actions_performed,
            error_count=len(result.errors),
            errors=summarize_errors(result.errors, limit=error_limit),
            fatal_error=result.fatal_error,
        )


class MappingOutcomeResponse(BaseModel):
    subject_type: str
    subject_id: int
    status: str
    actions_performed: int = Field(..., ge=0)
    error_message: str | None = None
    detail: str | None = None


class MappingSyncResultResponse(BaseModel):
    kind: str
    status: str
    run_log_id: int | None = None
    dry_run: bool = False
    mappings_processed: int = Field(..., ge=0)
    actions_performed: int = Field(..., ge=0)
    skipped: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    errors: list[str]
    results: list[MappingOutcomeResponse]
    fatal_error: str | None = None

    @classmethod
    def from_result(cls, result: MappingSyncResult, *, error_limit: int = 10) -> MappingSyncResultResponse:
        return cls(
            kind=result.kind,
            status=result.status,
            run_log_id=result.run_log_id,
            dry_run=result.dry_run,
            mappings_processed=result.mappings_processed,
            actions_performed=result.actions_performed,
            skipped=result.skipped,
            failed=result.failed,
            errors=summarize_errors(result.errors, limit=error_limit),
            results=[
                MappingOutcomeResponse(
                    subject_type=outcome.subject_type,
                    subject_id=outcome.subject_id,
                    status=outcome.status,
                    actions_performed=outcome.actions_performed,
                    error_message=outcome.error_message,
                    detail=outcome.detail,
                )
                for outcome in result.mapping_results
            ],
            fatal_error=result.fatal_error,
        )


class SyncAllResponse(BaseModel):
    status: str
    results: list[SyncResultResponse]
    errors: list[str]


class SyncRunDetailResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    subject_type: str
    subject_id: int
    status: str
    actions_performed: int
    error_message: str | None = None


class SyncRunResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    kind: str
    trigger: str
    status: str
    started_at: datetime
    completed_at: datetime | None = None
    found: int
    created: int
    updated: int
    skipped: int
    failed: int
    actions_performed: int
    errors: list[str] = Field(default_factory=list)
    error_message: str | None = None
    stale: bool = False


class SyncRunWithDetailsResponse(SyncRunResponse):
    details: list[SyncRunDetailResponse] = Field(default_factory=list)
