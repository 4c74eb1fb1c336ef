"""
app/api/routers/records_router.py

Single-record operations: deal creation for one invoice, meeting note
linking and posting, and CRM company abbreviations.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.schemas.records import (
    AbbreviationClearResponse,
    AbbreviationResultResponse,
    CrmCompanySuggestionResponse,
    MeetingNoteLinkRequest,
    MeetingNoteResponse,
)
from app.schemas.sync import ActionOutcomeResponse
from app.services import suggestion_service
from app.services.sync_service import SyncService, get_sync_service
from app.sync.actions import ActionOutcome, ActionStatus
from app.sync.errors import ErrorCategory
from app.sync.exceptions import ActionNotAllowedError, RecordNotFoundError
from db.session import get_db

router = APIRouter(tags=["records"])


@router.post("/invoices/{invoice_id}/create-deal", response_model=ActionOutcomeResponse)
def create_deal_for_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    service: SyncService = Depends(get_sync_service),
) -> JSONResponse:
    try:
        outcome = service.create_deal_for_invoice(db, invoice_id)
    except RecordNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ActionNotAllowedError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return _outcome_response(outcome)


@router.post("/meeting-notes/{meeting_note_id}/sync-to-crm", response_model=ActionOutcomeResponse)
def sync_meeting_note_to_crm(
    meeting_note_id: int,
    db: Session = Depends(get_db),
    service: SyncService = Depends(get_sync_service),
) -> JSONResponse:
    try:
        outcome = service.post_meeting_note(db, meeting_note_id)
    except RecordNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ActionNotAllowedError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return _outcome_response(outcome)


@router.post("/meeting-notes/{meeting_note_id}/link", response_model=MeetingNoteResponse)
def link_meeting_note(
    meeting_note_id: int,
    payload: MeetingNoteLinkRequest,
    db: Session = Depends(get_db),
) -> MeetingNoteResponse:
    try:
        note = suggestion_service.link_meeting_note(db, meeting_note_id, payload.crm_company_id)
    except RecordNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return MeetingNoteResponse.model_validate(note)


@router.get("/meeting-notes/{meeting_note_id}/suggestions", response_model=list[CrmCompanySuggestionResponse])
def suggest_companies(
    meeting_note_id: int,
    db: Session = Depends(get_db),
) -> list[CrmCompanySuggestionResponse]:
    try:
        companies = suggestion_service.suggest_companies(db, meeting_note_id)
    except RecordNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return [CrmCompanySuggestionResponse.model_validate(company) for company in companies]


@router.post("/crm-companies/abbreviations", response_model=AbbreviationResultResponse)
def generate_abbreviations(db: Session = Depends(get_db)) -> AbbreviationResultResponse:
    """
    Assign a unique abbreviation to every CRM company that has none.
    """

    result = suggestion_service.assign_abbreviations(db)
    return AbbreviationResultResponse(updated=result.updated, skipped=result.skipped, errors=result.errors)


@router.delete("/crm-companies/abbreviations", response_model=AbbreviationClearResponse)
def clear_abbreviations(db: Session = Depends(get_db)) -> AbbreviationClearResponse:
    return AbbreviationClearResponse(cleared=suggestion_service.clear_abbreviations(db))


def _outcome_response(outcome: ActionOutcome) -> JSONResponse:
    status_code = status.HTTP_200_OK
    if outcome.status is ActionStatus.FAILED:
        rate_limited = outcome.error is not None and outcome.error.category is ErrorCategory.RATE_LIMITED
        status_code = status.HTTP_429_TOO_MANY_REQUESTS if rate_limited else status.HTTP_502_BAD_GATEWAY
    return JSONResponse(
        status_code=status_code,
        content=ActionOutcomeResponse.from_outcome(outcome).model_dump(mode="json"),
    )
