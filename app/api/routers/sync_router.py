"""
app/api/routers/sync_router.py

Sync trigger and run log HTTP endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.api.dependencies import get_record_kind, result_status_code
from app.config import SyncSettings, get_sync_settings
from app.domain.sync import MappingSyncResult, SyncResult, SyncResultStatus
from app.schemas.sync import (
    MappingSyncResultResponse,
    SyncAllResponse,
    SyncResultResponse,
    SyncRunDetailResponse,
    SyncRunResponse,
    SyncRunWithDetailsResponse,
)
from app.services.invoice_deal_service import InvoiceDealService, get_invoice_deal_service
from app.services.release_note_service import ReleaseNoteService, get_release_note_service
from app.services.sync_service import SyncService, get_sync_service
from app.sync.exceptions import RecordNotFoundError
from db.models.sync_run import SyncRunLog
from db.repositories.sync_run_repository import SyncRunRepository
from db.session import get_db

router = APIRouter(prefix="/sync", tags=["sync"])


@router.get("/runs", response_model=list[SyncRunResponse])
def list_runs(
    limit: int = Query(default=50, ge=1, le=500),
    kind: str | None = Query(default=None, description="Optional kind filter, e.g. harvest_invoices"),
    run_status: str | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    settings: SyncSettings = Depends(get_sync_settings),
) -> list[SyncRunResponse]:
    runs = SyncRunRepository(db).list_runs(limit=limit, kind=kind, status=run_status)
    return [_run_response(run, settings, SyncRunResponse) for run in runs]


@router.get("/runs/{run_id}", response_model=SyncRunWithDetailsResponse)
def get_run(
    run_id: int,
    db: Session = Depends(get_db),
    settings: SyncSettings = Depends(get_sync_settings),
) -> SyncRunWithDetailsResponse:
    repository = SyncRunRepository(db)
    run = repository.get_run(run_id)
    if run is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Sync run {run_id} not found.")

    response = _run_response(run, settings, SyncRunWithDetailsResponse)
    response.details = [SyncRunDetailResponse.model_validate(detail) for detail in repository.list_details(run_id)]
    return response


@router.post("/release-notes", response_model=MappingSyncResultResponse)
def sync_release_notes(
    mapping_id: int | None = Query(default=None, ge=1),
    dry_run: bool = Query(default=False),
    db: Session = Depends(get_db),
    service: ReleaseNoteService = Depends(get_release_note_service),
    settings: SyncSettings = Depends(get_sync_settings),
) -> JSONResponse:
    """
    Post CRM notes for new releases of every mapped repository (or one).
    """

    try:
        result = service.sync_release_notes(db, mapping_id=mapping_id, dry_run=dry_run)
    except RecordNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    body = MappingSyncResultResponse.from_result(result, error_limit=settings.error_display_limit)
    return _json(body, result)


@router.post("/invoice-deals", response_model=MappingSyncResultResponse)
def sync_invoice_deals(
    skip_paid_and_deal_paid: bool = Query(default=True),
    db: Session = Depends(get_db),
    service: InvoiceDealService = Depends(get_invoice_deal_service),
    settings: SyncSettings = Depends(get_sync_settings),
) -> JSONResponse:
    """
    Push current invoice state to every CRM deal created for an invoice.
    """

    result = service.sync_invoice_deals(db, skip_paid_and_deal_paid=skip_paid_and_deal_paid)
    body = MappingSyncResultResponse.from_result(result, error_limit=settings.error_display_limit)
    return _json(body, result)


@router.post("/all", response_model=SyncAllResponse)
def sync_all(
    db: Session = Depends(get_db),
    service: SyncService = Depends(get_sync_service),
    settings: SyncSettings = Depends(get_sync_settings),
) -> JSONResponse:
    """
    Run every record sync in dependency order and report them together.
    """

    results = service.run_all(db)
    responses = [SyncResultResponse.from_result(result, error_limit=settings.error_display_limit) for result in results]
    errors = [f"{result.kind}: {error}" for result in results for error in result.errors]
    clean = all(result.status == SyncResultStatus.COMPLETED and not result.errors for result in results)

    body = SyncAllResponse(
        status="completed" if clean else "partial",
        results=responses,
        errors=errors[: settings.error_display_limit],
    )
    return JSONResponse(
        status_code=status.HTTP_200_OK if clean else status.HTTP_207_MULTI_STATUS,
        content=body.model_dump(mode="json"),
    )


@router.post("/{kind}", response_model=SyncResultResponse)
def sync_kind(
    kind: str = Depends(get_record_kind),
    db: Session = Depends(get_db),
    service: SyncService = Depends(get_sync_service),
    settings: SyncSettings = Depends(get_sync_settings),
) -> JSONResponse:
    """
    Run one record sync, e.g. ``POST /sync/harvest-invoices``.
    """

    try:
        result = service.run_kind(db, kind)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    body = SyncResultResponse.from_result(result, error_limit=settings.error_display_limit)
    return _json(body, result)


def _json(
    body: MappingSyncResultResponse | SyncResultResponse,
    result: MappingSyncResult | SyncResult,
) -> JSONResponse:
    return JSONResponse(
        status_code=result_status_code(
            failed=result.status == SyncResultStatus.FAILED,
            partial=result.is_partial,
            fatal_category=result.fatal_category,
        ),
        content=body.model_dump(mode="json"),
    )


def _run_response(run: SyncRunLog, settings: SyncSettings, response_type: type[SyncRunResponse]) -> SyncRunResponse:
    response = response_type.model_validate(run)
    response.stale = SyncRunRepository.is_stale(run, max_minutes=settings.stale_run_minutes)
    return response
