"""
app/api/routers/mappings_router.py

Operator endpoints for CRM company mappings.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from app.schemas.records import (
    CompanyMappingCreateRequest,
    CompanyMappingResponse,
    RepositoryMappingBulkResponse,
    RepositoryMappingCreateRequest,
    RepositoryMappingResponse,
)
from db.repositories.errors import DuplicateMappingError, MappingNotFoundError, RecordNotFoundError
from db.repositories.mapping_repository import MappingRepository
from db.session import get_db

router = APIRouter(prefix="/mappings", tags=["mappings"])


@router.get("/companies", response_model=list[CompanyMappingResponse])
def list_company_mappings(
    crm_company_id: int | None = Query(default=None, ge=1),
    harvest_company_id: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
) -> list[CompanyMappingResponse]:
    mappings = MappingRepository(db).list_company_mappings(
        crm_company_id=crm_company_id,
        harvest_company_id=harvest_company_id,
    )
    return [CompanyMappingResponse.model_validate(mapping) for mapping in mappings]


@router.post("/companies", response_model=CompanyMappingResponse, status_code=status.HTTP_201_CREATED)
def create_company_mapping(
    payload: CompanyMappingCreateRequest,
    db: Session = Depends(get_db),
) -> CompanyMappingResponse:
    try:
        mapping = MappingRepository(db).create_company_mapping(
            crm_company_id=payload.crm_company_id,
            harvest_company_id=payload.harvest_company_id,
        )
    except RecordNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except DuplicateMappingError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return CompanyMappingResponse.model_validate(mapping)


@router.delete("/companies/{mapping_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_company_mapping(mapping_id: int, db: Session = Depends(get_db)) -> Response:
    try:
        MappingRepository(db).delete_company_mapping(mapping_id)
    except MappingNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/repositories", response_model=list[RepositoryMappingResponse])
def list_repository_mappings(
    crm_company_id: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
) -> list[RepositoryMappingResponse]:
    mappings = MappingRepository(db).list_repository_mappings(crm_company_id=crm_company_id)
    return [RepositoryMappingResponse.model_validate(mapping) for mapping in mappings]


@router.post("/repositories", response_model=RepositoryMappingBulkResponse, status_code=status.HTTP_201_CREATED)
def create_repository_mappings(
    payload: RepositoryMappingCreateRequest,
    db: Session = Depends(get_db),
) -> RepositoryMappingBulkResponse:
    """
    Map one CRM company to several repositories; pairs that already exist
    are reported as skipped.
    """

    try:
        created, skipped = MappingRepository(db).create_repository_mappings(
            crm_company_id=payload.crm_company_id,
            github_repository_ids=payload.github_repository_ids,
        )
    except RecordNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return RepositoryMappingBulkResponse(
        created=[RepositoryMappingResponse.model_validate(mapping) for mapping in created],
        skipped_repository_ids=skipped,
    )


@router.delete("/repositories/{mapping_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_repository_mapping(mapping_id: int, db: Session = Depends(get_db)) -> Response:
    try:
        MappingRepository(db).delete_repository_mapping(mapping_id)
    except MappingNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
