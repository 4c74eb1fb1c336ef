"""
Repository for operator-maintained mappings between CRM companies and
Harvest companies / GitHub repositories.
"""

from __future__ import annotations

from sqlalchemy import Select, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from db.models.company_mapping import CompanyMapping, RepositoryMapping
from db.models.crm_company import CrmCompany
from db.models.github_repository import GitHubRepository
from db.models.harvest_company import HarvestCompany
from db.repositories.errors import DuplicateMappingError, MappingNotFoundError, RecordNotFoundError


class MappingRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # CRM company <-> Harvest company
    # ------------------------------------------------------------------

    def list_company_mappings(
        self,
        *,
        crm_company_id: int | None = None,
        harvest_company_id: int | None = None,
    ) -> list[CompanyMapping]:
        stmt: Select[tuple[CompanyMapping]] = select(CompanyMapping)
        if crm_company_id is not None:
            stmt = stmt.where(CompanyMapping.crm_company_id == crm_company_id)
        if harvest_company_id is not None:
            stmt = stmt.where(CompanyMapping.harvest_company_id == harvest_company_id)
        return list(self._session.scalars(stmt.order_by(CompanyMapping.id.asc())).all())

    def create_company_mapping(self, *, crm_company_id: int, harvest_company_id: int) -> CompanyMapping:
        self._require(CrmCompany, crm_company_id, "CRM company")
        self._require(HarvestCompany, harvest_company_id, "Harvest company")
        mapping = CompanyMapping(crm_company_id=crm_company_id, harvest_company_id=harvest_company_id)
        self._session.add(mapping)
        try:
            self._session.commit()
        except IntegrityError as exc:
            self._session.rollback()
            raise DuplicateMappingError(
                f"CRM company {crm_company_id} is already mapped to Harvest company {harvest_company_id}."
            ) from exc
        self._session.refresh(mapping)
        return mapping

    def delete_company_mapping(self, mapping_id: int) -> None:
        mapping = self._session.get(CompanyMapping, mapping_id)
        if mapping is None:
            raise MappingNotFoundError(f"Company mapping {mapping_id} not found.")
        self._session.delete(mapping)
        self._session.commit()

    # ------------------------------------------------------------------
    # CRM company <-> GitHub repository
    # ------------------------------------------------------------------

    def list_repository_mappings(
        self,
        *,
        mapping_id: int | None = None,
        crm_company_id: int | None = None,
    ) -> list[RepositoryMapping]:
        stmt: Select[tuple[RepositoryMapping]] = select(RepositoryMapping)
        if mapping_id is not None:
            stmt = stmt.where(RepositoryMapping.id == mapping_id)
        if crm_company_id is not None:
            stmt = stmt.where(RepositoryMapping.crm_company_id == crm_company_id)
        return list(self._session.scalars(stmt.order_by(RepositoryMapping.id.asc())).all())

    def create_repository_mappings(
        self,
        *,
        crm_company_id: int,
        github_repository_ids: list[int],
    ) -> tuple[list[RepositoryMapping], list[int]]:
        """
        Map one CRM company to several repositories.

        Returns (created mappings, repository ids skipped because the pair
        already existed).
        """

        self._require(CrmCompany, crm_company_id, "CRM company")
        existing = {
            mapping.github_repository_id
            for mapping in self.list_repository_mappings(crm_company_id=crm_company_id)
        }

        created: list[RepositoryMapping] = []
        skipped: list[int] = []
        for repository_id in dict.fromkeys(github_repository_ids):
            if repository_id in existing:
                skipped.append(repository_id)
                continue
            self._require(GitHubRepository, repository_id, "GitHub repository")
            mapping = RepositoryMapping(crm_company_id=crm_company_id, github_repository_id=repository_id)
            self._session.add(mapping)
            try:
                self._session.commit()
            except IntegrityError:
                self._session.rollback()
                skipped.append(repository_id)
                continue
            self._session.refresh(mapping)
            created.append(mapping)
        return created, skipped

    def delete_repository_mapping(self, mapping_id: int) -> None:
        mapping = self._session.get(RepositoryMapping, mapping_id)
        if mapping is None:
            raise MappingNotFoundError(f"Repository mapping {mapping_id} not found.")
        self._session.delete(mapping)
        self._session.commit()

    def _require(self, model: type, record_id: int, label: str) -> None:
        if self._session.get(model, record_id) is None:
            raise RecordNotFoundError(f"{label} {record_id} not found.")
