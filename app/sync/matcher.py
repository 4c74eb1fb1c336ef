"""
app/sync/matcher.py

Cross-system association lookups through explicit link tables.

Callers declare how many counterparts they expect. With
`Multiplicity.SINGLE` more than one counterpart is reported as ambiguous
rather than resolved to an arbitrary row. Name-based guessing lives in
`app.services.suggestion_service` and never writes.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.company_mapping import CompanyMapping, RepositoryMapping
from db.models.meeting_note import MeetingNote


class Multiplicity(str, Enum):
    SINGLE = "zero_or_one"
    MANY = "one_or_many"


class MatchStatus(str, Enum):
    MATCHED = "matched"
    NOT_FOUND = "not_found"
    AMBIGUOUS = "ambiguous"


@dataclass(frozen=True)
class LinkSpec:
    name: str
    model: type[Any]
    source_column: str
    target_column: str


@dataclass(frozen=True)
class MatchResult:
    status: MatchStatus
    counterpart_ids: tuple[int, ...] = ()
    message: str | None = None

    @property
    def found(self) -> bool:
        return self.status is MatchStatus.MATCHED

    @property
    def counterpart_id(self) -> int | None:
        if self.status is MatchStatus.MATCHED and len(self.counterpart_ids) == 1:
            return self.counterpart_ids[0]
        return None


HARVEST_TO_CRM_COMPANY = LinkSpec(
    name="harvest company -> CRM company",
    model=CompanyMapping,
    source_column="harvest_company_id",
    target_column="crm_company_id",
)
CRM_TO_HARVEST_COMPANY = LinkSpec(
    name="CRM company -> harvest company",
    model=CompanyMapping,
    source_column="crm_company_id",
    target_column="harvest_company_id",
)
CRM_COMPANY_TO_REPOSITORY = LinkSpec(
    name="CRM company -> GitHub repository",
    model=RepositoryMapping,
    source_column="crm_company_id",
    target_column="github_repository_id",
)
MEETING_NOTE_TO_CRM_COMPANY = LinkSpec(
    name="meeting note -> CRM company",
    model=MeetingNote,
    source_column="id",
    target_column="crm_company_id",
)


class CrossSystemMatcher:
    def __init__(self, db: Session) -> None:
        self._db = db

    def resolve_counterpart(
        self,
        entity_id: int | None,
        link: LinkSpec,
        multiplicity: Multiplicity = Multiplicity.SINGLE,
    ) -> MatchResult:
        if entity_id is None:
            return MatchResult(status=MatchStatus.NOT_FOUND, message=f"no mapping: {link.name} source is unresolved")

        source = getattr(link.model, link.source_column)
        target = getattr(link.model, link.target_column)
        stmt = select(target).where(source == entity_id, target.is_not(None)).distinct()
        counterpart_ids = tuple(sorted(self._db.scalars(stmt).all()))

        if not counterpart_ids:
            return MatchResult(status=MatchStatus.NOT_FOUND, message=f"no mapping: {link.name} {entity_id}")
        if multiplicity is Multiplicity.SINGLE and len(counterpart_ids) > 1:
            return MatchResult(
                status=MatchStatus.AMBIGUOUS,
                counterpart_ids=counterpart_ids,
                message=(
                    f"ambiguous mapping: {link.name} {entity_id} maps to "
                    f"{len(counterpart_ids)} counterparts {list(counterpart_ids)}"
                ),
            )
        return MatchResult(status=MatchStatus.MATCHED, counterpart_ids=counterpart_ids)
