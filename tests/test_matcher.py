"""
tests/test_matcher.py

Pytest unit tests for cross-system association lookups.
"""

from __future__ import annotations

from app.sync.matcher import (
    CRM_COMPANY_TO_REPOSITORY,
    HARVEST_TO_CRM_COMPANY,
    MEETING_NOTE_TO_CRM_COMPANY,
    CrossSystemMatcher,
    MatchStatus,
    Multiplicity,
)
from db.models import CompanyMapping, CrmCompany, GitHubRepository, HarvestCompany, MeetingNote, RepositoryMapping


def _seed(db):
    harvest = HarvestCompany(harvest_id="h1", name="Acme")
    lonely = HarvestCompany(harvest_id="h2", name="Nobody")
    crm_a = CrmCompany(company_id="c1", name="Acme")
    crm_b = CrmCompany(company_id="c2", name="Acme Holdings")
    db.add_all([harvest, lonely, crm_a, crm_b])
    db.commit()
    return harvest, lonely, crm_a, crm_b


class TestResolveCounterpart:
    def test_single_match(self, db) -> None:
        harvest, _, crm_a, _ = _seed(db)
        db.add(CompanyMapping(crm_company_id=crm_a.id, harvest_company_id=harvest.id))
        db.commit()

        result = CrossSystemMatcher(db).resolve_counterpart(harvest.id, HARVEST_TO_CRM_COMPANY)

        assert result.status is MatchStatus.MATCHED
        assert result.counterpart_id == crm_a.id

    def test_no_mapping(self, db) -> None:
        _, lonely, _, _ = _seed(db)

        result = CrossSystemMatcher(db).resolve_counterpart(lonely.id, HARVEST_TO_CRM_COMPANY)

        assert result.status is MatchStatus.NOT_FOUND
        assert result.message.startswith("no mapping")
        assert result.counterpart_id is None

    def test_unresolved_source(self, db) -> None:
        result = CrossSystemMatcher(db).resolve_counterpart(None, HARVEST_TO_CRM_COMPANY)
        assert result.status is MatchStatus.NOT_FOUND

    def test_ambiguous_is_not_resolved_arbitrarily(self, db) -> None:
        harvest, _, crm_a, crm_b = _seed(db)
        db.add_all(
            [
                CompanyMapping(crm_company_id=crm_a.id, harvest_company_id=harvest.id),
                CompanyMapping(crm_company_id=crm_b.id, harvest_company_id=harvest.id),
            ]
        )
        db.commit()

        result = CrossSystemMatcher(db).resolve_counterpart(harvest.id, HARVEST_TO_CRM_COMPANY)

        assert result.status is MatchStatus.AMBIGUOUS
        assert result.counterpart_id is None
        assert result.counterpart_ids == tuple(sorted([crm_a.id, crm_b.id]))
        assert "ambiguous mapping" in result.message

    def test_many_multiplicity_returns_all(self, db) -> None:
        _, _, crm_a, _ = _seed(db)
        repos = [
            GitHubRepository(github_id=str(index), name=f"r{index}", full_name=f"acme/r{index}")
            for index in range(2)
        ]
        db.add_all(repos)
        db.commit()
        db.add_all([RepositoryMapping(crm_company_id=crm_a.id, github_repository_id=repo.id) for repo in repos])
        db.commit()

        result = CrossSystemMatcher(db).resolve_counterpart(crm_a.id, CRM_COMPANY_TO_REPOSITORY, Multiplicity.MANY)

        assert result.found is True
        assert len(result.counterpart_ids) == 2

    def test_meeting_note_link_ignores_null(self, db) -> None:
        note = MeetingNote(meeting_id="m1", title="Weekly")
        db.add(note)
        db.commit()

        result = CrossSystemMatcher(db).resolve_counterpart(note.id, MEETING_NOTE_TO_CRM_COMPANY)

        assert result.status is MatchStatus.NOT_FOUND
