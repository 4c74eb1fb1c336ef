"""
app/services/release_note_service.py

Post a CRM company note for every newly published GitHub release of a
mapped repository.

Each repository mapping carries a release cursor (id, tag, published_at).
A release is pending when it is published (not a draft, has a publish
timestamp) and newer than the cursor. Notes are posted oldest first and the
cursor advances after each successful post, so a failure part-way through a
mapping resumes at the first unposted release on the next run.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from app.config import SyncSettings, get_sync_settings
from app.connectors.clients import build_sync_clients
from app.domain.sync import MISSING_CREDENTIALS, MappingOutcome, MappingSyncResult, SyncKind, SyncResultStatus
from app.sync.errors import classify_error, format_error
from app.sync.exceptions import RecordNotFoundError
from app.sync.formatting import format_release_note
from app.sync.normalizers import parse_datetime
from app.sync.run_tracker import RunTracker
from db.base import as_utc
from db.models.company_mapping import RepositoryMapping
from db.models.crm_company import CrmCompany
from db.models.github_repository import GitHubRepository
from db.models.sync_run import SyncDetailStatus, SyncTrigger
from db.repositories.mapping_repository import MappingRepository

logger = logging.getLogger(__name__)

SUBJECT_TYPE = "repository_mapping"


def publishable_releases(releases: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Published, non-draft releases sorted oldest first."""

    published = [
        release
        for release in releases
        if not release.get("draft") and parse_datetime(release.get("published_at")) is not None
    ]
    return sorted(published, key=lambda release: parse_datetime(release.get("published_at")))


def pending_releases(releases: list[dict[str, Any]], mapping: RepositoryMapping) -> list[dict[str, Any]]:
    """
    Releases newer than the mapping cursor.

    The timestamp cursor wins when present; otherwise everything after the
    release id cursor is pending. An id cursor that is not among the fetched
    releases cannot be placed, so nothing is pending. A mapping without any
    cursor has every publishable release pending.
    """

    candidates = publishable_releases(releases)
    cursor_published_at = as_utc(mapping.last_release_published_at)
    if cursor_published_at is not None:
        return [
            release
            for release in candidates
            if parse_datetime(release.get("published_at")) > cursor_published_at
        ]

    if mapping.last_release_id:
        ids = [str(release.get("id")) for release in candidates]
        if mapping.last_release_id not in ids:
            logger.warning(
                "Release cursor not among fetched releases mapping_id=%s last_release_id=%s",
                mapping.id,
                mapping.last_release_id,
            )
            return []
        return candidates[ids.index(mapping.last_release_id) + 1 :]
    return candidates


def _is_past_cursor(release: dict[str, Any], published_at: datetime, mapping: RepositoryMapping) -> bool:
    cursor_published_at = as_utc(mapping.last_release_published_at)
    if cursor_published_at is not None:
        return published_at > cursor_published_at
    return mapping.last_release_id != str(release.get("id"))


class ReleaseNoteService:
    def __init__(self, *, github: Any, hubspot: Any, settings: SyncSettings | None = None) -> None:
        self._github = github
        self._hubspot = hubspot
        self._settings = settings or get_sync_settings()

    def sync_release_notes(
        self,
        db: Session,
        *,
        mapping_id: int | None = None,
        dry_run: bool = False,
        trigger: str = SyncTrigger.MANUAL,
    ) -> MappingSyncResult:
        """
        Process every repository mapping (or one, by id).

        A dry run reports how many notes would be posted. It neither posts
        nor moves any cursor, and it does not write a run log.
        """

        missing = [*self._github.missing_credentials(), *self._hubspot.missing_credentials()]
        if missing:
            message = f"Missing credentials: {', '.join(missing)}"
            logger.warning("Release note sync not started reason=%s", message)
            return MappingSyncResult(
                kind=SyncKind.RELEASE_NOTES,
                status=SyncResultStatus.FAILED,
                errors=(message,),
                dry_run=dry_run,
                fatal_error=message,
                fatal_category=MISSING_CREDENTIALS,
            )

        mappings = MappingRepository(db).list_repository_mappings(mapping_id=mapping_id)
        if mapping_id is not None and not mappings:
            raise RecordNotFoundError(f"Repository mapping {mapping_id} not found")
        mappings.sort(key=lambda mapping: mapping.id, reverse=True)

        tracker = RunTracker(db, max_stored_errors=self._settings.max_stored_errors)
        run_id = None if dry_run else tracker.open(SyncKind.RELEASE_NOTES, trigger)
        tracker.record_found(run_id, len(mappings))

        outcomes: list[MappingOutcome] = []
        errors: list[str] = []
        notes = 0
        try:
            for mapping in mappings:
                outcome = self._process_mapping(db, mapping, dry_run=dry_run)
                outcomes.append(outcome)
                notes += outcome.actions_performed
                if outcome.error_message:
                    errors.append(outcome.error_message)
                tracker.record_detail(
                    run_id,
                    subject_type=SUBJECT_TYPE,
                    subject_id=mapping.id,
                    status=outcome.status,
                    actions_performed=outcome.actions_performed,
                    error_message=outcome.error_message,
                )
        except Exception as exc:  # noqa: BLE001
            db.rollback()
            logger.exception("Release note sync crashed run_log_id=%s", run_id)
            classified = classify_error(exc)
            message = format_error("release_notes sync failed", classified)
            tracker.fail(run_id, message)
            return MappingSyncResult(
                kind=SyncKind.RELEASE_NOTES,
                status=SyncResultStatus.FAILED,
                run_log_id=run_id,
                mappings_processed=len(outcomes),
                actions_performed=notes,
                errors=tuple([*errors, message]),
                mapping_results=tuple(outcomes),
                dry_run=dry_run,
                fatal_error=message,
                fatal_category=classified.category.value,
            )

        skipped = sum(1 for outcome in outcomes if outcome.status == SyncDetailStatus.SKIPPED)
        tracker.finalize(
            run_id,
            created=0,
            updated=0,
            errors=errors,
            skipped=skipped,
            actions_performed=notes,
        )
        logger.info(
            "Release note sync finished run_log_id=%s mappings=%s notes=%s skipped=%s errors=%s dry_run=%s",
            run_id,
            len(outcomes),
            notes,
            skipped,
            len(errors),
            dry_run,
        )
        return MappingSyncResult(
            kind=SyncKind.RELEASE_NOTES,
            status=SyncResultStatus.COMPLETED,
            run_log_id=run_id,
            mappings_processed=len(outcomes),
            actions_performed=notes,
            skipped=skipped,
            errors=tuple(errors),
            mapping_results=tuple(outcomes),
            dry_run=dry_run,
        )

    def _process_mapping(self, db: Session, mapping: RepositoryMapping, *, dry_run: bool) -> MappingOutcome:
        company = db.get(CrmCompany, mapping.crm_company_id)
        repository = db.get(GitHubRepository, mapping.github_repository_id)
        if company is None or not company.company_id:
            return self._failed(mapping, f"Mapping {mapping.id}: CRM company missing company id")
        if repository is None or not repository.owner_login or not repository.name:
            label = repository.full_name if repository is not None else "unknown"
            return self._failed(mapping, f"Mapping {mapping.id}: GitHub repository missing owner/name ({label})")

        try:
            releases = self._github.list_releases(repository.owner_login, repository.name)
        except Exception as exc:  # noqa: BLE001
            return self._failed(mapping, format_error(f"Mapping {mapping.id}", exc))

        pending = pending_releases(releases, mapping)
        if not pending:
            reason = "no published releases" if not publishable_releases(releases) else "no new releases"
            return MappingOutcome(
                subject_type=SUBJECT_TYPE,
                subject_id=mapping.id,
                status=SyncDetailStatus.SKIPPED,
                detail=reason,
            )

        if dry_run:
            return MappingOutcome(
                subject_type=SUBJECT_TYPE,
                subject_id=mapping.id,
                status=SyncDetailStatus.SUCCESS,
                actions_performed=len(pending),
                detail="dry run",
            )

        posted = 0
        for release in pending:
            published_at = parse_datetime(release.get("published_at"))
            db.refresh(mapping)
            if not _is_past_cursor(release, published_at, mapping):
                logger.info(
                    "Release already posted by a concurrent run mapping_id=%s release=%s",
                    mapping.id,
                    release.get("tag_name") or release.get("id"),
                )
                continue

            body = format_release_note(
                repo_full_name=repository.full_name,
                repo_url=repository.html_url,
                release=release,
            )
            try:
                self._hubspot.create_company_note(company.company_id, body, timestamp=published_at)
            except Exception as exc:  # noqa: BLE001
                message = format_error(
                    f"Mapping {mapping.id}: release {release.get('tag_name') or release.get('id')}",
                    exc,
                )
                logger.warning("Release note post failed mapping_id=%s error=%s", mapping.id, message)
                return MappingOutcome(
                    subject_type=SUBJECT_TYPE,
                    subject_id=mapping.id,
                    status=SyncDetailStatus.FAILED,
                    actions_performed=posted,
                    error_message=message,
                )

            posted += 1
            self._advance_cursor(db, mapping, release, published_at)

        return MappingOutcome(
            subject_type=SUBJECT_TYPE,
            subject_id=mapping.id,
            status=SyncDetailStatus.SUCCESS,
            actions_performed=posted,
        )

    @staticmethod
    def _advance_cursor(
        db: Session,
        mapping: RepositoryMapping,
        release: dict[str, Any],
        published_at: datetime,
    ) -> None:
        """
        Move the cursor forward only; a concurrent run that already moved it
        past this release wins.
        """

        stmt = (
            update(RepositoryMapping)
            .where(
                RepositoryMapping.id == mapping.id,
                or_(
                    RepositoryMapping.last_release_published_at.is_(None),
                    RepositoryMapping.last_release_published_at < published_at,
                ),
            )
            .values(
                last_release_id=str(release.get("id")),
                last_release_tag_name=release.get("tag_name"),
                last_release_published_at=published_at,
                last_posted_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        result = db.execute(stmt)
        db.commit()
        if result.rowcount != 1:
            logger.error(
                "Release cursor already past posted release mapping_id=%s release=%s",
                mapping.id,
                release.get("tag_name") or release.get("id"),
            )

    @staticmethod
    def _failed(mapping: RepositoryMapping, message: str) -> MappingOutcome:
        logger.warning("Release note mapping failed mapping_id=%s error=%s", mapping.id, message)
        return MappingOutcome(
            subject_type=SUBJECT_TYPE,
            subject_id=mapping.id,
            status=SyncDetailStatus.FAILED,
            error_message=message,
        )


def get_release_note_service() -> ReleaseNoteService:
    clients = build_sync_clients()
    return ReleaseNoteService(github=clients.github, hubspot=clients.hubspot)
