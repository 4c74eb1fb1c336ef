"""
app/scheduler/jobs.py

APScheduler-based scheduler for periodic synchronization runs.

Every job opens its own session and builds fresh API clients, so a job
never shares state with a request or with another job. Runs started here
are recorded with trigger ``scheduled``.

Schedule (all times UTC)
--------------------------
  hourly_invoices     : minute 5 of every hour (with deal creation)
  daily_companies     : 01:00 (Harvest clients, then CRM companies)
  daily_repositories  : 01:30
  daily_channels      : 01:45
  daily_meeting_notes : 02:00
  daily_release_notes : 02:30
  daily_deal_refresh  : 03:00

Lifecycle
----------
Call ``build_scheduler()`` once to get a configured ``BackgroundScheduler``.
The scheduler is wired into FastAPI via the ``lifespan`` context in main.py.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from app.domain.sync import SyncKind
from app.services.invoice_deal_service import get_invoice_deal_service
from app.services.release_note_service import get_release_note_service
from app.services.sync_service import get_sync_service
from db.models.sync_run import SyncTrigger
from db.session import session_scope

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Record sync jobs
# ---------------------------------------------------------------------------


def _run_record_kinds(job_name: str, *kinds: str) -> None:
    logger.info("Scheduler: %s starting", job_name)
    service = get_sync_service()
    with session_scope() as db:
        for kind in kinds:
            try:
                result = service.run_kind(db, kind, trigger=SyncTrigger.SCHEDULED)
                logger.info(
                    "Scheduler: %s kind=%s status=%s run_log_id=%s errors=%s",
                    job_name,
                    kind,
                    result.status,
                    result.run_log_id,
                    len(result.errors),
                )
            except Exception as exc:  # noqa: BLE001
                db.rollback()
                logger.warning("Scheduler: %s failed kind=%s: %s", job_name, kind, exc)
    logger.info("Scheduler: %s complete", job_name)


def run_hourly_invoices() -> None:
    _run_record_kinds("hourly_invoices", SyncKind.HARVEST_INVOICES)


def run_daily_companies() -> None:
    _run_record_kinds("daily_companies", SyncKind.HARVEST_COMPANIES, SyncKind.CRM_COMPANIES)


def run_daily_repositories() -> None:
    _run_record_kinds("daily_repositories", SyncKind.GITHUB_REPOSITORIES)


def run_daily_channels() -> None:
    _run_record_kinds("daily_channels", SyncKind.SLACK_CHANNELS)


def run_daily_meeting_notes() -> None:
    _run_record_kinds("daily_meeting_notes", SyncKind.MEETING_NOTES)


# ---------------------------------------------------------------------------
# Mapping-shaped jobs
# ---------------------------------------------------------------------------


def run_daily_release_notes() -> None:
    """
    Post CRM notes for releases published since the last run.
    """
    logger.info("Scheduler: daily_release_notes starting")
    with session_scope() as db:
        try:
            result = get_release_note_service().sync_release_notes(db, trigger=SyncTrigger.SCHEDULED)
            logger.info(
                "Scheduler: daily_release_notes status=%s mappings=%s notes=%s errors=%s",
                result.status,
                result.mappings_processed,
                result.actions_performed,
                len(result.errors),
            )
        except Exception as exc:  # noqa: BLE001
            db.rollback()
            logger.warning("Scheduler: daily_release_notes failed: %s", exc)
    logger.info("Scheduler: daily_release_notes complete")


def run_daily_deal_refresh() -> None:
    """
    Push invoice state changes (mostly payments) to existing CRM deals.
    """
    logger.info("Scheduler: daily_deal_refresh starting")
    with session_scope() as db:
        try:
            result = get_invoice_deal_service().sync_invoice_deals(db, trigger=SyncTrigger.SCHEDULED)
            logger.info(
                "Scheduler: daily_deal_refresh status=%s invoices=%s updated=%s errors=%s",
                result.status,
                result.mappings_processed,
                result.actions_performed,
                len(result.errors),
            )
        except Exception as exc:  # noqa: BLE001
            db.rollback()
            logger.warning("Scheduler: daily_deal_refresh failed: %s", exc)
    logger.info("Scheduler: daily_deal_refresh complete")


# ---------------------------------------------------------------------------
# Scheduler factory
# ---------------------------------------------------------------------------


def build_scheduler() -> BackgroundScheduler:
    """
    Build and register all periodic jobs.

    Returns a configured but *not yet started* ``BackgroundScheduler``.
    ``max_instances=1`` keeps a slow run from overlapping with the next
    firing of the same job.
    """
    scheduler = BackgroundScheduler(timezone="UTC")

    scheduler.add_job(
        run_hourly_invoices,
        trigger="cron",
        minute=5,
        id="hourly_invoices",
        name="Hourly Harvest invoice sync",
        replace_existing=True,
        max_instances=1,
        misfire_grace_time=900,
    )
    scheduler.add_job(
        run_daily_companies,
        trigger="cron",
        hour=1,
        minute=0,
        id="daily_companies",
        name="Daily company sync",
        replace_existing=True,
        max_instances=1,
        misfire_grace_time=3600,
    )
    scheduler.add_job(
        run_daily_repositories,
        trigger="cron",
        hour=1,
        minute=30,
        id="daily_repositories",
        name="Daily GitHub repository sync",
        replace_existing=True,
        max_instances=1,
        misfire_grace_time=3600,
    )
    scheduler.add_job(
        run_daily_channels,
        trigger="cron",
        hour=1,
        minute=45,
        id="daily_channels",
        name="Daily Slack channel sync",
        replace_existing=True,
        max_instances=1,
        misfire_grace_time=3600,
    )
    scheduler.add_job(
        run_daily_meeting_notes,
        trigger="cron",
        hour=2,
        minute=0,
        id="daily_meeting_notes",
        name="Daily meeting note sync",
        replace_existing=True,
        max_instances=1,
        misfire_grace_time=3600,
    )
    scheduler.add_job(
        run_daily_release_notes,
        trigger="cron",
        hour=2,
        minute=30,
        id="daily_release_notes",
        name="Daily release note posting",
        replace_existing=True,
        max_instances=1,
        misfire_grace_time=3600,
    )
    scheduler.add_job(
        run_daily_deal_refresh,
        trigger="cron",
        hour=3,
        minute=0,
        id="daily_deal_refresh",
        name="Daily CRM deal refresh",
        replace_existing=True,
        max_instances=1,
        misfire_grace_time=3600,
    )

    return scheduler
