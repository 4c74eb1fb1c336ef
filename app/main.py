from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class IntegrationStatus(BaseModel):
    name: str
    configured: bool
    missing: list[str]


class HealthResponse(BaseModel):
    status: str
    scheduler_enabled: bool
    integrations: list[IntegrationStatus]


def _integration_statuses() -> list[IntegrationStatus]:
    from app.config import (
        get_fireflies_settings,
        get_github_settings,
        get_harvest_settings,
        get_hubspot_settings,
        get_slack_settings,
    )

    settings = {
        "harvest": get_harvest_settings(),
        "hubspot": get_hubspot_settings(),
        "github": get_github_settings(),
        "fireflies": get_fireflies_settings(),
        "slack": get_slack_settings(),
    }
    statuses = []
    for name, item in settings.items():
        missing = item.missing_credentials()
        statuses.append(IntegrationStatus(name=name, configured=not missing, missing=missing))
    return statuses


def _validate_env() -> None:
    """
    Fail startup when no database URL is configured.

    Integration credentials are not checked here; each sync
    reports its own missing credentials and the others keep running.
    """

    from db.config import load_env_files

    load_env_files()

    if not os.getenv("DATABASE_URL", "").strip() and not os.getenv("CLOUD_DATABASE_URL", "").strip():
        raise RuntimeError(
            "Startup validation failed: no database URL configured. "
            "Set DATABASE_URL or CLOUD_DATABASE_URL."
        )


def _configure_logging() -> None:
    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _verify_database() -> None:
    """
    Check connectivity and that every sync table exists.

    Does NOT auto-migrate; run `alembic upgrade head` first.
    """

    from sqlalchemy import inspect as sa_inspect
    from sqlalchemy import text
    from sqlalchemy.exc import SQLAlchemyError

    import db.models  # noqa: F401  registers all ORM models on Base.metadata
    from db.base import Base
    from db.session import get_engine

    try:
        with get_engine().connect() as connection:
            connection.execute(text("SELECT 1"))
            existing = set(sa_inspect(connection).get_table_names())
    except SQLAlchemyError as exc:
        raise RuntimeError("Database unavailable.") from exc

    missing = sorted(set(Base.metadata.tables) - existing)
    if missing:
        logger.critical("Sync tables missing from the database: %s", ", ".join(missing))
        raise RuntimeError(f"Sync tables missing ({', '.join(missing)}). Run migrations and restart.")


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    from app.config import get_sync_settings

    _verify_database()
    logger.info("Database connectivity and schema confirmed")

    for integration in _integration_statuses():
        if not integration.configured:
            logger.warning("Integration %s disabled; missing %s", integration.name, ", ".join(integration.missing))

    if not get_sync_settings().scheduler_enabled:
        logger.info("Scheduler disabled by SCHEDULER_ENABLED")
        yield
        return

    from app.scheduler.jobs import build_scheduler

    scheduler = build_scheduler()
    scheduler.start()
    logger.info("Scheduler started with %d jobs", len(scheduler.get_jobs()))
    try:
        yield
    finally:
        scheduler.shutdown(wait=True)
        logger.info("Scheduler shut down")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _validate_env()
    _configure_logging()

    application = FastAPI(
        title="Ops Sync Console API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.routers import mappings_router, records_router, sync_router

    application.include_router(sync_router)
    application.include_router(mappings_router)
    application.include_router(records_router)

    @application.get("/health", response_model=HealthResponse)
    def healthcheck() -> HealthResponse:
        from app.config import get_sync_settings

        return HealthResponse(
            status="ok",
            scheduler_enabled=get_sync_settings().scheduler_enabled,
            integrations=_integration_statuses(),
        )

    return application


app = create_app()
