"""
app/main.py

FastAPI entry point for the balance reconciliation service.

Startup order: environment check, logging, then (inside the lifespan) a
database ping, a schema check against ORM metadata, storage directories and
the maintenance scheduler. Migrations are never applied from here.
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from pydantic import BaseModel

logger = logging.getLogger(__name__)

_CACHE_BACKENDS = ("database", "memory")


class HealthResponse(BaseModel):
    status: str
    detail: str


def _validate_env() -> None:
    """
    Collect every configuration problem before failing, so one restart
    is enough to fix them all.
    """

    from db.config import load_env_files

    load_env_files()

    problems: list[str] = []

    if not any(
        os.getenv(name, "").strip()
        for name in ("DATABASE_URL", "CLOUD_DATABASE_URL", "LOCAL_DATABASE_URL")
    ):
        problems.append("No database URL configured. Set DATABASE_URL or CLOUD_DATABASE_URL.")

    backend = os.getenv("RESULT_CACHE_BACKEND", "database").strip().lower()
    if backend not in _CACHE_BACKENDS:
        problems.append(
            f"RESULT_CACHE_BACKEND={backend!r} is not one of {', '.join(_CACHE_BACKENDS)}."
        )

    roles = os.getenv("OPERATOR_ROLES")
    if roles is not None and not roles.strip():
        problems.append("OPERATOR_ROLES is set but empty.")

    if problems:
        raise RuntimeError(
            "Invalid service configuration:\n" + "\n".join(f"  - {item}" for item in problems)
        )


def _configure_logging() -> None:
    level_name = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _ping_database() -> None:
    from sqlalchemy import text

    from db.session import get_engine

    try:
        with get_engine().connect() as connection:
            connection.execute(text("SELECT 1"))
    except Exception as exc:  # noqa: BLE001
        raise RuntimeError("Database unavailable.") from exc


def _missing_tables() -> list[str]:
    from sqlalchemy import inspect

    import db.models  # noqa: F401
    from db.base import Base
    from db.session import get_engine

    present = set(inspect(get_engine()).get_table_names())
    return sorted(set(Base.metadata.tables) - present)


def _prepare_storage() -> Path:
    from app.config import get_storage_settings
    from db.repositories.storage import IMPORTS_AREA, REPORTS_AREA

    root = Path(get_storage_settings().root_dir)
    for area in (IMPORTS_AREA, REPORTS_AREA):
        (root / area).mkdir(parents=True, exist_ok=True)
    return root


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    from app.config import get_result_cache_settings
    from app.scheduler.jobs import build_scheduler

    _ping_database()
    missing = _missing_tables()
    if missing:
        logger.critical("schema_missing_tables tables=%s", ",".join(missing))
        raise RuntimeError(
            f"Database is missing tables: {', '.join(missing)}. Run 'alembic upgrade head'."
        )

    storage_root = _prepare_storage()
    logger.info(
        "startup_ready storage_root=%s cache_backend=%s",
        storage_root,
        get_result_cache_settings().backend,
    )

    scheduler = build_scheduler()
    scheduler.start()
    logger.info("scheduler_started jobs=%d", len(scheduler.get_jobs()))
    try:
        yield
    finally:
        scheduler.shutdown(wait=True)
        logger.info("scheduler_stopped")


def create_app() -> FastAPI:
    _validate_env()
    _configure_logging()

    application = FastAPI(
        title="Balance Reconciliation API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.routers import exports_router, imports_router

    application.include_router(imports_router)
    application.include_router(exports_router)

    @application.get("/health", response_model=HealthResponse)
    def healthcheck() -> HealthResponse:
        return HealthResponse(status="ok", detail="Reconciliation service is running.")

    return application


app = create_app()
