"""
app/scheduler/jobs.py

APScheduler-based housekeeping for the reconciliation service.

Schedule (all times UTC)
--------------------------
  purge_expired_results: every 15 minutes
  prune_stale_uploads: 01:00 every day

Lifecycle
----------
Call ``build_scheduler()`` once to get a configured ``BackgroundScheduler``.
Start it on app boot; shut it down gracefully on app shutdown.
The scheduler is wired into FastAPI via the ``lifespan`` context in main.py.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from apscheduler.schedulers.background import BackgroundScheduler

from app.config import get_import_settings, get_storage_settings
from app.services.result_cache import get_result_cache
from db.repositories.errors import FileStorageError
from db.repositories.storage import IMPORTS_AREA, REPORTS_AREA, FileStorageBackend, LocalFileStorage

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Job: expired job results
# ---------------------------------------------------------------------------


def purge_expired_results() -> None:
    """
    Drop cached job payloads whose lifetime has elapsed.
    """
    try:
        removed = get_result_cache().purge_expired()
    except Exception as exc:  # noqa: BLE001
        logger.warning("Scheduler: purge_expired_results failed: %s", exc)
        return
    logger.info("Scheduler: purge_expired_results removed=%s", removed)


# ---------------------------------------------------------------------------
# Job: stale uploads and generated reports
# ---------------------------------------------------------------------------


def prune_stale_uploads(
    *,
    storage: FileStorageBackend | None = None,
    retention_days: int | None = None,
    now: datetime | None = None,
) -> int:
    """
    Delete uploaded spreadsheets and generated reports older than the
    retention window.

    Returns the number of files removed. Failures on single files are
    logged and skipped.
    """
    backend = storage or LocalFileStorage(get_storage_settings().root_dir)
    days = retention_days if retention_days is not None else get_import_settings().file_retention_days
    cutoff = (now or datetime.now(tz=timezone.utc)) - timedelta(days=days)

    removed = 0
    for area in (IMPORTS_AREA, REPORTS_AREA):
        for storage_path in backend.list_older_than(area=area, cutoff=cutoff):
            try:
                backend.delete(storage_path=storage_path)
                removed += 1
            except FileStorageError as exc:
                logger.warning("Scheduler: prune_stale_uploads failed path=%r: %s", storage_path, exc)

    logger.info("Scheduler: prune_stale_uploads removed=%s cutoff=%s", removed, cutoff.isoformat())
    return removed


def _run_prune_stale_uploads() -> None:
    try:
        prune_stale_uploads()
    except Exception as exc:  # noqa: BLE001
        logger.warning("Scheduler: prune_stale_uploads aborted: %s", exc)


# ---------------------------------------------------------------------------
# Scheduler factory
# ---------------------------------------------------------------------------


def build_scheduler() -> BackgroundScheduler:
    """
    Build and register all periodic jobs.

    Returns a configured but *not yet started* ``BackgroundScheduler``.
    """
    scheduler = BackgroundScheduler(timezone="UTC")

    scheduler.add_job(
        purge_expired_results,
        trigger="interval",
        minutes=15,
        id="purge_expired_results",
        name="Expired job result purge",
        replace_existing=True,
        misfire_grace_time=600,
    )
    scheduler.add_job(
        _run_prune_stale_uploads,
        trigger="cron",
        hour=1,
        minute=0,
        id="prune_stale_uploads",
        name="Stale upload cleanup",
        replace_existing=True,
        misfire_grace_time=3600,
    )

    return scheduler
