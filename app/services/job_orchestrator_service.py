"""
app/services/job_orchestrator_service.py

Orchestrator service for async import, finalize and export jobs.

Every job is addressed by an opaque cache key. The key is written as
"processing" before the job is dispatched; the job itself writes exactly one
terminal payload ("completed" or "failed"). Polling reads the cache only.

    import_preview_<hex>  -> {status, data: PreviewResult}
    save_result_<hex>     -> {status, message, processed_count, skipped}
    export_result_<hex>   -> {status, message, file_path, file_name}
"""

from __future__ import annotations

import io
import logging
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any, Protocol

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session, sessionmaker

from app.config import (
    ExportSettings,
    ImportSettings,
    get_export_settings,
    get_import_settings,
    get_result_cache_settings,
    get_storage_settings,
)
from app.domain.reconciliation import JobState, JobStatus, PreviewEntry
from app.logging_utils import log_event, timed_event
from app.readers.spreadsheet_reader import SpreadsheetReadError, iter_chunks
from app.repositories.entity_resolver import MemoizingEntityResolver, SqlEntityResolver
from app.services.commit_service import BalanceCommitService, CommitError, get_balance_commit_service
from app.services.export_service import (
    BankerPerformanceReportBuilder,
    get_report_builder,
    validate_export_request,
    write_workbook,
)
from app.services.import_processor import ReconciliationImporter
from app.services.result_cache import ResultCache, get_result_cache
from db.repositories.errors import FileStorageError
from db.repositories.storage import IMPORTS_AREA, REPORTS_AREA, FileStorageBackend, LocalFileStorage

logger = logging.getLogger(__name__)

IMPORT_KEY_PREFIX = "import_preview_"
SAVE_KEY_PREFIX = "save_result_"
EXPORT_KEY_PREFIX = "export_result_"

_MAX_MESSAGE_LENGTH = 2000


class TaskExecutor(Protocol):
    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        ...


class FastAPIBackgroundTaskExecutor:
    def __init__(self, background_tasks: BackgroundTasks) -> None:
        self._background_tasks = background_tasks

    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        self._background_tasks.add_task(task, *args, **kwargs)


class DownloadNotAvailableError(LookupError):
    """
    Raised when an export key has no downloadable file.
    """


@dataclass(frozen=True)
class ExportDownload:
    path: Path
    file_name: str


def new_cache_key(prefix: str) -> str:
    return f"{prefix}{uuid.uuid4().hex}"


def _failure_message(exc: Exception) -> str:
    if isinstance(exc, (SpreadsheetReadError, CommitError)):
        message = str(exc)
    else:
        message = f"{type(exc).__name__}: {exc}"
    return message[:_MAX_MESSAGE_LENGTH]


class ReconciliationJobService:
    """
    Coordinates cache-key lifecycle, background execution, and result publishing.
    """

    def __init__(
        self,
        *,
        cache: ResultCache | None = None,
        storage: FileStorageBackend | None = None,
        session_factory: sessionmaker[Session] | Callable[[], Session] | None = None,
        commit_service: BalanceCommitService | None = None,
        report_builder: BankerPerformanceReportBuilder | None = None,
        import_settings: ImportSettings | None = None,
        export_settings: ExportSettings | None = None,
        ttl_seconds: int | None = None,
    ) -> None:
        if session_factory is None:
            from db.session import SessionLocal

            self._session_factory = SessionLocal
        else:
            self._session_factory = session_factory

        self._cache = cache or get_result_cache()
        self._storage = storage or LocalFileStorage(get_storage_settings().root_dir)
        self._commit_service = commit_service or get_balance_commit_service()
        self._report_builder = report_builder or get_report_builder()
        self._import_settings = import_settings or get_import_settings()
        self._export_settings = export_settings or get_export_settings()
        self._ttl_seconds = ttl_seconds or get_result_cache_settings().ttl_seconds

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def get_status(self, cache_key: str) -> JobStatus:
        return JobStatus.from_payload(self._cache.get(cache_key))

    def _publish(self, cache_key: str, payload: dict[str, Any]) -> None:
        self._cache.put(cache_key, payload, self._ttl_seconds)

    def _publish_failure(self, *, cache_key: str, job_type: str, exc: Exception) -> None:
        message = _failure_message(exc)
        logger.exception("Reconciliation job failed type=%s key=%s error=%s", job_type, cache_key, message)
        log_event(logger, logging.ERROR, "job_failed", job_type=job_type, cache_key=cache_key, message=message)
        try:
            self._publish(cache_key, {"status": JobState.FAILED.value, "message": message})
        except Exception:  # noqa: BLE001
            logger.exception("Failed to persist failed job state key=%s", cache_key)

    # ------------------------------------------------------------------
    # Import preview
    # ------------------------------------------------------------------

    def submit_import(
        self,
        *,
        executor: TaskExecutor,
        file_name: str,
        content: bytes,
        report_date: date,
        content_type: str | None = None,
    ) -> str:
        cache_key = new_cache_key(IMPORT_KEY_PREFIX)
        stored = self._storage.save(
            area=IMPORTS_AREA,
            file_name=file_name,
            content=content,
            content_type=content_type,
        )
        self._publish(cache_key, {"status": JobState.PROCESSING.value, "data": None})

        try:
            executor.submit(self._run_import_job, cache_key, stored.storage_path, report_date)
        except Exception:
            self._delete_file_quietly(stored.storage_path)
            self._publish(
                cache_key,
                {"status": JobState.FAILED.value, "message": "Failed to schedule import job."},
            )
            raise

        log_event(
            logger,
            logging.INFO,
            "import_submitted",
            cache_key=cache_key,
            file_name=stored.file_name,
            file_size_bytes=stored.file_size_bytes,
            checksum=stored.checksum,
            report_date=report_date.isoformat(),
        )
        return cache_key

    def _run_import_job(self, cache_key: str, storage_path: str, report_date: date) -> None:
        try:
            with timed_event(logger, "import_completed", cache_key=cache_key) as event:
                path = self._storage.open_path(storage_path)
                with self._session_factory() as db:
                    importer = ReconciliationImporter(
                        resolver=MemoizingEntityResolver(SqlEntityResolver(db)),
                        report_date=report_date,
                        log_row_errors=self._import_settings.log_row_errors,
                    )
                    preview = importer.run(iter_chunks(path, self._import_settings.chunk_size))

                self._publish(cache_key, {"status": JobState.COMPLETED.value, "data": preview.to_dict()})
                event.update(preview.summary.to_dict())
        except Exception as exc:  # noqa: BLE001
            self._publish_failure(cache_key=cache_key, job_type="import", exc=exc)

    # ------------------------------------------------------------------
    # Finalize (async commit)
    # ------------------------------------------------------------------

    def submit_finalize(
        self,
        *,
        executor: TaskExecutor,
        entries: Sequence[PreviewEntry],
        report_date: date,
        override_existing: bool = False,
    ) -> str:
        cache_key = new_cache_key(SAVE_KEY_PREFIX)
        self._publish(
            cache_key,
            {"status": JobState.PROCESSING.value, "message": "Saving data to the database..."},
        )

        try:
            executor.submit(
                self._run_finalize_job,
                cache_key,
                list(entries),
                report_date,
                override_existing,
            )
        except Exception:
            self._publish(
                cache_key,
                {"status": JobState.FAILED.value, "message": "Failed to schedule save job."},
            )
            raise

        log_event(
            logger,
            logging.INFO,
            "finalize_submitted",
            cache_key=cache_key,
            entries=len(entries),
            report_date=report_date.isoformat(),
            override_existing=override_existing,
        )
        return cache_key

    def _run_finalize_job(
        self,
        cache_key: str,
        entries: list[PreviewEntry],
        report_date: date,
        override_existing: bool,
    ) -> None:
        try:
            with timed_event(logger, "finalize_completed", cache_key=cache_key) as event:
                result = self._commit_service.save_validated_data(
                    entries,
                    report_date=report_date,
                    override_existing=override_existing,
                )
                if not result.success:
                    raise CommitError(result.message)

                payload = result.to_dict()
                payload.pop("success")
                self._publish(cache_key, {"status": JobState.COMPLETED.value, **payload})
                event.update(processed_count=result.processed_count, skipped=len(result.skipped))
        except Exception as exc:  # noqa: BLE001
            self._publish_failure(cache_key=cache_key, job_type="finalize", exc=exc)

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def submit_export(
        self,
        *,
        executor: TaskExecutor,
        banker_ids: Sequence[int],
        start_date: date,
        end_date: date,
        baseline_year: int,
    ) -> str:
        """
        Validate parameters, then dispatch the export job.

        Raises ExportRequestError before any key is created.
        """

        validate_export_request(
            banker_ids=banker_ids,
            start_date=start_date,
            end_date=end_date,
            baseline_year=baseline_year,
            max_range_days=self._export_settings.max_range_days,
        )

        cache_key = new_cache_key(EXPORT_KEY_PREFIX)
        self._publish(
            cache_key,
            {"status": JobState.PROCESSING.value, "message": "Collecting and formatting data..."},
        )

        try:
            executor.submit(
                self._run_export_job,
                cache_key,
                list(banker_ids),
                start_date,
                end_date,
                baseline_year,
            )
        except Exception:
            self._publish(
                cache_key,
                {"status": JobState.FAILED.value, "message": "Failed to schedule export job."},
            )
            raise

        log_event(
            logger,
            logging.INFO,
            "export_submitted",
            cache_key=cache_key,
            bankers=len(banker_ids),
            start_date=start_date.isoformat(),
            end_date=end_date.isoformat(),
            baseline_year=baseline_year,
        )
        return cache_key

    def _run_export_job(
        self,
        cache_key: str,
        banker_ids: list[int],
        start_date: date,
        end_date: date,
        baseline_year: int,
    ) -> None:
        try:
            with self._session_factory() as db:
                report = self._report_builder.build(
                    db,
                    banker_ids=banker_ids,
                    start_date=start_date,
                    end_date=end_date,
                    baseline_year=baseline_year,
                )

            buffer = io.BytesIO()
            write_workbook(report, buffer)
            stored = self._storage.save(
                area=REPORTS_AREA,
                file_name=f"banker_performance_{cache_key}.xlsx",
                content=buffer.getvalue(),
                unique=False,
            )
            if not self._storage.exists(stored.storage_path):
                raise FileStorageError("Report file was not found in storage after writing.")

            generated_on = datetime.now(timezone.utc).strftime("%d-%b-%Y")
            self._publish(
                cache_key,
                {
                    "status": JobState.COMPLETED.value,
                    "message": "Report file is ready for download.",
                    "file_path": stored.storage_path,
                    "file_name": f"Banker Performance Report - {generated_on}.xlsx",
                },
            )
            log_event(
                logger,
                logging.INFO,
                "export_completed",
                cache_key=cache_key,
                rows=len(report.rows),
                file_path=stored.storage_path,
            )
        except Exception as exc:  # noqa: BLE001
            self._publish_failure(cache_key=cache_key, job_type="export", exc=exc)

    def resolve_download(self, cache_key: str) -> ExportDownload:
        """
        Return the report file for a completed export key.

        Raises DownloadNotAvailableError when the key is unknown, not
        completed, or points outside the reports area.
        """

        status = self.get_status(cache_key)
        if status.state is not JobState.COMPLETED or status.payload is None:
            raise DownloadNotAvailableError("Report is not ready or has expired.")

        file_path = str(status.payload.get("file_path") or "")
        if not file_path.startswith(f"{REPORTS_AREA}/"):
            raise DownloadNotAvailableError("Report file is not available.")
        try:
            path = self._storage.open_path(file_path)
        except FileStorageError as exc:
            raise DownloadNotAvailableError("Report file is not available.") from exc

        file_name = str(status.payload.get("file_name") or path.name)
        return ExportDownload(path=path, file_name=file_name)

    def forget(self, cache_key: str) -> None:
        self._cache.delete(cache_key)

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    def _delete_file_quietly(self, storage_path: str) -> None:
        try:
            self._storage.delete(storage_path=storage_path)
        except FileStorageError:
            return


@lru_cache(maxsize=1)
def get_reconciliation_job_service() -> ReconciliationJobService:
    return ReconciliationJobService()
