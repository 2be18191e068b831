"""
tests/test_job_orchestrator_service.py

Job lifecycle tests for ReconciliationJobService with an inline executor,
the in-memory result cache and a temporary storage root.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy.orm import Session, sessionmaker

from app.config import ExportSettings, ImportSettings
from app.domain.reconciliation import JobState, PreviewEntry
from app.services.commit_service import BalanceCommitService
from app.services.export_service import BankerPerformanceReportBuilder, ExportRequestError
from app.services.job_orchestrator_service import (
    DownloadNotAvailableError,
    ReconciliationJobService,
)
from app.services.result_cache import InMemoryResultCache
from db.repositories.storage import LocalFileStorage

REPORT_DATE = date(2026, 10, 18)

CSV_CONTENT = (
    "pn_relationship_officer,textbox4,textbox38,textbox15,balance,availbalance,product_code\n"
    "RO1 - Rina,CIF001,PT Sinar Jaya,AB-123,1500,1400,TAB\n"
    "-,CIF001,PT Sinar Jaya,AB-123,1,1,TAB\n"
    "ZZ9,CIF001,PT Sinar Jaya,AB-123,1,1,TAB\n"
).encode("utf-8")


class InlineExecutor:
    """Runs the task immediately, after checking the processing state was published."""

    def __init__(self, cache: InMemoryResultCache) -> None:
        self._cache = cache
        self.seen_states: list[str] = []

    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        self.seen_states.append(self._cache.get(args[0])["status"])
        task(*args, **kwargs)


class DeferredExecutor:
    def __init__(self) -> None:
        self.tasks: list[tuple[Callable[..., None], tuple[Any, ...]]] = []

    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        self.tasks.append((task, args))

    def run_all(self) -> None:
        for task, args in self.tasks:
            task(*args)


class RejectingExecutor:
    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        raise RuntimeError("worker pool is shut down")


@pytest.fixture()
def cache() -> InMemoryResultCache:
    return InMemoryResultCache(default_ttl_seconds=3600)


@pytest.fixture()
def storage(tmp_path: Path) -> LocalFileStorage:
    return LocalFileStorage(tmp_path / "storage")


@pytest.fixture()
def service(
    cache: InMemoryResultCache,
    storage: LocalFileStorage,
    session_factory: sessionmaker[Session],
) -> ReconciliationJobService:
    return ReconciliationJobService(
        cache=cache,
        storage=storage,
        session_factory=session_factory,
        commit_service=BalanceCommitService(session_factory=session_factory),
        report_builder=BankerPerformanceReportBuilder(
            default_position="Universal Banker",
            default_branch_name="KC Default",
        ),
        import_settings=ImportSettings(chunk_size=2),
        export_settings=ExportSettings(),
        ttl_seconds=3600,
    )


class TestImportJob:
    def test_completed_preview(self, service, cache, portfolio) -> None:
        executor = InlineExecutor(cache)

        key = service.submit_import(
            executor=executor,
            file_name="report.csv",
            content=CSV_CONTENT,
            report_date=REPORT_DATE,
        )

        assert key.startswith("import_preview_")
        assert executor.seen_states == ["processing"]
        status = service.get_status(key)
        assert status.state is JobState.COMPLETED
        data = status.payload["data"]
        assert data["summary"] == {
            "total_rows_in_excel": 3,
            "rows_skipped": 2,
            "accounts_to_update": 1,
            "new_transactions_detected": 1,
            "valid_rows": 1,
        }
        assert data["valid_rows"][0]["account_number"] == "AB123"
        assert data["valid_rows"][0]["db_account_id"] == portfolio.account_id
        assert [error["row_number"] for error in data["errors"]] == [4]

    def test_processing_until_job_runs(self, service, portfolio) -> None:
        executor = DeferredExecutor()

        key = service.submit_import(
            executor=executor,
            file_name="report.csv",
            content=CSV_CONTENT,
            report_date=REPORT_DATE,
        )

        assert service.get_status(key).to_dict() == {"status": "processing", "data": None}
        executor.run_all()
        assert service.get_status(key).state is JobState.COMPLETED

    def test_corrupt_file_fails_without_partial_result(self, service, cache, portfolio) -> None:
        key = service.submit_import(
            executor=InlineExecutor(cache),
            file_name="broken.xlsx",
            content=b"not a workbook",
            report_date=REPORT_DATE,
        )

        status = service.get_status(key)
        assert status.state is JobState.FAILED
        assert status.message
        assert "data" not in status.payload

    def test_terminal_state_is_stable(self, service, cache, portfolio) -> None:
        key = service.submit_import(
            executor=InlineExecutor(cache),
            file_name="report.csv",
            content=CSV_CONTENT,
            report_date=REPORT_DATE,
        )

        states = {service.get_status(key).state for _ in range(5)}
        assert states == {JobState.COMPLETED}

    def test_schedule_failure_publishes_failed_and_removes_file(self, service, storage, cache) -> None:
        with pytest.raises(RuntimeError):
            service.submit_import(
                executor=RejectingExecutor(),
                file_name="report.csv",
                content=CSV_CONTENT,
                report_date=REPORT_DATE,
            )

        imports_dir = storage.root_dir / "imports"
        assert list(imports_dir.iterdir()) == []
        assert [payload["status"] for _, payload in cache._entries.values()] == ["failed"]

    def test_unknown_key(self, service) -> None:
        assert service.get_status("import_preview_missing").state is JobState.NOT_FOUND


class TestFinalizeJob:
    def test_completed(self, service, cache, portfolio) -> None:
        preview_key = service.submit_import(
            executor=InlineExecutor(cache),
            file_name="report.csv",
            content=CSV_CONTENT,
            report_date=REPORT_DATE,
        )
        rows = service.get_status(preview_key).payload["data"]["valid_rows"]
        entries = [PreviewEntry.from_dict(row) for row in rows]

        key = service.submit_finalize(
            executor=InlineExecutor(cache),
            entries=entries,
            report_date=REPORT_DATE,
        )

        assert key.startswith("save_result_")
        status = service.get_status(key)
        assert status.state is JobState.COMPLETED
        assert status.payload["processed_count"] == 1
        assert status.payload["skipped"] == []


class TestExportJob:
    def test_invalid_request_creates_no_key(self, service, cache) -> None:
        with pytest.raises(ExportRequestError):
            service.submit_export(
                executor=InlineExecutor(cache),
                banker_ids=[1],
                start_date=date(2026, 2, 1),
                end_date=date(2026, 1, 1),
                baseline_year=2026,
            )

        assert cache._entries == {}

    def test_download_lifecycle(self, service, cache, portfolio) -> None:
        key = service.submit_export(
            executor=InlineExecutor(cache),
            banker_ids=[portfolio.banker_id],
            start_date=date(2026, 10, 1),
            end_date=date(2026, 10, 18),
            baseline_year=2026,
        )

        status = service.get_status(key)
        assert status.state is JobState.COMPLETED
        assert status.payload["file_path"] == f"reports/banker_performance_{key}.xlsx"

        download = service.resolve_download(key)
        assert download.path.is_file()
        assert download.file_name.startswith("Banker Performance Report - ")

        service.forget(key)
        with pytest.raises(DownloadNotAvailableError):
            service.resolve_download(key)

    def test_download_refuses_paths_outside_reports(self, service, cache) -> None:
        cache.put("export_result_x", {"status": "completed", "file_path": "imports/secret.csv"})

        with pytest.raises(DownloadNotAvailableError):
            service.resolve_download("export_result_x")

    def test_download_of_processing_job(self, service, cache) -> None:
        cache.put("export_result_y", {"status": "processing", "message": "Collecting and formatting data..."})

        with pytest.raises(DownloadNotAvailableError):
            service.resolve_download("export_result_y")
