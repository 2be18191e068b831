from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from app.scheduler.jobs import build_scheduler, prune_stale_uploads
from db.repositories.errors import FileStorageError, StoredFileNotFoundError
from db.repositories.storage import IMPORTS_AREA, REPORTS_AREA, LocalFileStorage


@pytest.fixture()
def storage(tmp_path: Path) -> LocalFileStorage:
    return LocalFileStorage(tmp_path / "storage")


class TestLocalFileStorage:
    def test_save_is_unique_by_default(self, storage: LocalFileStorage) -> None:
        first = storage.save(area=IMPORTS_AREA, file_name="report.csv", content=b"a,b\n")
        second = storage.save(area=IMPORTS_AREA, file_name="report.csv", content=b"a,b\n")

        assert first.storage_path != second.storage_path
        assert first.storage_path.startswith("imports/")
        assert first.checksum == second.checksum
        assert first.file_size_bytes == 4

    def test_deterministic_name(self, storage: LocalFileStorage) -> None:
        stored = storage.save(area=REPORTS_AREA, file_name="banker_performance_k.xlsx", content=b"x", unique=False)

        assert stored.storage_path == "reports/banker_performance_k.xlsx"
        assert storage.exists(stored.storage_path)

    def test_path_traversal_is_rejected(self, storage: LocalFileStorage) -> None:
        with pytest.raises(FileStorageError):
            storage.resolve("../outside.txt")
        assert storage.exists("../../etc/passwd") is False

    def test_file_name_is_reduced_to_basename(self, storage: LocalFileStorage) -> None:
        stored = storage.save(area=IMPORTS_AREA, file_name="../../evil.csv", content=b"1", unique=False)

        assert stored.storage_path == "imports/evil.csv"

    def test_open_missing_file(self, storage: LocalFileStorage) -> None:
        with pytest.raises(StoredFileNotFoundError):
            storage.open_path("imports/missing.csv")


class TestPruneStaleUploads:
    def test_only_old_files_are_removed(self, storage: LocalFileStorage) -> None:
        old = storage.save(area=IMPORTS_AREA, file_name="old.csv", content=b"1")
        fresh = storage.save(area=IMPORTS_AREA, file_name="fresh.csv", content=b"1")
        report = storage.save(area=REPORTS_AREA, file_name="r.xlsx", content=b"1")
        fresh_report = storage.save(area=REPORTS_AREA, file_name="new.xlsx", content=b"1")

        ten_days_ago = (datetime.now(timezone.utc) - timedelta(days=10)).timestamp()
        for stored in (old, report):
            os.utime(storage.resolve(stored.storage_path), (ten_days_ago, ten_days_ago))

        removed = prune_stale_uploads(storage=storage, retention_days=7)

        assert removed == 2
        assert not storage.exists(old.storage_path)
        assert not storage.exists(report.storage_path)
        assert storage.exists(fresh.storage_path)
        assert storage.exists(fresh_report.storage_path)

    def test_missing_area_is_noop(self, storage: LocalFileStorage) -> None:
        assert prune_stale_uploads(storage=storage, retention_days=1) == 0


def test_scheduler_registers_housekeeping_jobs() -> None:
    scheduler = build_scheduler()

    assert {job.id for job in scheduler.get_jobs()} == {"purge_expired_results", "prune_stale_uploads"}
