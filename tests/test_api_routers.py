"""
tests/test_api_routers.py

HTTP contract tests for the import and export routers.

The application is assembled from the routers directly; service getters
are replaced through dependency_overrides so no environment is needed.
"""

from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api.routers import exports_router, imports_router
from app.config import AuthSettings, ExportSettings, ImportSettings, get_auth_settings, get_import_settings
from app.services.commit_service import BalanceCommitService, get_balance_commit_service
from app.services.export_service import BankerPerformanceReportBuilder
from app.services.job_orchestrator_service import ReconciliationJobService, get_reconciliation_job_service
from app.services.result_cache import InMemoryResultCache
from db.repositories.storage import LocalFileStorage

OPERATOR = {"X-User-Role": "admin"}

CSV_CONTENT = (
    "pn_relationship_officer,textbox4,textbox38,textbox15,balance,availbalance,product_code\n"
    "RO1 - Rina,CIF001,PT Sinar Jaya,AB123,1500,1400,TAB\n"
).encode("utf-8")


@pytest.fixture()
def client(tmp_path: Path, session_factory, portfolio) -> TestClient:
    commit_service = BalanceCommitService(session_factory=session_factory)
    import_settings = ImportSettings(max_upload_bytes=4096)
    service = ReconciliationJobService(
        cache=InMemoryResultCache(),
        storage=LocalFileStorage(tmp_path / "storage"),
        session_factory=session_factory,
        commit_service=commit_service,
        report_builder=BankerPerformanceReportBuilder(
            default_position="Universal Banker",
            default_branch_name="KC Default",
        ),
        import_settings=import_settings,
        export_settings=ExportSettings(),
        ttl_seconds=3600,
    )

    application = FastAPI()
    application.include_router(imports_router)
    application.include_router(exports_router)
    application.dependency_overrides[get_reconciliation_job_service] = lambda: service
    application.dependency_overrides[get_balance_commit_service] = lambda: commit_service
    application.dependency_overrides[get_import_settings] = lambda: import_settings
    application.dependency_overrides[get_auth_settings] = lambda: AuthSettings()
    return TestClient(application)


def _upload(client: TestClient, *, name: str = "report.csv", content: bytes = CSV_CONTENT, headers=OPERATOR):
    return client.post(
        "/imports",
        data={"report_date": "2026-10-18"},
        files={"file": (name, content, "text/csv")},
        headers=headers,
    )


class TestAuthorization:
    def test_missing_role_header(self, client: TestClient) -> None:
        response = client.get("/imports/import_preview_x/status")

        assert response.status_code == 401

    def test_non_operator_role(self, client: TestClient) -> None:
        response = client.get("/imports/import_preview_x/status", headers={"X-User-Role": "viewer"})

        assert response.status_code == 403


class TestImportEndpoints:
    def test_upload_and_poll(self, client: TestClient, portfolio) -> None:
        response = _upload(client)

        assert response.status_code == 202
        body = response.json()
        assert body["cache_key"].startswith("import_preview_")
        assert response.headers["location"] == body["status_url"]

        status = client.get(body["status_url"], headers=OPERATOR)
        assert status.status_code == 200
        payload = status.json()
        assert payload["status"] == "completed"
        assert payload["data"]["summary"]["valid_rows"] == 1
        assert payload["data"]["valid_rows"][0]["current_balance"] == "1500.0000"

    def test_unknown_key_is_404(self, client: TestClient) -> None:
        response = client.get("/imports/import_preview_missing/status", headers=OPERATOR)

        assert response.status_code == 404
        assert response.json() == {"status": "not_found"}

    def test_unsupported_extension(self, client: TestClient) -> None:
        response = _upload(client, name="report.xls")

        assert response.status_code == 400

    def test_oversized_upload(self, client: TestClient) -> None:
        response = _upload(client, content=b"x" * 5000)

        assert response.status_code == 413

    def test_empty_upload(self, client: TestClient) -> None:
        response = _upload(client, content=b"")

        assert response.status_code == 400

    def test_save_and_override(self, client: TestClient, portfolio) -> None:
        key = _upload(client).json()["cache_key"]
        rows = client.get(f"/imports/{key}/status", headers=OPERATOR).json()["data"]["valid_rows"]

        first = client.post(
            "/imports/save",
            json={"dataToSave": rows, "reportDate": "2026-10-18"},
            headers=OPERATOR,
        )
        second = client.post(
            "/imports/save",
            json={"dataToSave": rows, "reportDate": "2026-10-18"},
            headers=OPERATOR,
        )

        assert first.status_code == 200
        assert first.json()["processed_count"] == 1
        assert second.json()["processed_count"] == 0
        assert second.json()["skipped"] == [{"account_number": "AB123", "reason": "already_recorded"}]

    def test_save_rejects_malformed_entries(self, client: TestClient) -> None:
        response = client.post(
            "/imports/save",
            json={"dataToSave": [{"account_number": "AB123"}], "reportDate": "2026-10-18"},
            headers=OPERATOR,
        )

        assert response.status_code == 422

    def test_finalize(self, client: TestClient, portfolio) -> None:
        key = _upload(client).json()["cache_key"]
        rows = client.get(f"/imports/{key}/status", headers=OPERATOR).json()["data"]["valid_rows"]

        response = client.post(
            "/imports/finalize",
            json={"dataToSave": rows, "reportDate": "2026-10-18", "override_existing": True},
            headers=OPERATOR,
        )

        assert response.status_code == 202
        status = client.get(response.json()["status_url"], headers=OPERATOR).json()
        assert status["status"] == "completed"
        assert status["processed_count"] == 1


class TestExportEndpoints:
    def test_export_and_download(self, client: TestClient, portfolio) -> None:
        response = client.post(
            "/exports",
            json={
                "banker_ids": [portfolio.banker_id],
                "start_date": "2026-10-01",
                "end_date": "2026-10-18",
                "baseline_year": 2026,
            },
            headers=OPERATOR,
        )

        assert response.status_code == 202
        key = response.json()["cache_key"]
        status = client.get(f"/exports/{key}/status", headers=OPERATOR).json()
        assert status["status"] == "completed"

        download = client.get(f"/exports/{key}/download", headers=OPERATOR)
        assert download.status_code == 200
        assert download.content[:2] == b"PK"
        assert "attachment" in download.headers["content-disposition"]

        again = client.get(f"/exports/{key}/download", headers=OPERATOR)
        assert again.status_code == 404

    def test_export_range_too_long(self, client: TestClient) -> None:
        response = client.post(
            "/exports",
            json={
                "banker_ids": [1],
                "start_date": date(2020, 1, 1).isoformat(),
                "end_date": date(2026, 1, 1).isoformat(),
                "baseline_year": 2026,
            },
            headers=OPERATOR,
        )

        assert response.status_code == 422

    def test_download_unknown_key(self, client: TestClient) -> None:
        response = client.get("/exports/export_result_missing/download", headers=OPERATOR)

        assert response.status_code == 404
