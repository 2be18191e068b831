"""
app/api/routers/imports.py

Spreadsheet import endpoints: preview upload, polling, save and async finalize.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, Form, HTTPException, Response, status
from fastapi.responses import JSONResponse

from app.api.dependencies import SpreadsheetUpload, get_spreadsheet_upload, require_operator
from app.domain.reconciliation import JobState, PreviewEntry
from app.schemas.imports import JobAcceptedResponse, SaveImportRequest, SaveImportResponse
from app.services.commit_service import BalanceCommitService, get_balance_commit_service
from app.services.job_orchestrator_service import (
    FastAPIBackgroundTaskExecutor,
    ReconciliationJobService,
    get_reconciliation_job_service,
)
from db.repositories.errors import FileStorageError

router = APIRouter(tags=["imports"], dependencies=[Depends(require_operator)])


@router.post(
    "/imports",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=JobAcceptedResponse,
)
def submit_import(
    response: Response,
    background_tasks: BackgroundTasks,
    report_date: date = Form(...),
    upload: SpreadsheetUpload = Depends(get_spreadsheet_upload),
    service: ReconciliationJobService = Depends(get_reconciliation_job_service),
) -> JobAcceptedResponse:
    try:
        cache_key = service.submit_import(
            executor=FastAPIBackgroundTaskExecutor(background_tasks),
            file_name=upload.file_name,
            content=upload.content,
            report_date=report_date,
            content_type=upload.content_type,
        )
    except FileStorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to store the uploaded file.",
        ) from exc

    status_url = f"/imports/{cache_key}/status"
    response.headers["Location"] = status_url
    return JobAcceptedResponse(
        cache_key=cache_key,
        status=JobState.PROCESSING.value,
        status_url=status_url,
    )


@router.get("/imports/{cache_key}/status")
def get_import_status(
    cache_key: str,
    service: ReconciliationJobService = Depends(get_reconciliation_job_service),
) -> JSONResponse:
    return _status_response(service, cache_key)


@router.post("/imports/save", response_model=SaveImportResponse)
def save_import(
    payload: SaveImportRequest,
    commit_service: BalanceCommitService = Depends(get_balance_commit_service),
) -> Any:
    entries = _parse_entries(payload.data_to_save)
    result = commit_service.save_validated_data(
        entries,
        report_date=payload.report_date,
        override_existing=payload.override_existing,
    )
    if not result.success:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=result.to_dict(),
        )
    return SaveImportResponse.model_validate(result.to_dict())


@router.post(
    "/imports/finalize",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=JobAcceptedResponse,
)
def finalize_import(
    payload: SaveImportRequest,
    response: Response,
    background_tasks: BackgroundTasks,
    service: ReconciliationJobService = Depends(get_reconciliation_job_service),
) -> JobAcceptedResponse:
    entries = _parse_entries(payload.data_to_save)
    cache_key = service.submit_finalize(
        executor=FastAPIBackgroundTaskExecutor(background_tasks),
        entries=entries,
        report_date=payload.report_date,
        override_existing=payload.override_existing,
    )
    status_url = f"/imports/finalize/{cache_key}/status"
    response.headers["Location"] = status_url
    return JobAcceptedResponse(
        cache_key=cache_key,
        status=JobState.PROCESSING.value,
        status_url=status_url,
    )


@router.get("/imports/finalize/{cache_key}/status")
def get_finalize_status(
    cache_key: str,
    service: ReconciliationJobService = Depends(get_reconciliation_job_service),
) -> JSONResponse:
    return _status_response(service, cache_key)


def _status_response(service: ReconciliationJobService, cache_key: str) -> JSONResponse:
    job_status = service.get_status(cache_key)
    if job_status.state is JobState.NOT_FOUND:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"status": JobState.NOT_FOUND.value},
        )
    return JSONResponse(status_code=status.HTTP_200_OK, content=job_status.to_dict())


def _parse_entries(items: list[dict[str, Any]]) -> list[PreviewEntry]:
    entries: list[PreviewEntry] = []
    for index, item in enumerate(items):
        try:
            entries.append(PreviewEntry.from_dict(item))
        except (KeyError, TypeError, ValueError) as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"dataToSave[{index}] is invalid: {exc}",
            ) from exc
    return entries
