"""
app/api/routers/exports.py

Banker performance export endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Response, status
from fastapi.responses import FileResponse, JSONResponse
from starlette.background import BackgroundTask

from app.api.dependencies import require_operator
from app.domain.reconciliation import JobState
from app.schemas.exports import ExportRequest
from app.schemas.imports import JobAcceptedResponse
from app.services.export_service import ExportRequestError
from app.services.job_orchestrator_service import (
    DownloadNotAvailableError,
    FastAPIBackgroundTaskExecutor,
    ReconciliationJobService,
    get_reconciliation_job_service,
)

router = APIRouter(tags=["exports"], dependencies=[Depends(require_operator)])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.post(
    "/exports",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=JobAcceptedResponse,
)
def submit_export(
    payload: ExportRequest,
    response: Response,
    background_tasks: BackgroundTasks,
    service: ReconciliationJobService = Depends(get_reconciliation_job_service),
) -> JobAcceptedResponse:
    try:
        cache_key = service.submit_export(
            executor=FastAPIBackgroundTaskExecutor(background_tasks),
            banker_ids=payload.banker_ids,
            start_date=payload.start_date,
            end_date=payload.end_date,
            baseline_year=payload.baseline_year,
        )
    except ExportRequestError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        ) from exc

    status_url = f"/exports/{cache_key}/status"
    response.headers["Location"] = status_url
    return JobAcceptedResponse(
        cache_key=cache_key,
        status=JobState.PROCESSING.value,
        status_url=status_url,
    )


@router.get("/exports/{cache_key}/status")
def get_export_status(
    cache_key: str,
    service: ReconciliationJobService = Depends(get_reconciliation_job_service),
) -> JSONResponse:
    job_status = service.get_status(cache_key)
    if job_status.state is JobState.NOT_FOUND:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"status": JobState.NOT_FOUND.value},
        )
    return JSONResponse(status_code=status.HTTP_200_OK, content=job_status.to_dict())


@router.get("/exports/{cache_key}/download")
def download_export(
    cache_key: str,
    service: ReconciliationJobService = Depends(get_reconciliation_job_service),
) -> FileResponse:
    try:
        download = service.resolve_download(cache_key)
    except DownloadNotAvailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc

    return FileResponse(
        download.path,
        media_type=XLSX_MEDIA_TYPE,
        filename=download.file_name,
        background=BackgroundTask(service.forget, cache_key),
    )
