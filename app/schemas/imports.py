"""
Schemas for import preview, save and finalize endpoints.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class JobAcceptedResponse(BaseModel):
    cache_key: str
    status: str
    status_url: str


class SaveImportRequest(BaseModel):
    """
    Operator-approved subset of a preview, as returned by the preview payload.
    """

    model_config = ConfigDict(populate_by_name=True)

    data_to_save: list[dict[str, Any]] = Field(alias="dataToSave")
    report_date: date = Field(alias="reportDate")
    override_existing: bool = False


class CommitSkipResponse(BaseModel):
    account_number: str
    reason: str


class SaveImportResponse(BaseModel):
    success: bool
    message: str
    processed_count: int
    skipped: list[CommitSkipResponse] = Field(default_factory=list)
