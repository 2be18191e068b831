"""
Schemas for banker performance export endpoints.
"""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field, model_validator

from app.services.export_service import MAX_BASELINE_YEAR, MIN_BASELINE_YEAR


class ExportRequest(BaseModel):
    banker_ids: list[int] = Field(min_length=1)
    start_date: date
    end_date: date
    baseline_year: int = Field(ge=MIN_BASELINE_YEAR, le=MAX_BASELINE_YEAR)

    @model_validator(mode="after")
    def _check_range(self) -> ExportRequest:
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self
