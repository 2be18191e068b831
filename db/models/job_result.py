"""
db/models/job_result.py

Key-value table backing the job result cache.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONPayload, TimestampMixin


class JobResult(Base, TimestampMixin):
    """
    One cached job status payload.

    Rows past expires_at are treated as absent and removed by the
    scheduler's purge job.
    """

    __tablename__ = "job_results"

    cache_key: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
        comment="Opaque key handed to the polling client",
    )
    payload: Mapped[dict[str, Any]] = mapped_column(
        JSONPayload,
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_job_results_expires_at", "expires_at"),
    )
