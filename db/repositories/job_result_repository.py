"""
Repository for cached job status payloads.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from db.models.job_result import JobResult


class JobResultRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get_live(self, cache_key: str, *, now: datetime | None = None) -> JobResult | None:
        """Return the row for cache_key unless it has expired."""
        reference = now or datetime.now(timezone.utc)
        stmt = select(JobResult).where(
            JobResult.cache_key == cache_key,
            JobResult.expires_at > reference,
        )
        return self._session.scalars(stmt).first()

    def upsert(
        self,
        *,
        cache_key: str,
        payload: dict[str, Any],
        expires_at: datetime,
    ) -> JobResult:
        row = self._session.get(JobResult, cache_key)
        if row is None:
            row = JobResult(cache_key=cache_key, payload=payload, expires_at=expires_at)
            self._session.add(row)
        else:
            row.payload = payload
            row.expires_at = expires_at
        self._session.flush()
        return row

    def delete(self, cache_key: str) -> bool:
        result = self._session.execute(delete(JobResult).where(JobResult.cache_key == cache_key))
        return bool(result.rowcount)

    def delete_expired(self, *, now: datetime | None = None) -> int:
        reference = now or datetime.now(timezone.utc)
        result = self._session.execute(delete(JobResult).where(JobResult.expires_at <= reference))
        return int(result.rowcount or 0)
