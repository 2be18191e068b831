"""
app/services/result_cache.py

Key-value store with TTL used as the status channel between background jobs
and polling clients.

Two backends:
    DatabaseResultCache  - rows in the job_results table (default)
    InMemoryResultCache  - process-local dict, for tests and single-process runs
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.config import get_result_cache_settings
from db.repositories.errors import ResultPersistenceError
from db.repositories.job_result_repository import JobResultRepository

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ResultCache(Protocol):
    def put(self, key: str, value: dict[str, Any], ttl_seconds: int | None = None) -> None:
        ...

    def get(self, key: str) -> dict[str, Any] | None:
        ...

    def delete(self, key: str) -> None:
        ...

    def purge_expired(self) -> int:
        ...


def _json_roundtrip(value: dict[str, Any]) -> dict[str, Any]:
    """Store exactly what a JSON column would give back."""
    return json.loads(json.dumps(value, default=str))


class InMemoryResultCache:
    """
    Lock-guarded dict with per-entry expiry.
    """

    def __init__(self, *, default_ttl_seconds: int = 3600, clock: Clock | None = None) -> None:
        self._default_ttl_seconds = default_ttl_seconds
        self._clock = clock or _utcnow
        self._entries: dict[str, tuple[datetime, dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def put(self, key: str, value: dict[str, Any], ttl_seconds: int | None = None) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl_seconds
        expires_at = self._clock() + timedelta(seconds=ttl)
        stored = _json_roundtrip(value)
        with self._lock:
            self._entries[key] = (expires_at, stored)

    def get(self, key: str) -> dict[str, Any] | None:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, stored = entry
            if expires_at <= now:
                del self._entries[key]
                return None
            return _json_roundtrip(stored)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, (expires_at, _) in self._entries.items() if expires_at <= now]
            for key in expired:
                del self._entries[key]
        return len(expired)


class DatabaseResultCache:
    """
    Result cache persisted in the job_results table.

    Every call uses its own short session so writes from background jobs are
    visible to polling requests immediately.
    """

    def __init__(
        self,
        *,
        session_factory: sessionmaker[Session] | Callable[[], Session] | None = None,
        default_ttl_seconds: int = 3600,
        clock: Clock | None = None,
    ) -> None:
        if session_factory is None:
            from db.session import SessionLocal

            self._session_factory = SessionLocal
        else:
            self._session_factory = session_factory
        self._default_ttl_seconds = default_ttl_seconds
        self._clock = clock or _utcnow

    def put(self, key: str, value: dict[str, Any], ttl_seconds: int | None = None) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl_seconds
        expires_at = self._clock() + timedelta(seconds=ttl)
        payload = _json_roundtrip(value)
        with self._session_factory() as db:
            try:
                JobResultRepository(db).upsert(cache_key=key, payload=payload, expires_at=expires_at)
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                raise ResultPersistenceError(f"Failed to write job result key={key}") from exc

    def get(self, key: str) -> dict[str, Any] | None:
        with self._session_factory() as db:
            row = JobResultRepository(db).get_live(key, now=self._clock())
            if row is None:
                return None
            return dict(row.payload)

    def delete(self, key: str) -> None:
        with self._session_factory() as db:
            JobResultRepository(db).delete(key)
            db.commit()

    def purge_expired(self) -> int:
        with self._session_factory() as db:
            removed = JobResultRepository(db).delete_expired(now=self._clock())
            db.commit()
        return removed


@lru_cache(maxsize=1)
def get_result_cache() -> ResultCache:
    settings = get_result_cache_settings()
    if settings.backend == "memory":
        logger.info("Result cache backend=memory ttl_seconds=%s", settings.ttl_seconds)
        return InMemoryResultCache(default_ttl_seconds=settings.ttl_seconds)
    return DatabaseResultCache(default_ttl_seconds=settings.ttl_seconds)
