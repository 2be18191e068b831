"""
Storage backend abstractions for uploaded spreadsheets and generated reports.
"""

from __future__ import annotations

import hashlib
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from mimetypes import guess_type
from pathlib import Path
from typing import Protocol

from db.repositories.errors import FileStorageError, StoredFileNotFoundError

IMPORTS_AREA = "imports"
REPORTS_AREA = "reports"


@dataclass(frozen=True)
class StoredFileMetadata:
    """What the backend recorded for a saved file. storage_path starts with its area."""

    file_name: str
    storage_path: str
    mime_type: str | None
    file_size_bytes: int
    checksum: str
    stored_at: datetime


class FileStorageBackend(Protocol):
    """
    Abstract storage backend used by the import and export jobs.
    """

    def save(
        self,
        *,
        area: str,
        file_name: str,
        content: bytes,
        content_type: str | None = None,
        unique: bool = True,
    ) -> StoredFileMetadata:
        ...

    def resolve(self, storage_path: str) -> Path:
        ...

    def exists(self, storage_path: str) -> bool:
        ...

    def open_path(self, storage_path: str) -> Path:
        ...

    def delete(self, *, storage_path: str) -> None:
        ...

    def list_older_than(self, *, area: str, cutoff: datetime) -> list[str]:
        ...


def _sanitize_file_name(file_name: str) -> str:
    safe_name = Path(file_name).name.strip()
    if not safe_name or safe_name in {".", ".."}:
        raise FileStorageError("Invalid file name.")
    return safe_name


def _sanitize_area(area: str) -> str:
    safe_area = area.strip().strip("/")
    if not safe_area or "/" in safe_area or safe_area in {".", ".."}:
        raise FileStorageError(f"Invalid storage area: {area!r}")
    return safe_area


class LocalFileStorage:
    """
    Local filesystem storage backend.

    Files are grouped by area directly under root_dir. Storage paths handed
    out by this class are relative and POSIX-style.
    """

    def __init__(self, root_dir: str | Path = "data/storage") -> None:
        self._root_dir = Path(root_dir)

    @property
    def root_dir(self) -> Path:
        return self._root_dir

    def save(
        self,
        *,
        area: str,
        file_name: str,
        content: bytes,
        content_type: str | None = None,
        unique: bool = True,
    ) -> StoredFileMetadata:
        safe_area = _sanitize_area(area)
        safe_file_name = _sanitize_file_name(file_name)
        stored_at = datetime.now(timezone.utc)

        stored_name = f"{uuid.uuid4().hex}_{safe_file_name}" if unique else safe_file_name
        relative_path = Path(safe_area) / stored_name
        absolute_path = self._root_dir / relative_path
        absolute_path.parent.mkdir(parents=True, exist_ok=True)

        tmp_path = absolute_path.with_suffix(f"{absolute_path.suffix}.tmp")
        try:
            with tmp_path.open("wb") as handle:
                handle.write(content)
            tmp_path.replace(absolute_path)
        except OSError as exc:
            raise FileStorageError(f"Failed to write file to storage: {relative_path.as_posix()}") from exc
        finally:
            if tmp_path.exists():
                try:
                    tmp_path.unlink()
                except OSError:
                    pass

        checksum = hashlib.sha256(content).hexdigest()
        mime_type = content_type or guess_type(safe_file_name)[0]

        return StoredFileMetadata(
            file_name=safe_file_name,
            storage_path=relative_path.as_posix(),
            mime_type=mime_type,
            file_size_bytes=len(content),
            checksum=checksum,
            stored_at=stored_at,
        )

    def resolve(self, storage_path: str) -> Path:
        """Map a relative storage path to an absolute one inside root_dir."""
        root = self._root_dir.resolve()
        target = (root / Path(storage_path)).resolve()
        if root != target and root not in target.parents:
            raise FileStorageError(f"Storage path escapes the storage root: {storage_path!r}")
        return target

    def exists(self, storage_path: str) -> bool:
        try:
            return self.resolve(storage_path).is_file()
        except FileStorageError:
            return False

    def delete(self, *, storage_path: str) -> None:
        target = self.resolve(storage_path)
        if not target.exists():
            return
        try:
            target.unlink()
        except OSError as exc:
            raise FileStorageError(f"Failed to delete file from storage: {storage_path}") from exc

    def open_path(self, storage_path: str) -> Path:
        """Like resolve(), but raise when the file is missing."""
        target = self.resolve(storage_path)
        if not target.is_file():
            raise StoredFileNotFoundError(f"Stored file not found: {storage_path}")
        return target

    def list_older_than(self, *, area: str, cutoff: datetime) -> list[str]:
        area_dir = self._root_dir / _sanitize_area(area)
        if not area_dir.is_dir():
            return []

        cutoff_ts = cutoff.timestamp()
        stale: list[str] = []
        for path in sorted(area_dir.iterdir()):
            if not path.is_file() or path.suffix == ".tmp":
                continue
            if path.stat().st_mtime < cutoff_ts:
                stale.append(path.relative_to(self._root_dir).as_posix())
        return stale
