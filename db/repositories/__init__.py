"""
Repository layer exports.
"""

from db.repositories.errors import (
    FileStorageError,
    RepositoryError,
    ResultPersistenceError,
    StoredFileNotFoundError,
)
from db.repositories.job_result_repository import JobResultRepository
from db.repositories.storage import (
    IMPORTS_AREA,
    REPORTS_AREA,
    FileStorageBackend,
    LocalFileStorage,
    StoredFileMetadata,
)

__all__ = [
    "IMPORTS_AREA",
    "REPORTS_AREA",
    "JobResultRepository",
    "StoredFileMetadata",
    "FileStorageBackend",
    "LocalFileStorage",
    "RepositoryError",
    "FileStorageError",
    "StoredFileNotFoundError",
    "ResultPersistenceError",
]
