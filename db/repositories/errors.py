"""
Repository-layer exceptions for file storage and result persistence.
"""

from __future__ import annotations


class RepositoryError(Exception):
    """Base exception for repository failures."""


class FileStorageError(RepositoryError):
    """Raised when storing, resolving or deleting a stored file fails."""


class StoredFileNotFoundError(FileStorageError):
    """Raised when a storage path does not point to an existing file."""


class ResultPersistenceError(RepositoryError):
    """Raised when a job result cannot be written to the result table."""
