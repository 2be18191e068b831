"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files

_ALLOWED_CACHE_BACKENDS = {"database", "memory"}


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_csv_env(name: str, default: str) -> frozenset[str]:
    """
    Read a comma-separated list into a lowercase set.
    """

    raw_value = _get_str_env(name, default)
    return frozenset(item.strip().lower() for item in raw_value.split(",") if item.strip())


@dataclass(frozen=True)
class ImportSettings:
    """
    Runtime settings for spreadsheet imports and commits.
    """

    chunk_size: int = 1000
    max_upload_bytes: int = 20 * 1024 * 1024
    allowed_extensions: frozenset[str] = frozenset({".csv", ".xlsx"})
    log_row_errors: bool = False
    commit_chunk_size: int = 500
    file_retention_days: int = 7


@dataclass(frozen=True)
class ResultCacheSettings:
    """
    Job result cache backend selection and entry lifetime.
    """

    backend: str = "database"
    ttl_seconds: int = 3600


@dataclass(frozen=True)
class StorageSettings:
    root_dir: str = "data/storage"


@dataclass(frozen=True)
class ExportSettings:
    """
    Defaults used when rendering the banker performance report.
    """

    default_branch_name: str = "KC Surabaya Kaliasin"
    default_position: str = "Universal Banker"
    max_range_days: int = 366


@dataclass(frozen=True)
class AuthSettings:
    """
    Role check applied at the HTTP boundary.
    """

    operator_roles: frozenset[str] = frozenset({"admin"})
    role_header: str = "X-User-Role"


@lru_cache(maxsize=1)
def get_import_settings() -> ImportSettings:
    """
    Return cached import settings from environment variables.
    """

    return ImportSettings(
        chunk_size=max(1, _get_int_env("IMPORT_CHUNK_SIZE", 1000)),
        max_upload_bytes=max(1, _get_int_env("IMPORT_MAX_UPLOAD_BYTES", 20 * 1024 * 1024)),
        allowed_extensions=_get_csv_env("IMPORT_ALLOWED_EXTENSIONS", ".csv,.xlsx"),
        log_row_errors=_get_bool_env("IMPORT_LOG_ROW_ERRORS", False),
        commit_chunk_size=max(1, _get_int_env("IMPORT_COMMIT_CHUNK_SIZE", 500)),
        file_retention_days=max(1, _get_int_env("IMPORT_FILE_RETENTION_DAYS", 7)),
    )


@lru_cache(maxsize=1)
def get_result_cache_settings() -> ResultCacheSettings:
    """
    Return cached result cache settings.

    Raises RuntimeError when RESULT_CACHE_BACKEND names an unknown backend.
    """

    backend = _get_str_env("RESULT_CACHE_BACKEND", "database").lower()
    if backend not in _ALLOWED_CACHE_BACKENDS:
        raise RuntimeError(
            f"RESULT_CACHE_BACKEND '{backend}' is not valid. "
            f"Allowed values: {sorted(_ALLOWED_CACHE_BACKENDS)}."
        )
    return ResultCacheSettings(
        backend=backend,
        ttl_seconds=max(1, _get_int_env("RESULT_CACHE_TTL_SECONDS", 3600)),
    )


@lru_cache(maxsize=1)
def get_storage_settings() -> StorageSettings:
    return StorageSettings(root_dir=_get_str_env("STORAGE_ROOT_DIR", "data/storage"))


@lru_cache(maxsize=1)
def get_export_settings() -> ExportSettings:
    """
    Return cached export settings from environment variables.
    """

    return ExportSettings(
        default_branch_name=_get_str_env("EXPORT_DEFAULT_BRANCH_NAME", "KC Surabaya Kaliasin"),
        default_position=_get_str_env("EXPORT_DEFAULT_POSITION", "Universal Banker"),
        max_range_days=max(1, _get_int_env("EXPORT_MAX_RANGE_DAYS", 366)),
    )


@lru_cache(maxsize=1)
def get_auth_settings() -> AuthSettings:
    return AuthSettings(
        operator_roles=_get_csv_env("OPERATOR_ROLES", "admin"),
        role_header=_get_str_env("OPERATOR_ROLE_HEADER", "X-User-Role"),
    )
