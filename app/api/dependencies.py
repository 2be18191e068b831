"""
app/api/dependencies.py

Shared FastAPI dependencies for request validation and the operator role check.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePath

from fastapi import Depends, File, HTTPException, Request, UploadFile, status

from app.config import AuthSettings, ImportSettings, get_auth_settings, get_import_settings

_READ_CHUNK_BYTES = 1024 * 1024


@dataclass(frozen=True)
class SpreadsheetUpload:
    file_name: str
    content: bytes
    content_type: str | None


def get_spreadsheet_upload(
    file: UploadFile = File(...),
    settings: ImportSettings = Depends(get_import_settings),
) -> SpreadsheetUpload:
    """
    Validate extension and size of an uploaded spreadsheet and read it.
    """

    file_name = (file.filename or "").strip()
    extension = PurePath(file_name).suffix.lower()
    if extension not in settings.allowed_extensions:
        allowed = ", ".join(sorted(settings.allowed_extensions))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported file format. Allowed: {allowed}.",
        )

    buffer = bytearray()
    try:
        while True:
            chunk = file.file.read(_READ_CHUNK_BYTES)
            if not chunk:
                break
            buffer.extend(chunk)
            if len(buffer) > settings.max_upload_bytes:
                raise HTTPException(
                    status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                    detail=f"File exceeds the {settings.max_upload_bytes // (1024 * 1024)} MB limit.",
                )
    finally:
        file.file.close()

    if not buffer:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Uploaded file is empty.",
        )

    return SpreadsheetUpload(
        file_name=file_name,
        content=bytes(buffer),
        content_type=file.content_type,
    )


def require_operator(
    request: Request,
    settings: AuthSettings = Depends(get_auth_settings),
) -> str:
    """
    Allow the request only when the role header names an operator role.
    """

    role = (request.headers.get(settings.role_header) or "").strip().lower()
    if not role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing {settings.role_header} header.",
        )
    if role not in settings.operator_roles:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Operator role required.",
        )
    return role
