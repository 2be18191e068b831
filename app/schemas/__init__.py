"""
app/schemas package marker.
"""

from app.schemas.exports import ExportRequest
from app.schemas.imports import (
    CommitSkipResponse,
    JobAcceptedResponse,
    SaveImportRequest,
    SaveImportResponse,
)

__all__ = [
    "CommitSkipResponse",
    "ExportRequest",
    "JobAcceptedResponse",
    "SaveImportRequest",
    "SaveImportResponse",
]
