"""
app/domain package marker.
"""

from app.domain.reconciliation import (
    AccountMatch,
    AccountRef,
    BankerRef,
    ClientRef,
    CommitResult,
    CommitSkip,
    ImportSummary,
    JobState,
    JobStatus,
    PreviewEntry,
    PreviewResult,
    RowError,
    SkipReason,
    SourceRow,
    ValidatedRow,
)

__all__ = [
    "AccountMatch",
    "AccountRef",
    "BankerRef",
    "ClientRef",
    "CommitResult",
    "CommitSkip",
    "ImportSummary",
    "JobState",
    "JobStatus",
    "PreviewEntry",
    "PreviewResult",
    "RowError",
    "SkipReason",
    "SourceRow",
    "ValidatedRow",
]
