"""
app/services package marker.
"""

from app.services.commit_service import BalanceCommitService, get_balance_commit_service
from app.services.export_service import BankerPerformanceReportBuilder, get_report_builder
from app.services.import_processor import ReconciliationImporter
from app.services.job_orchestrator_service import (
    ReconciliationJobService,
    get_reconciliation_job_service,
)
from app.services.result_cache import ResultCache, get_result_cache

__all__ = [
    "BalanceCommitService",
    "get_balance_commit_service",
    "BankerPerformanceReportBuilder",
    "get_report_builder",
    "ReconciliationImporter",
    "ReconciliationJobService",
    "get_reconciliation_job_service",
    "ResultCache",
    "get_result_cache",
]
