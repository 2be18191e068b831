"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.account import Account, AccountStatus
from db.models.account_product import AccountProduct
from db.models.account_transaction import AccountTransaction
from db.models.banker_daily_balance import BankerDailyBalance
from db.models.branch import Branch
from db.models.client import Client
from db.models.job_result import JobResult
from db.models.universal_banker import UniversalBanker

__all__ = [
    "Account",
    "AccountProduct",
    "AccountStatus",
    "AccountTransaction",
    "BankerDailyBalance",
    "Branch",
    "Client",
    "JobResult",
    "UniversalBanker",
]
