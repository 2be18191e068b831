"""
app/services/commit_service.py

Persists an operator-approved subset of an import preview.

For every entry the account row is locked (SELECT ... FOR UPDATE), its
current/available balance is updated and one balance-history row is kept
per (account, report date). Banker daily totals are recomputed for every
banker touched by the transaction unit.

Lock order inside a transaction: accounts sorted by id then account number,
then the touched universal_bankers rows sorted by id. Holding the banker row
lock serializes daily-total recomputation and the daily row insert per banker.

Batches up to commit_chunk_size entries run in a single transaction;
larger batches commit chunk by chunk so a failure only rolls back the
chunk in progress.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from functools import lru_cache

from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from app.config import get_import_settings
from app.domain.reconciliation import (
    CommitResult,
    CommitSkip,
    PreviewEntry,
    SkipReason,
    balances_differ,
    quantize_money,
)
from app.validators.row_validator import normalize_account_number
from db.models.account import Account
from db.models.account_transaction import AccountTransaction
from db.models.banker_daily_balance import BankerDailyBalance
from db.models.universal_banker import UniversalBanker

logger = logging.getLogger(__name__)


class CommitError(RuntimeError):
    """
    Raised when a commit chunk cannot be applied.
    """


def end_of_day(report_date: date) -> datetime:
    return datetime.combine(report_date, time(23, 59, 59), tzinfo=timezone.utc)


def lock_order(entry: PreviewEntry) -> tuple[bool, int, str]:
    return (
        entry.db_account_id is None,
        entry.db_account_id or 0,
        normalize_account_number(entry.account_number),
    )


class BalanceCommitService:
    """
    Applies approved preview entries to accounts and balance history.
    """

    def __init__(
        self,
        *,
        session_factory: sessionmaker[Session] | Callable[[], Session] | None = None,
        commit_chunk_size: int = 500,
    ) -> None:
        if session_factory is None:
            from db.session import SessionLocal

            self._session_factory = SessionLocal
        else:
            self._session_factory = session_factory
        self._commit_chunk_size = max(1, commit_chunk_size)

    def save_validated_data(
        self,
        entries: Sequence[PreviewEntry],
        *,
        report_date: date,
        override_existing: bool = False,
    ) -> CommitResult:
        """
        Commit entries and report how many accounts were updated.

        Never raises for store failures: they are logged and returned as an
        unsuccessful CommitResult carrying the count already committed.
        """

        processed_total = 0
        skipped: list[CommitSkip] = []

        for chunk_index, start in enumerate(range(0, len(entries), self._commit_chunk_size)):
            chunk = entries[start : start + self._commit_chunk_size]
            try:
                processed, chunk_skips = self._commit_chunk(
                    chunk,
                    report_date=report_date,
                    override_existing=override_existing,
                )
            except Exception as exc:  # noqa: BLE001
                logger.exception(
                    "Commit chunk failed report_date=%s chunk=%s committed_before=%s",
                    report_date.isoformat(),
                    chunk_index,
                    processed_total,
                )
                return CommitResult(
                    success=False,
                    message=(
                        f"Failed to save data: {type(exc).__name__}: {exc}. "
                        f"{processed_total} account(s) were saved before the failure."
                    ),
                    processed_count=processed_total,
                    skipped=tuple(skipped),
                )
            processed_total += processed
            skipped.extend(chunk_skips)

        logger.info(
            "Commit completed report_date=%s processed=%s skipped=%s override=%s",
            report_date.isoformat(),
            processed_total,
            len(skipped),
            override_existing,
        )
        return CommitResult(
            success=True,
            message=f"Saved {processed_total} account balance(s) for {report_date.isoformat()}.",
            processed_count=processed_total,
            skipped=tuple(skipped),
        )

    # ------------------------------------------------------------------
    # Transaction unit
    # ------------------------------------------------------------------

    def _commit_chunk(
        self,
        chunk: Sequence[PreviewEntry],
        *,
        report_date: date,
        override_existing: bool,
    ) -> tuple[int, list[CommitSkip]]:
        processed = 0
        skipped: list[CommitSkip] = []
        affected_bankers: set[int] = set()

        with self._session_factory() as db:
            with db.begin():
                for entry in sorted(chunk, key=lock_order):
                    reason = self._apply_entry(
                        db,
                        entry,
                        report_date=report_date,
                        override_existing=override_existing,
                        affected_bankers=affected_bankers,
                    )
                    if reason is None:
                        processed += 1
                    else:
                        skipped.append(CommitSkip(account_number=entry.account_number, reason=reason))

                db.flush()
                self._lock_bankers(db, affected_bankers)
                for banker_id in sorted(affected_bankers):
                    self._recompute_daily_balance(db, banker_id=banker_id, report_date=report_date)

        return processed, skipped

    def _apply_entry(
        self,
        db: Session,
        entry: PreviewEntry,
        *,
        report_date: date,
        override_existing: bool,
        affected_bankers: set[int],
    ) -> SkipReason | None:
        account = self._lock_account(db, entry)
        if account is None:
            logger.info("Commit skipped account=%s reason=account_not_found", entry.account_number)
            return SkipReason.ACCOUNT_NOT_FOUND

        history = db.scalars(
            select(AccountTransaction).where(
                AccountTransaction.account_id == account.id,
                AccountTransaction.transaction_date == report_date,
            )
        ).first()
        if history is not None and not override_existing:
            return SkipReason.ALREADY_RECORDED

        new_balance = quantize_money(entry.current_balance)
        new_available = quantize_money(entry.available_balance)
        previous_balance = quantize_money(account.current_balance)
        previous_available = quantize_money(account.available_balance)

        if history is None and not (
            balances_differ(previous_balance, new_balance)
            or balances_differ(previous_available, new_available)
        ):
            return SkipReason.UNCHANGED

        if history is None:
            db.add(
                AccountTransaction(
                    account_id=account.id,
                    transaction_date=report_date,
                    amount=new_balance - previous_balance,
                    previous_balance=previous_balance,
                    new_balance=new_balance,
                    available_balance=new_available,
                )
            )
        else:
            # Rewrite in place; previous_balance stays the pre-report value.
            history.new_balance = new_balance
            history.amount = new_balance - quantize_money(history.previous_balance)
            history.available_balance = new_available

        account.current_balance = new_balance
        account.available_balance = new_available
        account.last_transaction_at = end_of_day(report_date)

        if account.universal_banker_id is not None:
            affected_bankers.add(account.universal_banker_id)
        affected_bankers.add(entry.db_universal_banker_id)
        return None

    def _lock_account(self, db: Session, entry: PreviewEntry) -> Account | None:
        if entry.db_account_id is not None:
            account = db.scalars(
                select(Account).where(Account.id == entry.db_account_id).with_for_update()
            ).first()
            if account is not None:
                return account

        account_number = normalize_account_number(entry.account_number)
        if not account_number:
            return None
        return db.scalars(
            select(Account).where(Account.account_number == account_number).with_for_update()
        ).first()

    def _lock_bankers(self, db: Session, banker_ids: set[int]) -> None:
        if not banker_ids:
            return
        db.execute(
            select(UniversalBanker.id)
            .where(UniversalBanker.id.in_(sorted(banker_ids)))
            .order_by(UniversalBanker.id)
            .with_for_update()
        )

    def _recompute_daily_balance(self, db: Session, *, banker_id: int, report_date: date) -> None:
        total = db.scalar(
            select(func.coalesce(func.sum(Account.current_balance), 0)).where(
                Account.universal_banker_id == banker_id
            )
        )
        total_balance = quantize_money(Decimal(str(total)))

        previous = db.scalars(
            select(BankerDailyBalance).where(
                BankerDailyBalance.universal_banker_id == banker_id,
                BankerDailyBalance.date == report_date - timedelta(days=1),
            )
        ).first()
        previous_total = quantize_money(previous.total_balance) if previous is not None else Decimal("0")

        daily = db.scalars(
            select(BankerDailyBalance).where(
                BankerDailyBalance.universal_banker_id == banker_id,
                BankerDailyBalance.date == report_date,
            )
        ).first()
        if daily is None:
            daily = BankerDailyBalance(universal_banker_id=banker_id, date=report_date)
            db.add(daily)
        daily.total_balance = total_balance
        daily.daily_change = total_balance - previous_total

        logger.info(
            "Banker daily balance updated banker_id=%s date=%s total=%s change=%s",
            banker_id,
            report_date.isoformat(),
            total_balance,
            daily.daily_change,
        )


@lru_cache(maxsize=1)
def get_balance_commit_service() -> BalanceCommitService:
    settings = get_import_settings()
    return BalanceCommitService(commit_chunk_size=settings.commit_chunk_size)
