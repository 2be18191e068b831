"""
app/services/import_processor.py

Row processor for performance-report imports.

Drives spreadsheet rows through the RowValidator and an EntityResolver and
accumulates the preview for one import run. Rows are consumed in bounded
chunks; chunk boundaries never change the result.

Per-row step order:

    1. Skip (no error) when the banker column is empty or "-".
    2. Validation errors  -> one RowError per failing field, row skipped.
    3. Unknown banker     -> RowError, row skipped.
    4. Account lookup     -> absence means the account is new.
    5. Unknown client     -> RowError, row skipped.
    6. Emit a preview entry and mark the banker as affected.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import date
from decimal import Decimal

from app.domain.reconciliation import (
    AccountMatch,
    AccountRef,
    BankerRef,
    ClientRef,
    ImportSummary,
    PreviewEntry,
    PreviewResult,
    RowError,
    SourceRow,
    ValidatedRow,
    balances_differ,
    quantize_money,
)
from app.repositories.entity_resolver import EntityResolver
from app.validators.row_validator import BANKER_CODE_COLUMN, RowValidator, is_blank, normalize_row

logger = logging.getLogger(__name__)

_PERCENT_QUANTUM = Decimal("0.01")
_PERCENT_BASE_THRESHOLD = Decimal("0.001")


class ReconciliationImporter:
    """
    Accumulates the preview of one import run.

    One instance per run; the accumulator is never shared between runs.
    """

    def __init__(
        self,
        *,
        resolver: EntityResolver,
        report_date: date,
        validator: RowValidator | None = None,
        log_row_errors: bool = False,
    ) -> None:
        self._resolver = resolver
        self._report_date = report_date
        self._validator = validator or RowValidator()
        self._log_row_errors = log_row_errors

        self._summary = ImportSummary()
        self._valid_rows: list[PreviewEntry] = []
        self._errors: list[RowError] = []
        self._affected_bankers: set[int] = set()

    @property
    def summary(self) -> ImportSummary:
        return self._summary

    def run(self, chunks: Iterable[Sequence[SourceRow]]) -> PreviewResult:
        """Fold every chunk into the accumulator and return the preview."""
        for chunk in chunks:
            self.process_chunk(chunk)

        result = self.get_preview_data()
        logger.info(
            "Import preview built report_date=%s total_rows=%s valid_rows=%s rows_skipped=%s errors=%s",
            self._report_date.isoformat(),
            self._summary.total_rows,
            self._summary.valid_rows,
            self._summary.rows_skipped,
            len(self._errors),
        )
        return result

    def process_chunk(self, rows: Sequence[SourceRow]) -> None:
        for source_row in rows:
            self._summary.total_rows += 1
            self._process_row(source_row)

    def get_preview_data(self) -> PreviewResult:
        summary = ImportSummary(**vars(self._summary))
        return PreviewResult(
            report_date=self._report_date,
            valid_rows=tuple(self._valid_rows),
            summary=summary,
            errors=tuple(self._errors),
            universal_bankers_to_update_ids=frozenset(self._affected_bankers),
        )

    # ------------------------------------------------------------------
    # Per-row pipeline
    # ------------------------------------------------------------------

    def _process_row(self, source_row: SourceRow) -> None:
        row = normalize_row(source_row.values)
        if is_blank(row.get(BANKER_CODE_COLUMN)):
            self._summary.rows_skipped += 1
            return

        validated, errors = self._validator.validate(row, row_number=source_row.row_number)
        if validated is None:
            self._skip_with_errors(errors)
            return

        banker = self._resolver.find_banker(validated.banker_code)
        if banker is None:
            self._skip_with_errors(
                [
                    RowError(
                        row_number=validated.row_number,
                        field="banker_code",
                        message=f"banker not found for code: {validated.banker_code}",
                    )
                ]
            )
            return

        account = self._resolver.find_account(validated.account_number)

        client = self._resolver.find_client(validated.client_cif)
        if client is None:
            self._skip_with_errors(
                [
                    RowError(
                        row_number=validated.row_number,
                        field="client_cif",
                        message=f"client not found for CIF: {validated.client_cif}",
                    )
                ]
            )
            return

        entry = self._build_entry(validated, banker=banker, client=client, account=account)
        self._valid_rows.append(entry)
        self._affected_bankers.add(banker.id)
        self._summary.valid_rows += 1

        if account is not None:
            current_changed = balances_differ(account.current_balance, entry.current_balance)
            available_changed = balances_differ(account.available_balance, entry.available_balance)
            if current_changed or available_changed:
                self._summary.accounts_to_update += 1
            if current_changed:
                self._summary.new_transactions_detected += 1

    def _skip_with_errors(self, errors: Sequence[RowError]) -> None:
        self._summary.rows_skipped += 1
        self._errors.extend(errors)
        if self._log_row_errors:
            for error in errors:
                logger.warning(
                    "Import row rejected row=%s field=%s message=%s",
                    error.row_number,
                    error.field,
                    error.message,
                )

    def _build_entry(
        self,
        validated: ValidatedRow,
        *,
        banker: BankerRef,
        client: ClientRef,
        account: AccountRef | None,
    ) -> PreviewEntry:
        current_balance = quantize_money(validated.balance)
        available_balance = quantize_money(validated.available_balance)
        if account is not None:
            previous_balance = quantize_money(account.current_balance)
            previous_available = quantize_money(account.available_balance)
        else:
            previous_balance = Decimal("0.0000")
            previous_available = Decimal("0.0000")

        balance_change = current_balance - previous_balance
        if abs(previous_balance) > _PERCENT_BASE_THRESHOLD:
            change_percent = (balance_change / previous_balance * 100).quantize(_PERCENT_QUANTUM)
        else:
            change_percent = Decimal("0.00")

        warning = None
        if (
            account is not None
            and account.universal_banker_id is not None
            and account.universal_banker_id != banker.id
        ):
            warning = (
                f"Account {account.account_number} is managed by another universal banker "
                f"(id={account.universal_banker_id})."
            )

        return PreviewEntry(
            row_number=validated.row_number,
            cif=validated.client_cif,
            client_name=validated.client_name,
            account_number=validated.account_number,
            product_code=validated.product_code,
            currency=validated.currency,
            previous_balance=previous_balance,
            previous_available_balance=previous_available,
            current_balance=current_balance,
            available_balance=available_balance,
            balance_change=balance_change,
            change_percent=change_percent,
            account_status=AccountMatch.FOUND if account is not None else AccountMatch.NEW,
            db_account_id=account.id if account is not None else None,
            db_client_id=client.id,
            db_universal_banker_id=banker.id,
            universal_banker_name=banker.name,
            warning_ub_mismatch=warning,
        )
