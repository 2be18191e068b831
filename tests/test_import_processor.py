"""
tests/test_import_processor.py

Unit tests for ReconciliationImporter with an in-memory resolver.

Coverage
--------
- Blank banker rows are skipped without an error
- Unknown banker / unknown client produce row errors
- New vs existing accounts, balance change and percentage
- Banker mismatch warning
- Summary conservation and row-order preservation
- Chunk size never changes the preview
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from datetime import date
from decimal import Decimal

import pytest

from app.domain.reconciliation import AccountMatch, AccountRef, BankerRef, ClientRef, SourceRow
from app.services.import_processor import ReconciliationImporter

REPORT_DATE = date(2026, 10, 18)


class FakeResolver:
    def __init__(self) -> None:
        self.bankers = {
            "RO1": BankerRef(id=1, code="RO1", name="Rina"),
            "RO2": BankerRef(id=2, code="RO2", name="Rudi"),
        }
        self.clients = {"CIF001": ClientRef(id=10, cif="CIF001", name="PT Sinar Jaya")}
        self.accounts = {
            "AB123": AccountRef(
                id=100,
                account_number="AB123",
                client_id=10,
                universal_banker_id=1,
                current_balance=Decimal("1000"),
                available_balance=Decimal("900"),
            )
        }
        self.calls = 0

    def find_banker(self, code: str) -> BankerRef | None:
        self.calls += 1
        return self.bankers.get(code)

    def find_client(self, cif: str) -> ClientRef | None:
        self.calls += 1
        return self.clients.get(cif)

    def find_account(self, account_number: str) -> AccountRef | None:
        self.calls += 1
        return self.accounts.get(account_number)


def _values(**overrides: object) -> dict[str, object]:
    values: dict[str, object] = {
        "pn_relationship_officer": "RO1 - Rina",
        "textbox4": "CIF001",
        "textbox38": "PT Sinar Jaya",
        "textbox15": "AB123",
        "balance": "1500",
        "availbalance": "1400",
        "product_code": "TAB",
    }
    values.update(overrides)
    return values


def _run(rows: Sequence[SourceRow], chunk_size: int | None = None) -> ReconciliationImporter:
    importer = ReconciliationImporter(resolver=FakeResolver(), report_date=REPORT_DATE)
    size = chunk_size or max(1, len(rows))
    importer.run(rows[start : start + size] for start in range(0, len(rows), size))
    return importer


@pytest.fixture()
def importer() -> ReconciliationImporter:
    return ReconciliationImporter(resolver=FakeResolver(), report_date=REPORT_DATE)


class TestRowOutcomes:
    def test_placeholder_banker_is_skipped_silently(self, importer: ReconciliationImporter) -> None:
        importer.process_chunk([SourceRow(2, {"pn_relationship_officer": "-", "account_number": "12345"})])
        preview = importer.get_preview_data()

        assert preview.summary.rows_skipped == 1
        assert preview.summary.total_rows == 1
        assert preview.errors == ()
        assert preview.valid_rows == ()

    def test_existing_account_entry(self, importer: ReconciliationImporter) -> None:
        importer.process_chunk([SourceRow(2, _values())])
        preview = importer.get_preview_data()

        assert len(preview.valid_rows) == 1
        entry = preview.valid_rows[0]
        assert entry.account_status is AccountMatch.FOUND
        assert entry.db_account_id == 100
        assert entry.db_client_id == 10
        assert entry.db_universal_banker_id == 1
        assert entry.previous_balance == Decimal("1000")
        assert entry.current_balance == Decimal("1500")
        assert entry.balance_change == Decimal("500")
        assert entry.change_percent == Decimal("50.00")
        assert entry.warning_ub_mismatch is None
        assert preview.summary.accounts_to_update == 1
        assert preview.summary.new_transactions_detected == 1
        assert preview.universal_bankers_to_update_ids == frozenset({1})

    def test_new_account_has_zero_baseline(self, importer: ReconciliationImporter) -> None:
        importer.process_chunk([SourceRow(2, _values(textbox15="NEW-9"))])
        entry = importer.get_preview_data().valid_rows[0]

        assert entry.account_status is AccountMatch.NEW
        assert entry.db_account_id is None
        assert entry.previous_balance == Decimal("0")
        assert entry.change_percent == Decimal("0")
        assert importer.summary.accounts_to_update == 0

    def test_unchanged_balances_are_not_counted_as_updates(self, importer: ReconciliationImporter) -> None:
        importer.process_chunk([SourceRow(2, _values(balance="1000", availbalance="900.00001"))])

        assert importer.summary.valid_rows == 1
        assert importer.summary.accounts_to_update == 0
        assert importer.summary.new_transactions_detected == 0

    def test_available_only_change_counts_update_not_transaction(
        self, importer: ReconciliationImporter
    ) -> None:
        importer.process_chunk([SourceRow(2, _values(balance="1000", availbalance="950"))])

        assert importer.summary.accounts_to_update == 1
        assert importer.summary.new_transactions_detected == 0

    def test_banker_mismatch_warning(self, importer: ReconciliationImporter) -> None:
        importer.process_chunk([SourceRow(2, _values(pn_relationship_officer="RO2"))])
        entry = importer.get_preview_data().valid_rows[0]

        assert entry.db_universal_banker_id == 2
        assert entry.warning_ub_mismatch is not None
        assert "AB123" in entry.warning_ub_mismatch

    def test_unknown_banker(self, importer: ReconciliationImporter) -> None:
        importer.process_chunk([SourceRow(4, _values(pn_relationship_officer="ZZ9"))])
        preview = importer.get_preview_data()

        assert preview.valid_rows == ()
        assert preview.summary.rows_skipped == 1
        assert [(e.row_number, e.field) for e in preview.errors] == [(4, "banker_code")]
        assert "ZZ9" in preview.errors[0].message

    def test_unknown_client(self, importer: ReconciliationImporter) -> None:
        importer.process_chunk([SourceRow(5, _values(textbox4="CIF404"))])
        preview = importer.get_preview_data()

        assert preview.summary.rows_skipped == 1
        assert [(e.row_number, e.field) for e in preview.errors] == [(5, "client_cif")]

    def test_validation_errors_skip_row(self, importer: ReconciliationImporter) -> None:
        importer.process_chunk([SourceRow(6, _values(balance="n/a", availbalance="x"))])
        preview = importer.get_preview_data()

        assert preview.summary.rows_skipped == 1
        assert len(preview.errors) == 2
        assert {e.field for e in preview.errors} == {"balance", "available_balance"}

    def test_preview_payload_uses_string_amounts(self, importer: ReconciliationImporter) -> None:
        importer.process_chunk([SourceRow(2, _values(balance="1.234.56"))])
        payload = importer.get_preview_data().to_dict()

        assert payload["report_date"] == "2026-10-18"
        assert payload["valid_rows"][0]["current_balance"] == "1234.5600"
        assert payload["summary"]["total_rows_in_excel"] == 1
        assert payload["universal_bankers_to_update_ids"] == [1]


# ---------------------------------------------------------------------------
# Whole-run properties
# ---------------------------------------------------------------------------


def _mixed_rows(count: int, seed: int = 7) -> list[SourceRow]:
    rng = random.Random(seed)
    variants = [
        lambda: _values(),
        lambda: _values(textbox15=f"N{rng.randint(1, 50)}"),
        lambda: _values(pn_relationship_officer="-"),
        lambda: _values(pn_relationship_officer="ZZ9"),
        lambda: _values(textbox4="CIF404"),
        lambda: _values(balance="oops"),
        lambda: _values(pn_relationship_officer="RO2", balance=str(rng.randint(0, 5000))),
    ]
    return [SourceRow(row_number=index + 2, values=rng.choice(variants)()) for index in range(count)]


class TestRunProperties:
    def test_every_row_is_accounted_for(self) -> None:
        rows = _mixed_rows(500)
        preview = _run(rows, chunk_size=37).get_preview_data()

        assert preview.summary.total_rows == len(rows)
        assert preview.summary.total_rows == preview.summary.rows_skipped + len(preview.valid_rows)
        assert preview.summary.valid_rows == len(preview.valid_rows)

    def test_row_order_is_preserved(self) -> None:
        preview = _run(_mixed_rows(300), chunk_size=7).get_preview_data()

        valid_numbers = [entry.row_number for entry in preview.valid_rows]
        error_numbers = [error.row_number for error in preview.errors]
        assert valid_numbers == sorted(valid_numbers)
        assert error_numbers == sorted(error_numbers)

    def test_chunk_size_does_not_change_result(self) -> None:
        rows = _mixed_rows(5000)

        chunked = _run(rows, chunk_size=1000).get_preview_data()
        single = _run(rows, chunk_size=5000).get_preview_data()

        assert chunked.to_dict() == single.to_dict()

    def test_empty_run(self) -> None:
        preview = _run([]).get_preview_data()

        assert preview.summary.total_rows == 0
        assert preview.valid_rows == ()
        assert preview.errors == ()
