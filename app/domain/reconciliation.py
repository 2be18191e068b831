"""
app/domain/reconciliation.py

Domain models used by the spreadsheet reconciliation flow: validated rows,
row errors, preview entries, job status and commit results.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

MONEY_QUANTUM = Decimal("0.0001")
BALANCE_EPSILON = Decimal("0.0001")


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(MONEY_QUANTUM)


def format_money(value: Decimal) -> str:
    """Render a Decimal amount for JSON payloads without float rounding."""
    return format(quantize_money(value), "f")


def parse_money(value: Any, *, field_name: str) -> Decimal:
    """Parse an amount coming back from a JSON payload."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{field_name} must be a number")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{field_name} must be a number") from exc


def balances_differ(left: Decimal, right: Decimal) -> bool:
    return abs(left - right) > BALANCE_EPSILON


# ---------------------------------------------------------------------------
# Row-level types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SourceRow:
    """
    One raw spreadsheet line as decoded by the reader.

    row_number is the 1-based position in the source file (header is row 1).
    """

    row_number: int
    values: Mapping[str, Any]


@dataclass(frozen=True)
class ValidatedRow:
    """
    Typed, sanitized projection of one spreadsheet row.
    """

    row_number: int
    banker_code: str
    client_cif: str
    client_name: str
    account_number: str
    balance: Decimal
    available_balance: Decimal
    product_code: str
    currency: str = "IDR"


@dataclass(frozen=True)
class RowError:
    """
    One row-level validation or resolution problem.
    """

    row_number: int
    field: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "row_number": self.row_number,
            "field": self.field,
            "message": self.message,
        }


# ---------------------------------------------------------------------------
# Resolved entity references
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BankerRef:
    id: int
    code: str
    name: str


@dataclass(frozen=True)
class ClientRef:
    id: int
    cif: str
    name: str


@dataclass(frozen=True)
class AccountRef:
    """
    Read-only snapshot of an account taken during an import run.
    """

    id: int
    account_number: str
    client_id: int
    universal_banker_id: int | None
    current_balance: Decimal
    available_balance: Decimal


# ---------------------------------------------------------------------------
# Preview
# ---------------------------------------------------------------------------


class AccountMatch(str, Enum):
    FOUND = "found"
    NEW = "new"


@dataclass(frozen=True)
class PreviewEntry:
    """
    One accepted row of an import preview.

    Carries the resolved database identifiers so the commit step does not
    have to repeat entity resolution.
    """

    row_number: int
    cif: str
    client_name: str
    account_number: str
    product_code: str
    currency: str
    previous_balance: Decimal
    previous_available_balance: Decimal
    current_balance: Decimal
    available_balance: Decimal
    balance_change: Decimal
    change_percent: Decimal
    account_status: AccountMatch
    db_account_id: int | None
    db_client_id: int
    db_universal_banker_id: int
    universal_banker_name: str
    warning_ub_mismatch: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "row_number": self.row_number,
            "cif": self.cif,
            "client_name": self.client_name,
            "account_number": self.account_number,
            "product_code": self.product_code,
            "currency": self.currency,
            "previous_balance": format_money(self.previous_balance),
            "previous_available_balance": format_money(self.previous_available_balance),
            "current_balance": format_money(self.current_balance),
            "available_balance": format_money(self.available_balance),
            "balance_change": format_money(self.balance_change),
            "change_percent": format(self.change_percent, "f"),
            "account_status": self.account_status.value,
            "db_account_id": self.db_account_id,
            "db_client_id": self.db_client_id,
            "db_universal_banker_id": self.db_universal_banker_id,
            "universal_banker_name": self.universal_banker_name,
            "warning_ub_mismatch": self.warning_ub_mismatch,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> PreviewEntry:
        """
        Rebuild an entry from a preview payload submitted back by the operator.

        Raises ValueError (or KeyError) on malformed input.
        """

        current_balance = parse_money(payload["current_balance"], field_name="current_balance")
        previous_balance = parse_money(payload.get("previous_balance", 0), field_name="previous_balance")
        db_account_id = payload.get("db_account_id")
        return cls(
            row_number=int(payload.get("row_number") or 0),
            cif=str(payload.get("cif") or ""),
            client_name=str(payload.get("client_name") or ""),
            account_number=str(payload["account_number"]),
            product_code=str(payload.get("product_code") or ""),
            currency=str(payload.get("currency") or "IDR"),
            previous_balance=previous_balance,
            previous_available_balance=parse_money(
                payload.get("previous_available_balance", 0),
                field_name="previous_available_balance",
            ),
            current_balance=current_balance,
            available_balance=parse_money(payload["available_balance"], field_name="available_balance"),
            balance_change=current_balance - previous_balance,
            change_percent=parse_money(payload.get("change_percent", 0), field_name="change_percent"),
            account_status=AccountMatch(payload.get("account_status") or AccountMatch.FOUND.value),
            db_account_id=int(db_account_id) if db_account_id is not None else None,
            db_client_id=int(payload["db_client_id"]),
            db_universal_banker_id=int(payload["db_universal_banker_id"]),
            universal_banker_name=str(payload.get("universal_banker_name") or ""),
            warning_ub_mismatch=payload.get("warning_ub_mismatch"),
        )


@dataclass
class ImportSummary:
    """
    Counters accumulated over one import run. Never decremented.
    """

    total_rows: int = 0
    rows_skipped: int = 0
    accounts_to_update: int = 0
    new_transactions_detected: int = 0
    valid_rows: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "total_rows_in_excel": self.total_rows,
            "rows_skipped": self.rows_skipped,
            "accounts_to_update": self.accounts_to_update,
            "new_transactions_detected": self.new_transactions_detected,
            "valid_rows": self.valid_rows,
        }


@dataclass(frozen=True)
class PreviewResult:
    """
    Final, immutable output of one import run.
    """

    report_date: date
    valid_rows: tuple[PreviewEntry, ...]
    summary: ImportSummary
    errors: tuple[RowError, ...]
    universal_bankers_to_update_ids: frozenset[int] = field(default_factory=frozenset)

    def to_dict(self) -> dict[str, Any]:
        return {
            "report_date": self.report_date.isoformat(),
            "valid_rows": [entry.to_dict() for entry in self.valid_rows],
            "summary": self.summary.to_dict(),
            "errors": [error.to_dict() for error in self.errors],
            "universal_bankers_to_update_ids": sorted(self.universal_bankers_to_update_ids),
        }


# ---------------------------------------------------------------------------
# Job status
# ---------------------------------------------------------------------------


class JobState(str, Enum):
    NOT_FOUND = "not_found"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATES = frozenset({JobState.COMPLETED, JobState.FAILED})


@dataclass(frozen=True)
class JobStatus:
    """
    Tagged job status as read back from the result cache.

    payload is the raw cached dict; it is None only for NOT_FOUND.
    """

    state: JobState
    payload: dict[str, Any] | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def message(self) -> str | None:
        if self.payload is None:
            return None
        message = self.payload.get("message")
        return str(message) if message is not None else None

    @classmethod
    def not_found(cls) -> JobStatus:
        return cls(state=JobState.NOT_FOUND)

    @classmethod
    def from_payload(cls, payload: dict[str, Any] | None) -> JobStatus:
        if payload is None:
            return cls.not_found()
        try:
            state = JobState(payload.get("status"))
        except ValueError:
            return cls(state=JobState.FAILED, payload={"status": "failed", "message": "Unreadable job status."})
        return cls(state=state, payload=payload)

    def to_dict(self) -> dict[str, Any]:
        if self.payload is None:
            return {"status": self.state.value}
        return dict(self.payload)


# ---------------------------------------------------------------------------
# Commit
# ---------------------------------------------------------------------------


class SkipReason(str, Enum):
    ACCOUNT_NOT_FOUND = "account_not_found"
    ALREADY_RECORDED = "already_recorded"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class CommitSkip:
    account_number: str
    reason: SkipReason

    def to_dict(self) -> dict[str, str]:
        return {"account_number": self.account_number, "reason": self.reason.value}


@dataclass(frozen=True)
class CommitResult:
    """
    Outcome of committing an approved preview subset.
    """

    success: bool
    message: str
    processed_count: int
    skipped: tuple[CommitSkip, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "processed_count": self.processed_count,
            "skipped": [skip.to_dict() for skip in self.skipped],
        }
