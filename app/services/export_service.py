"""
app/services/export_service.py

Banker performance report: per-banker daily managed balances over a date
range, compared with a 1 January baseline.

Report layout (one row per banker):

    NO | NIP | NAME | POSITION | BRANCH | ACCOUNTS | BASELINE (1 JAN <year>)
       | <one column per day, in millions, "-" when no balance was recorded>
       | GROWTH | GROWTH (%)

Growth compares the last recorded balance in the range (or the baseline
when nothing was recorded) with the baseline. Growth % is 0 when the
baseline is 0.

No transformation logic lives in the router or the background job.
"""

from __future__ import annotations

import calendar
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from functools import lru_cache
from typing import IO

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font
from openpyxl.utils import get_column_letter
from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from app.config import get_export_settings
from db.models.account import Account
from db.models.banker_daily_balance import BankerDailyBalance
from db.models.universal_banker import UniversalBanker

MISSING_VALUE = "-"
MIN_BASELINE_YEAR = 2000
MAX_BASELINE_YEAR = 2100

_MILLION = Decimal("1000000")
_TWO_PLACES = Decimal("0.01")
_STATIC_HEADERS = ("NO", "NIP", "NAME", "POSITION", "BRANCH", "ACCOUNTS")
_GROWTH_HEADERS = ("GROWTH", "GROWTH (%)")
_HEADER_ROW_MONTH = 3
_HEADER_ROW_DAY = 4
_FIRST_DATA_ROW = 5


class ExportRequestError(ValueError):
    """
    Raised when export parameters are invalid.
    """


def validate_export_request(
    *,
    banker_ids: Sequence[int],
    start_date: date,
    end_date: date,
    baseline_year: int,
    max_range_days: int,
) -> None:
    if not banker_ids:
        raise ExportRequestError("At least one universal banker must be selected.")
    if end_date < start_date:
        raise ExportRequestError("end_date must be on or after start_date.")
    if (end_date - start_date).days + 1 > max_range_days:
        raise ExportRequestError(f"Date range must not exceed {max_range_days} days.")
    if not MIN_BASELINE_YEAR <= baseline_year <= MAX_BASELINE_YEAR:
        raise ExportRequestError(
            f"baseline_year must be between {MIN_BASELINE_YEAR} and {MAX_BASELINE_YEAR}."
        )


def _round2(value: Decimal) -> Decimal:
    return value.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)


# ---------------------------------------------------------------------------
# Report containers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BankerPerformanceRow:
    no: int
    nip: str
    name: str
    position: str
    branch: str
    account_count: int
    baseline_balance: Decimal
    daily_totals: tuple[Decimal | str, ...]
    growth_amount: Decimal
    growth_percent: Decimal

    def cells(self) -> list[object]:
        return [
            self.no,
            self.nip,
            self.name,
            self.position,
            self.branch,
            self.account_count,
            float(self.baseline_balance),
            *(value if isinstance(value, str) else float(value) for value in self.daily_totals),
            float(self.growth_amount),
            float(self.growth_percent),
        ]


@dataclass(frozen=True)
class BankerPerformanceReport:
    start_date: date
    end_date: date
    baseline_date: date
    days: tuple[date, ...]
    rows: tuple[BankerPerformanceRow, ...] = field(default_factory=tuple)

    @property
    def headers(self) -> list[str]:
        return [
            *_STATIC_HEADERS,
            f"BASELINE (1 JAN {self.baseline_date.year})",
            *(str(day.day) for day in self.days),
            *_GROWTH_HEADERS,
        ]


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


class BankerPerformanceReportBuilder:
    """
    Aggregates banker daily balances into a BankerPerformanceReport.
    """

    def __init__(self, *, default_position: str, default_branch_name: str) -> None:
        self._default_position = default_position
        self._default_branch_name = default_branch_name

    def build(
        self,
        db: Session,
        *,
        banker_ids: Sequence[int],
        start_date: date,
        end_date: date,
        baseline_year: int,
    ) -> BankerPerformanceReport:
        baseline_date = date(baseline_year, 1, 1)
        days = tuple(
            start_date + timedelta(days=offset)
            for offset in range((end_date - start_date).days + 1)
        )
        ids = sorted(set(banker_ids))

        bankers = db.scalars(
            select(UniversalBanker)
            .options(selectinload(UniversalBanker.branch))
            .where(UniversalBanker.id.in_(ids))
            .order_by(UniversalBanker.id)
        ).all()

        account_counts: dict[int, int] = {
            banker_id: count
            for banker_id, count in db.execute(
                select(Account.universal_banker_id, func.count(Account.id))
                .where(Account.universal_banker_id.in_(ids))
                .group_by(Account.universal_banker_id)
            )
        }

        baselines: dict[int, Decimal] = {
            banker_id: Decimal(str(total))
            for banker_id, total in db.execute(
                select(BankerDailyBalance.universal_banker_id, BankerDailyBalance.total_balance).where(
                    BankerDailyBalance.universal_banker_id.in_(ids),
                    BankerDailyBalance.date == baseline_date,
                )
            )
        }

        daily: dict[int, dict[date, Decimal]] = {}
        for banker_id, day, total in db.execute(
            select(
                BankerDailyBalance.universal_banker_id,
                BankerDailyBalance.date,
                BankerDailyBalance.total_balance,
            ).where(
                BankerDailyBalance.universal_banker_id.in_(ids),
                BankerDailyBalance.date >= start_date,
                BankerDailyBalance.date <= end_date,
            )
        ):
            daily.setdefault(banker_id, {})[day] = Decimal(str(total))

        rows = [
            self._build_row(
                no=index,
                banker=banker,
                account_count=account_counts.get(banker.id, 0),
                baseline=baselines.get(banker.id, Decimal("0")),
                balances=daily.get(banker.id, {}),
                days=days,
            )
            for index, banker in enumerate(bankers, start=1)
        ]

        return BankerPerformanceReport(
            start_date=start_date,
            end_date=end_date,
            baseline_date=baseline_date,
            days=days,
            rows=tuple(rows),
        )

    def _build_row(
        self,
        *,
        no: int,
        banker: UniversalBanker,
        account_count: int,
        baseline: Decimal,
        balances: dict[date, Decimal],
        days: tuple[date, ...],
    ) -> BankerPerformanceRow:
        daily_totals: list[Decimal | str] = []
        last_balance: Decimal | None = None
        for day in days:
            total = balances.get(day)
            if total is None:
                daily_totals.append(MISSING_VALUE)
                continue
            daily_totals.append(_round2(total / _MILLION))
            last_balance = total

        final_balance = last_balance if last_balance is not None else baseline
        growth_amount = final_balance - baseline
        growth_percent = _round2(growth_amount / baseline * 100) if baseline > 0 else Decimal("0")

        return BankerPerformanceRow(
            no=no,
            nip=banker.nip or "N/A",
            name=banker.name,
            position=banker.position or self._default_position,
            branch=banker.branch.name if banker.branch is not None else self._default_branch_name,
            account_count=account_count,
            baseline_balance=baseline,
            daily_totals=tuple(daily_totals),
            growth_amount=growth_amount,
            growth_percent=growth_percent,
        )


# ---------------------------------------------------------------------------
# Workbook rendering
# ---------------------------------------------------------------------------


def write_workbook(report: BankerPerformanceReport, target: str | IO[bytes]) -> None:
    """
    Render the report as an .xlsx workbook with a two-level month/day header.
    """

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Banker Performance"

    static_count = len(_STATIC_HEADERS) + 1
    total_columns = static_count + len(report.days) + len(_GROWTH_HEADERS)
    last_column = get_column_letter(total_columns)
    bold = Font(bold=True)
    centered = Alignment(horizontal="center", vertical="center", wrap_text=True)

    sheet["A1"] = "Universal Banker Daily Managed Balance Report"
    sheet["A1"].font = Font(bold=True, size=16)
    sheet["A1"].alignment = Alignment(horizontal="center")
    sheet.merge_cells(f"A1:{last_column}1")

    sheet["A2"] = (
        f"Report period: {report.start_date.strftime('%d %b %Y')} "
        f"to {report.end_date.strftime('%d %b %Y')}"
    )
    sheet.merge_cells(f"A2:{last_column}2")

    headers = report.headers
    fixed_columns = list(range(1, static_count + 1)) + list(
        range(static_count + len(report.days) + 1, total_columns + 1)
    )
    for column in fixed_columns:
        letter = get_column_letter(column)
        sheet.cell(row=_HEADER_ROW_MONTH, column=column, value=headers[column - 1])
        sheet.merge_cells(f"{letter}{_HEADER_ROW_MONTH}:{letter}{_HEADER_ROW_DAY}")

    column = static_count + 1
    for (year, month), month_days in _group_by_month(report.days):
        start_letter = get_column_letter(column)
        end_letter = get_column_letter(column + len(month_days) - 1)
        sheet.cell(
            row=_HEADER_ROW_MONTH,
            column=column,
            value=f"{calendar.month_name[month].upper()} {year}",
        )
        if len(month_days) > 1:
            sheet.merge_cells(f"{start_letter}{_HEADER_ROW_MONTH}:{end_letter}{_HEADER_ROW_MONTH}")
        for day in month_days:
            sheet.cell(row=_HEADER_ROW_DAY, column=column, value=day.day)
            column += 1

    for header_row in sheet.iter_rows(min_row=_HEADER_ROW_MONTH, max_row=_HEADER_ROW_DAY):
        for cell in header_row:
            cell.font = bold
            cell.alignment = centered

    for offset, row in enumerate(report.rows):
        for col_index, value in enumerate(row.cells(), start=1):
            sheet.cell(row=_FIRST_DATA_ROW + offset, column=col_index, value=value)

    workbook.save(target)


def _group_by_month(days: Sequence[date]) -> list[tuple[tuple[int, int], list[date]]]:
    groups: list[tuple[tuple[int, int], list[date]]] = []
    for day in days:
        key = (day.year, day.month)
        if groups and groups[-1][0] == key:
            groups[-1][1].append(day)
        else:
            groups.append((key, [day]))
    return groups


@lru_cache(maxsize=1)
def get_report_builder() -> BankerPerformanceReportBuilder:
    settings = get_export_settings()
    return BankerPerformanceReportBuilder(
        default_position=settings.default_position,
        default_branch_name=settings.default_branch_name,
    )
