"""
app/validators/row_validator.py

Row-level validation and type parsing for performance-report spreadsheets.

A raw row is an untyped mapping of column name to cell value. Validation is
driven by a declarative field table: each field lists the column names it
may be read from, in priority order.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from app.domain.reconciliation import RowError, ValidatedRow

PLACEHOLDER_VALUE = "-"
DEFAULT_CURRENCY = "IDR"
BANKER_CODE_SEPARATOR = " - "
# Numeric(19, 4) column limit.
MAX_AMOUNT = Decimal("1e15")

_KEY_SEPARATOR_RE = re.compile(r"[\s\-]+")
_NON_ALNUM_RE = re.compile(r"[^0-9A-Za-z]")
_NON_NUMERIC_RE = re.compile(r"[^0-9.\-]")
_SCIENTIFIC_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)[eE][+-]?\d+$")


@dataclass(frozen=True)
class FieldSpec:
    """
    One entry of the row schema.
    """

    name: str
    columns: tuple[str, ...]
    required: bool = True
    numeric: bool = False
    default: str | None = None


BANKER_CODE_COLUMN = "pn_relationship_officer"
ACCOUNT_NUMBER_COLUMNS: tuple[str, ...] = ("textbox15", "account_number")
ACCOUNT_NUMBER_FALLBACK_COLUMNS: tuple[str, ...] = ("single_pn",)

ROW_SCHEMA: tuple[FieldSpec, ...] = (
    FieldSpec("banker_code", (BANKER_CODE_COLUMN,)),
    FieldSpec("client_cif", ("textbox4", "ciff_no", "cif")),
    FieldSpec("client_name", ("textbox38", "short_name", "client_name")),
    FieldSpec("balance", ("balance",), numeric=True),
    FieldSpec("available_balance", ("availbalance", "available_balance"), numeric=True),
    FieldSpec("product_code", ("product_code", "prod_code", "product")),
    FieldSpec("currency", ("currency", "ccy"), required=False, default=DEFAULT_CURRENCY),
)


# ---------------------------------------------------------------------------
# Normalization helpers
# ---------------------------------------------------------------------------


def normalize_key(key: Any) -> str:
    return _KEY_SEPARATOR_RE.sub("_", str(key).strip().lower())


def normalize_row(raw: Mapping[Any, Any]) -> dict[str, Any]:
    """
    Lowercase/underscore all keys and trim string values.

    Columns without a header are dropped. When two headers normalize to the
    same key the first non-blank value wins.
    """

    normalized: dict[str, Any] = {}
    for key, value in raw.items():
        if key is None or str(key).strip() == "":
            continue
        normalized_key = normalize_key(key)
        cleaned = value.strip() if isinstance(value, str) else value
        if normalized_key in normalized and not is_blank(normalized[normalized_key]):
            continue
        normalized[normalized_key] = cleaned
    return normalized


def is_blank(value: Any) -> bool:
    """True for None, empty strings and the "-" placeholder."""
    if value is None:
        return True
    text = as_text(value)
    return text == "" or text == PLACEHOLDER_VALUE


def as_text(value: Any) -> str:
    """Render a cell value as text; integral floats lose their ".0"."""
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def normalize_account_number(value: Any) -> str:
    """Strip every non-alphanumeric character. Idempotent."""
    if value is None:
        return ""
    return _NON_ALNUM_RE.sub("", as_text(value))


def extract_banker_code(value: Any) -> str | None:
    """
    Reduce a relationship-officer cell to the banker code.

    Cells are either a bare code or "CODE - Full Name". A cell with a name
    but no code (" - Jane") has no banker code.
    """

    if is_blank(value):
        return None
    text = as_text(value)
    if text.startswith(PLACEHOLDER_VALUE):
        return None
    if BANKER_CODE_SEPARATOR in text:
        text = text.split(BANKER_CODE_SEPARATOR, 1)[0].strip()
    return text or None


def parse_amount(value: Any) -> Decimal | None:
    """
    Parse a monetary cell into a Decimal, or None when it is not numeric.

    Strings keep only digits, "." and "-". Scientific notation is accepted
    as-is. With several dots, groups of exactly three digits mark thousands
    separators; otherwise the last dot is the decimal point.
    """

    if isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(repr(value)) if math.isfinite(value) else None

    text = str(value).strip()
    if _SCIENTIFIC_RE.match(text):
        return _to_decimal(text)

    text = _NON_NUMERIC_RE.sub("", text)
    if text.count(".") > 1:
        head, *groups = text.split(".")
        if all(len(group) == 3 and group.isdigit() for group in groups):
            text = head + "".join(groups)
        else:
            text = head + "".join(groups[:-1]) + "." + groups[-1]
    return _to_decimal(text)


def _to_decimal(text: str) -> Decimal | None:
    if not text or text in {"-", ".", "-."}:
        return None
    try:
        parsed = Decimal(text)
    except (InvalidOperation, ValueError):
        return None
    return parsed if parsed.is_finite() else None


# ---------------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------------


class RowValidator:
    """
    Validates and parses one raw spreadsheet row against ROW_SCHEMA.

    Stateless; one instance can be shared across threads.
    """

    def __init__(self, schema: tuple[FieldSpec, ...] = ROW_SCHEMA) -> None:
        self._schema = schema

    def validate(
        self,
        raw: Mapping[Any, Any],
        *,
        row_number: int,
    ) -> tuple[ValidatedRow | None, list[RowError]]:
        """
        Return (ValidatedRow, []) or (None, errors) with one error per field.
        """

        row = normalize_row(raw)
        errors: list[RowError] = []
        values: dict[str, Any] = {}

        for spec in self._schema:
            value = self._first_present(row, spec.columns)
            if value is None:
                if spec.required:
                    errors.append(
                        RowError(
                            row_number=row_number,
                            field=spec.name,
                            message=f"Required value is missing (columns: {', '.join(spec.columns)}).",
                        )
                    )
                values[spec.name] = spec.default
                continue

            if spec.numeric:
                amount = parse_amount(value)
                if amount is None:
                    errors.append(
                        RowError(
                            row_number=row_number,
                            field=spec.name,
                            message=f"Value is not numeric: {as_text(value)!r}.",
                        )
                    )
                elif abs(amount) >= MAX_AMOUNT:
                    errors.append(
                        RowError(
                            row_number=row_number,
                            field=spec.name,
                            message=f"Value is out of range: {as_text(value)!r}.",
                        )
                    )
                values[spec.name] = amount
            else:
                values[spec.name] = as_text(value)

        banker_code = extract_banker_code(values["banker_code"])
        if values["banker_code"] is not None and banker_code is None:
            errors.append(
                RowError(
                    row_number=row_number,
                    field="banker_code",
                    message=f"Banker code is missing in {values['banker_code']!r}.",
                )
            )

        account_number = self._resolve_account_number(row)
        if not account_number:
            checked = ACCOUNT_NUMBER_COLUMNS + ACCOUNT_NUMBER_FALLBACK_COLUMNS
            errors.append(
                RowError(
                    row_number=row_number,
                    field="account_number",
                    message=f"Account identifier is missing (columns: {', '.join(checked)}).",
                )
            )

        if errors:
            return None, errors

        return (
            ValidatedRow(
                row_number=row_number,
                banker_code=banker_code or "",
                client_cif=values["client_cif"],
                client_name=values["client_name"],
                account_number=account_number,
                balance=values["balance"],
                available_balance=values["available_balance"],
                product_code=values["product_code"],
                currency=(values["currency"] or DEFAULT_CURRENCY).upper(),
            ),
            [],
        )

    @staticmethod
    def _first_present(row: Mapping[str, Any], columns: tuple[str, ...]) -> Any:
        for column in columns:
            value = row.get(column)
            if not is_blank(value):
                return value
        return None

    def _resolve_account_number(self, row: Mapping[str, Any]) -> str:
        for columns in (ACCOUNT_NUMBER_COLUMNS, ACCOUNT_NUMBER_FALLBACK_COLUMNS):
            value = self._first_present(row, columns)
            if value is not None:
                normalized = normalize_account_number(value)
                if normalized:
                    return normalized
        return ""
