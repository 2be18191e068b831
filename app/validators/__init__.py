"""
app/validators package marker.
"""

from app.validators.row_validator import (
    ROW_SCHEMA,
    FieldSpec,
    RowValidator,
    extract_banker_code,
    normalize_account_number,
    normalize_row,
    parse_amount,
)

__all__ = [
    "ROW_SCHEMA",
    "FieldSpec",
    "RowValidator",
    "extract_banker_code",
    "normalize_account_number",
    "normalize_row",
    "parse_amount",
]
