"""
app/readers package marker.
"""

from app.readers.spreadsheet_reader import (
    SpreadsheetReadError,
    UnsupportedSpreadsheetError,
    iter_chunks,
    iter_source_rows,
)

__all__ = [
    "SpreadsheetReadError",
    "UnsupportedSpreadsheetError",
    "iter_chunks",
    "iter_source_rows",
]
