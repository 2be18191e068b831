"""
app/readers/spreadsheet_reader.py

Streaming readers for uploaded CSV and XLSX spreadsheets.

Rows are yielded lazily as SourceRow values numbered by their position in
the file (header is row 1), so callers can chunk them freely without
changing row numbers.
"""

from __future__ import annotations

import csv
import logging
import zipfile
from collections.abc import Iterator
from itertools import islice
from pathlib import Path
from typing import Any

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from app.domain.reconciliation import SourceRow

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = frozenset({".csv", ".xlsx"})


class SpreadsheetReadError(Exception):
    """Raised when a spreadsheet cannot be read at all."""


class UnsupportedSpreadsheetError(SpreadsheetReadError):
    """Raised for file types the reader does not handle."""


def _is_blank_cell(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def _header_names(cells: list[Any] | tuple[Any, ...]) -> list[str | None]:
    names: list[str | None] = []
    for cell in cells:
        name = str(cell).strip() if cell is not None else ""
        names.append(name or None)
    return names


def _build_row(headers: list[str | None], values: list[Any] | tuple[Any, ...]) -> dict[str, Any]:
    return {
        header: values[index] if index < len(values) else None
        for index, header in enumerate(headers)
        if header is not None
    }


def _iter_csv_rows(path: Path) -> Iterator[SourceRow]:
    with path.open("r", encoding="utf-8-sig", newline="") as handle:
        reader = csv.reader(handle)
        header_cells = next(reader, None)
        if header_cells is None or all(_is_blank_cell(cell) for cell in header_cells):
            raise SpreadsheetReadError("Spreadsheet is empty or has no header row.")
        headers = _header_names(header_cells)

        for offset, cells in enumerate(reader, start=2):
            if all(_is_blank_cell(cell) for cell in cells):
                continue
            yield SourceRow(row_number=offset, values=_build_row(headers, cells))


def _iter_xlsx_rows(path: Path) -> Iterator[SourceRow]:
    workbook = load_workbook(path, read_only=True, data_only=True)
    try:
        worksheet = workbook.active
        if worksheet is None:
            raise SpreadsheetReadError("Workbook has no active worksheet.")

        rows = worksheet.iter_rows(values_only=True)
        header_cells = next(rows, None)
        if header_cells is None or all(_is_blank_cell(cell) for cell in header_cells):
            raise SpreadsheetReadError("Spreadsheet is empty or has no header row.")
        headers = _header_names(header_cells)

        for offset, cells in enumerate(rows, start=2):
            if cells is None or all(_is_blank_cell(cell) for cell in cells):
                continue
            yield SourceRow(row_number=offset, values=_build_row(headers, cells))
    finally:
        workbook.close()


def iter_source_rows(path: str | Path) -> Iterator[SourceRow]:
    """
    Yield every non-blank data row of a spreadsheet.

    Raises UnsupportedSpreadsheetError for unknown extensions and
    SpreadsheetReadError for files that cannot be decoded.
    """

    file_path = Path(path)
    suffix = file_path.suffix.lower()
    if suffix == ".csv":
        rows = _iter_csv_rows(file_path)
    elif suffix == ".xlsx":
        rows = _iter_xlsx_rows(file_path)
    else:
        raise UnsupportedSpreadsheetError(
            f"Unsupported spreadsheet format '{suffix or file_path.name}'. "
            f"Allowed: {', '.join(sorted(SUPPORTED_EXTENSIONS))}."
        )

    try:
        yield from rows
    except SpreadsheetReadError:
        raise
    except (OSError, UnicodeDecodeError, csv.Error, InvalidFileException, zipfile.BadZipFile, KeyError, ValueError) as exc:
        logger.warning("Spreadsheet read failed path=%s error=%s", file_path.name, exc)
        raise SpreadsheetReadError(f"Spreadsheet could not be read: {exc}") from exc


def iter_chunks(path: str | Path, chunk_size: int) -> Iterator[list[SourceRow]]:
    """Group iter_source_rows() output into lists of at most chunk_size rows."""
    if chunk_size < 1:
        raise ValueError("chunk_size must be >= 1")

    rows = iter_source_rows(path)
    while True:
        chunk = list(islice(rows, chunk_size))
        if not chunk:
            return
        yield chunk
