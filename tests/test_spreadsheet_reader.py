from __future__ import annotations

from pathlib import Path

import pytest
from openpyxl import Workbook

from app.readers.spreadsheet_reader import (
    SpreadsheetReadError,
    UnsupportedSpreadsheetError,
    iter_chunks,
    iter_source_rows,
)

HEADER = ["pn_relationship_officer", "textbox15", "balance"]


def _write_csv(path: Path, lines: list[str]) -> Path:
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def _write_xlsx(path: Path, rows: list[list[object]]) -> Path:
    workbook = Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    workbook.save(path)
    return path


class TestCsv:
    def test_rows_are_numbered_by_file_position(self, tmp_path: Path) -> None:
        path = _write_csv(
            tmp_path / "report.csv",
            [",".join(HEADER), "RO1,AB123,100", ",,", "RO2,CD456,200"],
        )

        rows = list(iter_source_rows(path))

        assert [row.row_number for row in rows] == [2, 4]
        assert rows[0].values == {"pn_relationship_officer": "RO1", "textbox15": "AB123", "balance": "100"}

    def test_utf8_bom_is_ignored(self, tmp_path: Path) -> None:
        path = tmp_path / "bom.csv"
        path.write_bytes(("\ufeff" + ",".join(HEADER) + "\nRO1,AB123,1\n").encode("utf-8"))

        rows = list(iter_source_rows(path))

        assert "pn_relationship_officer" in rows[0].values

    def test_empty_file_is_an_error(self, tmp_path: Path) -> None:
        path = _write_csv(tmp_path / "empty.csv", [""])

        with pytest.raises(SpreadsheetReadError):
            list(iter_source_rows(path))

    def test_chunks(self, tmp_path: Path) -> None:
        lines = [",".join(HEADER)] + [f"RO1,A{i},{i}" for i in range(7)]
        path = _write_csv(tmp_path / "many.csv", lines)

        chunks = list(iter_chunks(path, 3))

        assert [len(chunk) for chunk in chunks] == [3, 3, 1]
        assert chunks[-1][0].row_number == 8

    def test_invalid_chunk_size(self, tmp_path: Path) -> None:
        path = _write_csv(tmp_path / "x.csv", [",".join(HEADER)])

        with pytest.raises(ValueError):
            list(iter_chunks(path, 0))


class TestXlsx:
    def test_reads_native_cell_values(self, tmp_path: Path) -> None:
        path = _write_xlsx(
            tmp_path / "report.xlsx",
            [HEADER, ["RO1", "AB123", 1500.5], [None, None, None], ["RO2", 12345, 10]],
        )

        rows = list(iter_source_rows(path))

        assert [row.row_number for row in rows] == [2, 4]
        assert rows[0].values["balance"] == 1500.5
        assert rows[1].values["textbox15"] == 12345

    def test_corrupt_workbook(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.xlsx"
        path.write_bytes(b"this is not a zip archive")

        with pytest.raises(SpreadsheetReadError):
            list(iter_source_rows(path))


def test_unsupported_extension(tmp_path: Path) -> None:
    path = tmp_path / "legacy.xls"
    path.write_bytes(b"\xd0\xcf\x11\xe0")

    with pytest.raises(UnsupportedSpreadsheetError):
        list(iter_source_rows(path))
