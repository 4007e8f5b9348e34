"""
XLSX reader for point-of-sale exports.

Reads the first worksheet of an uploaded workbook from memory. The first row
is the header; every later non-empty row is one transaction. Cell values are
kept in their native types (datetime, int, float, str) because the row
normalizer decides how to interpret each field; only strings are stripped.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from io import BytesIO
from typing import Any
from zipfile import BadZipFile

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from vending_kernel.exceptions import SpreadsheetStructureError


@dataclass(frozen=True)
class SheetRow:
    """One data row; row_number is the 1-based row in the worksheet."""

    row_number: int
    values: tuple[Any, ...]


@dataclass(frozen=True)
class SheetData:
    header: tuple[Any, ...]
    rows: tuple[SheetRow, ...]


def normalize_header_cell(value: Any) -> str:
    """Header text for matching: stripped, single-spaced, lower-cased."""
    if value is None:
        return ""
    s = re.sub(r"\s+", " ", str(value)).strip()
    return s.lower()


def _cell_value(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def _is_empty(values: tuple[Any, ...]) -> bool:
    return all(v is None for v in values)


class XlsxWorkbookReader:
    """
    Read the first worksheet of an .xlsx file held in memory.

    Completely empty rows are dropped; row numbers of the remaining rows
    still match what a user sees in a spreadsheet program.
    """

    def read_sheet(self, data: bytes, file_name: str | None = None) -> SheetData:
        """
        Raises:
            SpreadsheetStructureError: bytes are not a workbook or the workbook
                has no worksheet.
        """
        try:
            wb = openpyxl.load_workbook(BytesIO(data), read_only=True, data_only=True)
        except (InvalidFileException, BadZipFile, KeyError, OSError, ValueError) as exc:
            raise SpreadsheetStructureError(f"cannot open workbook: {exc}", file_name) from exc

        try:
            if not wb.worksheets:
                raise SpreadsheetStructureError("no worksheet found", file_name)
            sheet = wb.worksheets[0]

            header: tuple[Any, ...] = ()
            rows: list[SheetRow] = []
            for row_number, raw in enumerate(sheet.iter_rows(values_only=True), start=1):
                values = tuple(_cell_value(v) for v in raw)
                if row_number == 1:
                    header = values
                    continue
                if _is_empty(values):
                    continue
                rows.append(SheetRow(row_number=row_number, values=values))
            return SheetData(header=header, rows=tuple(rows))
        finally:
            wb.close()
