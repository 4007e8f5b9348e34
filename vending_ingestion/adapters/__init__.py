"""Spreadsheet reader and SQL-backed collaborators for ingestion."""

from vending_ingestion.adapters.archive_sink import DirectoryArchiveSink
from vending_ingestion.adapters.machine_directory import SqlMachineDirectory
from vending_ingestion.adapters.xlsx_adapter import (
    SheetData,
    SheetRow,
    XlsxWorkbookReader,
    normalize_header_cell,
)

__all__ = [
    "DirectoryArchiveSink",
    "SheetData",
    "SheetRow",
    "SqlMachineDirectory",
    "XlsxWorkbookReader",
    "normalize_header_cell",
]
