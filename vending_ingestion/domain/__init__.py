"""Pure domain types for spreadsheet ingestion."""

from vending_ingestion.domain.types import (
    ArchiveReceipt,
    ArchiveSink,
    ColumnDetection,
    ColumnMap,
    DeleteBatchResult,
    FailedRow,
    ImportBatchInfo,
    ImportFileInfo,
    ImportSummary,
    MachineDirectory,
    MachineRef,
    NormalizedRow,
    RowOutcome,
    SalesRecord,
    SkippedRow,
    SkipReason,
)

__all__ = [
    "ArchiveReceipt",
    "ArchiveSink",
    "ColumnDetection",
    "ColumnMap",
    "DeleteBatchResult",
    "FailedRow",
    "ImportBatchInfo",
    "ImportFileInfo",
    "ImportSummary",
    "MachineDirectory",
    "MachineRef",
    "NormalizedRow",
    "RowOutcome",
    "SalesRecord",
    "SkippedRow",
    "SkipReason",
]
