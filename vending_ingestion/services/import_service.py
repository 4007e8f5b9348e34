"""
Sales import service: spreadsheet bytes -> persisted sales orders.

read sheet -> detect columns -> normalize rows -> chunked insert-or-ignore
-> archive after the caller commits (best effort).

Duplicate protection lives in the database: the partial unique index on
(order_number, machine_code, order_date) plus INSERT ... ON CONFLICT DO
NOTHING RETURNING id. Rows the database ignored are counted as duplicates.
Concurrent imports of overlapping files are therefore safe without locks.

Chunks are written strictly in sequence and flushed as they go; the caller
owns the transaction. A failing chunk propagates, and chunks written before
it stay in the session for the caller to commit or roll back.
Uses structured logging (LogContext, get_logger("ingestion.*")).
"""

from __future__ import annotations

from datetime import tzinfo
from typing import Any
from uuid import uuid4

from sqlalchemy import delete, event, func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from vending_config.schema import IngestionSettings
from vending_kernel.domain.timezone import BUSINESS_TZ
from vending_kernel.exceptions import UnsupportedDialectError
from vending_kernel.logging_config import LogContext, get_logger
from vending_kernel.models.import_file import ImportFile
from vending_kernel.models.sales_order import SalesOrder

from vending_ingestion.adapters.machine_directory import SqlMachineDirectory
from vending_ingestion.adapters.xlsx_adapter import XlsxWorkbookReader, normalize_header_cell
from vending_ingestion.domain.types import (
    DeleteBatchResult,
    FailedRow,
    ImportBatchInfo,
    ImportFileInfo,
    ImportSummary,
    MachineDirectory,
    NormalizedRow,
    SalesRecord,
    SkippedRow,
    SkipReason,
)
from vending_ingestion.mapping.columns import detect_columns
from vending_ingestion.mapping.normalizer import normalize_row
from vending_ingestion.services.archive_service import FileArchiver

logger = get_logger("ingestion.import_service")

_INSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def new_batch_id() -> str:
    """Short random batch token (8 hex chars)."""
    return uuid4().hex[:8]


def _truncate_errors(errors: list[str], limit: int) -> tuple[str, ...]:
    if len(errors) <= limit:
        return tuple(errors)
    return tuple(errors[:limit]) + (f"... and {len(errors) - limit} more errors",)


class SalesImportService:
    """Imports POS spreadsheet exports into sales_orders."""

    def __init__(
        self,
        session: Session,
        machine_directory: MachineDirectory | None = None,
        archiver: FileArchiver | None = None,
        settings: IngestionSettings | None = None,
        reader: XlsxWorkbookReader | None = None,
        tz: tzinfo = BUSINESS_TZ,
    ):
        self._session = session
        self._machines = machine_directory or SqlMachineDirectory(session)
        self._archiver = archiver
        self._settings = settings or IngestionSettings()
        self._reader = reader or XlsxWorkbookReader()
        self._tz = tz

    # ------------------------------------------------------------------
    # Import
    # ------------------------------------------------------------------

    def import_spreadsheet(self, data: bytes, original_name: str | None = None) -> ImportSummary:
        """
        Import one spreadsheet.

        Raises:
            SpreadsheetStructureError: the bytes contain no readable worksheet.
                Every row-level problem is absorbed into the summary instead.
        """
        batch_id = new_batch_id()
        file_name = original_name or f"sales_{batch_id}.xlsx"

        with LogContext.bind(batch_id=batch_id, producer="ingestion"):
            logger.info("import_started", extra={"file_name": file_name, "file_size": len(data)})

            sheet = self._reader.read_sheet(data, file_name)
            logger.info(
                "header_preview",
                extra={"headers": [normalize_header_cell(v) for v in sheet.header]},
            )

            detection = detect_columns(sheet.header)
            logger.info(
                "columns_detected",
                extra={
                    "columns": detection.columns.as_dict(),
                    "fell_back": detection.fell_back,
                    "used_defaults": list(detection.used_defaults),
                },
            )

            lookup = {ref.code.strip().lower(): ref.id for ref in self._machines.lookup_all()}

            records: list[SalesRecord] = []
            errors: list[str] = []
            skip_counts = {reason: 0 for reason in SkipReason}
            found: set[str] = set()
            not_found: dict[str, str] = {}

            for row in sheet.rows:
                outcome = normalize_row(
                    row.values, row.row_number, detection.columns, lookup, batch_id, self._tz
                )
                if isinstance(outcome, NormalizedRow):
                    records.append(outcome.record)
                    code_key = outcome.record.machine_code.lower()
                    if outcome.machine_resolved:
                        found.add(code_key)
                    else:
                        not_found.setdefault(code_key, outcome.record.machine_code)
                elif isinstance(outcome, SkippedRow):
                    skip_counts[outcome.reason] += 1
                    if skip_counts[outcome.reason] <= self._settings.skip_log_limit:
                        logger.debug(
                            "row_skipped",
                            extra={
                                "row_number": outcome.row_number,
                                "reason": outcome.reason.value,
                                "detail": outcome.detail,
                            },
                        )
                elif isinstance(outcome, FailedRow):
                    errors.append(outcome.message)

            imported, duplicates = self._insert_records(records)
            skipped = sum(skip_counts.values())

            logger.info(
                "import_completed",
                extra={
                    "total_rows": len(sheet.rows),
                    "imported": imported,
                    "duplicates": duplicates,
                    "skipped": skipped,
                    "skipped_payment_resource": skip_counts[SkipReason.PAYMENT_RESOURCE],
                    "skipped_machine_code": skip_counts[SkipReason.MACHINE_CODE],
                    "errors": len(errors),
                    "machines_found": len(found),
                    "machines_not_found": len(not_found),
                },
            )
            self._log_errors(errors)
            if skipped > 0 and imported == 0:
                logger.warning(
                    "all_rows_skipped",
                    extra={
                        "skipped": skipped,
                        "columns": detection.columns.as_dict(),
                        "headers": [normalize_header_cell(v) for v in sheet.header],
                    },
                )

            self._archive_after_commit(data, batch_id, file_name, imported)

        return ImportSummary(
            imported=imported,
            skipped=skipped,
            duplicates=duplicates,
            errors=_truncate_errors(errors, self._settings.max_client_errors),
            batch_id=batch_id,
            machines_found=len(found),
            machines_not_found=tuple(sorted(not_found.values())),
        )

    def _insert_records(self, records: list[SalesRecord]) -> tuple[int, int]:
        """Insert in sequential chunks; returns (inserted, ignored)."""
        if not records:
            return 0, 0

        dialect = self._session.get_bind().dialect.name
        insert = _INSERT_DIALECTS.get(dialect)
        if insert is None:
            raise UnsupportedDialectError(dialect)

        table = SalesOrder.__table__
        chunk_size = self._settings.chunk_size
        imported = duplicates = 0
        for start in range(0, len(records), chunk_size):
            chunk = records[start:start + chunk_size]
            rows = [{"id": uuid4(), **record.to_row()} for record in chunk]
            stmt = insert(table).values(rows).on_conflict_do_nothing().returning(table.c.id)
            inserted = len(self._session.execute(stmt).all())
            imported += inserted
            duplicates += len(chunk) - inserted
            logger.debug(
                "chunk_inserted",
                extra={"offset": start, "size": len(chunk), "inserted": inserted},
            )
        self._session.flush()
        return imported, duplicates

    def _log_errors(self, errors: list[str]) -> None:
        limit = self._settings.max_logged_errors
        for message in errors[:limit]:
            logger.warning("row_parse_error", extra={"error": message})
        if len(errors) > limit:
            logger.warning("row_parse_errors_truncated", extra={"remaining": len(errors) - limit})

    def _archive_after_commit(self, data: bytes, batch_id: str, file_name: str, imported: int) -> None:
        """
        Hand the file to the archiver once the caller commits the import.

        The archiver writes its receipt through a session of its own, which
        would otherwise wait on the import's open write transaction. A
        rolled-back import is never archived.
        """
        if self._archiver is None:
            return
        pending = [True]

        def on_commit(_session: Session) -> None:
            if pending and pending.pop():
                with LogContext.bind(batch_id=batch_id, producer="ingestion"):
                    self._archive(data, batch_id, file_name, imported)

        def on_rollback(_session: Session) -> None:
            pending.clear()

        event.listen(self._session, "after_commit", on_commit, once=True)
        event.listen(self._session, "after_rollback", on_rollback, once=True)

    def _archive(self, data: bytes, batch_id: str, file_name: str, imported: int) -> None:
        try:
            self._archiver.submit(data, batch_id, file_name, imported)
        except Exception:
            logger.warning("archive_failed", exc_info=True)

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    def delete_batch(self, batch_id: str) -> DeleteBatchResult:
        """Delete every order of one import batch. Unknown ids delete nothing."""
        result = self._session.execute(
            delete(SalesOrder)
            .where(SalesOrder.import_batch_id == batch_id)
            .execution_options(synchronize_session=False)
        )
        self._session.flush()
        deleted = result.rowcount or 0
        logger.info("batch_deleted", extra={"batch_id": batch_id, "deleted_count": deleted})
        return DeleteBatchResult(deleted_count=deleted)

    def list_import_batches(self) -> list[ImportBatchInfo]:
        """Import batches with their order counts, most recent first."""
        imported_at = func.min(SalesOrder.imported_at)
        query = (
            select(SalesOrder.import_batch_id, imported_at, func.count(SalesOrder.id))
            .group_by(SalesOrder.import_batch_id)
            .order_by(imported_at.desc(), SalesOrder.import_batch_id)
        )
        return [
            ImportBatchInfo(batch_id=batch_id, imported_at=when, orders_count=count)
            for batch_id, when, count in self._session.execute(query)
        ]

    def get_import_file(self, batch_id: str) -> ImportFileInfo | None:
        """Archived file metadata for a batch, if the file was archived."""
        row: Any = self._session.scalars(
            select(ImportFile).where(ImportFile.batch_id == batch_id)
        ).first()
        if row is None:
            return None
        return ImportFileInfo(
            batch_id=row.batch_id,
            original_name=row.original_name,
            file_ref=row.file_ref,
            message_ref=row.message_ref,
            file_size=row.file_size,
            created_at=row.created_at,
        )
