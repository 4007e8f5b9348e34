"""
Best-effort archival of uploaded spreadsheets.

The import service hands the original bytes to FileArchiver.submit() after
its rows are persisted. The archiver forwards them to an ArchiveSink and, if
the sink returns a receipt, records an ImportFile row in a session of its
own. With an executor the work runs in the background and the import call
returns immediately; without one it runs inline.

Archival never fails an import: every exception is logged as
``archive_failed`` and dropped.
"""

from __future__ import annotations

from concurrent.futures import Executor, Future
from datetime import tzinfo

from sqlalchemy.orm import Session, sessionmaker

from vending_kernel.db.engine import session_scope
from vending_kernel.domain.clock import Clock, SystemClock
from vending_kernel.domain.timezone import BUSINESS_TZ
from vending_kernel.logging_config import LogContext, get_logger
from vending_kernel.models.import_file import ImportFile

from vending_ingestion.domain.types import ArchiveReceipt, ArchiveSink

logger = get_logger("ingestion.archive")


def build_caption(
    batch_id: str,
    file_name: str,
    imported: int,
    clock: Clock,
    tz: tzinfo = BUSINESS_TZ,
) -> str:
    """Human-readable caption stored next to the archived file."""
    imported_line = (
        f"Imported: {imported} orders"
        if imported > 0
        else "WARNING: 0 orders imported, check the column layout"
    )
    stamp = clock.now().astimezone(tz).strftime("%d.%m.%Y %H:%M")
    return "\n".join(
        (
            f"Sales import {batch_id}",
            f"File: {file_name}",
            imported_line,
            f"Date: {stamp}",
        )
    )


class FileArchiver:
    """Stores uploaded files through an ArchiveSink and records the receipt."""

    def __init__(
        self,
        sink: ArchiveSink,
        session_factory: sessionmaker[Session],
        executor: Executor | None = None,
        clock: Clock | None = None,
        tz: tzinfo = BUSINESS_TZ,
    ):
        self._sink = sink
        self._session_factory = session_factory
        self._executor = executor
        self._clock = clock or SystemClock()
        self._tz = tz

    def submit(
        self,
        data: bytes,
        batch_id: str,
        file_name: str,
        imported: int,
    ) -> Future | None:
        """Archive in the background (executor) or inline. Never raises."""
        caption = build_caption(batch_id, file_name, imported, self._clock, self._tz)
        if self._executor is None:
            self.archive(data, batch_id, file_name, caption)
            return None
        try:
            return self._executor.submit(self.archive, data, batch_id, file_name, caption)
        except Exception:
            logger.warning("archive_failed", extra={"batch_id": batch_id}, exc_info=True)
            return None

    def archive(
        self,
        data: bytes,
        batch_id: str,
        file_name: str,
        caption: str,
    ) -> ArchiveReceipt | None:
        """Store the file and record its receipt. Returns None on any failure."""
        with LogContext.bind(batch_id=batch_id, producer="archive"):
            try:
                receipt = self._sink.store(data, batch_id, file_name, caption)
                if receipt is None:
                    logger.info("archive_unavailable")
                    return None

                with session_scope(self._session_factory) as session:
                    session.add(
                        ImportFile(
                            batch_id=batch_id,
                            original_name=file_name,
                            file_ref=receipt.file_ref,
                            message_ref=receipt.message_ref,
                            file_size=len(data),
                        )
                    )
                logger.info(
                    "file_archived",
                    extra={"file_name": file_name, "file_size": len(data)},
                )
                return receipt
            except Exception:
                logger.warning("archive_failed", exc_info=True)
                return None
