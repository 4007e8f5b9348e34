"""
vending_ingestion.domain.types -- Pure frozen dataclasses for spreadsheet import.

ZERO I/O. Row outcomes are values, not exceptions: the normalizer returns one
of NormalizedRow / SkippedRow / FailedRow per spreadsheet row and the import
service sorts them into buckets.

Collaborator contracts (MachineDirectory, ArchiveSink) are Protocols so the
import service can run against SQL-backed directories in production and
in-memory fakes in tests.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Protocol, Union, runtime_checkable
from uuid import UUID


# =============================================================================
# Column mapping
# =============================================================================


@dataclass(frozen=True)
class ColumnMap:
    """1-based spreadsheet column index for every semantic sales field."""

    order_number: int
    product: int
    flavor: int
    payment_resource: int
    payment_status: int
    machine_code: int
    address: int
    price: int
    order_date: int

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class ColumnDetection:
    """Outcome of header detection; ``columns`` is always complete."""

    columns: ColumnMap
    detected: dict[str, int]  # Fields matched by header text (1-based)
    missing_critical: tuple[str, ...] = ()
    used_defaults: tuple[str, ...] = ()  # Fields that fell back to the default layout

    @property
    def fell_back(self) -> bool:
        """True when a critical field was missing and the whole default layout was used."""
        return bool(self.missing_critical)


# =============================================================================
# Row outcomes
# =============================================================================


class SkipReason(str, Enum):
    """Why a row was skipped (not an error, counted separately)."""

    PAYMENT_RESOURCE = "payment_resource"  # Payment resource is not cash/card
    MACHINE_CODE = "machine_code"  # Machine code cell empty


@dataclass(frozen=True)
class SalesRecord:
    """A normalized transaction ready for insertion."""

    order_number: str | None
    product_name: str | None
    flavor: str | None
    payment_method: str
    payment_status: str
    machine_code: str
    machine_id: UUID | None
    address: str | None
    price: Decimal
    order_date: datetime
    import_batch_id: str

    def to_row(self) -> dict[str, Any]:
        """Column dict for a bulk insert statement."""
        return asdict(self)


@dataclass(frozen=True)
class NormalizedRow:
    row_number: int
    record: SalesRecord
    machine_resolved: bool


@dataclass(frozen=True)
class SkippedRow:
    row_number: int
    reason: SkipReason
    detail: str = ""


@dataclass(frozen=True)
class FailedRow:
    row_number: int
    message: str


RowOutcome = Union[NormalizedRow, SkippedRow, FailedRow]


# =============================================================================
# Service results
# =============================================================================


@dataclass(frozen=True)
class ImportSummary:
    """What the caller of import_spreadsheet sees."""

    imported: int
    skipped: int
    duplicates: int
    errors: tuple[str, ...]  # Truncated for the caller; the full list is logged
    batch_id: str
    machines_found: int
    machines_not_found: tuple[str, ...]


@dataclass(frozen=True)
class DeleteBatchResult:
    deleted_count: int


@dataclass(frozen=True)
class ImportBatchInfo:
    batch_id: str
    imported_at: datetime
    orders_count: int


@dataclass(frozen=True)
class ImportFileInfo:
    batch_id: str
    original_name: str
    file_ref: str
    message_ref: str | None
    file_size: int | None
    created_at: datetime | None


# =============================================================================
# Collaborator contracts
# =============================================================================


@dataclass(frozen=True)
class MachineRef:
    code: str
    id: UUID


@dataclass(frozen=True)
class ArchiveReceipt:
    """Handle returned by an archive sink for a stored file."""

    file_ref: str
    message_ref: str | None = None


@runtime_checkable
class MachineDirectory(Protocol):
    """Source of known machines for code resolution."""

    def lookup_all(self) -> Iterable[MachineRef]:
        ...


@runtime_checkable
class ArchiveSink(Protocol):
    """Stores a copy of an uploaded file.

    Returning None (not raising) means archiving is disabled or unavailable.
    """

    def store(
        self,
        data: bytes,
        batch_id: str,
        file_name: str,
        caption: str,
    ) -> ArchiveReceipt | None:
        ...
