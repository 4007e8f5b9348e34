"""
Runtime settings schema.

Frozen dataclasses; YAML files are parsed into these by ``loader.py``.
Every field has a default so an empty or missing settings file yields a
working local configuration (SQLite file database, UTC+5 business time).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timezone

from vending_kernel.domain.timezone import DEFAULT_UTC_OFFSET_HOURS, business_timezone

DEFAULT_DATABASE_URL = "sqlite:///vending.db"


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = DEFAULT_DATABASE_URL
    echo: bool = False
    pool_size: int = 10


@dataclass(frozen=True)
class IngestionSettings:
    """Import limits."""

    chunk_size: int = 500  # Rows per INSERT statement
    max_client_errors: int = 50  # Parse errors returned to the caller
    max_logged_errors: int = 10  # Parse errors logged in detail
    skip_log_limit: int = 3  # Skipped rows logged per skip reason


@dataclass(frozen=True)
class ReconciliationSettings:
    utc_offset_hours: float = DEFAULT_UTC_OFFSET_HOURS

    @property
    def timezone(self) -> timezone:
        return business_timezone(self.utc_offset_hours)


@dataclass(frozen=True)
class ArchiveSettings:
    enabled: bool = False
    directory: str = "archive"  # Used by DirectoryArchiveSink
    max_workers: int = 1


@dataclass(frozen=True)
class AppSettings:
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    ingestion: IngestionSettings = field(default_factory=IngestionSettings)
    reconciliation: ReconciliationSettings = field(default_factory=ReconciliationSettings)
    archive: ArchiveSettings = field(default_factory=ArchiveSettings)
