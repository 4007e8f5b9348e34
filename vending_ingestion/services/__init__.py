"""Import and archival services."""

from vending_ingestion.services.archive_service import FileArchiver, build_caption
from vending_ingestion.services.import_service import SalesImportService, new_batch_id

__all__ = ["FileArchiver", "SalesImportService", "build_caption", "new_batch_id"]
