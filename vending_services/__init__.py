"""
Services: I/O orchestration over the pure engines and kernel selectors.
"""

from vending_services.directories import SqlCollectionDirectory
from vending_services.reconciliation_service import EXPORT_COLUMNS, ReconciliationService

__all__ = ["EXPORT_COLUMNS", "ReconciliationService", "SqlCollectionDirectory"]
