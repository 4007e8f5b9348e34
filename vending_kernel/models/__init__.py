"""ORM models for machines, collections, sales orders and archived files."""

from vending_kernel.models.collection import Collection, CollectionStatus
from vending_kernel.models.import_file import ImportFile
from vending_kernel.models.machine import Machine
from vending_kernel.models.sales_order import PaymentMethod, PaymentStatus, SalesOrder

__all__ = [
    "Machine",
    "Collection",
    "CollectionStatus",
    "SalesOrder",
    "PaymentMethod",
    "PaymentStatus",
    "ImportFile",
]
