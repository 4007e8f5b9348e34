"""Read-only query selectors."""

from vending_kernel.selectors.base import BaseSelector
from vending_kernel.selectors.sales_selector import (
    DailyStats,
    MachineSummary,
    MachineTotal,
    OrderFilters,
    OrderRow,
    SalesSelector,
    SalesSummary,
)

__all__ = [
    "BaseSelector",
    "DailyStats",
    "MachineSummary",
    "MachineTotal",
    "OrderFilters",
    "OrderRow",
    "SalesSelector",
    "SalesSummary",
]
