"""
Module: vending_engines
Responsibility:
    Pure calculation engines for the vending sales core. Zero I/O.

Architecture position:
    May only import vending_kernel/domain and logging.
    MUST NOT import vending_services.

Usage:
    from vending_engines.reconciliation import reconcile, ReconciliationStatus
"""

from vending_engines.reconciliation import (
    CashSale,
    CollectionDirectory,
    CollectionEvent,
    CollectionPeriod,
    PeriodSales,
    ReconciliationItem,
    ReconciliationReport,
    ReconciliationStatus,
    ReconciliationSummary,
    aggregate_sales,
    build_item,
    build_report,
    classify,
    order_items,
    pair_collections,
    reconcile,
    summarize,
)
from vending_kernel.domain.values import round_money

__all__ = [
    "CashSale",
    "CollectionDirectory",
    "CollectionEvent",
    "CollectionPeriod",
    "PeriodSales",
    "ReconciliationItem",
    "ReconciliationReport",
    "ReconciliationStatus",
    "ReconciliationSummary",
    "aggregate_sales",
    "build_item",
    "build_report",
    "classify",
    "order_items",
    "pair_collections",
    "reconcile",
    "round_money",
    "summarize",
]
