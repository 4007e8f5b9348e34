"""
Module: vending_engines.reconciliation
Responsibility:
    Pair consecutive RECEIVED collections of each machine into periods,
    total the cash-paid sales inside each period and classify the
    difference between expected (sales) and actual (collected) cash.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import vending_kernel/domain and logging.

Invariants enforced:
    - A period is half-open: previous.collected_at < order_date <= collected_at.
    - The first collection of each machine only opens a period; it never
      produces an item (there is no earlier baseline).
    - Classification precedence: no_sales (expected == actual == 0), then
      matched (round2(expected - actual) == 0), then shortage
      (actual < expected), else overage. Exactly one status per item.
    - difference == round2(expected - actual); percent_deviation ==
      round2(difference / expected * 100), or 0 when expected is 0.
    - Every monetary output passes through round_money().
    - Items are ordered by period end, most recent first; ties by machine
      code then collection id, so identical inputs give identical output.

Failure modes:
    - ValueError from round_money() for non-numeric amounts.

Usage:
    from vending_engines.reconciliation import reconcile

    report = reconcile(collections=events, sales=cash_sales)
    report.summary.shortage_count
"""

from __future__ import annotations

from bisect import bisect_right
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Iterable, Protocol, Sequence, runtime_checkable
from uuid import UUID

from vending_kernel.domain.timezone import DateBound
from vending_kernel.domain.values import round_money

from vending_engines.tracer import traced_engine

_ZERO = Decimal("0.00")


class ReconciliationStatus(str, Enum):
    """Outcome of comparing expected and collected cash for one period."""

    MATCHED = "matched"
    SHORTAGE = "shortage"  # Less cash collected than sold
    OVERAGE = "overage"  # More cash collected than sold
    NO_SALES = "no_sales"  # Nothing sold, nothing collected


# =============================================================================
# Inputs
# =============================================================================


@dataclass(frozen=True)
class CollectionEvent:
    """A RECEIVED cash pickup as seen by reconciliation."""

    id: UUID
    machine_id: UUID
    machine_code: str
    machine_name: str
    amount: Decimal | None  # None until counted; reconciles as 0
    collected_at: datetime


@dataclass(frozen=True)
class CashSale:
    """A sale paid in cash and not refunded."""

    machine_code: str
    price: Decimal
    order_date: datetime


@runtime_checkable
class CollectionDirectory(Protocol):
    """Source of collection events."""

    def list(
        self,
        status: str,
        machine_code: str | None = None,
        date_from: DateBound | None = None,
        date_to: DateBound | None = None,
    ) -> Iterable[CollectionEvent]:
        ...


# =============================================================================
# Outputs
# =============================================================================


@dataclass(frozen=True)
class CollectionPeriod:
    """The interval (period_start, collection.collected_at]."""

    collection: CollectionEvent
    period_start: datetime

    @property
    def period_end(self) -> datetime:
        return self.collection.collected_at

    @property
    def machine_code(self) -> str:
        return self.collection.machine_code


@dataclass(frozen=True)
class PeriodSales:
    expected: Decimal
    cash_orders_count: int


@dataclass(frozen=True)
class ReconciliationItem:
    machine_code: str
    machine_name: str
    period_start: datetime
    period_end: datetime
    expected_amount: Decimal
    actual_amount: Decimal
    difference: Decimal
    percent_deviation: Decimal
    status: ReconciliationStatus
    cash_orders_count: int
    collection_id: UUID


@dataclass(frozen=True)
class ReconciliationSummary:
    total_expected: Decimal
    total_actual: Decimal
    total_difference: Decimal
    matched_count: int
    shortage_count: int
    overage_count: int
    no_sales_count: int

    @property
    def total_items(self) -> int:
        return self.matched_count + self.shortage_count + self.overage_count + self.no_sales_count


@dataclass(frozen=True)
class ReconciliationReport:
    items: tuple[ReconciliationItem, ...]
    summary: ReconciliationSummary


# =============================================================================
# Steps
# =============================================================================


def pair_collections(collections: Iterable[CollectionEvent]) -> tuple[CollectionPeriod, ...]:
    """
    Pair every collection with the previous one of the same machine.

    Collections are grouped by machine and sorted by collected_at; the
    pair (i - 1, i) forms a period ending at collection i. The first
    collection of each machine yields no period.
    """
    by_machine: dict[UUID, list[CollectionEvent]] = defaultdict(list)
    for event in collections:
        by_machine[event.machine_id].append(event)

    periods: list[CollectionPeriod] = []
    for events in by_machine.values():
        events.sort(key=lambda e: (e.collected_at, str(e.id)))
        for i in range(1, len(events)):
            periods.append(
                CollectionPeriod(collection=events[i], period_start=events[i - 1].collected_at)
            )
    return tuple(periods)


def aggregate_sales(
    periods: Sequence[CollectionPeriod],
    sales: Iterable[CashSale],
) -> list[PeriodSales]:
    """
    Total and count the cash sales inside each period.

    Machine codes compare case-insensitively. Results line up with
    ``periods`` by position.
    """
    by_code: dict[str, list[CashSale]] = defaultdict(list)
    for sale in sales:
        by_code[sale.machine_code.strip().lower()].append(sale)

    dates: dict[str, list[datetime]] = {}
    for code, code_sales in by_code.items():
        code_sales.sort(key=lambda s: s.order_date)
        dates[code] = [s.order_date for s in code_sales]

    result: list[PeriodSales] = []
    for period in periods:
        code = period.machine_code.strip().lower()
        code_dates = dates.get(code, [])
        lo = bisect_right(code_dates, period.period_start)
        hi = bisect_right(code_dates, period.period_end)
        in_period = by_code.get(code, [])[lo:hi]
        expected = round_money(sum((s.price for s in in_period), _ZERO))
        result.append(PeriodSales(expected=expected, cash_orders_count=len(in_period)))
    return result


def classify(expected: Decimal, actual: Decimal) -> ReconciliationStatus:
    expected = round_money(expected)
    actual = round_money(actual)
    if expected == 0 and actual == 0:
        return ReconciliationStatus.NO_SALES
    if round_money(expected - actual) == 0:
        return ReconciliationStatus.MATCHED
    if actual < expected:
        return ReconciliationStatus.SHORTAGE
    return ReconciliationStatus.OVERAGE


def build_item(
    collection: CollectionEvent,
    period_start: datetime,
    expected: Decimal | int | float | None,
    cash_orders_count: int,
) -> ReconciliationItem:
    """Classify one period; a null collection amount counts as 0."""
    expected_amount = round_money(expected)
    actual_amount = round_money(collection.amount)
    difference = round_money(expected_amount - actual_amount)
    if expected_amount > 0:
        percent = round_money(difference / expected_amount * 100)
    else:
        percent = _ZERO
    return ReconciliationItem(
        machine_code=collection.machine_code,
        machine_name=collection.machine_name,
        period_start=period_start,
        period_end=collection.collected_at,
        expected_amount=expected_amount,
        actual_amount=actual_amount,
        difference=difference,
        percent_deviation=percent,
        status=classify(expected_amount, actual_amount),
        cash_orders_count=int(cash_orders_count or 0),
        collection_id=collection.id,
    )


def order_items(items: Iterable[ReconciliationItem]) -> tuple[ReconciliationItem, ...]:
    """Most recent period first; ties by machine code, then collection id."""
    ordered = sorted(items, key=lambda i: (i.machine_code, str(i.collection_id)))
    ordered.sort(key=lambda i: i.period_end, reverse=True)
    return tuple(ordered)


def summarize(items: Iterable[ReconciliationItem]) -> ReconciliationSummary:
    """Fold totals and per-status counts over the items."""
    items = tuple(items)
    counts = {status: 0 for status in ReconciliationStatus}
    for item in items:
        counts[item.status] += 1
    return ReconciliationSummary(
        total_expected=round_money(sum((i.expected_amount for i in items), _ZERO)),
        total_actual=round_money(sum((i.actual_amount for i in items), _ZERO)),
        total_difference=round_money(sum((i.difference for i in items), _ZERO)),
        matched_count=counts[ReconciliationStatus.MATCHED],
        shortage_count=counts[ReconciliationStatus.SHORTAGE],
        overage_count=counts[ReconciliationStatus.OVERAGE],
        no_sales_count=counts[ReconciliationStatus.NO_SALES],
    )


def _report_counts(report: ReconciliationReport) -> dict[str, int]:
    summary = report.summary
    return {
        "items": summary.total_items,
        "shortage_count": summary.shortage_count,
        "overage_count": summary.overage_count,
    }


@traced_engine("reconciliation", "1.0", describe=_report_counts)
def build_report(items: Iterable[ReconciliationItem]) -> ReconciliationReport:
    """Order items and attach their summary."""
    ordered = order_items(items)
    return ReconciliationReport(items=ordered, summary=summarize(ordered))


@traced_engine("reconciliation", "1.0", describe=_report_counts)
def reconcile(
    *,
    collections: Iterable[CollectionEvent],
    sales: Iterable[CashSale],
) -> ReconciliationReport:
    """Full in-memory pass: pair, aggregate, classify, summarize."""
    periods = pair_collections(collections)
    totals = aggregate_sales(periods, sales)
    items = [
        build_item(period.collection, period.period_start, total.expected, total.cash_orders_count)
        for period, total in zip(periods, totals)
    ]
    return build_report(items)
