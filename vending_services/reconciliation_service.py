"""
ReconciliationService -- expected vs. collected cash per machine per period.

Responsibility:
    Loads RECEIVED collections and cash-paid sales and hands them to the
    pure engine in vending_engines.reconciliation for classification and
    summary. Read-only and idempotent.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Reads through the session it is given; never writes.

Two loading strategies, same results:
    - SQL (default): one statement. A CTE computes LAG(collected_at) per
      machine, sales are LEFT JOINed into (previous, current] and summed;
      rows without a previous collection are dropped.
    - Directory: when a CollectionDirectory is injected, collections come
      from it and are paired in memory; the sales of all involved
      machines are loaded with one query bounded by the overall window.

Date bounds go through vending_kernel.domain.timezone, the same helper the
sales views use, so a bare date means the whole business-local day.
"""

from __future__ import annotations

from datetime import tzinfo
from typing import Any

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from vending_kernel.db.base import UTCDateTime
from vending_kernel.domain.timezone import BUSINESS_TZ, DateBound, lower_bound, upper_bound
from vending_kernel.logging_config import LogContext, get_logger
from vending_kernel.models.collection import Collection, CollectionStatus
from vending_kernel.models.machine import Machine
from vending_kernel.models.sales_order import PaymentMethod, PaymentStatus, SalesOrder

from vending_engines.reconciliation import (
    CashSale,
    CollectionDirectory,
    CollectionEvent,
    ReconciliationReport,
    aggregate_sales,
    build_item,
    build_report,
    pair_collections,
)

logger = get_logger("services.reconciliation")

EXPORT_COLUMNS = (
    "machine_code",
    "machine_name",
    "period_start",
    "period_end",
    "expected_amount",
    "actual_amount",
    "difference",
    "percent_deviation",
    "status",
    "cash_orders_count",
)


class ReconciliationService:
    """Computes reconciliation reports on demand."""

    def __init__(
        self,
        session: Session,
        collection_directory: CollectionDirectory | None = None,
        tz: tzinfo = BUSINESS_TZ,
    ):
        self._session = session
        self._directory = collection_directory
        self._tz = tz

    def get_reconciliation(
        self,
        machine_code: str | None = None,
        date_from: DateBound | None = None,
        date_to: DateBound | None = None,
    ) -> ReconciliationReport:
        """
        Reconcile every pair of consecutive RECEIVED collections.

        The first collection of each machine inside the filtered window only
        opens a period; sales before it are not reconciled.
        """
        with LogContext.bind(producer="reconciliation", machine_code=machine_code):
            if self._directory is None:
                report = self._reconcile_sql(machine_code, date_from, date_to)
            else:
                report = self._reconcile_directory(machine_code, date_from, date_to)

            summary = report.summary
            logger.info(
                "reconciliation_computed",
                extra={
                    "date_from": date_from,
                    "date_to": date_to,
                    "items": summary.total_items,
                    "matched": summary.matched_count,
                    "shortage": summary.shortage_count,
                    "overage": summary.overage_count,
                    "no_sales": summary.no_sales_count,
                    "total_difference": summary.total_difference,
                },
            )
        return report

    # ------------------------------------------------------------------
    # SQL path
    # ------------------------------------------------------------------

    def _collection_conditions(
        self,
        machine_code: str | None,
        date_from: DateBound | None,
        date_to: DateBound | None,
    ) -> list:
        conditions = [Collection.status == CollectionStatus.RECEIVED.value]
        if machine_code:
            conditions.append(func.lower(Machine.code) == machine_code.strip().lower())
        start = lower_bound(date_from, self._tz)
        end = upper_bound(date_to, self._tz)
        if start is not None:
            conditions.append(Collection.collected_at >= start)
        if end is not None:
            conditions.append(Collection.collected_at <= end)
        return conditions

    def _reconcile_sql(
        self,
        machine_code: str | None,
        date_from: DateBound | None,
        date_to: DateBound | None,
    ) -> ReconciliationReport:
        prev_collected_at = func.lag(Collection.collected_at, type_=UTCDateTime()).over(
            partition_by=Collection.machine_id,
            order_by=(Collection.collected_at, Collection.id),
        )
        periods = (
            select(
                Collection.id.label("collection_id"),
                Collection.machine_id.label("machine_id"),
                Machine.code.label("machine_code"),
                Machine.name.label("machine_name"),
                Collection.amount.label("amount"),
                Collection.collected_at.label("collected_at"),
                prev_collected_at.label("prev_collected_at"),
            )
            .join(Machine, Machine.id == Collection.machine_id)
            .where(*self._collection_conditions(machine_code, date_from, date_to))
            .cte("collection_periods")
        )

        sales_in_period = and_(
            func.lower(SalesOrder.machine_code) == func.lower(periods.c.machine_code),
            SalesOrder.payment_method == PaymentMethod.CASH.value,
            SalesOrder.payment_status == PaymentStatus.PAID.value,
            SalesOrder.order_date > periods.c.prev_collected_at,
            SalesOrder.order_date <= periods.c.collected_at,
        )
        group_columns = (
            periods.c.collection_id,
            periods.c.machine_id,
            periods.c.machine_code,
            periods.c.machine_name,
            periods.c.amount,
            periods.c.collected_at,
            periods.c.prev_collected_at,
        )
        query = (
            select(
                *group_columns,
                func.sum(SalesOrder.price).label("expected"),
                func.count(SalesOrder.id).label("cash_orders_count"),
            )
            .select_from(periods)
            .outerjoin(SalesOrder, sales_in_period)
            .where(periods.c.prev_collected_at.is_not(None))
            .group_by(*group_columns)
            .order_by(periods.c.collected_at.desc())
        )

        items = []
        for row in self._session.execute(query):
            collection = CollectionEvent(
                id=row.collection_id,
                machine_id=row.machine_id,
                machine_code=row.machine_code,
                machine_name=row.machine_name,
                amount=row.amount,
                collected_at=row.collected_at,
            )
            items.append(
                build_item(collection, row.prev_collected_at, row.expected, row.cash_orders_count)
            )
        return build_report(items)

    # ------------------------------------------------------------------
    # Directory path
    # ------------------------------------------------------------------

    def _reconcile_directory(
        self,
        machine_code: str | None,
        date_from: DateBound | None,
        date_to: DateBound | None,
    ) -> ReconciliationReport:
        events = list(
            self._directory.list(
                CollectionStatus.RECEIVED.value,
                machine_code=machine_code,
                date_from=date_from,
                date_to=date_to,
            )
        )
        periods = pair_collections(events)
        if not periods:
            return build_report([])

        codes = sorted({p.machine_code.strip().lower() for p in periods})
        window_start = min(p.period_start for p in periods)
        window_end = max(p.period_end for p in periods)
        query = (
            select(SalesOrder.machine_code, SalesOrder.price, SalesOrder.order_date)
            .where(func.lower(SalesOrder.machine_code).in_(codes))
            .where(SalesOrder.payment_method == PaymentMethod.CASH.value)
            .where(SalesOrder.payment_status == PaymentStatus.PAID.value)
            .where(SalesOrder.order_date > window_start)
            .where(SalesOrder.order_date <= window_end)
        )
        sales = [
            CashSale(machine_code=code, price=price, order_date=order_date)
            for code, price, order_date in self._session.execute(query)
        ]

        totals = aggregate_sales(periods, sales)
        items = [
            build_item(p.collection, p.period_start, t.expected, t.cash_orders_count)
            for p, t in zip(periods, totals)
        ]
        return build_report(items)

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_rows(self, report: ReconciliationReport) -> list[dict[str, Any]]:
        """
        Flat rows for an external report writer: one per item, then a totals
        row. Timestamps are business-local; no formatting beyond that.
        """
        rows: list[dict[str, Any]] = []
        for item in report.items:
            rows.append(
                {
                    "machine_code": item.machine_code,
                    "machine_name": item.machine_name,
                    "period_start": item.period_start.astimezone(self._tz),
                    "period_end": item.period_end.astimezone(self._tz),
                    "expected_amount": item.expected_amount,
                    "actual_amount": item.actual_amount,
                    "difference": item.difference,
                    "percent_deviation": item.percent_deviation,
                    "status": item.status.value,
                    "cash_orders_count": item.cash_orders_count,
                }
            )

        summary = report.summary
        rows.append(
            {
                "machine_code": "TOTAL",
                "machine_name": None,
                "period_start": None,
                "period_end": None,
                "expected_amount": summary.total_expected,
                "actual_amount": summary.total_actual,
                "difference": summary.total_difference,
                "percent_deviation": None,
                "status": None,
                "cash_orders_count": sum(i.cash_orders_count for i in report.items),
            }
        )
        return rows
