"""
Module: vending_kernel.selectors.sales_selector
Responsibility: Read-only rollups and listings over imported sales orders:
    per-day totals, top machines, per-machine cash/card/refund summary,
    paginated order listing and the distinct machine code list.
Architecture position: Kernel > Selectors.  May import from models/,
    db/ and domain/.  MUST NOT import from outer layers.

Invariants enforced:
    - Date filters resolve through vending_kernel.domain.timezone
      lower_bound/upper_bound, the same helper reconciliation uses, so a
      bare date means the whole business-local day everywhere.
    - Every monetary total leaves through round_money() (2 places, half
      away from zero).
    - "Sales" means payment_status = paid; refunds are reported separately.

Failure modes:
    - ValueError from the timezone helper for malformed date strings.
"""

from collections import OrderedDict
from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from decimal import Decimal
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from vending_kernel.domain.values import round_money
from vending_kernel.domain.timezone import (
    BUSINESS_TZ,
    DateBound,
    business_date,
    lower_bound,
    upper_bound,
)
from vending_kernel.models.machine import Machine
from vending_kernel.models.sales_order import PaymentMethod, PaymentStatus, SalesOrder
from vending_kernel.selectors.base import BaseSelector

_ZERO = Decimal("0.00")
# One row per spreadsheet code even if only some of its orders resolved
_MACHINE_NAME = func.max(Machine.name)


@dataclass(frozen=True)
class DailyStats:
    """Paid sales of one business-local day."""

    day: date
    cash_total: Decimal
    cash_count: int
    card_total: Decimal
    card_count: int

    @property
    def total(self) -> Decimal:
        return self.cash_total + self.card_total


@dataclass(frozen=True)
class MachineTotal:
    machine_code: str
    machine_name: str | None
    total: Decimal
    orders_count: int


@dataclass(frozen=True)
class MachineSummary:
    """Cash, card and refund totals for one machine (or all machines)."""

    machine_code: str | None
    machine_name: str | None
    cash_total: Decimal
    cash_count: int
    card_total: Decimal
    card_count: int
    refund_total: Decimal
    refund_count: int


@dataclass(frozen=True)
class SalesSummary:
    machines: tuple[MachineSummary, ...]
    totals: MachineSummary


@dataclass(frozen=True)
class OrderFilters:
    machine_code: str | None = None
    payment_method: str | None = None
    payment_status: str | None = None
    date_from: DateBound | None = None
    date_to: DateBound | None = None


@dataclass(frozen=True)
class OrderRow:
    id: UUID
    order_number: str | None
    product_name: str | None
    flavor: str | None
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    machine_code: str
    machine_id: UUID | None
    address: str | None
    price: Decimal
    order_date: datetime
    import_batch_id: str
    imported_at: datetime


def _to_row(order: SalesOrder) -> OrderRow:
    return OrderRow(
        id=order.id,
        order_number=order.order_number,
        product_name=order.product_name,
        flavor=order.flavor,
        payment_method=PaymentMethod(order.payment_method),
        payment_status=PaymentStatus(order.payment_status),
        machine_code=order.machine_code,
        machine_id=order.machine_id,
        address=order.address,
        price=round_money(order.price),
        order_date=order.order_date,
        import_batch_id=order.import_batch_id,
        imported_at=order.imported_at,
    )


class SalesSelector(BaseSelector[SalesOrder]):
    """
    Aggregation views over sales orders.

    Non-goals:
        - No report formatting; callers render the returned dataclasses.
    """

    def __init__(self, session: Session, tz: tzinfo = BUSINESS_TZ):
        super().__init__(session)
        self.tz = tz

    def _date_conditions(self, date_from: DateBound | None, date_to: DateBound | None) -> list:
        conditions = []
        start = lower_bound(date_from, self.tz)
        end = upper_bound(date_to, self.tz)
        if start is not None:
            conditions.append(SalesOrder.order_date >= start)
        if end is not None:
            conditions.append(SalesOrder.order_date <= end)
        return conditions

    def daily_stats(
        self,
        date_from: DateBound | None = None,
        date_to: DateBound | None = None,
    ) -> list[DailyStats]:
        """
        Paid cash/card totals per business-local day, oldest day first.

        Grouping happens here rather than in SQL so the business timezone
        applies identically on every database backend.
        """
        query = (
            select(SalesOrder.order_date, SalesOrder.payment_method, SalesOrder.price)
            .where(SalesOrder.payment_status == PaymentStatus.PAID.value)
            .where(*self._date_conditions(date_from, date_to))
            .order_by(SalesOrder.order_date)
        )

        days: OrderedDict[date, dict] = OrderedDict()
        for order_date, method, price in self.session.execute(query):
            day = business_date(order_date, self.tz)
            bucket = days.setdefault(
                day, {"cash_total": _ZERO, "cash_count": 0, "card_total": _ZERO, "card_count": 0}
            )
            prefix = "cash" if method == PaymentMethod.CASH.value else "card"
            bucket[f"{prefix}_total"] += price or _ZERO
            bucket[f"{prefix}_count"] += 1

        return [
            DailyStats(
                day=day,
                cash_total=round_money(b["cash_total"]),
                cash_count=b["cash_count"],
                card_total=round_money(b["card_total"]),
                card_count=b["card_count"],
            )
            for day, b in days.items()
        ]

    def top_machines(
        self,
        date_from: DateBound | None = None,
        date_to: DateBound | None = None,
        limit: int = 10,
    ) -> list[MachineTotal]:
        """Machines ranked by paid sales total, highest first."""
        total = func.sum(SalesOrder.price)
        query = (
            select(SalesOrder.machine_code, _MACHINE_NAME, total, func.count(SalesOrder.id))
            .outerjoin(Machine, SalesOrder.machine_id == Machine.id)
            .where(SalesOrder.payment_status == PaymentStatus.PAID.value)
            .where(*self._date_conditions(date_from, date_to))
            .group_by(SalesOrder.machine_code)
            .order_by(total.desc(), SalesOrder.machine_code)
            .limit(limit)
        )
        return [
            MachineTotal(
                machine_code=code,
                machine_name=name,
                total=round_money(amount),
                orders_count=count,
            )
            for code, name, amount, count in self.session.execute(query)
        ]

    def summary(
        self,
        date_from: DateBound | None = None,
        date_to: DateBound | None = None,
    ) -> SalesSummary:
        """Per-machine cash, card and refund totals, highest cash first, plus grand totals."""
        paid = SalesOrder.payment_status == PaymentStatus.PAID.value
        cash = (SalesOrder.payment_method == PaymentMethod.CASH.value) & paid
        card = (SalesOrder.payment_method == PaymentMethod.CARD.value) & paid
        refund = SalesOrder.payment_status == PaymentStatus.REFUNDED.value

        cash_total = func.sum(case((cash, SalesOrder.price), else_=0))
        query = (
            select(
                SalesOrder.machine_code,
                _MACHINE_NAME,
                cash_total,
                func.count(case((cash, 1))),
                func.sum(case((card, SalesOrder.price), else_=0)),
                func.count(case((card, 1))),
                func.sum(case((refund, SalesOrder.price), else_=0)),
                func.count(case((refund, 1))),
            )
            .outerjoin(Machine, SalesOrder.machine_id == Machine.id)
            .where(*self._date_conditions(date_from, date_to))
            .group_by(SalesOrder.machine_code)
            .order_by(cash_total.desc(), SalesOrder.machine_code)
        )

        machines = tuple(
            MachineSummary(
                machine_code=code,
                machine_name=name,
                cash_total=round_money(cash_sum),
                cash_count=cash_count,
                card_total=round_money(card_total),
                card_count=card_count,
                refund_total=round_money(refund_total),
                refund_count=refund_count,
            )
            for code, name, cash_sum, cash_count, card_total, card_count, refund_total, refund_count
            in self.session.execute(query)
        )

        totals = MachineSummary(
            machine_code=None,
            machine_name=None,
            cash_total=round_money(sum((m.cash_total for m in machines), _ZERO)),
            cash_count=sum(m.cash_count for m in machines),
            card_total=round_money(sum((m.card_total for m in machines), _ZERO)),
            card_count=sum(m.card_count for m in machines),
            refund_total=round_money(sum((m.refund_total for m in machines), _ZERO)),
            refund_count=sum(m.refund_count for m in machines),
        )
        return SalesSummary(machines=machines, totals=totals)

    def list_orders(
        self,
        filters: OrderFilters | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[OrderRow], int]:
        """
        One page of orders, newest first, and the total matching count.

        machine_code matches case-insensitively; page is 1-based.
        """
        filters = filters or OrderFilters()
        conditions = self._date_conditions(filters.date_from, filters.date_to)
        if filters.machine_code:
            conditions.append(
                func.lower(SalesOrder.machine_code) == filters.machine_code.strip().lower()
            )
        if filters.payment_method:
            conditions.append(SalesOrder.payment_method == filters.payment_method)
        if filters.payment_status:
            conditions.append(SalesOrder.payment_status == filters.payment_status)

        total = self.session.scalar(
            select(func.count(SalesOrder.id)).where(*conditions)
        ) or 0

        page = max(page, 1)
        query = (
            select(SalesOrder)
            .where(*conditions)
            .order_by(SalesOrder.order_date.desc(), SalesOrder.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        rows = [_to_row(order) for order in self.session.scalars(query)]
        return rows, total

    def machine_codes(self) -> list[str]:
        """Distinct machine codes seen in imported sales, sorted."""
        query = select(SalesOrder.machine_code).distinct().order_by(SalesOrder.machine_code)
        return list(self.session.scalars(query))
