"""Tests for SalesSelector aggregation views and order listing."""

from datetime import date
from decimal import Decimal

import pytest

from vending_kernel.models import PaymentMethod, PaymentStatus
from vending_kernel.selectors import OrderFilters, SalesSelector

from factories import utc

CARD = PaymentMethod.CARD
REFUNDED = PaymentStatus.REFUNDED


@pytest.fixture
def selector(session) -> SalesSelector:
    return SalesSelector(session)


@pytest.fixture
def sales(create_sale, create_machine):
    """
    Business time is UTC+5, so 19:30 UTC on Jan 1 is already Jan 2 locally.
    Only order "1" resolved to a registered machine.
    """
    a01 = create_machine("A01", "Lobby")
    return [
        create_sale("A01", "1000", utc(2025, 1, 1, 5, 0), order_number="1", machine=a01),
        create_sale("A01", "2000", utc(2025, 1, 1, 6, 0), payment_method=CARD, order_number="2"),
        create_sale("A01", "500", utc(2025, 1, 1, 7, 0), payment_status=REFUNDED, order_number="3"),
        create_sale("B02", "3000", utc(2025, 1, 1, 19, 30), order_number="4"),
        create_sale("b02", "4000", utc(2025, 1, 2, 8, 0), payment_method=CARD, order_number="5"),
        create_sale("C03", "250.50", utc(2025, 1, 3, 8, 0), order_number="6"),
    ]


class TestDailyStats:
    def test_grouped_by_business_day(self, selector, sales):
        stats = selector.daily_stats()

        assert [s.day for s in stats] == [date(2025, 1, 1), date(2025, 1, 2), date(2025, 1, 3)]
        jan1, jan2, jan3 = stats
        assert (jan1.cash_total, jan1.cash_count) == (Decimal("1000.00"), 1)
        assert (jan1.card_total, jan1.card_count) == (Decimal("2000.00"), 1)
        assert (jan2.cash_total, jan2.card_total) == (Decimal("3000.00"), Decimal("4000.00"))
        assert jan2.total == Decimal("7000.00")
        assert jan3.cash_total == Decimal("250.50")

    def test_date_range(self, selector, sales):
        stats = selector.daily_stats(date_from="2025-01-02", date_to="2025-01-02")

        assert [s.day for s in stats] == [date(2025, 1, 2)]
        assert stats[0].cash_count == 1

    def test_empty(self, selector):
        assert selector.daily_stats() == []


class TestTopMachines:
    def test_ranked_by_paid_total(self, selector, sales):
        top = selector.top_machines()

        assert [(m.machine_code, m.machine_name, m.total, m.orders_count) for m in top] == [
            ("b02", None, Decimal("4000.00"), 1),
            ("A01", "Lobby", Decimal("3000.00"), 2),
            ("B02", None, Decimal("3000.00"), 1),
            ("C03", None, Decimal("250.50"), 1),
        ]

    def test_limit_and_range(self, selector, sales):
        top = selector.top_machines(date_from="2025-01-03", limit=1)

        assert [m.machine_code for m in top] == ["C03"]


class TestSummary:
    def test_per_machine_and_totals(self, selector, sales):
        summary = selector.summary()

        a01 = next(m for m in summary.machines if m.machine_code == "A01")
        assert (a01.cash_total, a01.cash_count) == (Decimal("1000.00"), 1)
        assert (a01.card_total, a01.card_count) == (Decimal("2000.00"), 1)
        assert (a01.refund_total, a01.refund_count) == (Decimal("500.00"), 1)
        assert a01.machine_name == "Lobby"

        totals = summary.totals
        assert (totals.machine_code, totals.machine_name) == (None, None)
        assert totals.cash_total == Decimal("4250.50")
        assert totals.cash_count == 3
        assert totals.card_total == Decimal("6000.00")
        assert totals.refund_count == 1

    def test_machines_by_cash_total(self, selector, sales):
        assert [m.machine_code for m in selector.summary().machines] == ["B02", "A01", "C03", "b02"]

    def test_empty(self, selector):
        summary = selector.summary()

        assert summary.machines == ()
        assert summary.totals.cash_total == Decimal("0.00")


class TestListOrders:
    def test_newest_first_with_total(self, selector, sales):
        rows, total = selector.list_orders()

        assert total == 6
        assert [r.order_number for r in rows] == ["6", "5", "4", "3", "2", "1"]
        assert rows[0].payment_method is PaymentMethod.CASH
        assert rows[0].price == Decimal("250.50")
        assert rows[0].imported_at is not None

    def test_pagination(self, selector, sales):
        page1, total = selector.list_orders(page=1, limit=4)
        page2, _ = selector.list_orders(page=2, limit=4)

        assert total == 6
        assert len(page1) == 4
        assert [r.order_number for r in page2] == ["2", "1"]

    def test_page_below_one_is_first_page(self, selector, sales):
        rows, _ = selector.list_orders(page=0, limit=2)
        assert [r.order_number for r in rows] == ["6", "5"]

    def test_machine_code_case_insensitive(self, selector, sales):
        rows, total = selector.list_orders(OrderFilters(machine_code="B02"))

        assert total == 2
        assert {r.machine_code for r in rows} == {"B02", "b02"}

    def test_payment_filters(self, selector, sales):
        _, refunds = selector.list_orders(OrderFilters(payment_status=REFUNDED.value))
        cards, card_total = selector.list_orders(OrderFilters(payment_method=CARD.value))

        assert refunds == 1
        assert card_total == 2
        assert all(r.payment_method is CARD for r in cards)

    def test_date_filter_uses_business_days(self, selector, sales):
        rows, total = selector.list_orders(OrderFilters(date_from="2025-01-02", date_to="2025-01-02"))

        assert total == 2
        assert [r.order_number for r in rows] == ["5", "4"]


def test_machine_codes(selector, sales):
    assert selector.machine_codes() == ["A01", "B02", "C03", "b02"]
