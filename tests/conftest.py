"""
Pytest fixtures for the vending sales test suite.

Provides:
- In-memory SQLite engine per test (StaticPool, tables from Base.metadata)
- Per-test session and session factory
- Seed helpers for machines, collections and sales orders
- openpyxl workbook builder for import tests
- JSON log capture

SQLite >= 3.35 is required (RETURNING, window functions); every supported
CPython build ships a newer one.
"""

import json
import logging
from datetime import datetime
from decimal import Decimal
from io import BytesIO, StringIO
from typing import Any, Callable, Iterable
from uuid import uuid4

import pytest
from openpyxl import Workbook
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import vending_kernel.models  # noqa: F401
from vending_kernel.db.base import Base
from vending_kernel.domain.clock import DeterministicClock
from vending_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from vending_kernel.models import (
    Collection,
    CollectionStatus,
    Machine,
    PaymentMethod,
    PaymentStatus,
    SalesOrder,
)

from factories import utc


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture vending_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, import_service):
            import_service.import_spreadsheet(data)
            logs = captured_logs()
            assert any(r["message"] == "import_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("vending_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory) -> Session:
    sess = session_factory()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(utc(2025, 2, 10, 7, 30))


# =============================================================================
# Seed helpers
# =============================================================================


@pytest.fixture
def create_machine(session) -> Callable[..., Machine]:
    def _create(code: str, name: str | None = None) -> Machine:
        machine = Machine(id=uuid4(), code=code, name=name or f"Machine {code}")
        session.add(machine)
        session.flush()
        return machine

    return _create


@pytest.fixture
def create_collection(session) -> Callable[..., Collection]:
    def _create(
        machine: Machine,
        collected_at: datetime,
        amount: Decimal | str | None,
        status: CollectionStatus = CollectionStatus.RECEIVED,
    ) -> Collection:
        collection = Collection(
            id=uuid4(),
            machine_id=machine.id,
            collected_at=collected_at,
            amount=Decimal(amount) if isinstance(amount, str) else amount,
            status=status.value,
        )
        session.add(collection)
        session.flush()
        return collection

    return _create


@pytest.fixture
def create_sale(session) -> Callable[..., SalesOrder]:
    def _create(
        machine_code: str,
        price: Decimal | str,
        order_date: datetime,
        payment_method: PaymentMethod = PaymentMethod.CASH,
        payment_status: PaymentStatus = PaymentStatus.PAID,
        order_number: str | None = None,
        batch_id: str = "seed0001",
        machine: Machine | None = None,
    ) -> SalesOrder:
        order = SalesOrder(
            id=uuid4(),
            order_number=order_number,
            payment_method=payment_method.value,
            payment_status=payment_status.value,
            machine_code=machine_code,
            machine_id=machine.id if machine else None,
            price=Decimal(price),
            order_date=order_date,
            import_batch_id=batch_id,
        )
        session.add(order)
        session.flush()
        return order

    return _create


# =============================================================================
# Spreadsheet builder
# =============================================================================


@pytest.fixture
def make_xlsx() -> Callable[..., bytes]:
    """Build .xlsx bytes from a header and data rows (first worksheet)."""

    def _make(header: Iterable[Any], rows: Iterable[Iterable[Any]]) -> bytes:
        wb = Workbook()
        ws = wb.active
        ws.append(list(header))
        for row in rows:
            ws.append(list(row))
        buffer = BytesIO()
        wb.save(buffer)
        return buffer.getvalue()

    return _make
