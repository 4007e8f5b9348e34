"""
Module: vending_kernel.models.sales_order
Responsibility: ORM mapping for imported point-of-sale transactions.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - (order_number, machine_code, order_date) is unique whenever
      order_number is not null (partial unique index).  The importer relies
      on it with INSERT ... ON CONFLICT DO NOTHING; rows without an order
      number are never treated as duplicates.
    - Rows are created only by the importer and never updated; they are
      removed only by deleting their whole import batch.
    - machine_code keeps the raw spreadsheet text even when machine_id
      resolved, because reconciliation joins on the code, not the key.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Numeric, String, func, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vending_kernel.db.base import Base, UTCDateTime, UUIDString
from vending_kernel.models.machine import Machine


class PaymentMethod(str, Enum):
    """How the customer paid."""

    CASH = "cash"
    CARD = "card"


class PaymentStatus(str, Enum):
    """Settlement status of the payment."""

    PAID = "paid"
    REFUNDED = "refunded"


_DEDUP_WHERE = text("order_number IS NOT NULL")


class SalesOrder(Base):
    """One imported transaction."""

    __tablename__ = "sales_orders"

    __table_args__ = (
        Index(
            "uq_sales_orders_dedup",
            "order_number",
            "machine_code",
            "order_date",
            unique=True,
            postgresql_where=_DEDUP_WHERE,
            sqlite_where=_DEDUP_WHERE,
        ),
        Index("ix_sales_orders_machine_date", "machine_code", "order_date"),
        Index("ix_sales_orders_method_date", "payment_method", "order_date"),
        Index("ix_sales_orders_batch", "import_batch_id"),
    )

    order_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    product_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    flavor: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payment_method: Mapped[str] = mapped_column(String(10), nullable=False)
    payment_status: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default=PaymentStatus.PAID.value,
    )
    machine_code: Mapped[str] = mapped_column(String(50), nullable=False)
    machine_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("machines.id"),
        nullable=True,
    )
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    order_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    import_batch_id: Mapped[str] = mapped_column(String(50), nullable=False)
    imported_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.current_timestamp(),
        nullable=False,
    )

    machine: Mapped[Machine | None] = relationship(Machine)

    def __repr__(self) -> str:
        return (
            f"<SalesOrder {self.order_number} {self.machine_code} "
            f"{self.payment_method}/{self.payment_status} {self.price} @ {self.order_date}>"
        )
