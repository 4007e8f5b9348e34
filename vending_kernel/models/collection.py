"""
Module: vending_kernel.models.collection
Responsibility: ORM mapping for cash pickups ("collections") from machines.
    Collections are recorded by an outer workflow (operator pickup, manager
    receipt, cancellation); this core reads them for reconciliation only.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Only RECEIVED collections take part in reconciliation.
    - amount is nullable until the cash is counted; a null amount
      reconciles as 0.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vending_kernel.db.base import Base, UTCDateTime, UUIDString
from vending_kernel.models.machine import Machine


class CollectionStatus(str, Enum):
    """Lifecycle status of a collection."""

    COLLECTED = "collected"  # Picked up by operator, not yet counted
    RECEIVED = "received"  # Counted and accepted
    CANCELLED = "cancelled"


class Collection(Base):
    """A single cash pickup from one machine."""

    __tablename__ = "collections"

    __table_args__ = (
        Index("ix_collections_machine_collected", "machine_id", "collected_at"),
        Index("ix_collections_status", "status"),
    )

    machine_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("machines.id"),
        nullable=False,
    )
    amount: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    collected_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=CollectionStatus.COLLECTED.value,
    )

    machine: Mapped[Machine] = relationship(Machine)

    def __repr__(self) -> str:
        return f"<Collection {self.id} machine={self.machine_id} at={self.collected_at} {self.status}>"
