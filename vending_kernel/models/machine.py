"""
Module: vending_kernel.models.machine
Responsibility: ORM mapping for vending machines.  Machine lifecycle
    (creation, approval, editing) belongs to an outer system; this core only
    reads machines to resolve spreadsheet machine codes and to label
    reconciliation rows.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - code is unique; lookups compare it case-insensitively.
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from vending_kernel.db.base import Base


class Machine(Base):
    """A vending machine identified by its operator-facing code."""

    __tablename__ = "machines"

    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<Machine {self.code}: {self.name}>"
