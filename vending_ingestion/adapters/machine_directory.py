"""SQL-backed MachineDirectory: every known machine as (code, id)."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from vending_kernel.models.machine import Machine

from vending_ingestion.domain.types import MachineRef


class SqlMachineDirectory:
    """Reads the machines table; the caller owns the session."""

    def __init__(self, session: Session):
        self.session = session

    def lookup_all(self) -> list[MachineRef]:
        rows = self.session.execute(select(Machine.code, Machine.id).order_by(Machine.code))
        return [MachineRef(code=code, id=machine_id) for code, machine_id in rows]
