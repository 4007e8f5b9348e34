"""SQL-backed CollectionDirectory over the collections and machines tables."""

from __future__ import annotations

from datetime import tzinfo

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from vending_kernel.domain.timezone import BUSINESS_TZ, DateBound, lower_bound, upper_bound
from vending_kernel.models.collection import Collection
from vending_kernel.models.machine import Machine

from vending_engines.reconciliation import CollectionEvent


class SqlCollectionDirectory:
    """Reads collections with their machine code and name; read-only."""

    def __init__(self, session: Session, tz: tzinfo = BUSINESS_TZ):
        self.session = session
        self.tz = tz

    def list(
        self,
        status: str,
        machine_code: str | None = None,
        date_from: DateBound | None = None,
        date_to: DateBound | None = None,
    ) -> list[CollectionEvent]:
        query = (
            select(
                Collection.id,
                Collection.machine_id,
                Machine.code,
                Machine.name,
                Collection.amount,
                Collection.collected_at,
            )
            .join(Machine, Machine.id == Collection.machine_id)
            .where(Collection.status == status)
            .order_by(Machine.code, Collection.collected_at, Collection.id)
        )
        if machine_code:
            query = query.where(func.lower(Machine.code) == machine_code.strip().lower())
        start = lower_bound(date_from, self.tz)
        end = upper_bound(date_to, self.tz)
        if start is not None:
            query = query.where(Collection.collected_at >= start)
        if end is not None:
            query = query.where(Collection.collected_at <= end)

        return [
            CollectionEvent(
                id=row.id,
                machine_id=row.machine_id,
                machine_code=row.code,
                machine_name=row.name,
                amount=row.amount,
                collected_at=row.collected_at,
            )
            for row in self.session.execute(query)
        ]
