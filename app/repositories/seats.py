from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import func
from sqlmodel import col, select

from app.domain.models import SeatUsage
from app.repositories.base import SQLRepository


class SeatUsageRepository(SQLRepository):
    def get_by_user(self, subscription_id: int, user_id: int) -> SeatUsage | None:
        return self.session.exec(
            select(SeatUsage)
            .where(SeatUsage.subscription_id == subscription_id)
            .where(SeatUsage.user_id == user_id)
        ).first()

    def list_by_subscription(self, subscription_id: int) -> Sequence[SeatUsage]:
        return self.session.exec(
            select(SeatUsage).where(SeatUsage.subscription_id == subscription_id).order_by(col(SeatUsage.id))
        ).all()

    def count_by_scope(self, subscription_id: int, scope: str) -> int:
        statement = (
            select(func.count())
            .select_from(SeatUsage)
            .where(SeatUsage.subscription_id == subscription_id)
            .where(SeatUsage.scope == scope)
        )
        return int(self.session.exec(statement).one())

    def add(self, row: SeatUsage) -> SeatUsage:
        return self._save(row, "seat.admitted", {"subscription_id": row.subscription_id, "user_id": row.user_id})

    def bulk_add(self, rows: list[SeatUsage]) -> list[SeatUsage]:
        if not rows:
            return []
        self.session.add_all(rows)
        self.session.flush()
        self._uow.emit(
            "seat.bulk_admitted",
            {
                "subscription_id": rows[0].subscription_id,
                "user_ids": [row.user_id for row in rows],
            },
        )
        return rows

    def update(self, row: SeatUsage) -> SeatUsage:
        return self._save(
            row,
            "seat.scope_changed",
            {"subscription_id": row.subscription_id, "user_id": row.user_id, "scope": row.scope},
            touch=True,
        )

    def delete(self, row: SeatUsage) -> None:
        self._remove(
            row,
            "seat.removed",
            {"id": row.id, "subscription_id": row.subscription_id, "user_id": row.user_id},
        )
