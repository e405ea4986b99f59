from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import func
from sqlmodel import col, select

from app.domain.models import (
    CompanySubscription,
    PlanCancellation,
    PriceOverride,
    SubscriptionHistory,
)
from app.domain.state_machine import SubscriptionStatus
from app.repositories.base import SQLRepository


class CompanySubscriptionRepository(SQLRepository):
    def get(self, subscription_id: int, *, for_update: bool = False) -> CompanySubscription | None:
        statement = select(CompanySubscription).where(CompanySubscription.id == subscription_id)
        if for_update:
            statement = statement.with_for_update()
        return self.session.exec(statement).first()

    def get_active_by_company(self, company_id: int) -> CompanySubscription | None:
        cache = self._uow.cache
        if cache is not None:
            cached_id = cache.get_active_subscription_id(company_id)
            if cached_id is not None:
                row = self.session.get(CompanySubscription, cached_id)
                if (
                    row is not None
                    and row.company_id == company_id
                    and row.status == SubscriptionStatus.ACTIVE
                ):
                    return row

        row = self.session.exec(
            select(CompanySubscription)
            .where(CompanySubscription.company_id == company_id)
            .where(CompanySubscription.status == SubscriptionStatus.ACTIVE.value)
            .order_by(col(CompanySubscription.start_date).desc())
        ).first()
        if row is not None and cache is not None:
            cache.set_active_subscription_id(company_id, row.id)  # type: ignore[arg-type]
        return row

    def list_by_company(self, company_id: int) -> Sequence[CompanySubscription]:
        return self.session.exec(
            select(CompanySubscription)
            .where(CompanySubscription.company_id == company_id)
            .order_by(col(CompanySubscription.created_at).desc(), col(CompanySubscription.id).desc())
        ).all()

    def count_by_plan(self, plan_id: int) -> int:
        statement = (
            select(func.count()).select_from(CompanySubscription).where(CompanySubscription.plan_id == plan_id)
        )
        return int(self.session.exec(statement).one())

    def add(self, row: CompanySubscription) -> CompanySubscription:
        return self._save(row, "subscription.created", {"plan_id": row.plan_id}, row.company_id)

    def update(self, row: CompanySubscription, event_type: str = "subscription.updated") -> CompanySubscription:
        return self._save(
            row,
            event_type,
            {"plan_id": row.plan_id, "status": row.status},
            row.company_id,
            touch=True,
        )


class PriceOverrideRepository(SQLRepository):
    def get_by_subscription_and_scope(self, subscription_id: int, scope: str) -> PriceOverride | None:
        return self.session.exec(
            select(PriceOverride)
            .where(PriceOverride.subscription_id == subscription_id)
            .where(PriceOverride.scope == scope)
        ).first()

    def list_by_subscription(self, subscription_id: int) -> Sequence[PriceOverride]:
        return self.session.exec(
            select(PriceOverride)
            .where(PriceOverride.subscription_id == subscription_id)
            .order_by(col(PriceOverride.scope))
        ).all()

    def add(self, row: PriceOverride) -> PriceOverride:
        return self._save(row, "price_override.created", {"subscription_id": row.subscription_id})

    def update(self, row: PriceOverride) -> PriceOverride:
        return self._save(row, "price_override.updated", {"subscription_id": row.subscription_id}, touch=True)

    def delete(self, row: PriceOverride) -> None:
        self._remove(row, "price_override.deleted", {"id": row.id, "subscription_id": row.subscription_id})


class CancellationRepository(SQLRepository):
    def get(self, cancellation_id: int, *, for_update: bool = False) -> PlanCancellation | None:
        statement = select(PlanCancellation).where(PlanCancellation.id == cancellation_id)
        if for_update:
            statement = statement.with_for_update()
        return self.session.exec(statement).first()

    def list_by_subscription(self, subscription_id: int) -> Sequence[PlanCancellation]:
        return self.session.exec(
            select(PlanCancellation)
            .where(PlanCancellation.subscription_id == subscription_id)
            .order_by(col(PlanCancellation.id))
        ).all()

    def add(self, row: PlanCancellation) -> PlanCancellation:
        return self._save(row, "cancellation.requested", {"subscription_id": row.subscription_id})

    def update(self, row: PlanCancellation) -> PlanCancellation:
        return self._save(row, "cancellation.confirmed", {"subscription_id": row.subscription_id}, touch=True)


class SubscriptionHistoryRepository(SQLRepository):
    def add(self, row: SubscriptionHistory) -> SubscriptionHistory:
        return self._save(
            row,
            "subscription_history.created",
            {"subscription_id": row.subscription_id, "change_type": row.change_type},
        )

    def list_by_subscription(self, subscription_id: int) -> Sequence[SubscriptionHistory]:
        return self.session.exec(
            select(SubscriptionHistory)
            .where(SubscriptionHistory.subscription_id == subscription_id)
            .order_by(col(SubscriptionHistory.changed_at), col(SubscriptionHistory.id))
        ).all()
