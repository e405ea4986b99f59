from __future__ import annotations

import logging
from collections.abc import Sequence
from decimal import Decimal

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func
from sqlalchemy.orm import aliased
from sqlmodel import col, select

from app.domain.catalog import PUBLIC_CURRENCY, PublicPlanQuery
from app.domain.models import (
    Plan,
    PlanReport,
    PlanType,
    PublicPlanSummary,
    PublicPlanTypeRead,
    SeatLimitConfig,
    SeatScope,
)
from app.repositories.base import SQLRepository

logger = logging.getLogger(__name__)


class PlanTypeRepository(SQLRepository):
    def get(self, plan_type_id: int) -> PlanType | None:
        return self.session.get(PlanType, plan_type_id)

    def list_all(self, is_active: bool | None = None) -> Sequence[PlanType]:
        statement = select(PlanType)
        if is_active is not None:
            statement = statement.where(PlanType.is_active == is_active)
        return self.session.exec(statement.order_by(col(PlanType.id))).all()

    def add(self, row: PlanType) -> PlanType:
        return self._save(row, "plan_type.created", {})

    def update(self, row: PlanType) -> PlanType:
        return self._save(row, "plan_type.updated", {}, touch=True)

    def delete(self, row: PlanType) -> None:
        self._remove(row, "plan_type.deleted", {"id": row.id})


class PlanRepository(SQLRepository):
    def get(self, plan_id: int) -> Plan | None:
        return self.session.get(Plan, plan_id)

    def list_all(self, plan_type_id: int | None = None) -> Sequence[Plan]:
        statement = select(Plan)
        if plan_type_id is not None:
            statement = statement.where(Plan.plan_type_id == plan_type_id)
        return self.session.exec(statement.order_by(col(Plan.id))).all()

    def count_by_plan_type(self, plan_type_id: int) -> int:
        statement = select(func.count()).select_from(Plan).where(Plan.plan_type_id == plan_type_id)
        return int(self.session.exec(statement).one())

    def add(self, row: Plan) -> Plan:
        return self._save(row, "plan.created", {"plan_type_id": row.plan_type_id})

    def update(self, row: Plan) -> Plan:
        return self._save(row, "plan.updated", {"plan_type_id": row.plan_type_id}, touch=True)

    def delete(self, row: Plan) -> None:
        self._remove(row, "plan.deleted", {"id": row.id, "plan_type_id": row.plan_type_id})


class SeatLimitConfigRepository(SQLRepository):
    def get(self, config_id: int) -> SeatLimitConfig | None:
        return self.session.get(SeatLimitConfig, config_id)

    def get_by_plan_type_and_scope(self, plan_type_id: int, scope: str) -> SeatLimitConfig | None:
        return self.session.exec(
            select(SeatLimitConfig)
            .where(SeatLimitConfig.plan_type_id == plan_type_id)
            .where(SeatLimitConfig.scope == scope)
        ).first()

    def list_by_plan_type(self, plan_type_id: int) -> Sequence[SeatLimitConfig]:
        return self.session.exec(
            select(SeatLimitConfig)
            .where(SeatLimitConfig.plan_type_id == plan_type_id)
            .order_by(col(SeatLimitConfig.scope))
        ).all()

    def add(self, row: SeatLimitConfig) -> SeatLimitConfig:
        return self._save(row, "seat_limit.created", {"plan_type_id": row.plan_type_id, "scope": row.scope})

    def update(self, row: SeatLimitConfig) -> SeatLimitConfig:
        return self._save(
            row,
            "seat_limit.updated",
            {"plan_type_id": row.plan_type_id, "scope": row.scope},
            touch=True,
        )

    def delete(self, row: SeatLimitConfig) -> None:
        self._remove(row, "seat_limit.deleted", {"id": row.id, "plan_type_id": row.plan_type_id})


class PlanReportRepository(SQLRepository):
    def get(self, report_id: int) -> PlanReport | None:
        return self.session.get(PlanReport, report_id)

    def list_by_plan_type(self, plan_type_id: int) -> Sequence[PlanReport]:
        return self.session.exec(
            select(PlanReport).where(PlanReport.plan_type_id == plan_type_id).order_by(col(PlanReport.id))
        ).all()

    def list_by_template(self, template_id: int) -> Sequence[PlanReport]:
        return self.session.exec(
            select(PlanReport).where(PlanReport.template_id == template_id).order_by(col(PlanReport.id))
        ).all()

    def add(self, row: PlanReport) -> PlanReport:
        return self._save(row, "plan_report.created", {"plan_type_id": row.plan_type_id})

    def update(self, row: PlanReport) -> PlanReport:
        return self._save(row, "plan_report.updated", {"plan_type_id": row.plan_type_id}, touch=True)

    def delete(self, row: PlanReport) -> None:
        self._remove(row, "plan_report.deleted", {"id": row.id, "plan_type_id": row.plan_type_id})


class PublicCatalogRepository(SQLRepository):
    """Denormalized plan listing joined with the plan type's seat limits."""

    def _base_statement(self):  # type: ignore[no-untyped-def]
        admin_limit = aliased(SeatLimitConfig)
        regular_limit = aliased(SeatLimitConfig)
        statement = (
            select(Plan, PlanType, admin_limit, regular_limit)
            .join(PlanType, col(PlanType.id) == col(Plan.plan_type_id))
            .outerjoin(
                admin_limit,
                (col(admin_limit.plan_type_id) == col(PlanType.id)) & (col(admin_limit.scope) == SeatScope.ADMIN.value),
            )
            .outerjoin(
                regular_limit,
                (col(regular_limit.plan_type_id) == col(PlanType.id))
                & (col(regular_limit.scope) == SeatScope.REGULAR.value),
            )
        )
        return statement

    @staticmethod
    def _summary(
        plan: Plan,
        plan_type: PlanType,
        admin_limit: SeatLimitConfig | None,
        regular_limit: SeatLimitConfig | None,
    ) -> PublicPlanSummary:
        return PublicPlanSummary(
            id=plan.id,
            name=plan.name,
            description=plan.description,
            duration=plan.duration,
            base_price=plan.default_amount,
            currency=PUBLIC_CURRENCY,
            plan_type=PublicPlanTypeRead(
                id=plan_type.id,
                type_name=plan_type.type_name,
                description=plan_type.description,
                is_active=plan_type.is_active,
            ),
            admin_seat_limit=admin_limit.max_seats if admin_limit else 0,
            regular_seat_limit=regular_limit.max_seats if regular_limit else 0,
            admin_extra_seat_price=admin_limit.extra_seat_price if admin_limit else Decimal("0"),
            regular_extra_seat_price=regular_limit.extra_seat_price if regular_limit else Decimal("0"),
            created_at=plan.created_at,
        )

    def list_public_plans(self, query: PublicPlanQuery) -> list[PublicPlanSummary]:
        cache = self._uow.cache
        cache_part = query.cache_key_part()
        generation = cache.catalog_generation() if cache is not None else None
        if cache is not None and generation is not None:
            cached = cache.get_catalog(cache_part, generation)
            if cached is not None:
                try:
                    return [PublicPlanSummary.model_validate(item) for item in cached]
                except PydanticValidationError:
                    logger.warning("discarding malformed catalog cache entry")

        statement = self._base_statement().where(PlanType.is_active == query.active)
        if query.plan_type:
            statement = statement.where(func.lower(PlanType.type_name) == query.plan_type.lower())
        if query.duration is not None:
            statement = statement.where(Plan.duration == query.duration.value)
        if query.min_price is not None:
            statement = statement.where(col(Plan.default_amount) >= query.min_price)
        if query.max_price is not None:
            statement = statement.where(col(Plan.default_amount) <= query.max_price)

        sort_column = {
            "price": col(Plan.default_amount),
            "name": col(Plan.name),
        }.get(query.sort_by, col(Plan.created_at))
        ordering = sort_column.desc() if query.order == "desc" else sort_column.asc()
        statement = statement.order_by(ordering, col(Plan.id).asc()).offset(query.offset).limit(query.limit)

        items = [self._summary(*row) for row in self.session.exec(statement).all()]
        if cache is not None and generation is not None:
            cache.set_catalog(cache_part, generation, [item.model_dump(mode="json") for item in items])
        return items

    def get_public_plan(self, plan_id: int) -> PublicPlanSummary | None:
        row = self.session.exec(self._base_statement().where(Plan.id == plan_id)).first()
        if row is None:
            return None
        return self._summary(*row)
