from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from typing import TypeVar

from app.domain.catalog import build_public_plan_query
from app.domain.errors import PlanError
from app.domain.models import (
    CapacityRead,
    CompanySubscription,
    ExternalSeat,
    ExtraSeatPriceRead,
    LimitValidationRead,
    Plan,
    PlanCancellation,
    PlanCreate,
    PlanReport,
    PlanReportCreate,
    PlanReportUpdate,
    PlanType,
    PlanTypeCreate,
    PlanTypeUpdate,
    PlanUpdate,
    PriceOverride,
    PublicPlanPage,
    PublicPlanSummary,
    SeatLimitConfig,
    SeatLimitConfigCreate,
    SeatLimitConfigUpdate,
    SeatScope,
    SeatSyncResult,
    SeatUsage,
    SubscriptionCreate,
    SubscriptionHistory,
    SubscriptionUpdate,
    UsageSnapshotRead,
)
from app.domain.result import Err, Ok, Result
from app.infra.unit_of_work import UnitOfWork
from app.services.plan_aggregate import PlanAggregate

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PlanFacade:
    """Transactional entry point for plan, subscription and seat operations.

    Each call opens its own unit of work. Writes take the acting user id,
    which is handed to the transaction start and recorded on emitted events.
    """

    def __init__(self, uow_factory: Callable[[], UnitOfWork] = UnitOfWork) -> None:
        self._uow_factory = uow_factory

    def _run(self, acting_user_id: int | None, fn: Callable[[PlanAggregate], T]) -> Result[T, PlanError]:
        uow = self._uow_factory()
        return uow.run(acting_user_id, lambda active: fn(PlanAggregate(active)))

    def _read(self, fn: Callable[[PlanAggregate], T]) -> Result[T, PlanError]:
        return self._run(None, fn)

    # plan types

    def create_plan_type(self, acting_user_id: int | None, payload: PlanTypeCreate) -> Result[PlanType, PlanError]:
        return self._run(acting_user_id, lambda agg: agg.create_plan_type(payload))

    def get_plan_type(self, plan_type_id: object) -> Result[PlanType, PlanError]:
        return self._read(lambda agg: agg.get_plan_type(plan_type_id))

    def list_plan_types(self, is_active: bool | None = None) -> Result[Sequence[PlanType], PlanError]:
        return self._read(lambda agg: agg.list_plan_types(is_active))

    def update_plan_type(
        self,
        acting_user_id: int | None,
        plan_type_id: object,
        payload: PlanTypeUpdate,
    ) -> Result[PlanType, PlanError]:
        return self._run(acting_user_id, lambda agg: agg.update_plan_type(plan_type_id, payload))

    def delete_plan_type(self, acting_user_id: int | None, plan_type_id: object) -> Result[None, PlanError]:
        return self._run(acting_user_id, lambda agg: agg.delete_plan_type(plan_type_id))

    # plans

    def create_plan(self, acting_user_id: int | None, payload: PlanCreate) -> Result[Plan, PlanError]:
        return self._run(acting_user_id, lambda agg: agg.create_plan(payload))

    def get_plan(self, plan_id: object) -> Result[Plan, PlanError]:
        return self._read(lambda agg: agg.get_plan(plan_id))

    def list_plans(self, plan_type_id: object = None) -> Result[Sequence[Plan], PlanError]:
        return self._read(lambda agg: agg.list_plans(plan_type_id))

    def update_plan(self, acting_user_id: int | None, plan_id: object, payload: PlanUpdate) -> Result[Plan, PlanError]:
        return self._run(acting_user_id, lambda agg: agg.update_plan(plan_id, payload))

    def delete_plan(self, acting_user_id: int | None, plan_id: object) -> Result[None, PlanError]:
        return self._run(acting_user_id, lambda agg: agg.delete_plan(plan_id))

    # seat limits

    def create_seat_limit(
        self,
        acting_user_id: int | None,
        payload: SeatLimitConfigCreate,
    ) -> Result[SeatLimitConfig, PlanError]:
        return self._run(acting_user_id, lambda agg: agg.create_seat_limit(payload))

    def get_seat_limit(self, config_id: object) -> Result[SeatLimitConfig, PlanError]:
        return self._read(lambda agg: agg.get_seat_limit(config_id))

    def get_seat_limit_for_scope(self, plan_type_id: object, scope: object) -> Result[SeatLimitConfig, PlanError]:
        return self._read(lambda agg: agg.get_seat_limit_for_scope(plan_type_id, scope))

    def list_seat_limits(self, plan_type_id: object) -> Result[Sequence[SeatLimitConfig], PlanError]:
        return self._read(lambda agg: agg.list_seat_limits(plan_type_id))

    def update_seat_limit(
        self,
        acting_user_id: int | None,
        config_id: object,
        payload: SeatLimitConfigUpdate,
    ) -> Result[SeatLimitConfig, PlanError]:
        return self._run(acting_user_id, lambda agg: agg.update_seat_limit(config_id, payload))

    def delete_seat_limit(self, acting_user_id: int | None, config_id: object) -> Result[None, PlanError]:
        return self._run(acting_user_id, lambda agg: agg.delete_seat_limit(config_id))

    # plan reports

    def add_report(self, acting_user_id: int | None, payload: PlanReportCreate) -> Result[PlanReport, PlanError]:
        return self._run(acting_user_id, lambda agg: agg.add_report(payload))

    def list_reports_by_plan_type(self, plan_type_id: object) -> Result[Sequence[PlanReport], PlanError]:
        return self._read(lambda agg: agg.list_reports_by_plan_type(plan_type_id))

    def list_reports_by_template(self, template_id: object) -> Result[Sequence[PlanReport], PlanError]:
        return self._read(lambda agg: agg.list_reports_by_template(template_id))

    def update_report(
        self,
        acting_user_id: int | None,
        report_id: object,
        payload: PlanReportUpdate,
    ) -> Result[PlanReport, PlanError]:
        return self._run(acting_user_id, lambda agg: agg.update_report(report_id, payload))

    def delete_report(self, acting_user_id: int | None, report_id: object) -> Result[None, PlanError]:
        return self._run(acting_user_id, lambda agg: agg.delete_report(report_id))

    def get_company_reports(self, company_id: object) -> Result[Sequence[PlanReport], PlanError]:
        return self._read(lambda agg: agg.get_company_reports(company_id))

    # subscriptions

    def create_subscription(
        self,
        acting_user_id: int | None,
        payload: SubscriptionCreate,
    ) -> Result[CompanySubscription, PlanError]:
        return self._run(acting_user_id, lambda agg: agg.create_subscription(payload))

    def get_subscription(self, subscription_id: object) -> Result[CompanySubscription, PlanError]:
        return self._read(lambda agg: agg.get_subscription(subscription_id))

    def get_active_subscription(self, company_id: object) -> Result[CompanySubscription, PlanError]:
        return self._read(lambda agg: agg.get_active_subscription(company_id))

    def list_subscriptions(self, company_id: object) -> Result[Sequence[CompanySubscription], PlanError]:
        return self._read(lambda agg: agg.list_subscriptions(company_id))

    def update_subscription(
        self,
        acting_user_id: int | None,
        subscription_id: object,
        payload: SubscriptionUpdate,
    ) -> Result[CompanySubscription, PlanError]:
        return self._run(acting_user_id, lambda agg: agg.update_subscription(subscription_id, payload))

    # overrides and pricing

    def upsert_price_override(
        self,
        acting_user_id: int | None,
        subscription_id: object,
        scope: object,
        extra_seat_price: object,
    ) -> Result[PriceOverride, PlanError]:
        return self._run(
            acting_user_id,
            lambda agg: agg.upsert_price_override(subscription_id, scope, extra_seat_price),
        )

    def list_price_overrides(self, subscription_id: object) -> Result[Sequence[PriceOverride], PlanError]:
        return self._read(lambda agg: agg.list_price_overrides(subscription_id))

    def delete_price_override(
        self,
        acting_user_id: int | None,
        subscription_id: object,
        scope: object,
    ) -> Result[None, PlanError]:
        return self._run(acting_user_id, lambda agg: agg.delete_price_override(subscription_id, scope))

    def resolve_extra_seat_price(
        self,
        subscription_id: object,
        scope: object,
        quantity: int = 1,
    ) -> Result[ExtraSeatPriceRead, PlanError]:
        def _resolve(agg: PlanAggregate) -> ExtraSeatPriceRead:
            resolved = agg.resolve_extra_seat_price(subscription_id, scope, quantity)
            return ExtraSeatPriceRead(
                subscription_id=agg.get_subscription(subscription_id).id,
                scope=SeatScope(str(scope).strip().lower()),
                quantity=quantity,
                price=resolved.price,
                source=resolved.source,
            )

        return self._read(_resolve)

    # seats

    def can_admit_seat(self, subscription_id: object, scope: object) -> Result[bool, PlanError]:
        return self._read(lambda agg: agg.can_admit_seat(subscription_id, scope))

    def admit_seat(
        self,
        acting_user_id: int | None,
        subscription_id: object,
        user_id: object,
        scope: object,
    ) -> Result[SeatUsage, PlanError]:
        return self._run(acting_user_id, lambda agg: agg.admit_seat(subscription_id, user_id, scope))

    def list_seats(self, subscription_id: object) -> Result[Sequence[SeatUsage], PlanError]:
        return self._read(lambda agg: agg.list_seats(subscription_id))

    def change_seat_scope(
        self,
        acting_user_id: int | None,
        company_id: object,
        user_id: object,
        new_scope: object,
    ) -> Result[SeatUsage, PlanError]:
        return self._run(acting_user_id, lambda agg: agg.change_seat_scope(company_id, user_id, new_scope))

    def remove_seat(self, acting_user_id: int | None, subscription_id: object, user_id: object) -> Result[bool, PlanError]:
        return self._run(acting_user_id, lambda agg: agg.remove_seat(subscription_id, user_id))

    def sync_seats(
        self,
        acting_user_id: int | None,
        company_id: object,
        external_users: Iterable[ExternalSeat],
    ) -> Result[SeatSyncResult, PlanError]:
        users = list(external_users)
        result = self._run(acting_user_id, lambda agg: agg.sync_seats(company_id, users))
        if isinstance(result, Ok):
            logger.info(
                "seat sync for company %s: added=%s skipped=%s errors=%s",
                company_id,
                len(result.value.added),
                len(result.value.skipped),
                len(result.value.errors),
            )
        return result

    def get_usage_snapshot(self, company_id: object) -> Result[UsageSnapshotRead, PlanError]:
        return self._read(lambda agg: agg.get_usage_snapshot(company_id))

    def get_capacity(self, company_id: object) -> Result[CapacityRead, PlanError]:
        return self._read(lambda agg: agg.get_capacity(company_id))

    def validate_seats_within_limits(self, company_id: object) -> Result[LimitValidationRead, PlanError]:
        return self._read(lambda agg: agg.validate_seats_within_limits(company_id))

    # cancellation

    def request_cancellation(
        self,
        acting_user_id: int | None,
        subscription_id: object,
        reason: str,
        details: str | None = None,
    ) -> Result[PlanCancellation, PlanError]:
        return self._run(
            acting_user_id,
            lambda agg: agg.request_cancellation(subscription_id, acting_user_id, reason, details),
        )

    def confirm_cancellation(
        self,
        acting_user_id: int | None,
        cancellation_id: object,
        change_reason: str | None = None,
    ) -> Result[PlanCancellation, PlanError]:
        return self._run(
            acting_user_id,
            lambda agg: agg.confirm_cancellation(cancellation_id, acting_user_id, change_reason),
        )

    def get_cancellation(self, cancellation_id: object) -> Result[PlanCancellation, PlanError]:
        return self._read(lambda agg: agg.get_cancellation(cancellation_id))

    def list_cancellations(self, subscription_id: object) -> Result[Sequence[PlanCancellation], PlanError]:
        return self._read(lambda agg: agg.list_cancellations(subscription_id))

    def list_history(self, subscription_id: object) -> Result[Sequence[SubscriptionHistory], PlanError]:
        return self._read(lambda agg: agg.list_history(subscription_id))

    # public catalog

    def list_public_plans(
        self,
        *,
        limit: int | None = None,
        offset: int | None = None,
        plan_type: str | None = None,
        duration: str | None = None,
        active: bool | None = None,
        min_price: object = None,
        max_price: object = None,
        sort_by: str | None = None,
        order: str | None = None,
    ) -> Result[PublicPlanPage, PlanError]:
        query = build_public_plan_query(
            limit=limit,
            offset=offset,
            plan_type=plan_type,
            duration=duration,
            active=active,
            min_price=min_price,
            max_price=max_price,
            sort_by=sort_by,
            order=order,
        )
        if isinstance(query, Err):
            return query
        parsed = query.value
        return self._read(
            lambda agg: PublicPlanPage(
                items=agg.list_public_plans(parsed),
                limit=parsed.limit,
                offset=parsed.offset,
            )
        )

    def get_public_plan(self, plan_id: object) -> Result[PublicPlanSummary, PlanError]:
        return self._read(lambda agg: agg.get_public_plan(plan_id))
