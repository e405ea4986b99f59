from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from app.domain.catalog import PublicPlanQuery
from app.domain.errors import (
    AlreadyProcessedError,
    ConflictError,
    InvalidStateError,
    LimitExceededError,
    NotFoundError,
    ValidationError,
)
from app.domain.identifiers import Identifier, require_identifier
from app.domain.models import (
    CapacityRead,
    ChangeType,
    CompanySubscription,
    ExternalSeat,
    LimitValidationRead,
    Plan,
    PlanCancellation,
    PlanCreate,
    PlanDuration,
    PlanRead,
    PlanReport,
    PlanReportCreate,
    PlanReportRead,
    PlanReportUpdate,
    PlanType,
    PlanTypeCreate,
    PlanTypeRead,
    PlanTypeUpdate,
    PlanUpdate,
    PriceOverride,
    PriceSource,
    PublicPlanSummary,
    ScopeCapacityRead,
    ScopeLimitRead,
    ScopeUsageRead,
    SeatLimitConfig,
    SeatLimitConfigCreate,
    SeatLimitConfigUpdate,
    SeatScope,
    SeatSyncError,
    SeatSyncResult,
    SeatUsage,
    SubscriptionCreate,
    SubscriptionHistory,
    SubscriptionRead,
    SubscriptionUpdate,
    UsageSnapshotRead,
    now_utc,
)
from app.domain.repositories import (
    CancellationRepositoryPort,
    CompanySubscriptionRepositoryPort,
    PlanReportRepositoryPort,
    PlanRepositoryPort,
    PlanTypeRepositoryPort,
    PriceOverrideRepositoryPort,
    PublicCatalogRepositoryPort,
    SeatLimitConfigRepositoryPort,
    SeatUsageRepositoryPort,
    SubscriptionHistoryRepositoryPort,
)
from app.domain.result import Err
from app.domain.state_machine import (
    CancellationState,
    SubscriptionStatus,
    can_cancellation_transition,
    can_subscription_transition,
)
from app.infra.unit_of_work import UnitOfWork
from app.repositories.catalog import (
    PlanReportRepository,
    PlanRepository,
    PlanTypeRepository,
    PublicCatalogRepository,
    SeatLimitConfigRepository,
)
from app.repositories.seats import SeatUsageRepository
from app.repositories.subscriptions import (
    CancellationRepository,
    CompanySubscriptionRepository,
    PriceOverrideRepository,
    SubscriptionHistoryRepository,
)

logger = logging.getLogger(__name__)

PLAN_NAME_MIN_LENGTH = 3
PLAN_TYPE_NAME_MIN_LENGTH = 2
DEFAULT_CANCELLATION_REASON = "Cancellation confirmed"
ZERO = Decimal("0")
SCOPES = (SeatScope.ADMIN, SeatScope.REGULAR)


@dataclass(frozen=True)
class ExtraSeatPrice:
    price: Decimal
    source: PriceSource


def _normalize_text(value: str | None, field_name: str, min_length: int) -> str:
    normalized = (value or "").strip()
    if len(normalized) < min_length:
        raise ValidationError(f"{field_name} must have at least {min_length} characters")
    return normalized


def _money(value: object, field_name: str) -> Decimal:
    try:
        amount = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValidationError(f"{field_name} must be a number") from exc
    if not amount.is_finite():
        raise ValidationError(f"{field_name} must be a number")
    if amount < 0:
        raise ValidationError(f"{field_name} cannot be negative")
    return amount


def _scope(value: object) -> SeatScope:
    try:
        return SeatScope(str(value).strip().lower())
    except ValueError as exc:
        raise ValidationError(f"scope must be one of: admin, regular (got {value!r})") from exc


def _duration(value: object) -> PlanDuration:
    try:
        return PlanDuration(str(value).strip().lower())
    except ValueError as exc:
        allowed = ", ".join(item.value for item in PlanDuration)
        raise ValidationError(f"duration must be one of: {allowed}") from exc


def _require_reason(value: str | None) -> str:
    normalized = (value or "").strip()
    if not normalized:
        raise ValidationError("reason cannot be empty")
    return normalized


def _positive_int(value: object, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{field_name} must be a positive integer")
    return value


class PlanAggregate:
    """Business rules over plans, subscriptions and seat usage.

    Every method runs inside the caller's unit of work and raises a
    ``PlanError`` subclass for expected failures; the facade turns those into
    ``Err`` results after rolling the transaction back.
    """

    def __init__(self, uow: UnitOfWork) -> None:
        self.uow = uow
        self.plan_types: PlanTypeRepositoryPort = PlanTypeRepository(uow)
        self.plans: PlanRepositoryPort = PlanRepository(uow)
        self.seat_limits: SeatLimitConfigRepositoryPort = SeatLimitConfigRepository(uow)
        self.reports: PlanReportRepositoryPort = PlanReportRepository(uow)
        self.catalog: PublicCatalogRepositoryPort = PublicCatalogRepository(uow)
        self.subscriptions: CompanySubscriptionRepositoryPort = CompanySubscriptionRepository(uow)
        self.overrides: PriceOverrideRepositoryPort = PriceOverrideRepository(uow)
        self.cancellations: CancellationRepositoryPort = CancellationRepository(uow)
        self.history: SubscriptionHistoryRepositoryPort = SubscriptionHistoryRepository(uow)
        self.seats: SeatUsageRepositoryPort = SeatUsageRepository(uow)

    # lookups

    def _get_plan_type(self, plan_type_id: object) -> PlanType:
        row = self.plan_types.get(require_identifier(plan_type_id, "plan_type_id"))
        if row is None:
            raise NotFoundError("plan type not found")
        return row

    def _get_plan(self, plan_id: object) -> Plan:
        row = self.plans.get(require_identifier(plan_id, "plan_id"))
        if row is None:
            raise NotFoundError("plan not found")
        return row

    def _get_subscription(self, subscription_id: object, *, for_update: bool = False) -> CompanySubscription:
        row = self.subscriptions.get(require_identifier(subscription_id, "subscription_id"), for_update=for_update)
        if row is None:
            raise NotFoundError("subscription not found")
        return row

    def _get_active_subscription(self, company_id: object) -> CompanySubscription:
        row = self.subscriptions.get_active_by_company(require_identifier(company_id, "company_id"))
        if row is None:
            raise NotFoundError("company has no active subscription")
        return row

    def _get_seat_limit(self, config_id: object) -> SeatLimitConfig:
        row = self.seat_limits.get(require_identifier(config_id, "seat_limit_id"))
        if row is None:
            raise NotFoundError("seat limit config not found")
        return row

    def _get_report(self, report_id: object) -> PlanReport:
        row = self.reports.get(require_identifier(report_id, "report_id"))
        if row is None:
            raise NotFoundError("plan report not found")
        return row

    @staticmethod
    def _require_active(subscription: CompanySubscription) -> None:
        if subscription.status != SubscriptionStatus.ACTIVE:
            raise InvalidStateError(f"subscription {subscription.id} is not active (status={subscription.status})")

    # plan types

    def create_plan_type(self, payload: PlanTypeCreate) -> PlanType:
        row = PlanType(
            type_name=_normalize_text(payload.type_name, "type_name", PLAN_TYPE_NAME_MIN_LENGTH),
            description=payload.description,
            is_active=payload.is_active,
        )
        return self.plan_types.add(row)

    def get_plan_type(self, plan_type_id: object) -> PlanType:
        return self._get_plan_type(plan_type_id)

    def list_plan_types(self, is_active: bool | None = None) -> Sequence[PlanType]:
        return self.plan_types.list_all(is_active=is_active)

    def update_plan_type(self, plan_type_id: object, payload: PlanTypeUpdate) -> PlanType:
        row = self._get_plan_type(plan_type_id)
        if payload.type_name is not None:
            row.type_name = _normalize_text(payload.type_name, "type_name", PLAN_TYPE_NAME_MIN_LENGTH)
        if payload.description is not None:
            row.description = payload.description
        if payload.is_active is not None:
            row.is_active = payload.is_active
        return self.plan_types.update(row)

    def delete_plan_type(self, plan_type_id: object) -> None:
        row = self._get_plan_type(plan_type_id)
        if self.plans.count_by_plan_type(row.id):  # type: ignore[arg-type]
            raise ConflictError("plan type is still referenced by plans")
        for config in self.seat_limits.list_by_plan_type(row.id):  # type: ignore[arg-type]
            self.seat_limits.delete(config)
        for report in self.reports.list_by_plan_type(row.id):  # type: ignore[arg-type]
            self.reports.delete(report)
        self.plan_types.delete(row)

    # plans

    def create_plan(self, payload: PlanCreate) -> Plan:
        plan_type = self._get_plan_type(payload.plan_type_id)
        row = Plan(
            plan_type_id=plan_type.id,  # type: ignore[arg-type]
            name=_normalize_text(payload.name, "name", PLAN_NAME_MIN_LENGTH),
            description=payload.description,
            default_amount=_money(payload.default_amount, "default_amount"),
            duration=_duration(payload.duration).value,
        )
        return self.plans.add(row)

    def get_plan(self, plan_id: object) -> Plan:
        return self._get_plan(plan_id)

    def list_plans(self, plan_type_id: object = None) -> Sequence[Plan]:
        if plan_type_id is None:
            return self.plans.list_all()
        return self.plans.list_all(plan_type_id=require_identifier(plan_type_id, "plan_type_id"))

    def update_plan(self, plan_id: object, payload: PlanUpdate) -> Plan:
        row = self._get_plan(plan_id)
        if payload.plan_type_id is not None:
            row.plan_type_id = self._get_plan_type(payload.plan_type_id).id  # type: ignore[assignment]
        if payload.name is not None:
            row.name = _normalize_text(payload.name, "name", PLAN_NAME_MIN_LENGTH)
        if payload.description is not None:
            row.description = payload.description
        if payload.default_amount is not None:
            row.default_amount = _money(payload.default_amount, "default_amount")
        if payload.duration is not None:
            row.duration = _duration(payload.duration).value
        return self.plans.update(row)

    def delete_plan(self, plan_id: object) -> None:
        row = self._get_plan(plan_id)
        if self.subscriptions.count_by_plan(row.id):  # type: ignore[arg-type]
            raise ConflictError("plan is referenced by company subscriptions")
        self.plans.delete(row)

    # seat limit configuration

    def create_seat_limit(self, payload: SeatLimitConfigCreate) -> SeatLimitConfig:
        plan_type = self._get_plan_type(payload.plan_type_id)
        scope = _scope(payload.scope)
        existing = self.seat_limits.get_by_plan_type_and_scope(plan_type.id, scope.value)  # type: ignore[arg-type]
        if existing is not None:
            raise ConflictError(f"seat limit for plan type {plan_type.id} and scope {scope.value} already exists")
        row = SeatLimitConfig(
            plan_type_id=plan_type.id,  # type: ignore[arg-type]
            scope=scope.value,
            max_seats=_positive_int(payload.max_seats, "max_seats"),
            extra_seat_price=_money(payload.extra_seat_price, "extra_seat_price"),
        )
        return self.seat_limits.add(row)

    def get_seat_limit(self, config_id: object) -> SeatLimitConfig:
        return self._get_seat_limit(config_id)

    def get_seat_limit_for_scope(self, plan_type_id: object, scope: object) -> SeatLimitConfig:
        plan_type = self._get_plan_type(plan_type_id)
        row = self.seat_limits.get_by_plan_type_and_scope(plan_type.id, _scope(scope).value)  # type: ignore[arg-type]
        if row is None:
            raise NotFoundError("seat limit config not found")
        return row

    def list_seat_limits(self, plan_type_id: object) -> Sequence[SeatLimitConfig]:
        plan_type = self._get_plan_type(plan_type_id)
        return self.seat_limits.list_by_plan_type(plan_type.id)  # type: ignore[arg-type]

    def update_seat_limit(self, config_id: object, payload: SeatLimitConfigUpdate) -> SeatLimitConfig:
        row = self._get_seat_limit(config_id)
        if payload.max_seats is not None:
            row.max_seats = _positive_int(payload.max_seats, "max_seats")
        if payload.extra_seat_price is not None:
            row.extra_seat_price = _money(payload.extra_seat_price, "extra_seat_price")
        return self.seat_limits.update(row)

    def delete_seat_limit(self, config_id: object) -> None:
        self.seat_limits.delete(self._get_seat_limit(config_id))

    # plan reports

    def add_report(self, payload: PlanReportCreate) -> PlanReport:
        plan_type = self._get_plan_type(payload.plan_type_id)
        row = PlanReport(
            plan_type_id=plan_type.id,  # type: ignore[arg-type]
            template_id=require_identifier(payload.template_id, "template_id"),
        )
        return self.reports.add(row)

    def list_reports_by_plan_type(self, plan_type_id: object) -> Sequence[PlanReport]:
        return self.reports.list_by_plan_type(require_identifier(plan_type_id, "plan_type_id"))

    def list_reports_by_template(self, template_id: object) -> Sequence[PlanReport]:
        return self.reports.list_by_template(require_identifier(template_id, "template_id"))

    def update_report(self, report_id: object, payload: PlanReportUpdate) -> PlanReport:
        row = self._get_report(report_id)
        if payload.plan_type_id is not None:
            row.plan_type_id = self._get_plan_type(payload.plan_type_id).id  # type: ignore[assignment]
        if payload.template_id is not None:
            row.template_id = require_identifier(payload.template_id, "template_id")
        return self.reports.update(row)

    def delete_report(self, report_id: object) -> None:
        self.reports.delete(self._get_report(report_id))

    def get_company_reports(self, company_id: object) -> Sequence[PlanReport]:
        subscription = self.subscriptions.get_active_by_company(require_identifier(company_id, "company_id"))
        if subscription is None:
            return []
        plan = self._get_plan(subscription.plan_id)
        return self.reports.list_by_plan_type(plan.plan_type_id)

    # subscriptions

    def create_subscription(self, payload: SubscriptionCreate) -> CompanySubscription:
        company_id = require_identifier(payload.company_id, "company_id")
        if self.subscriptions.get_active_by_company(company_id) is not None:
            raise ConflictError(f"company {company_id} already has an active subscription")
        plan = self._get_plan(payload.plan_id)
        if payload.end_date <= payload.start_date:
            raise ValidationError("end_date must be after start_date")
        row = CompanySubscription(
            company_id=company_id,
            plan_id=plan.id,  # type: ignore[arg-type]
            amount=_money(payload.amount, "amount"),
            start_date=payload.start_date,
            end_date=payload.end_date,
            status=SubscriptionStatus.ACTIVE.value,
            additional_user_amount=_money(payload.additional_user_amount, "additional_user_amount"),
        )
        return self.subscriptions.add(row)

    def get_subscription(self, subscription_id: object) -> CompanySubscription:
        return self._get_subscription(subscription_id)

    def get_active_subscription(self, company_id: object) -> CompanySubscription:
        return self._get_active_subscription(company_id)

    def list_subscriptions(self, company_id: object) -> Sequence[CompanySubscription]:
        return self.subscriptions.list_by_company(require_identifier(company_id, "company_id"))

    def update_subscription(self, subscription_id: object, payload: SubscriptionUpdate) -> CompanySubscription:
        row = self._get_subscription(subscription_id, for_update=True)
        if payload.amount is not None:
            row.amount = _money(payload.amount, "amount")
        if payload.additional_user_amount is not None:
            row.additional_user_amount = _money(payload.additional_user_amount, "additional_user_amount")
        if payload.end_date is not None:
            if payload.end_date <= row.start_date:
                raise ValidationError("end_date must be after start_date")
            row.end_date = payload.end_date
        return self.subscriptions.update(row)

    # price overrides

    def upsert_price_override(self, subscription_id: object, scope: object, extra_seat_price: object) -> PriceOverride:
        subscription = self._get_subscription(subscription_id)
        seat_scope = _scope(scope)
        price = _money(extra_seat_price, "extra_seat_price")
        existing = self.overrides.get_by_subscription_and_scope(subscription.id, seat_scope.value)  # type: ignore[arg-type]
        if existing is not None:
            existing.extra_seat_price = price
            return self.overrides.update(existing)
        row = PriceOverride(
            subscription_id=subscription.id,  # type: ignore[arg-type]
            scope=seat_scope.value,
            extra_seat_price=price,
        )
        return self.overrides.add(row)

    def list_price_overrides(self, subscription_id: object) -> Sequence[PriceOverride]:
        subscription = self._get_subscription(subscription_id)
        return self.overrides.list_by_subscription(subscription.id)  # type: ignore[arg-type]

    def delete_price_override(self, subscription_id: object, scope: object) -> None:
        subscription = self._get_subscription(subscription_id)
        row = self.overrides.get_by_subscription_and_scope(subscription.id, _scope(scope).value)  # type: ignore[arg-type]
        if row is None:
            raise NotFoundError("price override not found")
        self.overrides.delete(row)

    # pricing and limit engine

    def _resolve_price(self, subscription: CompanySubscription, scope: SeatScope, quantity: int) -> ExtraSeatPrice:
        override = self.overrides.get_by_subscription_and_scope(subscription.id, scope.value)  # type: ignore[arg-type]
        if override is not None:
            return ExtraSeatPrice(override.extra_seat_price * quantity, PriceSource.OVERRIDE)

        # blanket amount is flat, quantity does not apply
        if subscription.additional_user_amount and subscription.additional_user_amount > 0:
            return ExtraSeatPrice(Decimal(subscription.additional_user_amount), PriceSource.ADDITIONAL_AMOUNT)

        plan = self._get_plan(subscription.plan_id)
        config = self.seat_limits.get_by_plan_type_and_scope(plan.plan_type_id, scope.value)
        if config is None:
            raise NotFoundError(f"no seat limit configured for scope {scope.value}")
        return ExtraSeatPrice(config.extra_seat_price * quantity, PriceSource.STANDARD)

    def resolve_extra_seat_price(
        self,
        subscription_id: object,
        scope: object,
        quantity: int = 1,
    ) -> ExtraSeatPrice:
        """Price of ``quantity`` extra seats of ``scope``.

        Precedence: per-subscription override, then the subscription's blanket
        additional amount when positive, then the plan type's standard price.
        """
        subscription = self._get_subscription(subscription_id)
        return self._resolve_price(subscription, _scope(scope), _positive_int(quantity, "quantity"))

    def _limit_for(self, subscription: CompanySubscription, scope: SeatScope) -> SeatLimitConfig | None:
        plan = self._get_plan(subscription.plan_id)
        return self.seat_limits.get_by_plan_type_and_scope(plan.plan_type_id, scope.value)

    def _check_admission(self, subscription: CompanySubscription, scope: SeatScope) -> tuple[bool, int, int]:
        self._require_active(subscription)
        config = self._limit_for(subscription, scope)
        if config is None:
            raise NotFoundError(f"no seat limit configured for scope {scope.value}")
        current = self.seats.count_by_scope(subscription.id, scope.value)  # type: ignore[arg-type]
        return current < config.max_seats, current, config.max_seats

    def can_admit_seat(self, subscription_id: object, scope: object) -> bool:
        subscription = self._get_subscription(subscription_id)
        allowed, _, _ = self._check_admission(subscription, _scope(scope))
        return allowed

    def admit_seat(self, subscription_id: object, user_id: object, scope: object) -> SeatUsage:
        subscription = self._get_subscription(subscription_id, for_update=True)
        seat_scope = _scope(scope)
        user = require_identifier(user_id, "user_id")
        self._require_active(subscription)
        if self.seats.get_by_user(subscription.id, user) is not None:  # type: ignore[arg-type]
            raise ConflictError(f"user {user} already occupies a seat in subscription {subscription.id}")
        allowed, current, limit = self._check_admission(subscription, seat_scope)
        if not allowed:
            logger.info(
                "seat admission rejected subscription=%s scope=%s current=%s limit=%s",
                subscription.id,
                seat_scope.value,
                current,
                limit,
            )
            raise LimitExceededError(
                f"{seat_scope.value} seat limit ({limit}) reached",
                scope=seat_scope.value,
                limit=limit,
                requested=current + 1,
            )
        row = SeatUsage(
            subscription_id=subscription.id,  # type: ignore[arg-type]
            user_id=user,
            scope=seat_scope.value,
        )
        return self.seats.add(row)

    def list_seats(self, subscription_id: object) -> Sequence[SeatUsage]:
        subscription = self._get_subscription(subscription_id)
        return self.seats.list_by_subscription(subscription.id)  # type: ignore[arg-type]

    def change_seat_scope(self, company_id: object, user_id: object, new_scope: object) -> SeatUsage:
        subscription = self._get_active_subscription(company_id)
        subscription = self._get_subscription(subscription.id, for_update=True)
        target = _scope(new_scope)
        user = require_identifier(user_id, "user_id")
        seat = self.seats.get_by_user(subscription.id, user)  # type: ignore[arg-type]
        if seat is None:
            raise NotFoundError(f"user {user} has no seat in the active subscription")
        if seat.scope == target:
            return seat
        if target == SeatScope.ADMIN:
            allowed, current, limit = self._check_admission(subscription, SeatScope.ADMIN)
            if not allowed:
                raise LimitExceededError(
                    f"admin seat limit ({limit}) reached, cannot promote user {user}",
                    scope=SeatScope.ADMIN.value,
                    limit=limit,
                    requested=current + 1,
                )
        seat.scope = target.value
        return self.seats.update(seat)

    def remove_seat(self, subscription_id: object, user_id: object) -> bool:
        subscription = self._get_subscription(subscription_id)
        user = require_identifier(user_id, "user_id")
        seat = self.seats.get_by_user(subscription.id, user)  # type: ignore[arg-type]
        if seat is None:
            raise NotFoundError(f"user {user} has no seat in subscription {subscription.id}")
        self.seats.delete(seat)
        return True

    def sync_seats(self, company_id: object, external_users: Iterable[ExternalSeat]) -> SeatSyncResult:
        """Reconcile seats with the identity system's roster, all or nothing.

        Users already holding a seat are skipped, malformed entries are
        reported as errors, and the remaining candidates are admitted only if
        both scopes stay within their configured maxima.
        """
        subscription = self._get_active_subscription(company_id)
        subscription = self._get_subscription(subscription.id, for_update=True)
        existing = self.seats.list_by_subscription(subscription.id)  # type: ignore[arg-type]
        occupied = {seat.user_id for seat in existing}
        totals = {scope: sum(1 for seat in existing if seat.scope == scope) for scope in SCOPES}

        result = SeatSyncResult()
        candidates: list[SeatUsage] = []
        for entry in external_users:
            parsed = Identifier.parse(entry.user_id, "user_id")
            if isinstance(parsed, Err):
                result.errors.append(SeatSyncError(user_id=str(entry.user_id), reason=parsed.error.message))
                continue
            user = parsed.value.value
            try:
                scope = _scope(entry.scope)
            except ValidationError as exc:
                result.errors.append(SeatSyncError(user_id=str(user), reason=exc.message))
                continue
            if user in occupied:
                result.skipped.append(user)
                continue
            occupied.add(user)
            totals[scope] += 1
            candidates.append(SeatUsage(subscription_id=subscription.id, user_id=user, scope=scope.value))  # type: ignore[arg-type]

        violations: list[str] = []
        first: tuple[SeatScope, int, int] | None = None
        for scope in SCOPES:
            config = self._limit_for(subscription, scope)
            if config is None:
                continue
            if totals[scope] > config.max_seats:
                label = "Admin" if scope == SeatScope.ADMIN else "Regular user"
                violations.append(
                    f"{label} limit ({config.max_seats}) would be exceeded ({totals[scope]}), "
                    f"{totals[scope] - config.max_seats} over"
                )
                if first is None:
                    first = (scope, config.max_seats, totals[scope])
        if first is not None:
            logger.info("seat sync rejected for company %s: %s", subscription.company_id, "; ".join(violations))
            raise LimitExceededError(
                "; ".join(violations),
                scope=first[0].value,
                limit=first[1],
                requested=first[2],
            )

        added = self.seats.bulk_add(candidates)
        result.added.extend(seat.user_id for seat in added)
        return result

    def _scope_count(self, subscription: CompanySubscription, scope: SeatScope) -> tuple[int, int]:
        config = self._limit_for(subscription, scope)
        limit = config.max_seats if config is not None else 0
        return self.seats.count_by_scope(subscription.id, scope.value), limit  # type: ignore[arg-type]

    def _scope_usage(self, subscription: CompanySubscription, scope: SeatScope) -> ScopeUsageRead:
        current, limit = self._scope_count(subscription, scope)
        try:
            price = self._resolve_price(subscription, scope, 1).price
        except NotFoundError:
            price = ZERO
        extra_cost = Decimal(max(0, current - limit)) * price
        return ScopeUsageRead(
            scope=scope,
            current=current,
            limit=limit,
            within_limit=current <= limit,
            extra_seat_price=price,
            extra_cost=extra_cost,
        )

    def get_usage_snapshot(self, company_id: object) -> UsageSnapshotRead:
        subscription = self._get_active_subscription(company_id)
        plan = self._get_plan(subscription.plan_id)
        plan_type = self._get_plan_type(plan.plan_type_id)
        admin = self._scope_usage(subscription, SeatScope.ADMIN)
        regular = self._scope_usage(subscription, SeatScope.REGULAR)
        total_extra = admin.extra_cost + regular.extra_cost
        return UsageSnapshotRead(
            company_id=subscription.company_id,
            subscription=SubscriptionRead.model_validate(subscription),
            plan=PlanRead.model_validate(plan),
            plan_type=PlanTypeRead.model_validate(plan_type),
            admin=admin,
            regular=regular,
            total_seats=admin.current + regular.current,
            total_extra_cost=total_extra,
            total_cost=Decimal(subscription.amount) + total_extra,
            reports=[PlanReportRead.model_validate(item) for item in self.reports.list_by_plan_type(plan_type.id)],  # type: ignore[arg-type]
        )

    def get_capacity(self, company_id: object) -> CapacityRead:
        subscription = self._get_active_subscription(company_id)
        scopes: dict[SeatScope, ScopeCapacityRead] = {}
        for scope in SCOPES:
            current, limit = self._scope_count(subscription, scope)
            scopes[scope] = ScopeCapacityRead(
                scope=scope,
                current=current,
                limit=limit,
                within_limit=current <= limit,
                remaining=max(0, limit - current),
            )
        return CapacityRead(
            company_id=subscription.company_id,
            subscription_id=subscription.id,  # type: ignore[arg-type]
            admin=scopes[SeatScope.ADMIN],
            regular=scopes[SeatScope.REGULAR],
            is_within_limits=all(item.within_limit for item in scopes.values()),
        )

    def validate_seats_within_limits(self, company_id: object) -> LimitValidationRead:
        subscription = self._get_active_subscription(company_id)
        reads: dict[SeatScope, ScopeLimitRead] = {}
        for scope in SCOPES:
            current, limit = self._scope_count(subscription, scope)
            reads[scope] = ScopeLimitRead(current=current, limit=limit, within_limit=current <= limit)
        return LimitValidationRead(
            admin=reads[SeatScope.ADMIN],
            regular=reads[SeatScope.REGULAR],
            is_valid=all(item.within_limit for item in reads.values()),
        )

    # cancellation workflow

    def request_cancellation(
        self,
        subscription_id: object,
        requested_by: int | None,
        reason: str,
        details: str | None = None,
    ) -> PlanCancellation:
        subscription = self._get_subscription(subscription_id)
        self._require_active(subscription)
        row = PlanCancellation(
            subscription_id=subscription.id,  # type: ignore[arg-type]
            reason=_require_reason(reason),
            details=details,
            cancelled_by_user_id=requested_by,
            requested_at=now_utc(),
        )
        return self.cancellations.add(row)

    def confirm_cancellation(
        self,
        cancellation_id: object,
        confirmed_by: int | None,
        change_reason: str | None = None,
    ) -> PlanCancellation:
        cancellation = self.cancellations.get(require_identifier(cancellation_id, "cancellation_id"), for_update=True)
        if cancellation is None:
            raise NotFoundError("cancellation not found")
        if not can_cancellation_transition(cancellation.state, CancellationState.CONFIRMED):
            raise AlreadyProcessedError(f"cancellation {cancellation.id} was already processed")

        subscription = self._get_subscription(cancellation.subscription_id, for_update=True)
        if not can_subscription_transition(subscription.status, SubscriptionStatus.CANCELLED):
            raise InvalidStateError(
                f"subscription {subscription.id} cannot be cancelled from status {subscription.status}"
            )

        confirmed_at = now_utc()
        subscription.status = SubscriptionStatus.CANCELLED.value
        self.subscriptions.update(subscription, "subscription.status_changed")

        cancellation.cancelled_at = confirmed_at
        cancellation.confirmed_by_user_id = confirmed_by
        self.cancellations.update(cancellation)

        self.history.add(
            SubscriptionHistory(
                subscription_id=subscription.id,  # type: ignore[arg-type]
                previous_plan_id=subscription.plan_id,
                new_plan_id=None,
                change_type=ChangeType.CANCELLATION.value,
                reason=(change_reason or "").strip() or DEFAULT_CANCELLATION_REASON,
                changed_at=confirmed_at,
                changed_by_user_id=confirmed_by,
            )
        )
        logger.info(
            "cancellation %s confirmed for subscription %s by user %s",
            cancellation.id,
            subscription.id,
            confirmed_by,
        )
        return cancellation

    def get_cancellation(self, cancellation_id: object) -> PlanCancellation:
        row = self.cancellations.get(require_identifier(cancellation_id, "cancellation_id"))
        if row is None:
            raise NotFoundError("cancellation not found")
        return row

    def list_cancellations(self, subscription_id: object) -> Sequence[PlanCancellation]:
        subscription = self._get_subscription(subscription_id)
        return self.cancellations.list_by_subscription(subscription.id)  # type: ignore[arg-type]

    def list_history(self, subscription_id: object) -> Sequence[SubscriptionHistory]:
        subscription = self._get_subscription(subscription_id)
        return self.history.list_by_subscription(subscription.id)  # type: ignore[arg-type]

    # public catalog

    def list_public_plans(self, query: PublicPlanQuery) -> list[PublicPlanSummary]:
        return self.catalog.list_public_plans(query)

    def get_public_plan(self, plan_id: object) -> PublicPlanSummary:
        summary = self.catalog.get_public_plan(require_identifier(plan_id, "plan_id"))
        if summary is None:
            raise NotFoundError("plan not found")
        return summary
