from __future__ import annotations

from datetime import UTC, date, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict
from pydantic import Field as PydanticField
from sqlalchemy import JSON, Column, Index, String, UniqueConstraint, text
from sqlmodel import Field, SQLModel

from app.domain.state_machine import CancellationState, SubscriptionStatus

MONEY_DIGITS = 12
MONEY_PLACES = 2


def now_utc() -> datetime:
    return datetime.now(UTC)


class SeatScope(StrEnum):
    ADMIN = "admin"
    REGULAR = "regular"


class PlanDuration(StrEnum):
    MONTHLY = "monthly"
    YEARLY = "yearly"
    QUARTERLY = "quarterly"
    LIFETIME = "lifetime"


class ChangeType(StrEnum):
    UPGRADE = "upgrade"
    DOWNGRADE = "downgrade"
    RENEWAL = "renewal"
    CANCELLATION = "cancellation"


class PriceSource(StrEnum):
    OVERRIDE = "override"
    ADDITIONAL_AMOUNT = "additional_amount"
    STANDARD = "standard"


class EventRecord(SQLModel, table=True):
    __tablename__ = "events"

    event_id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    event_type: str = Field(index=True)
    company_id: int | None = Field(default=None, index=True)
    ts: datetime = Field(default_factory=now_utc, index=True)
    actor_id: int | None = Field(default=None, index=True)
    payload: dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
    )


class PlanType(SQLModel, table=True):
    __tablename__ = "plan_types"

    id: int | None = Field(default=None, primary_key=True)
    type_name: str = Field(max_length=100, index=True)
    description: str | None = None
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class Plan(SQLModel, table=True):
    __tablename__ = "plans"

    id: int | None = Field(default=None, primary_key=True)
    plan_type_id: int = Field(foreign_key="plan_types.id", index=True)
    name: str = Field(max_length=200, index=True)
    description: str | None = None
    default_amount: Decimal = Field(default=Decimal("0"), max_digits=MONEY_DIGITS, decimal_places=MONEY_PLACES)
    duration: str = Field(sa_type=String(20), index=True)
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class SeatLimitConfig(SQLModel, table=True):
    __tablename__ = "seat_limit_configs"
    __table_args__ = (
        UniqueConstraint("plan_type_id", "scope", name="uq_seat_limit_configs_plan_type_scope"),
    )

    id: int | None = Field(default=None, primary_key=True)
    plan_type_id: int = Field(foreign_key="plan_types.id", index=True)
    scope: str = Field(sa_type=String(20))
    max_seats: int
    extra_seat_price: Decimal = Field(default=Decimal("0"), max_digits=MONEY_DIGITS, decimal_places=MONEY_PLACES)
    created_at: datetime = Field(default_factory=now_utc)
    updated_at: datetime = Field(default_factory=now_utc)


class CompanySubscription(SQLModel, table=True):
    __tablename__ = "company_subscriptions"
    __table_args__ = (
        Index(
            "uq_company_subscriptions_one_active",
            "company_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )

    id: int | None = Field(default=None, primary_key=True)
    company_id: int = Field(index=True)
    plan_id: int = Field(foreign_key="plans.id", index=True)
    amount: Decimal = Field(default=Decimal("0"), max_digits=MONEY_DIGITS, decimal_places=MONEY_PLACES)
    start_date: date
    end_date: date
    status: str = Field(default=SubscriptionStatus.ACTIVE, sa_type=String(20), index=True)
    additional_user_amount: Decimal = Field(
        default=Decimal("0"),
        max_digits=MONEY_DIGITS,
        decimal_places=MONEY_PLACES,
    )
    created_at: datetime = Field(default_factory=now_utc, index=True)
    updated_at: datetime = Field(default_factory=now_utc)


class SeatUsage(SQLModel, table=True):
    __tablename__ = "seat_usages"
    __table_args__ = (
        UniqueConstraint("subscription_id", "user_id", name="uq_seat_usages_subscription_user"),
        Index("ix_seat_usages_subscription_scope", "subscription_id", "scope"),
    )

    id: int | None = Field(default=None, primary_key=True)
    subscription_id: int = Field(foreign_key="company_subscriptions.id", index=True)
    user_id: int = Field(index=True)
    scope: str = Field(sa_type=String(20))
    created_at: datetime = Field(default_factory=now_utc)
    updated_at: datetime = Field(default_factory=now_utc)


class PriceOverride(SQLModel, table=True):
    __tablename__ = "price_overrides"
    __table_args__ = (
        UniqueConstraint("subscription_id", "scope", name="uq_price_overrides_subscription_scope"),
    )

    id: int | None = Field(default=None, primary_key=True)
    subscription_id: int = Field(foreign_key="company_subscriptions.id", index=True)
    scope: str = Field(sa_type=String(20))
    extra_seat_price: Decimal = Field(default=Decimal("0"), max_digits=MONEY_DIGITS, decimal_places=MONEY_PLACES)
    created_at: datetime = Field(default_factory=now_utc)
    updated_at: datetime = Field(default_factory=now_utc)


class PlanCancellation(SQLModel, table=True):
    """Cancellation request of a subscription.

    ``cancelled_at`` stays empty while the request is pending and is filled
    exactly once, on confirmation. ``requested_at`` keeps the request time.
    """

    __tablename__ = "plan_cancellations"

    id: int | None = Field(default=None, primary_key=True)
    subscription_id: int = Field(foreign_key="company_subscriptions.id", index=True)
    reason: str
    details: str | None = None
    cancelled_by_user_id: int | None = Field(default=None, index=True)
    requested_at: datetime = Field(default_factory=now_utc)
    cancelled_at: datetime | None = Field(default=None, index=True)
    confirmed_by_user_id: int | None = None
    created_at: datetime = Field(default_factory=now_utc)
    updated_at: datetime = Field(default_factory=now_utc)

    @property
    def state(self) -> CancellationState:
        if self.cancelled_at is None:
            return CancellationState.REQUESTED
        return CancellationState.CONFIRMED


class SubscriptionHistory(SQLModel, table=True):
    __tablename__ = "subscription_history"

    id: int | None = Field(default=None, primary_key=True)
    subscription_id: int = Field(foreign_key="company_subscriptions.id", index=True)
    previous_plan_id: int | None = Field(default=None, foreign_key="plans.id")
    new_plan_id: int | None = Field(default=None, foreign_key="plans.id")
    change_type: str = Field(sa_type=String(20), index=True)
    reason: str | None = None
    changed_at: datetime = Field(default_factory=now_utc, index=True)
    changed_by_user_id: int | None = None
    created_at: datetime = Field(default_factory=now_utc)


class PlanReport(SQLModel, table=True):
    __tablename__ = "plan_reports"

    id: int | None = Field(default=None, primary_key=True)
    plan_type_id: int = Field(foreign_key="plan_types.id", index=True)
    template_id: int = Field(index=True)
    created_at: datetime = Field(default_factory=now_utc)
    updated_at: datetime = Field(default_factory=now_utc)


class CompanyUser(SQLModel, table=True):
    """User row owned by the identity database, bound to the user engine."""

    __tablename__ = "identity_users"

    id: int | None = Field(default=None, primary_key=True)
    company_id: int = Field(index=True)
    name: str
    surname: str | None = None
    email: str = Field(index=True, unique=True)
    admin: bool = Field(default=False)
    active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=now_utc)
    updated_at: datetime = Field(default_factory=now_utc)


class EventEnvelope(BaseModel):
    event_id: str = PydanticField(default_factory=lambda: str(uuid4()))
    event_type: str
    company_id: int | None = None
    ts: datetime = PydanticField(default_factory=now_utc)
    actor_id: int | None = None
    payload: dict[str, Any]


class ORMReadModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class PlanTypeCreate(BaseModel):
    type_name: str
    description: str | None = None
    is_active: bool = True


class PlanTypeUpdate(BaseModel):
    type_name: str | None = None
    description: str | None = None
    is_active: bool | None = None


class PlanTypeRead(ORMReadModel):
    id: int
    type_name: str
    description: str | None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class PlanCreate(BaseModel):
    plan_type_id: int
    name: str
    description: str | None = None
    default_amount: Decimal
    duration: str


class PlanUpdate(BaseModel):
    plan_type_id: int | None = None
    name: str | None = None
    description: str | None = None
    default_amount: Decimal | None = None
    duration: str | None = None


class PlanRead(ORMReadModel):
    id: int
    plan_type_id: int
    name: str
    description: str | None
    default_amount: Decimal
    duration: PlanDuration
    created_at: datetime
    updated_at: datetime


class SeatLimitConfigCreate(BaseModel):
    plan_type_id: int
    scope: str
    max_seats: int
    extra_seat_price: Decimal


class SeatLimitConfigUpdate(BaseModel):
    max_seats: int | None = None
    extra_seat_price: Decimal | None = None


class SeatLimitConfigRead(ORMReadModel):
    id: int
    plan_type_id: int
    scope: SeatScope
    max_seats: int
    extra_seat_price: Decimal
    created_at: datetime
    updated_at: datetime


class PlanReportCreate(BaseModel):
    plan_type_id: int
    template_id: int


class PlanReportUpdate(BaseModel):
    plan_type_id: int | None = None
    template_id: int | None = None


class PlanReportRead(ORMReadModel):
    id: int
    plan_type_id: int
    template_id: int
    created_at: datetime
    updated_at: datetime


class SubscriptionCreate(BaseModel):
    company_id: int
    plan_id: int
    amount: Decimal
    start_date: date
    end_date: date
    additional_user_amount: Decimal = Decimal("0")


class SubscriptionUpdate(BaseModel):
    amount: Decimal | None = None
    end_date: date | None = None
    additional_user_amount: Decimal | None = None


class SubscriptionRead(ORMReadModel):
    id: int
    company_id: int
    plan_id: int
    amount: Decimal
    start_date: date
    end_date: date
    status: SubscriptionStatus
    additional_user_amount: Decimal
    created_at: datetime
    updated_at: datetime


class PriceOverrideUpsertRequest(BaseModel):
    extra_seat_price: Decimal


class PriceOverrideRead(ORMReadModel):
    id: int
    subscription_id: int
    scope: SeatScope
    extra_seat_price: Decimal
    created_at: datetime
    updated_at: datetime


class ExtraSeatPriceRead(BaseModel):
    subscription_id: int
    scope: SeatScope
    quantity: int
    price: Decimal
    source: PriceSource


class CancellationRequestCreate(BaseModel):
    reason: str
    details: str | None = None


class CancellationConfirmRequest(BaseModel):
    change_reason: str | None = None


class CancellationRead(ORMReadModel):
    id: int
    subscription_id: int
    reason: str
    details: str | None
    cancelled_by_user_id: int | None
    requested_at: datetime
    cancelled_at: datetime | None
    confirmed_by_user_id: int | None
    state: CancellationState
    created_at: datetime
    updated_at: datetime


class SubscriptionHistoryRead(ORMReadModel):
    id: int
    subscription_id: int
    previous_plan_id: int | None
    new_plan_id: int | None
    change_type: ChangeType
    reason: str | None
    changed_at: datetime
    changed_by_user_id: int | None
    created_at: datetime


class SeatAdmitRequest(BaseModel):
    user_id: int
    scope: str


class SeatScopeChangeRequest(BaseModel):
    scope: str


class SeatRead(ORMReadModel):
    id: int
    subscription_id: int
    user_id: int
    scope: SeatScope
    created_at: datetime
    updated_at: datetime


class SeatAdmissionRead(BaseModel):
    subscription_id: int
    scope: SeatScope
    allowed: bool


class ExternalSeat(BaseModel):
    """One user as reported by the identity system; ids are validated on sync."""

    user_id: Any
    scope: str


class SeatSyncRequest(BaseModel):
    users: list[ExternalSeat]


class SeatSyncError(BaseModel):
    user_id: str
    reason: str


class SeatSyncResult(BaseModel):
    added: list[int] = PydanticField(default_factory=list)
    skipped: list[int] = PydanticField(default_factory=list)
    errors: list[SeatSyncError] = PydanticField(default_factory=list)


class ScopeUsageRead(BaseModel):
    scope: SeatScope
    current: int
    limit: int
    within_limit: bool
    extra_seat_price: Decimal
    extra_cost: Decimal


class UsageSnapshotRead(BaseModel):
    company_id: int
    subscription: SubscriptionRead
    plan: PlanRead
    plan_type: PlanTypeRead
    admin: ScopeUsageRead
    regular: ScopeUsageRead
    total_seats: int
    total_extra_cost: Decimal
    total_cost: Decimal
    reports: list[PlanReportRead]


class ScopeCapacityRead(BaseModel):
    scope: SeatScope
    current: int
    limit: int
    within_limit: bool
    remaining: int


class CapacityRead(BaseModel):
    company_id: int
    subscription_id: int
    admin: ScopeCapacityRead
    regular: ScopeCapacityRead
    is_within_limits: bool


class ScopeLimitRead(BaseModel):
    current: int
    limit: int
    within_limit: bool


class LimitValidationRead(BaseModel):
    admin: ScopeLimitRead
    regular: ScopeLimitRead
    is_valid: bool


class PublicPlanTypeRead(BaseModel):
    id: int
    type_name: str
    description: str | None
    is_active: bool


class PublicPlanSummary(BaseModel):
    id: int
    name: str
    description: str | None
    duration: PlanDuration
    base_price: Decimal
    currency: str
    plan_type: PublicPlanTypeRead
    admin_seat_limit: int
    regular_seat_limit: int
    admin_extra_seat_price: Decimal
    regular_extra_seat_price: Decimal
    created_at: datetime


class PublicPlanPage(BaseModel):
    items: list[PublicPlanSummary]
    limit: int
    offset: int


class CompanyUserCreate(BaseModel):
    name: str
    surname: str | None = None
    email: str
    admin: bool = False


class CompanyUserAdminUpdate(BaseModel):
    admin: bool


class CompanyUserRead(ORMReadModel):
    id: int
    company_id: int
    name: str
    surname: str | None
    email: str
    admin: bool
    active: bool
    seat_id: int | None = None
    created_at: datetime
