from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from app.domain.catalog import PublicPlanQuery
from app.domain.models import (
    CompanySubscription,
    Plan,
    PlanCancellation,
    PlanReport,
    PlanType,
    PriceOverride,
    PublicPlanSummary,
    SeatLimitConfig,
    SeatUsage,
    SubscriptionHistory,
)


class PlanTypeRepositoryPort(Protocol):
    def get(self, plan_type_id: int) -> PlanType | None: ...

    def list_all(self, is_active: bool | None = None) -> Sequence[PlanType]: ...

    def add(self, row: PlanType) -> PlanType: ...

    def update(self, row: PlanType) -> PlanType: ...

    def delete(self, row: PlanType) -> None: ...


class PlanRepositoryPort(Protocol):
    def get(self, plan_id: int) -> Plan | None: ...

    def list_all(self, plan_type_id: int | None = None) -> Sequence[Plan]: ...

    def count_by_plan_type(self, plan_type_id: int) -> int: ...

    def add(self, row: Plan) -> Plan: ...

    def update(self, row: Plan) -> Plan: ...

    def delete(self, row: Plan) -> None: ...


class SeatLimitConfigRepositoryPort(Protocol):
    def get(self, config_id: int) -> SeatLimitConfig | None: ...

    def get_by_plan_type_and_scope(self, plan_type_id: int, scope: str) -> SeatLimitConfig | None: ...

    def list_by_plan_type(self, plan_type_id: int) -> Sequence[SeatLimitConfig]: ...

    def add(self, row: SeatLimitConfig) -> SeatLimitConfig: ...

    def update(self, row: SeatLimitConfig) -> SeatLimitConfig: ...

    def delete(self, row: SeatLimitConfig) -> None: ...


class PlanReportRepositoryPort(Protocol):
    def get(self, report_id: int) -> PlanReport | None: ...

    def list_by_plan_type(self, plan_type_id: int) -> Sequence[PlanReport]: ...

    def list_by_template(self, template_id: int) -> Sequence[PlanReport]: ...

    def add(self, row: PlanReport) -> PlanReport: ...

    def update(self, row: PlanReport) -> PlanReport: ...

    def delete(self, row: PlanReport) -> None: ...


class PublicCatalogRepositoryPort(Protocol):
    def list_public_plans(self, query: PublicPlanQuery) -> list[PublicPlanSummary]: ...

    def get_public_plan(self, plan_id: int) -> PublicPlanSummary | None: ...


class CompanySubscriptionRepositoryPort(Protocol):
    def get(self, subscription_id: int, *, for_update: bool = False) -> CompanySubscription | None: ...

    def get_active_by_company(self, company_id: int) -> CompanySubscription | None: ...

    def list_by_company(self, company_id: int) -> Sequence[CompanySubscription]: ...

    def count_by_plan(self, plan_id: int) -> int: ...

    def add(self, row: CompanySubscription) -> CompanySubscription: ...

    def update(self, row: CompanySubscription, event_type: str = "subscription.updated") -> CompanySubscription: ...


class PriceOverrideRepositoryPort(Protocol):
    def get_by_subscription_and_scope(self, subscription_id: int, scope: str) -> PriceOverride | None: ...

    def list_by_subscription(self, subscription_id: int) -> Sequence[PriceOverride]: ...

    def add(self, row: PriceOverride) -> PriceOverride: ...

    def update(self, row: PriceOverride) -> PriceOverride: ...

    def delete(self, row: PriceOverride) -> None: ...


class CancellationRepositoryPort(Protocol):
    def get(self, cancellation_id: int, *, for_update: bool = False) -> PlanCancellation | None: ...

    def list_by_subscription(self, subscription_id: int) -> Sequence[PlanCancellation]: ...

    def add(self, row: PlanCancellation) -> PlanCancellation: ...

    def update(self, row: PlanCancellation) -> PlanCancellation: ...


class SubscriptionHistoryRepositoryPort(Protocol):
    def add(self, row: SubscriptionHistory) -> SubscriptionHistory: ...

    def list_by_subscription(self, subscription_id: int) -> Sequence[SubscriptionHistory]: ...


class SeatUsageRepositoryPort(Protocol):
    def get_by_user(self, subscription_id: int, user_id: int) -> SeatUsage | None: ...

    def list_by_subscription(self, subscription_id: int) -> Sequence[SeatUsage]: ...

    def count_by_scope(self, subscription_id: int, scope: str) -> int: ...

    def add(self, row: SeatUsage) -> SeatUsage: ...

    def bulk_add(self, rows: list[SeatUsage]) -> list[SeatUsage]: ...

    def update(self, row: SeatUsage) -> SeatUsage: ...

    def delete(self, row: SeatUsage) -> None: ...
