from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from app.api.deps import ActingUser, Claims, ensure_company_scope, require_perm, unwrap
from app.domain.models import (
    CapacityRead,
    LimitValidationRead,
    PlanReportRead,
    SeatRead,
    SeatScopeChangeRequest,
    SeatSyncRequest,
    SeatSyncResult,
    SubscriptionRead,
    UsageSnapshotRead,
)
from app.domain.permissions import PERM_SEATS_WRITE, PERM_SUBSCRIPTIONS_READ
from app.services.plan_facade import PlanFacade

router = APIRouter()


def get_plan_facade() -> PlanFacade:
    return PlanFacade()


Facade = Annotated[PlanFacade, Depends(get_plan_facade)]


@router.get(
    "/{company_id}/subscription",
    response_model=SubscriptionRead,
    dependencies=[Depends(require_perm(PERM_SUBSCRIPTIONS_READ))],
)
def get_active_subscription(company_id: int, claims: Claims, facade: Facade) -> SubscriptionRead:
    ensure_company_scope(company_id, claims)
    return SubscriptionRead.model_validate(unwrap(facade.get_active_subscription(company_id)))


@router.get(
    "/{company_id}/subscriptions",
    response_model=list[SubscriptionRead],
    dependencies=[Depends(require_perm(PERM_SUBSCRIPTIONS_READ))],
)
def list_subscriptions(company_id: int, claims: Claims, facade: Facade) -> list[SubscriptionRead]:
    ensure_company_scope(company_id, claims)
    return [SubscriptionRead.model_validate(item) for item in unwrap(facade.list_subscriptions(company_id))]


@router.get(
    "/{company_id}/usage",
    response_model=UsageSnapshotRead,
    dependencies=[Depends(require_perm(PERM_SUBSCRIPTIONS_READ))],
)
def get_usage_snapshot(company_id: int, claims: Claims, facade: Facade) -> UsageSnapshotRead:
    ensure_company_scope(company_id, claims)
    return unwrap(facade.get_usage_snapshot(company_id))


@router.get(
    "/{company_id}/capacity",
    response_model=CapacityRead,
    dependencies=[Depends(require_perm(PERM_SUBSCRIPTIONS_READ))],
)
def get_capacity(company_id: int, claims: Claims, facade: Facade) -> CapacityRead:
    ensure_company_scope(company_id, claims)
    return unwrap(facade.get_capacity(company_id))


@router.get(
    "/{company_id}/limits",
    response_model=LimitValidationRead,
    dependencies=[Depends(require_perm(PERM_SUBSCRIPTIONS_READ))],
)
def validate_limits(company_id: int, claims: Claims, facade: Facade) -> LimitValidationRead:
    ensure_company_scope(company_id, claims)
    return unwrap(facade.validate_seats_within_limits(company_id))


@router.get(
    "/{company_id}/reports",
    response_model=list[PlanReportRead],
    dependencies=[Depends(require_perm(PERM_SUBSCRIPTIONS_READ))],
)
def list_company_reports(company_id: int, claims: Claims, facade: Facade) -> list[PlanReportRead]:
    ensure_company_scope(company_id, claims)
    return [PlanReportRead.model_validate(item) for item in unwrap(facade.get_company_reports(company_id))]


@router.patch(
    "/{company_id}/seats/{user_id}/scope",
    response_model=SeatRead,
    dependencies=[Depends(require_perm(PERM_SEATS_WRITE))],
)
def change_seat_scope(
    company_id: int,
    user_id: int,
    payload: SeatScopeChangeRequest,
    claims: Claims,
    acting_user: ActingUser,
    facade: Facade,
) -> SeatRead:
    ensure_company_scope(company_id, claims)
    return SeatRead.model_validate(unwrap(facade.change_seat_scope(acting_user, company_id, user_id, payload.scope)))


@router.post(
    "/{company_id}/seats/sync",
    response_model=SeatSyncResult,
    dependencies=[Depends(require_perm(PERM_SEATS_WRITE))],
)
def sync_seats(
    company_id: int,
    payload: SeatSyncRequest,
    claims: Claims,
    acting_user: ActingUser,
    facade: Facade,
) -> SeatSyncResult:
    ensure_company_scope(company_id, claims)
    return unwrap(facade.sync_seats(acting_user, company_id, payload.users))
