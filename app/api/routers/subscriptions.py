from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Response, status

from app.api.deps import ActingUser, Claims, ensure_company_scope, require_perm, unwrap
from app.domain.models import (
    CancellationConfirmRequest,
    CancellationRead,
    CancellationRequestCreate,
    CompanySubscription,
    ExtraSeatPriceRead,
    PriceOverrideRead,
    PriceOverrideUpsertRequest,
    SeatAdmissionRead,
    SeatAdmitRequest,
    SeatRead,
    SubscriptionCreate,
    SubscriptionHistoryRead,
    SubscriptionRead,
    SubscriptionUpdate,
)
from app.domain.permissions import (
    PERM_SEATS_WRITE,
    PERM_SUBSCRIPTIONS_READ,
    PERM_SUBSCRIPTIONS_WRITE,
)
from app.services.plan_facade import PlanFacade

router = APIRouter()


def get_plan_facade() -> PlanFacade:
    return PlanFacade()


Facade = Annotated[PlanFacade, Depends(get_plan_facade)]


def _scoped_subscription(facade: PlanFacade, subscription_id: int, claims: dict[str, Any]) -> CompanySubscription:
    subscription = unwrap(facade.get_subscription(subscription_id))
    ensure_company_scope(subscription.company_id, claims)
    return subscription


@router.post(
    "",
    response_model=SubscriptionRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_SUBSCRIPTIONS_WRITE))],
)
def create_subscription(
    payload: SubscriptionCreate,
    claims: Claims,
    acting_user: ActingUser,
    facade: Facade,
) -> SubscriptionRead:
    ensure_company_scope(payload.company_id, claims)
    return SubscriptionRead.model_validate(unwrap(facade.create_subscription(acting_user, payload)))


@router.get(
    "/{subscription_id}",
    response_model=SubscriptionRead,
    dependencies=[Depends(require_perm(PERM_SUBSCRIPTIONS_READ))],
)
def get_subscription(subscription_id: int, claims: Claims, facade: Facade) -> SubscriptionRead:
    return SubscriptionRead.model_validate(_scoped_subscription(facade, subscription_id, claims))


@router.patch(
    "/{subscription_id}",
    response_model=SubscriptionRead,
    dependencies=[Depends(require_perm(PERM_SUBSCRIPTIONS_WRITE))],
)
def update_subscription(
    subscription_id: int,
    payload: SubscriptionUpdate,
    claims: Claims,
    acting_user: ActingUser,
    facade: Facade,
) -> SubscriptionRead:
    _scoped_subscription(facade, subscription_id, claims)
    return SubscriptionRead.model_validate(unwrap(facade.update_subscription(acting_user, subscription_id, payload)))


@router.get(
    "/{subscription_id}/overrides",
    response_model=list[PriceOverrideRead],
    dependencies=[Depends(require_perm(PERM_SUBSCRIPTIONS_READ))],
)
def list_price_overrides(subscription_id: int, claims: Claims, facade: Facade) -> list[PriceOverrideRead]:
    _scoped_subscription(facade, subscription_id, claims)
    return [PriceOverrideRead.model_validate(item) for item in unwrap(facade.list_price_overrides(subscription_id))]


@router.put(
    "/{subscription_id}/overrides/{scope}",
    response_model=PriceOverrideRead,
    dependencies=[Depends(require_perm(PERM_SUBSCRIPTIONS_WRITE))],
)
def upsert_price_override(
    subscription_id: int,
    scope: str,
    payload: PriceOverrideUpsertRequest,
    claims: Claims,
    acting_user: ActingUser,
    facade: Facade,
) -> PriceOverrideRead:
    _scoped_subscription(facade, subscription_id, claims)
    row = unwrap(facade.upsert_price_override(acting_user, subscription_id, scope, payload.extra_seat_price))
    return PriceOverrideRead.model_validate(row)


@router.delete(
    "/{subscription_id}/overrides/{scope}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_perm(PERM_SUBSCRIPTIONS_WRITE))],
)
def delete_price_override(
    subscription_id: int,
    scope: str,
    claims: Claims,
    acting_user: ActingUser,
    facade: Facade,
) -> Response:
    _scoped_subscription(facade, subscription_id, claims)
    unwrap(facade.delete_price_override(acting_user, subscription_id, scope))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/{subscription_id}/extra-seat-price",
    response_model=ExtraSeatPriceRead,
    dependencies=[Depends(require_perm(PERM_SUBSCRIPTIONS_READ))],
)
def resolve_extra_seat_price(
    subscription_id: int,
    scope: str,
    claims: Claims,
    facade: Facade,
    quantity: int = 1,
) -> ExtraSeatPriceRead:
    _scoped_subscription(facade, subscription_id, claims)
    return unwrap(facade.resolve_extra_seat_price(subscription_id, scope, quantity))


@router.get(
    "/{subscription_id}/seats",
    response_model=list[SeatRead],
    dependencies=[Depends(require_perm(PERM_SUBSCRIPTIONS_READ))],
)
def list_seats(subscription_id: int, claims: Claims, facade: Facade) -> list[SeatRead]:
    _scoped_subscription(facade, subscription_id, claims)
    return [SeatRead.model_validate(item) for item in unwrap(facade.list_seats(subscription_id))]


@router.get(
    "/{subscription_id}/seats/admission",
    response_model=SeatAdmissionRead,
    dependencies=[Depends(require_perm(PERM_SUBSCRIPTIONS_READ))],
)
def check_seat_admission(subscription_id: int, scope: str, claims: Claims, facade: Facade) -> SeatAdmissionRead:
    _scoped_subscription(facade, subscription_id, claims)
    allowed = unwrap(facade.can_admit_seat(subscription_id, scope))
    return SeatAdmissionRead(subscription_id=subscription_id, scope=scope.strip().lower(), allowed=allowed)


@router.post(
    "/{subscription_id}/seats",
    response_model=SeatRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_SEATS_WRITE))],
)
def admit_seat(
    subscription_id: int,
    payload: SeatAdmitRequest,
    claims: Claims,
    acting_user: ActingUser,
    facade: Facade,
) -> SeatRead:
    _scoped_subscription(facade, subscription_id, claims)
    return SeatRead.model_validate(unwrap(facade.admit_seat(acting_user, subscription_id, payload.user_id, payload.scope)))


@router.delete(
    "/{subscription_id}/seats/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_perm(PERM_SEATS_WRITE))],
)
def remove_seat(
    subscription_id: int,
    user_id: int,
    claims: Claims,
    acting_user: ActingUser,
    facade: Facade,
) -> Response:
    _scoped_subscription(facade, subscription_id, claims)
    unwrap(facade.remove_seat(acting_user, subscription_id, user_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{subscription_id}/cancellations",
    response_model=CancellationRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_SUBSCRIPTIONS_WRITE))],
)
def request_cancellation(
    subscription_id: int,
    payload: CancellationRequestCreate,
    claims: Claims,
    acting_user: ActingUser,
    facade: Facade,
) -> CancellationRead:
    _scoped_subscription(facade, subscription_id, claims)
    row = unwrap(facade.request_cancellation(acting_user, subscription_id, payload.reason, payload.details))
    return CancellationRead.model_validate(row)


@router.get(
    "/{subscription_id}/cancellations",
    response_model=list[CancellationRead],
    dependencies=[Depends(require_perm(PERM_SUBSCRIPTIONS_READ))],
)
def list_cancellations(subscription_id: int, claims: Claims, facade: Facade) -> list[CancellationRead]:
    _scoped_subscription(facade, subscription_id, claims)
    return [CancellationRead.model_validate(item) for item in unwrap(facade.list_cancellations(subscription_id))]


@router.post(
    "/cancellations/{cancellation_id}/confirm",
    response_model=CancellationRead,
    dependencies=[Depends(require_perm(PERM_SUBSCRIPTIONS_WRITE))],
)
def confirm_cancellation(
    cancellation_id: int,
    payload: CancellationConfirmRequest,
    claims: Claims,
    acting_user: ActingUser,
    facade: Facade,
) -> CancellationRead:
    cancellation = unwrap(facade.get_cancellation(cancellation_id))
    _scoped_subscription(facade, cancellation.subscription_id, claims)
    row = unwrap(facade.confirm_cancellation(acting_user, cancellation_id, payload.change_reason))
    return CancellationRead.model_validate(row)


@router.get(
    "/{subscription_id}/history",
    response_model=list[SubscriptionHistoryRead],
    dependencies=[Depends(require_perm(PERM_SUBSCRIPTIONS_READ))],
)
def list_history(subscription_id: int, claims: Claims, facade: Facade) -> list[SubscriptionHistoryRead]:
    _scoped_subscription(facade, subscription_id, claims)
    return [SubscriptionHistoryRead.model_validate(item) for item in unwrap(facade.list_history(subscription_id))]
