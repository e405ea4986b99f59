from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status

from app.api.deps import ActingUser, require_perm, unwrap
from app.domain.models import (
    PlanCreate,
    PlanRead,
    PlanReportCreate,
    PlanReportRead,
    PlanReportUpdate,
    PlanTypeCreate,
    PlanTypeRead,
    PlanTypeUpdate,
    PlanUpdate,
    SeatLimitConfigCreate,
    SeatLimitConfigRead,
    SeatLimitConfigUpdate,
)
from app.domain.permissions import PERM_PLANS_READ, PERM_PLANS_WRITE
from app.services.plan_facade import PlanFacade

router = APIRouter()


def get_plan_facade() -> PlanFacade:
    return PlanFacade()


Facade = Annotated[PlanFacade, Depends(get_plan_facade)]


@router.post(
    "/plan-types",
    response_model=PlanTypeRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_PLANS_WRITE))],
)
def create_plan_type(payload: PlanTypeCreate, acting_user: ActingUser, facade: Facade) -> PlanTypeRead:
    return PlanTypeRead.model_validate(unwrap(facade.create_plan_type(acting_user, payload)))


@router.get(
    "/plan-types",
    response_model=list[PlanTypeRead],
    dependencies=[Depends(require_perm(PERM_PLANS_READ))],
)
def list_plan_types(facade: Facade, is_active: bool | None = None) -> list[PlanTypeRead]:
    return [PlanTypeRead.model_validate(item) for item in unwrap(facade.list_plan_types(is_active))]


@router.get(
    "/plan-types/{plan_type_id}",
    response_model=PlanTypeRead,
    dependencies=[Depends(require_perm(PERM_PLANS_READ))],
)
def get_plan_type(plan_type_id: int, facade: Facade) -> PlanTypeRead:
    return PlanTypeRead.model_validate(unwrap(facade.get_plan_type(plan_type_id)))


@router.patch(
    "/plan-types/{plan_type_id}",
    response_model=PlanTypeRead,
    dependencies=[Depends(require_perm(PERM_PLANS_WRITE))],
)
def update_plan_type(
    plan_type_id: int,
    payload: PlanTypeUpdate,
    acting_user: ActingUser,
    facade: Facade,
) -> PlanTypeRead:
    return PlanTypeRead.model_validate(unwrap(facade.update_plan_type(acting_user, plan_type_id, payload)))


@router.delete(
    "/plan-types/{plan_type_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_perm(PERM_PLANS_WRITE))],
)
def delete_plan_type(plan_type_id: int, acting_user: ActingUser, facade: Facade) -> Response:
    unwrap(facade.delete_plan_type(acting_user, plan_type_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/plan-types/{plan_type_id}/seat-limits",
    response_model=list[SeatLimitConfigRead],
    dependencies=[Depends(require_perm(PERM_PLANS_READ))],
)
def list_seat_limits(plan_type_id: int, facade: Facade) -> list[SeatLimitConfigRead]:
    return [SeatLimitConfigRead.model_validate(item) for item in unwrap(facade.list_seat_limits(plan_type_id))]


@router.get(
    "/plan-types/{plan_type_id}/seat-limits/{scope}",
    response_model=SeatLimitConfigRead,
    dependencies=[Depends(require_perm(PERM_PLANS_READ))],
)
def get_seat_limit_for_scope(plan_type_id: int, scope: str, facade: Facade) -> SeatLimitConfigRead:
    return SeatLimitConfigRead.model_validate(unwrap(facade.get_seat_limit_for_scope(plan_type_id, scope)))


@router.get(
    "/plan-types/{plan_type_id}/reports",
    response_model=list[PlanReportRead],
    dependencies=[Depends(require_perm(PERM_PLANS_READ))],
)
def list_plan_type_reports(plan_type_id: int, facade: Facade) -> list[PlanReportRead]:
    return [PlanReportRead.model_validate(item) for item in unwrap(facade.list_reports_by_plan_type(plan_type_id))]


@router.post(
    "/plans",
    response_model=PlanRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_PLANS_WRITE))],
)
def create_plan(payload: PlanCreate, acting_user: ActingUser, facade: Facade) -> PlanRead:
    return PlanRead.model_validate(unwrap(facade.create_plan(acting_user, payload)))


@router.get(
    "/plans",
    response_model=list[PlanRead],
    dependencies=[Depends(require_perm(PERM_PLANS_READ))],
)
def list_plans(facade: Facade, plan_type_id: int | None = None) -> list[PlanRead]:
    return [PlanRead.model_validate(item) for item in unwrap(facade.list_plans(plan_type_id))]


@router.get(
    "/plans/{plan_id}",
    response_model=PlanRead,
    dependencies=[Depends(require_perm(PERM_PLANS_READ))],
)
def get_plan(plan_id: int, facade: Facade) -> PlanRead:
    return PlanRead.model_validate(unwrap(facade.get_plan(plan_id)))


@router.patch(
    "/plans/{plan_id}",
    response_model=PlanRead,
    dependencies=[Depends(require_perm(PERM_PLANS_WRITE))],
)
def update_plan(plan_id: int, payload: PlanUpdate, acting_user: ActingUser, facade: Facade) -> PlanRead:
    return PlanRead.model_validate(unwrap(facade.update_plan(acting_user, plan_id, payload)))


@router.delete(
    "/plans/{plan_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_perm(PERM_PLANS_WRITE))],
)
def delete_plan(plan_id: int, acting_user: ActingUser, facade: Facade) -> Response:
    unwrap(facade.delete_plan(acting_user, plan_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/seat-limits",
    response_model=SeatLimitConfigRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_PLANS_WRITE))],
)
def create_seat_limit(payload: SeatLimitConfigCreate, acting_user: ActingUser, facade: Facade) -> SeatLimitConfigRead:
    return SeatLimitConfigRead.model_validate(unwrap(facade.create_seat_limit(acting_user, payload)))


@router.get(
    "/seat-limits/{config_id}",
    response_model=SeatLimitConfigRead,
    dependencies=[Depends(require_perm(PERM_PLANS_READ))],
)
def get_seat_limit(config_id: int, facade: Facade) -> SeatLimitConfigRead:
    return SeatLimitConfigRead.model_validate(unwrap(facade.get_seat_limit(config_id)))


@router.patch(
    "/seat-limits/{config_id}",
    response_model=SeatLimitConfigRead,
    dependencies=[Depends(require_perm(PERM_PLANS_WRITE))],
)
def update_seat_limit(
    config_id: int,
    payload: SeatLimitConfigUpdate,
    acting_user: ActingUser,
    facade: Facade,
) -> SeatLimitConfigRead:
    return SeatLimitConfigRead.model_validate(unwrap(facade.update_seat_limit(acting_user, config_id, payload)))


@router.delete(
    "/seat-limits/{config_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_perm(PERM_PLANS_WRITE))],
)
def delete_seat_limit(config_id: int, acting_user: ActingUser, facade: Facade) -> Response:
    unwrap(facade.delete_seat_limit(acting_user, config_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/reports",
    response_model=PlanReportRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_PLANS_WRITE))],
)
def add_report(payload: PlanReportCreate, acting_user: ActingUser, facade: Facade) -> PlanReportRead:
    return PlanReportRead.model_validate(unwrap(facade.add_report(acting_user, payload)))


@router.get(
    "/reports",
    response_model=list[PlanReportRead],
    dependencies=[Depends(require_perm(PERM_PLANS_READ))],
)
def list_reports_by_template(template_id: int, facade: Facade) -> list[PlanReportRead]:
    return [PlanReportRead.model_validate(item) for item in unwrap(facade.list_reports_by_template(template_id))]


@router.patch(
    "/reports/{report_id}",
    response_model=PlanReportRead,
    dependencies=[Depends(require_perm(PERM_PLANS_WRITE))],
)
def update_report(
    report_id: int,
    payload: PlanReportUpdate,
    acting_user: ActingUser,
    facade: Facade,
) -> PlanReportRead:
    return PlanReportRead.model_validate(unwrap(facade.update_report(acting_user, report_id, payload)))


@router.delete(
    "/reports/{report_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_perm(PERM_PLANS_WRITE))],
)
def delete_report(report_id: int, acting_user: ActingUser, facade: Facade) -> Response:
    unwrap(facade.delete_report(acting_user, report_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
