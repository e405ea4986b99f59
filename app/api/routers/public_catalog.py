from __future__ import annotations

from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends

from app.api.deps import unwrap
from app.domain.models import PublicPlanPage, PublicPlanSummary
from app.services.plan_facade import PlanFacade

router = APIRouter()


def get_plan_facade() -> PlanFacade:
    return PlanFacade()


Facade = Annotated[PlanFacade, Depends(get_plan_facade)]


@router.get("/plans", response_model=PublicPlanPage)
def list_public_plans(
    facade: Facade,
    limit: int | None = None,
    offset: int | None = None,
    plan_type: str | None = None,
    duration: str | None = None,
    active: bool | None = None,
    min_price: Decimal | None = None,
    max_price: Decimal | None = None,
    sort_by: str | None = None,
    order: str | None = None,
) -> PublicPlanPage:
    return unwrap(
        facade.list_public_plans(
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
    )


@router.get("/plans/{plan_id}", response_model=PublicPlanSummary)
def get_public_plan(plan_id: int, facade: Facade) -> PublicPlanSummary:
    return unwrap(facade.get_public_plan(plan_id))
