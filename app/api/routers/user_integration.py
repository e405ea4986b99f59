from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, status

from app.api.deps import ActingUser, Claims, ensure_company_scope, require_perm, unwrap
from app.domain.models import CompanyUserAdminUpdate, CompanyUserCreate, CompanyUserRead, SeatSyncResult
from app.domain.permissions import PERM_INTEGRATION_WRITE
from app.services.user_plan_integration_service import UserPlanIntegrationService

router = APIRouter()


def get_integration_service() -> UserPlanIntegrationService:
    return UserPlanIntegrationService()


Service = Annotated[UserPlanIntegrationService, Depends(get_integration_service)]


@router.post(
    "/companies/{company_id}/users",
    response_model=CompanyUserRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_perm(PERM_INTEGRATION_WRITE))],
)
def create_user(
    company_id: int,
    payload: CompanyUserCreate,
    claims: Claims,
    acting_user: ActingUser,
    service: Service,
) -> CompanyUserRead:
    ensure_company_scope(company_id, claims)
    return unwrap(service.create_user_with_plan_validation(acting_user, company_id, payload))


@router.patch(
    "/companies/{company_id}/users/{user_id}/admin",
    response_model=CompanyUserRead,
    dependencies=[Depends(require_perm(PERM_INTEGRATION_WRITE))],
)
def change_user_admin_status(
    company_id: int,
    user_id: int,
    payload: CompanyUserAdminUpdate,
    claims: Claims,
    acting_user: ActingUser,
    service: Service,
) -> CompanyUserRead:
    ensure_company_scope(company_id, claims)
    return unwrap(service.change_user_admin_status(acting_user, company_id, user_id, payload.admin))


@router.delete(
    "/companies/{company_id}/users/{user_id}",
    response_model=CompanyUserRead,
    dependencies=[Depends(require_perm(PERM_INTEGRATION_WRITE))],
)
def remove_user(
    company_id: int,
    user_id: int,
    claims: Claims,
    acting_user: ActingUser,
    service: Service,
) -> CompanyUserRead:
    ensure_company_scope(company_id, claims)
    return unwrap(service.remove_user(acting_user, company_id, user_id))


@router.post(
    "/companies/{company_id}/sync",
    response_model=SeatSyncResult,
    dependencies=[Depends(require_perm(PERM_INTEGRATION_WRITE))],
)
def full_sync_company(
    company_id: int,
    claims: Claims,
    acting_user: ActingUser,
    service: Service,
) -> SeatSyncResult:
    ensure_company_scope(company_id, claims)
    return unwrap(service.full_sync_company(acting_user, company_id))
