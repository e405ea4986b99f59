from __future__ import annotations

from collections.abc import Callable
from typing import Annotated, Any, TypeVar

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.domain.errors import (
    ConflictError,
    InvalidStateError,
    LimitExceededError,
    NotFoundError,
    PlanError,
    ValidationError,
)
from app.domain.identifiers import Identifier
from app.domain.permissions import PERM_COMPANIES_ALL, has_permission
from app.domain.result import Err, Result
from app.infra.auth import decode_access_token

T = TypeVar("T")

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_claims(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> dict[str, Any]:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    try:
        claims = decode_access_token(credentials.credentials)
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        ) from exc
    request.state.claims = claims
    return claims


def get_acting_user_id(
    claims: Annotated[dict[str, Any], Depends(get_current_claims)],
) -> int:
    parsed = Identifier.parse(claims.get("sub"), "sub")
    if isinstance(parsed, Err):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token subject",
        )
    return parsed.value.value


def require_perm(permission: str) -> Callable[[dict[str, Any]], dict[str, Any]]:
    def _checker(
        claims: Annotated[dict[str, Any], Depends(get_current_claims)],
    ) -> dict[str, Any]:
        if not has_permission(claims, permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission: {permission}",
            )
        return claims

    return _checker


def ensure_company_scope(company_id: int, claims: dict[str, Any]) -> None:
    if has_permission(claims, PERM_COMPANIES_ALL):
        return
    if claims.get("company_id") != company_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="company not found")


def raise_plan_error(exc: PlanError) -> None:
    if isinstance(exc, ValidationError):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, (ConflictError, InvalidStateError, LimitExceededError)):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    raise exc


def unwrap(result: Result[T, PlanError]) -> T:
    if isinstance(result, Err):
        raise_plan_error(result.error)
        raise result.error
    return result.value


Claims = Annotated[dict[str, Any], Depends(get_current_claims)]
ActingUser = Annotated[int, Depends(get_acting_user_id)]
