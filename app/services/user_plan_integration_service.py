from __future__ import annotations

import logging
from collections.abc import Callable

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, col, select

from app.domain.errors import ConflictError, LimitExceededError, NotFoundError, PlanError, ValidationError
from app.domain.identifiers import Identifier
from app.domain.models import (
    CompanyUser,
    CompanyUserCreate,
    CompanyUserRead,
    ExternalSeat,
    SeatScope,
    SeatSyncResult,
    now_utc,
)
from app.domain.result import Err, Ok, Result
from app.infra.user_db import get_user_engine
from app.services.plan_facade import PlanFacade

logger = logging.getLogger(__name__)


def _scope_for(admin: bool) -> SeatScope:
    return SeatScope.ADMIN if admin else SeatScope.REGULAR


class UserPlanIntegrationService:
    """Keeps the identity database's users and the seat ledger in step.

    The two stores live in different databases, so each operation runs the
    seat change in its own plan transaction and only then commits the user
    change. When the user commit fails after the seat change committed, the
    seat change is compensated.
    """

    def __init__(
        self,
        facade: PlanFacade | None = None,
        user_engine_factory: Callable[[], Engine] = get_user_engine,
    ) -> None:
        self.facade = facade or PlanFacade()
        self._user_engine_factory = user_engine_factory

    def _user_session(self) -> Session:
        return Session(self._user_engine_factory(), expire_on_commit=False)

    @staticmethod
    def _get_company_user(session: Session, company_id: int, user_id: object) -> CompanyUser:
        parsed = Identifier.parse(user_id, "user_id")
        if isinstance(parsed, Err):
            raise parsed.error
        row = session.exec(
            select(CompanyUser)
            .where(CompanyUser.company_id == company_id)
            .where(CompanyUser.id == parsed.value.value)
        ).first()
        if row is None:
            raise NotFoundError("user not found")
        return row

    @staticmethod
    def _company_id(company_id: object) -> int:
        parsed = Identifier.parse(company_id, "company_id")
        if isinstance(parsed, Err):
            raise parsed.error
        return parsed.value.value

    def create_user_with_plan_validation(
        self,
        acting_user_id: int | None,
        company_id: object,
        payload: CompanyUserCreate,
    ) -> Result[CompanyUserRead, PlanError]:
        try:
            company = self._company_id(company_id)
        except ValidationError as exc:
            return Err(exc)
        scope = _scope_for(payload.admin)

        subscription = self.facade.get_active_subscription(company)
        if isinstance(subscription, Err):
            return subscription
        subscription_id = subscription.value.id
        admission = self.facade.can_admit_seat(subscription_id, scope)
        if isinstance(admission, Err):
            return admission
        if not admission.value:
            return Err(LimitExceededError(f"{scope.value} seat limit reached", scope=scope.value))

        email = payload.email.strip().lower()
        name = payload.name.strip()
        if not email or not name:
            return Err(ValidationError("name and email are required"))

        with self._user_session() as session:
            duplicate = session.exec(select(CompanyUser).where(CompanyUser.email == email)).first()
            if duplicate is not None:
                return Err(ConflictError(f"email {email} is already registered"))
            user = CompanyUser(
                company_id=company,
                name=name,
                surname=payload.surname,
                email=email,
                admin=payload.admin,
            )
            session.add(user)
            try:
                session.flush()
            except IntegrityError:
                session.rollback()
                return Err(ConflictError(f"email {email} is already registered"))

            seat = self.facade.admit_seat(acting_user_id, subscription_id, user.id, scope)
            if isinstance(seat, Err):
                session.rollback()
                return seat

            try:
                session.commit()
            except SQLAlchemyError:
                session.rollback()
                logger.exception("user commit failed, releasing seat of user %s", user.id)
                self._release_seat(acting_user_id, subscription_id, user.id)  # type: ignore[arg-type]
                raise

            logger.info("user %s created in company %s with %s seat %s", user.id, company, scope.value, seat.value.id)
            read = CompanyUserRead.model_validate(user)
            read.seat_id = seat.value.id
            return Ok(read)

    def _release_seat(self, acting_user_id: int | None, subscription_id: int, user_id: int) -> None:
        released = self.facade.remove_seat(acting_user_id, subscription_id, user_id)
        if isinstance(released, Err):
            logger.error("could not release seat of user %s: %s", user_id, released.error)

    def _restore_seat(
        self,
        acting_user_id: int | None,
        subscription_id: int,
        user_id: int,
        scope: SeatScope,
    ) -> None:
        restored = self.facade.admit_seat(acting_user_id, subscription_id, user_id, scope)
        if isinstance(restored, Err):
            logger.error("could not restore seat of user %s: %s", user_id, restored.error)

    def _restore_scope(self, acting_user_id: int | None, company_id: int, user_id: int, scope: SeatScope) -> None:
        restored = self.facade.change_seat_scope(acting_user_id, company_id, user_id, scope)
        if isinstance(restored, Err):
            logger.error("could not restore seat scope of user %s: %s", user_id, restored.error)

    def change_user_admin_status(
        self,
        acting_user_id: int | None,
        company_id: object,
        user_id: object,
        admin: bool,
    ) -> Result[CompanyUserRead, PlanError]:
        try:
            company = self._company_id(company_id)
        except ValidationError as exc:
            return Err(exc)

        with self._user_session() as session:
            try:
                user = self._get_company_user(session, company, user_id)
            except PlanError as exc:
                return Err(exc)

            seat = self.facade.change_seat_scope(acting_user_id, company, user.id, _scope_for(admin))
            if isinstance(seat, Err):
                return seat

            member_id: int = user.id  # type: ignore[assignment]
            previous_scope = _scope_for(user.admin)
            user.admin = admin
            user.updated_at = now_utc()
            session.add(user)
            try:
                session.commit()
            except SQLAlchemyError:
                session.rollback()
                logger.exception("user commit failed, restoring seat scope of user %s", member_id)
                self._restore_scope(acting_user_id, company, member_id, previous_scope)
                raise

            read = CompanyUserRead.model_validate(user)
            read.seat_id = seat.value.id
            return Ok(read)

    def remove_user(
        self,
        acting_user_id: int | None,
        company_id: object,
        user_id: object,
    ) -> Result[CompanyUserRead, PlanError]:
        """Release the user's seat and deactivate the user row."""
        try:
            company = self._company_id(company_id)
        except ValidationError as exc:
            return Err(exc)

        with self._user_session() as session:
            try:
                user = self._get_company_user(session, company, user_id)
            except PlanError as exc:
                return Err(exc)

            subscription = self.facade.get_active_subscription(company)
            if isinstance(subscription, Err):
                return subscription
            removed = self.facade.remove_seat(acting_user_id, subscription.value.id, user.id)
            if isinstance(removed, Err):
                return removed

            member_id: int = user.id  # type: ignore[assignment]
            scope = _scope_for(user.admin)
            user.active = False
            user.updated_at = now_utc()
            session.add(user)
            try:
                session.commit()
            except SQLAlchemyError:
                session.rollback()
                logger.exception("user deactivation failed, restoring seat of user %s", member_id)
                self._restore_seat(acting_user_id, subscription.value.id, member_id, scope)
                raise
            return Ok(CompanyUserRead.model_validate(user))

    def full_sync_company(self, acting_user_id: int | None, company_id: object) -> Result[SeatSyncResult, PlanError]:
        try:
            company = self._company_id(company_id)
        except ValidationError as exc:
            return Err(exc)

        with self._user_session() as session:
            users = session.exec(
                select(CompanyUser)
                .where(CompanyUser.company_id == company)
                .where(CompanyUser.active == True)  # noqa: E712
                .order_by(col(CompanyUser.id))
            ).all()
        roster = [ExternalSeat(user_id=user.id, scope=_scope_for(user.admin).value) for user in users]
        logger.info("full seat sync for company %s with %s active users", company, len(roster))
        return self.facade.sync_seats(acting_user_id, company, roster)
