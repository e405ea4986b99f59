from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlmodel import Session, select

from app.domain.errors import ConflictError, LimitExceededError, NotFoundError
from app.domain.models import CompanyUser, CompanyUserCreate
from app.domain.result import Err
from app.services.plan_facade import PlanFacade
from app.services.user_plan_integration_service import UserPlanIntegrationService

SeedFactory = Callable[..., Any]


@pytest.fixture()
def integration(facade: PlanFacade, user_engine: Engine) -> UserPlanIntegrationService:
    return UserPlanIntegrationService(facade=facade)


def _user(email: str, admin: bool = False) -> CompanyUserCreate:
    return CompanyUserCreate(name="Ana", surname="Lima", email=email, admin=admin)


def test_create_user_admits_seat(
    integration: UserPlanIntegrationService,
    facade: PlanFacade,
    seed_plan: SeedFactory,
) -> None:
    seeded = seed_plan(admin_limit=1, regular_limit=2)

    created = integration.create_user_with_plan_validation(
        5, seeded.company_id, _user(" Ana@Example.com ", admin=True)
    ).unwrap()

    assert created.email == "ana@example.com"
    assert created.admin is True
    assert created.seat_id is not None
    seats = facade.list_seats(seeded.subscription_id).unwrap()
    assert [(seat.user_id, seat.scope) for seat in seats] == [(created.id, "admin")]


def test_create_user_rejected_when_scope_full(
    integration: UserPlanIntegrationService,
    seed_plan: SeedFactory,
    user_engine: Engine,
) -> None:
    seeded = seed_plan(admin_limit=1, regular_limit=2)
    integration.create_user_with_plan_validation(5, seeded.company_id, _user("first@example.com", admin=True)).unwrap()

    result = integration.create_user_with_plan_validation(
        5, seeded.company_id, _user("second@example.com", admin=True)
    )

    assert isinstance(result, Err)
    assert isinstance(result.error, LimitExceededError)
    with Session(user_engine) as session:
        emails = [user.email for user in session.exec(select(CompanyUser)).all()]
    assert emails == ["first@example.com"]


def test_create_user_rejects_duplicate_email(
    integration: UserPlanIntegrationService,
    seed_plan: SeedFactory,
) -> None:
    seeded = seed_plan()
    integration.create_user_with_plan_validation(5, seeded.company_id, _user("dup@example.com")).unwrap()

    result = integration.create_user_with_plan_validation(5, seeded.company_id, _user("DUP@example.com"))

    assert isinstance(result, Err)
    assert isinstance(result.error, ConflictError)


def test_create_user_without_subscription(integration: UserPlanIntegrationService, plan_engine: Engine) -> None:
    result = integration.create_user_with_plan_validation(5, 777, _user("nobody@example.com"))

    assert isinstance(result, Err)
    assert isinstance(result.error, NotFoundError)


def test_admin_toggle_follows_seat_limits(
    integration: UserPlanIntegrationService,
    facade: PlanFacade,
    seed_plan: SeedFactory,
) -> None:
    seeded = seed_plan(admin_limit=1, regular_limit=5)
    admin = integration.create_user_with_plan_validation(5, seeded.company_id, _user("boss@example.com", True)).unwrap()
    regular = integration.create_user_with_plan_validation(5, seeded.company_id, _user("staff@example.com")).unwrap()

    blocked = integration.change_user_admin_status(5, seeded.company_id, regular.id, True)
    assert isinstance(blocked, Err)
    assert isinstance(blocked.error, LimitExceededError)

    demoted = integration.change_user_admin_status(5, seeded.company_id, admin.id, False).unwrap()
    assert demoted.admin is False
    promoted = integration.change_user_admin_status(5, seeded.company_id, regular.id, True).unwrap()
    assert promoted.admin is True

    scopes = {seat.user_id: seat.scope for seat in facade.list_seats(seeded.subscription_id).unwrap()}
    assert scopes == {admin.id: "regular", regular.id: "admin"}


def test_remove_user_deactivates_and_releases_seat(
    integration: UserPlanIntegrationService,
    facade: PlanFacade,
    seed_plan: SeedFactory,
) -> None:
    seeded = seed_plan()
    user = integration.create_user_with_plan_validation(5, seeded.company_id, _user("leaver@example.com")).unwrap()

    removed = integration.remove_user(5, seeded.company_id, user.id).unwrap()

    assert removed.active is False
    assert facade.list_seats(seeded.subscription_id).unwrap() == []

    other_company = integration.remove_user(5, seeded.company_id + 1000, user.id)
    assert isinstance(other_company, Err)
    assert isinstance(other_company.error, NotFoundError)


def test_full_sync_admits_active_users(
    integration: UserPlanIntegrationService,
    facade: PlanFacade,
    seed_plan: SeedFactory,
    user_engine: Engine,
) -> None:
    seeded = seed_plan(admin_limit=2, regular_limit=2)
    existing = integration.create_user_with_plan_validation(5, seeded.company_id, _user("kept@example.com")).unwrap()
    with Session(user_engine) as session:
        session.add(CompanyUser(company_id=seeded.company_id, name="Bia", email="bia@example.com", admin=True))
        session.add(CompanyUser(company_id=seeded.company_id, name="Caio", email="caio@example.com"))
        session.add(CompanyUser(company_id=seeded.company_id, name="Duda", email="duda@example.com", active=False))
        session.commit()

    result = integration.full_sync_company(5, seeded.company_id).unwrap()

    assert result.skipped == [existing.id]
    assert len(result.added) == 2
    assert result.errors == []
    assert len(facade.list_seats(seeded.subscription_id).unwrap()) == 3


def test_full_sync_is_all_or_nothing(
    integration: UserPlanIntegrationService,
    facade: PlanFacade,
    seed_plan: SeedFactory,
    user_engine: Engine,
) -> None:
    seeded = seed_plan(admin_limit=1, regular_limit=5)
    with Session(user_engine) as session:
        for index in range(3):
            session.add(
                CompanyUser(company_id=seeded.company_id, name=f"Admin {index}", email=f"a{index}@example.com", admin=True)
            )
        session.commit()

    result = integration.full_sync_company(5, seeded.company_id)

    assert isinstance(result, Err)
    assert isinstance(result.error, LimitExceededError)
    assert "Admin limit (1) would be exceeded (3), 2 over" in result.error.message
    assert facade.list_seats(seeded.subscription_id).unwrap() == []


class _CommitFailingSession(Session):
    def commit(self) -> None:
        raise OperationalError("COMMIT", {}, Exception("identity database unavailable"))


class _CommitFailingIntegration(UserPlanIntegrationService):
    def _user_session(self) -> Session:
        return _CommitFailingSession(self._user_engine_factory(), expire_on_commit=False)


def test_failed_deactivation_restores_seat(
    integration: UserPlanIntegrationService,
    facade: PlanFacade,
    seed_plan: SeedFactory,
) -> None:
    seeded = seed_plan()
    user = integration.create_user_with_plan_validation(5, seeded.company_id, _user("stay@example.com", True)).unwrap()

    with pytest.raises(OperationalError):
        _CommitFailingIntegration(facade=facade).remove_user(5, seeded.company_id, user.id)

    seats = facade.list_seats(seeded.subscription_id).unwrap()
    assert [(seat.user_id, seat.scope) for seat in seats] == [(user.id, "admin")]


def test_failed_compensation_is_logged(
    integration: UserPlanIntegrationService,
    facade: PlanFacade,
    seed_plan: SeedFactory,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    seeded = seed_plan()
    user = integration.create_user_with_plan_validation(5, seeded.company_id, _user("lost@example.com")).unwrap()
    failing = _CommitFailingIntegration(facade=facade)
    caplog.set_level(logging.ERROR, logger="app.services.user_plan_integration_service")

    monkeypatch.setattr(facade, "admit_seat", lambda *args: Err(ConflictError("seat already taken")))
    with pytest.raises(OperationalError):
        failing.remove_user(5, seeded.company_id, user.id)
    assert f"could not restore seat of user {user.id}: seat already taken" in caplog.text


def test_failed_scope_restore_is_logged(
    integration: UserPlanIntegrationService,
    facade: PlanFacade,
    seed_plan: SeedFactory,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    seeded = seed_plan()
    user = integration.create_user_with_plan_validation(5, seeded.company_id, _user("mover@example.com")).unwrap()
    failing = _CommitFailingIntegration(facade=facade)
    caplog.set_level(logging.ERROR, logger="app.services.user_plan_integration_service")

    change_seat_scope = facade.change_seat_scope
    calls: list[object] = []

    def _change_once(acting_user_id: Any, company_id: Any, user_id: Any, scope: Any) -> Any:
        calls.append(scope)
        if len(calls) == 1:
            return change_seat_scope(acting_user_id, company_id, user_id, scope)
        return Err(LimitExceededError("admin seat limit reached", scope="admin"))

    monkeypatch.setattr(facade, "change_seat_scope", _change_once)
    with pytest.raises(OperationalError):
        failing.change_user_admin_status(5, seeded.company_id, user.id, True)

    assert len(calls) == 2
    assert f"could not restore seat scope of user {user.id}: admin seat limit reached" in caplog.text
