from __future__ import annotations

from collections.abc import Callable
from typing import Any

from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from app.domain.errors import AlreadyProcessedError, InvalidStateError, NotFoundError, ValidationError
from app.domain.models import ChangeType, EventRecord, SubscriptionHistory
from app.domain.result import Err
from app.domain.state_machine import CancellationState, SubscriptionStatus
from app.services.plan_facade import PlanFacade

SeedFactory = Callable[..., Any]


def test_request_keeps_subscription_active(facade: PlanFacade, seed_plan: SeedFactory) -> None:
    seeded = seed_plan()

    cancellation = facade.request_cancellation(7, seeded.subscription_id, "  too expensive ", "budget cut").unwrap()

    assert cancellation.reason == "too expensive"
    assert cancellation.details == "budget cut"
    assert cancellation.cancelled_by_user_id == 7
    assert cancellation.cancelled_at is None
    assert cancellation.requested_at is not None
    assert cancellation.state == CancellationState.REQUESTED
    assert facade.get_subscription(seeded.subscription_id).unwrap().status == SubscriptionStatus.ACTIVE


def test_confirm_cancels_and_records_history(
    facade: PlanFacade,
    seed_plan: SeedFactory,
    plan_engine: Engine,
) -> None:
    seeded = seed_plan()
    cancellation = facade.request_cancellation(7, seeded.subscription_id, "closing").unwrap()

    confirmed = facade.confirm_cancellation(9, cancellation.id).unwrap()

    assert confirmed.id == cancellation.id
    assert confirmed.cancelled_at is not None
    assert confirmed.confirmed_by_user_id == 9
    assert confirmed.state == CancellationState.CONFIRMED
    assert facade.get_subscription(seeded.subscription_id).unwrap().status == SubscriptionStatus.CANCELLED

    history = facade.list_history(seeded.subscription_id).unwrap()
    assert len(history) == 1
    assert history[0].change_type == ChangeType.CANCELLATION
    assert history[0].previous_plan_id == seeded.plan_id
    assert history[0].new_plan_id is None
    assert history[0].reason == "Cancellation confirmed"
    assert history[0].changed_by_user_id == 9

    with Session(plan_engine) as session:
        events = session.exec(select(EventRecord).where(EventRecord.event_type == "cancellation.confirmed")).all()
    assert len(events) == 1
    assert events[0].actor_id == 9

    assert isinstance(facade.get_active_subscription(seeded.company_id), Err)


def test_confirming_twice_fails_and_changes_nothing(
    facade: PlanFacade,
    seed_plan: SeedFactory,
    plan_engine: Engine,
) -> None:
    seeded = seed_plan()
    cancellation = facade.request_cancellation(1, seeded.subscription_id, "closing").unwrap()
    facade.confirm_cancellation(1, cancellation.id, "customer request").unwrap()

    second = facade.confirm_cancellation(1, cancellation.id, "again")
    assert isinstance(second, Err)
    assert isinstance(second.error, AlreadyProcessedError)
    assert isinstance(second.error, InvalidStateError)

    with Session(plan_engine) as session:
        rows = session.exec(
            select(SubscriptionHistory).where(SubscriptionHistory.subscription_id == seeded.subscription_id)
        ).all()
    assert [row.reason for row in rows] == ["customer request"]


def test_second_request_cannot_cancel_again(facade: PlanFacade, seed_plan: SeedFactory) -> None:
    seeded = seed_plan()
    first = facade.request_cancellation(1, seeded.subscription_id, "first").unwrap()
    second = facade.request_cancellation(1, seeded.subscription_id, "second").unwrap()
    facade.confirm_cancellation(1, first.id).unwrap()

    result = facade.confirm_cancellation(1, second.id)
    assert isinstance(result, Err)
    assert isinstance(result.error, InvalidStateError)
    assert len(facade.list_history(seeded.subscription_id).unwrap()) == 1
    assert len(facade.list_cancellations(seeded.subscription_id).unwrap()) == 2


def test_request_validation(facade: PlanFacade, seed_plan: SeedFactory) -> None:
    seeded = seed_plan()

    empty = facade.request_cancellation(1, seeded.subscription_id, "   ")
    assert isinstance(empty, Err)
    assert isinstance(empty.error, ValidationError)

    missing = facade.request_cancellation(1, 31337, "reason")
    assert isinstance(missing, Err)
    assert isinstance(missing.error, NotFoundError)

    unknown = facade.confirm_cancellation(1, 31337)
    assert isinstance(unknown, Err)
    assert isinstance(unknown.error, NotFoundError)

    cancellation = facade.request_cancellation(1, seeded.subscription_id, "closing").unwrap()
    facade.confirm_cancellation(1, cancellation.id).unwrap()
    inactive = facade.request_cancellation(1, seeded.subscription_id, "again")
    assert isinstance(inactive, Err)
    assert isinstance(inactive.error, InvalidStateError)
