from __future__ import annotations

from collections.abc import Callable
from datetime import date
from decimal import Decimal
from typing import Any

import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.domain.errors import ConflictError, NotFoundError, ValidationError
from app.domain.models import (
    CompanySubscription,
    EventEnvelope,
    PlanCreate,
    PlanReportCreate,
    PlanReportUpdate,
    PlanTypeCreate,
    PlanTypeUpdate,
    PlanUpdate,
    SeatLimitConfigCreate,
    SeatLimitConfigUpdate,
    SubscriptionCreate,
)
from app.domain.result import Err
from app.infra.cache import PlanCache
from app.services.plan_facade import PlanFacade

SeedFactory = Callable[..., Any]


def _plan_type(facade: PlanFacade, name: str = "Starter", is_active: bool = True) -> int:
    return facade.create_plan_type(1, PlanTypeCreate(type_name=name, is_active=is_active)).unwrap().id


def test_plan_round_trip(facade: PlanFacade) -> None:
    plan_type_id = _plan_type(facade)
    created = facade.create_plan(
        1,
        PlanCreate(
            plan_type_id=plan_type_id,
            name="Basic Monthly",
            description="Entry plan",
            default_amount=Decimal("29.99"),
            duration="monthly",
        ),
    ).unwrap()

    loaded = facade.get_plan(created.id).unwrap()
    assert loaded.name == "Basic Monthly"
    assert loaded.description == "Entry plan"
    assert Decimal(str(loaded.default_amount)) == Decimal("29.99")
    assert loaded.duration == "monthly"
    assert loaded.plan_type_id == plan_type_id


def test_plan_validation(facade: PlanFacade) -> None:
    plan_type_id = _plan_type(facade)

    def _create(**overrides: Any) -> Any:
        fields: dict[str, Any] = {
            "plan_type_id": plan_type_id,
            "name": "Pro Plan",
            "default_amount": Decimal("10"),
            "duration": "yearly",
        }
        fields.update(overrides)
        return facade.create_plan(1, PlanCreate(**fields))

    for overrides in ({"name": " ab "}, {"default_amount": Decimal("-1")}, {"duration": "weekly"}):
        result = _create(**overrides)
        assert isinstance(result, Err)
        assert isinstance(result.error, ValidationError)

    missing_type = _create(plan_type_id=999)
    assert isinstance(missing_type, Err)
    assert isinstance(missing_type.error, NotFoundError)

    bad_id = _create(plan_type_id=0)
    assert isinstance(bad_id, Err)
    assert isinstance(bad_id.error, ValidationError)

    trimmed = _create(name="  Pro Plan  ", duration="QUARTERLY").unwrap()
    assert trimmed.name == "Pro Plan"
    assert trimmed.duration == "quarterly"


def test_plan_type_crud(facade: PlanFacade) -> None:
    short = facade.create_plan_type(1, PlanTypeCreate(type_name="X"))
    assert isinstance(short, Err)
    assert isinstance(short.error, ValidationError)

    plan_type_id = _plan_type(facade, "Enterprise")
    updated = facade.update_plan_type(1, plan_type_id, PlanTypeUpdate(is_active=False)).unwrap()
    assert updated.is_active is False
    assert [item.id for item in facade.list_plan_types(is_active=False).unwrap()] == [plan_type_id]

    facade.delete_plan_type(1, plan_type_id).unwrap()
    missing = facade.get_plan_type(plan_type_id)
    assert isinstance(missing, Err)
    assert isinstance(missing.error, NotFoundError)


def test_referenced_rows_cannot_be_deleted(facade: PlanFacade, seed_plan: SeedFactory) -> None:
    seeded = seed_plan()

    plan_type = facade.delete_plan_type(1, seeded.plan_type_id)
    assert isinstance(plan_type, Err)
    assert isinstance(plan_type.error, ConflictError)

    plan = facade.delete_plan(1, seeded.plan_id)
    assert isinstance(plan, Err)
    assert isinstance(plan.error, ConflictError)


def test_seat_limit_configuration(facade: PlanFacade) -> None:
    plan_type_id = _plan_type(facade)
    payload = SeatLimitConfigCreate(plan_type_id=plan_type_id, scope="admin", max_seats=2, extra_seat_price=Decimal("5"))
    config = facade.create_seat_limit(1, payload).unwrap()

    duplicate = facade.create_seat_limit(1, payload)
    assert isinstance(duplicate, Err)
    assert isinstance(duplicate.error, ConflictError)

    for bad in (
        SeatLimitConfigCreate(plan_type_id=plan_type_id, scope="regular", max_seats=0, extra_seat_price=Decimal("5")),
        SeatLimitConfigCreate(plan_type_id=plan_type_id, scope="regular", max_seats=3, extra_seat_price=Decimal("-5")),
        SeatLimitConfigCreate(plan_type_id=plan_type_id, scope="guest", max_seats=3, extra_seat_price=Decimal("5")),
    ):
        result = facade.create_seat_limit(1, bad)
        assert isinstance(result, Err)
        assert isinstance(result.error, ValidationError)

    updated = facade.update_seat_limit(1, config.id, SeatLimitConfigUpdate(max_seats=4)).unwrap()
    assert updated.max_seats == 4
    assert facade.get_seat_limit_for_scope(plan_type_id, "admin").unwrap().id == config.id
    assert len(facade.list_seat_limits(plan_type_id).unwrap()) == 1

    facade.delete_seat_limit(1, config.id).unwrap()
    assert isinstance(facade.get_seat_limit(config.id), Err)


def test_duplicate_active_subscription_is_rejected(
    facade: PlanFacade,
    seed_plan: SeedFactory,
    plan_engine: Engine,
) -> None:
    seeded = seed_plan()
    result = facade.create_subscription(
        1,
        SubscriptionCreate(
            company_id=seeded.company_id,
            plan_id=seeded.plan_id,
            amount=Decimal("10"),
            start_date=date(2026, 2, 1),
            end_date=date(2026, 3, 1),
        ),
    )
    assert isinstance(result, Err)
    assert isinstance(result.error, ConflictError)

    with Session(plan_engine) as session:
        rows = session.exec(
            select(CompanySubscription).where(CompanySubscription.company_id == seeded.company_id)
        ).all()
    assert len(rows) == 1


def test_active_subscription_is_unique_in_storage(seed_plan: SeedFactory, plan_engine: Engine) -> None:
    seeded = seed_plan()
    with Session(plan_engine) as session:
        session.add(
            CompanySubscription(
                company_id=seeded.company_id,
                plan_id=seeded.plan_id,
                amount=Decimal("1"),
                start_date=date(2026, 1, 1),
                end_date=date(2026, 6, 1),
                status="active",
            )
        )
        with pytest.raises(IntegrityError):
            session.commit()


@pytest.mark.parametrize(
    ("start", "end", "amount"),
    [
        (date(2026, 1, 1), date(2026, 1, 1), Decimal("1")),
        (date(2026, 2, 1), date(2026, 1, 1), Decimal("1")),
        (date(2026, 1, 1), date(2026, 2, 1), Decimal("-1")),
    ],
)
def test_subscription_validation(
    facade: PlanFacade,
    seed_plan: SeedFactory,
    start: date,
    end: date,
    amount: Decimal,
) -> None:
    seeded = seed_plan()
    result = facade.create_subscription(
        1,
        SubscriptionCreate(company_id=4242, plan_id=seeded.plan_id, amount=amount, start_date=start, end_date=end),
    )
    assert isinstance(result, Err)
    assert isinstance(result.error, ValidationError)


def test_new_subscription_allowed_after_cancellation(facade: PlanFacade, seed_plan: SeedFactory) -> None:
    seeded = seed_plan()
    cancellation = facade.request_cancellation(1, seeded.subscription_id, "switching").unwrap()
    facade.confirm_cancellation(1, cancellation.id).unwrap()

    renewed = facade.create_subscription(
        1,
        SubscriptionCreate(
            company_id=seeded.company_id,
            plan_id=seeded.plan_id,
            amount=Decimal("10"),
            start_date=date(2027, 1, 1),
            end_date=date(2028, 1, 1),
        ),
    ).unwrap()
    assert facade.get_active_subscription(seeded.company_id).unwrap().id == renewed.id
    assert len(facade.list_subscriptions(seeded.company_id).unwrap()) == 2


def test_reports(facade: PlanFacade, seed_plan: SeedFactory) -> None:
    seeded = seed_plan()
    report = facade.add_report(1, PlanReportCreate(plan_type_id=seeded.plan_type_id, template_id=11)).unwrap()
    facade.add_report(1, PlanReportCreate(plan_type_id=seeded.plan_type_id, template_id=12)).unwrap()

    missing_type = facade.add_report(1, PlanReportCreate(plan_type_id=5555, template_id=11))
    assert isinstance(missing_type, Err)
    assert isinstance(missing_type.error, NotFoundError)

    assert [item.template_id for item in facade.get_company_reports(seeded.company_id).unwrap()] == [11, 12]
    assert facade.get_company_reports(88_888).unwrap() == []

    facade.update_report(1, report.id, PlanReportUpdate(template_id=21)).unwrap()
    assert [item.id for item in facade.list_reports_by_template(21).unwrap()] == [report.id]

    facade.delete_report(1, report.id).unwrap()
    assert len(facade.list_reports_by_plan_type(seeded.plan_type_id).unwrap()) == 1


def _catalog_fixture(facade: PlanFacade) -> dict[str, int]:
    business = _plan_type(facade, "Business")
    legacy = _plan_type(facade, "Legacy", is_active=False)
    facade.create_seat_limit(
        1,
        SeatLimitConfigCreate(plan_type_id=business, scope="admin", max_seats=3, extra_seat_price=Decimal("50")),
    ).unwrap()
    facade.create_seat_limit(
        1,
        SeatLimitConfigCreate(plan_type_id=business, scope="regular", max_seats=10, extra_seat_price=Decimal("20")),
    ).unwrap()
    ids = {}
    for name, amount, duration, plan_type_id in (
        ("Basic Monthly", "29.99", "monthly", business),
        ("Basic Yearly", "299.00", "yearly", business),
        ("Premium Monthly", "99.00", "monthly", business),
        ("Old Plan", "5.00", "monthly", legacy),
    ):
        plan = facade.create_plan(
            1,
            PlanCreate(
                plan_type_id=plan_type_id,
                name=name,
                default_amount=Decimal(amount),
                duration=duration,
            ),
        ).unwrap()
        ids[name] = plan.id
    return ids


def test_public_catalog_listing(facade: PlanFacade) -> None:
    ids = _catalog_fixture(facade)

    page = facade.list_public_plans().unwrap()
    assert [item.name for item in page.items] == ["Basic Monthly", "Basic Yearly", "Premium Monthly"]
    first = page.items[0]
    assert first.currency == "BRL"
    assert first.plan_type.type_name == "Business"
    assert first.admin_seat_limit == 3
    assert first.regular_seat_limit == 10
    assert Decimal(str(first.admin_extra_seat_price)) == Decimal("50")
    assert Decimal(str(first.regular_extra_seat_price)) == Decimal("20")
    assert Decimal(str(first.base_price)) == Decimal("29.99")

    by_price = facade.list_public_plans(sort_by="price", order="desc").unwrap()
    assert [item.name for item in by_price.items] == ["Basic Yearly", "Premium Monthly", "Basic Monthly"]

    filtered = facade.list_public_plans(duration="monthly", min_price="50", plan_type="business").unwrap()
    assert [item.name for item in filtered.items] == ["Premium Monthly"]

    paged = facade.list_public_plans(limit=1, offset=1).unwrap()
    assert [item.name for item in paged.items] == ["Basic Yearly"]

    inactive = facade.list_public_plans(active=False).unwrap()
    assert [item.id for item in inactive.items] == [ids["Old Plan"]]
    assert inactive.items[0].admin_seat_limit == 0

    single = facade.get_public_plan(ids["Premium Monthly"]).unwrap()
    assert single.name == "Premium Monthly"
    assert isinstance(facade.get_public_plan(9999), Err)


def test_public_catalog_cache_is_invalidated_on_change(facade: PlanFacade, fake_redis: Any) -> None:
    ids = _catalog_fixture(facade)

    facade.list_public_plans().unwrap()
    assert any(key.startswith("plans:catalog:") for key in fake_redis.store)

    facade.update_plan(1, ids["Basic Monthly"], PlanUpdate(name="Basic Monthly Plus")).unwrap()
    assert not any(key.startswith("plans:catalog:") for key in fake_redis.store)

    names = [item.name for item in facade.list_public_plans().unwrap().items]
    assert "Basic Monthly Plus" in names


def test_page_stored_after_invalidation_is_never_served(fake_redis: Any) -> None:
    cache = PlanCache(enabled=True)
    generation = cache.catalog_generation()
    assert generation == 0

    # A writer commits between the reader's query and its cache fill.
    cache.handle_event(EventEnvelope(event_type="plan.updated", payload={"plan_id": 1}))
    cache.set_catalog("active=true", generation, [{"name": "stale"}])

    current = cache.catalog_generation()
    assert current == 1
    assert cache.get_catalog("active=true", current) is None
    cache.set_catalog("active=true", current, [{"name": "fresh"}])
    assert cache.get_catalog("active=true", current) == [{"name": "fresh"}]


def test_catalog_is_not_cached_when_generation_is_unreadable(facade: PlanFacade, fake_redis: Any) -> None:
    _catalog_fixture(facade)
    fake_redis.store["plans:catalog_generation"] = "garbage"

    facade.list_public_plans().unwrap()
    assert not any(key.startswith("plans:catalog:") for key in fake_redis.store)
