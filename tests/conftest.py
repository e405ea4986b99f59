from __future__ import annotations

import fnmatch
from collections.abc import Callable, Generator, Iterator
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

from app.domain.models import (
    PlanCreate,
    PlanTypeCreate,
    SeatLimitConfigCreate,
    SubscriptionCreate,
)
from app.infra import db, redis_state, user_db
from app.services.plan_facade import PlanFacade


class FakeRedis:
    def __init__(self) -> None:
        self.store: dict[str, str] = {}

    def ping(self) -> bool:
        return True

    def get(self, key: str) -> str | None:
        return self.store.get(key)

    def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self.store[key] = value
        return True

    def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
        return removed

    def incr(self, key: str) -> int:
        value = int(self.store.get(key, "0")) + 1
        self.store[key] = str(value)
        return value

    def scan_iter(self, match: str | None = None) -> Iterator[str]:
        for key in list(self.store):
            if match is None or fnmatch.fnmatch(key, match):
                yield key


def _sqlite_engine(path: Path) -> Engine:
    engine = create_engine(
        f"sqlite:///{path}",
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection: object, _connection_record: object) -> None:
        cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch: pytest.MonkeyPatch) -> FakeRedis:
    client = FakeRedis()
    monkeypatch.setattr(redis_state, "get_redis", lambda: client)
    return client


@pytest.fixture()
def plan_engine(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[Engine, None, None]:
    engine = _sqlite_engine(tmp_path / "plans_test.db")
    monkeypatch.setattr(db, "engine", engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def user_engine(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[Engine, None, None]:
    engine = _sqlite_engine(tmp_path / "identity_test.db")
    monkeypatch.setattr(user_db, "user_engine", engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def facade(plan_engine: Engine) -> PlanFacade:
    return PlanFacade()


@dataclass
class SeededPlan:
    plan_type_id: int
    plan_id: int
    subscription_id: int
    company_id: int


SeedFactory = Callable[..., SeededPlan]


@pytest.fixture()
def seed_plan(facade: PlanFacade) -> SeedFactory:
    counter = {"company": 100}

    def _seed(
        *,
        admin_limit: int | None = 3,
        regular_limit: int | None = 10,
        admin_price: str = "50",
        regular_price: str = "20",
        amount: str = "199.90",
        additional_user_amount: str = "0",
        company_id: int | None = None,
    ) -> SeededPlan:
        counter["company"] += 1
        company = company_id or counter["company"]
        plan_type = facade.create_plan_type(1, PlanTypeCreate(type_name="Business")).unwrap()
        if admin_limit is not None:
            facade.create_seat_limit(
                1,
                SeatLimitConfigCreate(
                    plan_type_id=plan_type.id,
                    scope="admin",
                    max_seats=admin_limit,
                    extra_seat_price=Decimal(admin_price),
                ),
            ).unwrap()
        if regular_limit is not None:
            facade.create_seat_limit(
                1,
                SeatLimitConfigCreate(
                    plan_type_id=plan_type.id,
                    scope="regular",
                    max_seats=regular_limit,
                    extra_seat_price=Decimal(regular_price),
                ),
            ).unwrap()
        plan = facade.create_plan(
            1,
            PlanCreate(
                plan_type_id=plan_type.id,
                name="Business Monthly",
                default_amount=Decimal(amount),
                duration="monthly",
            ),
        ).unwrap()
        subscription = facade.create_subscription(
            1,
            SubscriptionCreate(
                company_id=company,
                plan_id=plan.id,
                amount=Decimal(amount),
                start_date=date(2026, 1, 1),
                end_date=date(2027, 1, 1),
                additional_user_amount=Decimal(additional_user_amount),
            ),
        ).unwrap()
        return SeededPlan(
            plan_type_id=plan_type.id,
            plan_id=plan.id,
            subscription_id=subscription.id,
            company_id=company,
        )

    return _seed
