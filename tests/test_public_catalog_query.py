from __future__ import annotations

from decimal import Decimal

import pytest

from app.domain.catalog import DEFAULT_PAGE_LIMIT, build_public_plan_query
from app.domain.errors import ValidationError
from app.domain.models import PlanDuration
from app.domain.result import Err, Ok
from app.services.plan_facade import PlanFacade


def test_defaults() -> None:
    parsed = build_public_plan_query()
    assert isinstance(parsed, Ok)
    query = parsed.value
    assert query.limit == DEFAULT_PAGE_LIMIT
    assert query.offset == 0
    assert query.active is True
    assert query.sort_by == "name"
    assert query.order == "asc"
    assert query.duration is None


def test_normalizes_values() -> None:
    parsed = build_public_plan_query(
        limit=100,
        offset=40,
        plan_type="  Business ",
        duration="YEARLY",
        min_price="10",
        max_price=Decimal("99.90"),
        sort_by="Price",
        order="DESC",
    )
    assert isinstance(parsed, Ok)
    query = parsed.value
    assert query.plan_type == "Business"
    assert query.duration == PlanDuration.YEARLY
    assert query.min_price == Decimal("10")
    assert query.sort_by == "price"
    assert query.order == "desc"


@pytest.mark.parametrize(
    ("params", "fragment"),
    [
        ({"limit": 0}, "limit"),
        ({"limit": 101}, "limit"),
        ({"offset": -1}, "offset"),
        ({"min_price": -1}, "min_price"),
        ({"max_price": "-0.01"}, "max_price"),
        ({"min_price": "abc"}, "min_price"),
        ({"min_price": 50, "max_price": 10}, "greater"),
        ({"sort_by": "popularity"}, "sort_by"),
        ({"order": "up"}, "order"),
        ({"duration": "weekly"}, "duration"),
    ],
)
def test_rejects_invalid_parameters(params: dict[str, object], fragment: str) -> None:
    parsed = build_public_plan_query(**params)  # type: ignore[arg-type]
    assert isinstance(parsed, Err)
    assert isinstance(parsed.error, ValidationError)
    assert fragment in parsed.error.message


def test_facade_fails_fast_without_opening_a_transaction() -> None:
    def _no_storage() -> object:
        raise AssertionError("storage must not be touched")

    facade = PlanFacade(uow_factory=_no_storage)  # type: ignore[arg-type]
    result = facade.list_public_plans(limit=500)
    assert isinstance(result, Err)
    assert isinstance(result.error, ValidationError)
