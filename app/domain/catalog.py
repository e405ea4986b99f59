from __future__ import annotations

from decimal import Decimal, InvalidOperation

from pydantic import BaseModel

from app.domain.errors import ValidationError
from app.domain.models import PlanDuration
from app.domain.result import Err, Ok, Result

PUBLIC_CURRENCY = "BRL"
DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100
SORT_FIELDS = ("price", "name", "created_at")
SORT_ORDERS = ("asc", "desc")


class PublicPlanQuery(BaseModel):
    limit: int = DEFAULT_PAGE_LIMIT
    offset: int = 0
    plan_type: str | None = None
    duration: PlanDuration | None = None
    active: bool = True
    min_price: Decimal | None = None
    max_price: Decimal | None = None
    sort_by: str = "name"
    order: str = "asc"

    def cache_key_part(self) -> str:
        return self.model_dump_json()


def _as_price(value: object, field_name: str) -> Decimal | None:
    if value is None:
        return None
    try:
        price = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValidationError(f"{field_name} must be a number") from exc
    if not price.is_finite():
        raise ValidationError(f"{field_name} must be a number")
    if price < 0:
        raise ValidationError(f"{field_name} cannot be negative")
    return price


def build_public_plan_query(
    *,
    limit: int | None = None,
    offset: int | None = None,
    plan_type: str | None = None,
    duration: str | None = None,
    active: bool | None = None,
    min_price: object = None,
    max_price: object = None,
    sort_by: str | None = None,
    order: str | None = None,
) -> Result[PublicPlanQuery, ValidationError]:
    """Validate catalog listing parameters before any storage access."""
    try:
        page_limit = DEFAULT_PAGE_LIMIT if limit is None else limit
        if page_limit < 1 or page_limit > MAX_PAGE_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_LIMIT}")
        page_offset = 0 if offset is None else offset
        if page_offset < 0:
            raise ValidationError("offset cannot be negative")

        parsed_duration: PlanDuration | None = None
        if duration is not None:
            try:
                parsed_duration = PlanDuration(duration.strip().lower())
            except ValueError as exc:
                allowed = ", ".join(item.value for item in PlanDuration)
                raise ValidationError(f"duration must be one of: {allowed}") from exc

        low = _as_price(min_price, "min_price")
        high = _as_price(max_price, "max_price")
        if low is not None and high is not None and low > high:
            raise ValidationError("min_price cannot be greater than max_price")

        sort_field = (sort_by or "name").strip().lower()
        if sort_field not in SORT_FIELDS:
            raise ValidationError(f"sort_by must be one of: {', '.join(SORT_FIELDS)}")
        sort_order = (order or "asc").strip().lower()
        if sort_order not in SORT_ORDERS:
            raise ValidationError("order must be asc or desc")

        type_filter = plan_type.strip() if plan_type else None
    except ValidationError as exc:
        return Err(exc)

    return Ok(
        PublicPlanQuery(
            limit=page_limit,
            offset=page_offset,
            plan_type=type_filter or None,
            duration=parsed_duration,
            active=True if active is None else active,
            min_price=low,
            max_price=high,
            sort_by=sort_field,
            order=sort_order,
        )
    )
