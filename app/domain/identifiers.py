from __future__ import annotations

import math
import re
from dataclasses import dataclass
from decimal import Decimal

from app.domain.errors import ValidationError
from app.domain.result import Err, Ok, Result

# primary and reference key columns are 32-bit INTEGER
MAX_IDENTIFIER = 2**31 - 1

_DIGITS = re.compile(r"^[+-]?\d+$")
_MAX_DIGITS = len(str(MAX_IDENTIFIER))


@dataclass(frozen=True, order=True, slots=True)
class Identifier:
    """Positive integer key of a stored row.

    Construct through ``Identifier.parse`` when the input is untrusted; the
    constructor itself refuses anything but an ``int`` in ``1..MAX_IDENTIFIER``.
    """

    value: int

    def __post_init__(self) -> None:
        if type(self.value) is not int or not 0 < self.value <= MAX_IDENTIFIER:
            raise ValidationError(
                f"identifier must be a positive integer up to {MAX_IDENTIFIER}, got {self.value!r}"
            )

    def __int__(self) -> int:
        return self.value

    def __str__(self) -> str:
        return str(self.value)

    @classmethod
    def parse(cls, raw: object, field_name: str = "id") -> Result[Identifier, ValidationError]:
        number = _coerce_integer(raw)
        if number is None:
            return Err(ValidationError(f"{field_name} must be an integer, got {raw!r}"))
        if number <= 0:
            return Err(ValidationError(f"{field_name} must be positive, got {number}"))
        if number > MAX_IDENTIFIER:
            return Err(ValidationError(f"{field_name} must be at most {MAX_IDENTIFIER}"))
        return Ok(cls(number))


def _coerce_integer(raw: object) -> int | None:
    if isinstance(raw, Identifier):
        return raw.value
    if isinstance(raw, bool) or raw is None:
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        if not math.isfinite(raw) or not raw.is_integer():
            return None
        return int(raw)
    if isinstance(raw, Decimal):
        if not raw.is_finite() or raw != raw.to_integral_value():
            return None
        if raw.adjusted() >= _MAX_DIGITS:
            return -MAX_IDENTIFIER if raw < 0 else MAX_IDENTIFIER + 1
        return int(raw)
    if isinstance(raw, str):
        text = raw.strip()
        if not _DIGITS.match(text):
            return None
        if len(text.lstrip("+-").lstrip("0")) > _MAX_DIGITS:
            return -MAX_IDENTIFIER if text.startswith("-") else MAX_IDENTIFIER + 1
        return int(text)
    return None


def require_identifier(raw: object, field_name: str = "id") -> int:
    """Return the validated integer or raise ``ValidationError``."""
    parsed = Identifier.parse(raw, field_name)
    if isinstance(parsed, Err):
        raise parsed.error
    return parsed.value.value
