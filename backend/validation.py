from __future__ import annotations

from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any

from backend import config
from backend.errors import InvalidAmount, InvalidDate, InvalidType, ValidationError

CENT = Decimal("0.01")


class Direction(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"

    @classmethod
    def values(cls) -> set[str]:
        return {member.value for member in cls}

    @classmethod
    def validate(cls, value: Any) -> "Direction":
        if not isinstance(value, str) or value.strip() not in cls.values():
            raise InvalidType()
        return cls(value.strip())

    @classmethod
    def parse_optional(cls, value: Any) -> "Direction | None":
        """Lenient variant for list filters: unknown values are ignored."""
        if isinstance(value, str) and value.strip() in cls.values():
            return cls(value.strip())
        return None


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


def round_currency(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def coerce_decimal(value: Decimal | float | int | str) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def parse_amount(value: Any) -> Decimal:
    if value is None or isinstance(value, bool):
        raise InvalidAmount()
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise InvalidAmount()
    elif not isinstance(value, (int, float, Decimal)):
        raise InvalidAmount()
    try:
        amount = coerce_decimal(value)
    except (InvalidOperation, ValueError):
        raise InvalidAmount() from None
    if not amount.is_finite() or amount <= 0:
        raise InvalidAmount()
    rounded = round_currency(amount)
    # Sub-cent amounts would be stored as zero.
    if rounded <= 0:
        raise InvalidAmount()
    return rounded


def parse_date(value: Any, message: str | None = None) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time())
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text[-1] in "Zz":
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise InvalidDate(message) from None
    else:
        raise InvalidDate(message)

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def end_of_day(value: datetime) -> datetime:
    return value.replace(hour=23, minute=59, second=59, microsecond=999000)


def clean_text(value: Any) -> str | None:
    if value is None:
        return None
    cleaned = str(value).strip()
    return cleaned or None


def validate_currency(value: Any) -> str:
    if not isinstance(value, str):
        raise ValidationError("Currency must be a 3-letter ISO 4217 code.")
    try:
        return config.normalize_currency(value)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
