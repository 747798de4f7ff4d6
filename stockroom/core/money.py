from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable

TWOPLACES = Decimal("0.01")


def to_decimal(value: Any) -> Decimal | None:
    """Best-effort conversion of incoming values to Decimal for currency math."""

    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        cleaned = value.strip().replace("$", "").replace(",", "")
        if not cleaned:
            return None
        try:
            return Decimal(cleaned)
        except InvalidOperation:
            return None
    return None


def quantize_currency(value: Decimal) -> Decimal:
    return value.quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def line_total(quantity: int, unit_price: Decimal) -> Decimal:
    return quantize_currency(Decimal(quantity) * unit_price)


def sum_money(values: Iterable[Decimal]) -> Decimal:
    return quantize_currency(sum(values, Decimal("0")))
