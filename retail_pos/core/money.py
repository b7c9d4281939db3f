from __future__ import annotations

import enum
from decimal import ROUND_HALF_UP, Decimal
from typing import NamedTuple, Union

Number = Union[Decimal, int, float, str]

ZERO = Decimal("0")
HUNDRED = Decimal("100")


class DiscountType(str, enum.Enum):
    flat = "flat"
    percentage = "percentage"


class TaxType(str, enum.Enum):
    inclusive = "inclusive"
    exclusive = "exclusive"


class TaxBreakdown(NamedTuple):
    tax_amount: Decimal
    net_amount: Decimal


def to_decimal(v: Number | None) -> Decimal:
    if v is None:
        return ZERO
    if isinstance(v, Decimal):
        return v
    # str() first so 0.1 stays 0.1 instead of its binary expansion
    return Decimal(str(v))


def money(v: Number, places: int = 2) -> Decimal:
    q = Decimal(1).scaleb(-places)
    return to_decimal(v).quantize(q, rounding=ROUND_HALF_UP)


def calculate_discount(subtotal: Number, value: Number, discount_type: DiscountType | str) -> Decimal:
    """Resolve a discount to an absolute amount.

    Percentage results are left unrounded so a pricing pipeline rounds once at
    the end. Flat values come back unchanged, and neither kind is clamped to
    ``subtotal``: that is the caller's job.
    """
    if DiscountType(discount_type) is DiscountType.percentage:
        return to_decimal(subtotal) * to_decimal(value) / HUNDRED
    return to_decimal(value)


def calculate_tax(amount: Number, rate: Number, tax_type: TaxType | str) -> TaxBreakdown:
    amount = to_decimal(amount)
    rate = to_decimal(rate)
    if rate == 0:
        return TaxBreakdown(ZERO, amount)
    if TaxType(tax_type) is TaxType.inclusive:
        net = amount / (1 + rate / HUNDRED)
        return TaxBreakdown(amount - net, net)
    return TaxBreakdown(amount * rate / HUNDRED, amount)
