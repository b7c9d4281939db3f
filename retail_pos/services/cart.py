"""
In-memory cart pricing.

A ``Cart`` belongs to one POS session. Line discounts are stored as absolute
amounts; the cart discount and every coupon are resolved to an amount when
they are applied, against the subtotal at that moment. Nothing here rounds
until ``totals()``, which rounds each figure once.

Every mutating method validates first and mutates last, so a call that raises
leaves the cart exactly as it was.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional

from ..core.config import settings
from ..core.errors import (
    CouponAlreadyApplied,
    CouponInactive,
    InvalidDiscount,
    InvalidQuantity,
    MinimumNotMet,
    NotFound,
)
from ..core.money import (
    HUNDRED,
    ZERO,
    DiscountType,
    Number,
    TaxType,
    calculate_discount,
    calculate_tax,
    money,
    to_decimal,
)


@dataclass(frozen=True)
class ProductSnapshot:
    id: int
    unit_id: int
    unit_price: Decimal
    tax_rate: Decimal = ZERO
    name: str = ""


@dataclass(frozen=True)
class CouponRef:
    """What the cart needs to know about a coupon. Never mutated by the cart."""

    id: int
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    minimum_cart_value: Optional[Decimal] = None
    max_discount: Optional[Decimal] = None
    active: bool = True


@dataclass
class AppliedCoupon:
    coupon: CouponRef
    amount: Decimal


@dataclass
class CartLine:
    id: str
    product_id: int
    unit_id: int
    unit_price: Decimal
    quantity: int
    tax_rate: Decimal = ZERO
    name: str = ""
    discount: Decimal = ZERO
    discount_type: DiscountType = DiscountType.flat
    discount_value: Decimal = ZERO

    @property
    def gross(self) -> Decimal:
        return self.unit_price * self.quantity

    @property
    def total(self) -> Decimal:
        return self.gross - self.discount


@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal
    total_discount: Decimal
    tax: Decimal
    grand_total: Decimal

    def as_dict(self) -> Dict[str, Decimal]:
        return {
            "subtotal": self.subtotal,
            "total_discount": self.total_discount,
            "tax": self.tax,
            "grand_total": self.grand_total,
        }


def coupon_discount(coupon: CouponRef, subtotal: Decimal) -> Decimal:
    """Discount a coupon is worth against ``subtotal``, capped at ``max_discount``."""
    if coupon.minimum_cart_value is not None and subtotal < coupon.minimum_cart_value:
        raise MinimumNotMet(
            f"Minimum cart value of {coupon.minimum_cart_value} required",
            minimum_cart_value=str(coupon.minimum_cart_value),
        )
    amount = calculate_discount(subtotal, coupon.discount_value, coupon.discount_type)
    if coupon.max_discount is not None and amount > coupon.max_discount:
        amount = coupon.max_discount
    return max(amount, ZERO)


def _check_quantity(quantity: Any) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise InvalidQuantity(f"quantity must be a positive integer, got {quantity!r}")
    return quantity


def _check_discount(discount_type: DiscountType | str, value: Number) -> tuple[DiscountType, Decimal]:
    try:
        dtype = DiscountType(discount_type)
    except ValueError:
        raise InvalidDiscount(f"unknown discount type {discount_type!r}")
    value = to_decimal(value)
    if value < 0:
        raise InvalidDiscount("discount value must not be negative")
    if dtype is DiscountType.percentage and value > HUNDRED:
        raise InvalidDiscount("percentage discount must not exceed 100")
    return dtype, value


class Cart:
    def __init__(self, tax_type: TaxType | str | None = None, cart_id: Optional[str] = None):
        self.id = cart_id or uuid.uuid4().hex[:12]
        self.tax_type = TaxType(tax_type or settings.tax_type)
        self.lines: List[CartLine] = []
        self.cart_discount = ZERO
        self.cart_discount_type = DiscountType.flat
        self.cart_discount_value = ZERO
        self.applied_coupons: List[AppliedCoupon] = []
        self.customer_id: Optional[int] = None

    # ---------- lines ----------
    def add_line(self, product: ProductSnapshot, quantity: int = 1) -> CartLine:
        # Each add is its own line, even for a product already in the cart.
        quantity = _check_quantity(quantity)
        unit_price = to_decimal(product.unit_price)
        if unit_price < 0:
            raise InvalidDiscount("unit price must not be negative")
        line = CartLine(
            id=uuid.uuid4().hex[:12],
            product_id=product.id,
            unit_id=product.unit_id,
            unit_price=unit_price,
            quantity=quantity,
            tax_rate=to_decimal(product.tax_rate),
            name=product.name,
        )
        self.lines.append(line)
        return line

    def get_line(self, line_id: str) -> CartLine:
        for line in self.lines:
            if line.id == line_id:
                return line
        raise NotFound("cart line", line_id)

    def update_quantity(self, line_id: str, quantity: int) -> CartLine:
        quantity = _check_quantity(quantity)
        line = self.get_line(line_id)
        line.quantity = quantity
        line.discount = self._resolve_line_discount(line, line.discount_type, line.discount_value)
        return line

    def remove_line(self, line_id: str) -> None:
        line = self.get_line(line_id)
        self.lines.remove(line)

    def apply_line_discount(self, line_id: str, discount_type: DiscountType | str, value: Number) -> CartLine:
        dtype, value = _check_discount(discount_type, value)
        line = self.get_line(line_id)
        line.discount = self._resolve_line_discount(line, dtype, value)
        line.discount_type = dtype
        line.discount_value = value
        return line

    @staticmethod
    def _resolve_line_discount(line: CartLine, dtype: DiscountType, value: Decimal) -> Decimal:
        # discount <= unit_price * quantity
        return min(calculate_discount(line.gross, value, dtype), line.gross)

    # ---------- cart level ----------
    @property
    def subtotal(self) -> Decimal:
        return sum((line.total for line in self.lines), ZERO)

    def apply_cart_discount(self, discount_type: DiscountType | str, value: Number) -> Decimal:
        """Replace the cart discount, resolved against the current subtotal."""
        dtype, value = _check_discount(discount_type, value)
        subtotal = self.subtotal
        self.cart_discount = min(calculate_discount(subtotal, value, dtype), subtotal)
        self.cart_discount_type = dtype
        self.cart_discount_value = value
        return self.cart_discount

    def apply_coupon(self, coupon: CouponRef) -> AppliedCoupon:
        if any(ac.coupon.id == coupon.id for ac in self.applied_coupons):
            raise CouponAlreadyApplied(f"coupon {coupon.code} is already applied")
        if not coupon.active:
            raise CouponInactive(f"coupon {coupon.code} is not active")
        applied = AppliedCoupon(coupon=coupon, amount=coupon_discount(coupon, self.subtotal))
        self.applied_coupons.append(applied)
        return applied

    def remove_coupon(self, coupon_id: int) -> None:
        for ac in self.applied_coupons:
            if ac.coupon.id == coupon_id:
                self.applied_coupons.remove(ac)
                return
        raise NotFound("applied coupon", coupon_id)

    def clear(self) -> None:
        self.lines.clear()
        self.applied_coupons.clear()
        self.cart_discount = ZERO
        self.cart_discount_type = DiscountType.flat
        self.cart_discount_value = ZERO
        self.customer_id = None

    # ---------- totals ----------
    def line_tax(self, line: CartLine) -> Decimal:
        return calculate_tax(line.total, line.tax_rate, self.tax_type).tax_amount

    def totals(self) -> CartTotals:
        places = settings.money_places
        subtotal = self.subtotal
        total_discount = self.cart_discount + sum((ac.amount for ac in self.applied_coupons), ZERO)
        tax = sum((self.line_tax(line) for line in self.lines), ZERO)
        grand = subtotal - total_discount
        if self.tax_type is TaxType.exclusive:
            # inclusive tax is already inside the line totals
            grand += tax
        return CartTotals(
            subtotal=money(subtotal, places),
            total_discount=money(total_discount, places),
            tax=money(tax, places),
            grand_total=money(max(grand, ZERO), places),
        )

    # ---------- hold / resume ----------
    def to_payload(self) -> Dict[str, Any]:
        return {
            "tax_type": self.tax_type.value,
            "customer_id": self.customer_id,
            "cart_discount": {
                "amount": str(self.cart_discount),
                "type": self.cart_discount_type.value,
                "value": str(self.cart_discount_value),
            },
            "lines": [
                {
                    "product_id": line.product_id,
                    "unit_id": line.unit_id,
                    "name": line.name,
                    "unit_price": str(line.unit_price),
                    "quantity": line.quantity,
                    "tax_rate": str(line.tax_rate),
                    "discount_type": line.discount_type.value,
                    "discount_value": str(line.discount_value),
                }
                for line in self.lines
            ],
            "coupons": [
                {
                    "id": ac.coupon.id,
                    "code": ac.coupon.code,
                    "discount_type": ac.coupon.discount_type.value,
                    "discount_value": str(ac.coupon.discount_value),
                    "minimum_cart_value": _opt_str(ac.coupon.minimum_cart_value),
                    "max_discount": _opt_str(ac.coupon.max_discount),
                    "amount": str(ac.amount),
                }
                for ac in self.applied_coupons
            ],
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Cart":
        cart = cls(tax_type=payload.get("tax_type"))
        cart.customer_id = payload.get("customer_id")
        for raw in payload.get("lines", []):
            line = cart.add_line(
                ProductSnapshot(
                    id=raw["product_id"],
                    unit_id=raw["unit_id"],
                    unit_price=to_decimal(raw["unit_price"]),
                    tax_rate=to_decimal(raw.get("tax_rate")),
                    name=raw.get("name") or "",
                ),
                raw["quantity"],
            )
            cart.apply_line_discount(line.id, raw.get("discount_type", "flat"), raw.get("discount_value", "0"))
        cd = payload.get("cart_discount") or {}
        cart.cart_discount = to_decimal(cd.get("amount"))
        cart.cart_discount_type = DiscountType(cd.get("type", "flat"))
        cart.cart_discount_value = to_decimal(cd.get("value"))
        # coupon amounts were fixed when applied; restore them as they were
        for raw in payload.get("coupons", []):
            ref = CouponRef(
                id=raw["id"],
                code=raw["code"],
                discount_type=DiscountType(raw["discount_type"]),
                discount_value=to_decimal(raw["discount_value"]),
                minimum_cart_value=_opt_dec(raw.get("minimum_cart_value")),
                max_discount=_opt_dec(raw.get("max_discount")),
            )
            cart.applied_coupons.append(AppliedCoupon(coupon=ref, amount=to_decimal(raw["amount"])))
        return cart


def _opt_str(v: Optional[Decimal]) -> Optional[str]:
    return None if v is None else str(v)


def _opt_dec(v: Optional[str]) -> Optional[Decimal]:
    return None if v is None else to_decimal(v)
