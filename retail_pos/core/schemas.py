from datetime import date
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field

from .money import DiscountType


class CartCreate(BaseModel):
    tax_type: Optional[Literal["inclusive", "exclusive"]] = None
    customer_id: Optional[int] = None


class LineAdd(BaseModel):
    product_id: int
    unit_id: Optional[int] = None  # por defecto la unidad del producto
    quantity: int = 1


class QuantityUpdate(BaseModel):
    quantity: int


class DiscountIn(BaseModel):
    discount_type: DiscountType
    value: Decimal = Field(..., ge=0)


class CouponApply(BaseModel):
    code: str


class HoldIn(BaseModel):
    label: Optional[str] = None
    by_user: Optional[str] = None


class CheckoutIn(BaseModel):
    cart_id: str
    register_id: int
    tendered: Decimal = Field(..., ge=0)
    method: Literal["cash", "card", "transfer"] = "cash"
    by_user: Optional[str] = None
    note: Optional[str] = None


class PaymentIn(BaseModel):
    amount: Decimal = Field(..., gt=0)
    method: Literal["cash", "card", "transfer"] = "cash"
    by_user: Optional[str] = None


class BatchCreate(BaseModel):
    product_id: int
    unit_id: int
    batch_number: str = Field(..., min_length=1)
    quantity: int
    expiry_date: Optional[date] = None
    purchase_price: Optional[Decimal] = Field(default=None, ge=0)
    notes: Optional[str] = None
    author: Optional[str] = None


class BatchUpdate(BaseModel):
    batch_number: Optional[str] = Field(default=None, min_length=1)
    expiry_date: Optional[date] = None
    quantity: Optional[int] = None
    purchase_price: Optional[Decimal] = Field(default=None, ge=0)
    notes: Optional[str] = None


class DeductIn(BaseModel):
    product_id: int
    unit_id: int
    quantity: int


class RegisterCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None


class RegisterOpen(BaseModel):
    opening_balance: Decimal = Decimal("0")
    author: Optional[str] = None


class MovementIn(BaseModel):
    # amount/description are checked by RegisterLedger
    amount: Decimal
    description: str = ""
    author: Optional[str] = None


class RegisterClose(BaseModel):
    author: Optional[str] = None


class PointsIn(BaseModel):
    points: int
    reason: Optional[str] = None
    author: Optional[str] = None


class ProductUnitIn(BaseModel):
    product_id: int
    unit_id: int
