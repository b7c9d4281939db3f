from datetime import datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.errors import CouponInactive
from ..core.money import money
from ..db import get_db
from ..services.cart import coupon_discount
from ..services.coupons import get_coupon_by_code, list_coupons, to_ref

router = APIRouter(prefix="/coupons", tags=["coupons"])


@router.get("")
def coupons(active_only: bool = False, db: Session = Depends(get_db)):
    return {
        "coupons": [
            {
                "id": c.id,
                "code": c.code,
                "name": c.name,
                "discount_type": c.discount_type,
                "discount_value": c.discount_value,
                "minimum_cart_value": c.minimum_cart_value,
                "max_discount": c.max_discount,
                "active": c.active,
                "usage_count": c.usage_count,
                "usage_limit": c.usage_limit,
            }
            for c in list_coupons(db, active_only=active_only)
        ]
    }


@router.get("/{code}")
def validate_coupon(
    code: str,
    subtotal: Decimal = Query(..., ge=0),
    at: Optional[datetime] = None,
    db: Session = Depends(get_db),
):
    """Preview what a coupon is worth against a subtotal. Does not count a use."""
    ref = to_ref(get_coupon_by_code(db, code), at)
    if not ref.active:
        raise CouponInactive(f"coupon {ref.code} is not active")
    discount = money(coupon_discount(ref, subtotal), settings.money_places)
    return {
        "coupon_id": ref.id,
        "code": ref.code,
        "valid": True,
        "discount_type": ref.discount_type.value,
        "value": ref.discount_value,
        "discount": discount,
        "new_total": money(max(subtotal - discount, Decimal("0")), settings.money_places),
    }
