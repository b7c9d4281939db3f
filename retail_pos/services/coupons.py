import logging
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..core.errors import CouponInactive, CouponNotFound
from ..core.money import DiscountType, to_decimal
from ..models.coupon import Coupon
from .cart import CouponRef

log = logging.getLogger(__name__)


def get_coupon_by_code(db: Session, code: str) -> Coupon:
    code = (code or "").strip().upper()
    if not code:
        raise CouponNotFound("coupon code is required")
    coupon = db.scalar(select(Coupon).where(func.upper(Coupon.code) == code))
    if coupon is None:
        raise CouponNotFound(f"Invalid coupon code {code}")
    return coupon


def is_usable(coupon: Coupon, now: Optional[datetime] = None) -> bool:
    """Active flag, validity window and usage limit all allow it."""
    now = now or datetime.utcnow()
    if not coupon.active:
        return False
    if coupon.valid_from and now < coupon.valid_from:
        return False
    if coupon.valid_until and now > coupon.valid_until:
        return False
    if coupon.usage_limit and (coupon.usage_count or 0) >= coupon.usage_limit:
        return False
    return True


def to_ref(coupon: Coupon, now: Optional[datetime] = None) -> CouponRef:
    return CouponRef(
        id=coupon.id,
        code=coupon.code,
        discount_type=DiscountType(coupon.discount_type),
        discount_value=to_decimal(coupon.discount_value),
        minimum_cart_value=None if coupon.minimum_cart_value is None else to_decimal(coupon.minimum_cart_value),
        max_discount=None if coupon.max_discount is None else to_decimal(coupon.max_discount),
        active=is_usable(coupon, now),
    )


def resolve_coupon(db: Session, code: str, now: Optional[datetime] = None) -> CouponRef:
    return to_ref(get_coupon_by_code(db, code), now)


def list_coupons(db: Session, active_only: bool = False) -> List[Coupon]:
    q = select(Coupon).order_by(Coupon.created_at.desc(), Coupon.id.desc())
    if active_only:
        q = q.where(Coupon.active.is_(True))
    return list(db.scalars(q))


def mark_coupons_used(db: Session, coupon_ids: Iterable[int], now: Optional[datetime] = None) -> None:
    """Count one use of each coupon, re-checking it against the stored row.

    The caller holds ``COUPON_LOCKS`` for these ids and commits. A coupon that
    ran out (or was deactivated) since it was applied to the cart raises
    ``CouponInactive`` so the whole order rolls back.
    """
    for cid in coupon_ids:
        coupon = db.get(Coupon, cid, with_for_update=True, populate_existing=True)
        if coupon is None:
            raise CouponNotFound(f"coupon {cid} no longer exists")
        if not is_usable(coupon, now):
            log.warning("coupon %s rejected at checkout: used %s of %s", coupon.code, coupon.usage_count, coupon.usage_limit)
            raise CouponInactive(f"coupon {coupon.code} is not active")
        coupon.usage_count = (coupon.usage_count or 0) + 1
    db.flush()
