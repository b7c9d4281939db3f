import logging
from decimal import ROUND_FLOOR
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.errors import InsufficientPoints, InvalidQuantity, NotFound
from ..core.money import Number, to_decimal
from ..models.customer import Customer, RewardTransaction

log = logging.getLogger(__name__)


def calculate_points(order_total: Number) -> int:
    total = to_decimal(order_total)
    if total <= 0:
        return 0
    return int((total / settings.points_divisor).to_integral_value(rounding=ROUND_FLOOR))


def get_customer(db: Session, customer_id: int) -> Customer:
    customer = db.get(Customer, customer_id)
    if customer is None:
        raise NotFound("customer", customer_id)
    return customer


def _check_points(points) -> int:
    if isinstance(points, bool) or not isinstance(points, int) or points <= 0:
        raise InvalidQuantity(f"points must be a positive integer, got {points!r}")
    return points


def earn_points(
    db: Session,
    customer_id: int,
    points: int,
    reason: Optional[str] = None,
    order_id: Optional[int] = None,
    author: Optional[str] = None,
) -> Customer:
    points = _check_points(points)
    customer = get_customer(db, customer_id)
    customer.reward_points = (customer.reward_points or 0) + points
    db.add(RewardTransaction(
        customer_id=customer_id, type="earn", points=points,
        description=reason or "Points earned", order_id=order_id, author=author,
    ))
    db.flush()
    return customer


def redeem_points(
    db: Session, customer_id: int, points: int, reason: Optional[str] = None, author: Optional[str] = None
) -> Customer:
    points = _check_points(points)
    customer = get_customer(db, customer_id)
    current = customer.reward_points or 0
    if current < points:
        raise InsufficientPoints(f"customer has {current} points, {points} requested", available=current)
    customer.reward_points = current - points
    db.add(RewardTransaction(
        customer_id=customer_id, type="redeem", points=points,
        description=reason or "Points redeemed", author=author,
    ))
    db.flush()
    log.info("customer %s redeemed %s points", customer_id, points)
    return customer


def transactions(db: Session, customer_id: int, limit: int = 100) -> List[RewardTransaction]:
    q = (
        select(RewardTransaction)
        .where(RewardTransaction.customer_id == customer_id)
        .order_by(RewardTransaction.id.desc())
        .limit(limit)
    )
    return list(db.scalars(q))
