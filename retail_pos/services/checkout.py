"""
Order finalization: cart totals -> FEFO stock per line -> register payment.

The whole checkout is one transaction holding every (product, unit) stock
lock of the cart plus the register lock. If any line is short, or the
register is not open, the transaction rolls back and no line loses stock.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.errors import EmptyCart, InsufficientStock, InvalidMovement, NotFound, NotOpen
from ..core.money import ZERO, Number, money, to_decimal
from ..db import transaction
from ..models.pos import OrderBatchDeduction, PosOrder, PosOrderCoupon, PosOrderLine, PosPayment
from ..utils.locks import COUPON_LOCKS, REGISTER_LOCKS, STOCK_LOCKS
from .cart import Cart, CartTotals
from .coupons import mark_coupons_used
from .register_ledger import OPENED, RegisterLedger
from .rewards import calculate_points, earn_points
from .stock_ledger import BatchStockLedger, Deduction

log = logging.getLogger(__name__)

PAID = "paid"
PARTIALLY_PAID = "partially_paid"
UNPAID = "unpaid"


@dataclass
class CheckoutResult:
    order: PosOrder
    lines: List[PosOrderLine]
    totals: CartTotals
    change: Decimal
    deductions: Dict[int, List[Deduction]] = field(default_factory=dict)  # order_line_id -> batches


def payment_status(tendered: Decimal, total: Decimal) -> str:
    # se permite cobrar menos del total (venta a crédito)
    if tendered >= total:
        return PAID
    if tendered > 0:
        return PARTIALLY_PAID
    return UNPAID


def _check_tendered(tendered: Number) -> Decimal:
    tendered = to_decimal(tendered)
    if tendered < 0:
        raise InvalidMovement("tendered amount must not be negative")
    return tendered


def finalize_order(
    db: Session,
    cart: Cart,
    register_id: int,
    tendered: Number,
    method: str = "cash",
    by_user: Optional[str] = None,
    note: Optional[str] = None,
) -> CheckoutResult:
    if not cart.lines:
        raise EmptyCart("cart has no lines")
    tendered = money(_check_tendered(tendered), settings.money_places)
    totals = cart.totals()
    grand = totals.grand_total
    stock = BatchStockLedger(db)
    registers = RegisterLedger(db)

    keys = [(line.product_id, line.unit_id) for line in cart.lines]
    coupon_ids = [ac.coupon.id for ac in cart.applied_coupons]
    with transaction(
        db, STOCK_LOCKS.hold(*keys), REGISTER_LOCKS.hold(register_id), COUPON_LOCKS.hold(*coupon_ids)
    ):
        reg = registers.get_register(register_id)
        if reg.status != OPENED:
            raise NotOpen(f"register {reg.name} is not open")

        # duplicate lines of one product share the same batches
        demand: Dict[tuple, int] = defaultdict(int)
        for line in cart.lines:
            demand[(line.product_id, line.unit_id)] += line.quantity
        for (product_id, unit_id), qty in demand.items():
            available = stock.get_total_stock(product_id, unit_id)
            if available < qty:
                log.warning("checkout rejected: product=%s unit=%s short by %s", product_id, unit_id, qty - available)
                raise InsufficientStock(product_id, unit_id, qty, available)
        mark_coupons_used(db, coupon_ids)

        change = max(ZERO, tendered - grand)
        applied = tendered - change
        order = PosOrder(
            register_id=register_id,
            customer_id=cart.customer_id,
            subtotal=totals.subtotal,
            discount_total=totals.total_discount,
            tax_total=totals.tax,
            total=grand,
            tendered=tendered,
            change=change,
            payment_status=payment_status(tendered, grand),
            note=note,
            by_user=by_user,
        )
        db.add(order)
        db.flush()
        order.order_no = f"ORD-{order.id:06d}"

        places = settings.money_places
        order_lines: List[PosOrderLine] = []
        deductions: Dict[int, List[Deduction]] = {}
        for line in cart.lines:
            ol = PosOrderLine(
                order_id=order.id,
                product_id=line.product_id,
                unit_id=line.unit_id,
                name=line.name,
                qty=line.quantity,
                unit_price=money(line.unit_price, places),
                discount=money(line.discount, places),
                discount_type=line.discount_type.value,
                tax_value=money(cart.line_tax(line), places),
                line_total=money(line.total, places),
            )
            db.add(ol)
            db.flush()
            taken = stock.deduct_stock_fefo(line.product_id, line.unit_id, line.quantity)
            for d in taken:
                db.add(OrderBatchDeduction(
                    order_line_id=ol.id, batch_id=d.batch_id, batch_number=d.batch_number,
                    expiry_date=d.expiry_date, quantity=d.quantity,
                ))
            deductions[ol.id] = taken
            order_lines.append(ol)

        for ac in cart.applied_coupons:
            db.add(PosOrderCoupon(
                order_id=order.id, coupon_id=ac.coupon.id,
                code_snapshot=ac.coupon.code, value_applied=money(ac.amount, places),
            ))

        if applied > 0:
            db.add(PosPayment(order_id=order.id, method=method, amount=applied, by_user=by_user))
            registers.record_sale(register_id, order.id, applied, f"Order {order.order_no}", by_user)

        if cart.customer_id is not None:
            points = calculate_points(grand)
            if points > 0:
                earn_points(db, cart.customer_id, points, f"Order {order.order_no}", order_id=order.id, author=by_user)
                order.points_earned = points

    log.info(
        "order %s finalized: total=%s tendered=%s status=%s lines=%s",
        order.order_no, grand, tendered, order.payment_status, len(order_lines),
    )
    cart.clear()
    return CheckoutResult(order=order, lines=order_lines, totals=totals, change=change, deductions=deductions)


def get_order(db: Session, order_id: int) -> PosOrder:
    order = db.get(PosOrder, order_id)
    if order is None:
        raise NotFound("order", order_id)
    return order


def order_lines(db: Session, order_id: int) -> List[PosOrderLine]:
    return list(db.scalars(select(PosOrderLine).where(PosOrderLine.order_id == order_id).order_by(PosOrderLine.id)))


def order_deductions(db: Session, line_ids: List[int]) -> List[OrderBatchDeduction]:
    if not line_ids:
        return []
    q = (
        select(OrderBatchDeduction)
        .where(OrderBatchDeduction.order_line_id.in_(line_ids))
        .order_by(OrderBatchDeduction.id)
    )
    return list(db.scalars(q))


def add_payment(
    db: Session, order_id: int, amount: Number, method: str = "cash", by_user: Optional[str] = None
) -> PosOrder:
    """Take a later payment on a partially paid or unpaid order."""
    amount = to_decimal(amount)
    if amount <= 0:
        raise InvalidMovement("payment amount must be greater than zero")
    amount = money(amount, settings.money_places)
    register_id = db.scalar(select(PosOrder.register_id).where(PosOrder.id == order_id))
    if register_id is None:
        raise NotFound("order", order_id)
    with transaction(db, REGISTER_LOCKS.hold(register_id)):
        # tendered/change are read under the register lock
        order = db.get(PosOrder, order_id, with_for_update=True, populate_existing=True)
        total = to_decimal(order.total)
        paid_so_far = to_decimal(order.tendered) - to_decimal(order.change)
        applied = min(amount, max(ZERO, total - paid_so_far))
        tendered = to_decimal(order.tendered) + amount
        order.tendered = tendered
        order.change = max(ZERO, tendered - total)
        order.payment_status = payment_status(tendered, total)
        if applied > 0:
            db.add(PosPayment(order_id=order.id, method=method, amount=applied, by_user=by_user))
            RegisterLedger(db).record_sale(
                order.register_id, order.id, applied, f"Payment for order {order.order_no}", by_user
            )
    log.info("order %s payment %s -> %s", order.order_no, amount, order.payment_status)
    return order
