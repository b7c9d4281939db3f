from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.schemas import CheckoutIn, PaymentIn
from ..db import get_db
from ..models.pos import PosOrder
from ..services import checkout
from ..services.cart_store import CartStore
from .carts import get_cart_store

router = APIRouter(prefix="/pos", tags=["pos-orders"])


def _serialize_order(db: Session, o: PosOrder) -> dict:
    lines = checkout.order_lines(db, o.id)
    by_line = {}
    for d in checkout.order_deductions(db, [l.id for l in lines]):
        by_line.setdefault(d.order_line_id, []).append(
            {"batch_id": d.batch_id, "batch_number": d.batch_number, "expiry_date": d.expiry_date, "quantity": d.quantity}
        )
    return {
        "order_id": o.id,
        "order_no": o.order_no,
        "register_id": o.register_id,
        "customer_id": o.customer_id,
        "payment_status": o.payment_status,
        "subtotal": o.subtotal,
        "discount_total": o.discount_total,
        "tax_total": o.tax_total,
        "total": o.total,
        "tendered": o.tendered,
        "change": o.change,
        "points_earned": o.points_earned,
        "lines": [
            {
                "line_id": l.id,
                "product_id": l.product_id,
                "unit_id": l.unit_id,
                "qty": l.qty,
                "unit_price": l.unit_price,
                "discount": l.discount,
                "tax_value": l.tax_value,
                "line_total": l.line_total,
                "batches": by_line.get(l.id, []),
            }
            for l in lines
        ],
    }


@router.post("/checkout")
def checkout_cart(payload: CheckoutIn, db: Session = Depends(get_db), store: CartStore = Depends(get_cart_store)):
    cart = store.get(payload.cart_id)
    result = checkout.finalize_order(
        db,
        cart,
        register_id=payload.register_id,
        tendered=payload.tendered,
        method=payload.method,
        by_user=payload.by_user,
        note=payload.note,
    )
    store.drop(payload.cart_id)
    return {"order_id": result.order.id, "order": _serialize_order(db, result.order)}


@router.get("/orders/{order_id}")
def get_order(order_id: int, db: Session = Depends(get_db)):
    return _serialize_order(db, checkout.get_order(db, order_id))


@router.post("/orders/{order_id}/payments")
def add_payment(order_id: int, payload: PaymentIn, db: Session = Depends(get_db)):
    order = checkout.add_payment(db, order_id, payload.amount, method=payload.method, by_user=payload.by_user)
    return _serialize_order(db, order)
