from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.errors import NotFound
from ..core.schemas import CartCreate, CouponApply, DiscountIn, HoldIn, LineAdd, QuantityUpdate
from ..db import get_db, transaction
from ..models.product import Product
from ..services.cart import Cart, ProductSnapshot
from ..services.cart_store import CARTS, CartStore
from ..services.coupons import resolve_coupon

router = APIRouter(prefix="/pos", tags=["pos-cart"])


def get_cart_store() -> CartStore:
    return CARTS


def serialize_cart(cart: Cart) -> dict:
    totals = cart.totals()
    return {
        "cart_id": cart.id,
        "tax_type": cart.tax_type.value,
        "customer_id": cart.customer_id,
        "lines": [
            {
                "line_id": l.id,
                "product_id": l.product_id,
                "unit_id": l.unit_id,
                "name": l.name,
                "unit_price": l.unit_price,
                "quantity": l.quantity,
                "discount": l.discount,
                "discount_type": l.discount_type.value,
                "tax_rate": l.tax_rate,
                "total": l.total,
            }
            for l in cart.lines
        ],
        "cart_discount": cart.cart_discount,
        "coupons": [{"coupon_id": ac.coupon.id, "code": ac.coupon.code, "amount": ac.amount} for ac in cart.applied_coupons],
        **totals.as_dict(),
    }


@router.post("/carts")
def create_cart(payload: CartCreate, store: CartStore = Depends(get_cart_store)):
    cart = store.create(tax_type=payload.tax_type)
    cart.customer_id = payload.customer_id
    return serialize_cart(cart)


@router.get("/carts/{cart_id}")
def get_cart(cart_id: str, store: CartStore = Depends(get_cart_store)):
    return serialize_cart(store.get(cart_id))


@router.delete("/carts/{cart_id}")
def drop_cart(cart_id: str, store: CartStore = Depends(get_cart_store)):
    store.drop(cart_id)
    return {"ok": True, "cart_id": cart_id}


@router.post("/carts/{cart_id}/lines")
def add_line(cart_id: str, payload: LineAdd, db: Session = Depends(get_db), store: CartStore = Depends(get_cart_store)):
    cart = store.get(cart_id)
    product = db.get(Product, payload.product_id)
    if product is None or not product.is_active:
        raise NotFound("product", payload.product_id)
    snapshot = ProductSnapshot(
        id=product.id,
        unit_id=payload.unit_id or product.unit_id,
        unit_price=product.price,
        tax_rate=product.tax_rate or 0,
        name=product.name,
    )
    cart.add_line(snapshot, payload.quantity)
    return serialize_cart(cart)


@router.patch("/carts/{cart_id}/lines/{line_id}")
def update_line(cart_id: str, line_id: str, payload: QuantityUpdate, store: CartStore = Depends(get_cart_store)):
    cart = store.get(cart_id)
    cart.update_quantity(line_id, payload.quantity)
    return serialize_cart(cart)


@router.delete("/carts/{cart_id}/lines/{line_id}")
def remove_line(cart_id: str, line_id: str, store: CartStore = Depends(get_cart_store)):
    cart = store.get(cart_id)
    cart.remove_line(line_id)
    return serialize_cart(cart)


@router.post("/carts/{cart_id}/lines/{line_id}/discount")
def line_discount(cart_id: str, line_id: str, payload: DiscountIn, store: CartStore = Depends(get_cart_store)):
    cart = store.get(cart_id)
    cart.apply_line_discount(line_id, payload.discount_type, payload.value)
    return serialize_cart(cart)


@router.post("/carts/{cart_id}/discount")
def cart_discount(cart_id: str, payload: DiscountIn, store: CartStore = Depends(get_cart_store)):
    cart = store.get(cart_id)
    cart.apply_cart_discount(payload.discount_type, payload.value)
    return serialize_cart(cart)


@router.post("/carts/{cart_id}/coupons")
def apply_coupon(cart_id: str, payload: CouponApply, db: Session = Depends(get_db), store: CartStore = Depends(get_cart_store)):
    cart = store.get(cart_id)
    cart.apply_coupon(resolve_coupon(db, payload.code))
    return serialize_cart(cart)


@router.delete("/carts/{cart_id}/coupons/{coupon_id}")
def remove_coupon(cart_id: str, coupon_id: int, store: CartStore = Depends(get_cart_store)):
    cart = store.get(cart_id)
    cart.remove_coupon(coupon_id)
    return serialize_cart(cart)


# ---------- HOLD / RESUME ----------
@router.post("/carts/{cart_id}/hold")
def hold_cart(cart_id: str, payload: HoldIn, db: Session = Depends(get_db), store: CartStore = Depends(get_cart_store)):
    with transaction(db):
        held = store.hold(db, cart_id, label=payload.label, by_user=payload.by_user)
    store.drop(cart_id)
    return {"held_id": held.id, "label": held.label, "status": "HELD"}


@router.get("/held")
def list_held(db: Session = Depends(get_db), store: CartStore = Depends(get_cart_store)):
    return {
        "held": [
            {"held_id": h.id, "label": h.label, "by_user": h.by_user, "created_at": h.created_at}
            for h in store.list_held(db)
        ]
    }


@router.post("/held/{held_id}/resume")
def resume_cart(held_id: int, db: Session = Depends(get_db), store: CartStore = Depends(get_cart_store)):
    with transaction(db):
        cart = store.resume(db, held_id)
    store.add(cart)
    return serialize_cart(cart)
