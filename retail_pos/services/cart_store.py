import json
import threading
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.errors import NotFound
from ..models.pos import HeldCart
from .cart import Cart


class CartStore:
    """Open carts of this POS process, by cart id."""

    def __init__(self):
        self._carts: Dict[str, Cart] = {}
        self._lock = threading.Lock()

    def create(self, tax_type: Optional[str] = None) -> Cart:
        return self.add(Cart(tax_type=tax_type))

    def get(self, cart_id: str) -> Cart:
        with self._lock:
            cart = self._carts.get(cart_id)
        if cart is None:
            raise NotFound("cart", cart_id)
        return cart

    def drop(self, cart_id: str) -> None:
        with self._lock:
            if self._carts.pop(cart_id, None) is None:
                raise NotFound("cart", cart_id)

    def add(self, cart: Cart) -> Cart:
        with self._lock:
            self._carts[cart.id] = cart
        return cart

    # hold/resume only stage the database change; the caller commits and then
    # drops (hold) or adds (resume) the in-memory cart
    def hold(self, db: Session, cart_id: str, label: Optional[str] = None, by_user: Optional[str] = None) -> HeldCart:
        cart = self.get(cart_id)
        held = HeldCart(label=label, payload=json.dumps(cart.to_payload()), by_user=by_user)
        db.add(held)
        db.flush()
        return held

    def resume(self, db: Session, held_id: int) -> Cart:
        held = db.get(HeldCart, held_id)
        if held is None:
            raise NotFound("held cart", held_id)
        cart = Cart.from_payload(json.loads(held.payload))
        db.delete(held)
        db.flush()
        return cart

    @staticmethod
    def list_held(db: Session) -> List[HeldCart]:
        return list(db.scalars(select(HeldCart).order_by(HeldCart.created_at.desc(), HeldCart.id.desc())))


CARTS = CartStore()
