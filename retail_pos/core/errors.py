"""
Typed errors raised by the POS core.

Every error carries a machine-readable ``code`` and the HTTP status the API
layer answers with. They are validation failures: callers re-prompt, nothing
is retried, and the operation that raised left no partial state behind.
"""
from typing import Any, Dict, Optional


class PosError(Exception):
    code = "POS_ERROR"
    status_code = 400

    def __init__(self, message: Optional[str] = None, **extra: Any):
        super().__init__(message or self.code)
        self.extra: Dict[str, Any] = extra

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.code, "message": str(self), **self.extra}


class InvalidQuantity(PosError):
    code = "INVALID_QUANTITY"
    status_code = 422


class InvalidDiscount(PosError):
    code = "INVALID_DISCOUNT"
    status_code = 422


class InsufficientStock(PosError):
    code = "INSUFFICIENT_STOCK"
    status_code = 409

    def __init__(self, product_id: int, unit_id: int, requested: int, available: int):
        super().__init__(
            f"Insufficient stock. Available: {available}, Required: {requested}",
            product_id=product_id,
            unit_id=unit_id,
            requested=requested,
            available=available,
        )
        self.product_id = product_id
        self.unit_id = unit_id
        self.requested = requested
        self.available = available


class CouponAlreadyApplied(PosError):
    code = "COUPON_ALREADY_APPLIED"
    status_code = 409


class MinimumNotMet(PosError):
    code = "MINIMUM_NOT_MET"
    status_code = 422


class CouponInactive(PosError):
    code = "COUPON_INACTIVE"
    status_code = 422


class CouponNotFound(PosError):
    code = "COUPON_NOT_FOUND"
    status_code = 404


class AlreadyOpen(PosError):
    code = "ALREADY_OPEN"
    status_code = 409


class NotOpen(PosError):
    code = "NOT_OPEN"
    status_code = 409


class InvalidMovement(PosError):
    code = "INVALID_MOVEMENT"
    status_code = 422


class InsufficientPoints(PosError):
    code = "INSUFFICIENT_POINTS"
    status_code = 409


class EmptyCart(PosError):
    code = "EMPTY_CART"
    status_code = 422


class NotFound(PosError):
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} {entity_id} not found", entity=entity, entity_id=str(entity_id))
