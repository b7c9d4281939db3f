# Importa todos los modelos para que Base.metadata los conozca antes de create_all
from .coupon import Coupon
from .customer import Customer, RewardTransaction
from .pos import HeldCart, OrderBatchDeduction, PosOrder, PosOrderCoupon, PosOrderLine, PosPayment
from .product import Product, Unit
from .register import Register, RegisterMovement
from .stock import ProductUnitQuantity, StockBatch

__all__ = [
    "Coupon",
    "Customer",
    "HeldCart",
    "OrderBatchDeduction",
    "PosOrder",
    "PosOrderCoupon",
    "PosOrderLine",
    "PosPayment",
    "Product",
    "ProductUnitQuantity",
    "Register",
    "RegisterMovement",
    "RewardTransaction",
    "StockBatch",
    "Unit",
]
