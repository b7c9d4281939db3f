from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text

from ..db import Base


class PosOrder(Base):
    __tablename__ = "pos_order"
    id = Column(Integer, primary_key=True)
    order_no = Column(String, unique=True, index=True)
    register_id = Column(Integer, ForeignKey("register.id"), nullable=False)
    customer_id = Column(Integer, ForeignKey("customer.id"))
    subtotal = Column(Numeric(12, 2), default=0)
    discount_total = Column(Numeric(12, 2), default=0)
    tax_total = Column(Numeric(12, 2), default=0)
    total = Column(Numeric(12, 2), default=0)
    tendered = Column(Numeric(12, 2), default=0)
    change = Column(Numeric(12, 2), default=0)
    payment_status = Column(String, default="unpaid")  # paid | partially_paid | unpaid
    points_earned = Column(Integer, default=0)
    note = Column(Text)
    by_user = Column(String)
    created_at = Column(DateTime, default=datetime.utcnow)


class PosOrderLine(Base):
    __tablename__ = "pos_order_line"
    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("pos_order.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("product.id"), nullable=False)
    unit_id = Column(Integer, ForeignKey("unit.id"), nullable=False)
    name = Column(String)
    qty = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    discount = Column(Numeric(12, 2), default=0)
    discount_type = Column(String, default="flat")
    tax_value = Column(Numeric(12, 2), default=0)
    line_total = Column(Numeric(12, 2), default=0)


class OrderBatchDeduction(Base):
    """Which batches a sold line was taken from, earliest expiry first."""

    __tablename__ = "order_batch_deduction"
    id = Column(Integer, primary_key=True)
    order_line_id = Column(Integer, ForeignKey("pos_order_line.id"), nullable=False, index=True)
    batch_id = Column(Integer, ForeignKey("stock_batch.id", ondelete="SET NULL"), nullable=True)  # batch_number queda como copia
    batch_number = Column(String)
    expiry_date = Column(Date)
    quantity = Column(Integer, nullable=False)


class PosOrderCoupon(Base):
    __tablename__ = "pos_order_coupon"
    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("pos_order.id"), nullable=False)
    coupon_id = Column(Integer, ForeignKey("coupon.id"))
    code_snapshot = Column(String)
    value_applied = Column(Numeric(12, 2), default=0)


class PosPayment(Base):
    __tablename__ = "pos_payment"
    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("pos_order.id"), nullable=False)
    method = Column(String, nullable=False)  # cash | card | transfer
    amount = Column(Numeric(12, 2), nullable=False)
    captured_at = Column(DateTime, default=datetime.utcnow)
    by_user = Column(String)


class HeldCart(Base):
    __tablename__ = "held_cart"
    id = Column(Integer, primary_key=True)
    label = Column(String(120))
    payload = Column(Text, nullable=False)  # JSON del carrito
    by_user = Column(String)
    created_at = Column(DateTime, default=datetime.utcnow)
