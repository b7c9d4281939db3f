from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String

from ..db import Base


class Coupon(Base):
    __tablename__ = "coupon"
    id = Column(Integer, primary_key=True)
    name = Column(String(120), nullable=True)
    code = Column(String, unique=True, index=True, nullable=False)
    discount_type = Column(String, nullable=False)  # 'percentage' | 'flat'
    discount_value = Column(Numeric(12, 2), nullable=False)
    minimum_cart_value = Column(Numeric(12, 2))
    max_discount = Column(Numeric(12, 2))
    valid_from = Column(DateTime)
    valid_until = Column(DateTime)
    usage_limit = Column(Integer)
    usage_count = Column(Integer, default=0)
    active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
