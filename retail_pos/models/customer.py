from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from ..db import Base


class Customer(Base):
    __tablename__ = "customer"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=True)
    email = Column(String(120), nullable=True)
    phone = Column(String(40), nullable=True)
    reward_points = Column(Integer, nullable=False, default=0)


class RewardTransaction(Base):
    __tablename__ = "reward_transaction"
    id = Column(Integer, primary_key=True)
    customer_id = Column(Integer, ForeignKey("customer.id"), nullable=False, index=True)
    type = Column(String(10), nullable=False)  # earn | redeem
    points = Column(Integer, nullable=False)
    description = Column(String(255))
    order_id = Column(Integer, ForeignKey("pos_order.id"), nullable=True)
    author = Column(String(60))
    created_at = Column(DateTime, default=datetime.utcnow)
