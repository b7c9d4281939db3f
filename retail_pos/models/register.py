from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String

from ..db import Base


class Register(Base):
    __tablename__ = "register"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(80), nullable=False)
    description = Column(String(255), nullable=True)
    status = Column(String(10), nullable=False, default="closed")  # closed | opened
    balance = Column(Numeric(12, 2), nullable=False, default=0)
    opening_balance = Column(Numeric(12, 2), nullable=True)
    closing_balance = Column(Numeric(12, 2), nullable=True)
    used_by = Column(String(60), nullable=True)
    opened_at = Column(DateTime, nullable=True)
    closed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class RegisterMovement(Base):
    """Append-only drawer history. Rows are never updated or deleted."""

    __tablename__ = "register_movement"
    id = Column(Integer, primary_key=True, index=True)
    register_id = Column(Integer, ForeignKey("register.id"), nullable=False, index=True)
    action = Column(String(20), nullable=False)  # opening | cash_in | cash_out | sale | closing
    amount = Column(Numeric(12, 2), nullable=False)
    balance_before = Column(Numeric(12, 2), nullable=False)
    balance_after = Column(Numeric(12, 2), nullable=False)
    description = Column(String(255), nullable=False)
    order_id = Column(Integer, ForeignKey("pos_order.id"), nullable=True)
    author = Column(String(60), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
