from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)

from ..db import Base


class StockBatch(Base):
    __tablename__ = "stock_batch"
    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("product.id"), nullable=False, index=True)
    unit_id = Column(Integer, ForeignKey("unit.id"), nullable=False)
    batch_number = Column(String(60), nullable=False)
    expiry_date = Column(Date, nullable=True)  # NULL = no caduca
    quantity = Column(Integer, nullable=False, default=0)
    initial_quantity = Column(Integer, nullable=False)
    purchase_price = Column(Numeric(12, 2), nullable=True)
    notes = Column(Text, nullable=True)
    author = Column(String(60), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_batch_qty_nonneg"),
        CheckConstraint("quantity <= initial_quantity", name="ck_batch_qty_le_initial"),
    )


class ProductUnitQuantity(Base):
    """Cached sum of batch quantities per (product, unit). Only written by sync."""

    __tablename__ = "product_unit_quantity"
    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("product.id"), nullable=False)
    unit_id = Column(Integer, ForeignKey("unit.id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    synced_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    __table_args__ = (UniqueConstraint("product_id", "unit_id", name="uq_product_unit"),)
