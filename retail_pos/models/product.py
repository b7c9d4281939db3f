from sqlalchemy import Boolean, Column, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from ..db import Base


class Unit(Base):
    __tablename__ = "unit"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(60), nullable=False)
    identifier = Column(String(20), unique=True, nullable=False)


class Product(Base):
    __tablename__ = "product"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=False)
    sku = Column(String(50), unique=True, index=True, nullable=True)
    unit_id = Column(Integer, ForeignKey("unit.id"), nullable=False)  # unidad de venta por defecto
    price = Column(Numeric(12, 2), nullable=False, default=0)
    tax_rate = Column(Numeric(5, 2), nullable=False, default=0)  # porcentaje
    is_active = Column(Boolean, default=True)

    unit = relationship("Unit")
