import os

# la app importa settings al cargar; nada de tests debe tocar el fichero sqlite real
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import date  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from retail_pos.db import Base, get_db, make_engine  # noqa: E402
from retail_pos.main import create_app  # noqa: E402
from retail_pos.models import Coupon, Customer, Product, Register, Unit  # noqa: E402
from retail_pos.routers.carts import get_cart_store  # noqa: E402
from retail_pos.services.cart_store import CartStore  # noqa: E402


@pytest.fixture
def engine():
    eng = make_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store():
    return CartStore()


@pytest.fixture
def client(session_factory, store):
    app = create_app(create_tables=False)

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_cart_store] = lambda: store
    with TestClient(app) as c:
        yield c


# ---------- seed helpers ----------
@pytest.fixture
def unit(db):
    u = Unit(name="Piece", identifier="pcs")
    db.add(u)
    db.commit()
    return u


@pytest.fixture
def make_product(db, unit):
    def _make(name="Milk", price="10000", tax_rate="0", sku=None, is_active=True):
        p = Product(name=name, sku=sku, unit_id=unit.id, price=Decimal(price), tax_rate=Decimal(tax_rate), is_active=is_active)
        db.add(p)
        db.commit()
        return p

    return _make


@pytest.fixture
def product(make_product):
    return make_product()


@pytest.fixture
def make_register(db):
    def _make(name="Front desk"):
        r = Register(name=name, status="closed", balance=Decimal("0"))
        db.add(r)
        db.commit()
        return r

    return _make


@pytest.fixture
def register(make_register):
    return make_register()


@pytest.fixture
def make_coupon(db):
    def _make(code="TEST10", discount_type="percentage", value="10", **kw):
        c = Coupon(code=code, name=code, discount_type=discount_type, discount_value=Decimal(value), **kw)
        db.add(c)
        db.commit()
        return c

    return _make


@pytest.fixture
def customer(db):
    c = Customer(name="Ana", reward_points=0)
    db.add(c)
    db.commit()
    return c


@pytest.fixture
def fefo_batches(db, product):
    """Three batches of 5: early expiry, later expiry, never expires."""
    from retail_pos.services.stock_ledger import BatchStockLedger

    ledger = BatchStockLedger(db)
    b1 = ledger.create_batch(product.id, product.unit_id, "B1", 5, expiry_date=date(2025, 1, 1))
    b2 = ledger.create_batch(product.id, product.unit_id, "B2", 5, expiry_date=date(2025, 3, 1))
    b3 = ledger.create_batch(product.id, product.unit_id, "B3", 5, expiry_date=None)
    db.commit()
    return b1, b2, b3
