from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.schemas import BatchCreate, BatchUpdate, DeductIn, ProductUnitIn
from ..db import get_db, transaction
from ..models.stock import StockBatch
from ..services.stock_ledger import BatchStockLedger
from ..utils.locks import STOCK_LOCKS

router = APIRouter(prefix="/stock", tags=["stock"])


def _batch(b: StockBatch) -> dict:
    return {
        "id": b.id,
        "product_id": b.product_id,
        "unit_id": b.unit_id,
        "batch_number": b.batch_number,
        "expiry_date": b.expiry_date,
        "quantity": b.quantity,
        "initial_quantity": b.initial_quantity,
        "purchase_price": b.purchase_price,
        "notes": b.notes,
    }


@router.post("/batches")
def create_batch(payload: BatchCreate, db: Session = Depends(get_db)):
    ledger = BatchStockLedger(db)
    with transaction(db, STOCK_LOCKS.hold((payload.product_id, payload.unit_id))):
        batch = ledger.create_batch(**payload.model_dump())
    return _batch(batch)


@router.get("/batches")
def list_batches(product_id: Optional[int] = None, db: Session = Depends(get_db)):
    return {"batches": [_batch(b) for b in BatchStockLedger(db).list_batches(product_id)]}


@router.patch("/batches/{batch_id}")
def update_batch(batch_id: int, payload: BatchUpdate, db: Session = Depends(get_db)):
    ledger = BatchStockLedger(db)
    current = ledger.get_batch(batch_id)
    with transaction(db, STOCK_LOCKS.hold((current.product_id, current.unit_id))):
        batch = ledger.update_batch(batch_id, **payload.model_dump(exclude_unset=True))
    return _batch(batch)


@router.delete("/batches/{batch_id}")
def delete_batch(batch_id: int, db: Session = Depends(get_db)):
    ledger = BatchStockLedger(db)
    current = ledger.get_batch(batch_id)
    key = (current.product_id, current.unit_id)
    with transaction(db, STOCK_LOCKS.hold(key)):
        ledger.delete_batch(batch_id)
    return {"deleted": True, "batch_id": batch_id, "total": ledger.get_total_stock(*key)}


@router.post("/deduct")
def deduct(payload: DeductIn, db: Session = Depends(get_db)):
    ledger = BatchStockLedger(db)
    with transaction(db, STOCK_LOCKS.hold((payload.product_id, payload.unit_id))):
        deductions = ledger.deduct_stock_fefo(payload.product_id, payload.unit_id, payload.quantity)
    return {
        "success": True,
        "deductions": [
            {"batch_id": d.batch_id, "batch_number": d.batch_number, "expiry_date": d.expiry_date, "quantity": d.quantity}
            for d in deductions
        ],
    }


@router.get("/total")
def total_stock(product_id: int, unit_id: int, db: Session = Depends(get_db)):
    ledger = BatchStockLedger(db)
    return {
        "product_id": product_id,
        "unit_id": unit_id,
        "total": ledger.get_total_stock(product_id, unit_id),
        "cached": ledger.get_cached_quantity(product_id, unit_id),
    }


@router.post("/sync")
def sync(payload: ProductUnitIn, db: Session = Depends(get_db)):
    ledger = BatchStockLedger(db)
    with transaction(db, STOCK_LOCKS.hold((payload.product_id, payload.unit_id))):
        total = ledger.sync_product_unit_quantity(payload.product_id, payload.unit_id)
    return {"product_id": payload.product_id, "unit_id": payload.unit_id, "quantity": total}


@router.get("/expiring")
def expiring(days: Optional[int] = Query(default=None, ge=0), db: Session = Depends(get_db)):
    days = settings.expiring_soon_days if days is None else days
    return {"days": days, "batches": [_batch(b) for b in BatchStockLedger(db).get_expiring_soon(days)]}
