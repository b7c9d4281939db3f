"""
Batch-level stock with FEFO (first-expire-first-out) deduction.

``ProductUnitQuantity`` is a cache of ``sum(StockBatch.quantity)`` per
(product, unit). Every method here that touches a batch re-syncs it before
returning, under the same per-key lock, so callers cannot forget. Nothing is
committed here: the caller's ``transaction()`` does that while the lock is
still held.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..core.errors import InsufficientStock, InvalidQuantity, NotFound
from ..models.stock import ProductUnitQuantity, StockBatch
from ..utils.locks import STOCK_LOCKS, KeyedLocks

log = logging.getLogger(__name__)

_EDITABLE = ("batch_number", "expiry_date", "quantity", "purchase_price", "notes")


@dataclass(frozen=True)
class Deduction:
    batch_id: int
    batch_number: str
    expiry_date: Optional[date]
    quantity: int


def fefo_order():
    # dated stock first (earliest expiry), never-expiring last, creation order on ties
    return (StockBatch.expiry_date.is_(None), StockBatch.expiry_date, StockBatch.id)


def _positive_int(quantity: Any) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantity(f"quantity must be a positive integer, got {quantity!r}")
    return quantity


class BatchStockLedger:
    def __init__(self, db: Session, locks: KeyedLocks = STOCK_LOCKS):
        self.db = db
        self.locks = locks

    # ---------- reads ----------
    def get_batch(self, batch_id: int) -> StockBatch:
        batch = self.db.get(StockBatch, batch_id)
        if batch is None:
            raise NotFound("stock batch", batch_id)
        return batch

    def list_batches(self, product_id: Optional[int] = None) -> List[StockBatch]:
        q = select(StockBatch).order_by(*fefo_order())
        if product_id is not None:
            q = q.where(StockBatch.product_id == product_id)
        return list(self.db.scalars(q))

    def get_total_stock(self, product_id: int, unit_id: int) -> int:
        total = self.db.scalar(
            select(func.coalesce(func.sum(StockBatch.quantity), 0)).where(
                StockBatch.product_id == product_id, StockBatch.unit_id == unit_id
            )
        )
        return int(total or 0)

    def get_cached_quantity(self, product_id: int, unit_id: int) -> Optional[int]:
        row = self.db.scalar(
            select(ProductUnitQuantity).where(
                ProductUnitQuantity.product_id == product_id,
                ProductUnitQuantity.unit_id == unit_id,
            )
        )
        return None if row is None else row.quantity

    def get_expiring_soon(self, days: int, today: Optional[date] = None) -> List[StockBatch]:
        limit = (today or date.today()) + timedelta(days=days)
        q = (
            select(StockBatch)
            .where(
                StockBatch.expiry_date.is_not(None),
                StockBatch.expiry_date <= limit,
                StockBatch.quantity > 0,
            )
            .order_by(StockBatch.expiry_date, StockBatch.id)
        )
        return list(self.db.scalars(q))

    # ---------- aggregate ----------
    def sync_product_unit_quantity(self, product_id: int, unit_id: int) -> int:
        with self.locks.hold((product_id, unit_id)):
            self.db.flush()
            total = self.get_total_stock(product_id, unit_id)
            row = self.db.scalar(
                select(ProductUnitQuantity)
                .where(
                    ProductUnitQuantity.product_id == product_id,
                    ProductUnitQuantity.unit_id == unit_id,
                )
                .with_for_update()
            )
            if row is None:
                self.db.add(ProductUnitQuantity(product_id=product_id, unit_id=unit_id, quantity=total))
            else:
                row.quantity = total
            self.db.flush()
            return total

    # ---------- batch mutations ----------
    def create_batch(
        self,
        product_id: int,
        unit_id: int,
        batch_number: str,
        quantity: int,
        expiry_date: Optional[date] = None,
        purchase_price: Optional[Decimal] = None,
        notes: Optional[str] = None,
        author: Optional[str] = None,
    ) -> StockBatch:
        quantity = _positive_int(quantity)
        with self.locks.hold((product_id, unit_id)):
            batch = StockBatch(
                product_id=product_id,
                unit_id=unit_id,
                batch_number=batch_number,
                expiry_date=expiry_date,
                quantity=quantity,
                initial_quantity=quantity,
                purchase_price=purchase_price,
                notes=notes,
                author=author,
            )
            self.db.add(batch)
            self.sync_product_unit_quantity(product_id, unit_id)
        log.info("batch %s received: product=%s unit=%s qty=%s", batch_number, product_id, unit_id, quantity)
        return batch

    def update_batch(self, batch_id: int, **changes: Any) -> StockBatch:
        unknown = set(changes) - set(_EDITABLE)
        if unknown:
            raise ValueError(f"cannot update batch fields: {sorted(unknown)}")
        batch = self.get_batch(batch_id)
        with self.locks.hold((batch.product_id, batch.unit_id)):
            if "quantity" in changes:
                qty = changes["quantity"]
                if (
                    isinstance(qty, bool)
                    or not isinstance(qty, int)
                    or qty < 0
                    or qty > batch.initial_quantity
                ):
                    raise InvalidQuantity(
                        f"quantity must be an integer between 0 and {batch.initial_quantity}, got {qty!r}"
                    )
            for k, v in changes.items():
                setattr(batch, k, v)
            self.sync_product_unit_quantity(batch.product_id, batch.unit_id)
        return batch

    def delete_batch(self, batch_id: int) -> None:
        batch = self.get_batch(batch_id)
        key = (batch.product_id, batch.unit_id)
        left = batch.quantity
        with self.locks.hold(key):
            self.db.delete(batch)
            self.sync_product_unit_quantity(*key)
        log.info("batch %s deleted (had %s left)", batch_id, left)

    def deduct_stock_fefo(self, product_id: int, unit_id: int, quantity: int) -> List[Deduction]:
        """Take ``quantity`` from the earliest-expiring batches.

        All or nothing: if the batches cannot cover the request, raises
        ``InsufficientStock`` before any batch is touched. Returns one record
        per batch touched, in the order they were consumed.
        """
        quantity = _positive_int(quantity)
        with self.locks.hold((product_id, unit_id)):
            self.db.flush()
            batches = list(
                self.db.scalars(
                    select(StockBatch)
                    .where(
                        StockBatch.product_id == product_id,
                        StockBatch.unit_id == unit_id,
                        StockBatch.quantity > 0,
                    )
                    .order_by(*fefo_order())
                    .with_for_update()
                )
            )
            available = sum(b.quantity for b in batches)
            if available < quantity:
                log.warning(
                    "FEFO rejected: product=%s unit=%s requested=%s available=%s",
                    product_id, unit_id, quantity, available,
                )
                raise InsufficientStock(product_id, unit_id, quantity, available)

            remaining = quantity
            deductions: List[Deduction] = []
            for batch in batches:
                if remaining == 0:
                    break
                if batch.quantity <= 0:
                    continue
                take = min(batch.quantity, remaining)
                batch.quantity -= take
                remaining -= take
                deductions.append(Deduction(batch.id, batch.batch_number, batch.expiry_date, take))

            self.sync_product_unit_quantity(product_id, unit_id)
        log.info(
            "FEFO deducted %s from product=%s unit=%s across %s batch(es)",
            quantity, product_id, unit_id, len(deductions),
        )
        return deductions
