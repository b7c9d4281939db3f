"""
Cash drawer lifecycle: closed --open--> opened --cash in/out, sales--> opened --close--> closed.

Balance updates are read-modify-write, so every operation runs under the
register's lock. Movements are append-only.
"""
from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.errors import AlreadyOpen, InvalidMovement, NotFound, NotOpen
from ..core.money import ZERO, Number, money, to_decimal
from ..models.register import Register, RegisterMovement
from ..utils.locks import REGISTER_LOCKS, KeyedLocks

log = logging.getLogger(__name__)

OPENED = "opened"
CLOSED = "closed"


class RegisterLedger:
    def __init__(self, db: Session, locks: KeyedLocks = REGISTER_LOCKS):
        self.db = db
        self.locks = locks

    def create_register(self, name: str, description: Optional[str] = None) -> Register:
        if not (name or "").strip():
            raise InvalidMovement("register name is required")
        reg = Register(name=name.strip(), description=description, status=CLOSED, balance=ZERO)
        self.db.add(reg)
        self.db.flush()
        return reg

    def get_register(self, register_id: int) -> Register:
        reg = self.db.get(Register, register_id)
        if reg is None:
            raise NotFound("register", register_id)
        return reg

    def list_registers(self) -> List[Register]:
        return list(self.db.scalars(select(Register).order_by(Register.name, Register.id)))

    def history(self, register_id: int, limit: int = 100) -> List[RegisterMovement]:
        self.get_register(register_id)
        q = (
            select(RegisterMovement)
            .where(RegisterMovement.register_id == register_id)
            .order_by(RegisterMovement.id.desc())
            .limit(limit)
        )
        return list(self.db.scalars(q))

    # ---------- transitions ----------
    def open(self, register_id: int, opening_balance: Number, author: Optional[str] = None) -> Register:
        opening = to_decimal(opening_balance)
        if opening < 0:
            raise InvalidMovement("opening balance must not be negative")
        with self.locks.hold(register_id):
            reg = self.get_register(register_id)
            if reg.status != CLOSED:
                raise AlreadyOpen(f"register {reg.name} is already open")
            before = to_decimal(reg.balance)
            reg.status = OPENED
            reg.balance = money(opening)
            reg.opening_balance = money(opening)
            reg.closing_balance = None
            reg.opened_at = datetime.utcnow()
            reg.closed_at = None
            reg.used_by = author
            self._append(reg, "opening", opening, before, "Register opened", author)
        log.info("register %s opened with %s", register_id, reg.balance)
        return reg

    def cash_in(self, register_id: int, amount: Number, description: str, author: Optional[str] = None) -> RegisterMovement:
        return self._move(register_id, "cash_in", amount, description, author)

    def cash_out(self, register_id: int, amount: Number, description: str, author: Optional[str] = None) -> RegisterMovement:
        return self._move(register_id, "cash_out", amount, description, author)

    def record_sale(
        self, register_id: int, order_id: int, amount: Number, description: str, author: Optional[str] = None
    ) -> RegisterMovement:
        """Cash-in tied to an order."""
        return self._move(register_id, "sale", amount, description, author, order_id=order_id)

    def close(self, register_id: int, author: Optional[str] = None) -> Register:
        with self.locks.hold(register_id):
            reg = self.get_register(register_id)
            if reg.status != OPENED:
                raise NotOpen(f"register {reg.name} is not open")
            balance = to_decimal(reg.balance)
            reg.status = CLOSED
            # el saldo final se conserva para el arqueo; no se pone a cero
            reg.closing_balance = money(balance)
            reg.closed_at = datetime.utcnow()
            reg.used_by = None
            self._append(reg, "closing", balance, balance, "Register closed", author, after=balance)
        log.info("register %s closed with %s", register_id, reg.closing_balance)
        return reg

    # ---------- internals ----------
    def _move(
        self,
        register_id: int,
        action: str,
        amount: Number,
        description: str,
        author: Optional[str],
        order_id: Optional[int] = None,
    ) -> RegisterMovement:
        with self.locks.hold(register_id):
            reg = self.get_register(register_id)
            if reg.status != OPENED:
                raise NotOpen(f"register {reg.name} is not open")
            amount = to_decimal(amount)
            if amount <= 0:
                raise InvalidMovement("amount must be greater than zero")
            if not (description or "").strip():
                raise InvalidMovement("description is required")
            before = to_decimal(reg.balance)
            if action == "cash_out":
                if not settings.register_allow_negative and before < amount:
                    raise InvalidMovement("Insufficient balance")
                after = before - amount
            else:
                after = before + amount
            reg.balance = money(after)
            mv = self._append(reg, action, amount, before, description.strip(), author, after=after, order_id=order_id)
        if action == "cash_out" and after < 0:
            log.warning("register %s balance went negative: %s", register_id, reg.balance)
        return mv

    def _append(
        self,
        reg: Register,
        action: str,
        amount: Decimal,
        before: Decimal,
        description: str,
        author: Optional[str],
        after: Optional[Decimal] = None,
        order_id: Optional[int] = None,
    ) -> RegisterMovement:
        mv = RegisterMovement(
            register_id=reg.id,
            action=action,
            amount=money(amount),
            balance_before=money(before),
            balance_after=money(reg.balance if after is None else after),
            description=description,
            order_id=order_id,
            author=author,
        )
        self.db.add(mv)
        self.db.flush()
        return mv
