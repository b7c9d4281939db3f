from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.schemas import MovementIn, RegisterClose, RegisterCreate, RegisterOpen
from ..db import get_db, transaction
from ..models.register import Register, RegisterMovement
from ..services.register_ledger import RegisterLedger
from ..utils.locks import REGISTER_LOCKS

router = APIRouter(prefix="/registers", tags=["registers"])


def _register(r: Register) -> dict:
    return {
        "id": r.id,
        "name": r.name,
        "description": r.description,
        "status": r.status,
        "balance": r.balance,
        "opening_balance": r.opening_balance,
        "closing_balance": r.closing_balance,
        "used_by": r.used_by,
        "opened_at": r.opened_at,
        "closed_at": r.closed_at,
    }


def _movement(m: RegisterMovement) -> dict:
    return {
        "id": m.id,
        "action": m.action,
        "amount": m.amount,
        "balance_before": m.balance_before,
        "balance_after": m.balance_after,
        "description": m.description,
        "order_id": m.order_id,
        "author": m.author,
        "created_at": m.created_at,
    }


@router.post("")
def create_register(payload: RegisterCreate, db: Session = Depends(get_db)):
    with transaction(db):
        reg = RegisterLedger(db).create_register(payload.name, payload.description)
    return _register(reg)


@router.get("")
def list_registers(db: Session = Depends(get_db)):
    return {"registers": [_register(r) for r in RegisterLedger(db).list_registers()]}


@router.get("/{register_id}")
def get_register(register_id: int, db: Session = Depends(get_db)):
    return _register(RegisterLedger(db).get_register(register_id))


@router.get("/{register_id}/history")
def history(register_id: int, limit: int = Query(default=100, ge=1, le=1000), db: Session = Depends(get_db)):
    return {"register_id": register_id, "movements": [_movement(m) for m in RegisterLedger(db).history(register_id, limit)]}


@router.post("/{register_id}/open")
def open_register(register_id: int, payload: RegisterOpen, db: Session = Depends(get_db)):
    with transaction(db, REGISTER_LOCKS.hold(register_id)):
        reg = RegisterLedger(db).open(register_id, payload.opening_balance, author=payload.author)
    return _register(reg)


@router.post("/{register_id}/cash-in")
def cash_in(register_id: int, payload: MovementIn, db: Session = Depends(get_db)):
    ledger = RegisterLedger(db)
    with transaction(db, REGISTER_LOCKS.hold(register_id)):
        mv = ledger.cash_in(register_id, payload.amount, payload.description, author=payload.author)
    return {"movement": _movement(mv), "register": _register(ledger.get_register(register_id))}


@router.post("/{register_id}/cash-out")
def cash_out(register_id: int, payload: MovementIn, db: Session = Depends(get_db)):
    ledger = RegisterLedger(db)
    with transaction(db, REGISTER_LOCKS.hold(register_id)):
        mv = ledger.cash_out(register_id, payload.amount, payload.description, author=payload.author)
    return {"movement": _movement(mv), "register": _register(ledger.get_register(register_id))}


@router.post("/{register_id}/close")
def close_register(register_id: int, payload: RegisterClose, db: Session = Depends(get_db)):
    with transaction(db, REGISTER_LOCKS.hold(register_id)):
        reg = RegisterLedger(db).close(register_id, author=payload.author)
    return _register(reg)
