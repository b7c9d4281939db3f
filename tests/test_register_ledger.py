from decimal import Decimal

import pytest

from retail_pos.core.config import settings
from retail_pos.core.errors import AlreadyOpen, InvalidMovement, NotOpen
from retail_pos.db import transaction
from retail_pos.services.register_ledger import CLOSED, OPENED, RegisterLedger


def test_open_cash_in_out_close(db, register):
    ledger = RegisterLedger(db)
    with transaction(db):
        ledger.open(register.id, Decimal("100"))
        ledger.cash_in(register.id, Decimal("50"), "float top up")
        ledger.cash_out(register.id, Decimal("30"), "supplier")
    assert register.balance == Decimal("120.00")

    with transaction(db):
        reg = ledger.close(register.id)
    assert reg.status == CLOSED
    assert reg.closing_balance == Decimal("120.00")
    assert reg.balance == Decimal("120.00")

    with pytest.raises(NotOpen):
        ledger.close(register.id)


def test_history_is_newest_first(db, register):
    ledger = RegisterLedger(db)
    with transaction(db):
        ledger.open(register.id, 100)
        ledger.cash_in(register.id, 50, "top up")
        ledger.close(register.id)
    actions = [m.action for m in ledger.history(register.id)]
    assert actions == ["closing", "cash_in", "opening"]
    cash_in = ledger.history(register.id)[1]
    assert (cash_in.balance_before, cash_in.balance_after) == (Decimal("100.00"), Decimal("150.00"))


def test_open_twice(db, register):
    ledger = RegisterLedger(db)
    ledger.open(register.id, 0)
    with pytest.raises(AlreadyOpen):
        ledger.open(register.id, 10)
    assert register.status == OPENED


def test_movement_on_closed_register(db, register):
    with pytest.raises(NotOpen):
        RegisterLedger(db).cash_in(register.id, 10, "x")


@pytest.mark.parametrize("amount,description", [(0, "x"), (-5, "x"), (10, ""), (10, "   ")])
def test_invalid_movement(db, register, amount, description):
    ledger = RegisterLedger(db)
    ledger.open(register.id, 100)
    with pytest.raises(InvalidMovement):
        ledger.cash_in(register.id, amount, description)
    assert register.balance == Decimal("100.00")


def test_cash_out_may_go_negative_by_default(db, register):
    ledger = RegisterLedger(db)
    ledger.open(register.id, 10)
    ledger.cash_out(register.id, 25, "refund")
    assert register.balance == Decimal("-15.00")


def test_cash_out_floor_when_configured(db, register, monkeypatch):
    monkeypatch.setattr(settings, "register_allow_negative", False)
    ledger = RegisterLedger(db)
    ledger.open(register.id, 10)
    with pytest.raises(InvalidMovement):
        ledger.cash_out(register.id, 25, "refund")
    assert register.balance == Decimal("10.00")


def test_reopen_starts_from_new_opening_balance(db, register):
    ledger = RegisterLedger(db)
    ledger.open(register.id, 100)
    ledger.close(register.id)
    ledger.open(register.id, 40)
    assert register.balance == Decimal("40.00")
    assert register.closing_balance is None


def test_negative_opening_balance(db, register):
    with pytest.raises(InvalidMovement):
        RegisterLedger(db).open(register.id, -1)
