from decimal import Decimal

import pytest

from retail_pos.core.money import DiscountType, TaxType, calculate_discount, calculate_tax, money, to_decimal


def test_percentage_discount():
    assert calculate_discount(Decimal("100"), Decimal("10"), DiscountType.percentage) == Decimal("10")


def test_flat_discount_is_returned_as_is():
    assert calculate_discount(Decimal("100"), Decimal("10"), "flat") == Decimal("10")
    # not clamped here
    assert calculate_discount(Decimal("10"), Decimal("15"), "flat") == Decimal("15")


def test_percentage_is_not_rounded():
    assert calculate_discount(Decimal("10"), Decimal("33"), "percentage") == Decimal("3.3")


def test_inclusive_tax_backs_out_net():
    tax, net = calculate_tax(Decimal("110"), Decimal("10"), TaxType.inclusive)
    assert money(tax) == Decimal("10.00")
    assert money(net) == Decimal("100.00")
    assert tax + net == Decimal("110")


def test_exclusive_tax_on_top():
    tax, net = calculate_tax(Decimal("100"), Decimal("10"), "exclusive")
    assert tax == Decimal("10")
    assert net == Decimal("100")


@pytest.mark.parametrize("tax_type", ["inclusive", "exclusive"])
def test_zero_rate_has_no_tax(tax_type):
    assert calculate_tax(Decimal("50"), 0, tax_type) == (Decimal("0"), Decimal("50"))


def test_money_rounds_half_up():
    assert money("2.345") == Decimal("2.35")
    assert money("2.344") == Decimal("2.34")
    assert money("1.5", places=0) == Decimal("2")


def test_to_decimal_keeps_float_text():
    assert to_decimal(0.1) == Decimal("0.1")
    assert to_decimal(None) == Decimal("0")
