"""Totals: subtotal, half-up tax, grand total."""

from decimal import Decimal

import pytest

from bouquet.checkout import LineItem, TotalType, amount_of, compute_totals, round_tax


def line(unit_price: int, quantity: int, product_id: str = "1") -> LineItem:
    return LineItem(f"li_{product_id}", product_id, "Flowers", unit_price, quantity)


def test_worked_example() -> None:
    totals = compute_totals([line(299, 12)], Decimal("0.08"), "Tax (8%)")

    assert [t.type for t in totals] == [TotalType.SUBTOTAL, TotalType.TAX, TotalType.TOTAL]
    assert [t.amount for t in totals] == [3588, 287, 3875]
    assert [t.label for t in totals] == ["Subtotal", "Tax (8%)", "Total"]


def test_empty_cart_has_three_zero_lines() -> None:
    totals = compute_totals([], Decimal("0.08"), "Tax (8%)")

    assert [t.amount for t in totals] == [0, 0, 0]


def test_sums_every_line() -> None:
    totals = compute_totals([line(299, 2), line(199, 3, "2")], Decimal("0.08"), "Tax")

    assert amount_of(totals, TotalType.SUBTOTAL) == 299 * 2 + 199 * 3
    assert amount_of(totals, TotalType.TOTAL) == amount_of(totals, TotalType.SUBTOTAL) + amount_of(
        totals, TotalType.TAX
    )


@pytest.mark.parametrize(
    ("subtotal", "rate", "expected"),
    [
        (3588, "0.08", 287),  # 287.04
        (299, "0.08", 24),  # 23.92
        (3, "0.5", 2),  # 1.5 rounds up
        (5, "0.1", 1),  # 0.5 rounds up
        (0, "0.08", 0),
    ],
)
def test_round_tax_half_up(subtotal: int, rate: str, expected: int) -> None:
    assert round_tax(subtotal, Decimal(rate)) == expected


@pytest.mark.parametrize("quantity", [1, 7, 50, 100])
def test_single_item_formula_holds(quantity: int) -> None:
    totals = compute_totals([line(399, quantity)], Decimal("0.08"), "Tax (8%)")
    subtotal = 399 * quantity

    assert amount_of(totals, TotalType.SUBTOTAL) == subtotal
    assert amount_of(totals, TotalType.TAX) == round_tax(subtotal, Decimal("0.08"))
    assert amount_of(totals, TotalType.TOTAL) == subtotal + round_tax(subtotal, Decimal("0.08"))


def test_amount_of_unknown_kind() -> None:
    with pytest.raises(KeyError):
        amount_of([], TotalType.TAX)
