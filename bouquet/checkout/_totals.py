"""
Totals — subtotal, tax, grand total.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal, ROUND_HALF_UP

from bouquet.checkout._types import LineItem, TotalLine, TotalType


def round_tax(subtotal: int, rate: Decimal) -> int:
    """Tax in minor units, rounded half-up."""
    return int((Decimal(subtotal) * rate).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def compute_totals(
    items: Iterable[LineItem],
    rate: Decimal,
    tax_label: str,
) -> tuple[TotalLine, ...]:
    """Always three lines, in order: subtotal, tax, total."""
    subtotal = sum(item.subtotal for item in items)
    tax = round_tax(subtotal, rate)
    return (
        TotalLine(TotalType.SUBTOTAL, subtotal, "Subtotal"),
        TotalLine(TotalType.TAX, tax, tax_label),
        TotalLine(TotalType.TOTAL, subtotal + tax, "Total"),
    )


def amount_of(totals: Iterable[TotalLine], kind: TotalType) -> int:
    for line in totals:
        if line.type == kind:
            return line.amount
    raise KeyError(kind)


__all__ = ("round_tax", "compute_totals", "amount_of")
