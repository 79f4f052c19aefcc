"""
Line items — catalog id + quantity into priced snapshots.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

import structlog
from kungfu import Some, Nothing

from bouquet.catalog import Catalog
from bouquet.checkout._ids import IdSource
from bouquet.checkout._types import LineItem


logger = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class ItemRequest:
    """Structurally valid entry: known shape, quantity already in range."""

    product_id: str
    quantity: int


class LineItemFactory:
    """
    Builds line items from the catalog.

    Unknown products are dropped, never an error: the rest of the batch
    still goes through.
    """

    def __init__(self, catalog: Catalog, ids: IdSource) -> None:
        self._catalog = catalog
        self._ids = ids

    def build(self, product_id: str, quantity: int, now: datetime) -> LineItem | None:
        match self._catalog.get_product(product_id):
            case Some(product):
                return LineItem(
                    id=self._ids.line_item_id(now),
                    product_id=product.id,
                    title=product.name,
                    unit_price=product.unit_price,
                    quantity=quantity,
                )
            case Nothing():
                logger.info("line_item_dropped", product_id=product_id, quantity=quantity)
                return None

    def build_all(self, requests: Iterable[ItemRequest], now: datetime) -> tuple[LineItem, ...]:
        items = (self.build(r.product_id, r.quantity, now) for r in requests)
        return tuple(item for item in items if item is not None)


__all__ = ("ItemRequest", "LineItemFactory")
