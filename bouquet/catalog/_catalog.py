"""
Static catalog — fixed product list held in memory.
"""

from __future__ import annotations

from collections.abc import Iterable

from kungfu import Option, Some, Nothing

from bouquet.catalog._types import Product


class StaticCatalog:
    """In-memory catalog; listing order is insertion order."""

    def __init__(self, products: Iterable[Product] = ()) -> None:
        self._products: dict[str, Product] = {}
        for product in products:
            if product.id in self._products:
                raise ValueError(f"Duplicate product id: {product.id}")
            self._products[product.id] = product

    def list_products(self) -> list[Product]:
        return list(self._products.values())

    def get_product(self, product_id: str) -> Option[Product]:
        product = self._products.get(product_id)
        if product is None:
            return Nothing()
        return Some(product)

    def __len__(self) -> int:
        return len(self._products)


FLOWER_SHOP = (
    Product("1", "Red Roses", 299, 100),
    Product("2", "Pink Tulips", 199, 80),
    Product("3", "White Lilies", 399, 60),
)


def flower_shop() -> StaticCatalog:
    """The demo shop's three bouquets."""
    return StaticCatalog(FLOWER_SHOP)


__all__ = ("StaticCatalog", "FLOWER_SHOP", "flower_shop")
