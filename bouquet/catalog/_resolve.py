"""
Product references — free text to catalog id.

Pre-processing for conversational front ends: "a dozen red roses" has to
become "1" before it reaches the checkout engine.

    resolve_product_ref("Pink tulips please", catalog)   # Some("2")
    resolve_product_ref("something nice", catalog)       # Some("1"), first product
"""

from __future__ import annotations

from collections.abc import Sequence

from kungfu import Option, Some, Nothing

from bouquet.catalog._types import Catalog


# keyword → product id, checked in order
FLOWER_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("rose", "1"),
    ("tulip", "2"),
    ("lily", "3"),
    ("lilies", "3"),
)


def resolve_product_ref(
    ref: object,
    catalog: Catalog,
    keywords: Sequence[tuple[str, str]] = FLOWER_KEYWORDS,
) -> Option[str]:
    """
    Resolve an id or a product mention to a catalog id.

    Order: exact id, keyword substring, full product name substring, then the
    first catalog product. Nothing only when the catalog is empty.
    """
    products = catalog.list_products()
    if not products:
        return Nothing()

    text = str(ref).strip().lower()
    ids = {product.id for product in products}

    if text in ids:
        return Some(text)

    for keyword, product_id in keywords:
        if keyword in text and product_id in ids:
            return Some(product_id)

    for product in products:
        if product.name.lower() in text:
            return Some(product.id)

    return Some(products[0].id)


__all__ = ("FLOWER_KEYWORDS", "resolve_product_ref")
