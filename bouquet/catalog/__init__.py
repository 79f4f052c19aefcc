"""
Catalog — read-only product lookup.

    from bouquet import catalog

    shop = catalog.flower_shop()
    match shop.get_product("1"):
        case Some(product):
            ...
        case Nothing():
            ...
"""

from bouquet.catalog._types import (
    Product,
    Catalog,
)
from bouquet.catalog._catalog import (
    StaticCatalog,
    FLOWER_SHOP,
    flower_shop,
)
from bouquet.catalog._resolve import (
    FLOWER_KEYWORDS,
    resolve_product_ref,
)

__all__ = (
    "Product",
    "Catalog",
    "StaticCatalog",
    "FLOWER_SHOP",
    "flower_shop",
    "FLOWER_KEYWORDS",
    "resolve_product_ref",
)
