"""
Catalog types.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from kungfu import Option


@dataclass(frozen=True, slots=True)
class Product:
    id: str
    name: str
    unit_price: int  # minor units
    stock: int


class Catalog(Protocol):
    """
    Read-only product lookup.

    Note: Ids are unique and stable for the lifetime of the process.
    """

    def list_products(self) -> list[Product]: ...

    def get_product(self, product_id: str) -> Option[Product]: ...


__all__ = ("Product", "Catalog")
