"""
API — HTTP surface for the checkout engine.

    from bouquet.api import create_app

    app = create_app(Settings().with_base_url("https://flowers.example"))
"""

from bouquet.api._schema import (
    Framed,
    BuyerIn,
    CreateCheckoutIn,
    CheckoutIdIn,
    UpdateCheckoutIn,
    CompleteCheckoutIn,
    CheckoutOut,
    DiagnosticOut,
    ErrorOut,
    ProductsOut,
    DocumentOut,
    CheckoutResponse,
    ProductsResponse,
    DiscoveryResponse,
)
from bouquet.api._routes import (
    IDEMPOTENCY_KEY,
    build_application,
    create_app,
)

__all__ = (
    # Schema
    "Framed",
    "BuyerIn",
    "CreateCheckoutIn",
    "CheckoutIdIn",
    "UpdateCheckoutIn",
    "CompleteCheckoutIn",
    "CheckoutOut",
    "DiagnosticOut",
    "ErrorOut",
    "ProductsOut",
    "DocumentOut",
    # Codecs
    "CheckoutResponse",
    "ProductsResponse",
    "DiscoveryResponse",
    # App
    "IDEMPOTENCY_KEY",
    "build_application",
    "create_app",
)
