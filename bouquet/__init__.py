"""
bouquet — checkout session lifecycle engine.

    from bouquet import checkout as C     # Engine, sessions, replies
    from bouquet import catalog           # Products
    from bouquet import store             # Session storage
    from bouquet import idempotency as I  # Replay cache
    from bouquet import graph as G        # Computation graphs

    engine = C.CheckoutEngine.from_settings(Settings.from_env())

The HTTP surface lives in `bouquet.api` (FastAPI).
"""

from bouquet import graph
from bouquet import store
from bouquet import idempotency
from bouquet import catalog
from bouquet import checkout
from bouquet._logging import configure_logging
from bouquet._types import Clock, utcnow
from bouquet.settings import Settings, SettingsError

__version__ = "0.1.0"

__all__ = (
    "graph",
    "store",
    "idempotency",
    "catalog",
    "checkout",
    "configure_logging",
    "Clock",
    "utcnow",
    "Settings",
    "SettingsError",
)
