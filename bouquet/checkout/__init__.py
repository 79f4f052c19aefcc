"""
Checkout — session lifecycle engine.

    from bouquet import checkout as C

    engine = C.CheckoutEngine(catalog, sessions, replays)

    result = await engine.create(C.CreateCheckout(
        line_items=(C.LineItemInput("1", 12),),
        idempotency_key="req-1",
    ))
    match result:
        case Ok(C.Snapshot(session)):
            session.status          # incomplete: no buyer yet
        case Ok(C.InvalidRequest(messages)):
            ...

Status machine:

    incomplete ⇄ ready_for_complete ──complete──▶ completed

`ready_for_complete` iff the buyer has email and full name and the cart has
at least one item. Nothing leaves `completed`.
"""

from bouquet.checkout._types import (
    Status,
    MessageType,
    Severity,
    Code,
    Message,
    LineItem,
    TotalType,
    TotalLine,
    Buyer,
    Order,
    Session,
    LineItemInput,
    BuyerInput,
    CreateCheckout,
    UpdateCheckout,
    CompleteCheckout,
    Snapshot,
    InvalidRequest,
    NotFound,
    NotReady,
    Reply,
    CheckoutError,
    CheckoutErrorKind,
)
from bouquet.checkout._totals import (
    round_tax,
    compute_totals,
    amount_of,
)
from bouquet.checkout._ids import (
    IdSource,
    MonotonicIds,
)
from bouquet.checkout._items import (
    ItemRequest,
    LineItemFactory,
)
from bouquet.checkout._validate import (
    EMAIL_PATTERN,
    validate_line_items,
    sanitize_email,
    sanitize_name,
    sanitize_buyer,
    completeness,
    derive_status,
)
from bouquet.checkout._lookup import (
    Lookup,
    Resolution,
    SessionResolution,
    resolve_session,
)
from bouquet.checkout._engine import (
    CheckoutEngine,
    ORDER_CONFIRMED,
    build_store,
)
from bouquet.checkout._discovery import (
    UCP_VERSION,
    CHECKOUT_CAPABILITY,
    Capability,
    PaymentHandler,
    Link,
    Service,
    DEMO_PAYMENT,
    Discovery,
    handler_dict,
)
from bouquet.checkout._sweeper import Sweeper

__all__ = (
    # Types
    "Status",
    "MessageType",
    "Severity",
    "Code",
    "Message",
    "LineItem",
    "TotalType",
    "TotalLine",
    "Buyer",
    "Order",
    "Session",
    # Requests
    "LineItemInput",
    "BuyerInput",
    "CreateCheckout",
    "UpdateCheckout",
    "CompleteCheckout",
    # Replies
    "Snapshot",
    "InvalidRequest",
    "NotFound",
    "NotReady",
    "Reply",
    "CheckoutError",
    "CheckoutErrorKind",
    # Totals
    "round_tax",
    "compute_totals",
    "amount_of",
    # Items
    "IdSource",
    "MonotonicIds",
    "ItemRequest",
    "LineItemFactory",
    # Validation
    "EMAIL_PATTERN",
    "validate_line_items",
    "sanitize_email",
    "sanitize_name",
    "sanitize_buyer",
    "completeness",
    "derive_status",
    # Lookup
    "Lookup",
    "Resolution",
    "SessionResolution",
    "resolve_session",
    # Engine
    "CheckoutEngine",
    "ORDER_CONFIRMED",
    "build_store",
    # Discovery
    "UCP_VERSION",
    "CHECKOUT_CAPABILITY",
    "Capability",
    "PaymentHandler",
    "Link",
    "Service",
    "DEMO_PAYMENT",
    "Discovery",
    "handler_dict",
    # Maintenance
    "Sweeper",
)
