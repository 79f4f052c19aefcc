"""
Checkout types — sessions, requests and replies.

Sessions are immutable snapshots: every write builds a new Session and puts
it back into the store, nothing holds a reference across calls.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, StrEnum, auto


# ═══════════════════════════════════════════════════════════════════════════════
# Status
# ═══════════════════════════════════════════════════════════════════════════════


class Status(StrEnum):
    """
    Session status.

    Lifecycle:
        incomplete ⇄ ready_for_complete → completed

    CANCELED is only used for not-found/expired responses, it is never
    stored on a live session.
    """

    INCOMPLETE = "incomplete"
    READY_FOR_COMPLETE = "ready_for_complete"
    COMPLETED = "completed"
    CANCELED = "canceled"


# ═══════════════════════════════════════════════════════════════════════════════
# Messages
# ═══════════════════════════════════════════════════════════════════════════════


class MessageType(StrEnum):
    ERROR = "error"
    INFO = "info"


class Severity(StrEnum):
    RECOVERABLE = "recoverable"
    REQUIRES_BUYER_INPUT = "requires_buyer_input"


class Code(StrEnum):
    """Diagnostic codes surfaced to callers."""

    MISSING_BUYER_EMAIL = "missing_buyer_email"
    MISSING_BUYER_FULL_NAME = "missing_buyer_full_name"
    INVALID_LINE_ITEMS = "invalid_line_items"
    MISSING_PRODUCT = "missing_product"
    MISSING_QUANTITY = "missing_quantity"
    INVALID_QUANTITY = "invalid_quantity"
    CHECKOUT_COMPLETED = "checkout_completed"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    NOT_READY = "not_ready"
    ORDER_CONFIRMED = "order_confirmed"


@dataclass(frozen=True, slots=True)
class Message:
    type: MessageType
    code: Code
    content: str
    severity: Severity | None = None
    path: str | None = None

    @classmethod
    def error(
        cls,
        code: Code,
        content: str,
        *,
        severity: Severity = Severity.REQUIRES_BUYER_INPUT,
        path: str | None = None,
    ) -> Message:
        return cls(MessageType.ERROR, code, content, severity, path)

    @classmethod
    def info(cls, code: Code, content: str) -> Message:
        return cls(MessageType.INFO, code, content)


# ═══════════════════════════════════════════════════════════════════════════════
# Cart
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class LineItem:
    """Priced snapshot of one product at the moment it was added."""

    id: str
    product_id: str
    title: str
    unit_price: int
    quantity: int

    @property
    def subtotal(self) -> int:
        return self.unit_price * self.quantity


class TotalType(StrEnum):
    SUBTOTAL = "subtotal"
    TAX = "tax"
    TOTAL = "total"


@dataclass(frozen=True, slots=True)
class TotalLine:
    type: TotalType
    amount: int
    label: str


@dataclass(frozen=True, slots=True)
class Buyer:
    email: str | None = None
    full_name: str | None = None

    @property
    def is_complete(self) -> bool:
        return bool(self.email) and bool(self.full_name)

    def merge(self, patch: Buyer) -> Buyer:
        """Fields set on `patch` win, unset fields keep the current value."""
        return Buyer(
            email=patch.email if patch.email is not None else self.email,
            full_name=patch.full_name if patch.full_name is not None else self.full_name,
        )


@dataclass(frozen=True, slots=True)
class Order:
    id: str
    permalink_url: str


# ═══════════════════════════════════════════════════════════════════════════════
# Session
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Session:
    id: str
    line_items: tuple[LineItem, ...]
    buyer: Buyer
    currency: str
    totals: tuple[TotalLine, ...]
    messages: tuple[Message, ...]
    status: Status
    created_at: datetime
    expires_at: datetime
    order: Order | None = None

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


# ═══════════════════════════════════════════════════════════════════════════════
# Requests — raw caller input, validated by the engine
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class LineItemInput:
    """
    One submitted cart entry.

    Note: Fields stay loosely typed, structural validation runs on the raw
    values before any catalog lookup.
    """

    product_id: object = None
    quantity: object = None


@dataclass(frozen=True, slots=True)
class BuyerInput:
    email: str | None = None
    full_name: str | None = None


@dataclass(frozen=True, slots=True)
class CreateCheckout:
    """
    Note: line_items should be a sequence of LineItemInput; anything else
    (or any other entry type) is answered with invalid_line_items.
    """

    line_items: object = None
    buyer: BuyerInput | None = None
    currency: str | None = None
    idempotency_key: str | None = None


@dataclass(frozen=True, slots=True)
class UpdateCheckout:
    """line_items=None keeps the cart, an empty sequence clears it."""

    checkout_id: str
    line_items: object = None
    buyer: BuyerInput | None = None
    idempotency_key: str | None = None


@dataclass(frozen=True, slots=True)
class CompleteCheckout:
    checkout_id: str
    idempotency_key: str | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Replies — every domain outcome is data
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Live session after a successful call."""

    session: Session
    created: bool = False


@dataclass(frozen=True, slots=True)
class InvalidRequest:
    """Structural violation; stored state is untouched."""

    messages: tuple[Message, ...]
    checkout_id: str | None = None


@dataclass(frozen=True, slots=True)
class NotFound:
    """No live session: never existed, already reaped, or just expired."""

    checkout_id: str
    expired: bool = False

    @property
    def message(self) -> Message:
        if self.expired:
            return Message.error(Code.EXPIRED, "Checkout has expired")
        return Message.error(Code.NOT_FOUND, "Checkout not found")


@dataclass(frozen=True, slots=True)
class NotReady:
    """Completion refused; `session` is the current, unmodified snapshot."""

    session: Session

    @property
    def message(self) -> Message:
        if self.session.status == Status.COMPLETED:
            return Message.error(Code.NOT_READY, "Checkout is already completed")
        return Message.error(
            Code.NOT_READY,
            "Checkout needs buyer email, full name and at least one item before it can be completed",
        )


type Reply = Snapshot | InvalidRequest | NotFound | NotReady


# ═══════════════════════════════════════════════════════════════════════════════
# Errors — infrastructure failures, not domain outcomes
# ═══════════════════════════════════════════════════════════════════════════════


class CheckoutErrorKind(Enum):
    STORE = auto()  # Session store failed
    REPLAY_CONFLICT = auto()  # Same idempotency key already in flight
    REPLAY_TIMEOUT = auto()  # Waiting for the in-flight call timed out
    REPLAY_STORE = auto()  # Idempotency cache failed


@dataclass(frozen=True, slots=True)
class CheckoutError:
    kind: CheckoutErrorKind
    message: str
    cause: Exception | None = None


__all__ = (
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
    "LineItemInput",
    "BuyerInput",
    "CreateCheckout",
    "UpdateCheckout",
    "CompleteCheckout",
    "Snapshot",
    "InvalidRequest",
    "NotFound",
    "NotReady",
    "Reply",
    "CheckoutError",
    "CheckoutErrorKind",
)
