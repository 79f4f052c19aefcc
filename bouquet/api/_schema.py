"""
HTTP schema — pydantic models on both sides of the wire.

Request models turn JSON into engine requests (`to_domain`); response
codecs turn engine results into a status code and a body (`from_domain`).
Field names follow the UCP checkout shape: a line item is
`{"item": {"id": ...}, "quantity": ...}`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from kungfu import Result, Ok, Error
from pydantic import BaseModel, RootModel

from bouquet.catalog import Product
from bouquet.checkout import (
    BuyerInput,
    CheckoutError,
    CheckoutErrorKind,
    CompleteCheckout,
    CreateCheckout,
    Discovery,
    InvalidRequest,
    LineItem,
    LineItemInput,
    Message,
    NotFound,
    NotReady,
    Reply,
    Session,
    Snapshot,
    Status,
    UpdateCheckout,
    handler_dict,
)
from bouquet.wire import Rendered


@dataclass(frozen=True, slots=True)
class Framed:
    """A reply together with the shop profile it is rendered against."""

    reply: Reply
    discovery: Discovery


# ═══════════════════════════════════════════════════════════════════════════════
# Requests
# ═══════════════════════════════════════════════════════════════════════════════


class BuyerIn(BaseModel):
    email: str | None = None
    full_name: str | None = None

    def to_domain(self) -> BuyerInput:
        return BuyerInput(email=self.email, full_name=self.full_name)


def _line_items(raw: Any) -> object:
    """Dict entries become LineItemInput; anything else is left for validation to reject."""
    if not isinstance(raw, list):
        return raw
    return tuple(_line_item(entry) for entry in raw)


def _line_item(entry: Any) -> object:
    if not isinstance(entry, dict):
        return entry
    item = entry.get("item")
    product_id = item.get("id") if isinstance(item, dict) else None
    return LineItemInput(product_id=product_id, quantity=entry.get("quantity"))


class CreateCheckoutIn(BaseModel):
    line_items: Any = None
    buyer: BuyerIn | None = None
    currency: str | None = None
    idempotency_key: str | None = None

    def to_domain(self) -> CreateCheckout:
        return CreateCheckout(
            line_items=_line_items(self.line_items),
            buyer=self.buyer.to_domain() if self.buyer is not None else None,
            currency=self.currency,
            idempotency_key=self.idempotency_key,
        )


class CheckoutIdIn(BaseModel):
    checkout_id: str

    def to_domain(self) -> str:
        return self.checkout_id


class UpdateCheckoutIn(BaseModel):
    checkout_id: str
    line_items: Any = None
    buyer: BuyerIn | None = None
    idempotency_key: str | None = None

    def to_domain(self) -> UpdateCheckout:
        return UpdateCheckout(
            checkout_id=self.checkout_id,
            line_items=_line_items(self.line_items),
            buyer=self.buyer.to_domain() if self.buyer is not None else None,
            idempotency_key=self.idempotency_key,
        )


class CompleteCheckoutIn(BaseModel):
    checkout_id: str
    idempotency_key: str | None = None
    # accepted for shape compatibility, never charged
    payment_data: dict[str, Any] | None = None

    def to_domain(self) -> CompleteCheckout:
        return CompleteCheckout(checkout_id=self.checkout_id, idempotency_key=self.idempotency_key)


# ═══════════════════════════════════════════════════════════════════════════════
# Response Bodies
# ═══════════════════════════════════════════════════════════════════════════════


class CapabilityOut(BaseModel):
    name: str
    version: str


class UcpOut(BaseModel):
    version: str
    capabilities: list[CapabilityOut]

    @classmethod
    def of(cls, discovery: Discovery) -> UcpOut:
        return cls.model_validate(discovery.metadata())


class MessageOut(BaseModel):
    type: str
    code: str
    content: str
    severity: str | None = None
    path: str | None = None

    @classmethod
    def of(cls, message: Message) -> MessageOut:
        return cls(
            type=str(message.type),
            code=str(message.code),
            content=message.content,
            severity=str(message.severity) if message.severity is not None else None,
            path=message.path,
        )


class TotalOut(BaseModel):
    type: str
    amount: int
    display_text: str


class ItemOut(BaseModel):
    id: str
    title: str
    price: int


class LineItemOut(BaseModel):
    id: str
    item: ItemOut
    quantity: int
    totals: list[TotalOut]

    @classmethod
    def of(cls, line: LineItem) -> LineItemOut:
        return cls(
            id=line.id,
            item=ItemOut(id=line.product_id, title=line.title, price=line.unit_price),
            quantity=line.quantity,
            totals=[TotalOut(type="subtotal", amount=line.subtotal, display_text="Subtotal")],
        )


class BuyerOut(BaseModel):
    email: str | None = None
    full_name: str | None = None


class LinkOut(BaseModel):
    type: str
    url: str
    title: str


class PaymentOut(BaseModel):
    handlers: list[dict[str, Any]]
    instruments: list[dict[str, Any]] = []


class OrderOut(BaseModel):
    id: str
    permalink_url: str


class CheckoutOut(BaseModel):
    ucp: UcpOut
    id: str
    status: str
    line_items: list[LineItemOut]
    buyer: BuyerOut
    currency: str
    totals: list[TotalOut]
    messages: list[MessageOut]
    links: list[LinkOut]
    payment: PaymentOut
    created_at: datetime
    expires_at: datetime
    order: OrderOut | None = None

    @classmethod
    def of(
        cls,
        session: Session,
        discovery: Discovery,
        messages: tuple[Message, ...] | None = None,
    ) -> CheckoutOut:
        return cls(
            ucp=UcpOut.of(discovery),
            id=session.id,
            status=str(session.status),
            line_items=[LineItemOut.of(line) for line in session.line_items],
            buyer=BuyerOut(email=session.buyer.email, full_name=session.buyer.full_name),
            currency=session.currency,
            totals=[TotalOut(type=str(t.type), amount=t.amount, display_text=t.label) for t in session.totals],
            messages=[MessageOut.of(m) for m in (session.messages if messages is None else messages)],
            links=[LinkOut(type=link.type, url=link.url, title=link.title) for link in discovery.links],
            payment=PaymentOut(handlers=[handler_dict(h) for h in discovery.handlers]),
            created_at=session.created_at,
            expires_at=session.expires_at,
            order=OrderOut(id=session.order.id, permalink_url=session.order.permalink_url) if session.order else None,
        )


class DiagnosticOut(BaseModel):
    """Body for answers without a session: not found, expired, invalid input."""

    ucp: UcpOut
    status: str | None = None
    id: str | None = None
    messages: list[MessageOut]


class ErrorOut(BaseModel):
    error: str
    message: str


class ProductOut(BaseModel):
    id: str
    name: str
    price: int
    stock: int


class ProductsOut(BaseModel):
    products: list[ProductOut]


class DocumentOut(RootModel[dict[str, Any]]):
    pass


# ═══════════════════════════════════════════════════════════════════════════════
# Response Codecs
# ═══════════════════════════════════════════════════════════════════════════════


class CheckoutResponse:
    """
    Reply → HTTP.

        Snapshot          201 on create, 200 otherwise
        InvalidRequest    400
        NotReady          400, current session, not_ready as its only message
        NotFound          404, status canceled
        CheckoutError     409 replay conflict, 503 anything else
    """

    @classmethod
    def from_domain(cls, dom: Result[Framed, CheckoutError]) -> Rendered:
        match dom:
            case Ok(Framed(reply=Snapshot(session=session, created=created), discovery=discovery)):
                return Rendered(201 if created else 200, CheckoutOut.of(session, discovery))
            case Ok(Framed(reply=InvalidRequest(messages=messages, checkout_id=checkout_id), discovery=discovery)):
                return Rendered(400, DiagnosticOut(
                    ucp=UcpOut.of(discovery),
                    id=checkout_id,
                    messages=[MessageOut.of(m) for m in messages],
                ))
            case Ok(Framed(reply=NotReady() as not_ready, discovery=discovery)):
                session = not_ready.session
                return Rendered(400, CheckoutOut.of(
                    session,
                    discovery,
                    messages=(not_ready.message,),
                ))
            case Ok(Framed(reply=NotFound() as missing, discovery=discovery)):
                return Rendered(404, DiagnosticOut(
                    ucp=UcpOut.of(discovery),
                    status=str(Status.CANCELED),
                    id=missing.checkout_id,
                    messages=[MessageOut.of(missing.message)],
                ))
            case Error(err):
                status = 409 if err.kind == CheckoutErrorKind.REPLAY_CONFLICT else 503
                return Rendered(status, ErrorOut(error=err.kind.name.lower(), message=err.message))
            case _:
                raise TypeError(f"Unexpected checkout result: {dom!r}")


class ProductsResponse:
    @classmethod
    def from_domain(cls, dom: Result[list[Product], Any]) -> Rendered:
        products = dom.unwrap()
        return Rendered(200, ProductsOut(products=[
            ProductOut(id=p.id, name=p.name, price=p.unit_price, stock=p.stock) for p in products
        ]))


class DiscoveryResponse:
    @classmethod
    def from_domain(cls, dom: Result[Discovery, Any]) -> Rendered:
        return Rendered(200, DocumentOut(dom.unwrap().document()))


__all__ = (
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
    "CheckoutResponse",
    "ProductsResponse",
    "DiscoveryResponse",
)
