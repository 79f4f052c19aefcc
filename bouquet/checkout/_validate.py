"""
Validation & sanitization.

Three independent passes:

    validate_line_items   raw entries → ItemRequest | InvalidRequest messages
    sanitize_buyer        raw contact fields → normalized Buyer (bad values dropped)
    completeness          Buyer → recoverable messages for what is missing

plus `derive_status`, the status state machine for create/update.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from kungfu import Result, Ok, Error

from bouquet.checkout._items import ItemRequest
from bouquet.checkout._types import (
    Buyer,
    BuyerInput,
    Code,
    LineItem,
    LineItemInput,
    Message,
    Severity,
    Status,
)


EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


# ═══════════════════════════════════════════════════════════════════════════════
# Line Items — structural only, before any catalog lookup
# ═══════════════════════════════════════════════════════════════════════════════


def validate_line_items(
    entries: object,
    *,
    min_quantity: int = 1,
    max_quantity: int = 100,
) -> Result[tuple[ItemRequest, ...], tuple[Message, ...]]:
    """
    Check every entry; report all violations at once.

    An entry that passes here may still be dropped later for an unknown
    product id.
    """
    if not isinstance(entries, Sequence) or isinstance(entries, str):
        return Error((
            Message.error(Code.INVALID_LINE_ITEMS, "Line items must be a list", path="$.line_items"),
        ))

    requests: list[ItemRequest] = []
    problems: list[Message] = []

    for index, entry in enumerate(entries):
        path = f"$.line_items[{index}]"

        if not isinstance(entry, LineItemInput):
            problems.append(Message.error(Code.INVALID_LINE_ITEMS, "Line item must be an object", path=path))
            continue

        product_id = _product_ref(entry.product_id)
        if product_id is None:
            problems.append(Message.error(
                Code.MISSING_PRODUCT,
                "Line item needs a product id",
                path=f"{path}.item.id",
            ))

        quantity = entry.quantity
        if quantity is None:
            problems.append(Message.error(
                Code.MISSING_QUANTITY,
                "Line item needs a quantity",
                path=f"{path}.quantity",
            ))
            continue

        if not _is_int(quantity) or not min_quantity <= quantity <= max_quantity:
            problems.append(Message.error(
                Code.INVALID_QUANTITY,
                f"Quantity must be a whole number between {min_quantity} and {max_quantity}",
                path=f"{path}.quantity",
            ))
            continue

        if product_id is not None:
            requests.append(ItemRequest(product_id, quantity))

    if problems:
        return Error(tuple(problems))
    return Ok(tuple(requests))


def _product_ref(raw: object) -> str | None:
    if _is_int(raw):
        return str(raw)
    if isinstance(raw, str) and raw.strip():
        return raw.strip()
    return None


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


# ═══════════════════════════════════════════════════════════════════════════════
# Buyer
# ═══════════════════════════════════════════════════════════════════════════════


def sanitize_email(raw: str | None) -> str | None:
    if not isinstance(raw, str):
        return None
    email = raw.strip().lower()
    if not EMAIL_PATTERN.match(email):
        return None
    return email


def sanitize_name(raw: str | None, max_length: int = 100) -> str | None:
    if not isinstance(raw, str):
        return None
    name = raw.strip()[:max_length].strip()
    return name or None


def sanitize_buyer(raw: BuyerInput, *, name_max_length: int = 100) -> Buyer:
    """Invalid or empty fields come back unset, never as an error."""
    return Buyer(
        email=sanitize_email(raw.email),
        full_name=sanitize_name(raw.full_name, name_max_length),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Completeness & Status
# ═══════════════════════════════════════════════════════════════════════════════


def completeness(buyer: Buyer) -> tuple[Message, ...]:
    """Recomputed from scratch after every mutation."""
    messages: list[Message] = []
    if not buyer.email:
        messages.append(Message.error(
            Code.MISSING_BUYER_EMAIL,
            "Buyer email is required",
            severity=Severity.RECOVERABLE,
            path="$.buyer.email",
        ))
    if not buyer.full_name:
        messages.append(Message.error(
            Code.MISSING_BUYER_FULL_NAME,
            "Buyer full name is required",
            severity=Severity.RECOVERABLE,
            path="$.buyer.full_name",
        ))
    return tuple(messages)


def derive_status(items: Sequence[LineItem], buyer: Buyer) -> Status:
    if buyer.is_complete and items:
        return Status.READY_FOR_COMPLETE
    return Status.INCOMPLETE


__all__ = (
    "EMAIL_PATTERN",
    "validate_line_items",
    "sanitize_email",
    "sanitize_name",
    "sanitize_buyer",
    "completeness",
    "derive_status",
)
