"""
HTTP routes and the codec pair every route is exposed through.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol, TypeVar

from kungfu import Result
from pydantic import BaseModel


type Method = Literal["GET", "POST", "PUT", "DELETE", "PATCH"]

PATH_PARAM = re.compile(r"\{(\w+)\}")

DomainT_co = TypeVar("DomainT_co", covariant=True)
DomainT_contra = TypeVar("DomainT_contra", contravariant=True)


@dataclass(frozen=True, slots=True)
class HTTPRouteTrigger:
    """
    Method, path template and the request headers the route reads.

    Example:
        HTTPRouteTrigger("PUT", "/api/checkout-sessions/{checkout_id}", frozenset({"Idempotency-Key"}))
    """

    method: Method
    path: str
    headers: frozenset[str] = field(default_factory=lambda: frozenset[str]())

    @property
    def path_params(self) -> tuple[str, ...]:
        return tuple(PATH_PARAM.findall(self.path))


def header_field(header: str) -> str:
    """`Idempotency-Key` → `idempotency_key`."""
    return header.lower().replace("-", "_")


# ═══════════════════════════════════════════════════════════════════════════════
# Codec
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Rendered:
    """Status code and body chosen by a response codec."""

    status: int
    body: BaseModel


class ToDomain(Protocol[DomainT_co]):
    def to_domain(self) -> DomainT_co: ...


class FromDomain(Protocol[DomainT_contra]):
    @classmethod
    def from_domain(cls, dom: DomainT_contra) -> Rendered: ...


@dataclass(frozen=True, slots=True)
class RequestResponseCodec:
    """
    Pydantic request model in, rendered response out.

    `request` is None for routes that take no input; the handler is then
    called with None.
    """

    request: type[ToDomain[Any]] | None
    response: type[FromDomain[Result[Any, Any]]]


__all__ = (
    "Method",
    "HTTPRouteTrigger",
    "header_field",
    "Rendered",
    "ToDomain",
    "FromDomain",
    "RequestResponseCodec",
)
