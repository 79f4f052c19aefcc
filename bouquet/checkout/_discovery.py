"""
Discovery — what the shop advertises about itself.

Purely descriptive: the engine never reads any of this, the HTTP layer
serves it at `/.well-known/ucp` and stamps the metadata on every checkout
response.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from bouquet.settings import Settings


UCP_VERSION = "2026-01-11"
SHOPPING_SERVICE = "dev.ucp.shopping"
CHECKOUT_CAPABILITY = "dev.ucp.shopping.checkout"


@dataclass(frozen=True, slots=True)
class Capability:
    name: str
    version: str
    spec: str | None = None
    schema: str | None = None


@dataclass(frozen=True, slots=True)
class PaymentHandler:
    """Handler descriptor; `config` is an opaque blob for the buyer's agent."""

    id: str
    name: str
    version: str
    spec: str
    config_schema: str
    instrument_schemas: tuple[str, ...]
    config: dict[str, Any] = field(default_factory=dict[str, Any])


@dataclass(frozen=True, slots=True)
class Link:
    type: str
    url: str
    title: str


@dataclass(frozen=True, slots=True)
class Service:
    name: str
    version: str
    spec: str
    rest_schema: str
    rest_endpoint: str


CHECKOUT = Capability(
    name=CHECKOUT_CAPABILITY,
    version=UCP_VERSION,
    spec="https://ucp.dev/specification/checkout",
    schema="https://ucp.dev/schemas/shopping/checkout.json",
)

DEMO_PAYMENT = PaymentHandler(
    id="demo_payment",
    name="dev.ucp.demo_tokenizer",
    version=UCP_VERSION,
    spec="https://ucp.dev/specification/examples/business-tokenizer-payment-handler",
    config_schema="https://ucp.dev/schemas/payments/business-tokenizer.json",
    instrument_schemas=("https://ucp.dev/schemas/shopping/types/card_payment_instrument.json",),
    config={"type": "CARD", "demo_mode": True},
)


# ═══════════════════════════════════════════════════════════════════════════════
# Discovery
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Discovery:
    """
    Shop profile for one base URL.

    Example:
        discovery = Discovery.from_settings(settings)
        discovery.document()    # /.well-known/ucp body
        discovery.metadata()    # `ucp` block on checkout responses
    """

    version: str
    service: Service
    capabilities: tuple[Capability, ...]
    handlers: tuple[PaymentHandler, ...]
    links: tuple[Link, ...]

    @classmethod
    def from_settings(cls, settings: Settings) -> Discovery:
        base = settings.base_url
        return cls(
            version=UCP_VERSION,
            service=Service(
                name=SHOPPING_SERVICE,
                version=UCP_VERSION,
                spec="https://ucp.dev/specification/overview",
                rest_schema="https://ucp.dev/services/shopping/rest.openapi.json",
                rest_endpoint=f"{base}/api",
            ),
            capabilities=(CHECKOUT,),
            handlers=(DEMO_PAYMENT,),
            links=(
                Link("privacy_policy", f"{base}/privacy", "Privacy Policy"),
                Link("terms_of_service", f"{base}/terms", "Terms of Service"),
            ),
        )

    def capability(self, name: str) -> Capability | None:
        for capability in self.capabilities:
            if capability.name == name:
                return capability
        return None

    def metadata(self) -> dict[str, Any]:
        """Short form: version plus capability names and versions."""
        return {
            "version": self.version,
            "capabilities": [{"name": c.name, "version": c.version} for c in self.capabilities],
        }

    def document(self) -> dict[str, Any]:
        return {
            "ucp": {
                "version": self.version,
                "services": {
                    self.service.name: {
                        "version": self.service.version,
                        "spec": self.service.spec,
                        "rest": {
                            "schema": self.service.rest_schema,
                            "endpoint": self.service.rest_endpoint,
                        },
                    },
                },
                "capabilities": [_capability(c) for c in self.capabilities],
            },
            "payment": {"handlers": [handler_dict(h) for h in self.handlers]},
            "signing_keys": [],
        }


def handler_dict(handler: PaymentHandler) -> dict[str, Any]:
    return {
        "id": handler.id,
        "name": handler.name,
        "version": handler.version,
        "spec": handler.spec,
        "config_schema": handler.config_schema,
        "instrument_schemas": list(handler.instrument_schemas),
        "config": dict(handler.config),
    }


def _capability(capability: Capability) -> dict[str, Any]:
    entry: dict[str, Any] = {"name": capability.name, "version": capability.version}
    if capability.spec is not None:
        entry["spec"] = capability.spec
    if capability.schema is not None:
        entry["schema"] = capability.schema
    return entry


__all__ = (
    "UCP_VERSION",
    "SHOPPING_SERVICE",
    "CHECKOUT_CAPABILITY",
    "Capability",
    "PaymentHandler",
    "Link",
    "Service",
    "CHECKOUT",
    "DEMO_PAYMENT",
    "Discovery",
    "handler_dict",
)
