"""
Wire — expose domain handlers as HTTP routes.

    from bouquet import wire as W
    from bouquet.wire import fastapi as wire_fastapi

    endp = W.endpoint(lambda req: engine.create(req).map(frame)).expose(
        W.HTTPRouteTrigger("POST", "/api/checkout-sessions", frozenset({"Idempotency-Key"})),
        W.RequestResponseCodec(CreateCheckoutIn, CheckoutResponse),
    )
    app = wire_fastapi.from_application(W.application().mount(endp))

A handler takes whatever the request model's `to_domain()` returns and
gives back an awaitable Result; the response codec turns that Result into a
status code and body.
"""

from bouquet.wire._http import (
    Method,
    HTTPRouteTrigger,
    header_field,
    Rendered,
    ToDomain,
    FromDomain,
    RequestResponseCodec,
)
from bouquet.wire._endpoint import (
    Handler,
    Exposure,
    Endpoint,
    endpoint,
    Application,
    application,
)

__all__ = (
    # Routes
    "Method",
    "HTTPRouteTrigger",
    "header_field",
    # Codecs
    "Rendered",
    "ToDomain",
    "FromDomain",
    "RequestResponseCodec",
    # Endpoints
    "Handler",
    "Exposure",
    "Endpoint",
    "endpoint",
    "Application",
    "application",
)
