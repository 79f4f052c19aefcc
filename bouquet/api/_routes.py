"""
HTTP routes — the checkout engine behind FastAPI.

    uvicorn bouquet.api:create_app --factory

    GET  /.well-known/ucp                          discovery document
    GET  /api/products                             catalog
    POST /api/checkout-sessions                    create
    GET  /api/checkout-sessions/{checkout_id}      get
    PUT  /api/checkout-sessions/{checkout_id}      update
    POST /api/checkout-sessions/{checkout_id}/complete

Mutating routes read the `Idempotency-Key` header.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import fastapi
import structlog
from kungfu import LazyCoroResult

from bouquet import wire as W
from bouquet._logging import configure_logging
from bouquet.api._schema import (
    CheckoutIdIn,
    CheckoutResponse,
    CompleteCheckoutIn,
    CreateCheckoutIn,
    DiscoveryResponse,
    Framed,
    ProductsResponse,
    UpdateCheckoutIn,
)
from bouquet.checkout import CheckoutEngine, Discovery, Reply, Sweeper
from bouquet.settings import Settings
from bouquet.wire import fastapi as wire_fastapi


logger = structlog.get_logger()

IDEMPOTENCY_KEY = "Idempotency-Key"
SESSION = "/api/checkout-sessions/{checkout_id}"


def build_application(engine: CheckoutEngine, discovery: Discovery) -> W.Application:
    """Every route as an endpoint: handler + trigger + codec."""

    def frame(reply: Reply) -> Framed:
        return Framed(reply, discovery)

    keyed = frozenset({IDEMPOTENCY_KEY})

    return W.application().mount(
        W.endpoint(lambda _: LazyCoroResult.pure(discovery)).expose(
            W.HTTPRouteTrigger("GET", "/.well-known/ucp"),
            W.RequestResponseCodec(None, DiscoveryResponse),
        ),
        W.endpoint(lambda _: LazyCoroResult.pure(engine.catalog.list_products())).expose(
            W.HTTPRouteTrigger("GET", "/api/products"),
            W.RequestResponseCodec(None, ProductsResponse),
        ),
        W.endpoint(lambda req: engine.create(req).map(frame)).expose(
            W.HTTPRouteTrigger("POST", "/api/checkout-sessions", keyed),
            W.RequestResponseCodec(CreateCheckoutIn, CheckoutResponse),
        ),
        W.endpoint(lambda checkout_id: engine.get(checkout_id).map(frame)).expose(
            W.HTTPRouteTrigger("GET", SESSION),
            W.RequestResponseCodec(CheckoutIdIn, CheckoutResponse),
        ),
        W.endpoint(lambda req: engine.update(req).map(frame)).expose(
            W.HTTPRouteTrigger("PUT", SESSION, keyed),
            W.RequestResponseCodec(UpdateCheckoutIn, CheckoutResponse),
        ),
        W.endpoint(lambda req: engine.complete(req).map(frame)).expose(
            W.HTTPRouteTrigger("POST", f"{SESSION}/complete", keyed),
            W.RequestResponseCodec(CompleteCheckoutIn, CheckoutResponse),
        ),
    )


def create_app(
    settings: Settings | None = None,
    *,
    engine: CheckoutEngine | None = None,
    maintenance: bool = True,
) -> fastapi.FastAPI:
    """
    FastAPI app for one engine.

    Settings default to the environment; the engine defaults to
    `CheckoutEngine.from_settings`. With `maintenance` the sweeper runs for
    the lifetime of the app.
    """
    settings = settings if settings is not None else Settings.from_env()
    configure_logging(settings.log_level)

    engine = engine if engine is not None else CheckoutEngine.from_settings(settings)
    discovery = Discovery.from_settings(settings)
    sweeper = Sweeper(engine)

    @asynccontextmanager
    async def lifespan(_: fastapi.FastAPI) -> AsyncIterator[None]:
        await engine.open()
        if maintenance:
            sweeper.start()
        logger.info("app_started", base_url=settings.base_url, database=settings.database_url is not None)
        try:
            yield
        finally:
            await sweeper.stop()
            await engine.close()
            logger.info("app_stopped")

    app = wire_fastapi.from_application(
        build_application(engine, discovery),
        title="bouquet",
        lifespan=lifespan,
    )
    app.state.engine = engine
    app.state.sweeper = sweeper
    return app


__all__ = (
    "IDEMPOTENCY_KEY",
    "build_application",
    "create_app",
)
