from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from kungfu import Result

from bouquet.wire._http import HTTPRouteTrigger, RequestResponseCodec


type Handler = Callable[[Any], Awaitable[Result[Any, Any]]]
type Exposure = tuple[HTTPRouteTrigger, RequestResponseCodec]


@dataclass(frozen=True, slots=True)
class Endpoint:
    """A handler and every route it answers on."""

    handler: Handler
    exposures: tuple[Exposure, ...] = ()

    def expose(self, trigger: HTTPRouteTrigger, codec: RequestResponseCodec) -> Endpoint:
        return Endpoint(self.handler, (*self.exposures, (trigger, codec)))


def endpoint(handler: Handler) -> Endpoint:
    return Endpoint(handler)


@dataclass(frozen=True, slots=True)
class Application:
    endpoints: tuple[Endpoint, ...] = ()

    def mount(self, *endpoints: Endpoint) -> Application:
        return Application((*self.endpoints, *endpoints))

    def routes(self) -> list[tuple[HTTPRouteTrigger, RequestResponseCodec, Handler]]:
        return [
            (trigger, codec, endp.handler)
            for endp in self.endpoints
            for trigger, codec in endp.exposures
        ]


def application() -> Application:
    return Application()


__all__ = (
    "Handler",
    "Exposure",
    "Endpoint",
    "endpoint",
    "Application",
    "application",
)
