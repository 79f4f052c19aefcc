"""
FastAPI compilation of a wire Application.

    from bouquet.wire import fastapi as wire_fastapi

    app = wire_fastapi.from_application(application, title="bouquet", lifespan=lifespan)

Each route becomes one FastAPI path operation. Path params, declared
headers and (for non-GET routes with a request model) the JSON body are
merged into one dict and validated by the request model.
"""

import inspect
from typing import Annotated, Any

import fastapi
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from bouquet.wire._endpoint import Application, Handler
from bouquet.wire._http import HTTPRouteTrigger, RequestResponseCodec, header_field


def make_handler(
    trigger: HTTPRouteTrigger,
    codec: RequestResponseCodec,
    handler: Handler,
) -> Any:
    """Route function whose signature FastAPI can read."""
    path_params = trigger.path_params
    headers = {header_field(h): h for h in sorted(trigger.headers)}
    takes_body = codec.request is not None and trigger.method != "GET"

    async def route(**kwargs: Any) -> JSONResponse:
        domain: Any = None

        if codec.request is not None:
            fields: dict[str, Any] = dict(kwargs.get("body") or {})
            fields.update({name: kwargs[name] for name in path_params})
            fields.update({name: kwargs[name] for name in headers if kwargs[name] is not None})
            try:
                request = codec.request.model_validate(fields)  # type: ignore[attr-defined]
            except ValidationError as e:
                raise RequestValidationError(e.errors()) from e
            domain = request.to_domain()

        rendered = codec.response.from_domain(await handler(domain))
        return JSONResponse(
            status_code=rendered.status,
            content=rendered.body.model_dump(mode="json", exclude_none=True),
        )

    params = [
        inspect.Parameter(name, inspect.Parameter.KEYWORD_ONLY, annotation=str)
        for name in path_params
    ]
    params += [
        inspect.Parameter(
            name,
            inspect.Parameter.KEYWORD_ONLY,
            default=None,
            annotation=Annotated[str | None, fastapi.Header(alias=header)],
        )
        for name, header in headers.items()
    ]
    if takes_body:
        params.append(
            inspect.Parameter(
                "body",
                inspect.Parameter.KEYWORD_ONLY,
                default=None,
                annotation=Annotated[dict[str, Any] | None, fastapi.Body()],
            )
        )

    route.__signature__ = inspect.Signature(params, return_annotation=JSONResponse)  # type: ignore[attr-defined]
    return route


def from_application(app: Application, **fastapi_kwargs: Any) -> fastapi.FastAPI:
    f_app = fastapi.FastAPI(**fastapi_kwargs)

    for trigger, codec, handler in app.routes():
        f_app.add_api_route(
            trigger.path,
            make_handler(trigger, codec, handler),
            methods=[trigger.method],
            response_class=JSONResponse,
        )

    return f_app


__all__ = (
    "make_handler",
    "from_application",
)
