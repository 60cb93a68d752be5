from __future__ import annotations

import pytest

from scopectl.application import ScopeApp
from scopectl.middleware import _PIPELINE_CACHE, apply_middleware, call_middleware, compose_middleware
from scopectl.requests import Request
from scopectl.responses import Response
from scopectl.testing import TestClient


@pytest.mark.asyncio
async def test_apply_middleware_executes_in_order() -> None:
    calls: list[str] = []

    async def outer(request: Request, handler):
        calls.append("outer:before")
        response = await handler(request)
        calls.append("outer:after")
        return response

    async def inner(request: Request, handler):
        calls.append("inner")
        return await handler(request)

    async def endpoint(request: Request) -> Response:
        calls.append("endpoint")
        return Response(status=200)

    handler = apply_middleware([outer, inner], endpoint)
    response = await handler(Request(method="GET", path="/"))

    assert response.status == 200
    assert calls == ["outer:before", "inner", "endpoint", "outer:after"]


@pytest.mark.asyncio
async def test_apply_middleware_without_middleware_returns_endpoint() -> None:
    async def endpoint(request: Request) -> Response:
        return Response()

    assert apply_middleware([], endpoint) is endpoint


@pytest.mark.asyncio
async def test_sync_middleware_may_return_the_next_awaitable() -> None:
    def passthrough(request: Request, handler):
        request.state["seen"] = True
        return handler(request)

    async def endpoint(request: Request) -> Response:
        return Response(status=201 if request.state.get("seen") else 500)

    response = await apply_middleware((passthrough,), endpoint)(Request(method="GET", path="/"))
    assert response.status == 201


@pytest.mark.asyncio
async def test_call_middleware_rejects_non_responses() -> None:
    async def broken(request: Request, handler):
        return "not a response"

    async def endpoint(request: Request) -> Response:
        return Response()

    with pytest.raises(TypeError):
        await call_middleware(broken, Request(method="GET", path="/"), endpoint)


@pytest.mark.asyncio
async def test_app_middleware_wraps_controller_chain() -> None:
    app = ScopeApp()
    events: list[str] = []

    async def app_level(request: Request, handler):
        events.append("app:before")
        response = await handler(request)
        events.append("app:after")
        return response

    async def scoped(request: Request, handler):
        events.append("scoped")
        return await handler(request)

    app.add_middleware(app_level)
    controller = app.controller()
    controller.use(scoped)
    controller.define("ping", lambda request: "pong")
    controller.get("/ping", "ping")

    async with TestClient(app) as client:
        response = await client.get("/ping")

    assert response.body == b"pong"
    assert events == ["app:before", "scoped", "app:after"]


@pytest.mark.asyncio
async def test_compose_middleware_builds_an_unshared_pipeline() -> None:
    async def passthrough(request: Request, handler):
        return await handler(request)

    async def endpoint(request: Request) -> Response:
        return Response(status=202)

    assert compose_middleware((), endpoint) is endpoint
    handler = compose_middleware((passthrough,), endpoint)
    response = await handler(Request(method="GET", path="/"))

    assert response.status == 202
    assert (passthrough,) not in _PIPELINE_CACHE
