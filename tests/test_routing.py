from __future__ import annotations

import pytest

from scopectl.middleware import _PIPELINE_CACHE
from scopectl.requests import Request
from scopectl.responses import PlainTextResponse, Response
from scopectl.routing import RouteStack, Router, join_prefix, normalize_prefix


async def endpoint(request: Request) -> Response:
    return PlainTextResponse("endpoint")


def test_router_matches_path_parameters() -> None:
    router = Router()
    route = router.add_route("/items/{item_id}", methods=["GET"], endpoint=endpoint, name="get_item")
    match = router.find("GET", "/items/123")
    assert match.route is route
    assert match.params["item_id"] == "123"
    assert route.path == "/items/{item_id}"


def test_router_int_and_path_converters() -> None:
    router = Router()
    router.add_route("/pages/{page:int}", methods=["GET"], endpoint=endpoint)
    router.add_route("/files/{filepath:path}", methods=["GET"], endpoint=endpoint)

    assert router.find("GET", "/pages/7").params == {"page": "7"}
    with pytest.raises(LookupError):
        router.find("GET", "/pages/seven")
    assert router.find("GET", "/files/a/b/c.txt").params == {"filepath": "a/b/c.txt"}


def test_router_rejects_unknown_converter() -> None:
    with pytest.raises(ValueError):
        Router().add_route("/items/{item_id:uuid}", methods=["GET"], endpoint=endpoint)


def test_router_scopes_routes_by_method() -> None:
    router = Router()
    router.add_route("/items", methods=["GET"], endpoint=endpoint)
    with pytest.raises(LookupError):
        router.find("POST", "/items")


def test_router_registers_multiple_methods() -> None:
    router = Router()
    route = router.add_route("/items", methods=["get", "POST", "GET"], endpoint=endpoint)
    assert route.spec.methods == ("GET", "POST")
    assert router.find("post", "/items").route is route


def test_router_descends_into_mounts() -> None:
    outer = Router()
    inner = Router()
    deepest = Router()
    route = deepest.add_route("/leaf/{name}", methods=["GET"], endpoint=endpoint)
    inner.mount("/deep/", deepest)
    outer.mount("/api", inner)

    match = outer.find("GET", "/api/deep/leaf/x")

    assert match.route is route
    assert match.params == {"name": "x"}
    assert match.prefix == "/api/deep"
    with pytest.raises(LookupError):
        outer.find("GET", "/apix/deep/leaf/x")


def test_router_prefers_local_routes_then_mounts_in_order() -> None:
    outer = Router()
    first = Router()
    second = Router()
    local = outer.add_route("/shared", methods=["GET"], endpoint=endpoint)
    first_route = first.add_route("/only-first", methods=["GET"], endpoint=endpoint)
    second_route = second.add_route("/only-second", methods=["GET"], endpoint=endpoint)
    outer.mount("/", first)
    outer.mount("/", second)

    assert outer.find("GET", "/shared").route is local
    assert outer.find("GET", "/only-first").route is first_route
    assert outer.find("GET", "/only-second").route is second_route


def test_mount_prefix_matches_exact_path() -> None:
    outer = Router()
    inner = Router()
    route = inner.add_route("/", methods=["GET"], endpoint=endpoint)
    outer.mount("/sub", inner)
    assert outer.find("GET", "/sub").route is route


def test_prefix_helpers() -> None:
    assert normalize_prefix("") == "/"
    assert normalize_prefix("api/") == "/api"
    assert join_prefix("/", "/api") == "/api"
    assert join_prefix("/api", "") == "/api"
    assert join_prefix("/api", "/v1") == "/api/v1"


@pytest.mark.asyncio
async def test_route_stack_reads_chain_after_before_stages() -> None:
    events: list[str] = []

    async def late(request: Request, handler):
        events.append("late")
        return await handler(request)

    stack: RouteStack

    async def installer(request: Request, handler):
        events.append("installer")
        stack.replace_chain([late])
        return await handler(request)

    async def terminal(request: Request) -> Response:
        events.append("endpoint")
        return Response(status=204)

    stack = RouteStack(terminal, before=[installer])
    response = await stack(Request(method="GET", path="/"))

    assert response.status == 204
    assert events == ["installer", "late", "endpoint"]
    assert stack.layers() == (installer, late, terminal)
    assert stack.before == (installer,)


@pytest.mark.asyncio
async def test_route_stack_owns_its_chain_pipeline() -> None:
    events: list[str] = []

    def tag(label: str):
        async def middleware(request: Request, handler):
            events.append(label)
            return await handler(request)

        return middleware

    first, second = tag("first"), tag("second")
    stack = RouteStack(endpoint)
    stack.replace_chain([first, second])
    await stack(Request(method="GET", path="/"))
    stack.replace_chain([second])
    await stack(Request(method="GET", path="/"))

    assert events == ["first", "second", "second"]
    assert stack.chain == (second,)
    assert (first, second) not in _PIPELINE_CACHE
    assert (second,) not in _PIPELINE_CACHE
