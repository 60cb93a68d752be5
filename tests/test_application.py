from __future__ import annotations

from typing import Mapping

import msgspec
import pytest

from scopectl.application import ScopeApp
from scopectl.config import AppConfig, ControllerConfig
from scopectl.controller import Controller
from scopectl.exceptions import HTTPError
from scopectl.http import Status
from scopectl.requests import Request
from scopectl.serialization import json_decode
from scopectl.testing import TestClient


@pytest.mark.asyncio
async def test_unknown_path_returns_not_found() -> None:
    app = ScopeApp()
    app.controller().get("/known", "known")

    async with TestClient(app) as client:
        response = await client.get("/unknown")

    assert response.status == 404
    assert json_decode(response.body)["error"]["detail"] == {
        "detail": "not_found",
        "method": "GET",
        "path": "/unknown",
    }


@pytest.mark.asyncio
async def test_http_errors_from_middleware_become_responses() -> None:
    app = ScopeApp()
    controller = app.controller()

    async def reject(request: Request, handler):
        raise HTTPError(Status.BAD_REQUEST, "nope")

    controller.use("strict", reject)
    controller.define("save", ["strict"], lambda request: "saved")
    controller.post("/save", "save")

    async with TestClient(app) as client:
        response = await client.post("/save", json={"a": 1})

    assert response.status == 400
    assert json_decode(response.body) == {"error": {"status": 400, "detail": "nope"}}


@pytest.mark.asyncio
async def test_other_errors_propagate() -> None:
    app = ScopeApp()
    controller = app.controller()

    def explode(request: Request) -> None:
        raise RuntimeError("boom")

    controller.define("explode", explode)
    controller.get("/explode", "explode")

    async with TestClient(app) as client:
        with pytest.raises(RuntimeError):
            await client.get("/explode")


@pytest.mark.asyncio
async def test_handler_receives_json_body() -> None:
    class Item(msgspec.Struct):
        name: str

    app = ScopeApp()
    controller = app.controller("/items")

    def create(request: Request) -> dict[str, str]:
        item = request.json(Item)
        return {"created": item.name}

    controller.define("create", create)
    controller.put("/", "create")

    async with TestClient(app) as client:
        response = await client.put("/items", json={"name": "widget"})

    assert json_decode(response.body) == {"created": "widget"}
    assert response.header("Content-Type") == "application/json"


@pytest.mark.asyncio
async def test_lifecycle_hooks_run() -> None:
    app = ScopeApp()
    calls: list[str] = []

    @app.on_startup
    async def start() -> None:
        calls.append("startup")

    @app.on_shutdown
    def stop() -> None:
        calls.append("shutdown")

    async with TestClient(app):
        calls.append("inside")

    assert calls == ["startup", "inside", "shutdown"]


def test_from_config_accepts_mappings() -> None:
    app = ScopeApp.from_config({"controller": {"base_group": "everything"}, "max_request_body_bytes": 10})
    assert app.config.controller.base_group == "everything"
    assert app.config.max_request_body_bytes == 10
    controller = app.controller()
    assert controller.config.base_group == "everything"

    config = AppConfig(controller=ControllerConfig(cache_enabled=False))
    assert ScopeApp.from_config(config).config is config


def test_mount_requires_absolute_prefix() -> None:
    with pytest.raises(ValueError):
        ScopeApp().mount("api", Controller())


async def _run_asgi(app: ScopeApp, scope: Mapping[str, object], incoming: list[Mapping[str, object]]):
    messages: list[dict[str, object]] = []

    async def receive() -> Mapping[str, object]:
        return incoming.pop(0) if incoming else {"type": "http.disconnect"}

    async def send(message: Mapping[str, object]) -> None:
        messages.append(dict(message))

    await app(scope, receive, send)
    return messages


@pytest.mark.asyncio
async def test_asgi_interface_handles_request() -> None:
    app = ScopeApp()
    controller = app.controller()
    controller.use("greeting", lambda request, handler: handler(request))
    controller.define("ping", ["greeting"], lambda request: "pong")
    controller.get("/ping", "ping")

    messages = await _run_asgi(
        app,
        {"type": "http", "method": "GET", "path": "/ping", "query_string": b"", "headers": [(b"host", b"local")]},
        [{"type": "http.request", "body": b"", "more_body": False}],
    )

    assert messages[0]["status"] == 200
    assert messages[1]["body"] == b"pong"


@pytest.mark.asyncio
async def test_asgi_rejects_oversized_bodies() -> None:
    app = ScopeApp(AppConfig(max_request_body_bytes=4))
    controller = app.controller()
    controller.define("upload", lambda request: "stored")
    controller.post("/upload", "upload")

    messages = await _run_asgi(
        app,
        {"type": "http", "method": "POST", "path": "/upload", "headers": []},
        [
            {"type": "http.request", "body": b"abc", "more_body": True},
            {"type": "http.request", "body": b"def", "more_body": False},
        ],
    )

    assert messages[0]["status"] == 413


@pytest.mark.asyncio
async def test_asgi_lifespan_runs_hooks() -> None:
    app = ScopeApp()
    calls: list[str] = []
    app.on_startup(lambda: calls.append("up"))
    app.on_shutdown(lambda: calls.append("down"))

    messages = await _run_asgi(
        app,
        {"type": "lifespan"},
        [{"type": "lifespan.startup"}, {"type": "lifespan.shutdown"}],
    )

    assert calls == ["up", "down"]
    assert [message["type"] for message in messages] == [
        "lifespan.startup.complete",
        "lifespan.shutdown.complete",
    ]


@pytest.mark.asyncio
async def test_asgi_rejects_unknown_scope_types() -> None:
    with pytest.raises(RuntimeError):
        await _run_asgi(ScopeApp(), {"type": "websocket"}, [])
