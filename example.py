"""Small scopectl application.

Serve it with any ASGI server, for example ``uvicorn example:app``. Requests
to ``/api/users/{user_id}`` run the global request logger, then the ``auth``
group, then the audit middleware attached inline to the action.
"""

from __future__ import annotations

import logging

from scopectl import Controller, JSONResponse, PlainTextResponse, Request, Response, ScopeApp

logger = logging.getLogger("example")


async def log_request(request: Request, handler) -> Response:
    logger.info("%s %s", request.method, request.path)
    return await handler(request)


async def require_token(request: Request, handler) -> Response:
    if request.header("authorization") is None:
        return PlainTextResponse("missing token", status=401)
    return await handler(request)


async def audit(request: Request, handler) -> Response:
    response = await handler(request)
    logger.info("audited %s -> %s", request.action.name if request.action else "-", response.status)
    return response


def create_app() -> ScopeApp:
    app = ScopeApp()
    root = app.controller(name="root")
    root.use(log_request)

    api = Controller(name="api", config=app.config.controller)
    api.use("auth", require_token)
    api.define("show_user", ["auth", audit], show_user)
    api.get("/users/{user_id}", "show_user")
    api.direct("get", "/health", lambda request: "ok")
    root.use("/api", api)
    return app


def show_user(request: Request) -> Response:
    return JSONResponse({"id": request.path_params["user_id"]})


app = create_app()
