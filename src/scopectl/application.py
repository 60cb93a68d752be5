"""Application core: the host that matches requests and runs route stacks."""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Mapping

import msgspec

from .config import AppConfig
from .controller import Controller
from .exceptions import HTTPError, NotFoundError
from .http import Status
from .middleware import MiddlewareCallable, apply_middleware
from .requests import Request
from .responses import Response, exception_to_response
from .routing import Mountable, Router

logger = logging.getLogger(__name__)


class ScopeApp:
    """Central application object hosting one or more controllers."""

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config = config or AppConfig()
        self.router = Router()
        self._middlewares: list[MiddlewareCallable] = []
        self._startup_hooks: list[Callable[[], Awaitable[None] | None]] = []
        self._shutdown_hooks: list[Callable[[], Awaitable[None] | None]] = []

    @classmethod
    def from_config(cls, config: AppConfig | Mapping[str, Any]) -> "ScopeApp":
        if isinstance(config, AppConfig):
            return cls(config=config)
        return cls(config=msgspec.convert(config, type=AppConfig))

    # ------------------------------------------------------------------ routing
    def controller(self, prefix: str = "/", *, name: str | None = None) -> Controller:
        """Create a controller configured from this app and mount it at ``prefix``."""

        controller = Controller(name=name, config=self.config.controller)
        self.mount(prefix, controller)
        return controller

    def mount(self, prefix: str, target: Mountable) -> None:
        if not prefix.startswith("/"):
            raise ValueError(f"Mount prefix must start with '/', got {prefix!r}")
        self.router.mount(prefix, target)

    # ------------------------------------------------------------------ middleware
    def add_middleware(self, middleware: MiddlewareCallable) -> None:
        """Wrap every routed request in ``middleware``, outside any controller chain."""

        self._middlewares.append(middleware)

    # ------------------------------------------------------------------ lifecycle
    def on_startup(self, func: Callable[[], Awaitable[None] | None]) -> Callable[[], Awaitable[None] | None]:
        self._startup_hooks.append(func)
        return func

    def on_shutdown(self, func: Callable[[], Awaitable[None] | None]) -> Callable[[], Awaitable[None] | None]:
        self._shutdown_hooks.append(func)
        return func

    async def startup(self) -> None:
        for hook in self._startup_hooks:
            result = hook()
            if inspect.isawaitable(result):
                await result

    async def shutdown(self) -> None:
        for hook in self._shutdown_hooks:
            result = hook()
            if inspect.isawaitable(result):
                await result

    # ------------------------------------------------------------------ request handling
    async def dispatch(
        self,
        method: str,
        path: str,
        *,
        query_string: str | None = None,
        headers: Mapping[str, str] | None = None,
        body: bytes | None = None,
    ) -> Response:
        try:
            match = self.router.find(method, path)
        except LookupError:
            return exception_to_response(NotFoundError(method, path))
        request = Request(
            method=method,
            path=path,
            headers=headers or {},
            path_params=match.params,
            query_string=query_string or "",
            body=body,
        )
        request.route = match.route
        handler = apply_middleware(self._middlewares, match.route.stack)
        try:
            return await handler(request)
        except HTTPError as exc:
            logger.debug("%s %s failed with %s: %s", request.method, path, int(exc.status), exc)
            return exception_to_response(exc)

    # ------------------------------------------------------------------ interface adapters
    async def __call__(
        self,
        scope: Mapping[str, Any],
        receive: Callable[[], Awaitable[Mapping[str, Any]]],
        send: Callable[[Mapping[str, Any]], Awaitable[None]],
    ) -> None:
        scope_type = scope.get("type")
        if scope_type == "http":
            await self._handle_http(scope, receive, send)
            return
        if scope_type == "lifespan":
            await self._handle_lifespan(receive, send)
            return
        raise RuntimeError("ScopeApp only supports HTTP and lifespan scopes")

    async def _handle_http(
        self,
        scope: Mapping[str, Any],
        receive: Callable[[], Awaitable[Mapping[str, Any]]],
        send: Callable[[Mapping[str, Any]], Awaitable[None]],
    ) -> None:
        headers = {key.decode().lower(): value.decode() for key, value in scope.get("headers", [])}
        try:
            body = await self._read_body(receive)
        except HTTPError as exc:
            response = exception_to_response(exc)
        else:
            response = await self.dispatch(
                scope["method"],
                scope["path"],
                query_string=(scope.get("query_string") or b"").decode(),
                headers=headers,
                body=body,
            )
        await send(
            {
                "type": "http.response.start",
                "status": response.status,
                "headers": [(k.encode("latin-1"), v.encode("latin-1")) for k, v in response.headers],
            }
        )
        await send({"type": "http.response.body", "body": response.body})

    async def _read_body(self, receive: Callable[[], Awaitable[Mapping[str, Any]]]) -> bytes:
        limit = self.config.max_request_body_bytes
        buffer = bytearray()
        while True:
            message = await receive()
            message_type = message.get("type")
            if message_type == "http.disconnect":
                break
            if message_type != "http.request":
                continue
            buffer.extend(message.get("body", b""))
            if limit is not None and len(buffer) > limit:
                raise HTTPError(Status.PAYLOAD_TOO_LARGE, {"detail": "request_body_too_large", "limit": limit})
            if not message.get("more_body", False):
                break
        return bytes(buffer)

    async def _handle_lifespan(
        self,
        receive: Callable[[], Awaitable[Mapping[str, Any]]],
        send: Callable[[Mapping[str, Any]], Awaitable[None]],
    ) -> None:
        while True:
            message = await receive()
            message_type = message.get("type")
            if message_type == "lifespan.startup":
                try:
                    await self.startup()
                except Exception as exc:
                    logger.exception("startup hook failed")
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return
                await send({"type": "lifespan.startup.complete"})
            elif message_type == "lifespan.shutdown":
                await self.shutdown()
                await send({"type": "lifespan.shutdown.complete"})
                return
