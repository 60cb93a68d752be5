"""Middleware chaining primitives."""

from __future__ import annotations

import inspect
from typing import Awaitable, Callable, Iterable, Protocol

from .requests import Request
from .responses import Response

Handler = Callable[[Request], Awaitable[Response]]


class Middleware(Protocol):
    async def __call__(self, request: Request, handler: Handler) -> Response:  # pragma: no cover - protocol
        ...


MiddlewareCallable = Callable[[Request, Handler], Awaitable[Response] | Response]

_PipelineKey = tuple[MiddlewareCallable, ...]
_PIPELINE_CACHE: dict[_PipelineKey, "_MiddlewarePipeline"] = {}


def apply_middleware(middlewares: Iterable[MiddlewareCallable], endpoint: Handler) -> Handler:
    """Compose middleware into a single handler, sharing pipelines for equal stacks.

    Only use this for stacks drawn from a small fixed set, such as app-level
    middleware. Use :func:`compose_middleware` for stacks that change.
    """

    normalized = _normalize_middlewares(middlewares)
    if not normalized:
        return endpoint
    pipeline = _PIPELINE_CACHE.get(normalized)
    if pipeline is None:
        pipeline = _MiddlewarePipeline(normalized)
        _PIPELINE_CACHE[normalized] = pipeline
    return pipeline.bind(endpoint)


def compose_middleware(middlewares: Iterable[MiddlewareCallable], endpoint: Handler) -> Handler:
    """Compose middleware into a single handler owned by the caller."""

    normalized = _normalize_middlewares(middlewares)
    if not normalized:
        return endpoint
    return _MiddlewarePipeline(normalized).bind(endpoint)


async def call_middleware(middleware: MiddlewareCallable, request: Request, handler: Handler) -> Response:
    """Invoke ``middleware`` and await its result when it is a coroutine."""

    result = middleware(request, handler)
    if inspect.isawaitable(result):
        result = await result
    if not isinstance(result, Response):
        raise TypeError(f"Middleware {middleware!r} returned {type(result).__name__}, expected Response")
    return result


def _normalize_middlewares(middlewares: Iterable[MiddlewareCallable]) -> _PipelineKey:
    if isinstance(middlewares, tuple):
        return middlewares
    return tuple(middlewares)


class _MiddlewarePipeline:
    __slots__ = ("_middlewares",)

    def __init__(self, middlewares: _PipelineKey) -> None:
        self._middlewares = middlewares

    def bind(self, endpoint: Handler) -> Handler:
        return _BoundPipeline(self, endpoint, 0)

    async def _invoke(self, index: int, request: Request, endpoint: Handler) -> Response:
        if index >= len(self._middlewares):
            return await endpoint(request)
        middleware = self._middlewares[index]
        next_handler = _BoundPipeline(self, endpoint, index + 1)
        return await call_middleware(middleware, request, next_handler)


class _BoundPipeline:
    __slots__ = ("_endpoint", "_index", "_pipeline")

    def __init__(self, pipeline: _MiddlewarePipeline, endpoint: Handler, index: int) -> None:
        self._pipeline = pipeline
        self._endpoint = endpoint
        self._index = index

    async def __call__(self, request: Request) -> Response:
        return await self._pipeline._invoke(self._index, request, self._endpoint)
