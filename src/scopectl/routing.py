"""Host routing: path matching, mounts and per-route handler stacks."""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import partial
from typing import TYPE_CHECKING, Any, Iterable, Mapping, MutableMapping, Protocol, Sequence

import rure
from rure.regex import RegexObject

from .middleware import Handler, MiddlewareCallable, call_middleware, compose_middleware

if TYPE_CHECKING:
    from .requests import Request
    from .responses import Response


_PATH_PARAM_PATTERN = re.compile(r"{([a-zA-Z_][a-zA-Z0-9_]*)(?::([a-zA-Z_][a-zA-Z0-9_]*))?}")


class RouteStack:
    """Handler stages for a single route.

    Runs the fixed ``before`` stages, then the middleware currently held in the
    ``chain`` slot, then the endpoint. The slot is read once the ``before``
    stages have handed over, so a ``before`` stage may replace it for the
    request it is processing.
    """

    __slots__ = ("_before", "_chain", "_handler", "endpoint")

    def __init__(self, endpoint: Handler, *, before: Iterable[MiddlewareCallable] = ()) -> None:
        self.endpoint = endpoint
        self._before = tuple(before)
        self._chain: tuple[MiddlewareCallable, ...] = ()
        self._handler: Handler = endpoint

    @property
    def before(self) -> tuple[MiddlewareCallable, ...]:
        return self._before

    @property
    def chain(self) -> tuple[MiddlewareCallable, ...]:
        return self._chain

    def replace_chain(self, chain: Iterable[MiddlewareCallable]) -> None:
        chain = tuple(chain)
        if chain == self._chain:
            return
        self._chain = chain
        self._handler = compose_middleware(chain, self.endpoint)

    def layers(self) -> tuple[Any, ...]:
        return self._before + self.chain + (self.endpoint,)

    async def __call__(self, request: "Request") -> "Response":
        return await self._run(0, request)

    async def _run(self, index: int, request: "Request") -> "Response":
        if index < len(self._before):
            return await call_middleware(self._before[index], request, partial(self._run, index + 1))
        return await self._handler(request)


@dataclass(slots=True)
class RouteSpec:
    path: str
    methods: tuple[str, ...]
    name: str | None = None


@dataclass(slots=True)
class Route:
    spec: RouteSpec
    pattern: RegexObject
    param_names: tuple[str, ...]
    stack: RouteStack
    owner: Any = None

    @property
    def path(self) -> str:
        return self.spec.path


@dataclass(slots=True)
class RouteMatch:
    route: Route
    params: Mapping[str, str]
    prefix: str = ""


class Mountable(Protocol):
    def resolve(self, method: str, path: str) -> RouteMatch:  # pragma: no cover - protocol
        ...


@dataclass(slots=True, frozen=True)
class _Mount:
    prefix: str
    target: Mountable

    def strip(self, path: str) -> str | None:
        if self.prefix == "/":
            return path
        if path == self.prefix:
            return "/"
        if path.startswith(self.prefix + "/"):
            return path[len(self.prefix) :]
        return None


class Router:
    def __init__(self) -> None:
        self._routes: list[Route] = []
        self._routes_by_method: dict[str, list[Route]] = {}
        self._mounts: list[_Mount] = []

    @property
    def routes(self) -> tuple[Route, ...]:
        return tuple(self._routes)

    def add_route(
        self,
        path: str,
        *,
        methods: Sequence[str],
        endpoint: Handler,
        stages: Iterable[MiddlewareCallable] = (),
        name: str | None = None,
        owner: Any = None,
    ) -> Route:
        pattern, param_names = _compile_path(path)
        normalized_methods = tuple(dict.fromkeys(m.upper() for m in methods))
        route = Route(
            spec=RouteSpec(path=path, methods=normalized_methods, name=name),
            pattern=pattern,
            param_names=param_names,
            stack=RouteStack(endpoint, before=stages),
            owner=owner,
        )
        self._routes.append(route)
        for method in normalized_methods:
            self._routes_by_method.setdefault(method, []).append(route)
        return route

    def mount(self, prefix: str, target: Mountable) -> None:
        self._mounts.append(_Mount(prefix=normalize_prefix(prefix), target=target))

    def resolve(self, method: str, path: str) -> RouteMatch:
        return self.find(method, path)

    def find(self, method: str, path: str) -> RouteMatch:
        method = method.upper()
        match = self._find_local(method, path)
        if match is not None:
            return match
        for mount in self._mounts:
            remainder = mount.strip(path)
            if remainder is None:
                continue
            try:
                nested = mount.target.resolve(method, remainder)
            except LookupError:
                continue
            return RouteMatch(
                route=nested.route,
                params=nested.params,
                prefix=join_prefix(mount.prefix, nested.prefix),
            )
        raise LookupError(f"No route matches {method} {path}")

    def _find_local(self, method: str, path: str) -> RouteMatch | None:
        candidates = self._routes_by_method.get(method) or self._routes_by_method.get("*")
        if not candidates:
            return None
        for route in candidates:
            captures = route.pattern.match(path)
            if captures is None:
                continue
            params: MutableMapping[str, str] = {}
            for name in route.param_names:
                group = captures.group(name)
                if group is None:
                    continue
                params[name] = group
            return RouteMatch(route=route, params=params)
        return None


def normalize_prefix(prefix: str) -> str:
    stripped = prefix.strip().strip("/")
    return "/" + stripped if stripped else "/"


def join_prefix(outer: str, inner: str) -> str:
    if not inner or inner == "/":
        return outer
    if outer == "/":
        return inner
    return outer + inner


def _compile_path(path: str) -> tuple[RegexObject, tuple[str, ...]]:
    param_names: list[str] = []

    def replace(match: re.Match[str]) -> str:
        name = match.group(1)
        converter = match.group(2)
        param_names.append(name)
        if converter is None:
            return f"(?P<{name}>[^/]+)"
        if converter == "int":
            return f"(?P<{name}>[0-9]+)"
        if converter == "path":
            return f"(?P<{name}>.*)"
        raise ValueError(f"Unsupported path converter: {converter}")

    pattern = "^" + _PATH_PARAM_PATTERN.sub(replace, path) + "$"
    return rure.compile(pattern), tuple(param_names)
