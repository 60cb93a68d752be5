"""Request primitives."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping, MutableMapping, TypeVar
from urllib.parse import parse_qsl

import msgspec

from .serialization import json_decode

if TYPE_CHECKING:
    from .controller import Controller
    from .dispatch import ActionContext
    from .routing import Route

T = TypeVar("T")


class Request:
    """View of an incoming request as it travels through a route stack.

    The host fills in ``route`` after matching. The scope interceptor records
    the resolved ``action`` and the action invoker sets ``controller`` just
    before the action handler runs. ``state`` is free-form storage middleware
    can use to pass values down the chain.
    """

    __slots__ = (
        "_body",
        "_json_cache",
        "_query_params",
        "_raw_query",
        "action",
        "controller",
        "headers",
        "method",
        "path",
        "path_params",
        "route",
        "state",
    )

    def __init__(
        self,
        *,
        method: str,
        path: str,
        headers: Mapping[str, str] | None = None,
        path_params: Mapping[str, str] | None = None,
        query_string: str | None = None,
        body: bytes | None = None,
    ) -> None:
        self.method = method.upper()
        self.path = path
        self.headers = {k.lower(): v for k, v in (headers or {}).items()}
        self.path_params = dict(path_params or {})
        self._raw_query = query_string or ""
        self._body = body or b""
        self._json_cache: Any = msgspec.UNSET
        self._query_params: MutableMapping[str, list[str]] | None = None
        self.route: "Route | None" = None
        self.action: "ActionContext | None" = None
        self.controller: "Controller | None" = None
        self.state: dict[str, Any] = {}

    @staticmethod
    def _parse_query(raw: str) -> MutableMapping[str, list[str]]:
        parsed: MutableMapping[str, list[str]] = {}
        for key, value in parse_qsl(raw, keep_blank_values=True):
            parsed.setdefault(key, []).append(value)
        return parsed

    @property
    def query_params(self) -> MutableMapping[str, list[str]]:
        if self._query_params is None:
            self._query_params = self._parse_query(self._raw_query)
        return self._query_params

    def header(self, name: str, default: str | None = None) -> str | None:
        return self.headers.get(name.lower(), default)

    def json(self, model: type[T] | None = None) -> T | Any:
        """Decode the JSON body using :mod:`msgspec`."""

        if self._json_cache is msgspec.UNSET:
            if not self._body:
                self._json_cache = None
            else:
                self._json_cache = json_decode(self._body)
        if model is None:
            return self._json_cache
        return msgspec.convert(self._json_cache, type=model)

    def text(self) -> str:
        return self._body.decode()

    def body(self) -> bytes:
        return self._body
