"""Registries backing a controller: middleware entries, actions and routes."""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Collection, Iterable, Iterator, Sequence

from .config import DEFAULT_ANONYMOUS_PREFIX
from .middleware import MiddlewareCallable

if TYPE_CHECKING:
    from .requests import Request
    from .routing import Route

ActionHandler = Callable[["Request"], Awaitable[Any] | Any]


@dataclass(slots=True, frozen=True)
class MiddlewareEntry:
    """A middleware callable tagged with the groups it applies to."""

    handler: MiddlewareCallable
    scope: tuple[str, ...]
    controller_id: str
    anonymous: bool = False
    action: str | None = None

    def matches(self, groups: Collection[str]) -> bool:
        return any(group in groups for group in self.scope)


class MiddlewareRegistry:
    """Ordered middleware entries registered on one controller."""

    __slots__ = ("_entries",)

    def __init__(self) -> None:
        self._entries: list[MiddlewareEntry] = []

    def __iter__(self) -> Iterator[MiddlewareEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def add(
        self,
        handlers: Iterable[MiddlewareCallable],
        scope: Sequence[str],
        *,
        controller_id: str,
        anonymous: bool = False,
        action: str | None = None,
    ) -> tuple[MiddlewareEntry, ...]:
        frozen_scope = tuple(scope)
        if not frozen_scope:
            raise ValueError("Middleware scope cannot be empty")
        added = tuple(
            MiddlewareEntry(
                handler=handler,
                scope=frozen_scope,
                controller_id=controller_id,
                anonymous=anonymous,
                action=action,
            )
            for handler in handlers
        )
        self._entries.extend(added)
        return added

    def matching(self, groups: Collection[str]) -> list[MiddlewareEntry]:
        return [entry for entry in self._entries if entry.matches(groups)]

    def discard_anonymous(self, action: str) -> tuple[MiddlewareEntry, ...]:
        """Remove the inline middleware previously registered for ``action``."""

        kept: list[MiddlewareEntry] = []
        removed: list[MiddlewareEntry] = []
        for entry in self._entries:
            if entry.anonymous and entry.action == action:
                removed.append(entry)
            else:
                kept.append(entry)
        self._entries = kept
        return tuple(removed)


@dataclass(slots=True, frozen=True)
class Action:
    """A named handler and the groups it belongs to.

    ``groups`` holds only the group names the caller spelled out. ``layout``
    additionally carries the synthesized groups of inline middleware at the
    position they were declared in, and is what scope derivation uses.
    """

    name: str
    groups: tuple[str, ...]
    layout: tuple[str, ...]
    handler: ActionHandler


class ActionRegistry:
    __slots__ = ("_actions",)

    def __init__(self) -> None:
        self._actions: dict[str, Action] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._actions

    def __getitem__(self, name: str) -> Action:
        return self._actions[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._actions)

    def __len__(self) -> int:
        return len(self._actions)

    def get(self, name: str) -> Action | None:
        return self._actions.get(name)

    def set(self, action: Action) -> Action | None:
        previous = self._actions.get(action.name)
        self._actions[action.name] = action
        return previous


@dataclass(slots=True)
class RouteEntry:
    method: str
    path: str
    action: str
    controller_id: str
    route: "Route | None" = None


class RouteTable:
    """Declared routes, unique per method, path and owning controller."""

    __slots__ = ("_entries",)

    def __init__(self) -> None:
        self._entries: dict[tuple[str, str, str], RouteEntry] = {}

    def __iter__(self) -> Iterator[RouteEntry]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, entry: RouteEntry) -> None:
        key = (entry.method, entry.path, entry.controller_id)
        if key in self._entries:
            raise ValueError(f"Route {entry.method.upper()} {entry.path} is already declared")
        self._entries[key] = entry

    def find(self, method: str, path: str, controller_id: str) -> RouteEntry | None:
        return self._entries.get((method.lower(), path, controller_id))


class AnonymousNames:
    """Monotonic source of synthesized group and action names."""

    __slots__ = ("_counter", "prefix")

    def __init__(self, prefix: str = DEFAULT_ANONYMOUS_PREFIX) -> None:
        self.prefix = prefix
        self._counter = itertools.count(1)

    def next_anonymous_name(self) -> str:
        return f"{self.prefix}{next(self._counter)}"


_ANONYMOUS_NAMES: dict[str, AnonymousNames] = {}


def anonymous_names(prefix: str = DEFAULT_ANONYMOUS_PREFIX) -> AnonymousNames:
    """Return the process-wide name source for ``prefix``."""

    names = _ANONYMOUS_NAMES.get(prefix)
    if names is None:
        names = _ANONYMOUS_NAMES[prefix] = AnonymousNames(prefix)
    return names


def next_anonymous_name(prefix: str = DEFAULT_ANONYMOUS_PREFIX) -> str:
    return anonymous_names(prefix).next_anonymous_name()


__all__ = [
    "Action",
    "ActionHandler",
    "ActionRegistry",
    "AnonymousNames",
    "MiddlewareEntry",
    "MiddlewareRegistry",
    "RouteEntry",
    "RouteTable",
    "anonymous_names",
    "next_anonymous_name",
]
