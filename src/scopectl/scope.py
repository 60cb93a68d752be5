"""Scope tokens, scope derivation and middleware chain resolution.

A scope is the ordered tuple of group names that applies to one dispatch::

    (base_group, *action.layout, action.name)

Earlier groups have lower priority. Resolving a chain collects every
middleware entry whose own scope shares a group with the request scope,
walking controllers from the root ancestor down, then stable-sorts the
entries by the position of their first matching group. The result runs
global middleware first and action-specific middleware last, with ancestors
ahead of descendants and registration order breaking the remaining ties.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Sequence

from .cache import Chain
from .config import DEFAULT_BASE_GROUP
from .exceptions import RegistrationError
from .middleware import MiddlewareCallable
from .registry import Action, MiddlewareEntry, MiddlewareRegistry

if TYPE_CHECKING:
    from .controller import Controller

Scope = tuple[str, ...]


@dataclass(slots=True, frozen=True)
class GroupName:
    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str) or not self.value.strip():
            raise RegistrationError(f"Group names must be non-empty strings, got {self.value!r}")


@dataclass(slots=True, frozen=True)
class Handler:
    func: MiddlewareCallable

    def __post_init__(self) -> None:
        if not callable(self.func):
            raise RegistrationError(f"{self.func!r} is not callable")


@dataclass(slots=True, frozen=True)
class SubController:
    controller: "Controller"


ScopeToken = GroupName | Handler | SubController


def classify(value: Any) -> ScopeToken:
    """Wrap a raw registration argument in its token type."""

    from .controller import Controller

    if isinstance(value, (GroupName, Handler, SubController)):
        return value
    if isinstance(value, str):
        return GroupName(value)
    if isinstance(value, Controller):
        return SubController(value)
    if callable(value):
        return Handler(value)
    raise RegistrationError(
        f"Cannot interpret {value!r}: expected a group name, a middleware callable or a controller"
    )


def classify_all(values: Iterable[Any]) -> list[ScopeToken]:
    """Classify ``values``, expanding one level of nested lists and tuples."""

    tokens: list[ScopeToken] = []
    for value in values:
        if isinstance(value, (list, tuple)):
            tokens.extend(classify(item) for item in value)
        else:
            tokens.append(classify(value))
    return tokens


def derive_scope(action: Action | None, *, base_group: str = DEFAULT_BASE_GROUP) -> Scope:
    if action is None:
        return (base_group,)
    return (base_group, *action.layout, action.name)


def scope_positions(scope: Sequence[str]) -> Mapping[str, int]:
    positions: dict[str, int] = {}
    for index, group in enumerate(scope):
        positions.setdefault(group, index)
    return positions


def resolve_chain(lineage: Iterable[MiddlewareRegistry], scope: Sequence[str]) -> Chain:
    """Collect and order the middleware applicable to ``scope``.

    ``lineage`` lists the registries of the controller chain, root first.
    """

    positions = scope_positions(scope)
    candidates = [entry for registry in lineage for entry in registry.matching(positions)]
    return tuple(sorted(candidates, key=lambda entry: _rank(entry, positions)))


def _rank(entry: MiddlewareEntry, positions: Mapping[str, int]) -> int:
    for group in entry.scope:
        index = positions.get(group)
        if index is not None:
            return index
    raise ValueError(f"Middleware {entry.handler!r} does not match the scope")


__all__ = [
    "Chain",
    "GroupName",
    "Handler",
    "Scope",
    "ScopeToken",
    "SubController",
    "classify",
    "classify_all",
    "derive_scope",
    "resolve_chain",
    "scope_positions",
]
