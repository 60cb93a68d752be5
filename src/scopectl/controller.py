"""Controllers: actions, scoped middleware and the routes that bind them."""

from __future__ import annotations

import logging
import weakref
from typing import Any, Iterable, Iterator, Sequence, TypeVar

from .cache import Chain, ChainCache, ChainKey
from .config import ControllerConfig
from .dispatch import ActionInvoker, ScopeInterceptor
from .exceptions import RegistrationError
from .http import canonical_method
from .id57 import generate_id57
from .middleware import MiddlewareCallable
from .registry import (
    Action,
    ActionHandler,
    ActionRegistry,
    MiddlewareEntry,
    MiddlewareRegistry,
    RouteEntry,
    RouteTable,
    anonymous_names,
)
from .routing import Route, RouteMatch, Router
from .scope import GroupName, Handler, SubController, classify_all, derive_scope, resolve_chain

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=ActionHandler)


class Controller:
    """A composable routing unit.

    Actions are named handlers that belong to groups. Middleware is registered
    against groups, never against routes; a request receives every middleware
    whose groups intersect the scope of the action it routes to, including
    middleware registered on the controllers this one is mounted under::

        api = Controller()
        api.use(log_request)
        api.use("auth", require_user)
        api.define("show_user", ["auth"], show_user)
        api.get("/users/{user_id}", "show_user")
    """

    def __init__(self, *, name: str | None = None, config: ControllerConfig | None = None) -> None:
        self.config = config or ControllerConfig()
        self.id = generate_id57()
        self.name = name or self.id
        self.middlewares = MiddlewareRegistry()
        self.actions = ActionRegistry()
        self.routes = RouteTable()
        self.cache = ChainCache(enabled=self.config.cache_enabled)
        self.router = Router()
        self.children: list[Controller] = []
        self._parent: weakref.ReferenceType[Controller] | None = None
        self._names = anonymous_names(self.config.anonymous_prefix)
        self._interceptor = ScopeInterceptor(self)

    def __repr__(self) -> str:
        return f"<Controller {self.name}>"

    # ------------------------------------------------------------------ tree
    @property
    def parent(self) -> "Controller | None":
        if self._parent is None:
            return None
        return self._parent()

    def lineage(self) -> list["Controller"]:
        """Return the controllers from the root ancestor down to ``self``."""

        chain: list[Controller] = []
        node: Controller | None = self
        while node is not None:
            chain.append(node)
            node = node.parent
        chain.reverse()
        return chain

    def subtree(self) -> Iterator["Controller"]:
        yield self
        for child in self.children:
            yield from child.subtree()

    def resolve(self, method: str, path: str) -> RouteMatch:
        return self.router.find(method, path)

    # ------------------------------------------------------------------ middleware
    def use(self, *args: Any) -> "Controller":
        """Register middleware under the given groups, or mount a sub-controller.

        Group names and callables may be mixed in any order; every callable is
        registered under all of the group names. Without group names the
        middleware belongs to the base group and runs for every action.
        """

        tokens = classify_all(args)
        if any(isinstance(token, SubController) for token in tokens):
            return self._mount_tokens(tokens)
        groups = tuple(token.value for token in tokens if isinstance(token, GroupName))
        handlers = [token.func for token in tokens if isinstance(token, Handler)]
        if not handlers:
            raise RegistrationError(f"use() on {self!r} received group names {groups!r} but no middleware")
        self._register(handlers, groups or (self.config.base_group,))
        return self

    middleware = use

    def _register(
        self,
        handlers: Sequence[MiddlewareCallable],
        scope: Sequence[str],
        *,
        anonymous: bool = False,
        action: str | None = None,
    ) -> tuple[MiddlewareEntry, ...]:
        added = self.middlewares.add(
            handlers,
            scope,
            controller_id=self.id,
            anonymous=anonymous,
            action=action,
        )
        logger.debug("registered %d middleware on %r for groups %s", len(added), self, tuple(scope))
        self._invalidate(scope)
        return added

    def _invalidate(self, groups: Iterable[str]) -> None:
        targets = frozenset(groups)
        for controller in self.subtree():
            controller.cache.invalidate(targets)

    # ------------------------------------------------------------------ mounting
    def mount(self, prefix: "str | Controller", child: "Controller | None" = None) -> "Controller":
        """Mount ``child`` under ``prefix`` (``/`` when omitted)."""

        if child is None:
            if not isinstance(prefix, Controller):
                raise RegistrationError("mount() requires a controller")
            child, prefix = prefix, "/"
        if not isinstance(child, Controller):
            raise RegistrationError(f"{child!r} is not a controller")
        if not isinstance(prefix, str) or not prefix.startswith("/"):
            raise RegistrationError(f"Mount prefix must be a path starting with '/', got {prefix!r}")
        if child in self.lineage():
            raise RegistrationError(f"Mounting {child!r} under {self!r} would create a cycle")
        if child.parent is not None:
            raise RegistrationError(f"{child!r} is already mounted under {child.parent!r}")
        child._parent = weakref.ref(self)
        self.children.append(child)
        self.router.mount(prefix, child)
        for descendant in child.subtree():
            descendant.cache.clear()
        logger.debug("mounted %r under %r at %s", child, self, prefix)
        return self

    def _mount_tokens(self, tokens: list[Any]) -> "Controller":
        if len(tokens) == 1 and isinstance(tokens[0], SubController):
            return self.mount(tokens[0].controller)
        if len(tokens) == 2 and isinstance(tokens[0], GroupName) and isinstance(tokens[1], SubController):
            return self.mount(tokens[0].value, tokens[1].controller)
        raise RegistrationError("A sub-controller must be passed alone or after a single mount path")

    # ------------------------------------------------------------------ actions
    def define(
        self,
        name: str,
        groups: "str | Sequence[str | MiddlewareCallable] | ActionHandler | None" = None,
        handler: ActionHandler | None = None,
    ) -> Any:
        """Register or replace the action ``name``.

        ``groups`` may contain inline middleware callables next to group names.
        Each one is registered under a synthesized group placed where the
        callable appears, so it runs after the middleware of the groups
        declared before it. Redefining an action drops the inline middleware
        of the previous definition.

        Without a handler this returns a decorator.
        """

        if handler is None and callable(groups):
            groups, handler = None, groups
        if handler is None:

            def decorator(func: F) -> F:
                self._define(name, groups, func)
                return func

            return decorator
        self._define(name, groups, handler)
        return self

    def _define(self, name: str, groups: Any, handler: ActionHandler) -> Action:
        if not isinstance(name, str) or not name:
            raise RegistrationError(f"Action names must be non-empty strings, got {name!r}")
        if not callable(handler):
            raise RegistrationError(f"Handler for action {name!r} is not callable")
        items = (groups,) if isinstance(groups, str) else tuple(groups or ())
        tokens = classify_all(items)
        if any(isinstance(token, SubController) for token in tokens):
            raise RegistrationError(f"A controller cannot be a group of action {name!r}")
        stale: set[str] = set()
        if name in self.actions:
            removed = self.middlewares.discard_anonymous(name)
            stale.add(name)
            stale.update(group for entry in removed for group in entry.scope)
        named: list[str] = []
        layout: list[str] = []
        for token in tokens:
            if isinstance(token, GroupName):
                named.append(token.value)
                layout.append(token.value)
            elif isinstance(token, Handler):
                group = self._names.next_anonymous_name()
                layout.append(group)
                self._register([token.func], (group,), anonymous=True, action=name)
        action = Action(name=name, groups=tuple(named), layout=tuple(layout), handler=handler)
        self.actions.set(action)
        if stale:
            self._invalidate(stale)
        logger.debug("defined action %r on %r with groups %s", name, self, action.layout)
        return action

    # ------------------------------------------------------------------ routes
    def route(self, method: str, path: str, action: str) -> "Controller":
        """Bind ``method`` and ``path`` to the action named ``action``.

        The action does not need to exist yet; it is looked up per request.
        """

        verb = _route_method(method, path)
        existing = self.routes.find(verb, path, self.id)
        if existing is not None:
            existing.action = action
            if existing.route is not None:
                existing.route.spec.name = action
            return self
        entry = RouteEntry(method=verb, path=path, action=action, controller_id=self.id)
        entry.route = self.router.add_route(
            path,
            methods=(verb,),
            endpoint=ActionInvoker(self, entry),
            stages=(self._interceptor,),
            name=action,
            owner=self,
        )
        self.routes.add(entry)
        logger.debug("routed %s %s to %r on %r", verb.upper(), path, action, self)
        return self

    def get(self, path: str, action: str) -> "Controller":
        return self.route("get", path, action)

    def post(self, path: str, action: str) -> "Controller":
        return self.route("post", path, action)

    def put(self, path: str, action: str) -> "Controller":
        return self.route("put", path, action)

    def patch(self, path: str, action: str) -> "Controller":
        return self.route("patch", path, action)

    def delete(self, path: str, action: str) -> "Controller":
        return self.route("delete", path, action)

    def head(self, path: str, action: str) -> "Controller":
        return self.route("head", path, action)

    def options(self, path: str, action: str) -> "Controller":
        return self.route("options", path, action)

    def trace(self, path: str, action: str) -> "Controller":
        return self.route("trace", path, action)

    def connect(self, path: str, action: str) -> "Controller":
        return self.route("connect", path, action)

    def direct(self, method: str, path: str, *items: Any) -> "Controller":
        """Route ``path`` straight to a handler, with optional groups and middleware.

        The last item is the handler. Earlier items are group names or inline
        middleware; each inline middleware gets a fresh group of its own.
        Nothing is registered unless the whole call is valid.
        """

        _route_method(method, path)
        if not items or not callable(items[-1]) or isinstance(items[-1], Controller):
            raise RegistrationError("direct() requires a handler as its last argument")
        *declared, handler = items
        name = self._names.next_anonymous_name()
        self._define(name, declared, handler)
        return self.route(method, path, name)

    # ------------------------------------------------------------------ resolution
    def action_for(self, method: str, path: str) -> Action | None:
        """Return the action routed from ``method`` and the declared ``path`` on this controller."""

        entry = self.routes.find(method, path, self.id)
        if entry is None:
            return None
        return self.actions.get(entry.action)

    def chain_for_scope(self, path: str, scope: tuple[str, ...]) -> Chain:
        return self.cache.get_or_compute(
            ChainKey(path=path, scope=scope),
            lambda: resolve_chain((controller.middlewares for controller in self.lineage()), scope),
        )

    def chain_for_route(self, method: str, route: Route) -> Chain:
        action = self.action_for(method, route.path)
        return self.chain_for_scope(route.path, derive_scope(action, base_group=self.config.base_group))

    def chain_for(self, method: str, path: str) -> tuple[MiddlewareCallable, ...]:
        """Return the middleware a ``method`` request to the concrete ``path`` would run."""

        match = self.resolve(method, path)
        owner = match.route.owner
        if not isinstance(owner, Controller):
            raise LookupError(f"{method.upper()} {path} is not served by a controller")
        return tuple(entry.handler for entry in owner.chain_for_route(method, match.route))


def _route_method(method: str, path: Any) -> str:
    try:
        verb = canonical_method(method)
    except ValueError as exc:
        raise RegistrationError(str(exc)) from exc
    if not isinstance(path, str) or not path.startswith("/"):
        raise RegistrationError(f"Route paths must start with '/', got {path!r}")
    return verb


__all__ = ["Controller"]
