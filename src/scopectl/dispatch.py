"""Per-request stages bound to every controller route."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .exceptions import UnhandledActionError
from .middleware import Handler
from .registry import ActionHandler, RouteEntry
from .requests import Request
from .responses import Response, coerce_response
from .scope import derive_scope

if TYPE_CHECKING:
    from .controller import Controller

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ActionContext:
    """The action a request resolved to, as recorded on ``request.action``."""

    name: str
    groups: tuple[str, ...]
    handler: ActionHandler


class ScopeInterceptor:
    """First stage of every controller route.

    Resolves the action behind the matched route, fetches the middleware chain
    for its scope from the controller's cache and installs it in the route's
    chain slot before handing over.
    """

    __slots__ = ("_controller",)

    def __init__(self, controller: "Controller") -> None:
        self._controller = controller

    async def __call__(self, request: Request, handler: Handler) -> Response:
        controller = self._controller
        route = request.route
        if route is None:
            raise RuntimeError("ScopeInterceptor requires request.route to be set by the router")
        action = controller.action_for(request.method, route.path)
        if action is not None:
            request.action = ActionContext(name=action.name, groups=action.groups, handler=action.handler)
        scope = derive_scope(action, base_group=controller.config.base_group)
        chain = controller.chain_for_scope(route.path, scope)
        route.stack.replace_chain(middleware.handler for middleware in chain)
        logger.debug("spliced %d middleware into %s %s", len(chain), request.method, route.path)
        return await handler(request)


class ActionInvoker:
    """Terminal stage: look up the routed action and run its handler."""

    __slots__ = ("_controller", "_entry")

    def __init__(self, controller: "Controller", entry: RouteEntry) -> None:
        self._controller = controller
        self._entry = entry

    async def __call__(self, request: Request) -> Response:
        action = self._controller.actions.get(self._entry.action)
        if action is None:
            raise UnhandledActionError(self._entry.method, self._entry.action)
        request.controller = self._controller
        result = action.handler(request)
        if inspect.isawaitable(result):
            result = await result
        return coerce_response(result)
