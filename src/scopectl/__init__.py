"""Scoped middleware controllers for asynchronous HTTP routing."""

from .application import ScopeApp
from .cache import CacheStats, ChainCache, ChainKey
from .config import AppConfig, ControllerConfig
from .controller import Controller
from .dispatch import ActionContext
from .exceptions import HTTPError, NotFoundError, RegistrationError, ScopectlError, UnhandledActionError
from .registry import Action, MiddlewareEntry, next_anonymous_name
from .requests import Request
from .responses import JSONResponse, PlainTextResponse, Response
from .scope import GroupName, Handler, SubController
from .testing import TestClient

__all__ = [
    "Action",
    "ActionContext",
    "AppConfig",
    "CacheStats",
    "ChainCache",
    "ChainKey",
    "Controller",
    "ControllerConfig",
    "GroupName",
    "HTTPError",
    "Handler",
    "JSONResponse",
    "MiddlewareEntry",
    "NotFoundError",
    "PlainTextResponse",
    "RegistrationError",
    "Request",
    "Response",
    "ScopeApp",
    "ScopectlError",
    "SubController",
    "TestClient",
    "UnhandledActionError",
    "next_anonymous_name",
]
