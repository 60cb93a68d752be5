"""Application configuration objects."""

from __future__ import annotations

from msgspec import Struct

DEFAULT_BASE_GROUP = "all"
DEFAULT_ANONYMOUS_PREFIX = "anonymous-middleware-group-"


class ControllerConfig(Struct, frozen=True):
    """Settings shared by every :class:`~scopectl.controller.Controller` built from it."""

    base_group: str = DEFAULT_BASE_GROUP
    anonymous_prefix: str = DEFAULT_ANONYMOUS_PREFIX
    cache_enabled: bool = True

    def __post_init__(self) -> None:
        if not self.base_group:
            raise ValueError("base_group cannot be empty")
        if not self.anonymous_prefix:
            raise ValueError("anonymous_prefix cannot be empty")


class AppConfig(Struct, frozen=True):
    """Typed configuration for a :class:`~scopectl.application.ScopeApp` instance."""

    controller: ControllerConfig = ControllerConfig()
    max_request_body_bytes: int | None = 1_048_576
