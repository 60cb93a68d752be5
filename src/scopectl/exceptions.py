"""Framework exception types."""

from __future__ import annotations

from typing import Any

from .http import Status
from .serialization import json_encode


class ScopectlError(Exception):
    """Base error type."""


class RegistrationError(ScopectlError, ValueError):
    """Raised when a controller is configured with arguments it cannot interpret."""


class HTTPError(ScopectlError):
    """Structured HTTP error that is msgspec serializable."""

    def __init__(self, status: int, detail: Any) -> None:
        super().__init__(status, detail)
        self.status = status
        self.detail = detail

    def to_response_body(self) -> bytes:
        return json_encode({"error": {"status": int(self.status), "detail": self.detail}})


class NotFoundError(HTTPError):
    """No route matched the request."""

    def __init__(self, method: str, path: str) -> None:
        super().__init__(Status.NOT_FOUND, {"detail": "not_found", "method": method.upper(), "path": path})


class UnhandledActionError(HTTPError):
    """A route points at an action that is not defined on its controller."""

    def __init__(self, method: str, action: str) -> None:
        super().__init__(
            Status.INTERNAL_SERVER_ERROR,
            {"detail": "unhandled_action", "method": method.upper(), "action": action},
        )
        self.method = method.upper()
        self.action = action

    def __str__(self) -> str:
        return f"Unhandled action {self.action!r} for {self.method} request"
