"""HTTP status codes and method names."""

from __future__ import annotations

from enum import IntEnum


class Status(IntEnum):
    """Enumeration of the HTTP status codes used within the framework."""

    OK = 200
    CREATED = 201
    NO_CONTENT = 204
    BAD_REQUEST = 400
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    PAYLOAD_TOO_LARGE = 413
    INTERNAL_SERVER_ERROR = 500


HTTP_METHODS: tuple[str, ...] = (
    "get",
    "post",
    "put",
    "patch",
    "delete",
    "head",
    "options",
    "trace",
    "connect",
)


def canonical_method(method: str) -> str:
    """Return ``method`` lower-cased, rejecting unknown verbs."""

    normalized = method.strip().lower()
    if normalized not in HTTP_METHODS:
        raise ValueError(f"Unsupported HTTP method: {method!r}")
    return normalized


__all__ = ["HTTP_METHODS", "Status", "canonical_method"]
