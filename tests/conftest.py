from __future__ import annotations

from typing import Callable

import pytest

from scopectl.requests import Request
from scopectl.responses import Response


def make_recorder(events: list[str], label: str) -> Callable[..., object]:
    async def middleware(request: Request, handler) -> Response:
        events.append(label)
        return await handler(request)

    middleware.__name__ = f"record_{label}"
    return middleware


@pytest.fixture
def events() -> list[str]:
    return []


@pytest.fixture
def recorder(events: list[str]) -> Callable[[str], Callable[..., object]]:
    def factory(label: str) -> Callable[..., object]:
        return make_recorder(events, label)

    return factory
