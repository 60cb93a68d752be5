"""Sortable ``id57`` identifiers used to tag controllers and their middleware."""

from __future__ import annotations

import datetime as dt
import uuid
from typing import Callable

__all__ = [
    "ALPHABET",
    "base57_encode",
    "generate_id57",
]


# No look-alike characters; ordered by code point so fixed-width ids sort numerically.
ALPHABET = "23456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_BASE = len(ALPHABET)
_TIMESTAMP_WIDTH = 11
_RANDOM_WIDTH = 22
_EPOCH = dt.datetime(1970, 1, 1, tzinfo=dt.UTC)


def base57_encode(value: int, *, pad_to: int = 1) -> str:
    """Render ``value`` in base57, left-filled with the zero digit to ``pad_to`` characters."""

    if value < 0:
        raise ValueError("id57 only supports unsigned integers")
    digits: list[str] = []
    while True:
        value, remainder = divmod(value, _BASE)
        digits.append(ALPHABET[remainder])
        if not value:
            break
    return "".join(reversed(digits)).rjust(pad_to, ALPHABET[0])


def generate_id57(
    *,
    timestamp: dt.datetime | None = None,
    random_source: Callable[[], uuid.UUID] | None = None,
) -> str:
    """Return a controller id: microseconds since the epoch, then 128 random bits.

    Naive timestamps are taken as UTC.
    """

    moment = timestamp or dt.datetime.now(dt.UTC)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=dt.UTC)
    micros = (moment - _EPOCH) // dt.timedelta(microseconds=1)
    entropy = (random_source or uuid.uuid4)().int
    return base57_encode(micros, pad_to=_TIMESTAMP_WIDTH) + base57_encode(entropy, pad_to=_RANDOM_WIDTH)
