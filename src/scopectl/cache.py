"""Memoized middleware chains keyed by route path and scope."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator

import msgspec

from .registry import MiddlewareEntry

logger = logging.getLogger(__name__)

Chain = tuple[MiddlewareEntry, ...]


@dataclass(slots=True, frozen=True)
class ChainKey:
    path: str
    scope: tuple[str, ...]


class CacheStats(msgspec.Struct, frozen=True):
    hits: int = 0
    misses: int = 0
    invalidations: int = 0
    size: int = 0


class ChainCache:
    """Chains computed per :class:`ChainKey`.

    An entry is dropped as soon as middleware is registered under any group
    that appears in its scope. When disabled every lookup recomputes.
    """

    __slots__ = ("_entries", "_hits", "_invalidations", "_misses", "enabled")

    def __init__(self, *, enabled: bool = True) -> None:
        self.enabled = enabled
        self._entries: dict[ChainKey, Chain] = {}
        self._hits = 0
        self._misses = 0
        self._invalidations = 0

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[ChainKey]:
        return iter(tuple(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: ChainKey) -> Chain | None:
        return self._entries.get(key)

    def get_or_compute(self, key: ChainKey, compute: Callable[[], Chain]) -> Chain:
        if self.enabled:
            chain = self._entries.get(key)
            if chain is not None:
                self._hits += 1
                return chain
        self._misses += 1
        chain = compute()
        logger.debug("computed chain of %d middleware for %s %s", len(chain), key.path, key.scope)
        if self.enabled:
            self._entries[key] = chain
        return chain

    def invalidate(self, groups: Iterable[str]) -> int:
        """Drop every entry whose scope shares a group with ``groups``."""

        targets = set(groups)
        stale = [key for key in self._entries if not targets.isdisjoint(key.scope)]
        for key in stale:
            del self._entries[key]
        if stale:
            self._invalidations += len(stale)
            logger.debug("invalidated %d cached chains for groups %s", len(stale), sorted(targets))
        return len(stale)

    def clear(self) -> None:
        self._invalidations += len(self._entries)
        self._entries.clear()

    @property
    def stats(self) -> CacheStats:
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            invalidations=self._invalidations,
            size=len(self._entries),
        )
