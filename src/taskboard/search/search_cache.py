# src/taskboard/search/search_cache.py

from __future__ import annotations

import json
import logging
import time
from collections import OrderedDict
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from ..tasks.task_models import SearchedUser

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def cache_key(params: Mapping[str, str]) -> str:
    """Exact serialization of the request parameters (insertion order kept)."""
    return json.dumps(dict(params), separators=(",", ":"), ensure_ascii=False)


@dataclass(frozen=True, slots=True)
class CacheEntry:
    users: tuple[SearchedUser, ...]
    written_at: float


class SearchCache:
    """
    Bounded, time-expiring cache of filtered search results.

    - an entry is fresh until its age exceeds `ttl_seconds`,
    - expired entries are dropped when read,
    - at most `max_entries` keys; writing past the cap evicts the oldest-written key.
    """

    def __init__(self, *, ttl_seconds: float = 300.0, max_entries: int = 10, clock: Clock = time.monotonic) -> None:
        self._ttl = float(ttl_seconds)
        self._max = max(1, int(max_entries))
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, key: str) -> tuple[SearchedUser, ...] | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.written_at > self._ttl:
            logger.debug("Search cache expired: %s", key)
            del self._entries[key]
            return None
        return entry.users

    def put(self, key: str, users: tuple[SearchedUser, ...] | list[SearchedUser]) -> None:
        if key in self._entries:
            del self._entries[key]
        self._entries[key] = CacheEntry(users=tuple(users), written_at=self._clock())
        while len(self._entries) > self._max:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Search cache evicted: %s", evicted)

    def peek(self, key: str) -> tuple[SearchedUser, ...] | None:
        """Like get() but never drops anything; used for best-effort hints only."""
        entry = self._entries.get(key)
        if entry is None or self._clock() - entry.written_at > self._ttl:
            return None
        return entry.users

    def clear(self) -> None:
        self._entries.clear()

    def keys(self) -> list[str]:
        return list(self._entries)
