"""Time-to-live memoization of query results.

Entries expire lazily: a stale entry is evicted by the ``get`` that finds it,
never by a background sweep.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from .constants import DEFAULT_CACHE_TTL
from .models import ChatMessage

_logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    data: T
    timestamp: float


class ResultCache(Generic[T]):
    """Key → payload mapping whose entries expire *ttl* seconds after ``set``."""

    def __init__(
        self,
        ttl: float = DEFAULT_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
        name: str = "cache",
        logger: logging.Logger | None = None,
    ):
        self.ttl = ttl
        self.clock = clock
        self.name = name
        self.logger = logger or _logger
        self._entries: dict[str, CacheEntry[T]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> T | None:
        """Return the live payload for *key*, or None if absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._is_expired(entry):
                del self._entries[key]
                self.logger.debug("%s: evicted stale entry %s", self.name, key)
                return None
            return entry.data

    def set(self, key: str, value: T) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(value, self.clock())
        self.logger.debug("%s: stored %s", self.name, key)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        self.logger.info("%s: cleared", self.name)

    def _is_expired(self, entry: CacheEntry[T]) -> bool:
        return self.clock() - entry.timestamp > self.ttl


def make_key(operation: str, *args: object) -> str:
    """Build a canonical cache key from an operation name and its arguments.

    Sets are sorted so that equal filters produce equal keys.
    """
    normalized = [sorted(arg) if isinstance(arg, (set, frozenset)) else arg for arg in args]
    return json.dumps([operation, *normalized], ensure_ascii=False, default=str)


class CacheService:
    """Two separate caches: message-result lists and saved file paths.

    Cache failures are logged and treated as misses so they never block the
    underlying query.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_CACHE_TTL,
        clock: Callable[[], float] = time.monotonic,
        logger: logging.Logger | None = None,
    ):
        self.logger = logger or _logger
        self.messages: ResultCache[list[ChatMessage]] = ResultCache(
            ttl, clock, name="message cache", logger=self.logger
        )
        self.files: ResultCache[str] = ResultCache(
            ttl, clock, name="file cache", logger=self.logger
        )

    def get_messages(self, key: str) -> list[ChatMessage] | None:
        return self._safe_get(self.messages, key)

    def set_messages(self, key: str, messages: list[ChatMessage]) -> None:
        self._safe_set(self.messages, key, messages)

    def get_file(self, key: str) -> str | None:
        return self._safe_get(self.files, key)

    def set_file(self, key: str, path: str) -> None:
        self._safe_set(self.files, key, path)

    def clear(self) -> None:
        self.messages.clear()
        self.files.clear()

    def _safe_get(self, cache: ResultCache, key: str):
        try:
            return cache.get(key)
        except Exception:
            self.logger.exception("Reading %s entry %s failed", cache.name, key)
            return None

    def _safe_set(self, cache: ResultCache, key: str, value) -> None:
        try:
            cache.set(key, value)
        except Exception:
            self.logger.exception("Updating %s entry %s failed", cache.name, key)
