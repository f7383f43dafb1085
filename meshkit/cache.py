"""Common interfaces and usage statistics for in-memory caches."""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Any, Hashable


@dataclass
class Stats:
    """Approximate usage statistics of a single cache."""

    writes: int = 0
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    removals: int = 0


class Cache(abc.ABC):
    """A thread-safe in-memory cache.

    Different implementations apply different eviction policies that decide
    when entries are removed automatically.
    """

    @abc.abstractmethod
    def set(self, key: Hashable, value: Any) -> None:
        """Insert an entry, replacing any entry with the same key."""

    @abc.abstractmethod
    def get(self, key: Hashable) -> Any:
        """Return the value stored for ``key``; raise KeyError if it is absent."""

    @abc.abstractmethod
    def remove(self, key: Hashable) -> None:
        """Delete ``key`` from the cache; absent keys are ignored."""

    @abc.abstractmethod
    def remove_all(self) -> None:
        """Delete every entry from the cache."""

    @abc.abstractmethod
    def stats(self) -> Stats:
        """Return a snapshot of the cache's usage statistics."""


class ExpiringCache(Cache):
    """A cache whose entries are evicted once their expiration time passes.

    Durations are expressed in seconds.
    """

    @abc.abstractmethod
    def set_with_expiration(self, key: Hashable, value: Any, expiration: float) -> None:
        """Insert an entry that expires ``expiration`` seconds from the cache's base time."""

    @abc.abstractmethod
    def evict_expired(self) -> None:
        """Synchronously evict every expired entry."""