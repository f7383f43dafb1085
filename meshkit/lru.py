"""A cache with least-recently-used and time-based eviction."""

from __future__ import annotations

import threading
import time
import weakref
from collections import OrderedDict
from dataclasses import dataclass, replace
from typing import Any, Callable, Hashable

from meshkit.cache import ExpiringCache, Stats

_NS_PER_SECOND = 1_000_000_000


@dataclass(slots=True)
class _Entry:
    value: Any
    expiration: int  # nanoseconds since the epoch


def _seconds_to_ns(seconds: float) -> int:
    return round(seconds * _NS_PER_SECOND)


def _run_evicter(
    ref: Callable[[], "LRUCache | None"], interval: float, stop: threading.Event
) -> None:
    # Holds only a weak reference between rounds so an abandoned cache can be
    # collected, which in turn stops this loop.
    while not stop.wait(interval):
        cache = ref()
        if cache is None:
            return
        cache.evict_expired()
        del cache


class LRUCache(ExpiringCache):
    """A bounded cache evicting the least recently used entry when full.

    Entries also expire: a background thread evicts expired entries every
    ``eviction_interval`` seconds, so entries tend to survive about
    ``expiration + eviction_interval / 2``. An ``eviction_interval`` of zero or
    less disables the background thread. Expiration times are measured from a
    base time that is refreshed on every eviction pass.
    """

    def __init__(self, default_expiration: float, eviction_interval: float, max_entries: int) -> None:
        if max_entries < 1:
            raise ValueError(f"max_entries must be at least 1, got {max_entries}")
        self._lock = threading.Lock()
        self._entries: OrderedDict[Hashable, _Entry] = OrderedDict()
        self._max_entries = max_entries
        self._default_expiration = default_expiration
        self._stats = Stats()
        self._base_time_ns = time.time_ns()
        self._stop = threading.Event()
        self._evicter: threading.Thread | None = None
        if eviction_interval > 0:
            self._evicter = threading.Thread(
                target=_run_evicter,
                args=(weakref.ref(self), eviction_interval, self._stop),
                name="lru-evicter",
                daemon=True,
            )
            weakref.finalize(self, self._stop.set)
            self._evicter.start()

    def set(self, key: Hashable, value: Any) -> None:
        self.set_with_expiration(key, value, self._default_expiration)

    def set_with_expiration(self, key: Hashable, value: Any, expiration: float) -> None:
        entry = _Entry(value, self._base_time_ns + _seconds_to_ns(expiration))
        with self._lock:
            if key not in self._entries and len(self._entries) >= self._max_entries:
                # Reclaim the least recently used slot.
                self._entries.popitem(last=False)
            self._entries[key] = entry
            self._entries.move_to_end(key)
            self._stats.writes += 1

    def get(self, key: Hashable) -> Any:
        with self._lock:
            try:
                entry = self._entries[key]
            except KeyError:
                self._stats.misses += 1
                raise KeyError(key) from None
            self._entries.move_to_end(key)
            self._stats.hits += 1
            return entry.value

    def remove(self, key: Hashable) -> None:
        with self._lock:
            if self._entries.pop(key, None) is not None:
                self._stats.removals += 1

    def remove_all(self) -> None:
        with self._lock:
            self._stats.removals += len(self._entries)
            self._entries.clear()

    def stats(self) -> Stats:
        with self._lock:
            return replace(self._stats)

    def evict_expired(self, now: float | None = None) -> None:
        """Evict entries expired at ``now`` (epoch seconds, default: current time).

        ``now`` also becomes the base time for subsequent expirations.
        """
        now_ns = time.time_ns() if now is None else _seconds_to_ns(now)
        self._base_time_ns = now_ns
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.expiration <= now_ns]
            for key in expired:
                del self._entries[key]
            self._stats.evictions += len(expired)

    def close(self) -> None:
        """Stop the background evicter, if any."""
        self._stop.set()
        if self._evicter is not None and self._evicter is not threading.current_thread():
            self._evicter.join()

    def __enter__(self) -> "LRUCache":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()