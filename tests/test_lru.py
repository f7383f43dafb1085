import gc
import os
import threading
import time
import weakref
from dataclasses import replace

import pytest

from meshkit.cache import Stats
from meshkit.lru import LRUCache

GET, SET, REMOVE, REMOVE_ALL = range(4)

BASIC_CASES = [
    (GET, "X", "", False, Stats(misses=1)),
    (SET, "X", "12", False, Stats(misses=1, writes=1)),
    (GET, "X", "12", True, Stats(misses=1, writes=1, hits=1)),
    (GET, "X", "12", True, Stats(misses=1, writes=1, hits=2)),
    (GET, "Y", "", False, Stats(misses=2, writes=1, hits=2)),
    (SET, "X", "23", False, Stats(misses=2, writes=2, hits=2)),
    (GET, "X", "23", True, Stats(misses=2, writes=2, hits=3)),
    (SET, "Y", "34", False, Stats(misses=2, writes=3, hits=3)),
    (GET, "X", "23", True, Stats(misses=2, writes=3, hits=4)),
    (GET, "Y", "34", True, Stats(misses=2, writes=3, hits=5)),
    (REMOVE, "X", "", False, Stats(misses=2, writes=3, hits=5)),
    (GET, "X", "", False, Stats(misses=3, writes=3, hits=5)),
    (GET, "Y", "34", True, Stats(misses=3, writes=3, hits=6)),
    (REMOVE, "X", "", False, Stats(misses=3, writes=3, hits=6)),
    (REMOVE, "Y", "", False, Stats(misses=3, writes=3, hits=6)),
    (GET, "Y", "", False, Stats(misses=4, writes=3, hits=6)),
    (SET, "X", "45", False, Stats(misses=4, writes=4, hits=6)),
    (GET, "X", "45", True, Stats(misses=4, writes=4, hits=7)),
    (GET, "Y", "", False, Stats(misses=5, writes=4, hits=7)),
    (REMOVE, "Z", "", False, Stats(misses=5, writes=4, hits=7)),
    (SET, "A", "45", False, Stats(misses=5, writes=5, hits=7)),
    (SET, "B", "45", False, Stats(misses=5, writes=6, hits=7)),
    (REMOVE_ALL, "", "", False, Stats(misses=5, writes=6, hits=7)),
    (GET, "A", "45", False, Stats(misses=6, writes=6, hits=7)),
    (GET, "B", "45", False, Stats(misses=7, writes=6, hits=7)),
]


def _present(cache, key):
    try:
        cache.get(key)
    except KeyError:
        return False
    return True


def test_basic():
    with LRUCache(300, 0.001, 500) as cache:
        for index, (op, key, value, found, expected) in enumerate(BASIC_CASES):
            if op == GET:
                if found:
                    assert cache.get(key) == value, index
                else:
                    with pytest.raises(KeyError):
                        cache.get(key)
            elif op == SET:
                cache.set(key, value)
            elif op == REMOVE:
                cache.remove(key)
            else:
                cache.remove_all()
            assert replace(cache.stats(), removals=0) == expected, index


def test_concurrent():
    workers = os.cpu_count() or 2
    iterations = 2000
    errors = []

    with LRUCache(300, 60, 500) as cache:

        def work(worker):
            key = f"X{worker}.{worker}"
            for j in range(iterations):
                cache.set(key, j)
                try:
                    got = cache.get(key)
                except KeyError:
                    errors.append(f"missing {key}")
                else:
                    if got != j:
                        errors.append(f"{key}: {got} != {j}")
                cache.remove(key)

        threads = [threading.Thread(target=work, args=(n,)) for n in range(workers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        stats = cache.stats()

    assert errors == []
    assert stats.misses == 0
    assert stats.hits == workers * iterations
    assert stats.writes == workers * iterations


def test_expiration():
    cache = LRUCache(5, 0, 500)
    now = time.time()

    cache.set_with_expiration("EARLY", "123", 0.010)
    cache.set_with_expiration("LATER", "123", 0.020000123)

    cache.evict_expired(now)
    stats = cache.stats()
    assert cache.get("EARLY") == "123"
    assert cache.get("LATER") == "123"
    assert stats.evictions == 0

    cache.evict_expired(now + 0.015)
    stats = cache.stats()
    assert not _present(cache, "EARLY")
    assert cache.get("LATER") == "123"
    assert stats.evictions == 1

    cache.evict_expired(now + 0.025)
    stats = cache.stats()
    assert not _present(cache, "EARLY")
    assert not _present(cache, "LATER")
    assert stats.evictions == 2


def test_evict_expired_uses_current_time():
    cache = LRUCache(5, 0, 500)
    cache.set_with_expiration("A", "A", 0.001)
    assert cache.get("A") == "A"

    time.sleep(0.01)
    cache.evict_expired()

    with pytest.raises(KeyError):
        cache.get("A")


def test_background_evicter_removes_expired_entries():
    with LRUCache(5, 0.001, 500) as cache:
        cache.set_with_expiration("A", "A", 0.001)
        deadline = time.monotonic() + 5
        while time.monotonic() < deadline and _present(cache, "A"):
            time.sleep(0.01)
        with pytest.raises(KeyError):
            cache.get("A")
        assert cache.stats().evictions == 1


def test_evicter_stops_when_cache_is_collected():
    before = set(threading.enumerate())
    cache = LRUCache(5, 0.001, 500)
    started = [t for t in threading.enumerate() if t not in before]
    assert len(started) == 1

    cache_ref = weakref.ref(cache)
    del cache
    gc.collect()
    started[0].join(timeout=5)
    assert cache_ref() is None
    assert not started[0].is_alive()


def test_close_stops_evicter():
    with LRUCache(5, 0.001, 500) as cache:
        cache.set("k", "v")
    cache.set_with_expiration("short", "v", 0.001)
    time.sleep(0.05)
    assert cache.get("short") == "v"
    assert cache.stats().evictions == 0


def test_lru_behavior():
    with LRUCache(300, 0.001, 3) as lru:
        for key in ("1", "2", "3", "4"):
            lru.set(key, key)

        assert [_present(lru, k) for k in ("1", "2", "3", "4")] == [False, True, True, True]

        # make "2" the most recently used
        assert lru.get("2") == "2"

        lru.set("5", "5")

        assert [_present(lru, k) for k in ("1", "2", "3", "4", "5")] == [
            False,
            True,
            False,
            True,
            True,
        ]


def test_removals_are_counted_only_for_present_keys():
    cache = LRUCache(5, 0, 10)
    cache.set("A", 1)
    cache.set("B", 2)
    cache.remove("A")
    cache.remove("Z")
    assert cache.stats().removals == 1
    cache.remove_all()
    assert cache.stats().removals == 2


def test_none_value_is_a_hit():
    cache = LRUCache(5, 0, 10)
    cache.set("A", None)
    assert cache.get("A") is None
    assert cache.stats() == Stats(writes=1, hits=1)


def test_rejects_empty_capacity():
    with pytest.raises(ValueError):
        LRUCache(5, 0, 0)