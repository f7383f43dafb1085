# meshkit

Small building blocks for long-running services:

- **`meshkit.cache`**: `Stats` and the abstract `Cache` / `ExpiringCache`
  interfaces that the caches share.
- **`meshkit.lru`**: `LRUCache`, a thread-safe cache with a fixed number of
  entries. When it is full, it displaces the least recently used entry. Entries
  also expire after a set time.
- **`meshkit.ttl`**: `TTLCache`, a thread-safe cache with no size limit. It evicts
  entries purely by age and can call an optional eviction callback.
- **`meshkit.appsignals`**: sends "reload"-style notifications to registered
  listeners. A notification can come from `SIGUSR1`, a direct call or a file change.
- **`meshkit.coverage`**: a registry of live coverage sources. It can take a
  snapshot of them, clear them and write them out as a cover profile.
- **`meshkit.metrics`** and **`meshkit.collateral`**: helpers for documentation.
  They list exported metrics and render HTML fragments.

## Installation

Install the `meshkit` distribution with pip. To run the test suite, install it
with the `test` extra and run pytest.

## Caches

Durations are given in seconds.

```python
from meshkit.lru import LRUCache

with LRUCache(default_expiration=5.0, eviction_interval=5.0, max_entries=500) as cache:
    cache.set("foo", "bar")
    print(cache.get("foo"))      # bar
    try:
        cache.get("missing")
    except KeyError:
        print("not cached")
    print(cache.stats())         # Stats(writes=1, hits=1, misses=1, evictions=0, removals=0)
```

How the caches behave:

- `get` returns the stored value. If the key is absent, it raises `KeyError`.
- `remove` ignores keys that are absent.
- `remove_all` empties the cache.
- `stats()` returns a copy of the counters.
- If `max_entries` is below 1, `LRUCache` raises `ValueError`.

Background eviction:

- An `eviction_interval` above zero starts a daemon thread. Every interval, it
  calls `evict_expired()`.
- `close()` stops that thread. Leaving the `with` block does the same.
- With an interval of zero or less, there is no thread, and you call
  `evict_expired()` yourself.
- `evict_expired(now)` takes an optional time in epoch seconds. That time also
  becomes the base time for later expirations.

`TTLCache` works the same way, with these differences:

- It has no size limit.
- `remove` counts a removal even when the key was absent.
- An optional `callback(key, value)` is called for each evicted entry. No lock is
  held when it is called.

```python
from meshkit.ttl import TTLCache

cache = TTLCache(60.0, 0, lambda key, value: print("evicted", key))
cache.set_with_expiration("session", "data", 0.5)
cache.evict_expired()
```

## Application signals

```python
import queue
import signal
import threading

from meshkit.appsignals import file_trigger, notify, watch

events = queue.Queue(maxsize=5)
watch(events)                       # also installs a SIGUSR1 handler
notify("manual", signal.SIGHUP)     # events receives Signal(source="manual", signal=SIGHUP)

shutdown = threading.Event()
file_trigger("/tmp/reload-marker", signal.SIGHUP, shutdown)
# ... each change to the file sends Signal(source="/tmp/reload-marker", ...)
shutdown.set()                      # stop watching
```

Listeners:

- A listener is any object with a `put_nowait` method, for example a
  `queue.Queue`.
- If a listener raises `queue.Full`, it is skipped and a warning is logged.

The `SIGUSR1` handler:

- It is installed on the first call to `watch`, but only on platforms that have
  `SIGUSR1`.
- That first call must be made from the main thread.

`file_trigger`:

- It watches a file or a directory.
- If the path does not exist, it raises `FileNotFoundError`.
- Watching stops once the `shutdown` event is set.

## Coverage registry

Each coverage source registers four callables:

- one that returns its position triples,
- one that returns its statement counts,
- one that returns its execution counts,
- one that resets its execution counts.

```python
from meshkit.coverage import get_registry

registry = get_registry()
registry.register(length, "pkg/file.go", read_pos, read_stmt, read_count, clear_count)
registry.snapshot()
print(registry.get_coverage().profile_text())
```

Registering a name twice raises `ValueError`.

`clear()` resets the counts of the sources. The state that was captured stays as
it is until the next `snapshot()`.

The profile text starts with `mode: atomic`. It then has one line per block,
`name:line0.col0,line1.col1 statements count`. `Coverage.write_profile(stream)`
writes the same text to any text stream.

## Documentation helpers

`meshkit.metrics`:

- `MetricsRegistry.export_view(name, aggregation, description)` records a metric
  under its Prometheus-style name. `prom_name("/a/b.c-d")` gives `"a_b_cd"`.
- `exported_metrics()` returns `Exported` records sorted by name.

`meshkit.collateral`:

- `dereference_map` resolves alias chains.
- `build_nested_map` expands dotted keys into nested dictionaries.
- `normalize_id` and `unquote_usage` format flag and command names.
- `text_html`, `config_file_html` and `metrics_html` render HTML fragments.
- `Predicates` holds optional filters for environment variables and metrics.

## What this package does not do

- It has no command-line program.
- It does not generate man pages, Markdown trees, YAML trees or shell completion
  scripts.
- It does not serve coverage data over HTTP.
- It does not collect metrics from a metrics library by itself. You feed
  `MetricsRegistry` through `export_view`.