"""Service runtime helpers: LRU and TTL caches, application signals, a coverage registry and documentation helpers."""

__version__ = "0.1.0"

__all__ = ["cache", "lru", "ttl", "appsignals", "coverage", "metrics", "collateral"]