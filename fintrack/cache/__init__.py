"""Result cache package."""

from fintrack.cache.store import (
    CacheInterface,
    TTLCache,
    cache_key,
    get_json,
    put_json,
)

__all__ = ["CacheInterface", "TTLCache", "cache_key", "get_json", "put_json"]
