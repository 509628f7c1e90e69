"""
Result Cache

DESIGN DECISION: The cache is pure memoization.
- Keys are built from (operation, tenant, filter spec)
- Values are JSON strings, so any backend that stores text will do
- Writes are best-effort: oversized payloads are dropped, errors are logged
- A payload that fails to parse is a miss, never an error

Mutations do NOT purge entries; a listing can be up to one TTL stale
after a write.
"""

import hashlib
import json
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

import structlog
from pydantic import BaseModel


logger = structlog.get_logger(__name__)


class CacheInterface(ABC):
    """Text key/value store with per-entry TTL."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored payload, or None when missing or expired."""
        pass

    @abstractmethod
    def put(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a payload. Must not raise for oversized values."""
        pass


class TTLCache(CacheInterface):
    """
    In-process TTL cache.

    Expired entries are dropped lazily on read, and swept on write once
    the store grows past max_entries.
    """

    def __init__(
        self,
        max_payload_bytes: int = 100_000,
        max_entries: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._entries: dict[str, tuple[float, str]] = {}
        self._max_payload_bytes = max_payload_bytes
        self._max_entries = max_entries
        self._clock = clock
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def put(self, key: str, value: str, ttl_seconds: int) -> None:
        size = len(value.encode("utf-8"))
        if size > self._max_payload_bytes:
            logger.debug("cache_put_skipped", key=key, size=size)
            return

        with self._lock:
            now = self._clock()
            if len(self._entries) >= self._max_entries:
                self._sweep(now)
            self._entries[key] = (now + ttl_seconds, value)

    def _sweep(self, now: float) -> None:
        expired = [key for key, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        # still full: evict oldest insertions
        while len(self._entries) >= self._max_entries:
            del self._entries[next(iter(self._entries))]

    def __len__(self) -> int:
        return len(self._entries)


def cache_key(operation: str, tenant_ref: str, spec: Optional[BaseModel] = None) -> str:
    """
    Build a cache key.

    The tenant and the canonical JSON of the spec are hashed so the key has
    a bounded length whatever the filter contents.
    """
    payload = spec.model_dump(mode="json") if spec is not None else {}
    canonical = json.dumps(payload, sort_keys=True, ensure_ascii=False)
    digest = hashlib.sha256(f"{tenant_ref}\n{canonical}".encode("utf-8")).hexdigest()
    return f"{operation}:{digest}"


def get_json(cache: Optional[CacheInterface], key: str) -> Optional[Any]:
    """Read and parse a cached payload; any failure is a miss."""
    if cache is None:
        return None
    try:
        raw = cache.get(key)
        if raw is None:
            return None
        return json.loads(raw)
    except Exception as e:
        logger.warning("cache_read_failed", key=key, error=str(e))
        return None


def put_json(
    cache: Optional[CacheInterface],
    key: str,
    value: Any,
    ttl_seconds: int,
) -> None:
    """Serialize and store a payload; failures are logged and swallowed."""
    if cache is None:
        return
    try:
        cache.put(key, json.dumps(value, ensure_ascii=False), ttl_seconds)
    except Exception as e:
        logger.warning("cache_write_failed", key=key, error=str(e))
