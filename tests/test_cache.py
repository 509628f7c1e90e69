"""Tests for the result cache and the cached query executor."""

import asyncio

import pytest

from fintrack.cache import CacheInterface, TTLCache, cache_key, get_json, put_json
from fintrack.models.transaction import FilterSpec
from fintrack.queries import TransactionQueryExecutor

from fakes import FakeMonotonic, InMemoryRecordStore, make_row


class BrokenCache(CacheInterface):
    """A backend that fails on every call."""

    def get(self, key):
        raise RuntimeError("cache down")

    def put(self, key, value, ttl_seconds):
        raise RuntimeError("cache down")


class TestTTLCache:
    """Tests for TTLCache."""

    def test_entry_expires_after_ttl(self):
        """Entries are served until their TTL elapses."""
        clock = FakeMonotonic()
        cache = TTLCache(clock=clock)
        cache.put("k", "v", ttl_seconds=30)

        clock.advance(29)
        assert cache.get("k") == "v"
        clock.advance(1)
        assert cache.get("k") is None

    def test_oversized_payload_is_dropped(self):
        """Payloads above the size limit are silently not stored."""
        cache = TTLCache(max_payload_bytes=10)
        cache.put("k", "x" * 11, ttl_seconds=30)
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_size_is_measured_in_bytes(self):
        """Multi-byte characters count by their encoded size."""
        cache = TTLCache(max_payload_bytes=10)
        cache.put("k", "ç" * 6, ttl_seconds=30)
        assert cache.get("k") is None

    def test_full_cache_evicts_expired_then_oldest(self):
        """A full cache makes room instead of growing."""
        clock = FakeMonotonic()
        cache = TTLCache(max_entries=2, clock=clock)
        cache.put("a", "1", ttl_seconds=5)
        cache.put("b", "2", ttl_seconds=60)
        clock.advance(10)
        cache.put("c", "3", ttl_seconds=60)
        assert cache.get("a") is None
        assert cache.get("b") == "2"

        cache.put("d", "4", ttl_seconds=60)
        assert len(cache) == 2
        assert cache.get("b") is None
        assert cache.get("d") == "4"


class TestCacheHelpers:
    """Tests for cache_key and the JSON helpers."""

    def test_key_depends_on_operation_tenant_and_spec(self):
        """Different inputs give different keys."""
        spec = FilterSpec(kind="entrada")
        base = cache_key("list", "t1", spec)
        assert base == cache_key("list", "t1", FilterSpec(kind="entrada"))
        assert base != cache_key("metrics", "t1", spec)
        assert base != cache_key("list", "t2", spec)
        assert base != cache_key("list", "t1", FilterSpec(kind="saida"))

    def test_key_has_bounded_length(self):
        """A huge filter value does not produce a huge key."""
        key = cache_key("list", "t1", FilterSpec(category="x" * 10_000))
        assert len(key) < 100

    def test_corrupt_payload_is_a_miss(self):
        """Unparseable JSON reads as a miss."""
        cache = TTLCache()
        cache.put("k", "{not json", ttl_seconds=30)
        assert get_json(cache, "k") is None

    def test_broken_backend_is_swallowed(self):
        """Backend errors never reach the caller."""
        cache = BrokenCache()
        put_json(cache, "k", {"a": 1}, 30)
        assert get_json(cache, "k") is None

    def test_no_cache_is_a_miss(self):
        """A missing cache behaves like an empty one."""
        put_json(None, "k", {"a": 1}, 30)
        assert get_json(None, "k") is None


class TestCachedExecutor:
    """Tests for TransactionQueryExecutor caching."""

    @pytest.fixture
    def store(self):
        store = InMemoryRecordStore()
        store.seed("t1", "Lancamentos", [
            make_row("01/01/2024", "Salário", "5000", "entrada", "Salário"),
            make_row("02/01/2024", "Aluguel", "1500", "saida", "Moradia"),
        ])
        return store

    def test_second_read_is_served_from_cache(self, store):
        """The same query within the TTL does not hit storage."""
        executor = TransactionQueryExecutor(store, cache=TTLCache())

        first, cached_first = asyncio.run(executor.list_transactions("t1", FilterSpec()))
        second, cached_second = asyncio.run(executor.list_transactions("t1", FilterSpec()))

        assert cached_first is False
        assert cached_second is True
        assert store.reads == 1
        assert second.model_dump() == first.model_dump()

    def test_cached_listing_may_be_stale(self, store):
        """Writes do not purge cached results; they show after the TTL."""
        clock = FakeMonotonic()
        executor = TransactionQueryExecutor(store, cache=TTLCache(clock=clock), ttl_seconds=30)
        asyncio.run(executor.list_transactions("t1"))

        store.rows("t1", "Lancamentos").append(make_row("03/01/2024", "Nova"))
        page, _ = asyncio.run(executor.list_transactions("t1"))
        assert page.total == 2

        clock.advance(30)
        page, cached = asyncio.run(executor.list_transactions("t1"))
        assert cached is False
        assert page.total == 3

    def test_metrics_share_entry_across_pages(self, store):
        """Metrics for page 1 and page 2 of one filter are one cache entry."""
        executor = TransactionQueryExecutor(store, cache=TTLCache())
        asyncio.run(executor.metrics("t1", FilterSpec(page=1)))
        _, cached = asyncio.run(executor.metrics("t1", FilterSpec(page=2)))
        assert cached is True

    def test_tenants_do_not_share_entries(self, store):
        """Cached results are scoped to a tenant."""
        store.seed("t2", "Lancamentos", [])
        executor = TransactionQueryExecutor(store, cache=TTLCache())
        asyncio.run(executor.list_transactions("t1"))
        page, cached = asyncio.run(executor.list_transactions("t2"))
        assert cached is False
        assert page.total == 0

    def test_corrupt_entry_is_recomputed(self, store):
        """A cached payload of the wrong shape is ignored."""
        cache = TTLCache()
        executor = TransactionQueryExecutor(store, cache=cache)
        cache.put(cache_key("options", "t1"), '{"years": "not a list"}', ttl_seconds=30)

        options, cached = asyncio.run(executor.filter_options("t1"))
        assert cached is False
        assert options.years == [2024]

    def test_broken_cache_still_answers(self, store):
        """A failing cache backend degrades to uncached reads."""
        executor = TransactionQueryExecutor(store, cache=BrokenCache())
        result, cached = asyncio.run(executor.metrics("t1"))
        assert cached is False
        assert result.sample == 2
