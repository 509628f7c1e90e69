"""
Query Execution

DESIGN DECISION: Query execution is DETERMINISTIC and read-only.
The executor loads a tenant's table, hands it to the pure engine functions
and memoizes their output in the result cache.

GUARANTEES:
- Only returns real data from storage (or a copy of it at most one TTL old)
- A cache miss, a corrupt cache entry and a broken cache all behave the same:
  the result is recomputed from storage
- Reads never take the tenant write lock
"""

from typing import Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from fintrack.cache import CacheInterface, cache_key, get_json, put_json
from fintrack.models.transaction import (
    FilterOptions,
    FilterSpec,
    MetricsResult,
    Page,
    Table,
)
from fintrack.queries.engine import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    build_filter_options,
    filter_and_sort,
    paginate,
)
from fintrack.queries.metrics import aggregate
from fintrack.services.storage import RecordStoreInterface


ModelT = TypeVar("ModelT", bound=BaseModel)


class TransactionQueryExecutor:
    """
    Runs listing, metrics and filter-option queries for a tenant.

    Every query is cached under (operation, tenant_ref, filter spec)
    for ttl_seconds.
    """

    def __init__(
        self,
        store: RecordStoreInterface,
        cache: Optional[CacheInterface] = None,
        table_name: str = "Lancamentos",
        ttl_seconds: int = 30,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
    ):
        self._store = store
        self._cache = cache
        self._table_name = table_name
        self._ttl = ttl_seconds
        self._default_page_size = default_page_size
        self._max_page_size = max_page_size

    async def _load(self, tenant_ref: str) -> Table:
        return await self._store.read_table(tenant_ref, self._table_name)

    def _cached(self, key: str, model: Type[ModelT]) -> Optional[ModelT]:
        payload = get_json(self._cache, key)
        if payload is None:
            return None
        try:
            return model.model_validate(payload)
        except ValidationError:
            return None

    def _remember(self, key: str, result: BaseModel) -> None:
        put_json(self._cache, key, result.model_dump(mode="json"), self._ttl)

    async def list_transactions(
        self,
        tenant_ref: str,
        spec: Optional[FilterSpec] = None,
    ) -> tuple[Page, bool]:
        """
        Filter, sort and paginate a tenant's transactions.

        Returns:
            (page, served_from_cache)
        """
        spec = spec or FilterSpec()
        key = cache_key("list", tenant_ref, spec)
        hit = self._cached(key, Page)
        if hit is not None:
            return hit, True

        items = filter_and_sort(await self._load(tenant_ref), spec)
        page = paginate(
            items,
            spec.page,
            spec.page_size,
            default_page_size=self._default_page_size,
            max_page_size=self._max_page_size,
        )
        self._remember(key, page)
        return page, False

    async def metrics(
        self,
        tenant_ref: str,
        spec: Optional[FilterSpec] = None,
    ) -> tuple[MetricsResult, bool]:
        """
        Aggregate the full filtered set.

        Pagination fields are dropped before keying the cache, so page 1
        and page 2 of the same filter share one metrics entry.
        """
        spec = (spec or FilterSpec()).without_pagination()
        key = cache_key("metrics", tenant_ref, spec)
        hit = self._cached(key, MetricsResult)
        if hit is not None:
            return hit, True

        result = aggregate(filter_and_sort(await self._load(tenant_ref), spec))
        self._remember(key, result)
        return result, False

    async def filter_options(self, tenant_ref: str) -> tuple[FilterOptions, bool]:
        """Distinct kinds, categories, payment methods, years and months."""
        key = cache_key("options", tenant_ref)
        hit = self._cached(key, FilterOptions)
        if hit is not None:
            return hit, True

        options = build_filter_options(await self._load(tenant_ref))
        self._remember(key, options)
        return options, False
