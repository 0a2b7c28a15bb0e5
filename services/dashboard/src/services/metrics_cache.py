"""Time-series window cache backing the dashboard trend chart.

`MetricsWindowCache` owns the window for the current query identity and a
repeating refresh task bound to that identity. `MetricsCacheRegistry` keeps
one cache per identity and credential for the HTTP layer.
"""

from __future__ import annotations

import asyncio
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Callable, List, Optional, Protocol, Tuple

from src.core.config import settings
from src.core.errors import FetchError
from src.core.logger import get_logger
from src.domain.models import MetricSnapshot, MetricsQuery, QueryState
from src.domain.window import MetricsWindow
from src.infrastructure.http.metrics import (
    TRACKED_QUERIES,
    WINDOW_POINTS_MERGED_TOTAL,
    WINDOW_RESETS_TOTAL,
)

logger = get_logger("dashboard.metrics_cache")

Listener = Callable[[QueryState], None]
CacheKey = Tuple[MetricsQuery, Optional[str]]


class MetricsFetcher(Protocol):
    async def fetch_metrics(
        self, query: MetricsQuery, token: Optional[str] = None
    ) -> List[MetricSnapshot]: ...


class MetricsWindowCache:
    def __init__(
        self,
        fetcher: MetricsFetcher,
        refresh_interval: Optional[float] = None,
        capacity: Optional[int] = None,
        token: Optional[str] = None,
    ):
        self.fetcher = fetcher
        self.refresh_interval = (
            refresh_interval
            if refresh_interval is not None
            else settings.metrics_refresh_interval_seconds
        )
        self.capacity = capacity or settings.metrics_window_capacity
        self.token = token

        self._query: Optional[MetricsQuery] = None
        self._window = MetricsWindow.empty(self.capacity)
        self._error: Optional[str] = None
        self._failure_count = 0
        self._updated_at: Optional[datetime] = None

        # bumped on every identity switch; a fetch only lands if it still matches
        self._generation = 0
        self._inflight: Optional[asyncio.Future[None]] = None
        self._refresh_task: Optional[asyncio.Task[None]] = None
        self._running = False
        self._listeners: List[Listener] = []

    @property
    def query(self) -> Optional[MetricsQuery]:
        return self._query

    @property
    def window(self) -> MetricsWindow:
        return self._window

    @property
    def is_fetching(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    @property
    def state(self) -> QueryState:
        return QueryState(
            query=self._query,
            data=list(self._window.points),
            error=self._error,
            is_fetching=self.is_fetching,
            updated_at=self._updated_at,
            failure_count=self._failure_count,
        )

    # Identity

    def set_query(self, query: MetricsQuery) -> bool:
        """Switch identity. Returns True when the window was reset."""
        if query == self._query:
            return False
        previous = self._query
        self._query = query
        self._window = self._window.reset()
        self._error = None
        self._failure_count = 0
        self._updated_at = None
        # an in-flight fetch for the old identity is left to finish and discarded
        self._generation += 1
        self._inflight = None
        if previous is not None:
            WINDOW_RESETS_TOTAL.inc()
            logger.info(
                "metrics_window_reset",
                extra={"famille": query.famille, "previous_famille": previous.famille},
            )
        if self._running:
            self._restart_refresh_task()
        self._notify()
        return True

    def get_window(self, query: MetricsQuery) -> QueryState:
        self.set_query(query)
        return self.state

    # Observation

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        state = self.state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("metrics_listener_failed")

    # Fetch cycle

    async def refresh(self) -> QueryState:
        """Run one fetch+merge cycle, joining the in-flight one if any."""
        if self._query is None:
            return self.state
        task = self._inflight
        if task is None or task.done():
            task = asyncio.ensure_future(
                self._fetch_and_merge(self._query, self._generation)
            )
            self._inflight = task
            self._notify()
        await asyncio.shield(task)
        return self.state

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def _fetch_and_merge(self, query: MetricsQuery, generation: int) -> None:
        try:
            snapshots = await self.fetcher.fetch_metrics(query, token=self.token)
        except FetchError as e:
            if not self._is_current(generation):
                return
            self._inflight = None
            self._error = str(e)
            self._failure_count += 1
            logger.warning(
                "metrics_fetch_failed",
                extra={
                    "famille": query.famille,
                    "error": str(e),
                    "status_code": e.status_code,
                    "failure_count": self._failure_count,
                },
            )
            self._notify()
            return

        if not self._is_current(generation):
            logger.debug("metrics_stale_response_discarded")
            return

        self._inflight = None
        before = set(self._window.dates)
        self._window = self._window.merge(snapshots)
        added = len(set(self._window.dates) - before)
        if added:
            WINDOW_POINTS_MERGED_TOTAL.inc(added)
        self._error = None
        self._failure_count = 0
        self._updated_at = datetime.now(timezone.utc)
        logger.debug(
            "metrics_window_merged",
            extra={
                "famille": query.famille,
                "received": len(snapshots),
                "added": added,
                "size": len(self._window.points),
            },
        )
        self._notify()

    # Background refresh

    async def _refresh_loop(self) -> None:
        while True:
            try:
                await self.refresh()
            except Exception:
                logger.exception("metrics_refresh_unexpected_error")
            await asyncio.sleep(self.refresh_interval)

    def _restart_refresh_task(self) -> None:
        if self._refresh_task is not None:
            self._refresh_task.cancel()
        self._refresh_task = None
        if self._query is not None:
            self._refresh_task = asyncio.create_task(self._refresh_loop())

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._restart_refresh_task()

    async def stop(self) -> None:
        self._running = False
        tasks = [t for t in (self._refresh_task, self._inflight) if t is not None]
        self._refresh_task = None
        self._inflight = None
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:  # expected during shutdown
                pass
            except Exception:  # noqa
                logger.debug("metrics_task_non_critical_exit", exc_info=True)


class MetricsCacheRegistry:
    """One window cache per (query identity, bearer token), LRU dropped first.

    A window fetched with one credential is never handed to a caller holding
    another, and background refreshes keep using the credential they were
    created with.
    """

    def __init__(
        self,
        fetcher: MetricsFetcher,
        max_queries: Optional[int] = None,
        refresh_interval: Optional[float] = None,
        capacity: Optional[int] = None,
    ):
        self.fetcher = fetcher
        self.max_queries = max_queries or settings.metrics_max_tracked_queries
        self.refresh_interval = refresh_interval
        self.capacity = capacity
        self._caches: OrderedDict[CacheKey, MetricsWindowCache] = OrderedDict()
        self._running = False

    def __len__(self) -> int:
        return len(self._caches)

    def __contains__(self, query: object) -> bool:
        return any(key[0] == query for key in self._caches)

    async def acquire(
        self, query: MetricsQuery, token: Optional[str] = None
    ) -> MetricsWindowCache:
        key = (query, token)
        cache = self._caches.get(key)
        if cache is not None:
            self._caches.move_to_end(key)
            return cache

        cache = MetricsWindowCache(
            self.fetcher,
            refresh_interval=self.refresh_interval,
            capacity=self.capacity,
            token=token,
        )
        cache.set_query(query)
        self._caches[key] = cache
        if self._running:
            cache.start()
        while len(self._caches) > self.max_queries:
            _, evicted = self._caches.popitem(last=False)
            await evicted.stop()
            logger.info(
                "metrics_query_evicted",
                extra={"famille": evicted.query.famille if evicted.query else None},
            )
        TRACKED_QUERIES.set(len(self._caches))
        return cache

    def start(self) -> None:
        self._running = True
        for cache in self._caches.values():
            cache.start()

    async def stop(self) -> None:
        self._running = False
        for cache in list(self._caches.values()):
            await cache.stop()
        self._caches.clear()
        TRACKED_QUERIES.set(0)
