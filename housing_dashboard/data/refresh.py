"""Stale-while-revalidate reads with background refresh.

Reads return whatever is cached right away. A stale series that is not in a
failure backoff window gets one background refresh task per process; further
reads for the same series see ``is_refreshing`` until that task finishes.
"""

import asyncio
import logging
from datetime import date

from housing_dashboard.data.cache import CacheStore
from housing_dashboard.data.memory_cache import MemoryCache
from housing_dashboard.data.providers import ProviderRegistry
from housing_dashboard.models.series import DataPoint, SeriesConfig, SeriesResponse


logger = logging.getLogger(__name__)

DEFAULT_MIN_DATE = "2015-01-01"


class RefreshCoordinator:
    """Serves cached series and keeps them fresh in the background."""

    def __init__(
        self,
        store: CacheStore,
        memory: MemoryCache,
        providers: ProviderRegistry,
        min_date: str = DEFAULT_MIN_DATE,
    ) -> None:
        self.store = store
        self.memory = memory
        self.providers = providers
        self.min_date = min_date
        self._in_flight: set[str] = set()
        self._tasks: set[asyncio.Task] = set()

    def is_refreshing(self, series_id: str) -> bool:
        return series_id in self._in_flight

    def _should_refresh(self, config: SeriesConfig) -> bool:
        return (
            self.store.needs_refresh(config)
            and not self.store.should_backoff(config.id)
            and config.id not in self._in_flight
        )

    def _load(self, config: SeriesConfig) -> list[DataPoint]:
        """Memory first, then the cache file."""
        data = self.memory.get(config.id)
        if data is None:
            data = self.store.read(config)
            if data:
                self.memory.put(config.id, data)
        return data

    async def get_series_data(
        self, config: SeriesConfig, min_date: str | date | None = None
    ) -> SeriesResponse:
        """
        Return cached data for a series, starting a refresh if it is stale.

        Never waits on the provider. Points before ``min_date`` are left out of
        the response but stay on disk.
        """
        data = self._load(config)

        if self._should_refresh(config):
            self._schedule(config)

        floor = str(min_date or self.min_date)
        return SeriesResponse(
            config=config,
            data=[point for point in data if point.date >= floor],
            meta=self.store.get_meta(config.id),
            is_refreshing=self.is_refreshing(config.id),
        )

    def _schedule(self, config: SeriesConfig) -> None:
        # Mark in flight before the task exists so concurrent reads can't
        # schedule a second refresh.
        self._in_flight.add(config.id)
        task = asyncio.create_task(self._run_refresh(config), name=f"refresh:{config.id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_refresh(self, config: SeriesConfig) -> None:
        try:
            await self.refresh(config)
        except Exception:
            logger.exception(f"Background refresh crashed for {config.id}")
        finally:
            self._in_flight.discard(config.id)

    async def refresh(self, config: SeriesConfig, full: bool = False) -> bool:
        """
        Fetch new data for a series and write it to the cache.

        Incremental providers are asked only for points after the last cached
        date and their results are merged in; other providers return full
        history, which replaces the file. ``full`` refetches full history from
        any provider and replaces the file once the fetch succeeds. A failure
        records a backoff and leaves cached data untouched.

        Returns:
            True if the fetch succeeded (even with no new points)
        """
        last_date = self.store.get_last_data_date(config.id)
        try:
            provider = self.providers.get(config.provider)
            logger.info(f"Refreshing {config.id} from {config.provider}...")

            if provider.supports_incremental and last_date and not full:
                logger.info(f"  Delta update from {last_date}")
                new_points = await provider.fetch_series(config.source_id, last_date)
            else:
                new_points = await provider.fetch_series(config.source_id)

            if new_points:
                if provider.supports_incremental and not full:
                    await self.store.merge_append(config, new_points)
                else:
                    await self.store.rewrite(config, new_points)
                # Reload so memory holds the full merged history, not the delta
                self.memory.put(config.id, self.store.read(config))
                logger.info(f"  Got {len(new_points)} new points for {config.id}")
            else:
                logger.info(f"  No new data for {config.id}")
                self.store.mark_fetched(config, last_date)
        except Exception as e:
            logger.warning(f"Refresh failed for {config.id}: {e}")
            self.store.record_error(config, str(e) or type(e).__name__)
            return False

        return True

    async def invalidate(self, config: SeriesConfig) -> None:
        """Drop all cached data for a series (file, metadata and memory)."""
        await self.store.clear(config)
        self.memory.invalidate(config.id)

    async def wait_idle(self) -> None:
        """Wait for every scheduled refresh to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
