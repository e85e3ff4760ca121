"""Validate custom-source series ids against their provider."""

import logging
import time
from typing import Callable

from housing_dashboard.data.custom_sources import SqliteCustomSourceStore
from housing_dashboard.data.memory_cache import MemoryCache
from housing_dashboard.data.providers import DataProvider, ProviderRegistry
from housing_dashboard.data.refresh import RefreshCoordinator
from housing_dashboard.data.registry import custom_config
from housing_dashboard.errors import DuplicateSource, ProviderNotFound, RateLimited, SeriesNotFound
from housing_dashboard.models.series import CustomSource, SeriesValidation


logger = logging.getLogger(__name__)

VALIDATION_TTL_SECONDS = 5 * 60
RATE_LIMIT_WINDOW_SECONDS = 60
RATE_LIMIT_MAX = 30
# Expired validation results are swept once the cache grows past this
MAX_CACHED_RESULTS = 100
# Custom series are checked for new data at most once a month
CUSTOM_STALE_AFTER_HOURS = 720

# Provider frequency names (long or short form) to cache frequencies.
# Annual series are cached like quarterly ones.
FREQUENCY_MAP = {
    "D": "daily",
    "Daily": "daily",
    "W": "weekly",
    "Weekly": "weekly",
    "M": "monthly",
    "Monthly": "monthly",
    "Q": "quarterly",
    "Quarterly": "quarterly",
    "A": "quarterly",
    "Annual": "quarterly",
}


def map_frequency(provider_frequency: str | None) -> str:
    return FREQUENCY_MAP.get(provider_frequency or "", "monthly")



class RateLimiter:
    """Fixed-window request counter."""

    def __init__(
        self,
        max_requests: int = RATE_LIMIT_MAX,
        window_seconds: float = RATE_LIMIT_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._count = 0
        self._window_start = clock()

    def acquire(self) -> None:
        """Count one request, or raise RateLimited if the window is full."""
        now = self._clock()
        if now - self._window_start > self.window_seconds:
            self._count = 0
            self._window_start = now

        if self._count >= self.max_requests:
            raise RateLimited(
                f"Too many validation requests. Please wait {self.window_seconds:.0f} "
                "seconds before trying again."
            )
        self._count += 1


class SourceValidator:
    """Checks provider series ids and keeps custom sources in sync."""

    def __init__(
        self,
        providers: ProviderRegistry,
        sources: SqliteCustomSourceStore,
        coordinator: RefreshCoordinator,
        cache: MemoryCache | None = None,
        limiter: RateLimiter | None = None,
    ) -> None:
        self.providers = providers
        self.sources = sources
        self.coordinator = coordinator
        self.cache = cache or MemoryCache(ttl_seconds=VALIDATION_TTL_SECONDS)
        self.limiter = limiter or RateLimiter()

    def _validating_provider(self, name: str) -> DataProvider:
        """
        Look up a provider that can check series ids.

        Raises:
            ProviderNotFound: unknown provider, or one without validation
        """
        provider = self.providers.get(name)
        if not provider.supports_validation:
            raise ProviderNotFound(f"Provider {name} does not support custom sources")
        return provider

    async def validate(self, series_id: str, provider: str = "fred") -> SeriesValidation:
        """
        Check that a provider series id exists upstream.

        Results are cached for five minutes; upstream calls are rate limited.

        Raises:
            RateLimited: too many upstream checks in the current window
            ProviderNotFound: provider unknown or unable to validate
            ProviderUnavailable: upstream unreachable
        """
        normalized = series_id.strip().upper()
        key = f"{provider}:{normalized}"

        cached = self.cache.get(key)
        if cached is not None:
            return cached

        checker = self._validating_provider(provider)
        self.limiter.acquire()
        result = await checker.validate_series(normalized)
        self.cache.put(key, result)

        if len(self.cache) > MAX_CACHED_RESULTS:
            self.cache.prune()
        return result

    async def create_source(self, source: CustomSource) -> CustomSource:
        """
        Validate and store a new custom source.

        Only series that exist upstream are stored. Frequency comes from the
        provider's answer.

        Raises:
            DuplicateSource: the provider series is already a custom source
            SeriesNotFound: the provider doesn't know the series
        """
        source.provider_source_id = source.provider_source_id.strip().upper()
        if self.sources.find_by_provider_id(source.provider, source.provider_source_id):
            raise DuplicateSource(f"This series already exists: {source.provider_source_id}")

        result = await self.validate(source.provider_source_id, source.provider)
        if not result.is_valid:
            raise SeriesNotFound(f"Series not found: {source.provider_source_id}")

        source.frequency = map_frequency(result.frequency)
        source.stale_after_hours = CUSTOM_STALE_AFTER_HOURS
        stored = self.sources.put(source)
        return self.sources.update_validation(stored.source_id, result)

    async def revalidate(self, source_id: str) -> CustomSource:
        """
        Re-check a stored custom source and drop its cached data.

        Raises:
            SeriesNotFound: no custom source with this uuid
        """
        source = self.sources.get(source_id)
        if source is None:
            raise SeriesNotFound(f"Custom source not found: {source_id}")

        # Re-checks always go upstream, past the TTL cache
        checker = self._validating_provider(source.provider)
        self.limiter.acquire()
        result = await checker.validate_series(source.provider_source_id)
        updated = self.sources.update_validation(source_id, result)

        await self.coordinator.invalidate(custom_config(updated))
        logger.info(f"Revalidated custom source {source_id}: {updated.validation_status}")
        return updated
