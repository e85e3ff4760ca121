"""Application context: the process-wide cache state, built once at startup.

Request handlers receive a ``DashboardContext`` explicitly instead of reaching
for module-level singletons.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date

from housing_dashboard.config import Settings
from housing_dashboard.data.cache import CacheStore
from housing_dashboard.data.custom_sources import SqliteCustomSourceStore
from housing_dashboard.data.memory_cache import MemoryCache
from housing_dashboard.data.providers import FredProvider, ProviderRegistry
from housing_dashboard.data.refresh import RefreshCoordinator
from housing_dashboard.data.registry import SeriesRegistry
from housing_dashboard.data.validation import SourceValidator
from housing_dashboard.errors import SeriesNotFound
from housing_dashboard.models.series import custom_series_id


logger = logging.getLogger(__name__)


@dataclass
class DashboardContext:
    """Everything a request handler needs to serve series data."""

    settings: Settings
    store: CacheStore
    memory: MemoryCache
    providers: ProviderRegistry
    sources: SqliteCustomSourceStore
    registry: SeriesRegistry
    coordinator: RefreshCoordinator
    validator: SourceValidator

    async def get_series(self, series_ids: list[str], min_date: str | date | None = None) -> dict:
        """
        Serve one or more series.

        A single id returns that series' response; several ids return
        ``{"results": {...}}`` plus an ``errors`` list for unknown ids.

        Raises:
            SeriesNotFound: single-id request for an unknown series
        """
        async def _one(series_id: str) -> dict:
            config = self.registry.get(series_id)
            response = await self.coordinator.get_series_data(config, min_date)
            return response.to_dict()

        if len(series_ids) == 1:
            return await _one(series_ids[0])

        outcomes = await asyncio.gather(
            *(_one(series_id) for series_id in series_ids),
            return_exceptions=True,
        )

        results: dict[str, dict] = {}
        errors: list[str] = []
        for series_id, outcome in zip(series_ids, outcomes):
            if isinstance(outcome, SeriesNotFound):
                errors.append(str(outcome))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                results[series_id] = outcome

        payload: dict = {"results": results}
        if errors:
            payload["errors"] = errors
        return payload

    def list_series(self) -> dict:
        """Catalogue of built-in series."""
        return {
            "series": [
                {
                    "id": config.id,
                    "title": config.title,
                    "description": config.description,
                    "provider": config.provider,
                    "frequency": config.frequency,
                }
                for config in self.registry.list_built_in()
            ]
        }

    def get_status(self) -> dict[str, dict]:
        """Cache status for every built-in and custom series."""
        configs = self.registry.list_built_in()
        for source in self.sources.list_sources():
            if source.validation_status == "valid":
                configs.append(self.registry.get(custom_series_id(source.source_id)))
        return self.store.get_cache_status(configs)

    async def aclose(self) -> None:
        """Let running refreshes finish, then close HTTP clients."""
        await self.coordinator.wait_idle()
        await self.providers.aclose()


def build_context(settings: Settings | None = None) -> DashboardContext:
    """Wire up the cache subsystem from settings."""
    settings = settings or Settings()
    if not settings.has_fred_key():
        logger.warning("FRED_API_KEY not set; refreshes will fail and back off")

    store = CacheStore(settings.data_dir, settings.meta_path)
    memory = MemoryCache(ttl_seconds=settings.memory_ttl_seconds)
    providers = ProviderRegistry([FredProvider(settings)])
    sources = SqliteCustomSourceStore(settings.sources_db_path)
    registry = SeriesRegistry(sources)
    coordinator = RefreshCoordinator(store, memory, providers, min_date=settings.min_date)
    validator = SourceValidator(providers, sources, coordinator)

    return DashboardContext(
        settings=settings,
        store=store,
        memory=memory,
        providers=providers,
        sources=sources,
        registry=registry,
        coordinator=coordinator,
        validator=validator,
    )
