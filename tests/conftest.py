import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from housing_dashboard.data.cache import CacheStore
from housing_dashboard.data.memory_cache import MemoryCache
from housing_dashboard.data.providers import DataProvider, ProviderRegistry
from housing_dashboard.data.refresh import RefreshCoordinator
from housing_dashboard.models.series import DataPoint, SeriesConfig


# ---------- Fakes (no network, controllable time) ----------


class FakeClock:
    """Wall clock for the cache store; call it to read, advance() to move."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 6, 10, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeMonotonic:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class FakeProvider(DataProvider):
    """Records calls; optionally blocks on a gate or raises."""

    def __init__(
        self,
        name: str = "fred",
        points: list[DataPoint] | None = None,
        error: Exception | None = None,
        incremental: bool = True,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.name = name
        self.supports_incremental = incremental
        self.points = points or []
        self.error = error
        self.gate = gate
        self.calls: list[tuple[str, str | None]] = []

    async def fetch_series(self, source_id: str, since: str | None = None) -> list[DataPoint]:
        self.calls.append((source_id, since))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return list(self.points)


def points(*pairs: tuple[str, float]) -> list[DataPoint]:
    return [DataPoint(date=d, value=v) for d, v in pairs]


# ---------- Fixtures ----------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(tmp_path, clock) -> CacheStore:
    return CacheStore(tmp_path, clock=clock, lock_wait=0.5)


@pytest.fixture
def make_config():
    def _make(series_id: str = "mortgage_rates", **overrides) -> SeriesConfig:
        fields = {
            "id": series_id,
            "provider": "fred",
            "source_id": "MORTGAGE30US",
            "frequency": "weekly",
            "stale_after_hours": 24,
            "cache_file": f"fred/{series_id}.csv",
            "title": "30-Year Mortgage Rate",
            "description": "Weekly average 30-year fixed mortgage rate",
            "unit": "%",
            "value_column": "rate",
        }
        fields.update(overrides)
        return SeriesConfig(**fields)

    return _make


@pytest.fixture
def fake_provider():
    return FakeProvider


@pytest.fixture
def make_coordinator(store):
    def _make(*providers: DataProvider, memory: MemoryCache | None = None) -> RefreshCoordinator:
        return RefreshCoordinator(
            store,
            memory or MemoryCache(),
            ProviderRegistry(list(providers)),
            min_date="2015-01-01",
        )

    return _make
