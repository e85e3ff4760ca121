import asyncio

import pytest

from housing_dashboard.data.memory_cache import MemoryCache
from housing_dashboard.errors import ProviderUnavailable

from conftest import points


async def seed(store, clock, config, data, hours_ago):
    """Write cached data as if fetched ``hours_ago``."""
    clock.advance(hours=-hours_ago)
    await store.merge_append(config, data)
    clock.advance(hours=hours_ago)


HISTORY = points(("2024-05-01", 7.1), ("2024-05-15", 7.0), ("2024-06-01", 6.9))


@pytest.mark.asyncio
async def test_stale_read_refreshes_incrementally(store, clock, make_config, make_coordinator, fake_provider):
    config = make_config(stale_after_hours=24)
    await seed(store, clock, config, HISTORY, hours_ago=25)
    new = points(("2024-06-03", 6.8), ("2024-06-04", 6.85), ("2024-06-05", 6.7))
    provider = fake_provider(points=new)
    coordinator = make_coordinator(provider)

    response = await coordinator.get_series_data(config)

    # Served immediately from the file while the refresh runs
    assert response.data == HISTORY
    assert response.is_refreshing is True

    await coordinator.wait_idle()

    assert provider.calls == [("MORTGAGE30US", "2024-06-01")]
    assert store.read(config) == HISTORY + new
    assert store.get_last_data_date(config.id) == "2024-06-05"
    assert coordinator.memory.get(config.id) == HISTORY + new

    after = await coordinator.get_series_data(config)
    assert after.data == HISTORY + new
    assert after.is_refreshing is False
    assert len(provider.calls) == 1


@pytest.mark.asyncio
async def test_fresh_series_is_not_refreshed(store, clock, make_config, make_coordinator, fake_provider):
    config = make_config(stale_after_hours=24)
    await seed(store, clock, config, HISTORY, hours_ago=1)
    provider = fake_provider()
    coordinator = make_coordinator(provider)

    response = await coordinator.get_series_data(config)
    await coordinator.wait_idle()

    assert response.is_refreshing is False
    assert provider.calls == []


@pytest.mark.asyncio
async def test_concurrent_reads_trigger_one_fetch(make_config, make_coordinator, fake_provider):
    config = make_config()
    gate = asyncio.Event()
    provider = fake_provider(points=points(("2024-06-01", 1.0)), gate=gate)
    coordinator = make_coordinator(provider)

    responses = await asyncio.gather(*(coordinator.get_series_data(config) for _ in range(20)))
    await asyncio.sleep(0)

    assert all(r.is_refreshing for r in responses)
    assert coordinator.is_refreshing(config.id)
    assert len(provider.calls) == 1

    gate.set()
    await coordinator.wait_idle()

    assert not coordinator.is_refreshing(config.id)
    assert len(provider.calls) == 1


@pytest.mark.asyncio
async def test_never_fetched_series_requests_full_history(make_config, make_coordinator, fake_provider):
    config = make_config()
    provider = fake_provider(points=points(("2015-01-01", 3.8)))
    coordinator = make_coordinator(provider)

    response = await coordinator.get_series_data(config)
    assert response.data == []

    await coordinator.wait_idle()
    assert provider.calls == [("MORTGAGE30US", None)]


@pytest.mark.asyncio
async def test_failed_refresh_keeps_cached_data_and_backs_off(
    store, clock, make_config, make_coordinator, fake_provider
):
    config = make_config()
    await seed(store, clock, config, HISTORY, hours_ago=48)
    file_before = store.path_for(config).read_text()
    provider = fake_provider(error=ProviderUnavailable("FRED API rate limit exceeded"))
    coordinator = make_coordinator(provider)

    await coordinator.get_series_data(config)
    await coordinator.wait_idle()

    assert store.path_for(config).read_text() == file_before
    assert coordinator.memory.get(config.id) == HISTORY
    assert store.should_backoff(config.id) is True
    assert store.get_meta(config.id).last_error == "FRED API rate limit exceeded"

    # Reads inside the backoff window are served but never refetch
    for _ in range(3):
        response = await coordinator.get_series_data(config)
        assert response.data == HISTORY
        assert response.is_refreshing is False
    await coordinator.wait_idle()
    assert len(provider.calls) == 1

    clock.advance(seconds=61)
    await coordinator.get_series_data(config)
    await coordinator.wait_idle()
    assert len(provider.calls) == 2


@pytest.mark.asyncio
async def test_failed_refresh_with_no_cache_returns_empty(make_config, make_coordinator, fake_provider):
    config = make_config()
    provider = fake_provider(error=ProviderUnavailable("FRED API error: 503 Service Unavailable"))
    coordinator = make_coordinator(provider)

    await coordinator.get_series_data(config)
    await coordinator.wait_idle()
    response = await coordinator.get_series_data(config)

    payload = response.to_dict()
    assert payload["data"] == []
    assert payload["meta"]["lastError"] == "FRED API error: 503 Service Unavailable"
    assert payload["meta"]["isRefreshing"] is False


@pytest.mark.asyncio
async def test_no_new_points_updates_last_fetched_only(
    store, clock, make_config, make_coordinator, fake_provider
):
    config = make_config(stale_after_hours=24)
    await seed(store, clock, config, HISTORY, hours_ago=25)
    coordinator = make_coordinator(fake_provider(points=[]))

    assert await coordinator.refresh(config) is True

    meta = store.get_meta(config.id)
    assert meta.last_fetched == "2024-06-10T12:00:00.000Z"
    assert meta.last_data_date == "2024-06-01"
    assert store.needs_refresh(config) is False
    assert store.read(config) == HISTORY


@pytest.mark.asyncio
async def test_non_incremental_provider_rewrites(store, clock, make_config, make_coordinator, fake_provider):
    config = make_config(provider="census")
    await seed(store, clock, config, HISTORY, hours_ago=48)
    full = points(("2024-05-01", 8.0), ("2024-06-01", 8.5))
    provider = fake_provider(name="census", points=full, incremental=False)
    coordinator = make_coordinator(provider)

    assert await coordinator.refresh(config) is True

    assert provider.calls == [("MORTGAGE30US", None)]
    assert store.read(config) == full


@pytest.mark.asyncio
async def test_full_refresh_replaces_history_only_after_fetch(store, clock, make_config, make_coordinator, fake_provider):
    config = make_config()
    await seed(store, clock, config, HISTORY, hours_ago=1)
    full = points(("2024-06-01", 6.8), ("2024-06-08", 6.7))
    provider = fake_provider(points=full)
    coordinator = make_coordinator(provider)

    assert await coordinator.refresh(config, full=True) is True

    assert provider.calls == [("MORTGAGE30US", None)]
    assert store.read(config) == full
    assert coordinator.memory.get(config.id) == full


@pytest.mark.asyncio
async def test_failed_full_refresh_leaves_cache_alone(store, clock, make_config, make_coordinator, fake_provider):
    config = make_config()
    await seed(store, clock, config, HISTORY, hours_ago=1)
    coordinator = make_coordinator(fake_provider(error=ProviderUnavailable("down")))

    assert await coordinator.refresh(config, full=True) is False

    assert store.read(config) == HISTORY
    assert store.get_last_data_date(config.id) == "2024-06-01"


@pytest.mark.asyncio
async def test_unknown_provider_is_recorded_as_error(store, make_config, make_coordinator):
    config = make_config(provider="zillow")
    coordinator = make_coordinator()

    assert await coordinator.refresh(config) is False
    assert store.get_meta(config.id).last_error == "Unknown provider: zillow"


@pytest.mark.asyncio
async def test_min_date_filters_response_not_storage(store, clock, make_config, make_coordinator, fake_provider):
    config = make_config()
    await seed(store, clock, config, points(("2014-12-31", 1.0), ("2015-01-01", 2.0)), hours_ago=1)
    coordinator = make_coordinator(fake_provider())

    default = await coordinator.get_series_data(config)
    custom = await coordinator.get_series_data(config, min_date="2010-01-01")

    assert default.data == points(("2015-01-01", 2.0))
    assert len(custom.data) == 2
    assert len(store.read(config)) == 2


@pytest.mark.asyncio
async def test_memory_cache_serves_without_rereading(store, clock, make_config, make_coordinator, fake_provider):
    config = make_config()
    await seed(store, clock, config, HISTORY, hours_ago=1)
    coordinator = make_coordinator(fake_provider(), memory=MemoryCache())

    await coordinator.get_series_data(config)
    store.path_for(config).unlink()

    response = await coordinator.get_series_data(config)
    assert response.data == HISTORY


@pytest.mark.asyncio
async def test_invalidate_drops_memory_and_file(store, clock, make_config, make_coordinator, fake_provider):
    config = make_config()
    await seed(store, clock, config, HISTORY, hours_ago=1)
    coordinator = make_coordinator(fake_provider())
    await coordinator.get_series_data(config)

    await coordinator.invalidate(config)

    assert coordinator.memory.get(config.id) is None
    assert store.read(config) == []
    assert store.needs_refresh(config) is True
