import pytest

from housing_dashboard.data.custom_sources import SqliteCustomSourceStore
from housing_dashboard.data.registry import SeriesRegistry
from housing_dashboard.errors import SeriesNotFound
from housing_dashboard.models.series import CustomSource, SeriesValidation


@pytest.fixture
def sources(tmp_path):
    return SqliteCustomSourceStore(tmp_path / "sources.db")


def make_source(status="valid", **overrides):
    fields = {
        "source_id": "0b8c5d0e-6f4e-4a55-9f1e-2d3c4b5a6978",
        "provider": "fred",
        "provider_source_id": "RSAFS",
        "title": "Retail Sales",
        "unit": "M$",
        "frequency": "monthly",
        "stale_after_hours": 48,
        "validation_status": status,
    }
    fields.update(overrides)
    return CustomSource(**fields)


def test_built_in_series(sources):
    config = SeriesRegistry(sources).get("mortgage_rates")

    assert config.provider == "fred"
    assert config.source_id == "MORTGAGE30US"
    assert config.cache_file == "fred/mortgage_rates.csv"
    assert config.value_column == "rate"


def test_unknown_built_in_series(sources):
    with pytest.raises(SeriesNotFound, match="Unknown series: nope"):
        SeriesRegistry(sources).get("nope")


def test_valid_custom_source(sources):
    source = sources.put(make_source())

    config = SeriesRegistry(sources).get(f"custom:{source.source_id}")

    assert config.id == f"custom:{source.source_id}"
    assert config.source_id == "RSAFS"
    assert config.cache_file == f"custom/{source.source_id}.csv"
    assert config.value_column == "value"
    assert config.stale_after_hours == 48
    assert config.description == ""


@pytest.mark.parametrize("status", ["pending", "invalid"])
def test_unvalidated_custom_source_not_found(sources, status):
    source = sources.put(make_source(status=status))

    with pytest.raises(SeriesNotFound):
        SeriesRegistry(sources).get(f"custom:{source.source_id}")


def test_missing_custom_source(sources):
    with pytest.raises(SeriesNotFound):
        SeriesRegistry(sources).get("custom:does-not-exist")


def test_custom_without_store():
    with pytest.raises(SeriesNotFound):
        SeriesRegistry().get("custom:abc")


def test_list_built_in_uses_given_table():
    table = {
        "vix": {
            "source_id": "VIXCLS",
            "frequency": "daily",
            "stale_after_hours": 12,
            "title": "VIX",
            "unit": "Index",
            "value_column": "vix",
        }
    }
    configs = SeriesRegistry(built_in=table).list_built_in()

    assert [c.id for c in configs] == ["vix"]


# ---------- custom source store ----------


def test_put_assigns_uuid_and_round_trips(sources):
    stored = sources.put(make_source(source_id=""))

    assert len(stored.source_id) == 36
    assert sources.get(stored.source_id) == stored
    assert sources.list_sources() == [stored]


def test_update_validation(sources):
    source = sources.put(make_source(status="pending"))

    valid = sources.update_validation(
        source.source_id,
        SeriesValidation(is_valid=True, title="Advance Retail Sales", frequency="Monthly", units="Millions of Dollars"),
    )
    assert valid.validation_status == "valid"
    assert valid.provider_title == "Advance Retail Sales"
    assert valid.last_validated_at is not None

    invalid = sources.update_validation(
        source.source_id, SeriesValidation(is_valid=False, error="Series not found: RSAFS")
    )
    assert invalid.validation_status == "invalid"
    assert sources.get(source.source_id).last_validation_error == "Series not found: RSAFS"


def test_update_validation_missing_source(sources):
    assert sources.update_validation("nope", SeriesValidation(is_valid=True)) is None
