"""Resolve series ids to their configuration."""

from housing_dashboard.config import BUILT_IN_SERIES
from housing_dashboard.data.custom_sources import CustomSourceStore
from housing_dashboard.errors import SeriesNotFound
from housing_dashboard.models.series import (
    CustomSource,
    SeriesConfig,
    custom_series_id,
    extract_custom_uuid,
    is_custom_series,
)


def built_in_config(series_id: str, entry: dict) -> SeriesConfig:
    return SeriesConfig(
        id=series_id,
        provider=entry.get("provider", "fred"),
        source_id=entry["source_id"],
        frequency=entry["frequency"],
        stale_after_hours=entry["stale_after_hours"],
        cache_file=entry.get("cache_file", f"fred/{series_id}.csv"),
        title=entry["title"],
        description=entry.get("description", ""),
        unit=entry["unit"],
        value_column=entry["value_column"],
    )


def custom_config(source: CustomSource) -> SeriesConfig:
    return SeriesConfig(
        id=custom_series_id(source.source_id),
        provider=source.provider,
        source_id=source.provider_source_id,
        frequency=source.frequency,
        stale_after_hours=source.stale_after_hours,
        cache_file=f"custom/{source.source_id}.csv",
        title=source.title,
        description=source.description or "",
        unit=source.unit,
        value_column="value",
    )


class SeriesRegistry:
    """Built-in series table plus validated custom sources."""

    def __init__(
        self,
        custom_sources: CustomSourceStore | None = None,
        built_in: dict[str, dict] | None = None,
    ) -> None:
        self.custom_sources = custom_sources
        self._built_in = {
            series_id: built_in_config(series_id, entry)
            for series_id, entry in (BUILT_IN_SERIES if built_in is None else built_in).items()
        }

    def get(self, series_id: str) -> SeriesConfig:
        """
        Look up a series.

        Raises:
            SeriesNotFound: unknown id, or a custom source that is not valid
        """
        if not is_custom_series(series_id):
            config = self._built_in.get(series_id)
            if config is None:
                raise SeriesNotFound(f"Unknown series: {series_id}")
            return config

        if self.custom_sources is None:
            raise SeriesNotFound(f"Unknown series: {series_id}")

        source = self.custom_sources.get(extract_custom_uuid(series_id))
        if source is None or source.validation_status != "valid":
            raise SeriesNotFound(f"Unknown series: {series_id}")
        return custom_config(source)

    def list_built_in(self) -> list[SeriesConfig]:
        return list(self._built_in.values())
