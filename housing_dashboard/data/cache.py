"""Flat-file cache for series data and fetch metadata.

Each series lives in its own CSV (header ``,<value column>``, one
``date,value`` row per observation). Fetch state for every series is kept in a
single JSON metadata file.
"""

import json
import logging
import os
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Iterable

import pandas as pd

from housing_dashboard.data.file_lock import DirectoryLock, MAX_WAIT
from housing_dashboard.errors import StorageError
from housing_dashboard.models.series import (
    DataPoint,
    SeriesCacheMeta,
    SeriesConfig,
    format_timestamp,
    format_value,
    parse_timestamp,
    utc_now,
)


logger = logging.getLogger(__name__)

BASE_BACKOFF_SECONDS = 60
MAX_BACKOFF_SECONDS = 60 * 60


def merge_points(existing: Iterable[DataPoint], incoming: Iterable[DataPoint]) -> list[DataPoint]:
    """Merge two point sets by date; incoming values win on collision."""
    by_date = {point.date: point for point in existing}
    for point in incoming:
        by_date[point.date] = point
    return sorted(by_date.values(), key=lambda p: p.date)


def _atomic_write(path: Path, content: str) -> None:
    """Replace ``path`` in one step so readers never see a partial file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f"{path.name}.tmp")
    tmp_path.write_text(content, encoding="utf-8")
    os.replace(tmp_path, path)


class CacheStore:
    """File-based cache of series observations plus per-series fetch state."""

    def __init__(
        self,
        data_dir: Path,
        meta_path: Path | None = None,
        clock: Callable[[], datetime] = utc_now,
        lock_wait: float = MAX_WAIT,
    ) -> None:
        self.data_dir = Path(data_dir)
        self.meta_path = meta_path or self.data_dir / "cache-meta.json"
        self._clock = clock
        self._lock_wait = lock_wait
        self._meta: dict[str, SeriesCacheMeta] | None = None

    def path_for(self, config: SeriesConfig) -> Path:
        return self.data_dir / config.cache_file

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def _load_meta(self) -> dict[str, SeriesCacheMeta]:
        if self._meta is not None:
            return self._meta

        self._meta = {}
        if not self.meta_path.exists():
            return self._meta

        try:
            raw = json.loads(self.meta_path.read_text(encoding="utf-8"))
            self._meta = {
                series_id: SeriesCacheMeta.from_dict(entry)
                for series_id, entry in raw.items()
            }
        except (OSError, ValueError, AttributeError) as e:
            logger.warning(f"Failed to load cache metadata {self.meta_path}: {e}")
        return self._meta

    def _save_meta(self) -> None:
        meta = self._load_meta()
        content = json.dumps(
            {series_id: entry.to_dict() for series_id, entry in meta.items()},
            indent=2,
        )
        try:
            _atomic_write(self.meta_path, content)
        except OSError as e:
            raise StorageError(f"Failed to write cache metadata {self.meta_path}: {e}") from e

    def get_meta(self, series_id: str) -> SeriesCacheMeta | None:
        return self._load_meta().get(series_id)

    def get_last_data_date(self, series_id: str) -> str | None:
        """Most recent observation date on disk, for incremental fetches."""
        meta = self.get_meta(series_id)
        return meta.last_data_date if meta else None

    def needs_refresh(self, config: SeriesConfig) -> bool:
        """True if never fetched or the last fetch is older than the threshold."""
        meta = self.get_meta(config.id)
        if meta is None or not meta.last_fetched:
            return True

        try:
            last_fetched = parse_timestamp(meta.last_fetched)
        except ValueError:
            logger.warning(f"Unparseable lastFetched for {config.id}: {meta.last_fetched!r}")
            return True

        return self._clock() - last_fetched > timedelta(hours=config.stale_after_hours)

    def should_backoff(self, series_id: str) -> bool:
        """True while a failure backoff window is still open."""
        meta = self.get_meta(series_id)
        if meta is None or not meta.backoff_until:
            return False
        try:
            return parse_timestamp(meta.backoff_until) > self._clock()
        except ValueError:
            return False

    def record_error(self, config: SeriesConfig, message: str) -> None:
        """
        Store a fetch failure and open (or extend) the backoff window.

        The first failure backs off for one minute; every further failure
        without a success in between doubles the previous window, up to an hour.
        """
        meta = self._load_meta()
        entry = meta.get(config.id) or SeriesCacheMeta(provider=config.provider)

        if entry.backoff_seconds:
            delay = min(entry.backoff_seconds * 2, MAX_BACKOFF_SECONDS)
        else:
            delay = BASE_BACKOFF_SECONDS

        entry.last_error = message
        entry.backoff_seconds = delay
        entry.backoff_until = format_timestamp(self._clock() + timedelta(seconds=delay))
        meta[config.id] = entry
        self._save_meta()
        logger.info(f"Backing off {config.id} for {delay:.0f}s after error: {message}")

    def mark_fetched(self, config: SeriesConfig, last_data_date: str | None) -> None:
        """Record a successful fetch and clear any error state."""
        meta = self._load_meta()
        meta[config.id] = SeriesCacheMeta(
            provider=config.provider,
            last_fetched=format_timestamp(self._clock()),
            last_data_date=last_data_date,
        )
        self._save_meta()

    # ------------------------------------------------------------------
    # Series files
    # ------------------------------------------------------------------

    def _parse(self, config: SeriesConfig, path: Path) -> list[DataPoint]:
        """
        Parse a cache file, skipping malformed rows.

        Undecodable bytes are replaced so only the row holding them fails to
        parse.

        Raises:
            StorageError: the file can't be read or lacks the value column
        """
        try:
            df = pd.read_csv(
                path,
                dtype=str,
                keep_default_na=False,
                on_bad_lines="skip",
                encoding="utf-8",
                encoding_errors="replace",
            )
        except pd.errors.EmptyDataError:
            return []
        except (OSError, ValueError) as e:
            raise StorageError(f"Failed to read cache file for {config.id}: {e}") from e

        if len(df.columns) < 2 or config.value_column not in df.columns[1:]:
            raise StorageError(
                f'Column "{config.value_column}" not found in headers: '
                f"{', '.join(df.columns[1:])} ({path})"
            )
        if df.empty:
            return []

        dates = pd.to_datetime(df.iloc[:, 0].str.strip(), errors="coerce", utc=True, format="ISO8601")
        values = pd.to_numeric(df[config.value_column], errors="coerce")
        frame = pd.DataFrame({"date": dates, "value": values}).dropna()
        if frame.empty:
            return []

        frame["date"] = frame["date"].dt.strftime("%Y-%m-%d")
        frame = frame.drop_duplicates(subset="date", keep="last").sort_values("date")
        return [
            DataPoint(date=d, value=float(v))
            for d, v in zip(frame["date"], frame["value"])
        ]

    def read(self, config: SeriesConfig) -> list[DataPoint]:
        """
        Load a series from its CSV file.

        Returns:
            Points sorted by date with unique dates. Empty if the file is
            missing or unreadable; malformed rows are skipped.
        """
        path = self.path_for(config)
        if not path.exists():
            logger.debug(f"No cache file for {config.id} at {path}")
            return []

        try:
            return self._parse(config, path)
        except StorageError as e:
            logger.error(str(e))
            return []

    def _read_for_write(self, config: SeriesConfig) -> list[DataPoint]:
        """Existing points to merge into; an unreadable file aborts the write."""
        path = self.path_for(config)
        if not path.exists():
            return []
        return self._parse(config, path)

    def _write(self, config: SeriesConfig, points: list[DataPoint]) -> None:
        lines = [f",{config.value_column}"]
        lines.extend(f"{p.date},{format_value(p.value)}" for p in points)
        try:
            _atomic_write(self.path_for(config), "\n".join(lines) + "\n")
        except OSError as e:
            raise StorageError(f"Failed to write cache file for {config.id}: {e}") from e

    def _lock(self, config: SeriesConfig) -> DirectoryLock:
        return DirectoryLock(self.path_for(config), max_wait=self._lock_wait)

    async def merge_append(self, config: SeriesConfig, new_points: list[DataPoint]) -> list[DataPoint]:
        """
        Merge new observations into the cached series.

        Existing values are replaced by incoming ones on the same date.

        Returns:
            The full merged series as written
        """
        async with self._lock(config):
            merged = merge_points(self._read_for_write(config), new_points)
            self._write(config, merged)
            self.mark_fetched(config, merged[-1].date if merged else None)
        logger.info(f"Merged {len(new_points)} points into {config.id} ({len(merged)} total)")
        return merged

    async def rewrite(self, config: SeriesConfig, all_points: list[DataPoint]) -> list[DataPoint]:
        """Replace the cached series with a full history."""
        points = merge_points([], all_points)
        async with self._lock(config):
            self._write(config, points)
            self.mark_fetched(config, points[-1].date if points else None)
        logger.info(f"Rewrote {config.id} with {len(points)} points")
        return points

    async def clear(self, config: SeriesConfig) -> None:
        """Delete the cached file and fetch state for a series."""
        path = self.path_for(config)
        async with self._lock(config):
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                raise StorageError(f"Failed to delete cache file for {config.id}: {e}") from e
            if self._load_meta().pop(config.id, None) is not None:
                self._save_meta()
        logger.info(f"Cleared cache for {config.id}")

    def get_cache_status(self, configs: Iterable[SeriesConfig]) -> dict[str, dict]:
        """Get status of cached data for each series."""
        status = {}
        for config in configs:
            points = self.read(config)
            meta = self.get_meta(config.id)
            status[config.id] = {
                "title": config.title,
                "observation_count": len(points),
                "first_date": points[0].date if points else None,
                "last_date": points[-1].date if points else None,
                "last_fetched": meta.last_fetched if meta else None,
                "last_error": meta.last_error if meta else None,
                "backoff_until": meta.backoff_until if meta else None,
            }
        return status
