"""Data models for cached series."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Literal


Frequency = Literal["daily", "weekly", "monthly", "quarterly"]
ValidationStatus = Literal["pending", "valid", "invalid"]

CUSTOM_PREFIX = "custom:"


@dataclass(frozen=True)
class DataPoint:
    """Single observation of a series."""

    date: str  # YYYY-MM-DD, UTC
    value: float

    def to_dict(self) -> dict:
        return {"date": self.date, "value": self.value}


@dataclass(frozen=True)
class SeriesConfig:
    """Everything needed to fetch, cache and display one series."""

    id: str
    provider: str
    source_id: str
    frequency: Frequency
    stale_after_hours: float
    cache_file: str  # relative to the data directory
    title: str
    description: str
    unit: str
    value_column: str


@dataclass
class SeriesCacheMeta:
    """Persisted fetch state for a series."""

    provider: str
    last_fetched: str | None = None
    last_data_date: str | None = None
    last_error: str | None = None
    backoff_until: str | None = None
    backoff_seconds: float | None = None

    @classmethod
    def from_dict(cls, raw: dict) -> "SeriesCacheMeta":
        return cls(
            provider=raw.get("provider", ""),
            last_fetched=raw.get("lastFetched") or None,
            last_data_date=raw.get("lastDataDate") or None,
            last_error=raw.get("lastError"),
            backoff_until=raw.get("backoffUntil"),
            backoff_seconds=raw.get("backoffSeconds"),
        )

    def to_dict(self) -> dict:
        out = {
            "provider": self.provider,
            "lastFetched": self.last_fetched,
            "lastDataDate": self.last_data_date or "",
        }
        # Optional keys are omitted rather than written as null
        if self.last_error is not None:
            out["lastError"] = self.last_error
        if self.backoff_until is not None:
            out["backoffUntil"] = self.backoff_until
        if self.backoff_seconds is not None:
            out["backoffSeconds"] = self.backoff_seconds
        return out


@dataclass
class CustomSource:
    """User-defined series stored in the custom-source database."""

    source_id: str  # uuid
    provider: str
    provider_source_id: str
    title: str
    unit: str
    description: str | None = None
    frequency: Frequency = "monthly"
    stale_after_hours: float = 24
    validation_status: ValidationStatus = "pending"
    last_validation_error: str | None = None
    last_validated_at: str | None = None
    provider_title: str | None = None
    provider_units: str | None = None
    provider_frequency: str | None = None


@dataclass
class SeriesValidation:
    """Outcome of checking a provider series id upstream."""

    is_valid: bool
    title: str | None = None
    frequency: str | None = None
    units: str | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        if not self.is_valid:
            return {"isValid": False, "error": self.error}
        return {
            "isValid": True,
            "series": {
                "title": self.title,
                "frequency": self.frequency,
                "units": self.units,
            },
        }


@dataclass
class SeriesResponse:
    """Result of the read path: available data plus refresh state."""

    config: SeriesConfig
    data: list[DataPoint]
    meta: SeriesCacheMeta | None = None
    is_refreshing: bool = False

    def to_dict(self) -> dict:
        meta = self.meta
        return {
            "series": self.config.id,
            "meta": {
                "id": self.config.id,
                "title": self.config.title,
                "description": self.config.description,
                "unit": self.config.unit,
                "provider": self.config.provider,
                "frequency": self.config.frequency,
                "lastFetched": meta.last_fetched if meta else None,
                "lastDataDate": meta.last_data_date if meta else None,
                "lastError": meta.last_error if meta else None,
                "isRefreshing": self.is_refreshing,
            },
            "data": [point.to_dict() for point in self.data],
        }


def is_custom_series(series_id: str) -> bool:
    return series_id.startswith(CUSTOM_PREFIX)


def custom_series_id(uuid: str) -> str:
    return f"{CUSTOM_PREFIX}{uuid}"


def extract_custom_uuid(series_id: str) -> str:
    return series_id[len(CUSTOM_PREFIX):]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a Z suffix."""
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def parse_timestamp(raw: str) -> datetime:
    dt = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def format_value(value: float) -> str:
    """Shortest decimal text for a value: 7.0 -> "7", 6.25 -> "6.25"."""
    value = float(value)
    if value.is_integer() and abs(value) < 1e16:
        return str(int(value))
    return repr(value)
