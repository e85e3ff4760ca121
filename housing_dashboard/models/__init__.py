"""Series data models."""

from .series import (
    CustomSource,
    DataPoint,
    SeriesCacheMeta,
    SeriesConfig,
    SeriesResponse,
    SeriesValidation,
)

__all__ = [
    "CustomSource",
    "DataPoint",
    "SeriesCacheMeta",
    "SeriesConfig",
    "SeriesResponse",
    "SeriesValidation",
]
