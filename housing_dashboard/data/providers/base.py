"""Interface for upstream series providers."""

from abc import ABC, abstractmethod

from housing_dashboard.models.series import DataPoint, SeriesValidation


class DataProvider(ABC):
    """Fetches observations for a provider-specific source id."""

    name: str
    # False means the provider always returns full history; callers then
    # rewrite the cache file instead of merging into it.
    supports_incremental: bool = False
    # Only providers that set this can back user-defined custom sources.
    supports_validation: bool = False

    @abstractmethod
    async def fetch_series(self, source_id: str, since: str | None = None) -> list[DataPoint]:
        """
        Fetch observations for a series.

        Args:
            source_id: Provider-specific id (e.g. "MORTGAGE30US")
            since: Last date already cached; only later points are requested

        Returns:
            Points sorted by date. Empty when there is nothing new.

        Raises:
            ProviderUnavailable: upstream unreachable or rate-limited
        """
        ...

    async def validate_series(self, source_id: str) -> SeriesValidation:
        """Check that a source id exists upstream. Required when ``supports_validation`` is set."""
        raise NotImplementedError(f"{self.name} does not support validation")

    async def aclose(self) -> None:
        """Release network resources."""
