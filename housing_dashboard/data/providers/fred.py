"""FRED API provider with incremental (delta) fetches."""

import logging
from datetime import date, timedelta

import httpx
import pandas as pd

from housing_dashboard.config import Settings
from housing_dashboard.data.providers.base import DataProvider
from housing_dashboard.errors import ProviderUnavailable
from housing_dashboard.models.series import DataPoint, SeriesValidation


logger = logging.getLogger(__name__)

# Full-history fetches start here
DEFAULT_START = "2015-01-01"


class FredProvider(DataProvider):
    """Fetches observations from the FRED API."""

    name = "fred"
    supports_incremental = True
    supports_validation = True

    BASE_URL = "https://api.stlouisfed.org/fred"

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-initialize HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.settings.http_timeout,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def aclose(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _get(self, endpoint: str, params: dict) -> httpx.Response:
        if not self.settings.fred_api_key:
            raise ProviderUnavailable("FRED_API_KEY environment variable is not set")

        params = {**params, "api_key": self.settings.fred_api_key, "file_type": "json"}
        try:
            return await self.client.get(f"{self.BASE_URL}/{endpoint}", params=params)
        except httpx.HTTPError as e:
            raise ProviderUnavailable(f"FRED API request failed: {e}") from e

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.status_code == 429:
            raise ProviderUnavailable("FRED API rate limit exceeded")
        if response.is_error:
            raise ProviderUnavailable(
                f"FRED API error: {response.status_code} {response.reason_phrase}"
            )

    async def fetch_series(self, source_id: str, since: str | None = None) -> list[DataPoint]:
        # Start the day after the last cached date to avoid re-fetching it
        start = (date.fromisoformat(since) + timedelta(days=1)).isoformat() if since else DEFAULT_START

        response = await self._get(
            "series/observations",
            {"series_id": source_id, "observation_start": start},
        )
        self._raise_for_status(response)

        try:
            observations = response.json().get("observations") or []
        except ValueError as e:
            raise ProviderUnavailable(f"FRED API returned invalid JSON: {e}") from e

        logger.info(f"FRED {source_id}: {len(observations)} observations from {start}")
        if not observations:
            return []

        # FRED marks missing values with "."
        df = pd.DataFrame(observations)
        df["date"] = pd.to_datetime(df["date"], errors="coerce", utc=True)
        df["value"] = pd.to_numeric(df["value"], errors="coerce")
        df = df[["date", "value"]].dropna().sort_values("date")

        return [
            DataPoint(date=ts.strftime("%Y-%m-%d"), value=float(val))
            for ts, val in zip(df["date"], df["value"])
        ]

    async def validate_series(self, source_id: str) -> SeriesValidation:
        """Look up series metadata; unknown ids come back as invalid."""
        response = await self._get("series", {"series_id": source_id})

        if response.status_code in (400, 404):
            return SeriesValidation(is_valid=False, error=f"Series not found: {source_id}")
        self._raise_for_status(response)

        try:
            seriess = response.json().get("seriess") or []
        except ValueError as e:
            raise ProviderUnavailable(f"FRED API returned invalid JSON: {e}") from e

        if not seriess:
            return SeriesValidation(is_valid=False, error=f"Series not found: {source_id}")

        info = seriess[0]
        return SeriesValidation(
            is_valid=True,
            title=info.get("title", ""),
            frequency=info.get("frequency", ""),
            units=info.get("units", ""),
        )
