"""Configuration settings for the dashboard."""

from dataclasses import dataclass, field
from pathlib import Path
import os

from dotenv import load_dotenv


load_dotenv()


# Built-in series: id -> FRED source id, frequency, staleness and display info.
# Cache files live under <data_dir>/fred/.
BUILT_IN_SERIES: dict[str, dict] = {
    # Affordability
    "mortgage_rates": {
        "source_id": "MORTGAGE30US",
        "frequency": "weekly",
        "stale_after_hours": 24,
        "title": "30-Year Mortgage Rate",
        "description": "Weekly average 30-year fixed mortgage rate",
        "unit": "%",
        "value_column": "rate",
    },
    "interest_rates": {
        "source_id": "FEDFUNDS",
        "frequency": "monthly",
        "stale_after_hours": 24,
        "title": "Federal Funds Rate",
        "description": "Federal Reserve interest rate target",
        "unit": "%",
        "value_column": "rate",
    },
    "housing_prices_case_shiller": {
        "source_id": "CSUSHPINSA",
        "frequency": "monthly",
        "stale_after_hours": 72,
        "title": "Case-Shiller Home Prices",
        "description": "S&P/Case-Shiller U.S. National Home Price Index",
        "unit": "Index",
        "value_column": "index",
    },
    "housing_affordability": {
        "source_id": "FIXHAI",
        "frequency": "monthly",
        "stale_after_hours": 72,
        "title": "Housing Affordability Index",
        "description": "NAR Housing Affordability Index",
        "unit": "Index",
        "value_column": "index",
    },
    "customs_duties": {
        "source_id": "B235RC1Q027SBEA",
        "frequency": "quarterly",
        "stale_after_hours": 168,
        "title": "Customs Duties (Tariffs)",
        "description": "Federal tariff revenue collections",
        "unit": "B$",
        "value_column": "receipts",
    },
    # Liquidity
    "housing_starts": {
        "source_id": "HOUST",
        "frequency": "monthly",
        "stale_after_hours": 72,
        "title": "Housing Starts",
        "description": "Total new residential construction starts",
        "unit": "K",
        "value_column": "starts",
    },
    "housing_starts_single_family": {
        "source_id": "HOUST1F",
        "frequency": "monthly",
        "stale_after_hours": 72,
        "title": "Single-Family Starts",
        "description": "Single-family residential construction starts",
        "unit": "K",
        "value_column": "starts",
    },
    "building_permits": {
        "source_id": "PERMIT",
        "frequency": "monthly",
        "stale_after_hours": 72,
        "title": "Building Permits",
        "description": "New residential building permits issued",
        "unit": "K",
        "value_column": "permits",
    },
    "existing_home_sales": {
        "source_id": "EXHOSLUSM495S",
        "frequency": "monthly",
        "stale_after_hours": 72,
        "title": "Existing Home Sales",
        "description": "Existing home sales, seasonally adjusted annual rate",
        "unit": "M",
        "value_column": "sales",
    },
    # Macro backdrop
    "unemployment_rate": {
        "source_id": "UNRATE",
        "frequency": "monthly",
        "stale_after_hours": 72,
        "title": "Unemployment Rate",
        "description": "Civilian unemployment rate",
        "unit": "%",
        "value_column": "rate",
    },
    "nonfarm_payrolls": {
        "source_id": "PAYEMS",
        "frequency": "monthly",
        "stale_after_hours": 72,
        "title": "Nonfarm Payrolls",
        "description": "Total nonfarm employment",
        "unit": "K",
        "value_column": "employment",
    },
    "economic_policy_uncertainty": {
        "source_id": "USEPUINDXD",
        "frequency": "daily",
        "stale_after_hours": 12,
        "title": "Economic Policy Uncertainty",
        "description": "Daily news-based economic policy uncertainty index",
        "unit": "Index",
        "value_column": "index",
    },
    "trade_policy_uncertainty": {
        "source_id": "EPUTRADE",
        "frequency": "monthly",
        "stale_after_hours": 72,
        "title": "Trade Policy Uncertainty",
        "description": "Categorical policy uncertainty: trade policy",
        "unit": "Index",
        "value_column": "index",
    },
    "vix": {
        "source_id": "VIXCLS",
        "frequency": "daily",
        "stale_after_hours": 12,
        "title": "VIX",
        "description": "CBOE Volatility Index close",
        "unit": "Index",
        "value_column": "vix",
    },
}


@dataclass
class Settings:
    """Application settings."""

    fred_api_key: str = field(default_factory=lambda: os.getenv("FRED_API_KEY", ""))
    data_dir: Path = field(
        default_factory=lambda: Path(
            os.getenv("DASHBOARD_DATA_DIR", Path(__file__).parent.parent.parent / "data")
        )
    )
    min_date: str = field(
        default_factory=lambda: os.getenv("DASHBOARD_MIN_DATE", "2015-01-01")
    )
    memory_ttl_seconds: float = field(
        default_factory=lambda: float(os.getenv("DASHBOARD_MEMORY_TTL_SECONDS", "300"))
    )
    http_timeout: float = field(
        default_factory=lambda: float(os.getenv("DASHBOARD_HTTP_TIMEOUT", "30"))
    )
    meta_path: Path = field(init=False)
    sources_db_path: Path = field(init=False)

    def __post_init__(self) -> None:
        self.data_dir = Path(self.data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.meta_path = self.data_dir / "cache-meta.json"
        self.sources_db_path = self.data_dir / "custom_sources.db"

    def validate(self) -> None:
        """Validate required settings."""
        if not self.fred_api_key:
            raise ValueError(
                "FRED_API_KEY not set. Get one at: "
                "https://fred.stlouisfed.org/docs/api/api_key.html"
            )

    def has_fred_key(self) -> bool:
        """Check if a FRED API key is configured."""
        return bool(self.fred_api_key)
