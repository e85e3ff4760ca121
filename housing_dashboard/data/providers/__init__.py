"""Upstream data providers."""

from housing_dashboard.data.providers.base import DataProvider
from housing_dashboard.data.providers.fred import FredProvider
from housing_dashboard.errors import ProviderNotFound


class ProviderRegistry:
    """Maps provider names (as stored in series configs) to providers."""

    def __init__(self, providers: list[DataProvider] | None = None) -> None:
        self._providers: dict[str, DataProvider] = {}
        for provider in providers or []:
            self.register(provider)

    def register(self, provider: DataProvider) -> None:
        self._providers[provider.name] = provider

    def get(self, name: str) -> DataProvider:
        try:
            return self._providers[name]
        except KeyError:
            raise ProviderNotFound(f"Unknown provider: {name}") from None

    async def aclose(self) -> None:
        for provider in self._providers.values():
            await provider.aclose()


__all__ = ["DataProvider", "FredProvider", "ProviderRegistry"]
