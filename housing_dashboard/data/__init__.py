"""Data fetching and caching."""

from .cache import CacheStore
from .memory_cache import MemoryCache
from .refresh import RefreshCoordinator
from .registry import SeriesRegistry

__all__ = ["CacheStore", "MemoryCache", "RefreshCoordinator", "SeriesRegistry"]
