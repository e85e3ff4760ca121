"""Exceptions raised by the cache and refresh layer."""


class DashboardError(Exception):
    """Base class for dashboard data errors."""


class ProviderUnavailable(DashboardError):
    """Upstream provider is unreachable, misconfigured or rate-limited."""


class ProviderNotFound(DashboardError):
    """No provider is registered under the requested name."""


class SeriesNotFound(DashboardError):
    """The series id has no valid configuration."""


class StorageError(DashboardError):
    """Writing a cache or metadata file failed."""


class LockTimeout(DashboardError):
    """A cache file lock was held longer than the wait limit."""


class RateLimited(DashboardError):
    """Too many validation calls in the current window."""


class DuplicateSource(DashboardError):
    """A custom source for this provider series already exists."""
