"""Application configuration."""

from .settings import Settings, BUILT_IN_SERIES

__all__ = ["Settings", "BUILT_IN_SERIES"]
