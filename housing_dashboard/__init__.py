"""Cached economic and housing series for the dashboard."""

from housing_dashboard.context import DashboardContext, build_context

__all__ = ["DashboardContext", "build_context"]
