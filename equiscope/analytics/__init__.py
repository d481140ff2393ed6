"""Derived race analytics (charts) computed from runners' form and history."""

from equiscope.analytics.engine import RaceAnalyticsService, compute_chart_bundle

__all__ = ["RaceAnalyticsService", "compute_chart_bundle"]
