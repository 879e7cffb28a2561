"""
stock_services -- Insight generation and analytics.

Architecture position:
    Services -- stateful orchestration over engines + kernel + config.
    May import from stock_kernel, stock_engines and stock_config.  Nothing
    below this layer imports from it.
"""

from stock_services.analytics_service import AnalyticsService
from stock_services.insight_service import InsightService

__all__ = ["AnalyticsService", "InsightService"]
