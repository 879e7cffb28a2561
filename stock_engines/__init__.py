"""
Module: stock_engines
Responsibility:
    Package entrypoint re-exporting the pure statistics engines and the
    insight builders.  This is the import surface for stock_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import stock_kernel for logging and enum vocabulary only.
    MUST NOT import stock_services or stock_config.

Invariants enforced:
    - Purity: engines never read the clock.  Dates are passed in.
    - Determinism: identical inputs always produce identical outputs.
    - Money stays Decimal (classification, pricing, replenishment cost);
      demand statistics are floats.

Failure modes:
    - ValueError propagated from individual engines on invalid input.

Usage:
    from stock_engines import calculate_trend, detect_anomalies, classify_abc
"""

from stock_engines.anomaly import (
    Anomaly,
    AnomalySeverity,
    AnomalyType,
    Sensitivity,
    detect_anomalies,
    threshold_for,
)
from stock_engines.classification import (
    AbcClass,
    AbcClassification,
    AbcItem,
    AbcSummary,
    classify_abc,
    summarize_abc,
)
from stock_engines.forecasting import (
    SeasonalityResult,
    TrendDirection,
    TrendResult,
    calculate_confidence,
    calculate_trend,
    detect_seasonality,
    forecast_demand,
    moving_average,
    period_change_percent,
)
from stock_engines.insight_builder import InsightDraft
from stock_engines.pricing import PriceOptimization, PriceScenario, optimize_price
from stock_engines.replenishment import (
    ReorderSuggestion,
    ReorderUrgency,
    calculate_eoq,
    calculate_reorder_point,
    suggest_reorder,
)
from stock_engines.tracer import traced_engine

__all__ = [
    "AbcClass",
    "AbcClassification",
    "AbcItem",
    "AbcSummary",
    "Anomaly",
    "AnomalySeverity",
    "AnomalyType",
    "InsightDraft",
    "PriceOptimization",
    "PriceScenario",
    "ReorderSuggestion",
    "ReorderUrgency",
    "SeasonalityResult",
    "Sensitivity",
    "TrendDirection",
    "TrendResult",
    "calculate_confidence",
    "calculate_eoq",
    "calculate_reorder_point",
    "calculate_trend",
    "classify_abc",
    "detect_anomalies",
    "detect_seasonality",
    "forecast_demand",
    "moving_average",
    "optimize_price",
    "period_change_percent",
    "suggest_reorder",
    "summarize_abc",
    "threshold_for",
    "traced_engine",
]
