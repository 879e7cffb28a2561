"""
stock_engines.insight_builder -- Engine results to InsightDraft value objects.

Responsibility:
    Phrase forecasting, replenishment, trend, anomaly and pricing results
    as advisory drafts: title, description, confidence, priority, the
    entities they concern and a JSON-safe payload.  InsightService
    persists drafts; nothing here touches the database.

Architecture position:
    Engines -- pure, zero I/O.  Dates are passed in by the caller.

Invariants enforced:
    - confidence is clamped to [0, 1].
    - payload contains only JSON-native values (str, int, float, bool,
      None, lists, dicts).  Decimals become strings (money rounded
      to cents) and dates ISO strings.
    - Each payload has exactly one top-level key naming its body:
      forecast, reorder_suggestion, trend_analysis, anomaly or
      price_optimization.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from uuid import UUID

from stock_engines.anomaly import Anomaly, AnomalySeverity
from stock_engines.forecasting import SeasonalityResult, TrendDirection, TrendResult
from stock_engines.pricing import PriceOptimization
from stock_engines.replenishment import ReorderSuggestion, ReorderUrgency
from stock_kernel.models.insight import InsightPriority, InsightType

REORDER_CONFIDENCE = 0.8
TREND_CONFIDENCE = 0.7
PRICE_CONFIDENCE = 0.6

# Forecast confidence above this is high priority
HIGH_FORECAST_CONFIDENCE = 0.7
# |change| above this percentage is a high priority trend
HIGH_TREND_CHANGE_PERCENT = 20.0
# Revenue gain above this percentage is a medium priority price suggestion
MEDIUM_PRICE_GAIN_PERCENT = Decimal("5")

_CENTS = Decimal("0.01")

_URGENCY_PRIORITY = {
    ReorderUrgency.HIGH: InsightPriority.CRITICAL,
    ReorderUrgency.MEDIUM: InsightPriority.HIGH,
    ReorderUrgency.LOW: InsightPriority.MEDIUM,
}


@dataclass(frozen=True)
class InsightDraft:
    insight_type: InsightType
    title: str
    description: str
    confidence: float
    priority: InsightPriority
    payload: dict[str, Any]
    product_ids: tuple[UUID, ...] = ()
    category_ids: tuple[UUID, ...] = ()
    supplier_ids: tuple[UUID, ...] = ()
    actionable: bool = True
    impact: float | None = None

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            object.__setattr__(self, "confidence", min(1.0, max(0.0, self.confidence)))


def _money(amount: Decimal) -> str:
    return str(Decimal(amount).quantize(_CENTS, rounding=ROUND_HALF_UP))


def _ids(*ids: UUID | None) -> tuple[UUID, ...]:
    return tuple(i for i in ids if i is not None)


def forecast_draft(
    product_id: UUID,
    product_name: str,
    forecast: list[float],
    confidence: float,
    trend: TrendResult,
    seasonality: SeasonalityResult,
    start_date: date,
    recent_average: float | None = None,
) -> InsightDraft:
    """One prediction per day starting the day after ``start_date``."""
    predicted = round(sum(forecast))
    periods = len(forecast)
    predictions = [
        {
            "date": (start_date + timedelta(days=offset + 1)).isoformat(),
            "value": round(value),
            "confidence": confidence,
        }
        for offset, value in enumerate(forecast)
    ]
    return InsightDraft(
        insight_type=InsightType.DEMAND_FORECAST,
        title=f"Demand Forecast for {product_name}",
        description=(
            f"Predicted demand of {predicted} units over {periods}d "
            f"with {round(confidence * 100)}% confidence"
        ),
        confidence=confidence,
        priority=(
            InsightPriority.HIGH
            if confidence > HIGH_FORECAST_CONFIDENCE
            else InsightPriority.MEDIUM
        ),
        product_ids=(product_id,),
        payload={
            "forecast": {
                "period": f"{periods}d",
                "predicted_demand": predicted,
                "trend": trend.direction.value,
                "slope": trend.slope,
                "seasonal": seasonality.seasonal,
                "seasonal_factor": seasonality.factor,
                "predictions": predictions,
                "recent_average": (
                    round(recent_average, 2) if recent_average is not None else None
                ),
            }
        },
    )


def reorder_draft(
    product_id: UUID,
    product_name: str,
    current_stock: int,
    suggestion: ReorderSuggestion,
    today: date,
    supplier_id: UUID | None = None,
    category_id: UUID | None = None,
    reorder_point: int | None = None,
    economic_order_quantity: float | None = None,
) -> InsightDraft:
    """
    ``reorder_point`` and ``economic_order_quantity`` are carried in the
    payload when the caller computed them.
    """
    stockout = today + timedelta(days=suggestion.days_until_stockout)
    return InsightDraft(
        insight_type=InsightType.REORDER_SUGGESTION,
        title=f"Reorder Suggestion: {product_name}",
        description=(
            f"Suggest ordering {suggestion.suggested_quantity} units. "
            f"Current stock: {current_stock}, urgency: {suggestion.urgency.value}"
        ),
        confidence=REORDER_CONFIDENCE,
        priority=_URGENCY_PRIORITY[suggestion.urgency],
        product_ids=(product_id,),
        category_ids=_ids(category_id),
        supplier_ids=_ids(supplier_id),
        payload={
            "reorder_suggestion": {
                "suggested_quantity": suggestion.suggested_quantity,
                "urgency": suggestion.urgency.value,
                "safety_stock": suggestion.safety_stock,
                "daily_usage": suggestion.daily_usage,
                "lead_time": suggestion.lead_time_days,
                "estimated_stockout_date": stockout.isoformat(),
                "estimated_cost": _money(suggestion.estimated_cost),
                "reorder_point": reorder_point,
                "economic_order_quantity": (
                    round(economic_order_quantity, 2)
                    if economic_order_quantity is not None
                    else None
                ),
            }
        },
    )


def trend_draft(
    product_id: UUID,
    product_name: str,
    trend: TrendResult,
    change_percent: float,
    seasonality: SeasonalityResult,
    period_days: int,
    category_id: UUID | None = None,
) -> InsightDraft:
    if trend.direction is TrendDirection.INCREASING:
        label = "Upward"
    elif trend.direction is TrendDirection.DECREASING:
        label = "Downward"
    else:
        label = "Flat"
    return InsightDraft(
        insight_type=InsightType.TREND_ANALYSIS,
        title=f"Sales Trend: {product_name}",
        description=f"{label} trend detected with {abs(change_percent):.1f}% change",
        confidence=TREND_CONFIDENCE,
        priority=(
            InsightPriority.HIGH
            if abs(change_percent) > HIGH_TREND_CHANGE_PERCENT
            else InsightPriority.MEDIUM
        ),
        product_ids=(product_id,),
        category_ids=_ids(category_id),
        actionable=trend.direction is not TrendDirection.STABLE,
        payload={
            "trend_analysis": {
                "trend": trend.direction.value,
                "slope": trend.slope,
                "change_percent": round(change_percent, 2),
                "period": f"{period_days}d",
                "seasonal_pattern": seasonality.seasonal,
            }
        },
    )


def anomaly_draft(
    product_id: UUID,
    product_name: str,
    anomaly: Anomaly,
    movement_type: str,
) -> InsightDraft:
    return InsightDraft(
        insight_type=InsightType.ANOMALY_DETECTION,
        title=f"Anomaly Detected: {product_name}",
        description=(
            f"Unusual {movement_type} movement of {round(anomaly.value)} units detected"
        ),
        confidence=anomaly.confidence,
        priority=(
            InsightPriority.HIGH
            if anomaly.severity is AnomalySeverity.HIGH
            else InsightPriority.MEDIUM
        ),
        product_ids=(product_id,),
        payload={
            "anomaly": {
                "detected_value": anomaly.value,
                "expected_value": anomaly.expected_value,
                "z_score": anomaly.z_score,
                "deviation": anomaly.deviation,
                "anomaly_type": anomaly.anomaly_type.value,
                "movement_type": movement_type,
            }
        },
    )


def price_draft(
    product_id: UUID,
    product_name: str,
    optimization: PriceOptimization,
) -> InsightDraft:
    best = optimization.best
    direction = "Raise" if best.price_change > 0 else "Lower"
    return InsightDraft(
        insight_type=InsightType.PRICE_OPTIMIZATION,
        title=f"Price Optimization: {product_name}",
        description=(
            f"{direction} price from {optimization.current_price} to {best.new_price} "
            f"for an estimated {best.revenue_change_percent}% revenue change"
        ),
        confidence=PRICE_CONFIDENCE,
        priority=(
            InsightPriority.MEDIUM
            if best.revenue_change_percent > MEDIUM_PRICE_GAIN_PERCENT
            else InsightPriority.LOW
        ),
        product_ids=(product_id,),
        impact=float(best.revenue_change_percent),
        payload={
            "price_optimization": {
                "current_price": _money(optimization.current_price),
                "suggested_price": str(best.new_price),
                "price_change": str(best.price_change),
                "expected_demand": best.new_demand,
                "expected_revenue": str(best.revenue),
                "revenue_change_percent": str(best.revenue_change_percent),
            }
        },
    )
