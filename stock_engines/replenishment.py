"""
stock_engines.replenishment -- Reorder point, EOQ and reorder suggestions.

Responsibility:
    Turn a demand rate and stock thresholds into replenishment numbers:
    the reorder point with a service-level safety stock, the economic
    order quantity, and a concrete suggestion (quantity, urgency, days
    until stockout) for a product at or below its minimum.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumed by stock_services.insight_service.

Invariants enforced:
    - Service-level z-scores are fixed: 0.90 -> 1.28, 0.95 -> 1.65,
      0.99 -> 2.33; any other level uses 1.65.
    - Quantities returned are whole units, rounded up.
    - estimated_cost stays Decimal (suggested quantity x unit cost).

Failure modes:
    - ValueError for negative demand, lead time or stock inputs, and for a
      non-positive unit cost or holding rate in calculate_eoq.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from stock_engines.tracer import traced_engine
from stock_kernel.logging_config import get_logger

logger = get_logger("engines.replenishment")

DEFAULT_LEAD_TIME_DAYS = 7
DEFAULT_SERVICE_LEVEL = 0.95
DEFAULT_ORDERING_COST = 50.0
DEFAULT_HOLDING_COST_RATE = 0.25
DEFAULT_HISTORY_DAYS = 90

SERVICE_LEVEL_Z_SCORES: dict[float, float] = {
    0.90: 1.28,
    0.95: 1.65,
    0.99: 2.33,
}
DEFAULT_Z_SCORE = 1.65

# Demand variability assumed as a share of average demand
DEMAND_VARIABILITY = 0.2
SAFETY_STOCK_FACTOR = 1.5
# Days until stockout reported when there is no usage to extrapolate
NO_USAGE_STOCKOUT_DAYS = 30


class ReorderUrgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class ReorderSuggestion:
    suggested_quantity: int
    urgency: ReorderUrgency
    safety_stock: int
    daily_usage: float
    days_until_stockout: int
    lead_time_days: int
    estimated_cost: Decimal


def z_score(service_level: float) -> float:
    return SERVICE_LEVEL_Z_SCORES.get(service_level, DEFAULT_Z_SCORE)


@traced_engine(
    "replenishment.reorder_point",
    "1.0",
    fingerprint_fields=("average_demand", "lead_time_days", "service_level"),
)
def calculate_reorder_point(
    average_demand: float,
    lead_time_days: int = DEFAULT_LEAD_TIME_DAYS,
    service_level: float = DEFAULT_SERVICE_LEVEL,
) -> int:
    """
    ceil(d * L + z * 0.2 * d * sqrt(L)) for average daily demand d and
    lead time L days.
    """
    if average_demand < 0:
        raise ValueError(f"average_demand must be non-negative (got {average_demand})")
    if lead_time_days < 0:
        raise ValueError(f"lead_time_days must be non-negative (got {lead_time_days})")

    safety_stock = (
        z_score(service_level) * DEMAND_VARIABILITY * average_demand * math.sqrt(lead_time_days)
    )
    return math.ceil(average_demand * lead_time_days + safety_stock)


@traced_engine(
    "replenishment.eoq",
    "1.0",
    fingerprint_fields=("annual_demand", "ordering_cost", "holding_cost_rate", "unit_cost"),
)
def calculate_eoq(
    annual_demand: float,
    ordering_cost: float = DEFAULT_ORDERING_COST,
    holding_cost_rate: float = DEFAULT_HOLDING_COST_RATE,
    unit_cost: float = 1.0,
) -> float:
    """Economic order quantity: sqrt(2 * D * S / (unit_cost * holding_rate))."""
    if annual_demand < 0:
        raise ValueError(f"annual_demand must be non-negative (got {annual_demand})")
    if unit_cost <= 0 or holding_cost_rate <= 0:
        raise ValueError("unit_cost and holding_cost_rate must be positive")
    return math.sqrt(2 * annual_demand * ordering_cost / (unit_cost * holding_cost_rate))


def classify_urgency(current_stock: int, min_stock: int) -> ReorderUrgency:
    if current_stock == 0:
        return ReorderUrgency.HIGH
    if current_stock <= min_stock * 0.5:
        return ReorderUrgency.MEDIUM
    return ReorderUrgency.LOW


@traced_engine(
    "replenishment.suggest_reorder",
    "1.0",
    fingerprint_fields=("current_stock", "min_stock", "max_stock", "total_sold", "lead_time_days"),
)
def suggest_reorder(
    current_stock: int,
    min_stock: int,
    max_stock: int,
    total_sold: int,
    lead_time_days: int = DEFAULT_LEAD_TIME_DAYS,
    history_days: int = DEFAULT_HISTORY_DAYS,
    unit_cost: Decimal = Decimal("0"),
) -> ReorderSuggestion:
    """
    Suggest how much to reorder and how urgently.

    Daily usage is total_sold spread over ``history_days``.  Safety stock
    is ceil(usage * lead time * 1.5).  The suggested quantity is the
    larger of (min - current + safety) and ceil((max - current) / 2),
    never negative.  Days until stockout is floor(current / usage), or 30
    when there is no usage.
    """
    if current_stock < 0 or total_sold < 0:
        raise ValueError("current_stock and total_sold must be non-negative")
    if lead_time_days < 0:
        raise ValueError(f"lead_time_days must be non-negative (got {lead_time_days})")
    if history_days <= 0:
        raise ValueError(f"history_days must be positive (got {history_days})")

    daily_usage = total_sold / history_days
    safety_stock = math.ceil(daily_usage * lead_time_days * SAFETY_STOCK_FACTOR)
    suggested = max(
        min_stock - current_stock + safety_stock,
        math.ceil((max_stock - current_stock) / 2),
        0,
    )
    if daily_usage > 0:
        days_until_stockout = math.floor(current_stock / daily_usage)
    else:
        days_until_stockout = NO_USAGE_STOCKOUT_DAYS

    return ReorderSuggestion(
        suggested_quantity=suggested,
        urgency=classify_urgency(current_stock, min_stock),
        safety_stock=safety_stock,
        daily_usage=daily_usage,
        days_until_stockout=days_until_stockout,
        lead_time_days=lead_time_days,
        estimated_cost=Decimal(unit_cost) * suggested,
    )
