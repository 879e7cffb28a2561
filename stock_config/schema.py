"""
StockConfig schema.

Frozen dataclasses describing the runtime configuration: database
connection, defaults for lazily created inventory aggregates, insight
generation parameters and analytics thresholds.  YAML documents are parsed
into these types by the loader; validation happens in ``__post_init__`` so
an invalid value can never be held in a config object.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite:///stock.db"
    pool_size: int = 20
    max_overflow: int = 10
    echo: bool = False

    def __post_init__(self):
        if not self.url:
            raise ValueError("database.url must not be empty")
        if self.pool_size <= 0:
            raise ValueError(f"database.pool_size must be positive (got {self.pool_size})")


# ---------------------------------------------------------------------------
# Inventory aggregate defaults
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InventoryConfig:
    """Defaults applied when an owner's aggregate is created."""

    name: str = "Main Inventory"
    location: str = "Primary Warehouse"
    auto_reorder: bool = False
    low_stock_threshold: int = 10
    track_expiry: bool = False
    allow_negative_stock: bool = False

    def __post_init__(self):
        if not self.name.strip():
            raise ValueError("inventory.name must not be empty")
        if self.low_stock_threshold < 0:
            raise ValueError("inventory.low_stock_threshold must be non-negative")


# ---------------------------------------------------------------------------
# Insight generation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AnomalyConfig:
    window_days: int = 7
    sensitivity: str = "medium"
    thresholds: dict[str, float] = field(
        default_factory=lambda: {"low": 3.0, "medium": 2.5, "high": 2.0}
    )

    def __post_init__(self):
        if self.window_days <= 0:
            raise ValueError("insights.anomaly.window_days must be positive")
        if set(self.thresholds) != {"low", "medium", "high"}:
            raise ValueError("insights.anomaly.thresholds needs exactly low, medium and high")
        if any(t <= 0 for t in self.thresholds.values()):
            raise ValueError("insights.anomaly.thresholds must be positive")
        if self.sensitivity not in self.thresholds:
            raise ValueError(f"insights.anomaly.sensitivity {self.sensitivity!r} is unknown")


@dataclass(frozen=True)
class InsightConfig:
    expiry_days: int = 30
    history_days: int = 90
    moving_average_window: int = 7
    smoothing_alpha: float = 0.3
    trend_threshold: float = 0.1
    seasonality_period: int = 7
    forecast_periods: int = 30
    lead_time_days: int = 7
    service_level: float = 0.95
    ordering_cost: float = 50.0
    holding_cost_rate: float = 0.25
    price_elasticity: Decimal = Decimal("-1.5")
    max_products_per_run: int = 20
    history_limit: int = 50
    anomaly: AnomalyConfig = field(default_factory=AnomalyConfig)

    def __post_init__(self):
        for name in (
            "expiry_days",
            "history_days",
            "moving_average_window",
            "seasonality_period",
            "forecast_periods",
            "max_products_per_run",
            "history_limit",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"insights.{name} must be positive (got {getattr(self, name)})")
        if not 0 < self.smoothing_alpha <= 1:
            raise ValueError(f"insights.smoothing_alpha must be in (0, 1] (got {self.smoothing_alpha})")
        if not 0 < self.service_level < 1:
            raise ValueError(f"insights.service_level must be in (0, 1) (got {self.service_level})")
        if self.lead_time_days < 0:
            raise ValueError("insights.lead_time_days must be non-negative")
        if self.holding_cost_rate <= 0:
            raise ValueError("insights.holding_cost_rate must be positive")


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AnalyticsConfig:
    abc_a_threshold: Decimal = Decimal("80")
    abc_b_threshold: Decimal = Decimal("95")
    fast_turnover: Decimal = Decimal("2")
    slow_turnover: Decimal = Decimal("0.5")
    period_days: int = 30
    top_sellers_limit: int = 5
    recent_alerts_limit: int = 5

    def __post_init__(self):
        if not 0 < self.abc_a_threshold <= self.abc_b_threshold <= 100:
            raise ValueError(
                "analytics ABC thresholds must satisfy 0 < a <= b <= 100 "
                f"(got a={self.abc_a_threshold}, b={self.abc_b_threshold})"
            )
        if self.slow_turnover > self.fast_turnover:
            raise ValueError("analytics.slow_turnover must not exceed fast_turnover")
        if self.period_days <= 0:
            raise ValueError("analytics.period_days must be positive")


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StockConfig:
    """The whole runtime configuration.  ``checksum`` identifies the source."""

    config_id: str
    version: int
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    inventory: InventoryConfig = field(default_factory=InventoryConfig)
    insights: InsightConfig = field(default_factory=InsightConfig)
    analytics: AnalyticsConfig = field(default_factory=AnalyticsConfig)
    checksum: str = ""
