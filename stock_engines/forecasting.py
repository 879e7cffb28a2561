"""
stock_engines.forecasting -- Moving average, trend, seasonality, smoothing forecast.

Responsibility:
    Descriptive statistics over a daily demand series: the recent moving
    average, the least-squares trend slope and its direction, a phase-mean
    seasonality check, a flat exponential-smoothing projection and a
    heuristic confidence score for a forecast.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumed by stock_services.insight_service.

Invariants enforced:
    - Purity: no clock, no randomness, no database access.  Identical
      inputs produce identical outputs.
    - Series are floats; money never flows through this module.
    - forecast_demand never projects a negative value.

Failure modes:
    - ValueError for a non-positive window, period or forecast horizon, or
      a smoothing factor outside (0, 1].
    - Degenerate inputs return neutral results rather than raising: an
      empty series averages to 0.0, fewer than two points is a stable
      trend with slope 0.0, fewer than two full periods is non-seasonal.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from stock_engines.tracer import traced_engine
from stock_kernel.logging_config import get_logger

logger = get_logger("engines.forecasting")

DEFAULT_WINDOW = 7
DEFAULT_TREND_THRESHOLD = 0.1
DEFAULT_SEASONAL_PERIOD = 7
DEFAULT_FORECAST_PERIODS = 30
DEFAULT_SMOOTHING_ALPHA = 0.3
DEFAULT_MODEL_COMPLEXITY = 0.7

# Phase-mean variance must exceed this share of the overall mean
SEASONALITY_VARIANCE_RATIO = 0.1


class TrendDirection(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


@dataclass(frozen=True)
class TrendResult:
    slope: float
    direction: TrendDirection


@dataclass(frozen=True)
class SeasonalityResult:
    """
    ``factor`` is the largest phase mean over the overall mean (1.0 when
    not computable); ``pattern`` holds one mean per phase.
    """

    seasonal: bool
    factor: float
    pattern: tuple[float, ...] = ()


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def moving_average(values: Sequence[float], window: int = DEFAULT_WINDOW) -> float:
    """
    Mean of the last ``window`` values.

    With fewer values than the window, the latest value is returned as is
    (0.0 for an empty series).
    """
    if window <= 0:
        raise ValueError(f"window must be positive (got {window})")
    if len(values) < window:
        return float(values[-1]) if values else 0.0
    return sum(values[-window:]) / window


@traced_engine("forecasting.trend", "1.0", fingerprint_fields=("values", "threshold"))
def calculate_trend(
    values: Sequence[float],
    threshold: float = DEFAULT_TREND_THRESHOLD,
) -> TrendResult:
    """
    Ordinary least-squares slope over x = 0..n-1.

    slope > threshold is increasing, slope < -threshold decreasing,
    anything else stable.
    """
    n = len(values)
    if n < 2:
        return TrendResult(slope=0.0, direction=TrendDirection.STABLE)

    sum_x = n * (n - 1) / 2
    sum_xx = (n - 1) * n * (2 * n - 1) / 6
    sum_y = float(sum(values))
    sum_xy = float(sum(i * v for i, v in enumerate(values)))

    slope = (n * sum_xy - sum_x * sum_y) / (n * sum_xx - sum_x * sum_x)

    if slope > threshold:
        direction = TrendDirection.INCREASING
    elif slope < -threshold:
        direction = TrendDirection.DECREASING
    else:
        direction = TrendDirection.STABLE
    return TrendResult(slope=slope, direction=direction)


@traced_engine("forecasting.seasonality", "1.0", fingerprint_fields=("values", "period"))
def detect_seasonality(
    values: Sequence[float],
    period: int = DEFAULT_SEASONAL_PERIOD,
) -> SeasonalityResult:
    """
    Flag a repeating weekly (or ``period``-long) pattern.

    Each phase 0..period-1 is averaged across cycles.  The series is
    seasonal when the population variance of those phase means exceeds
    10% of the overall mean.  Needs at least two full periods.
    """
    if period <= 0:
        raise ValueError(f"period must be positive (got {period})")
    if len(values) < period * 2:
        return SeasonalityResult(seasonal=False, factor=1.0)

    pattern = tuple(_mean(values[phase::period]) for phase in range(period))
    overall = _mean(values)
    variance = sum((m - overall) ** 2 for m in pattern) / period

    factor = max(pattern) / overall if overall else 1.0
    return SeasonalityResult(
        seasonal=variance > overall * SEASONALITY_VARIANCE_RATIO,
        factor=factor,
        pattern=pattern,
    )


@traced_engine(
    "forecasting.exponential_smoothing",
    "1.0",
    fingerprint_fields=("history", "periods", "alpha"),
)
def forecast_demand(
    history: Sequence[float],
    periods: int = DEFAULT_FORECAST_PERIODS,
    alpha: float = DEFAULT_SMOOTHING_ALPHA,
) -> list[float]:
    """
    Single exponential smoothing projected flat over ``periods``.

    S_0 = x_0 and S_t = alpha * x_t + (1 - alpha) * S_{t-1}; every future
    period repeats max(0, S_last).  An empty history forecasts zeros.
    """
    if periods <= 0:
        raise ValueError(f"periods must be positive (got {periods})")
    if not 0 < alpha <= 1:
        raise ValueError(f"alpha must be in (0, 1] (got {alpha})")
    if not history:
        return [0.0] * periods

    smoothed = float(history[0])
    for value in history[1:]:
        smoothed = alpha * value + (1 - alpha) * smoothed

    return [max(0.0, smoothed)] * periods


def calculate_confidence(
    historical_accuracy: float | None,
    data_quality: float | None,
    model_complexity: float = DEFAULT_MODEL_COMPLEXITY,
) -> float:
    """
    Weighted 0.5 accuracy + 0.3 data quality + 0.2 model complexity.

    Missing or zero accuracy and quality count as 0.5; both are clamped to
    [0, 1].  The result is rounded to two places and capped at 1.0.
    """
    accuracy = min(1.0, max(0.0, historical_accuracy or 0.5))
    quality = min(1.0, max(0.0, data_quality or 0.5))
    confidence = accuracy * 0.5 + quality * 0.3 + model_complexity * 0.2
    return round(min(1.0, confidence), 2)


def period_change_percent(values: Sequence[float]) -> float:
    """
    Percentage change of the second half's mean over the first half's.

    An odd middle point belongs to neither half.  A zero first half gives
    100.0 when the second half has demand and 0.0 otherwise.
    """
    half = len(values) // 2
    if half == 0:
        return 0.0
    earlier = _mean(values[:half])
    recent = _mean(values[-half:])
    if earlier == 0:
        return 100.0 if recent > 0 else 0.0
    return (recent - earlier) / earlier * 100
