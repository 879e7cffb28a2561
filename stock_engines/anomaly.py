"""
stock_engines.anomaly -- Z-score anomaly detection over movement magnitudes.

Responsibility:
    Flag values in a short series that sit unusually far from the rest,
    classify them as spike, drop or unusual_pattern, and score them.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumed by stock_services.insight_service.

Invariants enforced:
    - Each point is scored against the mean and population standard
      deviation of the OTHER points (leave-one-out).  A single outlier
      therefore cannot hide itself by inflating the deviation it is
      measured with.
    - The reference deviation is floored at one unit, so a flat history
      does not flag a point that differs by a unit or two.
    - confidence = min(0.95, z / threshold); severity is high when
      z > 1.5 * threshold, medium otherwise.
    - Fewer than three points yield no anomalies.

Failure modes:
    - ValueError for a non-positive threshold or an unknown sensitivity.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from stock_engines.tracer import traced_engine

MIN_POINTS = 3
MAX_CONFIDENCE = 0.95
HIGH_SEVERITY_RATIO = 1.5
# Floor for the reference deviation, in units
MIN_STD_DEV = 1.0


class Sensitivity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


SENSITIVITY_THRESHOLDS: dict[Sensitivity, float] = {
    Sensitivity.LOW: 3.0,
    Sensitivity.MEDIUM: 2.5,
    Sensitivity.HIGH: 2.0,
}


class AnomalyType(str, Enum):
    SPIKE = "spike"
    DROP = "drop"
    UNUSUAL_PATTERN = "unusual_pattern"


class AnomalySeverity(str, Enum):
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class Anomaly:
    """
    One flagged point.  ``deviation`` is z - threshold.
    """

    index: int
    value: float
    expected_value: int
    z_score: float
    deviation: float
    anomaly_type: AnomalyType
    confidence: float
    severity: AnomalySeverity


def threshold_for(sensitivity: Sensitivity | str) -> float:
    return SENSITIVITY_THRESHOLDS[Sensitivity(sensitivity)]


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _round2(value: float) -> float:
    return _round_half_up(value * 100) / 100


@traced_engine("anomaly.z_score", "1.0", fingerprint_fields=("values", "sensitivity", "threshold"))
def detect_anomalies(
    values: Sequence[float],
    sensitivity: Sensitivity | str = Sensitivity.MEDIUM,
    threshold: float | None = None,
) -> list[Anomaly]:
    """
    Return anomalies in input order.

    An explicit ``threshold`` overrides ``sensitivity``.
    """
    limit = threshold if threshold is not None else threshold_for(sensitivity)
    if limit <= 0:
        raise ValueError(f"threshold must be positive (got {limit})")
    if len(values) < MIN_POINTS:
        return []

    series = [float(v) for v in values]

    anomalies: list[Anomaly] = []
    for index, value in enumerate(series):
        others = series[:index] + series[index + 1:]
        mean = sum(others) / len(others)
        std_dev = max(
            math.sqrt(sum((v - mean) ** 2 for v in others) / len(others)),
            MIN_STD_DEV,
        )
        z = abs(value - mean) / std_dev

        if not z > limit:
            continue

        if value > mean + limit * std_dev:
            kind = AnomalyType.SPIKE
        elif value < mean - limit * std_dev:
            kind = AnomalyType.DROP
        else:
            kind = AnomalyType.UNUSUAL_PATTERN

        anomalies.append(
            Anomaly(
                index=index,
                value=value,
                expected_value=_round_half_up(mean),
                z_score=_round2(z),
                deviation=_round2(z - limit),
                anomaly_type=kind,
                confidence=min(MAX_CONFIDENCE, z / limit),
                severity=(
                    AnomalySeverity.HIGH
                    if z > limit * HIGH_SEVERITY_RATIO
                    else AnomalySeverity.MEDIUM
                ),
            )
        )
    return anomalies
