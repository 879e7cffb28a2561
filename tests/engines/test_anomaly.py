"""
Tests for z-score anomaly detection.

Covers:
- Leave-one-out scoring so a lone outlier is found
- One-unit floor on the reference deviation
- Spike and drop classification
- Severity, confidence and deviation
- Sensitivity thresholds and the three-point minimum
"""

import pytest

from stock_engines.anomaly import (
    AnomalySeverity,
    AnomalyType,
    detect_anomalies,
    threshold_for,
)


class TestDetectAnomalies:
    def test_lone_spike_found(self):
        (anomaly,) = detect_anomalies([10, 10, 10, 10, 100], sensitivity="medium")

        assert anomaly.index == 4
        assert anomaly.value == 100.0
        assert anomaly.expected_value == 10
        assert anomaly.anomaly_type is AnomalyType.SPIKE
        assert anomaly.z_score == 90.0
        assert anomaly.deviation == 87.5
        assert anomaly.severity is AnomalySeverity.HIGH
        assert anomaly.confidence == 0.95

    def test_drop(self):
        (anomaly,) = detect_anomalies([50, 50, 50, 50, 0])

        assert anomaly.index == 4
        assert anomaly.anomaly_type is AnomalyType.DROP
        assert anomaly.expected_value == 50

    def test_finite_z_score(self):
        # others [10, 12, 10, 12]: mean 11, std 1
        (anomaly,) = detect_anomalies([10, 12, 10, 12, 40])

        assert anomaly.z_score == 29.0
        assert anomaly.deviation == 26.5
        assert anomaly.expected_value == 11

    def test_medium_severity_below_one_and_a_half_thresholds(self):
        (anomaly,) = detect_anomalies([10, 12, 10, 12, 40], threshold=20)

        assert anomaly.severity is AnomalySeverity.MEDIUM
        assert anomaly.deviation == 9.0
        assert anomaly.confidence == 0.95

    def test_flat_series_has_no_anomalies(self):
        assert detect_anomalies([7, 7, 7, 7]) == []

    def test_one_unit_blip_on_flat_history_ignored(self):
        assert detect_anomalies([10, 10, 10, 10, 11], sensitivity="low") == []

    def test_short_ramp_ignored(self):
        # ends score 1.5 against a spread floored at one unit
        assert detect_anomalies([1, 2, 3], sensitivity="medium") == []

    @pytest.mark.parametrize("values", [[], [1], [1, 100]])
    def test_fewer_than_three_points(self, values):
        assert detect_anomalies(values) == []

    def test_explicit_threshold_overrides_sensitivity(self):
        values = [10, 12, 10, 12, 40]
        assert detect_anomalies(values, sensitivity="low", threshold=100) == []

    def test_non_positive_threshold_rejected(self):
        with pytest.raises(ValueError):
            detect_anomalies([1, 2, 3], threshold=0)

    def test_unknown_sensitivity_rejected(self):
        with pytest.raises(ValueError):
            detect_anomalies([1, 2, 3], sensitivity="extreme")


class TestThresholds:
    @pytest.mark.parametrize(
        "sensitivity, expected", [("low", 3.0), ("medium", 2.5), ("high", 2.0)]
    )
    def test_table(self, sensitivity, expected):
        assert threshold_for(sensitivity) == expected
