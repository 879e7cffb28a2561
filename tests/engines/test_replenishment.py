"""
Tests for the replenishment engine.

Covers:
- Service-level z-score table and its fallback
- Reorder point with safety stock
- Economic order quantity
- Urgency classification
- Reorder suggestion quantity, stockout horizon and cost
"""

import math
from decimal import Decimal

import pytest

from stock_engines.replenishment import (
    ReorderUrgency,
    calculate_eoq,
    calculate_reorder_point,
    classify_urgency,
    suggest_reorder,
    z_score,
)


class TestZScore:
    @pytest.mark.parametrize(
        "level, expected", [(0.90, 1.28), (0.95, 1.65), (0.99, 2.33)]
    )
    def test_known_levels(self, level, expected):
        assert z_score(level) == expected

    def test_unknown_level_uses_default(self):
        assert z_score(0.8) == 1.65


class TestReorderPoint:
    def test_demand_over_lead_time_plus_safety_stock(self):
        # 10 * 7 + 1.65 * 0.2 * 10 * sqrt(7) = 78.73 -> 79
        assert calculate_reorder_point(10, 7, 0.95) == 79

    def test_higher_service_level_raises_point(self):
        assert calculate_reorder_point(10, 7, 0.99) > calculate_reorder_point(10, 7, 0.90)

    def test_zero_demand(self):
        assert calculate_reorder_point(0, 7) == 0

    def test_negative_demand_rejected(self):
        with pytest.raises(ValueError):
            calculate_reorder_point(-1, 7)

    def test_negative_lead_time_rejected(self):
        with pytest.raises(ValueError):
            calculate_reorder_point(1, -1)


class TestEoq:
    def test_classic_formula(self):
        # sqrt(2 * 1000 * 50 / (10 * 0.25)) = 200
        assert calculate_eoq(1000, 50, 0.25, 10) == pytest.approx(200.0)

    def test_zero_demand(self):
        assert calculate_eoq(0, 50, 0.25, 10) == 0.0

    @pytest.mark.parametrize("unit_cost, rate", [(0, 0.25), (10, 0)])
    def test_non_positive_cost_rejected(self, unit_cost, rate):
        with pytest.raises(ValueError):
            calculate_eoq(1000, 50, rate, unit_cost)


class TestClassifyUrgency:
    @pytest.mark.parametrize(
        "current, expected",
        [
            (0, ReorderUrgency.HIGH),
            (1, ReorderUrgency.MEDIUM),
            (5, ReorderUrgency.MEDIUM),
            (6, ReorderUrgency.LOW),
            (10, ReorderUrgency.LOW),
        ],
    )
    def test_against_min_of_ten(self, current, expected):
        assert classify_urgency(current, 10) is expected


class TestSuggestReorder:
    def test_half_gap_to_max_dominates(self):
        suggestion = suggest_reorder(
            current_stock=5,
            min_stock=10,
            max_stock=100,
            total_sold=90,
            lead_time_days=7,
            history_days=90,
            unit_cost=Decimal("2.00"),
        )

        assert suggestion.daily_usage == pytest.approx(1.0)
        assert suggestion.safety_stock == 11
        # max(10 - 5 + 11, ceil(95 / 2))
        assert suggestion.suggested_quantity == 48
        assert suggestion.urgency is ReorderUrgency.MEDIUM
        assert suggestion.days_until_stockout == 5
        assert suggestion.estimated_cost == Decimal("96.00")

    def test_safety_stock_gap_dominates(self):
        suggestion = suggest_reorder(
            current_stock=8,
            min_stock=50,
            max_stock=60,
            total_sold=900,
            lead_time_days=10,
            history_days=90,
        )

        # usage 10/day, safety ceil(10 * 10 * 1.5) = 150
        assert suggestion.safety_stock == 150
        assert suggestion.suggested_quantity == 50 - 8 + 150

    def test_no_usage(self):
        suggestion = suggest_reorder(0, 10, 100, total_sold=0)

        assert suggestion.safety_stock == 0
        assert suggestion.suggested_quantity == 50
        assert suggestion.urgency is ReorderUrgency.HIGH
        assert suggestion.days_until_stockout == 30
        assert suggestion.estimated_cost == Decimal("0")

    def test_quantity_never_negative(self):
        suggestion = suggest_reorder(200, 10, 100, total_sold=0)
        assert suggestion.suggested_quantity == 0

    def test_default_lead_time(self):
        assert suggest_reorder(5, 10, 100, total_sold=0).lead_time_days == 7

    def test_invalid_history_rejected(self):
        with pytest.raises(ValueError):
            suggest_reorder(5, 10, 100, total_sold=1, history_days=0)

    def test_stockout_days_floor(self):
        # usage 2/day, 5 units -> 2.5 days -> 2
        suggestion = suggest_reorder(5, 10, 100, total_sold=180, history_days=90)
        assert suggestion.days_until_stockout == math.floor(5 / 2)
