"""Tests for the elasticity price grid."""

from decimal import Decimal

import pytest

from stock_engines.pricing import optimize_price


class TestOptimizePrice:
    def test_elastic_demand_prefers_price_cut(self):
        result = optimize_price(Decimal("100"), 100, elasticity=Decimal("-1.5"))

        assert result.best.price_change == Decimal("-0.10")
        assert result.best.new_price == Decimal("90.00")
        assert result.best.new_demand == 115
        assert result.best.revenue == Decimal("10350.00")
        assert result.best.revenue_change_percent == Decimal("3.50")
        assert result.is_change_recommended is True

    def test_five_scenarios_in_grid_order(self):
        result = optimize_price(Decimal("100"), 100)

        assert [s.price_change for s in result.scenarios] == [
            Decimal("-0.10"), Decimal("-0.05"), Decimal("0"), Decimal("0.05"), Decimal("0.10"),
        ]
        assert result.scenarios[2].revenue == Decimal("10000.00")
        assert result.scenarios[2].revenue_change_percent == Decimal("0.00")

    def test_inelastic_demand_prefers_price_rise(self):
        result = optimize_price(Decimal("20"), 50, elasticity=Decimal("-0.5"))
        assert result.best.price_change == Decimal("0.10")

    def test_unit_elasticity_keeps_price(self):
        # with elasticity -1 every change loses revenue
        result = optimize_price(Decimal("10"), 100, elasticity=-1)

        assert result.best.price_change == Decimal("0")
        assert result.is_change_recommended is False

    def test_zero_demand(self):
        result = optimize_price(Decimal("10"), 0)

        assert all(s.revenue == Decimal("0.00") for s in result.scenarios)
        assert result.best.price_change == Decimal("-0.10")
        assert result.best.revenue_change_percent == Decimal("0.00")

    def test_negative_inputs_rejected(self):
        with pytest.raises(ValueError):
            optimize_price(Decimal("-1"), 10)
