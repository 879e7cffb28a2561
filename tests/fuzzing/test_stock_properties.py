"""
Property-based tests for the pure stock layer and the statistics engines.

Properties checked here:
- Replaying the signed ledger quantities reproduces apply_stock_change
- Subtraction never goes negative and sales never exceed what left
- ABC tiers are monotone along the ranking and cover every item
- Forecasts are flat and non-negative
- Anomaly indices point into the series
- The pricing grid never picks a scenario worse than the current price
"""

from decimal import Decimal
from uuid import uuid4

from hypothesis import given, settings
from hypothesis import strategies as st

from stock_engines.anomaly import detect_anomalies
from stock_engines.classification import AbcClass, AbcItem, classify_abc
from stock_engines.forecasting import forecast_demand
from stock_engines.pricing import optimize_price
from stock_kernel.domain.movements import MovementType, replay
from stock_kernel.domain.stock_state import ProductStock, StockOperation, apply_stock_change

_OPERATIONS = {
    StockOperation.ADD: MovementType.IN,
    StockOperation.SUBTRACT: MovementType.OUT,
}

operations = st.lists(
    st.tuples(st.sampled_from(list(_OPERATIONS)), st.integers(min_value=0, max_value=500)),
    max_size=40,
)
daily_series = st.lists(st.integers(min_value=0, max_value=1000), max_size=60)


@given(initial=st.integers(min_value=0, max_value=1000), steps=operations)
@settings(max_examples=200)
def test_ledger_replay_matches_state(initial, steps):
    stock = ProductStock(product_id=uuid4(), quantity=initial, price=Decimal("2.50"))
    ledger = [(MovementType.IN, initial)]
    for operation, quantity in steps:
        change = apply_stock_change(stock, quantity, operation)
        # the ledger records what actually moved
        moved = change.removed if operation is StockOperation.SUBTRACT else quantity
        ledger.append((_OPERATIONS[operation], moved))
        stock = change.stock

    assert replay(ledger) == stock.quantity


@given(initial=st.integers(min_value=0, max_value=1000), steps=operations)
def test_subtraction_floors_at_zero(initial, steps):
    stock = ProductStock(product_id=uuid4(), quantity=initial, price=Decimal("1"))
    received = initial
    for operation, quantity in steps:
        stock = apply_stock_change(stock, quantity, operation).stock
        if operation is StockOperation.ADD:
            received += quantity
        assert stock.quantity >= 0

    assert stock.total_sold + stock.quantity == received
    assert stock.total_revenue == Decimal(stock.total_sold)


@given(values=st.lists(st.integers(min_value=0, max_value=10_000), max_size=30))
def test_abc_tiers_monotone(values):
    items = [AbcItem(i, Decimal(v)) for i, v in enumerate(values)]

    result = classify_abc(items)

    assert sorted(c.item_id for c in result) == list(range(len(values)))
    tiers = [c.abc_class for c in result]
    order = [AbcClass.A, AbcClass.B, AbcClass.C]
    assert [order.index(t) for t in tiers] == sorted(order.index(t) for t in tiers)
    percents = [c.cumulative_percent for c in result]
    assert percents == sorted(percents)


@given(history=daily_series, periods=st.integers(min_value=1, max_value=60))
def test_forecast_flat_and_non_negative(history, periods):
    forecast = forecast_demand(history, periods=periods)

    assert len(forecast) == periods
    assert len(set(forecast)) == 1
    assert forecast[0] >= 0
    if history:
        assert forecast[0] <= max(history) + 1e-9


@given(values=daily_series, threshold=st.sampled_from([2.0, 2.5, 3.0]))
def test_anomaly_indices_in_range(values, threshold):
    anomalies = detect_anomalies(values, threshold=threshold)

    assert all(0 <= a.index < len(values) for a in anomalies)
    assert len({a.index for a in anomalies}) == len(anomalies)
    if len(values) < 3:
        assert anomalies == []


@given(
    price=st.decimals(min_value=Decimal("0.01"), max_value=Decimal("10000"), places=2),
    demand=st.integers(min_value=0, max_value=100_000),
)
def test_pricing_never_worse_than_current(price, demand):
    result = optimize_price(price, demand)

    current = next(s for s in result.scenarios if s.price_change == 0)
    assert result.best.revenue >= current.revenue
