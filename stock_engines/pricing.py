"""
stock_engines.pricing -- Elasticity-based price scenario search.

Responsibility:
    Evaluate a fixed grid of price changes (-10%, -5%, 0, +5%, +10%)
    against a linear demand response and pick the revenue-maximising one.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumed by stock_services.insight_service.

Invariants enforced:
    - demand' = demand * (1 + elasticity * change); revenue = price' * demand'.
    - Prices and revenues are Decimal rounded half-up to cents; demand is
      rounded to whole units.
    - On equal revenue the earlier candidate in grid order wins.

Failure modes:
    - ValueError for a negative price or demand.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from stock_engines.tracer import traced_engine

DEFAULT_ELASTICITY = Decimal("-1.5")

PRICE_CHANGE_CANDIDATES: tuple[Decimal, ...] = (
    Decimal("-0.10"),
    Decimal("-0.05"),
    Decimal("0"),
    Decimal("0.05"),
    Decimal("0.10"),
)

_CENTS = Decimal("0.01")
_UNITS = Decimal("1")


@dataclass(frozen=True)
class PriceScenario:
    price_change: Decimal
    new_price: Decimal
    new_demand: int
    revenue: Decimal
    revenue_change_percent: Decimal


@dataclass(frozen=True)
class PriceOptimization:
    current_price: Decimal
    current_demand: Decimal
    best: PriceScenario
    scenarios: tuple[PriceScenario, ...]

    @property
    def is_change_recommended(self) -> bool:
        return self.best.price_change != 0


@traced_engine(
    "pricing.elasticity_grid",
    "1.0",
    fingerprint_fields=("current_price", "current_demand", "elasticity"),
)
def optimize_price(
    current_price: Decimal,
    current_demand: Decimal | int | float,
    elasticity: Decimal | float = DEFAULT_ELASTICITY,
) -> PriceOptimization:
    price = Decimal(str(current_price))
    demand = Decimal(str(current_demand))
    slope = Decimal(str(elasticity))
    if price < 0 or demand < 0:
        raise ValueError("current_price and current_demand must be non-negative")

    baseline = price * demand
    scenarios = []
    for change in PRICE_CHANGE_CANDIDATES:
        new_price = price * (1 + change)
        new_demand = demand * (1 + slope * change)
        revenue = new_price * new_demand
        if baseline:
            revenue_change = (revenue - baseline) / baseline * 100
        else:
            revenue_change = Decimal("0")
        scenarios.append(
            PriceScenario(
                price_change=change,
                new_price=new_price.quantize(_CENTS, rounding=ROUND_HALF_UP),
                new_demand=int(new_demand.quantize(_UNITS, rounding=ROUND_HALF_UP)),
                revenue=revenue.quantize(_CENTS, rounding=ROUND_HALF_UP),
                revenue_change_percent=revenue_change.quantize(_CENTS, rounding=ROUND_HALF_UP),
            )
        )

    best = max(scenarios, key=lambda s: s.revenue)
    return PriceOptimization(
        current_price=price,
        current_demand=demand,
        best=best,
        scenarios=tuple(scenarios),
    )
