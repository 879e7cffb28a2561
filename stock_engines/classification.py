"""
stock_engines.classification -- ABC classification by inventory value.

Responsibility:
    Rank items by value (price x quantity) and assign each to tier A, B or
    C by the cumulative share of total value reached at that item.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumed by stock_services.analytics_service.

Invariants enforced:
    - Cumulative percent <= 80 is A, <= 95 is B, anything above is C.
      Thresholds are inclusive.
    - Ties keep their input order (stable sort).
    - Decimal arithmetic throughout; cumulative_percent is reported to two
      places but the tier is decided on the exact value.

Failure modes:
    - ValueError for a negative item value or thresholds out of order.
    - When total value is zero every item is C with cumulative_percent 100.
"""

from __future__ import annotations

from collections.abc import Hashable, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from stock_engines.tracer import traced_engine

DEFAULT_A_THRESHOLD = Decimal("80")
DEFAULT_B_THRESHOLD = Decimal("95")

_HUNDRED = Decimal("100")
_TWO_PLACES = Decimal("0.01")


class AbcClass(str, Enum):
    A = "A"
    B = "B"
    C = "C"


@dataclass(frozen=True)
class AbcItem:
    item_id: Hashable
    value: Decimal


@dataclass(frozen=True)
class AbcClassification:
    item_id: Hashable
    value: Decimal
    cumulative_percent: Decimal
    abc_class: AbcClass


@dataclass(frozen=True)
class AbcSummary:
    total_value: Decimal
    counts: dict[AbcClass, int]
    values: dict[AbcClass, Decimal]


@traced_engine("classification.abc", "1.0", fingerprint_fields=("items",))
def classify_abc(
    items: Sequence[AbcItem],
    a_threshold: Decimal = DEFAULT_A_THRESHOLD,
    b_threshold: Decimal = DEFAULT_B_THRESHOLD,
) -> list[AbcClassification]:
    """Classify items, returned highest value first."""
    if not a_threshold <= b_threshold:
        raise ValueError(f"a_threshold {a_threshold} exceeds b_threshold {b_threshold}")
    for item in items:
        if item.value < 0:
            raise ValueError(f"item {item.item_id} has negative value {item.value}")

    ranked = sorted(items, key=lambda i: Decimal(i.value), reverse=True)
    total = sum((Decimal(i.value) for i in ranked), Decimal("0"))

    result: list[AbcClassification] = []
    cumulative = Decimal("0")
    for item in ranked:
        value = Decimal(item.value)
        cumulative += value
        percent = cumulative / total * _HUNDRED if total else _HUNDRED

        if percent <= a_threshold:
            tier = AbcClass.A
        elif percent <= b_threshold:
            tier = AbcClass.B
        else:
            tier = AbcClass.C

        result.append(
            AbcClassification(
                item_id=item.item_id,
                value=value,
                cumulative_percent=percent.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP),
                abc_class=tier,
            )
        )
    return result


def summarize_abc(classifications: Sequence[AbcClassification]) -> AbcSummary:
    counts = {tier: 0 for tier in AbcClass}
    values = {tier: Decimal("0") for tier in AbcClass}
    for c in classifications:
        counts[c.abc_class] += 1
        values[c.abc_class] += c.value
    return AbcSummary(
        total_value=sum(values.values(), Decimal("0")),
        counts=counts,
        values=values,
    )
