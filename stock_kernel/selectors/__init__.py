"""Selectors for the stock kernel (read side)."""

from stock_kernel.selectors.insight_selector import (
    InsightInfo,
    InsightSelector,
    InsightSummary,
    TypeSummary,
)
from stock_kernel.selectors.movement_selector import (
    LedgerReconciliation,
    MovementSelector,
    MovementTypeSummary,
)

__all__ = [
    "InsightInfo",
    "InsightSelector",
    "InsightSummary",
    "LedgerReconciliation",
    "MovementSelector",
    "MovementTypeSummary",
    "TypeSummary",
]
