"""Pure domain layer - value objects and functions, no I/O."""

from stock_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from stock_kernel.domain.movements import MovementStatus, MovementType, signed_quantity
from stock_kernel.domain.stock_state import (
    ProductStatus,
    ProductStock,
    StockChange,
    StockOperation,
    StockStatus,
    apply_stock_change,
    classify_stock_status,
    needs_reorder,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "MovementStatus",
    "MovementType",
    "signed_quantity",
    "ProductStatus",
    "ProductStock",
    "StockChange",
    "StockOperation",
    "StockStatus",
    "apply_stock_change",
    "classify_stock_status",
    "needs_reorder",
]
