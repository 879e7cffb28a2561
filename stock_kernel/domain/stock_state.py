"""
Module: stock_kernel.domain.stock_state
Responsibility: Pure value objects and functions for a product's stock state:
    current quantity, min/max thresholds, derived stock status, and the
    add/subtract/set quantity change with sales tracking.
Architecture position: Kernel > Domain.  Zero I/O.  MUST NOT import from
    models/, services/, selectors/ or db/.

Invariants enforced:
    - quantity >= 0 always (subtract floors at zero).
    - min_stock <= max_stock (StockThresholdError on construction).
    - stock_status is derived from (quantity, min_stock, max_stock) at read
      time and never stored.

Failure modes:
    - ValidationError on negative or non-integer change quantities.
    - StockThresholdError on inverted thresholds.
"""

from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum
from uuid import UUID

from stock_kernel.exceptions import StockThresholdError, ValidationError

DEFAULT_MIN_STOCK = 10
DEFAULT_MAX_STOCK = 1000


class StockStatus(str, Enum):
    OUT_OF_STOCK = "out_of_stock"
    LOW_STOCK = "low_stock"
    IN_STOCK = "in_stock"
    OVERSTOCK = "overstock"


class ProductStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DISCONTINUED = "discontinued"


class StockOperation(str, Enum):
    """How a quantity is applied to the current stock."""

    ADD = "add"
    SUBTRACT = "subtract"
    SET = "set"


def classify_stock_status(quantity: int, min_stock: int, max_stock: int) -> StockStatus:
    """
    Four-way stock classification.

    Rules are checked in order: zero is out of stock, at or below the
    minimum is low, at or above the maximum is overstock, otherwise in stock.
    """
    if quantity == 0:
        return StockStatus.OUT_OF_STOCK
    if quantity <= min_stock:
        return StockStatus.LOW_STOCK
    if quantity >= max_stock:
        return StockStatus.OVERSTOCK
    return StockStatus.IN_STOCK


def validate_thresholds(min_stock: int, max_stock: int) -> None:
    """Raise unless both thresholds are non-negative and min <= max."""
    if min_stock < 0:
        raise ValidationError("min_stock", "must be non-negative")
    if max_stock < 0:
        raise ValidationError("max_stock", "must be non-negative")
    if min_stock > max_stock:
        raise StockThresholdError(min_stock, max_stock)


def validate_quantity(quantity: int, field: str = "quantity") -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError(field, f"must be an integer (got {quantity!r})")
    if quantity < 0:
        raise ValidationError(field, f"must be non-negative (got {quantity})")


@dataclass(frozen=True)
class ProductStock:
    """
    Snapshot of a product's stock-relevant fields.

    Contract: Immutable.  ``stock_status`` and ``needs_reorder`` are
    projections of the stored fields, recomputed on every access.
    """

    product_id: UUID
    quantity: int
    min_stock: int = DEFAULT_MIN_STOCK
    max_stock: int = DEFAULT_MAX_STOCK
    price: Decimal = Decimal("0")
    cost: Decimal = Decimal("0")
    status: ProductStatus = ProductStatus.ACTIVE
    total_sold: int = 0
    total_revenue: Decimal = Decimal("0")
    name: str = ""

    def __post_init__(self):
        validate_quantity(self.quantity)
        validate_thresholds(self.min_stock, self.max_stock)

    @property
    def stock_status(self) -> StockStatus:
        return classify_stock_status(self.quantity, self.min_stock, self.max_stock)

    @property
    def needs_reorder(self) -> bool:
        return needs_reorder(self)


@dataclass(frozen=True)
class StockChange:
    """Result of apply_stock_change: the new state plus the before/after snapshot."""

    stock: ProductStock
    operation: StockOperation
    previous_quantity: int
    new_quantity: int
    removed: int = 0

    @property
    def delta(self) -> int:
        return self.new_quantity - self.previous_quantity


def apply_stock_change(
    stock: ProductStock,
    quantity: int,
    operation: StockOperation | str,
    track_sales: bool = True,
) -> StockChange:
    """
    Apply a quantity change and return the new state.

    Preconditions: quantity is a non-negative int.
    Postconditions:
        - ADD: quantity increases by ``quantity``.
        - SUBTRACT: quantity decreases, floored at 0.  When ``track_sales``,
          the amount actually removed is added to total_sold and
          ``removed * price`` to total_revenue.
        - SET: quantity is overwritten; sales totals are untouched.
        - The input ``stock`` is never mutated.

    Raises:
        ValidationError: quantity is negative, not an int, or the
            operation is unknown.
    """
    validate_quantity(quantity)
    try:
        op = StockOperation(operation)
    except ValueError:
        raise ValidationError("operation", f"unknown stock operation {operation!r}") from None

    previous = stock.quantity
    removed = 0

    if op is StockOperation.ADD:
        new_stock = replace(stock, quantity=previous + quantity)
    elif op is StockOperation.SUBTRACT:
        new_quantity = max(0, previous - quantity)
        removed = previous - new_quantity
        if track_sales:
            new_stock = replace(
                stock,
                quantity=new_quantity,
                total_sold=stock.total_sold + removed,
                total_revenue=stock.total_revenue + stock.price * removed,
            )
        else:
            new_stock = replace(stock, quantity=new_quantity)
    else:
        new_stock = replace(stock, quantity=quantity)

    return StockChange(
        stock=new_stock,
        operation=op,
        previous_quantity=previous,
        new_quantity=new_stock.quantity,
        removed=removed,
    )


def needs_reorder(stock: ProductStock) -> bool:
    """True iff the product is active and at or below its minimum."""
    return stock.quantity <= stock.min_stock and stock.status == ProductStatus.ACTIVE
