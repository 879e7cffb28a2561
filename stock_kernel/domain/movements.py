"""
Stock movement vocabulary and ledger replay.

Every quantity change is recorded as a movement of one of six types.  The
ledger stores magnitudes for in/out/damaged/returned and the signed delta
for adjustments, so summing ``signed_quantity`` over a product's movements
in order reproduces its current quantity.  Transfers relocate stock without
changing it and contribute zero.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class MovementType(str, Enum):
    IN = "in"
    OUT = "out"
    ADJUSTMENT = "adjustment"
    TRANSFER = "transfer"
    DAMAGED = "damaged"
    RETURNED = "returned"


class MovementStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


INBOUND_TYPES = frozenset({MovementType.IN, MovementType.RETURNED})
OUTBOUND_TYPES = frozenset({MovementType.OUT, MovementType.DAMAGED})


def signed_quantity(movement_type: MovementType | str, quantity: int) -> int:
    """Contribution of one movement to the product quantity."""
    mtype = MovementType(movement_type)
    if mtype in INBOUND_TYPES:
        return quantity
    if mtype in OUTBOUND_TYPES:
        return -quantity
    if mtype is MovementType.ADJUSTMENT:
        return quantity
    return 0


@dataclass(frozen=True)
class MovementContext:
    """Optional descriptive fields carried onto a ledger entry."""

    reference: str | None = None
    location_from: str | None = None
    location_to: str | None = None
    supplier_id: UUID | None = None
    batch_number: str | None = None
    expiry_date: date | None = None
    notes: str | None = None


@dataclass(frozen=True)
class MovementRecord:
    """Read-side view of one ledger entry."""

    id: UUID
    product_id: UUID
    owner_id: UUID
    movement_type: MovementType
    quantity: int
    previous_quantity: int
    new_quantity: int
    unit_cost: Decimal
    total_cost: Decimal
    reason: str
    status: MovementStatus
    seq: int
    created_at: datetime
    reference: str | None = None
    location_from: str | None = None
    location_to: str | None = None
    supplier_id: UUID | None = None
    batch_number: str | None = None
    expiry_date: date | None = None
    notes: str | None = None

    @property
    def signed_quantity(self) -> int:
        return signed_quantity(self.movement_type, self.quantity)


def replay(movements: Iterable[tuple[MovementType | str, int]]) -> int:
    """Sum signed quantities of (movement_type, quantity) pairs, oldest first."""
    return sum(signed_quantity(mtype, qty) for mtype, qty in movements)
