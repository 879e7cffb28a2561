"""
Module: stock_kernel.models.stock_movement
Responsibility: ORM persistence for the append-only stock ledger.  One row
    per quantity-affecting operation with the before/after snapshot of the
    product's quantity.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/movements.py.

Invariants enforced:
    - Rows are never updated or deleted (db/immutability.py listeners).
    - (product_id, seq) is unique; seq increases by one per product, so the
      ledger order is total even when two rows share a created_at.
    - total_cost == quantity * unit_cost, computed by StockLedger.
    - product_id and supplier_id carry no foreign key: the ledger outlives
      product deletion.

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE through the ORM.
    - IntegrityError on a duplicate (product_id, seq).
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase
from stock_kernel.domain.movements import (
    MovementRecord,
    MovementStatus,
    MovementType,
    signed_quantity,
)


class StockMovement(TrackedBase):
    """
    Immutable ledger entry.

    ``quantity`` is a magnitude for in/out/damaged/returned/transfer and the
    signed delta for adjustments.
    """

    __tablename__ = "stock_movements"

    __table_args__ = (
        UniqueConstraint("product_id", "seq", name="uq_movement_product_seq"),
        Index("idx_movement_product_created", "product_id", "created_at"),
        Index("idx_movement_owner_created", "owner_id", "created_at"),
        Index("idx_movement_type", "movement_type"),
        Index("idx_movement_reference", "reference"),
    )

    product_id: Mapped[UUID] = mapped_column(nullable=False)
    owner_id: Mapped[UUID] = mapped_column(nullable=False)
    seq: Mapped[int] = mapped_column(Integer, nullable=False)

    movement_type: Mapped[str] = mapped_column(String(20), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    previous_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    new_quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    unit_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    reason: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    location_from: Mapped[str | None] = mapped_column(String(100), nullable=True)
    location_to: Mapped[str | None] = mapped_column(String(100), nullable=True)
    supplier_id: Mapped[UUID | None] = mapped_column(nullable=True)
    batch_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=MovementStatus.COMPLETED.value
    )

    @property
    def signed_quantity(self) -> int:
        return signed_quantity(self.movement_type, self.quantity)

    def to_dto(self) -> MovementRecord:
        return MovementRecord(
            id=self.id,
            product_id=self.product_id,
            owner_id=self.owner_id,
            movement_type=MovementType(self.movement_type),
            quantity=self.quantity,
            previous_quantity=self.previous_quantity,
            new_quantity=self.new_quantity,
            unit_cost=Decimal(self.unit_cost),
            total_cost=Decimal(self.total_cost),
            reason=self.reason,
            status=MovementStatus(self.status),
            seq=self.seq,
            created_at=self.created_at,
            reference=self.reference,
            location_from=self.location_from,
            location_to=self.location_to,
            supplier_id=self.supplier_id,
            batch_number=self.batch_number,
            expiry_date=self.expiry_date,
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return (
            f"<StockMovement {self.movement_type} product={self.product_id} "
            f"seq={self.seq} {self.previous_quantity}->{self.new_quantity}>"
        )
