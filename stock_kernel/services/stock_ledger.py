"""
StockLedger -- append-only writer for stock movements.

Responsibility:
    Appends exactly one immutable ``StockMovement`` per quantity-affecting
    operation, carrying the product's quantity before and after the change
    and ``total_cost = quantity * unit_cost``.

Architecture position:
    Kernel > Services.  Called by StockService and ProductService; never
    by selectors.

Invariants enforced:
    - Append-only: the ledger never updates or deletes rows (and the ORM
      listeners in db/immutability.py refuse it).
    - Per-product ordering: seq is allocated from ``Product.ledger_seq``,
      incremented on the product row the caller has locked FOR UPDATE, so
      seq is gap-free and strictly increasing per product.
    - For non-adjustment types, new_quantity - previous_quantity must agree
      with the signed quantity; adjustments record the delta itself.

Failure modes:
    - ValidationError when the snapshot disagrees with the movement type.
"""

from decimal import Decimal
from uuid import UUID

from stock_kernel.domain.movements import (
    MovementContext,
    MovementRecord,
    MovementStatus,
    MovementType,
    signed_quantity,
)
from stock_kernel.exceptions import ValidationError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.product import Product
from stock_kernel.models.stock_movement import StockMovement
from stock_kernel.services.base import BaseService

logger = get_logger("services.stock_ledger")


class StockLedger(BaseService[StockMovement]):
    """Writes ledger rows.  Reads live in MovementSelector."""

    def record_movement(
        self,
        product: Product,
        owner_id: UUID,
        movement_type: MovementType | str,
        quantity: int,
        previous_quantity: int,
        new_quantity: int,
        unit_cost: Decimal = Decimal("0"),
        reason: str = "",
        context: MovementContext | None = None,
        actor_id: UUID | None = None,
    ) -> MovementRecord:
        """
        Append one ledger entry.

        Preconditions:
            - ``product`` is loaded in this session (and locked by the
              caller when concurrent writers are possible).
            - For ADJUSTMENT, ``quantity`` is the signed delta.  For every
              other type it is a non-negative magnitude.

        Postconditions:
            - One StockMovement row is flushed with the next per-product seq.

        Raises:
            ValidationError: Snapshot inconsistent with type and quantity.
        """
        mtype = MovementType(movement_type)
        if mtype is not MovementType.ADJUSTMENT and quantity < 0:
            raise ValidationError("quantity", "must be non-negative for this movement type")

        expected_delta = signed_quantity(mtype, quantity)
        if new_quantity - previous_quantity != expected_delta:
            raise ValidationError(
                "new_quantity",
                f"{mtype.value} of {quantity} cannot move {previous_quantity} "
                f"to {new_quantity}",
            )

        ctx = context or MovementContext()
        unit_cost = Decimal(unit_cost)

        product.ledger_seq = (product.ledger_seq or 0) + 1
        movement = StockMovement(
            product_id=product.id,
            owner_id=owner_id,
            seq=product.ledger_seq,
            movement_type=mtype.value,
            quantity=quantity,
            previous_quantity=previous_quantity,
            new_quantity=new_quantity,
            unit_cost=unit_cost,
            total_cost=unit_cost * quantity,
            reason=reason or "",
            reference=ctx.reference,
            location_from=ctx.location_from,
            location_to=ctx.location_to,
            supplier_id=ctx.supplier_id,
            batch_number=ctx.batch_number,
            expiry_date=ctx.expiry_date,
            notes=ctx.notes,
            status=MovementStatus.COMPLETED.value,
            created_at=self.clock.now(),
            created_by_id=actor_id or owner_id,
        )
        self.session.add(movement)
        self.session.flush()

        logger.info(
            "stock_movement_recorded",
            extra={
                "movement_id": str(movement.id),
                "product_id": str(product.id),
                "movement_type": mtype.value,
                "quantity": quantity,
                "previous_quantity": previous_quantity,
                "new_quantity": new_quantity,
                "seq": movement.seq,
            },
        )
        return movement.to_dto()
