"""
Module: stock_kernel.selectors.movement_selector
Responsibility: Read-only queries over the stock ledger: per-product history,
    date-range listings, per-type rollups, daily sales series for the
    forecasting engines, and ledger replay reconciliation.
Architecture position: Kernel > Selectors.  May import from models/,
    domain/ value objects and selectors/base.py.  MUST NOT import from
    services/ or outer layers.

Invariants enforced:
    - Ordering is newest-first by (created_at, seq) for listings and
      oldest-first by seq for replay.  seq breaks created_at ties, so two
      movements recorded in the same instant keep their append order.
    - replay_quantity() derives the quantity from ledger rows alone; no
      stored balance is consulted.

Failure modes:
    - Empty lists / zero totals when nothing matches.
    - verify_product() raises ProductNotFoundError for an unknown product.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from stock_kernel.domain.movements import MovementRecord, MovementType, replay
from stock_kernel.exceptions import ProductNotFoundError
from stock_kernel.models.product import Product
from stock_kernel.models.stock_movement import StockMovement
from stock_kernel.selectors.base import BaseSelector

DEFAULT_HISTORY_LIMIT = 50


@dataclass(frozen=True)
class MovementTypeSummary:
    """Rollup of one movement type over a window."""

    movement_type: MovementType
    count: int
    total_quantity: int
    total_value: Decimal


@dataclass(frozen=True)
class LedgerReconciliation:
    product_id: UUID
    ledger_quantity: int
    recorded_quantity: int
    movement_count: int

    @property
    def is_consistent(self) -> bool:
        return self.ledger_quantity == self.recorded_quantity


class MovementSelector(BaseSelector[StockMovement]):
    """Ledger reads.  Writes go through StockLedger."""

    def history(
        self,
        product_id: UUID,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> list[MovementRecord]:
        """Most recent movements of one product, newest first."""
        stmt = (
            select(StockMovement)
            .where(StockMovement.product_id == product_id)
            .order_by(StockMovement.created_at.desc(), StockMovement.seq.desc())
            .limit(limit)
        )
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]

    def by_date_range(
        self,
        start: datetime,
        end: datetime,
        owner_id: UUID | None = None,
        product_id: UUID | None = None,
        movement_type: MovementType | str | None = None,
    ) -> list[MovementRecord]:
        """Movements with start <= created_at <= end, newest first."""
        stmt = select(StockMovement).where(
            StockMovement.created_at >= start,
            StockMovement.created_at <= end,
        )
        if owner_id is not None:
            stmt = stmt.where(StockMovement.owner_id == owner_id)
        if product_id is not None:
            stmt = stmt.where(StockMovement.product_id == product_id)
        if movement_type is not None:
            stmt = stmt.where(
                StockMovement.movement_type == MovementType(movement_type).value
            )
        stmt = stmt.order_by(StockMovement.created_at.desc(), StockMovement.seq.desc())
        return [m.to_dto() for m in self.session.execute(stmt).scalars()]

    def analytics(
        self,
        owner_id: UUID,
        period_days: int = 30,
    ) -> dict[MovementType, MovementTypeSummary]:
        """
        Count, total quantity and total value per movement type over the
        last ``period_days`` days.

        Types with no movements in the window are absent from the result.
        """
        since = self.clock.now() - timedelta(days=period_days)
        stmt = (
            select(
                StockMovement.movement_type,
                func.count(StockMovement.id),
                func.coalesce(func.sum(StockMovement.quantity), 0),
                func.coalesce(func.sum(StockMovement.total_cost), 0),
            )
            .where(
                StockMovement.owner_id == owner_id,
                StockMovement.created_at >= since,
            )
            .group_by(StockMovement.movement_type)
        )
        result: dict[MovementType, MovementTypeSummary] = {}
        for mtype, count, total_quantity, total_value in self.session.execute(stmt):
            key = MovementType(mtype)
            result[key] = MovementTypeSummary(
                movement_type=key,
                count=int(count),
                total_quantity=int(total_quantity),
                total_value=Decimal(str(total_value)),
            )
        return result

    def daily_demand(self, product_id: UUID, days: int) -> list[int]:
        """
        Units sold (``out`` movements) per UTC day for the last ``days``
        days, oldest first, including today.  Days without sales are 0.
        """
        return self._daily_out(StockMovement.product_id == product_id, days)

    def daily_sales(self, owner_id: UUID, days: int) -> list[int]:
        """Same series as daily_demand, summed over all of an owner's products."""
        return self._daily_out(StockMovement.owner_id == owner_id, days)

    def _daily_out(self, criterion, days: int) -> list[int]:
        if days <= 0:
            return []
        today = self.clock.now().date()
        first_day = today - timedelta(days=days - 1)
        window_start = datetime.combine(
            first_day, datetime.min.time(), tzinfo=self.clock.now().tzinfo
        )

        stmt = select(StockMovement.created_at, StockMovement.quantity).where(
            criterion,
            StockMovement.movement_type == MovementType.OUT.value,
            StockMovement.created_at >= window_start,
        )
        buckets: dict[date, int] = {}
        for created_at, quantity in self.session.execute(stmt):
            day = created_at.date()
            buckets[day] = buckets.get(day, 0) + quantity

        return [
            buckets.get(first_day + timedelta(days=offset), 0)
            for offset in range(days)
        ]

    def replay_quantity(self, product_id: UUID) -> int:
        """Quantity implied by the product's ledger, replayed in seq order."""
        stmt = (
            select(StockMovement.movement_type, StockMovement.quantity)
            .where(StockMovement.product_id == product_id)
            .order_by(StockMovement.seq)
        )
        return replay(self.session.execute(stmt).all())

    def verify_product(self, product_id: UUID) -> LedgerReconciliation:
        """
        Compare the stored product quantity with its ledger replay.

        Raises:
            ProductNotFoundError: Unknown product.
        """
        product = self.session.get(Product, product_id)
        if product is None:
            raise ProductNotFoundError(str(product_id))

        count = self.session.execute(
            select(func.count())
            .select_from(StockMovement)
            .where(StockMovement.product_id == product_id)
        ).scalar_one()
        return LedgerReconciliation(
            product_id=product_id,
            ledger_quantity=self.replay_quantity(product_id),
            recorded_quantity=product.quantity,
            movement_count=count,
        )
