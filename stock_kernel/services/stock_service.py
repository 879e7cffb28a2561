"""
StockService -- every quantity-affecting operation on a product.

Responsibility:
    Orchestrates a stock change end to end:

        validate all preconditions (pure domain, nothing written)
            -> StockLedger append
            -> Product quantity / sales totals update
            -> Inventory aggregate update + statistics + alerts
            -> flush

    Also owns the lazily-created per-owner inventory aggregate, reservations,
    relocations and alert housekeeping.

Architecture position:
    Kernel > Services.  Composes the pure functions in domain/stock_state.py
    and domain/inventory.py with StockLedger and the ORM models.

Invariants enforced:
    - Preconditions are checked before the first write; a rejected request
      leaves product, ledger and aggregate untouched.
    - Ledger replay: every change to Product.quantity is paired with exactly
      one StockMovement in the same flush.
    - Per-product serialization: the product row and the aggregate row are
      loaded SELECT ... FOR UPDATE and both carry a version_id_col.
    - available_quantity == quantity - reserved_quantity >= 0 for every entry.

Failure modes:
    - ProductNotFoundError: product unknown for this owner.
    - InventoryEntryNotFoundError: product not held in the aggregate.
    - InsufficientStockError / InsufficientReservationError.
    - ValidationError: non-positive quantity or empty location.
    - OptimisticLockError: the product or aggregate changed underneath us.
    - StockMutationError: a database error after the first write.  The
      caller must roll back; the event is logged at ERROR with the product
      id and the failing step for reconciliation.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from stock_kernel.domain import inventory as inv
from stock_kernel.domain.clock import Clock
from stock_kernel.domain.inventory import (
    DEFAULT_INVENTORY_LOCATION,
    DEFAULT_INVENTORY_NAME,
    InventorySettings,
    InventorySnapshot,
)
from stock_kernel.domain.movements import MovementContext, MovementRecord, MovementType
from stock_kernel.domain.stock_state import (
    ProductStock,
    StockOperation,
    StockStatus,
    apply_stock_change,
)
from stock_kernel.exceptions import (
    OptimisticLockError,
    ProductNotFoundError,
    StockKernelError,
    StockMutationError,
    ValidationError,
)
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.models.inventory import InventoryModel
from stock_kernel.models.product import Product
from stock_kernel.services.base import BaseService
from stock_kernel.services.stock_ledger import StockLedger

logger = get_logger("services.stock")


@dataclass(frozen=True)
class InventoryDefaults:
    """Values used when an owner's aggregate is created lazily."""

    name: str = DEFAULT_INVENTORY_NAME
    location: str = DEFAULT_INVENTORY_LOCATION
    settings: InventorySettings = field(default_factory=InventorySettings)


@dataclass(frozen=True)
class InventoryView:
    """Read-side view of an owner's aggregate."""

    id: UUID
    owner_id: UUID
    name: str
    description: str | None
    location: str
    inventory_type: str
    is_active: bool
    snapshot: InventorySnapshot

    @property
    def entries(self):
        return self.snapshot.entries

    @property
    def statistics(self):
        return self.snapshot.statistics

    @property
    def alerts(self):
        return self.snapshot.alerts


@dataclass(frozen=True)
class StockMutationResult:
    product_id: UUID
    previous_quantity: int
    new_quantity: int
    stock_status: StockStatus
    movement: MovementRecord | None
    inventory: InventorySnapshot


@dataclass(frozen=True)
class _Plan:
    """Validated outcome of a stock change, computed before any write."""

    stock: ProductStock
    snapshot: InventorySnapshot
    movement_type: MovementType | None = None
    movement_quantity: int = 0
    previous_quantity: int = 0
    new_quantity: int = 0
    context: MovementContext | None = None


def _require_positive(quantity: int) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("quantity", f"must be a positive integer (got {quantity!r})")


class StockService(BaseService[Product]):
    """
    Stock mutations for one owner at a time.

    Contract:
        Receives Session and Clock via constructor injection.  Every public
        mutator returns a frozen StockMutationResult (or InventoryView) and
        leaves the session flushed but uncommitted.
    """

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        defaults: InventoryDefaults | None = None,
    ):
        super().__init__(session, clock)
        self.defaults = defaults or InventoryDefaults()
        self.ledger = StockLedger(session, self.clock)

    # ------------------------------------------------------------------
    # Loading and locking
    # ------------------------------------------------------------------

    def _lock_product(self, owner_id: UUID, product_id: UUID) -> Product:
        product = self.session.execute(
            select(Product)
            .where(Product.id == product_id, Product.owner_id == owner_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if product is None:
            raise ProductNotFoundError(str(product_id))
        return product

    def _find_inventory(self, owner_id: UUID, lock: bool) -> InventoryModel | None:
        stmt = select(InventoryModel).where(InventoryModel.owner_id == owner_id)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.session.execute(stmt).scalar_one_or_none()

    def _lock_inventory(self, owner_id: UUID, actor_id: UUID | None = None) -> InventoryModel:
        """Load the owner's aggregate FOR UPDATE, creating it on first use."""
        inventory = self._find_inventory(owner_id, lock=True)
        if inventory is not None:
            return inventory

        # Two first-time writers may race to create the aggregate; the
        # unique owner constraint decides and the loser re-reads.
        savepoint = self.session.begin_nested()
        try:
            settings = self.defaults.settings
            inventory = InventoryModel(
                owner_id=owner_id,
                name=self.defaults.name,
                location=self.defaults.location,
                auto_reorder=settings.auto_reorder,
                low_stock_threshold=settings.low_stock_threshold,
                track_expiry=settings.track_expiry,
                allow_negative_stock=settings.allow_negative_stock,
                created_by_id=actor_id or owner_id,
            )
            self.session.add(inventory)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            logger.debug("inventory_create_race_retry", extra={"owner_id": str(owner_id)})
            inventory = self._find_inventory(owner_id, lock=True)
            if inventory is None:
                raise
            return inventory

        logger.info(
            "inventory_created",
            extra={"owner_id": str(owner_id), "inventory_id": str(inventory.id)},
        )
        return inventory

    def _product_stocks(
        self,
        owner_id: UUID,
        snapshot: InventorySnapshot,
        override: ProductStock | None = None,
    ) -> dict[UUID, ProductStock]:
        ids = [entry.product_id for entry in snapshot.entries]
        stocks: dict[UUID, ProductStock] = {}
        if ids:
            rows = self.session.execute(
                select(Product).where(Product.owner_id == owner_id, Product.id.in_(ids))
            ).scalars()
            stocks = {row.id: row.to_stock() for row in rows}
        if override is not None:
            stocks[override.product_id] = override
        return stocks

    def _view(self, inventory: InventoryModel) -> InventoryView:
        return InventoryView(
            id=inventory.id,
            owner_id=inventory.owner_id,
            name=inventory.name,
            description=inventory.description,
            location=inventory.location,
            inventory_type=inventory.inventory_type,
            is_active=inventory.is_active,
            snapshot=inventory.to_snapshot(),
        )

    # ------------------------------------------------------------------
    # Core mutation pipeline
    # ------------------------------------------------------------------

    def _mutate(
        self,
        owner_id: UUID,
        product_id: UUID,
        operation: str,
        plan_fn: Callable[[ProductStock, InventorySnapshot], _Plan],
        reason: str = "",
        unit_cost: Decimal | None = None,
        actor_id: UUID | None = None,
    ) -> StockMutationResult:
        actor = actor_id or owner_id
        with LogContext.bind(owner_id=owner_id, product_id=product_id, actor_id=actor):
            product = self._lock_product(owner_id, product_id)
            inventory = self._lock_inventory(owner_id, actor)

            # Pure: raises before anything below is written.
            plan = plan_fn(product.to_stock(), inventory.to_snapshot())

            step = "ledger_append"
            try:
                movement = None
                if plan.movement_type is not None:
                    movement = self.ledger.record_movement(
                        product=product,
                        owner_id=owner_id,
                        movement_type=plan.movement_type,
                        quantity=plan.movement_quantity,
                        previous_quantity=plan.previous_quantity,
                        new_quantity=plan.new_quantity,
                        unit_cost=product.cost if unit_cost is None else unit_cost,
                        reason=reason,
                        context=plan.context,
                        actor_id=actor,
                    )

                step = "product_update"
                product.apply_stock(plan.stock)
                product.updated_by_id = actor

                step = "inventory_update"
                now = self.clock.now()
                stocks = self._product_stocks(owner_id, plan.snapshot, override=plan.stock)
                snapshot = inv.refresh(plan.snapshot, stocks, now)
                inventory.apply_snapshot(snapshot, actor, now)
                self.session.flush()
            except StaleDataError as exc:
                logger.warning(
                    "stock_mutation_conflict",
                    extra={"operation": operation, "step": step},
                )
                raise OptimisticLockError("Product", str(product_id)) from exc
            except StockKernelError:
                raise
            except SQLAlchemyError as exc:
                logger.error(
                    "stock_mutation_partial_failure",
                    extra={
                        "operation": operation,
                        "step": step,
                        "requires_reconciliation": True,
                    },
                    exc_info=True,
                )
                raise StockMutationError(str(product_id), step, exc) from exc

            logger.info(
                "stock_mutation_applied",
                extra={
                    "operation": operation,
                    "previous_quantity": plan.previous_quantity,
                    "new_quantity": plan.stock.quantity,
                    "stock_status": plan.stock.stock_status.value,
                },
            )
            return StockMutationResult(
                product_id=product.id,
                previous_quantity=plan.previous_quantity,
                new_quantity=plan.stock.quantity,
                stock_status=plan.stock.stock_status,
                movement=movement,
                inventory=snapshot,
            )

    # ------------------------------------------------------------------
    # Quantity changes
    # ------------------------------------------------------------------

    def add_stock(
        self,
        owner_id: UUID,
        product_id: UUID,
        quantity: int,
        unit_cost: Decimal | None = None,
        reason: str = "Stock added",
        location: str | None = None,
        context: MovementContext | None = None,
        actor_id: UUID | None = None,
    ) -> StockMutationResult:
        """Receive stock (movement type ``in``)."""
        _require_positive(quantity)
        return self._receive(
            owner_id, product_id, quantity, MovementType.IN, "add_stock",
            unit_cost, reason, location, context, actor_id,
        )

    def record_return(
        self,
        owner_id: UUID,
        product_id: UUID,
        quantity: int,
        reason: str = "Customer return",
        location: str | None = None,
        context: MovementContext | None = None,
        actor_id: UUID | None = None,
    ) -> StockMutationResult:
        """Returned goods back on hand (movement type ``returned``)."""
        _require_positive(quantity)
        return self._receive(
            owner_id, product_id, quantity, MovementType.RETURNED, "record_return",
            None, reason, location, context, actor_id,
        )

    def _receive(
        self,
        owner_id, product_id, quantity, movement_type, operation,
        unit_cost, reason, location, context, actor_id,
    ) -> StockMutationResult:
        def plan(stock: ProductStock, snapshot: InventorySnapshot) -> _Plan:
            change = apply_stock_change(stock, quantity, StockOperation.ADD)
            new_snapshot = inv.add_product(
                snapshot,
                stock.product_id,
                quantity,
                location=location or inv.DEFAULT_BIN_LOCATION,
                now=self.clock.now(),
            )
            return _Plan(
                stock=change.stock,
                snapshot=new_snapshot,
                movement_type=movement_type,
                movement_quantity=quantity,
                previous_quantity=change.previous_quantity,
                new_quantity=change.new_quantity,
                context=context,
            )

        return self._mutate(
            owner_id, product_id, operation, plan,
            reason=reason, unit_cost=unit_cost, actor_id=actor_id,
        )

    def remove_stock(
        self,
        owner_id: UUID,
        product_id: UUID,
        quantity: int,
        reason: str = "Stock removed",
        context: MovementContext | None = None,
        actor_id: UUID | None = None,
    ) -> StockMutationResult:
        """
        Sell or consume stock (movement type ``out``).

        Only available (unreserved) units can leave.  Sales totals grow by
        the removed quantity and ``removed * price``.

        Raises:
            InsufficientStockError: available_quantity < quantity.
        """
        _require_positive(quantity)
        return self._issue(
            owner_id, product_id, quantity, MovementType.OUT, True,
            "remove_stock", reason, context, actor_id,
        )

    def record_damage(
        self,
        owner_id: UUID,
        product_id: UUID,
        quantity: int,
        reason: str = "Damaged stock",
        context: MovementContext | None = None,
        actor_id: UUID | None = None,
    ) -> StockMutationResult:
        """Write off damaged units (movement type ``damaged``); not a sale."""
        _require_positive(quantity)
        return self._issue(
            owner_id, product_id, quantity, MovementType.DAMAGED, False,
            "record_damage", reason, context, actor_id,
        )

    def _issue(
        self,
        owner_id, product_id, quantity, movement_type, track_sales,
        operation, reason, context, actor_id,
    ) -> StockMutationResult:
        def plan(stock: ProductStock, snapshot: InventorySnapshot) -> _Plan:
            new_snapshot = inv.remove_product(
                snapshot, stock.product_id, quantity, now=self.clock.now()
            )
            change = apply_stock_change(
                stock, quantity, StockOperation.SUBTRACT, track_sales=track_sales
            )
            return _Plan(
                stock=change.stock,
                snapshot=new_snapshot,
                movement_type=movement_type,
                movement_quantity=change.removed,
                previous_quantity=change.previous_quantity,
                new_quantity=change.new_quantity,
                context=context,
            )

        return self._mutate(
            owner_id, product_id, operation, plan, reason=reason, actor_id=actor_id
        )

    def adjust_stock(
        self,
        owner_id: UUID,
        product_id: UUID,
        new_quantity: int,
        reason: str = "Stock adjustment",
        context: MovementContext | None = None,
        actor_id: UUID | None = None,
    ) -> StockMutationResult:
        """
        Corrective overwrite of the quantity (``set``).

        The ledger records the signed delta.  Sales totals are untouched.

        Raises:
            InsufficientStockError: new_quantity is below the reserved units.
        """
        if isinstance(new_quantity, bool) or not isinstance(new_quantity, int) or new_quantity < 0:
            raise ValidationError("new_quantity", f"must be a non-negative integer (got {new_quantity!r})")

        def plan(stock: ProductStock, snapshot: InventorySnapshot) -> _Plan:
            new_snapshot = inv.set_entry_quantity(
                snapshot, stock.product_id, new_quantity, now=self.clock.now()
            )
            change = apply_stock_change(stock, new_quantity, StockOperation.SET)
            return _Plan(
                stock=change.stock,
                snapshot=new_snapshot,
                movement_type=MovementType.ADJUSTMENT,
                movement_quantity=change.delta,
                previous_quantity=change.previous_quantity,
                new_quantity=change.new_quantity,
                context=context,
            )

        return self._mutate(
            owner_id, product_id, "adjust_stock", plan, reason=reason, actor_id=actor_id
        )

    def transfer_stock(
        self,
        owner_id: UUID,
        product_id: UUID,
        location_to: str,
        reason: str = "Stock transfer",
        reference: str | None = None,
        actor_id: UUID | None = None,
    ) -> StockMutationResult:
        """
        Move a held product to another bin.

        Quantity is unchanged; the ledger records a ``transfer`` of the
        entry's quantity with location_from/location_to.
        """

        def plan(stock: ProductStock, snapshot: InventorySnapshot) -> _Plan:
            entry = snapshot.require_entry(stock.product_id)
            new_snapshot = inv.relocate_entry(snapshot, stock.product_id, location_to)
            return _Plan(
                stock=stock,
                snapshot=new_snapshot,
                movement_type=MovementType.TRANSFER,
                movement_quantity=entry.quantity,
                previous_quantity=stock.quantity,
                new_quantity=stock.quantity,
                context=MovementContext(
                    reference=reference,
                    location_from=entry.location,
                    location_to=location_to,
                ),
            )

        return self._mutate(
            owner_id, product_id, "transfer_stock", plan, reason=reason, actor_id=actor_id
        )

    # ------------------------------------------------------------------
    # Reservations
    # ------------------------------------------------------------------

    def reserve_stock(
        self,
        owner_id: UUID,
        product_id: UUID,
        quantity: int,
        actor_id: UUID | None = None,
    ) -> StockMutationResult:
        """
        Earmark available units.  No ledger entry: on-hand is unchanged.

        Raises:
            InsufficientStockError: available_quantity < quantity; nothing
                is changed.
        """
        _require_positive(quantity)

        def plan(stock: ProductStock, snapshot: InventorySnapshot) -> _Plan:
            return _Plan(
                stock=stock,
                snapshot=inv.reserve_product(snapshot, stock.product_id, quantity),
                previous_quantity=stock.quantity,
                new_quantity=stock.quantity,
            )

        return self._mutate(owner_id, product_id, "reserve_stock", plan, actor_id=actor_id)

    def release_reservation(
        self,
        owner_id: UUID,
        product_id: UUID,
        quantity: int,
        actor_id: UUID | None = None,
    ) -> StockMutationResult:
        """
        Return reserved units to available.

        Raises:
            InsufficientReservationError: quantity exceeds reserved units.
        """
        _require_positive(quantity)

        def plan(stock: ProductStock, snapshot: InventorySnapshot) -> _Plan:
            return _Plan(
                stock=stock,
                snapshot=inv.release_reservation(snapshot, stock.product_id, quantity),
                previous_quantity=stock.quantity,
                new_quantity=stock.quantity,
            )

        return self._mutate(
            owner_id, product_id, "release_reservation", plan, actor_id=actor_id
        )

    # ------------------------------------------------------------------
    # Aggregate housekeeping
    # ------------------------------------------------------------------

    def get_inventory(self, owner_id: UUID) -> InventoryView:
        """The owner's aggregate, created on first access."""
        inventory = self._find_inventory(owner_id, lock=False)
        if inventory is None:
            inventory = self._lock_inventory(owner_id)
        return self._view(inventory)

    def refresh_alerts(self, owner_id: UUID, actor_id: UUID | None = None) -> InventoryView:
        """Recompute statistics and regenerate alerts from current state."""
        actor = actor_id or owner_id
        inventory = self._lock_inventory(owner_id, actor)
        snapshot = inventory.to_snapshot()
        now = self.clock.now()
        snapshot = inv.refresh(snapshot, self._product_stocks(owner_id, snapshot), now)
        inventory.apply_snapshot(snapshot, actor, now)
        self._flush("Inventory", inventory.id)
        logger.info(
            "inventory_alerts_refreshed",
            extra={
                "owner_id": str(owner_id),
                "alert_count": len(snapshot.alerts),
                "total_products": snapshot.statistics.total_products,
            },
        )
        return self._view(inventory)

    def mark_alerts_read(
        self,
        owner_id: UUID,
        product_ids: Iterable[UUID] | None = None,
        actor_id: UUID | None = None,
    ) -> InventoryView:
        actor = actor_id or owner_id
        inventory = self._lock_inventory(owner_id, actor)
        snapshot = inv.mark_alerts_read(inventory.to_snapshot(), product_ids)
        inventory.apply_snapshot(snapshot, actor, self.clock.now())
        self._flush("Inventory", inventory.id)
        return self._view(inventory)

    def rename_inventory(
        self,
        owner_id: UUID,
        name: str | None = None,
        description: str | None = None,
        location: str | None = None,
        actor_id: UUID | None = None,
    ) -> InventoryView:
        """Update the aggregate's descriptive fields."""
        if name is not None and not name.strip():
            raise ValidationError("name", "must not be empty")
        inventory = self._lock_inventory(owner_id, actor_id)
        if name is not None:
            inventory.name = name.strip()
        if description is not None:
            inventory.description = description
        if location is not None:
            inventory.location = location
        inventory.updated_by_id = actor_id or owner_id
        self._flush("Inventory", inventory.id)
        return self._view(inventory)

    def remove_product_entry(
        self,
        owner_id: UUID,
        product_id: UUID,
        actor_id: UUID | None = None,
    ) -> InventorySnapshot:
        """
        Drop a product from the aggregate outright (used on product deletion).

        Reserved units go with it.  No ledger entry is written.
        """
        actor = actor_id or owner_id
        inventory = self._find_inventory(owner_id, lock=True)
        if inventory is None:
            return InventorySnapshot(owner_id=owner_id)
        snapshot = inv.remove_entry(inventory.to_snapshot(), product_id)
        now = self.clock.now()
        stocks = self._product_stocks(owner_id, snapshot)
        snapshot = inv.refresh(snapshot, stocks, now)
        inventory.apply_snapshot(snapshot, actor, now)
        self._flush("Inventory", inventory.id)
        return snapshot

    def _flush(self, entity_type: str, entity_id: UUID) -> None:
        try:
            self.session.flush()
        except StaleDataError as exc:
            raise OptimisticLockError(entity_type, str(entity_id)) from exc
