"""
Inventory Aggregate (``stock_kernel.domain.inventory``).

Responsibility
--------------
Pure functions over an owner's inventory aggregate: per-product entries
(on-hand, reserved, available), rolled-up statistics and generated alerts.
Every mutator takes an ``InventorySnapshot`` and returns a new one; nothing
is mutated through a reference and nothing is persisted here.

Architecture
------------
Layer: **Kernel > Domain**.  Zero I/O.  ``StockService`` loads the snapshot
from the ORM, calls these functions, and writes the result back.

Invariants
----------
- ``available_quantity == quantity - reserved_quantity >= 0`` for every entry,
  checked when the entry is constructed.
- Every mutator validates before building the new snapshot, so a failure
  leaves the caller's snapshot untouched.
- Statistics are a full recompute from current entries, never incremental.
- Alerts are rebuilt from current entries on every pass.  An alert that
  survives a pass (same product and alert type) keeps its ``is_read`` flag
  and original ``created_at``; alerts whose condition cleared disappear.

Failure Modes
-------------
- ``InventoryEntryNotFoundError`` when the product is not held.
- ``InsufficientStockError`` when available quantity cannot cover a removal
  or reservation.
- ``InsufficientReservationError`` when releasing more than is reserved.
- ``ValidationError`` on negative quantities or inconsistent entries.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from stock_kernel.domain.stock_state import (
    ProductStock,
    StockStatus,
    classify_stock_status,
    validate_quantity,
)
from stock_kernel.exceptions import (
    InsufficientReservationError,
    InsufficientStockError,
    InventoryEntryNotFoundError,
    ValidationError,
)
from stock_kernel.logging_config import get_logger

logger = get_logger("domain.inventory")

DEFAULT_INVENTORY_NAME = "Main Inventory"
DEFAULT_INVENTORY_LOCATION = "Primary Warehouse"
DEFAULT_BIN_LOCATION = "A1"


class InventoryType(str, Enum):
    MAIN = "main"
    BACKUP = "backup"
    RETAIL = "retail"
    WAREHOUSE = "warehouse"


class AlertType(str, Enum):
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"
    OVERSTOCK = "overstock"
    EXPIRY = "expiry"
    REORDER = "reorder"


class AlertSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass(frozen=True)
class InventorySettings:
    auto_reorder: bool = False
    low_stock_threshold: int = 10
    track_expiry: bool = False
    allow_negative_stock: bool = False


@dataclass(frozen=True)
class InventoryEntry:
    """
    Quantity of one product held in the aggregate.

    Contract: Immutable.  ``available_quantity`` may be omitted and is then
    derived; when supplied it must agree with the other two quantities.

    Raises:
        ValidationError: If any quantity invariant is violated.
    """

    product_id: UUID
    quantity: int
    reserved_quantity: int = 0
    available_quantity: int | None = None
    location: str = DEFAULT_BIN_LOCATION
    last_restock_date: datetime | None = None
    last_sale_date: datetime | None = None
    notes: str | None = None

    def __post_init__(self):
        if self.reserved_quantity < 0:
            raise ValidationError("reserved_quantity", "cannot be negative")

        expected_available = self.quantity - self.reserved_quantity
        if self.available_quantity is None:
            object.__setattr__(self, "available_quantity", expected_available)
        elif self.available_quantity != expected_available:
            logger.warning(
                "inventory_entry_quantity_mismatch",
                extra={
                    "product_id": str(self.product_id),
                    "quantity": self.quantity,
                    "reserved_quantity": self.reserved_quantity,
                    "available_quantity": self.available_quantity,
                    "expected_available": expected_available,
                },
            )
            raise ValidationError(
                "available_quantity",
                f"{self.available_quantity} must equal quantity - "
                f"reserved_quantity ({expected_available})",
            )

        if expected_available < 0:
            raise ValidationError(
                "reserved_quantity",
                f"reserved ({self.reserved_quantity}) exceeds quantity "
                f"({self.quantity})",
            )

    def with_quantities(self, quantity: int, reserved_quantity: int, **changes) -> "InventoryEntry":
        """Copy with new quantities; available is re-derived."""
        return replace(
            self,
            quantity=quantity,
            reserved_quantity=reserved_quantity,
            available_quantity=None,
            **changes,
        )


@dataclass(frozen=True)
class InventoryStatistics:
    total_products: int = 0
    total_value: Decimal = Decimal("0")
    total_cost: Decimal = Decimal("0")
    low_stock_items: int = 0
    out_of_stock_items: int = 0
    overstock_items: int = 0


@dataclass(frozen=True)
class InventoryAlert:
    alert_type: AlertType
    product_id: UUID
    message: str
    severity: AlertSeverity
    is_read: bool = False
    created_at: datetime | None = None

    @property
    def key(self) -> tuple[UUID, AlertType]:
        return (self.product_id, self.alert_type)


@dataclass(frozen=True)
class InventorySnapshot:
    """
    An owner's inventory aggregate at a point in time.

    ``entries`` keeps insertion order; at most one entry per product.
    """

    owner_id: UUID
    entries: tuple[InventoryEntry, ...] = ()
    statistics: InventoryStatistics = field(default_factory=InventoryStatistics)
    alerts: tuple[InventoryAlert, ...] = ()
    settings: InventorySettings = field(default_factory=InventorySettings)

    def entry_for(self, product_id: UUID) -> InventoryEntry | None:
        for entry in self.entries:
            if entry.product_id == product_id:
                return entry
        return None

    def require_entry(self, product_id: UUID) -> InventoryEntry:
        entry = self.entry_for(product_id)
        if entry is None:
            raise InventoryEntryNotFoundError(str(product_id))
        return entry


# ---------------------------------------------------------------------------
# Entry mutators
# ---------------------------------------------------------------------------


def _replace_entry(
    snapshot: InventorySnapshot,
    product_id: UUID,
    new_entry: InventoryEntry | None,
) -> InventorySnapshot:
    entries: list[InventoryEntry] = []
    found = False
    for entry in snapshot.entries:
        if entry.product_id == product_id:
            found = True
            if new_entry is not None:
                entries.append(new_entry)
        else:
            entries.append(entry)
    if not found and new_entry is not None:
        entries.append(new_entry)
    return replace(snapshot, entries=tuple(entries))


def add_product(
    snapshot: InventorySnapshot,
    product_id: UUID,
    quantity: int,
    location: str = DEFAULT_BIN_LOCATION,
    now: datetime | None = None,
) -> InventorySnapshot:
    """
    Receive ``quantity`` units of a product.

    An existing entry grows and keeps its location; otherwise a new entry
    is created at ``location``.  last_restock_date is set to ``now``.
    """
    validate_quantity(quantity)
    existing = snapshot.entry_for(product_id)
    if existing is not None:
        new_entry = existing.with_quantities(
            existing.quantity + quantity,
            existing.reserved_quantity,
            last_restock_date=now,
        )
    else:
        new_entry = InventoryEntry(
            product_id=product_id,
            quantity=quantity,
            location=location or DEFAULT_BIN_LOCATION,
            last_restock_date=now,
        )
    return _replace_entry(snapshot, product_id, new_entry)


def remove_product(
    snapshot: InventorySnapshot,
    product_id: UUID,
    quantity: int,
    now: datetime | None = None,
) -> InventorySnapshot:
    """
    Take ``quantity`` units out of the aggregate.

    Only available (unreserved) units can be removed.  The entry is dropped
    once its quantity reaches zero; the product itself is unaffected.

    Raises:
        InventoryEntryNotFoundError: Product not held.
        InsufficientStockError: available_quantity < quantity.
    """
    validate_quantity(quantity)
    entry = snapshot.require_entry(product_id)
    if entry.available_quantity < quantity:
        raise InsufficientStockError(
            str(product_id), requested=quantity, available=entry.available_quantity
        )

    remaining = entry.quantity - quantity
    if remaining <= 0:
        return _replace_entry(snapshot, product_id, None)
    new_entry = entry.with_quantities(
        remaining, entry.reserved_quantity, last_sale_date=now
    )
    return _replace_entry(snapshot, product_id, new_entry)


def set_entry_quantity(
    snapshot: InventorySnapshot,
    product_id: UUID,
    quantity: int,
    location: str = DEFAULT_BIN_LOCATION,
    now: datetime | None = None,
) -> InventorySnapshot:
    """
    Overwrite the held quantity (corrective adjustment).

    A zero quantity drops the entry.  A missing entry is created for a
    positive quantity.

    Raises:
        InsufficientStockError: The new quantity would not cover the
            units already reserved.
    """
    validate_quantity(quantity)
    entry = snapshot.entry_for(product_id)
    if entry is None:
        if quantity == 0:
            return snapshot
        return _replace_entry(
            snapshot,
            product_id,
            InventoryEntry(
                product_id=product_id,
                quantity=quantity,
                location=location or DEFAULT_BIN_LOCATION,
                last_restock_date=now,
            ),
        )

    if quantity < entry.reserved_quantity:
        raise InsufficientStockError(
            str(product_id), requested=entry.reserved_quantity, available=quantity
        )
    if quantity == 0:
        return _replace_entry(snapshot, product_id, None)
    return _replace_entry(
        snapshot,
        product_id,
        entry.with_quantities(quantity, entry.reserved_quantity),
    )


def reserve_product(
    snapshot: InventorySnapshot,
    product_id: UUID,
    quantity: int,
) -> InventorySnapshot:
    """
    Earmark ``quantity`` available units.

    Raises:
        InventoryEntryNotFoundError: Product not held.
        InsufficientStockError: available_quantity < quantity.  The
            snapshot passed in is unchanged.
    """
    validate_quantity(quantity)
    entry = snapshot.require_entry(product_id)
    if entry.available_quantity < quantity:
        raise InsufficientStockError(
            str(product_id), requested=quantity, available=entry.available_quantity
        )
    return _replace_entry(
        snapshot,
        product_id,
        entry.with_quantities(entry.quantity, entry.reserved_quantity + quantity),
    )


def release_reservation(
    snapshot: InventorySnapshot,
    product_id: UUID,
    quantity: int,
) -> InventorySnapshot:
    """
    Return ``quantity`` reserved units to available.

    Raises:
        InventoryEntryNotFoundError: Product not held.
        InsufficientReservationError: quantity exceeds reserved_quantity.
    """
    validate_quantity(quantity)
    entry = snapshot.require_entry(product_id)
    if entry.reserved_quantity < quantity:
        raise InsufficientReservationError(
            str(product_id), requested=quantity, available=entry.reserved_quantity
        )
    return _replace_entry(
        snapshot,
        product_id,
        entry.with_quantities(entry.quantity, entry.reserved_quantity - quantity),
    )


def relocate_entry(
    snapshot: InventorySnapshot,
    product_id: UUID,
    location: str,
) -> InventorySnapshot:
    """Move an entry to another bin; quantities are unchanged."""
    if not location:
        raise ValidationError("location", "must not be empty")
    entry = snapshot.require_entry(product_id)
    return _replace_entry(snapshot, product_id, replace(entry, location=location))


def remove_entry(snapshot: InventorySnapshot, product_id: UUID) -> InventorySnapshot:
    """Drop a product from the aggregate outright (product deletion)."""
    return _replace_entry(snapshot, product_id, None)


# ---------------------------------------------------------------------------
# Statistics and alerts
# ---------------------------------------------------------------------------


def _entry_status(entry: InventoryEntry, product: ProductStock) -> StockStatus:
    return classify_stock_status(entry.quantity, product.min_stock, product.max_stock)


def compute_statistics(
    snapshot: InventorySnapshot,
    products: Mapping[UUID, ProductStock],
) -> InventoryStatistics:
    """
    Full recompute of the aggregate's statistics.

    Entries whose product is missing from ``products`` count toward
    total_products only.
    """
    total_value = Decimal("0")
    total_cost = Decimal("0")
    counts = {
        StockStatus.LOW_STOCK: 0,
        StockStatus.OUT_OF_STOCK: 0,
        StockStatus.OVERSTOCK: 0,
    }

    for entry in snapshot.entries:
        product = products.get(entry.product_id)
        if product is None:
            continue
        total_value += product.price * entry.quantity
        total_cost += product.cost * entry.quantity
        status = _entry_status(entry, product)
        if status in counts:
            counts[status] += 1

    return InventoryStatistics(
        total_products=len(snapshot.entries),
        total_value=total_value,
        total_cost=total_cost,
        low_stock_items=counts[StockStatus.LOW_STOCK],
        out_of_stock_items=counts[StockStatus.OUT_OF_STOCK],
        overstock_items=counts[StockStatus.OVERSTOCK],
    )


def build_alerts(
    snapshot: InventorySnapshot,
    products: Mapping[UUID, ProductStock],
    now: datetime | None = None,
) -> tuple[InventoryAlert, ...]:
    """
    Rebuild the alert list from current entries.

    out_of_stock -> critical, low_stock -> warning, overstock -> info.
    Alerts that already existed for the same product and type keep their
    read flag and creation time.
    """
    previous = {alert.key: alert for alert in snapshot.alerts}
    alerts: list[InventoryAlert] = []

    for entry in snapshot.entries:
        product = products.get(entry.product_id)
        if product is None:
            continue
        name = product.name or str(product.product_id)
        status = _entry_status(entry, product)

        if status is StockStatus.OUT_OF_STOCK:
            alert_type = AlertType.OUT_OF_STOCK
            severity = AlertSeverity.CRITICAL
            message = f"{name} is out of stock"
        elif status is StockStatus.LOW_STOCK:
            alert_type = AlertType.LOW_STOCK
            severity = AlertSeverity.WARNING
            message = f"{name} is running low ({entry.quantity} remaining)"
        elif status is StockStatus.OVERSTOCK:
            alert_type = AlertType.OVERSTOCK
            severity = AlertSeverity.INFO
            message = f"{name} is overstocked ({entry.quantity} units)"
        else:
            continue

        prior = previous.get((entry.product_id, alert_type))
        alerts.append(
            InventoryAlert(
                alert_type=alert_type,
                product_id=entry.product_id,
                message=message,
                severity=severity,
                is_read=prior.is_read if prior else False,
                created_at=prior.created_at if prior else now,
            )
        )

    return tuple(alerts)


def generate_alerts(
    snapshot: InventorySnapshot,
    products: Mapping[UUID, ProductStock],
    now: datetime | None = None,
) -> InventorySnapshot:
    return replace(snapshot, alerts=build_alerts(snapshot, products, now))


def refresh(
    snapshot: InventorySnapshot,
    products: Mapping[UUID, ProductStock],
    now: datetime | None = None,
) -> InventorySnapshot:
    """Recompute statistics and regenerate alerts in one pass."""
    return replace(
        snapshot,
        statistics=compute_statistics(snapshot, products),
        alerts=build_alerts(snapshot, products, now),
    )


def mark_alerts_read(
    snapshot: InventorySnapshot,
    product_ids: Iterable[UUID] | None = None,
) -> InventorySnapshot:
    """Flag alerts as read, all of them or only those for ``product_ids``."""
    wanted = set(product_ids) if product_ids is not None else None
    alerts = tuple(
        replace(alert, is_read=True)
        if wanted is None or alert.product_id in wanted
        else alert
        for alert in snapshot.alerts
    )
    return replace(snapshot, alerts=alerts)


def products_needing_reorder(
    snapshot: InventorySnapshot,
    products: Mapping[UUID, ProductStock],
) -> list[UUID]:
    """Held products whose entry quantity is at or below their minimum."""
    return [
        entry.product_id
        for entry in snapshot.entries
        if entry.product_id in products
        and entry.quantity <= products[entry.product_id].min_stock
    ]
