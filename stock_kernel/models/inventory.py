"""
Module: stock_kernel.models.inventory
Responsibility: ORM persistence for the per-owner inventory aggregate:
    the aggregate row (settings and rolled-up statistics), its entries, and
    its generated alerts.  Maps to and from the frozen
    ``stock_kernel.domain.inventory.InventorySnapshot``.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ value objects.

Invariants enforced:
    - One aggregate per owner (uq_inventory_owner).
    - One entry per product per aggregate (uq_inventory_item_product).
    - available_quantity == quantity - reserved_quantity >= 0 (CHECK
      constraints, and validated again by InventoryEntry on load).
    - version is a version_id_col; apply_snapshot() always bumps it so two
      writers of the same aggregate cannot both win.

Failure modes:
    - IntegrityError on a second aggregate for an owner.
    - StaleDataError when the aggregate changed since it was loaded.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.orm.attributes import flag_modified

from stock_kernel.db.base import TrackedBase, UTCDateTime
from stock_kernel.domain.inventory import (
    DEFAULT_BIN_LOCATION,
    DEFAULT_INVENTORY_LOCATION,
    DEFAULT_INVENTORY_NAME,
    AlertSeverity,
    AlertType,
    InventoryAlert,
    InventoryEntry,
    InventorySettings,
    InventorySnapshot,
    InventoryStatistics,
    InventoryType,
)


class InventoryModel(TrackedBase):
    """The aggregate row: one per owner, created lazily by StockService."""

    __tablename__ = "inventories"

    __table_args__ = (
        UniqueConstraint("owner_id", name="uq_inventory_owner"),
    )

    owner_id: Mapped[UUID] = mapped_column(nullable=False)
    name: Mapped[str] = mapped_column(
        String(255), nullable=False, default=DEFAULT_INVENTORY_NAME
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    location: Mapped[str] = mapped_column(
        String(255), nullable=False, default=DEFAULT_INVENTORY_LOCATION
    )
    inventory_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=InventoryType.MAIN.value
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Settings
    auto_reorder: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    low_stock_threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    track_expiry: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    allow_negative_stock: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    # Statistics (replaced wholesale on every recompute)
    total_products: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_value: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    low_stock_items: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    out_of_stock_items: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    overstock_items: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    items: Mapped[list["InventoryItemModel"]] = relationship(
        back_populates="inventory",
        cascade="all, delete-orphan",
        order_by="InventoryItemModel.position",
    )
    alerts: Mapped[list["InventoryAlertModel"]] = relationship(
        back_populates="inventory",
        cascade="all, delete-orphan",
        order_by="InventoryAlertModel.position",
    )

    __mapper_args__ = {"version_id_col": version}

    def to_snapshot(self) -> InventorySnapshot:
        return InventorySnapshot(
            owner_id=self.owner_id,
            entries=tuple(item.to_dto() for item in self.items),
            statistics=InventoryStatistics(
                total_products=self.total_products,
                total_value=Decimal(self.total_value),
                total_cost=Decimal(self.total_cost),
                low_stock_items=self.low_stock_items,
                out_of_stock_items=self.out_of_stock_items,
                overstock_items=self.overstock_items,
            ),
            alerts=tuple(alert.to_dto() for alert in self.alerts),
            settings=InventorySettings(
                auto_reorder=self.auto_reorder,
                low_stock_threshold=self.low_stock_threshold,
                track_expiry=self.track_expiry,
                allow_negative_stock=self.allow_negative_stock,
            ),
        )

    def apply_snapshot(
        self,
        snapshot: InventorySnapshot,
        actor_id: UUID,
        now: datetime,
    ) -> None:
        """
        Write a snapshot back onto this aggregate.

        Entries are matched by product id and updated in place; entries
        missing from the snapshot are deleted (delete-orphan).  Alerts are
        replaced wholesale.
        """
        existing = {item.product_id: item for item in self.items}
        items: list[InventoryItemModel] = []
        for position, entry in enumerate(snapshot.entries):
            item = existing.get(entry.product_id)
            if item is None:
                item = InventoryItemModel(
                    product_id=entry.product_id,
                    created_by_id=actor_id,
                )
            item.update_from(entry, position)
            items.append(item)
        self.items = items

        self.alerts = [
            InventoryAlertModel.from_dto(alert, position, actor_id, now)
            for position, alert in enumerate(snapshot.alerts)
        ]

        stats = snapshot.statistics
        self.total_products = stats.total_products
        self.total_value = stats.total_value
        self.total_cost = stats.total_cost
        self.low_stock_items = stats.low_stock_items
        self.out_of_stock_items = stats.out_of_stock_items
        self.overstock_items = stats.overstock_items

        self.updated_by_id = actor_id
        self.updated_at = now
        flag_modified(self, "updated_at")

    def __repr__(self) -> str:
        return f"<InventoryModel owner={self.owner_id} items={self.total_products}>"


class InventoryItemModel(TrackedBase):
    """One product entry within an aggregate."""

    __tablename__ = "inventory_items"

    __table_args__ = (
        UniqueConstraint("inventory_id", "product_id", name="uq_inventory_item_product"),
        CheckConstraint(
            "available_quantity = quantity - reserved_quantity",
            name="ck_inventory_item_available",
        ),
        CheckConstraint("available_quantity >= 0", name="ck_inventory_item_available_non_negative"),
        CheckConstraint("reserved_quantity >= 0", name="ck_inventory_item_reserved_non_negative"),
        Index("idx_inventory_item_product", "product_id"),
    )

    inventory_id: Mapped[UUID] = mapped_column(
        ForeignKey("inventories.id"), nullable=False
    )
    product_id: Mapped[UUID] = mapped_column(
        ForeignKey("products.id"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reserved_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    available_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    location: Mapped[str] = mapped_column(
        String(100), nullable=False, default=DEFAULT_BIN_LOCATION
    )
    last_restock_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    last_sale_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    inventory: Mapped[InventoryModel] = relationship(back_populates="items")

    def to_dto(self) -> InventoryEntry:
        return InventoryEntry(
            product_id=self.product_id,
            quantity=self.quantity,
            reserved_quantity=self.reserved_quantity,
            available_quantity=self.available_quantity,
            location=self.location,
            last_restock_date=self.last_restock_date,
            last_sale_date=self.last_sale_date,
            notes=self.notes,
        )

    def update_from(self, entry: InventoryEntry, position: int) -> None:
        self.quantity = entry.quantity
        self.reserved_quantity = entry.reserved_quantity
        self.available_quantity = entry.available_quantity
        self.location = entry.location
        self.last_restock_date = entry.last_restock_date
        self.last_sale_date = entry.last_sale_date
        self.notes = entry.notes
        self.position = position


class InventoryAlertModel(TrackedBase):
    """A generated alert.  Rows are replaced on every regeneration pass."""

    __tablename__ = "inventory_alerts"

    __table_args__ = (
        Index("idx_inventory_alert_inventory", "inventory_id"),
    )

    inventory_id: Mapped[UUID] = mapped_column(
        ForeignKey("inventories.id"), nullable=False
    )
    product_id: Mapped[UUID] = mapped_column(nullable=False)
    alert_type: Mapped[str] = mapped_column(String(20), nullable=False)
    message: Mapped[str] = mapped_column(String(500), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    inventory: Mapped[InventoryModel] = relationship(back_populates="alerts")

    def to_dto(self) -> InventoryAlert:
        return InventoryAlert(
            alert_type=AlertType(self.alert_type),
            product_id=self.product_id,
            message=self.message,
            severity=AlertSeverity(self.severity),
            is_read=self.is_read,
            created_at=self.created_at,
        )

    @classmethod
    def from_dto(
        cls,
        dto: InventoryAlert,
        position: int,
        created_by_id: UUID,
        now: datetime,
    ) -> "InventoryAlertModel":
        return cls(
            product_id=dto.product_id,
            alert_type=dto.alert_type.value,
            message=dto.message,
            severity=dto.severity.value,
            is_read=dto.is_read,
            position=position,
            created_at=dto.created_at or now,
            created_by_id=created_by_id,
        )
