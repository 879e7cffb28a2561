"""
Module: stock_kernel.models.product
Responsibility: ORM persistence for products: identity, pricing, current
    quantity and thresholds, cumulative sales and rating totals.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ value objects.

Invariants enforced:
    - SKU unique per owner (uq_product_owner_sku).
    - quantity >= 0 (CHECK constraint); it is only changed by StockService,
      which records a ledger movement for every change.
    - stock_status is derived on read and never stored.
    - version is a SQLAlchemy version_id_col: a concurrent write to the same
      row surfaces as StaleDataError at flush.

Failure modes:
    - IntegrityError on duplicate (owner_id, sku) or negative quantity.
    - StaleDataError when the row changed since it was loaded.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase
from stock_kernel.domain.stock_state import (
    DEFAULT_MAX_STOCK,
    DEFAULT_MIN_STOCK,
    ProductStatus,
    ProductStock,
    StockStatus,
    classify_stock_status,
)


class Product(TrackedBase):
    """
    A product owned by a single user.

    Guarantees:
        - to_stock() returns a frozen ProductStock snapshot for the pure
          domain functions.
    """

    __tablename__ = "products"

    __table_args__ = (
        UniqueConstraint("owner_id", "sku", name="uq_product_owner_sku"),
        CheckConstraint("quantity >= 0", name="ck_product_quantity_non_negative"),
        Index("idx_product_owner", "owner_id"),
        Index("idx_product_category", "category_id"),
        Index("idx_product_supplier", "supplier_id"),
        Index("idx_product_status", "status"),
    )

    owner_id: Mapped[UUID] = mapped_column(nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    sku: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    price: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    cost: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    min_stock: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_MIN_STOCK
    )
    max_stock: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_MAX_STOCK
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ProductStatus.ACTIVE.value
    )

    category_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("categories.id"), nullable=True
    )
    supplier_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("suppliers.id"), nullable=True
    )

    # Cumulative sales
    total_sold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_revenue: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    # Ratings
    total_rating: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rating_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    avg_rating: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    # Last ledger seq allocated for this product (incremented under row lock)
    ledger_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def stock_status(self) -> StockStatus:
        return classify_stock_status(self.quantity, self.min_stock, self.max_stock)

    @property
    def inventory_value(self) -> Decimal:
        return Decimal(self.price) * self.quantity

    def to_stock(self) -> ProductStock:
        """Snapshot of the stock-relevant fields."""
        return ProductStock(
            product_id=self.id,
            quantity=self.quantity,
            min_stock=self.min_stock,
            max_stock=self.max_stock,
            price=Decimal(self.price),
            cost=Decimal(self.cost),
            status=ProductStatus(self.status),
            total_sold=self.total_sold,
            total_revenue=Decimal(self.total_revenue),
            name=self.name,
        )

    def apply_stock(self, stock: ProductStock) -> None:
        """Copy quantity and sales totals back from a snapshot."""
        self.quantity = stock.quantity
        self.total_sold = stock.total_sold
        self.total_revenue = stock.total_revenue

    def __repr__(self) -> str:
        return f"<Product {self.sku} qty={self.quantity}>"
