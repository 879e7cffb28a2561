"""
Module: stock_kernel.models.catalog
Responsibility: ORM persistence for the product catalog's reference data:
    categories (optionally nested) and suppliers with their delivery and
    quality performance counters.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Category name is globally unique (uq_category_name).
    - Supplier code is globally unique (uq_supplier_code); the service
      generates one when none is supplied.

Failure modes:
    - IntegrityError on duplicate name/code if the service-level check is
      bypassed.
"""

from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase

DEFAULT_CATEGORY_COLOR = "bg-blue-500"
DEFAULT_CATEGORY_ICON = "Package"
DEFAULT_LEAD_TIME_DAYS = 7


class SupplierStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    BLACKLISTED = "blacklisted"


class Category(TrackedBase):
    """
    Product category.

    Guarantees:
        - name is unique across the catalog.
        - parent_id, when set, references another category.  Deleting a
          category with children is refused by CatalogService.
    """

    __tablename__ = "categories"

    __table_args__ = (
        UniqueConstraint("name", name="uq_category_name"),
        Index("idx_category_parent", "parent_id"),
        Index("idx_category_active", "is_active"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    color: Mapped[str] = mapped_column(
        String(50), nullable=False, default=DEFAULT_CATEGORY_COLOR
    )
    icon: Mapped[str] = mapped_column(
        String(50), nullable=False, default=DEFAULT_CATEGORY_ICON
    )
    parent_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("categories.id"), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<Category {self.name}>"


class Supplier(TrackedBase):
    """
    Supplier with performance counters.

    Performance fields are maintained by CatalogService.record_supplier_order
    as running averages over total_orders.
    """

    __tablename__ = "suppliers"

    __table_args__ = (
        UniqueConstraint("code", name="uq_supplier_code"),
        Index("idx_supplier_name", "name"),
        Index("idx_supplier_status", "status"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(50), nullable=False)

    contact_person: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    website: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)

    credit_days: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    lead_time_days: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_LEAD_TIME_DAYS
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SupplierStatus.ACTIVE.value
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Performance (rating 0-5, quality 0-100, response time in hours)
    rating: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_orders: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    on_time_deliveries: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    quality_score: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    response_time_hours: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0")
    )

    @property
    def delivery_performance(self) -> Decimal:
        """Percentage of orders delivered on time (0 when no orders)."""
        if not self.total_orders:
            return Decimal("0")
        return Decimal(self.on_time_deliveries) / Decimal(self.total_orders) * 100

    @property
    def overall_score(self) -> Decimal:
        rating_score = Decimal(self.rating) / 5 * 100
        return (
            self.delivery_performance * Decimal("0.4")
            + Decimal(self.quality_score) * Decimal("0.4")
            + rating_score * Decimal("0.2")
        )

    def __repr__(self) -> str:
        return f"<Supplier {self.code} {self.name}>"
