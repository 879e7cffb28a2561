"""
Service layer for catalog reference data: categories and suppliers.

Category deletion is an explicit orchestration step: subcategories block the
delete, and products that reference the category are reassigned (or left
uncategorised) in the same transaction before the row is removed.  Supplier
deletion is refused while any product still references the supplier.

Returns CategoryInfo / SupplierInfo DTOs instead of ORM entities.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy import func, select

from stock_kernel.exceptions import (
    CategoryNotFoundError,
    DuplicateNameError,
    EntityReferencedError,
    SupplierNotFoundError,
    ValidationError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.catalog import (
    DEFAULT_CATEGORY_COLOR,
    DEFAULT_CATEGORY_ICON,
    DEFAULT_LEAD_TIME_DAYS,
    Category,
    Supplier,
    SupplierStatus,
)
from stock_kernel.models.product import Product
from stock_kernel.services.base import BaseService

logger = get_logger("services.catalog")

_TWO_PLACES = Decimal("0.01")

_CATEGORY_FIELDS = frozenset(
    {"name", "description", "color", "icon", "parent_id", "is_active", "sort_order"}
)
_SUPPLIER_FIELDS = frozenset({
    "name",
    "code",
    "contact_person",
    "email",
    "phone",
    "website",
    "address",
    "credit_days",
    "lead_time_days",
    "status",
    "notes",
    "rating",
})


@dataclass(frozen=True)
class CategoryInfo:
    id: UUID
    name: str
    description: str | None
    color: str
    icon: str
    parent_id: UUID | None
    is_active: bool
    sort_order: int


@dataclass(frozen=True)
class SupplierInfo:
    id: UUID
    name: str
    code: str
    contact_person: str | None
    email: str | None
    phone: str | None
    status: SupplierStatus
    lead_time_days: int
    credit_days: int
    rating: Decimal
    total_orders: int
    on_time_deliveries: int
    quality_score: Decimal
    response_time_hours: Decimal
    delivery_performance: Decimal
    overall_score: Decimal


def to_category_info(category: Category) -> CategoryInfo:
    return CategoryInfo(
        id=category.id,
        name=category.name,
        description=category.description,
        color=category.color,
        icon=category.icon,
        parent_id=category.parent_id,
        is_active=category.is_active,
        sort_order=category.sort_order,
    )


def to_supplier_info(supplier: Supplier) -> SupplierInfo:
    return SupplierInfo(
        id=supplier.id,
        name=supplier.name,
        code=supplier.code,
        contact_person=supplier.contact_person,
        email=supplier.email,
        phone=supplier.phone,
        status=SupplierStatus(supplier.status),
        lead_time_days=supplier.lead_time_days,
        credit_days=supplier.credit_days,
        rating=Decimal(supplier.rating),
        total_orders=supplier.total_orders,
        on_time_deliveries=supplier.on_time_deliveries,
        quality_score=Decimal(supplier.quality_score),
        response_time_hours=Decimal(supplier.response_time_hours),
        delivery_performance=supplier.delivery_performance.quantize(
            _TWO_PLACES, rounding=ROUND_HALF_UP
        ),
        overall_score=supplier.overall_score.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP),
    )


def _validate_color(color: str) -> None:
    if not color or not (color.startswith("bg-") or color.startswith("#")):
        raise ValidationError("color", "must be a 'bg-' class or a '#' hex colour")


def _validate_range(field: str, value, low: Decimal, high: Decimal) -> Decimal:
    amount = Decimal(str(value))
    if not low <= amount <= high:
        raise ValidationError(field, f"must be between {low} and {high} (got {amount})")
    return amount


class CatalogService(BaseService[Category]):
    """Categories and suppliers.  Both are shared across owners."""

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def _get_category(self, category_id: UUID) -> Category:
        category = self.session.get(Category, category_id)
        if category is None:
            raise CategoryNotFoundError(str(category_id))
        return category

    def _check_category_name_free(self, name: str, exclude_id: UUID | None = None) -> None:
        stmt = select(Category.id).where(Category.name == name)
        if exclude_id is not None:
            stmt = stmt.where(Category.id != exclude_id)
        if self.session.execute(stmt).first() is not None:
            raise DuplicateNameError("Category", "name", name)

    def _check_parent(self, category_id: UUID | None, parent_id: UUID | None) -> None:
        """Parent must exist and must not be the category or its descendant."""
        if parent_id is None:
            return
        seen: set[UUID] = set()
        current: UUID | None = parent_id
        while current is not None:
            if category_id is not None and current == category_id:
                raise ValidationError("parent_id", "would create a category cycle")
            if current in seen:
                break
            seen.add(current)
            current = self._get_category(current).parent_id

    def get_category(self, category_id: UUID) -> CategoryInfo:
        return to_category_info(self._get_category(category_id))

    def create_category(
        self,
        name: str,
        actor_id: UUID,
        description: str | None = None,
        color: str = DEFAULT_CATEGORY_COLOR,
        icon: str = DEFAULT_CATEGORY_ICON,
        parent_id: UUID | None = None,
        sort_order: int = 0,
    ) -> CategoryInfo:
        """
        Raises:
            ValidationError: Empty name or malformed colour.
            DuplicateNameError: Name already taken.
            CategoryNotFoundError: parent_id unknown.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("name", "must not be empty")
        _validate_color(color)
        self._check_category_name_free(name)
        self._check_parent(None, parent_id)

        category = Category(
            name=name,
            description=description,
            color=color,
            icon=icon,
            parent_id=parent_id,
            sort_order=sort_order,
            created_by_id=actor_id,
        )
        self.session.add(category)
        self.session.flush()
        logger.info(
            "category_created",
            extra={"category_id": str(category.id), "category_name": name},
        )
        return to_category_info(category)

    def update_category(self, category_id: UUID, actor_id: UUID, **changes) -> CategoryInfo:
        unknown = set(changes) - _CATEGORY_FIELDS
        if unknown:
            raise ValidationError(sorted(unknown)[0], "is not an updatable category field")

        category = self._get_category(category_id)
        if "name" in changes:
            name = (changes["name"] or "").strip()
            if not name:
                raise ValidationError("name", "must not be empty")
            self._check_category_name_free(name, exclude_id=category_id)
            changes["name"] = name
        if "color" in changes:
            _validate_color(changes["color"])
        if "parent_id" in changes:
            self._check_parent(category_id, changes["parent_id"])

        for key, value in changes.items():
            setattr(category, key, value)
        category.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "category_updated",
            extra={"category_id": str(category_id), "fields": sorted(changes)},
        )
        return to_category_info(category)

    def delete_category(
        self,
        category_id: UUID,
        actor_id: UUID,
        reassign_to: UUID | None = None,
    ) -> int:
        """
        Delete a category after moving its products.

        Products referencing the category are moved to ``reassign_to`` or,
        when it is None, left without a category.  Returns the number of
        products moved.

        Raises:
            CategoryNotFoundError: category_id or reassign_to unknown.
            EntityReferencedError: The category still has subcategories.
            ValidationError: reassign_to is the category being deleted.
        """
        category = self._get_category(category_id)

        child_count = self.session.execute(
            select(func.count()).select_from(Category).where(Category.parent_id == category_id)
        ).scalar_one()
        if child_count:
            raise EntityReferencedError("Category", str(category_id), "subcategories", child_count)

        if reassign_to is not None:
            if reassign_to == category_id:
                raise ValidationError("reassign_to", "cannot be the category being deleted")
            self._get_category(reassign_to)

        products = self.session.execute(
            select(Product).where(Product.category_id == category_id)
        ).scalars().all()
        for product in products:
            product.category_id = reassign_to
            product.updated_by_id = actor_id
        self.session.flush()

        self.session.delete(category)
        self.session.flush()
        logger.info(
            "category_deleted",
            extra={
                "category_id": str(category_id),
                "products_moved": len(products),
                "reassigned_to": str(reassign_to) if reassign_to else None,
            },
        )
        return len(products)

    # ------------------------------------------------------------------
    # Suppliers
    # ------------------------------------------------------------------

    def _get_supplier(self, supplier_id: UUID) -> Supplier:
        supplier = self.session.get(Supplier, supplier_id)
        if supplier is None:
            raise SupplierNotFoundError(str(supplier_id))
        return supplier

    def _check_supplier_unique(
        self,
        field: str,
        value: str,
        exclude_id: UUID | None = None,
    ) -> None:
        column = getattr(Supplier, field)
        stmt = select(Supplier.id).where(column == value)
        if exclude_id is not None:
            stmt = stmt.where(Supplier.id != exclude_id)
        if self.session.execute(stmt).first() is not None:
            raise DuplicateNameError("Supplier", field, value)

    def _generate_supplier_code(self) -> str:
        """SUP-YYMMDD-NNN, NNN being the next free number after the supplier count."""
        prefix = f"SUP-{self.clock.now():%y%m%d}"
        number = self.session.execute(
            select(func.count()).select_from(Supplier)
        ).scalar_one() + 1
        while True:
            code = f"{prefix}-{number:03d}"
            exists = self.session.execute(
                select(Supplier.id).where(Supplier.code == code)
            ).first()
            if exists is None:
                return code
            number += 1

    def get_supplier(self, supplier_id: UUID) -> SupplierInfo:
        return to_supplier_info(self._get_supplier(supplier_id))

    def create_supplier(
        self,
        name: str,
        actor_id: UUID,
        code: str | None = None,
        contact_person: str | None = None,
        email: str | None = None,
        phone: str | None = None,
        website: str | None = None,
        address: str | None = None,
        credit_days: int = 30,
        lead_time_days: int = DEFAULT_LEAD_TIME_DAYS,
        status: SupplierStatus = SupplierStatus.ACTIVE,
        notes: str | None = None,
    ) -> SupplierInfo:
        """
        Raises:
            ValidationError: Empty name or negative lead time.
            DuplicateNameError: Name or code already taken.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationError("name", "must not be empty")
        if lead_time_days < 0:
            raise ValidationError("lead_time_days", "must be non-negative")
        status = SupplierStatus(status)

        self._check_supplier_unique("name", name)
        if code:
            code = code.strip()
            self._check_supplier_unique("code", code)
        else:
            code = self._generate_supplier_code()

        supplier = Supplier(
            name=name,
            code=code,
            contact_person=contact_person,
            email=email,
            phone=phone,
            website=website,
            address=address,
            credit_days=credit_days,
            lead_time_days=lead_time_days,
            status=status.value,
            notes=notes,
            created_by_id=actor_id,
        )
        self.session.add(supplier)
        self.session.flush()
        logger.info(
            "supplier_created",
            extra={"supplier_id": str(supplier.id), "code": code},
        )
        return to_supplier_info(supplier)

    def update_supplier(self, supplier_id: UUID, actor_id: UUID, **changes) -> SupplierInfo:
        unknown = set(changes) - _SUPPLIER_FIELDS
        if unknown:
            raise ValidationError(sorted(unknown)[0], "is not an updatable supplier field")

        supplier = self._get_supplier(supplier_id)
        for field in ("name", "code"):
            if field in changes:
                value = (changes[field] or "").strip()
                if not value:
                    raise ValidationError(field, "must not be empty")
                self._check_supplier_unique(field, value, exclude_id=supplier_id)
                changes[field] = value
        if "status" in changes:
            changes["status"] = SupplierStatus(changes["status"]).value
        if "lead_time_days" in changes and changes["lead_time_days"] < 0:
            raise ValidationError("lead_time_days", "must be non-negative")
        if "rating" in changes:
            changes["rating"] = _validate_range("rating", changes["rating"], Decimal(0), Decimal(5))

        for key, value in changes.items():
            setattr(supplier, key, value)
        supplier.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "supplier_updated",
            extra={"supplier_id": str(supplier_id), "fields": sorted(changes)},
        )
        return to_supplier_info(supplier)

    def delete_supplier(self, supplier_id: UUID, actor_id: UUID) -> None:
        """
        Raises:
            EntityReferencedError: Products still reference the supplier.
        """
        supplier = self._get_supplier(supplier_id)
        product_count = self.session.execute(
            select(func.count()).select_from(Product).where(Product.supplier_id == supplier_id)
        ).scalar_one()
        if product_count:
            raise EntityReferencedError("Supplier", str(supplier_id), "products", product_count)

        self.session.delete(supplier)
        self.session.flush()
        logger.info(
            "supplier_deleted",
            extra={"supplier_id": str(supplier_id), "actor_id": str(actor_id)},
        )

    def record_supplier_order(
        self,
        supplier_id: UUID,
        actor_id: UUID,
        on_time: bool,
        quality_rating=None,
        response_time_hours=None,
    ) -> SupplierInfo:
        """
        Fold one completed order into the supplier's performance.

        quality_score and response_time_hours are running means over
        total_orders; orders without a value contribute the current mean.

        Raises:
            ValidationError: quality_rating outside 0-100 or negative
                response time.
        """
        if quality_rating is not None:
            quality_rating = _validate_range(
                "quality_rating", quality_rating, Decimal(0), Decimal(100)
            )
        if response_time_hours is not None:
            response_time_hours = Decimal(str(response_time_hours))
            if response_time_hours < 0:
                raise ValidationError("response_time_hours", "must be non-negative")

        supplier = self._get_supplier(supplier_id)
        supplier.total_orders += 1
        if on_time:
            supplier.on_time_deliveries += 1

        orders = Decimal(supplier.total_orders)
        if quality_rating is not None:
            previous_total = Decimal(supplier.quality_score) * (orders - 1)
            supplier.quality_score = ((previous_total + quality_rating) / orders).quantize(
                _TWO_PLACES, rounding=ROUND_HALF_UP
            )
        if response_time_hours is not None:
            previous_total = Decimal(supplier.response_time_hours) * (orders - 1)
            supplier.response_time_hours = (
                (previous_total + response_time_hours) / orders
            ).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)

        supplier.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "supplier_order_recorded",
            extra={
                "supplier_id": str(supplier_id),
                "on_time": on_time,
                "total_orders": supplier.total_orders,
            },
        )
        return to_supplier_info(supplier)
