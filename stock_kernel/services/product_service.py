"""
Service layer for Product operations.

Creates, updates, deletes and rates products.  Quantity is never written
here directly: initial stock goes through StockService so it is recorded in
the ledger, and updates that try to set ``quantity`` are refused.

Returns ProductInfo DTOs instead of ORM entities.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock
from stock_kernel.domain.stock_state import (
    DEFAULT_MAX_STOCK,
    DEFAULT_MIN_STOCK,
    ProductStatus,
    StockStatus,
    needs_reorder,
    validate_thresholds,
)
from stock_kernel.exceptions import (
    CategoryNotFoundError,
    DuplicateSkuError,
    ProductNotFoundError,
    SupplierNotFoundError,
    ValidationError,
)
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.models.catalog import Category, Supplier
from stock_kernel.models.product import Product
from stock_kernel.services.base import BaseService
from stock_kernel.services.stock_service import StockService

logger = get_logger("services.product")

_UPDATABLE_FIELDS = frozenset({
    "name",
    "sku",
    "description",
    "price",
    "cost",
    "min_stock",
    "max_stock",
    "status",
    "category_id",
    "supplier_id",
})

# Fields whose change can alter aggregate statistics or alerts
_STOCK_RELEVANT_FIELDS = frozenset({"name", "price", "cost", "min_stock", "max_stock"})


@dataclass(frozen=True)
class ProductInfo:
    """Immutable DTO for product data."""

    id: UUID
    owner_id: UUID
    name: str
    sku: str
    description: str | None
    price: Decimal
    cost: Decimal
    quantity: int
    min_stock: int
    max_stock: int
    status: ProductStatus
    category_id: UUID | None
    supplier_id: UUID | None
    total_sold: int
    total_revenue: Decimal
    total_rating: int
    rating_count: int
    avg_rating: Decimal
    stock_status: StockStatus
    needs_reorder: bool

    @property
    def inventory_value(self) -> Decimal:
        return self.price * self.quantity


def to_product_info(product: Product) -> ProductInfo:
    stock = product.to_stock()
    return ProductInfo(
        id=product.id,
        owner_id=product.owner_id,
        name=product.name,
        sku=product.sku,
        description=product.description,
        price=Decimal(product.price),
        cost=Decimal(product.cost),
        quantity=product.quantity,
        min_stock=product.min_stock,
        max_stock=product.max_stock,
        status=ProductStatus(product.status),
        category_id=product.category_id,
        supplier_id=product.supplier_id,
        total_sold=product.total_sold,
        total_revenue=Decimal(product.total_revenue),
        total_rating=product.total_rating,
        rating_count=product.rating_count,
        avg_rating=Decimal(product.avg_rating),
        stock_status=stock.stock_status,
        needs_reorder=needs_reorder(stock),
    )


def _non_negative_money(field: str, value) -> Decimal:
    amount = Decimal(str(value))
    if amount < 0:
        raise ValidationError(field, f"must be non-negative (got {amount})")
    return amount


class ProductService(BaseService[Product]):
    """
    Service for managing products.

    Contract:
        Category and supplier ids are looked up before they are written
        (CategoryNotFoundError / SupplierNotFoundError).  SKU is unique per
        owner (DuplicateSkuError).  min_stock <= max_stock is enforced
        (StockThresholdError).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        stock_service: StockService | None = None,
    ):
        super().__init__(session, clock)
        self.stock = stock_service or StockService(session, self.clock)

    def _get(self, owner_id: UUID, product_id: UUID, lock: bool = False) -> Product:
        stmt = select(Product).where(Product.id == product_id, Product.owner_id == owner_id)
        if lock:
            stmt = stmt.with_for_update()
        product = self.session.execute(stmt).scalar_one_or_none()
        if product is None:
            raise ProductNotFoundError(str(product_id))
        return product

    def _check_sku_free(self, owner_id: UUID, sku: str, exclude_id: UUID | None = None) -> None:
        stmt = select(Product.id).where(Product.owner_id == owner_id, Product.sku == sku)
        if exclude_id is not None:
            stmt = stmt.where(Product.id != exclude_id)
        if self.session.execute(stmt).first() is not None:
            raise DuplicateSkuError(sku)

    def _check_references(self, category_id: UUID | None, supplier_id: UUID | None) -> None:
        if category_id is not None and self.session.get(Category, category_id) is None:
            raise CategoryNotFoundError(str(category_id))
        if supplier_id is not None and self.session.get(Supplier, supplier_id) is None:
            raise SupplierNotFoundError(str(supplier_id))

    def get_product(self, owner_id: UUID, product_id: UUID) -> ProductInfo:
        """
        Raises:
            ProductNotFoundError: Unknown id, or owned by someone else.
        """
        return to_product_info(self._get(owner_id, product_id))

    def create_product(
        self,
        owner_id: UUID,
        name: str,
        sku: str,
        price: Decimal,
        cost: Decimal = Decimal("0"),
        quantity: int = 0,
        min_stock: int = DEFAULT_MIN_STOCK,
        max_stock: int = DEFAULT_MAX_STOCK,
        description: str | None = None,
        category_id: UUID | None = None,
        supplier_id: UUID | None = None,
        status: ProductStatus = ProductStatus.ACTIVE,
        location: str | None = None,
        actor_id: UUID | None = None,
    ) -> ProductInfo:
        """
        Create a product and, when ``quantity`` > 0, receive its initial stock.

        Preconditions are all checked before the product row is added.

        Raises:
            ValidationError / StockThresholdError: Malformed input.
            DuplicateSkuError: SKU already used by this owner.
            CategoryNotFoundError / SupplierNotFoundError.
        """
        if not name or not name.strip():
            raise ValidationError("name", "must not be empty")
        if not sku or not sku.strip():
            raise ValidationError("sku", "must not be empty")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
            raise ValidationError("quantity", f"must be a non-negative integer (got {quantity!r})")
        price = _non_negative_money("price", price)
        cost = _non_negative_money("cost", cost)
        validate_thresholds(min_stock, max_stock)
        status = ProductStatus(status)
        sku = sku.strip()

        self._check_sku_free(owner_id, sku)
        self._check_references(category_id, supplier_id)

        actor = actor_id or owner_id
        product = Product(
            owner_id=owner_id,
            name=name.strip(),
            sku=sku,
            description=description,
            price=price,
            cost=cost,
            quantity=0,
            min_stock=min_stock,
            max_stock=max_stock,
            status=status.value,
            category_id=category_id,
            supplier_id=supplier_id,
            created_by_id=actor,
        )
        self.session.add(product)
        self.session.flush()

        with LogContext.bind(owner_id=owner_id, product_id=product.id):
            logger.info("product_created", extra={"sku": sku, "initial_quantity": quantity})

        if quantity > 0:
            self.stock.add_stock(
                owner_id,
                product.id,
                quantity,
                unit_cost=cost,
                reason="Initial stock",
                location=location,
                actor_id=actor,
            )

        return to_product_info(product)

    def update_product(
        self,
        owner_id: UUID,
        product_id: UUID,
        actor_id: UUID | None = None,
        **changes,
    ) -> ProductInfo:
        """
        Update descriptive, pricing and threshold fields.

        Raises:
            ValidationError: Unknown field, or an attempt to write quantity.
            StockThresholdError: Resulting min_stock > max_stock.
            DuplicateSkuError / CategoryNotFoundError / SupplierNotFoundError.
        """
        if "quantity" in changes:
            raise ValidationError(
                "quantity", "is changed through stock operations, not product updates"
            )
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(sorted(unknown)[0], "is not an updatable product field")

        product = self._get(owner_id, product_id, lock=True)

        if "name" in changes and not (changes["name"] or "").strip():
            raise ValidationError("name", "must not be empty")
        if "sku" in changes:
            sku = (changes["sku"] or "").strip()
            if not sku:
                raise ValidationError("sku", "must not be empty")
            self._check_sku_free(owner_id, sku, exclude_id=product.id)
            changes["sku"] = sku
        for money_field in ("price", "cost"):
            if money_field in changes:
                changes[money_field] = _non_negative_money(money_field, changes[money_field])
        if "status" in changes:
            changes["status"] = ProductStatus(changes["status"]).value
        validate_thresholds(
            changes.get("min_stock", product.min_stock),
            changes.get("max_stock", product.max_stock),
        )
        self._check_references(changes.get("category_id"), changes.get("supplier_id"))

        for key, value in changes.items():
            setattr(product, key, value)
        product.updated_by_id = actor_id or owner_id
        self.session.flush()

        logger.info(
            "product_updated",
            extra={"product_id": str(product_id), "fields": sorted(changes)},
        )

        if _STOCK_RELEVANT_FIELDS & set(changes) and product.quantity > 0:
            self.stock.refresh_alerts(owner_id, actor_id=actor_id)

        return to_product_info(product)

    def delete_product(
        self,
        owner_id: UUID,
        product_id: UUID,
        actor_id: UUID | None = None,
    ) -> None:
        """
        Delete a product and drop it from the owner's aggregate.

        Ledger rows are retained.
        """
        product = self._get(owner_id, product_id, lock=True)
        self.stock.remove_product_entry(owner_id, product_id, actor_id=actor_id)
        self.session.delete(product)
        self.session.flush()
        logger.info(
            "product_deleted",
            extra={"product_id": str(product_id), "sku": product.sku},
        )

    def rate_product(
        self,
        owner_id: UUID,
        product_id: UUID,
        rating: int,
        actor_id: UUID | None = None,
    ) -> ProductInfo:
        """
        Add one rating (1-5) and recompute the average.

        Raises:
            ValidationError: rating outside 1-5.
        """
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationError("rating", f"must be an integer from 1 to 5 (got {rating!r})")

        product = self._get(owner_id, product_id, lock=True)
        product.total_rating += rating
        product.rating_count += 1
        product.avg_rating = (
            Decimal(product.total_rating) / Decimal(product.rating_count)
        ).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        product.updated_by_id = actor_id or owner_id
        self.session.flush()

        logger.info(
            "product_rated",
            extra={
                "product_id": str(product_id),
                "rating": rating,
                "rating_count": product.rating_count,
            },
        )
        return to_product_info(product)
