"""
stock_services.analytics_service -- Read-only inventory rollups.

Responsibility:
    Aggregate an owner's products, ledger and inventory aggregate into
    reporting DTOs: ABC classification, turnover, stock status
    distribution, category and supplier performance, sales totals and the
    dashboard summary.

Architecture position:
    Services -- composes kernel selectors/models with the classification
    engine.  Never adds, flushes or deletes; safe to call inside any
    transaction.

Invariants enforced:
    - Monetary totals are Decimal, quantized to 0.01 (ROUND_HALF_UP).
    - Turnover of a product with zero quantity is 0, never a division error.
    - Stock status is derived from current quantity and thresholds using
      the same classification as the kernel.

Failure modes:
    - InventoryNotFoundError from dashboard() when the owner has no
      aggregate yet.  Reading never creates one.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_config.schema import AnalyticsConfig
from stock_engines.classification import (
    AbcClassification,
    AbcItem,
    AbcSummary,
    classify_abc,
    summarize_abc,
)
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.inventory import InventoryAlert, InventoryStatistics
from stock_kernel.domain.movements import MovementType
from stock_kernel.domain.stock_state import StockStatus
from stock_kernel.exceptions import InventoryNotFoundError
from stock_kernel.logging_config import get_logger
from stock_kernel.models.catalog import Category, Supplier
from stock_kernel.models.inventory import InventoryModel
from stock_kernel.models.product import Product
from stock_kernel.selectors.movement_selector import MovementSelector, MovementTypeSummary

logger = get_logger("services.analytics")

_CENTS = Decimal("0.01")
UNCATEGORIZED = "Uncategorized"
UNCATEGORIZED_COLOR = "bg-gray-500"


def _money(value) -> Decimal:
    return Decimal(value).quantize(_CENTS, rounding=ROUND_HALF_UP)


def _percent(part, whole) -> int:
    """Whole-number percentage, half rounded up; 0 when ``whole`` is 0."""
    if not whole:
        return 0
    return int((Decimal(part) * 100 / Decimal(whole)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# ----------------------------------------------------------------------
# DTOs
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class AbcReport:
    classifications: tuple[AbcClassification, ...]
    summary: AbcSummary


@dataclass(frozen=True)
class TurnoverReport:
    average_turnover: Decimal
    total_products: int
    fast_moving: int
    slow_moving: int


@dataclass(frozen=True)
class StatusBucket:
    count: int
    value: Decimal


@dataclass(frozen=True)
class CategoryPerformance:
    category_id: UUID | None
    name: str
    color: str
    product_count: int
    total_value: Decimal
    average_price: Decimal
    total_sold: int
    revenue: Decimal
    average_revenue_per_product: Decimal


@dataclass(frozen=True)
class SupplierPerformance:
    supplier_id: UUID
    name: str
    code: str
    status: str
    total_products: int
    total_value: Decimal
    average_rating: Decimal
    delivery_performance: Decimal
    quality_score: Decimal
    response_time_hours: Decimal


@dataclass(frozen=True)
class ProductSales:
    product_id: UUID
    name: str
    sku: str
    total_sold: int
    revenue: Decimal
    profit: Decimal


@dataclass(frozen=True)
class DailySales:
    day: date
    units: int


@dataclass(frozen=True)
class SalesReport:
    total_revenue: Decimal
    total_sold: int
    total_profit: Decimal
    average_sale_value: Decimal
    profit_margin_percent: int
    daily_sales: tuple[DailySales, ...]
    top_products: tuple[ProductSales, ...]
    period_days: int


@dataclass(frozen=True)
class CategoryShare:
    category_id: UUID | None
    name: str
    color: str
    count: int
    value: Decimal
    percentage: int


@dataclass(frozen=True)
class Dashboard:
    statistics: InventoryStatistics
    total_revenue: Decimal
    period_units_sold: int
    top_sellers: tuple[ProductSales, ...]
    recent_alerts: tuple[InventoryAlert, ...]
    category_distribution: tuple[CategoryShare, ...]
    daily_sales: tuple[DailySales, ...]
    period_days: int


@dataclass(frozen=True)
class InventoryAnalytics:
    movements: dict[MovementType, MovementTypeSummary]
    turnover: TurnoverReport
    stock_status_distribution: dict[StockStatus, StatusBucket]
    abc: AbcSummary
    period_days: int


def _product_sales(product: Product) -> ProductSales:
    revenue = Decimal(product.total_revenue)
    return ProductSales(
        product_id=product.id,
        name=product.name,
        sku=product.sku,
        total_sold=product.total_sold,
        revenue=_money(revenue),
        profit=_money(revenue - product.total_sold * Decimal(product.cost)),
    )


class AnalyticsService:
    """
    Reporting over one owner's stock.

    Contract:
        Every method takes ``owner_id`` and returns frozen DTOs.  Optional
        ``category_id`` / ``supplier_id`` arguments narrow the product set.
    """

    def __init__(
        self,
        session: Session,
        config: AnalyticsConfig | None = None,
        clock: Clock | None = None,
    ):
        self.session = session
        self.config = config or AnalyticsConfig()
        self.clock = clock or SystemClock()
        self.movements = MovementSelector(session, self.clock)

    def _products(
        self,
        owner_id: UUID,
        category_id: UUID | None = None,
        supplier_id: UUID | None = None,
    ) -> list[Product]:
        stmt = select(Product).where(Product.owner_id == owner_id)
        if category_id is not None:
            stmt = stmt.where(Product.category_id == category_id)
        if supplier_id is not None:
            stmt = stmt.where(Product.supplier_id == supplier_id)
        return list(self.session.execute(stmt.order_by(Product.name, Product.sku)).scalars())

    def _daily_sales(self, owner_id: UUID, days: int) -> tuple[DailySales, ...]:
        series = self.movements.daily_sales(owner_id, days)
        first_day = self.clock.now().date() - timedelta(days=len(series) - 1)
        return tuple(
            DailySales(day=first_day + timedelta(days=offset), units=units)
            for offset, units in enumerate(series)
        )

    # ------------------------------------------------------------------
    # Rollups
    # ------------------------------------------------------------------

    def abc_analysis(
        self,
        owner_id: UUID,
        category_id: UUID | None = None,
        supplier_id: UUID | None = None,
    ) -> AbcReport:
        """ABC tiers by inventory value (price x quantity)."""
        products = self._products(owner_id, category_id, supplier_id)
        classifications = classify_abc(
            [AbcItem(p.id, Decimal(p.price) * p.quantity) for p in products],
            a_threshold=self.config.abc_a_threshold,
            b_threshold=self.config.abc_b_threshold,
        )
        return AbcReport(
            classifications=tuple(classifications),
            summary=summarize_abc(classifications),
        )

    def turnover(
        self,
        owner_id: UUID,
        category_id: UUID | None = None,
        supplier_id: UUID | None = None,
    ) -> TurnoverReport:
        """
        Turnover is total_sold / quantity per product.

        Fast movers have turnover >= ``fast_turnover``; slow movers have
        turnover <= ``slow_turnover`` (so unsold and empty products count
        as slow).
        """
        rates = [
            Decimal(p.total_sold) / p.quantity if p.quantity else Decimal("0")
            for p in self._products(owner_id, category_id, supplier_id)
        ]
        if not rates:
            return TurnoverReport(Decimal("0"), 0, 0, 0)
        return TurnoverReport(
            average_turnover=_money(sum(rates, Decimal("0")) / len(rates)),
            total_products=len(rates),
            fast_moving=sum(1 for r in rates if r >= self.config.fast_turnover),
            slow_moving=sum(1 for r in rates if r <= self.config.slow_turnover),
        )

    def stock_status_distribution(
        self,
        owner_id: UUID,
        category_id: UUID | None = None,
        supplier_id: UUID | None = None,
    ) -> dict[StockStatus, StatusBucket]:
        """Count and inventory value per stock status; every status is present."""
        counts: dict[StockStatus, int] = {status: 0 for status in StockStatus}
        values: dict[StockStatus, Decimal] = {status: Decimal("0") for status in StockStatus}
        for product in self._products(owner_id, category_id, supplier_id):
            status = product.stock_status
            counts[status] += 1
            values[status] += product.inventory_value
        return {
            status: StatusBucket(count=counts[status], value=_money(values[status]))
            for status in StockStatus
        }

    def category_performance(self, owner_id: UUID) -> list[CategoryPerformance]:
        """Per-category totals, highest revenue first.  Products without a
        category are grouped under "Uncategorized"."""
        groups: dict[UUID | None, list[Product]] = defaultdict(list)
        for product in self._products(owner_id):
            groups[product.category_id].append(product)

        categories = {
            c.id: c
            for c in self.session.execute(
                select(Category).where(Category.id.in_([k for k in groups if k is not None]))
            ).scalars()
        }

        rows = []
        for category_id, products in groups.items():
            category = categories.get(category_id)
            count = len(products)
            revenue = sum((Decimal(p.total_revenue) for p in products), Decimal("0"))
            rows.append(
                CategoryPerformance(
                    category_id=category_id,
                    name=category.name if category else UNCATEGORIZED,
                    color=category.color if category else UNCATEGORIZED_COLOR,
                    product_count=count,
                    total_value=_money(sum((p.inventory_value for p in products), Decimal("0"))),
                    average_price=_money(
                        sum((Decimal(p.price) for p in products), Decimal("0")) / count
                    ),
                    total_sold=sum(p.total_sold for p in products),
                    revenue=_money(revenue),
                    average_revenue_per_product=_money(revenue / count),
                )
            )
        rows.sort(key=lambda r: (-r.revenue, r.name))
        return rows

    def supplier_performance(self, owner_id: UUID) -> list[SupplierPerformance]:
        """Suppliers of the owner's products, highest stocked value first."""
        groups: dict[UUID, list[Product]] = defaultdict(list)
        for product in self._products(owner_id):
            if product.supplier_id is not None:
                groups[product.supplier_id].append(product)
        if not groups:
            return []

        rows = []
        suppliers = self.session.execute(
            select(Supplier).where(Supplier.id.in_(list(groups)))
        ).scalars()
        for supplier in suppliers:
            products = groups[supplier.id]
            rows.append(
                SupplierPerformance(
                    supplier_id=supplier.id,
                    name=supplier.name,
                    code=supplier.code,
                    status=supplier.status,
                    total_products=len(products),
                    total_value=_money(sum((p.inventory_value for p in products), Decimal("0"))),
                    average_rating=Decimal(supplier.rating),
                    delivery_performance=_money(supplier.delivery_performance),
                    quality_score=Decimal(supplier.quality_score),
                    response_time_hours=Decimal(supplier.response_time_hours),
                )
            )
        rows.sort(key=lambda r: (-r.total_value, r.name))
        return rows

    def sales_analytics(self, owner_id: UUID, period_days: int | None = None) -> SalesReport:
        """
        Lifetime revenue, units and profit (revenue - sold x cost) plus the
        per-day units sold over the period from the ledger.
        """
        days = period_days or self.config.period_days
        products = self._products(owner_id)
        revenue = sum((Decimal(p.total_revenue) for p in products), Decimal("0"))
        sold = sum(p.total_sold for p in products)
        profit = sum(
            (Decimal(p.total_revenue) - p.total_sold * Decimal(p.cost) for p in products),
            Decimal("0"),
        )
        top = sorted(products, key=lambda p: Decimal(p.total_revenue), reverse=True)

        return SalesReport(
            total_revenue=_money(revenue),
            total_sold=sold,
            total_profit=_money(profit),
            average_sale_value=_money(revenue / sold) if sold else Decimal("0.00"),
            profit_margin_percent=_percent(profit, revenue),
            daily_sales=self._daily_sales(owner_id, days),
            top_products=tuple(_product_sales(p) for p in top[:10]),
            period_days=days,
        )

    def dashboard(self, owner_id: UUID, period_days: int | None = None) -> Dashboard:
        """
        Aggregate statistics, revenue, top sellers, unread alerts (newest
        first) and the category distribution by product count.

        Raises:
            InventoryNotFoundError: The owner has no inventory aggregate.
        """
        cfg = self.config
        days = period_days or cfg.period_days
        inventory = self.session.execute(
            select(InventoryModel).where(InventoryModel.owner_id == owner_id)
        ).scalar_one_or_none()
        if inventory is None:
            raise InventoryNotFoundError(str(owner_id))
        snapshot = inventory.to_snapshot()

        products = self._products(owner_id)
        sellers = sorted(products, key=lambda p: p.total_sold, reverse=True)

        unread = [a for a in snapshot.alerts if not a.is_read]
        unread.sort(key=lambda a: a.created_at, reverse=True)

        total = len(products)
        distribution = [
            CategoryShare(
                category_id=row.category_id,
                name=row.name,
                color=row.color,
                count=row.product_count,
                value=row.total_value,
                percentage=_percent(row.product_count, total),
            )
            for row in self.category_performance(owner_id)
        ]
        distribution.sort(key=lambda s: (-s.count, s.name))

        daily = self._daily_sales(owner_id, days)
        logger.debug(
            "dashboard_built",
            extra={"owner_id": str(owner_id), "products": total, "period_days": days},
        )
        return Dashboard(
            statistics=snapshot.statistics,
            total_revenue=_money(
                sum((Decimal(p.total_revenue) for p in products), Decimal("0"))
            ),
            period_units_sold=sum(d.units for d in daily),
            top_sellers=tuple(_product_sales(p) for p in sellers[: cfg.top_sellers_limit]),
            recent_alerts=tuple(unread[: cfg.recent_alerts_limit]),
            category_distribution=tuple(distribution),
            daily_sales=daily,
            period_days=days,
        )

    def inventory_analytics(
        self,
        owner_id: UUID,
        period_days: int | None = None,
        category_id: UUID | None = None,
        supplier_id: UUID | None = None,
    ) -> InventoryAnalytics:
        """
        Movement rollup over the period plus turnover, status distribution
        and ABC summary.  The category/supplier filters narrow the product
        rollups; the movement rollup always covers the whole owner.
        """
        days = period_days or self.config.period_days
        return InventoryAnalytics(
            movements=self.movements.analytics(owner_id, days),
            turnover=self.turnover(owner_id, category_id, supplier_id),
            stock_status_distribution=self.stock_status_distribution(
                owner_id, category_id, supplier_id
            ),
            abc=self.abc_analysis(owner_id, category_id, supplier_id).summary,
            period_days=days,
        )
