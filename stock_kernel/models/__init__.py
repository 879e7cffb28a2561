"""ORM models for the stock kernel."""

from stock_kernel.models.catalog import Category, Supplier, SupplierStatus
from stock_kernel.models.insight import (
    PRIORITY_RANK,
    Insight,
    InsightPriority,
    InsightStatus,
    InsightType,
)
from stock_kernel.models.inventory import (
    InventoryAlertModel,
    InventoryItemModel,
    InventoryModel,
)
from stock_kernel.models.product import Product
from stock_kernel.models.stock_movement import StockMovement


def import_all_models() -> list[type]:
    """Return every mapped class so Base.metadata knows all tables."""
    return [
        Category,
        Supplier,
        Product,
        StockMovement,
        InventoryModel,
        InventoryItemModel,
        InventoryAlertModel,
        Insight,
    ]


__all__ = [
    "Category",
    "Supplier",
    "SupplierStatus",
    "Product",
    "StockMovement",
    "InventoryModel",
    "InventoryItemModel",
    "InventoryAlertModel",
    "Insight",
    "InsightType",
    "InsightPriority",
    "InsightStatus",
    "PRIORITY_RANK",
    "import_all_models",
]
