"""Services for the stock kernel (write side)."""

from stock_kernel.services.catalog_service import (
    CatalogService,
    CategoryInfo,
    SupplierInfo,
)
from stock_kernel.services.product_service import ProductInfo, ProductService
from stock_kernel.services.stock_ledger import StockLedger
from stock_kernel.services.stock_service import (
    InventoryDefaults,
    InventoryView,
    StockMutationResult,
    StockService,
)

__all__ = [
    "CatalogService",
    "CategoryInfo",
    "InventoryDefaults",
    "InventoryView",
    "ProductInfo",
    "ProductService",
    "StockLedger",
    "StockMutationResult",
    "StockService",
    "SupplierInfo",
]
