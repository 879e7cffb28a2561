"""
Bridges from StockConfig to kernel inputs.

The kernel never imports stock_config; these functions translate config
sections into the value objects kernel services accept.
"""

from __future__ import annotations

from stock_config.schema import StockConfig
from stock_kernel.domain.inventory import InventorySettings
from stock_kernel.services.stock_service import InventoryDefaults


def build_inventory_defaults(config: StockConfig) -> InventoryDefaults:
    inventory = config.inventory
    return InventoryDefaults(
        name=inventory.name,
        location=inventory.location,
        settings=InventorySettings(
            auto_reorder=inventory.auto_reorder,
            low_stock_threshold=inventory.low_stock_threshold,
            track_expiry=inventory.track_expiry,
            allow_negative_stock=inventory.allow_negative_stock,
        ),
    )
