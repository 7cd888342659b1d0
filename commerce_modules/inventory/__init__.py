"""
Inventory Module.

Per-warehouse stock, the stock movement ledger, document-driven stock
rules, inter-warehouse transfers and manual adjustments.
"""

from commerce_modules.inventory.models import (
    MovementType,
    StockDelta,
    StockLevel,
    StockMovement,
    StockTransfer,
)
from commerce_modules.inventory.rules import STOCK_RULES, StockEffect, StockRule, stock_rule_for
from commerce_modules.inventory.service import InventoryService
from commerce_modules.inventory.stock import StockMovementRecorder

__all__ = [
    "InventoryService",
    "MovementType",
    "STOCK_RULES",
    "StockDelta",
    "StockEffect",
    "StockLevel",
    "StockMovement",
    "StockMovementRecorder",
    "StockRule",
    "StockTransfer",
    "stock_rule_for",
]
