"""
Inventory Domain Models (``commerce_modules.inventory.models``).

Frozen value objects for warehouse stock: per-warehouse stock levels, the
stock movement ledger, inter-warehouse transfers, and the planned deltas a
document produces before they are posted.

All quantities and costs are ``Decimal``.  Costs are in base currency.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from commerce_kernel.logging_config import get_logger

logger = get_logger("modules.inventory.models")


class MovementType(str, Enum):
    """Category of a stock ledger row."""
    PURCHASE = "purchase"
    SALE = "sale"
    RETURN = "return"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"
    ADJUSTMENT = "adjustment"


@dataclass(frozen=True)
class StockLevel:
    """Quantity of one product held in one warehouse."""
    product_code: str
    warehouse_code: str
    quantity: Decimal


@dataclass(frozen=True)
class StockDelta:
    """
    A signed change to one (product, warehouse) row, not yet posted.

    ``unit_cost`` and ``extra_cost`` are set only for purchase receipts,
    which revalue the product at weighted average cost.
    """
    product_code: str
    warehouse_code: str
    quantity: Decimal
    movement_type: MovementType
    unit_cost: Decimal | None = None
    extra_cost: Decimal = Decimal("0")

    @property
    def revalues_cost(self) -> bool:
        return self.unit_cost is not None and self.quantity > 0


@dataclass(frozen=True)
class StockMovement:
    """One posted row of the stock ledger."""
    id: UUID
    product_code: str
    warehouse_code: str
    quantity: Decimal
    movement_type: MovementType
    reference: str
    movement_date: date
    document_id: UUID | None = None
    unit_cost: Decimal | None = None
    cost_before: Decimal | None = None
    cost_after: Decimal | None = None
    quantity_after: Decimal | None = None
    note: str = ""


@dataclass(frozen=True)
class StockTransfer:
    """A completed move of stock between two warehouses."""
    id: UUID
    reference: str
    product_code: str
    from_warehouse: str
    to_warehouse: str
    quantity: Decimal
    transfer_date: date
    note: str = ""

    def __post_init__(self):
        if self.quantity <= 0:
            raise ValueError("transfer quantity must be positive")
        if self.from_warehouse == self.to_warehouse:
            raise ValueError("transfer source and destination must differ")
