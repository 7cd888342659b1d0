"""
Catalog Domain Models.

The reference data documents point at: products, clients, suppliers,
warehouses.  Documents copy name and price snapshots from these at creation
time and never re-read them afterwards.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class PartnerKind(str, Enum):
    """Which side of the business a partner sits on."""
    CLIENT = "client"
    SUPPLIER = "supplier"


class StockStatus(str, Enum):
    """Availability band derived from total stock."""
    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"

    @classmethod
    def for_quantity(cls, total_stock: Decimal, low_stock_threshold: Decimal) -> "StockStatus":
        if total_stock <= 0:
            return cls.OUT_OF_STOCK
        if total_stock <= low_stock_threshold:
            return cls.LOW_STOCK
        return cls.IN_STOCK


@dataclass(frozen=True)
class Product:
    """A catalog product. ``price`` sells, ``cost`` is the weighted average cost."""
    code: str
    name: str
    sku: str = ""
    category: str = ""
    price: Decimal = Decimal("0")
    cost: Decimal = Decimal("0")
    stock: Decimal = Decimal("0")
    status: StockStatus = StockStatus.OUT_OF_STOCK


@dataclass(frozen=True)
class Partner:
    """A client or supplier."""
    code: str
    kind: PartnerKind
    name: str
    company: str = ""
    email: str = ""
    phone: str = ""
    is_active: bool = True
    total_spent: Decimal = Decimal("0")
    total_purchased: Decimal = Decimal("0")

    @property
    def display_name(self) -> str:
        return self.company or self.name


@dataclass(frozen=True)
class Warehouse:
    """A physical stock location."""
    code: str
    name: str
    location: str = ""
    is_default: bool = False
