"""
Catalog Module.

Products, clients, suppliers and warehouses: the reference data that
commercial documents snapshot at creation time.
"""

from commerce_modules.catalog.models import (
    Partner,
    PartnerKind,
    Product,
    StockStatus,
    Warehouse,
)
from commerce_modules.catalog.repository import (
    CatalogRepository,
    SqlCatalogRepository,
    require_partner,
    require_product,
    require_warehouse,
)
from commerce_modules.catalog.service import CatalogService

__all__ = [
    "CatalogRepository",
    "CatalogService",
    "Partner",
    "PartnerKind",
    "Product",
    "SqlCatalogRepository",
    "StockStatus",
    "Warehouse",
    "require_partner",
    "require_product",
    "require_warehouse",
]
