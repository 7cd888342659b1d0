"""
Catalog lookups (``commerce_modules.catalog.repository``).

Responsibility
--------------
The read-only boundary between the document workflow and the catalog.
``CatalogRepository`` is the protocol the core depends on;
``SqlCatalogRepository`` is the default implementation over the catalog
tables.  Lookups are tolerant (``None`` when absent); the ``require_*``
helpers turn an absence into the matching typed error.

Business logic never queries catalog tables directly.  Snapshots (partner
name, product description and price) are copied into documents at creation
and never re-read afterwards.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from sqlalchemy import select
from sqlalchemy.orm import Session

from commerce_kernel.exceptions import (
    PartnerNotFoundError,
    ProductNotFoundError,
    WarehouseNotFoundError,
)
from commerce_modules.catalog.models import Partner, PartnerKind, Product, Warehouse
from commerce_modules.catalog.orm import PartnerModel, ProductModel, WarehouseModel


@runtime_checkable
class CatalogRepository(Protocol):
    """Read-only catalog lookups by code."""

    def find_product(self, code: str) -> Product | None: ...

    def find_partner(self, code: str, kind: PartnerKind) -> Partner | None: ...

    def find_warehouse(self, code: str) -> Warehouse | None: ...

    def default_warehouse(self) -> Warehouse | None: ...


class SqlCatalogRepository:
    """CatalogRepository over the ``catalog_*`` tables. Never writes."""

    def __init__(self, session: Session):
        self.session = session

    def find_product(self, code: str) -> Product | None:
        model = self.session.execute(
            select(ProductModel).where(ProductModel.code == code)
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def find_partner(self, code: str, kind: PartnerKind) -> Partner | None:
        model = self.session.execute(
            select(PartnerModel).where(
                PartnerModel.code == code,
                PartnerModel.kind == PartnerKind(kind).value,
            )
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def find_warehouse(self, code: str) -> Warehouse | None:
        model = self.session.execute(
            select(WarehouseModel).where(WarehouseModel.code == code)
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def default_warehouse(self) -> Warehouse | None:
        model = self.session.execute(
            select(WarehouseModel)
            .where(WarehouseModel.is_default.is_(True))
            .order_by(WarehouseModel.code)
            .limit(1)
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None


def require_product(catalog: CatalogRepository, code: str) -> Product:
    product = catalog.find_product(code)
    if product is None:
        raise ProductNotFoundError(code)
    return product


def require_partner(catalog: CatalogRepository, code: str, kind: PartnerKind) -> Partner:
    partner = catalog.find_partner(code, kind)
    if partner is None:
        raise PartnerNotFoundError(code, PartnerKind(kind).value)
    return partner


def require_warehouse(catalog: CatalogRepository, code: str) -> Warehouse:
    warehouse = catalog.find_warehouse(code)
    if warehouse is None:
        raise WarehouseNotFoundError(code)
    return warehouse
