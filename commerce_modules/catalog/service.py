"""
Catalog Service (``commerce_modules.catalog.service``).

Responsibility
--------------
Registers products, partners and warehouses, and maintains the partner
activity counters (``total_spent`` for clients, ``total_purchased`` for
suppliers) that invoices and credit notes move.

Transaction boundary
--------------------
With ``auto_commit=True`` (the default) each public method commits on
success and rolls back on failure.  The document service constructs this
service with ``auto_commit=False`` so counter updates share the transaction
of the document that caused them.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from commerce_kernel.exceptions import PartnerNotFoundError
from commerce_kernel.logging_config import get_logger
from commerce_modules.catalog.models import Partner, PartnerKind, Product, Warehouse
from commerce_modules.catalog.orm import PartnerModel, ProductModel, WarehouseModel

logger = get_logger("modules.catalog.service")

_ZERO = Decimal("0")


class CatalogService:
    """Write side of the catalog."""

    def __init__(self, session: Session, auto_commit: bool = True):
        self._session = session
        self._auto_commit = auto_commit

    def _finish(self) -> None:
        if self._auto_commit:
            self._session.commit()
        else:
            self._session.flush()

    def add_product(self, product: Product) -> Product:
        try:
            model = ProductModel.from_dto(product)
            self._session.add(model)
            self._finish()
            logger.info("catalog_product_added", extra={
                "product_code": product.code,
                "price": str(product.price),
            })
            return model.to_dto()
        except Exception:
            if self._auto_commit:
                self._session.rollback()
            raise

    def add_partner(self, partner: Partner) -> Partner:
        try:
            model = PartnerModel.from_dto(partner)
            self._session.add(model)
            self._finish()
            logger.info("catalog_partner_added", extra={
                "partner_code": partner.code,
                "partner_kind": partner.kind.value,
            })
            return model.to_dto()
        except Exception:
            if self._auto_commit:
                self._session.rollback()
            raise

    def add_warehouse(self, warehouse: Warehouse) -> Warehouse:
        try:
            model = WarehouseModel.from_dto(warehouse)
            self._session.add(model)
            self._finish()
            logger.info("catalog_warehouse_added", extra={
                "warehouse_code": warehouse.code,
                "is_default": warehouse.is_default,
            })
            return model.to_dto()
        except Exception:
            if self._auto_commit:
                self._session.rollback()
            raise

    def record_partner_activity(
        self,
        partner_code: str,
        kind: PartnerKind,
        amount: Decimal,
    ) -> Partner:
        """
        Move a partner's activity counter by ``amount`` (base currency).

        Clients accumulate ``total_spent``; suppliers ``total_purchased``.
        A negative ``amount`` (credit note) never takes a counter below zero.

        Raises:
            PartnerNotFoundError: if the partner does not exist.
        """
        kind = PartnerKind(kind)
        try:
            model = self._session.execute(
                select(PartnerModel)
                .where(PartnerModel.code == partner_code, PartnerModel.kind == kind.value)
                .with_for_update()
            ).scalar_one_or_none()
            if model is None:
                raise PartnerNotFoundError(partner_code, kind.value)

            if kind is PartnerKind.CLIENT:
                before = model.total_spent
                model.total_spent = max(_ZERO, before + amount)
                after = model.total_spent
            else:
                before = model.total_purchased
                model.total_purchased = max(_ZERO, before + amount)
                after = model.total_purchased

            self._finish()
            logger.info("catalog_partner_activity_recorded", extra={
                "partner_code": partner_code,
                "partner_kind": kind.value,
                "amount": str(amount),
                "before": str(before),
                "after": str(after),
            })
            return model.to_dto()
        except Exception:
            if self._auto_commit:
                self._session.rollback()
            raise
