"""
Module: commerce_modules.catalog.orm
Responsibility: SQLAlchemy ORM persistence models for the catalog: products,
    partners (clients and suppliers), and warehouses.

Architecture position: Modules > Catalog > ORM.  Inherits from TrackedBase
    (commerce_kernel.db.base).  Per-warehouse stock rows live in the
    inventory module and reference these tables by primary key.

Invariants enforced:
    - Products and warehouses are unique by ``code``; partners are unique by
      (``kind``, ``code``) so a client and a supplier may share a code.
    - ``ProductModel.stock`` is the sum of the product's warehouse stock rows.
      Only the inventory module writes it.
    - All monetary and quantity fields use Decimal (Numeric(38,9)).
"""

from decimal import Decimal

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from commerce_kernel.db.base import TrackedBase


class ProductModel(TrackedBase):
    """
    ORM model for a catalog product.

    Maps to: commerce_modules.catalog.models.Product (frozen dataclass).
    """

    __tablename__ = "catalog_products"

    __table_args__ = (
        UniqueConstraint("code", name="uq_catalog_product_code"),
        Index("idx_catalog_product_sku", "sku"),
    )

    code: Mapped[str] = mapped_column(String(50))
    name: Mapped[str] = mapped_column(String(255))
    sku: Mapped[str] = mapped_column(String(100), default="")
    category: Mapped[str] = mapped_column(String(100), default="")

    price: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    cost: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    stock: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    # StockStatus enum stored as string
    status: Mapped[str] = mapped_column(String(20), default="out_of_stock")

    def to_dto(self):
        """Convert ORM model to frozen Product DTO."""
        from commerce_modules.catalog.models import Product, StockStatus
        return Product(
            code=self.code,
            name=self.name,
            sku=self.sku,
            category=self.category,
            price=self.price,
            cost=self.cost,
            stock=self.stock,
            status=StockStatus(self.status),
        )

    @classmethod
    def from_dto(cls, dto) -> "ProductModel":
        """Create ORM model from frozen Product DTO."""
        return cls(
            code=dto.code,
            name=dto.name,
            sku=dto.sku,
            category=dto.category,
            price=dto.price,
            cost=dto.cost,
            stock=dto.stock,
            status=dto.status.value,
        )

    def __repr__(self) -> str:
        return f"<ProductModel {self.code}: stock={self.stock} cost={self.cost}>"


class PartnerModel(TrackedBase):
    """
    ORM model for a client or supplier.

    Maps to: commerce_modules.catalog.models.Partner (frozen dataclass).
    """

    __tablename__ = "catalog_partners"

    __table_args__ = (
        UniqueConstraint("kind", "code", name="uq_catalog_partner_kind_code"),
    )

    code: Mapped[str] = mapped_column(String(50))
    kind: Mapped[str] = mapped_column(String(20))
    name: Mapped[str] = mapped_column(String(255))
    company: Mapped[str] = mapped_column(String(255), default="")
    email: Mapped[str] = mapped_column(String(255), default="")
    phone: Mapped[str] = mapped_column(String(50), default="")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Activity counters, in base currency
    total_spent: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    total_purchased: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    def to_dto(self):
        """Convert ORM model to frozen Partner DTO."""
        from commerce_modules.catalog.models import Partner, PartnerKind
        return Partner(
            code=self.code,
            kind=PartnerKind(self.kind),
            name=self.name,
            company=self.company,
            email=self.email,
            phone=self.phone,
            is_active=self.is_active,
            total_spent=self.total_spent,
            total_purchased=self.total_purchased,
        )

    @classmethod
    def from_dto(cls, dto) -> "PartnerModel":
        """Create ORM model from frozen Partner DTO."""
        return cls(
            code=dto.code,
            kind=dto.kind.value,
            name=dto.name,
            company=dto.company,
            email=dto.email,
            phone=dto.phone,
            is_active=dto.is_active,
            total_spent=dto.total_spent,
            total_purchased=dto.total_purchased,
        )

    def __repr__(self) -> str:
        return f"<PartnerModel {self.kind}:{self.code} {self.name}>"


class WarehouseModel(TrackedBase):
    """
    ORM model for a warehouse.

    Maps to: commerce_modules.catalog.models.Warehouse (frozen dataclass).
    """

    __tablename__ = "catalog_warehouses"

    __table_args__ = (
        UniqueConstraint("code", name="uq_catalog_warehouse_code"),
    )

    code: Mapped[str] = mapped_column(String(50))
    name: Mapped[str] = mapped_column(String(255))
    location: Mapped[str] = mapped_column(String(255), default="")
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)

    def to_dto(self):
        """Convert ORM model to frozen Warehouse DTO."""
        from commerce_modules.catalog.models import Warehouse
        return Warehouse(
            code=self.code,
            name=self.name,
            location=self.location,
            is_default=self.is_default,
        )

    @classmethod
    def from_dto(cls, dto) -> "WarehouseModel":
        """Create ORM model from frozen Warehouse DTO."""
        return cls(
            code=dto.code,
            name=dto.name,
            location=dto.location,
            is_default=dto.is_default,
        )

    def __repr__(self) -> str:
        return f"<WarehouseModel {self.code}: {self.name}>"
