"""
Module: commerce_modules.inventory.orm
Responsibility: SQLAlchemy ORM persistence models for warehouse stock, the
    stock movement ledger, and inter-warehouse transfers.

Architecture position: Modules > Inventory > ORM.  Inherits from TrackedBase
    (commerce_kernel.db.base).  References catalog products and warehouses
    by code via String columns with NO foreign key constraints.

Invariants enforced:
    - One WarehouseStockModel row per (product_code, warehouse_code).
    - WarehouseStockModel carries a version counter (``version_id_col``):
      an UPDATE against a row changed since it was read raises
      ``StaleDataError`` instead of silently overwriting it.
    - StockMovementModel rows are append-only.  Nothing updates or deletes
      them, including deletion of the document that posted them.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from commerce_kernel.db.base import TrackedBase


class WarehouseStockModel(TrackedBase):
    """
    ORM model for the stock of one product in one warehouse.

    Maps to: commerce_modules.inventory.models.StockLevel (frozen dataclass).
    """

    __tablename__ = "inventory_warehouse_stock"

    __table_args__ = (
        UniqueConstraint("product_code", "warehouse_code", name="uq_inv_stock_product_warehouse"),
        Index("idx_inv_stock_warehouse", "warehouse_code"),
    )

    product_code: Mapped[str] = mapped_column(String(50))
    warehouse_code: Mapped[str] = mapped_column(String(50))
    quantity: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def to_dto(self):
        """Convert ORM model to frozen StockLevel DTO."""
        from commerce_modules.inventory.models import StockLevel
        return StockLevel(
            product_code=self.product_code,
            warehouse_code=self.warehouse_code,
            quantity=self.quantity,
        )

    def __repr__(self) -> str:
        return f"<WarehouseStockModel {self.product_code}@{self.warehouse_code}: {self.quantity} v{self.version}>"


class StockMovementModel(TrackedBase):
    """
    ORM model for one row of the stock ledger.

    Maps to: commerce_modules.inventory.models.StockMovement (frozen dataclass).
    """

    __tablename__ = "inventory_stock_movements"

    __table_args__ = (
        Index("idx_inv_movement_product", "product_code"),
        Index("idx_inv_movement_warehouse", "warehouse_code"),
        Index("idx_inv_movement_document", "document_id"),
        Index("idx_inv_movement_date", "movement_date"),
    )

    product_code: Mapped[str] = mapped_column(String(50))
    warehouse_code: Mapped[str] = mapped_column(String(50))
    quantity: Mapped[Decimal] = mapped_column()
    movement_type: Mapped[str] = mapped_column(String(20))
    reference: Mapped[str] = mapped_column(String(50))
    movement_date: Mapped[date] = mapped_column(Date)

    # Originating document (weak reference, may dangle after deletion)
    document_id: Mapped[UUID | None] = mapped_column(nullable=True)

    # Valuation, base currency
    unit_cost: Mapped[Decimal | None] = mapped_column(nullable=True)
    cost_before: Mapped[Decimal | None] = mapped_column(nullable=True)
    cost_after: Mapped[Decimal | None] = mapped_column(nullable=True)
    quantity_after: Mapped[Decimal | None] = mapped_column(nullable=True)

    note: Mapped[str] = mapped_column(Text, default="")

    def to_dto(self):
        """Convert ORM model to frozen StockMovement DTO."""
        from commerce_modules.inventory.models import MovementType, StockMovement
        return StockMovement(
            id=self.id,
            product_code=self.product_code,
            warehouse_code=self.warehouse_code,
            quantity=self.quantity,
            movement_type=MovementType(self.movement_type),
            reference=self.reference,
            movement_date=self.movement_date,
            document_id=self.document_id,
            unit_cost=self.unit_cost,
            cost_before=self.cost_before,
            cost_after=self.cost_after,
            quantity_after=self.quantity_after,
            note=self.note,
        )

    def __repr__(self) -> str:
        return (
            f"<StockMovementModel {self.reference} {self.movement_type} "
            f"{self.product_code}@{self.warehouse_code}: {self.quantity}>"
        )


class StockTransferModel(TrackedBase):
    """
    ORM model for an inter-warehouse transfer.

    Maps to: commerce_modules.inventory.models.StockTransfer (frozen dataclass).
    """

    __tablename__ = "inventory_stock_transfers"

    __table_args__ = (
        UniqueConstraint("reference", name="uq_inv_transfer_reference"),
        Index("idx_inv_transfer_product", "product_code"),
    )

    reference: Mapped[str] = mapped_column(String(50))
    product_code: Mapped[str] = mapped_column(String(50))
    from_warehouse: Mapped[str] = mapped_column(String(50))
    to_warehouse: Mapped[str] = mapped_column(String(50))
    quantity: Mapped[Decimal] = mapped_column()
    transfer_date: Mapped[date] = mapped_column(Date)
    note: Mapped[str] = mapped_column(Text, default="")

    def to_dto(self):
        """Convert ORM model to frozen StockTransfer DTO."""
        from commerce_modules.inventory.models import StockTransfer
        return StockTransfer(
            id=self.id,
            reference=self.reference,
            product_code=self.product_code,
            from_warehouse=self.from_warehouse,
            to_warehouse=self.to_warehouse,
            quantity=self.quantity,
            transfer_date=self.transfer_date,
            note=self.note,
        )

    def __repr__(self) -> str:
        return (
            f"<StockTransferModel {self.reference} {self.product_code}: "
            f"{self.from_warehouse} -> {self.to_warehouse} x{self.quantity}>"
        )
