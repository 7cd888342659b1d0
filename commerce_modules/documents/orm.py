"""
Module: commerce_modules.documents.orm
Responsibility: SQLAlchemy ORM persistence models for commercial documents
    and their line items.

Architecture position: Modules > Documents > ORM.  Inherits from TrackedBase
    (commerce_kernel.db.base).  Both domains share one table; the ``domain``
    column selects the DTO variant in ``to_dto``.

Invariants enforced:
    - (domain, type, number) is unique.
    - ``linked_document_id`` is a plain indexed column, NOT a foreign key:
      the predecessor may be deleted and the link left dangling.
    - Lines are owned by their document (delete-orphan) and ordered by
      ``position``.
    - Enum fields stored as String(20) for portability and readability.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from commerce_kernel.db.base import TrackedBase


class DocumentModel(TrackedBase):
    """
    ORM model for a commercial document of either domain.

    Maps to: commerce_modules.documents.models.SalesDocument /
    PurchaseDocument (frozen dataclasses).
    """

    __tablename__ = "commercial_documents"

    __table_args__ = (
        UniqueConstraint("domain", "type", "number", name="uq_document_domain_type_number"),
        Index("idx_document_domain_type", "domain", "type"),
        Index("idx_document_status", "status"),
        Index("idx_document_partner", "partner_id"),
        Index("idx_document_linked", "linked_document_id"),
    )

    domain: Mapped[str] = mapped_column(String(20))
    type: Mapped[str] = mapped_column(String(20))
    number: Mapped[str] = mapped_column(String(50))
    status: Mapped[str] = mapped_column(String(20))

    document_date: Mapped[date] = mapped_column(Date)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    deadline: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Partner snapshot (no FK)
    partner_id: Mapped[str] = mapped_column(String(50))
    partner_name: Mapped[str] = mapped_column(String(255))

    currency: Mapped[str] = mapped_column(String(3))
    exchange_rate: Mapped[Decimal] = mapped_column(default=Decimal("1"))

    # Pricing inputs and results
    subtotal: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    discount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    discount_value: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    discount_type: Mapped[str] = mapped_column(String(20), default="percent")
    tax_rate: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    fiscal_stamp: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    additional_costs: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    amount_paid: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    warehouse_id: Mapped[str | None] = mapped_column(String(50), nullable=True)
    linked_document_id: Mapped[UUID | None] = mapped_column(nullable=True)

    # Returns only
    return_reason: Mapped[str | None] = mapped_column(String(30), nullable=True)
    stock_action: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Purchase requests only
    requester_name: Mapped[str] = mapped_column(String(255), default="")
    department: Mapped[str] = mapped_column(String(100), default="")

    notes: Mapped[str] = mapped_column(Text, default="")
    payment_terms: Mapped[str] = mapped_column(String(100), default="")
    payment_method: Mapped[str] = mapped_column(String(50), default="")

    lines: Mapped[list[DocumentLineModel]] = relationship(
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="DocumentLineModel.position",
    )

    def apply_dto(self, dto) -> None:
        """Copy every mutable field of ``dto`` onto this row, replacing the lines."""
        from commerce_modules.documents.models import PurchaseDocument
        self.domain = dto.domain.value
        self.type = dto.type.value
        self.number = dto.number
        self.status = dto.status.value
        self.document_date = dto.date
        self.due_date = dto.due_date
        self.partner_id = dto.partner_id
        self.partner_name = dto.partner_name
        self.currency = dto.currency
        self.exchange_rate = dto.exchange_rate
        self.subtotal = dto.subtotal
        self.discount = dto.discount
        self.discount_value = dto.discount_value
        self.discount_type = dto.discount_type.value
        self.tax_rate = dto.tax_rate
        self.fiscal_stamp = dto.fiscal_stamp
        self.amount = dto.amount
        self.warehouse_id = dto.warehouse_id
        self.linked_document_id = dto.linked_document_id
        self.return_reason = dto.return_reason.value if dto.return_reason else None
        self.stock_action = dto.stock_action.value if dto.stock_action else None
        self.notes = dto.notes
        self.payment_terms = dto.payment_terms
        self.payment_method = dto.payment_method
        if isinstance(dto, PurchaseDocument):
            self.additional_costs = dto.additional_costs
            self.deadline = dto.deadline
            self.requester_name = dto.requester_name
            self.department = dto.department
            self.amount_paid = dto.amount_paid
        self.lines = [
            DocumentLineModel.from_dto(item, position)
            for position, item in enumerate(dto.items)
        ]

    def to_dto(self):
        """Convert ORM model to the frozen DTO variant for its domain."""
        from commerce_engines.pricing import DiscountType
        from commerce_modules.documents.models import (
            DocumentDomain,
            DocumentStatus,
            DocumentType,
            PurchaseDocument,
            ReturnReason,
            SalesDocument,
            StockAction,
        )
        common = dict(
            id=self.id,
            number=self.number,
            type=DocumentType(self.type),
            status=DocumentStatus(self.status),
            date=self.document_date,
            partner_id=self.partner_id,
            partner_name=self.partner_name,
            items=tuple(line.to_dto() for line in self.lines),
            currency=self.currency,
            exchange_rate=self.exchange_rate,
            subtotal=self.subtotal,
            discount=self.discount,
            discount_value=self.discount_value,
            discount_type=DiscountType(self.discount_type),
            tax_rate=self.tax_rate,
            fiscal_stamp=self.fiscal_stamp,
            amount=self.amount,
            due_date=self.due_date,
            warehouse_id=self.warehouse_id,
            linked_document_id=self.linked_document_id,
            return_reason=ReturnReason(self.return_reason) if self.return_reason else None,
            stock_action=StockAction(self.stock_action) if self.stock_action else None,
            notes=self.notes,
            payment_terms=self.payment_terms,
            payment_method=self.payment_method,
        )
        if DocumentDomain(self.domain) is DocumentDomain.SALES:
            return SalesDocument(**common)
        return PurchaseDocument(
            **common,
            additional_costs=self.additional_costs,
            deadline=self.deadline,
            requester_name=self.requester_name,
            department=self.department,
            amount_paid=self.amount_paid,
        )

    @classmethod
    def from_dto(cls, dto) -> DocumentModel:
        """Create ORM model from a frozen document DTO."""
        model = cls(id=dto.id)
        model.apply_dto(dto)
        return model

    def __repr__(self) -> str:
        return f"<DocumentModel {self.domain}:{self.number} [{self.status}] amount={self.amount}>"


class DocumentLineModel(TrackedBase):
    """
    ORM model for one line item of a document.

    Maps to: commerce_modules.documents.models.LineItem (frozen dataclass).
    """

    __tablename__ = "commercial_document_lines"

    __table_args__ = (
        Index("idx_document_line_document", "document_id"),
        Index("idx_document_line_item", "item_id"),
    )

    document_id: Mapped[UUID] = mapped_column(ForeignKey("commercial_documents.id"))
    position: Mapped[int] = mapped_column(Integer)

    item_id: Mapped[str] = mapped_column(String(50))
    description: Mapped[str] = mapped_column(String(500), default="")
    quantity: Mapped[Decimal] = mapped_column()
    price: Mapped[Decimal] = mapped_column()
    fulfilled_quantity: Mapped[Decimal | None] = mapped_column(nullable=True)

    document: Mapped[DocumentModel] = relationship(back_populates="lines")

    def to_dto(self):
        """Convert ORM model to frozen LineItem DTO."""
        from commerce_modules.documents.models import LineItem
        return LineItem(
            item_id=self.item_id,
            description=self.description,
            quantity=self.quantity,
            price=self.price,
            fulfilled_quantity=self.fulfilled_quantity,
        )

    @classmethod
    def from_dto(cls, dto, position: int) -> DocumentLineModel:
        """Create ORM model from frozen LineItem DTO."""
        return cls(
            position=position,
            item_id=dto.item_id,
            description=dto.description,
            quantity=dto.quantity,
            price=dto.price,
            fulfilled_quantity=dto.fulfilled_quantity,
        )

    def __repr__(self) -> str:
        return f"<DocumentLineModel {self.item_id} x{self.quantity} @ {self.price}>"
