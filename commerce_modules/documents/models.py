"""
Document Domain Models (``commerce_modules.documents.models``).

Responsibility
--------------
Frozen value objects for commercial documents: line items, the document
tagged union (``SalesDocument`` / ``PurchaseDocument`` over a common
``Document`` base), UI drafts, conversion overrides, and the results of
multi-document actions.

Architecture
------------
Layer: **Modules** -- pure domain data structures.  All dataclasses are
``frozen=True``; changes go through ``dataclasses.replace`` and are
persisted by ``DocumentStore.update``.  These models carry no I/O.

Invariants
----------
- ``LineItem.quantity > 0``.
- ``0 <= LineItem.fulfilled_quantity <= LineItem.quantity`` when defined.
- A document's ``domain`` is fixed by its class, never by a field.
- All monetary fields use ``Decimal`` -- never ``float``.

Failure Modes
-------------
- Constructing a ``LineItem`` that breaks a quantity invariant raises
  ``ValueError`` immediately.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import ClassVar
from uuid import UUID

from commerce_engines.pricing import DiscountType
from commerce_kernel.logging_config import get_logger

logger = get_logger("modules.documents.models")

_ZERO = Decimal("0")


class DocumentDomain(str, Enum):
    """Which side of the business a document belongs to."""
    SALES = "sales"
    PURCHASE = "purchase"


class DocumentType(str, Enum):
    """Document kinds across both domains."""
    ESTIMATE = "estimate"
    ORDER = "order"
    DELIVERY = "delivery"
    INVOICE = "invoice"
    ISSUE = "issue"
    RETURN = "return"
    CREDIT = "credit"
    PR = "pr"
    RFQ = "rfq"


class DocumentStatus(str, Enum):
    """Union of the per-type status sets; see ``workflows`` for which apply where."""
    DRAFT = "draft"
    SENT = "sent"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    RESPONDED = "responded"
    ACCEPTED = "accepted"
    COMPLETED = "completed"
    RECEIVED = "received"
    PAID = "paid"
    PARTIAL = "partial"
    OVERDUE = "overdue"
    PROCESSED = "processed"


class StockAction(str, Enum):
    """What happens to returned goods."""
    REINTEGRATE = "reintegrate"
    QUARANTINE = "quarantine"


class ReturnReason(str, Enum):
    DEFECT = "defect"
    WRONG_ITEM = "wrong_item"
    NO_LONGER_NEEDED = "no_longer_needed"
    OTHER = "other"


# Document types valid in each domain.
DOMAIN_TYPES: dict[DocumentDomain, frozenset[DocumentType]] = {
    DocumentDomain.SALES: frozenset({
        DocumentType.ESTIMATE,
        DocumentType.ORDER,
        DocumentType.DELIVERY,
        DocumentType.INVOICE,
        DocumentType.ISSUE,
        DocumentType.RETURN,
        DocumentType.CREDIT,
    }),
    DocumentDomain.PURCHASE: frozenset({
        DocumentType.PR,
        DocumentType.RFQ,
        DocumentType.ORDER,
        DocumentType.DELIVERY,
        DocumentType.INVOICE,
        DocumentType.RETURN,
    }),
}


@dataclass(frozen=True)
class LineItem:
    """
    One line of a document.

    ``item_id`` is a product code for catalog items, or a synthetic id for
    free-text lines.  ``price`` is a unit price in the document currency.
    ``fulfilled_quantity`` is tracked on purchase orders only.
    """
    item_id: str
    description: str
    quantity: Decimal
    price: Decimal
    fulfilled_quantity: Decimal | None = None

    def __post_init__(self):
        if self.quantity <= _ZERO:
            raise ValueError(f"Line {self.item_id}: quantity must be positive, got {self.quantity}")
        if self.fulfilled_quantity is not None and not (
            _ZERO <= self.fulfilled_quantity <= self.quantity
        ):
            raise ValueError(
                f"Line {self.item_id}: fulfilled_quantity {self.fulfilled_quantity} "
                f"outside [0, {self.quantity}]"
            )

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity

    @property
    def remaining_quantity(self) -> Decimal:
        return self.quantity - (self.fulfilled_quantity or _ZERO)

    @property
    def is_fulfilled(self) -> bool:
        return (self.fulfilled_quantity or _ZERO) >= self.quantity


@dataclass(frozen=True)
class Document:
    """
    Common base of the document tagged union.

    Never instantiated directly; use ``SalesDocument`` or
    ``PurchaseDocument``.  ``partner_name`` is a snapshot taken at creation.
    ``linked_document_id`` is a weak reference to the predecessor and may
    dangle once that document is deleted.
    """
    domain: ClassVar[DocumentDomain]

    id: UUID
    number: str
    type: DocumentType
    status: DocumentStatus
    date: date
    partner_id: str
    partner_name: str
    items: tuple[LineItem, ...]
    currency: str
    exchange_rate: Decimal = Decimal("1")
    subtotal: Decimal = _ZERO
    discount: Decimal = _ZERO
    discount_value: Decimal = _ZERO
    discount_type: DiscountType = DiscountType.PERCENT
    tax_rate: Decimal = _ZERO
    fiscal_stamp: Decimal = _ZERO
    amount: Decimal = _ZERO
    due_date: date | None = None
    warehouse_id: str | None = None
    linked_document_id: UUID | None = None
    return_reason: ReturnReason | None = None
    stock_action: StockAction | None = None
    notes: str = ""
    payment_terms: str = ""
    payment_method: str = ""

    @property
    def item_map(self) -> dict[str, LineItem]:
        return {item.item_id: item for item in self.items}

    @property
    def base_amount(self) -> Decimal:
        """Grand total expressed in base currency."""
        return self.amount * self.exchange_rate

    def with_status(self, status: DocumentStatus) -> Document:
        return replace(self, status=status)


@dataclass(frozen=True)
class SalesDocument(Document):
    """Estimate, order, delivery, invoice, issue note, return or credit note."""
    domain: ClassVar[DocumentDomain] = DocumentDomain.SALES

    @property
    def client_id(self) -> str:
        return self.partner_id

    @property
    def client_name(self) -> str:
        return self.partner_name


@dataclass(frozen=True)
class PurchaseDocument(Document):
    """PR, RFQ, purchase order, GRN, purchase invoice or purchase return."""
    domain: ClassVar[DocumentDomain] = DocumentDomain.PURCHASE

    additional_costs: Decimal = _ZERO
    deadline: date | None = None
    requester_name: str = ""
    department: str = ""
    amount_paid: Decimal = _ZERO

    @property
    def supplier_id(self) -> str:
        return self.partner_id

    @property
    def supplier_name(self) -> str:
        return self.partner_name

    @property
    def balance_due(self) -> Decimal:
        return max(_ZERO, self.amount - self.amount_paid)


def document_class(domain: DocumentDomain) -> type[Document]:
    """Concrete DTO class for a domain."""
    return SalesDocument if DocumentDomain(domain) is DocumentDomain.SALES else PurchaseDocument


# -----------------------------------------------------------------------------
# Drafts and overrides (input)
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class DraftLine:
    """
    A cart line submitted by the UI.

    ``price`` and ``description`` default from the catalog product when
    omitted; a non-catalog line must supply both.
    """
    item_id: str
    quantity: Decimal
    price: Decimal | None = None
    description: str | None = None


@dataclass(frozen=True)
class DocumentDraft:
    """
    A new document as submitted by the UI.

    ``currency=None`` means base currency.  ``tax_rate=None`` takes the
    configured default rate; ``fiscal_stamp=None`` applies the configured
    stamp where it applies (sales invoices).
    """
    domain: DocumentDomain
    type: DocumentType
    partner_id: str
    lines: tuple[DraftLine, ...]
    date: date | None = None
    due_date: date | None = None
    currency: str | None = None
    exchange_rate: Decimal | None = None
    warehouse_id: str | None = None
    discount_value: Decimal = _ZERO
    discount_type: DiscountType = DiscountType.PERCENT
    tax_rate: Decimal | None = None
    fiscal_stamp: Decimal | None = None
    additional_costs: Decimal = _ZERO
    deadline: date | None = None
    requester_name: str = ""
    department: str = ""
    notes: str = ""
    payment_terms: str = ""
    payment_method: str = ""


@dataclass(frozen=True)
class ConversionOverrides:
    """
    Optional changes applied while converting a document.

    ``quantities`` selects and resizes lines (item id -> quantity); each is
    clamped to the source quantity and lines at zero are dropped.  Lines
    absent from the mapping are dropped too.  ``prices`` replaces unit
    prices.  Every other field, when set, replaces the carried-forward
    value.
    """
    quantities: Mapping[str, Decimal] | None = None
    prices: Mapping[str, Decimal] | None = None
    partner_id: str | None = None
    currency: str | None = None
    exchange_rate: Decimal | None = None
    warehouse_id: str | None = None
    date: date | None = None
    due_date: date | None = None
    discount_value: Decimal | None = None
    discount_type: DiscountType | None = None
    tax_rate: Decimal | None = None
    fiscal_stamp: Decimal | None = None
    additional_costs: Decimal | None = None
    deadline: date | None = None
    notes: str | None = None
    payment_terms: str | None = None
    payment_method: str | None = None


# -----------------------------------------------------------------------------
# Results (output)
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class ReceiptResult:
    """A goods receipt: the new GRN and the order it was received against."""
    grn: PurchaseDocument
    order: PurchaseDocument


@dataclass(frozen=True)
class RfqAcceptance:
    rfq: PurchaseDocument
    order: PurchaseDocument


@dataclass(frozen=True)
class ReturnResult:
    """A return document and, for sales returns when requested, its credit note."""
    return_document: Document
    credit_note: SalesDocument | None = None


@dataclass(frozen=True)
class DeletionResult:
    """
    Outcome of deleting a document.

    Stock movements already posted by the document are NOT reversed;
    ``posted_movements`` reports how many remain in the ledger.
    """
    document_id: UUID
    number: str
    posted_movements: int
    dangling_successors: int = 0

    @property
    def has_unreversed_stock(self) -> bool:
        return self.posted_movements > 0
