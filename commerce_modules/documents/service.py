"""
Documents Module Service (``commerce_modules.documents.service``).

Responsibility
--------------
The single public entry point for commercial documents: UI submissions,
conversions, goods receipts, RFQ quotes and acceptance, returns and credit
notes, named status transitions, purchase-invoice payments, item edits and
deletion.  Composes ``DocumentStore``, ``ConversionEngine``,
``FulfillmentTracker``, ``ReturnHandler`` and ``StockMovementRecorder``
over one session.

Architecture position
---------------------
**Modules layer**.  The components it composes flush but never commit;
this service owns the transaction boundary of every user action.

Invariants enforced
-------------------
* Each public write method is one transaction: ``commit`` on success,
  ``rollback`` on any exception, so a partially applied action (document
  row without its stock movements, GRN without the order update) never
  persists.
* Status changes go through the data-driven workflows; actions with
  side effects (quote, accept an RFQ, receive, pay) are only reachable
  through their dedicated methods.
* Item edits are refused once a document has stock, fulfillment or
  payment effects.

Failure modes
-------------
* Validation and business-rule errors are raised as typed
  ``CommerceKernelError`` subclasses after rollback.
* Deleting a document does not reverse the stock it posted; the returned
  ``DeletionResult`` says how many movements remain.

Usage::

    service = DocumentService(session, get_active_config(), clock=clock)
    order = service.submit_draft(DocumentDraft(
        domain=DocumentDomain.PURCHASE,
        type=DocumentType.ORDER,
        partner_id="SUP-001",
        lines=(DraftLine("P-001", Decimal("20"), price=Decimal("5")),),
        warehouse_id="WH-MAIN",
    ))
    receipt = service.receive_goods(order.id, {"P-001": Decimal("12")})
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import replace
from decimal import Decimal
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

from commerce_config.schema import CommerceConfig
from commerce_engines.pricing import PricingEngine
from commerce_kernel.domain.clock import Clock, SystemClock
from commerce_kernel.domain.identity import IdGenerator
from commerce_kernel.exceptions import (
    DocumentLockedError,
    DocumentValidationError,
    InvalidPaymentAmountError,
    InvalidStatusTransitionError,
    PaymentExceedsBalanceError,
)
from commerce_kernel.logging_config import LogContext, get_logger
from commerce_modules.catalog.repository import CatalogRepository, SqlCatalogRepository
from commerce_modules.catalog.service import CatalogService
from commerce_modules.documents.config import DocumentsConfig
from commerce_modules.documents.conversion import ConversionEngine
from commerce_modules.documents.fulfillment import FulfillmentTracker
from commerce_modules.documents.models import (
    ConversionOverrides,
    DeletionResult,
    Document,
    DocumentDomain,
    DocumentDraft,
    DocumentStatus,
    DocumentType,
    DraftLine,
    PurchaseDocument,
    ReceiptResult,
    ReturnReason,
    ReturnResult,
    RfqAcceptance,
    StockAction,
)
from commerce_modules.documents.returns import ReturnHandler
from commerce_modules.documents.store import DocumentStore
from commerce_modules.documents.workflows import (
    FULL_PAYMENT,
    PARTIAL_PAYMENT,
    conversion_targets,
    is_editable,
    workflow_for,
)
from commerce_modules.inventory.models import StockMovement
from commerce_modules.inventory.stock import StockMovementRecorder

logger = get_logger("modules.documents.service")

_ZERO = Decimal("0")

_T = TypeVar("_T")

# Workflow actions with side effects beyond the status change.
_DEDICATED_ACTIONS: dict[tuple[DocumentDomain, DocumentType, str], str] = {
    (DocumentDomain.PURCHASE, DocumentType.RFQ, "quote"): "quote_rfq",
    (DocumentDomain.PURCHASE, DocumentType.RFQ, "accept"): "accept_rfq",
    (DocumentDomain.PURCHASE, DocumentType.ORDER, "receive"): "receive_goods",
    (DocumentDomain.PURCHASE, DocumentType.INVOICE, "pay"): "record_payment",
}


def _describe(result: Any) -> dict[str, Any]:
    """Log fields for whatever an action returned."""
    if isinstance(result, Document):
        return {
            "document_id": str(result.id),
            "document_number": result.number,
            "status": result.status.value,
        }
    if isinstance(result, ReceiptResult):
        return {"grn_number": result.grn.number, "order_status": result.order.status.value}
    if isinstance(result, RfqAcceptance):
        return {"rfq_number": result.rfq.number, "order_number": result.order.number}
    if isinstance(result, ReturnResult):
        return {
            "return_number": result.return_document.number,
            "credit_number": result.credit_note.number if result.credit_note else None,
        }
    if isinstance(result, DeletionResult):
        return {"document_number": result.number, "posted_movements": result.posted_movements}
    return {}


class DocumentService:
    """
    Orchestrates document actions; one transaction per public write.

    Contract
    --------
    * Methods take document ids, never stale DTOs: the current row is
      re-read (and locked where the action mutates it) inside the
      transaction.
    * Every write returns frozen DTOs reflecting the committed state.

    Non-goals
    ---------
    * Does NOT reverse stock on deletion.
    * Does NOT render, print or export documents.
    """

    def __init__(
        self,
        session: Session,
        config: CommerceConfig,
        catalog: CatalogRepository | None = None,
        documents_config: DocumentsConfig | None = None,
        clock: Clock | None = None,
        id_generator: IdGenerator | None = None,
    ):
        self._session = session
        self._config = config
        self._clock = clock or SystemClock()
        self._documents_config = documents_config or DocumentsConfig.with_defaults()
        self._catalog = catalog or SqlCatalogRepository(session)
        self._pricing = PricingEngine()

        self._store = DocumentStore(session, config.numbering, id_generator)
        self._recorder = StockMovementRecorder(
            session, self._store, self._catalog, config, clock=self._clock
        )
        # Partner counters move inside our transaction.
        self._activity = CatalogService(session, auto_commit=False)
        self._conversion = ConversionEngine(
            self._store,
            self._recorder,
            self._catalog,
            self._activity,
            config,
            documents_config=self._documents_config,
            pricing=self._pricing,
            clock=self._clock,
        )
        self._fulfillment = FulfillmentTracker(self._store, self._conversion, self._pricing)
        self._returns = ReturnHandler(self._store, self._conversion, self._documents_config)

    # =========================================================================
    # Transaction boundary
    # =========================================================================

    def _run(self, action: str, work: Callable[[], _T], **fields: Any) -> _T:
        fields = {key: str(value) if isinstance(value, UUID) else value for key, value in fields.items()}
        with LogContext.bind(
            action=action, domain=fields.get("domain"), document_id=fields.get("document_id"),
        ):
            logger.info(f"{action}_started", extra=fields)
            try:
                result = work()
                self._session.commit()
            except Exception:
                self._session.rollback()
                logger.warning(f"{action}_rolled_back", extra=fields)
                raise
            logger.info(f"{action}_committed", extra={**fields, **_describe(result)})
            return result

    # =========================================================================
    # Creation and conversion
    # =========================================================================

    def submit_draft(self, draft: DocumentDraft) -> Document:
        """Create a document from a UI submission (see ``ConversionEngine.create_from_draft``)."""
        return self._run(
            "submit_draft",
            lambda: self._conversion.create_from_draft(draft),
            domain=DocumentDomain(draft.domain).value,
            document_type=DocumentType(draft.type).value,
            partner_id=draft.partner_id,
            line_count=len(draft.lines),
        )

    def convert(
        self,
        source_id: UUID,
        target_type: DocumentType,
        overrides: ConversionOverrides | None = None,
    ) -> Document:
        """
        Generic conversion along the conversion table.

        Goods receipts, RFQ acceptance and returns have dedicated methods;
        asking ``convert`` for them raises ``InvalidConversionError``.
        """
        def work() -> Document:
            return self._conversion.convert(self._store.get(source_id), target_type, overrides)

        return self._run(
            "convert_document",
            work,
            document_id=source_id,
            target_type=DocumentType(target_type).value,
        )

    def issue_credit_note(
        self,
        invoice_id: UUID,
        quantities: Mapping[str, Decimal] | None = None,
        overrides: ConversionOverrides | None = None,
    ) -> Document:
        """Credit note against a sales invoice, for all or some of its lines."""
        overrides = overrides or ConversionOverrides()
        if quantities is not None:
            overrides = replace(overrides, quantities=quantities)

        def work() -> Document:
            invoice = self._store.get(invoice_id)
            if invoice.domain is not DocumentDomain.SALES or invoice.type is not DocumentType.INVOICE:
                raise DocumentValidationError(
                    f"{invoice.number} is not a sales invoice", field="type"
                )
            return self._conversion.convert(invoice, DocumentType.CREDIT, overrides)

        return self._run("issue_credit_note", work, document_id=invoice_id)

    # =========================================================================
    # Purchase flow
    # =========================================================================

    def receive_goods(
        self,
        order_id: UUID,
        quantities: Mapping[str, Decimal],
        warehouse_id: str | None = None,
    ) -> ReceiptResult:
        """Receive (part of) a purchase order into a new GRN."""
        def work() -> ReceiptResult:
            order = self._store.get(order_id)
            return self._fulfillment.receive(order, quantities, warehouse_id=warehouse_id)

        return self._run(
            "receive_goods",
            work,
            document_id=order_id,
            line_count=len(quantities),
        )

    def quote_rfq(self, rfq_id: UUID, prices: Mapping[str, Decimal]) -> PurchaseDocument:
        def work() -> PurchaseDocument:
            return self._fulfillment.quote_rfq(self._store.get(rfq_id), prices)

        return self._run("quote_rfq", work, document_id=rfq_id)

    def accept_rfq(
        self,
        rfq_id: UUID,
        overrides: ConversionOverrides | None = None,
    ) -> RfqAcceptance:
        def work() -> RfqAcceptance:
            return self._fulfillment.accept_rfq(self._store.get(rfq_id), overrides)

        return self._run("accept_rfq", work, document_id=rfq_id)

    def record_payment(self, invoice_id: UUID, amount: Decimal) -> PurchaseDocument:
        """
        Record a payment on a purchase invoice.

        The invoice becomes ``partial`` while a balance remains and
        ``completed`` once it is settled.

        Raises:
            InvalidPaymentAmountError: ``amount`` is not positive.
            PaymentExceedsBalanceError: ``amount`` is more than the balance.
            InvalidStatusTransitionError: the invoice is already settled.
        """
        amount = Decimal(amount)

        def work() -> PurchaseDocument:
            invoice = self._store.get(invoice_id, lock=True)
            if invoice.domain is not DocumentDomain.PURCHASE or invoice.type is not DocumentType.INVOICE:
                raise DocumentValidationError(
                    f"{invoice.number} is not a purchase invoice", field="type"
                )
            if amount <= _ZERO:
                raise InvalidPaymentAmountError(str(amount))
            transitions = workflow_for(invoice.domain, invoice.type).find(invoice.status, "pay")
            if not transitions:
                raise InvalidStatusTransitionError(invoice.number, invoice.status.value, "pay")
            if amount > invoice.balance_due:
                raise PaymentExceedsBalanceError(invoice.number, str(amount), str(invoice.balance_due))

            paid = invoice.amount_paid + amount
            guard = FULL_PAYMENT if paid >= invoice.amount else PARTIAL_PAYMENT
            (transition,) = (t for t in transitions if t.guard == guard)
            return self._store.update(replace(invoice, amount_paid=paid, status=transition.to_state))

        return self._run("record_payment", work, document_id=invoice_id, amount=str(amount))

    # =========================================================================
    # Returns
    # =========================================================================

    def create_return(
        self,
        source_id: UUID,
        quantities: Mapping[str, Decimal],
        reason: ReturnReason,
        stock_action: StockAction,
        warehouse_id: str | None = None,
        issue_credit_note: bool | None = None,
    ) -> ReturnResult:
        """Return goods from an order, delivery/GRN or invoice (see ``ReturnHandler``)."""
        def work() -> ReturnResult:
            return self._returns.create_return(
                self._store.get(source_id),
                quantities,
                reason,
                stock_action,
                warehouse_id,
                issue_credit_note=issue_credit_note,
            )

        return self._run(
            "create_return",
            work,
            document_id=source_id,
            reason=ReturnReason(reason).value,
            stock_action=StockAction(stock_action).value,
        )

    def returned_quantities(self, source_id: UUID) -> dict[str, Decimal]:
        return self._returns.returned_quantities(self._store.get(source_id))

    # =========================================================================
    # Status and edits
    # =========================================================================

    def transition(self, document_id: UUID, action: str) -> Document:
        """
        Apply a named workflow action, e.g. ``send``, ``approve``,
        ``mark_paid``.

        Raises:
            InvalidStatusTransitionError: the action is not allowed from the
                current status.
            DocumentValidationError: the action has a dedicated method.
        """
        def work() -> Document:
            document = self._store.get(document_id, lock=True)
            dedicated = _DEDICATED_ACTIONS.get((document.domain, document.type, action))
            if dedicated is not None:
                raise DocumentValidationError(
                    f"'{action}' on a {document.domain.value} {document.type.value} "
                    f"is performed by {dedicated}",
                    field="action",
                )
            transitions = workflow_for(document.domain, document.type).find(document.status, action)
            if len(transitions) != 1:
                raise InvalidStatusTransitionError(document.number, document.status.value, action)
            return self._store.update(document.with_status(transitions[0].to_state))

        return self._run("transition_document", work, document_id=document_id, transition=action)

    def edit_items(self, document_id: UUID, lines: Sequence[DraftLine]) -> Document:
        """
        Replace a document's items and reprice it.

        Raises:
            DocumentLockedError: the document already has stock,
                fulfillment or payment effects.
        """
        def work() -> Document:
            document = self._store.get(document_id, lock=True)
            if not is_editable(document.domain, document.type, document.status):
                raise DocumentLockedError(
                    document.number,
                    f"items of a {document.status.value} {document.type.value} cannot be edited",
                )
            if any(item.fulfilled_quantity for item in document.items):
                raise DocumentLockedError(document.number, "goods were already received against it")
            return self._store.update(self._conversion.reprice(document, lines))

        return self._run("edit_items", work, document_id=document_id, line_count=len(lines))

    def delete_document(self, document_id: UUID) -> DeletionResult:
        """
        Delete a document.  Successors keep a dangling link and posted stock
        movements stay in the ledger.
        """
        def work() -> DeletionResult:
            document = self._store.get(document_id, lock=True)
            posted = self._recorder.movement_count(document.id)
            successors = len(self._store.find_linked(document.id))
            self._store.delete(document.id)
            if posted:
                logger.warning("document_deleted_with_posted_stock", extra={
                    "document_number": document.number,
                    "posted_movements": posted,
                })
            return DeletionResult(
                document_id=document.id,
                number=document.number,
                posted_movements=posted,
                dangling_successors=successors,
            )

        return self._run("delete_document", work, document_id=document_id)

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, document_id: UUID) -> Document:
        return self._store.get(document_id)

    def list_documents(
        self,
        domain: DocumentDomain,
        doc_type: DocumentType | None = None,
        status: DocumentStatus | None = None,
        partner_id: str | None = None,
    ) -> list[Document]:
        return self._store.list(domain, doc_type=doc_type, status=status, partner_id=partner_id)

    def linked_documents(self, document_id: UUID, doc_type: DocumentType | None = None) -> list[Document]:
        """Successors of a document."""
        return self._store.find_linked(document_id, doc_type)

    def predecessor(self, document_id: UUID) -> Document | None:
        """The document this one was converted from; None if none or deleted."""
        return self._store.resolve_link(self._store.get(document_id))

    def available_actions(self, document_id: UUID) -> tuple[str, ...]:
        """Workflow actions allowed from the document's current status."""
        document = self._store.get(document_id)
        return workflow_for(document.domain, document.type).actions_from(document.status)

    def conversion_targets(self, document_id: UUID) -> tuple[DocumentType, ...]:
        document = self._store.get(document_id)
        return conversion_targets(document.domain, document.type)

    def movements(self, document_id: UUID) -> list[StockMovement]:
        """Stock movements posted by a document."""
        return self._recorder.movements(document_id=document_id)
