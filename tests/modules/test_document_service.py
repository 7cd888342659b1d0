"""
Tests for DocumentService: the transaction boundary around every action.

Validates:
- Named status transitions and their refusal
- Purchase-invoice payments (partial, completed, over-payment)
- Item edits and the states that lock them
- Deletion without cascade, reporting what remains
- A failed action leaves no trace (documents, stock, numbering)
- Structured log events per action
"""

from decimal import Decimal
from uuid import UUID

import pytest

from commerce_kernel.exceptions import (
    DocumentLockedError,
    DocumentNotFoundError,
    DocumentValidationError,
    InsufficientStockError,
    InvalidPaymentAmountError,
    InvalidStatusTransitionError,
    PaymentExceedsBalanceError,
    WarehouseNotFoundError,
)
from commerce_modules.documents.models import (
    DocumentDomain,
    DocumentStatus,
    DocumentType,
    DraftLine,
    ReturnReason,
    StockAction,
)
from commerce_modules.documents.service import DocumentService


class TestTransitions:

    def test_estimate_lifecycle(self, document_service, make_draft):
        estimate = document_service.submit_draft(make_draft("sales", "estimate", [("P-001", "1", None)]))

        assert document_service.available_actions(estimate.id) == ("send", "accept", "reject")
        sent = document_service.transition(estimate.id, "send")
        assert sent.status is DocumentStatus.SENT
        accepted = document_service.transition(estimate.id, "accept")
        assert accepted.status is DocumentStatus.ACCEPTED
        assert document_service.available_actions(estimate.id) == ()

    def test_sales_order_completes(self, document_service, make_draft):
        order = document_service.submit_draft(make_draft("sales", "order", [("P-001", "1", None)]))

        assert document_service.transition(order.id, "complete").status is DocumentStatus.COMPLETED

    def test_sales_invoice_overdue_then_paid(self, document_service, make_draft):
        invoice = document_service.submit_draft(make_draft("sales", "invoice", [("P-001", "1", None)]))

        document_service.transition(invoice.id, "mark_overdue")
        paid = document_service.transition(invoice.id, "mark_paid")

        assert paid.status is DocumentStatus.PAID
        assert document_service.get(invoice.id).status is DocumentStatus.PAID

    def test_purchase_request_approval(self, document_service, make_draft):
        request = document_service.submit_draft(make_draft(
            "purchase", "pr", [("P-001", "5", None)], partner_id="", warehouse_id=None,
        ))

        rejected = document_service.transition(request.id, "reject")

        assert rejected.status is DocumentStatus.REJECTED
        with pytest.raises(InvalidStatusTransitionError):
            document_service.transition(request.id, "approve")

    def test_unknown_action(self, document_service, make_draft):
        order = document_service.submit_draft(make_draft("sales", "order", [("P-001", "1", None)]))

        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            document_service.transition(order.id, "send")

        assert exc_info.value.code == "INVALID_STATUS_TRANSITION"
        assert document_service.get(order.id).status is DocumentStatus.PENDING

    def test_terminal_documents_have_no_actions(self, document_service, make_draft):
        delivery = document_service.submit_draft(make_draft("sales", "delivery", [("P-001", "1", None)]))

        with pytest.raises(InvalidStatusTransitionError):
            document_service.transition(delivery.id, "complete")

    @pytest.mark.parametrize("doc_type,action", [("invoice", "pay"), ("order", "receive")])
    def test_dedicated_actions_refused(self, document_service, make_draft, doc_type, action):
        document = document_service.submit_draft(make_draft("purchase", doc_type, [("P-001", "1", "5")]))

        with pytest.raises(DocumentValidationError) as exc_info:
            document_service.transition(document.id, action)

        assert exc_info.value.field == "action"


class TestPayments:

    @pytest.fixture
    def purchase_invoice(self, document_service, make_draft):
        return document_service.submit_draft(make_draft("purchase", "invoice", [("P-001", "10", "5")]))

    def test_partial_then_settled(self, document_service, purchase_invoice):
        partial = document_service.record_payment(purchase_invoice.id, Decimal("20"))

        assert partial.status is DocumentStatus.PARTIAL
        assert partial.amount_paid == Decimal("20")
        assert partial.balance_due == Decimal("30")

        settled = document_service.record_payment(purchase_invoice.id, Decimal("30"))

        assert settled.status is DocumentStatus.COMPLETED
        assert settled.balance_due == Decimal("0")

    def test_single_full_payment(self, document_service, purchase_invoice):
        assert document_service.record_payment(
            purchase_invoice.id, Decimal("50")
        ).status is DocumentStatus.COMPLETED

    def test_over_payment_rejected(self, document_service, purchase_invoice):
        document_service.record_payment(purchase_invoice.id, Decimal("20"))

        with pytest.raises(PaymentExceedsBalanceError):
            document_service.record_payment(purchase_invoice.id, Decimal("31"))

        current = document_service.get(purchase_invoice.id)
        assert current.amount_paid == Decimal("20")
        assert current.status is DocumentStatus.PARTIAL

    def test_settled_invoice_takes_no_payment(self, document_service, purchase_invoice):
        document_service.record_payment(purchase_invoice.id, Decimal("50"))

        with pytest.raises(InvalidStatusTransitionError):
            document_service.record_payment(purchase_invoice.id, Decimal("1"))

    @pytest.mark.parametrize("amount", ["0", "-5"])
    def test_non_positive_amount(self, document_service, purchase_invoice, amount):
        with pytest.raises(InvalidPaymentAmountError):
            document_service.record_payment(purchase_invoice.id, Decimal(amount))

    def test_sales_invoice_not_payable_here(self, document_service, make_draft):
        invoice = document_service.submit_draft(make_draft("sales", "invoice", [("P-001", "1", None)]))

        with pytest.raises(DocumentValidationError):
            document_service.record_payment(invoice.id, Decimal("1"))


class TestEditItems:

    def test_edit_draft_estimate(self, document_service, make_draft):
        estimate = document_service.submit_draft(make_draft(
            "sales", "estimate", [("P-001", "1", None)], tax_rate=Decimal("10"),
        ))

        edited = document_service.edit_items(estimate.id, [
            DraftLine("P-002", Decimal("2")),
            DraftLine("P-001", Decimal("1"), price=Decimal("8")),
        ])

        assert edited.number == estimate.number
        assert [i.item_id for i in edited.items] == ["P-002", "P-001"]
        assert edited.subtotal == Decimal("58")
        assert edited.amount == Decimal("63.80")
        assert document_service.get(estimate.id).amount == Decimal("63.80")

    def test_sent_estimate_locked(self, document_service, make_draft):
        estimate = document_service.submit_draft(make_draft("sales", "estimate", [("P-001", "1", None)]))
        document_service.transition(estimate.id, "send")

        with pytest.raises(DocumentLockedError):
            document_service.edit_items(estimate.id, [DraftLine("P-001", Decimal("3"))])

    def test_stock_documents_locked(self, document_service, make_draft):
        invoice = document_service.submit_draft(make_draft("sales", "invoice", [("P-001", "1", None)]))

        with pytest.raises(DocumentLockedError):
            document_service.edit_items(invoice.id, [DraftLine("P-001", Decimal("3"))])

    def test_partly_received_order_locked(self, document_service, make_draft):
        order = document_service.submit_draft(make_draft("purchase", "order", [("P-001", "10", "5")]))
        document_service.receive_goods(order.id, {"P-001": Decimal("1")})

        with pytest.raises(DocumentLockedError, match="received"):
            document_service.edit_items(order.id, [DraftLine("P-001", Decimal("3"), price=Decimal("5"))])

    def test_purchase_order_edit_keeps_tracking(self, document_service, make_draft):
        order = document_service.submit_draft(make_draft("purchase", "order", [("P-001", "10", "5")]))

        edited = document_service.edit_items(order.id, [DraftLine("P-001", Decimal("12"), price=Decimal("5"))])

        assert edited.items[0].fulfilled_quantity == Decimal("0")
        assert edited.amount == Decimal("60")

    def test_empty_edit_rejected(self, document_service, make_draft):
        order = document_service.submit_draft(make_draft("sales", "order", [("P-001", "1", None)]))

        with pytest.raises(DocumentValidationError):
            document_service.edit_items(order.id, [])


class TestDelete:

    def test_delete_reports_posted_stock(self, document_service, inventory_service, make_draft):
        delivery = document_service.submit_draft(make_draft("sales", "delivery", [("P-001", "4", None)]))

        result = document_service.delete_document(delivery.id)

        assert result.number == "DEL-001"
        assert result.posted_movements == 1
        assert result.has_unreversed_stock
        assert inventory_service.stock_level("P-001", "WH-MAIN") == Decimal("-4")
        with pytest.raises(DocumentNotFoundError):
            document_service.get(delivery.id)

    def test_successors_keep_dangling_link(self, document_service, make_draft):
        order = document_service.submit_draft(make_draft("sales", "order", [("P-001", "4", None)]))
        invoice = document_service.convert(order.id, DocumentType.INVOICE)

        result = document_service.delete_document(order.id)

        assert result.dangling_successors == 1
        assert not result.has_unreversed_stock
        assert document_service.get(invoice.id).linked_document_id == order.id
        assert document_service.predecessor(invoice.id) is None

    def test_delete_missing(self, document_service):
        with pytest.raises(DocumentNotFoundError):
            document_service.delete_document(UUID(int=4242))

    def test_numbers_not_reused(self, document_service, make_draft):
        first = document_service.submit_draft(make_draft("sales", "invoice", [("P-001", "1", None)]))
        document_service.delete_document(first.id)

        second = document_service.submit_draft(make_draft("sales", "invoice", [("P-001", "1", None)]))

        assert second.number == "INV-002"


class TestAtomicity:

    def test_failed_return_leaves_no_trace(
        self, session, strict_stock_config, catalog, deterministic_clock,
        document_service, inventory_service, make_draft,
    ):
        order = document_service.submit_draft(make_draft("purchase", "order", [("P-001", "10", "5")]))
        document_service.receive_goods(order.id, {"P-001": Decimal("10")})
        inventory_service.transfer_stock("P-001", "WH-MAIN", "WH-EAST", Decimal("8"))
        strict = DocumentService(session, strict_stock_config, catalog=catalog, clock=deterministic_clock)

        with pytest.raises(InsufficientStockError):
            strict.create_return(order.id, {"P-001": Decimal("5")}, ReturnReason.DEFECT, StockAction.REINTEGRATE)

        assert strict.list_documents(DocumentDomain.PURCHASE, doc_type=DocumentType.RETURN) == []
        assert inventory_service.stock_level("P-001", "WH-MAIN") == Decimal("2")

        retried = strict.create_return(
            order.id, {"P-001": Decimal("2")}, ReturnReason.DEFECT, StockAction.REINTEGRATE,
        )
        assert retried.return_document.number == "PRET-001"

    def test_failed_receipt_keeps_order_untouched(self, document_service, make_draft):
        order = document_service.submit_draft(make_draft("purchase", "order", [("P-001", "10", "5")]))

        with pytest.raises(WarehouseNotFoundError):
            document_service.receive_goods(order.id, {"P-001": Decimal("3")}, warehouse_id="WH-NOWHERE")

        current = document_service.get(order.id)
        assert current.items[0].fulfilled_quantity == Decimal("0")
        assert document_service.linked_documents(order.id) == []


class TestQueries:

    def test_list_filters(self, document_service, make_draft):
        document_service.submit_draft(make_draft("sales", "order", [("P-001", "1", None)]))
        invoice = document_service.submit_draft(make_draft("sales", "invoice", [("P-001", "1", None)]))
        document_service.transition(invoice.id, "mark_paid")
        document_service.submit_draft(make_draft("sales", "invoice", [("P-001", "1", None)]))

        paid = document_service.list_documents(
            DocumentDomain.SALES, doc_type=DocumentType.INVOICE, status=DocumentStatus.PAID,
        )

        assert [d.number for d in paid] == ["INV-001"]
        assert len(document_service.list_documents(DocumentDomain.SALES, partner_id="CLI-001")) == 3
        assert document_service.list_documents(DocumentDomain.PURCHASE) == []


class TestActionLogging:

    def test_committed_action_logged(self, captured_logs, document_service, make_draft):
        document_service.submit_draft(make_draft("sales", "order", [("P-001", "1", None)]))

        records = captured_logs()
        messages = [r["message"] for r in records]
        assert "submit_draft_started" in messages
        assert "document_created" in messages
        committed = next(r for r in records if r["message"] == "submit_draft_committed")
        assert committed["document_number"] == "ORD-001"
        assert committed["action"] == "submit_draft"

    def test_rolled_back_action_logged(self, captured_logs, document_service, make_draft):
        order = document_service.submit_draft(make_draft("sales", "order", [("P-001", "1", None)]))

        with pytest.raises(InvalidStatusTransitionError):
            document_service.transition(order.id, "send")

        rolled_back = next(r for r in captured_logs() if r["message"] == "transition_document_rolled_back")
        assert rolled_back["level"] == "WARNING"
        assert rolled_back["document_id"] == str(order.id)
