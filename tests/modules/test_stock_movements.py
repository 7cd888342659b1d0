"""
Tests for document-driven stock movements.

Validates:
- Which documents move stock, and in which direction
- Deliveries and invoices of one chain net, so goods move once whatever the order
- Weighted average cost on purchase receipts, in base currency
- Negative-stock policy
- Non-catalog lines are ignored
- Product totals and stock status follow the warehouse rows
"""

from decimal import Decimal

import pytest

from commerce_kernel.exceptions import InsufficientStockError
from commerce_modules.catalog import StockStatus
from commerce_modules.documents.models import (
    ConversionOverrides,
    DocumentDomain,
    DocumentDraft,
    DocumentStatus,
    DocumentType,
    DraftLine,
    StockAction,
)
from commerce_modules.documents.service import DocumentService
from commerce_modules.inventory import MovementType, StockEffect, stock_rule_for


class TestStockRules:

    @pytest.mark.parametrize("domain,doc_type,status,effect", [
        (DocumentDomain.SALES, DocumentType.DELIVERY, DocumentStatus.COMPLETED, StockEffect.DECREMENT),
        (DocumentDomain.SALES, DocumentType.ISSUE, DocumentStatus.COMPLETED, StockEffect.DECREMENT),
        (DocumentDomain.SALES, DocumentType.INVOICE, DocumentStatus.PENDING, StockEffect.DECREMENT),
        (DocumentDomain.PURCHASE, DocumentType.DELIVERY, DocumentStatus.RECEIVED, StockEffect.INCREMENT),
        (DocumentDomain.PURCHASE, DocumentType.INVOICE, DocumentStatus.PENDING, StockEffect.INCREMENT),
    ])
    def test_stock_documents(self, domain, doc_type, status, effect):
        assert stock_rule_for(domain, doc_type, status).effect is effect

    @pytest.mark.parametrize("domain,doc_type,status", [
        (DocumentDomain.SALES, DocumentType.ESTIMATE, DocumentStatus.DRAFT),
        (DocumentDomain.SALES, DocumentType.ORDER, DocumentStatus.PENDING),
        (DocumentDomain.SALES, DocumentType.CREDIT, DocumentStatus.PAID),
        (DocumentDomain.PURCHASE, DocumentType.ORDER, DocumentStatus.PENDING),
        (DocumentDomain.PURCHASE, DocumentType.RFQ, DocumentStatus.SENT),
    ])
    def test_non_stock_documents(self, domain, doc_type, status):
        assert stock_rule_for(domain, doc_type, status) is None

    def test_returns_move_stock_only_when_reintegrated(self):
        sales = stock_rule_for(
            DocumentDomain.SALES, DocumentType.RETURN, DocumentStatus.PROCESSED, StockAction.REINTEGRATE
        )
        purchase = stock_rule_for(
            DocumentDomain.PURCHASE, DocumentType.RETURN, DocumentStatus.PROCESSED, StockAction.REINTEGRATE
        )

        assert sales.effect is StockEffect.INCREMENT
        assert purchase.effect is StockEffect.DECREMENT
        assert stock_rule_for(
            DocumentDomain.SALES, DocumentType.RETURN, DocumentStatus.PROCESSED, StockAction.QUARANTINE
        ) is None


class TestSalesStock:

    def test_delivery_decrements(self, document_service, inventory_service, catalog, make_draft):
        inventory_service.adjust_stock("P-001", "WH-MAIN", Decimal("30"))

        delivery = document_service.submit_draft(make_draft("sales", "delivery", [("P-001", "8", None)]))

        assert inventory_service.stock_level("P-001", "WH-MAIN") == Decimal("22")
        (movement,) = document_service.movements(delivery.id)
        assert movement.quantity == Decimal("-8")
        assert movement.movement_type is MovementType.SALE
        assert movement.quantity_after == Decimal("22")
        assert catalog.find_product("P-001").stock == Decimal("22")

    def test_issue_decrements(self, document_service, inventory_service, make_draft):
        document_service.submit_draft(make_draft("sales", "issue", [("P-002", "2", None)]))

        assert inventory_service.stock_level("P-002", "WH-MAIN") == Decimal("-2")

    def test_invoice_after_delivery_moves_nothing(self, document_service, inventory_service, make_draft):
        order = document_service.submit_draft(make_draft("sales", "order", [("P-001", "5", None)]))
        document_service.convert(order.id, DocumentType.DELIVERY)

        invoice = document_service.convert(order.id, DocumentType.INVOICE)

        assert document_service.movements(invoice.id) == []
        assert inventory_service.stock_level("P-001", "WH-MAIN") == Decimal("-5")

    def test_invoice_from_delivery_moves_nothing(self, document_service, inventory_service, make_draft):
        delivery = document_service.submit_draft(make_draft("sales", "delivery", [("P-001", "5", None)]))

        invoice = document_service.convert(delivery.id, DocumentType.INVOICE)

        assert document_service.movements(invoice.id) == []
        assert inventory_service.stock_level("P-001", "WH-MAIN") == Decimal("-5")

    def test_invoice_without_delivery_decrements(self, document_service, inventory_service, make_draft):
        order = document_service.submit_draft(make_draft("sales", "order", [("P-001", "5", None)]))

        invoice = document_service.convert(order.id, DocumentType.INVOICE)

        assert len(document_service.movements(invoice.id)) == 1
        assert inventory_service.stock_level("P-001", "WH-MAIN") == Decimal("-5")

    def test_non_catalog_lines_ignored(self, document_service, inventory_service):
        delivery = document_service.submit_draft(DocumentDraft(
            domain=DocumentDomain.SALES,
            type=DocumentType.DELIVERY,
            partner_id="CLI-001",
            warehouse_id="WH-MAIN",
            lines=(
                DraftLine("P-001", Decimal("1")),
                DraftLine("SVC-SETUP", Decimal("1"), price=Decimal("40"), description="Setup"),
            ),
        ))

        assert [m.product_code for m in document_service.movements(delivery.id)] == ["P-001"]

    def test_only_non_catalog_lines_need_no_warehouse(self, document_service):
        delivery = document_service.submit_draft(DocumentDraft(
            domain=DocumentDomain.SALES,
            type=DocumentType.DELIVERY,
            partner_id="CLI-001",
            lines=(DraftLine("SVC-SETUP", Decimal("1"), price=Decimal("40"), description="Setup"),),
        ))

        assert document_service.movements(delivery.id) == []


class TestNegativeStockPolicy:

    @pytest.fixture
    def strict_service(self, session, strict_stock_config, catalog, deterministic_clock):
        return DocumentService(session, strict_stock_config, catalog=catalog, clock=deterministic_clock)

    def test_insufficient_stock_rolls_back(self, strict_service, inventory_service, make_draft):
        inventory_service.adjust_stock("P-001", "WH-MAIN", Decimal("3"))

        with pytest.raises(InsufficientStockError) as exc_info:
            strict_service.submit_draft(make_draft("sales", "delivery", [("P-001", "5", None)]))

        assert Decimal(exc_info.value.available) == Decimal("3")
        assert strict_service.list_documents(DocumentDomain.SALES) == []
        assert inventory_service.stock_level("P-001", "WH-MAIN") == Decimal("3")

    def test_stock_in_another_warehouse_does_not_count(self, strict_service, inventory_service, make_draft):
        inventory_service.adjust_stock("P-001", "WH-EAST", Decimal("50"))

        with pytest.raises(InsufficientStockError):
            strict_service.submit_draft(make_draft("sales", "delivery", [("P-001", "1", None)]))

    def test_enough_stock(self, strict_service, inventory_service, make_draft):
        inventory_service.adjust_stock("P-001", "WH-MAIN", Decimal("5"))

        strict_service.submit_draft(make_draft("sales", "delivery", [("P-001", "5", None)]))

        assert inventory_service.stock_level("P-001", "WH-MAIN") == Decimal("0")

    def test_negative_allowed_by_default(self, document_service, inventory_service, make_draft):
        document_service.submit_draft(make_draft("sales", "delivery", [("P-001", "5", None)]))

        assert inventory_service.stock_level("P-001", "WH-MAIN") == Decimal("-5")


class TestPurchaseCosting:

    def test_weighted_average_cost(self, document_service, catalog, make_draft):
        first = document_service.submit_draft(make_draft("purchase", "order", [("P-001", "10", "5")]))
        second = document_service.submit_draft(make_draft("purchase", "order", [("P-001", "10", "8")]))

        document_service.receive_goods(first.id, {"P-001": Decimal("10")})
        document_service.receive_goods(second.id, {"P-001": Decimal("10")})

        product = catalog.find_product("P-001")
        assert product.cost == Decimal("6.5")
        assert product.stock == Decimal("20")

    def test_cost_in_base_currency(self, document_service, catalog, make_draft):
        order = document_service.submit_draft(make_draft(
            "purchase", "order", [("P-002", "4", "10")], currency="EUR", exchange_rate=Decimal("1.5"),
        ))

        receipt = document_service.receive_goods(order.id, {"P-002": Decimal("4")})

        (movement,) = document_service.movements(receipt.grn.id)
        assert movement.unit_cost == Decimal("15")
        assert catalog.find_product("P-002").cost == Decimal("15")

    def test_purchase_invoice_without_grn_increments(self, document_service, inventory_service, make_draft):
        invoice = document_service.submit_draft(make_draft("purchase", "invoice", [("P-001", "7", "5")]))

        assert inventory_service.stock_level("P-001", "WH-MAIN") == Decimal("7")
        assert len(document_service.movements(invoice.id)) == 1

    def test_purchase_invoice_after_grn_moves_nothing(self, document_service, inventory_service, make_draft):
        order = document_service.submit_draft(make_draft("purchase", "order", [("P-001", "7", "5")]))
        document_service.receive_goods(order.id, {"P-001": Decimal("7")})

        invoice = document_service.convert(order.id, DocumentType.INVOICE)

        assert document_service.movements(invoice.id) == []
        assert inventory_service.stock_level("P-001", "WH-MAIN") == Decimal("7")

    def test_invoice_from_grn_moves_nothing(self, document_service, inventory_service, make_draft):
        order = document_service.submit_draft(make_draft("purchase", "order", [("P-001", "7", "5")]))
        receipt = document_service.receive_goods(order.id, {"P-001": Decimal("3")})

        invoice = document_service.convert(
            receipt.grn.id, DocumentType.INVOICE, ConversionOverrides(notes="Supplier invoice 88"),
        )

        assert document_service.movements(invoice.id) == []
        assert inventory_service.stock_level("P-001", "WH-MAIN") == Decimal("3")


class TestChainNetting:
    """Deliveries and invoices of one order chain net against each other."""

    def test_grn_after_purchase_invoice_moves_nothing(self, document_service, inventory_service, make_draft):
        order = document_service.submit_draft(make_draft("purchase", "order", [("P-001", "10", "5")]))
        document_service.convert(order.id, DocumentType.INVOICE)
        assert inventory_service.stock_level("P-001", "WH-MAIN") == Decimal("10")

        receipt = document_service.receive_goods(order.id, {"P-001": Decimal("10")})

        assert document_service.movements(receipt.grn.id) == []
        assert inventory_service.stock_level("P-001", "WH-MAIN") == Decimal("10")

    def test_grn_beyond_invoiced_quantity_moves_the_rest(self, document_service, inventory_service, make_draft):
        order = document_service.submit_draft(make_draft("purchase", "order", [("P-001", "10", "5")]))
        document_service.convert(
            order.id, DocumentType.INVOICE, ConversionOverrides(quantities={"P-001": Decimal("4")}),
        )

        receipt = document_service.receive_goods(order.id, {"P-001": Decimal("10")})

        (movement,) = document_service.movements(receipt.grn.id)
        assert movement.quantity == Decimal("6")
        assert inventory_service.stock_level("P-001", "WH-MAIN") == Decimal("10")

    def test_delivery_after_sales_invoice_moves_nothing(self, document_service, inventory_service, make_draft):
        order = document_service.submit_draft(make_draft("sales", "order", [("P-001", "10", None)]))
        document_service.convert(order.id, DocumentType.INVOICE)
        assert inventory_service.stock_level("P-001", "WH-MAIN") == Decimal("-10")

        delivery = document_service.convert(order.id, DocumentType.DELIVERY)

        assert document_service.movements(delivery.id) == []
        assert inventory_service.stock_level("P-001", "WH-MAIN") == Decimal("-10")

    def test_invoice_after_partial_delivery_moves_the_rest(self, document_service, inventory_service, make_draft):
        order = document_service.submit_draft(make_draft("sales", "order", [("P-001", "10", None)]))
        document_service.convert(
            order.id, DocumentType.DELIVERY, ConversionOverrides(quantities={"P-001": Decimal("3")}),
        )
        assert inventory_service.stock_level("P-001", "WH-MAIN") == Decimal("-3")

        invoice = document_service.convert(order.id, DocumentType.INVOICE)

        (movement,) = document_service.movements(invoice.id)
        assert movement.quantity == Decimal("-7")
        assert inventory_service.stock_level("P-001", "WH-MAIN") == Decimal("-10")


class TestProductStatus:

    def test_status_bands(self, inventory_service, catalog):
        assert catalog.find_product("P-001").status is StockStatus.OUT_OF_STOCK

        inventory_service.adjust_stock("P-001", "WH-MAIN", Decimal("5"))
        assert catalog.find_product("P-001").status is StockStatus.LOW_STOCK

        inventory_service.adjust_stock("P-001", "WH-EAST", Decimal("20"))
        assert catalog.find_product("P-001").status is StockStatus.IN_STOCK
        assert catalog.find_product("P-001").stock == Decimal("25")
