"""
Tests for the DocumentStore.

Validates:
- Identity and number assignment on create
- Numbers never reused after deletion
- Per (domain, type) numbering
- Update / delete of missing documents
- Equality filters on list
- Successor lookup and tolerant predecessor resolution
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

import pytest

from commerce_kernel.exceptions import DocumentNotFoundError, DocumentValidationError
from commerce_modules.documents.models import (
    DocumentDomain,
    DocumentStatus,
    DocumentType,
    LineItem,
    PurchaseDocument,
    SalesDocument,
)
from commerce_modules.documents.store import DocumentStore, sequence_name


@pytest.fixture
def store(session, config, id_generator):
    return DocumentStore(session, config.numbering, id_generator)


def _fields(status=DocumentStatus.PENDING, partner_id="CLI-001", **overrides):
    fields = {
        "status": status,
        "date": date(2024, 3, 1),
        "partner_id": partner_id,
        "partner_name": "Acme Retail",
        "currency": "USD",
        "amount": Decimal("100"),
        "subtotal": Decimal("100"),
    }
    fields.update(overrides)
    return fields


def _items(*item_ids):
    return [
        LineItem(item_id=item_id, description=item_id, quantity=Decimal("2"), price=Decimal("50"))
        for item_id in item_ids or ("P-001",)
    ]


class TestCreate:

    def test_assigns_id_and_number(self, store):
        invoice = store.create(DocumentDomain.SALES, DocumentType.INVOICE, _fields(), _items())

        assert invoice.id == UUID(int=1)
        assert invoice.number == "INV-001"
        assert isinstance(invoice, SalesDocument)

    def test_purchase_documents_are_purchase_dtos(self, store):
        order = store.create(
            DocumentDomain.PURCHASE, DocumentType.ORDER, _fields(partner_id="SUP-001"), _items()
        )

        assert isinstance(order, PurchaseDocument)
        assert order.number == "PO-001"
        assert order.supplier_id == "SUP-001"

    def test_numbering_is_per_domain_and_type(self, store):
        store.create(DocumentDomain.SALES, DocumentType.INVOICE, _fields(), _items())
        store.create(DocumentDomain.SALES, DocumentType.INVOICE, _fields(), _items())
        order = store.create(DocumentDomain.SALES, DocumentType.ORDER, _fields(), _items())
        purchase_order = store.create(
            DocumentDomain.PURCHASE, DocumentType.ORDER, _fields(partner_id="SUP-001"), _items()
        )

        assert order.number == "ORD-001"
        assert purchase_order.number == "PO-001"

    def test_type_must_belong_to_domain(self, store):
        with pytest.raises(DocumentValidationError):
            store.create(DocumentDomain.SALES, DocumentType.RFQ, _fields(), _items())

    def test_round_trip_preserves_lines_in_order(self, store, session):
        created = store.create(
            DocumentDomain.SALES, DocumentType.ORDER, _fields(), _items("P-002", "P-001", "X-1")
        )
        session.commit()

        loaded = store.get(created.id)

        assert [item.item_id for item in loaded.items] == ["P-002", "P-001", "X-1"]
        assert loaded.items[0].quantity == Decimal("2")
        assert loaded.amount == Decimal("100")
        assert loaded.date == date(2024, 3, 1)

    def test_sequence_name(self):
        assert sequence_name(DocumentDomain.PURCHASE, DocumentType.DELIVERY) == "purchase.delivery"


class TestNumberingAfterDeletion:
    """Numbers come from a durable counter, never from a row count."""

    def test_deleted_number_not_reused(self, store, session):
        first = store.create(DocumentDomain.SALES, DocumentType.INVOICE, _fields(), _items())
        session.commit()
        store.delete(first.id)
        session.commit()

        second = store.create(DocumentDomain.SALES, DocumentType.INVOICE, _fields(), _items())

        assert first.number == "INV-001"
        assert second.number == "INV-002"

    def test_deleting_latest_does_not_rewind(self, store, session):
        store.create(DocumentDomain.SALES, DocumentType.ORDER, _fields(), _items())
        latest = store.create(DocumentDomain.SALES, DocumentType.ORDER, _fields(), _items())
        store.delete(latest.id)

        assert store.create(DocumentDomain.SALES, DocumentType.ORDER, _fields(), _items()).number == "ORD-003"


class TestUpdateAndDelete:

    def test_update_replaces_record(self, store):
        order = store.create(DocumentDomain.SALES, DocumentType.ORDER, _fields(), _items())

        store.update(order.with_status(DocumentStatus.COMPLETED))

        assert store.get(order.id).status is DocumentStatus.COMPLETED

    def test_update_missing_raises(self, store):
        order = store.create(DocumentDomain.SALES, DocumentType.ORDER, _fields(), _items())
        store.delete(order.id)

        with pytest.raises(DocumentNotFoundError):
            store.update(order.with_status(DocumentStatus.COMPLETED))

    def test_delete_missing_raises(self, store):
        with pytest.raises(DocumentNotFoundError) as exc_info:
            store.delete(UUID(int=999))

        assert exc_info.value.code == "DOCUMENT_NOT_FOUND"

    def test_find_by_id_missing_is_none(self, store):
        assert store.find_by_id(UUID(int=999)) is None


class TestList:

    def test_filters_by_type_status_and_partner(self, store):
        store.create(DocumentDomain.SALES, DocumentType.ORDER, _fields(), _items())
        store.create(
            DocumentDomain.SALES, DocumentType.ORDER, _fields(status=DocumentStatus.COMPLETED), _items()
        )
        store.create(DocumentDomain.SALES, DocumentType.INVOICE, _fields(partner_id="CLI-002"), _items())
        store.create(
            DocumentDomain.PURCHASE, DocumentType.ORDER, _fields(partner_id="SUP-001"), _items()
        )

        assert len(store.list(DocumentDomain.SALES)) == 3
        assert len(store.list(DocumentDomain.SALES, doc_type=DocumentType.ORDER)) == 2
        assert [d.number for d in store.list(
            DocumentDomain.SALES, doc_type=DocumentType.ORDER, status=DocumentStatus.COMPLETED
        )] == ["ORD-002"]
        assert [d.number for d in store.list(DocumentDomain.SALES, partner_id="CLI-002")] == ["INV-001"]
        assert len(store.list(DocumentDomain.PURCHASE)) == 1


class TestLinks:

    def test_find_linked_returns_successors(self, store):
        order = store.create(DocumentDomain.SALES, DocumentType.ORDER, _fields(), _items())
        delivery = store.create(
            DocumentDomain.SALES, DocumentType.DELIVERY,
            _fields(status=DocumentStatus.COMPLETED, linked_document_id=order.id), _items(),
        )
        invoice = store.create(
            DocumentDomain.SALES, DocumentType.INVOICE,
            _fields(linked_document_id=order.id), _items(),
        )

        assert {d.id for d in store.find_linked(order.id)} == {delivery.id, invoice.id}
        assert [d.id for d in store.find_linked(order.id, DocumentType.DELIVERY)] == [delivery.id]

    def test_resolve_link_and_ancestors(self, store):
        order = store.create(DocumentDomain.SALES, DocumentType.ORDER, _fields(), _items())
        delivery = store.create(
            DocumentDomain.SALES, DocumentType.DELIVERY,
            _fields(status=DocumentStatus.COMPLETED, linked_document_id=order.id), _items(),
        )
        invoice = store.create(
            DocumentDomain.SALES, DocumentType.INVOICE,
            _fields(linked_document_id=delivery.id), _items(),
        )

        assert store.resolve_link(invoice).id == delivery.id
        assert [d.number for d in store.ancestors(invoice)] == ["DEL-001", "ORD-001"]

    def test_dangling_link_resolves_to_none(self, store):
        order = store.create(DocumentDomain.SALES, DocumentType.ORDER, _fields(), _items())
        invoice = store.create(
            DocumentDomain.SALES, DocumentType.INVOICE,
            _fields(linked_document_id=order.id), _items(),
        )
        store.delete(order.id)

        reloaded = store.get(invoice.id)

        assert reloaded.linked_document_id == order.id
        assert store.resolve_link(reloaded) is None
        assert list(store.ancestors(reloaded)) == []
