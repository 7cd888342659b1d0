"""
DocumentStore -- persistence and numbering for commercial documents.

Responsibility:
    Create, replace, delete and read documents of both domains.  Assigns
    each new document an identity (injected ``IdGenerator``) and a number
    ``{PREFIX}-{zero-padded sequence}`` from a durable per-(domain, type)
    counter.

Architecture position:
    Modules > Documents.  Leaf component: depends only on the kernel
    (sequence service, id generator) and its own ORM.

Invariants enforced:
    - Numbers never repeat within (domain, type), even after deletions:
      the counter row is the source of truth, never a row count.
    - Deletion does not cascade to linked documents; links to a deleted
      document dangle and ``resolve_link`` treats them as absent.

Non-goals:
    - Does NOT commit.  The calling service owns the transaction.
    - Does NOT validate business rules (conversions, statuses); callers do.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from commerce_config.schema import NumberingDef
from commerce_kernel.domain.identity import IdGenerator, UUIDGenerator
from commerce_kernel.exceptions import DocumentNotFoundError, DocumentValidationError
from commerce_kernel.logging_config import get_logger
from commerce_kernel.services.sequence_service import SequenceService
from commerce_modules.documents.models import (
    DOMAIN_TYPES,
    Document,
    DocumentDomain,
    DocumentStatus,
    DocumentType,
    LineItem,
    document_class,
)
from commerce_modules.documents.orm import DocumentModel

logger = get_logger("modules.documents.store")


def sequence_name(domain: DocumentDomain, doc_type: DocumentType) -> str:
    """Counter name for a (domain, type) pair, e.g. ``sales.invoice``."""
    return f"{DocumentDomain(domain).value}.{DocumentType(doc_type).value}"


class DocumentStore:
    """
    CRUD over ``commercial_documents``.

    Usage:
        store = DocumentStore(session, config.numbering, id_generator)
        invoice = store.create("sales", "invoice", fields, items)
    """

    def __init__(
        self,
        session: Session,
        numbering: NumberingDef,
        id_generator: IdGenerator | None = None,
    ):
        self._session = session
        self._numbering = numbering
        self._ids = id_generator or UUIDGenerator()
        self._sequences = SequenceService(session)

    # =========================================================================
    # Writes
    # =========================================================================

    def create(
        self,
        domain: DocumentDomain,
        doc_type: DocumentType,
        fields: Mapping[str, Any],
        items: Sequence[LineItem],
    ) -> Document:
        """
        Persist a new document and return it with ``id`` and ``number`` set.

        ``fields`` holds every other DTO field (status, date, partner,
        currency, totals...).

        Raises:
            DocumentValidationError: if ``doc_type`` does not exist in ``domain``.
        """
        domain = DocumentDomain(domain)
        doc_type = DocumentType(doc_type)
        if doc_type not in DOMAIN_TYPES[domain]:
            raise DocumentValidationError(
                f"{domain.value} documents have no type {doc_type.value!r}",
                field="type",
            )

        seq = self._sequences.next_value(sequence_name(domain, doc_type))
        number = self._numbering.format(domain.value, doc_type.value, seq)

        document = document_class(domain)(
            id=self._ids.next_id(),
            number=number,
            type=doc_type,
            items=tuple(items),
            **fields,
        )
        self._session.add(DocumentModel.from_dto(document))
        self._session.flush()

        logger.info("document_created", extra={
            "document_id": str(document.id),
            "document_number": number,
            "domain": domain.value,
            "document_type": doc_type.value,
            "status": document.status.value,
            "line_count": len(document.items),
            "amount": str(document.amount),
            "linked_document_id": (
                str(document.linked_document_id) if document.linked_document_id else None
            ),
        })
        return document

    def update(self, document: Document) -> Document:
        """
        Replace the stored record with ``document``.

        Raises:
            DocumentNotFoundError: if no document has ``document.id``.
        """
        model = self._session.get(DocumentModel, document.id)
        if model is None:
            raise DocumentNotFoundError(str(document.id))
        model.apply_dto(document)
        self._session.flush()

        logger.info("document_updated", extra={
            "document_id": str(document.id),
            "document_number": document.number,
            "status": document.status.value,
            "amount": str(document.amount),
        })
        return document

    def delete(self, document_id: UUID) -> Document:
        """
        Remove a document.  Linked documents are left untouched.

        Returns the deleted document.

        Raises:
            DocumentNotFoundError: if the document does not exist.
        """
        model = self._session.get(DocumentModel, document_id)
        if model is None:
            raise DocumentNotFoundError(str(document_id))
        document = model.to_dto()
        self._session.delete(model)
        self._session.flush()

        logger.info("document_deleted", extra={
            "document_id": str(document_id),
            "document_number": document.number,
            "domain": document.domain.value,
            "document_type": document.type.value,
        })
        return document

    # =========================================================================
    # Reads
    # =========================================================================

    def find_by_id(self, document_id: UUID, lock: bool = False) -> Document | None:
        """The document, or None.  ``lock=True`` holds its row until commit."""
        model = self._session.get(DocumentModel, document_id, with_for_update=lock)
        return model.to_dto() if model is not None else None

    def get(self, document_id: UUID, lock: bool = False) -> Document:
        """
        Raises:
            DocumentNotFoundError: if the document does not exist.
        """
        document = self.find_by_id(document_id, lock=lock)
        if document is None:
            raise DocumentNotFoundError(str(document_id))
        return document

    def list(
        self,
        domain: DocumentDomain,
        doc_type: DocumentType | None = None,
        status: DocumentStatus | None = None,
        partner_id: str | None = None,
    ) -> list[Document]:
        """Documents of a domain, oldest first, filtered by equality only."""
        stmt = select(DocumentModel).where(DocumentModel.domain == DocumentDomain(domain).value)
        if doc_type is not None:
            stmt = stmt.where(DocumentModel.type == DocumentType(doc_type).value)
        if status is not None:
            stmt = stmt.where(DocumentModel.status == DocumentStatus(status).value)
        if partner_id is not None:
            stmt = stmt.where(DocumentModel.partner_id == partner_id)
        stmt = stmt.order_by(DocumentModel.document_date, DocumentModel.number)
        return [model.to_dto() for model in self._session.scalars(stmt)]

    def find_linked(
        self,
        document_id: UUID,
        doc_type: DocumentType | None = None,
    ) -> list[Document]:
        """Successors: documents whose ``linked_document_id`` is ``document_id``."""
        stmt = select(DocumentModel).where(DocumentModel.linked_document_id == document_id)
        if doc_type is not None:
            stmt = stmt.where(DocumentModel.type == DocumentType(doc_type).value)
        stmt = stmt.order_by(DocumentModel.document_date, DocumentModel.number)
        return [model.to_dto() for model in self._session.scalars(stmt)]

    def resolve_link(self, document: Document) -> Document | None:
        """
        The predecessor of ``document``, or None.

        A dangling link (predecessor deleted) resolves to None, never an error.
        """
        if document.linked_document_id is None:
            return None
        predecessor = self.find_by_id(document.linked_document_id)
        if predecessor is None:
            logger.debug("document_link_dangling", extra={
                "document_number": document.number,
                "linked_document_id": str(document.linked_document_id),
            })
        return predecessor

    def ancestors(self, document: Document) -> Iterator[Document]:
        """Walk the conversion chain backwards, nearest predecessor first."""
        seen = {document.id}
        current = self.resolve_link(document)
        while current is not None and current.id not in seen:
            yield current
            seen.add(current.id)
            current = self.resolve_link(current)
