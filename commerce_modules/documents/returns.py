"""
ReturnHandler -- reverse-flow documents.

Responsibility:
    Create a return against an order, delivery or invoice of either domain.
    Returned goods are either reintegrated (stock moves back: up for sales
    returns, down for purchase returns) or quarantined (no stock effect).
    A sales return against an invoice may also issue a credit note.

Architecture position:
    Modules > Documents.  Uses ``ConversionEngine`` with the ``return``
    action, so the conversion table decides which sources are returnable.

Invariants enforced:
    - Returned quantity per line is clamped to ``[0, original quantity]``.
    - Totals are ``returned subtotal * (1 + source tax rate / 100)``: no
      discount, no stamp, no additional costs.
    - A return is ``processed`` as soon as it exists.

Known limitation:
    - A return does NOT reduce its source's fulfilled or delivered
      quantities; ``returned_quantities`` reports what was returned so far.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date
from decimal import Decimal

from commerce_engines.pricing import DiscountType
from commerce_kernel.exceptions import DocumentValidationError
from commerce_kernel.logging_config import get_logger
from commerce_modules.documents.config import DocumentsConfig
from commerce_modules.documents.conversion import ConversionEngine
from commerce_modules.documents.models import (
    ConversionOverrides,
    Document,
    DocumentDomain,
    DocumentType,
    ReturnReason,
    ReturnResult,
    StockAction,
)
from commerce_modules.documents.store import DocumentStore

logger = get_logger("modules.documents.returns")

_ZERO = Decimal("0")


class ReturnHandler:
    """Creates return documents and, optionally, sales credit notes."""

    def __init__(
        self,
        store: DocumentStore,
        conversion: ConversionEngine,
        documents_config: DocumentsConfig | None = None,
    ):
        self._store = store
        self._conversion = conversion
        self._documents_config = documents_config or DocumentsConfig.with_defaults()

    def create_return(
        self,
        source: Document,
        returned_items: Mapping[str, Decimal],
        reason: ReturnReason,
        stock_action: StockAction,
        warehouse_id: str | None = None,
        *,
        return_date: date | None = None,
        notes: str | None = None,
        issue_credit_note: bool | None = None,
    ) -> ReturnResult:
        """
        Return goods from ``source``.

        Args:
            returned_items: item id -> quantity; clamped to the source line.
            warehouse_id: where reintegrated goods go back to (or leave
                from); defaults to the source's warehouse.
            issue_credit_note: sales only; defaults to the module setting.

        Raises:
            InvalidConversionError: ``source`` is not returnable in its status.
            DocumentValidationError: nothing left to return after clamping,
                or a credit note requested for a non-invoice source.
        """
        source = self._store.get(source.id)
        reason = ReturnReason(reason)
        stock_action = StockAction(stock_action)

        wants_credit = (
            issue_credit_note
            if issue_credit_note is not None
            else self._documents_config.credit_note_on_sales_return
        ) and source.domain is DocumentDomain.SALES
        if wants_credit and source.type is not DocumentType.INVOICE:
            raise DocumentValidationError(
                f"A credit note can only be issued against an invoice, not a {source.type.value}",
                field="issue_credit_note",
            )

        overrides = self._overrides(source, returned_items, warehouse_id, return_date, notes)
        return_document = self._conversion.convert(
            source,
            DocumentType.RETURN,
            overrides,
            action="return",
            stock_action=stock_action,
            return_reason=reason,
        )

        credit_note = None
        if wants_credit:
            credit_note = self._conversion.convert(
                source,
                DocumentType.CREDIT,
                self._overrides(
                    source,
                    {item.item_id: item.quantity for item in return_document.items},
                    None,
                    return_date,
                    f"Credit for return {return_document.number}",
                ),
            )

        logger.info("document_return_created", extra={
            "source_number": source.number,
            "return_number": return_document.number,
            "credit_number": credit_note.number if credit_note else None,
            "reason": reason.value,
            "stock_action": stock_action.value,
            "amount": str(return_document.amount),
        })
        return ReturnResult(return_document=return_document, credit_note=credit_note)

    def returned_quantities(self, source: Document) -> dict[str, Decimal]:
        """Cumulative quantity returned per item across every return of ``source``."""
        totals: dict[str, Decimal] = {}
        for return_document in self._store.find_linked(source.id, DocumentType.RETURN):
            for item in return_document.items:
                totals[item.item_id] = totals.get(item.item_id, _ZERO) + item.quantity
        return totals

    @staticmethod
    def _overrides(
        source: Document,
        quantities: Mapping[str, Decimal],
        warehouse_id: str | None,
        return_date: date | None,
        notes: str | None,
    ) -> ConversionOverrides:
        return ConversionOverrides(
            quantities=quantities,
            warehouse_id=warehouse_id,
            date=return_date,
            notes=notes,
            discount_value=_ZERO,
            discount_type=DiscountType.PERCENT,
            tax_rate=source.tax_rate,
            fiscal_stamp=_ZERO,
            additional_costs=_ZERO,
        )
