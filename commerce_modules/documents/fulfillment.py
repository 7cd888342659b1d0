"""
FulfillmentTracker -- partial receipts on purchase orders, RFQ quotes.

Responsibility:
    ``receive`` turns a purchase order into one more goods-receipt note and
    advances the order's per-line fulfilled quantities.  ``quote_rfq`` and
    ``accept_rfq`` are the mirror flow on requests for quotation.

Architecture position:
    Modules > Documents.  Creates documents through ``ConversionEngine``
    and persists the updated source through ``DocumentStore``; both writes
    share the caller's transaction.

Invariants enforced:
    - ``0 <= fulfilled_quantity <= quantity`` on every order line, and it
      never decreases: requests are clamped to ``[0, remaining]``.
    - An order is ``received`` iff every line is fully fulfilled, otherwise
      it stays ``pending``.
    - A GRN carries the share of the order's additional costs proportional
      to the value it receives.
    - The source row is locked (``FOR UPDATE``) for the whole action.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import replace
from datetime import date
from decimal import Decimal

from commerce_engines.pricing import DiscountType, PricingEngine
from commerce_kernel.domain.currency import quantize_amount
from commerce_kernel.exceptions import DocumentValidationError, InvalidStatusTransitionError
from commerce_kernel.logging_config import get_logger
from commerce_modules.documents.conversion import ConversionEngine
from commerce_modules.documents.models import (
    ConversionOverrides,
    Document,
    DocumentDomain,
    DocumentType,
    PurchaseDocument,
    ReceiptResult,
    RfqAcceptance,
)
from commerce_modules.documents.store import DocumentStore
from commerce_modules.documents.workflows import (
    ALL_LINES_RECEIVED,
    LINES_OUTSTANDING,
    Transition,
    workflow_for,
)

logger = get_logger("modules.documents.fulfillment")

_ZERO = Decimal("0")


class FulfillmentTracker:
    """Receipt accounting on purchase orders; quote and acceptance on RFQs."""

    def __init__(
        self,
        store: DocumentStore,
        conversion: ConversionEngine,
        pricing: PricingEngine | None = None,
    ):
        self._store = store
        self._conversion = conversion
        self._pricing = pricing or PricingEngine()

    # =========================================================================
    # Goods receipt
    # =========================================================================

    def receive(
        self,
        order: Document,
        requested_quantities: Mapping[str, Decimal],
        *,
        warehouse_id: str | None = None,
        receipt_date: date | None = None,
    ) -> ReceiptResult:
        """
        Receive goods against a purchase order.

        Lines absent from ``requested_quantities`` receive nothing.  Each
        request is clamped to what the line still expects.

        Raises:
            DocumentValidationError: not a purchase order, or nothing left
                to receive after clamping.
            InvalidStatusTransitionError: the order is not pending.
        """
        order = self._require(order, DocumentType.ORDER, "receive goods against")
        self._transitions(order, "receive")

        received: dict[str, Decimal] = {}
        for item in order.items:
            requested = Decimal(requested_quantities.get(item.item_id, _ZERO))
            quantity = min(max(_ZERO, requested), item.remaining_quantity)
            if quantity > _ZERO:
                received[item.item_id] = quantity
        if not received:
            raise DocumentValidationError(
                f"Nothing to receive on {order.number}: every requested quantity "
                "is zero or already received",
                field="items",
            )

        grn = self._conversion.convert(
            order,
            DocumentType.DELIVERY,
            ConversionOverrides(
                quantities=received,
                additional_costs=self._additional_cost_share(order, received),
                warehouse_id=warehouse_id,
                date=receipt_date,
            ),
            action="receive",
        )

        items = tuple(
            replace(
                item,
                fulfilled_quantity=(item.fulfilled_quantity or _ZERO) + received.get(item.item_id, _ZERO),
            )
            for item in order.items
        )
        guard = ALL_LINES_RECEIVED if all(item.is_fulfilled for item in items) else LINES_OUTSTANDING
        transition = self._select(order, "receive", guard.name)
        updated = self._store.update(replace(order, items=items, status=transition.to_state))

        logger.info("purchase_order_received", extra={
            "order_number": order.number,
            "grn_number": grn.number,
            "lines_received": len(received),
            "quantity_received": str(sum(received.values(), _ZERO)),
            "order_status": updated.status.value,
        })
        return ReceiptResult(grn=grn, order=updated)

    def _additional_cost_share(self, order: Document, received: Mapping[str, Decimal]) -> Decimal:
        additional = getattr(order, "additional_costs", _ZERO)
        if additional <= _ZERO or order.subtotal <= _ZERO:
            return _ZERO
        received_value = sum(
            (item.price * received[item.item_id] for item in order.items if item.item_id in received),
            _ZERO,
        )
        return quantize_amount(additional * received_value / order.subtotal, order.currency)

    # =========================================================================
    # Requests for quotation
    # =========================================================================

    def quote_rfq(self, rfq: Document, prices: Mapping[str, Decimal]) -> PurchaseDocument:
        """
        Record a supplier's prices on an RFQ.

        Listed prices overwrite the line prices (negatives clamp to zero);
        unlisted lines keep theirs.  The amount becomes the plain sum of
        ``price * quantity``, so discount, tax and stamp are cleared.

        Raises:
            InvalidStatusTransitionError: the RFQ was accepted or rejected.
        """
        rfq = self._require(rfq, DocumentType.RFQ, "quote")
        (transition,) = self._transitions(rfq, "quote")

        items = tuple(
            replace(item, price=max(_ZERO, Decimal(prices[item.item_id])))
            if item.item_id in prices else item
            for item in rfq.items
        )
        totals = self._pricing.price(
            items,
            discount_value=_ZERO,
            discount_type=DiscountType.PERCENT,
            tax_rate=_ZERO,
            fiscal_stamp=_ZERO,
            additional_costs=_ZERO,
        )
        quoted = replace(
            rfq,
            items=items,
            status=transition.to_state,
            subtotal=totals.subtotal,
            discount=_ZERO,
            discount_value=_ZERO,
            tax_rate=_ZERO,
            fiscal_stamp=_ZERO,
            additional_costs=_ZERO,
            amount=self._pricing.quoted_amount(items),
        )
        self._store.update(quoted)

        logger.info("rfq_quoted", extra={
            "rfq_number": rfq.number,
            "quoted_lines": sum(1 for item in rfq.items if item.item_id in prices),
            "amount": str(quoted.amount),
        })
        return quoted

    def accept_rfq(
        self,
        rfq: Document,
        overrides: ConversionOverrides | None = None,
    ) -> RfqAcceptance:
        """
        Accept a quoted RFQ: create the purchase order from its quoted
        lines and mark the RFQ ``accepted``.

        Raises:
            InvalidStatusTransitionError: the RFQ has not been quoted.
        """
        rfq = self._require(rfq, DocumentType.RFQ, "accept")
        (transition,) = self._transitions(rfq, "accept")

        order = self._conversion.convert(rfq, DocumentType.ORDER, overrides, action="accept")
        accepted = self._store.update(rfq.with_status(transition.to_state))

        logger.info("rfq_accepted", extra={
            "rfq_number": rfq.number,
            "order_number": order.number,
            "amount": str(order.amount),
        })
        return RfqAcceptance(rfq=accepted, order=order)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _require(self, document: Document, doc_type: DocumentType, verb: str) -> Document:
        current = self._store.get(document.id, lock=True)
        if current.domain is not DocumentDomain.PURCHASE or current.type is not doc_type:
            raise DocumentValidationError(
                f"Cannot {verb} {current.number}: it is not a purchase {doc_type.value}",
                field="type",
            )
        return current

    def _transitions(self, document: Document, action: str) -> tuple[Transition, ...]:
        transitions = workflow_for(document.domain, document.type).find(document.status, action)
        if not transitions:
            raise InvalidStatusTransitionError(document.number, document.status.value, action)
        return transitions

    def _select(self, document: Document, action: str, guard_name: str) -> Transition:
        for transition in self._transitions(document, action):
            if transition.guard is not None and transition.guard.name == guard_name:
                return transition
        raise InvalidStatusTransitionError(document.number, document.status.value, action)

