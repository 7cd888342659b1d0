"""
ConversionEngine -- the only way documents come into existence.

Responsibility:
    Build a new document either from a UI draft (``create_from_draft``) or
    from a predecessor (``convert``): validate it, price it, hand it to the
    store for identity and number, post its stock movements, and move the
    partner's activity counter.

Architecture position:
    Modules > Documents.  Orchestrates PricingEngine, DocumentStore,
    StockMovementRecorder and the catalog for a single user action.  The
    fulfillment tracker and return handler create their documents through
    ``convert``.

Invariants enforced:
    - Every validation (items, partner, currency, exchange rate, warehouse)
      runs before the first write.
    - A converted document's ``linked_document_id`` is the source id and
      its type is a valid successor in the conversion table.
    - Partial conversions never exceed the source line quantities.
    - The initial status comes from the target type's workflow.
    - Conversion never changes the source document.  Callers that must
      (RFQ acceptance, goods receipt) update the source themselves within
      the same transaction.

Non-goals:
    - Does NOT commit.  ``DocumentService`` owns the transaction.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import replace
from datetime import date, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

from commerce_config.schema import CommerceConfig
from commerce_engines.pricing import DiscountType, PricingEngine
from commerce_kernel.domain.clock import Clock, SystemClock
from commerce_kernel.domain.currency import CurrencyRegistry, normalize_exchange_rate, quantize_amount
from commerce_kernel.exceptions import (
    DocumentValidationError,
    InvalidConversionError,
    ProductNotFoundError,
)
from commerce_kernel.logging_config import get_logger
from commerce_modules.catalog.repository import CatalogRepository, require_partner
from commerce_modules.catalog.service import CatalogService
from commerce_modules.documents.config import DocumentsConfig
from commerce_modules.documents.models import (
    DOMAIN_TYPES,
    ConversionOverrides,
    Document,
    DocumentDomain,
    DocumentDraft,
    DocumentType,
    DraftLine,
    LineItem,
    ReturnReason,
    StockAction,
)
from commerce_modules.documents.store import DocumentStore
from commerce_modules.documents.workflows import (
    DRAFTABLE_TYPES,
    PARTNER_ACTIVITY,
    PARTNER_KIND,
    PARTNERLESS_TYPES,
    conversion_rule,
    initial_status,
)
from commerce_modules.inventory.stock import StockMovementRecorder

logger = get_logger("modules.documents.conversion")

_ZERO = Decimal("0")


def _clamp(value: Decimal, upper: Decimal) -> Decimal:
    return min(max(_ZERO, Decimal(value)), upper)


def _non_negative(value: Decimal) -> Decimal:
    return max(_ZERO, Decimal(value))


class ConversionEngine:
    """
    Creates documents from drafts and from predecessor documents.

    Usage:
        engine = ConversionEngine(store, recorder, catalog, activity, config)
        order = engine.create_from_draft(draft)
        invoice = engine.convert(order, DocumentType.INVOICE)
    """

    def __init__(
        self,
        store: DocumentStore,
        recorder: StockMovementRecorder,
        catalog: CatalogRepository,
        activity: CatalogService,
        config: CommerceConfig,
        documents_config: DocumentsConfig | None = None,
        pricing: PricingEngine | None = None,
        clock: Clock | None = None,
    ):
        self._store = store
        self._recorder = recorder
        self._catalog = catalog
        self._activity = activity
        self._config = config
        self._documents_config = documents_config or DocumentsConfig.with_defaults()
        self._pricing = pricing or PricingEngine()
        self._clock = clock or SystemClock()

    # =========================================================================
    # From a draft
    # =========================================================================

    def create_from_draft(self, draft: DocumentDraft) -> Document:
        """
        Create a document from a UI submission.

        Raises:
            DocumentValidationError: empty cart, missing partner, bad line,
                or a type that cannot be drafted.
            PartnerNotFoundError: unknown client/supplier.
            InvalidCurrencyError / InvalidExchangeRateError: bad currency input.
            WarehouseNotFoundError: unknown warehouse on a stock document.
        """
        domain = DocumentDomain(draft.domain)
        doc_type = DocumentType(draft.type)
        if doc_type not in DRAFTABLE_TYPES[domain]:
            raise DocumentValidationError(
                f"{domain.value} {doc_type.value} documents are only created from a source document",
                field="type",
            )
        if not draft.lines:
            raise DocumentValidationError("A document needs at least one item", field="items")

        partner_id, partner_name = self._partner_snapshot(domain, doc_type, draft.partner_id)
        currency, exchange_rate = self._resolve_currency(draft.currency, draft.exchange_rate)
        items = self._lines_from_draft(domain, doc_type, draft.lines, currency, exchange_rate)

        return self._create(
            domain,
            doc_type,
            partner_id=partner_id,
            partner_name=partner_name,
            items=items,
            currency=currency,
            exchange_rate=exchange_rate,
            warehouse_id=draft.warehouse_id,
            doc_date=draft.date or self._clock.today(),
            discount_value=draft.discount_value,
            discount_type=draft.discount_type,
            tax_rate=draft.tax_rate,
            fiscal_stamp=draft.fiscal_stamp,
            additional_costs=draft.additional_costs,
            extra={
                "due_date": draft.due_date,
                "deadline": draft.deadline,
                "requester_name": draft.requester_name,
                "department": draft.department,
                "notes": draft.notes,
                "payment_terms": draft.payment_terms,
                "payment_method": draft.payment_method,
            },
        )

    def _lines_from_draft(
        self,
        domain: DocumentDomain,
        doc_type: DocumentType,
        lines: Sequence[DraftLine],
        currency: str,
        exchange_rate: Decimal,
    ) -> list[LineItem]:
        items = []
        for line in lines:
            if line.quantity is None or Decimal(line.quantity) <= _ZERO:
                raise DocumentValidationError(
                    f"Item {line.item_id}: quantity must be positive", field="items"
                )
            product = self._catalog.find_product(line.item_id)
            if product is None and not self._documents_config.allow_non_catalog_items:
                raise ProductNotFoundError(line.item_id)

            if line.price is not None:
                price = _non_negative(line.price)
            elif product is not None:
                base_price = product.price if domain is DocumentDomain.SALES else product.cost
                price = self._pricing.convert_unit_price(base_price, exchange_rate, currency)
            else:
                raise DocumentValidationError(
                    f"Item {line.item_id} is not in the catalog and needs a price",
                    field="items",
                )

            description = line.description or (product.name if product is not None else "")
            if not description:
                raise DocumentValidationError(
                    f"Item {line.item_id} is not in the catalog and needs a description",
                    field="items",
                )
            items.append(self._line(domain, doc_type, line.item_id, description, Decimal(line.quantity), price))
        return items

    def reprice(self, document: Document, lines: Sequence[DraftLine]) -> Document:
        """
        ``document`` with its items replaced by ``lines`` and its totals
        recomputed from its own discount, tax, stamp and additional costs.
        Nothing is written; the caller decides whether the edit is allowed.
        """
        if not lines:
            raise DocumentValidationError("A document needs at least one item", field="items")
        items = self._lines_from_draft(
            document.domain, document.type, lines, document.currency, document.exchange_rate
        )
        if len({item.item_id for item in items}) != len(items):
            raise DocumentValidationError("An item appears more than once", field="items")
        additional_costs = getattr(document, "additional_costs", _ZERO)
        totals = self._pricing.price(
            items,
            discount_value=document.discount_value,
            discount_type=document.discount_type,
            tax_rate=document.tax_rate,
            fiscal_stamp=document.fiscal_stamp,
            additional_costs=additional_costs,
            currency=document.currency,
        )
        return replace(
            document,
            items=tuple(items),
            subtotal=totals.subtotal,
            discount=totals.discount,
            amount=totals.total,
        )

    # =========================================================================
    # From a predecessor
    # =========================================================================

    def convert(
        self,
        source: Document,
        target_type: DocumentType,
        overrides: ConversionOverrides | None = None,
        *,
        action: str = "convert",
        stock_action: StockAction | None = None,
        return_reason: ReturnReason | None = None,
    ) -> Document:
        """
        Create a ``target_type`` successor of ``source``.

        Items, partner, currency, exchange rate, warehouse and pricing
        inputs are carried forward unless ``overrides`` replaces them.

        Raises:
            DocumentNotFoundError: the source was deleted.
            InvalidConversionError: the conversion table does not allow it,
                or the action does not match the one the table names.
            DocumentValidationError: the selected quantities leave no line.
        """
        overrides = overrides or ConversionOverrides()
        target_type = DocumentType(target_type)
        domain = source.domain

        # Re-read: the caller's copy may be stale or the source deleted.
        source = self._store.get(source.id)

        rule = conversion_rule(domain, source.type, target_type)
        if rule is None:
            raise InvalidConversionError(
                source.type.value, target_type.value,
                f"{target_type.value} is not a successor of {source.type.value} in {domain.value}",
            )
        if rule.action != action:
            raise InvalidConversionError(
                source.type.value, target_type.value,
                f"this conversion is performed by '{rule.action}'",
            )
        if source.status not in rule.source_statuses:
            raise InvalidConversionError(
                source.type.value, target_type.value,
                f"{source.number} is {source.status.value}; expected one of "
                f"{sorted(s.value for s in rule.source_statuses)}",
            )

        items = self._converted_items(domain, target_type, source.items, overrides)
        if not items:
            raise DocumentValidationError("No items selected for conversion", field="items")

        if overrides.partner_id is not None:
            partner_id, partner_name = self._partner_snapshot(domain, target_type, overrides.partner_id)
        elif source.partner_id:
            partner_id, partner_name = source.partner_id, source.partner_name
        else:
            # e.g. an internal purchase request has no supplier yet
            partner_id, partner_name = self._partner_snapshot(domain, target_type, None)

        if overrides.currency is not None or overrides.exchange_rate is not None:
            currency, exchange_rate = self._resolve_currency(
                overrides.currency or source.currency,
                overrides.exchange_rate if overrides.exchange_rate is not None else source.exchange_rate,
            )
        else:
            currency, exchange_rate = source.currency, source.exchange_rate

        def pick(name: str, default: Any) -> Any:
            value = getattr(overrides, name)
            return default if value is None else value

        notes = overrides.notes
        if notes is None:
            notes = (
                f"Converted from {source.number}"
                if self._documents_config.annotate_conversions
                else source.notes
            )

        document = self._create(
            domain,
            target_type,
            partner_id=partner_id,
            partner_name=partner_name,
            items=items,
            currency=currency,
            exchange_rate=exchange_rate,
            warehouse_id=pick("warehouse_id", source.warehouse_id),
            doc_date=pick("date", self._clock.today()),
            discount_value=pick("discount_value", self._carried_discount(source, items)),
            discount_type=pick("discount_type", source.discount_type),
            tax_rate=pick("tax_rate", source.tax_rate),
            fiscal_stamp=overrides.fiscal_stamp,
            additional_costs=pick(
                "additional_costs",
                self._value_share(source, items, getattr(source, "additional_costs", _ZERO)),
            ),
            linked_document_id=source.id,
            extra={
                "due_date": overrides.due_date,
                "deadline": overrides.deadline,
                "requester_name": getattr(source, "requester_name", ""),
                "department": getattr(source, "department", ""),
                "notes": notes,
                "payment_terms": pick("payment_terms", source.payment_terms),
                "payment_method": pick("payment_method", source.payment_method),
                "stock_action": stock_action,
                "return_reason": return_reason,
            },
        )

        logger.info("document_converted", extra={
            "source_id": str(source.id),
            "source_number": source.number,
            "target_number": document.number,
            "source_type": source.type.value,
            "target_type": target_type.value,
            "conversion_action": action,
            "line_count": len(document.items),
        })
        return document

    @staticmethod
    def _value_share(source: Document, items: Sequence[LineItem], amount: Decimal) -> Decimal:
        """
        Part of a flat ``amount`` that follows ``items`` out of ``source``.

        Split by source value (source price * converted quantity over the
        source subtotal), so partial successors of one source add back up.
        """
        if amount <= _ZERO or source.subtotal <= _ZERO:
            return amount
        source_prices = {item.item_id: item.price for item in source.items}
        converted_value = sum(
            (source_prices.get(item.item_id, item.price) * item.quantity for item in items),
            _ZERO,
        )
        if converted_value >= source.subtotal:
            return amount
        return quantize_amount(amount * converted_value / source.subtotal, source.currency)

    def _carried_discount(self, source: Document, items: Sequence[LineItem]) -> Decimal:
        if DiscountType(source.discount_type) is DiscountType.PERCENT:
            return source.discount_value
        return self._value_share(source, items, source.discount_value)

    def _converted_items(
        self,
        domain: DocumentDomain,
        target_type: DocumentType,
        source_items: Sequence[LineItem],
        overrides: ConversionOverrides,
    ) -> list[LineItem]:
        items = []
        for item in source_items:
            quantity = item.quantity
            if overrides.quantities is not None:
                if item.item_id not in overrides.quantities:
                    continue
                quantity = _clamp(overrides.quantities[item.item_id], item.quantity)
            if quantity <= _ZERO:
                continue
            price = item.price
            if overrides.prices is not None and item.item_id in overrides.prices:
                price = _non_negative(overrides.prices[item.item_id])
            items.append(self._line(domain, target_type, item.item_id, item.description, quantity, price))
        return items

    # =========================================================================
    # Shared creation path
    # =========================================================================

    def _create(
        self,
        domain: DocumentDomain,
        doc_type: DocumentType,
        *,
        partner_id: str,
        partner_name: str,
        items: Sequence[LineItem],
        currency: str,
        exchange_rate: Decimal,
        warehouse_id: str | None,
        doc_date: date,
        discount_value: Decimal,
        discount_type: DiscountType,
        tax_rate: Decimal | None,
        fiscal_stamp: Decimal | None,
        additional_costs: Decimal,
        linked_document_id: UUID | None = None,
        extra: Mapping[str, Any] | None = None,
    ) -> Document:
        extra = dict(extra or {})
        if doc_type not in DOMAIN_TYPES[domain]:
            raise DocumentValidationError(
                f"{domain.value} documents have no type {doc_type.value!r}", field="type"
            )
        if not items:
            raise DocumentValidationError("A document needs at least one item", field="items")
        seen: set[str] = set()
        for item in items:
            if item.item_id in seen:
                raise DocumentValidationError(
                    f"Item {item.item_id} appears more than once", field="items"
                )
            seen.add(item.item_id)

        status = initial_status(domain, doc_type)
        stock_action = extra.pop("stock_action", None)
        return_reason = extra.pop("return_reason", None)

        # Fails before anything is written.
        self._recorder.validate(
            domain,
            doc_type,
            status,
            items,
            warehouse_id,
            stock_action=stock_action,
            linked_document_id=linked_document_id,
        )

        if tax_rate is None:
            tax_rate = self._config.default_tax_rate
        if fiscal_stamp is None:
            fiscal_stamp = (
                self._config.fiscal_stamp
                if self._documents_config.carries_fiscal_stamp(domain, doc_type)
                else _ZERO
            )
        if domain is DocumentDomain.SALES:
            additional_costs = _ZERO

        totals = self._pricing.price(
            items,
            discount_value=discount_value,
            discount_type=discount_type,
            tax_rate=tax_rate,
            fiscal_stamp=fiscal_stamp,
            additional_costs=additional_costs,
            currency=currency,
        )

        fields: dict[str, Any] = {
            "status": status,
            "date": doc_date,
            "partner_id": partner_id,
            "partner_name": partner_name,
            "currency": currency,
            "exchange_rate": exchange_rate,
            "subtotal": totals.subtotal,
            "discount": totals.discount,
            "discount_value": _non_negative(discount_value),
            "discount_type": DiscountType(discount_type),
            "tax_rate": _non_negative(tax_rate),
            "fiscal_stamp": totals.fiscal_stamp,
            "amount": totals.total,
            "due_date": extra.pop("due_date", None),
            "warehouse_id": warehouse_id,
            "linked_document_id": linked_document_id,
            "return_reason": ReturnReason(return_reason) if return_reason else None,
            "stock_action": StockAction(stock_action) if stock_action else None,
            "notes": extra.pop("notes", "") or "",
            "payment_terms": extra.pop("payment_terms", "") or "",
            "payment_method": extra.pop("payment_method", "") or "",
        }
        if domain is DocumentDomain.PURCHASE:
            fields["additional_costs"] = totals.additional_costs
            deadline = extra.pop("deadline", None)
            if deadline is None and doc_type is DocumentType.RFQ:
                deadline = doc_date + timedelta(days=self._documents_config.rfq_response_days)
            fields["deadline"] = deadline
            fields["requester_name"] = extra.pop("requester_name", "") or ""
            fields["department"] = extra.pop("department", "") or ""

        document = self._store.create(domain, doc_type, fields, items)
        self._recorder.apply(document)
        self._record_activity(document)
        return document

    def _record_activity(self, document: Document) -> None:
        sign = PARTNER_ACTIVITY.get((document.domain, document.type))
        if sign is None:
            return
        self._activity.record_partner_activity(
            document.partner_id,
            PARTNER_KIND[document.domain],
            document.base_amount * sign,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _line(
        self,
        domain: DocumentDomain,
        doc_type: DocumentType,
        item_id: str,
        description: str,
        quantity: Decimal,
        price: Decimal,
    ) -> LineItem:
        tracks_fulfillment = domain is DocumentDomain.PURCHASE and doc_type is DocumentType.ORDER
        return LineItem(
            item_id=item_id,
            description=description,
            quantity=quantity,
            price=price,
            fulfilled_quantity=_ZERO if tracks_fulfillment else None,
        )

    def _partner_snapshot(
        self,
        domain: DocumentDomain,
        doc_type: DocumentType,
        partner_id: str | None,
    ) -> tuple[str, str]:
        """(code, display name) of the partner, copied into the document."""
        kind = PARTNER_KIND[domain]
        if not partner_id:
            if (domain, doc_type) in PARTNERLESS_TYPES:
                return "", ""
            raise DocumentValidationError(f"A {kind.value} is required", field="partner_id")
        partner = require_partner(self._catalog, partner_id, kind)
        return partner.code, partner.display_name

    def _resolve_currency(
        self,
        currency: str | None,
        exchange_rate: Decimal | None,
    ) -> tuple[str, Decimal]:
        currency = CurrencyRegistry.validate(currency or self._config.base_currency)
        return currency, normalize_exchange_rate(currency, self._config.base_currency, exchange_rate)
