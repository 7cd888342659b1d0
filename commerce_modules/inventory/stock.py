"""
StockMovementRecorder -- warehouse stock deltas caused by documents.

Responsibility:
    Decide whether a document moves stock (``rules.STOCK_RULES``), turn its
    catalog lines into signed per-warehouse deltas, and post them: stock row,
    product total, product stock status, product cost (purchase receipts),
    and one ledger row per delta.

Architecture position:
    Modules > Inventory.  Depends on the document store (conversion chain
    lookups), the catalog repository, the costing engine and configuration.

Invariants enforced:
    - Every delta is scoped to one warehouse.  A stock-affecting document
      with catalog lines and no resolvable warehouse fails in ``validate``
      before anything is written.
    - Lines whose item id is not a catalog product are ignored.
    - Deliveries and invoices of one conversion tree are netted per product
      (``net_quantities``), so the same goods never move twice and a
      partial delivery never hides the rest of an invoice.
    - (product, warehouse) rows are locked in sorted key order, then
      products in sorted code order, so two postings never deadlock.
      The version counter on the stock row turns a lost update into
      ``OptimisticLockError``.
    - With ``allow_negative_stock`` off, a decrement below zero raises
      ``InsufficientStockError`` and nothing is posted.
    - Purchase increments revalue the product at weighted average cost in
      base currency: ``unit_cost = price * exchange_rate``, with the
      document's additional costs apportioned by line value.

Non-goals:
    - Does NOT commit.  Does NOT reverse movements when documents are deleted.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from commerce_config.schema import CommerceConfig
from commerce_engines.costing import CostingEngine
from commerce_kernel.domain.clock import Clock, SystemClock
from commerce_kernel.exceptions import (
    DocumentValidationError,
    InsufficientStockError,
    OptimisticLockError,
    ProductNotFoundError,
)
from commerce_kernel.logging_config import get_logger
from commerce_modules.catalog.models import StockStatus
from commerce_modules.catalog.orm import ProductModel
from commerce_modules.catalog.repository import CatalogRepository, require_warehouse
from commerce_modules.documents.models import (
    Document,
    DocumentDomain,
    DocumentStatus,
    DocumentType,
    LineItem,
    StockAction,
)
from commerce_modules.documents.store import DocumentStore
from commerce_modules.inventory.models import StockDelta, StockMovement
from commerce_modules.inventory.orm import StockMovementModel, WarehouseStockModel
from commerce_modules.inventory.rules import StockEffect, StockRule, stock_rule_for

logger = get_logger("modules.inventory.stock")

_ZERO = Decimal("0")


class StockMovementRecorder:
    """
    Posts document-driven stock movements.

    Usage:
        recorder = StockMovementRecorder(session, store, catalog, config, clock)
        recorder.validate(...)          # before the document is written
        movements = recorder.apply(document)
    """

    def __init__(
        self,
        session: Session,
        store: DocumentStore,
        catalog: CatalogRepository,
        config: CommerceConfig,
        clock: Clock | None = None,
        costing: CostingEngine | None = None,
    ):
        self._session = session
        self._store = store
        self._catalog = catalog
        self._config = config
        self._clock = clock or SystemClock()
        self._costing = costing or CostingEngine()

    # =========================================================================
    # Rule evaluation
    # =========================================================================

    def conversion_tree(self, document_id: UUID) -> list[Document]:
        """Every document reachable from the root of ``document_id``'s chain."""
        start = self._store.find_by_id(document_id)
        if start is None:
            return []
        ancestors = list(self._store.ancestors(start))
        root = ancestors[-1] if ancestors else start

        tree: list[Document] = []
        seen: set[UUID] = set()
        frontier = [root]
        while frontier:
            document = frontier.pop()
            if document.id in seen:
                continue
            seen.add(document.id)
            tree.append(document)
            frontier.extend(self._store.find_linked(document.id))
        return tree

    def net_quantities(
        self,
        rule: StockRule,
        items: Sequence[LineItem],
        linked_document_id: UUID | None,
        exclude_id: UUID | None = None,
    ) -> dict[str, Decimal]:
        """
        Quantity per catalog line that ``rule`` still has to move.

        For a netted pair (delivery / invoice) the goods of one product move
        once per conversion tree: a document posts
        ``max(same + qty, other) - max(same, other)``, where ``same`` and
        ``other`` are the quantities already carried by the tree's documents
        of its own type and of the paired type.
        """
        requested = {item.item_id: item.quantity for item in self.stock_lines(items)}
        if rule.nets_against is None or linked_document_id is None:
            return requested

        carried: dict[DocumentType, dict[str, Decimal]] = {rule.doc_type: {}, rule.nets_against: {}}
        for document in self.conversion_tree(linked_document_id):
            if document.id == exclude_id or document.domain != rule.domain:
                continue
            totals = carried.get(DocumentType(document.type))
            if totals is None:
                continue
            for item in document.items:
                totals[item.item_id] = totals.get(item.item_id, _ZERO) + item.quantity

        net: dict[str, Decimal] = {}
        for item_id, quantity in requested.items():
            same = carried[rule.doc_type].get(item_id, _ZERO)
            other = carried[rule.nets_against].get(item_id, _ZERO)
            net[item_id] = max(same + quantity, other) - max(same, other)

        if net != requested:
            logger.debug("stock_quantities_netted", extra={
                "domain": rule.domain.value,
                "document_type": rule.doc_type.value,
                "nets_against": rule.nets_against.value,
                "requested": {k: str(v) for k, v in requested.items()},
                "net": {k: str(v) for k, v in net.items()},
            })
        return net

    def stock_lines(self, items: Sequence[LineItem]) -> list[LineItem]:
        """Lines that refer to catalog products."""
        return [item for item in items if self._catalog.find_product(item.item_id) is not None]

    def validate(
        self,
        domain: DocumentDomain,
        doc_type: DocumentType,
        status: DocumentStatus,
        items: Sequence[LineItem],
        warehouse_id: str | None,
        stock_action: StockAction | None = None,
        linked_document_id: UUID | None = None,
        exclude_id: UUID | None = None,
    ) -> StockRule | None:
        """
        Check a document about to be written.  Returns the rule that will
        fire, or None when the document will not move stock (no rule, no
        catalog lines, or everything already moved by its paired documents).

        Raises:
            DocumentValidationError: stock would move but no warehouse is given.
            WarehouseNotFoundError: the warehouse does not exist.
        """
        rule = stock_rule_for(domain, doc_type, status, stock_action)
        if rule is None:
            return None
        net = self.net_quantities(rule, items, linked_document_id, exclude_id)
        if not any(quantity > _ZERO for quantity in net.values()):
            return None
        if not warehouse_id:
            raise DocumentValidationError(
                "A warehouse is required for documents that move stock",
                field="warehouse_id",
            )
        require_warehouse(self._catalog, warehouse_id)
        return rule

    # =========================================================================
    # Planning and posting
    # =========================================================================

    def plan(self, document: Document) -> tuple[StockDelta, ...]:
        """Deltas ``document`` produces; empty when it does not move stock."""
        rule = self.validate(
            document.domain,
            document.type,
            document.status,
            document.items,
            document.warehouse_id,
            stock_action=document.stock_action,
            linked_document_id=document.linked_document_id,
            exclude_id=document.id,
        )
        if rule is None:
            return ()

        net = self.net_quantities(rule, document.items, document.linked_document_id, document.id)
        extra_shares: dict[str, Decimal] = {}
        if rule.revalues_cost:
            additional = getattr(document, "additional_costs", _ZERO) * document.exchange_rate
            extra_shares = self._costing.apportion(
                [(item.item_id, item.line_total) for item in document.items],
                additional,
            )

        deltas = []
        for item in self.stock_lines(document.items):
            quantity = net.get(item.item_id, _ZERO)
            if quantity <= _ZERO:
                continue
            if rule.revalues_cost:
                unit_cost = item.price * document.exchange_rate
                extra = extra_shares.get(item.item_id, _ZERO) * quantity / item.quantity
            else:
                unit_cost, extra = None, _ZERO
            deltas.append(StockDelta(
                product_code=item.item_id,
                warehouse_code=document.warehouse_id,
                quantity=quantity * rule.effect.value,
                movement_type=rule.movement_type,
                unit_cost=unit_cost,
                extra_cost=extra,
            ))
        return tuple(deltas)

    def apply(self, document: Document) -> tuple[StockMovement, ...]:
        """Post the stock movements of ``document``.  Idempotence is the caller's concern."""
        deltas = self.plan(document)
        if not deltas:
            return ()
        movements = self.post(
            deltas,
            reference=document.number,
            document_id=document.id,
            movement_date=document.date,
        )
        logger.info("stock_document_applied", extra={
            "document_id": str(document.id),
            "document_number": document.number,
            "movement_count": len(movements),
            "direction": StockEffect(1 if deltas[0].quantity > 0 else -1).name.lower(),
        })
        return movements

    def post(
        self,
        deltas: Sequence[StockDelta],
        reference: str,
        document_id: UUID | None = None,
        movement_date: date | None = None,
        note: str = "",
        allow_negative: bool | None = None,
    ) -> tuple[StockMovement, ...]:
        """
        Lock, check and write ``deltas`` as one unit.

        ``allow_negative`` overrides the configured negative-stock policy.

        Raises:
            ProductNotFoundError: a delta names an unknown product.
            InsufficientStockError: negative stock is disabled and a row would
                go below zero.
            OptimisticLockError: a stock row changed underneath this posting.
        """
        if not deltas:
            return ()
        movement_date = movement_date or self._clock.today()
        if allow_negative is None:
            allow_negative = self._config.allow_negative_stock
        rows = self._lock_rows({(d.warehouse_code, d.product_code) for d in deltas})
        products = self._lock_products({d.product_code for d in deltas})

        models: list[StockMovementModel] = []
        for delta in deltas:
            row = rows[(delta.warehouse_code, delta.product_code)]
            product = products[delta.product_code]

            if (
                delta.quantity < _ZERO
                and not allow_negative
                and row.quantity + delta.quantity < _ZERO
            ):
                raise InsufficientStockError(
                    delta.product_code,
                    delta.warehouse_code,
                    str(row.quantity),
                    str(-delta.quantity),
                )

            cost_before = product.cost
            if delta.revalues_cost:
                product.cost = self._costing.weighted_average_cost(
                    on_hand=product.stock,
                    current_cost=product.cost,
                    incoming_qty=delta.quantity,
                    unit_cost=delta.unit_cost,
                    extra_cost=delta.extra_cost,
                )
            row.quantity = row.quantity + delta.quantity
            product.stock = product.stock + delta.quantity
            product.status = StockStatus.for_quantity(
                product.stock, self._config.low_stock_threshold
            ).value

            model = StockMovementModel(
                product_code=delta.product_code,
                warehouse_code=delta.warehouse_code,
                quantity=delta.quantity,
                movement_type=delta.movement_type.value,
                reference=reference,
                movement_date=movement_date,
                document_id=document_id,
                unit_cost=delta.unit_cost if delta.revalues_cost else cost_before,
                cost_before=cost_before,
                cost_after=product.cost,
                quantity_after=row.quantity,
                note=note,
            )
            self._session.add(model)
            models.append(model)

        try:
            self._session.flush()
        except StaleDataError as exc:
            keys = ", ".join(f"{p}@{w}" for w, p in sorted(rows))
            raise OptimisticLockError("WarehouseStock", keys) from exc

        for model in models:
            logger.info("stock_movement_posted", extra={
                "reference": reference,
                "product_code": model.product_code,
                "warehouse_code": model.warehouse_code,
                "quantity": str(model.quantity),
                "quantity_after": str(model.quantity_after),
                "movement_type": model.movement_type,
                "cost_before": str(model.cost_before),
                "cost_after": str(model.cost_after),
            })
        return tuple(model.to_dto() for model in models)

    def _lock_rows(self, keys: set[tuple[str, str]]) -> dict[tuple[str, str], WarehouseStockModel]:
        rows: dict[tuple[str, str], WarehouseStockModel] = {}
        for warehouse_code, product_code in sorted(keys):
            row = self._session.execute(
                select(WarehouseStockModel)
                .where(
                    WarehouseStockModel.product_code == product_code,
                    WarehouseStockModel.warehouse_code == warehouse_code,
                )
                .with_for_update()
            ).scalar_one_or_none()
            if row is None:
                row = WarehouseStockModel(
                    product_code=product_code,
                    warehouse_code=warehouse_code,
                    quantity=_ZERO,
                )
                self._session.add(row)
            rows[(warehouse_code, product_code)] = row
        return rows

    def _lock_products(self, codes: set[str]) -> dict[str, ProductModel]:
        products: dict[str, ProductModel] = {}
        for code in sorted(codes):
            product = self._session.execute(
                select(ProductModel).where(ProductModel.code == code).with_for_update()
            ).scalar_one_or_none()
            if product is None:
                raise ProductNotFoundError(code)
            products[code] = product
        return products

    # =========================================================================
    # Reads
    # =========================================================================

    def stock_level(self, product_code: str, warehouse_code: str) -> Decimal:
        quantity = self._session.execute(
            select(WarehouseStockModel.quantity).where(
                WarehouseStockModel.product_code == product_code,
                WarehouseStockModel.warehouse_code == warehouse_code,
            )
        ).scalar_one_or_none()
        return quantity if quantity is not None else _ZERO

    def movements(
        self,
        product_code: str | None = None,
        warehouse_code: str | None = None,
        document_id: UUID | None = None,
    ) -> list[StockMovement]:
        stmt = select(StockMovementModel)
        if product_code is not None:
            stmt = stmt.where(StockMovementModel.product_code == product_code)
        if warehouse_code is not None:
            stmt = stmt.where(StockMovementModel.warehouse_code == warehouse_code)
        if document_id is not None:
            stmt = stmt.where(StockMovementModel.document_id == document_id)
        stmt = stmt.order_by(
            StockMovementModel.movement_date,
            StockMovementModel.reference,
            StockMovementModel.product_code,
        )
        return [model.to_dto() for model in self._session.scalars(stmt)]

    def movement_count(self, document_id: UUID) -> int:
        return self._session.execute(
            select(func.count(StockMovementModel.id)).where(
                StockMovementModel.document_id == document_id
            )
        ).scalar_one()
