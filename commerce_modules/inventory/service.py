"""
Inventory Module Service (``commerce_modules.inventory.service``).

Responsibility
--------------
Stock operations that are not caused by a commercial document: transfers
between warehouses, manual adjustments (opening stock, count corrections),
and stock level / movement history queries.

Architecture position
---------------------
**Modules layer**.  Posts through the same ``StockMovementRecorder`` that
documents use, so locking, versioning, costing and the ledger behave the
same for every stock change.

Invariants enforced
-------------------
* Each public write method owns the transaction boundary (``commit`` on
  success, ``rollback`` on any exception).
* A transfer never takes its source warehouse below zero, whatever the
  configured negative-stock policy.
* Transfers (``TRF-{seq}``) and adjustments (``ADJ-{seq}``) are numbered
  from durable counters.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from commerce_config.schema import CommerceConfig
from commerce_kernel.domain.clock import Clock, SystemClock
from commerce_kernel.domain.identity import IdGenerator
from commerce_kernel.exceptions import InvalidStockOperationError
from commerce_kernel.logging_config import LogContext, get_logger
from commerce_kernel.services.sequence_service import SequenceService
from commerce_modules.catalog.repository import (
    CatalogRepository,
    SqlCatalogRepository,
    require_product,
    require_warehouse,
)
from commerce_modules.documents.store import DocumentStore
from commerce_modules.inventory.models import (
    MovementType,
    StockDelta,
    StockLevel,
    StockMovement,
    StockTransfer,
)
from commerce_modules.inventory.orm import StockTransferModel, WarehouseStockModel
from commerce_modules.inventory.stock import StockMovementRecorder

logger = get_logger("modules.inventory.service")

_ZERO = Decimal("0")

TRANSFER_SEQUENCE = "inventory.transfer"
TRANSFER_PREFIX = "TRF"
ADJUSTMENT_SEQUENCE = "inventory.adjustment"
ADJUSTMENT_PREFIX = "ADJ"


class InventoryService:
    """
    Transfers, adjustments and stock queries.

    Usage::

        service = InventoryService(session, config, clock=clock)
        service.adjust_stock("P-001", "WH-MAIN", Decimal("50"), unit_cost=Decimal("4"))
        transfer = service.transfer_stock("P-001", "WH-MAIN", "WH-EAST", Decimal("10"))
    """

    def __init__(
        self,
        session: Session,
        config: CommerceConfig,
        catalog: CatalogRepository | None = None,
        clock: Clock | None = None,
        id_generator: IdGenerator | None = None,
    ):
        self._session = session
        self._config = config
        self._clock = clock or SystemClock()
        self._catalog = catalog or SqlCatalogRepository(session)
        self._sequences = SequenceService(session)
        self._ids = id_generator
        self._recorder = StockMovementRecorder(
            session,
            DocumentStore(session, config.numbering, id_generator),
            self._catalog,
            config,
            clock=self._clock,
        )

    # =========================================================================
    # Writes
    # =========================================================================

    def transfer_stock(
        self,
        product_code: str,
        from_warehouse: str,
        to_warehouse: str,
        quantity: Decimal,
        transfer_date: date | None = None,
        note: str = "",
    ) -> StockTransfer:
        """
        Move ``quantity`` of a product from one warehouse to another.

        Raises:
            InvalidStockOperationError: non-positive quantity or same warehouse.
            ProductNotFoundError / WarehouseNotFoundError: unknown codes.
            InsufficientStockError: the source holds less than ``quantity``.
        """
        with LogContext.bind(action="transfer_stock", product_code=product_code):
            try:
                if quantity <= _ZERO:
                    raise InvalidStockOperationError(
                        f"Transfer quantity must be positive, got {quantity}"
                    )
                if from_warehouse == to_warehouse:
                    raise InvalidStockOperationError(
                        "Transfer source and destination must be different warehouses"
                    )
                require_product(self._catalog, product_code)
                require_warehouse(self._catalog, from_warehouse)
                require_warehouse(self._catalog, to_warehouse)

                transfer_date = transfer_date or self._clock.today()
                seq = self._sequences.next_value(TRANSFER_SEQUENCE)
                reference = f"{TRANSFER_PREFIX}-{seq:0{self._config.numbering.width}d}"

                logger.info("inventory_transfer_started", extra={
                    "reference": reference,
                    "from_warehouse": from_warehouse,
                    "to_warehouse": to_warehouse,
                    "quantity": str(quantity),
                })

                self._recorder.post(
                    [
                        StockDelta(product_code, from_warehouse, -quantity, MovementType.TRANSFER_OUT),
                        StockDelta(product_code, to_warehouse, quantity, MovementType.TRANSFER_IN),
                    ],
                    reference=reference,
                    movement_date=transfer_date,
                    note=note,
                    allow_negative=False,
                )

                model = StockTransferModel(
                    reference=reference,
                    product_code=product_code,
                    from_warehouse=from_warehouse,
                    to_warehouse=to_warehouse,
                    quantity=quantity,
                    transfer_date=transfer_date,
                    note=note,
                )
                if self._ids is not None:
                    model.id = self._ids.next_id()
                self._session.add(model)
                self._session.commit()

                logger.info("inventory_transfer_committed", extra={"reference": reference})
                return model.to_dto()

            except Exception:
                self._session.rollback()
                logger.warning("inventory_transfer_rolled_back", extra={
                    "from_warehouse": from_warehouse,
                    "to_warehouse": to_warehouse,
                })
                raise

    def adjust_stock(
        self,
        product_code: str,
        warehouse_code: str,
        quantity: Decimal,
        unit_cost: Decimal | None = None,
        note: str = "",
    ) -> StockMovement:
        """
        Post a manual signed adjustment.  A positive adjustment with a
        ``unit_cost`` (base currency) revalues the product like a receipt.

        Raises:
            InvalidStockOperationError: ``quantity`` is zero.
            InsufficientStockError: negative stock is disabled and the
                adjustment would go below zero.
        """
        with LogContext.bind(
            action="adjust_stock", product_code=product_code, warehouse_code=warehouse_code,
        ):
            try:
                if quantity == _ZERO:
                    raise InvalidStockOperationError("Adjustment quantity must not be zero")
                require_product(self._catalog, product_code)
                require_warehouse(self._catalog, warehouse_code)
                seq = self._sequences.next_value(ADJUSTMENT_SEQUENCE)
                reference = f"{ADJUSTMENT_PREFIX}-{seq:0{self._config.numbering.width}d}"

                (movement,) = self._recorder.post(
                    [StockDelta(
                        product_code,
                        warehouse_code,
                        quantity,
                        MovementType.ADJUSTMENT,
                        unit_cost=unit_cost,
                    )],
                    reference=reference,
                    note=note,
                )
                self._session.commit()
                logger.info("inventory_adjustment_committed", extra={
                    "reference": reference,
                    "quantity": str(quantity),
                })
                return movement

            except Exception:
                self._session.rollback()
                logger.warning("inventory_adjustment_rolled_back", extra={"quantity": str(quantity)})
                raise

    # =========================================================================
    # Queries
    # =========================================================================

    def stock_level(self, product_code: str, warehouse_code: str) -> Decimal:
        """Quantity held in one warehouse; zero if the product was never stocked there."""
        return self._recorder.stock_level(product_code, warehouse_code)

    def stock_levels(self, product_code: str) -> list[StockLevel]:
        """Per-warehouse stock of a product, by warehouse code."""
        rows = self._session.scalars(
            select(WarehouseStockModel)
            .where(WarehouseStockModel.product_code == product_code)
            .order_by(WarehouseStockModel.warehouse_code)
        )
        return [row.to_dto() for row in rows]

    def movements(
        self,
        product_code: str | None = None,
        warehouse_code: str | None = None,
    ) -> list[StockMovement]:
        """Ledger rows, oldest first."""
        return self._recorder.movements(product_code=product_code, warehouse_code=warehouse_code)

    def transfers(self, product_code: str | None = None) -> list[StockTransfer]:
        stmt = select(StockTransferModel)
        if product_code is not None:
            stmt = stmt.where(StockTransferModel.product_code == product_code)
        stmt = stmt.order_by(StockTransferModel.transfer_date, StockTransferModel.reference)
        return [model.to_dto() for model in self._session.scalars(stmt)]
