"""
Pytest fixtures for the commerce document engine test suite.

Provides:
- An in-memory SQLite engine with every table created, one per test
- A session bound to it
- Deterministic clock and id generator
- A seeded catalog (products, a client, a supplier, two warehouses)
- DocumentService / InventoryService wired over that session

Environment Variables:
- DATABASE_URL: run against another database (e.g. PostgreSQL) instead of
  the in-memory default.
"""

import json
import logging
import os
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from io import StringIO

import pytest
from sqlalchemy.orm import Session

from commerce_config import get_active_config
from commerce_kernel.db.engine import build_engine, create_tables, drop_tables
from commerce_kernel.domain.clock import DeterministicClock
from commerce_kernel.domain.identity import SequentialIdGenerator
from commerce_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from commerce_modules.catalog import (
    CatalogService,
    Partner,
    PartnerKind,
    Product,
    SqlCatalogRepository,
    Warehouse,
)
from commerce_modules.documents.models import DocumentDomain, DocumentDraft, DocumentType, DraftLine
from commerce_modules.documents.service import DocumentService
from commerce_modules.inventory import InventoryService

DEFAULT_TEST_URL = "sqlite://"

CLIENT_CODE = "CLI-001"
SUPPLIER_CODE = "SUP-001"
MAIN_WAREHOUSE = "WH-MAIN"
EAST_WAREHOUSE = "WH-EAST"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture commerce_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, document_service):
            document_service.submit_draft(...)
            assert any(r["message"] == "submit_draft_committed" for r in captured_logs())
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("commerce_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine():
    """A fresh database per test: tables created up front, dropped after."""
    engine = build_engine(os.environ.get("DATABASE_URL", DEFAULT_TEST_URL))
    create_tables(engine)
    yield engine
    drop_tables(engine)
    engine.dispose()


@pytest.fixture
def session(engine):
    session = Session(bind=engine)
    yield session
    session.rollback()
    session.close()


# =============================================================================
# Determinism
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(datetime(2024, 3, 1, 9, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def id_generator():
    return SequentialIdGenerator()


# =============================================================================
# Configuration
# =============================================================================


@pytest.fixture
def config():
    """Shipped defaults: USD, no fiscal stamp, 0% default tax, negative stock allowed."""
    return get_active_config()


@pytest.fixture
def strict_stock_config(config):
    return replace(config, allow_negative_stock=False)


@pytest.fixture
def stamped_config(config):
    return replace(config, enable_fiscal_stamp=True, fiscal_stamp_value=Decimal("1.000"))


# =============================================================================
# Catalog
# =============================================================================


@pytest.fixture
def catalog(session):
    """Seeded catalog: two products, one client, one supplier, two warehouses."""
    service = CatalogService(session)
    service.add_product(Product(
        code="P-001", name="Widget", sku="WID-1", category="parts",
        price=Decimal("10"), cost=Decimal("5"),
    ))
    service.add_product(Product(
        code="P-002", name="Gadget", sku="GAD-1", category="parts",
        price=Decimal("25"), cost=Decimal("12"),
    ))
    service.add_partner(Partner(
        code=CLIENT_CODE, kind=PartnerKind.CLIENT, name="Alex Doe", company="Acme Retail",
    ))
    service.add_partner(Partner(
        code=SUPPLIER_CODE, kind=PartnerKind.SUPPLIER, name="Sam Roe", company="Parts Co",
    ))
    service.add_warehouse(Warehouse(code=MAIN_WAREHOUSE, name="Main", is_default=True))
    service.add_warehouse(Warehouse(code=EAST_WAREHOUSE, name="East"))
    return SqlCatalogRepository(session)


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def document_service(session, config, catalog, deterministic_clock, id_generator):
    return DocumentService(
        session,
        config,
        catalog=catalog,
        clock=deterministic_clock,
        id_generator=id_generator,
    )


@pytest.fixture
def inventory_service(session, config, catalog, deterministic_clock):
    return InventoryService(session, config, catalog=catalog, clock=deterministic_clock)


# =============================================================================
# Draft factory
# =============================================================================


@pytest.fixture
def make_draft():
    """
    Build a DocumentDraft from ``(item_id, quantity, price)`` tuples.

    Partner defaults to the seeded client (sales) or supplier (purchase),
    warehouse to the main warehouse.  A ``None`` price takes the catalog
    default.

    Usage::

        draft = make_draft("purchase", "order", [("P-001", "20", "5")])
    """
    def _make(domain, doc_type, lines, **kwargs):
        domain = DocumentDomain(domain)
        kwargs.setdefault(
            "partner_id", CLIENT_CODE if domain is DocumentDomain.SALES else SUPPLIER_CODE
        )
        kwargs.setdefault("warehouse_id", MAIN_WAREHOUSE)
        return DocumentDraft(
            domain=domain,
            type=DocumentType(doc_type),
            lines=tuple(
                DraftLine(
                    item_id=item_id,
                    quantity=Decimal(quantity),
                    price=Decimal(price) if price is not None else None,
                )
                for item_id, quantity, price in lines
            ),
            **kwargs,
        )

    return _make
