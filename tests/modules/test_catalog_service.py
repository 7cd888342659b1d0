"""Tests for catalog registration, lookups and partner activity counters."""

from decimal import Decimal

import pytest

from commerce_kernel.exceptions import PartnerNotFoundError, ProductNotFoundError, WarehouseNotFoundError
from commerce_modules.catalog import (
    CatalogRepository,
    CatalogService,
    PartnerKind,
    StockStatus,
    require_partner,
    require_product,
    require_warehouse,
)


class TestLookups:

    def test_repository_satisfies_protocol(self, catalog):
        assert isinstance(catalog, CatalogRepository)

    def test_find_product(self, catalog):
        product = catalog.find_product("P-002")

        assert product.name == "Gadget"
        assert product.price == Decimal("25")
        assert product.status is StockStatus.OUT_OF_STOCK
        assert catalog.find_product("P-404") is None

    def test_partners_are_scoped_by_kind(self, catalog):
        client = catalog.find_partner("CLI-001", PartnerKind.CLIENT)

        assert client.display_name == "Acme Retail"
        assert catalog.find_partner("CLI-001", PartnerKind.SUPPLIER) is None

    def test_default_warehouse(self, catalog):
        assert catalog.default_warehouse().code == "WH-MAIN"

    def test_require_helpers(self, catalog):
        assert require_product(catalog, "P-001").code == "P-001"
        assert require_warehouse(catalog, "WH-EAST").name == "East"
        with pytest.raises(ProductNotFoundError):
            require_product(catalog, "P-404")
        with pytest.raises(PartnerNotFoundError) as exc_info:
            require_partner(catalog, "SUP-001", PartnerKind.CLIENT)
        assert exc_info.value.partner_code == "SUP-001"
        with pytest.raises(WarehouseNotFoundError):
            require_warehouse(catalog, "WH-404")


class TestPartnerActivity:

    def test_client_counter(self, session, catalog):
        service = CatalogService(session)

        service.record_partner_activity("CLI-001", PartnerKind.CLIENT, Decimal("120"))
        updated = service.record_partner_activity("CLI-001", PartnerKind.CLIENT, Decimal("-20"))

        assert updated.total_spent == Decimal("100")
        assert updated.total_purchased == Decimal("0")

    def test_counter_floors_at_zero(self, session, catalog):
        service = CatalogService(session)

        updated = service.record_partner_activity("SUP-001", PartnerKind.SUPPLIER, Decimal("-5"))

        assert updated.total_purchased == Decimal("0")

    def test_unknown_partner(self, session, catalog):
        with pytest.raises(PartnerNotFoundError):
            CatalogService(session).record_partner_activity("CLI-404", PartnerKind.CLIENT, Decimal("1"))
