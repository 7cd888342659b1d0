"""
Tests for the Pricing Engine.

Covers:
- The fixed subtotal / discount / tax / stamp / additional-cost order
- Percent and amount discounts
- Clamping of negative inputs
- Currency rounding
- Foreign-currency unit price defaults
- RFQ quoted amounts
"""

from decimal import Decimal

import pytest

from commerce_engines.pricing import DiscountType, PricingEngine
from commerce_modules.documents.models import LineItem


def _line(item_id: str, quantity: str, price: str) -> LineItem:
    return LineItem(item_id=item_id, description=item_id, quantity=Decimal(quantity), price=Decimal(price))


class TestTotals:
    """Tests for the documented totals algorithm."""

    def setup_method(self):
        self.engine = PricingEngine()

    def test_reference_example(self):
        """1000 subtotal, 10% discount, 19% tax, stamp 1."""
        totals = self.engine.price(
            [_line("A", "10", "100")],
            discount_value=Decimal("10"),
            discount_type=DiscountType.PERCENT,
            tax_rate=Decimal("19"),
            fiscal_stamp=Decimal("1"),
        )

        assert totals.subtotal == Decimal("1000")
        assert totals.discount == Decimal("100")
        assert totals.taxable_amount == Decimal("900")
        assert totals.tax_amount == Decimal("171")
        assert totals.total == Decimal("1072")

    def test_amount_discount(self):
        totals = self.engine.price(
            [_line("A", "2", "50"), _line("B", "1", "100")],
            discount_value=Decimal("30"),
            discount_type=DiscountType.AMOUNT,
            tax_rate=Decimal("10"),
        )

        assert totals.subtotal == Decimal("200")
        assert totals.discount == Decimal("30")
        assert totals.tax_amount == Decimal("17")
        assert totals.total == Decimal("187")

    def test_discount_larger_than_subtotal_floors_taxable_at_zero(self):
        totals = self.engine.price(
            [_line("A", "1", "50")],
            discount_value=Decimal("80"),
            discount_type=DiscountType.AMOUNT,
            tax_rate=Decimal("19"),
            fiscal_stamp=Decimal("1"),
        )

        assert totals.taxable_amount == Decimal("0")
        assert totals.tax_amount == Decimal("0")
        assert totals.total == Decimal("1")

    def test_additional_costs_added_after_tax(self):
        totals = self.engine.price(
            [_line("A", "20", "5")],
            tax_rate=Decimal("10"),
            additional_costs=Decimal("15"),
        )

        assert totals.tax_amount == Decimal("10")
        assert totals.additional_costs == Decimal("15")
        assert totals.total == Decimal("125")

    def test_empty_items_total_is_stamp_only(self):
        totals = self.engine.price([], fiscal_stamp=Decimal("1"))

        assert totals.subtotal == Decimal("0")
        assert totals.total == Decimal("1")

    def test_discount_type_accepts_string_value(self):
        totals = self.engine.price(
            [_line("A", "1", "100")],
            discount_value=Decimal("5"),
            discount_type="amount",
        )

        assert totals.discount == Decimal("5")


class TestInputClamping:
    """Negative pricing inputs are clamped to zero, never rejected."""

    def setup_method(self):
        self.engine = PricingEngine()

    @pytest.mark.parametrize("field", ["discount_value", "tax_rate", "fiscal_stamp", "additional_costs"])
    def test_negative_input_treated_as_zero(self, field):
        baseline = self.engine.price([_line("A", "3", "10")])
        totals = self.engine.price([_line("A", "3", "10")], **{field: Decimal("-5")})

        assert totals.total == baseline.total == Decimal("30")

    def test_none_additional_costs_is_zero(self):
        totals = self.engine.price([_line("A", "1", "10")], additional_costs=None)

        assert totals.additional_costs == Decimal("0")


class TestCurrencyRounding:
    """Components are rounded to the document currency's precision."""

    def setup_method(self):
        self.engine = PricingEngine()

    def test_two_decimal_currency(self):
        totals = self.engine.price(
            [_line("A", "3", "3.333")],
            tax_rate=Decimal("19"),
            currency="USD",
        )

        assert totals.subtotal == Decimal("10.00")
        assert totals.tax_amount == Decimal("1.90")
        assert totals.total == Decimal("11.90")

    def test_three_decimal_currency(self):
        totals = self.engine.price(
            [_line("A", "1", "10.0005")],
            currency="TND",
        )

        assert totals.subtotal == Decimal("10.001")

    def test_zero_decimal_currency_rounds_half_up(self):
        totals = self.engine.price(
            [_line("A", "1", "100")],
            tax_rate=Decimal("0.5"),
            currency="JPY",
        )

        assert totals.tax_amount == Decimal("1")
        assert totals.total == Decimal("101")

    def test_total_is_sum_of_rounded_components(self):
        totals = self.engine.price(
            [_line("A", "7", "1.11"), _line("B", "3", "2.22")],
            discount_value=Decimal("3.3"),
            tax_rate=Decimal("7"),
            fiscal_stamp=Decimal("0.6"),
            currency="EUR",
        )

        assert totals.total == (
            totals.subtotal - totals.discount + totals.tax_amount + totals.fiscal_stamp
        )

    def test_components_rounded_before_total(self):
        # Rounding only the final total would give 1.00 (0.995 + 0.004975).
        totals = self.engine.price(
            [_line("A", "1", "1.00")],
            discount_value=Decimal("0.5"),
            tax_rate=Decimal("0.5"),
            currency="USD",
        )

        assert totals.discount == Decimal("0.01")
        assert totals.tax_amount == Decimal("0.00")
        assert totals.total == Decimal("0.99")


class TestUnitPriceConversion:
    """Foreign currency defaults derived from base-currency catalog prices."""

    def test_base_price_divided_by_rate(self):
        assert PricingEngine.convert_unit_price(Decimal("100"), Decimal("1.25")) == Decimal("80")

    def test_rounded_to_currency(self):
        converted = PricingEngine.convert_unit_price(Decimal("10"), Decimal("3"), "EUR")

        assert converted == Decimal("3.33")

    def test_non_positive_rate_rejected(self):
        with pytest.raises(ValueError):
            PricingEngine.convert_unit_price(Decimal("10"), Decimal("0"))


class TestQuotedAmount:

    def test_plain_sum_of_lines(self):
        lines = [_line("A", "4", "2.5"), _line("B", "2", "7")]

        assert PricingEngine.quoted_amount(lines) == Decimal("24")
