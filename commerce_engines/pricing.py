"""
commerce_engines.pricing -- Document totals: subtotal, discount, tax, stamp.

Responsibility:
    Compute the totals of a commercial document from its line items and
    pricing inputs, and derive foreign-currency unit price defaults.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  Depends only on the
    kernel currency registry.

Algorithm (fixed order, never reordered):
    1. subtotal = sum(price * quantity)
    2. discount = subtotal * discount_value / 100     (percent)
                  discount_value                      (amount)
    3. taxable  = max(0, subtotal - discount)
    4. tax      = taxable * tax_rate / 100
    5. total    = taxable + tax + fiscal_stamp + additional_costs

Input policy:
    Negative discount, tax rate, stamp and additional costs are clamped to
    zero rather than rejected.  A discount larger than the subtotal is
    absorbed by step 3.

Rounding:
    With ``currency`` given, subtotal, discount and tax are each rounded
    half-up to the currency's precision before they are combined, and the
    total is the exact sum of those rounded parts.  This is the document
    policy: the stored components always add up to the stored total, at
    the cost of up to half a minor unit per component against rounding
    the unrounded total once.  Without a currency the arithmetic is exact.

Usage:
    engine = PricingEngine()
    totals = engine.price(
        items=lines,
        discount_value=Decimal("10"),
        discount_type=DiscountType.PERCENT,
        tax_rate=Decimal("19"),
        fiscal_stamp=Decimal("1"),
    )
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Protocol

from commerce_engines.tracer import traced_engine
from commerce_kernel.domain.currency import quantize_amount

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


class DiscountType(str, Enum):
    """How ``discount_value`` is interpreted."""

    PERCENT = "percent"
    AMOUNT = "amount"


class PriceableLine(Protocol):
    """Anything with a unit price and a quantity."""

    @property
    def quantity(self) -> Decimal: ...

    @property
    def price(self) -> Decimal: ...


@dataclass(frozen=True)
class Totals:
    """Result of pricing a set of lines. All amounts in document currency."""

    subtotal: Decimal
    discount: Decimal
    taxable_amount: Decimal
    tax_amount: Decimal
    fiscal_stamp: Decimal
    additional_costs: Decimal
    total: Decimal


def _non_negative(value: Decimal | int | str | None) -> Decimal:
    if value is None:
        return _ZERO
    value = Decimal(value)
    return value if value > _ZERO else _ZERO


class PricingEngine:
    """
    Pure calculator for document totals.

    Contract:
        No I/O, no database access, fully deterministic.
    """

    @traced_engine(
        "pricing",
        "1.0",
        fingerprint_fields=("items", "discount_value", "discount_type", "tax_rate", "fiscal_stamp"),
    )
    def price(
        self,
        items: Sequence[PriceableLine],
        *,
        discount_value: Decimal = _ZERO,
        discount_type: DiscountType = DiscountType.PERCENT,
        tax_rate: Decimal = _ZERO,
        fiscal_stamp: Decimal = _ZERO,
        additional_costs: Decimal | None = None,
        currency: str | None = None,
    ) -> Totals:
        """
        Price ``items``; see module docstring for the exact algorithm.

        With ``currency``, each component is rounded on its own and the
        total is their sum, never rounded again.
        """
        discount_value = _non_negative(discount_value)
        tax_rate = _non_negative(tax_rate)
        fiscal_stamp = _non_negative(fiscal_stamp)
        additional = _non_negative(additional_costs)

        def _round(amount: Decimal) -> Decimal:
            return quantize_amount(amount, currency) if currency else amount

        subtotal = _round(sum((self.line_total(item) for item in items), _ZERO))

        if DiscountType(discount_type) is DiscountType.PERCENT:
            discount = _round(subtotal * discount_value / _HUNDRED)
        else:
            discount = _round(discount_value)

        taxable = max(_ZERO, subtotal - discount)
        tax = _round(taxable * tax_rate / _HUNDRED)
        total = taxable + tax + fiscal_stamp + additional

        return Totals(
            subtotal=subtotal,
            discount=discount,
            taxable_amount=taxable,
            tax_amount=tax,
            fiscal_stamp=fiscal_stamp,
            additional_costs=additional,
            total=total,
        )

    @staticmethod
    def line_total(item: PriceableLine) -> Decimal:
        return Decimal(item.price) * Decimal(item.quantity)

    @staticmethod
    def quoted_amount(items: Sequence[PriceableLine]) -> Decimal:
        """Plain sum of price * quantity, as used for RFQ quotes."""
        return sum((PricingEngine.line_total(item) for item in items), _ZERO)

    @staticmethod
    def convert_unit_price(
        base_price: Decimal,
        exchange_rate: Decimal,
        currency: str | None = None,
    ) -> Decimal:
        """
        Default unit price in a foreign currency from a base-currency price.

        Formula: ``base_price / exchange_rate``, where the rate is the number
        of base-currency units per one foreign unit.

        Raises:
            ValueError: if ``exchange_rate`` is not positive.
        """
        if exchange_rate <= _ZERO:
            raise ValueError(f"exchange_rate must be positive, got {exchange_rate}")
        converted = Decimal(base_price) / Decimal(exchange_rate)
        return quantize_amount(converted, currency) if currency else converted
