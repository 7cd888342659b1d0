"""
Configuration Schema (``commerce_config.schema``).

Frozen dataclasses describing one complete commerce configuration.  Parsed
from YAML by ``commerce_config.loader``; consumed by services through
``commerce_config.get_active_config()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class TaxRateDef:
    """A selectable tax rate (percent)."""

    id: str
    name: str
    rate: Decimal
    is_default: bool = False


@dataclass(frozen=True)
class NumberingDef:
    """Document numbering: zero-padding width and prefix per (domain, type)."""

    width: int = 3
    prefixes: dict[str, dict[str, str]] = field(default_factory=dict)

    def prefix_for(self, domain: str, doc_type: str) -> str:
        """Prefix for a (domain, type) pair.

        Raises:
            KeyError: if the pair has no configured prefix.
        """
        return self.prefixes[domain][doc_type]

    def format(self, domain: str, doc_type: str, sequence: int) -> str:
        """Render a document number, e.g. ``INV-001``."""
        return f"{self.prefix_for(domain, doc_type)}-{sequence:0{self.width}d}"


@dataclass(frozen=True)
class CommerceConfig:
    """
    A complete, validated commerce configuration.

    Monetary settings (fiscal stamp) are expressed in ``base_currency``.
    """

    base_currency: str = "USD"
    enable_fiscal_stamp: bool = False
    fiscal_stamp_value: Decimal = Decimal("1.000")
    tax_rates: tuple[TaxRateDef, ...] = field(default_factory=tuple)
    low_stock_threshold: Decimal = Decimal("10")
    allow_negative_stock: bool = True
    numbering: NumberingDef = field(default_factory=NumberingDef)
    checksum: str = ""

    @property
    def default_tax_rate(self) -> Decimal:
        """Rate flagged ``is_default``, or zero if none is."""
        for tax_rate in self.tax_rates:
            if tax_rate.is_default:
                return tax_rate.rate
        return Decimal("0")

    @property
    def fiscal_stamp(self) -> Decimal:
        """Stamp charged on a sales invoice under this configuration."""
        return self.fiscal_stamp_value if self.enable_fiscal_stamp else Decimal("0")
