"""
Module: commerce_engines
Responsibility:
    Pure calculation engines for the commercial document workflow.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import commerce_kernel.domain (and sibling engine modules).
    MUST NOT import commerce_modules.

Invariants enforced:
    - Engines never read the clock; dates are passed in.
    - Decimal-only arithmetic: floats are forbidden.
    - Identical inputs always produce identical outputs.

Usage:
    from commerce_engines import PricingEngine, DiscountType
    from commerce_engines import CostingEngine
"""

from commerce_engines.costing import COST_QUANTUM, CostingEngine
from commerce_engines.pricing import DiscountType, PriceableLine, PricingEngine, Totals
from commerce_engines.tracer import traced_engine

__all__ = [
    "COST_QUANTUM",
    "CostingEngine",
    "DiscountType",
    "PriceableLine",
    "PricingEngine",
    "Totals",
    "traced_engine",
]
