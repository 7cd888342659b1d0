"""
commerce_engines.costing -- Weighted average cost and landed-cost apportionment.

Responsibility:
    Revalue a product when purchased goods enter stock, and spread a
    document's additional costs (freight, customs) across its lines.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Formulas:
    WAC = (on_hand * current_cost + incoming_qty * unit_cost + extra_cost)
          / (on_hand + incoming_qty)

    Negative on-hand stock carries no value and counts as zero.  When the
    resulting quantity is not positive, the current cost is kept.

    Apportionment is proportional to line weight; rounding remainder goes
    to the last line so the parts always sum to the total.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal

from commerce_engines.tracer import traced_engine

_ZERO = Decimal("0")

# Unit costs are carried at a finer precision than document amounts.
COST_QUANTUM = Decimal("0.000001")


class CostingEngine:
    """Pure calculator for inventory valuation."""

    @traced_engine(
        "costing",
        "1.0",
        fingerprint_fields=("on_hand", "current_cost", "incoming_qty", "unit_cost", "extra_cost"),
    )
    def weighted_average_cost(
        self,
        *,
        on_hand: Decimal,
        current_cost: Decimal,
        incoming_qty: Decimal,
        unit_cost: Decimal,
        extra_cost: Decimal = _ZERO,
    ) -> Decimal:
        """New unit cost after receiving ``incoming_qty`` at ``unit_cost``."""
        valued_on_hand = on_hand if on_hand > _ZERO else _ZERO
        total_qty = valued_on_hand + incoming_qty
        if total_qty <= _ZERO:
            return current_cost
        total_value = (
            valued_on_hand * current_cost
            + incoming_qty * unit_cost
            + extra_cost
        )
        return (total_value / total_qty).quantize(COST_QUANTUM, rounding=ROUND_HALF_UP)

    @staticmethod
    def apportion(
        weights: Sequence[tuple[str, Decimal]],
        total: Decimal,
        quantum: Decimal = Decimal("0.01"),
    ) -> dict[str, Decimal]:
        """
        Split ``total`` across keys in proportion to their weights.

        Zero total weight splits evenly.  An empty ``weights`` yields ``{}``.
        """
        if not weights:
            return {}
        if total == _ZERO:
            return {key: _ZERO for key, _ in weights}

        total_weight = sum((w for _, w in weights), _ZERO)
        shares: dict[str, Decimal] = {}
        allocated = _ZERO
        for index, (key, weight) in enumerate(weights):
            if index == len(weights) - 1:
                shares[key] = total - allocated
                break
            if total_weight == _ZERO:
                part = total / Decimal(len(weights))
            else:
                part = total * weight / total_weight
            part = part.quantize(quantum, rounding=ROUND_HALF_UP)
            shares[key] = part
            allocated += part
        return shares
