"""
Stock rules -- which documents move stock, in which direction.

One row per (domain, type).  A rule fires when a document of that pair is
in one of ``statuses`` and, for returns, carries the matching stock action.
``nets_against`` pairs deliveries with invoices: within one conversion tree
the goods move once, so each side posts only the quantity by which it
raises ``max(delivered, invoiced)`` per product.

Documents with no row here (estimates, orders, PRs, RFQs, credit notes)
never touch stock.
"""

from dataclasses import dataclass
from enum import Enum

from commerce_kernel.logging_config import get_logger
from commerce_modules.documents.models import (
    DocumentDomain,
    DocumentStatus,
    DocumentType,
    StockAction,
)
from commerce_modules.inventory.models import MovementType

logger = get_logger("modules.inventory.rules")

S = DocumentStatus
T = DocumentType


class StockEffect(int, Enum):
    INCREMENT = 1
    DECREMENT = -1


@dataclass(frozen=True)
class StockRule:
    domain: DocumentDomain
    doc_type: DocumentType
    effect: StockEffect
    movement_type: MovementType
    statuses: frozenset[DocumentStatus]
    stock_action: StockAction | None = None
    nets_against: DocumentType | None = None
    revalues_cost: bool = False

    def matches(self, status: DocumentStatus, stock_action: StockAction | None) -> bool:
        if status not in self.statuses:
            return False
        return self.stock_action is None or self.stock_action == stock_action


STOCK_RULES: tuple[StockRule, ...] = (
    # Sales
    StockRule(
        DocumentDomain.SALES, T.DELIVERY, StockEffect.DECREMENT, MovementType.SALE,
        statuses=frozenset({S.COMPLETED}),
        nets_against=T.INVOICE,
    ),
    StockRule(
        DocumentDomain.SALES, T.ISSUE, StockEffect.DECREMENT, MovementType.SALE,
        statuses=frozenset({S.COMPLETED}),
    ),
    StockRule(
        DocumentDomain.SALES, T.INVOICE, StockEffect.DECREMENT, MovementType.SALE,
        statuses=frozenset({S.PENDING, S.PAID, S.OVERDUE}),
        nets_against=T.DELIVERY,
    ),
    StockRule(
        DocumentDomain.SALES, T.RETURN, StockEffect.INCREMENT, MovementType.RETURN,
        statuses=frozenset({S.PROCESSED}),
        stock_action=StockAction.REINTEGRATE,
    ),
    # Purchase
    StockRule(
        DocumentDomain.PURCHASE, T.DELIVERY, StockEffect.INCREMENT, MovementType.PURCHASE,
        statuses=frozenset({S.RECEIVED}),
        nets_against=T.INVOICE,
        revalues_cost=True,
    ),
    StockRule(
        DocumentDomain.PURCHASE, T.INVOICE, StockEffect.INCREMENT, MovementType.PURCHASE,
        statuses=frozenset({S.PENDING, S.PARTIAL, S.COMPLETED}),
        nets_against=T.DELIVERY,
        revalues_cost=True,
    ),
    StockRule(
        DocumentDomain.PURCHASE, T.RETURN, StockEffect.DECREMENT, MovementType.RETURN,
        statuses=frozenset({S.PROCESSED}),
        stock_action=StockAction.REINTEGRATE,
    ),
)

_RULE_INDEX: dict[tuple[DocumentDomain, DocumentType], StockRule] = {
    (rule.domain, rule.doc_type): rule for rule in STOCK_RULES
}

logger.info(
    "inventory_stock_rules_registered",
    extra={"rules": [f"{r.domain.value}.{r.doc_type.value}" for r in STOCK_RULES]},
)


def stock_rule_for(
    domain: DocumentDomain,
    doc_type: DocumentType,
    status: DocumentStatus,
    stock_action: StockAction | None = None,
) -> StockRule | None:
    """The rule that fires for this combination, or None."""
    rule = _RULE_INDEX.get((DocumentDomain(domain), DocumentType(doc_type)))
    if rule is None or not rule.matches(DocumentStatus(status), stock_action):
        return None
    return rule
