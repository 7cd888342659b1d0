"""
Document Workflows.

Data-driven tables for the document lifecycle:

* one status state machine per (domain, type),
* the conversion table (which source type may become which target type,
  from which source statuses, through which action),
* which (domain, type, status) combinations still accept item edits.

Business code consults these tables; it never switches on type strings.
"""

from __future__ import annotations

from dataclasses import dataclass

from commerce_kernel.logging_config import get_logger
from commerce_modules.catalog.models import PartnerKind
from commerce_modules.documents.models import (
    DocumentDomain,
    DocumentStatus,
    DocumentType,
)

logger = get_logger("modules.documents.workflows")

S = DocumentStatus
T = DocumentType
SALES = DocumentDomain.SALES
PURCHASE = DocumentDomain.PURCHASE


@dataclass(frozen=True)
class Guard:
    """A condition for a transition."""
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition."""
    from_state: DocumentStatus
    to_state: DocumentStatus
    action: str
    guard: Guard | None = None


@dataclass(frozen=True)
class Workflow:
    """A state machine definition."""
    name: str
    description: str
    initial_state: DocumentStatus
    states: tuple[DocumentStatus, ...]
    transitions: tuple[Transition, ...] = ()

    def find(self, from_state: DocumentStatus, action: str) -> tuple[Transition, ...]:
        """All transitions leaving ``from_state`` through ``action``."""
        return tuple(
            t for t in self.transitions
            if t.from_state == from_state and t.action == action
        )

    def actions_from(self, from_state: DocumentStatus) -> tuple[str, ...]:
        seen: dict[str, None] = {}
        for t in self.transitions:
            if t.from_state == from_state:
                seen.setdefault(t.action)
        return tuple(seen)


@dataclass(frozen=True)
class ConversionRule:
    """
    ``source_type`` may become ``target_type`` while the source is in one of
    ``source_statuses``.  ``action`` names the operation that performs the
    conversion; plain ``convert`` is the generic one.
    """
    domain: DocumentDomain
    source_type: DocumentType
    target_type: DocumentType
    source_statuses: frozenset[DocumentStatus]
    action: str = "convert"


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

PARTIAL_PAYMENT = Guard(
    name="partial_payment",
    description="Payment leaves a positive balance",
)

FULL_PAYMENT = Guard(
    name="full_payment",
    description="Payment settles the remaining balance",
)

ALL_LINES_RECEIVED = Guard(
    name="all_lines_received",
    description="Every order line is fully received",
)

LINES_OUTSTANDING = Guard(
    name="lines_outstanding",
    description="At least one order line is still outstanding",
)

logger.info(
    "document_workflow_guards_defined",
    extra={
        "guards": [
            PARTIAL_PAYMENT.name,
            FULL_PAYMENT.name,
            ALL_LINES_RECEIVED.name,
            LINES_OUTSTANDING.name,
        ],
    },
)


# -----------------------------------------------------------------------------
# Sales workflows
# -----------------------------------------------------------------------------

ESTIMATE_WORKFLOW = Workflow(
    name="sales_estimate",
    description="Quotation sent to a client",
    initial_state=S.DRAFT,
    states=(S.DRAFT, S.SENT, S.ACCEPTED, S.REJECTED),
    transitions=(
        Transition(S.DRAFT, S.SENT, action="send"),
        Transition(S.DRAFT, S.ACCEPTED, action="accept"),
        Transition(S.SENT, S.ACCEPTED, action="accept"),
        Transition(S.DRAFT, S.REJECTED, action="reject"),
        Transition(S.SENT, S.REJECTED, action="reject"),
    ),
)

SALES_ORDER_WORKFLOW = Workflow(
    name="sales_order",
    description="Confirmed client order",
    initial_state=S.PENDING,
    states=(S.PENDING, S.COMPLETED),
    transitions=(
        Transition(S.PENDING, S.COMPLETED, action="complete"),
    ),
)

SALES_DELIVERY_WORKFLOW = Workflow(
    name="sales_delivery",
    description="Delivery note; goods left the warehouse",
    initial_state=S.COMPLETED,
    states=(S.COMPLETED,),
)

SALES_INVOICE_WORKFLOW = Workflow(
    name="sales_invoice",
    description="Client invoice",
    initial_state=S.PENDING,
    states=(S.PENDING, S.OVERDUE, S.PAID),
    transitions=(
        Transition(S.PENDING, S.PAID, action="mark_paid"),
        Transition(S.OVERDUE, S.PAID, action="mark_paid"),
        Transition(S.PENDING, S.OVERDUE, action="mark_overdue"),
    ),
)

ISSUE_WORKFLOW = Workflow(
    name="sales_issue",
    description="Stock issue note",
    initial_state=S.COMPLETED,
    states=(S.COMPLETED,),
)

SALES_RETURN_WORKFLOW = Workflow(
    name="sales_return",
    description="Goods returned by a client",
    initial_state=S.PROCESSED,
    states=(S.PROCESSED,),
)

CREDIT_NOTE_WORKFLOW = Workflow(
    name="sales_credit",
    description="Credit note issued against an invoice",
    initial_state=S.PAID,
    states=(S.PAID,),
)


# -----------------------------------------------------------------------------
# Purchase workflows
# -----------------------------------------------------------------------------

PURCHASE_REQUEST_WORKFLOW = Workflow(
    name="purchase_request",
    description="Internal purchase request awaiting approval",
    initial_state=S.PENDING,
    states=(S.PENDING, S.APPROVED, S.REJECTED),
    transitions=(
        Transition(S.PENDING, S.APPROVED, action="approve"),
        Transition(S.PENDING, S.REJECTED, action="reject"),
    ),
)

RFQ_WORKFLOW = Workflow(
    name="purchase_rfq",
    description="Request for quotation sent to a supplier",
    initial_state=S.SENT,
    states=(S.SENT, S.RESPONDED, S.ACCEPTED, S.REJECTED),
    transitions=(
        Transition(S.SENT, S.RESPONDED, action="quote"),
        Transition(S.RESPONDED, S.RESPONDED, action="quote"),
        Transition(S.RESPONDED, S.ACCEPTED, action="accept"),
        Transition(S.SENT, S.REJECTED, action="reject"),
        Transition(S.RESPONDED, S.REJECTED, action="reject"),
    ),
)

PURCHASE_ORDER_WORKFLOW = Workflow(
    name="purchase_order",
    description="Order placed with a supplier, received in one or more GRNs",
    initial_state=S.PENDING,
    states=(S.PENDING, S.RECEIVED),
    transitions=(
        Transition(S.PENDING, S.PENDING, action="receive", guard=LINES_OUTSTANDING),
        Transition(S.PENDING, S.RECEIVED, action="receive", guard=ALL_LINES_RECEIVED),
    ),
)

GRN_WORKFLOW = Workflow(
    name="purchase_delivery",
    description="Goods-receipt note",
    initial_state=S.RECEIVED,
    states=(S.RECEIVED,),
)

PURCHASE_INVOICE_WORKFLOW = Workflow(
    name="purchase_invoice",
    description="Supplier invoice settled by one or more payments",
    initial_state=S.PENDING,
    states=(S.PENDING, S.PARTIAL, S.COMPLETED),
    transitions=(
        Transition(S.PENDING, S.PARTIAL, action="pay", guard=PARTIAL_PAYMENT),
        Transition(S.PENDING, S.COMPLETED, action="pay", guard=FULL_PAYMENT),
        Transition(S.PARTIAL, S.PARTIAL, action="pay", guard=PARTIAL_PAYMENT),
        Transition(S.PARTIAL, S.COMPLETED, action="pay", guard=FULL_PAYMENT),
    ),
)

PURCHASE_RETURN_WORKFLOW = Workflow(
    name="purchase_return",
    description="Goods returned to a supplier",
    initial_state=S.PROCESSED,
    states=(S.PROCESSED,),
)


WORKFLOWS: dict[tuple[DocumentDomain, DocumentType], Workflow] = {
    (SALES, T.ESTIMATE): ESTIMATE_WORKFLOW,
    (SALES, T.ORDER): SALES_ORDER_WORKFLOW,
    (SALES, T.DELIVERY): SALES_DELIVERY_WORKFLOW,
    (SALES, T.INVOICE): SALES_INVOICE_WORKFLOW,
    (SALES, T.ISSUE): ISSUE_WORKFLOW,
    (SALES, T.RETURN): SALES_RETURN_WORKFLOW,
    (SALES, T.CREDIT): CREDIT_NOTE_WORKFLOW,
    (PURCHASE, T.PR): PURCHASE_REQUEST_WORKFLOW,
    (PURCHASE, T.RFQ): RFQ_WORKFLOW,
    (PURCHASE, T.ORDER): PURCHASE_ORDER_WORKFLOW,
    (PURCHASE, T.DELIVERY): GRN_WORKFLOW,
    (PURCHASE, T.INVOICE): PURCHASE_INVOICE_WORKFLOW,
    (PURCHASE, T.RETURN): PURCHASE_RETURN_WORKFLOW,
}

logger.info(
    "document_workflows_registered",
    extra={
        "workflow_count": len(WORKFLOWS),
        "transition_count": sum(len(w.transitions) for w in WORKFLOWS.values()),
    },
)


def workflow_for(domain: DocumentDomain, doc_type: DocumentType) -> Workflow:
    """
    State machine for a (domain, type) pair.

    Raises:
        KeyError: if the type does not exist in the domain.
    """
    return WORKFLOWS[(DocumentDomain(domain), DocumentType(doc_type))]


def initial_status(domain: DocumentDomain, doc_type: DocumentType) -> DocumentStatus:
    return workflow_for(domain, doc_type).initial_state


# -----------------------------------------------------------------------------
# Conversion table
# -----------------------------------------------------------------------------

_ESTIMATE_OPEN = frozenset({S.DRAFT, S.SENT, S.ACCEPTED})
_SALES_ORDER_ANY = frozenset({S.PENDING, S.COMPLETED})
_INVOICE_ISSUED = frozenset({S.PENDING, S.PAID, S.OVERDUE})
_RETURNABLE = frozenset({S.PAID, S.COMPLETED, S.RECEIVED, S.PROCESSED})

CONVERSION_RULES: tuple[ConversionRule, ...] = (
    # Sales: estimate -> order -> delivery -> invoice, any step skippable
    ConversionRule(SALES, T.ESTIMATE, T.ORDER, _ESTIMATE_OPEN),
    ConversionRule(SALES, T.ESTIMATE, T.DELIVERY, _ESTIMATE_OPEN),
    ConversionRule(SALES, T.ESTIMATE, T.INVOICE, _ESTIMATE_OPEN),
    ConversionRule(SALES, T.ORDER, T.DELIVERY, _SALES_ORDER_ANY),
    ConversionRule(SALES, T.ORDER, T.INVOICE, _SALES_ORDER_ANY),
    ConversionRule(SALES, T.DELIVERY, T.INVOICE, frozenset({S.COMPLETED})),
    ConversionRule(SALES, T.INVOICE, T.CREDIT, _INVOICE_ISSUED),
    ConversionRule(SALES, T.ORDER, T.RETURN, _RETURNABLE, action="return"),
    ConversionRule(SALES, T.DELIVERY, T.RETURN, _RETURNABLE, action="return"),
    ConversionRule(SALES, T.INVOICE, T.RETURN, _RETURNABLE, action="return"),
    # Purchase: pr -> rfq -> order -> delivery (GRN) -> invoice
    ConversionRule(PURCHASE, T.PR, T.RFQ, frozenset({S.APPROVED})),
    ConversionRule(PURCHASE, T.PR, T.ORDER, frozenset({S.APPROVED})),
    ConversionRule(PURCHASE, T.RFQ, T.ORDER, frozenset({S.RESPONDED}), action="accept"),
    ConversionRule(PURCHASE, T.ORDER, T.DELIVERY, frozenset({S.PENDING}), action="receive"),
    ConversionRule(PURCHASE, T.ORDER, T.INVOICE, frozenset({S.PENDING, S.RECEIVED})),
    ConversionRule(PURCHASE, T.DELIVERY, T.INVOICE, frozenset({S.RECEIVED})),
    ConversionRule(PURCHASE, T.ORDER, T.RETURN, _RETURNABLE, action="return"),
    ConversionRule(PURCHASE, T.DELIVERY, T.RETURN, _RETURNABLE, action="return"),
    ConversionRule(PURCHASE, T.INVOICE, T.RETURN, _RETURNABLE, action="return"),
)

_RULE_INDEX: dict[tuple[DocumentDomain, DocumentType, DocumentType], ConversionRule] = {
    (rule.domain, rule.source_type, rule.target_type): rule for rule in CONVERSION_RULES
}

logger.info(
    "document_conversion_rules_registered",
    extra={"rule_count": len(CONVERSION_RULES)},
)


def conversion_rule(
    domain: DocumentDomain,
    source_type: DocumentType,
    target_type: DocumentType,
) -> ConversionRule | None:
    return _RULE_INDEX.get((DocumentDomain(domain), DocumentType(source_type), DocumentType(target_type)))


def conversion_targets(domain: DocumentDomain, source_type: DocumentType) -> tuple[DocumentType, ...]:
    """Every type ``source_type`` may be converted to, in table order."""
    return tuple(
        rule.target_type for rule in CONVERSION_RULES
        if rule.domain == domain and rule.source_type == source_type
    )


def is_valid_predecessor(
    domain: DocumentDomain,
    predecessor_type: DocumentType,
    doc_type: DocumentType,
) -> bool:
    return conversion_rule(domain, predecessor_type, doc_type) is not None


# Types a UI draft may create directly.  Returns and credit notes always
# derive from a source document.
DRAFTABLE_TYPES: dict[DocumentDomain, frozenset[DocumentType]] = {
    SALES: frozenset({T.ESTIMATE, T.ORDER, T.DELIVERY, T.INVOICE, T.ISSUE}),
    PURCHASE: frozenset({T.PR, T.RFQ, T.ORDER, T.DELIVERY, T.INVOICE}),
}


# -----------------------------------------------------------------------------
# Item edits
# -----------------------------------------------------------------------------

# Documents in these states have no stock, fulfillment or payment effects
# yet.  Purchase orders additionally require that nothing was received.
EDITABLE_STATES: dict[tuple[DocumentDomain, DocumentType], frozenset[DocumentStatus]] = {
    (SALES, T.ESTIMATE): frozenset({S.DRAFT}),
    (SALES, T.ORDER): frozenset({S.PENDING}),
    (PURCHASE, T.PR): frozenset({S.PENDING}),
    (PURCHASE, T.RFQ): frozenset({S.SENT}),
    (PURCHASE, T.ORDER): frozenset({S.PENDING}),
}


def is_editable(domain: DocumentDomain, doc_type: DocumentType, status: DocumentStatus) -> bool:
    return DocumentStatus(status) in EDITABLE_STATES.get(
        (DocumentDomain(domain), DocumentType(doc_type)), frozenset()
    )


# -----------------------------------------------------------------------------
# Partners
# -----------------------------------------------------------------------------

PARTNER_KIND: dict[DocumentDomain, PartnerKind] = {
    SALES: PartnerKind.CLIENT,
    PURCHASE: PartnerKind.SUPPLIER,
}

# Sign applied to a document's base-currency amount on the partner's
# activity counter (clients: total_spent, suppliers: total_purchased).
PARTNER_ACTIVITY: dict[tuple[DocumentDomain, DocumentType], int] = {
    (SALES, T.INVOICE): 1,
    (SALES, T.CREDIT): -1,
    (PURCHASE, T.INVOICE): 1,
}

# Internal purchase requests are raised before a supplier is chosen.
PARTNERLESS_TYPES: frozenset[tuple[DocumentDomain, DocumentType]] = frozenset({
    (PURCHASE, T.PR),
})
