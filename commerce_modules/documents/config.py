"""
Documents Configuration Schema.

Module-level settings for document creation and conversion.  Company-wide
values (base currency, tax rates, fiscal stamp, numbering) come from
``commerce_config.CommerceConfig``; this schema only covers behavior local
to the documents module.
"""

from dataclasses import dataclass, field
from typing import Self

from commerce_kernel.logging_config import get_logger

logger = get_logger("modules.documents.config")


@dataclass
class DocumentsConfig:
    """
    Configuration schema for the documents module.

    Override at instantiation:

        config = DocumentsConfig(
            allow_non_catalog_items=False,
            credit_note_on_sales_return=True,
        )
    """

    # Lines whose item id is not a catalog product (services, free text)
    allow_non_catalog_items: bool = True

    # (domain, type) pairs that carry the configured fiscal stamp
    fiscal_stamp_types: tuple[tuple[str, str], ...] = field(
        default_factory=lambda: (("sales", "invoice"),)
    )

    # Sales returns issue a credit note unless the caller says otherwise
    credit_note_on_sales_return: bool = False

    # Converted documents note their origin, e.g. "Converted from ORD-004"
    annotate_conversions: bool = True

    # Days a supplier is given to answer an RFQ when no deadline is set
    rfq_response_days: int = 7

    def __post_init__(self):
        self.fiscal_stamp_types = tuple(tuple(pair) for pair in self.fiscal_stamp_types)
        logger.info(
            "documents_config_initialized",
            extra={
                "allow_non_catalog_items": self.allow_non_catalog_items,
                "fiscal_stamp_types": [f"{d}.{t}" for d, t in self.fiscal_stamp_types],
                "credit_note_on_sales_return": self.credit_note_on_sales_return,
                "annotate_conversions": self.annotate_conversions,
                "rfq_response_days": self.rfq_response_days,
            },
        )

    def carries_fiscal_stamp(self, domain: str, doc_type: str) -> bool:
        key = (getattr(domain, "value", domain), getattr(doc_type, "value", doc_type))
        return key in self.fiscal_stamp_types

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with the shipped defaults."""
        logger.info("documents_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary (e.g., loaded from a file)."""
        logger.info(
            "documents_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
