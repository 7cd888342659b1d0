"""
Commercial documents: sales and purchase chains.

Import the service from ``commerce_modules.documents.service``; the
package itself only exposes the document types, because the inventory
module imports them while the conversion path imports inventory.
"""

from commerce_modules.documents.models import (
    ConversionOverrides,
    DeletionResult,
    Document,
    DocumentDomain,
    DocumentDraft,
    DocumentStatus,
    DocumentType,
    DraftLine,
    LineItem,
    PurchaseDocument,
    ReceiptResult,
    ReturnReason,
    ReturnResult,
    RfqAcceptance,
    SalesDocument,
    StockAction,
)

__all__ = [
    "ConversionOverrides",
    "DeletionResult",
    "Document",
    "DocumentDomain",
    "DocumentDraft",
    "DocumentStatus",
    "DocumentType",
    "DraftLine",
    "LineItem",
    "PurchaseDocument",
    "ReceiptResult",
    "ReturnReason",
    "ReturnResult",
    "RfqAcceptance",
    "SalesDocument",
    "StockAction",
]
