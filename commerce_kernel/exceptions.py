"""
Typed Exception Hierarchy for the Commerce Kernel.

Every error has a typed class (catch by type, not by message), a ``code``
class attribute (machine-readable, API-safe) and structured attributes.
Validation failures additionally carry a ``reason`` string that callers
display to the user as-is.

    CommerceKernelError (base)
    |
    +-- DocumentError
    |   +-- DocumentNotFoundError
    |   +-- DocumentValidationError
    |   +-- InvalidConversionError
    |   +-- InvalidStatusTransitionError
    |   +-- DocumentLockedError
    |
    +-- CatalogError
    |   +-- ProductNotFoundError
    |   +-- PartnerNotFoundError
    |   +-- WarehouseNotFoundError
    |
    +-- StockError
    |   +-- InsufficientStockError
    |   +-- InvalidStockOperationError
    |
    +-- CurrencyError
    |   +-- InvalidCurrencyError
    |   +-- InvalidExchangeRateError
    |
    +-- PaymentError
    |   +-- InvalidPaymentAmountError
    |   +-- PaymentExceedsBalanceError
    |
    +-- ConcurrencyError
        +-- OptimisticLockError

Category   | Code                       | When Raised
-----------|----------------------------|------------------------------------------
Document   | DOCUMENT_NOT_FOUND         | id absent (deleted between view and action)
           | DOCUMENT_VALIDATION_FAILED | empty items, missing partner/warehouse
           | INVALID_CONVERSION         | target type not a valid successor
           | INVALID_STATUS_TRANSITION  | named action not allowed from status
           | DOCUMENT_LOCKED            | item edit on a document with effects
Catalog    | PRODUCT_NOT_FOUND          | product code unknown
           | PARTNER_NOT_FOUND          | client/supplier code unknown
           | WAREHOUSE_NOT_FOUND        | warehouse code unknown
Stock      | INSUFFICIENT_STOCK         | transfer/decrement beyond available
           | INVALID_STOCK_OPERATION    | zero quantity, same-warehouse transfer
Currency   | INVALID_CURRENCY           | not an ISO 4217 code
           | INVALID_EXCHANGE_RATE      | missing, non-positive or unit foreign rate
Payment    | INVALID_PAYMENT_AMOUNT     | payment <= 0
           | PAYMENT_EXCEEDS_BALANCE    | payment > remaining balance
Concurrency| OPTIMISTIC_LOCK_CONFLICT   | stock row modified concurrently
"""


class CommerceKernelError(Exception):
    """
    Base exception for all commerce kernel errors.

    All subclasses must have a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "COMMERCE_KERNEL_ERROR"


# Document-related exceptions


class DocumentError(CommerceKernelError):
    """Base exception for document-related errors."""

    code: str = "DOCUMENT_ERROR"


class DocumentNotFoundError(DocumentError):
    """Document with given ID was not found."""

    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Document not found: {document_id}")


class DocumentValidationError(DocumentError):
    """A draft or operation failed validation before any write."""

    code: str = "DOCUMENT_VALIDATION_FAILED"

    def __init__(self, reason: str, field: str | None = None):
        self.reason = reason
        self.field = field
        super().__init__(reason)


class InvalidConversionError(DocumentError):
    """The requested target type is not a valid successor of the source."""

    code: str = "INVALID_CONVERSION"

    def __init__(self, source_type: str, target_type: str, reason: str):
        self.source_type = source_type
        self.target_type = target_type
        self.reason = reason
        super().__init__(
            f"Cannot convert {source_type} to {target_type}: {reason}"
        )


class InvalidStatusTransitionError(DocumentError):
    """A named status action is not allowed from the current status."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(self, document_number: str, status: str, action: str):
        self.document_number = document_number
        self.status = status
        self.action = action
        self.reason = f"Action '{action}' is not allowed while {document_number} is {status}"
        super().__init__(self.reason)


class DocumentLockedError(DocumentError):
    """Items cannot be edited because the document already has effects."""

    code: str = "DOCUMENT_LOCKED"

    def __init__(self, document_number: str, reason: str):
        self.document_number = document_number
        self.reason = reason
        super().__init__(f"Document {document_number} is locked: {reason}")


# Catalog-related exceptions


class CatalogError(CommerceKernelError):
    """Base exception for catalog lookups."""

    code: str = "CATALOG_ERROR"


class ProductNotFoundError(CatalogError):
    """Product code does not exist in the catalog."""

    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_code: str):
        self.product_code = product_code
        self.reason = f"Product not found: {product_code}"
        super().__init__(self.reason)


class PartnerNotFoundError(CatalogError):
    """Client or supplier code does not exist in the catalog."""

    code: str = "PARTNER_NOT_FOUND"

    def __init__(self, partner_code: str, kind: str):
        self.partner_code = partner_code
        self.kind = kind
        self.reason = f"{kind.capitalize()} not found: {partner_code}"
        super().__init__(self.reason)


class WarehouseNotFoundError(CatalogError):
    """Warehouse code does not exist in the catalog."""

    code: str = "WAREHOUSE_NOT_FOUND"

    def __init__(self, warehouse_code: str):
        self.warehouse_code = warehouse_code
        self.reason = f"Warehouse not found: {warehouse_code}"
        super().__init__(self.reason)


# Stock-related exceptions


class StockError(CommerceKernelError):
    """Base exception for stock errors."""

    code: str = "STOCK_ERROR"


class InsufficientStockError(StockError):
    """A decrement would take a warehouse below zero."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, product_code: str, warehouse_code: str, available: str, requested: str):
        self.product_code = product_code
        self.warehouse_code = warehouse_code
        self.available = available
        self.requested = requested
        self.reason = (
            f"Insufficient stock of {product_code} in {warehouse_code}. "
            f"Available: {available}, requested: {requested}"
        )
        super().__init__(self.reason)


class InvalidStockOperationError(StockError):
    """A transfer or adjustment request is malformed."""

    code: str = "INVALID_STOCK_OPERATION"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


# Currency-related exceptions


class CurrencyError(CommerceKernelError):
    """Base exception for currency errors."""

    code: str = "CURRENCY_ERROR"


class InvalidCurrencyError(CurrencyError):
    """Currency code is not a valid ISO 4217 code."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        self.reason = f"Invalid currency code: {currency}"
        super().__init__(self.reason)


class InvalidExchangeRateError(CurrencyError):
    """Exchange rate is missing, non-positive, or unit for a foreign currency."""

    code: str = "INVALID_EXCHANGE_RATE"

    def __init__(self, currency: str, rate: str, reason: str):
        self.currency = currency
        self.rate = rate
        self.reason = reason
        super().__init__(f"Invalid exchange rate {rate} for {currency}: {reason}")


# Payment-related exceptions


class PaymentError(CommerceKernelError):
    """Base exception for payment errors."""

    code: str = "PAYMENT_ERROR"


class InvalidPaymentAmountError(PaymentError):
    """Payment amount must be strictly positive."""

    code: str = "INVALID_PAYMENT_AMOUNT"

    def __init__(self, amount: str):
        self.amount = amount
        self.reason = f"Invalid payment amount: {amount}"
        super().__init__(self.reason)


class PaymentExceedsBalanceError(PaymentError):
    """Payment would exceed the remaining balance of the invoice."""

    code: str = "PAYMENT_EXCEEDS_BALANCE"

    def __init__(self, document_number: str, amount: str, balance: str):
        self.document_number = document_number
        self.amount = amount
        self.balance = balance
        self.reason = (
            f"Payment {amount} exceeds remaining balance {balance} on {document_number}"
        )
        super().__init__(self.reason)


# Concurrency-related exceptions


class ConcurrencyError(CommerceKernelError):
    """Base exception for concurrency errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )
