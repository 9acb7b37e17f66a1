"""
Custom exceptions for invoice authoring and deal linking.

Subclasses the base error hierarchy from retainer_settlements.errors so the
HTTP layer can map both packages' errors the same way.
"""

from retainer_settlements.errors import (
    ConsistencyError,
    IneligibleOperationError,
    PipelineError,
    ValidationError,
)


class InvoiceError(PipelineError):
    """Base exception for all invoice errors."""

    pass


class InvoiceValidationError(InvoiceError, ValidationError):
    """Invoice form or line items failed validation; nothing was written."""

    pass


class InvoiceNotFoundError(InvoiceError):
    """No invoice with the requested id."""

    pass


class InvalidInvoiceStatusTransition(InvoiceError, IneligibleOperationError):
    """Only pending -> paid and paid -> chargeback are allowed."""

    pass


class DealLinkError(InvoiceError, ConsistencyError):
    """A link operation updated zero deals."""

    pass


class DuplicateInvoiceNumberError(InvoiceError):
    """
    Two authors counted the same number of invoices and generated the same
    number. The count-then-use scheme does not reserve numbers, so this is
    surfaced to the caller to retry.
    """

    pass
