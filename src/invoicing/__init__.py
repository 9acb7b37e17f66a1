"""
Invoicing

Invoice computation, deal linking and the authoring/status flows for
lawyer and publisher (lead vendor) invoices. Builds on the retainer
settlements package for its store, errors and logging.
"""

__version__ = '0.1.0'

from .config import InvoiceConfig, invoice_config
from .engine import (
    InvoiceTotals,
    can_submit,
    compute_totals,
    generate_invoice_number,
    round2,
    submission_errors,
    validate_line_items,
)
from .errors import (
    DealLinkError,
    DuplicateInvoiceNumberError,
    InvalidInvoiceStatusTransition,
    InvoiceError,
    InvoiceNotFoundError,
    InvoiceValidationError,
)
from .linker import InvoiceDealLinker, LinkResult
from .models import (
    Invoice,
    InvoiceForm,
    InvoiceStatus,
    InvoiceType,
    LineItem,
    LineItemInput,
    LinkColumn,
)
from .repository import InvoiceRepository
from .service import InvoicePreview, InvoiceService, InvoiceWriteResult

__all__ = [
    # Version
    '__version__',
    # Config
    'InvoiceConfig',
    'invoice_config',
    # Engine
    'InvoiceTotals',
    'can_submit',
    'compute_totals',
    'generate_invoice_number',
    'round2',
    'submission_errors',
    'validate_line_items',
    # Errors
    'DealLinkError',
    'DuplicateInvoiceNumberError',
    'InvalidInvoiceStatusTransition',
    'InvoiceError',
    'InvoiceNotFoundError',
    'InvoiceValidationError',
    # Linking
    'InvoiceDealLinker',
    'LinkResult',
    # Models
    'Invoice',
    'InvoiceForm',
    'InvoiceStatus',
    'InvoiceType',
    'LineItem',
    'LineItemInput',
    'LinkColumn',
    # Persistence and flows
    'InvoiceRepository',
    'InvoicePreview',
    'InvoiceService',
    'InvoiceWriteResult',
]
