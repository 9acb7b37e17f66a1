"""
Data models for invoice authoring.
"""

from .invoice import (
    STATUS_TRANSITIONS,
    Invoice,
    InvoiceForm,
    InvoiceStatus,
    InvoiceType,
    LineItem,
    LineItemInput,
    LinkColumn,
)

__all__ = [
    'STATUS_TRANSITIONS',
    'Invoice',
    'InvoiceForm',
    'InvoiceStatus',
    'InvoiceType',
    'LineItem',
    'LineItemInput',
    'LinkColumn',
]
