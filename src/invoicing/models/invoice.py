"""
Invoice, LineItem and InvoiceForm models.

Money is Decimal everywhere. Line items arrive from the authoring form as
LineItemInput (anything goes, invalid rows are dropped by the engine) and
leave the engine as LineItem (validated, amount recomputed).

Key design decisions:
- invoice_type picks both the counterparty column (lawyer_id vs
  lead_vendor_id) and the deal link column (invoice_id vs
  publisher_invoice_id)
- items are stored as JSONB with plain numbers so existing readers of the
  invoices table keep working
"""

import json
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from ..config import invoice_config
from ..errors import InvoiceValidationError


class InvoiceType(str, Enum):
    LAWYER = 'lawyer'
    PUBLISHER = 'publisher'

    @property
    def link_column(self) -> 'LinkColumn':
        if self == InvoiceType.PUBLISHER:
            return LinkColumn.PUBLISHER_INVOICE_ID
        return LinkColumn.INVOICE_ID


class LinkColumn(str, Enum):
    """daily_deal_flow columns that point a deal at an invoice."""

    INVOICE_ID = 'invoice_id'
    PUBLISHER_INVOICE_ID = 'publisher_invoice_id'


class InvoiceStatus(str, Enum):
    PENDING = 'pending'
    PAID = 'paid'
    CHARGEBACK = 'chargeback'


# Allowed status moves; everything else is rejected
STATUS_TRANSITIONS: dict[InvoiceStatus, frozenset[InvoiceStatus]] = {
    InvoiceStatus.PENDING: frozenset({InvoiceStatus.PAID}),
    InvoiceStatus.PAID: frozenset({InvoiceStatus.CHARGEBACK}),
    InvoiceStatus.CHARGEBACK: frozenset(),
}


class LineItemInput(BaseModel):
    """A line item as typed into the form. May be invalid."""

    description: str = ''
    quantity: Decimal = Decimal('0')
    unit_price: Decimal = Decimal('0')
    amount: Decimal | None = Field(default=None, description='Ignored; always recomputed')


class LineItem(BaseModel):
    """A validated line item. amount = round2(quantity * unit_price)."""

    model_config = ConfigDict(frozen=True)

    description: str = Field(..., min_length=1)
    quantity: Decimal = Field(..., gt=0)
    unit_price: Decimal = Field(..., gt=0)
    amount: Decimal

    def to_json(self) -> dict[str, Any]:
        return {
            'description': self.description,
            'quantity': float(self.quantity),
            'unit_price': float(self.unit_price),
            'amount': float(self.amount),
        }


def _id_to_str(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    return value


class InvoiceForm(BaseModel):
    """Everything the authoring flow submits for a create or an edit."""

    invoice_type: InvoiceType = InvoiceType.LAWYER
    lawyer_id: str | None = None
    lead_vendor_id: str | None = None
    date_range_start: date | None = None
    date_range_end: date | None = None
    due_date: date | None = None
    deal_ids: list[str] = Field(default_factory=list)
    items: list[LineItemInput] = Field(default_factory=list)
    tax_rate: Decimal = Field(default_factory=lambda: invoice_config.DEFAULT_TAX_RATE)
    notes: str | None = None

    @property
    def counterparty_id(self) -> str | None:
        if self.invoice_type == InvoiceType.PUBLISHER:
            return self.lead_vendor_id
        return self.lawyer_id


class Invoice(BaseModel):
    """A row of the invoices table."""

    model_config = ConfigDict(extra='forbid')

    id: str
    invoice_number: str
    invoice_type: InvoiceType = InvoiceType.LAWYER
    lawyer_id: str | None = None
    lead_vendor_id: str | None = None
    created_by: str
    date_range_start: date
    date_range_end: date
    deal_ids: list[str] = Field(default_factory=list)
    items: list[LineItem] = Field(default_factory=list)
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    status: InvoiceStatus = InvoiceStatus.PENDING
    notes: str | None = None
    due_date: date | None = None
    created_at: datetime
    updated_at: datetime

    @field_validator('id', 'lawyer_id', 'lead_vendor_id', 'created_by', mode='before')
    @classmethod
    def _uuid_to_str(cls, value: Any) -> Any:
        return _id_to_str(value)

    @field_validator('deal_ids', mode='before')
    @classmethod
    def _deal_ids_to_str(cls, value: Any) -> Any:
        if value is None:
            return []
        return [_id_to_str(v) for v in value]

    @field_validator('items', mode='before')
    @classmethod
    def _items_from_jsonb(cls, value: Any) -> Any:
        if isinstance(value, str):
            return json.loads(value)
        return value

    @property
    def counterparty_id(self) -> str | None:
        if self.invoice_type == InvoiceType.PUBLISHER:
            return self.lead_vendor_id
        return self.lawyer_id

    @property
    def link_column(self) -> LinkColumn:
        return self.invoice_type.link_column

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> 'Invoice':
        """
        Parse an invoices row.

        Raises:
            InvoiceValidationError: If the row has an unexpected shape
        """
        try:
            return cls.model_validate(dict(row))
        except PydanticValidationError as e:
            raise InvoiceValidationError(
                'Unexpected invoice row shape',
                context={'invoice_id': str(row.get('id')), 'errors': e.errors(include_url=False)},
            ) from e
