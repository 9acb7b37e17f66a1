"""
Deal and PaymentState models for the settlement pipeline.

A Deal is one row of daily_deal_flow as seen by the settlement and invoicing
views. Rows from the store are loosely typed, so from_row() parses them
through the model and rejects unexpected shapes instead of filling defaults.

Key design decisions:
- status is free text: it doubles as the pipeline stage label, and deals
  outside the settlement view may carry labels we do not register
- invoice_id links a lawyer invoice, publisher_invoice_id a vendor invoice;
  each is nullable and at most one per type
- PaymentState is derived from status, never authored on its own, and
  refuses to exist in the (pending, paid) combination
"""

from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from ..errors import ValidationError


class InboundStatus(str, Enum):
    """Money owed to the platform by the attorney."""

    PENDING = 'pending'
    RECEIVED = 'received'


class OutboundStatus(str, Enum):
    """Money the platform owes the lead vendor ("Pay BPO")."""

    LOCKED = 'locked'
    PAID = 'paid'


class PaymentState(BaseModel):
    """(inbound, outbound) pair. outbound=paid requires inbound=received."""

    model_config = ConfigDict(frozen=True)

    inbound: InboundStatus = InboundStatus.PENDING
    outbound: OutboundStatus = OutboundStatus.LOCKED

    @model_validator(mode='after')
    def _check_safety_lock(self) -> 'PaymentState':
        if self.outbound == OutboundStatus.PAID and self.inbound != InboundStatus.RECEIVED:
            raise ValueError('outbound payment cannot be paid before inbound is received')
        return self

    @property
    def is_settled(self) -> bool:
        return self.outbound == OutboundStatus.PAID


class Deal(BaseModel):
    """
    A client case record (retainer) moving through the settlement pipeline.

    Display fields are carried through untouched; the settlement subsystem
    only ever mutates status, invoice_id and publisher_invoice_id.
    """

    model_config = ConfigDict(extra='forbid', validate_assignment=True)

    id: str = Field(..., min_length=1, description='daily_deal_flow primary key')
    submission_id: str = Field(default='', description='Upstream intake submission id')
    insured_name: str | None = None
    client_phone_number: str | None = None
    lead_vendor: str | None = Field(default=None, description='Lead source (vendor) display name')
    date_signed: date | None = Field(default=None, description='Retainer signing date')
    status: str = Field(..., description='Pipeline stage label')
    assigned_attorney_id: str | None = None
    assigned_attorney_name: str | None = None
    face_amount: Decimal | None = None
    invoice_id: str | None = Field(default=None, description='Linked lawyer invoice')
    publisher_invoice_id: str | None = Field(default=None, description='Linked vendor invoice')
    created_at: datetime | None = None

    @field_validator(
        'id',
        'submission_id',
        'assigned_attorney_id',
        'invoice_id',
        'publisher_invoice_id',
        mode='before',
    )
    @classmethod
    def _uuid_to_str(cls, value: Any) -> Any:
        if isinstance(value, UUID):
            return str(value)
        return value

    @field_validator('date_signed', mode='before')
    @classmethod
    def _datetime_to_date(cls, value: Any) -> Any:
        if isinstance(value, datetime):
            return value.date()
        return value

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> 'Deal':
        """
        Parse a daily_deal_flow row (optionally joined with the attorney name).

        The settlement query aliases `date` as date_signed; the invoice
        query selects it raw, so both spellings are accepted.

        Raises:
            ValidationError: If the row has an unexpected shape
        """
        data = dict(row)
        if 'date' in data:
            data['date_signed'] = data.pop('date')
        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(
                'Unexpected deal row shape',
                context={'deal_id': str(data.get('id')), 'errors': e.errors(include_url=False)},
            ) from e
