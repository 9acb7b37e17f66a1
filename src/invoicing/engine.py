"""
Invoice computation engine.

Pure functions: line item validation, totals, invoice numbering and the
submission check. Nothing here touches the database.

Rounding is to cents, half away from zero, applied at every step in this
order: each line amount, then the tax amount. Historical invoices were
computed that way, so changing the order would move totals by a cent.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from .config import invoice_config
from .errors import InvoiceValidationError
from .models.invoice import InvoiceForm, InvoiceType, LineItem, LineItemInput

logger = structlog.get_logger(__name__)

CENT = Decimal('0.01')


def round2(value: Decimal | float | int | str) -> Decimal:
    """Round to 2 decimal places, halves away from zero."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal

    def to_dict(self) -> dict[str, str]:
        return {
            'subtotal': str(self.subtotal),
            'tax_amount': str(self.tax_amount),
            'total_amount': str(self.total_amount),
        }


def _coerce(item: Any) -> LineItemInput | None:
    if isinstance(item, LineItemInput):
        return item
    if isinstance(item, LineItem):
        return LineItemInput(
            description=item.description,
            quantity=item.quantity,
            unit_price=item.unit_price,
        )
    try:
        return LineItemInput.model_validate(item)
    except PydanticValidationError:
        return None


def validate_line_items(items: Iterable[LineItemInput | LineItem | dict[str, Any]]) -> list[LineItem]:
    """
    Keep the usable line items and recompute their amounts.

    An item is usable when its description is not blank and both quantity
    and unit price are positive. Caller-supplied amounts are ignored.
    Running the result through again returns the same list.
    """
    valid: list[LineItem] = []
    dropped = 0
    for raw in items:
        item = _coerce(raw)
        if (
            item is None
            or not item.description.strip()
            or item.quantity <= 0
            or item.unit_price <= 0
        ):
            dropped += 1
            continue
        valid.append(
            LineItem(
                description=item.description,
                quantity=item.quantity,
                unit_price=item.unit_price,
                amount=round2(item.quantity * item.unit_price),
            )
        )
    if dropped:
        logger.debug('invoice_engine.items_dropped', dropped=dropped, kept=len(valid))
    return valid


def compute_totals(valid_items: Iterable[LineItem], tax_rate: Decimal | float | str) -> InvoiceTotals:
    """
    subtotal = sum of amounts; tax = round2(subtotal * rate); total = subtotal + tax.

    Raises:
        InvoiceValidationError: tax_rate outside [0, 1]
    """
    rate = tax_rate if isinstance(tax_rate, Decimal) else Decimal(str(tax_rate))
    if rate < 0 or rate > 1:
        raise InvoiceValidationError(
            'Tax rate must be between 0 and 1',
            context={'tax_rate': str(rate)},
        )
    subtotal = round2(sum((item.amount for item in valid_items), Decimal('0')))
    tax_amount = round2(subtotal * rate)
    return InvoiceTotals(
        subtotal=subtotal,
        tax_amount=tax_amount,
        total_amount=subtotal + tax_amount,
    )


def invoice_number_pattern(year: int) -> str:
    """SQL LIKE pattern matching every invoice number issued in a year."""
    return f'{invoice_config.NUMBER_PREFIX}-{year}-%'


def generate_invoice_number(year: int, existing_count_for_year: int) -> str:
    """
    INV-<year>-<count + 1, zero padded>.

    Count-then-use: the number is not reserved, so two authors counting at
    the same moment get the same number. The invoices.invoice_number unique
    constraint catches the second insert.
    """
    if existing_count_for_year < 0:
        raise InvoiceValidationError(
            'Invoice count cannot be negative',
            context={'existing_count_for_year': existing_count_for_year},
        )
    seq = str(existing_count_for_year + 1).zfill(invoice_config.SEQUENCE_WIDTH)
    return f'{invoice_config.NUMBER_PREFIX}-{year}-{seq}'


def submission_errors(form: InvoiceForm) -> list[str]:
    """Reasons the form cannot be submitted; empty when it can."""
    errors = []
    if not form.counterparty_id:
        errors.append(
            'lead vendor is required' if form.invoice_type == InvoiceType.PUBLISHER else 'lawyer is required'
        )
    if form.date_range_start is None or form.date_range_end is None:
        errors.append('date range is incomplete')
    if form.due_date is None:
        errors.append('due date is required')
    if not validate_line_items(form.items):
        errors.append('at least one valid line item is required')
    return errors


def can_submit(form: InvoiceForm) -> bool:
    return not submission_errors(form)
