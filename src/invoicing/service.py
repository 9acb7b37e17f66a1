"""
Invoice authoring and status service.

Composes the engine (validation, totals, numbering), the repository and
the deal linker into the flows the dashboard runs:

- create: check form -> totals -> number -> insert -> link deals
- edit: check form -> totals -> unlink old deals -> update -> link new deals
- status: pending -> paid -> chargeback

Neither create nor edit is atomic. Edit runs unlink before link so that a
failure while linking leaves deals unlinked rather than pointing at the
wrong invoice, and a deal removed from the invoice is never left linked.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Iterable

import structlog

from retainer_settlements.logging import OperationTimer

from .engine import (
    InvoiceTotals,
    compute_totals,
    generate_invoice_number,
    submission_errors,
    validate_line_items,
)
from .errors import InvalidInvoiceStatusTransition, InvoiceNotFoundError, InvoiceValidationError
from .linker import InvoiceDealLinker, LinkResult
from .models.invoice import (
    STATUS_TRANSITIONS,
    Invoice,
    InvoiceForm,
    InvoiceStatus,
    InvoiceType,
    LineItem,
    LineItemInput,
)
from .repository import InvoiceRepository

logger = structlog.get_logger(__name__)


@dataclass
class InvoicePreview:
    items: list[LineItem]
    totals: InvoiceTotals

    def to_dict(self) -> dict[str, Any]:
        return {
            'items': [item.model_dump(mode='json') for item in self.items],
            **self.totals.to_dict(),
        }


@dataclass
class InvoiceWriteResult:
    """An invoice after a write, with what happened to its deal links."""

    invoice: Invoice
    link: LinkResult | None = None
    unlinked_ids: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    timings: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            'invoice': self.invoice.model_dump(mode='json'),
            'link': self.link.to_dict() if self.link else None,
            'unlinked_ids': self.unlinked_ids,
            'warnings': self.warnings,
        }


class InvoiceService:
    """Invoice create/edit/status flows over one repository."""

    def __init__(
        self,
        repository: InvoiceRepository,
        linker: InvoiceDealLinker | None = None,
    ):
        self.repository = repository
        self.linker = linker or InvoiceDealLinker(repository)

    # =========================================================================
    # Authoring
    # =========================================================================

    def preview(
        self,
        items: Iterable[LineItemInput | dict[str, Any]],
        tax_rate: Decimal | float | str,
    ) -> InvoicePreview:
        valid = validate_line_items(items)
        return InvoicePreview(items=valid, totals=compute_totals(valid, tax_rate))

    def _check_form(self, form: InvoiceForm) -> InvoicePreview:
        errors = submission_errors(form)
        if errors:
            raise InvoiceValidationError(
                'Invoice cannot be submitted: ' + '; '.join(errors),
                context={'errors': errors},
            )
        return self.preview(form.items, form.tax_rate)

    async def create_invoice(
        self,
        form: InvoiceForm,
        created_by: str,
        today: date | None = None,
    ) -> InvoiceWriteResult:
        """
        Create an invoice and link its deals.

        Raises:
            InvoiceValidationError: Form is incomplete (nothing written)
            DuplicateInvoiceNumberError: Number raced with another author
            DealLinkError: Invoice was created but no deal could be linked
        """
        preview = self._check_form(form)
        timer = OperationTimer()

        year = (today or datetime.now(timezone.utc).date()).year
        with timer.step('number'):
            count = await self.repository.count_numbers_for_year(year)
            number = generate_invoice_number(year, count)

        with timer.step('insert'):
            invoice = await self.repository.create(
                invoice_number=number,
                invoice_type=form.invoice_type,
                lawyer_id=form.lawyer_id if form.invoice_type == InvoiceType.LAWYER else None,
                lead_vendor_id=form.lead_vendor_id if form.invoice_type == InvoiceType.PUBLISHER else None,
                created_by=created_by,
                date_range_start=form.date_range_start,
                date_range_end=form.date_range_end,
                deal_ids=form.deal_ids,
                items=preview.items,
                subtotal=preview.totals.subtotal,
                tax_rate=form.tax_rate,
                tax_amount=preview.totals.tax_amount,
                total_amount=preview.totals.total_amount,
                notes=form.notes,
                due_date=form.due_date,
            )

        with timer.step('link'):
            link = await self.linker.link_deals(form.deal_ids, invoice.id, invoice.link_column)

        warnings = []
        if link.partial:
            with timer.step('trim'):
                invoice = await self._keep_linked_deals(invoice, link)
            warnings.append(self._partial_warning(link))

        result = InvoiceWriteResult(invoice=invoice, link=link, warnings=warnings, timings=timer.summary())
        logger.info(
            'invoice_service.created',
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            total_amount=str(invoice.total_amount),
            **timer.summary(),
        )
        return result

    async def update_invoice(self, invoice_id: str, form: InvoiceForm) -> InvoiceWriteResult:
        """
        Edit an invoice: unlink old deal set, persist changes, link new set.

        Raises:
            InvoiceNotFoundError: No invoice with this id
            InvoiceValidationError: Form is incomplete (nothing written)
            DealLinkError: Changes were saved but no deal could be linked
        """
        preview = self._check_form(form)
        existing = await self._require(invoice_id)
        timer = OperationTimer()

        with timer.step('unlink'):
            unlinked = await self.linker.unlink_deals(invoice_id, existing.link_column)

        with timer.step('update'):
            invoice = await self.repository.update(invoice_id, {
                'invoice_type': form.invoice_type,
                'lawyer_id': form.lawyer_id if form.invoice_type == InvoiceType.LAWYER else None,
                'lead_vendor_id': form.lead_vendor_id if form.invoice_type == InvoiceType.PUBLISHER else None,
                'date_range_start': form.date_range_start,
                'date_range_end': form.date_range_end,
                'deal_ids': form.deal_ids,
                'items': preview.items,
                'subtotal': preview.totals.subtotal,
                'tax_rate': form.tax_rate,
                'tax_amount': preview.totals.tax_amount,
                'total_amount': preview.totals.total_amount,
                'notes': form.notes,
                'due_date': form.due_date,
            })

        with timer.step('link'):
            link = await self.linker.link_deals(form.deal_ids, invoice_id, invoice.link_column)

        warnings = []
        if link.partial:
            with timer.step('trim'):
                invoice = await self._keep_linked_deals(invoice, link)
            warnings.append(self._partial_warning(link))

        result = InvoiceWriteResult(
            invoice=invoice,
            link=link,
            unlinked_ids=unlinked,
            warnings=warnings,
            timings=timer.summary(),
        )
        logger.info('invoice_service.updated', invoice_id=invoice_id, **timer.summary())
        return result

    # =========================================================================
    # Status
    # =========================================================================

    async def mark_paid(self, invoice_id: str) -> InvoiceWriteResult:
        """
        pending -> paid. Paying a publisher invoice settles its deals, which
        move to "Paid to BPO". If that follow-up write fails the invoice
        stays paid and the failure is reported as a warning.
        """
        invoice = await self._transition(invoice_id, InvoiceStatus.PAID)
        result = InvoiceWriteResult(invoice=invoice)

        if invoice.invoice_type == InvoiceType.PUBLISHER and invoice.deal_ids:
            try:
                advanced = await self.repository.advance_deals_to_paid(invoice.deal_ids, invoice_id)
                logger.info('invoice_service.deals_settled', invoice_id=invoice_id, deals=advanced)
            except Exception as e:
                logger.error(
                    'invoice_service.deal_settlement_failed',
                    invoice_id=invoice_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                result.warnings.append(f'Failed to move linked deals to Paid to BPO: {e}')
        return result

    async def request_chargeback(self, invoice_id: str) -> InvoiceWriteResult:
        """paid -> chargeback."""
        invoice = await self._transition(invoice_id, InvoiceStatus.CHARGEBACK)
        return InvoiceWriteResult(invoice=invoice)

    async def delete_invoice(self, invoice_id: str) -> list[str]:
        """Clear every deal link to the invoice, then delete it."""
        existing = await self._require(invoice_id)
        unlinked = await self.linker.unlink_deals(invoice_id, existing.link_column)
        await self.repository.delete(invoice_id)
        logger.info('invoice_service.deleted', invoice_id=invoice_id, unlinked=len(unlinked))
        return unlinked

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _keep_linked_deals(self, invoice: Invoice, link: LinkResult) -> Invoice:
        """Drop skipped deals from the invoice so it only bills what it links."""
        logger.warning('invoice_service.deal_list_trimmed', invoice_id=invoice.id, skipped_ids=link.skipped)
        return await self.repository.update(invoice.id, {'deal_ids': link.linked})

    @staticmethod
    def _partial_warning(link: LinkResult) -> str:
        return f'Only {len(link.linked)} of {len(link.requested)} deals were linked'

    async def _require(self, invoice_id: str) -> Invoice:
        invoice = await self.repository.get(invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(f'Invoice {invoice_id} not found', context={'invoice_id': invoice_id})
        return invoice

    async def _transition(self, invoice_id: str, target: InvoiceStatus) -> Invoice:
        invoice = await self._require(invoice_id)
        if target not in STATUS_TRANSITIONS[invoice.status]:
            raise InvalidInvoiceStatusTransition(
                f'Cannot move invoice from {invoice.status.value} to {target.value}',
                context={'invoice_id': invoice_id, 'from': invoice.status.value, 'to': target.value},
            )
        updated = await self.repository.set_status(invoice_id, target)
        logger.info(
            'invoice_service.status_changed',
            invoice_id=invoice_id,
            from_status=invoice.status.value,
            to_status=target.value,
        )
        return updated
