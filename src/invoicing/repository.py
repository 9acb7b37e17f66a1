"""
Repository for invoices and the deal columns that link to them.

Key design decisions:
- Deal links are written with RETURNING id so the linker can compare what
  was asked for with what actually changed.
- set_deal_links() never takes a deal away from a different invoice of the
  same type: such deals are simply not updated and show up as skipped.
- The link column is interpolated into SQL, so it only ever comes from the
  LinkColumn enum.
"""

import json
from datetime import date, datetime, time, timezone
from typing import Any

import structlog

from retainer_settlements.clients.postgres_client import PostgresClient
from retainer_settlements.errors import DatabaseConstraintError
from retainer_settlements.models.deal import Deal
from retainer_settlements.pipeline.stages import PAID_TO_BPO_LABEL, Stage

from .engine import invoice_number_pattern
from .errors import DuplicateInvoiceNumberError, InvoiceNotFoundError
from .models.invoice import Invoice, InvoiceStatus, InvoiceType, LineItem, LinkColumn

logger = structlog.get_logger(__name__)


INVOICE_COLUMNS = (
    'id, invoice_number, lawyer_id, lead_vendor_id, invoice_type, created_by, '
    'date_range_start, date_range_end, deal_ids, items, subtotal, tax_rate, '
    'tax_amount, total_amount, status, notes, due_date, created_at, updated_at'
)

DEAL_FLOW_COLUMNS = (
    'id, submission_id, insured_name, client_phone_number, lead_vendor, date, '
    'status, assigned_attorney_id, face_amount, invoice_id, publisher_invoice_id, created_at'
)

# Columns update() may write
_UPDATABLE_COLUMNS = frozenset({
    'lawyer_id', 'lead_vendor_id', 'invoice_type', 'date_range_start',
    'date_range_end', 'deal_ids', 'items', 'subtotal', 'tax_rate',
    'tax_amount', 'total_amount', 'status', 'notes', 'due_date',
})


def _day_start(value: date) -> datetime:
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def _day_end(value: date) -> datetime:
    """Last millisecond of the day, so the end date is inclusive."""
    return datetime.combine(value, time(23, 59, 59, 999000), tzinfo=timezone.utc)


def _items_to_jsonb(items: list[LineItem]) -> str:
    return json.dumps([item.to_json() for item in items])


def _to_params(fields: dict[str, Any]) -> dict[str, Any]:
    params = {}
    for key, value in fields.items():
        if key == 'items':
            value = _items_to_jsonb(value)
        elif isinstance(value, (InvoiceType, InvoiceStatus)):
            value = value.value
        params[key] = value
    return params


class InvoiceRepository:
    """CRUD for invoices plus the deal-side link columns."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    # =========================================================================
    # Invoices
    # =========================================================================

    async def count_numbers_for_year(self, year: int) -> int:
        """How many invoice numbers have been issued for a year."""
        row = await self.postgres.fetch_one(
            'SELECT COUNT(*) AS n FROM invoices WHERE invoice_number ILIKE :pattern',
            {'pattern': invoice_number_pattern(year)},
        )
        return int(row['n']) if row else 0

    async def create(
        self,
        *,
        invoice_number: str,
        invoice_type: InvoiceType,
        lawyer_id: str | None,
        lead_vendor_id: str | None,
        created_by: str,
        date_range_start: date,
        date_range_end: date,
        deal_ids: list[str],
        items: list[LineItem],
        subtotal,
        tax_rate,
        tax_amount,
        total_amount,
        status: InvoiceStatus = InvoiceStatus.PENDING,
        notes: str | None = None,
        due_date: date | None = None,
    ) -> Invoice:
        """
        Insert an invoice.

        Raises:
            DuplicateInvoiceNumberError: invoice_number already taken
        """
        sql = f"""
            INSERT INTO invoices (
                invoice_number, lawyer_id, lead_vendor_id, invoice_type,
                created_by, date_range_start, date_range_end, deal_ids,
                items, subtotal, tax_rate, tax_amount, total_amount,
                status, notes, due_date
            ) VALUES (
                :invoice_number, :lawyer_id, :lead_vendor_id, :invoice_type,
                :created_by, :date_range_start, :date_range_end, :deal_ids,
                CAST(:items AS jsonb), :subtotal, :tax_rate, :tax_amount, :total_amount,
                :status, :notes, :due_date
            )
            RETURNING {INVOICE_COLUMNS}
        """
        params = _to_params({
            'invoice_number': invoice_number,
            'lawyer_id': lawyer_id,
            'lead_vendor_id': lead_vendor_id,
            'invoice_type': invoice_type,
            'created_by': created_by,
            'date_range_start': date_range_start,
            'date_range_end': date_range_end,
            'deal_ids': list(deal_ids),
            'items': items,
            'subtotal': subtotal,
            'tax_rate': tax_rate,
            'tax_amount': tax_amount,
            'total_amount': total_amount,
            'status': status,
            'notes': notes,
            'due_date': due_date,
        })
        try:
            rows = await self.postgres.execute_returning(sql, params)
        except DatabaseConstraintError as e:
            if 'invoice_number' in str(e):
                raise DuplicateInvoiceNumberError(
                    f'Invoice number {invoice_number} is already in use',
                    context={'invoice_number': invoice_number},
                ) from e
            raise

        invoice = Invoice.from_row(rows[0])
        logger.info(
            'invoice_repository.created',
            invoice_id=invoice.id,
            invoice_number=invoice.invoice_number,
            invoice_type=invoice.invoice_type.value,
        )
        return invoice

    async def update(self, invoice_id: str, fields: dict[str, Any]) -> Invoice:
        """
        Update some columns of an invoice.

        Raises:
            ValueError: A field is not an updatable column
            InvoiceNotFoundError: No invoice with this id
        """
        unknown = set(fields) - _UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f'Cannot update invoice columns: {sorted(unknown)}')
        if not fields:
            invoice = await self.get(invoice_id)
            if invoice is None:
                raise InvoiceNotFoundError(f'Invoice {invoice_id} not found', context={'invoice_id': invoice_id})
            return invoice

        assignments = ', '.join(
            f'{col} = CAST(:{col} AS jsonb)' if col == 'items' else f'{col} = :{col}'
            for col in sorted(fields)
        )
        sql = f"""
            UPDATE invoices SET {assignments}, updated_at = now()
            WHERE id = :invoice_id
            RETURNING {INVOICE_COLUMNS}
        """
        params = _to_params(fields)
        params['invoice_id'] = invoice_id
        rows = await self.postgres.execute_returning(sql, params)
        if not rows:
            raise InvoiceNotFoundError(f'Invoice {invoice_id} not found', context={'invoice_id': invoice_id})
        logger.info('invoice_repository.updated', invoice_id=invoice_id, fields=sorted(fields))
        return Invoice.from_row(rows[0])

    async def set_status(self, invoice_id: str, status: InvoiceStatus) -> Invoice:
        return await self.update(invoice_id, {'status': status})

    async def get(self, invoice_id: str) -> Invoice | None:
        row = await self.postgres.fetch_one(
            f'SELECT {INVOICE_COLUMNS} FROM invoices WHERE id = :invoice_id',
            {'invoice_id': invoice_id},
        )
        return Invoice.from_row(row) if row else None

    async def list_invoices(
        self,
        lawyer_id: str | None = None,
        status: InvoiceStatus | None = None,
        invoice_type: InvoiceType | None = None,
    ) -> list[Invoice]:
        """Invoices newest first, optionally filtered."""
        clauses = []
        params: dict[str, Any] = {}
        if lawyer_id:
            clauses.append('lawyer_id = :lawyer_id')
            params['lawyer_id'] = lawyer_id
        if status:
            clauses.append('status = :status')
            params['status'] = status.value
        if invoice_type:
            clauses.append('invoice_type = :invoice_type')
            params['invoice_type'] = invoice_type.value

        sql = f'SELECT {INVOICE_COLUMNS} FROM invoices'
        if clauses:
            sql += ' WHERE ' + ' AND '.join(clauses)
        sql += ' ORDER BY created_at DESC'

        rows = await self.postgres.fetch_all(sql, params)
        return [Invoice.from_row(row) for row in rows]

    async def delete(self, invoice_id: str) -> bool:
        deleted = await self.postgres.execute(
            'DELETE FROM invoices WHERE id = :invoice_id',
            {'invoice_id': invoice_id},
        )
        logger.info('invoice_repository.deleted', invoice_id=invoice_id, deleted=deleted)
        return deleted > 0

    # =========================================================================
    # Deal links
    # =========================================================================

    async def set_deal_links(
        self, deal_ids: list[str], invoice_id: str, column: LinkColumn
    ) -> list[str]:
        """
        Point deals at an invoice.

        Deals already linked to another invoice through the same column are
        left alone.

        Returns:
            Ids of the deals that were actually updated
        """
        col = LinkColumn(column).value
        sql = f"""
            UPDATE daily_deal_flow SET {col} = :invoice_id
            WHERE id = ANY(:deal_ids)
              AND ({col} IS NULL OR {col} = :invoice_id)
            RETURNING id
        """
        rows = await self.postgres.execute_returning(
            sql, {'invoice_id': invoice_id, 'deal_ids': list(deal_ids)}
        )
        return [str(row['id']) for row in rows]

    async def clear_deal_links(self, invoice_id: str, column: LinkColumn) -> list[str]:
        """Unlink every deal pointing at the invoice. Returns their ids."""
        col = LinkColumn(column).value
        rows = await self.postgres.execute_returning(
            f'UPDATE daily_deal_flow SET {col} = NULL WHERE {col} = :invoice_id RETURNING id',
            {'invoice_id': invoice_id},
        )
        return [str(row['id']) for row in rows]

    async def advance_deals_to_paid(self, deal_ids: list[str], invoice_id: str) -> int:
        """
        Move deals to "Paid to BPO" (publisher invoice settled).

        Only deals still linked to this publisher invoice move.
        """
        if not deal_ids:
            return 0
        return await self.postgres.execute(
            """
            UPDATE daily_deal_flow SET status = :status
            WHERE id = ANY(:deal_ids) AND publisher_invoice_id = :invoice_id
            """,
            {'status': PAID_TO_BPO_LABEL, 'deal_ids': list(deal_ids), 'invoice_id': invoice_id},
        )

    # =========================================================================
    # Deals eligible for an invoice
    # =========================================================================

    async def list_deals_for_lawyer_invoice(
        self,
        lawyer_id: str,
        date_start: date,
        date_end: date,
        editing_invoice_id: str | None = None,
    ) -> list[Deal]:
        """
        A lawyer's deals created inside the date range that are not billed on
        another lawyer invoice.
        """
        sql = f"""
            SELECT {DEAL_FLOW_COLUMNS}
            FROM daily_deal_flow
            WHERE assigned_attorney_id = :lawyer_id
              AND created_at >= :date_start
              AND created_at <= :date_end
              AND (invoice_id IS NULL OR invoice_id = :editing_invoice_id)
            ORDER BY created_at DESC
        """
        rows = await self.postgres.fetch_all(sql, {
            'lawyer_id': lawyer_id,
            'date_start': _day_start(date_start),
            'date_end': _day_end(date_end),
            'editing_invoice_id': editing_invoice_id,
        })
        return [Deal.from_row(row) for row in rows]

    async def list_deals_for_publisher_invoice(
        self,
        vendor_name: str,
        date_start: date | None = None,
        date_end: date | None = None,
        editing_invoice_id: str | None = None,
    ) -> list[Deal]:
        """
        A lead vendor's "Approved – Payable" deals that are not billed on
        another publisher invoice. The date range is optional.
        """
        clauses = [
            'lead_vendor = :vendor_name',
            'status = :status',
            '(publisher_invoice_id IS NULL OR publisher_invoice_id = :editing_invoice_id)',
        ]
        params: dict[str, Any] = {
            'vendor_name': vendor_name,
            'status': Stage.APPROVED_PAYABLE.label,
            'editing_invoice_id': editing_invoice_id,
        }
        if date_start is not None:
            clauses.append('created_at >= :date_start')
            params['date_start'] = _day_start(date_start)
        if date_end is not None:
            clauses.append('created_at <= :date_end')
            params['date_end'] = _day_end(date_end)

        sql = (
            f'SELECT {DEAL_FLOW_COLUMNS} FROM daily_deal_flow WHERE '
            + ' AND '.join(clauses)
            + ' ORDER BY created_at DESC'
        )
        rows = await self.postgres.fetch_all(sql, params)
        return [Deal.from_row(row) for row in rows]

    async def get_vendor_name(self, center_id: str) -> str | None:
        """Lead vendor name of a center (publisher invoices bill centers)."""
        row = await self.postgres.fetch_one(
            'SELECT lead_vendor FROM centers WHERE id = :center_id',
            {'center_id': center_id},
        )
        return row['lead_vendor'] if row else None
