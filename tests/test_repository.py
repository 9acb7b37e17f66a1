"""
Tests for SettlementRepository and InvoiceRepository against a mocked
PostgresClient.
"""

import json
from datetime import date, datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from invoicing.errors import DuplicateInvoiceNumberError, InvoiceNotFoundError
from invoicing.models.invoice import InvoiceStatus, InvoiceType, LineItem, LinkColumn
from invoicing.repository import InvoiceRepository
from retainer_settlements.errors import (
    DatabaseConstraintError,
    DealNotFoundError,
    UnknownStageError,
    ValidationError,
)
from retainer_settlements.repository import SettlementRepository


@pytest.fixture
def postgres():
    pg = AsyncMock()
    pg.fetch_all.return_value = []
    pg.fetch_one.return_value = None
    pg.execute.return_value = 1
    pg.execute_returning.return_value = []
    return pg


@pytest.fixture
def invoice_row():
    return {
        'id': 'inv1',
        'invoice_number': 'INV-2026-0001',
        'lawyer_id': 'law_1',
        'lead_vendor_id': None,
        'invoice_type': 'lawyer',
        'created_by': 'u_admin',
        'date_range_start': date(2026, 2, 1),
        'date_range_end': date(2026, 2, 28),
        'deal_ids': ['d1'],
        'items': [{'description': 'Fee', 'quantity': 2, 'unit_price': 100, 'amount': 200}],
        'subtotal': Decimal('200.00'),
        'tax_rate': Decimal('0.08'),
        'tax_amount': Decimal('16.00'),
        'total_amount': Decimal('216.00'),
        'status': 'pending',
        'notes': None,
        'due_date': date(2026, 3, 15),
        'created_at': datetime(2026, 3, 1, tzinfo=timezone.utc),
        'updated_at': datetime(2026, 3, 1, tzinfo=timezone.utc),
    }


class TestSettlementRepository:
    @pytest.mark.asyncio
    async def test_list_settlements_filters_to_stage_labels(self, postgres, deal_row):
        postgres.fetch_all.return_value = [deal_row]
        repo = SettlementRepository(postgres)

        deals = await repo.list_settlements()

        sql, params = postgres.fetch_all.await_args.args
        assert 'attorney_profiles' in sql
        assert 'assigned_attorney_id = :attorney_id' not in sql
        assert params['labels'] == [
            'Retainer Signed', 'Attorney Review', 'Approved – Payable', 'Paid to BPO'
        ]
        assert deals[0].assigned_attorney_name == 'Dana Whitfield'

    @pytest.mark.asyncio
    async def test_list_settlements_for_one_attorney(self, postgres):
        repo = SettlementRepository(postgres)

        await repo.list_settlements(attorney_id='att_1')

        sql, params = postgres.fetch_all.await_args.args
        assert 'd.assigned_attorney_id = :attorney_id' in sql
        assert params['attorney_id'] == 'att_1'

    @pytest.mark.asyncio
    async def test_bad_row_is_rejected(self, postgres, deal_row):
        deal_row['unexpected'] = True
        postgres.fetch_all.return_value = [deal_row]

        with pytest.raises(ValidationError):
            await SettlementRepository(postgres).list_settlements()

    @pytest.mark.asyncio
    async def test_update_deal_status(self, postgres):
        await SettlementRepository(postgres).update_deal_status('d1', 'Attorney Review')

        sql, params = postgres.execute.await_args.args
        assert sql.startswith('UPDATE daily_deal_flow SET status')
        assert params == {'status': 'Attorney Review', 'deal_id': 'd1'}

    @pytest.mark.asyncio
    async def test_update_unknown_stage_never_hits_store(self, postgres):
        with pytest.raises(UnknownStageError):
            await SettlementRepository(postgres).update_deal_status('d1', 'Submitted')
        postgres.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_zero_rows_raises(self, postgres):
        postgres.execute.return_value = 0
        with pytest.raises(DealNotFoundError):
            await SettlementRepository(postgres).update_deal_status('ghost', 'Attorney Review')

    @pytest.mark.asyncio
    async def test_mark_paid_to_bpo(self, postgres):
        await SettlementRepository(postgres).mark_paid_to_bpo('d1')
        assert postgres.execute.await_args.args[1]['status'] == 'Paid to BPO'


class TestInvoiceRepositoryInvoices:
    @pytest.mark.asyncio
    async def test_count_numbers_for_year(self, postgres):
        postgres.fetch_one.return_value = {'n': 12}

        count = await InvoiceRepository(postgres).count_numbers_for_year(2026)

        sql, params = postgres.fetch_one.await_args.args
        assert 'ILIKE :pattern' in sql
        assert params == {'pattern': 'INV-2026-%'}
        assert count == 12

    @pytest.mark.asyncio
    async def test_create_serializes_items(self, postgres, invoice_row):
        postgres.execute_returning.return_value = [invoice_row]
        item = LineItem(description='Fee', quantity=Decimal('2'), unit_price=Decimal('100'), amount=Decimal('200.00'))

        invoice = await InvoiceRepository(postgres).create(
            invoice_number='INV-2026-0001',
            invoice_type=InvoiceType.LAWYER,
            lawyer_id='law_1',
            lead_vendor_id=None,
            created_by='u_admin',
            date_range_start=date(2026, 2, 1),
            date_range_end=date(2026, 2, 28),
            deal_ids=['d1'],
            items=[item],
            subtotal=Decimal('200.00'),
            tax_rate=Decimal('0.08'),
            tax_amount=Decimal('16.00'),
            total_amount=Decimal('216.00'),
        )

        sql, params = postgres.execute_returning.await_args.args
        assert 'CAST(:items AS jsonb)' in sql
        assert json.loads(params['items']) == [
            {'description': 'Fee', 'quantity': 2.0, 'unit_price': 100.0, 'amount': 200.0}
        ]
        assert params['invoice_type'] == 'lawyer'
        assert params['status'] == 'pending'
        assert invoice.id == 'inv1'

    @pytest.mark.asyncio
    async def test_create_duplicate_number(self, postgres):
        postgres.execute_returning.side_effect = DatabaseConstraintError(
            'duplicate key value violates unique constraint "invoices_invoice_number_key"'
        )

        with pytest.raises(DuplicateInvoiceNumberError) as exc_info:
            await InvoiceRepository(postgres).create(
                invoice_number='INV-2026-0001',
                invoice_type=InvoiceType.LAWYER,
                lawyer_id='law_1',
                lead_vendor_id=None,
                created_by='u_admin',
                date_range_start=date(2026, 2, 1),
                date_range_end=date(2026, 2, 28),
                deal_ids=[],
                items=[],
                subtotal=Decimal('0'),
                tax_rate=Decimal('0'),
                tax_amount=Decimal('0'),
                total_amount=Decimal('0'),
            )
        assert exc_info.value.context == {'invoice_number': 'INV-2026-0001'}

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_column(self, postgres):
        with pytest.raises(ValueError):
            await InvoiceRepository(postgres).update('inv1', {'invoice_number': 'INV-1999-0001'})
        postgres.execute_returning.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_missing_invoice(self, postgres):
        with pytest.raises(InvoiceNotFoundError):
            await InvoiceRepository(postgres).update('ghost', {'notes': 'x'})

    @pytest.mark.asyncio
    async def test_set_status(self, postgres, invoice_row):
        invoice_row['status'] = 'paid'
        postgres.execute_returning.return_value = [invoice_row]

        invoice = await InvoiceRepository(postgres).set_status('inv1', InvoiceStatus.PAID)

        sql, params = postgres.execute_returning.await_args.args
        assert 'status = :status' in sql
        assert 'updated_at = now()' in sql
        assert params == {'status': 'paid', 'invoice_id': 'inv1'}
        assert invoice.status == InvoiceStatus.PAID

    @pytest.mark.asyncio
    async def test_get_missing(self, postgres):
        assert await InvoiceRepository(postgres).get('ghost') is None

    @pytest.mark.asyncio
    async def test_list_invoices_filters(self, postgres, invoice_row):
        postgres.fetch_all.return_value = [invoice_row]

        invoices = await InvoiceRepository(postgres).list_invoices(
            lawyer_id='law_1', status=InvoiceStatus.PENDING
        )

        sql, params = postgres.fetch_all.await_args.args
        assert 'WHERE lawyer_id = :lawyer_id AND status = :status' in sql
        assert sql.endswith('ORDER BY created_at DESC')
        assert params == {'lawyer_id': 'law_1', 'status': 'pending'}
        assert len(invoices) == 1

    @pytest.mark.asyncio
    async def test_delete(self, postgres):
        postgres.execute.return_value = 0
        assert await InvoiceRepository(postgres).delete('ghost') is False


class TestInvoiceRepositoryDealLinks:
    @pytest.mark.asyncio
    async def test_set_deal_links_returns_updated_ids(self, postgres):
        postgres.execute_returning.return_value = [{'id': 'd1'}]

        linked = await InvoiceRepository(postgres).set_deal_links(
            ['d1', 'd2'], 'inv1', LinkColumn.PUBLISHER_INVOICE_ID
        )

        sql, params = postgres.execute_returning.await_args.args
        assert 'SET publisher_invoice_id = :invoice_id' in sql
        assert '(publisher_invoice_id IS NULL OR publisher_invoice_id = :invoice_id)' in sql
        assert params == {'invoice_id': 'inv1', 'deal_ids': ['d1', 'd2']}
        assert linked == ['d1']

    @pytest.mark.asyncio
    async def test_set_deal_links_rejects_arbitrary_column(self, postgres):
        with pytest.raises(ValueError):
            await InvoiceRepository(postgres).set_deal_links(['d1'], 'inv1', 'status')

    @pytest.mark.asyncio
    async def test_clear_deal_links(self, postgres):
        postgres.execute_returning.return_value = [{'id': 'd1'}, {'id': 'd2'}]

        cleared = await InvoiceRepository(postgres).clear_deal_links('inv1', LinkColumn.INVOICE_ID)

        sql = postgres.execute_returning.await_args.args[0]
        assert 'SET invoice_id = NULL WHERE invoice_id = :invoice_id' in sql
        assert cleared == ['d1', 'd2']

    @pytest.mark.asyncio
    async def test_advance_deals_to_paid(self, postgres):
        postgres.execute.return_value = 2

        assert await InvoiceRepository(postgres).advance_deals_to_paid(['d1', 'd2'], 'inv1') == 2
        sql, params = postgres.execute.await_args.args
        assert 'publisher_invoice_id = :invoice_id' in sql
        assert params['status'] == 'Paid to BPO'
        assert params['invoice_id'] == 'inv1'

    @pytest.mark.asyncio
    async def test_advance_no_deals(self, postgres):
        assert await InvoiceRepository(postgres).advance_deals_to_paid([], 'inv1') == 0
        postgres.execute.assert_not_called()


class TestEligibleDeals:
    @pytest.mark.asyncio
    async def test_lawyer_range_is_inclusive(self, postgres, deal_row):
        deal_row['date'] = deal_row.pop('date_signed')
        del deal_row['assigned_attorney_name']
        postgres.fetch_all.return_value = [deal_row]

        deals = await InvoiceRepository(postgres).list_deals_for_lawyer_invoice(
            'att_1', date(2026, 2, 1), date(2026, 2, 28), editing_invoice_id='inv1'
        )

        sql, params = postgres.fetch_all.await_args.args
        assert '(invoice_id IS NULL OR invoice_id = :editing_invoice_id)' in sql
        assert params['date_start'] == datetime(2026, 2, 1, tzinfo=timezone.utc)
        assert params['date_end'] == datetime(2026, 2, 28, 23, 59, 59, 999000, tzinfo=timezone.utc)
        assert params['editing_invoice_id'] == 'inv1'
        assert deals[0].date_signed == date(2026, 2, 10)

    @pytest.mark.asyncio
    async def test_publisher_deals_are_approved_payable(self, postgres):
        await InvoiceRepository(postgres).list_deals_for_publisher_invoice('Acme Leads')

        sql, params = postgres.fetch_all.await_args.args
        assert params['status'] == 'Approved – Payable'
        assert params['vendor_name'] == 'Acme Leads'
        assert 'date_start' not in params
        assert 'created_at >=' not in sql

    @pytest.mark.asyncio
    async def test_publisher_deals_with_range(self, postgres):
        await InvoiceRepository(postgres).list_deals_for_publisher_invoice(
            'Acme Leads', date(2026, 2, 1), date(2026, 2, 28)
        )

        sql, params = postgres.fetch_all.await_args.args
        assert 'created_at >= :date_start' in sql
        assert 'created_at <= :date_end' in sql

    @pytest.mark.asyncio
    async def test_get_vendor_name(self, postgres):
        postgres.fetch_one.return_value = {'lead_vendor': 'Acme Leads'}
        assert await InvoiceRepository(postgres).get_vendor_name('ctr_1') == 'Acme Leads'

    @pytest.mark.asyncio
    async def test_get_vendor_name_missing(self, postgres):
        assert await InvoiceRepository(postgres).get_vendor_name('ghost') is None
