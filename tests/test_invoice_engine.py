"""
Tests for the invoice computation engine.
"""

from datetime import date
from decimal import Decimal

import pytest

from invoicing.engine import (
    can_submit,
    compute_totals,
    generate_invoice_number,
    invoice_number_pattern,
    round2,
    submission_errors,
    validate_line_items,
)
from invoicing.errors import InvoiceValidationError
from invoicing.models.invoice import InvoiceForm, InvoiceType, LineItem, LineItemInput


class TestRound2:
    @pytest.mark.parametrize(
        'value,expected',
        [
            ('2.675', '2.68'),
            ('0.005', '0.01'),
            ('0.004', '0.00'),
            ('-1.005', '-1.01'),
            (10, '10.00'),
            (1.1, '1.10'),
        ],
    )
    def test_half_up(self, value, expected):
        assert round2(value) == Decimal(expected)

    def test_float_uses_shortest_repr(self):
        """1.005 as a float is below 1.005, but its repr is not."""
        assert round2(1.005) == Decimal('1.01')


class TestValidateLineItems:
    def test_drops_invalid_items(self):
        items = [
            {'description': 'Fee', 'quantity': 2, 'unit_price': 100},
            {'description': '   ', 'quantity': 1, 'unit_price': 50},
            {'description': 'Free', 'quantity': 1, 'unit_price': 0},
            {'description': 'Negative', 'quantity': -1, 'unit_price': 10},
            {'description': 'Garbage', 'quantity': 'many', 'unit_price': 10},
        ]
        valid = validate_line_items(items)
        assert [i.description for i in valid] == ['Fee']
        assert valid[0].amount == Decimal('200.00')

    def test_ignores_supplied_amount(self):
        valid = validate_line_items([LineItemInput(description='Fee', quantity=3, unit_price='33.335', amount=1)])
        assert valid[0].amount == Decimal('100.01')

    def test_is_idempotent(self):
        once = validate_line_items([
            {'description': 'Fee', 'quantity': '1.5', 'unit_price': '10.01'},
            {'description': '', 'quantity': 1, 'unit_price': 1},
        ])
        twice = validate_line_items(once)
        assert twice == once
        assert all(isinstance(i, LineItem) for i in twice)

    def test_empty(self):
        assert validate_line_items([]) == []


class TestComputeTotals:
    def test_fee_with_eight_percent_tax(self):
        items = validate_line_items([{'description': 'Fee', 'quantity': 2, 'unit_price': 100}])
        totals = compute_totals(items, Decimal('0.08'))
        assert totals.subtotal == Decimal('200.00')
        assert totals.tax_amount == Decimal('16.00')
        assert totals.total_amount == Decimal('216.00')

    def test_total_is_subtotal_plus_tax(self):
        items = validate_line_items([
            {'description': 'A', 'quantity': 3, 'unit_price': '19.99'},
            {'description': 'B', 'quantity': '0.5', 'unit_price': '7.33'},
        ])
        totals = compute_totals(items, '0.0725')
        assert totals.subtotal == Decimal('63.64')
        assert totals.tax_amount == Decimal('4.61')
        assert totals.total_amount == totals.subtotal + totals.tax_amount

    def test_no_items(self):
        totals = compute_totals([], 0)
        assert totals.to_dict() == {'subtotal': '0.00', 'tax_amount': '0.00', 'total_amount': '0.00'}

    @pytest.mark.parametrize('rate', ['-0.01', '1.5'])
    def test_rate_out_of_range(self, rate):
        with pytest.raises(InvoiceValidationError):
            compute_totals([], rate)


class TestInvoiceNumber:
    def test_first_of_year(self):
        assert generate_invoice_number(2026, 0) == 'INV-2026-0001'

    def test_continues_count(self):
        assert generate_invoice_number(2025, 41) == 'INV-2025-0042'

    def test_grows_past_width(self):
        assert generate_invoice_number(2026, 12345) == 'INV-2026-12346'

    def test_negative_count(self):
        with pytest.raises(InvoiceValidationError):
            generate_invoice_number(2026, -1)

    def test_pattern(self):
        assert invoice_number_pattern(2026) == 'INV-2026-%'


class TestCanSubmit:
    @pytest.fixture
    def form(self):
        return InvoiceForm(
            lawyer_id='law_1',
            date_range_start=date(2026, 2, 1),
            date_range_end=date(2026, 2, 28),
            due_date=date(2026, 3, 15),
            items=[{'description': 'Fee', 'quantity': 1, 'unit_price': 500}],
        )

    def test_complete_form(self, form):
        assert can_submit(form)
        assert submission_errors(form) == []

    def test_missing_lawyer(self, form):
        form.lawyer_id = None
        assert submission_errors(form) == ['lawyer is required']

    def test_publisher_needs_vendor(self, form):
        form.invoice_type = InvoiceType.PUBLISHER
        assert submission_errors(form) == ['lead vendor is required']

    def test_incomplete_range(self, form):
        form.date_range_end = None
        assert not can_submit(form)
        assert 'date range is incomplete' in submission_errors(form)

    def test_missing_due_date(self, form):
        form.due_date = None
        assert submission_errors(form) == ['due date is required']

    def test_only_invalid_items(self, form):
        form.items = [LineItemInput(description='Fee', quantity=0, unit_price=10)]
        assert submission_errors(form) == ['at least one valid line item is required']
