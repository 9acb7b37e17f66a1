"""
Pytest configuration and shared fixtures.

Key fixtures:
- make_deal: factory for Deal models in any stage
- store: AsyncMock standing in for SettlementRepository writes
- ledger / controller: a loaded SettlementLedger and its TransitionController
- deal_row: a daily_deal_flow row as the store returns it
"""

import sys
from datetime import date, datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock
from uuid import UUID

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

# Load environment variables
from dotenv import load_dotenv

env_file = Path(__file__).parent.parent / '.env'
if env_file.exists():
    load_dotenv(env_file)

from retainer_settlements.models.deal import Deal
from retainer_settlements.pipeline.ledger import SettlementLedger
from retainer_settlements.pipeline.transitions import TransitionController


RETAINER_SIGNED = 'Retainer Signed'
ATTORNEY_REVIEW = 'Attorney Review'
APPROVED_PAYABLE = 'Approved – Payable'
PAID_TO_BPO = 'Paid to BPO'


@pytest.fixture
def make_deal():
    """Factory: make_deal('d1', status='Attorney Review')."""

    def _make(deal_id: str = 'd1', status: str = RETAINER_SIGNED, **overrides) -> Deal:
        fields = {
            'id': deal_id,
            'submission_id': f'sub_{deal_id}',
            'insured_name': 'Maria Lopez',
            'client_phone_number': '555-0100',
            'lead_vendor': 'Acme Leads',
            'status': status,
            'assigned_attorney_id': 'att_1',
        }
        fields.update(overrides)
        return Deal(**fields)

    return _make


@pytest.fixture
def store() -> AsyncMock:
    """Settlement store whose writes succeed unless told otherwise."""
    mock = AsyncMock()
    mock.update_deal_status.return_value = None
    mock.mark_paid_to_bpo.return_value = None
    return mock


@pytest.fixture
def ledger(store, make_deal) -> SettlementLedger:
    """Ledger loaded with one deal per stage: d1..d4."""
    ledger = SettlementLedger(store)
    ledger.load([
        make_deal('d1', RETAINER_SIGNED),
        make_deal('d2', ATTORNEY_REVIEW),
        make_deal('d3', APPROVED_PAYABLE),
        make_deal('d4', PAID_TO_BPO),
    ])
    return ledger


@pytest.fixture
def controller(ledger) -> TransitionController:
    return TransitionController(ledger)


@pytest.fixture
def deal_row() -> dict:
    """A daily_deal_flow row with native driver types (UUID, date, Decimal)."""
    from decimal import Decimal

    return {
        'id': UUID('11111111-1111-1111-1111-111111111111'),
        'submission_id': 'SUB-1001',
        'insured_name': 'Maria Lopez',
        'client_phone_number': '555-0100',
        'lead_vendor': 'Acme Leads',
        'date_signed': date(2026, 2, 10),
        'status': ATTORNEY_REVIEW,
        'assigned_attorney_id': UUID('22222222-2222-2222-2222-222222222222'),
        'assigned_attorney_name': 'Dana Whitfield',
        'face_amount': Decimal('25000.00'),
        'invoice_id': None,
        'publisher_invoice_id': None,
        'created_at': datetime(2026, 2, 10, 14, 0, tzinfo=timezone.utc),
    }


@pytest.fixture
def make_invoice():
    """Factory: make_invoice('inv1', status='paid', invoice_type='publisher')."""
    from decimal import Decimal

    from invoicing.models.invoice import Invoice

    def _make(invoice_id: str = 'inv1', **overrides) -> Invoice:
        fields = {
            'id': invoice_id,
            'invoice_number': 'INV-2026-0001',
            'invoice_type': 'lawyer',
            'lawyer_id': 'law_1',
            'lead_vendor_id': None,
            'created_by': 'u_admin',
            'date_range_start': date(2026, 2, 1),
            'date_range_end': date(2026, 2, 28),
            'deal_ids': ['d1', 'd2'],
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
        fields.update(overrides)
        return Invoice(**fields)

    return _make
