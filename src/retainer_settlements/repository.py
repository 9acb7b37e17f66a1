"""
Repository for settlement reads and stage writes on daily_deal_flow.

Key design decisions:
- The settlement working set is every deal whose status is one of the four
  registered stage labels, newest first.
- Attorney display names come from attorney_profiles in the same query.
- A status update that touches zero rows raises DealNotFoundError, so the
  caller's optimistic change is rolled back instead of silently kept.
"""

from typing import Any

import structlog

from .clients.postgres_client import PostgresClient
from .errors import DealNotFoundError
from .models.deal import Deal
from .pipeline.stages import PAID_TO_BPO_LABEL, stage_for, stage_labels

logger = structlog.get_logger(__name__)


SETTLEMENT_COLUMNS = """
    d.id, d.submission_id, d.insured_name, d.client_phone_number,
    d.lead_vendor, d.date AS date_signed, d.status, d.assigned_attorney_id,
    NULLIF(TRIM(a.full_name), '') AS assigned_attorney_name,
    d.face_amount, d.invoice_id, d.publisher_invoice_id, d.created_at
"""


class SettlementRepository:
    """Reads the settlement working set and persists stage changes."""

    def __init__(self, postgres: PostgresClient):
        self.postgres = postgres

    async def list_settlements(self, attorney_id: str | None = None) -> list[Deal]:
        """
        Deals currently in a settlement stage.

        Args:
            attorney_id: Restrict to one attorney's deals (lawyer callers)

        Returns:
            Parsed Deal models, newest first
        """
        sql = f"""
            SELECT {SETTLEMENT_COLUMNS}
            FROM daily_deal_flow d
            LEFT JOIN attorney_profiles a ON a.user_id = d.assigned_attorney_id
            WHERE d.status = ANY(:labels)
        """
        params: dict[str, Any] = {'labels': stage_labels()}
        if attorney_id is not None:
            sql += ' AND d.assigned_attorney_id = :attorney_id'
            params['attorney_id'] = attorney_id
        sql += ' ORDER BY d.created_at DESC'

        rows = await self.postgres.fetch_all(sql, params)
        deals = [Deal.from_row(row) for row in rows]
        logger.debug('settlement_repository.listed', count=len(deals), attorney_id=attorney_id)
        return deals

    async def update_deal_status(self, deal_id: str, status: str) -> None:
        """
        Persist a stage label on a deal.

        Raises:
            UnknownStageError: status is not a settlement stage
            DealNotFoundError: No row has this id
        """
        stage_for(status)
        updated = await self.postgres.execute(
            'UPDATE daily_deal_flow SET status = :status WHERE id = :deal_id',
            {'status': status, 'deal_id': deal_id},
        )
        if updated == 0:
            raise DealNotFoundError(
                f'Deal {deal_id} was not updated',
                context={'deal_id': deal_id, 'status': status},
            )
        logger.info('settlement_repository.status_updated', deal_id=deal_id, status=status)

    async def mark_paid_to_bpo(self, deal_id: str) -> None:
        """Move a deal to the terminal "Paid to BPO" stage."""
        await self.update_deal_status(deal_id, PAID_TO_BPO_LABEL)
