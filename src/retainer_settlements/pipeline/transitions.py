"""
Transition controller for kanban drag-and-drop.

Drag lifecycle: idle -> dragging -> dropped (same or other column) -> idle.

A drop onto a different column applies the new stage and its derived
payment state to the ledger immediately, then persists it; a failed write
puts the card back where it was and re-raises. Dropping onto the same
column does nothing and never reaches the store.

Two columns are special:
- "Paid to BPO" is terminal, so cards in it cannot be dragged out.
- Dropping onto "Paid to BPO" is an outbound payment and goes through
  SettlementLedger.pay_outbound(), so the safety lock applies.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog

from ..errors import IneligibleOperationError
from ..models.deal import PaymentState
from .commands import StageTransitionCommand, execute_command
from .ledger import SettlementLedger
from .stages import is_terminal, stage_for

logger = structlog.get_logger(__name__)


class DragPhase(str, Enum):
    IDLE = 'idle'
    DRAGGING = 'dragging'
    DROPPED_SAME_COLUMN = 'dropped_same_column'
    DROPPED_OTHER_COLUMN = 'dropped_other_column'


class TransitionOutcome(str, Enum):
    NOOP = 'noop'
    COMMITTED = 'committed'


@dataclass
class TransitionResult:
    deal_id: str
    from_status: str
    to_status: str
    outcome: TransitionOutcome
    payment: PaymentState

    def to_dict(self) -> dict[str, Any]:
        return {
            'deal_id': self.deal_id,
            'from_status': self.from_status,
            'to_status': self.to_status,
            'outcome': self.outcome.value,
            'inbound_payment_status': self.payment.inbound.value,
            'outbound_payment_status': self.payment.outbound.value,
        }


class TransitionController:
    """Drives stage changes requested from the kanban board."""

    def __init__(self, ledger: SettlementLedger):
        self.ledger = ledger
        self.phase = DragPhase.IDLE
        self.dragging_deal_id: str | None = None

    def begin_drag(self, deal_id: str) -> None:
        self.ledger.get(deal_id)
        self.dragging_deal_id = deal_id
        self.phase = DragPhase.DRAGGING

    def cancel_drag(self) -> None:
        self.dragging_deal_id = None
        self.phase = DragPhase.IDLE

    async def drop(self, column_label: str) -> TransitionResult:
        """
        Finish the current drag on the column with the given label.

        Raises:
            IneligibleOperationError: No drag in progress, or the move is
                not allowed
        """
        if self.phase != DragPhase.DRAGGING or self.dragging_deal_id is None:
            raise IneligibleOperationError('No card is being dragged')

        deal_id = self.dragging_deal_id
        same = self.ledger.get(deal_id).stage == column_label
        self.phase = DragPhase.DROPPED_SAME_COLUMN if same else DragPhase.DROPPED_OTHER_COLUMN
        try:
            return await self.move(deal_id, column_label)
        finally:
            self.cancel_drag()

    async def move(self, deal_id: str, target_status: str) -> TransitionResult:
        """
        Move a deal to another settlement stage.

        Raises:
            UnknownStageError: target_status is not a settlement stage
            IneligibleOperationError: Leaving the terminal stage, or paying
                outbound before inbound is received
            TransitionInFlightError: A previous move of this deal is pending
            StageTransitionError: The store write failed; rolled back
        """
        stage_for(target_status)
        entry = self.ledger.get(deal_id)
        from_status = entry.stage

        if target_status == from_status:
            return TransitionResult(
                deal_id=deal_id,
                from_status=from_status,
                to_status=target_status,
                outcome=TransitionOutcome.NOOP,
                payment=entry.payment,
            )

        if is_terminal(from_status):
            raise IneligibleOperationError(
                f'Deal is already {from_status!r} and cannot be moved',
                context={'deal_id': deal_id, 'to_status': target_status},
            )

        if is_terminal(target_status):
            await self.ledger.pay_outbound(deal_id)
        else:
            async with self.ledger.transition_slot(deal_id):
                command = StageTransitionCommand(entry, target_status)
                await execute_command(
                    command,
                    lambda: self.ledger.store.update_deal_status(deal_id, target_status),
                )

        return TransitionResult(
            deal_id=deal_id,
            from_status=from_status,
            to_status=target_status,
            outcome=TransitionOutcome.COMMITTED,
            payment=entry.payment,
        )
