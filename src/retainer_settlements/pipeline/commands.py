"""
Optimistic stage change as a command: apply locally, persist, then commit
or roll back.

apply() and rollback() are synchronous and touch only the ledger entry, so
no other coroutine can observe a half-applied change.
"""

from enum import Enum
from typing import Awaitable, Callable

import structlog

from ..errors import StageTransitionError
from ..models.deal import PaymentState
from .payment_state import derive_payment_state

logger = structlog.get_logger(__name__)


class CommandState(str, Enum):
    PENDING = 'pending'
    APPLIED = 'applied'
    COMMITTED = 'committed'
    ROLLED_BACK = 'rolled_back'


class StageTransitionCommand:
    """Move one ledger entry to a new stage label, remembering where it was."""

    def __init__(self, entry, new_status: str):
        self.entry = entry
        self.new_status = new_status
        self.new_payment: PaymentState = derive_payment_state(new_status)
        self.old_status: str | None = None
        self.old_payment: PaymentState | None = None
        self.state = CommandState.PENDING

    def apply(self) -> None:
        if self.state != CommandState.PENDING:
            raise RuntimeError(f'Cannot apply a command in state {self.state.value}')
        self.old_status = self.entry.deal.status
        self.old_payment = self.entry.payment
        self.entry.deal.status = self.new_status
        self.entry.payment = self.new_payment
        self.state = CommandState.APPLIED

    def commit(self) -> None:
        if self.state != CommandState.APPLIED:
            raise RuntimeError(f'Cannot commit a command in state {self.state.value}')
        self.state = CommandState.COMMITTED

    def rollback(self) -> None:
        if self.state != CommandState.APPLIED:
            raise RuntimeError(f'Cannot roll back a command in state {self.state.value}')
        self.entry.deal.status = self.old_status
        self.entry.payment = self.old_payment
        self.state = CommandState.ROLLED_BACK


async def execute_command(
    command: StageTransitionCommand,
    persist: Callable[[], Awaitable[None]],
) -> None:
    """
    Run the optimistic cycle for one command.

    Raises:
        StageTransitionError: persist() failed; the entry is back in its
            previous stage and payment state
    """
    command.apply()
    deal_id = command.entry.deal.id
    try:
        await persist()
    except Exception as e:
        command.rollback()
        logger.warning(
            'transition.rolled_back',
            deal_id=deal_id,
            from_status=command.old_status,
            to_status=command.new_status,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise StageTransitionError(
            f'Failed to move deal to {command.new_status!r}: {e}',
            context={
                'deal_id': deal_id,
                'from_status': command.old_status,
                'to_status': command.new_status,
            },
        ) from e
    command.commit()
    logger.info(
        'transition.committed',
        deal_id=deal_id,
        from_status=command.old_status,
        to_status=command.new_status,
    )
