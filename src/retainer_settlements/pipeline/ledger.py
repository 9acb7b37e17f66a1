"""
Settlement ledger: the per-session working set of deals in the settlement
view, with their stage and payment state.

The store is the system of record. The ledger is a local view that is
reloaded from it and changed optimistically by stage transitions.

Safety lock: outbound payment ("Pay BPO") is only possible once inbound
payment has been received. can_pay_outbound() is the only place that rule
lives; the transition controller and the HTTP layer both ask it.
"""

from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Protocol

import structlog

from ..errors import IneligibleOperationError, TransitionInFlightError, UnknownDealError
from ..models.deal import Deal, InboundStatus, OutboundStatus, PaymentState
from .commands import StageTransitionCommand, execute_command
from .payment_state import derive_payment_state
from .stages import PAID_TO_BPO_LABEL, is_terminal, order_of, stage_for, stages

logger = structlog.get_logger(__name__)


class SettlementStore(Protocol):
    """Persistence calls the ledger needs. SettlementRepository implements it."""

    async def update_deal_status(self, deal_id: str, status: str) -> None: ...

    async def mark_paid_to_bpo(self, deal_id: str) -> None: ...


@dataclass
class LedgerEntry:
    deal: Deal
    payment: PaymentState

    @property
    def deal_id(self) -> str:
        return self.deal.id

    @property
    def stage(self) -> str:
        return self.deal.status

    def to_dict(self) -> dict:
        return {
            **self.deal.model_dump(mode='json'),
            'inbound_payment_status': self.payment.inbound.value,
            'outbound_payment_status': self.payment.outbound.value,
        }


class SettlementLedger:
    """
    Stage and payment state for one session's deals.

    One instance per session; it is created by the session registry and
    handed to the transition controller, never shared module-wide.
    """

    def __init__(self, store: SettlementStore):
        self.store = store
        self._entries: dict[str, LedgerEntry] = {}
        self._in_flight: set[str] = set()

    # =========================================================================
    # Working set
    # =========================================================================

    def load(self, deals: Iterable[Deal]) -> None:
        """
        Replace the working set with fresh rows from the store.

        Entries with a transition still outstanding keep their local state;
        the outcome of that transition decides what they end up as. A deal
        whose stage did not change keeps its payment state, so a received
        inbound payment survives the reload.

        Raises:
            UnknownStageError: A deal's status is not a settlement stage
        """
        fresh: dict[str, LedgerEntry] = {}
        for deal in deals:
            stage_for(deal.status)
            existing = self._entries.get(deal.id)
            if existing is not None and deal.id in self._in_flight:
                fresh[deal.id] = existing
            elif existing is not None and existing.stage == deal.status:
                fresh[deal.id] = LedgerEntry(deal=deal, payment=existing.payment)
            else:
                fresh[deal.id] = LedgerEntry(deal=deal, payment=derive_payment_state(deal.status))
        self._entries = fresh
        logger.debug('ledger.loaded', deal_count=len(fresh), in_flight=len(self._in_flight))

    def get(self, deal_id: str) -> LedgerEntry:
        try:
            return self._entries[deal_id]
        except KeyError:
            raise UnknownDealError(
                f'Deal {deal_id} is not in the settlement view',
                context={'deal_id': deal_id},
            ) from None

    def entries(self) -> list[LedgerEntry]:
        return list(self._entries.values())

    def by_stage(self) -> dict[str, list[LedgerEntry]]:
        """Entries grouped into kanban columns, in stage order."""
        columns: dict[str, list[LedgerEntry]] = {s.label: [] for s in stages()}
        for entry in sorted(self._entries.values(), key=lambda e: order_of(e.stage)):
            columns[entry.stage].append(entry)
        return columns

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, deal_id: object) -> bool:
        return deal_id in self._entries

    # =========================================================================
    # Payments
    # =========================================================================

    def mark_inbound_received(self, deal_id: str) -> bool:
        """
        Record that the attorney's payment arrived.

        Outbound stays locked until paid separately. Returns False (and
        changes nothing) when the deal is already settled or inbound is
        already received, so calling it twice is the same as calling it once.
        The flag lives in this ledger only and lasts until the deal changes
        stage.
        """
        entry = self.get(deal_id)
        if entry.payment.inbound != InboundStatus.PENDING or is_terminal(entry.stage):
            logger.info(
                'ledger.inbound_not_eligible',
                deal_id=deal_id,
                stage=entry.stage,
                inbound=entry.payment.inbound.value,
            )
            return False
        entry.payment = PaymentState(
            inbound=InboundStatus.RECEIVED,
            outbound=entry.payment.outbound,
        )
        logger.info('ledger.inbound_received', deal_id=deal_id, stage=entry.stage)
        return True

    def can_pay_outbound(self, deal: LedgerEntry | str) -> bool:
        """True iff not yet settled and inbound payment has been received."""
        entry = self.get(deal) if isinstance(deal, str) else deal
        return (
            not is_terminal(entry.stage)
            and entry.payment.outbound != OutboundStatus.PAID
            and entry.payment.inbound == InboundStatus.RECEIVED
        )

    async def pay_outbound(self, deal_id: str) -> LedgerEntry:
        """
        Pay the lead vendor: move the deal to "Paid to BPO".

        Raises:
            IneligibleOperationError: Safety lock not satisfied
            TransitionInFlightError: Another change for this deal is pending
            StageTransitionError: The store write failed (nothing retained)
        """
        entry = self.get(deal_id)
        if not self.can_pay_outbound(entry):
            raise IneligibleOperationError(
                'Outbound payment is locked until inbound payment is received',
                context={
                    'deal_id': deal_id,
                    'stage': entry.stage,
                    'inbound': entry.payment.inbound.value,
                    'outbound': entry.payment.outbound.value,
                },
            )

        async with self.transition_slot(deal_id):
            command = StageTransitionCommand(entry, PAID_TO_BPO_LABEL)
            await execute_command(command, lambda: self.store.mark_paid_to_bpo(deal_id))

        logger.info('ledger.outbound_paid', deal_id=deal_id)
        return entry

    # =========================================================================
    # Per-deal serialization
    # =========================================================================

    def is_in_flight(self, deal_id: str) -> bool:
        return deal_id in self._in_flight

    @asynccontextmanager
    async def transition_slot(self, deal_id: str) -> AsyncIterator[None]:
        """
        Hold the single transition slot for a deal until the store answers.

        Raises:
            TransitionInFlightError: The slot is already held
        """
        if deal_id in self._in_flight:
            raise TransitionInFlightError(
                f'A stage change for deal {deal_id} is still pending',
                context={'deal_id': deal_id},
            )
        self._in_flight.add(deal_id)
        try:
            yield
        finally:
            self._in_flight.discard(deal_id)
