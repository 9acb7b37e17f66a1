"""
Per-session settlement state.

Each signed-in user gets their own ledger and transition controller; the
registry hands them out by user id. Nothing here is shared between users,
so two operators acting on the same deal race at the store
(last writer wins) and see each other's changes on their next reload.
"""

from dataclasses import dataclass

import structlog

from .models.identity import CallerIdentity
from .pipeline.ledger import SettlementLedger
from .pipeline.transitions import TransitionController
from .repository import SettlementRepository

logger = structlog.get_logger(__name__)


@dataclass
class SettlementSession:
    caller: CallerIdentity
    repository: SettlementRepository
    ledger: SettlementLedger
    controller: TransitionController

    async def refresh(self) -> None:
        """Reload the working set from the store (lawyers see only their deals)."""
        attorney_id = self.caller.user_id if self.caller.is_lawyer else None
        deals = await self.repository.list_settlements(attorney_id=attorney_id)
        self.ledger.load(deals)

    async def ensure_loaded(self, deal_id: str) -> None:
        """Reload when a deal is not in the working set yet."""
        if deal_id not in self.ledger:
            await self.refresh()


class SessionRegistry:
    """Creates and caches one SettlementSession per user id."""

    def __init__(self, repository: SettlementRepository):
        self.repository = repository
        self._sessions: dict[str, SettlementSession] = {}

    def get(self, caller: CallerIdentity) -> SettlementSession:
        session = self._sessions.get(caller.user_id)
        if session is None or session.caller != caller:
            ledger = SettlementLedger(self.repository)
            session = SettlementSession(
                caller=caller,
                repository=self.repository,
                ledger=ledger,
                controller=TransitionController(ledger),
            )
            self._sessions[caller.user_id] = session
            logger.debug('session_registry.created', user_id=caller.user_id, role=caller.role.value)
        return session

    def end(self, user_id: str) -> bool:
        """Drop a user's session (sign-out). Returns False if none was open."""
        ended = self._sessions.pop(user_id, None) is not None
        if ended:
            logger.debug('session_registry.ended', user_id=user_id)
        return ended

    def __len__(self) -> int:
        return len(self._sessions)
