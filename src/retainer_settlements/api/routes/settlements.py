"""Settlement board: list deals by stage, record payments, move cards."""

from typing import Any

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ...logging import logging_context
from ...models.identity import BILLING_ROLES, CallerIdentity, Role
from ...pipeline.ledger import LedgerEntry, SettlementLedger
from ...pipeline.stages import stages
from ...session import SessionRegistry
from ..auth import require_roles
from ..deps import get_session_registry

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/settlements", tags=["settlements"])

_read_caller = require_roles(*BILLING_ROLES, Role.LAWYER)
_billing_caller = require_roles(*BILLING_ROLES)


class MoveRequest(BaseModel):
    target_status: str


def _entry_view(ledger: SettlementLedger, entry: LedgerEntry) -> dict[str, Any]:
    return {**entry.to_dict(), "can_pay_outbound": ledger.can_pay_outbound(entry)}


@router.get("")
async def list_settlements(
    caller: CallerIdentity = Depends(_read_caller),
    registry: SessionRegistry = Depends(get_session_registry),
):
    """Reload the caller's working set and return it grouped by stage."""
    session = registry.get(caller)
    with logging_context(user_id=caller.user_id, role=caller.role.value):
        await session.refresh()
        ledger = session.ledger
        return {
            "stages": [
                {"key": s.key, "label": s.label, "display_order": s.display_order}
                for s in stages()
            ],
            "columns": {
                label: [_entry_view(ledger, e) for e in entries]
                for label, entries in ledger.by_stage().items()
            },
        }


@router.delete("/session")
async def end_session(
    caller: CallerIdentity = Depends(_read_caller),
    registry: SessionRegistry = Depends(get_session_registry),
):
    """Sign-out hook: discard the caller's working set and local payment flags."""
    return {"ended": registry.end(caller.user_id)}


@router.post("/{deal_id}/inbound")
async def mark_inbound_received(
    deal_id: str,
    caller: CallerIdentity = Depends(_billing_caller),
    registry: SessionRegistry = Depends(get_session_registry),
):
    """Record the attorney's payment. A no-op for deals that are not eligible."""
    session = registry.get(caller)
    with logging_context(user_id=caller.user_id, role=caller.role.value):
        await session.ensure_loaded(deal_id)
        updated = session.ledger.mark_inbound_received(deal_id)
        entry = session.ledger.get(deal_id)
        return {
            "updated": updated,
            "reason": None if updated else "not eligible",
            "deal": _entry_view(session.ledger, entry),
        }


@router.post("/{deal_id}/pay-outbound")
async def pay_outbound(
    deal_id: str,
    caller: CallerIdentity = Depends(_billing_caller),
    registry: SessionRegistry = Depends(get_session_registry),
):
    """Pay the lead vendor. Locked until inbound payment is received."""
    session = registry.get(caller)
    with logging_context(user_id=caller.user_id, role=caller.role.value):
        await session.ensure_loaded(deal_id)
        entry = await session.ledger.pay_outbound(deal_id)
        return {"deal": _entry_view(session.ledger, entry)}


@router.post("/{deal_id}/move")
async def move_deal(
    deal_id: str,
    body: MoveRequest,
    caller: CallerIdentity = Depends(_billing_caller),
    registry: SessionRegistry = Depends(get_session_registry),
):
    """Kanban drop: move a deal to another stage, rolled back if the write fails."""
    session = registry.get(caller)
    with logging_context(user_id=caller.user_id, role=caller.role.value):
        await session.ensure_loaded(deal_id)
        result = await session.controller.move(deal_id, body.target_status)
        return result.to_dict()
