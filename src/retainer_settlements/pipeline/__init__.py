"""
Settlement pipeline: stage registry, payment derivation, ledger and
kanban transition controller.
"""

from .commands import CommandState, StageTransitionCommand, execute_command
from .ledger import LedgerEntry, SettlementLedger, SettlementStore
from .payment_state import SETTLED, UNSETTLED, derive_payment_state
from .stages import (
    PAID_TO_BPO_LABEL,
    PipelineStage,
    Stage,
    is_registered,
    is_terminal,
    label_of,
    order_of,
    stage_for,
    stage_labels,
    stages,
)
from .transitions import DragPhase, TransitionController, TransitionOutcome, TransitionResult

__all__ = [
    'CommandState',
    'StageTransitionCommand',
    'execute_command',
    'LedgerEntry',
    'SettlementLedger',
    'SettlementStore',
    'SETTLED',
    'UNSETTLED',
    'derive_payment_state',
    'PAID_TO_BPO_LABEL',
    'PipelineStage',
    'Stage',
    'is_registered',
    'is_terminal',
    'label_of',
    'order_of',
    'stage_for',
    'stage_labels',
    'stages',
    'DragPhase',
    'TransitionController',
    'TransitionOutcome',
    'TransitionResult',
]
