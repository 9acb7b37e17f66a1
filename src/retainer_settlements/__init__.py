"""
Retainer Settlements

Settlement pipeline for retainer deals: ordered stages, the inbound-before-
outbound payment lock, optimistic kanban transitions with rollback, and the
Postgres store the dashboard reads and writes.
"""

__version__ = '0.1.0'

# Re-export key classes for convenience
from .pipeline import (
    PAID_TO_BPO_LABEL,
    DragPhase,
    LedgerEntry,
    PipelineStage,
    SettlementLedger,
    Stage,
    StageTransitionCommand,
    TransitionController,
    TransitionOutcome,
    TransitionResult,
    derive_payment_state,
    label_of,
    order_of,
    stages,
)
from .models import CallerIdentity, Deal, InboundStatus, OutboundStatus, PaymentState, Role
from .repository import SettlementRepository
from .session import SessionRegistry, SettlementSession
from .logging import (
    configure_logging,
    get_logger,
    logging_context,
    OperationTimer,
)
from .errors import (
    SettlementError,
    PipelineError,
    ValidationError,
    UnknownStageError,
    UnknownDealError,
    PersistenceError,
    DealNotFoundError,
    StageTransitionError,
    ConsistencyError,
    IneligibleOperationError,
    TransitionInFlightError,
    DatabaseError,
)

__all__ = [
    # Version
    '__version__',
    # Pipeline
    'PAID_TO_BPO_LABEL',
    'DragPhase',
    'LedgerEntry',
    'PipelineStage',
    'SettlementLedger',
    'Stage',
    'StageTransitionCommand',
    'TransitionController',
    'TransitionOutcome',
    'TransitionResult',
    'derive_payment_state',
    'label_of',
    'order_of',
    'stages',
    # Models
    'CallerIdentity',
    'Deal',
    'InboundStatus',
    'OutboundStatus',
    'PaymentState',
    'Role',
    # Persistence and sessions
    'SettlementRepository',
    'SessionRegistry',
    'SettlementSession',
    # Logging
    'configure_logging',
    'get_logger',
    'logging_context',
    'OperationTimer',
    # Errors
    'SettlementError',
    'PipelineError',
    'ValidationError',
    'UnknownStageError',
    'UnknownDealError',
    'PersistenceError',
    'DealNotFoundError',
    'StageTransitionError',
    'ConsistencyError',
    'IneligibleOperationError',
    'TransitionInFlightError',
    'DatabaseError',
]
