"""
Payment state derivation.

The payment pair is a pure function of the stage label. Labels we do not
recognise fall into the unsettled bucket on purpose.
"""

from ..models.deal import InboundStatus, OutboundStatus, PaymentState
from .stages import PAID_TO_BPO_LABEL

UNSETTLED = PaymentState(inbound=InboundStatus.PENDING, outbound=OutboundStatus.LOCKED)
SETTLED = PaymentState(inbound=InboundStatus.RECEIVED, outbound=OutboundStatus.PAID)


def derive_payment_state(status_label: str) -> PaymentState:
    """(received, paid) for "Paid to BPO", (pending, locked) for anything else."""
    if status_label == PAID_TO_BPO_LABEL:
        return SETTLED
    return UNSETTLED
