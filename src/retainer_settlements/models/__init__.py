"""
Data models for the Retainer Settlements service.
"""

from .deal import Deal, InboundStatus, OutboundStatus, PaymentState
from .identity import BILLING_ROLES, CallerIdentity, Role

__all__ = [
    'Deal',
    'InboundStatus',
    'OutboundStatus',
    'PaymentState',
    'BILLING_ROLES',
    'CallerIdentity',
    'Role',
]
