"""
Caller identity supplied by the external identity boundary.

The service never authenticates end users itself; it trusts the gateway
that resolved the bearer token and forwards the user id and role.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict


class Role(str, Enum):
    SUPER_ADMIN = 'super_admin'
    ADMIN = 'admin'
    LAWYER = 'lawyer'
    AGENT = 'agent'
    ACCOUNTS = 'accounts'


# Roles allowed to move money-related state (stages, payments, invoices)
BILLING_ROLES = frozenset({Role.SUPER_ADMIN, Role.ADMIN, Role.ACCOUNTS})


class CallerIdentity(BaseModel):
    """Resolved caller: who is acting, and with what role."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    role: Role

    @property
    def is_lawyer(self) -> bool:
        """Lawyers only ever see deals assigned to them."""
        return self.role == Role.LAWYER

    @property
    def can_bill(self) -> bool:
        return self.role in BILLING_ROLES
