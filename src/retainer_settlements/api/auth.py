"""
Caller authentication for the settlements API.

The identity gateway has already authenticated the end user. It calls us
with our shared bearer token and forwards the resolved user id and role.
"""

from collections.abc import Callable

from fastapi import Depends, Header, HTTPException

from ..models.identity import CallerIdentity, Role
from .config import get_settings


async def verify_service_token(authorization: str = Header(...)) -> None:
    """Validate the bearer token from the identity gateway."""
    expected = f"Bearer {get_settings().SERVICE_API_KEY}"
    if authorization != expected:
        raise HTTPException(status_code=401, detail="Invalid or missing bearer token")


async def get_caller(
    x_user_id: str = Header(...),
    x_user_role: str = Header(...),
    _auth: None = Depends(verify_service_token),
) -> CallerIdentity:
    """Resolve the identity forwarded by the gateway."""
    try:
        role = Role(x_user_role)
    except ValueError:
        raise HTTPException(status_code=403, detail=f"Unknown role: {x_user_role}")
    return CallerIdentity(user_id=x_user_id, role=role)


def require_roles(*roles: Role) -> Callable:
    """Dependency factory: reject callers whose role is not listed."""
    allowed = frozenset(roles)

    async def _check(caller: CallerIdentity = Depends(get_caller)) -> CallerIdentity:
        if caller.role not in allowed:
            raise HTTPException(status_code=403, detail="Insufficient role")
        return caller

    return _check
