"""
JWT token utilities for authentication.

Tokens are issued by the dashboard login flow; this backend verifies them.
Every token names one account and the role it held when the token was
minted. The role in the token is advisory: settlement routes re-check the
account row on every request.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from reseller_backend.app.core.config import settings
from reseller_backend.app.models.enums import AccountRole

_KNOWN_ROLES = {role.value for role in AccountRole}


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Sign an arbitrary payload, adding the expiry claim.

    Prefer create_account_token, which fills in the claims get_current_user reads.
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def create_account_token(
    account_id: int,
    login_id: str,
    role: AccountRole,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a token for one dashboard account.

    Example payload:
        {
            "sub": "dist01",
            "user_id": 12,
            "role": "DISTRIBUTOR",
            "exp": 1234567890
        }
    """
    return create_access_token(
        {"sub": login_id, "user_id": account_id, "role": AccountRole(role).value},
        expires_delta=expires_delta,
    )


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode and validate a JWT access token.

    Returns:
        Decoded payload if the signature and expiry check out and the role
        claim names a known AccountRole, None otherwise
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
    if payload.get("role") not in _KNOWN_ROLES:
        return None
    return payload
