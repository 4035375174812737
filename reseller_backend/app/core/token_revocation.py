"""
Account token revocation using Redis.

When the dashboard deactivates an account it sets a per-account flag here,
which immediately invalidates every JWT issued to that account.
"""

import logging
from reseller_backend.app.core import redis_client as redis_client_module
from reseller_backend.app.core.config import settings

logger = logging.getLogger(__name__)

ACCOUNT_TOKENS_PREFIX = "account:tokens:"


def _revocation_key(account_id: int) -> str:
    return f"{ACCOUNT_TOKENS_PREFIX}{account_id}:revoked"


async def revoke_all_account_tokens(account_id: int) -> bool:
    """
    Revoke all active tokens for an account.

    The flag lives as long as the longest token could, after which
    every token issued before it has expired anyway.
    """
    try:
        ttl_seconds = settings.access_token_expire_minutes * 60
        await redis_client_module.redis_client.set(_revocation_key(account_id), "1", ex=ttl_seconds)
        return True
    except Exception:
        logger.exception("Error revoking tokens for account %s", account_id)
        return False


async def are_account_tokens_revoked(account_id: int) -> bool:
    """
    Check if all tokens for an account have been revoked.

    If Redis is unreachable the request is allowed; the real-time
    account status check in get_current_user still applies.
    """
    try:
        exists = await redis_client_module.redis_client.exists(_revocation_key(account_id))
        return exists > 0
    except Exception:
        logger.warning("Token revocation check unavailable for account %s", account_id, exc_info=True)
        return False


async def clear_account_token_revocation(account_id: int) -> bool:
    """Clear the revocation flag, e.g. when an account is reactivated."""
    try:
        await redis_client_module.redis_client.delete(_revocation_key(account_id))
        return True
    except Exception:
        logger.exception("Error clearing token revocation for account %s", account_id)
        return False
