"""
Redis client initialization and connection management.

Redis holds the token revocation flags checked on every authenticated
request. It is never the source of truth for settlements, so an outage
degrades auth checks to the database-only path instead of failing requests.
"""

import logging
import redis.asyncio as redis
from reseller_backend.app.core.config import settings

logger = logging.getLogger(__name__)

redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
    socket_timeout=settings.redis_socket_timeout,
    socket_connect_timeout=settings.redis_socket_timeout,
)


async def ping_redis() -> bool:
    """
    Test Redis connection for the health endpoint.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        return bool(await redis_client.ping())
    except Exception:
        logger.warning("Redis ping failed", exc_info=True)
        return False


async def close_redis() -> None:
    """Release the connection pool on shutdown."""
    try:
        await redis_client.aclose()
    except Exception:
        logger.warning("Redis pool did not close cleanly", exc_info=True)
