"""
Audit trail for settlement runs and payouts.

Every confirmed settlement, every payout and every rejected run leaves a
row in audit_logs so payouts can be reconciled against who triggered them.
"""

from datetime import datetime
from typing import Optional, Dict, Any, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from reseller_backend.app.models.audit_log import AuditLog


class AuditAction:
    """Settlement audit action constants."""
    SETTLEMENT_CONFIRMED = "SETTLEMENT_CONFIRMED"
    SETTLEMENT_PAID = "SETTLEMENT_PAID"
    SETTLEMENT_RUN_FAILED = "SETTLEMENT_RUN_FAILED"


# Recorded as actor_username when the scheduler acts
SYSTEM_ACTOR = "system"


def record_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[int] = None,
    actor_username: Optional[str] = None,
    target_user_id: Optional[int] = None,
    target_username: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None
) -> AuditLog:
    """
    Stage an audit row on the session. The caller commits.

    A settlement run stages one row per distributor and commits them together.
    """
    if actor_username is None and actor_id is None:
        actor_username = SYSTEM_ACTOR

    entry = AuditLog(
        actor_id=actor_id,
        actor_username=actor_username,
        action=action,
        target_user_id=target_user_id,
        target_username=target_username,
        meta_data=metadata,
        ip_address=ip_address
    )
    db.add(entry)
    return entry


async def log_event(db: AsyncSession, action: str, **fields) -> AuditLog:
    """
    Record a single audit row and commit it immediately.

    Accepts the same keyword fields as record_event.
    """
    entry = record_event(db, action, **fields)
    await db.commit()
    await db.refresh(entry)
    return entry


async def get_audit_trail(
    db: AsyncSession,
    target_user_id: Optional[int] = None,
    action: Optional[str] = None,
    since: Optional[datetime] = None,
    limit: int = 100
) -> List[AuditLog]:
    """
    Read audit rows, newest first.

    Args:
        target_user_id: Only rows about this account (a distributor for settlement events)
        action: Only this AuditAction
        since: Only rows at or after this moment
        limit: Maximum rows returned
    """
    query = select(AuditLog)

    if target_user_id is not None:
        query = query.where(AuditLog.target_user_id == target_user_id)
    if action is not None:
        query = query.where(AuditLog.action == action)
    if since is not None:
        query = query.where(AuditLog.timestamp >= since)

    query = query.order_by(desc(AuditLog.timestamp), desc(AuditLog.id)).limit(limit)

    result = await db.execute(query)
    return result.scalars().all()
