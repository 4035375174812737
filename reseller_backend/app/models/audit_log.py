"""
Audit Log Database Model.

Append-only trail of settlement runs and payout confirmations.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from reseller_backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model for tracking settlement events and operator actions.

    Events logged:
    - SETTLEMENT_CONFIRMED (one per distributor settlement created)
    - SETTLEMENT_PAID
    - SETTLEMENT_RUN_FAILED
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for the scheduler)
    actor_id = Column(Integer, index=True, nullable=True)
    actor_username = Column(String(100), nullable=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # Account the action concerns (the distributor for settlement events)
    target_user_id = Column(Integer, index=True, nullable=True)
    target_username = Column(String(100), nullable=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    ip_address = Column(String(50), nullable=True)

    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_username}, target={self.target_user_id})>"
