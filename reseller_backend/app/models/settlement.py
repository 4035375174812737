"""
Settlement database model.

One commission ledger entry per distributor per settlement period.
"""

from sqlalchemy import Column, Integer, Date, ForeignKey, DateTime, Enum, JSON, UniqueConstraint
from sqlalchemy.sql import func
from reseller_backend.app.db.session import Base
from reseller_backend.app.models.settlement_enums import SettlementStatus


class Settlement(Base):
    """
    Settlement model.

    Created CONFIRMED by a settlement run and moved once, manually, to PAID.
    Content columns are never updated; a correction is a new period run.
    At most one row per (distributor_id, period_start, period_end).
    """
    __tablename__ = "settlements"
    __table_args__ = (
        UniqueConstraint("distributor_id", "period_start", "period_end", name="uq_settlement_distributor_period"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Payee
    distributor_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)

    # Period (inclusive calendar days)
    period_start = Column(Date, nullable=False, index=True)
    period_end = Column(Date, nullable=False, index=True)

    # Financials (integer currency unit)
    daily_rate = Column(Integer, nullable=False)  # Snapshot at confirmation time
    total_days = Column(Integer, nullable=False)  # Paid days only
    free_test_days = Column(Integer, default=0, nullable=False)
    total_amount = Column(Integer, nullable=False)

    # Breakdown: {"direct_users": [...], "agencies": [...]}
    details = Column(JSON, nullable=False)

    # Status
    status = Column(Enum(SettlementStatus), default=SettlementStatus.CONFIRMED, nullable=False, index=True)

    # Payment Flow
    paid_at = Column(DateTime(timezone=True), nullable=True)
    paid_by_id = Column(Integer, ForeignKey("accounts.id"), nullable=True)

    # Timestamps (no updated_at: content is immutable)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @property
    def is_paid(self) -> bool:
        return self.status == SettlementStatus.PAID

    def __repr__(self):
        return (
            f"<Settlement(id={self.id}, distributor={self.distributor_id}, "
            f"period={self.period_start}~{self.period_end}, status='{self.status.value}', amount={self.total_amount})>"
        )
