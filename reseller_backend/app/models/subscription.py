"""
Subscription database model.

Date ranges of service coverage per account. Input to usage aggregation.
"""

from sqlalchemy import Column, Integer, Boolean, Date, DateTime, Enum, ForeignKey, CheckConstraint
from sqlalchemy.sql import func
from reseller_backend.app.db.session import Base
from reseller_backend.app.models.subscription_enums import ServiceType, SubscriptionStatus


class Subscription(Base):
    """
    Subscription record.

    start_date and end_date are inclusive calendar days. Renewals arrive as
    new records; the settlement engine never writes this table.
    """
    __tablename__ = "subscriptions"
    __table_args__ = (
        CheckConstraint("start_date <= end_date", name="ck_subscription_date_range"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)

    service_type = Column(Enum(ServiceType), nullable=False)
    start_date = Column(Date, nullable=False, index=True)
    end_date = Column(Date, nullable=False, index=True)

    status = Column(Enum(SubscriptionStatus), default=SubscriptionStatus.ACTIVE, nullable=False)
    is_free_test = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return (
            f"<Subscription(id={self.id}, account={self.account_id}, service='{self.service_type.value}', "
            f"{self.start_date}~{self.end_date}, free={self.is_free_test})>"
        )
