"""
Account database model.

This module defines the Account SQLAlchemy model for the reseller hierarchy.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, ForeignKey
from sqlalchemy.sql import func
from reseller_backend.app.db.session import Base
from reseller_backend.app.models.enums import AccountRole


class Account(Base):
    """
    Account model for the MASTER -> DISTRIBUTOR -> AGENCY -> USER tree.

    Every non-MASTER account has exactly one parent. The settlement engine
    only reads this table; accounts are managed by the surrounding dashboard.
    """
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    login_id = Column(String(100), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    role = Column(Enum(AccountRole), default=AccountRole.USER, nullable=False, index=True)

    # Hierarchy - parent account (NULL only for MASTER)
    parent_id = Column(Integer, ForeignKey("accounts.id"), index=True, nullable=True)

    # Commission unit price per paid usage-day (DISTRIBUTOR only)
    daily_rate = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Account(id={self.id}, login_id='{self.login_id}', role='{self.role.value}', parent_id={self.parent_id})>"
