"""
Notification Service.

Creates in-app notifications for distributors about their settlements.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from datetime import date
from typing import Optional, Dict, Any

from reseller_backend.app.models.notification import Notification, NotificationType


def format_period_date(value: date) -> str:
    """Render a date the way the dashboard shows periods (2024.01.07)."""
    return value.strftime("%Y.%m.%d")


class NotificationService:

    @staticmethod
    async def create_notification(
        db: AsyncSession,
        account_id: int,
        title: str,
        message: str,
        type: NotificationType = NotificationType.INFO,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Notification:
        """Create a single notification."""
        notif = Notification(
            account_id=account_id,
            type=type,
            title=title,
            message=message,
            metadata_payload=metadata
        )
        db.add(notif)
        await db.flush()  # Caller commits
        return notif

    @staticmethod
    async def notify_settlement_confirmed(
        db: AsyncSession,
        distributor_id: int,
        settlement_id: int,
        total_amount: int,
        period_start: date,
        period_end: date
    ) -> Notification:
        """Tell a distributor the confirmed amount for a period."""
        return await NotificationService.create_notification(
            db,
            account_id=distributor_id,
            title="Weekly settlement confirmed",
            message=(
                f"Settlement for {format_period_date(period_start)} ~ {format_period_date(period_end)} "
                f"has been confirmed.\nAmount: {total_amount:,}"
            ),
            type=NotificationType.SETTLEMENT_UPDATE,
            metadata={"settlement_id": settlement_id}
        )

    @staticmethod
    async def notify_settlement_paid(
        db: AsyncSession,
        distributor_id: int,
        settlement_id: int,
        total_amount: int
    ) -> Notification:
        """Tell a distributor a payout was recorded."""
        return await NotificationService.create_notification(
            db,
            account_id=distributor_id,
            title="Settlement paid",
            message=f"{total_amount:,} has been paid out.",
            type=NotificationType.SETTLEMENT_UPDATE,
            metadata={"settlement_id": settlement_id}
        )
