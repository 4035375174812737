"""
Settlement Ledger (Domain Logic).

Persists settlement results and drives the CONFIRMED -> PAID transition.

Confirmation is all-or-nothing per period: every distributor's settlement
is written in one transaction, and if any (distributor, period) row
already exists the whole batch is rolled back with AlreadyConfirmedError.
The unique constraint on settlements is the concurrency guard, so two
runs of the same period can never both commit.

Audit events and distributor notifications are emitted after the ledger
commit, in their own commit. A failure there is logged and never undoes
the ledger change.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update, desc
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from reseller_backend.app.core.config import settings
from reseller_backend.app.core.exceptions import (
    AlreadyConfirmedError,
    AlreadyPaidError,
    SettlementError,
    SettlementNotFoundError,
    StorageFailureError,
)
from reseller_backend.app.domain.settlement import period_policy
from reseller_backend.app.domain.settlement.calculator import SettlementCalculator, SettlementResult
from reseller_backend.app.domain.settlement.period_policy import Period
from reseller_backend.app.models.settlement import Settlement
from reseller_backend.app.models.settlement_enums import SettlementStatus
from reseller_backend.app.services.audit import AuditAction, log_event, record_event
from reseller_backend.app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION_MARKERS = ("uq_settlement_distributor_period", "UNIQUE constraint failed: settlements")


@dataclass(frozen=True)
class ConfirmOutcome:
    period: Period
    settlement_ids: List[int] = field(default_factory=list)

    @property
    def settlements_created(self) -> int:
        return len(self.settlement_ids)


def _actor_fields(actor: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if not actor:
        return {"actor_id": None, "actor_username": None}
    return {"actor_id": actor.get("user_id"), "actor_username": actor.get("sub")}


def _is_unique_violation(exc: IntegrityError) -> bool:
    message = str(exc.orig) if exc.orig is not None else str(exc)
    return any(marker in message for marker in UNIQUE_VIOLATION_MARKERS)


def _to_model(result: SettlementResult) -> Settlement:
    return Settlement(
        distributor_id=result.distributor_id,
        period_start=result.period_start,
        period_end=result.period_end,
        daily_rate=result.daily_rate,
        total_days=result.total_days,
        free_test_days=result.free_test_days,
        total_amount=result.total_amount,
        details=result.details,
        status=SettlementStatus.CONFIRMED,
    )


class SettlementLedger:

    @staticmethod
    async def confirm(
        db: AsyncSession,
        period_start: Any,
        period_end: Any,
        actor: Optional[Dict[str, Any]] = None,
    ) -> ConfirmOutcome:
        """
        Calculate and persist every distributor's settlement for a period.

        Args:
            db: Database session (this method owns the transaction)
            period_start: First day of the period (date, datetime or ISO string)
            period_end: Last day of the period, inclusive
            actor: Token payload of the operator, None for the scheduler

        Returns:
            ConfirmOutcome with the ids of the created settlements

        Raises:
            InvalidPeriodError: before any work if the period is malformed
            AlreadyConfirmedError: the period already has settlements (nothing written)
            StorageFailureError: the transaction failed (nothing written, safe to retry)
        """
        period = period_policy.validate(period_start, period_end)
        logger.info("Settlement run started for %s ~ %s", period.start, period.end)

        try:
            existing = await db.execute(
                select(Settlement.id).where(
                    Settlement.period_start == period.start,
                    Settlement.period_end == period.end,
                ).limit(1)
            )
            if existing.scalar_one_or_none() is not None:
                raise AlreadyConfirmedError(period.start, period.end)

            results = await SettlementCalculator.calculate_all(db, period.start, period.end)
            settlements = [_to_model(result) for result in results]
            db.add_all(settlements)
            await db.flush()
            await db.commit()
        except SettlementError as exc:
            await db.rollback()
            await SettlementLedger._emit_run_failed(db, period, exc, actor)
            raise
        except IntegrityError as exc:
            await db.rollback()
            if _is_unique_violation(exc):
                logger.warning("Settlement run for %s ~ %s lost the uniqueness race", period.start, period.end)
                error = AlreadyConfirmedError(period.start, period.end)
            else:
                logger.exception("Settlement run for %s ~ %s violated a constraint", period.start, period.end)
                error = StorageFailureError("Settlement batch violated a storage constraint")
            await SettlementLedger._emit_run_failed(db, period, error, actor)
            raise error from exc
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.exception("Settlement run for %s ~ %s failed to commit", period.start, period.end)
            error = StorageFailureError(details={"reason": type(exc).__name__})
            await SettlementLedger._emit_run_failed(db, period, error, actor)
            raise error from exc

        outcome = ConfirmOutcome(period=period, settlement_ids=[s.id for s in settlements])
        logger.info(
            "Settlement run for %s ~ %s confirmed %d settlements",
            period.start, period.end, outcome.settlements_created,
        )
        await SettlementLedger._emit_confirmed(db, settlements, actor)
        return outcome

    @staticmethod
    async def mark_paid(
        db: AsyncSession,
        settlement_id: int,
        actor: Optional[Dict[str, Any]] = None,
    ) -> Settlement:
        """
        Move one settlement from CONFIRMED to PAID.

        Single-row conditional update: of concurrent callers exactly one wins.

        Raises:
            SettlementNotFoundError: unknown id
            AlreadyPaidError: the settlement is already PAID
            StorageFailureError: the update failed to commit
        """
        actor_id = _actor_fields(actor)["actor_id"]
        try:
            result = await db.execute(
                update(Settlement)
                .where(
                    Settlement.id == settlement_id,
                    Settlement.status == SettlementStatus.CONFIRMED,
                )
                .values(
                    status=SettlementStatus.PAID,
                    paid_at=datetime.now(timezone.utc),
                    paid_by_id=actor_id,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await db.rollback()
                found = await db.execute(select(Settlement.id).where(Settlement.id == settlement_id))
                if found.scalar_one_or_none() is None:
                    raise SettlementNotFoundError(settlement_id)
                raise AlreadyPaidError(settlement_id)
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.exception("Marking settlement %s paid failed", settlement_id)
            raise StorageFailureError(details={"settlement_id": settlement_id}) from exc

        settlement = (
            await db.execute(
                select(Settlement)
                .where(Settlement.id == settlement_id)
                .execution_options(populate_existing=True)
            )
        ).scalar_one()
        logger.info("Settlement %s marked PAID by %s", settlement_id, actor_id or "system")
        await SettlementLedger._emit_paid(db, settlement, actor)
        return settlement

    @staticmethod
    async def list_confirmed(
        db: AsyncSession,
        distributor_id: Optional[int] = None,
        is_paid: Optional[bool] = None,
        limit: Optional[int] = None,
    ) -> List[Settlement]:
        """
        List persisted settlements, newest period first.

        Authorization (who may omit distributor_id) is enforced by the caller.
        """
        if limit is None:
            limit = settings.settlement_list_default_limit
        limit = max(1, min(limit, settings.settlement_list_max_limit))

        query = select(Settlement).order_by(desc(Settlement.period_start), desc(Settlement.id))
        if distributor_id is not None:
            query = query.where(Settlement.distributor_id == distributor_id)
        if is_paid is not None:
            status = SettlementStatus.PAID if is_paid else SettlementStatus.CONFIRMED
            query = query.where(Settlement.status == status)

        result = await db.execute(query.limit(limit))
        return result.scalars().all()

    # Side effects (best-effort, after the ledger commit)

    @staticmethod
    async def _emit_confirmed(
        db: AsyncSession,
        settlements: List[Settlement],
        actor: Optional[Dict[str, Any]],
    ) -> None:
        try:
            for settlement in settlements:
                record_event(
                    db,
                    action=AuditAction.SETTLEMENT_CONFIRMED,
                    target_user_id=settlement.distributor_id,
                    metadata={
                        "settlement_id": settlement.id,
                        "period_start": settlement.period_start.isoformat(),
                        "period_end": settlement.period_end.isoformat(),
                        "total_days": settlement.total_days,
                        "free_test_days": settlement.free_test_days,
                        "total_amount": settlement.total_amount,
                    },
                    **_actor_fields(actor),
                )
                if settings.settlement_notify_distributors:
                    await NotificationService.notify_settlement_confirmed(
                        db,
                        distributor_id=settlement.distributor_id,
                        settlement_id=settlement.id,
                        total_amount=settlement.total_amount,
                        period_start=settlement.period_start,
                        period_end=settlement.period_end,
                    )
            await db.commit()
        except SQLAlchemyError:
            await db.rollback()
            logger.exception("Failed to record confirmation events for %d settlements", len(settlements))

    @staticmethod
    async def _emit_paid(
        db: AsyncSession,
        settlement: Settlement,
        actor: Optional[Dict[str, Any]],
    ) -> None:
        try:
            record_event(
                db,
                action=AuditAction.SETTLEMENT_PAID,
                target_user_id=settlement.distributor_id,
                metadata={"settlement_id": settlement.id, "total_amount": settlement.total_amount},
                **_actor_fields(actor),
            )
            if settings.settlement_notify_distributors:
                await NotificationService.notify_settlement_paid(
                    db,
                    distributor_id=settlement.distributor_id,
                    settlement_id=settlement.id,
                    total_amount=settlement.total_amount,
                )
            await db.commit()
        except SQLAlchemyError:
            await db.rollback()
            logger.exception("Failed to record payment events for settlement %s", settlement.id)

    @staticmethod
    async def _emit_run_failed(
        db: AsyncSession,
        period: Period,
        error: SettlementError,
        actor: Optional[Dict[str, Any]],
    ) -> None:
        try:
            await log_event(
                db,
                AuditAction.SETTLEMENT_RUN_FAILED,
                metadata={
                    "period_start": period.start.isoformat(),
                    "period_end": period.end.isoformat(),
                    "error_code": error.error_code,
                    "message": error.message,
                },
                **_actor_fields(actor),
            )
        except SQLAlchemyError:
            await db.rollback()
            logger.exception("Failed to record settlement run failure for %s ~ %s", period.start, period.end)
