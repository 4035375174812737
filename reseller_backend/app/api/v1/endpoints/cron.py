"""
Settlement Trigger Endpoints.

Invoked weekly by the scheduler (GET) and on demand by an operator (POST).
Production calls must carry the matching Bearer shared secret; other
environments skip the check.
"""

import logging
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, Header, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from reseller_backend.app.core.config import settings
from reseller_backend.app.core.exceptions import SettlementError
from reseller_backend.app.db.session import get_db
from reseller_backend.app.domain.settlement import period_policy
from reseller_backend.app.domain.settlement.ledger import SettlementLedger
from reseller_backend.app.schemas.settlement import ConfirmResponse, PeriodRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["Cron - Settlement"])


def verify_trigger_secret(secret: Optional[str], authorization: Optional[str]) -> None:
    """
    Check the Bearer shared secret in production.

    A production deployment without a configured secret rejects every call.

    Raises:
        HTTPException 401 on a missing or wrong secret
    """
    if not settings.is_production:
        return
    if not secret or authorization != f"Bearer {secret}":
        logger.error("Unauthorized settlement trigger request")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def _run_settlement(db: AsyncSession, period_start, period_end, period_json: Optional[dict]):
    try:
        outcome = await SettlementLedger.confirm(db, period_start, period_end)
    except SettlementError as exc:
        logger.error("Settlement trigger failed: %s (%s)", exc.message, exc.error_code)
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "success": False,
                "error_code": exc.error_code,
                "error": exc.message,
                "details": exc.details,
                "period": period_json,
            },
        )

    return ConfirmResponse(
        message=f"Settlement confirmed: {outcome.settlements_created} settlements",
        settlements_created=outcome.settlements_created,
        period=outcome.period.as_dict(),
    )


@router.get("/settlement", response_model=ConfirmResponse)
async def run_weekly_settlement(
    authorization: Optional[str] = Header(default=None),
    db: AsyncSession = Depends(get_db)
):
    """
    Confirm last week's settlements (Monday through Sunday).

    Scheduled for Monday 00:00 in settings.settlement_timezone.
    """
    verify_trigger_secret(settings.cron_secret, authorization)

    now = datetime.now(ZoneInfo(settings.settlement_timezone))
    period = period_policy.last_week_period(now)
    logger.info("Weekly settlement triggered for %s ~ %s", period.start, period.end)

    return await _run_settlement(db, period.start, period.end, period.as_dict())


@router.post("/settlement", response_model=ConfirmResponse)
async def run_manual_settlement(
    request: PeriodRequest,
    authorization: Optional[str] = Header(default=None),
    db: AsyncSession = Depends(get_db)
):
    """
    Confirm settlements for an operator-supplied period.
    """
    verify_trigger_secret(settings.admin_secret, authorization)
    logger.info("Manual settlement triggered for %s ~ %s", request.period_start, request.period_end)

    return await _run_settlement(
        db,
        request.period_start,
        request.period_end,
        {"start": request.period_start, "end": request.period_end},
    )
