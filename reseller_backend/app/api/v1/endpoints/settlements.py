"""
Settlement API Endpoints.

Confirm, preview, list and mark-paid for authenticated dashboard users.
MASTER sees and manages everything; DISTRIBUTOR sees only their own.
"""

from dataclasses import asdict
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from reseller_backend.app.core.config import settings
from reseller_backend.app.core.dependencies import get_current_user
from reseller_backend.app.core.guards import require_role, SettlementScope
from reseller_backend.app.db.session import get_db
from reseller_backend.app.domain.settlement import period_policy
from reseller_backend.app.domain.settlement.calculator import SettlementCalculator, summarize
from reseller_backend.app.domain.settlement.ledger import SettlementLedger
from reseller_backend.app.models.enums import AccountRole
from reseller_backend.app.schemas.settlement import (
    ConfirmResponse,
    PeriodRequest,
    SettlementListResponse,
    SettlementPaidResponse,
    SettlementPreviewResponse,
)

router = APIRouter(prefix="/settlements", tags=["Settlements"])

scope = SettlementScope()


@router.post("/confirm", response_model=ConfirmResponse)
async def confirm_settlements(
    request: PeriodRequest,
    current_user: dict = Depends(require_role([AccountRole.MASTER])),
    db: AsyncSession = Depends(get_db)
):
    """
    Confirm every distributor's settlement for a period.
    """
    outcome = await SettlementLedger.confirm(
        db, request.period_start, request.period_end, actor=current_user
    )
    return ConfirmResponse(
        message=f"Settlement confirmed: {outcome.settlements_created} settlements",
        settlements_created=outcome.settlements_created,
        period=outcome.period.as_dict(),
    )


@router.get("/confirmed", response_model=SettlementListResponse)
async def list_confirmed_settlements(
    is_paid: Optional[bool] = Query(None),
    limit: Optional[int] = Query(None, ge=1),
    distributor_id: Optional[int] = Query(None),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """List confirmed settlements, newest period first."""
    distributor_filter = scope.distributor_filter(current_user, distributor_id)
    settlements = await SettlementLedger.list_confirmed(
        db, distributor_id=distributor_filter, is_paid=is_paid, limit=limit
    )
    return {"settlements": settlements}


@router.post("/{settlement_id}/mark-paid", response_model=SettlementPaidResponse)
async def mark_settlement_paid(
    settlement_id: int = Path(..., description="Settlement ID"),
    current_user: dict = Depends(require_role([AccountRole.MASTER])),
    db: AsyncSession = Depends(get_db)
):
    """
    Mark a CONFIRMED settlement as PAID.
    """
    settlement = await SettlementLedger.mark_paid(db, settlement_id, actor=current_user)
    return SettlementPaidResponse(
        settlement_id=settlement.id,
        status=settlement.status,
        paid_at=settlement.paid_at,
    )


@router.get("/preview", response_model=SettlementPreviewResponse)
async def preview_settlements(
    start_date: Optional[str] = Query(None, description="ISO-8601, defaults to this week's Monday"),
    end_date: Optional[str] = Query(None, description="ISO-8601, defaults to this week's Sunday"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Calculate settlements without persisting them.
    """
    distributor_filter = scope.distributor_filter(current_user)

    if start_date is None and end_date is None:
        period = period_policy.this_week_period(datetime.now(ZoneInfo(settings.settlement_timezone)))
    else:
        period = period_policy.validate(start_date, end_date)

    if distributor_filter is None:
        results = await SettlementCalculator.calculate_all(db, period.start, period.end)
    else:
        results = [await SettlementCalculator.calculate_for(db, distributor_filter, period.start, period.end)]

    return SettlementPreviewResponse(
        period=period.as_dict(),
        settlements=[asdict(result) for result in results],
        summary=summarize(results),
    )
