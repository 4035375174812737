"""
Settlement Schemas.
"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import Optional, List, Dict, Any
from reseller_backend.app.models.settlement_enums import SettlementStatus


class PeriodRequest(BaseModel):
    """Body for manual settlement runs. Dates are validated by the period policy."""
    period_start: str = Field(..., description="ISO-8601 date or datetime, first day of the period")
    period_end: str = Field(..., description="ISO-8601 date or datetime, last day of the period (inclusive)")


class PeriodResponse(BaseModel):
    start: date
    end: date


class ConfirmResponse(BaseModel):
    """Result of a settlement run."""
    success: bool = True
    message: str
    settlements_created: int
    period: PeriodResponse


class SettlementResponse(BaseModel):
    """Schema for displaying a persisted settlement."""
    id: int
    distributor_id: int
    period_start: date
    period_end: date
    daily_rate: int
    total_days: int
    free_test_days: int
    total_amount: int
    details: Dict[str, Any]
    status: SettlementStatus
    is_paid: bool
    created_at: datetime
    paid_at: Optional[datetime]

    class Config:
        from_attributes = True


class SettlementListResponse(BaseModel):
    settlements: List[SettlementResponse]


class SettlementPaidResponse(BaseModel):
    """Response for the mark-paid action."""
    settlement_id: int
    status: SettlementStatus
    paid_at: datetime


class SettlementPreviewItem(BaseModel):
    """Calculated, not persisted."""
    distributor_id: int
    distributor_login_id: str
    distributor_name: str
    daily_rate: int
    total_days: int
    free_test_days: int
    total_amount: int
    details: Dict[str, Any]

    class Config:
        from_attributes = True


class SettlementSummary(BaseModel):
    total_amount: int
    total_days: int
    total_free_test_days: int


class SettlementPreviewResponse(BaseModel):
    period: PeriodResponse
    settlements: List[SettlementPreviewItem]
    summary: SettlementSummary
