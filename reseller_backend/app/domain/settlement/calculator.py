"""
Settlement Calculator (Domain Logic).

Combines the hierarchy snapshot, aggregated usage and each distributor's
daily rate into per-distributor settlement results. Read-only: nothing
here writes to the database.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from reseller_backend.app.domain.settlement import period_policy
from reseller_backend.app.domain.settlement.hierarchy import AccountNode, HierarchySnapshot, Subordinates
from reseller_backend.app.domain.settlement.usage_aggregator import UsageDetail, aggregate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SettlementResult:
    """Commission owed to one distributor for one period."""
    distributor_id: int
    distributor_login_id: str
    distributor_name: str
    daily_rate: int
    period_start: date
    period_end: date
    total_days: int  # Paid days only
    free_test_days: int
    total_amount: int
    details: Dict[str, Any] = field(default_factory=dict)


def _user_entry(user: AccountNode, usage: List[UsageDetail]) -> Dict[str, Any]:
    return {
        "account_id": user.id,
        "login_id": user.login_id,
        "name": user.name,
        "paid_days": sum(detail.paid_days for detail in usage),
        "free_days": sum(detail.free_days for detail in usage),
        "services": [detail.as_dict() for detail in usage],
    }


def build_result(
    subordinates: Subordinates,
    usage: Dict[int, List[UsageDetail]],
    period_start: date,
    period_end: date,
) -> SettlementResult:
    """
    Assemble one distributor's result and breakdown tree.

    Every subordinate is listed, including those with no usage in the
    period, so the stored breakdown is a complete record of who was counted.
    """
    direct_users = [_user_entry(user, usage.get(user.id, [])) for user in subordinates.direct_users]

    agencies = []
    for members in subordinates.agencies:
        users = [_user_entry(user, usage.get(user.id, [])) for user in members.users]
        agencies.append({
            "agency_id": members.agency.id,
            "login_id": members.agency.login_id,
            "name": members.agency.name,
            "total_days": sum(entry["paid_days"] for entry in users),
            "free_test_days": sum(entry["free_days"] for entry in users),
            "users": users,
        })

    total_days = sum(entry["paid_days"] for entry in direct_users) + sum(a["total_days"] for a in agencies)
    free_test_days = sum(entry["free_days"] for entry in direct_users) + sum(a["free_test_days"] for a in agencies)

    distributor = subordinates.distributor
    daily_rate = int(distributor.daily_rate or 0)

    return SettlementResult(
        distributor_id=distributor.id,
        distributor_login_id=distributor.login_id,
        distributor_name=distributor.name,
        daily_rate=daily_rate,
        period_start=period_start,
        period_end=period_end,
        total_days=total_days,
        free_test_days=free_test_days,
        total_amount=daily_rate * total_days,
        details={"direct_users": direct_users, "agencies": agencies},
    )


def summarize(results: Iterable[SettlementResult]) -> Dict[str, int]:
    """Run-level totals across distributors."""
    results = list(results)
    return {
        "total_amount": sum(r.total_amount for r in results),
        "total_days": sum(r.total_days for r in results),
        "total_free_test_days": sum(r.free_test_days for r in results),
    }


class SettlementCalculator:

    @staticmethod
    async def calculate_all(
        db: AsyncSession,
        period_start: Any,
        period_end: Any,
        snapshot: Optional[HierarchySnapshot] = None,
    ) -> List[SettlementResult]:
        """
        Calculate settlements for every distributor.

        Flow:
        1. Validate the period (InvalidPeriodError before any query)
        2. Load one hierarchy snapshot for the whole run
        3. Resolve each distributor's subordinates
        4. Aggregate usage for all subordinates in one batched read
        5. Build one result per distributor (zero-usage ones included)
        """
        period = period_policy.validate(period_start, period_end)
        if snapshot is None:
            snapshot = await HierarchySnapshot.load(db)

        subordinate_sets = [snapshot.subordinates_of(d.id) for d in snapshot.distributors()]
        account_ids = [account_id for subs in subordinate_sets for account_id in subs.account_ids()]
        usage = await aggregate(db, account_ids, period.start, period.end)

        results = [build_result(subs, usage, period.start, period.end) for subs in subordinate_sets]
        logger.info(
            "Calculated %d settlements for %s ~ %s (%d subordinate accounts)",
            len(results), period.start, period.end, len(account_ids),
        )
        return results

    @staticmethod
    async def calculate_for(
        db: AsyncSession,
        distributor_id: int,
        period_start: Any,
        period_end: Any,
    ) -> SettlementResult:
        """
        Calculate the settlement of a single distributor.

        Raises:
            InvalidPeriodError: inverted or malformed period
            AccountNotFoundError: distributor_id is not a DISTRIBUTOR
        """
        period = period_policy.validate(period_start, period_end)
        snapshot = await HierarchySnapshot.load(db)
        subordinates = snapshot.subordinates_of(distributor_id)
        usage = await aggregate(db, subordinates.account_ids(), period.start, period.end)
        return build_result(subordinates, usage, period.start, period.end)
