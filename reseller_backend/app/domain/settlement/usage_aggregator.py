"""
Usage Aggregator.

Turns subscription date ranges into billable (paid) and free-test day
counts per account and service type for a settlement period.

Every record is clipped to the period on its own. Overlapping records for
the same account and service are summed, not merged: renewals and
extensions are issued upstream as separate records and each one bills on
its own terms.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Protocol, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from reseller_backend.app.core.config import settings
from reseller_backend.app.models.subscription import Subscription
from reseller_backend.app.models.subscription_enums import ServiceType, SubscriptionStatus

logger = logging.getLogger(__name__)


class CoverageRecord(Protocol):
    account_id: int
    service_type: ServiceType
    start_date: date
    end_date: date
    is_free_test: bool


@dataclass(frozen=True)
class UsageDetail:
    account_id: int
    service_type: ServiceType
    paid_days: int = 0
    free_days: int = 0

    def as_dict(self) -> dict:
        return {
            "service_type": ServiceType(self.service_type).value,
            "paid_days": self.paid_days,
            "free_days": self.free_days,
        }


def overlap_days(start: date, end: date, period_start: date, period_end: date) -> int:
    """Days of [start, end] inside [period_start, period_end], both inclusive."""
    return max(0, (min(end, period_end) - max(start, period_start)).days + 1)


def count_usage(
    records: Iterable[CoverageRecord],
    period_start: date,
    period_end: date,
) -> Dict[int, List[UsageDetail]]:
    """
    Pure aggregation of coverage records.

    Returns:
        account_id -> UsageDetail per service type, ordered by service type.
        Accounts whose records all fall outside the period are absent.
    """
    # (account_id, service_type) -> [paid, free]
    totals: Dict[tuple, List[int]] = defaultdict(lambda: [0, 0])

    for record in records:
        days = overlap_days(record.start_date, record.end_date, period_start, period_end)
        if days == 0:
            continue
        bucket = totals[(record.account_id, ServiceType(record.service_type))]
        if record.is_free_test:
            bucket[1] += days
        else:
            bucket[0] += days

    usage: Dict[int, List[UsageDetail]] = defaultdict(list)
    for (account_id, service_type), (paid, free) in sorted(
        totals.items(), key=lambda item: (item[0][0], item[0][1].value)
    ):
        usage[account_id].append(
            UsageDetail(account_id=account_id, service_type=service_type, paid_days=paid, free_days=free)
        )
    return dict(usage)


def _chunks(ids: Sequence[int], size: int) -> Iterable[Sequence[int]]:
    for i in range(0, len(ids), size):
        yield ids[i:i + size]


async def aggregate(
    db: AsyncSession,
    account_ids: Iterable[int],
    period_start: date,
    period_end: date,
) -> Dict[int, List[UsageDetail]]:
    """
    Aggregate usage for a set of accounts.

    Loads subscriptions intersecting the period in chunks of
    settings.settlement_query_chunk_size account ids, never one query per
    account. Only ACTIVE records bill: a subscription closed early is
    EXPIRED and contributes nothing, even if its end_date was left in place.

    Returns:
        account_id -> list of UsageDetail. Every requested account is a key;
        accounts without coverage in the period map to an empty list.
    """
    ids = sorted(set(account_ids))
    usage: Dict[int, List[UsageDetail]] = {account_id: [] for account_id in ids}
    if not ids:
        return usage

    records: List[Subscription] = []
    chunk_size = max(1, settings.settlement_query_chunk_size)
    for chunk in _chunks(ids, chunk_size):
        result = await db.execute(
            select(Subscription).where(
                Subscription.account_id.in_(chunk),
                Subscription.status == SubscriptionStatus.ACTIVE,
                Subscription.start_date <= period_end,
                Subscription.end_date >= period_start,
            )
        )
        records.extend(result.scalars().all())

    logger.debug(
        "Loaded %d subscription records for %d accounts (%s ~ %s)",
        len(records), len(ids), period_start, period_end,
    )
    usage.update(count_usage(records, period_start, period_end))
    return usage
