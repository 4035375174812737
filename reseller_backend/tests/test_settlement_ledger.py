"""
Settlement ledger tests.

Idempotent confirmation, the CONFIRMED -> PAID transition, listing,
and the audit/notification side effects.
"""

from dataclasses import replace
from datetime import date

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from reseller_backend.app.core.config import settings
from reseller_backend.app.core.exceptions import (
    AlreadyConfirmedError, AlreadyPaidError, InvalidPeriodError, SettlementNotFoundError, StorageFailureError,
)
from reseller_backend.app.domain.settlement.calculator import SettlementCalculator
from reseller_backend.app.domain.settlement.ledger import SettlementLedger
from reseller_backend.app.models.audit_log import AuditLog
from reseller_backend.app.models.notification import Notification, NotificationType
from reseller_backend.app.models.settlement import Settlement
from reseller_backend.app.models.settlement_enums import SettlementStatus
from reseller_backend.app.services.audit import AuditAction, get_audit_trail

JAN_1, JAN_7 = date(2024, 1, 1), date(2024, 1, 7)
MASTER_ACTOR = {"sub": "master", "user_id": 1, "role": "MASTER"}


async def _count(session_factory, model):
    async with session_factory() as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


async def _settlements(session_factory):
    async with session_factory() as session:
        result = await session.execute(select(Settlement).order_by(Settlement.distributor_id))
        return result.scalars().all()


@pytest.mark.asyncio
async def test_confirm_persists_one_settlement_per_distributor(session_factory, scenario):
    dist_id, empty_id = scenario["dist"].id, scenario["empty_dist"].id

    async with session_factory() as session:
        outcome = await SettlementLedger.confirm(session, "2024-01-01", "2024-01-07", actor=MASTER_ACTOR)

    assert outcome.settlements_created == 2
    assert outcome.period.as_dict() == {"start": "2024-01-01", "end": "2024-01-07"}

    settlements = await _settlements(session_factory)
    assert [s.distributor_id for s in settlements] == [dist_id, empty_id]
    dist = settlements[0]
    assert dist.status == SettlementStatus.CONFIRMED
    assert dist.is_paid is False
    assert dist.paid_at is None
    assert (dist.total_days, dist.free_test_days, dist.daily_rate, dist.total_amount) == (5, 7, 100000, 500000)
    assert dist.details["direct_users"][0]["login_id"] == "user01"
    assert settlements[1].total_amount == 0


@pytest.mark.asyncio
async def test_amount_matches_rate_times_days(session_factory, scenario):
    async with session_factory() as session:
        await SettlementLedger.confirm(session, JAN_1, JAN_7)

    for settlement in await _settlements(session_factory):
        assert settlement.total_amount == settlement.daily_rate * settlement.total_days


@pytest.mark.asyncio
async def test_rate_is_snapshotted_at_confirmation(db_session, session_factory, scenario):
    dist = scenario["dist"]
    async with session_factory() as session:
        await SettlementLedger.confirm(session, JAN_1, JAN_7)

    dist.daily_rate = 999999
    await db_session.commit()

    settlements = await _settlements(session_factory)
    assert settlements[0].daily_rate == 100000
    assert settlements[0].total_amount == 500000


@pytest.mark.asyncio
async def test_second_confirmation_of_same_period_is_rejected(session_factory, scenario):
    async with session_factory() as session:
        await SettlementLedger.confirm(session, JAN_1, JAN_7)

    async with session_factory() as session:
        with pytest.raises(AlreadyConfirmedError) as exc_info:
            await SettlementLedger.confirm(session, JAN_1, JAN_7)

    assert exc_info.value.status_code == 409
    assert exc_info.value.details == {"period_start": "2024-01-01", "period_end": "2024-01-07"}
    assert await _count(session_factory, Settlement) == 2


@pytest.mark.asyncio
async def test_overlapping_but_different_period_is_a_new_run(session_factory, scenario):
    async with session_factory() as session:
        await SettlementLedger.confirm(session, JAN_1, JAN_7)
        outcome = await SettlementLedger.confirm(session, date(2024, 1, 3), date(2024, 1, 9))

    assert outcome.settlements_created == 2
    assert await _count(session_factory, Settlement) == 4


@pytest.mark.asyncio
async def test_invalid_period_writes_nothing(session_factory, scenario):
    async with session_factory() as session:
        with pytest.raises(InvalidPeriodError):
            await SettlementLedger.confirm(session, JAN_7, JAN_1)

    assert await _count(session_factory, Settlement) == 0
    assert await _count(session_factory, AuditLog) == 0


@pytest.mark.asyncio
async def test_uniqueness_race_maps_to_already_confirmed(session_factory, scenario, mocker):
    """A concurrent run that commits first makes the loser's insert hit the unique constraint."""
    async with session_factory() as session:
        real = await SettlementCalculator.calculate_all(session, JAN_1, JAN_7)

    # Duplicate the first distributor's row to collide inside one batch
    mocker.patch.object(
        SettlementCalculator,
        "calculate_all",
        new=mocker.AsyncMock(return_value=real + [replace(real[0], total_days=1, total_amount=1)]),
    )

    async with session_factory() as session:
        with pytest.raises(AlreadyConfirmedError):
            await SettlementLedger.confirm(session, JAN_1, JAN_7)

    assert await _count(session_factory, Settlement) == 0


@pytest.mark.asyncio
async def test_commit_failure_is_a_storage_failure(session_factory, scenario, mocker):
    mocker.patch.object(
        AsyncSession,
        "commit",
        new=mocker.AsyncMock(side_effect=OperationalError("COMMIT", {}, Exception("database is locked"))),
    )

    async with session_factory() as session:
        with pytest.raises(StorageFailureError) as exc_info:
            await SettlementLedger.confirm(session, JAN_1, JAN_7)

    mocker.stopall()
    assert exc_info.value.status_code == 503
    assert exc_info.value.error_code == "ERR_SETTLEMENT_STORAGE"
    assert await _count(session_factory, Settlement) == 0


@pytest.mark.asyncio
async def test_confirmation_records_audit_and_notifications(session_factory, scenario):
    dist_id = scenario["dist"].id
    async with session_factory() as session:
        outcome = await SettlementLedger.confirm(session, JAN_1, JAN_7, actor=MASTER_ACTOR)

    async with session_factory() as session:
        trail = await get_audit_trail(session, target_user_id=dist_id, action=AuditAction.SETTLEMENT_CONFIRMED)
        assert len(trail) == 1
        assert trail[0].actor_username == "master"
        assert trail[0].meta_data["total_amount"] == 500000
        assert trail[0].meta_data["settlement_id"] in outcome.settlement_ids

        notifications = (
            await session.execute(select(Notification).where(Notification.account_id == dist_id))
        ).scalars().all()
        assert len(notifications) == 1
        assert notifications[0].type == NotificationType.SETTLEMENT_UPDATE
        assert "2024.01.01 ~ 2024.01.07" in notifications[0].message
        assert "500,000" in notifications[0].message


@pytest.mark.asyncio
async def test_notifications_can_be_disabled(session_factory, scenario, monkeypatch):
    monkeypatch.setattr(settings, "settlement_notify_distributors", False)
    async with session_factory() as session:
        await SettlementLedger.confirm(session, JAN_1, JAN_7)

    assert await _count(session_factory, Notification) == 0
    assert await _count(session_factory, AuditLog) == 2


@pytest.mark.asyncio
async def test_rejected_run_is_audited(session_factory, scenario):
    async with session_factory() as session:
        await SettlementLedger.confirm(session, JAN_1, JAN_7)
        with pytest.raises(AlreadyConfirmedError):
            await SettlementLedger.confirm(session, JAN_1, JAN_7)

    async with session_factory() as session:
        trail = await get_audit_trail(session, action=AuditAction.SETTLEMENT_RUN_FAILED)
    assert len(trail) == 1
    assert trail[0].actor_username == "system"
    assert trail[0].meta_data["error_code"] == "ERR_SETTLEMENT_ALREADY_CONFIRMED"
    assert trail[0].meta_data["period_start"] == "2024-01-01"


@pytest.mark.asyncio
async def test_mark_paid_moves_to_paid_once(session_factory, scenario):
    master_id = scenario["master"].id
    actor = {"sub": "master", "user_id": master_id, "role": "MASTER"}
    async with session_factory() as session:
        outcome = await SettlementLedger.confirm(session, JAN_1, JAN_7)
    settlement_id = outcome.settlement_ids[0]

    async with session_factory() as session:
        paid = await SettlementLedger.mark_paid(session, settlement_id, actor=actor)
        assert paid.status == SettlementStatus.PAID
        assert paid.is_paid is True
        assert paid.paid_at is not None
        assert paid.paid_by_id == master_id

    async with session_factory() as session:
        with pytest.raises(AlreadyPaidError) as exc_info:
            await SettlementLedger.mark_paid(session, settlement_id, actor=actor)
    assert exc_info.value.error_code == "ERR_SETTLEMENT_ALREADY_PAID"

    async with session_factory() as session:
        trail = await get_audit_trail(session, action=AuditAction.SETTLEMENT_PAID)
    assert len(trail) == 1
    assert trail[0].meta_data == {"settlement_id": settlement_id, "total_amount": 500000}


@pytest.mark.asyncio
async def test_mark_paid_unknown_id(session_factory, scenario):
    async with session_factory() as session:
        with pytest.raises(SettlementNotFoundError) as exc_info:
            await SettlementLedger.mark_paid(session, 4242)
    assert exc_info.value.status_code == 404
    assert exc_info.value.error_code == "ERR_NOT_FOUND_001"


@pytest.mark.asyncio
async def test_list_confirmed_newest_period_first(session_factory, scenario):
    dist_id = scenario["dist"].id
    async with session_factory() as session:
        await SettlementLedger.confirm(session, JAN_1, JAN_7)
        await SettlementLedger.confirm(session, date(2024, 1, 8), date(2024, 1, 14))
        await SettlementLedger.confirm(session, date(2023, 12, 25), date(2023, 12, 31))

    async with session_factory() as session:
        listed = await SettlementLedger.list_confirmed(session, distributor_id=dist_id)

    assert [s.period_start for s in listed] == [date(2024, 1, 8), JAN_1, date(2023, 12, 25)]
    assert all(s.distributor_id == dist_id for s in listed)


@pytest.mark.asyncio
async def test_list_confirmed_filters_by_paid_state(session_factory, scenario):
    async with session_factory() as session:
        outcome = await SettlementLedger.confirm(session, JAN_1, JAN_7)
        await SettlementLedger.mark_paid(session, outcome.settlement_ids[0])

    async with session_factory() as session:
        paid = await SettlementLedger.list_confirmed(session, is_paid=True)
        unpaid = await SettlementLedger.list_confirmed(session, is_paid=False)

    assert [s.id for s in paid] == [outcome.settlement_ids[0]]
    assert [s.id for s in unpaid] == [outcome.settlement_ids[1]]


@pytest.mark.asyncio
async def test_list_confirmed_limit_is_clamped(session_factory, scenario, monkeypatch):
    monkeypatch.setattr(settings, "settlement_list_max_limit", 3)
    async with session_factory() as session:
        for week in range(3):
            start = date(2024, 1, 1 + 7 * week)
            await SettlementLedger.confirm(session, start, date(2024, 1, 7 + 7 * week))

    async with session_factory() as session:
        assert len(await SettlementLedger.list_confirmed(session, limit=1000)) == 3
        assert len(await SettlementLedger.list_confirmed(session, limit=0)) == 1
        assert len(await SettlementLedger.list_confirmed(session)) == 3


@pytest.mark.asyncio
async def test_confirm_without_distributors_writes_nothing_and_can_repeat(session_factory):
    async with session_factory() as session:
        first = await SettlementLedger.confirm(session, JAN_1, JAN_7)
    async with session_factory() as session:
        second = await SettlementLedger.confirm(session, JAN_1, JAN_7)

    assert first.settlements_created == 0
    assert second.settlements_created == 0
    assert await _count(session_factory, Settlement) == 0
