"""
Database seeding script for a demo reseller hierarchy.

Creates MASTER, two DISTRIBUTORs, two AGENCYs, eight USERs and a set of
subscriptions around today's date so a preview or settlement run has
something to count. Run this script after the database is reachable.
"""

import asyncio
import sys
from datetime import date, timedelta
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from reseller_backend.app.db.session import AsyncSessionLocal, engine, Base
from reseller_backend.app.models.account import Account
from reseller_backend.app.models.enums import AccountRole
from reseller_backend.app.models.subscription import Subscription
from reseller_backend.app.models.subscription_enums import ServiceType, SubscriptionStatus
from reseller_backend.app.models.settlement import Settlement  # noqa: F401
from reseller_backend.app.models.audit_log import AuditLog  # noqa: F401
from reseller_backend.app.models.notification import Notification  # noqa: F401
from sqlalchemy import select

SERVICE_ROTATION = [ServiceType.STOCK, ServiceType.COIN, ServiceType.COIN_FUTURES]


def _account(login_id, name, role, parent=None, daily_rate=0):
    return Account(
        login_id=login_id,
        name=name,
        role=role,
        parent_id=parent.id if parent is not None else None,
        daily_rate=daily_rate,
        is_active=True,
    )


async def seed_accounts():
    """
    Seed the demo hierarchy.

    Creates:
    - master
    - dist_01 (daily_rate 100000) with agency_01, agency_02 and three direct users
    - dist_02 (daily_rate 150000) with no subordinates
    - user_001..user_005 under the agencies, user_006..user_008 under dist_01
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("🌱 Starting account seeding...")

        result = await db.execute(select(Account).where(Account.login_id == "master"))
        if result.scalar_one_or_none():
            print("ℹ️  master account already exists, skipping seeding")
            return

        master = _account("master", "Master", AccountRole.MASTER)
        db.add(master)
        await db.flush()

        dist1 = _account("dist_01", "Distributor 1", AccountRole.DISTRIBUTOR, master, daily_rate=100000)
        dist2 = _account("dist_02", "Distributor 2", AccountRole.DISTRIBUTOR, master, daily_rate=150000)
        db.add_all([dist1, dist2])
        await db.flush()
        print("✅ Created distributors: dist_01, dist_02")

        agency1 = _account("agency_01", "Agency 1", AccountRole.AGENCY, dist1)
        agency2 = _account("agency_02", "Agency 2", AccountRole.AGENCY, dist1)
        db.add_all([agency1, agency2])
        await db.flush()
        print("✅ Created agencies: agency_01, agency_02")

        users = []
        for i in range(1, 9):
            if i <= 3:
                parent = agency1
            elif i <= 5:
                parent = agency2
            else:
                parent = dist1
            users.append(_account(f"user_{i:03d}", f"User {i}", AccountRole.USER, parent))
        db.add_all(users)
        await db.flush()
        print(f"✅ Created {len(users)} users")

        today = date.today()
        subscriptions = []

        # Running subscriptions
        for i, user in enumerate(users[:5]):
            start = today - timedelta(days=2 * i)
            subscriptions.append(Subscription(
                account_id=user.id,
                service_type=SERVICE_ROTATION[i % 3],
                start_date=start,
                end_date=start + timedelta(days=30),
                status=SubscriptionStatus.ACTIVE,
            ))

        # Expiring within the week
        for i, user in enumerate(users[5:]):
            subscriptions.append(Subscription(
                account_id=user.id,
                service_type=ServiceType.STOCK,
                start_date=today - timedelta(days=25),
                end_date=today + timedelta(days=i + 1),
                status=SubscriptionStatus.ACTIVE,
            ))

        # Free test, never billed
        subscriptions.append(Subscription(
            account_id=users[0].id,
            service_type=ServiceType.COIN,
            start_date=today,
            end_date=today + timedelta(days=7),
            status=SubscriptionStatus.ACTIVE,
            is_free_test=True,
        ))

        db.add_all(subscriptions)
        await db.commit()
        print(f"✅ Created {len(subscriptions)} subscriptions")

        print("\n🎉 Account seeding completed successfully!")
        print("\nSeeded hierarchy:")
        print("  - MASTER:      master")
        print("  - DISTRIBUTOR: dist_01 (100,000/day), dist_02 (150,000/day)")
        print("  - AGENCY:      agency_01, agency_02 (under dist_01)")
        print("  - USER:        user_001 ~ user_008")


if __name__ == "__main__":
    asyncio.run(seed_accounts())
