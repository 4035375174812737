"""
Centralized Test Configuration.
"""

from datetime import date

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from reseller_backend.app.main import app
from reseller_backend.app.db.session import get_db, Base
from reseller_backend.app.core.jwt import create_account_token
import reseller_backend.app.core.redis_client as redis_client_module
from reseller_backend.app.models.account import Account
from reseller_backend.app.models.enums import AccountRole
from reseller_backend.app.models.subscription import Subscription
from reseller_backend.app.models.subscription_enums import ServiceType, SubscriptionStatus

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Event handler to enable foreign keys for SQLite
from sqlalchemy import event
from sqlalchemy.pool import Pool

@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False

    async def ping(self):
        if self._closed:
            return False
        return True

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        return True

    async def delete(self, key):
        if self._closed:
            return 0
        if key in self.store:
            del self.store[key]
            return 1
        return 0

    async def exists(self, key):
        if self._closed:
            return 0
        return 1 if key in self.store else 0

    def flushdb(self):
        self.store = {}

    async def aclose(self):
        self._closed = True
        self.store = {}


_mock_redis = MockRedis()


@pytest.fixture(scope="session")
def redis_client_session():
    return _mock_redis


@pytest.fixture(scope="session", autouse=True)
def apply_overrides(redis_client_session):
    """Apply overrides once for the session.
    Global override is safer here than per-test override to avoid app state flux.
    """

    # Patch the global redis client used for token revocation
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = redis_client_session

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield

    # Restore and clear
    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client


@pytest.fixture(autouse=True)
async def setup_database(redis_client_session):
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    redis_client_session.flushdb()

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


# Independent sessions for code that owns its transaction (rollback expires fixture objects)
@pytest.fixture
def session_factory():
    return TestingSessionLocal


# Data builders

@pytest.fixture
def make_account(db_session):
    async def _make(login_id, role, parent=None, daily_rate=0, is_active=True):
        account = Account(
            login_id=login_id,
            name=login_id.upper(),
            role=role,
            parent_id=parent.id if parent is not None else None,
            daily_rate=daily_rate,
            is_active=is_active,
        )
        db_session.add(account)
        await db_session.commit()
        return account
    return _make


@pytest.fixture
def make_subscription(db_session):
    async def _make(account, service_type, start, end, is_free_test=False, status=SubscriptionStatus.ACTIVE):
        subscription = Subscription(
            account_id=account.id,
            service_type=service_type,
            start_date=start,
            end_date=end,
            is_free_test=is_free_test,
            status=status,
        )
        db_session.add(subscription)
        await db_session.commit()
        return subscription
    return _make


@pytest.fixture
def auth_headers():
    def _headers(account):
        token = create_account_token(account.id, account.login_id, account.role)
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
async def scenario(make_account, make_subscription):
    """
    Reference hierarchy:

    master
      dist01 (daily_rate=100000)
        user01  STOCK  2024-01-03 ~ 2024-01-10 (paid)
        agency01
          user02  COIN  2024-01-01 ~ 2024-01-31 (free test)
      dist02 (daily_rate=0, no subordinates)
    """
    master = await make_account("master", AccountRole.MASTER)
    dist = await make_account("dist01", AccountRole.DISTRIBUTOR, parent=master, daily_rate=100000)
    empty_dist = await make_account("dist02", AccountRole.DISTRIBUTOR, parent=master, daily_rate=0)
    user1 = await make_account("user01", AccountRole.USER, parent=dist)
    agency = await make_account("agency01", AccountRole.AGENCY, parent=dist)
    user2 = await make_account("user02", AccountRole.USER, parent=agency)

    await make_subscription(user1, ServiceType.STOCK, date(2024, 1, 3), date(2024, 1, 10))
    await make_subscription(user2, ServiceType.COIN, date(2024, 1, 1), date(2024, 1, 31), is_free_test=True)

    return {
        "master": master,
        "dist": dist,
        "empty_dist": empty_dist,
        "user1": user1,
        "agency": agency,
        "user2": user2,
    }
