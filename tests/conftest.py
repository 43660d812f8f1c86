"""
Test configuration

Fixtures: in-memory database, HTTP test client, data factory
"""
import os

# Environment for the whole test run; must be set before mockmate is imported
os.environ.update({
    "APP_ENV": "testing",
    "DEBUG": "true",
    "DATABASE_URL": "sqlite+aiosqlite:///:memory:",
    "REDIS_URL": "",
    "RATE_LIMIT_ENABLED": "false",
    "ANALYTICS_TRACKING_ENABLED": "false",
    "BCRYPT_ROUNDS": "4",
    "SMTP_HOST": "",
    "CASHFREE_APP_ID": "",
    "CASHFREE_SECRET_KEY": "",
    "LLM_API_KEY": "",
    "LOG_TO_FILE": "false",
    "JWT_SECRET": "test-access-secret",
    "JWT_REFRESH_SECRET": "test-refresh-secret",
})

from dataclasses import dataclass, field
from typing import Any, AsyncGenerator, Dict, Optional

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from mockmate import models  # noqa: F401  registers every table
from mockmate.core.cache import cache
from mockmate.core.database import Base, get_db
from mockmate.core.security import create_access_token, get_password_hash
from mockmate.crud import payment_crud, resume_crud, session_crud, tenant_crud, user_crud
from mockmate.main import create_app
from mockmate.models.base import utc_now
from mockmate.models.user import User, UserRole
from mockmate.realtime import hub
from mockmate.services.alert_service import alert_service
from mockmate.services.auth_provider_service import auth_provider_service
from mockmate.services.config_service import config_service
from mockmate.services.payment_service import payment_service
from mockmate.services.rules_service import rules_service

PASSWORD = "Passw0rd!"


# ========== Test database ==========

# One shared connection so every session sees the same in-memory database
test_engine = create_async_engine(
    "sqlite+aiosqlite:///:memory:",
    echo=False,
    future=True,
    poolclass=StaticPool,
    connect_args={"check_same_thread": False},
)


@event.listens_for(test_engine.sync_engine, "connect")
def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


@pytest_asyncio.fixture(autouse=True)
async def reset_state():
    """Process-local caches and registries start empty for every test"""
    config_service.reload()
    cache.clear_local()
    hub.clear()
    payment_service.gateway = None
    yield
    payment_service.gateway = None
    hub.clear()


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Fresh schema per test, seeded the way application startup seeds it
    """
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        await config_service.seed_defaults(session)
        await auth_provider_service.seed_defaults(session)
        await rules_service.seed_defaults(session)
        await session.commit()
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTP client bound to the app; each request gets its own test session
    """
    app = create_app()

    async def override_get_db():
        async with TestSessionLocal() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# ========== Data factory ==========

@dataclass
class DataFactory:
    """
    Test data built straight in the database

    Accounts are created verified so tests can authenticate with `headers()`
    without going through the email flow.
    """
    db: AsyncSession
    _counter: int = field(default=0, repr=False)

    def _next_id(self) -> str:
        self._counter += 1
        return str(self._counter)

    async def refresh(self, obj):
        await self.db.refresh(obj)
        return obj

    async def create_user(self, **overrides) -> User:
        suffix = self._next_id()
        password = overrides.pop("password", PASSWORD)
        data = {
            "email": f"user{suffix}@example.com",
            "password_hash": get_password_hash(password),
            "first_name": "Test",
            "last_name": f"User{suffix}",
            "role": UserRole.USER,
            "credits": 5,
            "is_verified": True,
            **overrides,
        }
        user = await user_crud.create(self.db, obj_in=data)
        await self.db.commit()
        return user

    async def create_admin(self, **overrides) -> User:
        return await self.create_user(role=UserRole.ADMIN, **overrides)

    @staticmethod
    def headers(user: User) -> Dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    async def create_resume(self, user: User, **overrides):
        from mockmate.models.resume import ResumeCreate

        suffix = self._next_id()
        data = ResumeCreate(**{
            "title": f"Resume {suffix}",
            "content": "Python developer with five years of FastAPI and PostgreSQL experience.",
            **overrides,
        })
        resume = await resume_crud.create_resume(self.db, user_id=user.id, obj_in=data)
        await self.db.commit()
        return resume

    async def create_session(self, user: User, **overrides):
        suffix = self._next_id()
        data: Dict[str, Any] = {
            "user_id": user.id,
            "job_title": f"Backend Engineer {suffix}",
            "difficulty": "intermediate",
            "session_type": "technical",
            "duration": 30,
            "status": "created",
            **overrides,
        }
        if data["status"] in ("active", "paused", "completed") and "started_at" not in overrides:
            data["started_at"] = utc_now()
        session = await session_crud.create(self.db, obj_in=data)
        await self.db.commit()
        return session

    async def create_alert(self, **overrides):
        suffix = self._next_id()
        data = {
            "title": f"Alert {suffix}",
            "message": "Scheduled maintenance tonight",
            **overrides,
        }
        alert = await alert_service.create_alert(self.db, data, created_by=overrides.get("created_by"))
        await self.db.commit()
        return alert

    async def create_tenant(self, **overrides):
        suffix = self._next_id()
        data = {
            "tenant_id": f"acme-{suffix}",
            "name": f"Acme {suffix}",
            "status": "active",
            **overrides,
        }
        tenant = await tenant_crud.create(self.db, obj_in=data)
        await self.db.commit()
        return tenant

    async def create_payment(self, user: User, **overrides):
        suffix = self._next_id()
        data = {
            "user_id": user.id,
            "order_id": f"MM_TEST_{suffix}",
            "package_id": "starter",
            "amount_cents": 49900,
            "currency": "INR",
            "credits": 10,
            "status": "pending",
            "payment_metadata": {"package_name": "Starter Pack"},
            **overrides,
        }
        payment = await payment_crud.create(self.db, obj_in=data)
        await self.db.commit()
        return payment

    async def get(self, model, id: str) -> Optional[Any]:
        """Re-read a row, bypassing the identity map"""
        return await self.db.get(model, id, populate_existing=True)


@pytest_asyncio.fixture
async def factory(db_session: AsyncSession) -> DataFactory:
    """Test data factory"""
    return DataFactory(db=db_session)


@pytest_asyncio.fixture
async def user(factory: DataFactory) -> User:
    return await factory.create_user()


@pytest_asyncio.fixture
async def admin(factory: DataFactory) -> User:
    return await factory.create_admin()


@pytest_asyncio.fixture
async def user_headers(factory: DataFactory, user: User) -> Dict[str, str]:
    return factory.headers(user)


@pytest_asyncio.fixture
async def admin_headers(factory: DataFactory, admin: User) -> Dict[str, str]:
    return factory.headers(admin)
