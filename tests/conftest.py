"""Shared fixtures: a fresh in-memory SQLite database per test, user factories
and an httpx client wired to the app with get_db pointed at that database.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("SECRET_KEY", "test-secret")

from datetime import date, timedelta
from itertools import count
from typing import Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from ezleave.db import Base, get_db
from ezleave.main import app
from ezleave.models import Department, LeaveRequestModel, LeaveStatusEnum, LeaveTypeEnum, User, UserRole
from ezleave.services.balance_ledger import grant_initial_balances
from ezleave.utils.security import create_access_token, get_password_hash

PASSWORD = "secret123"
# bcrypt is slow on purpose; hash once for every factory-made user
PASSWORD_HASH = get_password_hash(PASSWORD)

_sequence = count(1)


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    async def _make_user(
        *,
        role: UserRole = UserRole.EMPLOYEE,
        balances: Optional[dict] = None,
        department_id: Optional[int] = None,
        is_active: bool = True,
        first_name: str = "Test",
        last_name: str = "User",
    ) -> User:
        n = next(_sequence)
        user = User(
            employee_id=f"EMP{n:04d}",
            email=f"user{n}@ezleave.com",
            first_name=first_name,
            last_name=last_name,
            hashed_password=PASSWORD_HASH,
            role=role,
            department_id=department_id,
            is_active=is_active,
        )
        db.add(user)
        await db.flush()
        await grant_initial_balances(db, user.id, balances)
        await db.commit()
        await db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_department(db):
    async def _make_department(name: Optional[str] = None, head_id: Optional[int] = None) -> Department:
        department = Department(name=name or f"Department {next(_sequence)}", head_id=head_id, is_active=True)
        db.add(department)
        await db.commit()
        await db.refresh(department)
        return department

    return _make_department


@pytest.fixture
def make_leave(db):
    """Insert a leave row directly, bypassing the lifecycle checks (e.g. for past dates)."""
    async def _make_leave(
        employee: User,
        *,
        start: date,
        end: Optional[date] = None,
        leave_type: LeaveTypeEnum = LeaveTypeEnum.VACATION,
        status: LeaveStatusEnum = LeaveStatusEnum.PENDING,
    ) -> LeaveRequestModel:
        end = end or start
        leave = LeaveRequestModel(
            employee_id=employee.id,
            leave_type=leave_type,
            start_date=start,
            end_date=end,
            total_days=(end - start).days + 1,
            reason="Inserted directly for a test",
            status=status,
        )
        db.add(leave)
        await db.commit()
        return leave

    return _make_leave


def auth_headers(user: User) -> dict:
    token = create_access_token({"sub": user.email, "uid": user.id, "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


def days_from_today(days: int) -> date:
    return date.today() + timedelta(days=days)
