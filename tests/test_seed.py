from sqlalchemy import func, select

from ezleave.models import Department, User, UserRole
from ezleave.services.balance_ledger import get_balances
from ezleave.services.seed import (
    ADMIN_EMAIL,
    DEFAULT_DEPARTMENTS,
    SAMPLE_USERS,
    run_seed_admin,
    run_seed_departments,
    run_seed_sample_users,
)


async def test_seed_is_idempotent(db):
    assert await run_seed_departments(db) == len(DEFAULT_DEPARTMENTS)
    assert await run_seed_admin(db) is True
    await db.commit()

    assert await run_seed_departments(db) == 0
    assert await run_seed_admin(db) is False
    count = (await db.execute(select(func.count(Department.id)))).scalar()
    assert count == len(DEFAULT_DEPARTMENTS)


async def test_admin_gets_role_department_and_balances(db):
    await run_seed_departments(db)
    await run_seed_admin(db)
    await db.commit()

    admin = (
        await db.execute(select(User).where(User.email == ADMIN_EMAIL).execution_options(populate_existing=True))
    ).scalar_one()
    assert admin.role == UserRole.ADMIN
    assert admin.department.name == "Human Resources"
    assert (await get_balances(db, admin.id))["vacation"] == 21


async def test_sample_users_become_department_heads(db):
    await run_seed_departments(db)
    assert await run_seed_sample_users(db) == len(SAMPLE_USERS)
    await db.commit()

    heads = (
        await db.execute(select(Department.name, User.email).join(User, User.id == Department.head_id))
    ).all()
    assert dict(heads)["Human Resources"] == "hr@ezleave.com"
    assert len(heads) == len(DEFAULT_DEPARTMENTS)
