"""
Shared seed logic for departments and the admin user.
Used by scripts/seed_data.py.
"""
import os
from datetime import date
from typing import Optional

from dotenv import load_dotenv
from sqlalchemy import select  # type: ignore
from sqlalchemy.ext.asyncio import AsyncSession  # type: ignore

from ezleave.models import User as UserModel, Department, UserRole
from ezleave.services.balance_ledger import grant_initial_balances
from ezleave.utils.security import get_password_hash

load_dotenv()

# Default admin credentials
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@ezleave.com")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")
ADMIN_EMPLOYEE_ID = "ADMIN001"

DEFAULT_DEPARTMENTS = [
    ("Human Resources", "Manages employee relations and policies"),
    ("Information Technology", "Handles technology infrastructure and development"),
    ("Marketing", "Responsible for marketing and brand management"),
    ("Finance", "Manages financial operations and accounting"),
    ("Operations", "Oversees daily business operations"),
]


async def run_seed_departments(db: AsyncSession) -> int:
    """
    Create missing default departments. Does not commit.
    Returns the number created.
    """
    result = await db.execute(select(Department.name))
    existing = {name.lower() for name in result.scalars().all()}
    created = 0
    for name, description in DEFAULT_DEPARTMENTS:
        if name.lower() in existing:
            continue
        db.add(Department(name=name, description=description, is_active=True))
        created += 1
    if created:
        await db.flush()
    return created


async def run_seed_admin(db: AsyncSession, department_name: Optional[str] = "Human Resources") -> bool:
    """
    Create default admin user if not present. Does not commit.
    Returns True if admin was created, False if already existed.
    """
    result = await db.execute(select(UserModel).where(UserModel.email == ADMIN_EMAIL))
    if result.scalar_one_or_none():
        return False

    department_id = None
    if department_name:
        result = await db.execute(select(Department).where(Department.name == department_name))
        department = result.scalar_one_or_none()
        department_id = department.id if department else None

    admin_user = UserModel(
        employee_id=ADMIN_EMPLOYEE_ID,
        email=ADMIN_EMAIL,
        first_name="System",
        last_name="Administrator",
        hashed_password=get_password_hash(ADMIN_PASSWORD),
        role=UserRole.ADMIN,
        department_id=department_id,
        position="System Administrator",
        date_of_joining=date.today(),
        is_active=True,
    )
    db.add(admin_user)
    await db.flush()

    await grant_initial_balances(db, admin_user.id)
    return True


SAMPLE_PASSWORD = os.getenv("SAMPLE_PASSWORD", "password123")

# (employee_id, first, last, email, role, department, position)
SAMPLE_USERS = [
    ("EMP002", "Sarah", "Johnson", "hr@ezleave.com", UserRole.HR, "Human Resources", "HR Specialist"),
    ("EMP003", "Mike", "Smith", "employee@ezleave.com", UserRole.EMPLOYEE, "Information Technology", "Software Developer"),
    ("EMP004", "Emily", "Davis", "emily.davis@ezleave.com", UserRole.EMPLOYEE, "Marketing", "Marketing Coordinator"),
    ("EMP005", "David", "Wilson", "david.wilson@ezleave.com", UserRole.EMPLOYEE, "Finance", "Financial Analyst"),
    ("EMP006", "Lisa", "Brown", "lisa.brown@ezleave.com", UserRole.EMPLOYEE, "Operations", "Operations Manager"),
]


async def run_seed_sample_users(db: AsyncSession) -> int:
    """
    Create the demo HR user and employees, and make the first member of each
    department its head when it has none. Does not commit.
    """
    result = await db.execute(select(Department))
    departments = {d.name: d for d in result.scalars().all()}
    created = 0

    for employee_id, first_name, last_name, email, role, department_name, position in SAMPLE_USERS:
        result = await db.execute(select(UserModel).where(UserModel.email == email))
        if result.scalar_one_or_none():
            continue
        department = departments.get(department_name)
        user = UserModel(
            employee_id=employee_id,
            email=email,
            first_name=first_name,
            last_name=last_name,
            hashed_password=get_password_hash(SAMPLE_PASSWORD),
            role=role,
            department_id=department.id if department else None,
            position=position,
            date_of_joining=date.today(),
            is_active=True,
        )
        db.add(user)
        await db.flush()
        await grant_initial_balances(db, user.id)
        if department is not None and department.head_id is None:
            department.head_id = user.id
        created += 1

    return created
