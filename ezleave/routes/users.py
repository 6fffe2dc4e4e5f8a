import logging
import math
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import select, func, and_, or_  # type: ignore
from sqlalchemy.ext.asyncio import AsyncSession  # type: ignore

from ezleave.db import get_db
from ezleave.models import (
    User as UserModel,
    Department,
    LeaveRequestModel,
    LeaveStatusEnum,
    UserRole,
    UserUpdateAdmin,
    UserSchema,
    UserPage,
    LeavePage,
)
from ezleave.routes.auth import get_current_user, user_model_to_pydantic
from ezleave.services.audit import diff_values, log_action as audit_log_action
from ezleave.services.balance_ledger import get_balances, lock_balances, set_balances
from ezleave.services.exceptions import Conflict, Forbidden, NotFound, ValidationError
from ezleave.services.leave_lifecycle import LeaveLifecycleManager
from ezleave.utils.action_log import log_user_action
from ezleave.utils.permissions import can_manage, is_owner_or_privileged

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["Users"])

# Fields an employee may change on their own record
SELF_EDITABLE_FIELDS = {"first_name", "last_name", "phone"}


def require_manager(current_user: UserModel = Depends(get_current_user)) -> UserModel:
    """Dependency: HR or admin only."""
    if not can_manage(current_user.role):
        raise Forbidden("HR or admin access required")
    return current_user


async def _get_user_or_404(db: AsyncSession, user_id: int) -> UserModel:
    user = await db.get(UserModel, user_id)
    if not user:
        raise NotFound("User not found")
    return user


@router.get("", response_model=UserPage)
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    department: Optional[int] = None,
    role: Optional[str] = None,
    search: Optional[str] = None,
    current_user: UserModel = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    conditions = []
    if department is not None:
        conditions.append(UserModel.department_id == department)
    if role:
        try:
            conditions.append(UserModel.role == UserRole(role.lower()))
        except ValueError:
            raise ValidationError(f"Invalid role '{role}'")
    if search:
        pattern = f"%{search.strip().lower()}%"
        conditions.append(
            or_(
                func.lower(UserModel.first_name).like(pattern),
                func.lower(UserModel.last_name).like(pattern),
                func.lower(UserModel.email).like(pattern),
                func.lower(UserModel.employee_id).like(pattern),
            )
        )

    query = select(UserModel)
    count_query = select(func.count(UserModel.id))
    if conditions:
        query = query.where(and_(*conditions))
        count_query = count_query.where(and_(*conditions))

    result = await db.execute(
        query.order_by(UserModel.created_at.desc(), UserModel.id.desc()).offset((page - 1) * limit).limit(limit)
    )
    users = result.scalars().all()
    total = (await db.execute(count_query)).scalar() or 0

    return {
        "users": [await user_model_to_pydantic(u, db) for u in users],
        "total": total,
        "total_pages": math.ceil(total / limit),
        "current_page": page,
    }


@router.get("/stats/overview")
async def users_overview(
    current_user: UserModel = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    total_users = (await db.execute(select(func.count(UserModel.id)))).scalar() or 0
    active_users = (
        await db.execute(select(func.count(UserModel.id)).where(UserModel.is_active == True))  # noqa: E712
    ).scalar() or 0
    role_rows = (await db.execute(select(UserModel.role, func.count(UserModel.id)).group_by(UserModel.role))).all()
    by_role = {role.value: count for role, count in role_rows}

    department_rows = (
        await db.execute(
            select(Department.name, func.count(UserModel.id))
            .join(UserModel, UserModel.department_id == Department.id)
            .where(UserModel.is_active == True)  # noqa: E712
            .group_by(Department.name)
            .order_by(Department.name)
        )
    ).all()

    leave_rows = (
        await db.execute(
            select(LeaveRequestModel.status, func.count(LeaveRequestModel.id)).group_by(LeaveRequestModel.status)
        )
    ).all()
    by_status = {status.value: count for status, count in leave_rows}

    return {
        "user_stats": {
            "total_users": total_users,
            "active_users": active_users,
            "admin_users": by_role.get(UserRole.ADMIN.value, 0) + by_role.get(UserRole.HR.value, 0),
            "employee_users": by_role.get(UserRole.EMPLOYEE.value, 0),
        },
        "department_stats": [{"department_name": name, "count": count} for name, count in department_rows],
        "leave_stats": {
            "pending_leaves": by_status.get(LeaveStatusEnum.PENDING.value, 0),
            "approved_leaves": by_status.get(LeaveStatusEnum.APPROVED.value, 0),
            "rejected_leaves": by_status.get(LeaveStatusEnum.REJECTED.value, 0),
        },
    }


@router.get("/{user_id}", response_model=UserSchema)
async def get_user(
    user_id: int,
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not is_owner_or_privileged(current_user.id, current_user.role, user_id):
        raise Forbidden()
    user = await _get_user_or_404(db, user_id)
    return await user_model_to_pydantic(user, db)


@router.put("/{user_id}", response_model=UserSchema)
async def update_user(
    request: Request,
    user_id: int,
    body: UserUpdateAdmin,
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    privileged = can_manage(current_user.role)
    if not privileged and current_user.id != user_id:
        raise Forbidden()

    user = await _get_user_or_404(db, user_id)
    changes = body.model_dump(exclude_unset=True)
    balance_targets = changes.pop("leave_balance", None)
    if not privileged:
        # Employees editing themselves: anything else is silently ignored
        changes = {k: v for k, v in changes.items() if k in SELF_EDITABLE_FIELDS}
        balance_targets = None

    if changes.get("email"):
        changes["email"] = changes["email"].lower()
        result = await db.execute(
            select(UserModel.id).where(and_(UserModel.email == changes["email"], UserModel.id != user_id))
        )
        if result.first():
            raise Conflict("Email already in use")
    if changes.get("department_id") is not None:
        department = await db.get(Department, changes["department_id"])
        if not department or not department.is_active:
            raise ValidationError("Department not found")
    for required in ("first_name", "last_name", "email", "role", "is_active"):
        if required in changes and changes[required] is None:
            changes.pop(required)

    old_values = {field: getattr(user, field) for field in changes}
    for field, value in changes.items():
        setattr(user, field, value)

    old_balances = None
    new_balances = None
    if balance_targets:
        await lock_balances(db, user_id)
        old_balances = await get_balances(db, user_id)
        new_balances = await set_balances(db, user_id, balance_targets, changed_by=current_user.id)
        old_values["leave_balance"] = old_balances
        changes["leave_balance"] = new_balances

    old_values, changes = diff_values(old_values, changes)
    await audit_log_action(
        db,
        "UPDATE_USER",
        "USER",
        user_id=current_user.id,
        actor_role=current_user.role.value,
        affected_entity_id=user_id,
        old_values=old_values,
        new_values=changes,
        summary=f"User #{current_user.id} updated user #{user_id}",
        request_method=request.method,
        request_path=request.url.path,
    )
    await db.commit()
    await db.refresh(user)
    log_user_action(
        "UPDATED_USER",
        user_id=current_user.id,
        role=current_user.role.value,
        target=user_id,
        fields=",".join(sorted(changes)),
    )
    return await user_model_to_pydantic(user, db)


@router.delete("/{user_id}")
async def deactivate_user(
    request: Request,
    user_id: int,
    current_user: UserModel = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    """Soft delete: the user is deactivated, never removed."""
    user = await _get_user_or_404(db, user_id)

    if await LeaveLifecycleManager(db).has_active_leave(user_id, date.today()):
        raise ValidationError(
            "Cannot deactivate user with active or future approved leave requests. "
            "Please cancel or reject them first."
        )

    user.is_active = False
    await audit_log_action(
        db,
        "DEACTIVATE_USER",
        "USER",
        user_id=current_user.id,
        actor_role=current_user.role.value,
        affected_entity_id=user_id,
        old_values={"is_active": True},
        new_values={"is_active": False},
        summary=f"User #{current_user.id} deactivated user #{user_id}",
        request_method=request.method,
        request_path=request.url.path,
    )
    await db.commit()
    log_user_action("DEACTIVATED_USER", user_id=current_user.id, role=current_user.role.value, target=user_id)
    return {"message": "User deactivated successfully"}


@router.get("/{user_id}/leaves", response_model=LeavePage)
async def user_leaves(
    user_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    year: Optional[int] = None,
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not is_owner_or_privileged(current_user.id, current_user.role, user_id):
        raise Forbidden()
    return await LeaveLifecycleManager(db).list_leaves(
        current_user, page=page, limit=limit, employee_id=user_id, year=year
    )
