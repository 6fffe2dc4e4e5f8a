import logging
import math
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy import select, func, and_  # type: ignore
from sqlalchemy.ext.asyncio import AsyncSession  # type: ignore

from ezleave.db import get_db
from ezleave.models import (
    User as UserModel,
    Department,
    LeaveRequestModel,
    LeaveStatusEnum,
    DepartmentCreate,
    DepartmentUpdate,
    DepartmentSchema,
    UserPage,
)
from ezleave.routes.auth import get_current_user, user_model_to_pydantic
from ezleave.routes.users import require_manager
from ezleave.services.audit import diff_values, log_action as audit_log_action
from ezleave.services.exceptions import Conflict, NotFound, ValidationError
from ezleave.utils.action_log import log_user_action

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/departments", tags=["Departments"])


async def _get_department_or_404(db: AsyncSession, department_id: int) -> Department:
    department = await db.get(Department, department_id)
    if not department:
        raise NotFound("Department not found")
    return department


async def _ensure_unique_name(db: AsyncSession, name: str, exclude_id: Optional[int] = None) -> None:
    conditions = [func.lower(Department.name) == name.lower()]
    if exclude_id is not None:
        conditions.append(Department.id != exclude_id)
    result = await db.execute(select(Department.id).where(and_(*conditions)))
    if result.first():
        raise Conflict("Department already exists")


async def _ensure_head_exists(db: AsyncSession, head_id: Optional[int]) -> None:
    if head_id is None:
        return
    head = await db.get(UserModel, head_id)
    if not head:
        raise ValidationError("Head user not found")


@router.get("", response_model=List[DepartmentSchema])
async def list_departments(
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Department).where(Department.is_active == True).order_by(Department.name)  # noqa: E712
    )
    return result.scalars().all()


@router.get("/{department_id}", response_model=DepartmentSchema)
async def get_department(
    department_id: int,
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await _get_department_or_404(db, department_id)


@router.post("", response_model=DepartmentSchema, status_code=status.HTTP_201_CREATED)
async def create_department(
    request: Request,
    body: DepartmentCreate,
    current_user: UserModel = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    name = body.name.strip()
    await _ensure_unique_name(db, name)
    await _ensure_head_exists(db, body.head_id)

    department = Department(name=name, description=body.description, head_id=body.head_id, is_active=True)
    db.add(department)
    await db.flush()
    await audit_log_action(
        db,
        "CREATE_DEPARTMENT",
        "DEPARTMENT",
        user_id=current_user.id,
        actor_role=current_user.role.value,
        affected_entity_id=department.id,
        new_values={"name": name, "head_id": body.head_id},
        summary=f"User #{current_user.id} created department {name}",
        request_method=request.method,
        request_path=request.url.path,
    )
    await db.commit()
    await db.refresh(department)
    log_user_action("CREATED_DEPARTMENT", user_id=current_user.id, role=current_user.role.value, department=name)
    return department


@router.put("/{department_id}", response_model=DepartmentSchema)
async def update_department(
    request: Request,
    department_id: int,
    body: DepartmentUpdate,
    current_user: UserModel = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    department = await _get_department_or_404(db, department_id)
    changes = body.model_dump(exclude_unset=True)

    if changes.get("name"):
        changes["name"] = changes["name"].strip()
        if changes["name"].lower() != department.name.lower():
            await _ensure_unique_name(db, changes["name"], exclude_id=department_id)
    elif "name" in changes:
        changes.pop("name")
    if "head_id" in changes:
        await _ensure_head_exists(db, changes["head_id"])

    old_values = {field: getattr(department, field) for field in changes}
    for field, value in changes.items():
        setattr(department, field, value)

    old_values, changes = diff_values(old_values, changes)
    await audit_log_action(
        db,
        "UPDATE_DEPARTMENT",
        "DEPARTMENT",
        user_id=current_user.id,
        actor_role=current_user.role.value,
        affected_entity_id=department_id,
        old_values=old_values,
        new_values=changes,
        summary=f"User #{current_user.id} updated department #{department_id}",
        request_method=request.method,
        request_path=request.url.path,
    )
    await db.commit()
    await db.refresh(department)
    log_user_action("UPDATED_DEPARTMENT", user_id=current_user.id, role=current_user.role.value, department=department_id)
    return department


@router.delete("/{department_id}")
async def delete_department(
    request: Request,
    department_id: int,
    current_user: UserModel = Depends(require_manager),
    db: AsyncSession = Depends(get_db),
):
    """Soft delete; refused while users are still assigned."""
    department = await _get_department_or_404(db, department_id)

    result = await db.execute(select(func.count(UserModel.id)).where(UserModel.department_id == department_id))
    if (result.scalar() or 0) > 0:
        raise ValidationError("Cannot delete department with existing users")

    department.is_active = False
    await audit_log_action(
        db,
        "DEACTIVATE_DEPARTMENT",
        "DEPARTMENT",
        user_id=current_user.id,
        actor_role=current_user.role.value,
        affected_entity_id=department_id,
        old_values={"is_active": True},
        new_values={"is_active": False},
        summary=f"User #{current_user.id} deactivated department #{department_id}",
        request_method=request.method,
        request_path=request.url.path,
    )
    await db.commit()
    log_user_action("DEACTIVATED_DEPARTMENT", user_id=current_user.id, role=current_user.role.value, department=department_id)
    return {"message": "Department deactivated successfully"}


@router.get("/{department_id}/users", response_model=UserPage)
async def department_users(
    department_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await _get_department_or_404(db, department_id)
    condition = and_(UserModel.department_id == department_id, UserModel.is_active == True)  # noqa: E712

    result = await db.execute(
        select(UserModel).where(condition).order_by(UserModel.first_name, UserModel.id)
        .offset((page - 1) * limit).limit(limit)
    )
    users = result.scalars().all()
    total = (await db.execute(select(func.count(UserModel.id)).where(condition))).scalar() or 0

    return {
        "users": [await user_model_to_pydantic(u, db) for u in users],
        "total": total,
        "total_pages": math.ceil(total / limit),
        "current_page": page,
    }


@router.get("/{department_id}/stats")
async def department_stats(
    department_id: int,
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    department = await _get_department_or_404(db, department_id)
    member = and_(UserModel.department_id == department_id, UserModel.is_active == True)  # noqa: E712

    user_count = (await db.execute(select(func.count(UserModel.id)).where(member))).scalar() or 0
    rows = (
        await db.execute(
            select(LeaveRequestModel.status, func.count(LeaveRequestModel.id))
            .join(UserModel, UserModel.id == LeaveRequestModel.employee_id)
            .where(member)
            .group_by(LeaveRequestModel.status)
        )
    ).all()
    by_status = {leave_status.value: count for leave_status, count in rows}

    return {
        "department": department.name,
        "user_count": user_count,
        "leave_stats": {
            "total_leaves": sum(by_status.values()),
            "pending_leaves": by_status.get(LeaveStatusEnum.PENDING.value, 0),
            "approved_leaves": by_status.get(LeaveStatusEnum.APPROVED.value, 0),
        },
    }
