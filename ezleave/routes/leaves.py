import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession  # type: ignore

from ezleave.db import get_db
from ezleave.models import (
    User as UserModel,
    LeaveRequestCreate,
    LeaveRejectRequest,
    LeaveCommentCreate,
    LeaveRequestSchema,
    LeavePage,
    LeaveStats,
)
from ezleave.routes.auth import get_current_user
from ezleave.services.exceptions import LeaveError
from ezleave.services.leave_lifecycle import LeaveLifecycleManager

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/leaves", tags=["Leaves"])


def get_lifecycle(request: Request, db: AsyncSession = Depends(get_db)) -> LeaveLifecycleManager:
    return LeaveLifecycleManager(db, request_method=request.method, request_path=request.url.path)


def _internal_error(action: str, exc: Exception) -> HTTPException:
    logger.exception("Error while trying to %s: %s", action, exc)
    return HTTPException(status_code=500, detail="Internal server error")


@router.post("", response_model=LeaveRequestSchema, status_code=status.HTTP_201_CREATED)
async def apply_leave(
    leave: LeaveRequestCreate,
    user: UserModel = Depends(get_current_user),
    lifecycle: LeaveLifecycleManager = Depends(get_lifecycle),
):
    try:
        return await lifecycle.submit(user, leave.leave_type, leave.start_date, leave.end_date, leave.reason)
    except (HTTPException, LeaveError):
        raise
    except Exception as e:
        raise _internal_error("apply leave", e)


@router.get("", response_model=LeavePage)
async def list_leaves(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    leave_type: Optional[str] = None,
    employee_id: Optional[int] = None,
    year: Optional[int] = None,
    user: UserModel = Depends(get_current_user),
    lifecycle: LeaveLifecycleManager = Depends(get_lifecycle),
):
    """Own requests for employees; everything (filterable by employee) for HR/admin."""
    return await lifecycle.list_leaves(
        user,
        page=page,
        limit=limit,
        status=status_filter,
        leave_type=leave_type,
        employee_id=employee_id,
        year=year,
    )


@router.get("/stats/summary", response_model=LeaveStats)
async def leave_stats(
    year: Optional[int] = None,
    employee_id: Optional[int] = None,
    user: UserModel = Depends(get_current_user),
    lifecycle: LeaveLifecycleManager = Depends(get_lifecycle),
):
    return await lifecycle.compute_stats(user, year=year, employee_id=employee_id)


@router.get("/{leave_id}", response_model=LeaveRequestSchema)
async def get_leave(
    leave_id: int,
    user: UserModel = Depends(get_current_user),
    lifecycle: LeaveLifecycleManager = Depends(get_lifecycle),
):
    return await lifecycle.get_leave(user, leave_id)


@router.put("/{leave_id}/approve", response_model=LeaveRequestSchema)
async def approve_leave(
    leave_id: int,
    user: UserModel = Depends(get_current_user),
    lifecycle: LeaveLifecycleManager = Depends(get_lifecycle),
):
    try:
        return await lifecycle.approve(user, leave_id)
    except (HTTPException, LeaveError):
        raise
    except Exception as e:
        raise _internal_error("approve leave", e)


@router.put("/{leave_id}/reject", response_model=LeaveRequestSchema)
async def reject_leave(
    leave_id: int,
    body: LeaveRejectRequest,
    user: UserModel = Depends(get_current_user),
    lifecycle: LeaveLifecycleManager = Depends(get_lifecycle),
):
    try:
        return await lifecycle.reject(user, leave_id, body.rejection_reason)
    except (HTTPException, LeaveError):
        raise
    except Exception as e:
        raise _internal_error("reject leave", e)


@router.put("/{leave_id}/cancel", response_model=LeaveRequestSchema)
async def cancel_leave(
    leave_id: int,
    user: UserModel = Depends(get_current_user),
    lifecycle: LeaveLifecycleManager = Depends(get_lifecycle),
):
    try:
        return await lifecycle.cancel(user, leave_id)
    except (HTTPException, LeaveError):
        raise
    except Exception as e:
        raise _internal_error("cancel leave", e)


@router.post("/{leave_id}/comments", response_model=LeaveRequestSchema)
async def add_comment(
    leave_id: int,
    body: LeaveCommentCreate,
    user: UserModel = Depends(get_current_user),
    lifecycle: LeaveLifecycleManager = Depends(get_lifecycle),
):
    return await lifecycle.add_comment(user, leave_id, body.comment)
