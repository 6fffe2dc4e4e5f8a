"""
Models package for EZLeave.

SQLAlchemy ORM models are split by domain; pydantic request/response
models live in the same files as their tables.
"""

from .enums import (
    LeaveTypeEnum,
    LeaveStatusEnum,
    BalanceChangeTypeEnum,
    UserRole,
    ACTIVE_LEAVE_STATUSES,
    DEFAULT_LEAVE_BALANCES,
)

# SQLAlchemy Models - dependencies first
from .department import Department
from .user import User
from .leave import LeaveRequestModel, LeaveComment
from .balance import LeaveBalanceEntry
from .audit import AuditLog

LeaveRequest = LeaveRequestModel

# Pydantic Models
from .department import DepartmentCreate, DepartmentUpdate, DepartmentSchema
from .user import (
    UserCreate,
    LoginRequest,
    UserUpdateProfile,
    UserUpdateAdmin,
    ChangePasswordRequest,
    UserSummary,
    UserSchema,
    TokenResponse,
    UserPage,
)
from .leave import (
    LeaveRequestCreate,
    LeaveRejectRequest,
    LeaveCommentCreate,
    LeaveCommentSchema,
    LeaveRequestSchema,
    LeavePage,
    LeaveStats,
)

__all__ = [
    # Enums
    "LeaveTypeEnum",
    "LeaveStatusEnum",
    "BalanceChangeTypeEnum",
    "UserRole",
    "ACTIVE_LEAVE_STATUSES",
    "DEFAULT_LEAVE_BALANCES",
    # SQLAlchemy Models
    "Department",
    "User",
    "LeaveRequest",
    "LeaveRequestModel",
    "LeaveComment",
    "LeaveBalanceEntry",
    "AuditLog",
    # Pydantic Models
    "DepartmentCreate",
    "DepartmentUpdate",
    "DepartmentSchema",
    "UserCreate",
    "LoginRequest",
    "UserUpdateProfile",
    "UserUpdateAdmin",
    "ChangePasswordRequest",
    "UserSummary",
    "UserSchema",
    "TokenResponse",
    "UserPage",
    "LeaveRequestCreate",
    "LeaveRejectRequest",
    "LeaveCommentCreate",
    "LeaveCommentSchema",
    "LeaveRequestSchema",
    "LeavePage",
    "LeaveStats",
]
