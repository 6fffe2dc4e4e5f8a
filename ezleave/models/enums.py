"""
SQLAlchemy Enum definitions
"""
import enum


class LeaveTypeEnum(str, enum.Enum):
    SICK = "sick"
    VACATION = "vacation"
    PERSONAL = "personal"
    MATERNITY = "maternity"
    PATERNITY = "paternity"
    EMERGENCY = "emergency"


class LeaveStatusEnum(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class BalanceChangeTypeEnum(str, enum.Enum):
    INITIAL = "initial"
    DEDUCTION = "deduction"
    REFUND = "refund"
    MANUAL_ADJUSTMENT = "manual_adjustment"


class UserRole(str, enum.Enum):
    """User role enum"""
    EMPLOYEE = "employee"
    HR = "hr"
    ADMIN = "admin"


# Statuses that block the same dates for another request
ACTIVE_LEAVE_STATUSES = (LeaveStatusEnum.PENDING, LeaveStatusEnum.APPROVED)

# Whole days granted per leave type when an identity is registered
DEFAULT_LEAVE_BALANCES = {
    LeaveTypeEnum.SICK: 12,
    LeaveTypeEnum.VACATION: 21,
    LeaveTypeEnum.PERSONAL: 5,
    LeaveTypeEnum.MATERNITY: 90,
    LeaveTypeEnum.PATERNITY: 15,
    LeaveTypeEnum.EMERGENCY: 3,
}
