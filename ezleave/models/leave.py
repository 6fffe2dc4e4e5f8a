"""
Leave-related SQLAlchemy models
"""
from sqlalchemy import Column, Integer, Date, DateTime, Text, ForeignKey, Enum as SQLEnum, Index  # type: ignore
from sqlalchemy.orm import relationship  # type: ignore
from datetime import datetime, date
from typing import Optional, List, Union
from pydantic import BaseModel

from ezleave.db import Base
from ezleave.models.enums import LeaveTypeEnum, LeaveStatusEnum
from ezleave.models.user import UserSummary


class LeaveRequestModel(Base):
    """Leave requests table"""
    __tablename__ = "leave_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    employee_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE", onupdate="CASCADE"), nullable=False)
    leave_type = Column(SQLEnum(LeaveTypeEnum), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    total_days = Column(Integer, nullable=False, comment="Inclusive calendar days, fixed at creation")
    reason = Column(Text, nullable=False)
    status = Column(SQLEnum(LeaveStatusEnum), nullable=False, default=LeaveStatusEnum.PENDING)
    applied_date = Column(DateTime, nullable=False, default=datetime.utcnow)
    approved_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL", onupdate="CASCADE"), nullable=True)
    approved_date = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    cancelled_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL", onupdate="CASCADE"), nullable=True)
    cancelled_date = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    employee = relationship("User", foreign_keys=[employee_id], lazy="selectin")
    approver = relationship("User", foreign_keys=[approved_by], lazy="selectin")
    comments = relationship(
        "LeaveComment",
        back_populates="leave",
        lazy="selectin",
        order_by="LeaveComment.id",
    )

    __table_args__ = (
        Index("idx_leave_employee_id", "employee_id"),
        Index("idx_leave_status", "status"),
        Index("idx_leave_type", "leave_type"),
        Index("idx_leave_employee_status", "employee_id", "status"),
        Index("idx_leave_dates", "start_date", "end_date"),
        Index("idx_leave_applied_date", "applied_date"),
    )


class LeaveComment(Base):
    """Leave comments table (append-only)"""
    __tablename__ = "leave_comments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    leave_id = Column(Integer, ForeignKey("leave_requests.id", ondelete="CASCADE", onupdate="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE", onupdate="CASCADE"), nullable=False)
    comment = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    leave = relationship("LeaveRequestModel", back_populates="comments")
    user = relationship("User", lazy="selectin")

    __table_args__ = (
        Index("idx_comment_leave_id", "leave_id"),
        Index("idx_comment_created_at", "created_at"),
    )


# Pydantic Models (for API request/response)

class LeaveRequestCreate(BaseModel):
    """Model for creating leave request; dates are validated by the lifecycle manager"""
    leave_type: str
    start_date: Union[date, str]
    end_date: Union[date, str]
    reason: str


class LeaveRejectRequest(BaseModel):
    rejection_reason: str = ""


class LeaveCommentCreate(BaseModel):
    comment: str = ""


class LeaveCommentSchema(BaseModel):
    id: int
    user: Optional[UserSummary] = None
    comment: str
    created_at: datetime

    class Config:
        from_attributes = True


class LeaveRequestSchema(BaseModel):
    """Model for leave request response"""
    id: int
    employee_id: int
    employee: Optional[UserSummary] = None
    leave_type: LeaveTypeEnum
    start_date: date
    end_date: date
    total_days: int
    reason: str
    status: LeaveStatusEnum
    applied_date: datetime
    approved_by: Optional[int] = None
    approver: Optional[UserSummary] = None
    approved_date: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    cancelled_by: Optional[int] = None
    cancelled_date: Optional[datetime] = None
    comments: List[LeaveCommentSchema] = []

    class Config:
        from_attributes = True


class LeavePage(BaseModel):
    leaves: List[LeaveRequestSchema]
    total: int
    total_pages: int
    current_page: int


class LeaveSummaryStats(BaseModel):
    total_leaves: int = 0
    approved_leaves: int = 0
    pending_leaves: int = 0
    rejected_leaves: int = 0
    cancelled_leaves: int = 0
    total_days: int = 0


class LeaveGroupStats(BaseModel):
    key: str
    count: int
    total_days: int


class LeaveStats(BaseModel):
    year: int
    summary: LeaveSummaryStats
    status_stats: List[LeaveGroupStats]
    leave_type_stats: List[LeaveGroupStats]
