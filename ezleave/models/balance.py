"""
Balance ledger SQLAlchemy model.

Balances are never stored as a mutable number: each grant, deduction,
refund or manual adjustment is a signed row, and the balance for a leave
type is the sum of its rows.
"""
from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey, Enum as SQLEnum, UniqueConstraint, Index  # type: ignore
from datetime import datetime

from ezleave.db import Base
from ezleave.models.enums import LeaveTypeEnum, BalanceChangeTypeEnum


class LeaveBalanceEntry(Base):
    """Leave balance ledger table"""
    __tablename__ = "leave_balance_ledger"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE", onupdate="CASCADE"), nullable=False)
    leave_type = Column(SQLEnum(LeaveTypeEnum), nullable=False)
    delta = Column(Integer, nullable=False, comment="Positive for addition, negative for deduction")
    change_type = Column(SQLEnum(BalanceChangeTypeEnum), nullable=False)
    reason = Column(Text, nullable=True)
    related_leave_id = Column(Integer, ForeignKey("leave_requests.id", ondelete="SET NULL", onupdate="CASCADE"), nullable=True)
    changed_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL", onupdate="CASCADE"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        # One deduction and one refund per leave request at most
        UniqueConstraint("related_leave_id", "change_type", name="unique_leave_change"),
        Index("idx_ledger_user_type", "user_id", "leave_type"),
        Index("idx_ledger_change_type", "change_type"),
        Index("idx_ledger_created_at", "created_at"),
    )
