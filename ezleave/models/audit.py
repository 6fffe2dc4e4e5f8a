"""
Audit log SQLAlchemy model.
Stores who did what, to which record, when.
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON, Index  # type: ignore
from datetime import datetime

from ezleave.db import Base


class AuditLog(Base):
    """
    Audit logs table.

    affected_entity_type = kind of record that was affected (USER, LEAVE, DEPARTMENT, BALANCE).
    affected_entity_id   = primary key of that record.
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL", onupdate="CASCADE"), nullable=True)
    actor_role = Column(String(50), nullable=True, comment="Role of actor at time of action")

    affected_entity_id = Column(Integer, nullable=True)
    affected_entity_type = Column(String(50), nullable=False)

    action = Column(String(100), nullable=False, comment="e.g. CREATE_LEAVE, APPROVE_LEAVE")
    summary = Column(Text, nullable=True, comment="Human-readable one-line description")
    request_method = Column(String(10), nullable=True)
    request_path = Column(String(500), nullable=True)

    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_audit_user_id", "user_id"),
        Index("idx_audit_action", "action"),
        Index("idx_audit_affected_entity", "affected_entity_type", "affected_entity_id"),
        Index("idx_audit_created_at", "created_at"),
    )
