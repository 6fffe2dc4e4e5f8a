"""
Department SQLAlchemy model and API schemas
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, ForeignKey, Index  # type: ignore
from sqlalchemy.orm import relationship  # type: ignore
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from ezleave.db import Base


class Department(Base):
    """Departments table"""
    __tablename__ = "departments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    head_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL", onupdate="CASCADE", use_alter=True, name="fk_departments_head_id"), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    head = relationship("User", foreign_keys=[head_id], lazy="selectin", post_update=True)

    __table_args__ = (
        Index("idx_department_active", "is_active"),
    )


class DepartmentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    head_id: Optional[int] = None


class DepartmentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    head_id: Optional[int] = None


class DepartmentHead(BaseModel):
    id: int
    employee_id: str
    first_name: str
    last_name: str

    class Config:
        from_attributes = True


class DepartmentSchema(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    head: Optional[DepartmentHead] = None
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
