"""
User-related SQLAlchemy models
"""
from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime, ForeignKey, Enum as SQLEnum, Index  # type: ignore
from sqlalchemy.orm import relationship  # type: ignore
from datetime import datetime, date
from typing import Optional, Dict, List
from pydantic import BaseModel, EmailStr, Field, field_validator

from ezleave.db import Base
from ezleave.models.enums import UserRole


class User(Base):
    """Users table (the identity store; balances live in leave_balance_ledger)"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    employee_id = Column(String(50), unique=True, nullable=False, comment="Unique Employee ID")
    email = Column(String(255), unique=True, nullable=False, comment="Unique Email Address")
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)

    # Authentication
    hashed_password = Column(String(255), nullable=False)
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.EMPLOYEE)

    # Employment
    department_id = Column(Integer, ForeignKey("departments.id", ondelete="SET NULL", onupdate="CASCADE"), nullable=True)
    position = Column(String(100), nullable=True)
    phone = Column(String(30), nullable=True)
    date_of_joining = Column(Date, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    department = relationship("Department", foreign_keys=[department_id], lazy="selectin")

    __table_args__ = (
        Index("idx_users_role", "role"),
        Index("idx_users_department", "department_id"),
        Index("idx_users_is_active", "is_active"),
        Index("idx_users_created_at", "created_at"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


# Pydantic Models (for API request/response)

class UserCreate(BaseModel):
    """Model for user self-registration"""
    employee_id: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=6)
    phone: Optional[str] = None
    position: Optional[str] = None
    department_id: Optional[int] = None
    date_of_joining: Optional[date] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class UserUpdateProfile(BaseModel):
    """Model for user updating their own profile"""
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    phone: Optional[str] = Field(None, min_length=1)


class UserUpdateAdmin(UserUpdateProfile):
    """Model for HR/admin updating any user"""
    email: Optional[EmailStr] = None
    position: Optional[str] = None
    department_id: Optional[int] = None
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None
    leave_balance: Optional[Dict[str, int]] = Field(None, description="Target balance per leave type")

    @field_validator('role', mode='before')
    @classmethod
    def normalize_role(cls, v):
        """Convert role to lowercase and validate"""
        if v is None:
            return None
        if isinstance(v, str):
            v_lower = v.lower().strip()
            for role_enum in UserRole:
                if role_enum.value == v_lower:
                    return role_enum
            raise ValueError(f"Invalid role '{v}'. Must be one of: {', '.join([r.value for r in UserRole])}")
        return v


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6)


class UserSummary(BaseModel):
    """Short identity block embedded in leave responses"""
    id: int
    employee_id: str
    first_name: str
    last_name: str
    email: Optional[str] = None

    class Config:
        from_attributes = True


class UserSchema(BaseModel):
    """User model for API responses"""
    id: int
    employee_id: str
    email: EmailStr
    first_name: str
    last_name: str
    full_name: str
    role: UserRole
    department_id: Optional[int] = None
    department_name: Optional[str] = None
    position: Optional[str] = None
    phone: Optional[str] = None
    date_of_joining: Optional[date] = None
    is_active: bool = True
    leave_balance: Dict[str, int] = {}
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserSchema


class UserPage(BaseModel):
    users: List[UserSchema]
    total: int
    total_pages: int
    current_page: int
