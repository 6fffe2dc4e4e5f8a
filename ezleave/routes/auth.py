import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, status, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy import select, func  # type: ignore
from sqlalchemy.ext.asyncio import AsyncSession  # type: ignore

from ezleave.db import get_db
from ezleave.models import (
    User as UserModel,
    Department,
    UserRole,
    UserCreate,
    LoginRequest,
    UserUpdateProfile,
    ChangePasswordRequest,
    UserSchema,
    TokenResponse,
)
from ezleave.services.audit import diff_values, log_action as audit_log_action
from ezleave.services.balance_ledger import get_balances, grant_initial_balances
from ezleave.services.exceptions import Conflict, ValidationError
from ezleave.utils.action_log import log_user_action
from ezleave.utils.security import verify_password, create_access_token, get_password_hash, decode_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/auth/login")


async def user_model_to_pydantic(user: UserModel, db: AsyncSession) -> UserSchema:
    """Convert SQLAlchemy UserModel to the API schema, balances read from the ledger."""
    return UserSchema(
        id=user.id,
        employee_id=user.employee_id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        full_name=user.full_name,
        role=user.role,
        department_id=user.department_id,
        department_name=user.department.name if user.department else None,
        position=user.position,
        phone=user.phone,
        date_of_joining=user.date_of_joining,
        is_active=user.is_active,
        leave_balance=await get_balances(db, user.id),
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


async def get_current_user(token: str = Depends(oauth2_scheme), db: AsyncSession = Depends(get_db)) -> UserModel:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_token(token)
        email: Optional[str] = payload.get("sub")
        if email is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    result = await db.execute(select(UserModel).where(UserModel.email == email))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        raise credentials_exception
    return user


def _issue_token(user: UserModel) -> dict:
    token_data = {"sub": user.email, "uid": user.id, "role": user.role.value}
    return {"access_token": create_access_token(data=token_data), "token_type": "bearer"}


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(request: Request, body: UserCreate, db: AsyncSession = Depends(get_db)):
    email = body.email.lower()
    employee_id = body.employee_id.strip()

    result = await db.execute(
        select(UserModel).where((func.lower(UserModel.email) == email) | (UserModel.employee_id == employee_id))
    )
    if result.scalars().first():
        raise Conflict("User with this email or employee ID already exists")

    if body.department_id is not None:
        department = await db.get(Department, body.department_id)
        if not department or not department.is_active:
            raise ValidationError("Department not found")

    user = UserModel(
        employee_id=employee_id,
        email=email,
        first_name=body.first_name.strip(),
        last_name=body.last_name.strip(),
        hashed_password=get_password_hash(body.password),
        role=UserRole.EMPLOYEE,
        department_id=body.department_id,
        position=body.position,
        phone=body.phone,
        date_of_joining=body.date_of_joining,
        is_active=True,
    )
    db.add(user)
    await db.flush()
    await grant_initial_balances(db, user.id)
    await audit_log_action(
        db,
        "REGISTER",
        "USER",
        user_id=user.id,
        actor_role=UserRole.EMPLOYEE.value,
        affected_entity_id=user.id,
        new_values={"email": email, "employee_id": employee_id, "department_id": body.department_id},
        summary=f"{user.full_name} registered",
        request_method=request.method,
        request_path=request.url.path,
    )
    await db.commit()
    await db.refresh(user)
    log_user_action("REGISTER", user_id=user.id, email=user.email, employee_id=user.employee_id, role=user.role.value)

    return {**_issue_token(user), "user": await user_model_to_pydantic(user, db)}


@router.post("/login", response_model=TokenResponse)
async def login(request: Request, body: LoginRequest, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(UserModel).where(UserModel.email == body.email.lower()))
    user = result.scalar_one_or_none()
    if not user or not verify_password(body.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account is deactivated")

    await audit_log_action(
        db,
        "LOGIN",
        "USER",
        user_id=user.id,
        actor_role=user.role.value,
        affected_entity_id=user.id,
        summary=f"{user.full_name} ({user.role.value}) logged in",
        request_method=request.method,
        request_path=request.url.path,
    )
    await db.commit()
    log_user_action("LOGIN", user_id=user.id, email=user.email, employee_id=user.employee_id, role=user.role.value)

    return {**_issue_token(user), "user": await user_model_to_pydantic(user, db)}


@router.get("/me", response_model=UserSchema)
async def read_me(current_user: UserModel = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await user_model_to_pydantic(current_user, db)


@router.put("/profile", response_model=UserSchema)
async def update_profile(
    request: Request,
    body: UserUpdateProfile,
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    changes = {field: value.strip() if isinstance(value, str) else value for field, value in changes.items()}
    old_values, changes = diff_values({field: getattr(current_user, field) for field in changes}, changes)
    for field, value in changes.items():
        setattr(current_user, field, value)

    await audit_log_action(
        db,
        "UPDATE_PROFILE",
        "USER",
        user_id=current_user.id,
        actor_role=current_user.role.value,
        affected_entity_id=current_user.id,
        old_values=old_values,
        new_values=changes,
        summary=f"{current_user.full_name} updated profile",
        request_method=request.method,
        request_path=request.url.path,
    )
    await db.commit()
    await db.refresh(current_user)
    log_user_action("UPDATE_PROFILE", user_id=current_user.id, email=current_user.email, fields=",".join(changes))
    return await user_model_to_pydantic(current_user, db)


@router.put("/change-password")
async def change_password(
    request: Request,
    body: ChangePasswordRequest,
    current_user: UserModel = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not verify_password(body.current_password, current_user.hashed_password):
        raise ValidationError("Current password is incorrect")

    current_user.hashed_password = get_password_hash(body.new_password)
    await audit_log_action(
        db,
        "CHANGE_PASSWORD",
        "USER",
        user_id=current_user.id,
        actor_role=current_user.role.value,
        affected_entity_id=current_user.id,
        summary=f"{current_user.full_name} changed password",
        request_method=request.method,
        request_path=request.url.path,
    )
    await db.commit()
    log_user_action("CHANGE_PASSWORD", user_id=current_user.id, email=current_user.email)
    return {"message": "Password updated successfully"}
