"""
Leave balance ledger.

The balance of a leave type is the sum of the ledger rows for that user and
type. Nothing here commits: entries ride on the caller's transaction so a
status change and its balance delta land together.
"""
import logging
from typing import Dict, Mapping, Optional, Union

from sqlalchemy import select, update, func, and_  # type: ignore
from sqlalchemy.ext.asyncio import AsyncSession  # type: ignore

from ezleave.models import User, LeaveBalanceEntry, LeaveTypeEnum, BalanceChangeTypeEnum, DEFAULT_LEAVE_BALANCES
from ezleave.services.exceptions import ValidationError

logger = logging.getLogger(__name__)


def parse_leave_type(value: Union[LeaveTypeEnum, str]) -> LeaveTypeEnum:
    """Accept an enum member or its (case-insensitive) value."""
    if isinstance(value, LeaveTypeEnum):
        return value
    try:
        return LeaveTypeEnum(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(t.value for t in LeaveTypeEnum)
        raise ValidationError(f"Invalid leave type '{value}'. Must be one of: {allowed}")


async def lock_balances(db: AsyncSession, user_id: int) -> None:
    """
    Hold the user's balance lock until the caller commits or rolls back.

    A no-op UPDATE on the user row: on MySQL it takes the row's write lock,
    on SQLite (which ignores SELECT ... FOR UPDATE) the database write lock.
    Every read-check-write of a balance must happen after this call.
    """
    await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(updated_at=User.updated_at)
        .execution_options(synchronize_session=False)
    )


async def get_balances(db: AsyncSession, user_id: int) -> Dict[str, int]:
    """Current balance for every leave type (0 when the type has no entries)."""
    result = await db.execute(
        select(LeaveBalanceEntry.leave_type, func.coalesce(func.sum(LeaveBalanceEntry.delta), 0))
        .where(LeaveBalanceEntry.user_id == user_id)
        .group_by(LeaveBalanceEntry.leave_type)
    )
    balances = {leave_type.value: 0 for leave_type in LeaveTypeEnum}
    for leave_type, total in result.all():
        balances[leave_type.value] = int(total)
    return balances


async def get_balance(db: AsyncSession, user_id: int, leave_type: Union[LeaveTypeEnum, str]) -> int:
    leave_type = parse_leave_type(leave_type)
    result = await db.execute(
        select(func.coalesce(func.sum(LeaveBalanceEntry.delta), 0)).where(
            and_(
                LeaveBalanceEntry.user_id == user_id,
                LeaveBalanceEntry.leave_type == leave_type,
            )
        )
    )
    return int(result.scalar() or 0)


async def adjust_balance(
    db: AsyncSession,
    user_id: int,
    leave_type: Union[LeaveTypeEnum, str],
    delta: int,
    change_type: BalanceChangeTypeEnum,
    *,
    related_leave_id: Optional[int] = None,
    changed_by: Optional[int] = None,
    reason: Optional[str] = None,
) -> Optional[LeaveBalanceEntry]:
    """
    Append a ledger entry. Caller must commit.
    delta is positive for additions, negative for deductions; zero is a no-op.
    """
    if delta == 0:
        return None
    entry = LeaveBalanceEntry(
        user_id=user_id,
        leave_type=parse_leave_type(leave_type),
        delta=int(delta),
        change_type=change_type,
        related_leave_id=related_leave_id,
        changed_by=changed_by,
        reason=reason,
    )
    db.add(entry)
    logger.debug(
        "Ledger entry user=%s type=%s delta=%s change=%s leave=%s",
        user_id, entry.leave_type.value, delta, change_type.value, related_leave_id,
    )
    return entry


async def grant_initial_balances(
    db: AsyncSession,
    user_id: int,
    balances: Optional[Mapping[LeaveTypeEnum, int]] = None,
    changed_by: Optional[int] = None,
) -> None:
    """Record the opening grant for a new identity. Caller must commit."""
    for leave_type, days in (DEFAULT_LEAVE_BALANCES if balances is None else balances).items():
        await adjust_balance(
            db, user_id, leave_type, days, BalanceChangeTypeEnum.INITIAL,
            changed_by=changed_by, reason="Initial leave grant",
        )


async def set_balances(
    db: AsyncSession,
    user_id: int,
    targets: Mapping[str, int],
    changed_by: Optional[int] = None,
) -> Dict[str, int]:
    """
    Bring each listed leave type to the target value with manual_adjustment
    entries. Returns the resulting balances. Takes the balance lock; caller must commit.
    """
    parsed = {parse_leave_type(k): v for k, v in targets.items()}
    for leave_type, target in parsed.items():
        if target is None or int(target) < 0:
            raise ValidationError(f"Balance for {leave_type.value} must be a non-negative whole number")

    await lock_balances(db, user_id)
    current = await get_balances(db, user_id)
    for leave_type, target in parsed.items():
        delta = int(target) - current[leave_type.value]
        await adjust_balance(
            db, user_id, leave_type, delta, BalanceChangeTypeEnum.MANUAL_ADJUSTMENT,
            changed_by=changed_by, reason="Balance set by administrator",
        )
        current[leave_type.value] = int(target)
    return current
