"""
Leave Lifecycle Manager.

    (none)   --submit-->  pending
    pending  --approve--> approved    ledger: -total_days
    pending  --reject-->  rejected
    pending  --cancel-->  cancelled
    approved --cancel-->  cancelled   ledger: +total_days (only before start_date)

Every mutating operation is one transaction: checks run first, then the
status write (a compare-and-swap on the current status), the ledger entry
and the audit row are committed together or rolled back together.
"""
import logging
import math
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import select, update, func, and_, desc  # type: ignore
from sqlalchemy.ext.asyncio import AsyncSession  # type: ignore

from ezleave.models import (
    User as UserModel,
    LeaveRequestModel,
    LeaveComment,
    LeaveStatusEnum,
    LeaveTypeEnum,
    BalanceChangeTypeEnum,
    ACTIVE_LEAVE_STATUSES,
)
from ezleave.services.audit import log_action as audit_log_action
from ezleave.services.balance_ledger import adjust_balance, get_balance, lock_balances, parse_leave_type
from ezleave.services.exceptions import (
    ValidationError,
    InsufficientBalance,
    OverlappingRequest,
    NotFound,
    NotPending,
    AlreadyCancelled,
    PastApprovedLeave,
    Forbidden,
)
from ezleave.utils.action_log import log_user_action
from ezleave.utils.permissions import can_approve, can_view_all, is_owner_or_privileged

logger = logging.getLogger(__name__)

MIN_REASON_LENGTH = 10
MAX_PAGE_SIZE = 100

DateLike = Union[date, datetime, str]

# YYYY-MM-DD, optionally followed by a full ISO-8601 time and offset
ISO_DATE_RE = re.compile(
    r"(?P<date>\d{4}-\d{2}-\d{2})"
    r"(?:[T ]\d{2}:\d{2}(?::\d{2}(?:\.\d{1,6})?)?(?:Z|[+-]\d{2}:?\d{2})?)?"
)


def parse_date(value: Optional[DateLike], field: str) -> date:
    """Accept a date, a datetime or an ISO-8601 string (time part ignored)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        match = ISO_DATE_RE.fullmatch(value.strip())
        if match:
            try:
                return date.fromisoformat(match.group("date"))
            except ValueError:
                pass
    raise ValidationError(f"Invalid date format for {field}")


def days_inclusive(start: date, end: date) -> int:
    return (end - start).days + 1


def _role_value(role: Any) -> Optional[str]:
    return role.value if hasattr(role, "value") else role


class LeaveLifecycleManager:
    """Owns leave state transitions and the balance deltas that go with them."""

    def __init__(
        self,
        db: AsyncSession,
        *,
        request_method: Optional[str] = None,
        request_path: Optional[str] = None,
    ):
        self.db = db
        self.request_method = request_method
        self.request_path = request_path

    # ------------------------------------------------------------------
    # Loading helpers
    # ------------------------------------------------------------------

    async def _load_leave(self, leave_id: int, for_update: bool = False) -> Optional[LeaveRequestModel]:
        query = (
            select(LeaveRequestModel)
            .where(LeaveRequestModel.id == leave_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def _require_leave(self, leave_id: int, for_update: bool = False) -> LeaveRequestModel:
        leave = await self._load_leave(leave_id, for_update=for_update)
        if leave is None:
            raise NotFound("Leave request not found")
        return leave

    async def _lock_employee(self, employee_id: int) -> Optional[UserModel]:
        """Take the employee's balance lock: submissions and approvals for one
        employee then run one at a time until commit or rollback."""
        await lock_balances(self.db, employee_id)
        result = await self.db.execute(
            select(UserModel).where(UserModel.id == employee_id).with_for_update()
        )
        return result.scalar_one_or_none()

    async def find_overlapping(
        self,
        employee_id: int,
        start: date,
        end: date,
        statuses=ACTIVE_LEAVE_STATUSES,
    ) -> List[LeaveRequestModel]:
        """Requests of the employee in `statuses` whose [start, end] intersects the given range."""
        result = await self.db.execute(
            select(LeaveRequestModel).where(
                and_(
                    LeaveRequestModel.employee_id == employee_id,
                    LeaveRequestModel.status.in_(list(statuses)),  # type: ignore[attr-defined]
                    LeaveRequestModel.start_date <= end,
                    LeaveRequestModel.end_date >= start,
                )
            )
        )
        return list(result.scalars().all())

    async def _transition(self, leave_id: int, expected: LeaveStatusEnum, **values: Any) -> None:
        """Compare-and-swap the status; a concurrent change makes this fail."""
        result = await self.db.execute(
            update(LeaveRequestModel)
            .where(and_(LeaveRequestModel.id == leave_id, LeaveRequestModel.status == expected))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise NotPending(f"Leave request is no longer {expected.value}")

    async def _audit(self, actor_id: int, actor_role: Any, action: str, leave_id: int, **kwargs: Any) -> None:
        await audit_log_action(
            self.db,
            action,
            "LEAVE",
            user_id=actor_id,
            actor_role=_role_value(actor_role),
            affected_entity_id=leave_id,
            request_method=self.request_method,
            request_path=self.request_path,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def submit(
        self,
        actor: UserModel,
        leave_type: Union[LeaveTypeEnum, str],
        start_date: DateLike,
        end_date: DateLike,
        reason: Optional[str],
    ) -> LeaveRequestModel:
        actor_id, actor_role = actor.id, actor.role
        leave_type = parse_leave_type(leave_type)
        start = parse_date(start_date, "start_date")
        end = parse_date(end_date, "end_date")

        if start < date.today():
            raise ValidationError("Cannot apply for leave in the past")
        if end < start:
            raise ValidationError("End date must be on or after start date")

        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("Reason is required")
        if len(reason) < MIN_REASON_LENGTH:
            raise ValidationError(f"Reason must be at least {MIN_REASON_LENGTH} characters")

        total_days = days_inclusive(start, end)

        employee = await self._lock_employee(actor_id)
        if employee is None:
            raise NotFound("Employee not found")

        available = await get_balance(self.db, actor_id, leave_type)
        if available < total_days:
            raise InsufficientBalance(f"Insufficient leave balance. Available: {available} days")

        if await self.find_overlapping(actor_id, start, end):
            raise OverlappingRequest()

        leave = LeaveRequestModel(  # type: ignore[call-arg]
            employee_id=actor_id,
            leave_type=leave_type,
            start_date=start,
            end_date=end,
            total_days=total_days,
            reason=reason,
            status=LeaveStatusEnum.PENDING,
            applied_date=datetime.utcnow(),
        )
        try:
            self.db.add(leave)
            await self.db.flush()
            leave_id = leave.id
            await self._audit(
                actor_id, actor_role, "CREATE_LEAVE", leave_id,
                new_values={
                    "leave_type": leave_type,
                    "start_date": start,
                    "end_date": end,
                    "total_days": total_days,
                    "status": LeaveStatusEnum.PENDING,
                },
                summary=f"User #{actor_id} applied for {leave_type.value} leave ({total_days} days)",
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        log_user_action(
            "APPLIED_LEAVE",
            user_id=actor_id,
            role=_role_value(actor_role),
            leave_id=leave_id,
            transition=(None, LeaveStatusEnum.PENDING),
            type=leave_type.value,
            start_date=str(start),
            total_days=total_days,
        )
        return await self._require_leave(leave_id)

    async def approve(self, actor: UserModel, leave_id: int) -> LeaveRequestModel:
        actor_id, actor_role = actor.id, actor.role
        if not can_approve(actor_role):
            raise Forbidden("Only HR or admin can approve leave requests")

        leave = await self._require_leave(leave_id, for_update=True)
        if leave.status != LeaveStatusEnum.PENDING:
            raise NotPending()

        employee_id = leave.employee_id
        leave_type = leave.leave_type
        total_days = leave.total_days

        await self._lock_employee(employee_id)
        # Pending requests do not hold balance, so check again at decision time
        available = await get_balance(self.db, employee_id, leave_type)
        if available - total_days < 0:
            raise InsufficientBalance(
                f"Insufficient leave balance to approve. Available: {available} days, requested: {total_days}"
            )

        try:
            await self._transition(
                leave_id,
                LeaveStatusEnum.PENDING,
                status=LeaveStatusEnum.APPROVED,
                approved_by=actor_id,
                approved_date=datetime.utcnow(),
            )
            await adjust_balance(
                self.db, employee_id, leave_type, -total_days, BalanceChangeTypeEnum.DEDUCTION,
                related_leave_id=leave_id, changed_by=actor_id, reason="Leave approved",
            )
            await self._audit(
                actor_id, actor_role, "APPROVE_LEAVE", leave_id,
                old_values={"status": LeaveStatusEnum.PENDING, "balance": available},
                new_values={"status": LeaveStatusEnum.APPROVED, "balance": available - total_days},
                summary=f"User #{actor_id} approved leave request #{leave_id}",
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        log_user_action(
            "APPROVED_LEAVE",
            user_id=actor_id,
            role=_role_value(actor_role),
            leave_id=leave_id,
            transition=(LeaveStatusEnum.PENDING, LeaveStatusEnum.APPROVED),
            employee=employee_id,
            total_days=total_days,
        )
        return await self._require_leave(leave_id)

    async def reject(self, actor: UserModel, leave_id: int, rejection_reason: Optional[str]) -> LeaveRequestModel:
        actor_id, actor_role = actor.id, actor.role
        rejection_reason = (rejection_reason or "").strip()
        if not rejection_reason:
            raise ValidationError("Rejection reason is required")
        if not can_approve(actor_role):
            raise Forbidden("Only HR or admin can reject leave requests")

        leave = await self._require_leave(leave_id, for_update=True)
        if leave.status != LeaveStatusEnum.PENDING:
            raise NotPending()

        try:
            await self._transition(
                leave_id,
                LeaveStatusEnum.PENDING,
                status=LeaveStatusEnum.REJECTED,
                approved_by=actor_id,
                approved_date=datetime.utcnow(),
                rejection_reason=rejection_reason,
            )
            await self._audit(
                actor_id, actor_role, "REJECT_LEAVE", leave_id,
                old_values={"status": LeaveStatusEnum.PENDING},
                new_values={"status": LeaveStatusEnum.REJECTED, "rejection_reason": rejection_reason},
                summary=f"User #{actor_id} rejected leave request #{leave_id}",
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        log_user_action(
            "REJECTED_LEAVE",
            user_id=actor_id,
            role=_role_value(actor_role),
            leave_id=leave_id,
            transition=(LeaveStatusEnum.PENDING, LeaveStatusEnum.REJECTED),
        )
        return await self._require_leave(leave_id)

    async def cancel(self, actor: UserModel, leave_id: int) -> LeaveRequestModel:
        actor_id, actor_role = actor.id, actor.role
        leave = await self._require_leave(leave_id, for_update=True)
        if not is_owner_or_privileged(actor_id, actor_role, leave.employee_id):
            raise Forbidden()

        previous = leave.status
        if previous == LeaveStatusEnum.CANCELLED:
            raise AlreadyCancelled()
        if previous == LeaveStatusEnum.REJECTED:
            raise NotPending("Rejected leave requests cannot be cancelled")
        if previous == LeaveStatusEnum.APPROVED and leave.start_date < date.today():
            raise PastApprovedLeave()

        employee_id = leave.employee_id
        leave_type = leave.leave_type
        total_days = leave.total_days
        refunded = total_days if previous == LeaveStatusEnum.APPROVED else 0

        try:
            await self._transition(
                leave_id,
                previous,
                status=LeaveStatusEnum.CANCELLED,
                cancelled_by=actor_id,
                cancelled_date=datetime.utcnow(),
            )
            if refunded:
                await adjust_balance(
                    self.db, employee_id, leave_type, refunded, BalanceChangeTypeEnum.REFUND,
                    related_leave_id=leave_id, changed_by=actor_id, reason="Approved leave cancelled",
                )
            await self._audit(
                actor_id, actor_role, "CANCEL_LEAVE", leave_id,
                old_values={"status": previous},
                new_values={"status": LeaveStatusEnum.CANCELLED, "refunded_days": refunded},
                summary=f"User #{actor_id} cancelled leave request #{leave_id} (was {previous.value})",
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        log_user_action(
            "CANCELLED_LEAVE",
            user_id=actor_id,
            role=_role_value(actor_role),
            leave_id=leave_id,
            transition=(previous, LeaveStatusEnum.CANCELLED),
            refunded_days=refunded,
        )
        return await self._require_leave(leave_id)

    async def add_comment(self, actor: UserModel, leave_id: int, text: Optional[str]) -> LeaveRequestModel:
        actor_id, actor_role = actor.id, actor.role
        text = (text or "").strip()
        if not text:
            raise ValidationError("Comment is required")

        leave = await self._require_leave(leave_id)
        if not is_owner_or_privileged(actor_id, actor_role, leave.employee_id):
            raise Forbidden()

        try:
            self.db.add(LeaveComment(leave_id=leave_id, user_id=actor_id, comment=text, created_at=datetime.utcnow()))
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        log_user_action("COMMENTED_LEAVE", user_id=actor_id, role=_role_value(actor_role), leave_id=leave_id)
        return await self._require_leave(leave_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_leave(self, actor: UserModel, leave_id: int) -> LeaveRequestModel:
        leave = await self._require_leave(leave_id)
        if not is_owner_or_privileged(actor.id, actor.role, leave.employee_id):
            raise Forbidden()
        return leave

    async def list_leaves(
        self,
        actor: UserModel,
        *,
        page: int = 1,
        limit: int = 10,
        status: Optional[str] = None,
        leave_type: Optional[str] = None,
        employee_id: Optional[int] = None,
        year: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Paginated leave requests, newest application first."""
        if page < 1 or limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValidationError(f"page must be >= 1 and limit between 1 and {MAX_PAGE_SIZE}")

        if not can_view_all(actor.role):
            if employee_id is not None and employee_id != actor.id:
                raise Forbidden()
            employee_id = actor.id

        conditions = []
        if employee_id is not None:
            conditions.append(LeaveRequestModel.employee_id == employee_id)
        if status:
            try:
                conditions.append(LeaveRequestModel.status == LeaveStatusEnum(status.lower()))
            except ValueError:
                raise ValidationError(f"Invalid status '{status}'")
        if leave_type:
            conditions.append(LeaveRequestModel.leave_type == parse_leave_type(leave_type))
        if year is not None:
            conditions.extend(self._year_window(year))

        query = select(LeaveRequestModel)
        count_query = select(func.count(LeaveRequestModel.id))
        if conditions:
            query = query.where(and_(*conditions))
            count_query = count_query.where(and_(*conditions))

        result = await self.db.execute(
            query.order_by(desc(LeaveRequestModel.applied_date), desc(LeaveRequestModel.id))
            .offset((page - 1) * limit)
            .limit(limit)
        )
        leaves = list(result.scalars().all())
        total = (await self.db.execute(count_query)).scalar() or 0

        return {
            "leaves": leaves,
            "total": total,
            "total_pages": math.ceil(total / limit),
            "current_page": page,
        }

    async def has_active_leave(self, employee_id: int, ending_on_or_after: date) -> bool:
        """True when the employee has pending/approved leave ending on or after the given date."""
        result = await self.db.execute(
            select(func.count(LeaveRequestModel.id)).where(
                and_(
                    LeaveRequestModel.employee_id == employee_id,
                    LeaveRequestModel.status.in_(list(ACTIVE_LEAVE_STATUSES)),  # type: ignore[attr-defined]
                    LeaveRequestModel.end_date >= ending_on_or_after,
                )
            )
        )
        return (result.scalar() or 0) > 0

    @staticmethod
    def _year_window(year: int) -> list:
        if year < 1 or year > 9998:
            raise ValidationError(f"Invalid year {year}")
        return [
            LeaveRequestModel.applied_date >= datetime(year, 1, 1),
            LeaveRequestModel.applied_date < datetime(year + 1, 1, 1),
        ]

    async def compute_stats(
        self,
        actor: UserModel,
        year: Optional[int] = None,
        employee_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Count and total days per status and per leave type for requests
        applied for within the calendar year. Employees only ever see
        their own numbers; HR/admin see everyone unless they pass employee_id.
        """
        year = year or date.today().year
        if not can_view_all(actor.role):
            employee_id = actor.id

        conditions = self._year_window(year)
        if employee_id is not None:
            conditions.append(LeaveRequestModel.employee_id == employee_id)

        status_rows = (
            await self.db.execute(
                select(
                    LeaveRequestModel.status,
                    func.count(LeaveRequestModel.id),
                    func.coalesce(func.sum(LeaveRequestModel.total_days), 0),
                )
                .where(and_(*conditions))
                .group_by(LeaveRequestModel.status)
            )
        ).all()
        type_rows = (
            await self.db.execute(
                select(
                    LeaveRequestModel.leave_type,
                    func.count(LeaveRequestModel.id),
                    func.coalesce(func.sum(LeaveRequestModel.total_days), 0),
                )
                .where(and_(*conditions))
                .group_by(LeaveRequestModel.leave_type)
            )
        ).all()

        by_status = {row[0]: (int(row[1]), int(row[2])) for row in status_rows}
        summary = {
            "total_leaves": sum(count for count, _ in by_status.values()),
            "approved_leaves": by_status.get(LeaveStatusEnum.APPROVED, (0, 0))[0],
            "pending_leaves": by_status.get(LeaveStatusEnum.PENDING, (0, 0))[0],
            "rejected_leaves": by_status.get(LeaveStatusEnum.REJECTED, (0, 0))[0],
            "cancelled_leaves": by_status.get(LeaveStatusEnum.CANCELLED, (0, 0))[0],
            "total_days": sum(days for _, days in by_status.values()),
        }

        return {
            "year": year,
            "summary": summary,
            "status_stats": [
                {"key": status.value, "count": count, "total_days": days}
                for status, (count, days) in sorted(by_status.items(), key=lambda item: item[0].value)
            ],
            "leave_type_stats": [
                {"key": row[0].value, "count": int(row[1]), "total_days": int(row[2])}
                for row in sorted(type_rows, key=lambda row: row[0].value)
            ],
        }
