import logging

from ezleave.models import LeaveStatusEnum, LeaveTypeEnum, UserRole
from ezleave.services.leave_lifecycle import LeaveLifecycleManager
from ezleave.utils.action_log import format_action
from tests.conftest import days_from_today


def test_leave_transition_line():
    line = format_action(
        "APPROVED_LEAVE",
        user_id=3,
        role=UserRole.HR,
        leave_id=12,
        transition=(LeaveStatusEnum.PENDING, LeaveStatusEnum.APPROVED),
        employee=7,
        total_days=6,
    )
    assert line == "APPROVED_LEAVE | user #3 (hr) | leave #12 pending->approved | employee=7 total_days=6"


def test_new_leave_and_string_details():
    line = format_action(
        "APPLIED_LEAVE",
        user_id=5,
        leave_id=1,
        transition=(None, LeaveStatusEnum.PENDING),
        type=LeaveTypeEnum.SICK,
    )
    assert line == "APPLIED_LEAVE | user #5 | leave #1 new->pending | type='sick'"


def test_actor_without_id():
    assert format_action("LOGIN_FAILED", email="a@ezleave.com") == "LOGIN_FAILED | a@ezleave.com"
    assert format_action("PING") == "PING | anonymous"


def test_identity_tags_follow_role():
    line = format_action("LOGIN", user_id=2, email="b@ezleave.com", employee_id="EMP0002", role="employee")
    assert line == "LOGIN | user #2 (employee, b@ezleave.com, EMP0002)"


async def test_cancel_logs_refund_after_commit(db, make_user, caplog):
    employee = await make_user(balances={LeaveTypeEnum.VACATION: 5})
    admin = await make_user(role=UserRole.ADMIN)
    lifecycle = LeaveLifecycleManager(db)
    leave = await lifecycle.submit(employee, "vacation", days_from_today(3), days_from_today(4), "Visiting family abroad")
    await lifecycle.approve(admin, leave.id)

    with caplog.at_level(logging.INFO, logger="ezleave.actions"):
        await lifecycle.cancel(employee, leave.id)

    messages = [r.getMessage() for r in caplog.records if r.name == "ezleave.actions"]
    assert messages == [
        f"CANCELLED_LEAVE | user #{employee.id} (employee) | leave #{leave.id} approved->cancelled | refunded_days=2"
    ]
