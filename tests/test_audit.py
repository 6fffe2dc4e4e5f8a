from datetime import date

from sqlalchemy import select

from ezleave.models import AuditLog, LeaveStatusEnum
from ezleave.services.audit import diff_values, log_action


def test_diff_values_keeps_only_changes():
    old, new = diff_values(
        {"first_name": "Ann", "phone": None, "role": LeaveStatusEnum.PENDING},
        {"first_name": "Ann", "phone": "555-0100", "role": "pending"},
    )
    assert old == {"phone": None}
    assert new == {"phone": "555-0100"}


async def test_log_action_stores_json_safe_values(db, make_user):
    user = await make_user()
    await log_action(
        db,
        "TEST_ACTION",
        "USER",
        user_id=user.id,
        affected_entity_id=user.id,
        new_values={"status": LeaveStatusEnum.APPROVED, "start_date": date(2026, 3, 1)},
    )
    # Nothing is written until the caller commits
    await db.commit()

    entry = (await db.execute(select(AuditLog).where(AuditLog.action == "TEST_ACTION"))).scalar_one()
    assert entry.new_values == {"status": "approved", "start_date": "2026-03-01"}
    assert entry.old_values is None
