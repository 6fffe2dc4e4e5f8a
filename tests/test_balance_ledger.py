import pytest
from sqlalchemy import select

from ezleave.models import BalanceChangeTypeEnum, DEFAULT_LEAVE_BALANCES, LeaveBalanceEntry, LeaveTypeEnum, User
from ezleave.services.balance_ledger import (
    adjust_balance,
    get_balance,
    get_balances,
    lock_balances,
    parse_leave_type,
    set_balances,
)
from ezleave.services.exceptions import ValidationError


class TestParseLeaveType:
    def test_enum_passes_through(self):
        assert parse_leave_type(LeaveTypeEnum.MATERNITY) is LeaveTypeEnum.MATERNITY

    def test_string_is_case_insensitive(self):
        assert parse_leave_type(" Vacation ") is LeaveTypeEnum.VACATION

    def test_unknown_type_lists_allowed_values(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_leave_type("holiday")
        assert "emergency" in exc_info.value.message


async def test_new_user_gets_default_grant(db, make_user):
    user = await make_user()
    balances = await get_balances(db, user.id)
    assert balances == {leave_type.value: days for leave_type, days in DEFAULT_LEAVE_BALANCES.items()}
    assert balances["vacation"] == 21


async def test_every_type_reported_even_without_entries(db, make_user):
    user = await make_user(balances={LeaveTypeEnum.SICK: 4})
    balances = await get_balances(db, user.id)
    assert set(balances) == {leave_type.value for leave_type in LeaveTypeEnum}
    assert balances["sick"] == 4
    assert balances["vacation"] == 0


async def test_balance_is_sum_of_entries(db, make_user):
    user = await make_user(balances={LeaveTypeEnum.PERSONAL: 5})
    await adjust_balance(db, user.id, "personal", -2, BalanceChangeTypeEnum.DEDUCTION)
    await adjust_balance(db, user.id, LeaveTypeEnum.PERSONAL, 1, BalanceChangeTypeEnum.REFUND)
    await db.commit()
    assert await get_balance(db, user.id, "personal") == 4


async def test_zero_delta_writes_nothing(db, make_user):
    user = await make_user(balances={})
    assert await adjust_balance(db, user.id, "sick", 0, BalanceChangeTypeEnum.MANUAL_ADJUSTMENT) is None
    await db.commit()
    result = await db.execute(select(LeaveBalanceEntry).where(LeaveBalanceEntry.user_id == user.id))
    assert result.scalars().all() == []


async def test_set_balances_writes_manual_adjustments(db, make_user):
    user = await make_user(balances={LeaveTypeEnum.VACATION: 10, LeaveTypeEnum.SICK: 3})
    result = await set_balances(db, user.id, {"vacation": 15, "sick": 3}, changed_by=user.id)
    await db.commit()

    assert result["vacation"] == 15
    assert result["sick"] == 3
    assert await get_balance(db, user.id, "vacation") == 15

    entries = (
        await db.execute(
            select(LeaveBalanceEntry).where(
                LeaveBalanceEntry.user_id == user.id,
                LeaveBalanceEntry.change_type == BalanceChangeTypeEnum.MANUAL_ADJUSTMENT,
            )
        )
    ).scalars().all()
    # Unchanged sick balance produces no entry
    assert [(e.leave_type, e.delta) for e in entries] == [(LeaveTypeEnum.VACATION, 5)]


@pytest.mark.parametrize("targets", [{"vacation": -1}, {"unknown": 3}])
async def test_set_balances_rejects_bad_targets(db, make_user, targets):
    user = await make_user()
    with pytest.raises(ValidationError):
        await set_balances(db, user.id, targets)


async def test_balance_lock_does_not_change_the_user_row(db, make_user):
    user = await make_user()
    await lock_balances(db, user.id)
    await db.commit()
    updated_at = (await db.execute(select(User.updated_at).where(User.id == user.id))).scalar_one()
    assert updated_at == user.updated_at
