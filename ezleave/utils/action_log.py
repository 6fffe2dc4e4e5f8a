"""
Action log: one line per committed change on the ezleave.actions logger,
which setup_logging also routes to logs/actions.log.

    APPROVED_LEAVE | user #3 (hr) | leave #12 pending->approved | employee=7 total_days=6
"""
import logging
from enum import Enum
from typing import Any, Optional, Tuple

ACTION_LOGGER = logging.getLogger("ezleave.actions")

Transition = Tuple[Optional[Any], Any]


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _actor(
    user_id: Optional[int],
    email: Optional[str],
    employee_id: Optional[str],
    role: Optional[Any],
) -> str:
    if user_id is None and not email:
        return "anonymous"
    who = f"user #{user_id}" if user_id is not None else email
    tags = [str(_plain(tag)) for tag in (role, email if user_id is not None else None, employee_id) if tag]
    return f"{who} ({', '.join(tags)})" if tags else who


def _leave(leave_id: Optional[int], transition: Optional[Transition]) -> Optional[str]:
    if leave_id is None:
        return None
    if transition is None:
        return f"leave #{leave_id}"
    before, after = transition
    return f"leave #{leave_id} {_plain(before) or 'new'}->{_plain(after)}"


def _details(details: dict) -> str:
    rendered = []
    for key, value in details.items():
        value = _plain(value)
        rendered.append(f"{key}={value!r}" if isinstance(value, str) else f"{key}={value}")
    return " ".join(rendered)


def format_action(
    action: str,
    *,
    user_id: Optional[int] = None,
    email: Optional[str] = None,
    employee_id: Optional[str] = None,
    role: Optional[Any] = None,
    leave_id: Optional[int] = None,
    transition: Optional[Transition] = None,
    **details: Any,
) -> str:
    parts = [action, _actor(user_id, email, employee_id, role)]
    leave = _leave(leave_id, transition)
    if leave:
        parts.append(leave)
    if details:
        parts.append(_details(details))
    return " | ".join(parts)


def log_user_action(action: str, **context: Any) -> None:
    """
    Log a change after it has been committed.

    Example:
        log_user_action("APPROVED_LEAVE", user_id=approver.id, role="hr", leave_id=12,
                        transition=("pending", "approved"), employee=7, total_days=6)
    """
    if ACTION_LOGGER.isEnabledFor(logging.INFO):
        ACTION_LOGGER.info(format_action(action, **context))
