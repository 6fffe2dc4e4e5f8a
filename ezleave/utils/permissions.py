"""
Role-based permission predicates.

Every route and service asks these functions instead of comparing role
names inline. The role itself travels in the access token's "role" claim.
"""
from typing import Union

from ezleave.models.enums import UserRole

PRIVILEGED_ROLES = frozenset({UserRole.HR, UserRole.ADMIN})


def _as_role(role: Union[UserRole, str, None]) -> Union[UserRole, None]:
    if role is None or isinstance(role, UserRole):
        return role
    try:
        return UserRole(str(role).lower())
    except ValueError:
        return None


def can_approve(role: Union[UserRole, str, None]) -> bool:
    """HR and admins decide on leave requests."""
    return _as_role(role) in PRIVILEGED_ROLES


def can_view_all(role: Union[UserRole, str, None]) -> bool:
    """HR and admins see every employee's leave and statistics."""
    return _as_role(role) in PRIVILEGED_ROLES


def can_manage(role: Union[UserRole, str, None]) -> bool:
    """HR and admins manage users and departments."""
    return _as_role(role) in PRIVILEGED_ROLES


def is_owner_or_privileged(actor_id: int, role: Union[UserRole, str, None], owner_id: int) -> bool:
    return actor_id == owner_id or _as_role(role) in PRIVILEGED_ROLES
