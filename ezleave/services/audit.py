"""
Audit service: records user actions to the audit_logs table.
Entries are added to the caller's session so they commit (or roll back)
together with the change they describe.
"""
from datetime import date, datetime
from typing import Any, Mapping, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession  # type: ignore

from ezleave.models import AuditLog


def _json_safe(obj: Any) -> Any:
    """Convert values to JSON-serializable form for the JSON columns."""
    if obj is None:
        return None
    if isinstance(obj, dict):
        return {k: _json_safe(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_json_safe(v) for v in obj]
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if hasattr(obj, "value"):  # enum
        return obj.value
    if isinstance(obj, (str, int, float, bool)):
        return obj
    return str(obj)


def diff_values(old: Mapping[str, Any], new: Mapping[str, Any]) -> Tuple[dict, dict]:
    """Keep only the keys of `new` whose value differs from `old`."""
    changed = [key for key in new if _json_safe(old.get(key)) != _json_safe(new[key])]
    return {key: old.get(key) for key in changed}, {key: new[key] for key in changed}


async def log_action(
    db: AsyncSession,
    action: str,
    affected_entity_type: str,
    *,
    user_id: Optional[int] = None,
    actor_role: Optional[str] = None,
    affected_entity_id: Optional[int] = None,
    old_values: Optional[dict[str, Any]] = None,
    new_values: Optional[dict[str, Any]] = None,
    summary: Optional[str] = None,
    request_method: Optional[str] = None,
    request_path: Optional[str] = None,
) -> None:
    """
    Write an audit log entry. Call before commit (same transaction).
    affected_entity_type = USER, LEAVE, DEPARTMENT or BALANCE.
    """
    entry = AuditLog(
        user_id=user_id,
        actor_role=_json_safe(actor_role),
        action=action,
        affected_entity_type=affected_entity_type,
        affected_entity_id=affected_entity_id,
        old_values=_json_safe(old_values) if old_values is not None else None,
        new_values=_json_safe(new_values) if new_values is not None else None,
        summary=summary,
        request_method=request_method,
        request_path=request_path,
    )
    db.add(entry)
